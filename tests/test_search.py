from conftest import make_station
from globalfm.search import first_playable, next_station, previous_station, search_stations


def _catalog():
    return [
        make_station(1, name="Radio Paradise", country="United States", state="California"),
        make_station(2, name="FIP", country="France", state="Paris", language="french"),
        make_station(3, name="Bayern 3", country="Germany", state="Bavaria", language="german"),
        make_station(4, name="Rock Antenne", country="Germany", state="Bavaria", language="german"),
    ]


def test_blank_query_returns_head_of_catalog():
    catalog = [make_station(i) for i in range(120)]

    assert len(search_stations(catalog, "")) == 50
    assert search_stations(catalog, "   ")[0].id == "st-00000"


def test_query_matches_name_country_region_and_language():
    catalog = _catalog()

    assert [s.id for s in search_stations(catalog, "paradise")] == ["st-00001"]
    assert [s.id for s in search_stations(catalog, "FRANCE")] == ["st-00002"]
    assert [s.id for s in search_stations(catalog, "bavaria")] == ["st-00003", "st-00004"]
    assert [s.id for s in search_stations(catalog, "german")] == ["st-00003", "st-00004"]
    assert search_stations(catalog, "jazz") == []


def test_results_are_capped():
    catalog = [make_station(i) for i in range(250)]

    assert len(search_stations(catalog, "station")) == 100


def test_next_and_previous_wrap_around():
    catalog = _catalog()

    assert next_station(catalog, catalog[-1]).id == "st-00001"
    assert previous_station(catalog, catalog[0]).id == "st-00004"
    assert next_station(catalog, catalog[1]).id == "st-00003"
    assert previous_station(catalog, catalog[2]).id == "st-00002"


def test_navigation_from_unknown_station():
    catalog = _catalog()
    stranger = make_station(99)

    assert next_station(catalog, stranger).id == "st-00001"
    assert previous_station(catalog, stranger).id == "st-00004"
    assert next_station([], stranger) is None
    assert previous_station([], None) is None


def test_first_playable():
    catalog = _catalog()

    assert first_playable(catalog) == catalog[0]
    assert first_playable([]) is None
