import itertools
import random

from conftest import make_station
from globalfm.ranking import (
    DedupOrder,
    KeywordMatcher,
    RankingPolicy,
    ThematicPlacement,
    dedupe_by_coordinates,
    dedupe_by_id,
    merge_stations,
    quality_score,
    sort_by_quality,
)


def test_quality_score_weights_votes_clicks_and_bitrate():
    station = make_station(1, votes=10, clickcount=5, bitrate=128)
    assert quality_score(station) == 2 * 10 + 5 + 12.8


def test_coordinate_dedup_keeps_higher_score():
    weak = make_station(1, geo_lat=48.1371, geo_long=11.5754, votes=1)
    strong = make_station(2, geo_lat=48.13712, geo_long=11.57541, votes=9)
    elsewhere = make_station(3, geo_lat=52.52, geo_long=13.405)

    result = dedupe_by_coordinates([weak, strong, elsewhere])

    assert {s.id for s in result} == {"st-00002", "st-00003"}


def test_coordinate_dedup_tie_goes_to_smaller_id():
    a = make_station(5, geo_lat=10.0, geo_long=10.0, votes=3, clickcount=0, bitrate=0)
    b = make_station(4, geo_lat=10.0004, geo_long=10.0, votes=3, clickcount=0, bitrate=0)

    assert [s.id for s in dedupe_by_coordinates([a, b])] == ["st-00004"]
    assert [s.id for s in dedupe_by_coordinates([b, a])] == ["st-00004"]


def test_coordinate_dedup_is_order_independent():
    stations = [
        make_station(i, geo_lat=40.0 + (i % 4) * 0.01 + (i % 3) * 0.0001, geo_long=-3.7, votes=i % 3)
        for i in range(12)
    ]
    expected = {s.id for s in dedupe_by_coordinates(stations)}

    rng = random.Random(42)
    for _ in range(10):
        shuffled = stations[:]
        rng.shuffle(shuffled)
        assert {s.id for s in dedupe_by_coordinates(shuffled)} == expected


def test_dedupe_by_id_keeps_first_seen():
    first = make_station(1, name="First")
    second = make_station(1, name="Second")

    result = dedupe_by_id([first, make_station(2), second])

    assert [s.id for s in result] == ["st-00001", "st-00002"]
    assert result[0].name == "First"


def test_merge_yields_union_of_ids():
    a = [make_station(i) for i in range(0, 6)]
    b = [make_station(i, name="from feed") for i in range(4, 9)]

    merged = merge_stations(a, b)

    assert len(merged) == len({s.id for s in a} | {s.id for s in b}) == 9
    assert [s.name for s in merged if s.id == "st-00005"] == ["Station 5"]
    assert [s.name for s in merged if s.id == "st-00008"] == ["from feed"]


def test_sort_by_quality_is_a_total_order():
    stations = [make_station(i, votes=1, clickcount=0, bitrate=0) for i in (3, 1, 2)]
    stations.append(make_station(9, votes=5))

    ordered = sort_by_quality(stations)

    assert [s.id for s in ordered] == ["st-00009", "st-00001", "st-00002", "st-00003"]
    for x, y in itertools.combinations(ordered, 2):
        assert (-quality_score(x), x.id) != (-quality_score(y), y.id)


def test_keyword_matcher_looks_at_name_language_homepage_and_tags():
    matcher = KeywordMatcher(vocabulary=("gospel",))

    assert matcher(make_station(1, name="Gospel Hour"))
    assert matcher(make_station(2, homepage="https://gospel.example"))
    assert matcher(make_station(3, tags="jazz,gospel"))
    assert not matcher(make_station(4, name="Jazz FM", tags="jazz"))


def test_front_placement_moves_thematic_stations_and_keeps_relative_order():
    plain_high = make_station(1, votes=40)
    themed_low = make_station(2, votes=1, tags="christian")
    plain_mid = make_station(3, votes=20)
    themed_mid = make_station(4, votes=10, tags="worship")

    policy = RankingPolicy(placement=ThematicPlacement.FRONT)
    ordered = policy.build_catalog([plain_high, themed_low, plain_mid, themed_mid])

    assert [s.id for s in ordered] == ["st-00004", "st-00002", "st-00001", "st-00003"]


def test_merged_placement_keeps_score_order():
    stations = [make_station(1, votes=40), make_station(2, votes=1, tags="christian")]

    ordered = RankingPolicy(placement=ThematicPlacement.MERGED).build_catalog(stations)

    assert [s.id for s in ordered] == ["st-00001", "st-00002"]


def test_thematic_step_can_be_skipped_per_call():
    stations = [make_station(1, votes=40), make_station(2, votes=1, tags="christian")]

    ordered = RankingPolicy().build_catalog(stations, thematic=False)

    assert [s.id for s in ordered] == ["st-00001", "st-00002"]


def test_dedup_order_is_configurable():
    # same id twice at different places, plus a neighbour of the second copy
    early = make_station(1, geo_lat=20.0, geo_long=20.0, votes=0)
    late = make_station(1, geo_lat=30.0, geo_long=30.0, votes=0)
    neighbour = make_station(2, geo_lat=30.0, geo_long=30.0, votes=5)

    id_first = RankingPolicy(dedup_order=DedupOrder.ID_FIRST, matcher=None)
    coords_first = RankingPolicy(dedup_order=DedupOrder.COORDINATES_FIRST, matcher=None)

    assert {(s.id, s.latitude) for s in id_first.build_catalog([early, late, neighbour])} == {
        ("st-00001", 20.0),
        ("st-00002", 30.0),
    }
    assert len(coords_first.build_catalog([early, late, neighbour])) == 2
