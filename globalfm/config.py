import os
import sys
from typing import List

from loguru import logger


def _csv(value: str) -> List[str]:
    return [part.strip() for part in value.split(",") if part.strip()]


# --- SOURCE CLIENT ---
MIRRORS = _csv(os.getenv(
    "GLOBALFM_MIRRORS",
    "https://de1.api.radio-browser.info,"
    "https://at1.api.radio-browser.info,"
    "https://nl1.api.radio-browser.info",
))
REQUEST_TIMEOUT = float(os.getenv("GLOBALFM_REQUEST_TIMEOUT", "15"))
USER_AGENT = os.getenv("GLOBALFM_USER_AGENT", "GlobalFM/1.0")

# --- CATALOG LOADER ---
PAGE_SIZE = int(os.getenv("GLOBALFM_PAGE_SIZE", "200"))
POLL_INTERVAL = float(os.getenv("GLOBALFM_POLL_INTERVAL", "3"))
EMPTY_BATCH_LIMIT = int(os.getenv("GLOBALFM_EMPTY_BATCH_LIMIT", "3"))
PERSIST_EVERY = int(os.getenv("GLOBALFM_PERSIST_EVERY", "1000"))
SECONDARY_TAG = os.getenv("GLOBALFM_SECONDARY_TAG", "christian")
SECONDARY_LANGUAGES = _csv(os.getenv("GLOBALFM_SECONDARY_LANGUAGES", "hindi,english"))

# "front" moves thematic stations ahead of the rest, "merged" leaves score order alone
THEMATIC_PLACEMENT = os.getenv("GLOBALFM_THEMATIC_PLACEMENT", "front")
# "id_first" or "coordinates_first"
DEDUP_ORDER = os.getenv("GLOBALFM_DEDUP_ORDER", "id_first")

# --- CACHE ---
CACHE_MINUTES = float(os.getenv("GLOBALFM_CACHE_MINUTES", "45"))
CACHE_VERSION = int(os.getenv("GLOBALFM_CACHE_VERSION", "6"))
CACHE_DB_NAME = "GlobalFMCache"
CACHE_STORE_NAME = "globalStations"
CACHE_KEY_PREFIX = "globalfm_global"

# Preferred path (mounted volume), fallback to /tmp/ which is writable in Docker
DB_PATH = os.getenv("DATABASE_PATH", "/data/stations.db")
FALLBACK_DB_PATH = "/tmp/stations.db"
KV_PATH = os.getenv("GLOBALFM_KV_PATH", "/data/globalfm_cache.json")
BOOKMARKS_PATH = os.getenv("GLOBALFM_BOOKMARKS_PATH", "/data/globalfm_bookmarks.json")

# --- PLAYBACK ---
MAX_RETRIES = int(os.getenv("GLOBALFM_MAX_RETRIES", "10"))
RETRY_BASE_DELAY = float(os.getenv("GLOBALFM_RETRY_BASE_DELAY", "2"))
RETRY_MAX_DELAY = float(os.getenv("GLOBALFM_RETRY_MAX_DELAY", "30"))
DEFAULT_VOLUME = 70

LOG_LEVEL = os.getenv("GLOBALFM_LOG_LEVEL", "INFO")


def configure_logging(level: str = LOG_LEVEL) -> None:
    """Route loguru to a single stderr sink at the requested level."""
    logger.remove()
    logger.add(sys.stderr, level=level.upper())
