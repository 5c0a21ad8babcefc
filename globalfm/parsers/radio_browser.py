from typing import Any, Dict, List, Optional, Sequence

import httpx
from loguru import logger

from globalfm import config
from globalfm.errors import NetworkFailure

RawStation = Dict[str, Any]


class RadioBrowserClient:
    """Paged access to the radio-browser directory with mirror failover.

    Every request walks the mirror list in order, one attempt per mirror with
    a fixed timeout. Failing over to the next mirror is the only retry; when
    all mirrors fail the caller gets an empty list, never an exception.
    """

    source_name = "radio_browser_api"

    LISTING_PATH = "/json/stations"
    TAG_PATH = "/json/stations/bytag/{tag}"

    def __init__(
        self,
        mirrors: Optional[Sequence[str]] = None,
        timeout: float = config.REQUEST_TIMEOUT,
        client: Optional[httpx.AsyncClient] = None,
    ):
        self.mirrors = list(mirrors or config.MIRRORS)
        self.timeout = timeout
        self._client = client
        self._owns_client = client is None

    @property
    def client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(
                timeout=self.timeout,
                follow_redirects=True,
                headers={"User-Agent": config.USER_AGENT, "Accept": "application/json"},
            )
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    async def fetch_batch(self, offset: int, limit: int = config.PAGE_SIZE) -> List[RawStation]:
        params = {
            "limit": limit,
            "offset": offset,
            "order": "votes",
            "reverse": "true",
            "hidebroken": "true",
        }
        return await self._get_with_failover(self.LISTING_PATH, params, f"batch at offset {offset}")

    async def fetch_tagged_feed(
        self, tag: str, languages: Optional[Sequence[str]] = None
    ) -> List[RawStation]:
        """Stations carrying ``tag``, optionally narrowed to the given languages."""
        data = await self._get_with_failover(self.TAG_PATH.format(tag=tag), None, f"tag '{tag}'")
        if not languages:
            return data

        wanted = [lang.lower() for lang in languages]
        filtered = [
            item for item in data
            if any(lang in str(item.get("language") or "").lower() for lang in wanted)
        ]
        logger.info(f"[{self.source_name}] Fetched {len(filtered)} '{tag}' stations ({', '.join(wanted)}) from {len(data)} total")
        return filtered

    async def _get_with_failover(
        self, path: str, params: Optional[Dict[str, Any]], what: str
    ) -> List[RawStation]:
        for server in self.mirrors:
            try:
                return await self._get_json(server, path, params)
            except NetworkFailure as e:
                logger.warning(f"[{self.source_name}] Failed to fetch {what} from {e.server}: {e.reason}")
                continue

        logger.error(f"[{self.source_name}] Failed to fetch {what} from all servers")
        return []

    async def _get_json(
        self, server: str, path: str, params: Optional[Dict[str, Any]]
    ) -> List[RawStation]:
        try:
            resp = await self.client.get(f"{server}{path}", params=params, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except httpx.TimeoutException as e:
            raise NetworkFailure(server, f"timeout ({e})") from e
        except httpx.HTTPStatusError as e:
            raise NetworkFailure(server, f"HTTP {e.response.status_code}") from e
        except httpx.HTTPError as e:
            raise NetworkFailure(server, str(e) or type(e).__name__) from e
        except ValueError as e:
            raise NetworkFailure(server, f"invalid JSON ({e})") from e

        if not isinstance(data, list):
            raise NetworkFailure(server, "invalid response format")
        return data
