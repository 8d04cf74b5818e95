"""Venue search for the invitation form (Kakao Local keyword API)."""

import logging
import os
import time
from collections import OrderedDict, deque
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

import requests

from ..core.invitation import Place

logger = logging.getLogger("StoryInvitation.integrations.places")

KAKAO_KEYWORD_URL = "https://dapi.kakao.com/v2/local/search/keyword.json"


class PlaceSearch(Protocol):
    def search(self, query: str) -> list[Place]: ...


class RateLimiter:
    """Sliding-window limiter: at most ``max_requests`` per ``period_seconds``."""

    def __init__(self, max_requests: int, period_seconds: float,
                 clock: Callable[[], float] = time.monotonic):
        self.max_requests = max_requests
        self.period = period_seconds
        self._clock = clock
        self._calls: deque[float] = deque()

    def _expire(self, now: float) -> None:
        while self._calls and now - self._calls[0] >= self.period:
            self._calls.popleft()

    @property
    def remaining(self) -> int:
        self._expire(self._clock())
        return self.max_requests - len(self._calls)

    def acquire(self) -> bool:
        now = self._clock()
        self._expire(now)
        if len(self._calls) >= self.max_requests:
            return False
        self._calls.append(now)
        return True


@dataclass
class _CacheEntry:
    results: list[Place]
    timestamp: float


class KakaoPlaceSearch:
    """Keyword place search with rate limiting and caching."""

    CACHE_TTL = 900  # 15 minutes
    MAX_CACHE_ENTRIES = 128

    def __init__(self, api_key: Optional[str] = None, page_size: int = 10,
                 clock: Callable[[], float] = time.time):
        self._api_key = api_key
        self.page_size = page_size
        self._clock = clock
        self._rate_limiter = RateLimiter(30, 60, clock=clock)
        self._cache: OrderedDict[str, _CacheEntry] = OrderedDict()

    @property
    def api_key(self) -> Optional[str]:
        return self._api_key or os.environ.get("KAKAO_REST_API_KEY")

    def get_status(self) -> dict:
        return {
            "source": "kakao",
            "configured": bool(self.api_key),
            "remaining_requests": self._rate_limiter.remaining,
            "cached_queries": len(self._cache),
        }

    def _cached(self, query: str) -> Optional[list[Place]]:
        now = self._clock()
        for stale in [q for q, e in self._cache.items() if now - e.timestamp >= self.CACHE_TTL]:
            del self._cache[stale]
        entry = self._cache.get(query)
        return entry.results if entry else None

    def _remember(self, query: str, results: list[Place]) -> None:
        self._cache[query] = _CacheEntry(results=results, timestamp=self._clock())
        self._cache.move_to_end(query)
        while len(self._cache) > self.MAX_CACHE_ENTRIES:
            self._cache.popitem(last=False)

    def search(self, query: str) -> list[Place]:
        """Return venues matching ``query``; blank queries return nothing."""
        query = query.strip()
        if not query:
            return []

        cached = self._cached(query)
        if cached is not None:
            return cached

        key = self.api_key
        if not key:
            logger.warning("KAKAO_REST_API_KEY is not set; place search disabled")
            return []
        if not self._rate_limiter.acquire():
            logger.warning("Kakao place search rate limit reached")
            return []

        resp = requests.get(
            KAKAO_KEYWORD_URL,
            params={"query": query, "size": self.page_size},
            headers={"Authorization": f"KakaoAK {key}"},
            timeout=15,
        )
        resp.raise_for_status()
        data = resp.json()

        results = []
        for item in data.get("documents", []):
            try:
                results.append(Place(
                    name=item["place_name"],
                    address=item.get("address_name", ""),
                    road_address=item.get("road_address_name", ""),
                    lat=float(item["y"]),
                    lng=float(item["x"]),
                ))
            except (KeyError, TypeError, ValueError) as e:
                logger.warning(f"Skipping malformed place result: {e}")

        self._remember(query, results)
        return results


class StaticPlaceSearch:
    """In-memory place search over a fixed list (offline use)."""

    def __init__(self, places: list[Place]):
        self._places = list(places)

    def search(self, query: str) -> list[Place]:
        query = query.strip().lower()
        if not query:
            return []
        return [
            p for p in self._places
            if query in p.name.lower() or query in p.address.lower() or query in p.road_address.lower()
        ]
