"""Page caches for the listing engine, keyed by 1-based page number"""

import logging
from typing import Optional, Protocol, TypedDict

from ...cache import (
    Cache,
    build_listing_key,
    cache,
    current_listing_generation,
    invalidate_listing_cache,
)
from ...config import LISTING_CACHE_TTL

logger = logging.getLogger(__name__)


class CachedPage(TypedDict):
    items: list[dict]
    cursor: Optional[str]
    has_more: bool


class PageCache(Protocol):
    def get(self, page: int) -> Optional[CachedPage]: ...

    def set(self, page: int, entry: CachedPage) -> None: ...

    def clear(self) -> None: ...


class MemoryPageCache:
    """Per-view page map"""

    def __init__(self):
        self._pages: dict[int, CachedPage] = {}

    def get(self, page: int) -> Optional[CachedPage]:
        return self._pages.get(page)

    def set(self, page: int, entry: CachedPage) -> None:
        self._pages[page] = entry

    def clear(self) -> None:
        self._pages.clear()

    def __len__(self) -> int:
        return len(self._pages)


class RedisPageCache:
    """
    Page map shared across requests through Redis.
    clear() drops every cached page of the collection for the company,
    whatever filters or page size they were fetched with.

    Keys carry the collection's invalidation generation, read once on first
    use. A page fetched before a mutation is written under the old
    generation, where requests started after the mutation never look.
    """

    def __init__(
        self,
        company_id: str,
        collection: str,
        filters: Optional[dict],
        page_size: int,
        store: Cache = cache,
        ttl: int = LISTING_CACHE_TTL,
    ):
        self.company_id = company_id
        self.collection = collection
        self.filters = filters
        self.page_size = page_size
        self.store = store
        self.ttl = ttl
        self._generation: Optional[int] = None

    @property
    def generation(self) -> int:
        if self._generation is None:
            self._generation = current_listing_generation(self.company_id, self.collection, self.store)
        return self._generation

    def _key(self, page: int) -> str:
        return build_listing_key(
            self.company_id, self.collection, self.filters, self.page_size, page, self.generation
        )

    def get(self, page: int) -> Optional[CachedPage]:
        return self.store.get(self._key(page))

    def set(self, page: int, entry: CachedPage) -> None:
        self.store.set(self._key(page), entry, self.ttl)

    def clear(self) -> None:
        deleted = invalidate_listing_cache(self.company_id, self.collection, self.store)
        self._generation = None
        logger.debug(f"🧹 Cleared {deleted} cached {self.collection} pages for {self.company_id}")
