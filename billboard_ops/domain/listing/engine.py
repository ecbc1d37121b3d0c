"""
Cursor-paginated list retrieval with a page cache.

A page is served from the cache when present. Otherwise it is fetched
with the cursor of the previous page, and when that page is not cached
either the engine walks forward from the nearest cached page (or page 1),
caching every page on the way. Cursors only ever come from the cache, so
a cursor the engine did not produce is never used. Any mutation clears the
whole cache rather than patching it.
"""

import asyncio
import logging
from typing import Any, Awaitable, Optional, TypeVar

from ...auth import TenantContext
from ...notifications import LoggingNotifier, Notifier
from ..documents.gateway import DocumentGateway
from .page_cache import CachedPage, MemoryPageCache, PageCache
from .pagination import page_numbers, total_pages
from .schemas import CountState, ListingSnapshot, ListState, PageResult

logger = logging.getLogger(__name__)

T = TypeVar("T")


class ListingEngine:
    """Pagination state for one list view of one collection"""

    def __init__(
        self,
        gateway: DocumentGateway,
        collection: str,
        tenant: TenantContext,
        page_size: int,
        filters: Optional[dict] = None,
        page_cache: Optional[PageCache] = None,
        notifier: Optional[Notifier] = None,
        label: Optional[str] = None,
    ):
        if page_size < 1:
            raise ValueError("page_size must be at least 1")

        self.gateway = gateway
        self.collection = collection
        self.tenant = tenant
        self.page_size = page_size
        self.filters = {**(filters or {}), "company_id": tenant.company_id}
        self.page_cache = page_cache if page_cache is not None else MemoryPageCache()
        self.notifier = notifier or LoggingNotifier()
        self.label = label or collection

        self.state = ListState.IDLE
        self.count_state = CountState.IDLE
        self.current_page = 1
        self.current: Optional[PageResult] = None
        self.total_count = 0
        self.total_pages = 1

    # ------------------------------------------------------------------
    # Page retrieval
    # ------------------------------------------------------------------

    async def fetch_page(self, page_number: int) -> PageResult:
        """Return one page, from the cache when possible"""
        if page_number < 1:
            raise ValueError("page_number is 1-based")

        cached = self.page_cache.get(page_number)
        if cached is not None:
            logger.debug(f"✅ {self.collection} page {page_number} served from cache")
            return PageResult(page=page_number, **cached)

        self.state = ListState.LOADING
        try:
            return await self._fetch_uncached(page_number)
        finally:
            self.state = ListState.READY

    async def _fetch_uncached(self, page_number: int) -> PageResult:
        if page_number == 1:
            return await self._fetch_and_store(1, None)

        anchor_page, anchor = self._nearest_cached_before(page_number)
        if anchor is None:
            if page_number > 2:
                logger.info(
                    f"↪️ No cursor for {self.collection} page {page_number - 1}, walking from page 1"
                )
            result = await self._fetch_and_store(1, None)
            anchor_page = 1
        else:
            result = PageResult(page=anchor_page, **anchor)

        while anchor_page < page_number:
            if not result.has_more:
                # Past the end of the collection
                return PageResult(page=page_number, items=[], cursor=None, has_more=False)
            anchor_page += 1
            result = await self._fetch_and_store(anchor_page, result.cursor)

        return result

    def _nearest_cached_before(self, page_number: int) -> tuple[int, Optional[CachedPage]]:
        for candidate in range(page_number - 1, 0, -1):
            entry = self.page_cache.get(candidate)
            if entry is not None:
                return candidate, entry
        return 0, None

    async def _fetch_and_store(self, page_number: int, cursor: Optional[str]) -> PageResult:
        result = await self.gateway.query(self.collection, self.filters, self.page_size, cursor)
        entry: CachedPage = {
            "items": result.items,
            "cursor": result.cursor,
            "has_more": result.has_more,
        }
        self.page_cache.set(page_number, entry)
        return PageResult(page=page_number, **entry)

    # ------------------------------------------------------------------
    # Count
    # ------------------------------------------------------------------

    async def fetch_count(self) -> int:
        """Refresh the total count; a failure reports 0 items on 1 page"""
        self.count_state = CountState.LOADING
        try:
            count = await self.gateway.count(self.collection, self.filters)
        except Exception as e:
            logger.error(f"❌ Error fetching {self.collection} count: {e}")
            self.notifier.notify(
                "Error",
                f"Failed to load {self.label} count. Please try again.",
                "destructive",
            )
            count = 0

        self.total_count = count
        self.total_pages = total_pages(count, self.page_size)
        self.count_state = CountState.READY
        return count

    # ------------------------------------------------------------------
    # View operations
    # ------------------------------------------------------------------

    async def load(self, page_number: int = 1, refresh_count: Optional[bool] = None) -> ListingSnapshot:
        """
        Show a page. The count is fetched alongside the items the first time
        (or when asked); a failed item fetch keeps the last good page.
        """
        if refresh_count is None:
            refresh_count = self.count_state != CountState.READY

        if refresh_count:
            await asyncio.gather(self._load_items(page_number), self.fetch_count())
        else:
            await self._load_items(page_number)

        return self.snapshot()

    async def _load_items(self, page_number: int) -> None:
        try:
            result = await self.fetch_page(page_number)
        except Exception as e:
            logger.error(f"❌ Error fetching {self.collection} page {page_number}: {e}")
            self.notifier.notify(
                "Error",
                f"Failed to load {self.label}. Please try again.",
                "destructive",
            )
            self.state = ListState.READY
            return

        self.current = result
        self.current_page = page_number
        self.state = ListState.READY

    def invalidate(self) -> None:
        """Forget every cached page and go back to page 1"""
        self.page_cache.clear()
        self.current = None
        self.current_page = 1
        self.state = ListState.IDLE
        self.count_state = CountState.IDLE

    async def refresh(self) -> ListingSnapshot:
        """Invalidate, then reload page 1 with a fresh count"""
        self.invalidate()
        return await self.load(1)

    async def mutate(self, operation: Awaitable[T]) -> T:
        """Run a create/edit/delete, then invalidate and reload"""
        outcome = await operation
        await self.refresh()
        return outcome

    def snapshot(self) -> ListingSnapshot:
        items: list[dict[str, Any]] = self.current.items if self.current else []
        return ListingSnapshot(
            collection=self.collection,
            page=self.current_page,
            page_size=self.page_size,
            items=items,
            has_more=self.current.has_more if self.current else False,
            total_count=self.total_count,
            total_pages=self.total_pages,
            page_numbers=page_numbers(self.current_page, self.total_pages),
            state=self.state,
            count_state=self.count_state,
        )
