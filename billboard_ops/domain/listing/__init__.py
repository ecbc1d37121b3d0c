"""Listing domain - cursor pagination with page caching for list views"""

from .engine import ListingEngine
from .page_cache import MemoryPageCache, RedisPageCache
from .pagination import ELLIPSIS, page_numbers, total_pages
from .router import router

__all__ = [
    "ELLIPSIS",
    "ListingEngine",
    "MemoryPageCache",
    "RedisPageCache",
    "page_numbers",
    "router",
    "total_pages",
]
