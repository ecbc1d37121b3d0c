"""
Redis-backed store for listing pages.

Pages are JSON documents under keys scoped by company and collection, so one
pattern delete drops a collection's pages after any mutation. Redis being
down is never an error here: reads miss and writes are skipped.
"""
import hashlib
import json
import logging
from typing import Any, Callable, Optional

from .config import LISTING_CACHE_TTL
from .redis_client import get_redis_client

logger = logging.getLogger(__name__)

LISTING_KEY_ROOT = "listing"


class Cache:
    """JSON values in Redis with TTLs; every operation fails open"""

    def __init__(self, client_factory: Callable = get_redis_client):
        self.redis_client = None
        self._client_factory = client_factory

    def _get_client(self):
        if self.redis_client is None:
            try:
                self.redis_client = self._client_factory()
            except Exception as e:
                logger.warning(f"⚠️ Listing cache disabled, Redis unreachable: {e}")
                return None
        return self.redis_client

    def _attempt(self, action: str, target: str, operation: Callable, fallback: Any) -> Any:
        client = self._get_client()
        if client is None:
            return fallback
        try:
            return operation(client)
        except Exception as e:
            logger.error(f"❌ Listing cache {action} failed for {target}: {e}")
            return fallback

    def get(self, key: str) -> Optional[Any]:
        def read(client) -> Optional[Any]:
            raw = client.get(key)
            return json.loads(raw) if raw is not None else None

        value = self._attempt("read", key, read, None)
        logger.debug(f"{'📬 Page hit' if value is not None else '📭 Page miss'}: {key}")
        return value

    def set(self, key: str, value: Any, ttl: int = LISTING_CACHE_TTL) -> bool:
        payload = json.dumps(value, default=str)

        def write(client) -> bool:
            client.setex(key, ttl, payload)
            return True

        return self._attempt("write", key, write, False)

    def incr(self, key: str) -> Optional[int]:
        """Atomically bump a counter; None when Redis is unavailable"""
        return self._attempt("increment", key, lambda client: client.incr(key), None)

    def delete_pattern(self, pattern: str) -> int:
        """Remove every key matching a glob pattern; returns how many went"""

        def purge(client) -> int:
            keys = list(client.scan_iter(match=pattern))
            return client.delete(*keys) if keys else 0

        removed = self._attempt("purge", pattern, purge, 0)
        if removed:
            logger.debug(f"🧹 Purged {removed} keys matching {pattern}")
        return removed


cache = Cache()


def filters_fingerprint(filters: Optional[dict]) -> str:
    """Stable short hash of a filter dict"""
    canonical = json.dumps(filters or {}, sort_keys=True, default=str)
    return hashlib.sha1(canonical.encode()).hexdigest()[:12]


def build_listing_prefix(company_id: str, collection: str) -> str:
    return f"{LISTING_KEY_ROOT}:{company_id}:{collection}"


def build_generation_key(company_id: str, collection: str) -> str:
    # Outside the page prefix so purging pages never resets it
    return f"{LISTING_KEY_ROOT}-generation:{company_id}:{collection}"


def current_listing_generation(company_id: str, collection: str, target: Optional[Cache] = None) -> int:
    """Invalidation counter of a collection; 0 until its first mutation"""
    target = target or cache
    return int(target.get(build_generation_key(company_id, collection)) or 0)


def build_listing_key(
    company_id: str,
    collection: str,
    filters: Optional[dict],
    page_size: int,
    page: int,
    generation: int = 0,
) -> str:
    prefix = build_listing_prefix(company_id, collection)
    return f"{prefix}:g{generation}:{filters_fingerprint(filters)}:{page_size}:{page}"


def invalidate_listing_cache(company_id: str, collection: str, target: Optional[Cache] = None) -> int:
    """
    Drop every cached page of a collection (all filters, all page sizes) for a company.
    The generation bump comes first, so a page fetched before the mutation
    and written afterwards lands under a key no reader uses any more.
    """
    target = target or cache
    target.incr(build_generation_key(company_id, collection))
    return target.delete_pattern(f"{build_listing_prefix(company_id, collection)}:*")


def get_cache_stats() -> dict:
    """Memory, clients and hit ratio for the health endpoint"""
    client = cache._get_client()
    if client is None:
        return {"available": False}

    try:
        info = client.info()
    except Exception as e:
        logger.error(f"❌ Could not read Redis info: {e}")
        return {"available": False, "error": str(e)}

    hits = info.get("keyspace_hits", 0)
    misses = info.get("keyspace_misses", 0)
    return {
        "available": True,
        "used_memory": info.get("used_memory_human"),
        "connected_clients": info.get("connected_clients"),
        "hit_rate": round(hits / max(hits + misses, 1) * 100, 2),
    }
