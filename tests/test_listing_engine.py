import pytest

from billboard_ops.auth import TenantContext
from billboard_ops.cache import cache, current_listing_generation, invalidate_listing_cache
from billboard_ops.domain.listing.engine import ListingEngine
from billboard_ops.domain.listing.page_cache import MemoryPageCache, RedisPageCache
from billboard_ops.domain.listing.pagination import ELLIPSIS
from billboard_ops.domain.listing.schemas import CountState, ListState


async def seed(gateway, count, company_id="company-1"):
    for i in range(count):
        await gateway.create("products", {"company_id": company_id, "seq": i})


def make_engine(gateway, tenant, notifier=None, page_cache=None, page_size=10):
    return ListingEngine(
        gateway,
        "products",
        tenant,
        page_size,
        page_cache=page_cache if page_cache is not None else MemoryPageCache(),
        notifier=notifier,
    )


class TestPaging:
    async def test_first_load_fetches_items_and_count(self, gateway, counting_gateway, tenant):
        await seed(gateway, 25)
        engine = make_engine(counting_gateway, tenant)

        snapshot = await engine.load(1)

        assert len(snapshot.items) == 10
        assert snapshot.has_more is True
        assert snapshot.total_count == 25
        assert snapshot.total_pages == 3
        assert snapshot.page_numbers == [1, 2, 3]
        assert snapshot.state == ListState.READY
        assert snapshot.count_state == CountState.READY
        assert counting_gateway.calls == {"query": 1, "count": 1}

    async def test_walk_forward_and_back_hits_the_cache(self, gateway, counting_gateway, tenant):
        await seed(gateway, 25)
        engine = make_engine(counting_gateway, tenant)

        page1 = await engine.load(1)
        page2 = await engine.load(2)
        page3 = await engine.load(3)
        assert [len(p.items) for p in (page1, page2, page3)] == [10, 10, 5]
        assert page3.has_more is False
        assert counting_gateway.calls["query"] == 3

        again = await engine.load(1)
        await engine.load(2)

        assert again.items == page1.items
        assert counting_gateway.calls["query"] == 3
        assert counting_gateway.calls["count"] == 1

    async def test_pages_do_not_overlap(self, gateway, tenant):
        await seed(gateway, 25)
        engine = make_engine(gateway, tenant)

        seen = []
        for page in (1, 2, 3):
            seen.extend(doc["seq"] for doc in (await engine.load(page)).items)

        assert seen == list(range(24, -1, -1))

    async def test_jump_walks_forward_from_page_one(self, gateway, counting_gateway, tenant):
        await seed(gateway, 25)
        engine = make_engine(counting_gateway, tenant)

        page3 = await engine.fetch_page(3)

        assert [doc["seq"] for doc in page3.items] == [4, 3, 2, 1, 0]
        assert counting_gateway.calls["query"] == 3

        await engine.fetch_page(2)
        assert counting_gateway.calls["query"] == 3

    async def test_jump_resumes_from_nearest_cached_page(self, gateway, counting_gateway, tenant):
        await seed(gateway, 45)
        engine = make_engine(counting_gateway, tenant)
        await engine.fetch_page(1)
        await engine.fetch_page(2)

        page4 = await engine.fetch_page(4)

        assert page4.items[0]["seq"] == 14
        assert counting_gateway.calls["query"] == 4

    async def test_page_past_the_end_is_empty(self, gateway, tenant):
        await seed(gateway, 25)
        page_cache = MemoryPageCache()
        engine = make_engine(gateway, tenant, page_cache=page_cache)

        result = await engine.fetch_page(5)

        assert result.items == []
        assert result.has_more is False
        assert page_cache.get(5) is None

    async def test_rejects_page_zero(self, gateway, tenant):
        engine = make_engine(gateway, tenant)

        with pytest.raises(ValueError):
            await engine.fetch_page(0)

    async def test_only_sees_own_company(self, gateway, tenant):
        await seed(gateway, 3)
        await seed(gateway, 4, company_id="company-2")
        engine = make_engine(gateway, tenant)

        snapshot = await engine.load(1)

        assert snapshot.total_count == 3
        assert {doc["company_id"] for doc in snapshot.items} == {"company-1"}

    async def test_page_numbers_are_compressed_for_long_lists(self, gateway, tenant):
        await seed(gateway, 12)
        engine = make_engine(gateway, tenant, page_size=1)

        snapshot = await engine.load(1)

        assert snapshot.page_numbers == [1, 2, 3, 4, ELLIPSIS, 12]


class TestInvalidation:
    async def test_invalidate_forces_a_fresh_fetch(self, gateway, counting_gateway, tenant):
        await seed(gateway, 15)
        page_cache = MemoryPageCache()
        engine = make_engine(counting_gateway, tenant, page_cache=page_cache)
        await engine.load(1)
        await engine.load(2)

        engine.invalidate()

        assert len(page_cache) == 0
        assert engine.state == ListState.IDLE
        assert engine.count_state == CountState.IDLE
        assert engine.current_page == 1

        await engine.load(1)
        assert counting_gateway.calls["query"] == 3
        assert counting_gateway.calls["count"] == 2

    async def test_mutate_reloads_page_one_with_new_count(self, gateway, tenant):
        await seed(gateway, 10)
        engine = make_engine(gateway, tenant)
        await engine.load(1)
        await engine.load(1)

        new_id = await engine.mutate(gateway.create("products", {"company_id": "company-1", "seq": 99}))

        snapshot = engine.snapshot()
        assert snapshot.page == 1
        assert snapshot.items[0]["id"] == new_id
        assert snapshot.total_count == 11
        assert snapshot.total_pages == 2

    async def test_refresh_drops_stale_pages(self, gateway, tenant):
        await seed(gateway, 5)
        engine = make_engine(gateway, tenant)
        before = await engine.load(1)

        victim = before.items[0]["id"]
        await gateway.delete("products", victim)
        cached = await engine.load(1)
        assert cached.items[0]["id"] == victim

        refreshed = await engine.refresh()

        assert victim not in [doc["id"] for doc in refreshed.items]
        assert refreshed.total_count == 4


class TestFailures:
    async def test_count_failure_reports_single_empty_page(self, gateway, counting_gateway, tenant, notifier):
        await seed(gateway, 25)
        counting_gateway.fail_on["count"] = 1
        engine = make_engine(counting_gateway, tenant, notifier=notifier)

        snapshot = await engine.load(1)

        assert snapshot.total_count == 0
        assert snapshot.total_pages == 1
        assert len(snapshot.items) == 10
        assert snapshot.count_state == CountState.READY
        assert [n.variant for n in notifier.notifications] == ["destructive"]
        assert "count" in notifier.notifications[0].description

    async def test_item_failure_keeps_last_good_page(self, gateway, counting_gateway, tenant, notifier):
        await seed(gateway, 25)
        engine = make_engine(counting_gateway, tenant, notifier=notifier)
        good = await engine.load(1)

        counting_gateway.fail_on["query"] = 2
        snapshot = await engine.load(2)

        assert snapshot.page == 1
        assert snapshot.items == good.items
        assert snapshot.state == ListState.READY
        assert notifier.notifications[0].title == "Error"
        assert notifier.notifications[0].variant == "destructive"

    async def test_failed_page_is_retried_next_time(self, gateway, counting_gateway, tenant, notifier):
        await seed(gateway, 25)
        engine = make_engine(counting_gateway, tenant, notifier=notifier)
        await engine.load(1)
        counting_gateway.fail_on["query"] = 2
        await engine.load(2)

        snapshot = await engine.load(2)

        assert snapshot.page == 2
        assert len(snapshot.items) == 10


class TestRedisPageCache:
    async def test_pages_are_shared_between_engines(self, gateway, counting_gateway, tenant, fake_redis):
        await seed(gateway, 15)
        filters = {"company_id": tenant.company_id}

        first = make_engine(counting_gateway, tenant, page_cache=RedisPageCache(tenant.company_id, "products", filters, 10))
        await first.load(1)
        await first.load(2)
        queries = counting_gateway.calls["query"]

        second = make_engine(counting_gateway, tenant, page_cache=RedisPageCache(tenant.company_id, "products", filters, 10))
        snapshot = await second.load(2, refresh_count=False)

        assert len(snapshot.items) == 5
        assert snapshot.state == ListState.READY
        assert counting_gateway.calls["query"] == queries

    async def test_clear_drops_every_filter_variant_for_the_company(self, gateway, tenant, fake_redis):
        await seed(gateway, 3)
        await seed(gateway, 3, company_id="company-2")
        other = TenantContext(company_id="company-2")

        for page_size in (1, 2):
            engine = make_engine(gateway, tenant, page_cache=RedisPageCache(tenant.company_id, "products", {}, page_size))
            await engine.load(1)
        foreign = make_engine(gateway, other, page_cache=RedisPageCache(other.company_id, "products", {}, 2))
        await foreign.load(1)
        assert len(fake_redis.store) == 3

        RedisPageCache(tenant.company_id, "products", {"active": True}, 10).clear()

        pages = [key for key in fake_redis.store if key.startswith("listing:")]
        assert len(pages) == 1
        assert pages[0].startswith("listing:company-2:products:")

    async def test_page_fetched_before_a_mutation_is_not_served_after_it(
        self, gateway, counting_gateway, tenant, fake_redis
    ):
        await seed(gateway, 3)
        in_flight = RedisPageCache(tenant.company_id, "products", {}, 10)
        engine = make_engine(counting_gateway, tenant, page_cache=in_flight)
        assert in_flight.get(1) is None
        stale = await gateway.query("products", engine.filters, 10)

        await gateway.create("products", {"company_id": "company-1", "seq": 99})
        invalidate_listing_cache(tenant.company_id, "products")
        in_flight.set(1, {"items": stale.items, "cursor": stale.cursor, "has_more": stale.has_more})

        fresh = make_engine(counting_gateway, tenant, page_cache=RedisPageCache(tenant.company_id, "products", {}, 10))
        snapshot = await fresh.load(1)

        assert len(snapshot.items) == 4
        assert snapshot.items[0]["seq"] == 99
        assert counting_gateway.calls["query"] == 1

    async def test_clear_moves_the_cache_to_a_new_generation(self, tenant, fake_redis):
        page_cache = RedisPageCache(tenant.company_id, "products", {}, 10)
        assert page_cache.generation == 0

        page_cache.clear()

        assert page_cache.generation == 1
        assert current_listing_generation(tenant.company_id, "products") == 1

    async def test_unavailable_redis_falls_back_to_the_store(self, gateway, counting_gateway, tenant, monkeypatch):
        monkeypatch.setattr(cache, "redis_client", None)

        def unavailable():
            raise ConnectionError("redis down")

        monkeypatch.setattr(cache, "_client_factory", unavailable)
        await seed(gateway, 3)
        engine = make_engine(counting_gateway, tenant, page_cache=RedisPageCache(tenant.company_id, "products", {}, 10))

        await engine.load(1)
        snapshot = await engine.load(1)

        assert len(snapshot.items) == 3
        assert counting_gateway.calls["query"] == 2
