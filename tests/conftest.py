import fnmatch
import os
import tempfile

# Point the app at a throwaway database before anything imports billboard_ops
_db_dir = tempfile.mkdtemp(prefix="billboard_ops_tests_")
os.environ.setdefault("DATABASE_URL", f"sqlite:///{os.path.join(_db_dir, 'app.db')}")
os.environ.setdefault("DB_LOG_SLOW_QUERIES", "false")

import pytest  # noqa: E402
from sqlalchemy.orm import sessionmaker  # noqa: E402

from billboard_ops import models  # noqa: E402,F401
from billboard_ops.auth import TenantContext  # noqa: E402
from billboard_ops.cache import cache  # noqa: E402
from billboard_ops.database import Base, build_engine  # noqa: E402
from billboard_ops.domain.documents.gateway import DocumentGateway  # noqa: E402
from billboard_ops.notifications import RequestNotifier  # noqa: E402


class FakeRedis:
    """Just enough of redis.Redis for the cache wrapper"""

    def __init__(self):
        self.store: dict[str, str] = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def delete(self, *keys):
        removed = 0
        for key in keys:
            if self.store.pop(key, None) is not None:
                removed += 1
        return removed

    def incr(self, key):
        value = int(self.store.get(key, 0)) + 1
        self.store[key] = str(value)
        return value

    def scan_iter(self, match="*"):
        return [key for key in list(self.store) if fnmatch.fnmatchcase(key, match)]

    def ping(self):
        return True

    def info(self):
        return {"used_memory_human": "1K", "connected_clients": 1}


class CountingGateway:
    """Wraps a gateway, counting calls and optionally failing chosen ones"""

    def __init__(self, inner: DocumentGateway):
        self.inner = inner
        self.calls: dict[str, int] = {}
        self.fail_on: dict[str, int] = {}  # method -> fail on the Nth call (1-based)

    def _hit(self, name: str):
        self.calls[name] = self.calls.get(name, 0) + 1
        if self.fail_on.get(name) == self.calls[name]:
            raise RuntimeError(f"simulated {name} failure")

    async def get_by_id(self, collection, document_id):
        self._hit("get_by_id")
        return await self.inner.get_by_id(collection, document_id)

    async def create(self, collection, data):
        self._hit("create")
        return await self.inner.create(collection, data)

    async def update(self, collection, document_id, partial):
        self._hit("update")
        return await self.inner.update(collection, document_id, partial)

    async def delete(self, collection, document_id):
        self._hit("delete")
        return await self.inner.delete(collection, document_id)

    async def query(self, collection, filters, page_size, start_after=None):
        self._hit("query")
        return await self.inner.query(collection, filters, page_size, start_after)

    async def count(self, collection, filters):
        self._hit("count")
        return await self.inner.count(collection, filters)

    async def find(self, collection, filters):
        self._hit("find")
        return await self.inner.find(collection, filters)


@pytest.fixture
def session_factory(tmp_path):
    engine = build_engine(f"sqlite:///{tmp_path / 'documents.db'}")
    Base.metadata.create_all(bind=engine)
    yield sessionmaker(autocommit=False, autoflush=False, bind=engine)
    engine.dispose()


@pytest.fixture
def gateway(session_factory):
    return DocumentGateway(session_factory)


@pytest.fixture
def counting_gateway(gateway):
    return CountingGateway(gateway)


@pytest.fixture
def tenant():
    return TenantContext(company_id="company-1", user_id="user-1")


@pytest.fixture
def notifier():
    return RequestNotifier()


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(cache, "redis_client", fake)
    return fake


@pytest.fixture
def booking_data():
    return {
        "company_id": "company-1",
        "product_id": "prod-9",
        "product_name": "EDSA Guadalupe LED",
        "product_owner": "Owner Co",
        "client": {
            "id": "client-3",
            "name": "Juan Dela Cruz",
            "company_name": "Acme Beverages",
            "company_id": "client-co-3",
        },
        "project_name": "Summer Campaign",
        "reservation_id": "RV-0042",
        "start_date": "2024-01-01",
        "end_date": "2024-03-31",
        "costDetails": {"pricePerMonth": 10000},
        "projectCompliance": {"signedContract": {"fileUrl": "https://files.example.com/contract.pdf"}},
    }


@pytest.fixture
async def booking_id(gateway, booking_data):
    return await gateway.create("booking", booking_data)
