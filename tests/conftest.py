"""
Shared fixtures.

Every test gets its own file-backed SQLite database under tmp_path. The
environment below is set before anything from ``app`` is imported, because
app.config reads it at import time.
"""
import os
import tempfile

_TEST_ROOT = tempfile.mkdtemp(prefix="storefront-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_TEST_ROOT}/app.db"
os.environ["INVOICE_DIR"] = f"{_TEST_ROOT}/invoices"
os.environ["UPLOAD_DIR"] = f"{_TEST_ROOT}/uploads"
os.environ["SMTP_USER"] = ""
os.environ["SMTP_PASSWORD"] = ""
os.environ["REDIS_URL"] = ""
os.environ["PUSH_GATEWAY_URL"] = ""

from datetime import datetime  # noqa: E402
from typing import Any, Dict, List, Optional  # noqa: E402

import pytest  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker  # noqa: E402

from app.api.deps import (  # noqa: E402
    get_cache_service,
    get_invoice_service,
    get_partition_registry,
    get_push_tokens,
)
from app.database import build_engine, get_db, init_db  # noqa: E402
from app.services.cache_service import CacheService, InMemoryCache  # noqa: E402
from app.services.invoice_service import InvoiceService  # noqa: E402
from app.services.notification_service import PushTokenRegistry  # noqa: E402
from app.services.partition_registry import PartitionRegistry  # noqa: E402


FIXED_NOW = datetime(2025, 10, 19, 10, 30)


def build_order_payload(
    mobile: str = "9876543210",
    total: Any = 130,
    items: Optional[List[Dict[str, Any]]] = None,
    **customer_overrides: Any,
) -> Dict[str, Any]:
    """A valid placement payload: 2 x 50 + 1 x 30 = 130."""
    customer = {
        "fullName": "Karthik R",
        "mobile": mobile,
        "email": "karthik@example.com",
        "address": "12 Gandhi Road, Sivakasi",
        "pincode": "626123",
    }
    customer.update(customer_overrides)
    return {
        "items": items if items is not None else [
            {"name": "Flower Pot", "name_ta": "பூந்தொட்டி", "price": 50, "quantity": 2},
            {"name": "Sparkler 10cm", "price": 30, "quantity": 1},
        ],
        "total": total,
        "customerDetails": customer,
    }


@pytest.fixture
def order_payload():
    return build_order_payload


@pytest.fixture
def fixed_clock():
    return lambda: FIXED_NOW


@pytest.fixture
async def engine(tmp_path):
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'test.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@pytest.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture
def registry(engine):
    return PartitionRegistry(engine)


@pytest.fixture
def cache():
    return CacheService(InMemoryCache(), namespace="test")


@pytest.fixture
def push_tokens():
    return PushTokenRegistry()


@pytest.fixture
def invoice_dir(tmp_path):
    return tmp_path / "invoices"


@pytest.fixture
async def client(session_factory, registry, cache, push_tokens, invoice_dir):
    from app.main import app

    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_partition_registry] = lambda: registry
    app.dependency_overrides[get_cache_service] = lambda: cache
    app.dependency_overrides[get_push_tokens] = lambda: push_tokens
    app.dependency_overrides[get_invoice_service] = lambda: InvoiceService(
        invoice_dir=str(invoice_dir)
    )

    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
