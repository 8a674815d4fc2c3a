"""Pytest configuration and fixtures for Warebook tests.

Tests run against an in-memory SQLite database (aiosqlite) and an
in-process Redis double, so no services are needed.
"""

import fnmatch
import os
from datetime import date, timedelta
from typing import AsyncGenerator

# Settings are read at import time
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("DEBUG", "false")
os.environ.setdefault("SECRET_KEY", "test-secret-key")

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from warebook.auth.jwt import create_access_token
from warebook.auth.permissions import resolve_permissions
from warebook.database import Base, get_db
from warebook.main import app
from warebook.models.pricing import (
    CustomPalletSize,
    PalletHeightRange,
    PalletPricing,
    PalletWeightRange,
)
from warebook.models.user import User, UserRole
from warebook.models.warehouse import Warehouse, WarehouseStaff
from warebook.services.pricing import (
    AreaRate,
    FreeStorageRule,
    VolumeDiscountTier,
    WarehousePricing,
)
from warebook.services.rates import (
    Adjustment,
    AdjustmentType,
    CustomSize,
    PalletKind,
    PriceRange,
    PricingEntry,
    PricingPeriod,
)
from warebook.utils import cache


# ── Rate tables ──────────────────────────────────────────────────
#
# Standard pallets, general goods.  Height brackets: [0, 120) and
# [120, open); weight brackets: [0, 500) and [500, open).  Daily
# equivalents of the first brackets: day 10, week 8, month 6.

RATE_TABLE = {
    PricingPeriod.DAY: {"height": (10.0, 14.0), "weight": (0.0, 2.0)},
    PricingPeriod.WEEK: {"height": (56.0, 84.0), "weight": (0.0, 7.0)},
    PricingPeriod.MONTH: {"height": (180.0, 270.0), "weight": (0.0, 30.0)},
}
HEIGHT_BOUNDS = ((0.0, 120.0), (120.0, None))
WEIGHT_BOUNDS = ((0.0, 500.0), (500.0, None))

# Unstackable pallets pay 20 % on top of the bracket rate
UNSTACKABLE = Adjustment(AdjustmentType.RATE, 20)

FREE_STORAGE = [{
    "min_duration": 30, "max_duration": 60, "duration_unit": "day",
    "free_amount": 7, "free_unit": "day",
}]
VOLUME_DISCOUNTS = [{"threshold": 100, "percent": 10}]


def bracket_id(period: PricingPeriod, dimension: str, position: int) -> str:
    return f"{period.value}-{dimension[0]}{position}"


def _engine_entries() -> tuple[PricingEntry, ...]:
    entries = []
    for period, prices in RATE_TABLE.items():
        entries.append(PricingEntry(
            id=f"std-{period.value}",
            goods_type="general",
            pallet_type=PalletKind.STANDARD,
            period=period,
            height_ranges=tuple(
                PriceRange(bracket_id(period, "height", n), lo, hi, price)
                for n, ((lo, hi), price) in enumerate(zip(HEIGHT_BOUNDS, prices["height"]))
            ),
            weight_ranges=tuple(
                PriceRange(bracket_id(period, "weight", n), lo, hi, price)
                for n, ((lo, hi), price) in enumerate(zip(WEIGHT_BOUNDS, prices["weight"]))
            ),
            unstackable=UNSTACKABLE,
        ))
    entries.append(PricingEntry(
        id="custom-day",
        goods_type="general",
        pallet_type=PalletKind.CUSTOM,
        period=PricingPeriod.DAY,
        weight_ranges=(PriceRange("custom-w0", 0, None, 0.0),),
        custom_sizes=(CustomSize(
            id="size-0",
            length_min_cm=100, length_max_cm=130,
            width_min_cm=80, width_max_cm=110,
            height_ranges=(PriceRange("custom-h0", 0, 150, 20.0),),
        ),),
    ))
    return tuple(entries)


def days_ahead(n: int) -> date:
    return date.today() + timedelta(days=n)


# ── Redis double ─────────────────────────────────────────────────

class FakeRedis:
    """In-process stand-in for the redis.asyncio client calls we make."""

    def __init__(self):
        self.store: dict[str, str] = {}

    async def get(self, key):
        return self.store.get(key)

    async def set(self, key, value):
        self.store[key] = value
        return True

    async def setex(self, key, ttl, value):
        self.store[key] = value
        return True

    async def delete(self, *keys):
        removed = 0
        for key in keys:
            removed += self.store.pop(key, None) is not None
        return removed

    async def scan_iter(self, match="*"):
        for key in list(self.store):
            if fnmatch.fnmatchcase(key, match):
                yield key

    async def ping(self):
        return True

    async def aclose(self):
        pass


@pytest.fixture(autouse=True)
def fake_redis(monkeypatch) -> FakeRedis:
    client = FakeRedis()
    monkeypatch.setattr(cache, "_redis_client", client)
    return client


# ── Test Database Setup ──────────────────────────────────────────

@pytest_asyncio.fixture
async def test_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest_asyncio.fixture
async def db_session(test_engine) -> AsyncGenerator[AsyncSession, None]:
    session_factory = async_sessionmaker(test_engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest_asyncio.fixture
async def client(db_session) -> AsyncGenerator[AsyncClient, None]:
    """Test client sharing the test session with the app."""

    async def override_get_db():
        yield db_session

    app.dependency_overrides[get_db] = override_get_db

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client

    app.dependency_overrides.clear()


# ── Users ────────────────────────────────────────────────────────

async def _user(db: AsyncSession, email: str, name: str, role: UserRole, company_id=None) -> User:
    user = User(email=email, full_name=name, role=role, company_id=company_id, is_active=True)
    db.add(user)
    await db.flush()
    return user


@pytest_asyncio.fixture
async def admin_user(db_session) -> User:
    return await _user(db_session, "admin@warebook.test", "Ada Admin", UserRole.ADMIN)


@pytest_asyncio.fixture
async def owner_user(db_session) -> User:
    return await _user(
        db_session, "owner@coldstore.test", "Olu Owner", UserRole.WAREHOUSE_OWNER, "company-cold"
    )


@pytest_asyncio.fixture
async def other_owner(db_session) -> User:
    return await _user(
        db_session, "owner@drystore.test", "Dana Dry", UserRole.WAREHOUSE_OWNER, "company-dry"
    )


@pytest_asyncio.fixture
async def staff_user(db_session, warehouse) -> User:
    user = await _user(db_session, "staff@coldstore.test", "Sam Staff", UserRole.WAREHOUSE_STAFF)
    db_session.add(WarehouseStaff(user_id=user.id, warehouse_id=warehouse.id))
    await db_session.flush()
    return user


@pytest_asyncio.fixture
async def customer_user(db_session) -> User:
    return await _user(db_session, "casey@shipper.test", "Casey Customer", UserRole.CUSTOMER)


@pytest_asyncio.fixture
async def other_customer(db_session) -> User:
    return await _user(db_session, "jordan@shipper.test", "Jordan Other", UserRole.CUSTOMER)


def token_for(user: User) -> str:
    return create_access_token(
        user_id=user.id,
        role=user.role.value,
        permissions=resolve_permissions(user.role.value, user.custom_permissions),
        company_id=user.company_id,
    )


def headers_for(user: User) -> dict:
    return {"Authorization": f"Bearer {token_for(user)}"}


@pytest.fixture
def auth_headers():
    """Factory: ``auth_headers(user)`` → bearer header dict."""
    return headers_for


# ── Warehouses ───────────────────────────────────────────────────

@pytest_asyncio.fixture
async def warehouse(db_session) -> Warehouse:
    """Open every day, drop-offs 09:00-12:00 (six half-hour slots)."""
    warehouse = Warehouse(
        owner_company_id="company-cold",
        name="Cold Store North",
        city="Rotterdam",
        total_pallet_storage=100,
        available_pallet_storage=100,
        total_sq_ft=5000,
        available_sq_ft=5000,
        working_days=[],
        product_acceptance_start="09:00",
        product_acceptance_end="12:00",
        free_storage_rules=FREE_STORAGE,
        volume_discounts=VOLUME_DISCOUNTS,
        accepted_goods_types=["general", "frozen"],
        area_rate=2.0,
        area_rate_unit="per_sqft_per_month",
        area_min_sq_ft=100,
    )
    db_session.add(warehouse)
    await db_session.flush()
    return warehouse


@pytest_asyncio.fixture
async def other_warehouse(db_session) -> Warehouse:
    warehouse = Warehouse(
        owner_company_id="company-dry",
        name="Dry Store South",
        total_pallet_storage=50,
        available_pallet_storage=50,
        working_days=["Monday", "Tuesday", "Wednesday", "Thursday", "Friday"],
        product_acceptance_start="08:00",
        product_acceptance_end="10:00",
    )
    db_session.add(warehouse)
    await db_session.flush()
    return warehouse


@pytest_asyncio.fixture
async def priced_warehouse(db_session, warehouse) -> Warehouse:
    """``warehouse`` with the RATE_TABLE rows stored."""
    for entry in _engine_entries():
        row = PalletPricing(
            id=entry.id,
            warehouse_id=warehouse.id,
            goods_type=entry.goods_type,
            pallet_type=entry.pallet_type.value,
            pricing_period=entry.period.value,
            unstackable_adjustment_type=entry.unstackable.type.value,
            unstackable_adjustment_value=entry.unstackable.value,
            height_ranges=[
                PalletHeightRange(
                    id=r.id, position=n, height_min_cm=r.min, height_max_cm=r.max, price_per_unit=r.price
                )
                for n, r in enumerate(entry.height_ranges)
            ],
            weight_ranges=[
                PalletWeightRange(
                    id=r.id, position=n, weight_min_kg=r.min, weight_max_kg=r.max, price_per_pallet=r.price
                )
                for n, r in enumerate(entry.weight_ranges)
            ],
            custom_sizes=[
                CustomPalletSize(
                    id=size.id,
                    position=n,
                    length_min_cm=size.length_min_cm,
                    length_max_cm=size.length_max_cm,
                    width_min_cm=size.width_min_cm,
                    width_max_cm=size.width_max_cm,
                    height_ranges=[
                        PalletHeightRange(
                            id=r.id, position=m, height_min_cm=r.min,
                            height_max_cm=r.max, price_per_unit=r.price,
                        )
                        for m, r in enumerate(size.height_ranges)
                    ],
                )
                for n, size in enumerate(entry.custom_sizes)
            ],
        )
        db_session.add(row)
    await db_session.flush()
    return warehouse


@pytest.fixture
def warehouse_pricing() -> WarehousePricing:
    """The same configuration as ``priced_warehouse``, without a database."""
    return WarehousePricing(
        warehouse_id="wh-1",
        entries=_engine_entries(),
        free_storage_rules=(FreeStorageRule(30, 60, PricingPeriod.DAY, 7, PricingPeriod.DAY),),
        volume_discounts=(VolumeDiscountTier(threshold=100, percent=10),),
        area_rate=AreaRate(rate=2.0, min_sq_ft=100),
    )


# ── Payload helpers ──────────────────────────────────────────────

def pallet_line(quantity: int = 2, height: str = "day-h0", weight: str = "day-w0", **extra) -> dict:
    return {
        "pallet_type": "standard",
        "quantity": quantity,
        "height_range_id": height,
        "weight_range_id": weight,
        **extra,
    }


def booking_payload(warehouse_id: str, **overrides) -> dict:
    payload = {
        "warehouse_id": warehouse_id,
        "type": "pallet",
        "start_date": days_ahead(5).isoformat(),
        "end_date": days_ahead(8).isoformat(),
        "pallet_count": 2,
        "goods_type": "general",
        "pallet_details": {"goods_type": "general", "line_items": [pallet_line()]},
        "requested_drop_in_date": days_ahead(5).isoformat(),
        "requested_drop_in_time": "09:30",
    }
    payload.update(overrides)
    return payload


# ── Test Markers ─────────────────────────────────────────────────

def pytest_configure(config):
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "api: API endpoint tests")
    config.addinivalue_line("markers", "auth: Authentication and permission tests")
    config.addinivalue_line("markers", "cache: Redis cache tests")
    config.addinivalue_line("markers", "integration: Integration tests")
