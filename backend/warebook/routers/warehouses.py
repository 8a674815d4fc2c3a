"""Warehouse availability, calendar and rate configuration router.

Endpoints:
    GET  /api/v1/warehouses/{warehouse_id}/availability?date=   Drop-off slots for a day
    GET  /api/v1/warehouses/{warehouse_id}/calendar?start=&end=  Per-day classification
    GET  /api/v1/warehouses/{warehouse_id}/pricing               Rate tables (cached)
    PUT  /api/v1/warehouses/{warehouse_id}/pricing               Replace rate tables (owner)
"""

import logging
from datetime import date

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from warebook.auth.deps import ensure_warehouse_access, require_permission
from warebook.config import settings
from warebook.database import get_db
from warebook.models.user import User
from warebook.schemas.availability import CalendarDayOut, DayAvailabilityOut
from warebook.schemas.common import ApiResponse
from warebook.schemas.pricing import WarehousePricingConfig, WarehousePricingOut
from warebook.services.availability_store import DatabaseAvailabilityProvider
from warebook.services.pricing_store import get_warehouse, load_pricing, save_pricing
from warebook.utils.activity import log_activity
from warebook.utils.cache import cached, invalidate_cache

logger = logging.getLogger(__name__)

router = APIRouter()


def _pricing_cache_key(*args, **kwargs) -> str:
    return f"pricing:{kwargs['warehouse_id']}"


# ── GET /api/v1/warehouses/{id}/availability ─────────────────

@router.get("/{warehouse_id}/availability", response_model=ApiResponse[DayAvailabilityOut])
async def get_availability(
    warehouse_id: str,
    day: date = Query(..., alias="date"),
    db: AsyncSession = Depends(get_db),
):
    provider = DatabaseAvailabilityProvider(db)
    availability = await provider.get_day(warehouse_id, day)
    return ApiResponse(data=DayAvailabilityOut.from_engine(availability))


# ── GET /api/v1/warehouses/{id}/calendar ─────────────────────

@router.get("/{warehouse_id}/calendar", response_model=ApiResponse[list[CalendarDayOut]])
async def get_calendar(
    warehouse_id: str,
    start: date = Query(...),
    end: date = Query(...),
    db: AsyncSession = Depends(get_db),
):
    provider = DatabaseAvailabilityProvider(db)
    days = await provider.get_calendar(warehouse_id, start, end)
    return ApiResponse(data=[
        CalendarDayOut(
            day=d.date,
            status=d.status,
            available_pallets=d.capacity.available_pallets if d.capacity else None,
            available_sq_ft=d.capacity.available_sq_ft if d.capacity else None,
        )
        for d in days
    ])


# ── GET /api/v1/warehouses/{id}/pricing ──────────────────────

@router.get("/{warehouse_id}/pricing", response_model=ApiResponse[WarehousePricingOut])
@cached(ttl=settings.pricing_cache_ttl, prefix="pricing", key_builder=_pricing_cache_key)
async def get_pricing(
    warehouse_id: str,
    db: AsyncSession = Depends(get_db),
):
    """Rate tables customers pick height/weight brackets from."""
    warehouse = await get_warehouse(db, warehouse_id)
    pricing = await load_pricing(db, warehouse_id)
    return ApiResponse(data=WarehousePricingOut.from_engine(
        pricing,
        accepted_goods_types=warehouse.accepted_goods_types or [],
        currency=warehouse.currency,
    ))


# ── PUT /api/v1/warehouses/{id}/pricing ──────────────────────

@router.put("/{warehouse_id}/pricing", response_model=ApiResponse[WarehousePricingOut])
async def update_pricing(
    warehouse_id: str,
    body: WarehousePricingConfig,
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_permission("pricing.write")),
):
    warehouse = await get_warehouse(db, warehouse_id)
    await ensure_warehouse_access(db, user, warehouse)

    pricing = await save_pricing(db, warehouse, body)
    await log_activity(
        db, user,
        action="pricing_updated",
        entity_type="warehouse",
        entity_id=warehouse.id,
        warehouse_id=warehouse.id,
        summary=f"Updated pricing for {warehouse.name}",
        details={"entries": len(body.entries)},
    )
    await invalidate_cache(f"pricing:{warehouse_id}*")

    return ApiResponse(data=WarehousePricingOut.from_engine(
        pricing,
        accepted_goods_types=warehouse.accepted_goods_types or [],
        currency=warehouse.currency,
    ))
