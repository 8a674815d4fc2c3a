"""Price calculation router.

Endpoints:
    POST  /api/v1/pricing/calculate    Price breakdown for a prospective booking

Quotes are public: a customer prices a booking before signing in.  The
breakdown is computed on every call; only rate tables are cached.
"""

import logging

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from warebook.database import get_db
from warebook.schemas.pricing import PriceBreakdownOut, PriceCalculateRequest, PriceCalculateResponse
from warebook.services.booking_draft import build_draft
from warebook.services.pricing import BookingType, PriceRequest, calculate_price
from warebook.services.pricing_store import get_warehouse, load_pricing

logger = logging.getLogger(__name__)

router = APIRouter()


# ── POST /api/v1/pricing/calculate ───────────────────────────

@router.post("/calculate", response_model=PriceCalculateResponse)
async def calculate(
    body: PriceCalculateRequest,
    db: AsyncSession = Depends(get_db),
):
    pricing = await load_pricing(db, body.warehouse_id)
    warehouse = await get_warehouse(db, body.warehouse_id)

    details = None
    if body.type is BookingType.PALLET and body.pallet_details is not None and body.quantity > 0:
        details = build_draft(
            [item.to_input() for item in body.pallet_details.line_items],
            int(body.quantity),
            goods_type=body.pallet_details.goods_type,
            goods_type_options=warehouse.accepted_goods_types or None,
        )

    breakdown = calculate_price(
        PriceRequest(
            warehouse_id=body.warehouse_id,
            type=body.type,
            quantity=body.quantity,
            start_date=body.start_date,
            end_date=body.end_date,
            pallet_details=details,
            area_sq_ft=body.area_sq_ft,
            membership_tier=body.membership_tier,
            existing_pallet_count=body.existing_pallet_count,
        ),
        pricing,
    )
    return PriceCalculateResponse(breakdown=PriceBreakdownOut.model_validate(breakdown))
