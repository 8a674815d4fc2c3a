"""Warehouse staff booking list.

Endpoints:
    GET  /api/v1/warehouse-staff/bookings   Filtered, sorted, paginated bookings

Query parameters are camelCase (``warehouseId``, ``customerSearch``,
``sortBy`` ...).  ``status`` accepts a comma-separated list.  Results are
limited to warehouses the caller owns or is assigned to.
"""

from datetime import date
from typing import Literal

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from warebook.auth.deps import accessible_warehouse_ids, actor_for, require_role
from warebook.database import get_db
from warebook.middleware.exceptions import BookingValidationError, PermissionDeniedError
from warebook.models.user import User, UserRole
from warebook.schemas.booking import BookingOut
from warebook.schemas.common import ApiResponse, PaginatedResponse
from warebook.schemas.validators import sanitize_string
from warebook.services.booking_status import BookingStatus
from warebook.services.bookings import list_bookings

router = APIRouter()


def _parse_statuses(raw: str | None) -> list[str] | None:
    if not raw:
        return None
    statuses = [s.strip() for s in raw.split(",") if s.strip()]
    valid = {s.value for s in BookingStatus}
    unknown = [s for s in statuses if s not in valid]
    if unknown:
        raise BookingValidationError(
            f"Unknown status: {', '.join(unknown)}",
            field_errors={"status": f"One of: {', '.join(sorted(valid))}"},
        )
    return statuses


@router.get("/bookings", response_model=ApiResponse[PaginatedResponse[BookingOut]])
async def list_staff_bookings(
    status: str | None = Query(None),
    warehouse_id: str | None = Query(None, alias="warehouseId"),
    start_date: date | None = Query(None, alias="startDate"),
    end_date: date | None = Query(None, alias="endDate"),
    customer_search: str | None = Query(None, alias="customerSearch", max_length=200),
    sort_by: str = Query("created_at", alias="sortBy"),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    limit: int = Query(50, ge=1, le=200),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
    user: User = Depends(require_role(
        UserRole.WAREHOUSE_STAFF, UserRole.WAREHOUSE_OWNER, UserRole.ADMIN,
    )),
):
    warehouse_ids = await accessible_warehouse_ids(db, user)
    if warehouse_id and warehouse_ids is not None and warehouse_id not in warehouse_ids:
        raise PermissionDeniedError("You do not have access to this warehouse")

    search = None
    if customer_search:
        try:
            search = sanitize_string(customer_search, max_length=200)
        except ValueError as e:
            raise BookingValidationError(str(e), field_errors={"customerSearch": str(e)})

    bookings, total = await list_bookings(
        db,
        warehouse_ids=warehouse_ids,
        statuses=_parse_statuses(status),
        warehouse_id=warehouse_id,
        start_date=start_date,
        end_date=end_date,
        customer_search=search,
        sort_by=sort_by,
        sort_order=sort_order,
        limit=limit,
        offset=offset,
    )
    actor = actor_for(user)
    return ApiResponse(data=PaginatedResponse[BookingOut](
        items=[BookingOut.from_booking(b, actor) for b in bookings],
        total=total,
        limit=limit,
        offset=offset,
    ))
