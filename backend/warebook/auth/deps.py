"""FastAPI dependencies for authentication and authorization.

Dependencies:
  get_current_user        → decode JWT, load user from DB, return User
  require_role(...)       → restrict to specific roles
  require_permission(...) → restrict to specific granular permissions

Helpers (called inside routes once the resource is loaded):
  actor_for(user)                      → state machine actor for a user
  ensure_warehouse_access(db, user, w) → owner company or assigned staff
  ensure_booking_access(db, user, b)   → booking customer or warehouse side
  accessible_warehouse_ids(db, user)   → None for admins, else the id list
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from warebook.auth.jwt import decode_token
from warebook.auth.permissions import has_permission
from warebook.database import get_db
from warebook.middleware.exceptions import PermissionDeniedError
from warebook.models.booking import Booking
from warebook.models.user import User, UserRole
from warebook.models.warehouse import Warehouse, WarehouseStaff
from warebook.services.booking_status import Actor

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ── Core user dependency ────────────────────────────────────

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """Decode the JWT and load the user.

    The decoded payload is stashed on the user as ``_token_payload`` so
    permission checks can read claims without decoding again.
    """
    payload = decode_token(token)
    user_id: str | None = payload.get("sub")
    if not user_id or payload.get("type") != "access":
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid or expired token",
            headers={"WWW-Authenticate": "Bearer"},
        )

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()
    if not user or not user.is_active:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="User not found or inactive",
            headers={"WWW-Authenticate": "Bearer"},
        )

    user._token_payload = payload  # type: ignore[attr-defined]
    return user


# ── Role-based access control ───────────────────────────────

def require_role(*roles: UserRole):
    """Dependency factory: restrict to one or more roles.

    Usage:
        @router.get("/staff-only")
        async def view(user: User = Depends(require_role(UserRole.WAREHOUSE_STAFF))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        if user.role not in roles:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Requires role: {', '.join(r.value for r in roles)}",
            )
        return user

    return _check


# ── Permission-based access control ─────────────────────────

def require_permission(*perms: str):
    """Dependency factory: the user must hold ALL listed permissions.

    Reads permissions from the token claims, so this never hits the DB.

    Usage:
        @router.put("/warehouses/{warehouse_id}/pricing")
        async def save(user: User = Depends(require_permission("pricing.write"))):
            ...
    """
    async def _check(user: User = Depends(get_current_user)) -> User:
        payload: dict = getattr(user, "_token_payload", {})
        user_perms: list[str] = payload.get("permissions", [])

        missing = [p for p in perms if not has_permission(user_perms, p)]
        if missing:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Missing permissions: {', '.join(missing)}",
            )
        return user

    return _check


# ── Resource access ─────────────────────────────────────────

def actor_for(user: User) -> Actor:
    if user.role == UserRole.ADMIN:
        return Actor.ADMIN
    if user.role in (UserRole.WAREHOUSE_OWNER, UserRole.WAREHOUSE_STAFF):
        return Actor.STAFF
    return Actor.CUSTOMER


async def accessible_warehouse_ids(db: AsyncSession, user: User) -> list[str] | None:
    """Warehouses a user operates.  ``None`` means unrestricted (admin)."""
    if user.role == UserRole.ADMIN:
        return None

    ids: set[str] = set()
    if user.role == UserRole.WAREHOUSE_OWNER and user.company_id:
        result = await db.execute(
            select(Warehouse.id).where(Warehouse.owner_company_id == user.company_id)
        )
        ids.update(result.scalars().all())

    result = await db.execute(
        select(WarehouseStaff.warehouse_id).where(
            WarehouseStaff.user_id == user.id,
            WarehouseStaff.is_active == True,  # noqa: E712
        )
    )
    ids.update(result.scalars().all())
    return sorted(ids)


async def ensure_warehouse_access(db: AsyncSession, user: User, warehouse: Warehouse) -> None:
    """Raise PermissionDeniedError unless the user operates the warehouse."""
    if user.role == UserRole.ADMIN:
        return
    if user.role == UserRole.WAREHOUSE_OWNER and user.company_id == warehouse.owner_company_id:
        return

    result = await db.execute(
        select(WarehouseStaff.id).where(
            WarehouseStaff.user_id == user.id,
            WarehouseStaff.warehouse_id == warehouse.id,
            WarehouseStaff.is_active == True,  # noqa: E712
        )
    )
    if result.scalar_one_or_none() is None:
        raise PermissionDeniedError("You do not have access to this warehouse")


async def ensure_booking_access(db: AsyncSession, user: User, booking: Booking) -> None:
    """Customers see their own bookings; warehouse users see their warehouses'."""
    if user.role == UserRole.CUSTOMER:
        if booking.customer_id != user.id:
            raise PermissionDeniedError("You do not have access to this booking")
        return

    warehouse = await db.get(Warehouse, booking.warehouse_id)
    if warehouse is None:
        raise PermissionDeniedError("You do not have access to this booking")
    await ensure_warehouse_access(db, user, warehouse)
