import enum
import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, Enum as SAEnum, JSON, String
from sqlalchemy.orm import Mapped, mapped_column

from warebook.database import Base


class UserRole(str, enum.Enum):
    ADMIN = "admin"
    WAREHOUSE_OWNER = "warehouse_owner"
    WAREHOUSE_STAFF = "warehouse_staff"
    CUSTOMER = "customer"


class User(Base):
    __tablename__ = "users"

    id: Mapped[str] = mapped_column(
        String(36), primary_key=True, default=lambda: str(uuid.uuid4())
    )
    email: Mapped[str] = mapped_column(
        String(255), unique=True, nullable=False, index=True
    )
    full_name: Mapped[str] = mapped_column(String(255), nullable=False)
    role: Mapped[UserRole] = mapped_column(SAEnum(UserRole), default=UserRole.CUSTOMER)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Company the user belongs to.  Warehouse owners manage every warehouse
    # whose owner_company_id matches; customers book on behalf of it.
    company_id: Mapped[str | None] = mapped_column(String(36), index=True)

    # Per-user overrides on top of role defaults: {"permission.name": true/false}.
    custom_permissions: Mapped[dict | None] = mapped_column(JSON, default=None)

    # bronze / silver / gold / platinum; discounts come from settings
    membership_tier: Mapped[str | None] = mapped_column(String(20), default=None)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        DateTime, default=datetime.utcnow, onupdate=datetime.utcnow
    )
