"""Aggregate model imports for Alembic auto-detection."""

from warebook.models.user import User, UserRole  # noqa: F401
from warebook.models.warehouse import (  # noqa: F401
    Warehouse,
    WarehouseAvailability,
    WarehouseStaff,
    WarehouseTask,
)
from warebook.models.pricing import (  # noqa: F401
    CustomPalletSize,
    PalletHeightRange,
    PalletPricing,
    PalletWeightRange,
)
from warebook.models.booking import Booking, BookingEvent  # noqa: F401
from warebook.models.activity_log import ActivityLog  # noqa: F401
