"""FastAPI routers package."""

from .account import router as account_router
from .availability import router as availability_router
from .booking import router as booking_router
from .conflict import router as conflict_router
from .excursion import router as excursion_router
from .health import router as health_router
from .metrics import router as metrics_router
from .notification import router as notification_router
from .reseller import router as reseller_router
from .slot import router as slot_router

__all__ = [
    "account_router",
    "availability_router",
    "booking_router",
    "conflict_router",
    "excursion_router",
    "health_router",
    "metrics_router",
    "notification_router",
    "reseller_router",
    "slot_router",
]
