"""Service layer package."""

from .account_service import AccountService
from .availability_service import AvailabilityService
from .booking_service import BookingService
from .booking_validator import BookingValidationResult, BookingValidator
from .cart_service import CartService
from .change_feed import ChangeEvent, ChangeEventType, ChangeFeed, Subscription
from .commission import CommissionBreakdown, CommissionPolicy
from .email_client import EmailClient
from .excursion_service import ExcursionService
from .notification_service import NotificationService
from .sync_service import AvailabilitySyncService

__all__ = [
    "AccountService",
    "AvailabilityService",
    "AvailabilitySyncService",
    "BookingService",
    "BookingValidationResult",
    "BookingValidator",
    "CartService",
    "ChangeEvent",
    "ChangeEventType",
    "ChangeFeed",
    "CommissionBreakdown",
    "CommissionPolicy",
    "EmailClient",
    "ExcursionService",
    "NotificationService",
    "Subscription",
]
