"""Models module exporting all database models."""

from .availability_slot import AvailabilitySlot
from .booking import Booking, BookingChannel, BookingStatus
from .cart import CartItem
from .excursion import Excursion, ExcursionCategory
from .notification import Notification, NotificationChannel, NotificationType
from .profile import Guide, Profile, TourOperator, UserRole

__all__ = [
    # Accounts
    "Profile",
    "UserRole",
    "Guide",
    "TourOperator",

    # Catalogue
    "Excursion",
    "ExcursionCategory",
    "AvailabilitySlot",

    # Booking entities
    "Booking",
    "BookingStatus",
    "BookingChannel",
    "CartItem",

    # Notifications
    "Notification",
    "NotificationType",
    "NotificationChannel",
]
