"""Stored notifications, their email delivery, and the booking lifecycle hooks."""

import logging
import re
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, Optional
from uuid import UUID

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from ..core.config import settings
from ..core.database import db_operation
from ..core.exceptions import NotFoundError, ValidationError
from ..models.availability_slot import AvailabilitySlot
from ..models.booking import Booking, BookingStatus
from ..models.excursion import Excursion
from ..models.notification import Notification, NotificationChannel, NotificationType
from ..models.profile import Guide, Profile
from .availability_service import business_today
from .email_client import EmailClient

logger = logging.getLogger(__name__)

CLIENT = "client"
GUIDE = "guide"

_PLACEHOLDER = re.compile(r"\{(\w+)\}")


@dataclass(frozen=True)
class NotificationTemplate:
    title: str
    message: str


TEMPLATES: Dict[tuple, NotificationTemplate] = {
    (NotificationType.BOOKING_CREATED, CLIENT): NotificationTemplate(
        "Réservation enregistrée !",
        "Votre réservation {booking_code} pour {excursion_title} le {excursion_date} a été créée avec succès.",
    ),
    (NotificationType.BOOKING_CREATED, GUIDE): NotificationTemplate(
        "Nouvelle réservation",
        "Vous avez reçu une nouvelle réservation de {participants_count} participant(s) pour {excursion_title}.",
    ),
    (NotificationType.BOOKING_CONFIRMED, CLIENT): NotificationTemplate(
        "Réservation confirmée",
        "Votre réservation {booking_code} a été confirmée par le guide. Votre code de check-in est prêt !",
    ),
    (NotificationType.BOOKING_CANCELLED, CLIENT): NotificationTemplate(
        "Réservation annulée",
        "Votre réservation pour {excursion_title} a été annulée. Si vous avez des questions, contactez-nous.",
    ),
    (NotificationType.BOOKING_CANCELLED, GUIDE): NotificationTemplate(
        "Réservation annulée",
        "Un client a annulé sa réservation pour {excursion_title} le {excursion_date}.",
    ),
    (NotificationType.REMINDER_24H, CLIENT): NotificationTemplate(
        "Rappel - Excursion demain",
        "N'oubliez pas {excursion_title} demain à {excursion_time} ! Votre code de check-in est {booking_code}.",
    ),
    (NotificationType.REMINDER_24H, GUIDE): NotificationTemplate(
        "Rappel - Excursion demain",
        "Vous avez {total_bookings} réservation(s) et {total_participants} participant(s) à accueillir demain.",
    ),
    (NotificationType.CHECKIN_SUCCESS, CLIENT): NotificationTemplate(
        "Check-in réussi !",
        "Vous avez été enregistré avec succès pour {excursion_title}. Bonne visite !",
    ),
    (NotificationType.CHECKIN_SUCCESS, GUIDE): NotificationTemplate(
        "Check-in effectué",
        "{client_name} a été enregistré pour {excursion_title}.",
    ),
}


def format_message(text: str, data: Dict[str, Any]) -> str:
    """Substitute ``{name}`` placeholders present in ``data``; unknown ones are left as written."""
    def replace(match: re.Match) -> str:
        key = match.group(1)
        if key in data and data[key] is not None:
            return str(data[key])
        return match.group(0)

    return _PLACEHOLDER.sub(replace, text)


def booking_payload(booking: Booking, excursion: Excursion, slot: Optional[AvailabilitySlot] = None) -> Dict[str, Any]:
    """JSON-safe template data describing a booking."""
    return {
        "booking_id": str(booking.id),
        "booking_code": booking.code,
        "excursion_id": str(excursion.id),
        "excursion_title": excursion.title,
        "excursion_date": booking.booking_date.isoformat(),
        "excursion_time": slot.start_time.strftime("%H:%M") if slot else None,
        "participants_count": booking.participants_count,
        "client_name": booking.client_name,
    }


class NotificationService:
    """Service for user notifications."""

    def __init__(self, db: AsyncSession, email_client: Optional[EmailClient] = None):
        self.db = db
        self.email_client = email_client

    async def send_notification(
        self,
        user_id: UUID,
        notification_type: NotificationType,
        data: Dict[str, Any],
        recipient_type: str = CLIENT,
        channel: NotificationChannel = NotificationChannel.BOTH,
    ) -> Notification:
        """
        Store a notification rendered from its template and email it when the channel asks for it.

        Args:
            user_id: Recipient profile
            notification_type: Lifecycle event
            data: Template data, stored with the notification
            recipient_type: ``client`` or ``guide``
            channel: Delivery channel

        Returns:
            The stored notification

        Raises:
            ValidationError: If no template exists for the type and recipient
        """
        template = TEMPLATES.get((notification_type, recipient_type))
        if template is None:
            raise ValidationError(
                detail=f"No notification template for {notification_type.value}/{recipient_type}"
            )

        payload = dict(data, recipient_type=recipient_type)
        notification = Notification(
            user_id=user_id,
            type=notification_type,
            title=format_message(template.title, payload),
            message=format_message(template.message, payload),
            data=payload,
            is_read=False,
            channel=channel,
        )

        async with db_operation(self.db, "store notification"):
            self.db.add(notification)
            await self.db.commit()

        logger.info(
            "Notification stored",
            extra={
                "notification_id": str(notification.id),
                "user_id": str(user_id),
                "type": notification_type.value,
                "channel": channel.value
            }
        )

        if channel in (NotificationChannel.EMAIL, NotificationChannel.BOTH):
            await self._email_profile(user_id, notification.title, notification.message)

        return notification

    async def _email_profile(self, user_id: UUID, title: str, message: str) -> bool:
        if self.email_client is None:
            return False
        profile = await self.db.get(Profile, user_id)
        if profile is None or not profile.email:
            logger.warning("No email address for notification recipient", extra={"user_id": str(user_id)})
            return False
        return await self.email_client.send_notification(profile.email, profile.full_name, title, message)

    async def list_notifications(self, user_id: UUID, unread_only: bool = False, limit: int = 50) -> list[Notification]:
        stmt = select(Notification).where(Notification.user_id == user_id)
        if unread_only:
            stmt = stmt.where(Notification.is_read.is_(False))
        stmt = stmt.order_by(Notification.created_at.desc()).limit(limit)
        result = await self.db.execute(stmt)
        return list(result.scalars())

    async def unread_count(self, user_id: UUID) -> int:
        stmt = select(func.count(Notification.id)).where(
            Notification.user_id == user_id,
            Notification.is_read.is_(False)
        )
        result = await self.db.execute(stmt)
        return int(result.scalar_one())

    async def mark_as_read(self, notification_id: UUID, user_id: UUID) -> Notification:
        """
        Mark one of the caller's notifications read.

        Raises:
            NotFoundError: If the notification does not exist or belongs to someone else
        """
        async with db_operation(self.db, "mark notification read"):
            notification = await self.db.get(Notification, notification_id)
            if notification is None or notification.user_id != user_id:
                raise NotFoundError(resource_type="notification", resource_id=str(notification_id))
            notification.is_read = True
            await self.db.commit()
        return notification

    async def mark_all_as_read(self, user_id: UUID) -> int:
        async with db_operation(self.db, "mark notifications read"):
            result = await self.db.execute(
                update(Notification)
                .where(Notification.user_id == user_id, Notification.is_read.is_(False))
                .values(is_read=True)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        return result.rowcount or 0

    async def cleanup_old_notifications(
        self,
        retention_days: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> int:
        """Delete notifications older than the retention period. Returns the number deleted."""
        retention_days = retention_days or settings.notification_retention_days
        cutoff = (now or datetime.now(timezone.utc)) - timedelta(days=retention_days)

        async with db_operation(self.db, "clean up notifications"):
            result = await self.db.execute(
                delete(Notification)
                .where(Notification.created_at < cutoff)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()

        deleted = result.rowcount or 0
        logger.info(
            "Old notifications cleaned up",
            extra={"deleted": deleted, "cutoff": cutoff.isoformat()}
        )
        return deleted

    async def guide_user_id(self, guide_id: UUID) -> Optional[UUID]:
        result = await self.db.execute(select(Guide.user_id).where(Guide.id == guide_id))
        return result.scalar_one_or_none()

    async def notify_booking_created(self, booking: Booking, excursion: Excursion, slot: AvailabilitySlot) -> None:
        data = booking_payload(booking, excursion, slot)
        if booking.client_id:
            await self.send_notification(booking.client_id, NotificationType.BOOKING_CREATED, data, CLIENT)
        guide_user = await self.guide_user_id(excursion.guide_id)
        if guide_user:
            await self.send_notification(guide_user, NotificationType.BOOKING_CREATED, data, GUIDE)

    async def notify_booking_confirmed(self, booking: Booking, excursion: Excursion, slot: AvailabilitySlot) -> None:
        if booking.client_id:
            await self.send_notification(
                booking.client_id,
                NotificationType.BOOKING_CONFIRMED,
                booking_payload(booking, excursion, slot),
                CLIENT
            )

    async def notify_booking_cancelled(self, booking: Booking, excursion: Excursion, slot: AvailabilitySlot) -> None:
        data = booking_payload(booking, excursion, slot)
        if booking.client_id:
            await self.send_notification(booking.client_id, NotificationType.BOOKING_CANCELLED, data, CLIENT)
        guide_user = await self.guide_user_id(excursion.guide_id)
        if guide_user:
            await self.send_notification(guide_user, NotificationType.BOOKING_CANCELLED, data, GUIDE)

    async def notify_checkin(self, booking: Booking, excursion: Excursion) -> None:
        data = booking_payload(booking, excursion)
        if booking.client_id:
            await self.send_notification(
                booking.client_id, NotificationType.CHECKIN_SUCCESS, data, CLIENT, NotificationChannel.IN_APP
            )
        guide_user = await self.guide_user_id(excursion.guide_id)
        if guide_user:
            await self.send_notification(
                guide_user, NotificationType.CHECKIN_SUCCESS, data, GUIDE, NotificationChannel.IN_APP
            )

    async def send_24h_reminders(self, today: Optional[date] = None) -> int:
        """
        Remind clients and guides of tomorrow's confirmed bookings.

        Every client gets one reminder per booking. Every guide gets one summary
        with the number of bookings and participants. Reseller bookings have no
        client profile, so their end client is emailed directly.

        Returns:
            Number of reminders sent
        """
        tomorrow = (today or business_today()) + timedelta(days=1)

        stmt = (
            select(Booking, Excursion, AvailabilitySlot, Guide.user_id)
            .join(Excursion, Excursion.id == Booking.excursion_id)
            .join(AvailabilitySlot, AvailabilitySlot.id == Booking.slot_id)
            .join(Guide, Guide.id == Excursion.guide_id)
            .where(
                Booking.status == BookingStatus.CONFIRMED,
                AvailabilitySlot.date == tomorrow
            )
            .order_by(AvailabilitySlot.start_time)
        )
        result = await self.db.execute(stmt)
        rows = result.all()

        sent = 0
        per_guide: Dict[UUID, list] = defaultdict(list)

        for booking, excursion, slot, guide_user_id in rows:
            data = booking_payload(booking, excursion, slot)
            per_guide[guide_user_id].append(data)

            if booking.client_id:
                await self.send_notification(booking.client_id, NotificationType.REMINDER_24H, data, CLIENT)
                sent += 1
            elif booking.client_email and self.email_client is not None:
                template = TEMPLATES[(NotificationType.REMINDER_24H, CLIENT)]
                await self.email_client.send_notification(
                    booking.client_email,
                    booking.client_name or booking.client_email,
                    template.title,
                    format_message(template.message, data),
                )
                sent += 1

        for guide_user_id, bookings in per_guide.items():
            first = bookings[0]
            await self.send_notification(
                guide_user_id,
                NotificationType.REMINDER_24H,
                {
                    "excursion_title": first["excursion_title"],
                    "excursion_date": first["excursion_date"],
                    "excursion_time": first["excursion_time"],
                    "total_bookings": len(bookings),
                    "total_participants": sum(b["participants_count"] for b in bookings),
                },
                GUIDE,
            )
            sent += 1

        logger.info(
            "24h reminders sent",
            extra={"date": tomorrow.isoformat(), "bookings": len(rows), "reminders": sent}
        )
        return sent
