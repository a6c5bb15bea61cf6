"""Daily 24-hour reminders and notification cleanup."""

import logging
from datetime import date
from typing import Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..core.config import settings
from ..services.availability_service import business_today
from ..services.email_client import EmailClient
from ..services.notification_service import NotificationService
from .base import BaseWorker

logger = logging.getLogger(__name__)


class ReminderWorker(BaseWorker):
    """
    Sends tomorrow's reminders and prunes old notifications, once per business day.

    The worker wakes up every ``interval_seconds`` but only does work the
    first time it wakes on a new calendar day.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        email_client: Optional[EmailClient] = None,
        interval_seconds: Optional[int] = None,
        clock: Callable[[], date] = business_today,
    ):
        super().__init__(
            name="Reminder",
            interval_seconds=interval_seconds or settings.reminder_interval_seconds,
        )
        self.session_factory = session_factory
        self.email_client = email_client
        self.clock = clock
        self.last_completed_day: Optional[date] = None

    async def process(self) -> None:
        today = self.clock()
        if self.last_completed_day == today:
            return

        async with self.session_factory() as db:
            notifier = NotificationService(db, self.email_client)
            sent = await notifier.send_24h_reminders(today)
            deleted = await notifier.cleanup_old_notifications(settings.notification_retention_days)

        self.last_completed_day = today
        logger.info(
            "Daily reminders processed",
            extra={
                "worker": self.name,
                "day": today.isoformat(),
                "reminders_sent": sent,
                "notifications_deleted": deleted
            }
        )
