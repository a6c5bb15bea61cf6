"""Background workers for the excursion booking service."""

from .base import BaseWorker
from .manager import WorkerManager
from .reminder_worker import ReminderWorker

__all__ = ["BaseWorker", "ReminderWorker", "WorkerManager"]
