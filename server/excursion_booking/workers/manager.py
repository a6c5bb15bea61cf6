"""Worker manager for coordinating background tasks."""

import asyncio
import logging
from typing import Dict, Optional

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from ..services.email_client import EmailClient
from .base import BaseWorker
from .reminder_worker import ReminderWorker

logger = logging.getLogger(__name__)


class WorkerManager:
    """
    Owns the application's background workers.

    Built in the application lifespan and kept on ``app.state``.
    """

    def __init__(self, workers: Optional[Dict[str, BaseWorker]] = None):
        self.workers: Dict[str, BaseWorker] = dict(workers or {})

    @classmethod
    def default(
        cls,
        session_factory: async_sessionmaker[AsyncSession],
        email_client: Optional[EmailClient] = None,
    ) -> "WorkerManager":
        """The standard worker set."""
        return cls({"reminder": ReminderWorker(session_factory, email_client)})

    def register(self, name: str, worker: BaseWorker) -> None:
        if name in self.workers:
            raise ValueError(f"Worker {name!r} is already registered")
        self.workers[name] = worker

    async def start_all(self) -> None:
        for name, worker in self.workers.items():
            try:
                await worker.start()
            except Exception as e:
                logger.error("Failed to start worker", exc_info=True, extra={"worker": name, "error": str(e)})

        logger.info("Workers started", extra={"count": len(self.workers)})

    async def stop_all(self) -> None:
        """Stop all workers; one failing to stop does not keep the others running."""
        names = list(self.workers)
        results = await asyncio.gather(
            *(self.workers[name].stop() for name in names),
            return_exceptions=True
        )

        for name, result in zip(names, results):
            if isinstance(result, Exception):
                logger.error("Error stopping worker", extra={"worker": name, "error": str(result)})

        logger.info("Workers stopped", extra={"count": len(names)})

    def get_worker(self, name: str) -> BaseWorker:
        """
        Raises:
            KeyError: If worker not found
        """
        return self.workers[name]

    def get_worker_status(self) -> Dict[str, bool]:
        return {name: worker.running for name, worker in self.workers.items()}
