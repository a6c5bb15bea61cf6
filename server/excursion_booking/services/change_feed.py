"""In-process row change feed."""

import inspect
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, Dict, List, Optional, Tuple, Union

from sqlalchemy import inspect as sa_inspect

logger = logging.getLogger(__name__)


class ChangeEventType(str, Enum):
    """Kind of row change."""
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


@dataclass(frozen=True)
class ChangeEvent:
    """One row change. ``new`` is empty for deletes, ``old`` is empty for inserts."""

    table: str
    event_type: ChangeEventType
    new: Dict[str, Any] = field(default_factory=dict)
    old: Dict[str, Any] = field(default_factory=dict)

    @property
    def row(self) -> Dict[str, Any]:
        return self.new or self.old


Listener = Callable[[ChangeEvent], Union[None, Awaitable[None]]]
RowFilter = Tuple[str, Any]


def row_to_dict(instance) -> Dict[str, Any]:
    """Snapshot the column values of an ORM instance."""
    mapper = sa_inspect(instance).mapper
    return {attr.key: getattr(instance, attr.key) for attr in mapper.column_attrs}


class Subscription:
    """
    Handle returned by ``ChangeFeed.subscribe``.

    Active until ``unsubscribe`` is called; calling it again is a no-op.
    """

    def __init__(
        self,
        feed: "ChangeFeed",
        table: str,
        listener: Listener,
        row_filter: Optional[RowFilter] = None,
    ):
        self._feed = feed
        self.table = table
        self.listener = listener
        self.row_filter = row_filter
        self.active = True

    def matches(self, event: ChangeEvent) -> bool:
        if event.table != self.table:
            return False
        if self.row_filter is None:
            return True
        column, value = self.row_filter
        return event.row.get(column) == value

    def unsubscribe(self) -> None:
        if not self.active:
            return
        self.active = False
        self._feed._remove(self)

    def __repr__(self) -> str:
        return f"<Subscription(table='{self.table}', filter={self.row_filter}, active={self.active})>"


class ChangeFeed:
    """
    Per-table, optionally filtered stream of row changes.

    Services publish after they commit. Listeners may be plain functions or
    coroutine functions; a failing listener is logged and does not affect the
    publisher or the other listeners.
    """

    def __init__(self):
        self._subscriptions: Dict[str, List[Subscription]] = {}

    def subscribe(
        self,
        table: str,
        listener: Listener,
        filter: Optional[RowFilter] = None,
    ) -> Subscription:
        """
        Register a listener for changes to a table.

        Args:
            table: Table name, e.g. ``"bookings"``
            listener: Called with each matching ChangeEvent
            filter: Optional ``(column, value)`` the changed row must match

        Returns:
            Subscription handle
        """
        subscription = Subscription(self, table, listener, filter)
        self._subscriptions.setdefault(table, []).append(subscription)

        logger.debug(
            "Change feed subscription added",
            extra={"table": table, "filter": str(filter)}
        )
        return subscription

    def _remove(self, subscription: Subscription) -> None:
        subscriptions = self._subscriptions.get(subscription.table, [])
        if subscription in subscriptions:
            subscriptions.remove(subscription)
        if not subscriptions:
            self._subscriptions.pop(subscription.table, None)

    async def publish(self, event: ChangeEvent) -> int:
        """
        Deliver an event to every matching subscription.

        Returns:
            Number of listeners that handled the event without raising
        """
        delivered = 0
        for subscription in list(self._subscriptions.get(event.table, [])):
            if not subscription.active or not subscription.matches(event):
                continue
            try:
                result = subscription.listener(event)
                if inspect.isawaitable(result):
                    await result
                delivered += 1
            except Exception as e:
                logger.error(
                    "Change feed listener failed",
                    extra={
                        "table": event.table,
                        "event_type": event.event_type.value,
                        "error": str(e)
                    },
                    exc_info=True
                )
        return delivered

    async def publish_change(
        self,
        table: str,
        event_type: ChangeEventType,
        new: Optional[Dict[str, Any]] = None,
        old: Optional[Dict[str, Any]] = None,
    ) -> int:
        return await self.publish(ChangeEvent(table, event_type, new or {}, old or {}))

    def subscription_count(self, table: Optional[str] = None) -> int:
        if table is not None:
            return len(self._subscriptions.get(table, []))
        return sum(len(subs) for subs in self._subscriptions.values())

    def close(self) -> None:
        """Deactivate every subscription."""
        for subscriptions in list(self._subscriptions.values()):
            for subscription in list(subscriptions):
                subscription.unsubscribe()
        self._subscriptions.clear()
