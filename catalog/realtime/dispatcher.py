"""
Realtime change dispatcher.

Keeps exactly one change-feed subscription per table and fans incoming
events out to every registered listener. The feed opens with the first
listener and closes when the last one leaves.
"""

import asyncio
import inspect
from enum import Enum
from typing import Any, Callable, Optional

from pydantic import BaseModel, ConfigDict
from rich.console import Console

console = Console()


class EventType(str, Enum):
    INSERT = "INSERT"
    UPDATE = "UPDATE"
    DELETE = "DELETE"


class ChangeEvent(BaseModel):
    """A normalized row change from a table's change feed."""

    model_config = ConfigDict(frozen=True)

    event_type: EventType
    table: Optional[str] = None
    new_row: Optional[dict] = None
    old_row: Optional[dict] = None

    @property
    def row_id(self) -> Optional[str]:
        """Id of the affected row, from the new row or (for deletes) the old one."""
        for row in (self.new_row, self.old_row):
            if row and row.get("id") is not None:
                return str(row["id"])
        return None

    @classmethod
    def from_payload(cls, payload: dict) -> "ChangeEvent":
        """
        Build an event from a raw realtime payload.

        Accepts the client library shape ({"data": {"type", "record",
        "old_record", "table"}}) as well as the flat shape ({"eventType",
        "new", "old", "table"}).
        """
        data = payload.get("data") if isinstance(payload.get("data"), dict) else None
        if data is not None and "type" in data:
            event_type = data.get("type")
            new_row = data.get("record")
            old_row = data.get("old_record")
            table = data.get("table")
        else:
            event_type = payload.get("eventType") or payload.get("event") or payload.get("type")
            new_row = payload.get("new") or payload.get("record")
            old_row = payload.get("old") or payload.get("old_record")
            table = payload.get("table")

        return cls(
            event_type=str(event_type or "").upper(),
            table=table,
            new_row=new_row or None,
            old_row=old_row or None,
        )


# Listener callback; may return an awaitable, which is scheduled on the loop
Listener = Callable[[ChangeEvent], Any]


class RealtimeDispatcher:
    """
    Fan-out of one table's change feed to many listeners.

    - subscribe() opens the feed on the first listener
    - unsubscribe() closes it when the listener set becomes empty
    - a failing listener never stops delivery to the others
    - while frozen (offline) no event is delivered
    """

    def __init__(self, gateway, collection: str):
        """
        Args:
            gateway: SupabaseGateway (or anything with the same feed methods)
            collection: Table whose changes are dispatched
        """
        self.gateway = gateway
        self.collection = collection
        self._listeners: dict[str, Listener] = {}
        self._handle: Any = None
        self._frozen = False
        self._lock = asyncio.Lock()
        self._tasks: set[asyncio.Task] = set()

    @property
    def connected(self) -> bool:
        return self._handle is not None

    @property
    def frozen(self) -> bool:
        return self._frozen

    @property
    def listener_ids(self) -> list[str]:
        return list(self._listeners)

    async def subscribe(self, listener_id: str, callback: Listener) -> None:
        """Register a listener, opening the feed if none is open yet."""
        self._listeners[listener_id] = callback

        async with self._lock:
            if self._handle is not None or not self._listeners:
                return
            try:
                self._handle = await self.gateway.subscribe_to_changes(
                    self.collection, self.dispatch
                )
            except Exception as e:
                # Stay disconnected; the next online transition re-subscribes
                self._handle = None
                console.print(
                    f"[red]Could not open change feed for '{self.collection}': {e}[/red]"
                )

    async def unsubscribe(self, listener_id: str) -> None:
        """Remove a listener, closing the feed once nobody listens."""
        self._listeners.pop(listener_id, None)

        async with self._lock:
            if self._listeners or self._handle is None:
                return
            handle, self._handle = self._handle, None
            try:
                await self.gateway.remove_subscription(handle)
                console.print(f"[dim]Closed change feed: {self.collection}[/dim]")
            except Exception as e:
                console.print(
                    f"[yellow]Warning: could not close change feed "
                    f"'{self.collection}': {e}[/yellow]"
                )

    def freeze(self) -> None:
        """Stop delivering events (subscriptions stay as they are)."""
        self._frozen = True

    def thaw(self) -> None:
        self._frozen = False

    def dispatch(self, payload: dict) -> None:
        """Normalize a raw payload and hand it to every listener in order."""
        if self._frozen:
            console.print(
                f"[dim]Dropped {self.collection} change while offline[/dim]"
            )
            return

        try:
            event = (
                payload
                if isinstance(payload, ChangeEvent)
                else ChangeEvent.from_payload(payload)
            )
        except ValueError as e:
            console.print(f"[yellow]Ignoring malformed change payload: {e}[/yellow]")
            return

        for listener_id, callback in list(self._listeners.items()):
            try:
                result = callback(event)
                if inspect.isawaitable(result):
                    self._schedule(listener_id, result)
            except Exception as e:
                console.print(
                    f"[red]Error in realtime listener '{listener_id}': {e}[/red]"
                )

    def _schedule(self, listener_id: str, awaitable) -> None:
        task = asyncio.ensure_future(awaitable)
        self._tasks.add(task)

        def _done(t: asyncio.Task) -> None:
            self._tasks.discard(t)
            if not t.cancelled() and t.exception() is not None:
                console.print(
                    f"[red]Error in realtime listener '{listener_id}': "
                    f"{t.exception()}[/red]"
                )

        task.add_done_callback(_done)

    async def drain(self) -> None:
        """Wait for async listener work scheduled by dispatch()."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


class RealtimeHub:
    """One RealtimeDispatcher per table, shared by every catalog view."""

    def __init__(self, gateway):
        self.gateway = gateway
        self._dispatchers: dict[str, RealtimeDispatcher] = {}

    def dispatcher(self, collection: str) -> RealtimeDispatcher:
        if collection not in self._dispatchers:
            self._dispatchers[collection] = RealtimeDispatcher(self.gateway, collection)
        return self._dispatchers[collection]

    def freeze_all(self) -> None:
        for dispatcher in self._dispatchers.values():
            dispatcher.freeze()

    def thaw_all(self) -> None:
        for dispatcher in self._dispatchers.values():
            dispatcher.thaw()

    async def close(self) -> None:
        """Unsubscribe every listener of every table."""
        for dispatcher in self._dispatchers.values():
            for listener_id in dispatcher.listener_ids:
                await dispatcher.unsubscribe(listener_id)
