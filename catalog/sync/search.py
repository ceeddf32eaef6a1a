"""
Free-text product search: name matching plus a debounced trigger.
"""

import asyncio
import inspect
from typing import Any, Callable, Iterable, Optional

from rich.console import Console

console = Console()


def filter_by_name(items: Iterable, query: Optional[str]) -> list:
    """
    Case-insensitive substring match against each item's name.

    An empty or whitespace query returns every item. Items without a name
    never match a non-empty query.
    """
    items = list(items)
    needle = (query or "").strip().lower()
    if not needle:
        return items

    return [
        item
        for item in items
        if getattr(item, "name", None) and needle in item.name.lower()
    ]


class DebouncedSearch:
    """
    Per-input debounce: every update() cancels the pending timer and starts
    a new one; the callback only sees the last query.
    """

    def __init__(self, on_query: Callable[[str], Any], delay: float = 0.3):
        """
        Args:
            on_query: Called with the settled query (may be async)
            delay: Quiet period in seconds before on_query fires
        """
        self.on_query = on_query
        self.delay = delay
        self.pending: Optional[str] = None
        self._handle: Optional[asyncio.TimerHandle] = None
        self._task: Optional[asyncio.Task] = None

    def update(self, query: str) -> None:
        """Schedule on_query(query) after the delay, superseding any pending one."""
        self.cancel()
        self.pending = query
        loop = asyncio.get_running_loop()
        self._handle = loop.call_later(self.delay, self._fire)

    def cancel(self) -> None:
        if self._handle is not None:
            self._handle.cancel()
            self._handle = None
        self.pending = None

    def flush(self) -> None:
        """Fire the pending query now."""
        if self._handle is not None:
            self._handle.cancel()
            self._fire()

    def _fire(self) -> None:
        self._handle = None
        query, self.pending = self.pending, None
        if query is None:
            return
        try:
            result = self.on_query(query)
            if inspect.isawaitable(result):
                self._task = asyncio.ensure_future(result)
        except Exception as e:
            console.print(f"[red]Search failed for '{query}': {e}[/red]")

    async def wait(self) -> None:
        """Wait until the pending query (if any) has been handled."""
        while self._handle is not None:
            await asyncio.sleep(self.delay / 4 or 0.01)
        if self._task is not None:
            await self._task
            self._task = None
