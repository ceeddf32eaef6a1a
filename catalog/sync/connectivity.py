"""
Online/offline tracking.

The browser's navigator.onLine flag and online/offline events become a
reachability probe against the Supabase project plus explicit transitions.
"""

import asyncio
import inspect
from typing import Any, Callable, Optional

import httpx
from rich.console import Console

console = Console()

# Called with the new state (True = online) on every transition
ConnectivityListener = Callable[[bool], Any]


class ConnectivityMonitor:
    """Binary online/offline state with transition listeners."""

    def __init__(
        self,
        probe_url: Optional[str] = None,
        timeout: float = 5.0,
        online: bool = True,
    ):
        """
        Args:
            probe_url: URL fetched to decide reachability (usually SUPABASE_URL)
            timeout: Probe timeout in seconds
            online: Initial state before the first check()
        """
        self.probe_url = probe_url
        self.timeout = timeout
        self._online = online
        self._listeners: list[ConnectivityListener] = []
        self._tasks: set[asyncio.Task] = set()
        self._watch_task: Optional[asyncio.Task] = None

    @property
    def is_online(self) -> bool:
        return self._online

    def add_listener(self, listener: ConnectivityListener) -> None:
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener: ConnectivityListener) -> None:
        if listener in self._listeners:
            self._listeners.remove(listener)

    def set_online(self, online: bool) -> None:
        """Record a transition. Listeners only hear about actual changes."""
        if online == self._online:
            return
        self._online = online

        if online:
            console.print("[green]Connection restored. Loading fresh data...[/green]")
        else:
            console.print("[yellow]Connection lost. Showing offline message.[/yellow]")

        for listener in list(self._listeners):
            try:
                result = listener(online)
                if inspect.isawaitable(result):
                    task = asyncio.ensure_future(result)
                    self._tasks.add(task)
                    task.add_done_callback(self._tasks.discard)
            except Exception as e:
                console.print(f"[red]Error in connectivity listener: {e}[/red]")

    async def probe(self) -> bool:
        """Return True if the backend answers at all (any HTTP status)."""
        if not self.probe_url:
            return self._online
        try:
            async with httpx.AsyncClient() as http_client:
                await http_client.get(self.probe_url, timeout=self.timeout)
            return True
        except httpx.HTTPError:
            return False

    async def check(self) -> bool:
        """Probe once and apply the result as a transition."""
        self.set_online(await self.probe())
        return self._online

    async def watch(self, interval: float = 10.0) -> None:
        """Probe forever, turning results into transitions. Cancel to stop."""
        while True:
            await self.check()
            await asyncio.sleep(interval)

    def start(self, interval: float = 10.0) -> None:
        if self._watch_task is None or self._watch_task.done():
            self._watch_task = asyncio.ensure_future(self.watch(interval))

    async def stop(self) -> None:
        if self._watch_task is not None:
            self._watch_task.cancel()
            try:
                await self._watch_task
            except asyncio.CancelledError:
                pass
            self._watch_task = None

    async def drain(self) -> None:
        """Wait for async listener work scheduled by set_online()."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
