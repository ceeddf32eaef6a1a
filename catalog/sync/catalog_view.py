"""
Catalog view: one mounted product list.

Wires the loader, reconciler, debounced search, realtime dispatcher and
connectivity monitor together the way a product grid screen uses them.
"""

import uuid
from enum import Enum
from typing import Optional

from rich.console import Console

from config.settings import CatalogConfig
from catalog.loaders.catalog_loader import CatalogLoader
from catalog.realtime.dispatcher import ChangeEvent, RealtimeHub
from catalog.sync.connectivity import ConnectivityMonitor
from catalog.sync.reconciler import ListReconciler, LoadOptions, WindowState
from catalog.sync.search import DebouncedSearch

console = Console()


class ViewStatus(str, Enum):
    LOADING = "loading"
    READY = "ready"
    EMPTY = "empty"
    NO_MATCHES = "no_matches"
    OFFLINE = "offline"


class CatalogView:
    """A paginated, searchable, self-updating product list."""

    def __init__(
        self,
        loader: CatalogLoader,
        hub: RealtimeHub,
        connectivity: ConnectivityMonitor,
        options: Optional[LoadOptions] = None,
        catalog_config: Optional[CatalogConfig] = None,
        view_id: Optional[str] = None,
    ):
        """
        Args:
            loader: Loader shared with the rest of the app
            hub: Realtime hub (one feed per table across all views)
            connectivity: Online/offline monitor
            options: Category / new-only / limit constraints for this view
            catalog_config: Page size, debounce delay, table names
            view_id: Listener id registered with the dispatcher
        """
        self.config = catalog_config or loader.config
        self.loader = loader
        self.connectivity = connectivity
        self.dispatcher = hub.dispatcher(self.config.products_table)
        self.view_id = view_id or f"catalog-view-{uuid.uuid4().hex[:8]}"
        self.reconciler = ListReconciler(
            loader=loader,
            page_size=self.config.page_size,
            options=options or LoadOptions(),
            transformer=loader.transformer,
        )
        self.search = DebouncedSearch(
            self.reconciler.apply_query, delay=self.config.search_debounce_seconds
        )
        self.loading = False
        self.mounted = False

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def state(self) -> WindowState:
        return self.reconciler.state

    @property
    def query(self) -> str:
        return self.reconciler.query

    @property
    def status(self) -> ViewStatus:
        if not self.connectivity.is_online:
            return ViewStatus.OFFLINE
        if self.loading:
            return ViewStatus.LOADING
        if not self.state.all:
            return ViewStatus.EMPTY
        if self.query.strip() and not self.state.filtered:
            return ViewStatus.NO_MATCHES
        return ViewStatus.READY

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def mount(self) -> ViewStatus:
        """Check connectivity once, then load and start listening for changes."""
        self.mounted = True
        await self.connectivity.check()
        # Later transitions only; the state at mount is handled below
        self.connectivity.add_listener(self._on_connectivity)

        if self.connectivity.is_online:
            await self._load_and_listen()
        else:
            self.dispatcher.freeze()
        return self.status

    async def unmount(self) -> None:
        self.mounted = False
        self.search.cancel()
        self.connectivity.remove_listener(self._on_connectivity)
        await self.dispatcher.unsubscribe(self.view_id)

    async def refresh(self) -> bool:
        """Full reload, equivalent to the initial load."""
        if not self.connectivity.is_online:
            return False
        self.loading = True
        try:
            return await self.reconciler.reload()
        finally:
            self.loading = False

    async def _load_and_listen(self) -> None:
        self.dispatcher.thaw()
        await self.refresh()
        # unmount() may have run while the reload was in flight
        if not self.mounted:
            return
        await self.dispatcher.subscribe(self.view_id, self._on_change)

    # ------------------------------------------------------------------
    # Triggers
    # ------------------------------------------------------------------

    def append_page(self) -> bool:
        """The "load more" sentinel came into view."""
        if not self.connectivity.is_online:
            return False
        return self.reconciler.append_page()

    def set_query(self, query: str) -> None:
        """Debounced search input."""
        self.search.update(query)

    def search_now(self, query: str) -> WindowState:
        """Search form submitted: apply immediately."""
        self.search.cancel()
        return self.reconciler.apply_query(query)

    def clear_search(self) -> WindowState:
        return self.search_now("")

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _on_change(self, event: ChangeEvent) -> None:
        if not self.connectivity.is_online:
            return
        console.print(
            f"[dim]Received realtime {event.event_type.value} for {event.row_id}[/dim]"
        )
        await self.reconciler.apply_change(event)

    async def _on_connectivity(self, online: bool) -> None:
        if not self.mounted:
            return
        if online:
            await self._load_and_listen()
        else:
            self.dispatcher.freeze()
            await self.dispatcher.unsubscribe(self.view_id)
