"""
List reconciler: the paginated window over a materialized product list,
kept in step with realtime changes.

State is an immutable snapshot. Every transition builds a new WindowState,
so a renderer holding the previous snapshot never sees a half-applied patch.
"""

from dataclasses import dataclass, field, replace
from typing import Optional

from rich.console import Console

from catalog.realtime.dispatcher import ChangeEvent, EventType
from catalog.sync.search import filter_by_name
from catalog.transformers.product_transformer import Product, ProductTransformer

console = Console()


@dataclass(frozen=True)
class WindowState:
    """Snapshot of a catalog view's lists."""

    all: tuple = ()  # loaded, filtered by load options, sorted
    filtered: tuple = ()  # `all` narrowed by the search query
    visible: tuple = ()  # rendered prefix of `filtered`
    page: int = 0
    has_more: bool = False
    loading_more: bool = False


@dataclass
class LoadOptions:
    """Constraints passed to CatalogLoader.load_products() on every reload."""

    category_id: Optional[str] = None
    new_only: bool = False
    new_product_days: Optional[int] = None
    limit: Optional[int] = None

    def as_kwargs(self) -> dict:
        return {
            "category_id": self.category_id,
            "new_only": self.new_only,
            "new_product_days": self.new_product_days,
            "limit": self.limit,
        }


@dataclass
class ListReconciler:
    """Owns one view's WindowState."""

    loader: Optional[object] = None
    page_size: int = 8
    options: LoadOptions = field(default_factory=LoadOptions)
    transformer: ProductTransformer = field(default_factory=ProductTransformer)
    state: WindowState = field(default_factory=WindowState)
    query: str = ""

    def _window(self, all_items: tuple, filtered: tuple) -> WindowState:
        return WindowState(
            all=all_items,
            filtered=filtered,
            visible=filtered[: self.page_size],
            page=1,
            has_more=len(filtered) > self.page_size,
        )

    def reset(self, items) -> WindowState:
        """Replace the base list and rebuild the window from page 1."""
        all_items = tuple(items or ())
        filtered = tuple(filter_by_name(all_items, self.query))
        self.state = self._window(all_items, filtered)
        return self.state

    def apply_filtered(self, filtered) -> WindowState:
        """Replace the filtered list, keeping the base list, and rebuild from page 1."""
        self.state = self._window(self.state.all, tuple(filtered))
        return self.state

    def apply_query(self, query: Optional[str]) -> WindowState:
        """Narrow the base list by a search query and rebuild from page 1."""
        self.query = query or ""
        return self.apply_filtered(filter_by_name(self.state.all, self.query))

    def append_page(self) -> bool:
        """
        Append the next page of `filtered` to `visible`.

        Returns:
            True if items were appended
        """
        state = self.state
        if not state.has_more or state.loading_more:
            return False

        self.state = replace(state, loading_more=True)

        start = len(state.visible)
        end = start + self.page_size
        chunk = state.filtered[start:end]

        if not chunk:
            self.state = replace(state, has_more=False, loading_more=False)
            return False

        self.state = replace(
            state,
            visible=state.visible + chunk,
            page=state.page + 1,
            has_more=end < len(state.filtered),
            loading_more=False,
        )
        return True

    def apply_update(self, row: Optional[dict]) -> bool:
        """
        Replace a product in place (all, filtered and visible).

        Order and window size are untouched; unknown ids are ignored.

        Returns:
            True if a product was replaced
        """
        if not row or row.get("id") is None:
            return False
        product_id = str(row["id"])

        current = next((p for p in self.state.all if p.id == product_id), None)
        if current is None:
            return False

        # Feed rows may omit unchanged columns; start from what we have
        merged = {**current.model_dump(), **row}
        updated = self.transformer.transform(merged)
        if updated is None:
            return False

        def swap(items: tuple) -> tuple:
            return tuple(updated if p.id == product_id else p for p in items)

        state = self.state
        self.state = replace(
            state,
            all=swap(state.all),
            filtered=swap(state.filtered),
            visible=swap(state.visible),
        )
        return True

    def apply_delete(self, product_id: Optional[str]) -> bool:
        """
        Remove a product from all, filtered and visible. Unknown ids are a no-op.

        Returns:
            True if a product was removed
        """
        if product_id is None:
            return False
        product_id = str(product_id)
        state = self.state
        if not any(p.id == product_id for p in state.all):
            return False

        def drop(items: tuple) -> tuple:
            return tuple(p for p in items if p.id != product_id)

        filtered = drop(state.filtered)
        visible = drop(state.visible)
        self.state = replace(
            state,
            all=drop(state.all),
            filtered=filtered,
            visible=visible,
            has_more=len(visible) < len(filtered),
        )
        return True

    async def reload(self) -> bool:
        """
        Fetch the list again and rebuild the window (keeping the query).

        Returns:
            True if the load succeeded; on failure the window is emptied
        """
        if self.loader is None:
            return False
        products = await self.loader.load_products(**self.options.as_kwargs())
        self.reset(products or ())
        return products is not None

    async def apply_change(self, event: ChangeEvent) -> None:
        """
        Apply one realtime change.

        Inserts reload the whole list: the new row's position under the
        active filters, sort and limit is decided by the loader.
        """
        if event.event_type == EventType.INSERT:
            console.print("[dim]Product INSERT detected. Reloading data...[/dim]")
            await self.reload()
        elif event.event_type == EventType.UPDATE:
            self.apply_update(event.new_row)
        elif event.event_type == EventType.DELETE:
            self.apply_delete(event.row_id)

    @property
    def products(self) -> list[Product]:
        return list(self.state.visible)
