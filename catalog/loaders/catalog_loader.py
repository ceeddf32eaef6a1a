"""
Catalog loader: fetches products and categories into fully materialized lists.

Failures never reach the caller as exceptions. Offline or failed loads return
None and the view renders its empty (or offline) state.
"""

from datetime import datetime
from typing import Optional

from rich.console import Console

from config.settings import CatalogConfig
from catalog.errors import GatewayError, GatewayTimeoutError, OfflineError
from catalog.transformers.category_transformer import Category, CategoryTransformer
from catalog.transformers.product_transformer import Product, ProductTransformer

console = Console()


class CatalogLoader:
    """Loads catalog collections through the gateway."""

    def __init__(
        self,
        gateway,
        connectivity=None,
        catalog_config: Optional[CatalogConfig] = None,
    ):
        """
        Args:
            gateway: SupabaseGateway used for every query
            connectivity: ConnectivityMonitor; without one the loader assumes online
            catalog_config: Table names, pack size and "new" threshold
        """
        self.gateway = gateway
        self.connectivity = connectivity
        self.config = catalog_config or CatalogConfig()
        self.transformer = ProductTransformer(pack_size=self.config.pack_size)
        self.category_transformer = CategoryTransformer()

    def _require_online(self) -> None:
        if self.connectivity is not None and not self.connectivity.is_online:
            raise OfflineError()

    async def _fetch_product_rows(self) -> list[dict]:
        table = self.config.products_table
        try:
            return await self.gateway.query_collection(
                table,
                columns=f"*, {self.config.product_categories_table}(category_id)",
                order_by="created_at",
                ascending=False,
            )
        except GatewayTimeoutError:
            raise
        except GatewayError as e:
            # Join not exposed (missing relation or permissions): plain rows still render
            console.print(
                f"[yellow]Category links unavailable ({e}), loading plain rows[/yellow]"
            )
            return await self.gateway.query_collection(
                table, order_by="created_at", ascending=False
            )

    async def load_products(
        self,
        *,
        category_id: Optional[str] = None,
        new_only: bool = False,
        new_product_days: Optional[int] = None,
        limit: Optional[int] = None,
        now: Optional[datetime] = None,
    ) -> Optional[list[Product]]:
        """
        Load, derive, filter, sort and truncate the product list.

        Args:
            category_id: Keep only products whose category_id matches
            new_only: Keep only products flagged new and younger than the threshold
            new_product_days: Age threshold in days (defaults to configuration)
            limit: Maximum number of products to return
            now: Reference time for the age check

        Returns:
            Products newest first, or None when offline or the load failed
        """
        try:
            self._require_online()
            rows = await self._fetch_product_rows()
        except OfflineError:
            console.print("[yellow]Offline: skipping product load[/yellow]")
            return None
        except GatewayError as e:
            console.print(f"[red]Error loading products: {e}[/red]")
            return None

        products = self.transformer.transform_batch(rows)

        if category_id:
            wanted = str(category_id)
            products = [p for p in products if p.category_id == wanted]
            console.print(f"[dim]Filtered by category. Remaining: {len(products)}[/dim]")

        if new_only:
            max_days = (
                new_product_days
                if new_product_days is not None
                else self.config.new_product_days
            )
            products = [
                p
                for p in products
                if p.is_new
                and p.created_at is not None
                and p.age_in_days(now) <= max_days
            ]
            console.print(f"[dim]Filtered new products. Remaining: {len(products)}[/dim]")

        # Stable: products without a timestamp keep their order at the end
        products.sort(key=lambda p: p.sort_timestamp, reverse=True)

        if limit and limit > 0:
            products = products[:limit]

        console.print(f"[dim]Loaded {len(products)} products[/dim]")
        return products

    async def load_product(self, product_id: str) -> Optional[Product]:
        """Load a single product by id, None if missing or unavailable."""
        try:
            self._require_online()
            rows = await self.gateway.query_collection(
                self.config.products_table, filters={"id": product_id}, limit=1
            )
        except OfflineError:
            console.print(f"[yellow]Offline: cannot load product {product_id}[/yellow]")
            return None
        except GatewayError as e:
            console.print(f"[red]Error loading product {product_id}: {e}[/red]")
            return None
        return self.transformer.transform(rows[0]) if rows else None

    async def load_categories(self) -> Optional[list[Category]]:
        """Load every category ordered by name, None when offline or on failure."""
        try:
            self._require_online()
            rows = await self.gateway.query_collection(
                self.config.categories_table, order_by="name", ascending=True
            )
        except OfflineError:
            console.print("[yellow]Offline: skipping category load[/yellow]")
            return None
        except GatewayError as e:
            console.print(f"[red]Error loading categories: {e}[/red]")
            return None

        categories = self.category_transformer.transform_batch(rows)
        console.print(f"[dim]Loaded {len(categories)} categories[/dim]")
        return categories
