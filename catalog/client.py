"""
Catalog client: builds and owns the shared pieces (gateway, realtime hub,
connectivity monitor, loader, admin services) and hands out catalog views.
"""

from typing import Optional

from rich.console import Console
from rich.table import Table

from config.settings import AppConfig, config
from catalog.admin.categories import CategoryAdmin
from catalog.admin.products import ProductAdmin
from catalog.admin.schema import SchemaPatcher
from catalog.auth.profiles import ProfileService, visible_price_fields
from catalog.gateway.supabase_gateway import SupabaseGateway
from catalog.loaders.catalog_loader import CatalogLoader
from catalog.loaders.image_store import ImageStore
from catalog.realtime.dispatcher import RealtimeHub
from catalog.sync.catalog_view import CatalogView
from catalog.sync.connectivity import ConnectivityMonitor
from catalog.sync.reconciler import LoadOptions

console = Console()


class CatalogClient:
    """
    Everything a catalog screen needs, created once per process.

    - gateway: typed access to the backend
    - hub: one change feed per table, shared by all views
    - connectivity: online/offline state
    - loader / images / categories / products / profiles / schema
    """

    def __init__(self, gateway, app_config: Optional[AppConfig] = None):
        self.config = app_config or config
        self.gateway = gateway
        self.connectivity = ConnectivityMonitor(
            probe_url=getattr(gateway, "supabase_url", None),
            timeout=self.config.connectivity.probe_timeout_seconds,
        )
        self.hub = RealtimeHub(gateway)
        self.loader = CatalogLoader(gateway, self.connectivity, self.config.catalog)
        self.images = ImageStore(gateway, self.config.storage)
        self.schema = SchemaPatcher(gateway)
        self.categories = CategoryAdmin(
            gateway,
            images=self.images,
            schema=self.schema,
            catalog_config=self.config.catalog,
            storage_config=self.config.storage,
        )
        self.products = ProductAdmin(
            gateway,
            images=self.images,
            catalog_config=self.config.catalog,
            storage_config=self.config.storage,
        )
        self.profiles = ProfileService(
            gateway,
            ttl=self.config.auth.profile_cache_ttl_seconds,
            users_table=self.config.catalog.users_table,
        )

    @classmethod
    async def connect(
        cls, app_config: Optional[AppConfig] = None, service_role: bool = False
    ) -> "CatalogClient":
        app_config = app_config or config
        gateway = await SupabaseGateway.connect(app_config.supabase, service_role=service_role)
        console.print("[green]✓ Supabase gateway initialized[/green]")
        return cls(gateway, app_config)

    def new_view(self, options: Optional[LoadOptions] = None) -> CatalogView:
        """A fresh, unmounted view with its own reconciler."""
        return CatalogView(
            self.loader,
            self.hub,
            self.connectivity,
            options=options,
            catalog_config=self.config.catalog,
        )

    async def close(self) -> None:
        await self.connectivity.stop()
        await self.hub.close()

    async def products_table(self, products, title: str = "Products") -> Table:
        """Render products as a rich table, showing the prices the viewer may see."""
        profile = await self.profiles.get_current_profile()
        price_fields = visible_price_fields(profile)

        table = Table(title=title, show_header=True)
        table.add_column("Name", style="cyan")
        table.add_column("Code", style="dim")
        for price_field in price_fields:
            table.add_column(price_field.replace("_", " ").title(), style="green", justify="right")
        table.add_column("New", justify="center")

        for product in products:
            prices = []
            for price_field in price_fields:
                value = getattr(product, price_field)
                prices.append("-" if value is None else f"{value:.2f}")
            table.add_row(
                product.name or "-",
                product.product_code or "-",
                *prices,
                "✓" if product.is_new else "",
            )
        return table
