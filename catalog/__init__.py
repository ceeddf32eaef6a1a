"""
Catalog sync client.

Keeps a product catalog stored in Supabase mirrored in memory:
- Catalog loading with derived pack/box prices and recency/category filters
- Paginated product windows patched in place by realtime changes
- Debounced name search
- Offline detection with a full reload on reconnect
- Category/product admin operations and image storage

Configuration:
- Set SUPABASE_URL and SUPABASE_KEY in the .env file
- Admin operations also need SUPABASE_SERVICE_ROLE_KEY
"""

from .client import CatalogClient
from .errors import (
    CatalogError,
    DuplicateSlugError,
    GatewayError,
    GatewayTimeoutError,
    MutationError,
    OfflineError,
)
from .gateway.supabase_gateway import SupabaseGateway
from .loaders.catalog_loader import CatalogLoader
from .realtime.dispatcher import ChangeEvent, EventType, RealtimeDispatcher, RealtimeHub
from .sync.catalog_view import CatalogView, ViewStatus
from .sync.connectivity import ConnectivityMonitor
from .sync.reconciler import ListReconciler, LoadOptions, WindowState
from .sync.search import DebouncedSearch, filter_by_name
from .transformers.category_transformer import Category
from .transformers.product_transformer import Product, ProductTransformer

__all__ = [
    # Entry point
    "CatalogClient",
    # Backend
    "SupabaseGateway",
    "CatalogLoader",
    # Realtime
    "ChangeEvent",
    "EventType",
    "RealtimeDispatcher",
    "RealtimeHub",
    # Views
    "CatalogView",
    "ViewStatus",
    "ConnectivityMonitor",
    "ListReconciler",
    "LoadOptions",
    "WindowState",
    "DebouncedSearch",
    "filter_by_name",
    # Models
    "Category",
    "Product",
    "ProductTransformer",
    # Errors
    "CatalogError",
    "DuplicateSlugError",
    "GatewayError",
    "GatewayTimeoutError",
    "MutationError",
    "OfflineError",
]
