"""
Configuration settings for the catalog sync client.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

# Load .env file from project root
load_dotenv(Path(__file__).parent.parent / ".env")


@dataclass
class SupabaseConfig:
    """Connection settings for the hosted Supabase project."""

    url: Optional[str] = field(default_factory=lambda: os.getenv("SUPABASE_URL"))
    key: Optional[str] = field(default_factory=lambda: os.getenv("SUPABASE_KEY"))
    service_role_key: Optional[str] = field(
        default_factory=lambda: os.getenv("SUPABASE_SERVICE_ROLE_KEY")
    )

    # Pending requests are aborted after this many seconds
    request_timeout_seconds: float = 30.0

    schema: str = "public"

    def require_credentials(self) -> tuple[str, str]:
        """Return (url, key) or raise if either is missing."""
        if not self.url or not self.key:
            raise ValueError(
                "Supabase credentials required. Set SUPABASE_URL and SUPABASE_KEY "
                "environment variables or pass them to the constructor."
            )
        return self.url, self.key


@dataclass
class CatalogConfig:
    """Settings for loading and paginating the catalog."""

    products_table: str = "products"
    categories_table: str = "categories"
    product_categories_table: str = "product_categories"
    users_table: str = "users"

    # Items per page, used for the initial slice and every appended page
    page_size: int = 8

    # Pieces per pack (pack price = piece price * pack size)
    pack_size: int = 6

    # A product flagged "new" stays new for this many days
    new_product_days: int = 14

    search_debounce_seconds: float = 0.3


@dataclass
class StorageConfig:
    """Settings for the image storage buckets."""

    products_bucket: str = "product-images"
    categories_bucket: str = "category-images"

    max_file_size: int = 10 * 1024 * 1024  # 10MB
    allowed_mime_types: list = field(
        default_factory=lambda: ["image/jpeg", "image/png", "image/webp", "image/gif"]
    )

    # Served addresses carry a ?v= parameter, so objects are cached forever
    cache_control: str = "public, max-age=31536000, immutable"

    # Compression before upload
    max_width: int = 800
    quality: int = 65


@dataclass
class ConnectivityConfig:
    """Settings for online/offline detection."""

    probe_timeout_seconds: float = 5.0
    poll_interval_seconds: float = 10.0


@dataclass
class AuthConfig:
    """Settings for the current-user profile lookup."""

    profile_cache_ttl_seconds: float = 300.0


@dataclass
class AppConfig:
    """Main configuration combining all settings."""

    supabase: SupabaseConfig = field(default_factory=SupabaseConfig)
    catalog: CatalogConfig = field(default_factory=CatalogConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    connectivity: ConnectivityConfig = field(default_factory=ConnectivityConfig)
    auth: AuthConfig = field(default_factory=AuthConfig)


# Default configuration instance
config = AppConfig()
