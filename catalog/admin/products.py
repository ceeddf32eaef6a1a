"""
Product administration: create, edit and delete products and their
category links.
"""

import uuid
from datetime import datetime, timezone
from typing import Iterable, Optional

from rich.console import Console

from config.settings import CatalogConfig, StorageConfig
from catalog.errors import GatewayError, MutationError
from catalog.loaders.image_store import ImageSource, ImageStore
from catalog.transformers.product_transformer import Product, ProductTransformer

console = Console()

# Columns an admin may write; derived prices are never persisted
WRITABLE_FIELDS = (
    "name",
    "product_code",
    "box_quantity",
    "piece_price",
    "wholesale_price",
    "image_url",
    "is_new",
    "category_id",
)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class ProductAdmin:
    """Admin operations on the products table and the product_categories join."""

    def __init__(
        self,
        gateway,
        images: Optional[ImageStore] = None,
        catalog_config: Optional[CatalogConfig] = None,
        storage_config: Optional[StorageConfig] = None,
    ):
        self.gateway = gateway
        self.config = catalog_config or CatalogConfig()
        self.storage = storage_config or StorageConfig()
        self.images = images or ImageStore(gateway, self.storage)
        self.transformer = ProductTransformer(pack_size=self.config.pack_size)

    def _clean_fields(self, fields: dict) -> dict:
        unknown = set(fields) - set(WRITABLE_FIELDS)
        if unknown:
            raise MutationError(
                f"حقول غير معروفة: {', '.join(sorted(unknown))}", retryable=False
            )
        return dict(fields)

    async def create_product(
        self,
        name: str,
        piece_price: float,
        box_quantity: int = 0,
        image: ImageSource = None,
        category_ids: Optional[Iterable[str]] = None,
        **fields,
    ) -> Product:
        """
        Create a product, upload its image and link its categories.

        Raises:
            MutationError: invalid input or backend failure
        """
        if not (name or "").strip():
            raise MutationError("يرجى إدخال اسم المنتج", retryable=False)
        if piece_price is None or piece_price < 0 or box_quantity < 0:
            raise MutationError("السعر والكمية يجب أن تكون قيماً موجبة", retryable=False)

        product_id = str(uuid.uuid4())
        row = {
            **self._clean_fields(fields),
            "id": product_id,
            "name": name.strip(),
            "piece_price": piece_price,
            "box_quantity": box_quantity,
            "created_at": _now(),
            "updated_at": _now(),
        }
        if image:
            row["image_url"] = await self.images.upload_product_image(image, product_id) or None

        try:
            rows = await self.gateway.mutate_collection(
                self.config.products_table, "insert", row
            )
        except GatewayError as e:
            raise MutationError(f"خطأ في إضافة المنتج: {e}", cause=e) from e

        links = []
        if category_ids is not None:
            links = await self.set_product_categories(product_id, category_ids)

        console.print(f"[green]✓ Product created: {row['name']}[/green]")
        created = rows[0] if rows else row
        return self.transformer.transform({**created, "category_ids": links})

    async def update_product(
        self,
        product: Product,
        image: ImageSource = None,
        category_ids: Optional[Iterable[str]] = None,
        **fields,
    ) -> Product:
        """Patch a product; replaces its image and category links when given."""
        patch = {**self._clean_fields(fields), "updated_at": _now()}

        if image:
            new_url = await self.images.upload_product_image(image, product.id)
            if new_url:
                patch["image_url"] = new_url
                if product.image_url and new_url.split("?")[0] != product.image_url.split("?")[0]:
                    await self.images.delete_image(self.storage.products_bucket, product.image_url)

        try:
            rows = await self.gateway.mutate_collection(
                self.config.products_table, "update", patch, id_value=product.id
            )
        except GatewayError as e:
            raise MutationError(f"خطأ في تحديث المنتج: {e}", cause=e) from e

        links = product.category_ids
        if category_ids is not None:
            links = await self.set_product_categories(product.id, category_ids)

        base = rows[0] if rows else {**product.model_dump(), **patch}
        return self.transformer.transform({**base, "category_ids": links})

    async def delete_product(self, product: Product) -> None:
        """Delete a product, its category links and its image."""
        try:
            await self.gateway.mutate_collection(
                self.config.product_categories_table,
                "delete",
                filters={"product_id": product.id},
            )
            await self.gateway.mutate_collection(
                self.config.products_table, "delete", id_value=product.id
            )
        except GatewayError as e:
            raise MutationError(f"خطأ في حذف المنتج: {e}", cause=e) from e

        if product.image_url:
            await self.images.delete_image(self.storage.products_bucket, product.image_url)

        console.print(f"[green]Deleted product: {product.name}[/green]")

    async def set_product_categories(
        self, product_id: str, category_ids: Iterable[str]
    ) -> list[str]:
        """Replace the product's many-to-many category links."""
        wanted = list(dict.fromkeys(str(c) for c in category_ids if c))
        table = self.config.product_categories_table
        try:
            await self.gateway.mutate_collection(
                table, "delete", filters={"product_id": product_id}
            )
            if wanted:
                await self.gateway.mutate_collection(
                    table,
                    "insert",
                    [{"product_id": product_id, "category_id": c} for c in wanted],
                )
        except GatewayError as e:
            raise MutationError(f"خطأ في ربط المنتج بالفئات: {e}", cause=e) from e
        return wanted
