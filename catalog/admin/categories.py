"""
Category administration: create, edit and delete categories.
"""

import random
import re
import time
import uuid
from datetime import datetime, timezone
from typing import Optional

from rich.console import Console

from config.settings import CatalogConfig, StorageConfig
from catalog.admin.schema import SchemaPatcher
from catalog.errors import DuplicateSlugError, GatewayError, MutationError
from catalog.loaders.image_store import ImageSource, ImageStore
from catalog.transformers.category_transformer import Category, CategoryTransformer

console = Console()


def generate_slug(name: str) -> str:
    """
    URL-safe slug from a category name plus a random suffix.

    Word characters of any script are kept, so Arabic names keep their
    letters. The suffix keeps equal names from colliding.
    """
    base = name.lower().strip()
    base = re.sub(r"[^\w\s-]", "", base)
    base = re.sub(r"[\s_-]+", "-", base)
    base = base.strip("-") or "category"
    return f"{base}-{random.randint(0, 9999)}"


def generate_color() -> str:
    """Random light HSL accent color, readable under dark text."""
    hue = random.randint(0, 359)
    saturation = 60 + random.randint(0, 19)
    lightness = 50 + random.randint(0, 19)
    return f"hsl({hue}, {saturation}%, {lightness}%)"


def is_duplicate_slug(error: GatewayError) -> bool:
    message = str(error)
    return "slug_key" in message or (error.code == "23505" and "slug" in message)


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


class CategoryAdmin:
    """Admin operations on the categories table."""

    def __init__(
        self,
        gateway,
        images: Optional[ImageStore] = None,
        schema: Optional[SchemaPatcher] = None,
        catalog_config: Optional[CatalogConfig] = None,
        storage_config: Optional[StorageConfig] = None,
    ):
        """
        Args:
            gateway: SupabaseGateway
            images: Image store for category pictures
            schema: Optional schema patcher (adds the color column if missing)
            catalog_config: Table names
            storage_config: Bucket names
        """
        self.gateway = gateway
        self.storage = storage_config or StorageConfig()
        self.images = images or ImageStore(gateway, self.storage)
        self.schema = schema
        self.table = (catalog_config or CatalogConfig()).categories_table
        self.transformer = CategoryTransformer()

    async def _upload_image(self, image: ImageSource, category_id: str) -> Optional[str]:
        if not image:
            return None
        try:
            return await self.images.upload_category_image(image, category_id) or None
        except MutationError as e:
            console.print(
                f"[yellow]Image upload failed, saving category without image: {e}[/yellow]"
            )
            return None

    async def _write(self, op: str, payload: dict, id_value: Optional[str] = None) -> list[dict]:
        """Insert or update, retrying once with a timestamped slug on a slug conflict."""
        try:
            return await self.gateway.mutate_collection(
                self.table, op, payload, id_value=id_value
            )
        except GatewayError as e:
            if "slug" not in payload or not is_duplicate_slug(e):
                raise MutationError(f"خطأ في حفظ الفئة: {e}", cause=e) from e
            first_error = e

        retry_slug = f"{payload['slug']}-{int(time.time() * 1000)}"
        console.print(f"[yellow]Duplicate slug, retrying as '{retry_slug}'[/yellow]")
        try:
            return await self.gateway.mutate_collection(
                self.table, op, {**payload, "slug": retry_slug}, id_value=id_value
            )
        except GatewayError as e:
            if is_duplicate_slug(e):
                raise DuplicateSlugError(retry_slug, cause=e) from first_error
            raise MutationError(f"خطأ في حفظ الفئة: {e}", cause=e) from e

    async def create_category(
        self,
        name: str,
        description: Optional[str] = None,
        image: ImageSource = None,
    ) -> Category:
        """
        Create a category with a generated slug and accent color.

        Raises:
            MutationError: empty name or backend failure
            DuplicateSlugError: slug still collides after one retry
        """
        name = (name or "").strip()
        if not name:
            raise MutationError("يرجى إدخال اسم الفئة", retryable=False)

        category_id = str(uuid.uuid4())
        image_url = await self._upload_image(image, category_id)

        if self.schema is not None:
            await self.schema.ensure_column(self.table, "color", "TEXT")

        payload = {
            "id": category_id,
            "name": name,
            "slug": generate_slug(name),
            "image": image_url,
            "description": (description or "").strip() or None,
            "color": generate_color(),
            "created_at": _now(),
        }
        rows = await self._write("insert", payload)

        category = self.transformer.transform(rows[0] if rows else payload)
        console.print(f"[green]✓ Category created: {name}[/green]")
        return category

    async def update_category(
        self,
        category: Category,
        *,
        name: Optional[str] = None,
        description: Optional[str] = None,
        image: ImageSource = None,
    ) -> Category:
        """
        Edit a category. The slug is regenerated only when the name changes.
        """
        patch: dict = {"updated_at": _now()}

        if name is not None:
            name = name.strip()
            if not name:
                raise MutationError("يرجى إدخال اسم الفئة", retryable=False)
            patch["name"] = name
            if name != category.name:
                patch["slug"] = generate_slug(name)

        if description is not None:
            patch["description"] = description.strip() or None

        if image:
            image_url = await self._upload_image(image, category.id)
            if image_url:
                patch["image"] = image_url
                if category.image:
                    await self.images.delete_image(self.storage.categories_bucket, category.image)

        rows = await self._write("update", patch, id_value=category.id)

        updated = self.transformer.transform(
            rows[0] if rows else {**category.model_dump(), **patch}
        )
        console.print(f"[green]✓ Category updated: {updated.name}[/green]")
        return updated

    async def delete_category(self, category: Category) -> None:
        """Delete a category and its stored image."""
        if category.image:
            await self.images.delete_image(self.storage.categories_bucket, category.image)

        try:
            await self.gateway.mutate_collection(self.table, "delete", id_value=category.id)
        except GatewayError as e:
            raise MutationError(f"خطأ في حذف الفئة: {e}", cause=e) from e

        console.print(f"[green]Deleted category: {category.name}[/green]")
