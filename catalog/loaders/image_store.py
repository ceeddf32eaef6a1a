"""
Image storage for product and category pictures.

Images are compressed before upload, stored with long-lived cache headers
and served with a ?v= version parameter so updates bypass caches.
"""

import base64
import binascii
import io
import mimetypes
import re
import time
from pathlib import Path
from typing import Optional, Union

from PIL import Image, UnidentifiedImageError
from rich.console import Console

from config.settings import StorageConfig
from catalog.errors import GatewayError, MutationError

console = Console()

ImageSource = Union[bytes, str, Path, None]

DATA_URL_PATTERN = re.compile(r"^data:(image/[\w.+-]+);base64,(.+)$", re.DOTALL)

# Stored objects are recognized by their public storage path
PUBLIC_STORAGE_MARKER = "/storage/v1/object/public/"


def add_version_to_url(url: str, version: Optional[Union[str, int]] = None) -> str:
    """
    Append a version query parameter to an image URL.

    Args:
        url: Image URL
        version: Version value (defaults to the current time in ms)

    Returns:
        URL with v=<version>, unchanged if it already carries one
    """
    if not url:
        return ""
    if "v=" in url:
        return url
    value = version if version is not None else int(time.time() * 1000)
    separator = "&" if "?" in url else "?"
    return f"{url}{separator}v={value}"


def decode_data_url(data_url: str) -> tuple[bytes, str]:
    """
    Decode a base64 data URL.

    Returns:
        (bytes, content_type)
    """
    match = DATA_URL_PATTERN.match(data_url.strip())
    if not match:
        raise ValueError("Invalid base64 image format")
    try:
        return base64.b64decode(match.group(2), validate=False), match.group(1)
    except binascii.Error as e:
        raise ValueError(f"Invalid base64 image data: {e}") from e


def compress_image(data: bytes, max_width: int = 800, quality: int = 65) -> bytes:
    """
    Downscale to max_width (keeping the aspect ratio) and re-encode as JPEG.

    Returns the original bytes if the image cannot be decoded.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.width > max_width:
                ratio = max_width / img.width
                img = img.resize((max_width, max(1, round(img.height * ratio))))
            if img.mode != "RGB":
                img = img.convert("RGB")

            out = io.BytesIO()
            img.save(out, format="JPEG", quality=quality, optimize=True)
    except (UnidentifiedImageError, OSError) as e:
        console.print(f"[yellow]Error compressing image, using original: {e}[/yellow]")
        return data

    compressed = out.getvalue()
    if data:
        reduction = (1 - len(compressed) / len(data)) * 100
        console.print(
            f"[dim]Image compressed: {len(data)} -> {len(compressed)} bytes "
            f"({reduction:.1f}% reduction)[/dim]"
        )
    return compressed


def key_from_url(url: str) -> Optional[str]:
    """Storage key of a public object URL: its last path segment, query stripped."""
    if not url:
        return None
    name = url.split("?")[0].rstrip("/").split("/")[-1]
    return name or None


class ImageStore:
    """Uploads and deletes catalog images in Supabase Storage."""

    def __init__(self, gateway, storage_config: Optional[StorageConfig] = None):
        self.gateway = gateway
        self.config = storage_config or StorageConfig()

    def _get_extension(self, content_type: str) -> str:
        """Get file extension from content-type."""
        if "png" in content_type:
            return ".png"
        elif "webp" in content_type:
            return ".webp"
        elif "gif" in content_type:
            return ".gif"
        return ".jpg"

    def _read_source(self, source: ImageSource) -> Optional[tuple[bytes, str]]:
        if isinstance(source, Path):
            content_type = mimetypes.guess_type(source.name)[0] or "image/jpeg"
            return source.read_bytes(), content_type
        if isinstance(source, bytes):
            return source, "image/jpeg"
        if isinstance(source, str) and source.startswith("data:image"):
            data, content_type = decode_data_url(source)
            return data, content_type
        return None

    async def _upload(self, bucket: str, source: ImageSource, owner_id: str) -> str:
        if not source:
            console.print("[dim]No image file or data provided[/dim]")
            return ""

        if isinstance(source, str) and PUBLIC_STORAGE_MARKER in source:
            # Already stored: only refresh the version parameter
            return add_version_to_url(source)

        try:
            read = self._read_source(source)
        except (ValueError, OSError) as e:
            raise MutationError(f"تعذر قراءة الصورة: {e}", retryable=False, cause=e) from e
        if read is None:
            console.print(f"[yellow]Not a valid image source: {str(source)[:30]}...[/yellow]")
            return ""

        data, content_type = read
        if content_type not in self.config.allowed_mime_types:
            raise MutationError(
                f"نوع الملف غير مدعوم: {content_type}", retryable=False
            )

        data = compress_image(data, self.config.max_width, self.config.quality)
        content_type = "image/jpeg"

        if len(data) > self.config.max_file_size:
            raise MutationError(
                "حجم الصورة أكبر من الحد المسموح (10MB)", retryable=False
            )

        key = f"{owner_id}_{int(time.time() * 1000)}{self._get_extension(content_type)}"
        try:
            public_url = await self.gateway.upload_object(
                bucket,
                key,
                data,
                content_type=content_type,
                cache_control=self.config.cache_control,
            )
        except GatewayError as e:
            raise MutationError(f"فشل رفع الصورة: {e}", cause=e) from e

        versioned = add_version_to_url(public_url)
        console.print(f"[dim]  Uploaded: {bucket}/{key}[/dim]")
        return versioned

    async def upload_product_image(self, source: ImageSource, product_id: str) -> str:
        """
        Upload a product image.

        Args:
            source: Raw bytes, a file path, a base64 data URL, or an existing
                storage URL (returned re-versioned without uploading)
            product_id: Used to name the stored object

        Returns:
            Versioned public URL, or "" when there is no image
        """
        return await self._upload(self.config.products_bucket, source, product_id)

    async def upload_category_image(
        self, source: ImageSource, category_id: str = "category"
    ) -> str:
        """Upload a category image. Same sources and result as products."""
        return await self._upload(self.config.categories_bucket, source, category_id)

    async def delete_image(self, bucket: str, url: Optional[str]) -> bool:
        """
        Delete the object behind a public URL.

        Returns:
            True if deleted; failures are logged, never raised
        """
        key = key_from_url(url or "")
        if not key:
            return False
        try:
            await self.gateway.remove_objects(bucket, [key])
        except GatewayError as e:
            console.print(f"[yellow]Warning: Could not delete image {key}: {e}[/yellow]")
            return False
        console.print(f"[dim]Deleted image: {bucket}/{key}[/dim]")
        return True
