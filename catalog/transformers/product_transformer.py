"""
Product transformer for turning backend rows into catalog products.
Derived prices (pack/box) are always recomputed here, never read back.
"""

import math
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from rich.console import Console

console = Console()

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


def _to_number(v: Any) -> float:
    """Coerce numeric strings and junk to a float, 0 when unusable."""
    if v is None or isinstance(v, bool):
        return 0.0
    try:
        number = float(v)
    except (TypeError, ValueError):
        return 0.0
    return 0.0 if math.isnan(number) or math.isinf(number) else number


def _as_utc(v: Optional[datetime]) -> Optional[datetime]:
    if v is not None and v.tzinfo is None:
        return v.replace(tzinfo=timezone.utc)
    return v


class Product(BaseModel):
    """A catalog product as rendered by a catalog view."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: Optional[str] = None
    product_code: str = ""
    box_quantity: int = Field(ge=0, default=0)
    piece_price: float = Field(ge=0, default=0.0)
    wholesale_price: Optional[float] = None
    pack_price: float = 0.0  # piece_price * pack size
    box_price: float = 0.0  # piece_price * box_quantity
    image_url: Optional[str] = None
    is_new: bool = False
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    category_id: Optional[str] = None
    category_ids: list[str] = Field(default_factory=list)

    @field_validator("id", mode="before")
    @classmethod
    def clean_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("product row has no id")
        return str(v)

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: Any) -> Optional[str]:
        """Missing names stay missing so search can skip them."""
        if v is None:
            return None
        v = " ".join(str(v).split())
        return v or None

    @field_validator("product_code", mode="before")
    @classmethod
    def clean_code(cls, v: Any) -> str:
        return str(v).strip() if v is not None else ""

    @field_validator("box_quantity", mode="before")
    @classmethod
    def clean_quantity(cls, v: Any) -> int:
        return int(_to_number(v))

    @field_validator("piece_price", mode="before")
    @classmethod
    def clean_price(cls, v: Any) -> float:
        return _to_number(v)

    @field_validator("wholesale_price", mode="before")
    @classmethod
    def clean_wholesale(cls, v: Any) -> Optional[float]:
        if v is None or v == "":
            return None
        return _to_number(v)

    @field_validator("image_url", mode="before")
    @classmethod
    def clean_image(cls, v: Any) -> Optional[str]:
        if not v:
            return None
        return str(v)

    @field_validator("is_new", mode="before")
    @classmethod
    def clean_flag(cls, v: Any) -> bool:
        return bool(v)

    @field_validator("category_id", mode="before")
    @classmethod
    def clean_category(cls, v: Any) -> Optional[str]:
        if v is None or v == "":
            return None
        return str(v)

    @field_validator("created_at", "updated_at")
    @classmethod
    def clean_timestamp(cls, v: Optional[datetime]) -> Optional[datetime]:
        return _as_utc(v)

    @property
    def sort_timestamp(self) -> float:
        """Creation time in seconds; products without one sort last."""
        return (self.created_at or EPOCH).timestamp()

    def age_in_days(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole days since creation, rounded up. None without a timestamp."""
        if self.created_at is None:
            return None
        now = _as_utc(now) or datetime.now(timezone.utc)
        seconds = abs((now - self.created_at).total_seconds())
        return math.ceil(seconds / 86400)


class ProductTransformer:
    """Transforms backend product rows into validated Product models."""

    # Columns owned by the client; stored values are never trusted
    DERIVED_FIELDS = ("pack_price", "box_price")

    def __init__(self, pack_size: int = 6):
        self.pack_size = pack_size

    def with_derived_prices(self, product: Product) -> Product:
        """Return a copy of the product with pack and box prices recomputed."""
        return product.model_copy(
            update={
                "pack_price": product.piece_price * self.pack_size,
                "box_price": product.piece_price * product.box_quantity,
            }
        )

    def transform(self, row: Optional[dict]) -> Optional[Product]:
        """Transform one backend row. Returns None for null or invalid rows."""
        if not row:
            return None

        data = {k: v for k, v in row.items() if k not in self.DERIVED_FIELDS}

        # Many-to-many category links come back as an embedded join
        links = data.pop("product_categories", None) or []
        if links and "category_ids" not in data:
            data["category_ids"] = [
                str(link["category_id"])
                for link in links
                if isinstance(link, dict) and link.get("category_id") is not None
            ]

        try:
            product = Product.model_validate(data)
        except ValueError as e:
            console.print(
                f"[yellow]Skipping invalid product row {row.get('id')}: {e}[/yellow]"
            )
            return None

        return self.with_derived_prices(product)

    def transform_batch(self, rows: Optional[list]) -> list[Product]:
        """Transform rows, dropping nulls and rows that fail validation."""
        products = []
        for row in rows or []:
            product = self.transform(row)
            if product is not None:
                products.append(product)
        return products
