"""
Category model and row transformer.
"""

from datetime import datetime
from typing import Any, Optional

from pydantic import BaseModel, ConfigDict, field_validator
from rich.console import Console

console = Console()


class Category(BaseModel):
    """A product category."""

    model_config = ConfigDict(frozen=True, extra="ignore")

    id: str
    name: str
    slug: str = ""
    image: Optional[str] = None
    description: Optional[str] = None
    color: Optional[str] = None  # hsl(...) accent assigned at creation
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @field_validator("id", mode="before")
    @classmethod
    def clean_id(cls, v: Any) -> str:
        if v is None or str(v).strip() == "":
            raise ValueError("category row has no id")
        return str(v)

    @field_validator("name", mode="before")
    @classmethod
    def clean_name(cls, v: Any) -> str:
        return " ".join(str(v or "").split())

    @field_validator("image", "description", "color", mode="before")
    @classmethod
    def empty_to_none(cls, v: Any) -> Optional[str]:
        if v is None:
            return None
        v = str(v).strip()
        return v or None


class CategoryTransformer:
    """Transforms backend category rows into Category models."""

    def transform(self, row: Optional[dict]) -> Optional[Category]:
        if not row:
            return None
        try:
            return Category.model_validate(row)
        except ValueError as e:
            console.print(
                f"[yellow]Skipping invalid category row {row.get('id')}: {e}[/yellow]"
            )
            return None

    def transform_batch(self, rows: Optional[list]) -> list[Category]:
        categories = []
        for row in rows or []:
            category = self.transform(row)
            if category is not None:
                categories.append(category)
        return categories
