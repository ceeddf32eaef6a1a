"""
Schema patches applied through the exec_sql procedure.

Requires a gateway connected with the service role key.
"""

import re
from typing import Optional

from rich.console import Console

from catalog.errors import GatewayError

console = Console()

IDENTIFIER = re.compile(r"^[A-Za-z_][A-Za-z0-9_]*$")

CATEGORIES_DDL = """
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    name TEXT NOT NULL,
    slug TEXT NOT NULL UNIQUE,
    image TEXT,
    color TEXT,
    description TEXT,
    created_at TIMESTAMPTZ DEFAULT NOW(),
    updated_at TIMESTAMPTZ DEFAULT NOW()
"""

PRODUCT_CATEGORIES_DDL = """
    id UUID PRIMARY KEY DEFAULT gen_random_uuid(),
    product_id UUID NOT NULL REFERENCES products(id) ON DELETE CASCADE,
    category_id UUID NOT NULL REFERENCES categories(id) ON DELETE CASCADE,
    UNIQUE (product_id, category_id)
"""


def _identifier(name: str) -> str:
    if not IDENTIFIER.match(name or ""):
        raise ValueError(f"Invalid SQL identifier: {name!r}")
    return name


class SchemaPatcher:
    """Idempotent column/table creation."""

    def __init__(self, gateway, procedure: str = "exec_sql"):
        self.gateway = gateway
        self.procedure = procedure

    async def run(self, sql: str) -> bool:
        """Execute SQL. Failures are logged and reported as False."""
        try:
            await self.gateway.call_procedure(self.procedure, {"query": sql})
        except GatewayError as e:
            console.print(f"[yellow]Schema patch failed: {e}[/yellow]")
            return False
        return True

    async def ensure_column(self, table: str, column: str, column_type: str = "TEXT") -> bool:
        """Add a column if it does not exist yet."""
        sql = (
            f"ALTER TABLE IF EXISTS {_identifier(table)} "
            f"ADD COLUMN IF NOT EXISTS {_identifier(column)} {column_type};"
        )
        return await self.run(sql)

    async def ensure_table(self, table: str, columns_ddl: Optional[str] = None) -> bool:
        """Create a table if it does not exist yet."""
        ddl = columns_ddl or {
            "categories": CATEGORIES_DDL,
            "product_categories": PRODUCT_CATEGORIES_DDL,
        }.get(table)
        if not ddl:
            raise ValueError(f"No column definitions known for table '{table}'")
        ok = await self.run(f"CREATE TABLE IF NOT EXISTS {_identifier(table)} ({ddl.strip()});")
        if ok:
            console.print(f"[dim]✓ Table '{table}' ready[/dim]")
        return ok
