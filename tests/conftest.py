"""
pytest configuration and shared fixtures for catalog tests.
"""

import sys
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest

# Add project root to path for imports
project_root = Path(__file__).parent.parent
sys.path.insert(0, str(project_root))

from catalog.errors import GatewayError  # noqa: E402

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


class FakeGateway:
    """In-memory stand-in for SupabaseGateway."""

    supabase_url = "https://example.supabase.co"

    def __init__(self, tables=None):
        self.tables = {name: [dict(r) for r in rows] for name, rows in (tables or {}).items()}
        self.calls = []
        self.failing_tables = set()
        self.failing_columns = set()
        self.mutation_errors = []
        self.fail_subscribe = False
        self.handlers = {}
        self.opened = []
        self.closed = []
        self.objects = {}
        self.removed = []
        self.procedures = {}

    # Rows

    async def query_collection(
        self, name, *, columns="*", order_by=None, ascending=True, filters=None, limit=None
    ):
        self.calls.append(("query", name, columns))
        if name in self.failing_tables or (name, columns) in self.failing_columns:
            raise GatewayError(f"query {name}", "relation does not exist")

        rows = [dict(r) for r in self.tables.get(name, [])]
        for column, value in (filters or {}).items():
            rows = [r for r in rows if str(r.get(column)) == str(value)]
        if order_by:
            rows.sort(key=lambda r: r.get(order_by) or "", reverse=not ascending)
        if "product_categories(" in columns:
            links = self.tables.get("product_categories", [])
            for row in rows:
                row["product_categories"] = [
                    {"category_id": link["category_id"]}
                    for link in links
                    if link["product_id"] == row.get("id")
                ]
        return rows[:limit] if limit else rows

    def _matches(self, row, id_field, id_value, filters):
        predicate = dict(filters or {})
        if id_value is not None:
            predicate[id_field] = id_value
        return all(str(row.get(k)) == str(v) for k, v in predicate.items())

    async def mutate_collection(
        self, name, op, payload=None, *, id_field="id", id_value=None, filters=None, on_conflict=None
    ):
        self.calls.append((op, name, payload if payload is not None else id_value or filters))
        if self.mutation_errors:
            raise self.mutation_errors.pop(0)

        table = self.tables.setdefault(name, [])
        if op in ("insert", "upsert"):
            rows = payload if isinstance(payload, list) else [payload]
            table.extend(dict(r) for r in rows)
            return [dict(r) for r in rows]
        matched = [r for r in table if self._matches(r, id_field, id_value, filters)]
        if op == "update":
            for row in matched:
                row.update(payload)
            return [dict(r) for r in matched]
        if op == "delete":
            self.tables[name] = [r for r in table if r not in matched]
            return [dict(r) for r in matched]
        raise ValueError(op)

    # Change feeds

    async def subscribe_to_changes(self, name, handler):
        if self.fail_subscribe:
            raise GatewayError(f"subscribe {name}", "websocket refused")
        self.handlers[name] = handler
        self.opened.append(name)
        return ("channel", name, len(self.opened))

    async def remove_subscription(self, handle):
        self.closed.append(handle)
        self.handlers.pop(handle[1], None)

    def emit(self, name, event_type, new=None, old=None):
        """Deliver a change the way the realtime client does."""
        handler = self.handlers[name]
        handler(
            {
                "data": {
                    "type": event_type,
                    "table": name,
                    "record": new or {},
                    "old_record": old or {},
                }
            }
        )

    # Storage

    def public_url(self, bucket, key):
        return f"{self.supabase_url}/storage/v1/object/public/{bucket}/{key}"

    async def upload_object(self, bucket, key, data, *, content_type, cache_control):
        self.objects[(bucket, key)] = (data, content_type, cache_control)
        return self.public_url(bucket, key)

    async def remove_objects(self, bucket, keys):
        self.removed.append((bucket, list(keys)))

    # Procedures

    async def call_procedure(self, name, args=None):
        self.calls.append(("rpc", name, args))
        result = self.procedures.get(name)
        if isinstance(result, Exception):
            raise result
        return result


def make_product_row(index, **overrides):
    """A products table row, newest first by index."""
    row = {
        "id": f"p{index}",
        "name": f"منتج {index}",
        "product_code": f"C-{index:03d}",
        "box_quantity": 12,
        "piece_price": 10,
        "wholesale_price": 8,
        "image_url": None,
        "is_new": False,
        "created_at": (NOW - timedelta(hours=index)).isoformat(),
        "updated_at": (NOW - timedelta(hours=index)).isoformat(),
        "category_id": "c1",
    }
    row.update(overrides)
    return row


@pytest.fixture
def product_rows():
    """Factory: product_rows(n, **overrides) -> list of rows p1..pn."""

    def factory(count, **overrides):
        return [make_product_row(i, **overrides) for i in range(1, count + 1)]

    return factory


@pytest.fixture
def gateway():
    return FakeGateway()


@pytest.fixture
def make_gateway():
    """Factory: make_gateway(products=[...], categories=[...])."""

    def factory(**tables):
        return FakeGateway(tables)

    return factory
