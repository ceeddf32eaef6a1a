"""
Supabase gateway for the catalog.

Single typed entry point to the hosted backend:

- Table rows -> PostgreSQL via PostgREST (query / insert / update / delete)
- Change feeds -> Supabase Realtime channels
- Images -> Supabase Storage buckets
- Privileged SQL -> RPC procedures
"""

import asyncio
from typing import Any, Awaitable, Callable, Optional, TypeVar

from rich.console import Console
from supabase import AsyncClient, acreate_client

from config.settings import SupabaseConfig
from catalog.errors import GatewayError, GatewayTimeoutError

console = Console()

T = TypeVar("T")

MUTATIONS = ("insert", "update", "upsert", "delete")

# Realtime payload callback: receives the raw change payload
ChangeHandler = Callable[[dict], None]


class SupabaseGateway:
    """
    Async wrapper around a Supabase client.

    Every call is bounded by the configured request timeout. Backend errors
    are raised as GatewayError, timeouts as GatewayTimeoutError.
    """

    def __init__(
        self,
        client: AsyncClient,
        supabase_url: str,
        timeout: float = 30.0,
        schema: str = "public",
    ):
        """
        Initialize the gateway.

        Args:
            client: Connected Supabase async client
            supabase_url: Project URL, used to build public storage addresses
            timeout: Seconds before a pending request is aborted
            schema: Database schema the change feeds listen on
        """
        self.client = client
        self.supabase_url = supabase_url.rstrip("/")
        self.timeout = timeout
        self.schema = schema

    @classmethod
    async def connect(
        cls, settings: Optional[SupabaseConfig] = None, service_role: bool = False
    ) -> "SupabaseGateway":
        """
        Create a gateway from configuration.

        Args:
            settings: Supabase settings (defaults read SUPABASE_URL / SUPABASE_KEY)
            service_role: Use SUPABASE_SERVICE_ROLE_KEY for privileged operations
        """
        settings = settings or SupabaseConfig()
        url, key = settings.require_credentials()
        if service_role:
            if not settings.service_role_key:
                raise ValueError(
                    "SUPABASE_SERVICE_ROLE_KEY is required for privileged operations."
                )
            key = settings.service_role_key

        client = await acreate_client(url, key)
        return cls(
            client,
            url,
            timeout=settings.request_timeout_seconds,
            schema=settings.schema,
        )

    async def _call(self, operation: str, awaitable: Awaitable[T]) -> T:
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError as e:
            raise GatewayTimeoutError(
                operation, f"no response after {self.timeout:.0f}s", cause=e
            ) from e
        except GatewayError:
            raise
        except Exception as e:
            message = getattr(e, "message", None) or str(e)
            code = getattr(e, "code", None)
            raise GatewayError(
                operation, message, cause=e, code=str(code) if code else None
            ) from e

    # ------------------------------------------------------------------
    # Rows
    # ------------------------------------------------------------------

    async def query_collection(
        self,
        name: str,
        *,
        columns: str = "*",
        order_by: Optional[str] = None,
        ascending: bool = True,
        filters: Optional[dict] = None,
        limit: Optional[int] = None,
    ) -> list[dict]:
        """
        Retrieve rows from a table.

        Args:
            name: Table name
            columns: PostgREST select expression (may embed joins)
            order_by: Column to order by
            ascending: Sort direction
            filters: Column -> value equality filters
            limit: Maximum number of rows

        Returns:
            List of rows; an empty result is an empty list, not an error
        """
        query = self.client.table(name).select(columns)

        for column, value in (filters or {}).items():
            query = query.eq(column, value)
        if order_by:
            query = query.order(order_by, desc=not ascending)
        if limit:
            query = query.limit(limit)

        result = await self._call(f"query {name}", query.execute())
        return list(result.data or [])

    async def mutate_collection(
        self,
        name: str,
        op: str,
        payload: Any = None,
        *,
        id_field: str = "id",
        id_value: Any = None,
        filters: Optional[dict] = None,
        on_conflict: Optional[str] = None,
    ) -> list[dict]:
        """
        Insert, update, upsert or delete rows.

        Args:
            name: Table name
            op: One of insert, update, upsert, delete
            payload: Row(s) for insert/upsert, patch for update
            id_field: Identifying column for update/delete
            id_value: Identifying value for update/delete
            filters: Column -> value predicate for delete/update (instead of id)
            on_conflict: Conflict column for upsert

        Returns:
            Rows returned by the backend
        """
        if op not in MUTATIONS:
            raise ValueError(f"Unknown mutation '{op}'. Expected one of {MUTATIONS}.")

        table = self.client.table(name)

        if op == "insert":
            query = table.insert(payload)
        elif op == "upsert":
            query = (
                table.upsert(payload, on_conflict=on_conflict)
                if on_conflict
                else table.upsert(payload)
            )
        else:
            predicate = dict(filters or {})
            if id_value is not None:
                predicate[id_field] = id_value
            if not predicate:
                # Refuse to update or delete a whole table by accident
                raise ValueError(f"{op} on '{name}' needs an id or a filter.")

            query = table.update(payload) if op == "update" else table.delete()
            for column, value in predicate.items():
                if isinstance(value, (list, tuple, set)):
                    query = query.in_(column, list(value))
                else:
                    query = query.eq(column, value)

        result = await self._call(f"{op} {name}", query.execute())
        return list(result.data or [])

    # ------------------------------------------------------------------
    # Change feeds
    # ------------------------------------------------------------------

    async def subscribe_to_changes(self, name: str, handler: ChangeHandler) -> Any:
        """
        Open a realtime channel delivering every change on a table.

        Args:
            name: Table name
            handler: Called with each raw change payload

        Returns:
            Channel handle, to pass to remove_subscription()
        """
        channel = self.client.channel(f"{name}-changes")
        channel.on_postgres_changes(
            event="*", schema=self.schema, table=name, callback=handler
        )
        await self._call(f"subscribe {name}", channel.subscribe())
        console.print(f"[dim]✓ Realtime channel open: {name}[/dim]")
        return channel

    async def remove_subscription(self, handle: Any) -> None:
        """Close a channel opened by subscribe_to_changes()."""
        await self._call("unsubscribe", self.client.remove_channel(handle))

    # ------------------------------------------------------------------
    # Storage
    # ------------------------------------------------------------------

    def public_url(self, bucket: str, key: str) -> str:
        """
        Get the public URL for an object in a public bucket.

        Args:
            bucket: Bucket name
            key: Path within the bucket
        """
        return f"{self.supabase_url}/storage/v1/object/public/{bucket}/{key.lstrip('/')}"

    async def upload_object(
        self,
        bucket: str,
        key: str,
        data: bytes,
        *,
        content_type: str,
        cache_control: str,
    ) -> str:
        """
        Upload bytes to a storage bucket (overwriting an existing key).

        Returns:
            Public URL of the stored object
        """
        await self._call(
            f"upload {bucket}/{key}",
            self.client.storage.from_(bucket).upload(
                key,
                data,
                {
                    "content-type": content_type,
                    "cache-control": cache_control,
                    "upsert": "true",
                },
            ),
        )
        return self.public_url(bucket, key)

    async def remove_objects(self, bucket: str, keys: list[str]) -> None:
        """Delete objects from a storage bucket."""
        await self._call(
            f"remove {bucket}", self.client.storage.from_(bucket).remove(keys)
        )

    # ------------------------------------------------------------------
    # Procedures
    # ------------------------------------------------------------------

    async def call_procedure(self, name: str, args: Optional[dict] = None) -> Any:
        """
        Invoke a server-side procedure.

        Only for privileged or schema operations, never on the hot read path.
        """
        result = await self._call(
            f"rpc {name}", self.client.rpc(name, args or {}).execute()
        )
        return result.data
