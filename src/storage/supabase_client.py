"""
Supabase client access with table-name alias fallback.

The scheduled post, account and user tables are written by a separate ORM
whose table naming does not always match what this service sees, so every
query is run against an ordered list of known aliases and the first table
that answers wins.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional, Sequence, Tuple

import httpx
from postgrest.exceptions import APIError
from supabase import Client, create_client

from src.config import get_settings

logger = logging.getLogger(__name__)

QueryBuilder = Callable[[Any], Any]

_client: Optional[Client] = None


class StoreError(Exception):
    """Raised when a store query fails against every table alias."""

    def __init__(
        self,
        message: str,
        tables: Optional[Sequence[str]] = None,
        errors: Optional[List[str]] = None,
    ) -> None:
        super().__init__(message)
        self.message = message
        self.tables = list(tables or [])
        self.errors = errors or []


def get_supabase_client() -> Client:
    """
    Get the shared Supabase client, creating it on first use.

    Raises:
        StoreError: If SUPABASE_URL or SUPABASE_SERVICE_ROLE_KEY is missing
    """
    global _client
    if _client is None:
        settings = get_settings()
        if not settings.is_supabase_configured:
            raise StoreError("Supabase is not configured (SUPABASE_URL / SUPABASE_SERVICE_ROLE_KEY)")
        _client = create_client(
            settings.database.supabase_url,
            settings.database.supabase_service_role_key.get_secret_value(),
        )
        logger.info("Supabase client initialized")
    return _client


async def execute_with_table_fallback(
    client: Any,
    tables: Sequence[str],
    build: QueryBuilder,
    require_rows: bool = False,
) -> Tuple[str, Any]:
    """
    Run a query against each table alias in order.

    Args:
        client: Supabase client (sync; calls run in a worker thread)
        tables: Table names to try, most likely first
        build: Callable receiving ``client.table(name)`` and returning the
            query builder to execute
        require_rows: Treat an empty result as a miss and try the next table

    Returns:
        Tuple of (table name that answered, response)

    Raises:
        StoreError: If no table produced an acceptable response
    """
    errors: List[str] = []

    for table in tables:
        def run(name: str = table) -> Any:
            return build(client.table(name)).execute()

        try:
            response = await asyncio.to_thread(run)
        except (APIError, httpx.HTTPError) as e:
            logger.debug(f"Query against table '{table}' failed: {e}")
            errors.append(f"{table}: {e}")
            continue

        if require_rows and not response.data:
            errors.append(f"{table}: no rows")
            continue

        return table, response

    raise StoreError(
        f"Query failed for tables {', '.join(tables)}",
        tables=tables,
        errors=errors,
    )
