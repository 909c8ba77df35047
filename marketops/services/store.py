"""
Helpers for running supabase-py queries from async services.
"""

import asyncio
from typing import Any, Dict, List, Optional

from .errors import StoreError


async def run_query(table: str, query) -> Any:
    """
    Execute a query builder off the event loop.

    Raises:
        StoreError: If the request fails, tagged with the table name
    """
    try:
        return await asyncio.to_thread(query.execute)
    except Exception as e:
        raise StoreError(table, str(e)) from e


def rows_of(result: Any) -> List[Dict[str, Any]]:
    """Rows of a result; maybe_single() may hand back None instead of a response."""
    if result is None or not result.data:
        return []
    if isinstance(result.data, list):
        return result.data
    return [result.data]


def first_row(result: Any) -> Optional[Dict[str, Any]]:
    rows = rows_of(result)
    return rows[0] if rows else None
