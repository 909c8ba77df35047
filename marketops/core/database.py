"""
Database client and utilities
"""

from typing import Optional
from supabase import create_client, Client, ClientOptions
from .config import Config


_supabase_client: Optional[Client] = None


def create_store_client(
    url: Optional[str] = None,
    key: Optional[str] = None,
    schema: Optional[str] = None
) -> Client:
    """
    Build a Supabase client from explicit settings.

    Args:
        url: Supabase project URL (defaults to Config.SUPABASE_URL)
        key: API key (defaults to Config.SUPABASE_KEY)
        schema: Postgres schema holding the tables (defaults to Config.SUPABASE_SCHEMA)

    Returns:
        Supabase client instance
    """
    url = url or Config.SUPABASE_URL
    key = key or Config.SUPABASE_KEY

    if not url or not key:
        missing = [name for name, value in (('SUPABASE_URL', url), ('SUPABASE_KEY', key)) if not value]
        raise ValueError(f"Missing required configuration: {', '.join(missing)}")

    return create_client(
        url,
        key,
        options=ClientOptions(schema=schema or Config.SUPABASE_SCHEMA)
    )


def get_supabase_client() -> Client:
    """
    Get or create Supabase client (singleton pattern)

    Returns:
        Supabase client instance
    """
    global _supabase_client

    if _supabase_client is None:
        Config.validate()
        _supabase_client = create_store_client()

    return _supabase_client


def reset_supabase_client():
    """Reset the Supabase client (useful for testing)"""
    global _supabase_client
    _supabase_client = None
