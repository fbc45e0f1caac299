"""Database connection helper."""

import json

import asyncpg

from app.libs.config import get_settings


async def _init_connection(conn: asyncpg.Connection) -> None:
    """Decode json/jsonb columns to Python objects and encode them back."""
    for typename in ("json", "jsonb"):
        await conn.set_type_codec(
            typename,
            encoder=json.dumps,
            decoder=json.loads,
            schema="pg_catalog",
        )


async def get_db_connection(database_url: str = None) -> asyncpg.Connection:
    """Get database connection."""
    conn = await asyncpg.connect(database_url or get_settings().DATABASE_URL)
    await _init_connection(conn)
    return conn
