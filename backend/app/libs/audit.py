"""Admin audit log."""

from typing import Optional

import asyncpg

from app.libs.log import log
from app.libs.models import ResourceType


async def record_admin_action(
    conn: asyncpg.Connection,
    admin_id: str,
    action: str,
    resource_type: ResourceType,
    resource_id: Optional[str] = None,
) -> None:
    """Insert an admin_logs row for a mutation made through the admin console."""
    await conn.execute(
        """
        INSERT INTO admin_logs (admin_id, action, resource_type, resource_id)
        VALUES ($1, $2, $3, $4)
        """,
        admin_id,
        action,
        resource_type.value,
        resource_id,
    )
    log("ADMIN", action, ref=admin_id)
