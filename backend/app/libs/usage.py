"""Plan limit checks for plugin requests and design conversions."""

from datetime import datetime, timezone
import math
from typing import Optional

import asyncpg

from app.libs.log import log
from app.libs.models import PlanLimits


class PlanLimitExceeded(Exception):
    """Raised when a user has used up a limit of their pricing plan"""
    def __init__(self, limit_name: str, limit: int, used: int):
        self.limit_name = limit_name
        self.limit = limit
        self.used = used
        self.message = f"Plan limit reached: {used}/{limit} {limit_name.replace('max_', '')}"
        super().__init__(self.message)


async def get_plan_limits(conn: asyncpg.Connection, user_id: str) -> PlanLimits:
    """Limits of the active pricing plan matching the user's subscription tier."""
    limits = await conn.fetchval(
        """
        SELECT pp.limits
        FROM profiles p
        JOIN pricing_plans pp ON pp.slug = p.subscription_tier AND pp.is_active
        WHERE p.id = $1
        """,
        user_id,
    )
    return PlanLimits.from_json(limits)


async def check_limit(conn: asyncpg.Connection, user_id: str, limit_name: str, table: str) -> None:
    """
    Raise PlanLimitExceeded when the user's row count in `table` has reached the limit.

    A limit of 0 means unlimited. Call inside the transaction that inserts the
    new row: the advisory lock holds other inserts for the same user and table
    until it commits.
    """
    limits = await get_plan_limits(conn, user_id)
    limit = getattr(limits, limit_name)
    if not limit:
        return

    await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", f"{table}:{user_id}")
    used = await conn.fetchval(f"SELECT COUNT(*) FROM {table} WHERE user_id = $1", user_id)
    log("LIMITS", f"{limit_name}: {used}/{limit}", ref=user_id)
    if used >= limit:
        raise PlanLimitExceeded(limit_name, limit, used)


def trial_days_remaining(trial_ends_at: Optional[datetime], now: Optional[datetime] = None) -> int:
    """Whole days left in a trial, rounded up and never negative."""
    if not trial_ends_at:
        return 0
    now = now or datetime.now(timezone.utc)
    if trial_ends_at.tzinfo is None:
        trial_ends_at = trial_ends_at.replace(tzinfo=timezone.utc)
    seconds = (trial_ends_at - now).total_seconds()
    return max(0, math.ceil(seconds / 86400))
