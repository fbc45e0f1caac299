"""
Admin Console API

Role-gated endpoints for:
- Platform statistics and the recent activity feed
- Managing users (role, tier, status)
- Browsing subscriptions
- Browsing plugin requests and moving them through their status workflow

Every mutation writes an admin_logs entry.
"""

from datetime import datetime
from typing import Any, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from app.auth import AdminUser
from app.libs.audit import record_admin_action
from app.libs.database import get_db_connection
from app.libs.models import (
    PluginStatus,
    ProfileStatus,
    ResourceType,
    SubscriptionStatus,
    SubscriptionTier,
    UserRole,
)
from app.libs.workflow import InvalidTransition, plugin_transition

router = APIRouter(prefix="/admin", tags=["Admin"])


# ============================================================================
# MODELS
# ============================================================================

class AdminLogEntry(BaseModel):
    id: str
    admin_id: Optional[str]
    action: str
    resource_type: str
    resource_id: Optional[str]
    created_at: datetime


class AdminStats(BaseModel):
    total_users: int
    total_plugins: int
    active_subscriptions: int
    total_pages: int
    recent_activity: List[AdminLogEntry]


class AdminUserItem(BaseModel):
    id: str
    full_name: Optional[str]
    role: str
    subscription_tier: str
    subscription_status: str
    trial_ends_at: Optional[datetime]
    created_at: datetime


class UserUpdate(BaseModel):
    role: Optional[UserRole] = None
    subscription_tier: Optional[SubscriptionTier] = None
    subscription_status: Optional[ProfileStatus] = None


class AdminSubscriptionItem(BaseModel):
    id: str
    user_id: str
    full_name: Optional[str]
    subscription_tier: Optional[str]
    stripe_customer_id: Optional[str]
    stripe_subscription_id: Optional[str]
    plan_type: str
    status: str
    current_period_start: Optional[datetime]
    current_period_end: Optional[datetime]
    created_at: datetime


class AdminPluginItem(BaseModel):
    id: str
    user_id: str
    full_name: Optional[str]
    plugin_name: str
    plugin_type: str
    builder_type: Optional[str]
    status: str
    created_at: datetime


class PluginStatusUpdate(BaseModel):
    status: PluginStatus


# ============================================================================
# HELPERS
# ============================================================================

class _Filters:
    """Accumulates WHERE clauses with positional parameters."""

    def __init__(self):
        self.clauses: List[str] = []
        self.values: List[Any] = []

    def add(self, clause: str, *values: Any) -> None:
        # Placeholders ({} or {0}, {1}) receive the parameter numbers of the values
        numbers = [f"${len(self.values) + i + 1}" for i in range(len(values))]
        self.clauses.append(clause.format(*numbers))
        self.values.extend(values)

    @property
    def sql(self) -> str:
        return f"WHERE {' AND '.join(self.clauses)}" if self.clauses else ""


def _log_from_row(row) -> AdminLogEntry:
    return AdminLogEntry(
        id=str(row["id"]),
        admin_id=str(row["admin_id"]) if row["admin_id"] else None,
        action=row["action"],
        resource_type=row["resource_type"],
        resource_id=str(row["resource_id"]) if row["resource_id"] else None,
        created_at=row["created_at"],
    )


def _user_from_row(row) -> AdminUserItem:
    return AdminUserItem(
        id=str(row["id"]),
        full_name=row["full_name"],
        role=row["role"],
        subscription_tier=row["subscription_tier"],
        subscription_status=row["subscription_status"],
        trial_ends_at=row["trial_ends_at"],
        created_at=row["created_at"],
    )


# ============================================================================
# ENDPOINTS
# ============================================================================

@router.get("/stats", response_model=AdminStats)
async def get_stats(admin: AdminUser):
    """Counts of users, plugin requests, active subscriptions and pages, plus the last 10 admin actions."""
    conn = await get_db_connection()
    try:
        counts = await conn.fetchrow(
            """
            SELECT
                (SELECT COUNT(*) FROM profiles) AS total_users,
                (SELECT COUNT(*) FROM plugin_requests) AS total_plugins,
                (SELECT COUNT(*) FROM subscriptions WHERE status = $1) AS active_subscriptions,
                (SELECT COUNT(*) FROM pages) AS total_pages
            """,
            SubscriptionStatus.ACTIVE.value,
        )
        logs = await conn.fetch(
            "SELECT * FROM admin_logs ORDER BY created_at DESC LIMIT 10"
        )
        return AdminStats(
            total_users=counts["total_users"],
            total_plugins=counts["total_plugins"],
            active_subscriptions=counts["active_subscriptions"],
            total_pages=counts["total_pages"],
            recent_activity=[_log_from_row(row) for row in logs],
        )
    finally:
        await conn.close()


@router.get("/logs", response_model=List[AdminLogEntry])
async def list_admin_logs(admin: AdminUser, resource_type: Optional[ResourceType] = None, limit: int = 50):
    conn = await get_db_connection()
    try:
        filters = _Filters()
        if resource_type:
            filters.add("resource_type = {}", resource_type.value)
        filters.values.append(min(max(limit, 1), 500))
        rows = await conn.fetch(
            f"SELECT * FROM admin_logs {filters.sql} ORDER BY created_at DESC LIMIT ${len(filters.values)}",
            *filters.values,
        )
        return [_log_from_row(row) for row in rows]
    finally:
        await conn.close()


@router.get("/users", response_model=List[AdminUserItem])
async def list_users(admin: AdminUser, search: Optional[str] = None, role: Optional[UserRole] = None):
    conn = await get_db_connection()
    try:
        filters = _Filters()
        if role:
            filters.add("role = {}", role.value)
        if search:
            filters.add("(full_name ILIKE {0} OR id::text ILIKE {0})", f"%{search}%")
        rows = await conn.fetch(
            f"SELECT * FROM profiles {filters.sql} ORDER BY created_at DESC",
            *filters.values,
        )
        return [_user_from_row(row) for row in rows]
    finally:
        await conn.close()


@router.patch("/users/{user_id}", response_model=AdminUserItem)
async def update_user(user_id: str, update: UserUpdate, admin: AdminUser):
    """Change a user's role, tier or subscription status."""
    if user_id == admin.sub and update.role == UserRole.USER:
        raise HTTPException(status_code=400, detail="Admins cannot remove their own admin role")

    conn = await get_db_connection()
    try:
        async with conn.transaction():
            row = await conn.fetchrow(
                """
                UPDATE profiles
                SET role = COALESCE($2, role),
                    subscription_tier = COALESCE($3, subscription_tier),
                    subscription_status = COALESCE($4, subscription_status),
                    updated_at = NOW()
                WHERE id = $1
                RETURNING *
                """,
                user_id,
                update.role.value if update.role else None,
                update.subscription_tier.value if update.subscription_tier else None,
                update.subscription_status.value if update.subscription_status else None,
            )
            if not row:
                raise HTTPException(status_code=404, detail="User not found")

            changes = ", ".join(f"{k}={v.value}" for k, v in update.model_dump(exclude_none=True).items())
            await record_admin_action(
                conn, admin.sub, f"Updated user {row['full_name'] or user_id}: {changes}",
                ResourceType.USER, user_id,
            )
        return _user_from_row(row)
    finally:
        await conn.close()


@router.get("/subscriptions", response_model=List[AdminSubscriptionItem])
async def list_subscriptions(
    admin: AdminUser,
    status: Optional[SubscriptionStatus] = None,
    search: Optional[str] = None,
):
    """
    List subscriptions with the subscriber's name and tier.

    Args:
        status: Only subscriptions in this status
        search: Case-insensitive match on full name or user id
    """
    conn = await get_db_connection()
    try:
        filters = _Filters()
        if status:
            filters.add("s.status = {}", status.value)
        if search:
            filters.add("(p.full_name ILIKE {0} OR s.user_id::text ILIKE {0})", f"%{search}%")
        rows = await conn.fetch(
            f"""
            SELECT s.*, p.full_name, p.subscription_tier
            FROM subscriptions s
            LEFT JOIN profiles p ON p.id = s.user_id
            {filters.sql}
            ORDER BY s.created_at DESC
            """,
            *filters.values,
        )
        return [
            AdminSubscriptionItem(
                id=str(row["id"]),
                user_id=str(row["user_id"]),
                full_name=row["full_name"],
                subscription_tier=row["subscription_tier"],
                stripe_customer_id=row["stripe_customer_id"],
                stripe_subscription_id=row["stripe_subscription_id"],
                plan_type=row["plan_type"],
                status=row["status"],
                current_period_start=row["current_period_start"],
                current_period_end=row["current_period_end"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
    finally:
        await conn.close()


@router.get("/plugins", response_model=List[AdminPluginItem])
async def list_plugins(
    admin: AdminUser,
    status: Optional[PluginStatus] = None,
    builder_type: Optional[str] = None,
    search: Optional[str] = None,
):
    """
    List every plugin request with the requester's name.

    Args:
        status: Only requests in this status
        builder_type: 'divi', 'elementor', or 'standard' for plain plugins
        search: Case-insensitive match on plugin name or requester name
    """
    conn = await get_db_connection()
    try:
        filters = _Filters()
        if status:
            filters.add("pr.status = {}", status.value)
        if builder_type == "standard":
            filters.add("pr.builder_type IS NULL")
        elif builder_type:
            filters.add("pr.builder_type = {}", builder_type)
        if search:
            filters.add("(pr.plugin_name ILIKE {0} OR p.full_name ILIKE {0})", f"%{search}%")
        rows = await conn.fetch(
            f"""
            SELECT pr.*, p.full_name
            FROM plugin_requests pr
            LEFT JOIN profiles p ON p.id = pr.user_id
            {filters.sql}
            ORDER BY pr.created_at DESC
            """,
            *filters.values,
        )
        return [
            AdminPluginItem(
                id=str(row["id"]),
                user_id=str(row["user_id"]),
                full_name=row["full_name"],
                plugin_name=row["plugin_name"],
                plugin_type=row["plugin_type"],
                builder_type=row["builder_type"],
                status=row["status"],
                created_at=row["created_at"],
            )
            for row in rows
        ]
    finally:
        await conn.close()


@router.put("/plugins/{request_id}/status")
async def update_plugin_status(request_id: str, update: PluginStatusUpdate, admin: AdminUser):
    """Move a plugin request to its next status. Invalid transitions are 409."""
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            row = await conn.fetchrow(
                "SELECT plugin_name, status FROM plugin_requests WHERE id = $1 FOR UPDATE",
                request_id,
            )
            if not row:
                raise HTTPException(status_code=404, detail="Plugin request not found")
            try:
                target = plugin_transition(row["status"], update.status)
            except InvalidTransition as e:
                raise HTTPException(status_code=409, detail=e.message)

            await conn.execute(
                "UPDATE plugin_requests SET status = $1, updated_at = NOW() WHERE id = $2",
                target.value,
                request_id,
            )
            await record_admin_action(
                conn, admin.sub, f"Set plugin {row['plugin_name']} to {target.value}",
                ResourceType.PLUGIN, request_id,
            )
        return {"success": True, "status": target.value}
    finally:
        await conn.close()
