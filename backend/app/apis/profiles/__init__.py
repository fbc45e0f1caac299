"""Profile and dashboard API for the signed-in user."""

from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import APIRouter
from pydantic import BaseModel, Field

from app.auth import AuthorizedUser
from app.libs.config import get_settings
from app.libs.database import get_db_connection
from app.libs.models import PluginStatus, Profile, ProfileStatus, SubscriptionTier, UserRole
from app.libs.usage import trial_days_remaining
from app.libs.workflow import PLUGIN_IN_PROGRESS

router = APIRouter(tags=["Profile"])


class ProfileResponse(BaseModel):
    id: str
    full_name: Optional[str]
    role: str
    subscription_tier: str
    subscription_status: str
    trial_ends_at: Optional[datetime]
    trial_days_remaining: int
    created_at: datetime
    updated_at: datetime


class ProfileUpdate(BaseModel):
    full_name: str = Field(..., min_length=1, max_length=200)


class DashboardStats(BaseModel):
    total_plugins: int
    pending_plugins: int
    completed_plugins: int


class DashboardResponse(BaseModel):
    profile: ProfileResponse
    stats: DashboardStats


def _profile_response(profile: Profile) -> ProfileResponse:
    return ProfileResponse(
        id=profile.id,
        full_name=profile.full_name,
        role=profile.role.value,
        subscription_tier=profile.subscription_tier.value,
        subscription_status=profile.subscription_status.value,
        trial_ends_at=profile.trial_ends_at,
        trial_days_remaining=trial_days_remaining(profile.trial_ends_at),
        created_at=profile.created_at,
        updated_at=profile.updated_at,
    )


async def ensure_profile(conn, user_id: str, full_name: Optional[str] = None) -> Profile:
    """Fetch the user's profile, creating a free trial profile on first visit."""
    row = await conn.fetchrow("SELECT * FROM profiles WHERE id = $1", user_id)
    if not row:
        trial_ends_at = datetime.now(timezone.utc) + timedelta(days=get_settings().TRIAL_DAYS)
        row = await conn.fetchrow(
            """
            INSERT INTO profiles (id, full_name, role, subscription_tier, subscription_status, trial_ends_at)
            VALUES ($1, $2, $3, $4, $5, $6)
            ON CONFLICT (id) DO UPDATE SET updated_at = profiles.updated_at
            RETURNING *
            """,
            user_id,
            full_name or "",
            UserRole.USER.value,
            SubscriptionTier.FREE.value,
            ProfileStatus.TRIAL.value,
            trial_ends_at,
        )
    return Profile.from_row(row)


@router.get("/profile", response_model=ProfileResponse)
async def get_profile(user: AuthorizedUser):
    conn = await get_db_connection()
    try:
        return _profile_response(await ensure_profile(conn, user.sub))
    finally:
        await conn.close()


@router.put("/profile", response_model=ProfileResponse)
async def update_profile(update: ProfileUpdate, user: AuthorizedUser):
    conn = await get_db_connection()
    try:
        await ensure_profile(conn, user.sub)
        row = await conn.fetchrow(
            "UPDATE profiles SET full_name = $1, updated_at = NOW() WHERE id = $2 RETURNING *",
            update.full_name,
            user.sub,
        )
        return _profile_response(Profile.from_row(row))
    finally:
        await conn.close()


@router.get("/dashboard", response_model=DashboardResponse)
async def get_dashboard(user: AuthorizedUser):
    """Profile summary plus plugin request counts by progress."""
    conn = await get_db_connection()
    try:
        profile = await ensure_profile(conn, user.sub)
        rows = await conn.fetch(
            "SELECT status, COUNT(*) AS count FROM plugin_requests WHERE user_id = $1 GROUP BY status",
            user.sub,
        )
        counts = {row["status"]: row["count"] for row in rows}

        return DashboardResponse(
            profile=_profile_response(profile),
            stats=DashboardStats(
                total_plugins=sum(counts.values()),
                pending_plugins=sum(counts.get(s.value, 0) for s in PLUGIN_IN_PROGRESS),
                completed_plugins=counts.get(PluginStatus.COMPLETED.value, 0),
            ),
        )
    finally:
        await conn.close()
