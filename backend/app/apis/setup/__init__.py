"""
Setup API

First-run endpoints used by the setup wizard:
- Report whether setup has been completed
- Test a Postgres connection and whether migrations have run
- Promote the first signed-in user to admin
"""

import asyncio
from datetime import datetime, timezone
from typing import Literal, Optional

import asyncpg
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, EmailStr, Field

from app.auth import AuthorizedUser
from app.libs.database import get_db_connection
from app.libs.log import log
from app.libs.models import ProfileStatus, SubscriptionTier, UserRole

router = APIRouter(prefix="/setup", tags=["Setup"])

SETUP_SETTING_KEY = "setup"

# asyncpg raises these for unreachable hosts, bad credentials and malformed DSNs
CONNECTION_ERRORS = (
    OSError,
    asyncio.TimeoutError,
    asyncpg.PostgresError,
    asyncpg.InterfaceError,
    ValueError,
)


class SetupStatus(BaseModel):
    is_complete: bool
    completed_at: Optional[datetime] = None
    admin_email: Optional[str] = None


class TestConnectionRequest(BaseModel):
    database_url: str = Field(..., min_length=1)
    test_type: Literal["connection", "migration"] = "connection"


class TestConnectionResponse(BaseModel):
    success: bool
    message: Optional[str] = None
    error: Optional[str] = None
    migration_needed: bool = False


class CreateAdminRequest(BaseModel):
    email: EmailStr
    full_name: str = "Admin"


async def get_setup_status(conn) -> SetupStatus:
    """Setup is complete once any admin profile exists."""
    has_admin = await conn.fetchval(
        "SELECT EXISTS(SELECT 1 FROM profiles WHERE role = $1)",
        UserRole.ADMIN.value,
    )
    info = await conn.fetchval(
        "SELECT value FROM site_settings WHERE key = $1",
        SETUP_SETTING_KEY,
    ) or {}
    return SetupStatus(
        is_complete=bool(has_admin),
        completed_at=info.get("completedAt"),
        admin_email=info.get("adminEmail"),
    )


@router.get("/status", response_model=SetupStatus)
async def setup_status():
    conn = await get_db_connection()
    try:
        return await get_setup_status(conn)
    finally:
        await conn.close()


@router.post("/test-connection", response_model=TestConnectionResponse)
async def test_connection(request: TestConnectionRequest, user: AuthorizedUser):
    """
    Check a database before pointing the app at it.

    `connection` succeeds when the server answers a query. `migration` also
    checks that the profiles table exists. Failures come back as
    success=false rather than HTTP errors so the wizard can show them.
    Closed once an admin exists.
    """
    app_conn = await get_db_connection()
    try:
        status = await get_setup_status(app_conn)
    finally:
        await app_conn.close()
    if status.is_complete:
        raise HTTPException(status_code=409, detail="Setup has already been completed")

    try:
        conn = await asyncpg.connect(request.database_url, timeout=10)
    except CONNECTION_ERRORS as e:
        return TestConnectionResponse(success=False, error=str(e) or type(e).__name__)

    try:
        if request.test_type == "connection":
            await conn.fetchval("SELECT 1")
            return TestConnectionResponse(success=True, message="Connection successful!")

        table = await conn.fetchval("SELECT to_regclass('public.profiles')")
        if table is None:
            return TestConnectionResponse(
                success=False,
                migration_needed=True,
                message="Database tables not found. Please run migrations first.",
            )
        return TestConnectionResponse(success=True, message="Database is properly configured!")
    except asyncpg.PostgresError as e:
        return TestConnectionResponse(success=False, error=str(e))
    finally:
        await conn.close()


@router.post("/admin", response_model=SetupStatus)
async def create_admin(request: CreateAdminRequest, user: AuthorizedUser):
    """
    Make the calling user the first admin.

    Only allowed while no admin exists; afterwards admins are managed from
    the admin console.
    """
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            # Serialize concurrent setup attempts
            await conn.execute("SELECT pg_advisory_xact_lock(hashtext($1))", SETUP_SETTING_KEY)

            status = await get_setup_status(conn)
            if status.is_complete:
                raise HTTPException(status_code=409, detail="Setup has already been completed")

            await conn.execute(
                """
                INSERT INTO profiles (id, full_name, role, subscription_tier, subscription_status)
                VALUES ($1, $2, $3, $4, $5)
                ON CONFLICT (id) DO UPDATE
                SET role = EXCLUDED.role, full_name = EXCLUDED.full_name, updated_at = NOW()
                """,
                user.sub,
                request.full_name,
                UserRole.ADMIN.value,
                SubscriptionTier.FREE.value,
                ProfileStatus.ACTIVE.value,
            )

            completed_at = datetime.now(timezone.utc)
            await conn.execute(
                """
                INSERT INTO site_settings (key, value)
                VALUES ($1, $2)
                ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
                """,
                SETUP_SETTING_KEY,
                {
                    "isComplete": True,
                    "completedAt": completed_at.isoformat(),
                    "adminEmail": request.email,
                },
            )

        log("SETUP", f"✅ Admin user created: {request.email}", ref=user.sub)
        return SetupStatus(is_complete=True, completed_at=completed_at, admin_email=request.email)
    finally:
        await conn.close()
