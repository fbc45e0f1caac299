"""Site Settings API - theme colours and site identity."""

import copy
from typing import Any, Dict

from fastapi import APIRouter
from pydantic import BaseModel

from app.auth import AdminUser
from app.libs.audit import record_admin_action
from app.libs.catalog import DEFAULT_SITE_SETTINGS
from app.libs.database import get_db_connection
from app.libs.models import ResourceType

router = APIRouter(tags=["Site Settings"])


class ThemeSettings(BaseModel):
    primaryColor: str = DEFAULT_SITE_SETTINGS["theme"]["primaryColor"]
    secondaryColor: str = DEFAULT_SITE_SETTINGS["theme"]["secondaryColor"]
    fontFamily: str = DEFAULT_SITE_SETTINGS["theme"]["fontFamily"]


class SiteInfo(BaseModel):
    name: str = DEFAULT_SITE_SETTINGS["site_info"]["name"]
    tagline: str = DEFAULT_SITE_SETTINGS["site_info"]["tagline"]
    logo: str = DEFAULT_SITE_SETTINGS["site_info"]["logo"]


class SiteSettings(BaseModel):
    theme: ThemeSettings = ThemeSettings()
    site_info: SiteInfo = SiteInfo()


async def load_settings(conn) -> SiteSettings:
    """Stored settings merged over the defaults."""
    rows = await conn.fetch(
        "SELECT key, value FROM site_settings WHERE key = ANY($1::text[])",
        list(DEFAULT_SITE_SETTINGS),
    )
    merged: Dict[str, Any] = copy.deepcopy(DEFAULT_SITE_SETTINGS)
    for row in rows:
        merged[row["key"]].update(row["value"] or {})
    return SiteSettings(**merged)


async def _store(conn, settings: SiteSettings) -> None:
    for key, value in settings.model_dump().items():
        await conn.execute(
            """
            INSERT INTO site_settings (key, value)
            VALUES ($1, $2)
            ON CONFLICT (key) DO UPDATE SET value = EXCLUDED.value, updated_at = NOW()
            """,
            key,
            value,
        )


@router.get("/settings", response_model=SiteSettings)
async def get_site_settings():
    """Public: the frontend needs theme and site info before sign-in."""
    conn = await get_db_connection()
    try:
        return await load_settings(conn)
    finally:
        await conn.close()


@router.put("/admin/settings", response_model=SiteSettings)
async def save_site_settings(settings: SiteSettings, admin: AdminUser):
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            await _store(conn, settings)
            await record_admin_action(conn, admin.sub, "Updated site settings", ResourceType.SETTINGS)
        return settings
    finally:
        await conn.close()


@router.post("/admin/settings/reset", response_model=SiteSettings)
async def reset_site_settings(admin: AdminUser):
    defaults = SiteSettings()
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            await _store(conn, defaults)
            await record_admin_action(conn, admin.sub, "Reset site settings to defaults", ResourceType.SETTINGS)
        return defaults
    finally:
        await conn.close()
