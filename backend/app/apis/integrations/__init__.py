"""
Integrations API

Admin storage of third-party API keys (Stripe, OpenAI, Anthropic).
Keys are returned masked; only the last four characters are visible.
"""

from datetime import datetime
from typing import Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.auth import AdminUser
from app.libs.audit import record_admin_action
from app.libs.catalog import INTEGRATIONS, IntegrationConfig, find_integration, mask_secret
from app.libs.database import get_db_connection
from app.libs.models import ResourceType

router = APIRouter(prefix="/admin/integrations", tags=["Integrations"])


class StoredKey(BaseModel):
    """A stored key with its value masked"""
    id: str
    key_type: str
    masked_value: str
    is_active: bool
    last_used_at: Optional[datetime]


class IntegrationStatus(BaseModel):
    """Integration definition with its stored keys"""
    integration: IntegrationConfig
    keys: Dict[str, StoredKey]
    configured: bool


class SaveKeysRequest(BaseModel):
    """Field key -> value. Blank values are ignored."""
    values: Dict[str, str] = Field(default_factory=dict)


@router.get("", response_model=List[IntegrationStatus])
async def list_integrations(admin: AdminUser):
    conn = await get_db_connection()
    try:
        rows = await conn.fetch("SELECT * FROM api_keys")
    finally:
        await conn.close()

    by_service: Dict[str, Dict[str, StoredKey]] = {}
    for row in rows:
        by_service.setdefault(row["service_name"], {})[row["key_type"]] = StoredKey(
            id=str(row["id"]),
            key_type=row["key_type"],
            masked_value=mask_secret(row["encrypted_value"]),
            is_active=row["is_active"],
            last_used_at=row["last_used_at"],
        )

    result = []
    for integration in INTEGRATIONS:
        keys = by_service.get(integration.name, {})
        result.append(IntegrationStatus(
            integration=integration,
            keys=keys,
            configured=all(f.key in keys for f in integration.fields),
        ))
    return result


@router.put("/{service_name}")
async def save_integration_keys(service_name: str, request: SaveKeysRequest, admin: AdminUser):
    """
    Store API keys for an integration.

    Each key is upserted on (service_name, key_type). Unknown field keys are 400.
    """
    integration = find_integration(service_name)
    if not integration:
        raise HTTPException(status_code=404, detail="Unknown integration")

    known = {f.key for f in integration.fields}
    unknown = set(request.values) - known
    if unknown:
        raise HTTPException(status_code=400, detail=f"Unknown fields: {', '.join(sorted(unknown))}")

    conn = await get_db_connection()
    try:
        saved = []
        async with conn.transaction():
            for field in integration.fields:
                value = (request.values.get(field.key) or "").strip()
                if not value:
                    continue

                await conn.execute(
                    """
                    INSERT INTO api_keys (service_name, key_type, encrypted_value, is_active)
                    VALUES ($1, $2, $3, true)
                    ON CONFLICT (service_name, key_type)
                    DO UPDATE SET encrypted_value = EXCLUDED.encrypted_value, updated_at = NOW()
                    """,
                    service_name,
                    field.key,
                    value,
                )
                saved.append(field.key)

            if saved:
                await record_admin_action(
                    conn, admin.sub, f"Updated {integration.display_name} API keys", ResourceType.INTEGRATION,
                )
        return {"success": True, "saved": saved}
    finally:
        await conn.close()
