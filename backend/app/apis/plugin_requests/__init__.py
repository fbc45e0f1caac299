"""Plugin Requests API - submit and track AI-generated WordPress plugins."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator, model_validator

from app.auth import AuthorizedUser
from app.libs.catalog import (
    BUILDER_MODULE_OPTIONS,
    COMMON_FEATURES,
    PLUGIN_TYPES,
    THEME_COMPATIBILITY,
    Option,
)
from app.libs.database import get_db_connection
from app.libs.models import BuilderType, PluginStatus, PluginType
from app.libs.usage import PlanLimitExceeded, check_limit
from app.libs.workflow import InvalidTransition, plugin_transition

router = APIRouter(prefix="/plugins", tags=["Plugins"])


# Pydantic Models

class PluginRequestCreate(BaseModel):
    """Request model for submitting a plugin request."""
    plugin_name: str = Field(..., min_length=1, max_length=200)
    plugin_type: PluginType
    description: str = ""
    custom_features: List[str] = []
    theme_compatibility: List[str] = []
    reference_images: List[str] = []
    builder_type: Optional[BuilderType] = None
    builder_config: Dict[str, Any] = {}

    @field_validator("custom_features", "theme_compatibility")
    @classmethod
    def strip_and_dedupe(cls, values: List[str]) -> List[str]:
        cleaned: List[str] = []
        for value in values:
            value = value.strip()
            if value and value not in cleaned:
                cleaned.append(value)
        return cleaned

    @field_validator("theme_compatibility")
    @classmethod
    def check_themes(cls, themes: List[str]) -> List[str]:
        unknown = [t for t in themes if t not in THEME_COMPATIBILITY]
        if unknown:
            raise ValueError(f"Unknown themes: {', '.join(unknown)}")
        return themes

    @model_validator(mode="after")
    def check_builder_config(self) -> "PluginRequestCreate":
        if self.builder_type is None:
            # Standard plugins carry no builder config
            self.builder_config = {}
            return self
        module_type = self.builder_config.get("moduleType")
        if module_type is not None:
            allowed = [o.value for o in BUILDER_MODULE_OPTIONS[self.builder_type.value]]
            if module_type not in allowed:
                raise ValueError(f"moduleType must be one of {allowed}")
        return self


class GeneratedPluginResponse(BaseModel):
    """Generated plugin artifact."""
    id: str
    plugin_file_url: str
    version: str
    test_site_url: Optional[str]
    download_count: int
    created_at: datetime


class PluginRequestResponse(BaseModel):
    """Plugin request with its generated artifact, if any."""
    id: str
    user_id: str
    plugin_name: str
    plugin_type: str
    description: Optional[str]
    custom_features: List[str]
    theme_compatibility: List[str]
    reference_images: List[str]
    builder_type: Optional[str]
    builder_config: Dict[str, Any]
    status: str
    created_at: datetime
    updated_at: datetime
    generated_plugin: Optional[GeneratedPluginResponse] = None


class CatalogResponse(BaseModel):
    """Choices offered on the new-plugin form."""
    plugin_types: List[Option]
    common_features: List[str]
    theme_compatibility: List[str]
    builder_modules: Dict[str, List[Option]]


class DownloadResponse(BaseModel):
    plugin_file_url: str
    download_count: int


# Helper Functions

def _generated_from_row(row) -> Optional[GeneratedPluginResponse]:
    if not row or row["generated_id"] is None:
        return None
    return GeneratedPluginResponse(
        id=str(row["generated_id"]),
        plugin_file_url=row["plugin_file_url"],
        version=row["version"],
        test_site_url=row["test_site_url"],
        download_count=row["download_count"],
        created_at=row["generated_created_at"],
    )


def _request_from_row(row) -> PluginRequestResponse:
    return PluginRequestResponse(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        plugin_name=row["plugin_name"],
        plugin_type=row["plugin_type"],
        description=row["description"],
        custom_features=row["custom_features"] or [],
        theme_compatibility=row["theme_compatibility"] or [],
        reference_images=row["reference_images"] or [],
        builder_type=row["builder_type"],
        builder_config=row["builder_config"] or {},
        status=row["status"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
        generated_plugin=_generated_from_row(row),
    )


PLUGIN_REQUEST_SELECT = """
    SELECT
        pr.*,
        gp.id AS generated_id,
        gp.plugin_file_url,
        gp.version,
        gp.test_site_url,
        gp.download_count,
        gp.created_at AS generated_created_at
    FROM plugin_requests pr
    LEFT JOIN generated_plugins gp ON gp.request_id = pr.id
"""


# API Endpoints

@router.get("/catalog", response_model=CatalogResponse)
async def get_catalog():
    """Plugin types, common features, compatible themes and builder module options."""
    return CatalogResponse(
        plugin_types=PLUGIN_TYPES,
        common_features=COMMON_FEATURES,
        theme_compatibility=THEME_COMPATIBILITY,
        builder_modules=BUILDER_MODULE_OPTIONS,
    )


@router.post("", response_model=PluginRequestResponse, status_code=201)
async def create_plugin_request(request: PluginRequestCreate, user: AuthorizedUser):
    """
    Submit a new plugin request.

    The request starts in 'pending'. Users on a plan with a max_plugins
    limit get 402 once they have reached it.
    """
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            try:
                await check_limit(conn, user.sub, "max_plugins", "plugin_requests")
            except PlanLimitExceeded as e:
                raise HTTPException(status_code=402, detail=e.message)

            row = await conn.fetchrow(
                """
                INSERT INTO plugin_requests (
                    user_id, plugin_name, plugin_type, description,
                    custom_features, theme_compatibility, reference_images,
                    builder_type, builder_config, status
                )
                VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9, $10)
                RETURNING *, NULL AS generated_id
                """,
                user.sub,
                request.plugin_name,
                request.plugin_type.value,
                request.description,
                request.custom_features,
                request.theme_compatibility,
                request.reference_images,
                request.builder_type.value if request.builder_type else None,
                request.builder_config,
                PluginStatus.PENDING.value,
            )
        return _request_from_row(row)
    finally:
        await conn.close()


@router.get("", response_model=List[PluginRequestResponse])
async def list_plugin_requests(user: AuthorizedUser):
    """List the user's plugin requests, newest first, with generated plugins attached."""
    conn = await get_db_connection()
    try:
        rows = await conn.fetch(
            PLUGIN_REQUEST_SELECT + " WHERE pr.user_id = $1 ORDER BY pr.created_at DESC",
            user.sub,
        )
        return [_request_from_row(row) for row in rows]
    finally:
        await conn.close()


@router.get("/{request_id}", response_model=PluginRequestResponse)
async def get_plugin_request(request_id: str, user: AuthorizedUser):
    conn = await get_db_connection()
    try:
        row = await conn.fetchrow(
            PLUGIN_REQUEST_SELECT + " WHERE pr.id = $1 AND pr.user_id = $2",
            request_id,
            user.sub,
        )
        if not row:
            raise HTTPException(status_code=404, detail="Plugin request not found")
        return _request_from_row(row)
    finally:
        await conn.close()


@router.post("/{request_id}/download", response_model=DownloadResponse)
async def download_generated_plugin(request_id: str, user: AuthorizedUser):
    """Count a download of the request's generated plugin and return its file URL."""
    conn = await get_db_connection()
    try:
        row = await conn.fetchrow(
            """
            UPDATE generated_plugins
            SET download_count = download_count + 1, updated_at = NOW()
            WHERE request_id = $1 AND user_id = $2
            RETURNING plugin_file_url, download_count
            """,
            request_id,
            user.sub,
        )
        if not row:
            raise HTTPException(status_code=404, detail="Generated plugin not found")
        return DownloadResponse(
            plugin_file_url=row["plugin_file_url"],
            download_count=row["download_count"],
        )
    finally:
        await conn.close()


@router.post("/{request_id}/retry", response_model=PluginRequestResponse)
async def retry_plugin_request(request_id: str, user: AuthorizedUser):
    """Put a failed plugin request back in the queue."""
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            status = await conn.fetchval(
                "SELECT status FROM plugin_requests WHERE id = $1 AND user_id = $2 FOR UPDATE",
                request_id,
                user.sub,
            )
            if status is None:
                raise HTTPException(status_code=404, detail="Plugin request not found")
            try:
                target = plugin_transition(status, PluginStatus.PENDING)
            except InvalidTransition as e:
                raise HTTPException(status_code=409, detail=e.message)

            await conn.execute(
                "UPDATE plugin_requests SET status = $1, updated_at = NOW() WHERE id = $2",
                target.value,
                request_id,
            )
        return await get_plugin_request(request_id, user)
    finally:
        await conn.close()
