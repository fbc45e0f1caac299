"""
Design Conversions API

Endpoints for turning design images into code:
- Create a conversion (HTML, Divi or Elementor target)
- List / get / delete the user's conversions
- Run the conversion pipeline, inline or in the background
- Export generated code and companion plugins as files
"""

import json
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, BackgroundTasks, HTTPException
from fastapi.responses import Response
from pydantic import BaseModel, Field

from app.auth import AuthorizedUser
from app.libs.codegen import companion_filename, export_filename
from app.libs.conversion_pipeline import (
    ConversionFailed,
    ConversionNotFound,
    process_conversion_background,
    run_conversion,
)
from app.libs.database import get_db_connection
from app.libs.models import ConversionStatus, ConversionType
from app.libs.usage import PlanLimitExceeded, check_limit
from app.libs.workflow import InvalidTransition, can_process_conversion

router = APIRouter(prefix="/conversions", tags=["Design Conversions"])


# Request/Response Models
class ConversionCreate(BaseModel):
    """Request to convert a design image"""
    name: str = Field(..., min_length=1, max_length=200, description="Display name")
    image_url: str = Field(..., min_length=1, description="Public URL of the design image")
    conversion_type: ConversionType = Field(ConversionType.HTML, description="Target output format")
    prompt: Optional[str] = Field(None, description="Extra instructions for the generator")


class ConversionResponse(BaseModel):
    """Design conversion record"""
    id: str
    user_id: str
    name: str
    image_url: str
    conversion_type: str
    prompt: Optional[str] = None
    status: str
    analysis: Optional[Dict[str, Any]] = None
    result: Optional[Dict[str, Any]] = None
    companion_plugin: Optional[Dict[str, Any]] = None
    needs_companion_plugin: bool = False
    error_message: Optional[str] = None
    completed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime


class ProcessResponse(BaseModel):
    success: bool
    conversion_id: str
    status: str


def _conversion_from_row(row) -> ConversionResponse:
    return ConversionResponse(
        id=str(row["id"]),
        user_id=str(row["user_id"]),
        name=row["name"],
        image_url=row["image_url"],
        conversion_type=row["conversion_type"],
        prompt=row["prompt"],
        status=row["status"],
        analysis=row["analysis"],
        result=row["result"],
        companion_plugin=row["companion_plugin"],
        needs_companion_plugin=bool(row["needs_companion_plugin"]),
        error_message=row["error_message"],
        completed_at=row["completed_at"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


async def _get_owned(conn, conversion_id: str, user_id: str):
    row = await conn.fetchrow(
        "SELECT * FROM design_conversions WHERE id = $1 AND user_id = $2",
        conversion_id,
        user_id,
    )
    if not row:
        raise HTTPException(status_code=404, detail="Conversion not found")
    return row


@router.post("", response_model=ConversionResponse, status_code=201)
async def create_conversion(request: ConversionCreate, user: AuthorizedUser):
    """
    Create a design conversion in 'pending' state.

    Call POST /conversions/{id}/process to run it.
    """
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            try:
                await check_limit(conn, user.sub, "max_conversions", "design_conversions")
            except PlanLimitExceeded as e:
                raise HTTPException(status_code=402, detail=e.message)

            row = await conn.fetchrow(
                """
                INSERT INTO design_conversions (user_id, name, image_url, conversion_type, prompt, status)
                VALUES ($1, $2, $3, $4, $5, $6)
                RETURNING *
                """,
                user.sub,
                request.name,
                request.image_url,
                request.conversion_type.value,
                request.prompt,
                ConversionStatus.PENDING.value,
            )
        return _conversion_from_row(row)
    finally:
        await conn.close()


@router.get("", response_model=List[ConversionResponse])
async def list_conversions(user: AuthorizedUser, status: Optional[ConversionStatus] = None):
    """List the user's conversions, newest first. Optionally filter by status."""
    conn = await get_db_connection()
    try:
        if status:
            rows = await conn.fetch(
                """
                SELECT * FROM design_conversions
                WHERE user_id = $1 AND status = $2
                ORDER BY created_at DESC
                """,
                user.sub,
                status.value,
            )
        else:
            rows = await conn.fetch(
                "SELECT * FROM design_conversions WHERE user_id = $1 ORDER BY created_at DESC",
                user.sub,
            )
        return [_conversion_from_row(row) for row in rows]
    finally:
        await conn.close()


@router.get("/{conversion_id}", response_model=ConversionResponse)
async def get_conversion(conversion_id: str, user: AuthorizedUser):
    conn = await get_db_connection()
    try:
        return _conversion_from_row(await _get_owned(conn, conversion_id, user.sub))
    finally:
        await conn.close()


@router.delete("/{conversion_id}")
async def delete_conversion(conversion_id: str, user: AuthorizedUser):
    conn = await get_db_connection()
    try:
        result = await conn.fetchval(
            "DELETE FROM design_conversions WHERE id = $1 AND user_id = $2 RETURNING id",
            conversion_id,
            user.sub,
        )
        if not result:
            raise HTTPException(status_code=404, detail="Conversion not found")
        return {"success": True, "message": "Conversion deleted successfully"}
    finally:
        await conn.close()


@router.post("/{conversion_id}/process", response_model=ProcessResponse)
async def process_conversion(
    conversion_id: str,
    user: AuthorizedUser,
    background_tasks: BackgroundTasks,
    background: bool = False,
):
    """
    Run the conversion pipeline.

    With `background=true` the pipeline is scheduled and the response returns
    the current status right away. Otherwise the call waits for completion.
    Only pending or failed conversions can be processed (409 otherwise).
    """
    conn = await get_db_connection()
    try:
        row = await _get_owned(conn, conversion_id, user.sub)

        if background:
            if not can_process_conversion(row["status"]):
                raise HTTPException(
                    status_code=409,
                    detail=f"Conversion is already {row['status']}",
                )
            background_tasks.add_task(process_conversion_background, conversion_id)
            return ProcessResponse(success=True, conversion_id=conversion_id, status=row["status"])

        try:
            completed = await run_conversion(conn, conversion_id)
        except ConversionNotFound as e:
            raise HTTPException(status_code=404, detail=e.message)
        except InvalidTransition:
            raise HTTPException(status_code=409, detail=f"Conversion is already {row['status']}")
        except ConversionFailed as e:
            raise HTTPException(status_code=500, detail=e.message)

        return ProcessResponse(success=True, conversion_id=conversion_id, status=completed["status"])
    finally:
        await conn.close()


@router.get("/{conversion_id}/export")
async def export_conversion(conversion_id: str, user: AuthorizedUser):
    """Download the generated code: an .html file for HTML, a .json layout otherwise."""
    conn = await get_db_connection()
    try:
        row = await _get_owned(conn, conversion_id, user.sub)
    finally:
        await conn.close()

    if row["status"] != ConversionStatus.COMPLETED.value or not row["result"]:
        raise HTTPException(status_code=409, detail="Conversion has not completed")

    filename = export_filename(row["name"], row["conversion_type"])
    if row["conversion_type"] == ConversionType.HTML.value:
        content = row["result"].get("html", "")
        media_type = "text/html"
    else:
        content = json.dumps(row["result"], indent=2)
        media_type = "application/json"

    return Response(
        content=content,
        media_type=media_type,
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.get("/{conversion_id}/companion-plugin")
async def export_companion_plugin(conversion_id: str, user: AuthorizedUser):
    """Download the companion plugin bundled with a page-builder conversion."""
    conn = await get_db_connection()
    try:
        row = await _get_owned(conn, conversion_id, user.sub)
    finally:
        await conn.close()

    if not row["needs_companion_plugin"] or not row["companion_plugin"]:
        raise HTTPException(status_code=404, detail="Conversion has no companion plugin")

    return Response(
        content=json.dumps(row["companion_plugin"], indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{companion_filename(row["name"])}"'},
    )
