"""Pages API - admin page builder plus public reads of published pages."""

from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

import asyncpg
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field

from app.auth import AdminUser
from app.libs.audit import record_admin_action
from app.libs.database import get_db_connection
from app.libs.models import PageTemplate, ResourceType
from app.libs.page_builder import (
    BLOCK_TYPES,
    Block,
    PageValidationError,
    move_block,
    new_block,
    normalize_blocks,
    page_slug,
)

router = APIRouter(tags=["Pages"])


class PageSave(BaseModel):
    """Request model for creating or replacing a page."""
    title: str = Field(..., min_length=1, max_length=200)
    slug: Optional[str] = None
    template: PageTemplate = PageTemplate.DEFAULT
    meta_title: Optional[str] = None
    meta_description: Optional[str] = None
    content: List[Dict[str, Any]] = []


class PageResponse(BaseModel):
    id: str
    title: str
    slug: str
    template: str
    meta_title: Optional[str]
    meta_description: Optional[str]
    content: List[Dict[str, Any]]
    published: bool
    created_at: datetime
    updated_at: datetime


class BlockAdd(BaseModel):
    type: str


class BlockMove(BaseModel):
    index: int = Field(..., ge=0)
    direction: Literal["up", "down"]


def _page_from_row(row) -> PageResponse:
    return PageResponse(
        id=str(row["id"]),
        title=row["title"],
        slug=row["slug"],
        template=row["template"],
        meta_title=row["meta_title"],
        meta_description=row["meta_description"],
        content=row["content"] or [],
        published=row["published"],
        created_at=row["created_at"],
        updated_at=row["updated_at"],
    )


def _validated(page: PageSave):
    try:
        return page_slug(page.title, page.slug), normalize_blocks(page.content)
    except PageValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)


async def _get_page(conn, page_id: str, for_update: bool = False):
    query = "SELECT * FROM pages WHERE id = $1"
    if for_update:
        query += " FOR UPDATE"
    row = await conn.fetchrow(query, page_id)
    if not row:
        raise HTTPException(status_code=404, detail="Page not found")
    return row


# ----------------------------------------------------------------------------
# Public
# ----------------------------------------------------------------------------

@router.get("/pages/{slug}", response_model=PageResponse)
async def get_published_page(slug: str):
    conn = await get_db_connection()
    try:
        row = await conn.fetchrow(
            "SELECT * FROM pages WHERE slug = $1 AND published",
            slug,
        )
        if not row:
            raise HTTPException(status_code=404, detail="Page not found")
        return _page_from_row(row)
    finally:
        await conn.close()


# ----------------------------------------------------------------------------
# Admin
# ----------------------------------------------------------------------------

@router.get("/admin/pages/block-types")
async def list_block_types(admin: AdminUser) -> Dict[str, List[str]]:
    return {
        "block_types": BLOCK_TYPES,
        "templates": [t.value for t in PageTemplate],
    }


@router.get("/admin/pages", response_model=List[PageResponse])
async def list_pages(admin: AdminUser):
    conn = await get_db_connection()
    try:
        rows = await conn.fetch("SELECT * FROM pages ORDER BY created_at DESC")
        return [_page_from_row(row) for row in rows]
    finally:
        await conn.close()


@router.get("/admin/pages/{page_id}", response_model=PageResponse)
async def get_page(page_id: str, admin: AdminUser):
    conn = await get_db_connection()
    try:
        return _page_from_row(await _get_page(conn, page_id))
    finally:
        await conn.close()


@router.post("/admin/pages", response_model=PageResponse, status_code=201)
async def create_page(page: PageSave, admin: AdminUser):
    """Create an unpublished page. The slug is derived from the title when omitted."""
    slug, blocks = _validated(page)
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO pages (title, slug, template, meta_title, meta_description, content, published)
                    VALUES ($1, $2, $3, $4, $5, $6, false)
                    RETURNING *
                    """,
                    page.title,
                    slug,
                    page.template.value,
                    page.meta_title,
                    page.meta_description,
                    blocks,
                )
            except asyncpg.UniqueViolationError:
                raise HTTPException(status_code=409, detail=f"Slug '{slug}' is already in use")

            await record_admin_action(
                conn, admin.sub, f"Created page: {page.title}", ResourceType.PAGE, str(row["id"]),
            )
        return _page_from_row(row)
    finally:
        await conn.close()


@router.put("/admin/pages/{page_id}", response_model=PageResponse)
async def update_page(page_id: str, page: PageSave, admin: AdminUser):
    slug, blocks = _validated(page)
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            try:
                row = await conn.fetchrow(
                    """
                    UPDATE pages
                    SET title = $2, slug = $3, template = $4, meta_title = $5,
                        meta_description = $6, content = $7, updated_at = NOW()
                    WHERE id = $1
                    RETURNING *
                    """,
                    page_id,
                    page.title,
                    slug,
                    page.template.value,
                    page.meta_title,
                    page.meta_description,
                    blocks,
                )
            except asyncpg.UniqueViolationError:
                raise HTTPException(status_code=409, detail=f"Slug '{slug}' is already in use")
            if not row:
                raise HTTPException(status_code=404, detail="Page not found")

            await record_admin_action(
                conn, admin.sub, f"Updated page: {page.title}", ResourceType.PAGE, page_id,
            )
        return _page_from_row(row)
    finally:
        await conn.close()


@router.post("/admin/pages/{page_id}/publish", response_model=PageResponse)
async def toggle_publish(page_id: str, admin: AdminUser):
    """Flip a page between published and draft."""
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            row = await conn.fetchrow(
                "UPDATE pages SET published = NOT published, updated_at = NOW() WHERE id = $1 RETURNING *",
                page_id,
            )
            if not row:
                raise HTTPException(status_code=404, detail="Page not found")

            verb = "Published" if row["published"] else "Unpublished"
            await record_admin_action(
                conn, admin.sub, f"{verb} page: {row['title']}", ResourceType.PAGE, page_id,
            )
        return _page_from_row(row)
    finally:
        await conn.close()


@router.delete("/admin/pages/{page_id}")
async def delete_page(page_id: str, admin: AdminUser):
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            title = await conn.fetchval("DELETE FROM pages WHERE id = $1 RETURNING title", page_id)
            if title is None:
                raise HTTPException(status_code=404, detail="Page not found")

            await record_admin_action(
                conn, admin.sub, f"Deleted page: {title}", ResourceType.PAGE, page_id,
            )
        return {"success": True, "message": "Page deleted successfully"}
    finally:
        await conn.close()


async def _save_blocks(conn, page_id: str, blocks: List[Dict[str, Any]]):
    return await conn.fetchrow(
        "UPDATE pages SET content = $2, updated_at = NOW() WHERE id = $1 RETURNING *",
        page_id,
        blocks,
    )


@router.post("/admin/pages/{page_id}/blocks", response_model=PageResponse)
async def add_block(page_id: str, request: BlockAdd, admin: AdminUser):
    """Append a block with default content."""
    try:
        block: Block = new_block(request.type)
    except PageValidationError as e:
        raise HTTPException(status_code=422, detail=e.message)

    conn = await get_db_connection()
    try:
        async with conn.transaction():
            row = await _get_page(conn, page_id, for_update=True)
            blocks = list(row["content"] or [])
            existing_ids = {b.get("id") for b in blocks}
            while block.id in existing_ids:
                block.id = f"{block.id}-{len(blocks)}"
            blocks.append(block.model_dump())

            row = await _save_blocks(conn, page_id, blocks)
            await record_admin_action(
                conn, admin.sub, f"Added {block.type} block to page: {row['title']}", ResourceType.PAGE, page_id,
            )
        return _page_from_row(row)
    finally:
        await conn.close()


@router.post("/admin/pages/{page_id}/blocks/move", response_model=PageResponse)
async def reorder_block(page_id: str, request: BlockMove, admin: AdminUser):
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            row = await _get_page(conn, page_id, for_update=True)
            blocks = move_block(list(row["content"] or []), request.index, request.direction)

            row = await _save_blocks(conn, page_id, blocks)
            await record_admin_action(
                conn, admin.sub, f"Moved block {request.index} {request.direction} on page: {row['title']}",
                ResourceType.PAGE, page_id,
            )
        return _page_from_row(row)
    finally:
        await conn.close()


@router.delete("/admin/pages/{page_id}/blocks/{block_id}", response_model=PageResponse)
async def delete_block(page_id: str, block_id: str, admin: AdminUser):
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            row = await _get_page(conn, page_id, for_update=True)
            blocks = [b for b in (row["content"] or []) if b.get("id") != block_id]
            if len(blocks) == len(row["content"] or []):
                raise HTTPException(status_code=404, detail="Block not found")

            row = await _save_blocks(conn, page_id, blocks)
            await record_admin_action(
                conn, admin.sub, f"Deleted block {block_id} from page: {row['title']}", ResourceType.PAGE, page_id,
            )
        return _page_from_row(row)
    finally:
        await conn.close()
