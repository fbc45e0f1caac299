"""Pricing Plans API - admin CRUD for plans and their usage limits."""

from dataclasses import asdict
from decimal import Decimal
from typing import List, Optional

import asyncpg
from fastapi import APIRouter, HTTPException
from pydantic import BaseModel, Field, field_validator

from app.apis.billing import PricingPlanResponse, plan_from_row
from app.auth import AdminUser
from app.libs.audit import record_admin_action
from app.libs.codegen import slugify
from app.libs.database import get_db_connection
from app.libs.models import PlanLimits, ResourceType

router = APIRouter(prefix="/admin/pricing-plans", tags=["Pricing Plans"])


class PlanLimitsModel(BaseModel):
    max_plugins: int = Field(0, ge=0)
    max_storage_mb: int = Field(0, ge=0)
    max_conversions: int = Field(0, ge=0)
    max_active_plugins: int = Field(0, ge=0)


class PricingPlanSave(BaseModel):
    """Request model for creating or updating a pricing plan."""
    name: str = Field(..., min_length=1, max_length=100)
    slug: Optional[str] = None
    description: str = ""
    price_monthly: Decimal = Field(Decimal("0.00"), ge=0)
    price_yearly: Decimal = Field(Decimal("0.00"), ge=0)
    features: List[str] = []
    limits: PlanLimitsModel = PlanLimitsModel()
    is_active: bool = True
    sort_order: int = 0

    @field_validator("features")
    @classmethod
    def drop_blank_features(cls, features: List[str]) -> List[str]:
        return [f.strip() for f in features if f.strip()]


def _plan_values(plan: PricingPlanSave) -> list:
    slug = slugify(plan.slug or plan.name)
    if not slug:
        raise HTTPException(status_code=422, detail="Plan needs a name or slug")
    limits = PlanLimits(**plan.limits.model_dump())
    return [
        plan.name,
        slug,
        plan.description,
        plan.price_monthly,
        plan.price_yearly,
        plan.features,
        asdict(limits),
        plan.is_active,
        plan.sort_order,
    ]


@router.get("", response_model=List[PricingPlanResponse])
async def list_plans(admin: AdminUser):
    """All plans, including inactive ones, in display order."""
    conn = await get_db_connection()
    try:
        rows = await conn.fetch("SELECT * FROM pricing_plans ORDER BY sort_order ASC")
        return [plan_from_row(row) for row in rows]
    finally:
        await conn.close()


@router.post("", response_model=PricingPlanResponse, status_code=201)
async def create_plan(plan: PricingPlanSave, admin: AdminUser):
    values = _plan_values(plan)
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            try:
                row = await conn.fetchrow(
                    """
                    INSERT INTO pricing_plans (
                        name, slug, description, price_monthly, price_yearly,
                        features, limits, is_active, sort_order
                    )
                    VALUES ($1, $2, $3, $4, $5, $6, $7, $8, $9)
                    RETURNING *
                    """,
                    *values,
                )
            except asyncpg.UniqueViolationError:
                raise HTTPException(status_code=409, detail=f"Slug '{values[1]}' is already in use")

            await record_admin_action(
                conn, admin.sub, f"Created pricing plan: {plan.name}", ResourceType.PRICING, str(row["id"]),
            )
        return plan_from_row(row)
    finally:
        await conn.close()


@router.put("/{plan_id}", response_model=PricingPlanResponse)
async def update_plan(plan_id: str, plan: PricingPlanSave, admin: AdminUser):
    values = _plan_values(plan)
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            try:
                row = await conn.fetchrow(
                    """
                    UPDATE pricing_plans
                    SET name = $2, slug = $3, description = $4, price_monthly = $5,
                        price_yearly = $6, features = $7, limits = $8, is_active = $9,
                        sort_order = $10, updated_at = NOW()
                    WHERE id = $1
                    RETURNING *
                    """,
                    plan_id,
                    *values,
                )
            except asyncpg.UniqueViolationError:
                raise HTTPException(status_code=409, detail=f"Slug '{values[1]}' is already in use")
            if not row:
                raise HTTPException(status_code=404, detail="Pricing plan not found")

            await record_admin_action(
                conn, admin.sub, f"Updated pricing plan: {plan.name}", ResourceType.PRICING, plan_id,
            )
        return plan_from_row(row)
    finally:
        await conn.close()


@router.delete("/{plan_id}")
async def delete_plan(plan_id: str, admin: AdminUser):
    conn = await get_db_connection()
    try:
        async with conn.transaction():
            name = await conn.fetchval("DELETE FROM pricing_plans WHERE id = $1 RETURNING name", plan_id)
            if name is None:
                raise HTTPException(status_code=404, detail="Pricing plan not found")

            await record_admin_action(
                conn, admin.sub, f"Deleted pricing plan: {name}", ResourceType.PRICING, plan_id,
            )
        return {"success": True, "message": "Pricing plan deleted successfully"}
    finally:
        await conn.close()
