"""Billing API - products, pricing plans and the user's subscription."""

from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter
from pydantic import BaseModel

from app.auth import AuthorizedUser
from app.libs.catalog import STRIPE_PRODUCTS, StripeProduct, find_product
from app.libs.database import get_db_connection
from app.libs.usage import trial_days_remaining

router = APIRouter(prefix="/billing", tags=["Billing"])


class SubscriptionResponse(BaseModel):
    """The user's subscription, or the free plan when there is none"""
    plan_name: str
    plan_type: str
    status: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    price_id: Optional[str] = None
    current_period_start: Optional[datetime] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False


class BillingProfile(BaseModel):
    subscription_tier: str
    subscription_status: str
    trial_ends_at: Optional[datetime]
    trial_days_remaining: int


class PricingPlanResponse(BaseModel):
    id: str
    name: str
    slug: str
    description: Optional[str]
    price_monthly: Decimal
    price_yearly: Decimal
    features: List[str]
    limits: Dict[str, Any]
    is_active: bool
    sort_order: int


def plan_from_row(row) -> PricingPlanResponse:
    return PricingPlanResponse(
        id=str(row["id"]),
        name=row["name"],
        slug=row["slug"],
        description=row["description"],
        price_monthly=row["price_monthly"],
        price_yearly=row["price_yearly"],
        features=row["features"] or [],
        limits=row["limits"] or {},
        is_active=row["is_active"],
        sort_order=row["sort_order"],
    )


@router.get("/products", response_model=List[StripeProduct])
async def list_products():
    return STRIPE_PRODUCTS


@router.get("/plans", response_model=List[PricingPlanResponse])
async def list_pricing_plans():
    """Active pricing plans in display order."""
    conn = await get_db_connection()
    try:
        rows = await conn.fetch(
            "SELECT * FROM pricing_plans WHERE is_active ORDER BY sort_order ASC"
        )
        return [plan_from_row(row) for row in rows]
    finally:
        await conn.close()


@router.get("/subscription", response_model=SubscriptionResponse)
async def get_subscription(user: AuthorizedUser):
    conn = await get_db_connection()
    try:
        row = await conn.fetchrow(
            """
            SELECT * FROM subscriptions
            WHERE user_id = $1
            ORDER BY created_at DESC
            LIMIT 1
            """,
            user.sub,
        )
    finally:
        await conn.close()

    if not row or not row["stripe_subscription_id"]:
        return SubscriptionResponse(plan_name="Free Plan", plan_type="free")

    product = find_product(row["price_id"])
    return SubscriptionResponse(
        plan_name=product.name if product else "Unknown Plan",
        plan_type=row["plan_type"],
        status=row["status"],
        customer_id=row["stripe_customer_id"],
        subscription_id=row["stripe_subscription_id"],
        price_id=row["price_id"],
        current_period_start=row["current_period_start"],
        current_period_end=row["current_period_end"],
        cancel_at_period_end=bool(row["cancel_at_period_end"]),
    )


@router.get("/profile", response_model=BillingProfile)
async def get_billing_profile(user: AuthorizedUser):
    """Tier, status and trial information for the billing page."""
    conn = await get_db_connection()
    try:
        row = await conn.fetchrow(
            "SELECT subscription_tier, subscription_status, trial_ends_at FROM profiles WHERE id = $1",
            user.sub,
        )
    finally:
        await conn.close()

    if not row:
        return BillingProfile(
            subscription_tier="free",
            subscription_status="trial",
            trial_ends_at=None,
            trial_days_remaining=0,
        )
    return BillingProfile(
        subscription_tier=row["subscription_tier"],
        subscription_status=row["subscription_status"],
        trial_ends_at=row["trial_ends_at"],
        trial_days_remaining=trial_days_remaining(row["trial_ends_at"]),
    )
