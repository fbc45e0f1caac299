"""
Database Models for WP Plugin Builder

This module contains the enums that mirror the database schema's constrained
text columns, plus the record dataclasses shared between API modules.
"""

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from typing import Any, Optional


# =============================================================================
# ENUMS
# =============================================================================


class UserRole(str, Enum):
    """Profile role values"""
    USER = "user"
    ADMIN = "admin"


class SubscriptionTier(str, Enum):
    """Profile subscription tier values"""
    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class ProfileStatus(str, Enum):
    """Profile subscription status values"""
    TRIAL = "trial"
    ACTIVE = "active"
    CANCELLED = "cancelled"
    EXPIRED = "expired"


class PluginStatus(str, Enum):
    """Plugin request status values"""
    PENDING = "pending"
    GENERATING = "generating"
    TESTING = "testing"
    COMPLETED = "completed"
    FAILED = "failed"


class PluginType(str, Enum):
    """Plugin request type values"""
    WOOCOMMERCE = "woocommerce"
    SEO = "seo"
    MEMBERSHIP = "membership"
    FORMS = "forms"
    SECURITY = "security"
    PERFORMANCE = "performance"
    SOCIAL = "social"
    CUSTOM = "custom"


class BuilderType(str, Enum):
    """Page builder targeted by a plugin request"""
    DIVI = "divi"
    ELEMENTOR = "elementor"


class ConversionStatus(str, Enum):
    """Design conversion status values"""
    PENDING = "pending"
    ANALYZING = "analyzing"
    GENERATING = "generating"
    COMPLETED = "completed"
    FAILED = "failed"


class ConversionType(str, Enum):
    """Design conversion output formats"""
    HTML = "html"
    DIVI = "divi"
    ELEMENTOR = "elementor"


class SubscriptionStatus(str, Enum):
    """Stripe subscription status values"""
    ACTIVE = "active"
    CANCELLED = "cancelled"
    PAST_DUE = "past_due"
    TRIALING = "trialing"


class PageTemplate(str, Enum):
    """Page template values"""
    DEFAULT = "default"
    LANDING = "landing"
    DOCS = "docs"
    FULL_WIDTH = "full-width"


class ResourceType(str, Enum):
    """Admin log resource types"""
    PAGE = "page"
    PLUGIN = "plugin"
    USER = "user"
    INTEGRATION = "integration"
    SETTINGS = "settings"
    PRICING = "pricing"


# =============================================================================
# DATABASE MODELS (using dataclass for database records)
# =============================================================================


@dataclass
class Profile:
    """Profile database model"""
    id: str
    full_name: Optional[str]
    role: UserRole
    subscription_tier: SubscriptionTier
    subscription_status: ProfileStatus
    trial_ends_at: Optional[datetime]
    created_at: datetime
    updated_at: datetime

    @classmethod
    def from_row(cls, row: Any) -> "Profile":
        return cls(
            id=str(row["id"]),
            full_name=row["full_name"],
            role=UserRole(row["role"] or UserRole.USER.value),
            subscription_tier=SubscriptionTier(row["subscription_tier"] or SubscriptionTier.FREE.value),
            subscription_status=ProfileStatus(row["subscription_status"] or ProfileStatus.TRIAL.value),
            trial_ends_at=row["trial_ends_at"],
            created_at=row["created_at"],
            updated_at=row["updated_at"],
        )

    @property
    def is_admin(self) -> bool:
        return self.role == UserRole.ADMIN


@dataclass
class PlanLimits:
    """Usage limits stored on a pricing plan. 0 means unlimited."""
    max_plugins: int = 0
    max_storage_mb: int = 0
    max_conversions: int = 0
    max_active_plugins: int = 0

    @classmethod
    def from_json(cls, data: Optional[dict[str, Any]]) -> "PlanLimits":
        data = data or {}
        return cls(
            max_plugins=int(data.get("max_plugins") or 0),
            max_storage_mb=int(data.get("max_storage_mb") or 0),
            max_conversions=int(data.get("max_conversions") or 0),
            max_active_plugins=int(data.get("max_active_plugins") or 0),
        )
