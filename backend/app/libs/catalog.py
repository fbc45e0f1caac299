"""Static catalogs the frontend renders as choices.

Plugin types, common features, theme compatibility, page builder module
options, Stripe products and admin integration definitions.
"""

from typing import Dict, List, Optional

from pydantic import BaseModel

from app.libs.models import BuilderType, PluginType


class Option(BaseModel):
    """A selectable option with a label"""
    value: str
    label: str
    description: Optional[str] = None


PLUGIN_TYPES: List[Option] = [
    Option(value=PluginType.WOOCOMMERCE.value, label="WooCommerce Integration"),
    Option(value=PluginType.SEO.value, label="SEO Enhancement"),
    Option(value=PluginType.MEMBERSHIP.value, label="Membership System"),
    Option(value=PluginType.FORMS.value, label="Custom Forms"),
    Option(value=PluginType.SECURITY.value, label="Security Enhancement"),
    Option(value=PluginType.PERFORMANCE.value, label="Performance Optimization"),
    Option(value=PluginType.SOCIAL.value, label="Social Media Integration"),
    Option(value=PluginType.CUSTOM.value, label="Custom Plugin"),
]

COMMON_FEATURES: List[str] = [
    "Shortcode Generator",
    "Custom Post Types",
    "REST API Integration",
    "Admin Dashboard",
    "Email Notifications",
    "User Roles & Permissions",
    "Database Tables",
    "AJAX Functionality",
    "Widget Support",
    "Gutenberg Blocks",
    "Webhook Integration",
    "CSV Import/Export",
]

THEME_COMPATIBILITY: List[str] = [
    "Divi",
    "Elementor",
    "Astra",
    "OceanWP",
    "GeneratePress",
    "Avada",
    "Enfold",
    "Salient",
]

BUILDER_MODULE_OPTIONS: Dict[str, List[Option]] = {
    BuilderType.DIVI.value: [
        Option(value="basic", label="Basic Module", description="Simple module with text and styling options"),
        Option(value="advanced", label="Advanced Module", description="Complex module with custom fields and controls"),
        Option(value="slider", label="Slider Module", description="Carousel/slider with multiple items"),
        Option(value="form", label="Form Module", description="Custom form with validation"),
    ],
    BuilderType.ELEMENTOR.value: [
        Option(value="basic", label="Basic Widget", description="Simple widget with controls"),
        Option(value="advanced", label="Advanced Widget", description="Complex widget with multiple sections"),
        Option(value="dynamic", label="Dynamic Widget", description="Widget with dynamic content"),
        Option(value="form", label="Form Widget", description="Custom form widget"),
    ],
}


# =============================================================================
# STRIPE PRODUCTS
# =============================================================================


class StripeProduct(BaseModel):
    """A Stripe price the frontend can subscribe to"""
    price_id: str
    name: str
    description: str
    mode: str  # 'payment' or 'subscription'
    price: float
    currency: str
    interval: Optional[str] = None  # 'month' or 'year'
    tier: str


STRIPE_PRODUCTS: List[StripeProduct] = [
    StripeProduct(
        price_id="price_1SnJrmI2kIUOizBRppwoKIPT",
        name="Pro Plugin Subscription",
        description="Advanced plugin generation with premium features and priority support",
        mode="subscription",
        price=29.99,
        currency="usd",
        interval="month",
        tier="pro",
    ),
    StripeProduct(
        price_id="price_1SnJsAI2kIUOizBRrEmOCZ71",
        name="Enterprise Plugin Subscription",
        description="Full-featured plugin generation with unlimited requests and dedicated support",
        mode="subscription",
        price=99.99,
        currency="usd",
        interval="month",
        tier="enterprise",
    ),
]


def find_product(price_id: Optional[str]) -> Optional[StripeProduct]:
    """Look up a product by its Stripe price id."""
    if not price_id:
        return None
    return next((p for p in STRIPE_PRODUCTS if p.price_id == price_id), None)


# =============================================================================
# ADMIN INTEGRATIONS
# =============================================================================


class IntegrationField(BaseModel):
    key: str
    label: str
    type: str  # 'text' or 'password'
    placeholder: str
    help_text: str


class IntegrationConfig(BaseModel):
    """A third-party service whose API keys the admin can store"""
    name: str
    display_name: str
    description: str
    fields: List[IntegrationField]
    docs_url: str
    get_started_url: str


INTEGRATIONS: List[IntegrationConfig] = [
    IntegrationConfig(
        name="stripe",
        display_name="Stripe",
        description="Accept payments and manage subscriptions",
        fields=[
            IntegrationField(
                key="publishable_key",
                label="Publishable Key",
                type="text",
                placeholder="pk_live_...",
                help_text="Your Stripe publishable key (starts with pk_)",
            ),
            IntegrationField(
                key="secret_key",
                label="Secret Key",
                type="password",
                placeholder="sk_live_...",
                help_text="Your Stripe secret key (starts with sk_)",
            ),
        ],
        docs_url="https://stripe.com/docs/keys",
        get_started_url="https://dashboard.stripe.com/apikeys",
    ),
    IntegrationConfig(
        name="openai",
        display_name="OpenAI",
        description="Use GPT models for AI-powered features",
        fields=[
            IntegrationField(
                key="api_key",
                label="API Key",
                type="password",
                placeholder="sk-...",
                help_text="Your OpenAI API key",
            ),
        ],
        docs_url="https://platform.openai.com/docs/api-reference",
        get_started_url="https://platform.openai.com/api-keys",
    ),
    IntegrationConfig(
        name="anthropic",
        display_name="Anthropic Claude",
        description="Use Claude models for advanced AI capabilities",
        fields=[
            IntegrationField(
                key="api_key",
                label="API Key",
                type="password",
                placeholder="sk-ant-...",
                help_text="Your Anthropic API key",
            ),
        ],
        docs_url="https://docs.anthropic.com/claude/reference/getting-started-with-the-api",
        get_started_url="https://console.anthropic.com/settings/keys",
    ),
]


def find_integration(name: str) -> Optional[IntegrationConfig]:
    return next((i for i in INTEGRATIONS if i.name == name), None)


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    """Replace all but the last `visible` characters with asterisks."""
    if not value:
        return ""
    if len(value) <= visible:
        return "*" * len(value)
    return "*" * (len(value) - visible) + value[-visible:]


# =============================================================================
# SITE SETTINGS
# =============================================================================


DEFAULT_SITE_SETTINGS: Dict[str, dict] = {
    "theme": {
        "primaryColor": "#2563eb",
        "secondaryColor": "#64748b",
        "fontFamily": "system-ui",
    },
    "site_info": {
        "name": "WP Plugin Builder",
        "tagline": "Build custom WordPress plugins with AI",
        "logo": "",
    },
}
