"""Row factories shaped like asyncpg records from each table."""
import uuid
from datetime import datetime, timezone
from typing import Any, Dict

from faker import Faker

fake = Faker()


def now() -> datetime:
    return datetime.now(timezone.utc)


def profile_row(**overrides) -> Dict[str, Any]:
    row = {
        "id": str(uuid.uuid4()),
        "full_name": fake.name(),
        "role": "user",
        "subscription_tier": "free",
        "subscription_status": "trial",
        "trial_ends_at": None,
        "created_at": now(),
        "updated_at": now(),
    }
    row.update(overrides)
    return row


def plugin_request_row(**overrides) -> Dict[str, Any]:
    row = {
        "id": str(uuid.uuid4()),
        "user_id": str(uuid.uuid4()),
        "plugin_name": fake.catch_phrase(),
        "plugin_type": "seo",
        "description": fake.sentence(),
        "custom_features": [],
        "theme_compatibility": [],
        "reference_images": [],
        "builder_type": None,
        "builder_config": {},
        "status": "pending",
        "created_at": now(),
        "updated_at": now(),
        "generated_id": None,
    }
    row.update(overrides)
    return row


def conversion_row(**overrides) -> Dict[str, Any]:
    row = {
        "id": str(uuid.uuid4()),
        "user_id": str(uuid.uuid4()),
        "name": "Landing Page",
        "image_url": fake.image_url(),
        "conversion_type": "html",
        "prompt": None,
        "status": "pending",
        "analysis": None,
        "result": None,
        "companion_plugin": None,
        "needs_companion_plugin": False,
        "error_message": None,
        "completed_at": None,
        "created_at": now(),
        "updated_at": now(),
    }
    row.update(overrides)
    return row


def page_row(**overrides) -> Dict[str, Any]:
    row = {
        "id": str(uuid.uuid4()),
        "title": "About Us",
        "slug": "about-us",
        "template": "default",
        "meta_title": None,
        "meta_description": None,
        "content": [],
        "published": False,
        "created_at": now(),
        "updated_at": now(),
    }
    row.update(overrides)
    return row


def track_conversion(db, row: Dict[str, Any]) -> Dict[str, Any]:
    """Keep `row` in step with the status updates the conversion pipeline issues."""
    db.on("fetchrow", "SELECT * FROM design_conversions WHERE id = $1", lambda *args: dict(row))

    def advance(conversion_id, current, target, *fields):
        if row["status"] != current:
            return None
        row["status"] = target
        return conversion_id

    def finish(conversion_id, status, *values):
        row["status"] = status
        if status == "completed":
            row["result"], row["companion_plugin"], row["needs_companion_plugin"] = values
        else:
            row["error_message"] = values[0]
        return "UPDATE 1"

    db.on("fetchval", "UPDATE design_conversions", advance)
    db.on("execute", "UPDATE design_conversions", finish)
    return row
