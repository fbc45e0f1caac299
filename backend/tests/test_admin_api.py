import asyncpg
import pytest

from app.apis import setup as setup_api
from factories import fake, now, page_row, plugin_request_row, profile_row


def _raise(exc):
    def raiser(*args):
        raise exc
    return raiser


# ═══════════════════════════════════════════════════════
# ACCESS
# ═══════════════════════════════════════════════════════

@pytest.mark.anyio
async def test_non_admin_is_403(client, db, auth_headers):
    response = await client.get("/api/admin/stats", headers=auth_headers)
    assert response.status_code == 403
    assert response.json()["detail"] == "Admin access required"


@pytest.mark.anyio
async def test_admin_requires_token(client, db):
    response = await client.get("/api/admin/users")
    assert response.status_code == 401


# ═══════════════════════════════════════════════════════
# STATS, LOGS, USERS
# ═══════════════════════════════════════════════════════

@pytest.mark.anyio
async def test_stats(client, db, admin_headers):
    db.on("fetchrow", "AS total_users", {"total_users": 12, "total_plugins": 30, "active_subscriptions": 4, "total_pages": 3})
    db.on("fetch", "FROM admin_logs", [{
        "id": "log-1",
        "admin_id": "admin-1",
        "action": "Created page: About",
        "resource_type": "page",
        "resource_id": None,
        "created_at": now(),
    }])

    response = await client.get("/api/admin/stats", headers=admin_headers)

    assert response.status_code == 200
    data = response.json()
    assert data["total_users"] == 12
    assert data["recent_activity"][0]["action"] == "Created page: About"


@pytest.mark.anyio
async def test_logs_filter_and_limit(client, db, admin_headers):
    response = await client.get("/api/admin/logs?resource_type=page&limit=9000", headers=admin_headers)

    assert response.status_code == 200
    query = db.queries("fetch")[-1]
    assert "WHERE resource_type = $1" in query
    assert query.endswith("LIMIT $2")
    assert db.args_for("FROM admin_logs") == ("page", 500)


@pytest.mark.anyio
async def test_list_users_search(client, db, admin_headers):
    db.on("fetch", "FROM profiles", [profile_row(full_name="Jo March")])

    response = await client.get("/api/admin/users?role=user&search=jo", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()[0]["full_name"] == "Jo March"
    query = db.queries("fetch")[-1]
    assert "WHERE role = $1 AND (full_name ILIKE $2 OR id::text ILIKE $2)" in query
    assert db.args_for("FROM profiles ") == ("user", "%jo%")


@pytest.mark.anyio
async def test_update_user_logs_action(client, db, admin_headers):
    target = profile_row(full_name="Sam", subscription_tier="pro")
    db.on("fetchrow", "UPDATE profiles", target)

    response = await client.patch(
        f"/api/admin/users/{target['id']}", json={"subscription_tier": "pro"}, headers=admin_headers,
    )

    assert response.status_code == 200
    assert response.json()["subscription_tier"] == "pro"
    assert db.args_for("UPDATE profiles")[1:] == (None, "pro", None)
    log_args = db.args_for("INSERT INTO admin_logs")
    assert log_args[1] == "Updated user Sam: subscription_tier=pro"
    assert log_args[2:] == ("user", target["id"])


@pytest.mark.anyio
async def test_admin_cannot_demote_self(client, db, admin_headers, user_id):
    response = await client.patch(f"/api/admin/users/{user_id}", json={"role": "user"}, headers=admin_headers)
    assert response.status_code == 400


@pytest.mark.anyio
async def test_update_missing_user(client, db, admin_headers):
    response = await client.patch("/api/admin/users/nobody", json={"role": "admin"}, headers=admin_headers)
    assert response.status_code == 404


# ═══════════════════════════════════════════════════════
# SUBSCRIPTIONS & PLUGINS
# ═══════════════════════════════════════════════════════

@pytest.mark.anyio
async def test_list_subscriptions_filters(client, db, admin_headers):
    response = await client.get("/api/admin/subscriptions?status=past_due&search=acme", headers=admin_headers)

    assert response.status_code == 200
    query = db.queries("fetch")[-1]
    assert "WHERE s.status = $1 AND (p.full_name ILIKE $2 OR s.user_id::text ILIKE $2)" in query
    assert db.args_for("FROM subscriptions s") == ("past_due", "%acme%")


@pytest.mark.anyio
async def test_list_standard_plugins(client, db, admin_headers):
    row = plugin_request_row(full_name="Jane")
    db.on("fetch", "FROM plugin_requests pr", [row])

    response = await client.get("/api/admin/plugins?builder_type=standard&status=pending", headers=admin_headers)

    assert response.status_code == 200
    assert response.json()[0]["full_name"] == "Jane"
    query = db.queries("fetch")[-1]
    assert "WHERE pr.status = $1 AND pr.builder_type IS NULL" in query
    assert db.args_for("FROM plugin_requests pr") == ("pending",)


@pytest.mark.anyio
async def test_list_builder_plugins(client, db, admin_headers):
    await client.get("/api/admin/plugins?builder_type=divi&search=slider", headers=admin_headers)
    assert db.args_for("FROM plugin_requests pr") == ("divi", "%slider%")


@pytest.mark.anyio
async def test_advance_plugin_status(client, db, admin_headers):
    db.on("fetchrow", "SELECT plugin_name, status FROM plugin_requests", {"plugin_name": "Shop Sync", "status": "generating"})

    response = await client.put("/api/admin/plugins/req-1/status", json={"status": "testing"}, headers=admin_headers)

    assert response.status_code == 200
    assert response.json() == {"success": True, "status": "testing"}
    assert db.args_for("INSERT INTO admin_logs")[1] == "Set plugin Shop Sync to testing"


@pytest.mark.anyio
async def test_skipping_plugin_status_is_409(client, db, admin_headers):
    db.on("fetchrow", "SELECT plugin_name, status FROM plugin_requests", {"plugin_name": "Shop Sync", "status": "pending"})

    response = await client.put("/api/admin/plugins/req-1/status", json={"status": "completed"}, headers=admin_headers)

    assert response.status_code == 409
    assert not any("INSERT INTO admin_logs" in q for q in db.queries())


# ═══════════════════════════════════════════════════════
# PAGES
# ═══════════════════════════════════════════════════════

@pytest.mark.anyio
async def test_public_page_only_when_published(client, db):
    response = await client.get("/api/pages/about-us")
    assert response.status_code == 404
    assert "AND published" in db.queries("fetchrow")[-1]


@pytest.mark.anyio
async def test_block_types(client, db, admin_headers):
    response = await client.get("/api/admin/pages/block-types", headers=admin_headers)
    assert response.status_code == 200
    assert "hero" in response.json()["block_types"]
    assert response.json()["templates"] == ["default", "landing", "docs", "full-width"]


@pytest.mark.anyio
async def test_create_page_derives_slug(client, db, admin_headers):
    db.on("fetchrow", "INSERT INTO pages", lambda *args: page_row(title=args[0], slug=args[1], content=args[5]))
    payload = {"title": "Pricing & Plans", "content": [{"type": "hero"}]}

    response = await client.post("/api/admin/pages", json=payload, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["slug"] == "pricing-plans"
    assert data["published"] is False
    assert data["content"][0]["content"]["buttonText"] == "Get Started"
    assert db.args_for("INSERT INTO admin_logs")[2] == "page"


@pytest.mark.anyio
async def test_create_page_with_bad_block(client, db, admin_headers):
    payload = {"title": "About", "content": [{"type": "marquee"}]}
    response = await client.post("/api/admin/pages", json=payload, headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.anyio
async def test_duplicate_slug_is_409(client, db, admin_headers):
    db.on("fetchrow", "INSERT INTO pages", _raise(asyncpg.UniqueViolationError("duplicate key")))
    response = await client.post("/api/admin/pages", json={"title": "About Us"}, headers=admin_headers)
    assert response.status_code == 409


@pytest.mark.anyio
async def test_toggle_publish(client, db, admin_headers):
    db.on("fetchrow", "SET published = NOT published", page_row(published=True))

    response = await client.post("/api/admin/pages/page-1/publish", headers=admin_headers)

    assert response.json()["published"] is True
    assert db.args_for("INSERT INTO admin_logs")[1] == "Published page: About Us"


@pytest.mark.anyio
async def test_add_block(client, db, admin_headers):
    db.on("fetchrow", "SELECT * FROM pages WHERE id", page_row(content=[]))
    db.on("fetchrow", "UPDATE pages SET content", lambda page_id, blocks: page_row(id=page_id, content=blocks))

    response = await client.post("/api/admin/pages/page-1/blocks", json={"type": "faq"}, headers=admin_headers)

    assert response.status_code == 200
    block = response.json()["content"][0]
    assert block["type"] == "faq"
    assert len(block["content"]["items"]) == 2


@pytest.mark.anyio
async def test_move_block(client, db, admin_headers):
    blocks = [{"id": "a", "type": "divider", "content": {}}, {"id": "b", "type": "divider", "content": {}}]
    db.on("fetchrow", "SELECT * FROM pages WHERE id", page_row(content=blocks))
    db.on("fetchrow", "UPDATE pages SET content", lambda page_id, blocks: page_row(content=blocks))

    response = await client.post(
        "/api/admin/pages/page-1/blocks/move", json={"index": 1, "direction": "up"}, headers=admin_headers,
    )

    assert [b["id"] for b in response.json()["content"]] == ["b", "a"]


@pytest.mark.anyio
async def test_delete_unknown_block(client, db, admin_headers):
    db.on("fetchrow", "SELECT * FROM pages WHERE id", page_row(content=[{"id": "a", "type": "divider"}]))
    response = await client.delete("/api/admin/pages/page-1/blocks/zzz", headers=admin_headers)
    assert response.status_code == 404
    assert not db.queries("execute")


@pytest.mark.anyio
@pytest.mark.parametrize("method,path,body,action", [
    ("POST", "/api/admin/pages/page-1/blocks", {"type": "divider"}, "Added divider block to page: About Us"),
    ("POST", "/api/admin/pages/page-1/blocks/move", {"index": 1, "direction": "up"}, "Moved block 1 up on page: About Us"),
    ("DELETE", "/api/admin/pages/page-1/blocks/a", None, "Deleted block a from page: About Us"),
])
async def test_block_edits_lock_page_and_are_audited(client, db, admin_headers, method, path, body, action):
    blocks = [{"id": "a", "type": "divider", "content": {}}, {"id": "b", "type": "divider", "content": {}}]
    db.on("fetchrow", "SELECT * FROM pages WHERE id", page_row(title="About Us", content=blocks))
    db.on("fetchrow", "UPDATE pages SET content", lambda page_id, blocks: page_row(title="About Us", content=blocks))

    response = await client.request(method, path, json=body, headers=admin_headers)

    assert response.status_code == 200
    assert any("FOR UPDATE" in q for q in db.queries("fetchrow") if "FROM pages WHERE id" in q)
    assert db.args_for("INSERT INTO admin_logs")[1:] == (action, "page", "page-1")


@pytest.mark.anyio
async def test_delete_page(client, db, admin_headers):
    db.on("fetchval", "DELETE FROM pages", "About Us")
    response = await client.delete("/api/admin/pages/page-1", headers=admin_headers)
    assert response.status_code == 200
    assert db.args_for("INSERT INTO admin_logs")[1] == "Deleted page: About Us"


# ═══════════════════════════════════════════════════════
# INTEGRATIONS & SITE SETTINGS
# ═══════════════════════════════════════════════════════

@pytest.mark.anyio
async def test_integrations_are_masked(client, db, admin_headers):
    db.on("fetch", "FROM api_keys", [
        {"id": "k1", "service_name": "openai", "key_type": "api_key", "encrypted_value": "sk-abcdefgh1234",
         "is_active": True, "last_used_at": None},
    ])

    response = await client.get("/api/admin/integrations", headers=admin_headers)

    by_name = {i["integration"]["name"]: i for i in response.json()}
    assert by_name["openai"]["configured"] is True
    assert by_name["openai"]["keys"]["api_key"]["masked_value"] == "***********1234"
    assert by_name["stripe"]["configured"] is False


@pytest.mark.anyio
async def test_save_integration_keys(client, db, admin_headers):
    response = await client.put(
        "/api/admin/integrations/stripe",
        json={"values": {"publishable_key": "pk_test_1", "secret_key": "sk_test_2"}},
        headers=admin_headers,
    )

    assert response.json() == {"success": True, "saved": ["publishable_key", "secret_key"]}
    upserts = [(q, args) for m, q, args in db.calls if "INSERT INTO api_keys" in q]
    assert [args for _, args in upserts] == [
        ("stripe", "publishable_key", "pk_test_1"),
        ("stripe", "secret_key", "sk_test_2"),
    ]
    assert all("ON CONFLICT (service_name, key_type) DO UPDATE" in q for q, _ in upserts)
    assert not any("SELECT id FROM api_keys" in q for q in db.queries())


@pytest.mark.anyio
async def test_blank_keys_are_skipped(client, db, admin_headers):
    response = await client.put(
        "/api/admin/integrations/openai", json={"values": {"api_key": "  "}}, headers=admin_headers,
    )
    assert response.json()["saved"] == []
    assert not any("admin_logs" in q for q in db.queries())


@pytest.mark.anyio
async def test_unknown_integration_and_field(client, db, admin_headers):
    response = await client.put("/api/admin/integrations/github", json={}, headers=admin_headers)
    assert response.status_code == 404

    response = await client.put(
        "/api/admin/integrations/openai", json={"values": {"org_id": "x"}}, headers=admin_headers,
    )
    assert response.status_code == 400


@pytest.mark.anyio
async def test_site_settings_merge_over_defaults(client, db):
    db.on("fetch", "FROM site_settings", [{"key": "theme", "value": {"primaryColor": "#000000"}}])

    response = await client.get("/api/settings")

    data = response.json()
    assert data["theme"] == {"primaryColor": "#000000", "secondaryColor": "#64748b", "fontFamily": "system-ui"}
    assert data["site_info"]["name"] == "WP Plugin Builder"


@pytest.mark.anyio
async def test_reset_site_settings(client, db, admin_headers):
    response = await client.post("/api/admin/settings/reset", headers=admin_headers)

    assert response.json()["theme"]["primaryColor"] == "#2563eb"
    stored = [args[0] for m, q, args in db.calls if m == "execute" and "INSERT INTO site_settings" in q]
    assert stored == ["theme", "site_info"]


# ═══════════════════════════════════════════════════════
# PRICING PLANS
# ═══════════════════════════════════════════════════════

def _plan_row(*args):
    name, slug, description, monthly, yearly, features, limits, is_active, sort_order = args[-9:]
    return {
        "id": "plan-1", "name": name, "slug": slug, "description": description,
        "price_monthly": monthly, "price_yearly": yearly, "features": features,
        "limits": limits, "is_active": is_active, "sort_order": sort_order,
    }


@pytest.mark.anyio
async def test_create_pricing_plan(client, db, admin_headers):
    db.on("fetchrow", "INSERT INTO pricing_plans", _plan_row)
    payload = {
        "name": "Agency Plus",
        "price_monthly": "49.00",
        "features": ["Unlimited sites", " ", "Priority support"],
        "limits": {"max_plugins": 50},
    }

    response = await client.post("/api/admin/pricing-plans", json=payload, headers=admin_headers)

    assert response.status_code == 201
    data = response.json()
    assert data["slug"] == "agency-plus"
    assert data["features"] == ["Unlimited sites", "Priority support"]
    assert data["limits"] == {"max_plugins": 50, "max_storage_mb": 0, "max_conversions": 0, "max_active_plugins": 0}


@pytest.mark.anyio
async def test_pricing_plan_negative_limit(client, db, admin_headers):
    payload = {"name": "Bad", "limits": {"max_plugins": -1}}
    response = await client.post("/api/admin/pricing-plans", json=payload, headers=admin_headers)
    assert response.status_code == 422


@pytest.mark.anyio
async def test_update_missing_pricing_plan(client, db, admin_headers):
    response = await client.put("/api/admin/pricing-plans/plan-9", json={"name": "Pro"}, headers=admin_headers)
    assert response.status_code == 404


# ═══════════════════════════════════════════════════════
# SETUP
# ═══════════════════════════════════════════════════════

@pytest.mark.anyio
async def test_setup_status_incomplete(client, db):
    response = await client.get("/api/setup/status")
    assert response.json() == {"is_complete": False, "completed_at": None, "admin_email": None}


@pytest.mark.anyio
async def test_setup_status_complete(client, db):
    db.on("fetchval", "SELECT EXISTS", True)
    db.on("fetchval", "FROM site_settings", {"completedAt": "2025-01-01T00:00:00+00:00", "adminEmail": "a@b.co"})

    data = (await client.get("/api/setup/status")).json()

    assert data["is_complete"] is True
    assert data["admin_email"] == "a@b.co"


@pytest.mark.anyio
async def test_setup_status_accepts_utc_suffix(client, db):
    db.on("fetchval", "FROM site_settings", {"completedAt": "2025-01-01T00:00:00.000Z"})

    response = await client.get("/api/setup/status")

    assert response.status_code == 200
    assert response.json()["completed_at"].startswith("2025-01-01T00:00:00")


@pytest.mark.anyio
async def test_create_first_admin(client, db, auth_headers, user_id):
    email = fake.email()

    response = await client.post("/api/setup/admin", json={"email": email, "full_name": "Owner"}, headers=auth_headers)

    assert response.status_code == 200
    assert response.json()["is_complete"] is True
    assert db.args_for("INSERT INTO profiles")[:3] == (user_id, "Owner", "admin")
    assert db.args_for("INSERT INTO site_settings")[1]["adminEmail"] == email


@pytest.mark.anyio
async def test_create_admin_after_setup_is_409(client, db, auth_headers):
    db.on("fetchval", "SELECT EXISTS", True)
    response = await client.post("/api/setup/admin", json={"email": "x@y.io"}, headers=auth_headers)
    assert response.status_code == 409


@pytest.mark.anyio
@pytest.mark.parametrize("email", ["nope", "a@b", "two@@example.com", "spaces in@example.com"])
async def test_create_admin_rejects_bad_email(client, db, auth_headers, email):
    response = await client.post("/api/setup/admin", json={"email": email}, headers=auth_headers)
    assert response.status_code == 422
    assert not db.queries("execute")


@pytest.mark.anyio
async def test_connection_check_requires_sign_in(client):
    response = await client.post("/api/setup/test-connection", json={"database_url": "postgresql://x"})
    assert response.status_code == 401


@pytest.mark.anyio
async def test_connection_check_reports_failure(client, db, auth_headers, monkeypatch):
    async def refuse(*args, **kwargs):
        raise OSError("Connection refused")

    monkeypatch.setattr(setup_api.asyncpg, "connect", refuse)

    response = await client.post(
        "/api/setup/test-connection", json={"database_url": "postgresql://localhost/none"}, headers=auth_headers,
    )

    assert response.status_code == 200
    assert response.json()["success"] is False
    assert response.json()["error"] == "Connection refused"


@pytest.mark.anyio
async def test_migration_check_detects_missing_tables(client, db, auth_headers, monkeypatch):
    async def connect(*args, **kwargs):
        return db

    monkeypatch.setattr(setup_api.asyncpg, "connect", connect)

    response = await client.post(
        "/api/setup/test-connection",
        json={"database_url": "postgresql://localhost/app", "test_type": "migration"},
        headers=auth_headers,
    )

    data = response.json()
    assert data["success"] is False
    assert data["migration_needed"] is True
    # the setup check and the checked database both close
    assert db.closed == 2


@pytest.mark.anyio
async def test_connection_check_rejects_unknown_type(client, auth_headers):
    response = await client.post(
        "/api/setup/test-connection",
        json={"database_url": "postgresql://x", "test_type": "ping"},
        headers=auth_headers,
    )
    assert response.status_code == 422


@pytest.mark.anyio
async def test_connection_check_closed_after_setup(client, db, auth_headers, monkeypatch):
    async def connect(*args, **kwargs):
        raise AssertionError("should not reach the target database")

    monkeypatch.setattr(setup_api.asyncpg, "connect", connect)
    db.on("fetchval", "SELECT EXISTS", True)

    response = await client.post(
        "/api/setup/test-connection", json={"database_url": "postgresql://localhost/app"}, headers=auth_headers,
    )

    assert response.status_code == 409
    assert db.closed == 1
