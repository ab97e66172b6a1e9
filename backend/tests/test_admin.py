"""
Admin mode tests.

Verifies:
- One-time admin registration; replay never rotates the secret
- Admin login issues a grant usable only with the same user's bearer session
- Missing grant -> 401, bad/expired/foreign grant -> 403
- Stats, items, audit log and activity are limited to the caller's own data
"""

import re

import pytest

from marketbook.models import AuditLog, Notification, SessionToken, User
from marketbook.services import admin_service, session_service
from marketbook.time_utils import utcnow

from conftest import admin_headers_for, bearer_for


ADMIN_ROUTES = [
    ("GET", "/api/admin/stats"),
    ("GET", "/api/admin/items"),
    ("DELETE", "/api/admin/items/1"),
    ("GET", "/api/admin/audit-logs"),
    ("GET", "/api/admin/user-activity"),
    ("POST", "/api/auth/admin/logout"),
]


class TestAdminRegistration:
    def test_register_returns_secret_once(self, client, db_session, user_a, headers_a):
        resp = client.post("/api/auth/admin/register", headers=headers_a)
        assert resp.status_code == 200
        admin_pass = resp.json["admin_pass"]
        assert re.fullmatch(r"[0-9a-f]{32}", admin_pass)

        db_session.expire_all()
        user = db_session.get(User, user_a.id)
        assert user.is_admin_registered
        assert user.admin_secret_hash and admin_pass not in user.admin_secret_hash
        assert "admin_pass" not in client.get("/api/auth/me", headers=headers_a).json["user"]

    def test_replay_is_rejected_and_secret_unchanged(self, client, db_session, user_a, headers_a):
        first = client.post("/api/auth/admin/register", headers=headers_a)
        db_session.expire_all()
        stored = db_session.get(User, user_a.id).admin_secret_hash

        again = client.post("/api/auth/admin/register", headers=headers_a)
        assert again.status_code == 403
        assert again.json == {"error": "Admin already registered for this account", "code": "ALREADY_REGISTERED"}

        db_session.expire_all()
        assert db_session.get(User, user_a.id).admin_secret_hash == stored
        # The original secret still works
        login = client.post("/api/auth/admin/login", headers=headers_a, json={"admin_pass": first.json["admin_pass"]})
        assert login.status_code == 200

    def test_registration_is_audited(self, client, db_session, user_a, headers_a):
        client.post("/api/auth/admin/register", headers=headers_a)
        assert db_session.query(AuditLog).filter_by(user_id=user_a.id, action="ADMIN_REGISTERED").count() == 1


class TestAdminLogin:
    def test_wrong_pass(self, client, headers_a):
        client.post("/api/auth/admin/register", headers=headers_a)
        resp = client.post("/api/auth/admin/login", headers=headers_a, json={"admin_pass": "0" * 32})
        assert resp.status_code == 401
        assert resp.json == {"error": "Invalid admin pass", "code": "UNAUTHORIZED"}

    @pytest.mark.parametrize("admin_pass", [12345, ["x"], {"pass": "x"}])
    def test_non_string_pass(self, client, headers_a, admin_pass):
        client.post("/api/auth/admin/register", headers=headers_a)
        resp = client.post("/api/auth/admin/login", headers=headers_a, json={"admin_pass": admin_pass})
        assert resp.status_code == 401
        assert resp.json == {"error": "Invalid admin pass", "code": "UNAUTHORIZED"}

    def test_unregistered_user_cannot_login(self, client, headers_a):
        resp = client.post("/api/auth/admin/login", headers=headers_a, json={"admin_pass": "0" * 32})
        assert resp.status_code == 401

    def test_login_issues_24h_grant(self, client, db_session, user_a, headers_a):
        admin_pass = client.post("/api/auth/admin/register", headers=headers_a).json["admin_pass"]
        resp = client.post("/api/auth/admin/login", headers=headers_a, json={"admin_pass": admin_pass})
        assert resp.status_code == 200

        grant = session_service.validate_session(resp.json["admin_token"], scope=session_service.SCOPE_ADMIN)
        assert grant.user.id == user_a.id
        lifetime = grant.session.expires_at - grant.session.created_at
        assert lifetime.total_seconds() == 24 * 3600
        assert db_session.query(AuditLog).filter_by(user_id=user_a.id, action="ADMIN_LOGIN").count() == 1


class TestAdminGate:
    @pytest.mark.parametrize("method,path", ADMIN_ROUTES)
    def test_missing_admin_token(self, client, headers_a, method, path):
        resp = getattr(client, method.lower())(path, headers=headers_a)
        assert resp.status_code == 401
        assert resp.json == {"error": "Admin token required", "code": "UNAUTHORIZED"}

    @pytest.mark.parametrize("method,path", ADMIN_ROUTES)
    def test_invalid_admin_token(self, client, headers_a, method, path):
        headers = dict(headers_a, **{"X-Admin-Token": "bogus"})
        resp = getattr(client, method.lower())(path, headers=headers)
        assert resp.status_code == 403
        assert resp.json == {"error": "Invalid admin token", "code": "FORBIDDEN"}

    def test_bearer_token_is_not_a_grant(self, client, headers_a):
        headers = dict(headers_a, **{"X-Admin-Token": headers_a["Authorization"].split(" ", 1)[1]})
        assert client.get("/api/admin/stats", headers=headers).status_code == 403

    def test_grant_is_not_a_bearer_token(self, client, admin_headers_a):
        headers = {"Authorization": f"Bearer {admin_headers_a['X-Admin-Token']}"}
        assert client.get("/api/items", headers=headers).status_code == 401

    def test_other_users_grant_is_rejected(self, client, user_a, user_b, admin_headers_a):
        headers = bearer_for(user_b)
        headers["X-Admin-Token"] = admin_headers_a["X-Admin-Token"]
        resp = client.get("/api/admin/stats", headers=headers)
        assert resp.status_code == 403

    def test_expired_grant(self, client, db_session, admin_headers_a):
        grant = db_session.query(SessionToken).filter_by(scope="ADMIN").one()
        grant.expires_at = utcnow().replace(year=2000)
        db_session.commit()
        assert client.get("/api/admin/stats", headers=admin_headers_a).status_code == 403

    def test_admin_logout_revokes_grant(self, client, admin_headers_a):
        assert client.post("/api/auth/admin/logout", headers=admin_headers_a).status_code == 200
        assert client.get("/api/admin/stats", headers=admin_headers_a).status_code == 403
        # The bearer session survives admin logout
        assert client.get("/api/items", headers=admin_headers_a).status_code == 200


class TestAdminViews:
    def test_stats_are_own_data_only(self, client, user_a, user_b, admin_headers_a, make_item):
        make_item(user_a, amount_cents=10000)
        make_item(user_a, amount_cents=5050)
        make_item(user_b, amount_cents=999999)

        resp = client.get("/api/admin/stats", headers=admin_headers_a)
        assert resp.status_code == 200
        stats = resp.json["stats"]
        assert stats["total_items"] == 2
        assert stats["total_users"] == 1
        assert stats["total_revenue"] == "150.50"
        assert stats["total_revenue_display"] == "₦150.50"
        assert stats["recent_activity"] == 0

    def test_items_are_own_data_only(self, client, user_a, user_b, admin_headers_a, make_item):
        mine = make_item(user_a)
        make_item(user_b)
        resp = client.get("/api/admin/items", headers=admin_headers_a)
        assert [i["id"] for i in resp.json["items"]] == [mine.id]

    def test_admin_delete(self, client, db_session, user_a, admin_headers_a, make_item):
        item = make_item(user_a, title="Lamp")
        resp = client.delete(f"/api/admin/items/{item.id}", headers=admin_headers_a)
        assert resp.status_code == 200

        entry = db_session.query(AuditLog).filter_by(action="ADMIN_ITEM_DELETED").one()
        assert entry.details == "Admin deleted item: Lamp"
        note = db_session.query(Notification).filter_by(related_item_id=item.id).one()
        assert note.type == "warning"

    def test_admin_delete_foreign_item(self, client, user_b, admin_headers_a, make_item):
        item = make_item(user_b)
        resp = client.delete(f"/api/admin/items/{item.id}", headers=admin_headers_a)
        assert resp.status_code == 404

    def test_audit_logs_include_item_title(self, client, user_a, headers_a, fake_renderer):
        created = client.post("/api/items", headers=headers_a, json={"title": "Stool", "amount": 20})
        item_id = created.json["item"]["id"]
        client.post(f"/api/items/{item_id}/invoice", headers=headers_a)

        admin_pass = client.post("/api/auth/admin/register", headers=headers_a).json["admin_pass"]
        token = client.post("/api/auth/admin/login", headers=headers_a, json={"admin_pass": admin_pass}).json["admin_token"]
        headers = dict(headers_a, **{"X-Admin-Token": token})

        logs = client.get("/api/admin/audit-logs", headers=headers).json["logs"]
        assert [log["action"] for log in logs][:2] == ["ADMIN_LOGIN", "ADMIN_REGISTERED"]
        invoice_log = next(log for log in logs if log["action"] == "INVOICE_GENERATED")
        assert invoice_log["related_item_title"] == "Stool"

        stats = client.get("/api/admin/stats", headers=headers).json["stats"]
        assert stats["recent_activity"] == 4

    def test_user_activity_groups_by_day_and_action(self, client, db_session, user_a, admin_headers_a):
        today = utcnow()
        for action in ("ITEM_CREATED", "ITEM_CREATED", "EMAIL_SENT"):
            db_session.add(AuditLog(user_id=user_a.id, action=action, details="x", created_at=today))
        db_session.add(AuditLog(user_id=user_a.id, action="ITEM_CREATED", details="old", created_at=today.replace(year=2000)))
        db_session.commit()

        activity = client.get("/api/admin/user-activity", headers=admin_headers_a).json["activity"]
        day = today.strftime("%Y-%m-%d")
        assert {"date": day, "action": "ITEM_CREATED", "count": 2} in activity
        assert {"date": day, "action": "EMAIL_SENT", "count": 1} in activity
        assert all(row["date"] == day for row in activity)


def test_register_admin_service_rejects_replay(db_session, user_a):
    admin_service.register_admin(user_a)
    with pytest.raises(admin_service.AlreadyRegisteredError):
        admin_service.register_admin(user_a)
