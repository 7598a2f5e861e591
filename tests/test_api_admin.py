"""
Tests for vidah/api/admin.py — login, token checks, conversion export, dashboard.
"""
import csv
import io
import pytest
from datetime import datetime, timezone, timedelta

import jwt
from sqlalchemy import select

from vidah.models.admin_user import AdminUser

ADMIN_PASSWORD = "correct-horse-battery"


def _token(payload: dict, secret: str = "test_jwt_secret") -> str:
    return jwt.encode(payload, secret, algorithm="HS256")


# ---------------------------------------------------------------------------
# POST /api/admin/login
# ---------------------------------------------------------------------------


class TestLogin:
    @pytest.mark.asyncio
    async def test_success_returns_token_and_admin(self, client, admin_user):
        resp = await client.post("/api/admin/login", json={"username": "admin", "password": ADMIN_PASSWORD})

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["admin"] == {"id": admin_user.id, "username": "admin", "email": "admin@cartaovidah.com"}
        claims = jwt.decode(data["token"], "test_jwt_secret", algorithms=["HS256"])
        assert claims["id"] == admin_user.id
        assert claims["username"] == "admin"
        assert claims["exp"] - claims["iat"] == 24 * 3600

    @pytest.mark.asyncio
    async def test_success_stamps_last_login(self, client, admin_user, session_factory):
        await client.post("/api/admin/login", json={"username": "admin", "password": ADMIN_PASSWORD})

        async with session_factory() as session:
            admin = (await session.execute(select(AdminUser))).scalar_one()
        assert admin.last_login_at is not None

    @pytest.mark.asyncio
    async def test_password_hash_never_returned(self, client, admin_user):
        resp = await client.post("/api/admin/login", json={"username": "admin", "password": ADMIN_PASSWORD})
        assert "password" not in resp.json()["data"]["admin"]
        assert admin_user.password_hash not in resp.text

    @pytest.mark.asyncio
    async def test_failures_are_indistinguishable(self, client, admin_user, db):
        """Unknown user, wrong password and inactive account all give the same 401 body."""
        unknown = await client.post("/api/admin/login", json={"username": "ghost", "password": "x"})
        wrong = await client.post("/api/admin/login", json={"username": "admin", "password": "wrong"})

        admin_user.is_active = False
        await db.commit()
        inactive = await client.post("/api/admin/login", json={"username": "admin", "password": ADMIN_PASSWORD})

        for resp in (unknown, wrong, inactive):
            assert resp.status_code == 401
            assert resp.json() == {"success": False, "error": "Credenciais inválidas"}

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [
        {},
        {"username": "admin"},
        {"password": "x"},
        {"username": "  ", "password": "x"},
    ])
    async def test_missing_fields_400(self, client, body):
        resp = await client.post("/api/admin/login", json=body)
        assert resp.status_code == 400
        assert resp.json()["error"] == "Username e password são obrigatórios"

    @pytest.mark.asyncio
    async def test_login_rate_limited(self, client, redis_pipeline):
        redis_pipeline.execute.return_value = [6, False]
        resp = await client.post("/api/admin/login", json={"username": "admin", "password": "x"})
        assert resp.status_code == 429
        assert "Retry-After" in resp.headers


# ---------------------------------------------------------------------------
# Token checks
# ---------------------------------------------------------------------------


class TestProtectedRoutes:
    @pytest.mark.asyncio
    async def test_no_token(self, client):
        resp = await client.get("/api/admin/conversions")
        assert resp.status_code == 401
        assert resp.json()["success"] is False

    @pytest.mark.asyncio
    async def test_expired_token(self, client):
        past = datetime.now(timezone.utc) - timedelta(days=2)
        token = _token({"id": 1, "username": "admin", "iat": past, "exp": past + timedelta(hours=24)})

        resp = await client.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.json()["error"] == "Token expirado"

    @pytest.mark.asyncio
    async def test_tampered_token(self, client):
        now = datetime.now(timezone.utc)
        token = _token({"id": 1, "username": "admin", "iat": now, "exp": now + timedelta(hours=1)}, secret="other")

        resp = await client.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.json()["error"] == "Token inválido"

    @pytest.mark.asyncio
    async def test_token_without_identity_claims(self, client):
        now = datetime.now(timezone.utc)
        token = _token({"iat": now, "exp": now + timedelta(hours=1)})

        resp = await client.get("/api/admin/me", headers={"Authorization": f"Bearer {token}"})

        assert resp.status_code == 401
        assert resp.json()["error"] == "Token inválido"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("path", [
        "/api/admin/me",
        "/api/admin/conversions",
        "/api/admin/conversions/export",
        "/api/admin/dashboard",
    ])
    async def test_admin_routes_rate_limited(self, client, auth_headers, redis_pipeline, path):
        """Past 20 requests per window every protected route answers 429, even with a valid token."""
        redis_pipeline.execute.return_value = [21, False]

        resp = await client.get(path, headers=auth_headers)

        assert resp.status_code == 429
        assert resp.headers["Retry-After"] == "300"
        assert resp.json()["success"] is False
        redis_pipeline.incr.assert_called_with("vidah:ratelimit:admin:127.0.0.1")

    @pytest.mark.asyncio
    async def test_admin_limit_checked_before_token(self, client, redis_pipeline):
        redis_pipeline.execute.return_value = [21, False]
        resp = await client.get("/api/admin/conversions")
        assert resp.status_code == 429

    @pytest.mark.asyncio
    async def test_at_admin_limit_still_allowed(self, client, auth_headers, redis_pipeline):
        redis_pipeline.execute.return_value = [20, False]
        resp = await client.get("/api/admin/me", headers=auth_headers)
        assert resp.status_code == 200

    @pytest.mark.asyncio
    async def test_me(self, client, auth_headers, admin_user):
        resp = await client.get("/api/admin/me", headers=auth_headers)
        assert resp.status_code == 200
        assert resp.json()["data"] == {"id": admin_user.id, "username": "admin"}


# ---------------------------------------------------------------------------
# Conversions and export
# ---------------------------------------------------------------------------


class TestConversions:
    @pytest.mark.asyncio
    async def test_list_newest_first(self, client, auth_headers, make_conversion):
        now = datetime.now(timezone.utc)
        await make_conversion(name="Velha", created_at=now - timedelta(hours=1))
        await make_conversion(name="Nova", created_at=now)

        resp = await client.get("/api/admin/conversions", headers=auth_headers)

        assert resp.status_code == 200
        assert [c["name"] for c in resp.json()["data"]] == ["Nova", "Velha"]

    @pytest.mark.asyncio
    async def test_csv_export(self, client, auth_headers, make_conversion):
        await make_conversion(
            name="Maria da Silva", phone="(16) 99324-7676", button_type="plan_subscription",
            plan_name="Cartão Familiar",
        )
        await make_conversion(
            name="Carlos", email=None, phone=None, button_type="enterprise_quote", plan_name=None,
            created_at=datetime.now(timezone.utc) - timedelta(minutes=5),
        )

        resp = await client.get("/api/admin/conversions/export", headers=auth_headers)

        assert resp.status_code == 200
        assert resp.headers["content-type"].startswith("text/csv")
        assert resp.headers["content-disposition"] == 'attachment; filename="conversions.csv"'
        assert resp.text.splitlines()[0] == (
            '"Email","Phone","First_Name","Last_Name","Interest_Category","Campaign_Type"'
        )
        rows = list(csv.reader(io.StringIO(resp.text)))
        assert rows[1] == ["maria@example.com", "16993247676", "Maria", "da Silva", "Cartão Familiar", "Planos"]
        assert rows[2] == ["", "", "Carlos", "", "Geral", "Corporativo"]

    @pytest.mark.asyncio
    async def test_json_export(self, client, auth_headers, make_conversion):
        await make_conversion()
        resp = await client.get("/api/admin/conversions/export?format=json", headers=auth_headers)
        assert resp.status_code == 200
        body = resp.json()
        assert body["success"] is True
        assert body["data"][0]["buttonType"] == "plan_subscription"

    @pytest.mark.asyncio
    async def test_export_date_range(self, client, auth_headers, make_conversion):
        await make_conversion(name="Janeiro", created_at=datetime(2026, 1, 15, 10, tzinfo=timezone.utc))
        await make_conversion(name="Fim De Fevereiro", created_at=datetime(2026, 2, 28, 23, 30, tzinfo=timezone.utc))
        await make_conversion(name="Marco", created_at=datetime(2026, 3, 1, 0, 0, 1, tzinfo=timezone.utc))

        resp = await client.get(
            "/api/admin/conversions/export",
            params={"format": "json", "startDate": "2026-02-01", "endDate": "2026-02-28"},
            headers=auth_headers,
        )

        assert resp.status_code == 200
        assert [c["name"] for c in resp.json()["data"]] == ["Fim De Fevereiro"]

    @pytest.mark.asyncio
    async def test_single_bound_is_ignored(self, client, auth_headers, make_conversion):
        await make_conversion(created_at=datetime(2020, 1, 1, tzinfo=timezone.utc))
        resp = await client.get(
            "/api/admin/conversions/export",
            params={"format": "json", "startDate": "2026-01-01"},
            headers=auth_headers,
        )
        assert len(resp.json()["data"]) == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("params", [
        {"startDate": "not-a-date", "endDate": "2026-01-01"},
        {"startDate": "2026-02-01", "endDate": "2026-01-01"},
        {"format": "xml"},
    ])
    async def test_bad_export_params_400(self, client, auth_headers, params):
        resp = await client.get("/api/admin/conversions/export", params=params, headers=auth_headers)
        assert resp.status_code == 400
        assert resp.json()["success"] is False


# ---------------------------------------------------------------------------
# GET /api/admin/dashboard
# ---------------------------------------------------------------------------


class TestDashboard:
    @pytest.mark.asyncio
    async def test_stats_and_recent(self, client, auth_headers, make_conversion):
        for i in range(12):
            await make_conversion(
                button_type="plan_subscription" if i % 2 else "doctor_appointment",
                created_at=datetime(2026, 1, 1, tzinfo=timezone.utc) + timedelta(hours=i),
            )

        resp = await client.get("/api/admin/dashboard", headers=auth_headers)

        assert resp.status_code == 200
        data = resp.json()["data"]
        assert data["stats"] == {
            "totalConversions": 12,
            "planSubscriptions": 6,
            "doctorAppointments": 6,
            "enterpriseQuotes": 0,
        }
        assert len(data["conversions"]) == 10

    @pytest.mark.asyncio
    async def test_requires_token(self, client):
        resp = await client.get("/api/admin/dashboard")
        assert resp.status_code == 401
