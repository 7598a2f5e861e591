"""
Admin endpoints - login, conversion listing/export, dashboard stats.
Everything except login requires an admin bearer token.
"""
import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import StreamingResponse
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession

from vidah.api.conversions import get_client_ip
from vidah.api.errors import success_body
from vidah.config import get_settings
from vidah.database import get_db
from vidah.models.conversion import ButtonType
from vidah.services.auth import (
    AdminIdentity,
    AuthenticationError,
    TokenError,
    authenticate_admin,
    create_admin_token,
    decode_admin_token,
)
from vidah.services.conversion_store import ConversionStore, get_conversion_store
from vidah.services.export import (
    EXPORT_FILENAME,
    InvalidDateRangeError,
    conversions_to_csv,
    parse_date_range,
)
from vidah.utils.rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(tags=["admin"])
bearer_scheme = HTTPBearer(auto_error=False)

DASHBOARD_RECENT_LIMIT = 10
EXPORT_FORMATS = ("csv", "json")


async def get_current_admin(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> AdminIdentity:
    """Dependency: verify the bearer token and return the admin identity."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(status_code=401, detail="Token de acesso inválido")
    try:
        return decode_admin_token(credentials.credentials)
    except TokenError as e:
        logger.info("Admin token rejected: %s", e.message)
        raise HTTPException(status_code=401, detail=e.message)


async def admin_rate_limit(request: Request) -> None:
    """Dependency: per-IP limit shared by every protected admin route."""
    settings = get_settings()
    await enforce_rate_limit(
        "admin", get_client_ip(request), settings.admin_rate_limit, settings.admin_rate_window_seconds,
    )


# === AUTH ===

@router.post("/api/admin/login")
async def admin_login(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Exchange username/password for a signed admin token."""
    settings = get_settings()
    client_ip = get_client_ip(request)
    await enforce_rate_limit(
        "login", client_ip, settings.login_rate_limit, settings.login_rate_window_seconds,
    )

    try:
        payload = await request.json()
    except ValueError:
        payload = None
    if not isinstance(payload, dict):
        payload = {}

    username = payload.get("username")
    password = payload.get("password")
    if not isinstance(username, str) or not username.strip() or not isinstance(password, str) or not password:
        raise HTTPException(status_code=400, detail="Username e password são obrigatórios")

    try:
        admin = await authenticate_admin(db, username.strip(), password)
    except AuthenticationError as e:
        # Same response for every failure reason; only the log tells them apart
        logger.warning("Admin login failed: reason=%s", e.reason, extra={"client_ip": client_ip})
        raise HTTPException(status_code=401, detail="Credenciais inválidas")

    token = create_admin_token(admin)
    return success_body({
        "token": token,
        "admin": {"id": admin.id, "username": admin.username, "email": admin.email},
    })


@router.get("/api/admin/me", dependencies=[Depends(admin_rate_limit)])
async def admin_me(admin: AdminIdentity = Depends(get_current_admin)):
    return success_body({"id": admin.id, "username": admin.username})


# === CONVERSIONS ===

@router.get("/api/admin/conversions", dependencies=[Depends(admin_rate_limit)])
async def list_conversions(
    admin: AdminIdentity = Depends(get_current_admin),
    store: ConversionStore = Depends(get_conversion_store),
):
    """All conversions, newest first."""
    conversions = await store.list_all()
    return success_body([c.to_api() for c in conversions])


@router.get("/api/admin/conversions/export", dependencies=[Depends(admin_rate_limit)])
async def export_conversions(
    format: str = Query("csv"),
    start_date: Optional[str] = Query(None, alias="startDate"),
    end_date: Optional[str] = Query(None, alias="endDate"),
    admin: AdminIdentity = Depends(get_current_admin),
    store: ConversionStore = Depends(get_conversion_store),
):
    """Export conversions as CSV (ad-audience columns) or JSON, optionally by date range."""
    export_format = format.lower()
    if export_format not in EXPORT_FORMATS:
        raise HTTPException(status_code=400, detail="Formato inválido. Use csv ou json")

    try:
        date_range = parse_date_range(start_date, end_date)
    except InvalidDateRangeError as e:
        raise HTTPException(status_code=400, detail=str(e))

    if date_range:
        conversions = await store.list_by_date_range(*date_range)
    else:
        conversions = await store.list_all()

    logger.info(
        "Conversions exported: format=%s rows=%d", export_format, len(conversions),
        extra={"admin_id": admin.id},
    )

    if export_format == "json":
        return success_body([c.to_api() for c in conversions])

    return StreamingResponse(
        iter([conversions_to_csv(conversions)]),
        media_type="text/csv; charset=utf-8",
        headers={"Content-Disposition": f'attachment; filename="{EXPORT_FILENAME}"'},
    )


# === DASHBOARD ===

@router.get("/api/admin/dashboard", dependencies=[Depends(admin_rate_limit)])
async def admin_dashboard(
    admin: AdminIdentity = Depends(get_current_admin),
    store: ConversionStore = Depends(get_conversion_store),
):
    """Per-category counts plus the latest conversions."""
    counts = await store.count_by_button_type()
    recent = await store.list_all(limit=DASHBOARD_RECENT_LIMIT)
    return success_body({
        "stats": {
            "totalConversions": sum(counts.values()),
            "planSubscriptions": counts[ButtonType.PLAN_SUBSCRIPTION],
            "doctorAppointments": counts[ButtonType.DOCTOR_APPOINTMENT],
            "enterpriseQuotes": counts[ButtonType.ENTERPRISE_QUOTE],
        },
        "conversions": [c.to_api() for c in recent],
    })
