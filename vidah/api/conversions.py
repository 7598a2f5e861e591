"""
Lead-capture endpoint - validate, record, and hand back a WhatsApp link.

POST /track-whatsapp and POST /api/whatsapp/conversions share one handler.
Storage failures never block the redirect (see ConversionStore).
"""
import json
import logging

from fastapi import APIRouter, Depends, HTTPException, Request

from vidah.api.errors import success_body
from vidah.config import get_settings
from vidah.schemas.conversion import FieldError, LeadValidationError, parse_conversion_payload
from vidah.services.conversion_store import ConversionStore, get_conversion_store
from vidah.services.whatsapp import InvalidButtonTypeError, generate_whatsapp_url
from vidah.utils.rate_limiter import enforce_rate_limit

logger = logging.getLogger(__name__)
router = APIRouter(tags=["conversions"])


def get_client_ip(request: Request) -> str:
    """First X-Forwarded-For hop, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        first = forwarded.split(",")[0].strip()
        if first:
            return first
    return request.client.host if request.client else "unknown"


async def _read_json(request: Request):
    body = await request.body()
    try:
        return json.loads(body) if body else None
    except (ValueError, UnicodeDecodeError):
        raise LeadValidationError([FieldError("body", "JSON inválido")])


@router.post("/track-whatsapp")
@router.post("/api/whatsapp/conversions")
async def track_whatsapp_conversion(
    request: Request,
    store: ConversionStore = Depends(get_conversion_store),
):
    """Record a lead-capture submission and return the WhatsApp URL for it."""
    settings = get_settings()
    client_ip = get_client_ip(request)
    await enforce_rate_limit(
        "whatsapp", client_ip,
        settings.whatsapp_rate_limit, settings.whatsapp_rate_window_seconds,
    )

    payload = await _read_json(request)
    lead = parse_conversion_payload(payload)

    user_agent = request.headers.get("user-agent")
    result = await store.create(lead, ip_address=client_ip, user_agent=user_agent)

    try:
        whatsapp_url = generate_whatsapp_url(result.conversion, user_agent, settings.whatsapp_phone)
    except InvalidButtonTypeError as e:
        logger.error(
            "WhatsApp URL generation failed: %s", str(e),
            extra={"conversion_id": result.conversion.id},
        )
        raise HTTPException(status_code=500, detail="Erro ao gerar link do WhatsApp")

    logger.info(
        "WhatsApp conversion tracked (persisted=%s)", result.persisted,
        extra={
            "conversion_id": result.conversion.id,
            "button_type": result.conversion.button_type.value,
            "client_ip": client_ip,
        },
    )
    return success_body({
        "conversion": result.conversion.to_api(),
        "whatsappUrl": whatsapp_url,
        "persisted": result.persisted,
    })
