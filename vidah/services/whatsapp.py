"""
WhatsApp link builder - turns a conversion into a click-to-chat URL.

Mobile visitors get the wa.me deep link (opens the native app); everyone
else gets the web.whatsapp.com client. No messages are sent from here.
"""
import logging
from typing import Any, Optional
from urllib.parse import quote

from vidah.models.conversion import ButtonType
from vidah.utils.templates import render_message

logger = logging.getLogger(__name__)

WA_ME_BASE = "https://wa.me"
WEB_WHATSAPP_BASE = "https://web.whatsapp.com/send"

MOBILE_UA_TOKENS = (
    "android",
    "webos",
    "iphone",
    "ipad",
    "ipod",
    "blackberry",
    "iemobile",
    "opera mini",
    "mobile",
    "phone",
)

# Same unreserved set as JavaScript's encodeURIComponent
_URI_COMPONENT_SAFE = "-_.!~*'()"


class InvalidButtonTypeError(ValueError):
    """Conversion has no buttonType or one outside the fixed set."""


def encode_uri_component(text: str) -> str:
    return quote(text, safe=_URI_COMPONENT_SAFE)


def is_mobile_user_agent(user_agent: Optional[str]) -> bool:
    """Case-insensitive substring match against known mobile tokens."""
    if not user_agent:
        return False
    ua = user_agent.lower()
    return any(token in ua for token in MOBILE_UA_TOKENS)


def resolve_button_type(value: Any) -> ButtonType:
    if value is None or value == "":
        raise InvalidButtonTypeError("Missing buttonType for WhatsApp URL generation")
    try:
        return ButtonType(value)
    except ValueError:
        raise InvalidButtonTypeError(f"Invalid button type: {value!r}")


def build_message(conversion: Any) -> str:
    """Render the pre-filled message for a conversion record."""
    button_type = resolve_button_type(getattr(conversion, "button_type", None))
    if button_type is ButtonType.PLAN_SUBSCRIPTION:
        sub_label = getattr(conversion, "plan_name", None)
    elif button_type is ButtonType.DOCTOR_APPOINTMENT:
        sub_label = getattr(conversion, "doctor_name", None)
    else:
        sub_label = None

    return render_message(
        button_type,
        name=getattr(conversion, "name", "") or "",
        phone=getattr(conversion, "phone", None),
        email=getattr(conversion, "email", None),
        sub_label=sub_label,
    )


def generate_whatsapp_url(conversion: Any, user_agent: Optional[str], phone_number: str) -> str:
    """
    Build the WhatsApp URL for a conversion.

    Args:
        conversion: anything exposing button_type/name/phone/email/plan_name/doctor_name
        user_agent: raw User-Agent header (may be None)
        phone_number: destination WhatsApp number, digits only with country code

    Raises:
        InvalidButtonTypeError: if the conversion's category is absent or unknown
    """
    encoded = encode_uri_component(build_message(conversion))

    if is_mobile_user_agent(user_agent):
        return f"{WA_ME_BASE}/{phone_number}?text={encoded}"
    return f"{WEB_WHATSAPP_BASE}?phone={phone_number}&text={encoded}"
