"""
WhatsApp message templates - one pre-filled greeting per lead category.
Templates use {variable} substitution; missing contact details render as NOT_PROVIDED.
"""
import logging
from typing import Optional

from vidah.models.conversion import ButtonType

logger = logging.getLogger(__name__)

NOT_PROVIDED = "Não informado"

MESSAGE_TEMPLATES = {
    ButtonType.PLAN_SUBSCRIPTION: (
        "Olá! Meu nome é {name} e tenho interesse no plano {sub_label}.\n\n"
        "📱 Telefone: {phone}\n"
        "📧 Email: {email}\n\n"
        "Gostaria de saber mais detalhes sobre os benefícios e como contratar."
    ),
    ButtonType.DOCTOR_APPOINTMENT: (
        "Olá! Meu nome é {name} e gostaria de agendar uma consulta com {sub_label}.\n\n"
        "📱 Telefone: {phone}\n"
        "📧 Email: {email}\n\n"
        "Qual a disponibilidade para atendimento?"
    ),
    ButtonType.ENTERPRISE_QUOTE: (
        "Olá! Meu nome é {name} e represento uma empresa interessada nos planos corporativos.\n\n"
        "📱 Telefone: {phone}\n"
        "📧 Email: {email}\n\n"
        "Gostaria de receber uma proposta personalizada para nossa equipe."
    ),
}

# Used when the form did not say which plan / doctor
SUB_LABEL_FALLBACKS = {
    ButtonType.PLAN_SUBSCRIPTION: "Cartão + Vidah",
    ButtonType.DOCTOR_APPOINTMENT: "um dos médicos parceiros",
    ButtonType.ENTERPRISE_QUOTE: "",
}


def render_message(
    button_type: ButtonType,
    name: str,
    phone: Optional[str] = None,
    email: Optional[str] = None,
    sub_label: Optional[str] = None,
) -> str:
    """Render the WhatsApp greeting for a lead category."""
    template = MESSAGE_TEMPLATES[button_type]
    return template.format_map(SafeDict(
        name=name,
        phone=phone or NOT_PROVIDED,
        email=email or NOT_PROVIDED,
        sub_label=sub_label or SUB_LABEL_FALLBACKS[button_type],
    ))


class SafeDict(dict):
    """Dict that returns '{key}' for missing keys instead of raising KeyError."""

    def __missing__(self, key: str) -> str:
        logger.debug("Template variable missing: %s", key)
        return "{" + key + "}"
