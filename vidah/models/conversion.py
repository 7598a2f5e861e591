"""
WhatsApp conversion model - one row per lead-capture form submission.
Append-only: rows are never updated after insert.
"""
import enum
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, DateTime, CheckConstraint, Index
from sqlalchemy.orm import Mapped, mapped_column
from vidah.database import Base


class ButtonType(str, enum.Enum):
    """Commercial intent behind a conversion (the form's buttonType)."""
    PLAN_SUBSCRIPTION = "plan_subscription"
    DOCTOR_APPOINTMENT = "doctor_appointment"
    ENTERPRISE_QUOTE = "enterprise_quote"


BUTTON_TYPE_VALUES = tuple(b.value for b in ButtonType)


class WhatsappConversion(Base):
    __tablename__ = "whatsapp_conversions"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)

    # Contact info
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    email: Mapped[Optional[str]] = mapped_column(String(255))
    phone: Mapped[Optional[str]] = mapped_column(String(40))

    # Intent
    button_type: Mapped[str] = mapped_column(String(30), nullable=False)
    plan_name: Mapped[Optional[str]] = mapped_column(String(255))
    doctor_name: Mapped[Optional[str]] = mapped_column(String(255))

    # Request metadata
    ip_address: Mapped[Optional[str]] = mapped_column(String(64))
    user_agent: Mapped[Optional[str]] = mapped_column(Text)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    __table_args__ = (
        CheckConstraint(
            "button_type IN ('plan_subscription', 'doctor_appointment', 'enterprise_quote')",
            name="chk_whatsapp_conversions_button_type",
        ),
        CheckConstraint("length(trim(name)) > 0", name="chk_whatsapp_conversions_name"),
        Index("ix_whatsapp_conversions_created_at", "created_at"),
        Index("ix_whatsapp_conversions_button_type", "button_type"),
    )

    def __repr__(self) -> str:
        return f"<WhatsappConversion id={self.id} type={self.button_type}>"
