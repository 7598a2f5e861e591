"""
Lead-capture payload schemas.

The incoming form body is a tagged union on `buttonType`: each commercial
intent has its own model, so downstream code switches on the variant type
instead of comparing strings. `parse_conversion_payload` is the only entry
point used by the API; it either returns a fully valid lead or raises
LeadValidationError listing every failing field.
"""
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, TypeAdapter, ValidationError, field_validator

from vidah.models.conversion import ButtonType, BUTTON_TYPE_VALUES
from vidah.utils.email_validation import is_valid_email_format

NAME_MAX_LENGTH = 100
# Letters (ASCII + Latin-1 accented) and whitespace only
NAME_PATTERN = re.compile(r"^[A-Za-zÀ-ÖØ-öø-ÿ\s]+$")

_ERROR_MESSAGES = {
    "missing": "Campo obrigatório",
    "string_type": "Deve ser um texto",
    "string_too_long": "Texto muito longo",
    "union_tag_invalid": "Tipo de botão inválido",
    "union_tag_not_found": "Tipo de botão inválido",
}

_FIELD_ALIASES = {
    "button_type": "buttonType",
    "plan_name": "planName",
    "doctor_name": "doctorName",
}


@dataclass(frozen=True)
class FieldError:
    field: str
    message: str

    def as_dict(self) -> dict:
        return {"field": self.field, "message": self.message}


class LeadValidationError(Exception):
    """Lead payload rejected; carries one entry per failing field."""

    def __init__(self, errors: list[FieldError]):
        self.errors = errors
        super().__init__(self.summary)

    @property
    def summary(self) -> str:
        return ", ".join(f"{e.field}: {e.message}" for e in self.errors)


def _blank_to_none(value: Any) -> Any:
    if isinstance(value, str):
        value = value.strip()
        return value or None
    return value


class LeadContact(BaseModel):
    """Fields shared by every lead variant."""
    model_config = ConfigDict(populate_by_name=True, extra="ignore")

    name: str
    phone: Optional[str] = Field(default=None, max_length=40)
    email: Optional[str] = Field(default=None, max_length=255)

    @field_validator("name")
    @classmethod
    def _check_name(cls, value: str) -> str:
        value = " ".join(value.split())
        if not value:
            raise ValueError("Nome é obrigatório")
        if len(value) > NAME_MAX_LENGTH:
            raise ValueError(f"Nome deve ter no máximo {NAME_MAX_LENGTH} caracteres")
        if not NAME_PATTERN.match(value):
            raise ValueError("Nome deve conter apenas letras e espaços")
        return value

    @field_validator("phone", "email", mode="before")
    @classmethod
    def _strip_optional(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @field_validator("email")
    @classmethod
    def _check_email(cls, value: Optional[str]) -> Optional[str]:
        if value is not None and not is_valid_email_format(value):
            raise ValueError("Email inválido")
        return value


class PlanSubscriptionLead(LeadContact):
    button_type: Literal["plan_subscription"] = Field(alias="buttonType")
    plan_name: Optional[str] = Field(default=None, alias="planName", max_length=255)

    @field_validator("plan_name", mode="before")
    @classmethod
    def _strip_plan(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def sub_label(self) -> Optional[str]:
        return self.plan_name


class DoctorAppointmentLead(LeadContact):
    button_type: Literal["doctor_appointment"] = Field(alias="buttonType")
    doctor_name: Optional[str] = Field(default=None, alias="doctorName", max_length=255)

    @field_validator("doctor_name", mode="before")
    @classmethod
    def _strip_doctor(cls, value: Any) -> Any:
        return _blank_to_none(value)

    @property
    def sub_label(self) -> Optional[str]:
        return self.doctor_name


class EnterpriseQuoteLead(LeadContact):
    button_type: Literal["enterprise_quote"] = Field(alias="buttonType")

    @property
    def sub_label(self) -> Optional[str]:
        return None


ConversionLead = Annotated[
    Union[PlanSubscriptionLead, DoctorAppointmentLead, EnterpriseQuoteLead],
    Field(discriminator="button_type"),
]

_lead_adapter: TypeAdapter = TypeAdapter(ConversionLead)


def lead_category(lead: LeadContact) -> ButtonType:
    """Map a validated lead variant onto its ButtonType."""
    if isinstance(lead, PlanSubscriptionLead):
        return ButtonType.PLAN_SUBSCRIPTION
    if isinstance(lead, DoctorAppointmentLead):
        return ButtonType.DOCTOR_APPOINTMENT
    if isinstance(lead, EnterpriseQuoteLead):
        return ButtonType.ENTERPRISE_QUOTE
    raise TypeError(f"Unknown lead variant: {type(lead).__name__}")


def _field_name(loc: tuple) -> str:
    parts = [str(p) for p in loc if p not in BUTTON_TYPE_VALUES]
    if not parts:
        return "buttonType"
    field = parts[-1] if isinstance(loc[-1], str) else ".".join(parts)
    return _FIELD_ALIASES.get(field, field)


def _message(err: dict) -> str:
    if err["type"] == "value_error":
        # pydantic prefixes custom messages with "Value error, "
        return str(err.get("ctx", {}).get("error") or err["msg"])
    return _ERROR_MESSAGES.get(err["type"], err["msg"])


def _collect(exc: ValidationError) -> list[FieldError]:
    errors: list[FieldError] = []
    seen: set[tuple[str, str]] = set()
    for err in exc.errors():
        fe = FieldError(field=_field_name(err["loc"]), message=_message(err))
        if (fe.field, fe.message) not in seen:
            seen.add((fe.field, fe.message))
            errors.append(fe)
    return errors


def parse_conversion_payload(payload: Any) -> Union[PlanSubscriptionLead, DoctorAppointmentLead, EnterpriseQuoteLead]:
    """
    Validate an untyped request body into a lead variant.

    Raises:
        LeadValidationError: with every field-level problem found.
    """
    if not isinstance(payload, dict):
        raise LeadValidationError([FieldError("body", "Corpo da requisição deve ser um objeto JSON")])

    try:
        return _lead_adapter.validate_python(payload)
    except ValidationError as exc:
        errors = _collect(exc)

    # When the tag itself is bad the variant never ran; check the shared
    # contact fields too so the caller sees every problem at once.
    if any(e.field == "buttonType" for e in errors):
        try:
            LeadContact.model_validate(payload)
        except ValidationError as exc:
            extra = [e for e in _collect(exc) if e not in errors]
            errors.extend(extra)

    raise LeadValidationError(errors)


class ConversionRecord(BaseModel):
    """A conversion as returned by the store and the API (persisted or placeholder)."""
    model_config = ConfigDict(from_attributes=True)

    id: Optional[int] = None
    name: str
    email: Optional[str] = None
    phone: Optional[str] = None
    button_type: ButtonType = Field(serialization_alias="buttonType")
    plan_name: Optional[str] = Field(default=None, serialization_alias="planName")
    doctor_name: Optional[str] = Field(default=None, serialization_alias="doctorName")
    ip_address: Optional[str] = Field(default=None, serialization_alias="ipAddress")
    user_agent: Optional[str] = Field(default=None, serialization_alias="userAgent")
    created_at: datetime = Field(serialization_alias="createdAt")

    @field_validator("created_at")
    @classmethod
    def _assume_utc(cls, value: datetime) -> datetime:
        # SQLite hands back naive datetimes; everything is stored as UTC
        if value.tzinfo is None:
            return value.replace(tzinfo=timezone.utc)
        return value

    @property
    def sub_label(self) -> Optional[str]:
        return self.plan_name or self.doctor_name

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True, mode="json")
