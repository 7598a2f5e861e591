"""
Conversion export - CSV rows shaped for ad-platform audience uploads,
plus the date-range parsing used by the export endpoint.
"""
import csv
import io
import re
from datetime import date, datetime, time, timezone
from typing import Iterable, Optional

from vidah.models.conversion import ButtonType
from vidah.schemas.conversion import ConversionRecord

EXPORT_FILENAME = "conversions.csv"
CSV_HEADER = ["Email", "Phone", "First_Name", "Last_Name", "Interest_Category", "Campaign_Type"]

DEFAULT_INTEREST = "Geral"

CAMPAIGN_TYPES = {
    ButtonType.PLAN_SUBSCRIPTION: "Planos",
    ButtonType.DOCTOR_APPOINTMENT: "Consultas",
    ButtonType.ENTERPRISE_QUOTE: "Corporativo",
}

_NON_DIGITS = re.compile(r"\D")


class InvalidDateRangeError(ValueError):
    pass


def split_name(name: str) -> tuple[str, str]:
    """First word, rest of the name."""
    parts = (name or "").strip().split(" ", 1)
    first = parts[0]
    last = parts[1].strip() if len(parts) > 1 else ""
    return first, last


def csv_row(conversion: ConversionRecord) -> list[str]:
    first, last = split_name(conversion.name)
    return [
        conversion.email or "",
        _NON_DIGITS.sub("", conversion.phone or ""),
        first,
        last,
        conversion.plan_name or conversion.doctor_name or DEFAULT_INTEREST,
        CAMPAIGN_TYPES.get(conversion.button_type, ""),
    ]


def conversions_to_csv(conversions: Iterable[ConversionRecord]) -> str:
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_ALL, lineterminator="\n")
    writer.writerow(CSV_HEADER)
    for conversion in conversions:
        writer.writerow(csv_row(conversion))
    return output.getvalue()


def _parse_bound(value: str, *, end_of_day: bool) -> datetime:
    value = value.strip()
    try:
        if len(value) == 10:
            day = date.fromisoformat(value)
            if end_of_day:
                return datetime.combine(day, time.max, tzinfo=timezone.utc)
            return datetime.combine(day, time.min, tzinfo=timezone.utc)
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        raise InvalidDateRangeError(f"Data inválida: {value}")

    if parsed.tzinfo is None:
        return parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


def parse_date_range(
    start: Optional[str], end: Optional[str]
) -> Optional[tuple[datetime, datetime]]:
    """
    Parse export bounds. Returns None unless both are given.

    Date-only `end` covers the whole day. Naive datetimes are UTC.

    Raises:
        InvalidDateRangeError: unparseable bound, or start after end.
    """
    if not start or not end:
        return None
    start_dt = _parse_bound(start, end_of_day=False)
    end_dt = _parse_bound(end, end_of_day=True)
    if start_dt > end_dt:
        raise InvalidDateRangeError("Data inicial posterior à data final")
    return start_dt, end_dt
