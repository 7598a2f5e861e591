"""
Conversion store - persistence for lead-capture events.

Availability beats durability here: a failed insert must never block the
visitor's WhatsApp redirect, so `create` degrades to an in-memory placeholder
(FallbackPolicy.PLACEHOLDER_ON_FAILURE) and reports `persisted=False`.
Reads degrade to empty results. Rows are append-only, so no locking.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Optional

from sqlalchemy import select, func, desc
from sqlalchemy.ext.asyncio import AsyncSession

from vidah.database import async_session_factory
from vidah.models.conversion import ButtonType, WhatsappConversion
from vidah.schemas.conversion import ConversionRecord, LeadContact, lead_category

logger = logging.getLogger(__name__)


class FallbackPolicy(str, enum.Enum):
    PLACEHOLDER_ON_FAILURE = "placeholder_on_failure"
    RAISE = "raise"


@dataclass(frozen=True)
class ConversionResult:
    """Outcome of `ConversionStore.create`."""
    conversion: ConversionRecord
    persisted: bool
    error: Optional[str] = None


class ConversionStore:
    def __init__(
        self,
        session_factory: Callable[[], AsyncSession] = async_session_factory,
        fallback_policy: FallbackPolicy = FallbackPolicy.PLACEHOLDER_ON_FAILURE,
    ):
        self._session_factory = session_factory
        self.fallback_policy = fallback_policy

    async def create(
        self,
        lead: LeadContact,
        ip_address: Optional[str] = None,
        user_agent: Optional[str] = None,
    ) -> ConversionResult:
        """Insert one conversion; on storage failure apply the fallback policy."""
        values = {
            "name": lead.name,
            "email": lead.email,
            "phone": lead.phone,
            "button_type": lead_category(lead).value,
            "plan_name": getattr(lead, "plan_name", None),
            "doctor_name": getattr(lead, "doctor_name", None),
            "ip_address": ip_address,
            "user_agent": user_agent,
        }

        try:
            async with self._session_factory() as session:
                row = WhatsappConversion(**values)
                session.add(row)
                await session.commit()
                await session.refresh(row)
                record = ConversionRecord.model_validate(row)
        except Exception as e:
            if self.fallback_policy is FallbackPolicy.RAISE:
                raise
            logger.error(
                "Conversion insert failed, returning placeholder: %s", str(e),
                extra={"button_type": values["button_type"]},
            )
            placeholder = ConversionRecord(
                id=None,
                created_at=datetime.now(timezone.utc),
                **values,
            )
            return ConversionResult(conversion=placeholder, persisted=False, error=str(e))

        logger.info(
            "Conversion stored", extra={"conversion_id": record.id, "button_type": record.button_type.value},
        )
        return ConversionResult(conversion=record, persisted=True)

    async def list_all(self, limit: Optional[int] = None) -> list[ConversionRecord]:
        """All conversions (or the latest `limit`), newest first. Empty list on failure."""
        query = select(WhatsappConversion).order_by(
            desc(WhatsappConversion.created_at), desc(WhatsappConversion.id)
        )
        if limit is not None:
            query = query.limit(limit)
        return await self._fetch(query, "list_all")

    async def list_by_date_range(self, start: datetime, end: datetime) -> list[ConversionRecord]:
        """Conversions with start <= created_at <= end, newest first. Empty list on failure."""
        query = (
            select(WhatsappConversion)
            .where(WhatsappConversion.created_at >= start, WhatsappConversion.created_at <= end)
            .order_by(desc(WhatsappConversion.created_at), desc(WhatsappConversion.id))
        )
        return await self._fetch(query, "list_by_date_range")

    async def count_by_button_type(self) -> dict[ButtonType, int]:
        """Conversion count per category (every category present). Zeros on failure."""
        counts = {bt: 0 for bt in ButtonType}
        try:
            async with self._session_factory() as session:
                result = await session.execute(
                    select(
                        WhatsappConversion.button_type,
                        func.count(WhatsappConversion.id).label("count"),
                    ).group_by(WhatsappConversion.button_type)
                )
                for row in result:
                    counts[ButtonType(row.button_type)] = row.count
        except Exception as e:
            logger.error("Conversion count failed: %s", str(e))
            return {bt: 0 for bt in ButtonType}
        return counts

    async def _fetch(self, query, operation: str) -> list[ConversionRecord]:
        try:
            async with self._session_factory() as session:
                result = await session.execute(query)
                rows = result.scalars().all()
                return [ConversionRecord.model_validate(r) for r in rows]
        except Exception as e:
            logger.error("Conversion %s failed: %s", operation, str(e))
            return []


_store: Optional[ConversionStore] = None


def get_conversion_store() -> ConversionStore:
    """FastAPI dependency returning the process-wide store."""
    global _store
    if _store is None:
        _store = ConversionStore()
    return _store
