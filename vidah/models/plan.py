"""
Plan model - the discount-card plan catalogue shown on the site.
Read-only from the API; rows come from the seed step.
"""
from datetime import datetime, timezone
from decimal import Decimal
from sqlalchemy import String, Integer, Boolean, DateTime, Numeric, CheckConstraint
from sqlalchemy.orm import Mapped, mapped_column
from vidah.database import Base


class Plan(Base):
    __tablename__ = "plans"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    type: Mapped[str] = mapped_column(String(30), nullable=False)  # individual, familiar, empresarial
    annual_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    monthly_price: Mapped[Decimal] = mapped_column(Numeric(10, 2), nullable=False)
    adhesion_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=Decimal("0"))
    max_dependents: Mapped[int] = mapped_column(Integer, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False
    )

    __table_args__ = (
        CheckConstraint("type IN ('individual', 'familiar', 'empresarial')", name="chk_plans_type"),
    )

    def __repr__(self) -> str:
        return f"<Plan {self.name} ({self.type})>"
