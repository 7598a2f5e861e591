"""
Default data - the first admin account and the plan catalogue.
Idempotent: safe to run on every deploy.
"""
import logging
from decimal import Decimal

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from vidah.models.admin_user import AdminUser
from vidah.models.plan import Plan
from vidah.services.auth import hash_password

logger = logging.getLogger(__name__)

DEFAULT_ADMIN_USERNAME = "admin"
DEFAULT_ADMIN_EMAIL = "admin@cartaovidah.com"

DEFAULT_PLANS = [
    {
        "name": "Cartão Familiar",
        "type": "familiar",
        "annual_price": Decimal("418.80"),
        "monthly_price": Decimal("34.90"),
        "adhesion_fee": Decimal("0"),
        "max_dependents": 4,
    },
    {
        "name": "Cartão Corporativo",
        "type": "empresarial",
        "annual_price": Decimal("0"),
        "monthly_price": Decimal("0"),
        "adhesion_fee": Decimal("0"),
        "max_dependents": 0,
    },
]


async def seed_defaults(
    session: AsyncSession,
    *,
    username: str = DEFAULT_ADMIN_USERNAME,
    password: str,
    email: str = DEFAULT_ADMIN_EMAIL,
) -> dict:
    """
    Create the admin (if the username is free) and default plans (if none exist).

    Returns: {"admin_created": bool, "plans_created": int}
    """
    if not password:
        raise ValueError("Admin password is required")

    summary = {"admin_created": False, "plans_created": 0}

    existing = await session.execute(select(AdminUser).where(AdminUser.username == username))
    if existing.scalar_one_or_none() is None:
        session.add(AdminUser(
            username=username,
            email=email,
            password_hash=hash_password(password),
            is_active=True,
        ))
        summary["admin_created"] = True
        logger.info("Seed: admin user %s created", username)
    else:
        logger.info("Seed: admin user %s already exists", username)

    plan_count = (await session.execute(select(func.count(Plan.id)))).scalar() or 0
    if plan_count == 0:
        for plan in DEFAULT_PLANS:
            session.add(Plan(**plan, is_active=True))
        summary["plans_created"] = len(DEFAULT_PLANS)
        logger.info("Seed: %d default plans created", len(DEFAULT_PLANS))

    await session.commit()
    return summary
