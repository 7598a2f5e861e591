"""
Plan catalogue endpoints (read-only).
"""
import logging

from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from vidah.api.errors import success_body
from vidah.database import get_db
from vidah.models.plan import Plan
from vidah.schemas.plan import PlanOut

logger = logging.getLogger(__name__)
router = APIRouter(tags=["plans"])


@router.get("/api/plans")
async def list_plans(db: AsyncSession = Depends(get_db)):
    """Active plans, ordered by id."""
    result = await db.execute(
        select(Plan).where(Plan.is_active == True).order_by(Plan.id)  # noqa: E712
    )
    plans = result.scalars().all()
    return success_body([PlanOut.model_validate(p).to_api() for p in plans])


@router.get("/api/plans/{plan_id}")
async def get_plan(plan_id: str, db: AsyncSession = Depends(get_db)):
    try:
        pid = int(plan_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="ID do plano inválido")

    plan = await db.get(Plan, pid)
    if plan is None:
        raise HTTPException(status_code=404, detail="Plano não encontrado")
    return success_body(PlanOut.model_validate(plan).to_api())
