"""
API router — aggregates all route modules.
"""
from fastapi import APIRouter
from vidah.api.conversions import router as conversions_router
from vidah.api.admin import router as admin_router
from vidah.api.plans import router as plans_router
from vidah.api.health import router as health_router

api_router = APIRouter()
api_router.include_router(conversions_router)
api_router.include_router(admin_router)
api_router.include_router(plans_router)
api_router.include_router(health_router)
