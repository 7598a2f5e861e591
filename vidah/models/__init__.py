"""
Database models - import all models here so Alembic can discover them.
"""
from vidah.models.admin_user import AdminUser
from vidah.models.conversion import ButtonType, WhatsappConversion
from vidah.models.plan import Plan

__all__ = [
    "AdminUser",
    "ButtonType",
    "Plan",
    "WhatsappConversion",
]
