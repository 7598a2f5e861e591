"""
Plan catalogue response schema.
"""
from decimal import Decimal

from pydantic import BaseModel, ConfigDict, Field, field_serializer


class PlanOut(BaseModel):
    model_config = ConfigDict(from_attributes=True, populate_by_name=True)

    id: int
    name: str
    type: str
    annual_price: Decimal = Field(serialization_alias="annualPrice")
    monthly_price: Decimal = Field(serialization_alias="monthlyPrice")
    adhesion_fee: Decimal = Field(default=Decimal("0"), serialization_alias="adhesionFee")
    max_dependents: int = Field(default=0, serialization_alias="maxDependents")
    is_active: bool = Field(default=True, serialization_alias="isActive")

    @field_serializer("annual_price", "monthly_price", "adhesion_fee")
    def _money(self, value: Decimal) -> float:
        return float(value)

    def to_api(self) -> dict:
        return self.model_dump(by_alias=True)
