from datetime import date, datetime
from typing import List, Optional

from pydantic import BaseModel, Field, model_validator

from school_api.schemas.common import ORMModel
from school_api.schemas.enums import FeeFrequency, FeeType


class FeeItemCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    amount: float = Field(ge=0)
    is_mandatory: bool = True
    is_recurring: bool = True
    frequency: Optional[FeeFrequency] = None


class FeeItemUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    amount: Optional[float] = Field(default=None, ge=0)
    is_mandatory: Optional[bool] = None
    is_recurring: Optional[bool] = None
    frequency: Optional[FeeFrequency] = None


class FeeItemResponse(ORMModel):
    id: int
    fee_structure_id: int
    name: str
    description: Optional[str] = None
    amount: float
    is_mandatory: bool
    is_recurring: bool
    frequency: Optional[str] = None


class FeeStructureCreateRequest(BaseModel):
    name: str = Field(min_length=1, max_length=150)
    description: Optional[str] = None
    academic_year_id: int
    fee_type: FeeType = FeeType.TUITION
    currency: str = Field(default="GHS", min_length=3, max_length=3)
    due_date: Optional[date] = None
    grace_period_days: Optional[int] = Field(default=None, ge=0)
    late_fee: Optional[float] = Field(default=None, ge=0)
    items: List[FeeItemCreateRequest] = Field(default_factory=list)
    school_id: Optional[int] = None


class FeeStructureUpdateRequest(BaseModel):
    name: Optional[str] = Field(default=None, min_length=1, max_length=150)
    description: Optional[str] = None
    fee_type: Optional[FeeType] = None
    due_date: Optional[date] = None
    grace_period_days: Optional[int] = Field(default=None, ge=0)
    late_fee: Optional[float] = Field(default=None, ge=0)
    is_active: Optional[bool] = None


class FeeStructureResponse(ORMModel):
    id: int
    school_id: int
    name: str
    description: Optional[str] = None
    academic_year_id: int
    fee_type: str
    amount: float
    currency: str
    due_date: Optional[date] = None
    grace_period_days: Optional[int] = None
    late_fee: Optional[float] = None
    is_active: bool
    created_at: Optional[datetime] = None


class FeeOverrideRequest(BaseModel):
    override_amount: Optional[float] = Field(default=None, ge=0)
    is_exempt: bool = False
    reason: Optional[str] = None

    @model_validator(mode="after")
    def validate_override(self) -> "FeeOverrideRequest":
        if not self.is_exempt and self.override_amount is None:
            raise ValueError("override_amount is required unless the student is exempt")
        return self


class FeeOverrideResponse(ORMModel):
    id: int
    item_id: int
    student_id: int
    override_amount: Optional[float] = None
    is_exempt: bool
    reason: Optional[str] = None
