from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from lams.models.reimbursement import ReimbursementStatus


class ReimbursementItemIn(BaseModel):
    description: str = Field(min_length=1)
    amount: Decimal = Field(gt=0)
    expense_date: Optional[date] = None


class ReimbursementCreate(BaseModel):
    manager_id: str
    items: List[ReimbursementItemIn]


class ReimbursementItemResponse(ReimbursementItemIn):
    id: int

    model_config = ConfigDict(from_attributes=True)


class ReimbursementResponse(BaseModel):
    id: str
    employee_id: str
    employee_name: str
    manager_id: str
    manager_name: str
    items: List[ReimbursementItemResponse]
    total_amount: Decimal
    status: ReimbursementStatus
    manager_comment: str
    hr_comment: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ReimbursementDecision(BaseModel):
    approve: bool
    comment: str = ""
