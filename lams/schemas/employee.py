from pydantic import BaseModel, ConfigDict, EmailStr, Field
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional

from lams.models.employee import EmployeeRole


class EmployeeCreate(BaseModel):
    name: str = Field(min_length=1)
    email: EmailStr
    role: EmployeeRole = EmployeeRole.EMPLOYEE
    annual_leave_balance: Decimal = Field(default=Decimal("0"), ge=0)
    comp_off_balance: Decimal = Field(default=Decimal("0"), ge=0)
    slack_member_id: Optional[str] = None


class EmployeeResponse(BaseModel):
    id: str
    name: str
    email: str
    role: EmployeeRole
    annual_leave_balance: Decimal
    comp_off_balance: Decimal
    is_active: bool
    slack_member_id: Optional[str] = None

    model_config = ConfigDict(from_attributes=True)


class BalanceResponse(BaseModel):
    employee_id: str
    annual_leave_balance: Decimal
    comp_off_balance: Decimal


class BalanceAdjustmentRequest(BaseModel):
    amount: Decimal
    reason: str = Field(min_length=1)


class RoleUpdateRequest(BaseModel):
    role: EmployeeRole


class SlackMemberIdUpdate(BaseModel):
    slack_member_id: Optional[str] = None


class AuditLogResponse(BaseModel):
    id: int
    action: str
    performed_by: Optional[str] = None
    performed_by_name: Optional[str] = None
    target_user_id: Optional[str] = None
    target_user_name: Optional[str] = None
    leave_request_id: Optional[str] = None
    details: str
    previous_value: Optional[Any] = None
    new_value: Optional[Any] = None
    timestamp: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)
