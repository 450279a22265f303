from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from lams.models.leave_request import LeaveStatus, LeaveType


class LeaveRequestCreate(BaseModel):
    leave_type: LeaveType
    start_date: date
    end_date: date
    reason: str = Field(default="", max_length=2000)
    is_half_day: bool = False
    manager_id: str
    use_comp_off: bool = False
    use_annual_leave: bool = False


class LeaveRequestResponse(BaseModel):
    id: str
    employee_id: str
    employee_name: str
    manager_id: str
    manager_name: str
    leave_type: LeaveType
    start_date: date
    end_date: date
    total_days: Decimal
    is_half_day: bool
    reason: str
    use_comp_off: bool
    use_annual_leave: bool
    comp_off_used: Decimal
    annual_leave_used: Decimal
    status: LeaveStatus
    manager_comment: str
    hr_comment: str
    hr_override: bool
    hr_override_details: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class ManagerDecisionRequest(BaseModel):
    approve: bool
    comment: str = ""


class HRDecisionRequest(BaseModel):
    approve: bool
    comment: str = ""
    override_comp_off: Optional[Decimal] = Field(default=None, ge=0)
    override_annual_leave: Optional[Decimal] = Field(default=None, ge=0)


class CancelLeaveRequest(BaseModel):
    comment: str = ""


class LeaveDaysResponse(BaseModel):
    start_date: date
    end_date: date
    is_half_day: bool
    total_days: Decimal
