from pydantic import BaseModel, ConfigDict, Field
from datetime import date, datetime
from typing import Optional

from lams.models.attendance import AttendanceStatus, MissedClockInStatus


class AttendanceResponse(BaseModel):
    id: int
    employee_id: str
    employee_name: str
    date: date
    clock_in_time: datetime
    clock_out_time: datetime
    status: AttendanceStatus
    is_missed_clock_in: bool

    model_config = ConfigDict(from_attributes=True)


class MissedClockInCreate(BaseModel):
    date: date
    reason: str = Field(min_length=1, max_length=1000)
    manager_id: str


class MissedClockInResponse(BaseModel):
    id: str
    employee_id: str
    employee_name: str
    date: date
    reason: str
    manager_id: str
    manager_name: str
    status: MissedClockInStatus
    manager_comment: str
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class MissedClockInDecision(BaseModel):
    approve: bool
    comment: str = ""
