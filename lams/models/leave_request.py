from sqlalchemy import Column, Integer, String, Date, Boolean, DateTime, ForeignKey, Text
from sqlalchemy.sql import func
from lams.database import Base
from lams.models.types import Days, ZERO, enum_column, new_id
import enum


class LeaveType(str, enum.Enum):
    CASUAL = "casual"
    PAID = "paid"
    SICK = "sick"
    COMP_OFF = "comp_off"
    WFH = "wfh"
    EXTRA_WORK = "extra_work"
    MENSTRUAL = "menstrual"
    BEREAVEMENT = "bereavement"

    @property
    def label(self) -> str:
        return LEAVE_TYPE_LABELS[self]


LEAVE_TYPE_LABELS = {
    LeaveType.CASUAL: "Casual Leave",
    LeaveType.PAID: "Paid Leave",
    LeaveType.SICK: "Sick Leave",
    LeaveType.COMP_OFF: "Comp Off",
    LeaveType.WFH: "Work From Home",
    LeaveType.EXTRA_WORK: "Extra Work",
    LeaveType.MENSTRUAL: "Menstrual Leave",
    LeaveType.BEREAVEMENT: "Bereavement Leave",
}


class LeaveStatus(str, enum.Enum):
    PENDING_MANAGER = "pending_manager"
    PENDING_HR = "pending_hr"
    APPROVED = "approved"
    REJECTED = "rejected"
    CANCELLED = "cancelled"

    @property
    def is_terminal(self) -> bool:
        return self in (LeaveStatus.APPROVED, LeaveStatus.REJECTED, LeaveStatus.CANCELLED)


class LeaveRequest(Base):
    __tablename__ = "leave_requests"

    id = Column(String(32), primary_key=True, default=new_id)
    employee_id = Column(String(32), ForeignKey("employees.id"), index=True, nullable=False)
    employee_name = Column(String, nullable=False)
    manager_id = Column(String(32), ForeignKey("employees.id"), index=True, nullable=False)
    manager_name = Column(String, nullable=False)

    leave_type = Column(enum_column(LeaveType), index=True, nullable=False)
    start_date = Column(Date, nullable=False)
    end_date = Column(Date, nullable=False)
    total_days = Column(Days, nullable=False)
    is_half_day = Column(Boolean, default=False, nullable=False)
    reason = Column(Text, nullable=False)

    # Sources the employee asked to be charged; HR may override at approval
    use_comp_off = Column(Boolean, default=False, nullable=False)
    use_annual_leave = Column(Boolean, default=False, nullable=False)

    # Actual deduction, written once at HR approval
    comp_off_used = Column(Days, default=ZERO, nullable=False)
    annual_leave_used = Column(Days, default=ZERO, nullable=False)

    status = Column(enum_column(LeaveStatus), default=LeaveStatus.PENDING_MANAGER, index=True, nullable=False)
    manager_comment = Column(Text, default="", nullable=False)
    hr_comment = Column(Text, default="", nullable=False)
    hr_override = Column(Boolean, default=False, nullable=False)
    hr_override_details = Column(Text, nullable=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<LeaveRequest {self.id} {self.leave_type.value} {self.status.value}>"
