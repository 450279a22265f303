import enum
from sqlalchemy import Column, String, Date, Boolean, DateTime, ForeignKey, Integer, Text, UniqueConstraint
from sqlalchemy.sql import func
from lams.database import Base
from lams.models.types import enum_column, new_id


class AttendanceStatus(str, enum.Enum):
    CLOCKED_IN = "clocked_in"
    AUTO_LOGGED_OUT = "auto_logged_out"


class MissedClockInStatus(str, enum.Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class AttendanceRecord(Base):
    __tablename__ = "attendance_records"
    __table_args__ = (UniqueConstraint("employee_id", "date", name="uq_attendance_employee_date"),)

    id = Column(Integer, primary_key=True, index=True)
    employee_id = Column(String(32), ForeignKey("employees.id"), index=True, nullable=False)
    employee_name = Column(String, nullable=False)
    date = Column(Date, index=True, nullable=False)
    clock_in_time = Column(DateTime(timezone=True), nullable=False)
    clock_out_time = Column(DateTime(timezone=True), nullable=False)
    status = Column(enum_column(AttendanceStatus), default=AttendanceStatus.CLOCKED_IN, nullable=False)
    is_missed_clock_in = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class MissedClockInRequest(Base):
    __tablename__ = "missed_clock_in_requests"

    id = Column(String(32), primary_key=True, default=new_id)
    employee_id = Column(String(32), ForeignKey("employees.id"), index=True, nullable=False)
    employee_name = Column(String, nullable=False)
    date = Column(Date, nullable=False)
    reason = Column(Text, nullable=False)
    manager_id = Column(String(32), ForeignKey("employees.id"), index=True, nullable=False)
    manager_name = Column(String, nullable=False)
    status = Column(enum_column(MissedClockInStatus), default=MissedClockInStatus.PENDING, index=True, nullable=False)
    manager_comment = Column(Text, default="", nullable=False)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}
