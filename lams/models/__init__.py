# Models package
# Importing modules here ensures they are registered with SQLAlchemy Base
from . import employee, leave_request, audit_log, attendance, reimbursement

# Explicit class exports for cleaner imports
from .employee import Employee, EmployeeRole
from .leave_request import LeaveRequest, LeaveStatus, LeaveType
from .audit_log import AuditLog
from .attendance import AttendanceRecord, AttendanceStatus, MissedClockInRequest, MissedClockInStatus
from .reimbursement import ReimbursementItem, ReimbursementRequest, ReimbursementStatus

__all__ = [
    "Employee",
    "EmployeeRole",
    "LeaveRequest",
    "LeaveStatus",
    "LeaveType",
    "AuditLog",
    "AttendanceRecord",
    "AttendanceStatus",
    "MissedClockInRequest",
    "MissedClockInStatus",
    "ReimbursementItem",
    "ReimbursementRequest",
    "ReimbursementStatus",
]
