"""
Request-scoped dependencies.

There is no login flow in this service: the caller identifies the acting
employee with the ``X-Employee-Id`` header (set by the gateway in front of
it), and every endpoint resolves that id against the database.
"""
import logging
from typing import Callable, List, Optional

from fastapi import Depends, Header
from sqlalchemy.orm import Session

from lams.core.config import settings
from lams.core.exceptions import AccessDeniedError, AuthenticationError
from lams.database import get_db
from lams.models.employee import Employee, EmployeeRole
from lams.services.attendance_service import AttendanceService
from lams.services.employee_service import EmployeeService
from lams.services.leave_service import LeaveService
from lams.services.notification import SlackNotifier
from lams.services.reimbursement_service import ReimbursementService

logger = logging.getLogger(__name__)


def get_notifier() -> SlackNotifier:
    return SlackNotifier.from_settings()


def get_leave_service(db: Session = Depends(get_db), notifier=Depends(get_notifier)) -> LeaveService:
    return LeaveService(db, notifier=notifier)


def get_employee_service(db: Session = Depends(get_db)) -> EmployeeService:
    return EmployeeService(db)


def get_attendance_service(db: Session = Depends(get_db)) -> AttendanceService:
    return AttendanceService(db)


def get_reimbursement_service(db: Session = Depends(get_db)) -> ReimbursementService:
    return ReimbursementService(db)


def get_current_employee(
    employee_id: Optional[str] = Header(default=None, alias=settings.actor_header),
    db: Session = Depends(get_db)
) -> Employee:
    if not employee_id:
        raise AuthenticationError(f"Missing {settings.actor_header} header")

    employee = db.get(Employee, employee_id)
    if employee is None:
        logger.warning(f"Authentication failed: employee {employee_id} not found")
        raise AuthenticationError("Employee not found")
    if not employee.is_active:
        logger.warning(f"Authentication failed: employee {employee_id} is inactive")
        raise AccessDeniedError("Your account is inactive")
    return employee


def require_role(allowed_roles: List[EmployeeRole]) -> Callable:
    """
    Dependency factory that checks the acting employee has one of the allowed roles.

    Usage:
        @router.get("/hr-only")
        def hr_endpoint(employee: Employee = Depends(require_role([EmployeeRole.HR_ADMIN]))):
            ...
    """
    def role_checker(current: Employee = Depends(get_current_employee)) -> Employee:
        if current.role not in allowed_roles:
            raise AccessDeniedError(f"Access denied. Required roles: {[r.value for r in allowed_roles]}")
        return current
    return role_checker


def require_hr():
    return require_role([EmployeeRole.HR_ADMIN])


def require_manager():
    return require_role([EmployeeRole.MANAGER, EmployeeRole.HR_ADMIN])
