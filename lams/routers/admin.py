from typing import List

from fastapi import APIRouter, Depends, Query

from lams.models.employee import Employee
from lams.routers.deps import get_current_employee, get_employee_service, require_hr
from lams.schemas.employee import (
    AuditLogResponse, BalanceAdjustmentRequest, EmployeeCreate, EmployeeResponse,
    RoleUpdateRequest, SlackMemberIdUpdate,
)
from lams.services.employee_service import EmployeeService

router = APIRouter(prefix="/admin", tags=["admin"])


@router.get("/employees", response_model=List[EmployeeResponse])
def list_employees(
    active_only: bool = False,
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.list_employees(active_only)


@router.post("/employees", response_model=EmployeeResponse, status_code=201)
def create_employee(
    data: EmployeeCreate,
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.create_employee(data, current)


@router.get("/managers", response_model=List[EmployeeResponse])
def list_managers(
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(get_current_employee)
):
    """Approvers an employee can pick when submitting a request."""
    return service.list_managers()


@router.post("/employees/{user_id}/comp-off", response_model=EmployeeResponse)
def adjust_comp_off(
    user_id: str,
    body: BalanceAdjustmentRequest,
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.adjust_comp_off_balance(user_id, body.amount, body.reason, current)


@router.post("/employees/{user_id}/annual-leave", response_model=EmployeeResponse)
def adjust_annual_leave(
    user_id: str,
    body: BalanceAdjustmentRequest,
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.adjust_annual_leave_balance(user_id, body.amount, body.reason, current)


@router.put("/employees/{user_id}/role", response_model=EmployeeResponse)
def update_role(
    user_id: str,
    body: RoleUpdateRequest,
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.update_role(user_id, body.role, current)


@router.post("/employees/{user_id}/toggle-status", response_model=EmployeeResponse)
def toggle_status(
    user_id: str,
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.toggle_status(user_id, current)


@router.put("/employees/{user_id}/slack-id", response_model=EmployeeResponse)
def update_slack_member_id(
    user_id: str,
    body: SlackMemberIdUpdate,
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.update_slack_member_id(user_id, body.slack_member_id, current)


@router.get("/audit-logs", response_model=List[AuditLogResponse])
def list_audit_logs(
    limit: int = Query(100, ge=1, le=500),
    service: EmployeeService = Depends(get_employee_service),
    current: Employee = Depends(require_hr())
):
    return service.list_audit_logs(current, limit)
