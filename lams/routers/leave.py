from datetime import date
from typing import List

from fastapi import APIRouter, Depends, Query, Request
from sqlalchemy.orm import Session

from lams.core.exceptions import AccessDeniedError
from lams.core.limiter import limiter, submission_limit
from lams.core.schemas import ApiResponse
from lams.database import get_db
from lams.models.employee import Employee
from lams.routers.deps import get_current_employee, get_leave_service
from lams.schemas.employee import BalanceResponse
from lams.schemas.leave import LeaveDaysResponse, LeaveRequestCreate, LeaveRequestResponse
from lams.services.leave_service import LeaveService
from lams.services.leave_workflow import calculate_leave_days

router = APIRouter(prefix="/leave", tags=["leave"])


@router.post("/requests", status_code=201)
@limiter.limit(submission_limit)
def submit_leave_request(
    request: Request,
    form: LeaveRequestCreate,
    db: Session = Depends(get_db),
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(get_current_employee)
):
    manager = db.get(Employee, form.manager_id)
    request_id = service.submit_leave_request(form, current, manager)
    return ApiResponse.ok({"request_id": request_id}).to_dict()


@router.get("/requests/mine", response_model=List[LeaveRequestResponse])
def my_leave_requests(
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(get_current_employee)
):
    return service.list_employee_leaves(current.id)


@router.get("/requests/{request_id}", response_model=LeaveRequestResponse)
def get_leave_request(
    request_id: str,
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(get_current_employee)
):
    leave = service.get_leave_request(request_id)
    if current.id not in (leave.employee_id, leave.manager_id) and not current.is_hr:
        raise AccessDeniedError("You cannot view this leave request")
    return leave


@router.get("/balance", response_model=BalanceResponse)
def my_balance(current: Employee = Depends(get_current_employee)):
    return BalanceResponse(
        employee_id=current.id,
        annual_leave_balance=current.annual_leave_balance,
        comp_off_balance=current.comp_off_balance,
    )


@router.get("/days", response_model=LeaveDaysResponse)
def leave_days(
    start_date: date = Query(...),
    end_date: date = Query(...),
    is_half_day: bool = Query(False)
):
    """Working days (Mon-Fri) a request over these dates would take."""
    return LeaveDaysResponse(
        start_date=start_date,
        end_date=end_date,
        is_half_day=is_half_day,
        total_days=calculate_leave_days(start_date, end_date, is_half_day),
    )
