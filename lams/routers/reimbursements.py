from typing import List

from fastapi import APIRouter, Depends, Request
from sqlalchemy.orm import Session

from lams.core.exceptions import AccessDeniedError
from lams.core.limiter import limiter, submission_limit
from lams.database import get_db
from lams.models.employee import Employee
from lams.routers.deps import get_current_employee, get_reimbursement_service, require_hr, require_manager
from lams.schemas.reimbursement import ReimbursementCreate, ReimbursementDecision, ReimbursementResponse
from lams.services.reimbursement_service import ReimbursementService

router = APIRouter(prefix="/reimbursements", tags=["reimbursements"])


@router.post("", response_model=ReimbursementResponse, status_code=201)
@limiter.limit(submission_limit)
def submit_reimbursement(
    request: Request,
    data: ReimbursementCreate,
    db: Session = Depends(get_db),
    service: ReimbursementService = Depends(get_reimbursement_service),
    current: Employee = Depends(get_current_employee)
):
    manager = db.get(Employee, data.manager_id)
    return service.submit_reimbursement(current, data.items, manager)


@router.get("/mine", response_model=List[ReimbursementResponse])
def my_reimbursements(
    service: ReimbursementService = Depends(get_reimbursement_service),
    current: Employee = Depends(get_current_employee)
):
    return service.list_employee_reimbursements(current.id)


@router.get("/pending/manager", response_model=List[ReimbursementResponse])
def manager_pending(
    service: ReimbursementService = Depends(get_reimbursement_service),
    current: Employee = Depends(require_manager())
):
    return service.list_manager_pending(current.id)


@router.get("/pending/hr", response_model=List[ReimbursementResponse])
def hr_pending(
    service: ReimbursementService = Depends(get_reimbursement_service),
    current: Employee = Depends(require_hr())
):
    return service.list_hr_pending()


@router.get("/{request_id}", response_model=ReimbursementResponse)
def get_reimbursement(
    request_id: str,
    service: ReimbursementService = Depends(get_reimbursement_service),
    current: Employee = Depends(get_current_employee)
):
    reimbursement = service.get_reimbursement(request_id)
    if current.id not in (reimbursement.employee_id, reimbursement.manager_id) and not current.is_hr:
        raise AccessDeniedError("You cannot view this reimbursement")
    return reimbursement


@router.post("/{request_id}/manager", response_model=ReimbursementResponse)
def manager_decision(
    request_id: str,
    body: ReimbursementDecision,
    service: ReimbursementService = Depends(get_reimbursement_service),
    current: Employee = Depends(require_manager())
):
    return service.manager_decision(request_id, body.approve, body.comment, current)


@router.post("/{request_id}/hr", response_model=ReimbursementResponse)
def hr_decision(
    request_id: str,
    body: ReimbursementDecision,
    service: ReimbursementService = Depends(get_reimbursement_service),
    current: Employee = Depends(require_hr())
):
    return service.hr_decision(request_id, body.approve, body.comment, current)
