from typing import List, Optional

from fastapi import APIRouter, Depends

from lams.models.employee import Employee
from lams.models.leave_request import LeaveStatus
from lams.routers.deps import get_leave_service, require_hr, require_manager
from lams.schemas.leave import (
    CancelLeaveRequest, HRDecisionRequest, LeaveRequestResponse, ManagerDecisionRequest,
)
from lams.services.leave_service import LeaveService

router = APIRouter(prefix="/approvals", tags=["approvals"])


@router.get("/manager", response_model=List[LeaveRequestResponse])
def manager_pending(
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(require_manager())
):
    return service.list_manager_pending(current.id)


@router.get("/hr", response_model=List[LeaveRequestResponse])
def hr_pending(
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(require_hr())
):
    return service.list_hr_pending()


@router.get("/all", response_model=List[LeaveRequestResponse])
def all_leaves(
    status: Optional[LeaveStatus] = None,
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(require_hr())
):
    return service.list_all_leaves(status)


@router.post("/{request_id}/manager", response_model=LeaveRequestResponse)
def manager_decision(
    request_id: str,
    body: ManagerDecisionRequest,
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(require_manager())
):
    return service.manager_decision(request_id, body.approve, body.comment, current)


@router.post("/{request_id}/hr", response_model=LeaveRequestResponse)
def hr_decision(
    request_id: str,
    body: HRDecisionRequest,
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(require_hr())
):
    return service.hr_approval(
        request_id, body.approve, body.comment, current,
        override_comp_off=body.override_comp_off,
        override_annual_leave=body.override_annual_leave,
    )


@router.post("/{request_id}/cancel", response_model=LeaveRequestResponse)
def cancel_leave(
    request_id: str,
    body: CancelLeaveRequest,
    service: LeaveService = Depends(get_leave_service),
    current: Employee = Depends(require_hr())
):
    return service.cancel_leave_request(request_id, body.comment, current)
