from datetime import date
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from lams.database import get_db
from lams.models.attendance import AttendanceRecord
from lams.models.employee import Employee
from lams.routers.deps import get_attendance_service, get_current_employee, require_manager
from lams.schemas.attendance import (
    AttendanceResponse, MissedClockInCreate, MissedClockInDecision, MissedClockInResponse,
)
from lams.services.attendance_service import AttendanceService

router = APIRouter(prefix="/attendance", tags=["attendance"])


def _to_response(service: AttendanceService, record: AttendanceRecord) -> AttendanceResponse:
    # Records close themselves at the clock-out hour without a write
    response = AttendanceResponse.model_validate(record)
    return response.model_copy(update={"status": service.effective_status(record)})


@router.post("/clock-in", response_model=AttendanceResponse, status_code=201)
def clock_in(
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(get_current_employee)
):
    return _to_response(service, service.clock_in(current))


@router.get("/today", response_model=Optional[AttendanceResponse])
def today(
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(get_current_employee)
):
    record = service.get_today_attendance(current.id)
    return _to_response(service, record) if record else None


@router.get("/history", response_model=List[AttendanceResponse])
def history(
    year: int = Query(..., ge=2000, le=2100),
    month: int = Query(..., ge=1, le=12),
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(get_current_employee)
):
    return [_to_response(service, r) for r in service.get_attendance_history(current.id, year, month)]


@router.get("/date/{day}", response_model=List[AttendanceResponse])
def by_date(
    day: date,
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(require_manager())
):
    return [_to_response(service, r) for r in service.get_attendance_by_date(day)]


@router.post("/missed-clock-in", response_model=MissedClockInResponse, status_code=201)
def submit_missed_clock_in(
    data: MissedClockInCreate,
    db: Session = Depends(get_db),
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(get_current_employee)
):
    manager = db.get(Employee, data.manager_id)
    return service.submit_missed_clock_in(current, data, manager)


@router.get("/missed-clock-in/mine", response_model=List[MissedClockInResponse])
def my_missed_clock_ins(
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(get_current_employee)
):
    return service.list_employee_missed_clock_ins(current.id)


@router.get("/missed-clock-in/pending", response_model=List[MissedClockInResponse])
def pending_missed_clock_ins(
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(require_manager())
):
    # HR sees every pending request, managers only their own queue
    return service.list_pending_missed_clock_ins(None if current.is_hr else current.id)


@router.post("/missed-clock-in/{request_id}/decision", response_model=MissedClockInResponse)
def decide_missed_clock_in(
    request_id: str,
    body: MissedClockInDecision,
    service: AttendanceService = Depends(get_attendance_service),
    current: Employee = Depends(require_manager())
):
    if body.approve:
        return service.approve_missed_clock_in(request_id, body.comment, current)
    return service.reject_missed_clock_in(request_id, body.comment, current)
