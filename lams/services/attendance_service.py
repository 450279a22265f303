import logging
from datetime import date, datetime, time, timezone
from typing import Callable, List, Optional
from zoneinfo import ZoneInfo

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from lams.core.config import settings
from lams.core.exceptions import InvalidStateError, ValidationError
from lams.database import run_in_transaction
from lams.models.attendance import (
    AttendanceRecord, AttendanceStatus, MissedClockInRequest, MissedClockInStatus,
)
from lams.models.employee import Employee, EmployeeRole
from lams.schemas.attendance import MissedClockInCreate
from lams.services.base import BaseService
from lams.services.leave_workflow import month_bounds

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class AttendanceService(BaseService):
    """
    Daily clock-in plus the manager-approved missed clock-in request.

    Every record is closed automatically at the configured clock-out hour
    (7 PM local); a record reads as ``auto_logged_out`` after that.
    """

    def __init__(self, db: Session, clock: Callable[[], datetime] = utc_now, tz: Optional[str] = None,
                 max_attempts: Optional[int] = None):
        super().__init__(db)
        self.clock = clock
        self.tz = ZoneInfo(tz or settings.timezone)
        self.max_attempts = max_attempts

    # --- time helpers -------------------------------------------------
    def today(self) -> date:
        return self.clock().astimezone(self.tz).date()

    def _at(self, day: date, hour: int) -> datetime:
        return datetime.combine(day, time(hour), tzinfo=self.tz)

    def clock_out_for(self, day: date) -> datetime:
        return self._at(day, settings.auto_clock_out_hour)

    def effective_status(self, record: AttendanceRecord) -> AttendanceStatus:
        if record.status == AttendanceStatus.CLOCKED_IN and self.clock() >= self.clock_out_for(record.date):
            return AttendanceStatus.AUTO_LOGGED_OUT
        return record.status

    # --- clock-in -----------------------------------------------------
    def clock_in(self, employee: Employee) -> AttendanceRecord:
        today = self.today()
        if self._record_for(employee.id, today) is not None:
            raise ValidationError("You have already clocked in today!")
        now = self.clock().astimezone(self.tz)
        clock_out = self.clock_out_for(today)
        if now >= clock_out:
            raise ValidationError(f"Clock-in is not available after {clock_out:%I:%M %p} local time.")

        record = AttendanceRecord(
            employee_id=employee.id,
            employee_name=employee.name,
            date=today,
            clock_in_time=now,
            clock_out_time=clock_out,
            status=AttendanceStatus.CLOCKED_IN,
            is_missed_clock_in=False,
        )
        self.db.add(record)
        try:
            self.db.commit()
        except IntegrityError:
            # Unique (employee, date): a concurrent clock-in won
            self.db.rollback()
            raise ValidationError("You have already clocked in today!")
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Employee {employee.id} clocked in for {today}")
        return record

    def _record_for(self, employee_id: str, day: date) -> Optional[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .filter(AttendanceRecord.employee_id == employee_id, AttendanceRecord.date == day)
            .first()
        )

    def get_today_attendance(self, employee_id: str) -> Optional[AttendanceRecord]:
        return self._record_for(employee_id, self.today())

    def get_attendance_by_date(self, day: date) -> List[AttendanceRecord]:
        return (
            self.db.query(AttendanceRecord)
            .filter(AttendanceRecord.date == day)
            .order_by(AttendanceRecord.clock_in_time.asc())
            .all()
        )

    def get_attendance_history(self, employee_id: str, year: int, month: int) -> List[AttendanceRecord]:
        try:
            start, end = month_bounds(date(year, month, 1))
        except ValueError:
            raise ValidationError("Invalid year or month")
        return (
            self.db.query(AttendanceRecord)
            .filter(
                AttendanceRecord.employee_id == employee_id,
                AttendanceRecord.date >= start,
                AttendanceRecord.date < end
            )
            .order_by(AttendanceRecord.date.desc())
            .all()
        )

    # --- missed clock-in ----------------------------------------------
    def submit_missed_clock_in(self, employee: Employee, data: MissedClockInCreate,
                               manager: Optional[Employee]) -> MissedClockInRequest:
        if manager is None or not manager.is_active or not manager.can_manage or manager.id == employee.id:
            raise ValidationError("Please select a valid manager")
        if data.date >= self.today():
            raise ValidationError("Missed clock-in can only be applied for past dates.")
        if self._record_for(employee.id, data.date) is not None:
            raise ValidationError("You already have an attendance record for this date.")

        duplicate = (
            self.db.query(MissedClockInRequest)
            .filter(
                MissedClockInRequest.employee_id == employee.id,
                MissedClockInRequest.date == data.date,
                MissedClockInRequest.status == MissedClockInStatus.PENDING
            )
            .first()
        )
        if duplicate is not None:
            raise ValidationError("You already have a pending missed clock-in request for this date.")

        request = MissedClockInRequest(
            employee_id=employee.id,
            employee_name=employee.name,
            date=data.date,
            reason=data.reason.strip(),
            manager_id=manager.id,
            manager_name=manager.name,
            status=MissedClockInStatus.PENDING,
            manager_comment="",
        )
        self.db.add(request)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        return request

    def decide_missed_clock_in(self, request_id: str, approved: bool, comment: str,
                               actor: Employee) -> MissedClockInRequest:
        """Approve (creating the attendance record) or reject a pending request."""
        actor_id = actor.id

        def _apply(db: Session):
            request = self.get_or_404(MissedClockInRequest, request_id, "Request", for_update=True)
            acting = self.get_or_404(Employee, actor_id, "Employee")
            if not acting.is_active or (acting.id != request.manager_id and acting.role != EmployeeRole.HR_ADMIN):
                raise InvalidStateError("You are not the assigned manager for this request")
            if request.status != MissedClockInStatus.PENDING:
                raise InvalidStateError("Request is no longer pending")

            if approved:
                if self._record_for(request.employee_id, request.date) is not None:
                    raise ValidationError("An attendance record already exists for this date.")
                db.add(AttendanceRecord(
                    employee_id=request.employee_id,
                    employee_name=request.employee_name,
                    date=request.date,
                    clock_in_time=self._at(request.date, settings.missed_clock_in_hour),
                    clock_out_time=self.clock_out_for(request.date),
                    status=AttendanceStatus.AUTO_LOGGED_OUT,
                    is_missed_clock_in=True,
                ))
            request.status = MissedClockInStatus.APPROVED if approved else MissedClockInStatus.REJECTED
            request.manager_comment = comment or ""
            return request

        request = run_in_transaction(self.db, _apply, self.max_attempts)
        logger.info(f"Missed clock-in {request_id} {request.status.value} by {actor_id}")
        return request

    def approve_missed_clock_in(self, request_id: str, comment: str, actor: Employee) -> MissedClockInRequest:
        return self.decide_missed_clock_in(request_id, True, comment, actor)

    def reject_missed_clock_in(self, request_id: str, comment: str, actor: Employee) -> MissedClockInRequest:
        return self.decide_missed_clock_in(request_id, False, comment, actor)

    def list_pending_missed_clock_ins(self, manager_id: Optional[str] = None) -> List[MissedClockInRequest]:
        query = self.db.query(MissedClockInRequest).filter(MissedClockInRequest.status == MissedClockInStatus.PENDING)
        if manager_id:
            query = query.filter(MissedClockInRequest.manager_id == manager_id)
        return query.order_by(MissedClockInRequest.created_at.desc()).all()

    def list_employee_missed_clock_ins(self, employee_id: str) -> List[MissedClockInRequest]:
        return (
            self.db.query(MissedClockInRequest)
            .filter(MissedClockInRequest.employee_id == employee_id)
            .order_by(MissedClockInRequest.created_at.desc())
            .all()
        )
