"""
Leave Service Layer

Applies the leave workflow rules against the database.

Architecture:
- Router / Slack gateway -> LeaveService (this module) -> leave_workflow rules
- Every status change runs through ``run_in_transaction``: the request and the
  employee's balances are re-read, guards are checked on that fresh read, and
  both rows are written or neither is.
- Slack notifications are built after the commit and can never roll
  back a transition. With ``defer`` set they are sent by the caller's
  scheduler instead of inline.
"""
import logging
from decimal import Decimal
from typing import Callable, List, Optional

from sqlalchemy.orm import Session

from lams.core.exceptions import InsufficientBalanceError, ValidationError
from lams.database import run_in_transaction
from lams.models.employee import Employee, EmployeeRole
from lams.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from lams.schemas.leave import LeaveRequestCreate
from lams.services import slack_messages
from lams.services.audit import AuditService
from lams.services.base import BaseService
from lams.services.leave_workflow import (
    ZERO,
    Transition,
    calculate_leave_days,
    check_selected_sources,
    has_active_menstrual_leave,
    plan_cancellation,
    plan_hr_decision,
    plan_manager_decision,
)
from lams.services.notification import SlackNotifier

logger = logging.getLogger(__name__)


class LeaveService(BaseService):
    def __init__(self, db: Session, notifier=None, max_attempts: Optional[int] = None,
                 defer: Optional[Callable] = None):
        super().__init__(db)
        self.notifier = notifier if notifier is not None else SlackNotifier.from_settings()
        self.audit = AuditService(db)
        self.max_attempts = max_attempts
        # e.g. BackgroundTasks.add_task, so Slack DMs go out after the response
        self.defer = defer

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------
    def submit_leave_request(self, form: LeaveRequestCreate, employee: Employee, manager: Optional[Employee]) -> str:
        """
        Validate and create a request in ``pending_manager``, then DM the manager.

        The balance check here is advisory; HR approval re-checks coverage
        inside its own transaction.
        """
        if not employee.is_active:
            raise ValidationError("Inactive employees cannot submit leave requests")
        if manager is None or not manager.is_active or not manager.can_manage:
            raise ValidationError("Please select a valid manager")
        if manager.id == employee.id:
            raise ValidationError("You cannot be the approving manager of your own request")
        if not form.reason or not form.reason.strip():
            raise ValidationError("Please provide a reason for the leave")

        end_date = form.end_date
        if form.leave_type == LeaveType.MENSTRUAL:
            # Single day only
            end_date = form.start_date

        total_days = calculate_leave_days(form.start_date, end_date, form.is_half_day)
        if total_days <= ZERO:
            raise ValidationError("The selected dates do not contain any working day")

        check_selected_sources(
            form.leave_type, total_days,
            employee.comp_off_balance, employee.annual_leave_balance,
            form.use_comp_off, form.use_annual_leave,
        )

        if form.leave_type == LeaveType.MENSTRUAL:
            # All of the employee's requests are filtered in memory by month, type and status
            existing = self.db.query(LeaveRequest).filter(LeaveRequest.employee_id == employee.id).all()
            if has_active_menstrual_leave(existing, form.start_date):
                raise ValidationError("You have already applied for Menstrual Leave this month.")

        leave = LeaveRequest(
            employee_id=employee.id,
            employee_name=employee.name,
            manager_id=manager.id,
            manager_name=manager.name,
            leave_type=form.leave_type,
            start_date=form.start_date,
            end_date=end_date,
            total_days=total_days,
            is_half_day=form.is_half_day,
            reason=form.reason.strip(),
            use_comp_off=form.use_comp_off,
            use_annual_leave=form.use_annual_leave,
            comp_off_used=ZERO,
            annual_leave_used=ZERO,
            status=LeaveStatus.PENDING_MANAGER,
            manager_comment="",
            hr_comment="",
            hr_override=False,
        )
        self.db.add(leave)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Leave request {leave.id} submitted by {employee.id} ({leave.leave_type.value}, {total_days} day(s))")

        self._dispatch(self._notify_submitted, leave, manager)
        return leave.id

    # ------------------------------------------------------------------
    # Decisions
    # ------------------------------------------------------------------
    def manager_decision(self, request_id: str, approved: bool, comment: str, actor: Employee) -> LeaveRequest:
        actor_id = actor.id

        def _apply(db: Session):
            leave = self.get_or_404(LeaveRequest, request_id, "Leave request", for_update=True)
            acting = self.get_or_404(Employee, actor_id, "Employee")
            transition = plan_manager_decision(leave, acting, approved)
            employee = None
            if transition.touches_balance:
                employee = self.get_or_404(Employee, leave.employee_id, "Employee", for_update=True)
            self._apply_transition(leave, employee, transition, acting)
            leave.manager_comment = comment or ""
            return leave, transition

        leave, transition = run_in_transaction(self.db, _apply, self.max_attempts)
        logger.info(f"Leave request {request_id}: {transition.from_status.value} -> {transition.to_status.value} by manager {actor_id}")

        self._dispatch(self._notify_manager_decision, leave, transition)
        return leave

    def hr_approval(self, request_id: str, approved: bool, comment: str, actor: Employee,
                    override_comp_off: Optional[Decimal] = None,
                    override_annual_leave: Optional[Decimal] = None) -> LeaveRequest:
        actor_id = actor.id

        def _apply(db: Session):
            leave = self.get_or_404(LeaveRequest, request_id, "Leave request", for_update=True)
            acting = self.get_or_404(Employee, actor_id, "Employee")
            employee = self.get_or_404(Employee, leave.employee_id, "Employee", for_update=True)
            transition = plan_hr_decision(
                leave, acting, approved,
                employee.comp_off_balance, employee.annual_leave_balance,
                override_comp_off, override_annual_leave,
            )
            self._apply_transition(leave, employee, transition, acting)
            leave.hr_comment = comment or ""
            return leave, transition

        leave, transition = run_in_transaction(self.db, _apply, self.max_attempts)
        logger.info(f"Leave request {request_id}: {transition.from_status.value} -> {transition.to_status.value} by HR {actor_id}")

        self._dispatch(self._notify_hr_decision, leave, transition)
        return leave

    def cancel_leave_request(self, request_id: str, comment: str, actor: Employee) -> LeaveRequest:
        actor_id = actor.id

        def _apply(db: Session):
            leave = self.get_or_404(LeaveRequest, request_id, "Leave request", for_update=True)
            acting = self.get_or_404(Employee, actor_id, "Employee")
            transition = plan_cancellation(leave, acting)
            employee = None
            if transition.touches_balance:
                employee = self.get_or_404(Employee, leave.employee_id, "Employee", for_update=True)
            self._apply_transition(leave, employee, transition, acting)
            leave.hr_comment = comment or ""
            return leave, transition

        leave, transition = run_in_transaction(self.db, _apply, self.max_attempts)
        logger.info(f"Leave request {request_id} cancelled by {actor_id} (was {transition.from_status.value})")

        self._dispatch(self._notify_cancelled, leave, transition)
        return leave

    def _apply_transition(self, leave: LeaveRequest, employee: Optional[Employee],
                          transition: Transition, actor: Employee) -> None:
        if transition.touches_balance:
            previous = {"comp_off": employee.comp_off_balance, "annual_leave": employee.annual_leave_balance}
            new_comp_off = employee.comp_off_balance + transition.delta.comp_off
            new_annual = employee.annual_leave_balance + transition.delta.annual_leave
            if new_comp_off < ZERO or new_annual < ZERO:
                raise InsufficientBalanceError("Balance cannot go below zero")
            employee.comp_off_balance = new_comp_off
            employee.annual_leave_balance = new_annual

            self.audit.log_action(
                action=transition.action,
                details=(
                    f"{leave.leave_type.label} {leave.start_date} → {leave.end_date}: "
                    f"comp off {transition.delta.comp_off:+}, annual leave {transition.delta.annual_leave:+}"
                ),
                performed_by=actor,
                target=employee,
                leave_request_id=leave.id,
                previous_value=previous,
                new_value={"comp_off": new_comp_off, "annual_leave": new_annual},
            )

        if transition.deduction is not None:
            leave.comp_off_used = transition.deduction.comp_off_used
            leave.annual_leave_used = transition.deduction.annual_leave_used
            leave.hr_override = transition.deduction.hr_override
            leave.hr_override_details = transition.deduction.hr_override_details

        leave.status = transition.to_status

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------
    def get_leave_request(self, request_id: str) -> LeaveRequest:
        return self.get_or_404(LeaveRequest, request_id, "Leave request")

    def list_employee_leaves(self, employee_id: str) -> List[LeaveRequest]:
        return (
            self.db.query(LeaveRequest)
            .filter(LeaveRequest.employee_id == employee_id)
            .order_by(LeaveRequest.created_at.desc())
            .all()
        )

    def list_manager_pending(self, manager_id: str) -> List[LeaveRequest]:
        return (
            self.db.query(LeaveRequest)
            .filter(
                LeaveRequest.manager_id == manager_id,
                LeaveRequest.status == LeaveStatus.PENDING_MANAGER
            )
            .order_by(LeaveRequest.created_at.desc())
            .all()
        )

    def list_hr_pending(self) -> List[LeaveRequest]:
        return (
            self.db.query(LeaveRequest)
            .filter(LeaveRequest.status == LeaveStatus.PENDING_HR)
            .order_by(LeaveRequest.created_at.desc())
            .all()
        )

    def list_all_leaves(self, status: Optional[LeaveStatus] = None) -> List[LeaveRequest]:
        query = self.db.query(LeaveRequest)
        if status:
            query = query.filter(LeaveRequest.status == status)
        return query.order_by(LeaveRequest.created_at.desc()).all()

    # ------------------------------------------------------------------
    # Notifications (after commit, best-effort)
    # ------------------------------------------------------------------
    def _dispatch(self, notify: Callable, *args) -> None:
        try:
            notify(*args)
        except Exception as e:
            # Don't fail the request if notification fails
            logger.warning(f"Notification failed: {e}", exc_info=True)

    def _send(self, recipient_ids: List[Optional[str]], text: str, blocks: list) -> None:
        if self.defer is not None:
            self.defer(self._dispatch, self.notifier.send, recipient_ids, text, blocks)
        else:
            self.notifier.send(recipient_ids, text, blocks)

    def _slack_id(self, employee_id: str) -> Optional[str]:
        employee = self.db.get(Employee, employee_id)
        return employee.slack_member_id if employee else None

    def _hr_slack_ids(self) -> List[str]:
        rows = (
            self.db.query(Employee.slack_member_id)
            .filter(
                Employee.role == EmployeeRole.HR_ADMIN,
                Employee.is_active.is_(True),
                Employee.slack_member_id.isnot(None)
            )
            .all()
        )
        return [r[0] for r in rows if r[0]]

    def _notify_submitted(self, leave: LeaveRequest, manager: Employee) -> None:
        text, blocks = slack_messages.manager_request_message(leave)
        self._send([manager.slack_member_id], text, blocks)

    def _notify_manager_decision(self, leave: LeaveRequest, transition: Transition) -> None:
        if transition.to_status == LeaveStatus.PENDING_HR:
            text, blocks = slack_messages.hr_request_message(leave)
            self.notifier.send(self._hr_slack_ids(), text, blocks)

        details = None
        if transition.touches_balance:
            details = f"Comp Off Earned: +{transition.delta.comp_off} day(s)"
        text, blocks = slack_messages.employee_update_message(leave, details)
        self._send([self._slack_id(leave.employee_id)], text, blocks)

    def _notify_hr_decision(self, leave: LeaveRequest, transition: Transition) -> None:
        details = None
        if transition.to_status == LeaveStatus.APPROVED:
            if leave.leave_type == LeaveType.EXTRA_WORK:
                details = f"Comp Off Earned: +{transition.delta.comp_off} day(s)"
            elif transition.deduction is not None:
                details = transition.deduction.summary
        text, blocks = slack_messages.employee_update_message(leave, details)
        self._send([self._slack_id(leave.employee_id)], text, blocks)

    def _notify_cancelled(self, leave: LeaveRequest, transition: Transition) -> None:
        details = None
        if transition.touches_balance:
            details = (
                f"Restored: Comp Off +{transition.delta.comp_off}, "
                f"Annual Leave +{transition.delta.annual_leave}"
            )
        text, blocks = slack_messages.employee_update_message(leave, details)
        self._send([self._slack_id(leave.employee_id)], text, blocks)
