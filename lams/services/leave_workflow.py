"""
Leave Workflow Rules

Pure decision logic for the leave lifecycle. Nothing in this module touches
the database: callers pass in freshly read rows (or any object with the same
attributes) and get back a ``Transition`` describing the next status and the
balance delta to apply. ``LeaveService`` applies transitions inside a
transaction.

State machine (initial ``pending_manager``):

    pending_manager --manager approves--> pending_hr   (approved if extra_work)
    pending_manager --manager rejects---> rejected
    pending_hr      --HR approves-------> approved     (deduct / credit)
    pending_hr      --HR rejects--------> rejected
    approved        --HR cancels--------> cancelled    (reverse deduction)
    pending_*       --HR cancels--------> cancelled
"""
from dataclasses import dataclass, field
from datetime import date, timedelta
from decimal import Decimal
from typing import Optional

from lams.core.exceptions import InsufficientBalanceError, InvalidStateError, ValidationError
from lams.models.employee import EmployeeRole
from lams.models.leave_request import LeaveStatus, LeaveType

ZERO = Decimal("0")
HALF_DAY = Decimal("0.5")

# Types that never consume comp-off / annual leave at HR approval (unless overridden)
DEDUCTION_EXEMPT_TYPES = frozenset({LeaveType.MENSTRUAL, LeaveType.BEREAVEMENT})

# Types skipped by the advisory balance check at submission
UNCHECKED_AT_SUBMISSION = frozenset({
    LeaveType.WFH, LeaveType.EXTRA_WORK, LeaveType.MENSTRUAL, LeaveType.BEREAVEMENT,
})

# Statuses that count against the one-menstrual-leave-per-month rule
ACTIVE_STATUSES = frozenset({LeaveStatus.PENDING_MANAGER, LeaveStatus.PENDING_HR, LeaveStatus.APPROVED})

CANCELLABLE_STATUSES = frozenset({LeaveStatus.PENDING_MANAGER, LeaveStatus.PENDING_HR, LeaveStatus.APPROVED})


class Decision:
    APPROVE = "approve"
    REJECT = "reject"


class Stage:
    MANAGER = "manager"
    HR = "hr"


@dataclass(frozen=True)
class BalanceDelta:
    """Signed change to apply to an employee's balances."""
    comp_off: Decimal = ZERO
    annual_leave: Decimal = ZERO

    @property
    def is_empty(self) -> bool:
        return self.comp_off == ZERO and self.annual_leave == ZERO


@dataclass(frozen=True)
class Deduction:
    comp_off_used: Decimal = ZERO
    annual_leave_used: Decimal = ZERO
    hr_override: bool = False
    hr_override_details: Optional[str] = None

    @property
    def summary(self) -> str:
        text = f"Comp Off Used: {self.comp_off_used}, Annual Leave Used: {self.annual_leave_used}"
        if self.hr_override_details:
            text += f" | {self.hr_override_details}"
        return text


@dataclass(frozen=True)
class Transition:
    from_status: LeaveStatus
    to_status: LeaveStatus
    action: str
    delta: BalanceDelta = field(default_factory=BalanceDelta)
    deduction: Optional[Deduction] = None

    @property
    def touches_balance(self) -> bool:
        return not self.delta.is_empty


def calculate_leave_days(start_date: date, end_date: date, is_half_day: bool = False) -> Decimal:
    """Weekdays (Mon-Fri) between both dates inclusive; a half day is always 0.5."""
    if end_date < start_date:
        raise ValidationError("End date cannot be before start date")
    if is_half_day:
        return HALF_DAY

    days = 0
    current = start_date
    while current <= end_date:
        if current.weekday() < 5:
            days += 1
        current += timedelta(days=1)
    return Decimal(days)


def check_selected_sources(leave_type: LeaveType, total_days: Decimal,
                           comp_off_balance: Decimal, annual_leave_balance: Decimal,
                           use_comp_off: bool, use_annual_leave: bool) -> None:
    """
    Advisory submission check. Balances may still change before HR approval,
    so ``compute_deduction`` re-checks coverage authoritatively.
    """
    if leave_type in UNCHECKED_AT_SUBMISSION:
        return
    available = (comp_off_balance if use_comp_off else ZERO) + (annual_leave_balance if use_annual_leave else ZERO)
    if available < total_days:
        raise InsufficientBalanceError(
            "Insufficient leave balance for the selected leave sources",
            details={"available": str(available), "requested": str(total_days)}
        )


def month_bounds(day: date):
    start = day.replace(day=1)
    if start.month == 12:
        end = start.replace(year=start.year + 1, month=1)
    else:
        end = start.replace(month=start.month + 1)
    return start, end


def has_active_menstrual_leave(existing_requests, on_day: date) -> bool:
    """True if any request in the calendar month of ``on_day`` blocks a new menstrual leave."""
    start, end = month_bounds(on_day)
    return any(
        req.leave_type == LeaveType.MENSTRUAL
        and req.status in ACTIVE_STATUSES
        and start <= req.start_date < end
        for req in existing_requests
    )


def _require_active(actor) -> None:
    if not actor.is_active:
        raise InvalidStateError("Your account is inactive")


def check_manager_guard(leave, actor) -> None:
    """Manager-stage guard: request still awaits its manager and the actor is that manager."""
    _require_active(actor)
    if leave.manager_id != actor.id:
        raise InvalidStateError("You are not the assigned manager for this leave request")
    if leave.status != LeaveStatus.PENDING_MANAGER:
        raise InvalidStateError(
            f"This leave has already been processed. Current status: {leave.status.value}",
            details={"status": leave.status.value}
        )


def check_hr_guard(leave, actor) -> None:
    _require_active(actor)
    if actor.role != EmployeeRole.HR_ADMIN:
        raise InvalidStateError("Only HR admins can process this approval")
    if leave.status != LeaveStatus.PENDING_HR:
        raise InvalidStateError(
            f"This leave has already been processed. Current status: {leave.status.value}",
            details={"status": leave.status.value}
        )


def check_cancel_guard(leave, actor) -> None:
    _require_active(actor)
    if actor.role != EmployeeRole.HR_ADMIN:
        raise InvalidStateError("Only HR admins can cancel leave requests")
    if leave.status not in CANCELLABLE_STATUSES:
        raise InvalidStateError(
            f"Leave request cannot be cancelled. Current status: {leave.status.value}",
            details={"status": leave.status.value}
        )


def compute_deduction(leave_type: LeaveType, total_days: Decimal,
                      comp_off_balance: Decimal, annual_leave_balance: Decimal,
                      use_comp_off: bool, use_annual_leave: bool,
                      override_comp_off: Optional[Decimal] = None,
                      override_annual_leave: Optional[Decimal] = None) -> Deduction:
    """
    Split ``total_days`` across comp-off then annual leave.

    An HR override is taken verbatim but may never exceed the current
    balances. Without an override the selected sources must cover the whole
    request, otherwise ``InsufficientBalanceError`` aborts the approval.
    """
    if override_comp_off is not None or override_annual_leave is not None:
        comp_off_used = Decimal(override_comp_off or 0)
        annual_leave_used = Decimal(override_annual_leave or 0)
        if comp_off_used < ZERO or annual_leave_used < ZERO:
            raise ValidationError("Override amounts cannot be negative")
        if comp_off_used > comp_off_balance or annual_leave_used > annual_leave_balance:
            raise InsufficientBalanceError(
                "Override exceeds the employee's available balance",
                details={
                    "comp_off_balance": str(comp_off_balance),
                    "annual_leave_balance": str(annual_leave_balance),
                }
            )
        return Deduction(
            comp_off_used=comp_off_used,
            annual_leave_used=annual_leave_used,
            hr_override=True,
            hr_override_details=f"HR Override: Comp Off = {comp_off_used}, Annual Leave = {annual_leave_used}",
        )

    if leave_type in DEDUCTION_EXEMPT_TYPES:
        return Deduction()

    remaining = total_days
    comp_off_used = ZERO
    annual_leave_used = ZERO

    if use_comp_off and comp_off_balance > ZERO:
        comp_off_used = min(comp_off_balance, remaining)
        remaining -= comp_off_used

    if use_annual_leave and remaining > ZERO:
        annual_leave_used = min(annual_leave_balance, remaining)
        remaining -= annual_leave_used

    if remaining > ZERO:
        raise InsufficientBalanceError(
            "Insufficient leave balance to approve this request",
            details={"shortfall": str(remaining)}
        )

    return Deduction(comp_off_used=comp_off_used, annual_leave_used=annual_leave_used)


def plan_manager_decision(leave, actor, approved: bool) -> Transition:
    check_manager_guard(leave, actor)

    if not approved:
        return Transition(leave.status, LeaveStatus.REJECTED, "LEAVE_MANAGER_REJECTED")

    if leave.leave_type == LeaveType.EXTRA_WORK:
        return Transition(
            leave.status, LeaveStatus.APPROVED, "COMP_OFF_CREDIT",
            delta=BalanceDelta(comp_off=leave.total_days),
        )
    return Transition(leave.status, LeaveStatus.PENDING_HR, "LEAVE_MANAGER_APPROVED")


def plan_hr_decision(leave, actor, approved: bool,
                     comp_off_balance: Decimal, annual_leave_balance: Decimal,
                     override_comp_off: Optional[Decimal] = None,
                     override_annual_leave: Optional[Decimal] = None) -> Transition:
    check_hr_guard(leave, actor)

    if not approved:
        return Transition(leave.status, LeaveStatus.REJECTED, "LEAVE_HR_REJECTED")

    if leave.leave_type == LeaveType.WFH:
        return Transition(leave.status, LeaveStatus.APPROVED, "LEAVE_HR_APPROVED", deduction=Deduction())

    if leave.leave_type == LeaveType.EXTRA_WORK:
        return Transition(
            leave.status, LeaveStatus.APPROVED, "COMP_OFF_CREDIT",
            delta=BalanceDelta(comp_off=leave.total_days),
            deduction=Deduction(),
        )

    deduction = compute_deduction(
        leave.leave_type, leave.total_days,
        comp_off_balance, annual_leave_balance,
        leave.use_comp_off, leave.use_annual_leave,
        override_comp_off, override_annual_leave,
    )
    return Transition(
        leave.status, LeaveStatus.APPROVED, "LEAVE_DEDUCTION",
        delta=BalanceDelta(comp_off=-deduction.comp_off_used, annual_leave=-deduction.annual_leave_used),
        deduction=deduction,
    )


def plan_cancellation(leave, actor) -> Transition:
    check_cancel_guard(leave, actor)

    if leave.status == LeaveStatus.APPROVED:
        return Transition(
            leave.status, LeaveStatus.CANCELLED, "LEAVE_REVERSAL",
            delta=BalanceDelta(comp_off=leave.comp_off_used, annual_leave=leave.annual_leave_used),
        )
    return Transition(leave.status, LeaveStatus.CANCELLED, "LEAVE_CANCELLED")
