"""
Employee administration.

HR-only operations on the balance ledger and on employee accounts. Each one
runs in a single transaction and writes exactly one audit entry.
"""
import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from lams.core.exceptions import AccessDeniedError, ValidationError
from lams.database import run_in_transaction
from lams.models.employee import Employee, EmployeeRole
from lams.schemas.employee import EmployeeCreate
from lams.services.audit import AuditService
from lams.services.base import BaseService

logger = logging.getLogger(__name__)

COMP_OFF = "comp_off_balance"
ANNUAL_LEAVE = "annual_leave_balance"

_BALANCE_LABELS = {
    COMP_OFF: ("COMP_OFF_ADJUSTMENT", "Comp Off"),
    ANNUAL_LEAVE: ("ANNUAL_LEAVE_ADJUSTMENT", "Annual Leave"),
}


class EmployeeService(BaseService):
    def __init__(self, db: Session, max_attempts: Optional[int] = None):
        super().__init__(db)
        self.audit = AuditService(db)
        self.max_attempts = max_attempts

    @staticmethod
    def _require_hr(actor: Employee) -> None:
        if not actor.is_active or actor.role != EmployeeRole.HR_ADMIN:
            raise AccessDeniedError("Only HR admins can manage employees")

    def find_by_slack_id(self, slack_member_id: str) -> Optional[Employee]:
        return self.db.query(Employee).filter(Employee.slack_member_id == slack_member_id).first()

    def list_employees(self, active_only: bool = False) -> List[Employee]:
        query = self.db.query(Employee)
        if active_only:
            query = query.filter(Employee.is_active.is_(True))
        return query.order_by(Employee.name).all()

    def list_managers(self) -> List[Employee]:
        return (
            self.db.query(Employee)
            .filter(
                Employee.role.in_([EmployeeRole.MANAGER, EmployeeRole.HR_ADMIN]),
                Employee.is_active.is_(True)
            )
            .order_by(Employee.name)
            .all()
        )

    def create_employee(self, data: EmployeeCreate, actor: Employee) -> Employee:
        self._require_hr(actor)
        if self.db.query(Employee).filter(Employee.email == data.email).first():
            raise ValidationError(f"An employee with email {data.email} already exists")

        def _apply(db: Session):
            employee = Employee(
                name=data.name,
                email=data.email,
                role=data.role,
                annual_leave_balance=data.annual_leave_balance,
                comp_off_balance=data.comp_off_balance,
                slack_member_id=data.slack_member_id or None,
                is_active=True,
            )
            db.add(employee)
            db.flush()
            self.audit.log_action(
                action="USER_CREATED",
                details=f"Created {data.role.value} account for {data.name}",
                performed_by=actor,
                target=employee,
                new_value={"role": data.role, "annual_leave": data.annual_leave_balance, "comp_off": data.comp_off_balance},
            )
            return employee

        employee = run_in_transaction(self.db, _apply, self.max_attempts)
        logger.info(f"Employee {employee.id} created by {actor.id}")
        return employee

    def _adjust_balance(self, user_id: str, field: str, amount: Decimal, reason: str, actor: Employee) -> Employee:
        self._require_hr(actor)
        if not reason or not reason.strip():
            raise ValidationError("A reason is required for balance adjustments")
        if amount == 0:
            raise ValidationError("Adjustment amount cannot be zero")
        action, label = _BALANCE_LABELS[field]

        def _apply(db: Session):
            employee = self.get_or_404(Employee, user_id, "User", for_update=True)
            previous = getattr(employee, field)
            new_balance = previous + amount
            if new_balance < 0:
                raise ValidationError(f"Cannot reduce {label.lower()} balance below 0")
            setattr(employee, field, new_balance)
            self.audit.log_action(
                action=action,
                details=f"{label} {'added' if amount > 0 else 'deducted'}: {abs(amount)} days. Reason: {reason.strip()}",
                performed_by=actor,
                target=employee,
                previous_value=previous,
                new_value=new_balance,
            )
            return employee

        return run_in_transaction(self.db, _apply, self.max_attempts)

    def adjust_comp_off_balance(self, user_id: str, amount: Decimal, reason: str, actor: Employee) -> Employee:
        return self._adjust_balance(user_id, COMP_OFF, amount, reason, actor)

    def adjust_annual_leave_balance(self, user_id: str, amount: Decimal, reason: str, actor: Employee) -> Employee:
        return self._adjust_balance(user_id, ANNUAL_LEAVE, amount, reason, actor)

    def update_role(self, user_id: str, new_role: EmployeeRole, actor: Employee) -> Employee:
        self._require_hr(actor)

        def _apply(db: Session):
            employee = self.get_or_404(Employee, user_id, "User", for_update=True)
            previous = employee.role
            employee.role = new_role
            self.audit.log_action(
                action="ROLE_CHANGE",
                details=f"Role changed from {previous.value} to {new_role.value}",
                performed_by=actor,
                target=employee,
                previous_value=previous,
                new_value=new_role,
            )
            return employee

        return run_in_transaction(self.db, _apply, self.max_attempts)

    def toggle_status(self, user_id: str, actor: Employee) -> Employee:
        self._require_hr(actor)
        if user_id == actor.id:
            raise ValidationError("You cannot deactivate your own account")

        def _apply(db: Session):
            employee = self.get_or_404(Employee, user_id, "User", for_update=True)
            previous = employee.is_active
            employee.is_active = not previous
            self.audit.log_action(
                action="USER_STATUS_CHANGE",
                details=f"User {'activated' if employee.is_active else 'deactivated'}",
                performed_by=actor,
                target=employee,
                previous_value=previous,
                new_value=employee.is_active,
            )
            return employee

        return run_in_transaction(self.db, _apply, self.max_attempts)

    def update_slack_member_id(self, user_id: str, slack_member_id: Optional[str], actor: Employee) -> Employee:
        self._require_hr(actor)
        slack_member_id = (slack_member_id or "").strip() or None
        if slack_member_id:
            owner = self.find_by_slack_id(slack_member_id)
            if owner is not None and owner.id != user_id:
                raise ValidationError(f"Slack member ID {slack_member_id} is already linked to {owner.name}")

        def _apply(db: Session):
            employee = self.get_or_404(Employee, user_id, "User", for_update=True)
            previous = employee.slack_member_id
            employee.slack_member_id = slack_member_id
            self.audit.log_action(
                action="SLACK_ID_UPDATE",
                details=(
                    f"Slack Member ID {'set to ' + slack_member_id if slack_member_id else 'cleared'} "
                    f"for {employee.name}"
                ),
                performed_by=actor,
                target=employee,
                previous_value=previous,
                new_value=slack_member_id,
            )
            return employee

        return run_in_transaction(self.db, _apply, self.max_attempts)

    def list_audit_logs(self, actor: Employee, limit: int = 100):
        self._require_hr(actor)
        return self.audit.list_logs(limit)
