import logging
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.orm import Session

from lams.core.exceptions import InvalidStateError, ValidationError
from lams.database import run_in_transaction
from lams.models.employee import Employee, EmployeeRole
from lams.models.reimbursement import ReimbursementItem, ReimbursementRequest, ReimbursementStatus
from lams.schemas.reimbursement import ReimbursementItemIn
from lams.services.audit import AuditService
from lams.services.base import BaseService

logger = logging.getLogger(__name__)


class ReimbursementService(BaseService):
    """Expense claims: manager approval, then HR approval."""

    def __init__(self, db: Session, max_attempts: Optional[int] = None):
        super().__init__(db)
        self.audit = AuditService(db)
        self.max_attempts = max_attempts

    def submit_reimbursement(self, employee: Employee, items: List[ReimbursementItemIn],
                             manager: Optional[Employee]) -> ReimbursementRequest:
        if not employee.is_active:
            raise ValidationError("Inactive employees cannot submit reimbursements")
        if manager is None or not manager.is_active or not manager.can_manage or manager.id == employee.id:
            raise ValidationError("Please select a valid manager")
        if not items:
            raise ValidationError("Add at least one expense item")
        if any(item.amount <= 0 for item in items):
            raise ValidationError("Expense amounts must be positive")

        request = ReimbursementRequest(
            employee_id=employee.id,
            employee_name=employee.name,
            manager_id=manager.id,
            manager_name=manager.name,
            total_amount=sum((item.amount for item in items), Decimal("0")),
            status=ReimbursementStatus.PENDING,
            manager_comment="",
            hr_comment="",
            items=[
                ReimbursementItem(
                    description=item.description.strip(),
                    amount=item.amount,
                    expense_date=item.expense_date,
                )
                for item in items
            ],
        )
        self.db.add(request)
        try:
            self.db.commit()
        except Exception:
            self.db.rollback()
            raise
        logger.info(f"Reimbursement {request.id} submitted by {employee.id} for {request.total_amount}")
        return request

    def manager_decision(self, request_id: str, approved: bool, comment: str, actor: Employee) -> ReimbursementRequest:
        actor_id = actor.id

        def _apply(db: Session):
            request = self.get_or_404(ReimbursementRequest, request_id, "Reimbursement", for_update=True)
            acting = self.get_or_404(Employee, actor_id, "Employee")
            if not acting.is_active:
                raise InvalidStateError("Your account is inactive")
            if request.manager_id != acting.id:
                raise InvalidStateError("You are not the assigned manager for this reimbursement")
            if request.status != ReimbursementStatus.PENDING:
                raise InvalidStateError(f"This reimbursement has already been processed. Current status: {request.status.value}")

            request.status = ReimbursementStatus.PENDING_HR if approved else ReimbursementStatus.REJECTED
            request.manager_comment = comment or ""
            self._log(request, acting, "REIMBURSEMENT_MANAGER_" + ("APPROVED" if approved else "REJECTED"))
            return request

        return run_in_transaction(self.db, _apply, self.max_attempts)

    def hr_decision(self, request_id: str, approved: bool, comment: str, actor: Employee) -> ReimbursementRequest:
        actor_id = actor.id

        def _apply(db: Session):
            request = self.get_or_404(ReimbursementRequest, request_id, "Reimbursement", for_update=True)
            acting = self.get_or_404(Employee, actor_id, "Employee")
            if not acting.is_active:
                raise InvalidStateError("Your account is inactive")
            if acting.role != EmployeeRole.HR_ADMIN:
                raise InvalidStateError("Only HR admins can process this approval")
            if request.status != ReimbursementStatus.PENDING_HR:
                raise InvalidStateError(f"This reimbursement has already been processed. Current status: {request.status.value}")

            request.status = ReimbursementStatus.APPROVED if approved else ReimbursementStatus.REJECTED
            request.hr_comment = comment or ""
            self._log(request, acting, "REIMBURSEMENT_HR_" + ("APPROVED" if approved else "REJECTED"))
            return request

        return run_in_transaction(self.db, _apply, self.max_attempts)

    def _log(self, request: ReimbursementRequest, actor: Employee, action: str) -> None:
        self.audit.log_action(
            action=action,
            details=f"Reimbursement {request.id} of {request.total_amount} for {request.employee_name}",
            performed_by=actor,
            new_value=request.status,
        )
        logger.info(f"Reimbursement {request.id} -> {request.status.value} by {actor.id}")

    def get_reimbursement(self, request_id: str) -> ReimbursementRequest:
        return self.get_or_404(ReimbursementRequest, request_id, "Reimbursement")

    def list_employee_reimbursements(self, employee_id: str) -> List[ReimbursementRequest]:
        return (
            self.db.query(ReimbursementRequest)
            .filter(ReimbursementRequest.employee_id == employee_id)
            .order_by(ReimbursementRequest.created_at.desc())
            .all()
        )

    def list_manager_pending(self, manager_id: str) -> List[ReimbursementRequest]:
        return (
            self.db.query(ReimbursementRequest)
            .filter(
                ReimbursementRequest.manager_id == manager_id,
                ReimbursementRequest.status == ReimbursementStatus.PENDING
            )
            .order_by(ReimbursementRequest.created_at.desc())
            .all()
        )

    def list_hr_pending(self) -> List[ReimbursementRequest]:
        return (
            self.db.query(ReimbursementRequest)
            .filter(ReimbursementRequest.status == ReimbursementStatus.PENDING_HR)
            .order_by(ReimbursementRequest.created_at.desc())
            .all()
        )
