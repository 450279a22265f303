import pytest
from decimal import Decimal
from unittest.mock import MagicMock

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.orm.exc import StaleDataError

from lams.core.exceptions import InvalidStateError, ValidationError
from lams.database import init_db, run_in_transaction
from lams.models.audit_log import AuditLog
from lams.models.employee import Employee, EmployeeRole
from lams.models.leave_request import LeaveRequest, LeaveStatus, LeaveType
from lams.services.audit import AuditService
from lams.services.leave_service import LeaveService

from conftest import FRIDAY, MONDAY, RecordingNotifier


def test_retries_on_version_conflict():
    db = MagicMock()
    calls = []

    def fn(session):
        calls.append(session)
        if len(calls) == 1:
            raise StaleDataError("row changed underneath")
        return "done"

    assert run_in_transaction(db, fn, max_attempts=3) == "done"
    assert len(calls) == 2
    assert db.rollback.call_count == 1
    assert db.commit.call_count == 1


def test_gives_up_after_max_attempts():
    db = MagicMock()
    fn = MagicMock(side_effect=StaleDataError("always stale"))

    with pytest.raises(InvalidStateError, match="changed concurrently") as exc_info:
        run_in_transaction(db, fn, max_attempts=3)
    assert isinstance(exc_info.value.__cause__, StaleDataError)
    assert exc_info.value.status_code == 409
    assert fn.call_count == 3
    assert db.rollback.call_count == 3
    db.commit.assert_not_called()


def test_other_errors_are_not_retried():
    db = MagicMock()
    fn = MagicMock(side_effect=ValueError("boom"))

    with pytest.raises(ValueError):
        run_in_transaction(db, fn, max_attempts=3)
    assert fn.call_count == 1
    assert db.rollback.call_count == 1


@pytest.fixture
def file_sessions(tmp_path):
    """Two independent sessions against one on-disk database, like two web workers."""
    engine = create_engine(f"sqlite:///{tmp_path / 'lams.db'}", connect_args={"check_same_thread": False})
    init_db(bind=engine)
    factory = sessionmaker(autocommit=False, autoflush=False, bind=engine)
    first, second = factory(), factory()
    yield first, second
    first.close()
    second.close()
    engine.dispose()


def _seed(session):
    employee = Employee(name="Asha Rao", email="asha@example.com", role=EmployeeRole.EMPLOYEE,
                        comp_off_balance=Decimal("3"), annual_leave_balance=Decimal("10"))
    manager = Employee(name="Vikram Shah", email="vikram@example.com", role=EmployeeRole.MANAGER)
    hr = Employee(name="Meera Iyer", email="meera@example.com", role=EmployeeRole.HR_ADMIN)
    session.add_all([employee, manager, hr])
    session.commit()
    return employee.id, manager.id, hr.id


def test_stale_write_is_detected(file_sessions):
    first, second = file_sessions
    employee_id, _, _ = _seed(first)

    stale = first.get(Employee, employee_id)
    assert stale.comp_off_balance == Decimal("3")

    fresh = second.get(Employee, employee_id)
    fresh.comp_off_balance += Decimal("1")
    second.commit()

    stale.comp_off_balance += Decimal("1")
    with pytest.raises(StaleDataError):
        first.commit()
    first.rollback()


def test_transaction_rereads_after_conflict(file_sessions):
    first, second = file_sessions
    employee_id, _, _ = _seed(first)
    stale = first.get(Employee, employee_id)
    _ = stale.annual_leave_balance

    fresh = second.get(Employee, employee_id)
    fresh.annual_leave_balance -= Decimal("2")
    second.commit()

    attempts = []

    def take_one_day(db):
        attempts.append(1)
        # First attempt works on the stale identity-map copy
        employee = db.get(Employee, employee_id)
        employee.annual_leave_balance -= Decimal("1")
        return employee

    run_in_transaction(first, take_one_day, max_attempts=3)
    assert len(attempts) == 2

    second.expire_all()
    assert second.get(Employee, employee_id).annual_leave_balance == Decimal("7")


def test_concurrent_approvals_deduct_once(file_sessions):
    first, second = file_sessions
    employee_id, manager_id, hr_id = _seed(first)

    leave = LeaveRequest(
        employee_id=employee_id, employee_name="Asha Rao",
        manager_id=manager_id, manager_name="Vikram Shah",
        leave_type=LeaveType.CASUAL, start_date=MONDAY, end_date=FRIDAY,
        total_days=Decimal("5"), reason="Trip", use_comp_off=True, use_annual_leave=True,
        comp_off_used=Decimal("0"), annual_leave_used=Decimal("0"),
        status=LeaveStatus.PENDING_HR, manager_comment="", hr_comment="", hr_override=False,
    )
    first.add(leave)
    first.commit()
    request_id = leave.id

    # Both workers loaded the request before either decided
    assert first.get(LeaveRequest, request_id).status == LeaveStatus.PENDING_HR
    assert second.get(LeaveRequest, request_id).status == LeaveStatus.PENDING_HR

    LeaveService(second, notifier=RecordingNotifier()).hr_approval(
        request_id, True, "", second.get(Employee, hr_id))

    with pytest.raises(InvalidStateError):
        LeaveService(first, notifier=RecordingNotifier()).hr_approval(
            request_id, True, "", first.get(Employee, hr_id))

    first.expire_all()
    employee = first.get(Employee, employee_id)
    assert employee.comp_off_balance == Decimal("0")
    assert employee.annual_leave_balance == Decimal("8")


def test_audit_entry_rolls_back_with_the_transaction(db_session, employee, hr):
    audit = AuditService(db_session)

    def adjust_then_fail(db):
        audit.log_action("COMP_OFF_ADJUSTMENT", "Weekend release", performed_by=hr, target=employee)
        raise ValidationError("Balance cannot go below zero")

    with pytest.raises(ValidationError):
        run_in_transaction(db_session, adjust_then_fail)
    assert db_session.query(AuditLog).count() == 0
