import pytest
from decimal import Decimal

from lams.core.exceptions import AccessDeniedError, ValidationError
from lams.models.audit_log import AuditLog
from lams.models.employee import EmployeeRole
from lams.schemas.employee import EmployeeCreate
from lams.services.employee_service import EmployeeService


@pytest.fixture
def admin(db_session):
    return EmployeeService(db_session)


def test_adjust_comp_off_writes_audit_entry(db_session, admin, employee, hr):
    updated = admin.adjust_comp_off_balance(employee.id, Decimal("2"), "Weekend release", hr)
    assert updated.comp_off_balance == Decimal("5")

    log = db_session.query(AuditLog).one()
    assert log.action == "COMP_OFF_ADJUSTMENT"
    assert log.performed_by == hr.id
    assert log.target_user_id == employee.id
    assert "Weekend release" in log.details
    assert Decimal(log.previous_value) == Decimal("3")
    assert Decimal(log.new_value) == Decimal("5")


def test_adjust_annual_leave_down(admin, employee, hr):
    updated = admin.adjust_annual_leave_balance(employee.id, Decimal("-4.5"), "Correction", hr)
    assert updated.annual_leave_balance == Decimal("5.5")


def test_balance_cannot_go_negative(db_session, admin, employee, hr):
    with pytest.raises(ValidationError, match="below 0"):
        admin.adjust_comp_off_balance(employee.id, Decimal("-4"), "Oops", hr)
    db_session.refresh(employee)
    assert employee.comp_off_balance == Decimal("3")
    assert db_session.query(AuditLog).count() == 0


def test_adjustment_needs_reason_and_amount(admin, employee, hr):
    with pytest.raises(ValidationError):
        admin.adjust_comp_off_balance(employee.id, Decimal("1"), " ", hr)
    with pytest.raises(ValidationError):
        admin.adjust_comp_off_balance(employee.id, Decimal("0"), "Nothing", hr)


def test_only_hr_can_administer(admin, employee, manager):
    with pytest.raises(AccessDeniedError):
        admin.adjust_comp_off_balance(employee.id, Decimal("1"), "Bonus", manager)
    with pytest.raises(AccessDeniedError):
        admin.update_role(employee.id, EmployeeRole.MANAGER, manager)


def test_update_role(db_session, admin, employee, hr):
    updated = admin.update_role(employee.id, EmployeeRole.MANAGER, hr)
    assert updated.role == EmployeeRole.MANAGER
    log = db_session.query(AuditLog).filter(AuditLog.action == "ROLE_CHANGE").one()
    assert log.previous_value == "employee"
    assert log.new_value == "manager"


def test_toggle_status(admin, employee, hr):
    assert admin.toggle_status(employee.id, hr).is_active is False
    assert admin.toggle_status(employee.id, hr).is_active is True


def test_cannot_deactivate_self(admin, hr):
    with pytest.raises(ValidationError):
        admin.toggle_status(hr.id, hr)


def test_slack_id_must_be_unique(admin, employee, manager, hr):
    with pytest.raises(ValidationError, match="already linked"):
        admin.update_slack_member_id(employee.id, "U_MGR", hr)

    updated = admin.update_slack_member_id(employee.id, " U_NEW ", hr)
    assert updated.slack_member_id == "U_NEW"
    assert admin.find_by_slack_id("U_NEW").id == employee.id

    cleared = admin.update_slack_member_id(employee.id, "", hr)
    assert cleared.slack_member_id is None


def test_create_employee(db_session, admin, hr):
    data = EmployeeCreate(name="Ravi Kumar", email="ravi@example.com", annual_leave_balance=Decimal("12"))
    created = admin.create_employee(data, hr)
    assert created.id
    assert created.role == EmployeeRole.EMPLOYEE
    assert db_session.query(AuditLog).filter(AuditLog.action == "USER_CREATED").count() == 1

    with pytest.raises(ValidationError, match="already exists"):
        admin.create_employee(data, hr)


def test_list_managers_excludes_inactive_and_employees(admin, employee, manager, hr, make_employee):
    make_employee("Former Manager", role=EmployeeRole.MANAGER, is_active=False)
    names = [e.name for e in admin.list_managers()]
    assert names == ["Meera Iyer", "Vikram Shah"]


def test_audit_logs_newest_first(admin, employee, hr):
    admin.adjust_comp_off_balance(employee.id, Decimal("1"), "first", hr)
    admin.adjust_comp_off_balance(employee.id, Decimal("1"), "second", hr)
    logs = admin.list_audit_logs(hr, limit=10)
    assert "second" in logs[0].details
    assert "first" in logs[1].details
    assert len(admin.list_audit_logs(hr, limit=1)) == 1
