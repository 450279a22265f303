import pytest
import os
from datetime import date
from decimal import Decimal
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

# Set env before importing app components
os.environ["APP_ENV"] = "testing"
os.environ["DATABASE_URL"] = "sqlite:///:memory:"
os.environ["SLACK_SIGNING_SECRET"] = "test-signing-secret"
os.environ["SLACK_BOT_TOKEN"] = ""
os.environ["SLACK_ALLOW_UNSIGNED"] = "false"
os.environ["RATE_LIMIT_PER_MINUTE"] = "6000"

from lams.database import init_db, get_db
from lams.main import app
from lams.models.employee import Employee, EmployeeRole
from lams.models.leave_request import LeaveType
from lams.routers.deps import get_notifier
from lams.schemas.leave import LeaveRequestCreate
from lams.services.leave_service import LeaveService
from fastapi.testclient import TestClient

# Monday; the week of 7-11 Jan 2030 has five working days
MONDAY = date(2030, 1, 7)
FRIDAY = date(2030, 1, 11)


class RecordingNotifier:
    """Stands in for SlackNotifier and keeps every message for assertions."""

    def __init__(self):
        self.sent = []
        self.replaced = []

    def send(self, recipient_ids, text, blocks=None):
        targets = [r for r in recipient_ids if r]
        if targets:
            self.sent.append({"to": targets, "text": text, "blocks": blocks or []})

    def replace_message(self, response_url, text):
        self.replaced.append({"response_url": response_url, "text": text})

    def sent_to(self, slack_id):
        return [m for m in self.sent if slack_id in m["to"]]


class FailingNotifier:
    def send(self, recipient_ids, text, blocks=None):
        raise RuntimeError("Slack is down")

    def replace_message(self, response_url, text):
        raise RuntimeError("Slack is down")


@pytest.fixture(scope="function")
def engine():
    """A fresh in-memory database per test; services commit for real."""
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    init_db(bind=engine)
    yield engine
    engine.dispose()


@pytest.fixture(scope="function")
def db_session(engine):
    session = sessionmaker(autocommit=False, autoflush=False, bind=engine)()
    yield session
    session.close()


@pytest.fixture(scope="function")
def make_employee(db_session):
    def _make(name, role=EmployeeRole.EMPLOYEE, comp_off="0", annual_leave="0", slack_member_id=None, is_active=True):
        employee = Employee(
            name=name,
            email=f"{name.lower().replace(' ', '.')}@example.com",
            role=role,
            comp_off_balance=Decimal(comp_off),
            annual_leave_balance=Decimal(annual_leave),
            slack_member_id=slack_member_id,
            is_active=is_active,
        )
        db_session.add(employee)
        db_session.commit()
        return employee
    return _make


@pytest.fixture(scope="function")
def employee(make_employee):
    return make_employee("Asha Rao", comp_off="3", annual_leave="10", slack_member_id="U_EMP")


@pytest.fixture(scope="function")
def manager(make_employee):
    return make_employee("Vikram Shah", role=EmployeeRole.MANAGER, slack_member_id="U_MGR")


@pytest.fixture(scope="function")
def hr(make_employee):
    return make_employee("Meera Iyer", role=EmployeeRole.HR_ADMIN, slack_member_id="U_HR")


@pytest.fixture(scope="function")
def notifier():
    return RecordingNotifier()


@pytest.fixture(scope="function")
def leave_service(db_session, notifier):
    return LeaveService(db_session, notifier=notifier)


@pytest.fixture(scope="function")
def submit_leave(leave_service, employee, manager):
    """Submit a request from ``employee`` to ``manager``; keyword arguments override the form."""
    def _submit(**overrides):
        data = {
            "leave_type": LeaveType.CASUAL,
            "start_date": MONDAY,
            "end_date": FRIDAY,
            "reason": "Family function",
            "manager_id": manager.id,
            "use_comp_off": True,
            "use_annual_leave": True,
        }
        data.update(overrides)
        return leave_service.submit_leave_request(LeaveRequestCreate(**data), employee, manager)
    return _submit


@pytest.fixture(scope="function")
def client(db_session, notifier):
    """Get a TestClient that uses the test database session via dependency override."""
    def override_get_db():
        try:
            yield db_session
        finally:
            pass

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_notifier] = lambda: notifier
    with TestClient(app) as c:
        yield c
    app.dependency_overrides.clear()


def as_employee(employee):
    return {"X-Employee-Id": employee.id}
