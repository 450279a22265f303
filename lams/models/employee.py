"""
Employee model.
Holds the comp-off / annual-leave ledger that the approval engine mutates.
"""
import enum
from sqlalchemy import Column, Integer, String, DateTime, Boolean
from sqlalchemy.sql import func
from lams.database import Base
from lams.models.types import Days, ZERO, enum_column, new_id


class EmployeeRole(str, enum.Enum):
    """
    Roles, least to most permissions:
    - EMPLOYEE: Self-service access
    - MANAGER: Approves requests of the employees who picked them
    - HR_ADMIN: Final leave approval, cancellation and balance administration
    """
    EMPLOYEE = "employee"
    MANAGER = "manager"
    HR_ADMIN = "hr_admin"


class Employee(Base):
    __tablename__ = "employees"

    id = Column(String(32), primary_key=True, default=new_id)
    name = Column(String, nullable=False)
    email = Column(String, unique=True, index=True, nullable=False)
    role = Column(enum_column(EmployeeRole), default=EmployeeRole.EMPLOYEE, nullable=False)

    annual_leave_balance = Column(Days, default=ZERO, nullable=False)
    comp_off_balance = Column(Days, default=ZERO, nullable=False)

    is_active = Column(Boolean, default=True, nullable=False)
    slack_member_id = Column(String, nullable=True, index=True)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    def __repr__(self):
        return f"<Employee {self.email} ({self.role.value})>"

    @property
    def is_hr(self) -> bool:
        return self.role == EmployeeRole.HR_ADMIN

    @property
    def can_manage(self) -> bool:
        """Managers and HR admins can be picked as approving manager."""
        return self.role in (EmployeeRole.MANAGER, EmployeeRole.HR_ADMIN)
