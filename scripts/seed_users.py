from decimal import Decimal

from lams.database import SessionLocal, init_db
from lams.models.employee import Employee, EmployeeRole

init_db()
db = SessionLocal()


def create_employee(name, email, role, annual_leave="0", comp_off="0", slack_member_id=None):
    # Check if the employee already exists to avoid unique constraint errors
    existing = db.query(Employee).filter(Employee.email == email).first()
    if existing:
        print(f"Employee {email} already exists (id {existing.id}). Skipping.")
        return existing

    employee = Employee(
        name=name,
        email=email,
        role=role,
        annual_leave_balance=Decimal(annual_leave),
        comp_off_balance=Decimal(comp_off),
        slack_member_id=slack_member_id,
        is_active=True
    )
    db.add(employee)
    db.commit()
    db.refresh(employee)
    print(f"Created {role.value} -> {email} (X-Employee-Id: {employee.id})")
    return employee


# HR Admin
create_employee("HR Admin", "hr@example.com", EmployeeRole.HR_ADMIN, annual_leave="12")

# Manager
create_employee("Team Manager", "manager@example.com", EmployeeRole.MANAGER, annual_leave="12")

# Employee
create_employee("Team Member", "employee@example.com", EmployeeRole.EMPLOYEE, annual_leave="12", comp_off="2")

db.close()
