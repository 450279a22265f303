from sqlalchemy import Column, Integer, String, Date, DateTime, ForeignKey, Numeric, Text
from sqlalchemy.orm import relationship
from sqlalchemy.sql import func
from lams.database import Base
from lams.models.types import enum_column, new_id
import enum


class ReimbursementStatus(str, enum.Enum):
    PENDING = "pending"
    PENDING_HR = "pending_hr"
    APPROVED = "approved"
    REJECTED = "rejected"


class ReimbursementRequest(Base):
    __tablename__ = "reimbursement_requests"

    id = Column(String(32), primary_key=True, default=new_id)
    employee_id = Column(String(32), ForeignKey("employees.id"), index=True, nullable=False)
    employee_name = Column(String, nullable=False)
    manager_id = Column(String(32), ForeignKey("employees.id"), index=True, nullable=False)
    manager_name = Column(String, nullable=False)
    total_amount = Column(Numeric(12, 2, asdecimal=True), nullable=False)
    status = Column(enum_column(ReimbursementStatus), default=ReimbursementStatus.PENDING, index=True, nullable=False)
    manager_comment = Column(Text, default="", nullable=False)
    hr_comment = Column(Text, default="", nullable=False)

    version = Column(Integer, nullable=False)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())

    __mapper_args__ = {"version_id_col": version}

    items = relationship("ReimbursementItem", back_populates="request", cascade="all, delete-orphan", order_by="ReimbursementItem.id")


class ReimbursementItem(Base):
    __tablename__ = "reimbursement_items"

    id = Column(Integer, primary_key=True, index=True)
    request_id = Column(String(32), ForeignKey("reimbursement_requests.id", ondelete="CASCADE"), index=True, nullable=False)
    description = Column(String, nullable=False)
    amount = Column(Numeric(12, 2, asdecimal=True), nullable=False)
    expense_date = Column(Date, nullable=True)

    request = relationship("ReimbursementRequest", back_populates="items")
