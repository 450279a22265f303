from sqlalchemy import Column, Integer, String, DateTime, JSON, Text
from sqlalchemy.sql import func
from lams.database import Base


class AuditLog(Base):
    """Append-only trail of balance, role and status mutations."""
    __tablename__ = "audit_logs"

    id = Column(Integer, primary_key=True, index=True)
    action = Column(String(64), index=True, nullable=False)
    performed_by = Column(String(32), index=True, nullable=True)
    performed_by_name = Column(String, nullable=True)
    target_user_id = Column(String(32), index=True, nullable=True)
    target_user_name = Column(String, nullable=True)
    leave_request_id = Column(String(32), index=True, nullable=True)
    details = Column(Text, nullable=False, default="")
    previous_value = Column(JSON, nullable=True)
    new_value = Column(JSON, nullable=True)
    timestamp = Column(DateTime(timezone=True), server_default=func.now(), index=True)
