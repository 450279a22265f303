from typing import Any, List, Optional

from lams.models.audit_log import AuditLog
from lams.services.base import BaseService


class AuditService(BaseService):
    def log_action(
        self,
        action: str,
        details: str,
        performed_by=None,
        target=None,
        leave_request_id: Optional[str] = None,
        previous_value: Any = None,
        new_value: Any = None,
    ) -> AuditLog:
        """
        Add an audit log entry to the caller's session.
        Strictly append-only. Nothing is flushed here: the entry is written by
        the caller's commit together with the mutation it describes, and a
        rollback discards both.
        """
        entry = AuditLog(
            action=action,
            performed_by=performed_by.id if performed_by is not None else None,
            performed_by_name=performed_by.name if performed_by is not None else None,
            target_user_id=target.id if target is not None else None,
            target_user_name=target.name if target is not None else None,
            leave_request_id=leave_request_id,
            details=details,
            previous_value=_jsonable(previous_value),
            new_value=_jsonable(new_value),
        )
        self.db.add(entry)
        return entry

    def list_logs(self, limit: int = 100) -> List[AuditLog]:
        return (
            self.db.query(AuditLog)
            .order_by(AuditLog.timestamp.desc(), AuditLog.id.desc())
            .limit(limit)
            .all()
        )


def _jsonable(value):
    """Decimals and enums become strings so they fit a JSON column."""
    if value is None or isinstance(value, (bool, int, float, str)):
        return value
    if isinstance(value, dict):
        return {k: _jsonable(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [_jsonable(v) for v in value]
    if hasattr(value, "value"):
        return value.value
    return str(value)
