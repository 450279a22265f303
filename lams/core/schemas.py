from typing import Any, Dict, Generic, List, Optional, TypeVar
from pydantic import BaseModel, Field
from datetime import datetime, timezone

T = TypeVar("T")


class ErrorInfo(BaseModel):
    msg: str
    code: Optional[str] = None
    field: Optional[str] = None


class ApiResponse(BaseModel, Generic[T]):
    """Envelope shared by submit endpoints and every error handler."""

    success: bool
    data: Optional[T] = None
    errors: List[ErrorInfo] = []
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    def to_dict(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_none=True)

    @classmethod
    def ok(cls, data: T) -> "ApiResponse[T]":
        return cls(success=True, data=data)

    @classmethod
    def fail(cls, msg: str, code: Optional[str] = None) -> "ApiResponse[T]":
        return cls(success=False, errors=[ErrorInfo(msg=msg, code=code)])

    @classmethod
    def invalid(cls, errors: List[ErrorInfo]) -> "ApiResponse[T]":
        return cls(success=False, errors=errors)
