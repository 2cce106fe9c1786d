from datetime import datetime
from pydantic import BaseModel, Field
from typing import Any, Dict, Optional, Generic, TypeVar

from tripsync.models.trip import utcnow

T = TypeVar('T')


class Envelope(BaseModel, Generic[T]):
    status: str
    data: Optional[T] = None
    error: Optional[str] = None


class ErrorResponse(BaseModel):
    status: str = "error"
    error_code: str
    error: str
    details: Optional[Dict[str, Any]] = None
    request_id: Optional[str] = None
    timestamp: datetime = Field(default_factory=utcnow)


class Message(BaseModel):
    message: str
