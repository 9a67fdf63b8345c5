from pydantic import BaseModel
from typing import Optional


class ErrorDetail(BaseModel):
    """One field-level validation problem."""
    field: str
    message: str


class ErrorResponse(BaseModel):
    """Body of every error response."""
    success: bool = False
    error: str
    message: str
    path: str
    timestamp: str
    details: Optional[list[ErrorDetail]] = None


class MessageResponse(BaseModel):
    success: bool = True
    message: str
