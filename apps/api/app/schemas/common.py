"""Common schemas used across the application."""
from typing import Optional
from pydantic import BaseModel


class ErrorResponse(BaseModel):
    """Body returned for any domain error."""

    detail: str
    code: Optional[str] = None
