"""
Shared error schemas.

Documented on every endpoint through ``responses=`` so the OpenAPI contract
shows the error envelope, not just the happy path.
"""

from typing import Any, List, Optional

from pydantic import BaseModel, Field


class ErrorResponse(BaseModel):
    """Envelope returned for every domain error."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    code: str = Field(..., description="Error kind", examples=["LockupNotExpired"])
    message: str = Field(
        ...,
        description="Human-readable error description",
        examples=["Lockup period has not expired (ends 2025-01-01 00:00:00+00:00)"],
    )
    details: Optional[Any] = Field(default=None, description="Structured extra information")


class ValidationErrorDetail(BaseModel):
    """Single field-level validation failure."""

    field: str = Field(..., description="Path to the invalid field", examples=["body -> amount"])
    message: str = Field(
        ..., description="Why it failed", examples=["Minimum investment is $1,000"]
    )


class ValidationErrorResponse(BaseModel):
    """422 body: request validation or investment-term failures."""

    error: bool = Field(default=True, description="Always ``true`` for errors")
    code: str = Field(default="ValidationError")
    message: str = Field(default="Validation failed", description="Summary message")
    details: List[ValidationErrorDetail] = Field(..., description="Per-field failures")
