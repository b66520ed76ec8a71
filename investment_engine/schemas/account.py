"""
Pydantic schemas for Account API request / response serialisation.
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, EmailStr, Field, field_validator

from investment_engine.models.account import AccountType


class AccountBase(BaseModel):
    name: str = Field(
        ...,
        min_length=1,
        max_length=255,
        description="Account holder name (person, joint holders or entity)",
        examples=["Jane & John Doe"],
    )
    email: EmailStr = Field(
        ...,
        description="Contact e-mail, unique across accounts",
        examples=["jane@example.com"],
    )
    account_type: AccountType = Field(..., description="individual, joint, entity or ira")

    @field_validator("name")
    @classmethod
    def validate_name_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("name must not be blank")
        return v.strip()

    @field_validator("email")
    @classmethod
    def normalise_email(cls, v: str) -> str:
        return v.lower()


class AccountCreate(AccountBase):
    """Schema for ``POST /accounts``."""


class AccountResponse(AccountBase):
    id: UUID
    created_at: datetime

    model_config = ConfigDict(from_attributes=True)
