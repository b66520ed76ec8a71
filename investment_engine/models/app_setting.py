"""
Application setting model.

A tiny key/value table for the two administrator-controlled switches: the
time-machine override instant and the auto-approve flag for distributions.
Rows are read once per request and turned into explicit values (a ``Clock``,
a ``bool``) that are passed down; nothing below the service layer reads them.
"""

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

TIME_MACHINE_KEY = "time_machine_override"
AUTO_APPROVE_KEY = "auto_approve_distributions"


class AppSetting(SQLModel, table=True):
    """SQLModel / SQLAlchemy table definition for application settings."""

    __tablename__ = "app_settings"  # type: ignore[assignment]

    key: str = Field(primary_key=True, max_length=100)
    value: Optional[str] = Field(default=None, max_length=255)
    updated_by: Optional[str] = Field(default=None, max_length=255)
    updated_at: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        sa_type=DateTime(timezone=True),  # type: ignore[arg-type]
    )
