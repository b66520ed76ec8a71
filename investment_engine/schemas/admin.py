"""
Pydantic schemas for the administrator operations screen.
"""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field


class TimeMachineResponse(BaseModel):
    active: bool = Field(..., description="True while an override instant is set")
    override_at: Optional[datetime] = None
    now: datetime = Field(..., description="The application clock's current instant")


class TimeMachineSet(BaseModel):
    instant: datetime = Field(..., examples=["2025-06-01T00:00:00Z"])


class AutoApproveSetting(BaseModel):
    enabled: bool
