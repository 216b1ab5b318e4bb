from __future__ import annotations

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field


class UserUpsertRequest(BaseModel):
    model_config = ConfigDict(extra="forbid", str_strip_whitespace=True)

    userId: str = Field(..., min_length=1)
    email: Optional[str] = None
    name: Optional[str] = None


class UserNotesUpdateRequest(BaseModel):
    model_config = ConfigDict(extra="forbid")

    userId: str = Field(..., min_length=1)
    notes: Optional[str] = None


class UserOut(BaseModel):
    id: str
    email: Optional[str] = None
    name: Optional[str] = None
    notes: Optional[str] = None
    createdAt: str
    updatedAt: str
