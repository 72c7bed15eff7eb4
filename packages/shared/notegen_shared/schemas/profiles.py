"""User profile lifecycle schemas."""

from __future__ import annotations

from pydantic import BaseModel, Field


class ProfileRequest(BaseModel):
    """Target subject of a profile create/cleanup call."""
    uid: str = Field(min_length=1, max_length=128)
