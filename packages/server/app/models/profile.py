"""User profile model, keyed by the identity provider's subject."""

from typing import Optional

from sqlmodel import Field, SQLModel

from .base import TimestampMixin


class UserProfile(TimestampMixin, SQLModel, table=True):
    __tablename__ = "user_profiles"

    id: str = Field(primary_key=True, max_length=128)  # subject identifier
    email: Optional[str] = Field(default=None, index=True)
    display_name: Optional[str] = None
    is_premium: bool = Field(default=False, nullable=False)  # managed outside this service
