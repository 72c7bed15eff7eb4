# SQLModel definitions — imported here to ensure metadata is populated.
from .base import TimestampMixin  # noqa: F401
from .profile import UserProfile  # noqa: F401
from .note import Note  # noqa: F401
