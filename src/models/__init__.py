"""SQLAlchemy models."""
from models.base import Base
from models.user_profile import UserProfile

__all__ = [
    "Base",
    "UserProfile",
]
