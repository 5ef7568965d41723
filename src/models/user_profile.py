"""User profile model (read-only view of the profiles table)."""
from sqlalchemy import BigInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base


class UserProfile(Base):
    """
    User profile row owned by the main application.

    The proxy only reads `audio_name` for a given (id, audio_hash) pair; the
    hashes name content-addressed objects in the media bucket.
    """

    __tablename__ = "user_profiles"

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True, autoincrement=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    banner_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    audio_hash: Mapped[str | None] = mapped_column(String(128), nullable=True)
    audio_mime_type: Mapped[str | None] = mapped_column(String(100), nullable=True)
    audio_name: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
        comment="Original filename shown to listeners on download",
    )
