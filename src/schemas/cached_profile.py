"""Cached user profile representation read from the fast cache."""
from pydantic import BaseModel, ConfigDict


class CachedProfile(BaseModel):
    """
    User profile blob stored under `user:profile:<id>` by the main application.

    Only the audio fields matter to the proxy. Unknown fields are ignored and
    missing fields default to None, so older or newer blob layouts still parse.
    """

    model_config = ConfigDict(extra="ignore")

    id: int | None = None
    bio: str | None = None
    banner_hash: str | None = None
    audio_hash: str | None = None
    audio_mime_type: str | None = None
    audio_name: str | None = None

    def audio_name_for(self, audio_hash: str) -> str | None:
        """Return the audio name if this profile still describes `audio_hash`."""
        if self.audio_hash == audio_hash and self.audio_name:
            return self.audio_name
        return None
