"""Shared exceptions for service layer operations."""


class AudioNameNotFoundError(Exception):
    """Raised when no display filename exists for a user/audio hash pair."""

    def __init__(self, user_id: str, audio_hash: str) -> None:
        self.user_id = user_id
        self.audio_hash = audio_hash
        super().__init__(f"No audio name for user {user_id} and hash {audio_hash}")


class UpstreamResponseError(Exception):
    """
    Raised when an upstream response cannot be rebuilt for the client.

    For example, the body of an XML error document could not be read in full, so
    it can neither be scrubbed nor forwarded with a correct Content-Length.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)
