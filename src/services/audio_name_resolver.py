"""Cache-aside resolution of display filenames for audio objects."""
import logging
from typing import TYPE_CHECKING

from pydantic import ValidationError
from sqlalchemy import select

from models.user_profile import UserProfile
from schemas.cached_profile import CachedProfile
from services.exceptions import AudioNameNotFoundError

if TYPE_CHECKING:
    from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

    from core.redis import RedisClient

logger = logging.getLogger(__name__)


class AudioNameResolver:
    """
    Resolve the human-readable filename of a user's audio track.

    Lookup order:
    1. The cached profile blob `user:profile:<user_id>` (written by the main
       application). It is only trusted while its audio_hash still matches the
       requested hash, so a replaced track never gets the old track's name.
    2. The secondary key `audio_name:<user_id>:<hash>` written by this class.
    3. The user_profiles table, which is authoritative. A hit is written back to
       the secondary key when repopulation is enabled.

    Fast cache problems never fail a lookup; they only make it a miss.
    """

    CACHE_TTL = 600  # 10 minutes

    def __init__(
        self,
        redis_client: "RedisClient",
        session_factory: "async_sessionmaker[AsyncSession]",
        *,
        cache_ttl: int = CACHE_TTL,
        repopulate: bool = True,
    ) -> None:
        """Initialize resolver with its fast cache and durable store handles."""
        self._redis = redis_client
        self._session_factory = session_factory
        self._cache_ttl = cache_ttl
        self._repopulate = repopulate

    def _cache_key_profile(self, user_id: str) -> str:
        """Generate cache key for the full user profile blob."""
        return f"user:profile:{user_id}"

    def _cache_key_audio_name(self, user_id: str, audio_hash: str) -> str:
        """Generate cache key for a resolved audio name."""
        return f"audio_name:{user_id}:{audio_hash}"

    async def resolve(self, user_id: str, audio_hash: str) -> str:
        """
        Resolve the display filename for a user's audio object.

        Args:
            user_id: User ID taken from the request path.
            audio_hash: Content hash of the audio object (without extension).

        Returns:
            The filename as stored by the main application.

        Raises:
            AudioNameNotFoundError: If no profile row matches the user/hash pair.
            sqlalchemy.exc.SQLAlchemyError: If the durable store query fails.
        """
        name = await self._from_profile_cache(user_id, audio_hash)
        if name:
            logger.debug("audio_name_cache_hit source=profile user_id=%s", user_id)
            return name

        name = await self._from_audio_name_cache(user_id, audio_hash)
        if name:
            logger.debug("audio_name_cache_hit source=audio_name user_id=%s", user_id)
            return name

        logger.debug("audio_name_cache_miss user_id=%s hash=%s", user_id, audio_hash)
        name = await self._from_database(user_id, audio_hash)

        # A failed write is logged by RedisClient and otherwise ignored
        if self._repopulate and await self._redis.setex(
            self._cache_key_audio_name(user_id, audio_hash),
            self._cache_ttl,
            name,
        ):
            logger.debug("audio_name_cache_set user_id=%s hash=%s", user_id, audio_hash)
        return name

    async def _from_profile_cache(self, user_id: str, audio_hash: str) -> str | None:
        """Read the audio name from the cached profile blob, if it still applies."""
        data = await self._redis.get(self._cache_key_profile(user_id))
        if not data:
            return None
        try:
            profile = CachedProfile.model_validate_json(data)
        except ValidationError as e:
            logger.warning("audio_name_profile_unparseable user_id=%s error=%s", user_id, e)
            return None
        return profile.audio_name_for(audio_hash)

    async def _from_audio_name_cache(self, user_id: str, audio_hash: str) -> str | None:
        """Read a previously resolved audio name."""
        data = await self._redis.get(self._cache_key_audio_name(user_id, audio_hash))
        if not data:
            return None
        return data.decode("utf-8", errors="replace")

    async def _from_database(self, user_id: str, audio_hash: str) -> str:
        """Query the authoritative profile row."""
        # Profile ids are integers; anything else can never match a row
        if not (user_id.isascii() and user_id.isdigit()):
            raise AudioNameNotFoundError(user_id, audio_hash)

        async with self._session_factory() as session:
            result = await session.execute(
                select(UserProfile.audio_name).where(
                    UserProfile.id == int(user_id),
                    UserProfile.audio_hash == audio_hash,
                ),
            )
            name = result.scalar()

        if name is None:
            raise AudioNameNotFoundError(user_id, audio_hash)
        return name
