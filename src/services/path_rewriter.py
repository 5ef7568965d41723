"""
Rewrites public media URLs into backend object keys.

Public URLs:
    /avatars/{user_id}/{hash}?format={fmt}  -> /{bucket}/avatars/{user_id}/{hash}.{fmt|webp}
    /banners/{user_id}/{hash}?format={fmt}  -> /{bucket}/banners/{user_id}/{hash}.{fmt|webp}
    /songs/{user_id}/{hash}.{ext}           -> /{bucket}/songs/{user_id}/{hash}.{ext}

Anything else (including malformed media paths) is passed through with the bucket
prefixed, and the backend answers it however it likes (usually NoSuchKey).
"""
from dataclasses import dataclass
from enum import StrEnum
from urllib.parse import parse_qsl, urlencode

DEFAULT_IMAGE_FORMAT = "webp"
FORMAT_QUERY_PARAM = "format"


class ResourceClass(StrEnum):
    """Kinds of media served by the proxy."""

    AVATAR = "avatar"
    BANNER = "banner"
    SONG = "song"

    @property
    def collection(self) -> str:
        """Path segment used both publicly and in the bucket (e.g. 'avatars')."""
        return f"{self.value}s"

    @property
    def public_prefix(self) -> str:
        """Public URL prefix (e.g. '/avatars/')."""
        return f"/{self.collection}/"


@dataclass(frozen=True)
class ObjectKey:
    """Backend object identity derived from a public request."""

    resource_class: ResourceClass
    user_id: str
    hash: str
    format: str

    def object_path(self, bucket: str) -> str:
        """Path of the object on the backend, including the bucket."""
        if self.resource_class is ResourceClass.SONG:
            # Songs keep their literal extension (with its dot, possibly empty)
            return f"/{bucket}/songs/{self.user_id}/{self.hash}{self.format}"
        return f"/{bucket}/{self.resource_class.collection}/{self.user_id}/{self.hash}.{self.format}"


@dataclass(frozen=True)
class RewrittenRequest:
    """Upstream path and query for a public request."""

    path: str
    query: str
    object_key: ObjectKey | None = None

    @property
    def is_passthrough(self) -> bool:
        """True when the path was not recognised as a media object."""
        return self.object_key is None


def split_user_segment(remainder: str) -> tuple[str, str] | None:
    """
    Split `{user_id}/{rest}` on the first slash.

    Returns None unless both parts are non-empty.
    """
    user_id, sep, rest = remainder.partition("/")
    if not sep or not user_id or not rest:
        return None
    return user_id, rest


def split_extension(hash_with_ext: str) -> tuple[str, str]:
    """
    Split a filename into (hash, extension).

    The extension starts at the last dot of the final path element and keeps the
    dot; it is empty when that element has no dot.
    """
    last_element = hash_with_ext.rsplit("/", 1)[-1]
    dot = last_element.rfind(".")
    if dot == -1:
        return hash_with_ext, ""
    ext = last_element[dot:]
    return hash_with_ext[: len(hash_with_ext) - len(ext)], ext


def parse_song_path(remainder: str) -> tuple[str, str, str] | None:
    """Parse `{user_id}/{hash}{ext}` into (user_id, hash, ext)."""
    parts = split_user_segment(remainder)
    if parts is None:
        return None
    user_id, hash_with_ext = parts
    audio_hash, ext = split_extension(hash_with_ext)
    return user_id, audio_hash, ext


def pop_format(query: str) -> tuple[str, str]:
    """
    Remove every `format` parameter from a query string.

    Returns the requested format (first value, defaulting to webp when absent or
    empty) and the remaining query with its original parameter order.
    """
    pairs = parse_qsl(query, keep_blank_values=True)
    requested = next((value for key, value in pairs if key == FORMAT_QUERY_PARAM), "")
    remaining = [(key, value) for key, value in pairs if key != FORMAT_QUERY_PARAM]
    return requested or DEFAULT_IMAGE_FORMAT, urlencode(remaining)


def parse_object_key(path: str, query: str) -> tuple[ObjectKey, str] | None:
    """
    Recognise a media path.

    Returns the object key and the query string to forward, or None when the
    path is not a well-formed media URL.
    """
    for resource_class in ResourceClass:
        prefix = resource_class.public_prefix
        if not path.startswith(prefix):
            continue
        remainder = path[len(prefix):]
        if resource_class is ResourceClass.SONG:
            song = parse_song_path(remainder)
            if song is None:
                return None
            user_id, audio_hash, ext = song
            return ObjectKey(resource_class, user_id, audio_hash, ext), query
        parts = split_user_segment(remainder)
        if parts is None:
            return None
        user_id, image_hash = parts
        image_format, forwarded_query = pop_format(query)
        return ObjectKey(resource_class, user_id, image_hash, image_format), forwarded_query
    return None


def rewrite_request(path: str, query: str, bucket: str) -> RewrittenRequest:
    """
    Rewrite a public request path/query into its backend equivalent.

    Args:
        path: Decoded request path (e.g. '/avatars/42/abc').
        query: Raw query string without the leading '?'.
        bucket: Backend bucket name.

    Returns:
        The upstream path and query; `object_key` is None for passthrough.
    """
    parsed = parse_object_key(path, query)
    if parsed is None:
        return RewrittenRequest(path=f"/{bucket}{path}", query=query)
    object_key, forwarded_query = parsed
    return RewrittenRequest(
        path=object_key.object_path(bucket),
        query=forwarded_query,
        object_key=object_key,
    )
