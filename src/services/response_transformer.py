"""Post-processing of backend responses before they reach the client."""
import logging
import re
from typing import TYPE_CHECKING
from urllib.parse import quote

import httpx
from starlette.background import BackgroundTask
from starlette.responses import Response, StreamingResponse

from services.exceptions import AudioNameNotFoundError, UpstreamResponseError
from services.path_rewriter import ObjectKey, ResourceClass

if TYPE_CHECKING:
    from services.audio_name_resolver import AudioNameResolver

logger = logging.getLogger(__name__)

XML_CONTENT_TYPE = "application/xml"

# Elements in S3 error documents that reveal the bucket layout. Applied in order,
# non-greedy, and without crossing newlines.
BUCKET_METADATA_PATTERNS = (
    re.compile(rb"<BucketName>.*?</BucketName>"),
    re.compile(rb"<Resource>.*?</Resource>"),
    re.compile(rb"<Key>.*?</Key>"),
)

# Headers that describe a single connection and must not be forwarded
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "proxy-connection",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})


def scrub_bucket_metadata(body: bytes) -> bytes:
    """Remove BucketName, Resource and Key elements from an XML body."""
    for pattern in BUCKET_METADATA_PATTERNS:
        body = pattern.sub(b"", body)
    return body


def is_xml_response(content_type: str | None) -> bool:
    """Check if a Content-Type header marks an XML body."""
    return bool(content_type and XML_CONTENT_TYPE in content_type)


def content_disposition(filename: str) -> str:
    """
    Build an inline Content-Disposition header for `filename`.

    ASCII names are sent as `inline; filename="<name>"` (quotes and backslashes
    escaped). Other names get an ASCII fallback plus an RFC 5987 `filename*`
    parameter, since header values are latin-1 on the wire.
    """
    escaped = filename.replace("\\", "\\\\").replace('"', '\\"')
    if filename.isascii():
        return f'inline; filename="{escaped}"'
    fallback = escaped.encode("ascii", errors="replace").decode("ascii")
    return f"inline; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"


def forwardable_headers(headers: httpx.Headers) -> dict[str, str]:
    """Copy upstream response headers, dropping hop-by-hop headers."""
    return {
        name: value
        for name, value in headers.items()
        if name.lower() not in HOP_BY_HOP_HEADERS
    }


class ResponseTransformer:
    """
    Turns an upstream httpx response into the response sent to the client.

    - XML bodies are buffered and scrubbed of bucket metadata, and
      Content-Length is recomputed.
    - Responses for song objects get a Content-Disposition header carrying the
      track's display filename, when one can be resolved.
    - Everything else is streamed through unmodified.
    """

    def __init__(self, resolver: "AudioNameResolver") -> None:
        self._resolver = resolver

    async def transform(
        self, upstream: httpx.Response, object_key: ObjectKey | None = None,
    ) -> Response:
        """
        Build the client response for an upstream response opened with stream=True.

        `object_key` is the media object the request was rewritten to, or None for
        passthrough requests.

        The upstream response is closed once its body has been consumed (or
        immediately, when this raises).

        Raises:
            UpstreamResponseError: If an XML body could not be read.
        """
        headers = forwardable_headers(upstream.headers)
        try:
            body = None
            if is_xml_response(upstream.headers.get("content-type")):
                body = await self._read_scrubbed_body(upstream, headers)

            filename = await self._resolve_filename(object_key)
            if filename:
                headers["content-disposition"] = content_disposition(filename)
        except BaseException:
            await upstream.aclose()
            raise

        if body is not None:
            return Response(content=body, status_code=upstream.status_code, headers=headers)
        return StreamingResponse(
            upstream.aiter_raw(),
            status_code=upstream.status_code,
            headers=headers,
            background=BackgroundTask(upstream.aclose),
        )

    async def _read_scrubbed_body(
        self, upstream: httpx.Response, headers: dict[str, str],
    ) -> bytes:
        """Buffer, scrub, and re-measure an XML body. Updates `headers` in place."""
        try:
            raw = await upstream.aread()
        except httpx.HTTPError as e:
            raise UpstreamResponseError(
                f"Failed to read upstream XML body for {upstream.request.url.path}: {e}",
            ) from e
        finally:
            await upstream.aclose()

        body = scrub_bucket_metadata(raw)
        # aread() decodes any content-encoding, so the body is now identity-encoded
        headers.pop("content-encoding", None)
        headers["content-length"] = str(len(body))
        if len(body) != len(raw):
            logger.debug(
                "xml_body_scrubbed path=%s removed_bytes=%s",
                upstream.request.url.path,
                len(raw) - len(body),
            )
        return body

    async def _resolve_filename(self, object_key: ObjectKey | None) -> str | None:
        """Resolve the display filename for a song object, best effort."""
        if object_key is None or object_key.resource_class is not ResourceClass.SONG:
            return None
        user_id, audio_hash = object_key.user_id, object_key.hash
        try:
            return await self._resolver.resolve(user_id, audio_hash)
        except AudioNameNotFoundError:
            logger.debug("audio_name_not_found user_id=%s hash=%s", user_id, audio_hash)
        except Exception:
            logger.exception("audio_name_resolve_failed user_id=%s hash=%s", user_id, audio_hash)
        return None
