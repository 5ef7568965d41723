"""Catch-all media proxy endpoint."""
from fastapi import APIRouter, Depends, Request, Response

from api.dependencies import get_proxy_transport
from core.config import Settings, get_settings
from core.request_context import run_for_request
from services.path_rewriter import rewrite_request
from services.proxy_transport import ProxyTransport

router = APIRouter(tags=["proxy"])


@router.api_route("/{path:path}", methods=["GET", "HEAD"], include_in_schema=False)
async def proxy_media(
    request: Request,
    transport: ProxyTransport = Depends(get_proxy_transport),
    settings: Settings = Depends(get_settings),
) -> Response:
    """
    Serve a media object from the backend bucket.

    /avatars/, /banners/ and /songs/ URLs are rewritten to object keys; every
    other path is forwarded with the bucket name prefixed.
    """
    # request.url re-parses the decoded path, so an escaped "?" or "#" would split it
    rewritten = rewrite_request(
        request.scope["path"],
        request.scope["query_string"].decode("latin-1"),
        settings.minio_bucket,
    )
    return await run_for_request(
        request,
        transport.forward(request, rewritten),
        settings.upstream_timeout_seconds,
    )
