"""Tests for building backend requests."""
from unittest.mock import MagicMock

import httpx
import pytest

from services.path_rewriter import RewrittenRequest
from services.proxy_transport import ProxyTransport


@pytest.fixture
def transport() -> ProxyTransport:
    return ProxyTransport(MagicMock(), httpx.URL("http://minio.test:9000"), MagicMock())


class TestUpstreamUrl:
    """Tests for ProxyTransport.upstream_url."""

    def test__plain_path_and_query(self, transport: ProxyTransport) -> None:
        url = transport.upstream_url(RewrittenRequest("/media/avatars/42/abc.webp", "v=3"))

        assert str(url) == "http://minio.test:9000/media/avatars/42/abc.webp?v=3"

    def test__empty_query__omitted(self, transport: ProxyTransport) -> None:
        url = transport.upstream_url(RewrittenRequest("/media/foo", ""))

        assert url.raw_path == b"/media/foo"

    @pytest.mark.parametrize(
        ("path", "raw_path"),
        [
            ("/media/songs/42/ab?cd.mp3", b"/media/songs/42/ab%3Fcd.mp3"),
            ("/media/songs/42/ab#cd.mp3", b"/media/songs/42/ab%23cd.mp3"),
            ("/media/songs/42/ab%cd.mp3", b"/media/songs/42/ab%25cd.mp3"),
            ("/media/foo/a b", b"/media/foo/a%20b"),
            ("/media/foo/café", b"/media/foo/caf%C3%A9"),
            ("/media/foo/a+b;c=d@e", b"/media/foo/a+b;c=d@e"),
        ],
    )
    def test__decoded_path__escaped_again(
        self, path: str, raw_path: bytes, transport: ProxyTransport,
    ) -> None:
        url = transport.upstream_url(RewrittenRequest(path, ""))

        assert url.raw_path == raw_path
