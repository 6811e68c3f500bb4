import asyncio

import httpx
import pytest

from frameproxy.services.errors import NetworkError
from frameproxy.services.upstream_fetcher import HeaderProfile, UpstreamFetcher
from frameproxy.services.url_resolver import resolve


def fetch(settings, handler, raw="example.com"):
    fetcher = UpstreamFetcher(settings, transport=httpx.MockTransport(handler))
    profile = HeaderProfile.from_settings(settings)

    async def run():
        try:
            return await fetcher.fetch(resolve(raw), profile)
        finally:
            await fetcher.cleanup()

    return asyncio.run(run())


def test_browser_headers_sent(settings):
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, html="<p>ok</p>")

    response = fetch(settings, handler)

    assert response.status == 200
    assert "Chrome/120" in seen["user-agent"]
    assert seen["sec-fetch-mode"] == "navigate"
    assert seen["accept-language"] == "en-US,en;q=0.9"
    assert "text/html" in response.content_type
    assert response.body_text == "<p>ok</p>"


def test_host_override_replaces_and_drops_headers(settings):
    seen = {}

    def handler(request):
        seen.update(request.headers)
        return httpx.Response(200, html="<p>ok</p>")

    fetch(settings, handler, "old.reddit.com/r/python")

    assert "Firefox/121" in seen["user-agent"]
    assert "sec-ch-ua" not in seen
    assert "sec-ch-ua-platform" not in seen
    assert seen["sec-fetch-mode"] == "navigate"


def test_override_matching():
    profile = HeaderProfile(
        {"User-Agent": "base", "Accept": "*/*"},
        {
            "example.com": {"User-Agent": "generic"},
            "api.example.com": {"User-Agent": "api", "Accept": None},
        },
    )

    assert profile.match_override("example.com") == "example.com"
    assert profile.match_override("www.example.com") == "example.com"
    assert profile.match_override("v1.api.example.com") == "api.example.com"
    assert profile.match_override("notexample.com") is None

    assert profile.headers_for("api.example.com") == {"User-Agent": "api"}
    assert profile.headers_for("other.org") == {"User-Agent": "base", "Accept": "*/*"}


def test_override_is_case_insensitive():
    profile = HeaderProfile({"User-Agent": "base"}, {"example.com": {"user-agent": "lower"}})

    assert profile.headers_for("example.com") == {"user-agent": "lower"}


def test_redirects_report_final_url(settings):
    def handler(request):
        if request.url.host == "example.com":
            return httpx.Response(301, headers={"Location": "https://www.example.com/home"})
        return httpx.Response(200, html="<p>home</p>")

    response = fetch(settings, handler)

    assert response.url == "https://www.example.com/home"
    assert response.body_text == "<p>home</p>"


def test_error_status_raises(settings):
    def handler(request):
        return httpx.Response(403)

    with pytest.raises(NetworkError) as exc_info:
        fetch(settings, handler)

    error = exc_info.value
    assert error.status == 403
    assert error.status_text == "Forbidden"
    assert not error.is_transport_error


def test_transport_error_raises(settings):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(NetworkError) as exc_info:
        fetch(settings, handler)

    assert exc_info.value.status is None
    assert exc_info.value.is_transport_error
    assert "connection refused" in exc_info.value.transport


def test_timeout_raises(settings):
    def handler(request):
        raise httpx.ReadTimeout("too slow", request=request)

    with pytest.raises(NetworkError) as exc_info:
        fetch(settings, handler)

    assert exc_info.value.transport.startswith("timeout")
