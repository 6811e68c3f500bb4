import httpx
import pytest
from fastapi.testclient import TestClient

from frameproxy.core.app import create_app
from frameproxy.services.fallback import SUGGESTIONS
from frameproxy.services.proxy_service import ProxyService

PAGE = "<html><head><title>Example</title></head><body><a href='/about'>About</a></body></html>"


def upstream(request):
    if request.url.host == "example.com":
        return httpx.Response(200, html=PAGE)
    return httpx.Response(403)


@pytest.fixture
def client(settings):
    service = ProxyService(settings, transport=httpx.MockTransport(upstream))
    app = create_app(settings, proxy_service=service)
    with TestClient(app) as client:
        yield client


def test_post_json_body(client):
    response = client.post("/api/proxy/", json={"url": "example.com"})

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    data = response.json()
    assert set(data) == {"content", "contentType", "url"}
    assert data["contentType"].startswith("text/html")
    assert '<base href="https://example.com/">' in data["content"]


def test_get_query_parameter(client):
    response = client.get("/api/proxy/", params={"url": "example.com"})

    assert response.status_code == 200
    assert 'href="https://example.com/about"' in response.json()["content"]


def test_missing_url(client):
    assert client.post("/api/proxy/", json={}).json() == {"error": "URL is required"}
    assert client.post("/api/proxy/", json={}).status_code == 400
    assert client.get("/api/proxy/").status_code == 400
    assert client.post("/api/proxy/", content=b"not json").status_code == 400


def test_invalid_url(client):
    response = client.post("/api/proxy/", json={"url": "not a url"})

    assert response.status_code == 400
    assert response.json() == {"error": "Invalid URL format"}
    assert response.headers["access-control-allow-origin"] == "*"


def test_unreachable_site(client):
    response = client.post("/api/proxy/", json={"url": "blocked.example.com"})

    assert response.status_code == 503
    data = response.json()
    assert data["error"].startswith("Unable to access blocked.example.com.")
    assert data["suggestions"] == SUGGESTIONS
    assert response.headers["access-control-allow-origin"] == "*"


def test_options_preflight(client):
    response = client.options("/api/proxy/")

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"
    assert "content-type" in response.headers["access-control-allow-headers"]


def test_browser_preflight(client):
    response = client.options(
        "/api/proxy/",
        headers={"Origin": "https://viewer.example", "Access-Control-Request-Method": "POST"},
    )

    assert response.status_code == 200
    assert response.headers["access-control-allow-origin"] == "*"


def test_unexpected_error_is_500(settings):
    class ExplodingService:
        async def handle(self, request):
            raise RuntimeError("boom")

        async def cleanup(self):
            pass

    app = create_app(settings, proxy_service=ExplodingService())
    with TestClient(app, raise_server_exceptions=False) as client:
        response = client.post("/api/proxy/", json={"url": "example.com"})

    assert response.status_code == 500
    assert response.json() == {"error": "Proxy service temporarily unavailable"}
    assert response.headers["access-control-allow-origin"] == "*"


def test_viewer_and_health(client):
    viewer = client.get("/")
    assert viewer.status_code == 200
    assert 'id="viewport"' in viewer.text
    assert "/ws/relay" in viewer.text

    health = client.get("/health")
    assert health.json()["status"] == "healthy"
    assert health.headers["x-frame-proxy"] == "1.0.0"


def test_websocket_relay(client):
    with client.websocket_connect("/ws/relay") as ws:
        init = ws.receive_json()
        assert init["type"] == "init"

        ws.send_json({"type": "navigate", "url": "example.com", "source": "urlbar"})
        loading = ws.receive_json()
        page = ws.receive_json()

        assert loading == {"type": "loading", "url": "example.com", "sequence": 1}
        assert page["type"] == "page_content"
        assert page["sequence"] == 1
        assert '<base href="https://example.com/">' in page["content"]

        ws.send_json({"type": "navigate", "url": "blocked.example.com"})
        assert ws.receive_json()["type"] == "loading"
        error = ws.receive_json()
        assert error["type"] == "error"
        assert error["reason"] == "AllFallbacksExhausted"
        assert error["sequence"] == 2

        ws.send_json({"type": "navigate"})
        assert ws.receive_json() == {"type": "error", "error": "URL is required"}

        ws.send_json({"type": "ping"})
        assert ws.receive_json() == {"type": "pong"}
