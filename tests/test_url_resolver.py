import pytest

from frameproxy.services.errors import InvalidUrl
from frameproxy.services.url_resolver import resolve


def test_bare_host_gets_https():
    target = resolve("github.com")

    assert target.scheme == "https"
    assert target.host == "github.com"
    assert target.path == "/"
    assert target.absolute_url == "https://github.com"


def test_explicit_scheme_is_kept():
    target = resolve("http://example.com/a/b?q=1")

    assert target.scheme == "http"
    assert target.path == "/a/b"
    assert target.absolute_url == "http://example.com/a/b?q=1"
    assert target.origin == "http://example.com"


def test_scheme_is_case_insensitive():
    target = resolve("HTTPS://Example.com/Path")

    assert target.scheme == "https"
    assert target.hostname == "example.com"
    assert target.path == "/Path"


def test_surrounding_whitespace_is_ignored():
    assert resolve("  example.com  ").absolute_url == "https://example.com"


def test_port_and_ip_hosts():
    assert resolve("localhost:8080").host == "localhost:8080"
    assert resolve("127.0.0.1").hostname == "127.0.0.1"


@pytest.mark.parametrize("raw", ["", "   ", "not a url", "https://", "example.com:99999", "exa mple.com", "-bad-.com"])
def test_invalid_inputs(raw):
    with pytest.raises(InvalidUrl) as exc_info:
        resolve(raw)

    assert exc_info.value.raw_input == raw


def test_none_is_rejected():
    with pytest.raises(InvalidUrl):
        resolve(None)
