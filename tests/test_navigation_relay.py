import asyncio

import pytest

from frameproxy.core.navigation_relay import NavigationRelay
from frameproxy.services.errors import FailureReason
from frameproxy.services.models import NavigationEvent, ProxyResult, TargetRequest


class FakeProxyService:
    """Answers instantly unless a gate is registered for the input"""

    def __init__(self, gates=None):
        self.gates = gates or {}
        self.requests = []

    async def handle(self, request: TargetRequest) -> ProxyResult:
        self.requests.append(request)
        gate = self.gates.get(request.raw_input)
        if gate is not None:
            await gate.wait()

        if request.raw_input == "bad input":
            return ProxyResult.failure(FailureReason.INVALID_URL, "Invalid URL format", sequence=request.sequence)

        url = request.raw_input if "://" in request.raw_input else f"https://{request.raw_input}"
        return ProxyResult.success("text/html", f"<p>{url}</p>", url, sequence=request.sequence)


def make_relay(service, dedupe_window=1.0):
    sent = []

    async def send(message):
        sent.append(message)

    return NavigationRelay(service, send, dedupe_window=dedupe_window), sent


def test_submit_delivers_page():
    async def scenario():
        relay, sent = make_relay(FakeProxyService())
        task = await relay.submit("example.com")
        await task
        return relay, sent

    relay, sent = asyncio.run(scenario())

    assert [m["type"] for m in sent] == ["loading", "page_content"]
    assert sent[0] == {"type": "loading", "url": "example.com", "sequence": 1}
    assert sent[1]["url"] == "https://example.com"
    assert sent[1]["sequence"] == 1
    assert relay.current_url == "https://example.com"
    assert not relay.is_loading


def test_newer_navigation_supersedes_inflight():
    async def scenario():
        gate = asyncio.Event()
        relay, sent = make_relay(FakeProxyService({"slow.example": gate}))

        first = await relay.submit("slow.example")
        await asyncio.sleep(0)
        second = await relay.submit("fast.example")
        await second
        gate.set()

        with pytest.raises(asyncio.CancelledError):
            await first
        return relay, sent, first

    relay, sent, first = asyncio.run(scenario())

    assert first.cancelled()
    assert [m["type"] for m in sent] == ["loading", "loading", "page_content"]
    assert sent[-1]["sequence"] == 2
    assert relay.current_url == "https://fast.example"


def test_stale_result_is_discarded():
    async def scenario():
        relay, sent = make_relay(FakeProxyService())
        relay.sequence = 5
        result = await relay._run(TargetRequest(raw_input="example.com", sequence=4))
        return relay, sent, result

    relay, sent, result = asyncio.run(scenario())

    assert result is None
    assert sent == []
    assert relay.current_url is None


def test_duplicate_of_inflight_is_ignored():
    async def scenario():
        gate = asyncio.Event()
        service = FakeProxyService({"https://example.com/a": gate})
        relay, sent = make_relay(service)

        task = await relay.submit("https://example.com/a")
        duplicate = await relay.handle_event(NavigationEvent("https://example.com/a"))
        gate.set()
        await task
        return service, duplicate

    service, duplicate = asyncio.run(scenario())

    assert duplicate is None
    assert len(service.requests) == 1


def test_duplicate_of_delivered_page_is_ignored():
    async def scenario():
        relay, sent = make_relay(FakeProxyService(), dedupe_window=60)
        await (await relay.submit("example.com"))

        same = await relay.handle_event(NavigationEvent("https://example.com"))
        other = await relay.handle_event(NavigationEvent("https://example.com/other"))
        await other
        return same, other, relay

    same, other, relay = asyncio.run(scenario())

    assert same is None
    assert other is not None
    assert relay.sequence == 2
    assert relay.current_url == "https://example.com/other"


def test_repeat_after_window_is_issued():
    async def scenario():
        relay, sent = make_relay(FakeProxyService(), dedupe_window=0)
        await (await relay.submit("https://example.com"))
        again = await relay.handle_event(NavigationEvent("https://example.com"))
        await again
        return relay

    relay = asyncio.run(scenario())

    assert relay.sequence == 2


def test_failure_becomes_error_message():
    async def scenario():
        relay, sent = make_relay(FakeProxyService())
        await (await relay.submit("bad input"))
        return relay, sent

    relay, sent = asyncio.run(scenario())

    message = sent[-1]
    assert message["type"] == "error"
    assert message["error"] == "Invalid URL format"
    assert message["reason"] == "InvalidUrl"
    assert message["suggestions"] == []
    assert relay.current_url is None


def test_close_cancels_inflight():
    async def scenario():
        gate = asyncio.Event()
        relay, sent = make_relay(FakeProxyService({"slow.example": gate}))
        task = await relay.submit("slow.example")
        await asyncio.sleep(0)
        await relay.close()
        with pytest.raises(asyncio.CancelledError):
            await task
        return relay, sent, task

    relay, sent, task = asyncio.run(scenario())

    assert task.cancelled()
    assert not relay.is_loading
    assert [m["type"] for m in sent] == ["loading"]


def test_navigation_event_parsing():
    assert NavigationEvent.from_message({"type": "navigate", "url": " https://a.com "}) == NavigationEvent("https://a.com")
    assert NavigationEvent.from_message({"type": "navigate", "url": ""}) is None
    assert NavigationEvent.from_message({"type": "navigate", "url": 42}) is None
    assert NavigationEvent.from_message({"type": "ping"}) is None
    assert NavigationEvent.from_message("navigate") is None

    request = NavigationEvent("https://a.com").to_target_request(9)
    assert request == TargetRequest(raw_input="https://a.com", sequence=9)
