"""
Navigation Relay
Turns navigate messages from the viewer back into proxied requests.

Every request gets a sequence number. A newer request cancels the one in
flight, and a result whose sequence is lower than the latest issued is
dropped, so only the most recent navigation ever reaches the display.
"""

import asyncio
import time
from typing import Any, Awaitable, Callable, Dict, Optional, Set, Tuple

from loguru import logger

from ..services.models import NavigationEvent, ProxyResult, TargetRequest
from ..services.proxy_service import ProxyService


SendFn = Callable[[Dict[str, Any]], Awaitable[Any]]


class NavigationRelay:
    """Per-viewer relay between navigate messages and the proxy pipeline"""

    def __init__(self, proxy_service: ProxyService, send: SendFn, dedupe_window: float = 1.0):
        self.proxy_service = proxy_service
        self.send = send
        self.dedupe_window = dedupe_window

        self.sequence = 0
        self.current_url: Optional[str] = None

        self._inflight: Optional[asyncio.Task] = None
        self._inflight_url: Optional[str] = None
        self._last_delivered: Optional[Tuple[Set[str], float]] = None

    @property
    def is_loading(self) -> bool:
        return self._inflight is not None and not self._inflight.done()

    async def submit(self, raw_input: str) -> asyncio.Task:
        """URL bar submission, always issued"""
        return await self._issue(raw_input)

    async def handle_event(self, event: NavigationEvent) -> Optional[asyncio.Task]:
        """Shim navigation; duplicates of the current navigation are ignored"""

        if self.is_duplicate(event.url):
            logger.debug(f"Ignoring duplicate navigate to {event.url}")
            return None
        return await self._issue(event.url)

    def is_duplicate(self, url: str) -> bool:
        if self.is_loading and url == self._inflight_url:
            return True

        if self._last_delivered is not None:
            urls, delivered_at = self._last_delivered
            if url in urls and time.monotonic() - delivered_at < self.dedupe_window:
                return True

        return False

    async def _issue(self, raw_input: str) -> asyncio.Task:
        self.sequence += 1
        request = TargetRequest(raw_input=raw_input, sequence=self.sequence)

        self._cancel_inflight()

        await self.send({"type": "loading", "url": raw_input, "sequence": request.sequence})

        self._inflight_url = raw_input
        self._inflight = asyncio.create_task(self._run(request))
        return self._inflight

    async def _run(self, request: TargetRequest) -> Optional[ProxyResult]:
        result = await self.proxy_service.handle(request)

        if request.sequence < self.sequence:
            logger.debug(f"Discarding stale result #{request.sequence} (latest #{self.sequence})")
            return None

        if result.ok:
            self.current_url = result.url
            self._last_delivered = ({request.raw_input, result.url}, time.monotonic())

        await self.send(self.to_message(result))
        return result

    @staticmethod
    def to_message(result: ProxyResult) -> Dict[str, Any]:
        if result.ok:
            return {
                "type": "page_content",
                "content": result.body,
                "contentType": result.content_type,
                "url": result.url,
                "sequence": result.sequence,
            }

        return {
            "type": "error",
            "error": result.detail,
            "reason": result.reason.value if result.reason else None,
            "suggestions": result.suggestions,
            "url": result.url,
            "sequence": result.sequence,
        }

    def _cancel_inflight(self):
        if self.is_loading:
            logger.debug(f"Cancelling superseded navigation to {self._inflight_url}")
            self._inflight.cancel()

    async def close(self):
        """Cancel whatever is still in flight"""
        self._cancel_inflight()
        self._inflight = None
