"""
Fallback Policy
Ordered fetch strategies tried until one produces a page
"""

import html
import json
from typing import Callable, List, Optional
from urllib.parse import quote

import httpx
from loguru import logger

from config.settings import Settings
from .errors import AllFallbacksExhausted, FailureReason, NetworkError, ProxyError
from .models import ProxyResult, ResolvedTarget, UpstreamResponse
from .site_profiles import host_matches
from .upstream_fetcher import HeaderProfile, UpstreamFetcher


SUGGESTIONS = [
    "Try accessing the site directly in a new browser tab",
    "Check if the site requires login or has geographic restrictions",
    "Some sites block proxy access for security reasons",
]

# Turns a fetched upstream response into the final result (classify + rewrite)
ResponseRenderer = Callable[[UpstreamResponse], ProxyResult]


class FetchStrategy:
    """One way of getting a page for a target"""

    name = "strategy"

    def applies_to(self, resolved: ResolvedTarget) -> bool:
        return True

    async def attempt(self, resolved: ResolvedTarget) -> ProxyResult:
        raise NotImplementedError


class DirectFetchStrategy(FetchStrategy):
    """Attempt 1: straight to the origin with browser headers"""

    name = "direct"

    def __init__(self, fetcher: UpstreamFetcher, header_profile: HeaderProfile, render: ResponseRenderer):
        self.fetcher = fetcher
        self.header_profile = header_profile
        self.render = render

    async def attempt(self, resolved: ResolvedTarget) -> ProxyResult:
        response = await self.fetcher.fetch(resolved, self.header_profile)
        return self.render(response)


class CorsRelayStrategy(FetchStrategy):
    """Attempt 2: a CORS-unblocking relay that wraps the page in JSON"""

    name = "cors-relay"

    def __init__(self, fetcher: UpstreamFetcher, relay_url: str, render: ResponseRenderer):
        self.fetcher = fetcher
        self.relay_url = relay_url
        self.render = render

    async def attempt(self, resolved: ResolvedTarget) -> ProxyResult:
        relay_target = f"{self.relay_url}{quote(resolved.absolute_url, safe='')}"
        wrapped = await self.fetcher.fetch_url(relay_target, headers={"Accept": "application/json"})

        try:
            data = json.loads(wrapped.body_text)
        except ValueError as e:
            raise NetworkError(relay_target, transport=f"relay returned invalid JSON: {e}") from e

        contents = data.get("contents") if isinstance(data, dict) else None
        if not contents:
            raise NetworkError(relay_target, transport="relay returned no contents")

        status = data.get("status")
        if not isinstance(status, dict):
            status = {}
        page_url = status.get("url") or resolved.absolute_url
        content_type = status.get("content_type") or "text/html"

        return self.render(
            UpstreamResponse(
                status=int(status.get("http_code") or 200),
                headers=httpx.Headers({"content-type": content_type}),
                content_type=content_type,
                body_text=contents,
                url=page_url,
            )
        )


class PlaceholderStrategy(FetchStrategy):
    """Attempt 3: static page with a direct link for well-known platforms"""

    name = "placeholder"

    def __init__(self, placeholder_hosts: List[str]):
        self.placeholder_hosts = placeholder_hosts

    def applies_to(self, resolved: ResolvedTarget) -> bool:
        return any(host_matches(resolved.hostname, host) for host in self.placeholder_hosts)

    async def attempt(self, resolved: ResolvedTarget) -> ProxyResult:
        return ProxyResult.success(
            content_type="text/html",
            body=self.placeholder_page(resolved),
            url=resolved.absolute_url,
        )

    def placeholder_page(self, resolved: ResolvedTarget) -> str:
        host = html.escape(resolved.hostname)
        link = html.escape(resolved.absolute_url, quote=True)

        return f"""<!DOCTYPE html>
<html>
<head>
    <title>{host}</title>
    <meta charset="utf-8">
    <meta name="viewport" content="width=device-width, initial-scale=1">
    <style>
        body {{ font-family: Arial, sans-serif; text-align: center; padding: 50px; background: #111; color: #fff; }}
        .container {{ max-width: 600px; margin: 0 auto; }}
        .message {{ font-size: 18px; margin-bottom: 30px; }}
        .link {{ background: #fe2c55; color: white; padding: 15px 30px; text-decoration: none; border-radius: 25px; display: inline-block; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>{host}</h1>
        <p class="message">This site cannot be shown inside the viewer. Open it directly instead:</p>
        <a href="{link}" target="_blank" rel="noopener" class="link">Open {host}</a>
        <p><small>Content may load differently than through the proxy.</small></p>
    </div>
</body>
</html>
"""


class FallbackPolicy:
    """Tries each strategy in order and converts every failure into a ProxyResult"""

    def __init__(self, strategies: List[FetchStrategy]):
        self.strategies = list(strategies)

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        fetcher: UpstreamFetcher,
        render: ResponseRenderer,
        header_profile: Optional[HeaderProfile] = None,
    ) -> "FallbackPolicy":
        strategies: List[FetchStrategy] = [
            DirectFetchStrategy(fetcher, header_profile or HeaderProfile.from_settings(settings), render),
        ]
        if settings.cors_relay_enabled and settings.cors_relay_url:
            strategies.append(CorsRelayStrategy(fetcher, settings.cors_relay_url, render))
        strategies.append(PlaceholderStrategy(settings.placeholder_hosts))
        return cls(strategies)

    async def fetch_with_fallback(self, resolved: ResolvedTarget) -> ProxyResult:
        errors: List[str] = []

        for strategy in self.strategies:
            if not strategy.applies_to(resolved):
                continue

            try:
                result = await strategy.attempt(resolved)
            except ProxyError as e:
                logger.info(f"Strategy {strategy.name} failed for {resolved.absolute_url}: {e}")
                errors.append(f"{strategy.name}: {e}")
                continue
            except Exception as e:
                logger.exception(f"Strategy {strategy.name} crashed for {resolved.absolute_url}: {e}")
                errors.append(f"{strategy.name}: {e}")
                continue

            logger.info(f"Strategy {strategy.name} succeeded for {resolved.absolute_url}")
            return result

        exhausted = AllFallbacksExhausted(resolved.hostname, errors)
        logger.warning(f"All fallbacks exhausted for {resolved.absolute_url}: {errors}")
        return ProxyResult.failure(
            reason=FailureReason.ALL_FALLBACKS_EXHAUSTED,
            detail=str(exhausted),
            suggestions=SUGGESTIONS,
            url=resolved.absolute_url,
        )
