"""
Proxy Service
Resolve -> fetch (with fallbacks) -> classify -> rewrite, for one target request
"""

from typing import Optional

import httpx
from loguru import logger

from config.settings import Settings
from .classifier import classify
from .content_rewriter import ContentRewriter
from .errors import FailureReason, InvalidUrl
from .fallback import FallbackPolicy
from .models import ProxyResult, RewriteContext, TargetRequest, UpstreamResponse
from .upstream_fetcher import HeaderProfile, UpstreamFetcher
from .url_resolver import resolve


class ProxyService:
    """Turns a TargetRequest into a ProxyResult; never raises"""

    def __init__(
        self,
        settings: Settings,
        fetcher: Optional[UpstreamFetcher] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.settings = settings
        self.fetcher = fetcher or UpstreamFetcher(settings, transport=transport)
        self.header_profile = HeaderProfile.from_settings(settings)
        self.rewriter = ContentRewriter(settings)
        self.fallback = FallbackPolicy.from_settings(
            settings, self.fetcher, self.render, header_profile=self.header_profile
        )

    async def handle(self, request: TargetRequest) -> ProxyResult:
        """Run the whole pipeline for one request"""

        try:
            resolved = resolve(request.raw_input)
        except InvalidUrl as e:
            logger.info(f"Rejected input {request.raw_input!r}: {e.message}")
            return ProxyResult.failure(
                reason=FailureReason.INVALID_URL,
                detail=e.message,
                sequence=request.sequence,
            )

        logger.info(f"Proxying {resolved.absolute_url} (request #{request.sequence})")

        result = await self.fallback.fetch_with_fallback(resolved)
        result.sequence = request.sequence
        return result

    def render(self, response: UpstreamResponse) -> ProxyResult:
        """Classify a fetched response and rewrite it when it is HTML"""

        classification = classify(response)
        if classification.restricts_embedding:
            logger.info(f"{response.url} restricts embedding (X-Frame-Options / frame-ancestors)")

        if not classification.is_html:
            return ProxyResult.success(
                content_type=response.content_type or "application/octet-stream",
                body=response.body_text,
                url=response.url,
            )

        # Anchored to the post-redirect URL
        context = RewriteContext.from_url(response.url, self.settings.site_profiles_enabled)
        rewritten = self.rewriter.rewrite(response.body_text, context)

        return ProxyResult.success(
            content_type=response.content_type or "text/html",
            body=rewritten.html,
            url=response.url,
        )

    async def cleanup(self):
        await self.fetcher.cleanup()
