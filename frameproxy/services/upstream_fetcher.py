"""
Upstream Fetcher
Outbound HTTP with a browser-like header set and per-host overrides
"""

from typing import Dict, Optional

import httpx
from loguru import logger

from config.settings import Settings
from .errors import NetworkError
from .models import ResolvedTarget, UpstreamResponse
from .site_profiles import host_matches


class HeaderProfile:
    """Browser header set plus host-specific overrides"""

    def __init__(
        self,
        base_headers: Dict[str, str],
        overrides: Optional[Dict[str, Dict[str, Optional[str]]]] = None,
    ):
        self.base_headers = dict(base_headers)
        self.overrides = dict(overrides or {})

    @classmethod
    def from_settings(cls, settings: Settings) -> "HeaderProfile":
        return cls(settings.browser_headers, settings.header_overrides)

    def match_override(self, hostname: str) -> Optional[str]:
        """Most specific host pattern matching the hostname"""
        matches = [pattern for pattern in self.overrides if host_matches(hostname, pattern)]
        if not matches:
            return None
        return max(matches, key=len)

    def headers_for(self, hostname: str) -> Dict[str, str]:
        headers = dict(self.base_headers)

        pattern = self.match_override(hostname)
        if pattern:
            logger.debug(f"Applying header overrides '{pattern}' for {hostname}")
            for name, value in self.overrides[pattern].items():
                # Header names are case-insensitive
                for existing in [key for key in headers if key.lower() == name.lower()]:
                    del headers[existing]
                if value is not None:
                    headers[name] = value

        return headers


class UpstreamFetcher:
    """Fetches target pages; no retries, fallbacks live above this layer"""

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self.settings = settings
        self._transport = transport
        self._client: Optional[httpx.AsyncClient] = None

    async def get_client(self) -> httpx.AsyncClient:
        """Get or create the shared HTTP client"""

        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                transport=self._transport,
                timeout=httpx.Timeout(self.settings.request_timeout),
                follow_redirects=True,
            )
        return self._client

    async def fetch(
        self,
        resolved: ResolvedTarget,
        header_profile: HeaderProfile,
        method: str = "GET",
        content: Optional[bytes] = None,
    ) -> UpstreamResponse:
        """Fetch a resolved target with browser headers"""

        headers = header_profile.headers_for(resolved.hostname)
        return await self.fetch_url(resolved.absolute_url, headers, method=method, content=content)

    async def fetch_url(
        self,
        url: str,
        headers: Optional[Dict[str, str]] = None,
        method: str = "GET",
        content: Optional[bytes] = None,
    ) -> UpstreamResponse:
        """Fetch any URL, mapping failures to NetworkError"""

        client = await self.get_client()
        logger.info(f"Fetching {url} with method {method}")

        try:
            response = await client.request(method, url, headers=headers, content=content)
        except httpx.TimeoutException as e:
            logger.warning(f"Timeout fetching {url}")
            raise NetworkError(url, transport=f"timeout: {e}") from e
        except httpx.HTTPError as e:
            logger.warning(f"Transport error fetching {url}: {e}")
            raise NetworkError(url, transport=str(e) or type(e).__name__) from e

        if not response.is_success:
            logger.info(f"Upstream {url} answered {response.status_code} {response.reason_phrase}")
            raise NetworkError(
                url,
                status=response.status_code,
                status_text=response.reason_phrase,
            )

        final_url = str(response.url)
        if final_url != url:
            logger.debug(f"Redirected {url} -> {final_url}")

        return UpstreamResponse(
            status=response.status_code,
            headers=httpx.Headers(response.headers),
            content_type=response.headers.get("content-type", ""),
            body_text=response.text,
            url=final_url,
        )

    async def cleanup(self):
        """Close the HTTP client"""
        if self._client is not None:
            await self._client.aclose()
            self._client = None
            logger.debug("Closed upstream HTTP client")
