"""
Proxy error taxonomy
Failures raised below the fallback boundary and the reasons surfaced to the viewer
"""

from enum import Enum
from typing import Optional


class FailureReason(str, Enum):
    """Reason carried by a failed ProxyResult"""

    INVALID_URL = "InvalidUrl"
    ALL_FALLBACKS_EXHAUSTED = "AllFallbacksExhausted"
    INTERNAL_ERROR = "InternalError"


class ProxyError(Exception):
    """Base class for proxy pipeline errors"""


class InvalidUrl(ProxyError):
    """User input could not be turned into an absolute http(s) URL"""

    def __init__(self, raw_input: str, message: str = "Invalid URL format"):
        super().__init__(f"{message}: {raw_input!r}")
        self.raw_input = raw_input
        self.message = message


class NetworkError(ProxyError):
    """Upstream unreachable or answered with a non-2xx status"""

    def __init__(
        self,
        url: str,
        status: Optional[int] = None,
        status_text: Optional[str] = None,
        transport: Optional[str] = None,
    ):
        self.url = url
        self.status = status
        self.status_text = status_text
        self.transport = transport

        if status is not None:
            detail = f"{status} {status_text or ''}".strip()
        else:
            detail = transport or "transport error"
        super().__init__(f"Fetching {url} failed: {detail}")

    @property
    def is_transport_error(self) -> bool:
        return self.status is None


class AllFallbacksExhausted(ProxyError):
    """Every fallback strategy failed for a target"""

    def __init__(self, host: str, errors: Optional[list] = None):
        super().__init__(
            f"Unable to access {host}. This site may be blocked or require special authentication."
        )
        self.host = host
        self.errors = errors or []
