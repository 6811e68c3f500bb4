"""
Proxy Data Model
Values that flow through a single request/response turn
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional
from urllib.parse import urlsplit

import httpx

from .errors import FailureReason
from .site_profiles import SiteProfile, resolve_site_profile


@dataclass(frozen=True)
class TargetRequest:
    """Raw URL bar input or relayed navigation, tagged with its generation"""

    raw_input: str
    sequence: int = 0


@dataclass(frozen=True)
class ResolvedTarget:
    """Validated absolute target URL"""

    scheme: str
    host: str
    path: str
    absolute_url: str

    @property
    def origin(self) -> str:
        return f"{self.scheme}://{self.host}"

    @property
    def hostname(self) -> str:
        return (urlsplit(self.absolute_url).hostname or "").lower()


@dataclass(frozen=True)
class UpstreamResponse:
    """Response as received from the upstream, after redirects"""

    status: int
    headers: httpx.Headers
    content_type: str
    body_text: str
    url: str


@dataclass(frozen=True)
class Classification:
    is_html: bool
    restricts_embedding: bool


@dataclass(frozen=True)
class RewriteContext:
    """Everything the rewrite pipeline needs to know about the page"""

    base_url: str
    hostname: str
    site_profile: Optional[SiteProfile] = None
    page_url: str = ""

    @classmethod
    def from_url(cls, url: str, site_profiles_enabled: bool = True) -> "RewriteContext":
        """Build the context from the final (post-redirect) page URL"""
        parts = urlsplit(url)
        hostname = (parts.hostname or "").lower()
        profile = resolve_site_profile(hostname) if site_profiles_enabled else None
        return cls(
            base_url=f"{parts.scheme}://{parts.netloc}",
            hostname=hostname,
            site_profile=profile,
            page_url=url,
        )


@dataclass(frozen=True)
class RewriteSkipped:
    """A rewrite stage that found no anchor and was skipped"""

    stage: str
    reason: str


@dataclass
class RewriteResult:
    html: str
    skipped: List[RewriteSkipped] = field(default_factory=list)


class ResultKind(str, Enum):
    SUCCESS = "Success"
    FAILURE = "Failure"


@dataclass
class ProxyResult:
    """The only value handed back across the proxy boundary"""

    kind: ResultKind
    content_type: Optional[str] = None
    body: Optional[str] = None
    url: Optional[str] = None
    reason: Optional[FailureReason] = None
    detail: Optional[str] = None
    suggestions: List[str] = field(default_factory=list)
    sequence: int = 0

    @classmethod
    def success(cls, content_type: str, body: str, url: str, sequence: int = 0) -> "ProxyResult":
        return cls(
            kind=ResultKind.SUCCESS,
            content_type=content_type,
            body=body,
            url=url,
            sequence=sequence,
        )

    @classmethod
    def failure(
        cls,
        reason: FailureReason,
        detail: str,
        suggestions: Optional[List[str]] = None,
        url: Optional[str] = None,
        sequence: int = 0,
    ) -> "ProxyResult":
        return cls(
            kind=ResultKind.FAILURE,
            reason=reason,
            detail=detail,
            suggestions=list(suggestions or []),
            url=url,
            sequence=sequence,
        )

    @property
    def ok(self) -> bool:
        return self.kind is ResultKind.SUCCESS

    def to_dict(self) -> Dict[str, Any]:
        """Wire format returned to the viewer"""
        if self.ok:
            return {
                "content": self.body,
                "contentType": self.content_type,
                "url": self.url,
            }

        data: Dict[str, Any] = {"error": self.detail}
        if self.suggestions:
            data["suggestions"] = self.suggestions
        return data


@dataclass(frozen=True)
class NavigationEvent:
    """Navigation attempt posted by the runtime shim"""

    url: str

    @classmethod
    def from_message(cls, message: Any) -> Optional["NavigationEvent"]:
        """Parse a {type: "navigate", url} message, None if it is not one"""
        if not isinstance(message, dict) or message.get("type") != "navigate":
            return None
        url = message.get("url")
        if not isinstance(url, str) or not url.strip():
            return None
        return cls(url=url.strip())

    def to_target_request(self, sequence: int) -> TargetRequest:
        return TargetRequest(raw_input=self.url, sequence=sequence)
