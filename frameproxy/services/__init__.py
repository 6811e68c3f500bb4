"""
Services module for Frame Proxy
"""

from .proxy_service import ProxyService
from .content_rewriter import ContentRewriter
from .fallback import FallbackPolicy
from .upstream_fetcher import HeaderProfile, UpstreamFetcher
from .url_resolver import resolve

__all__ = [
    'ProxyService',
    'ContentRewriter',
    'FallbackPolicy',
    'HeaderProfile',
    'UpstreamFetcher',
    'resolve'
]
