"""
Frame Proxy - Main Application Package
Content-rewriting proxy that renders arbitrary pages inside a sandboxed viewport
"""

__version__ = "1.0.0"

from .core.app import create_app

__all__ = ["create_app"]
