"""
API Routes Module
"""

from . import proxy_routes

__all__ = [
    'proxy_routes'
]
