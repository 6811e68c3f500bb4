"""
Core module for Frame Proxy
"""

from .app import create_app
from .navigation_relay import NavigationRelay
from .websocket_manager import WebSocketManager

__all__ = [
    'create_app',
    'NavigationRelay',
    'WebSocketManager'
]
