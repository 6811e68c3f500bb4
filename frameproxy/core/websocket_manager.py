"""
WebSocket Manager
Tracks viewer connections and the navigation relay attached to each
"""

from typing import Dict, Optional
from fastapi import WebSocket
import asyncio
from datetime import datetime
from loguru import logger

from .navigation_relay import NavigationRelay


class WebSocketConnection:
    """Represents a single viewer connection"""

    def __init__(self, websocket: WebSocket, session_id: str):
        self.websocket = websocket
        self.session_id = session_id
        self.connected_at = datetime.now()
        self.last_ping = datetime.now()
        self.is_active = True
        self.relay: Optional[NavigationRelay] = None

    async def send_json(self, data: dict):
        """Send JSON data to client"""
        try:
            await self.websocket.send_json(data)
            return True
        except Exception as e:
            logger.error(f"Error sending to {self.session_id}: {str(e)}")
            self.is_active = False
            return False


class WebSocketManager:
    """Manages all viewer connections"""

    def __init__(self, heartbeat_interval: int = 30, ping_timeout: int = 120):
        self.connections: Dict[str, WebSocketConnection] = {}
        self.heartbeat_interval = heartbeat_interval
        self.ping_timeout = ping_timeout

    async def connect(self, websocket: WebSocket, session_id: str) -> WebSocketConnection:
        """Add new viewer connection"""
        connection = WebSocketConnection(websocket, session_id)
        self.connections[session_id] = connection

        logger.info(f"WebSocket connected: {session_id}")
        logger.info(f"Total active connections: {len(self.connections)}")

        return connection

    async def disconnect(self, session_id: str):
        """Remove viewer connection and stop its relay"""
        connection = self.connections.pop(session_id, None)
        if connection is None:
            return

        connection.is_active = False
        if connection.relay is not None:
            await connection.relay.close()

        try:
            await connection.websocket.close()
        except Exception as e:
            # Usually already closed by the client
            logger.debug(f"Close for {session_id} ignored: {e}")

        logger.info(f"WebSocket disconnected: {session_id}")
        logger.info(f"Total active connections: {len(self.connections)}")

    async def disconnect_all(self):
        """Disconnect all viewer connections"""
        for session_id in list(self.connections.keys()):
            await self.disconnect(session_id)

    async def send_to_client(self, session_id: str, data: dict) -> bool:
        """Send data to specific client"""
        connection = self.connections.get(session_id)
        if connection and connection.is_active:
            return await connection.send_json(data)
        return False

    async def handle_ping(self, session_id: str):
        """Handle ping from client"""
        if session_id in self.connections:
            self.connections[session_id].last_ping = datetime.now()
            await self.send_to_client(session_id, {"type": "pong"})

    async def heartbeat_sender(self):
        """Send periodic heartbeat to all connections"""
        while True:
            try:
                await asyncio.sleep(self.heartbeat_interval)

                now = datetime.now()
                inactive_sessions = []

                for session_id, connection in list(self.connections.items()):
                    if not connection.is_active:
                        inactive_sessions.append(session_id)
                        continue

                    if (now - connection.last_ping).total_seconds() > self.ping_timeout:
                        logger.warning(f"Session {session_id} ping timeout")
                        inactive_sessions.append(session_id)
                        continue

                    await connection.send_json({
                        "type": "heartbeat",
                        "timestamp": now.isoformat()
                    })

                for session_id in inactive_sessions:
                    await self.disconnect(session_id)

            except asyncio.CancelledError:
                raise
            except Exception as e:
                logger.error(f"Heartbeat error: {str(e)}")

    def get_active_connections(self) -> int:
        """Get count of active connections"""
        return len(self.connections)
