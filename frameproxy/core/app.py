"""
Main FastAPI Application
HTTP proxy endpoint, viewer page and the navigation relay WebSocket
"""

from fastapi import FastAPI, WebSocket, WebSocketDisconnect, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.gzip import GZipMiddleware
from fastapi.responses import HTMLResponse, JSONResponse
from contextlib import asynccontextmanager
from pathlib import Path
from typing import Optional
import asyncio
import uuid
from loguru import logger

from config.settings import Settings, get_settings
from .navigation_relay import NavigationRelay
from .websocket_manager import WebSocketConnection, WebSocketManager
from ..services.models import NavigationEvent
from ..services.proxy_service import ProxyService
from ..middleware.security import CORS_HEADERS, SecurityMiddleware
from ..api import proxy_routes

VIEWER_TEMPLATE = Path(__file__).resolve().parent.parent / "templates" / "viewer.html"


def create_app(settings: Optional[Settings] = None, proxy_service: Optional[ProxyService] = None) -> FastAPI:
    """Create and configure FastAPI application"""

    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager"""
        logger.info(f"Starting {settings.app_name} v{settings.app_version}")

        heartbeat = asyncio.create_task(app.state.ws_manager.heartbeat_sender())
        logger.info("Application startup complete")

        yield

        logger.info("Shutting down application...")
        heartbeat.cancel()
        await app.state.ws_manager.disconnect_all()
        await app.state.proxy_service.cleanup()
        logger.info("Application shutdown complete")

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        lifespan=lifespan,
        docs_url="/docs" if settings.debug else None,
        redoc_url="/redoc" if settings.debug else None
    )

    # Stored in app state for access in routes
    app.state.settings = settings
    app.state.proxy_service = proxy_service or ProxyService(settings)
    app.state.ws_manager = WebSocketManager(
        heartbeat_interval=settings.ws_heartbeat_interval,
        ping_timeout=settings.ws_ping_timeout,
    )

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=settings.cors_allow_methods,
        allow_headers=settings.cors_allow_headers,
    )

    if settings.enable_compression:
        app.add_middleware(
            GZipMiddleware,
            minimum_size=settings.min_compression_size
        )

    app.add_middleware(SecurityMiddleware, app_version=settings.app_version)

    app.include_router(proxy_routes.router, prefix="/api/proxy", tags=["proxy"])

    @app.get("/", response_class=HTMLResponse)
    async def root():
        """Serve the viewer page"""
        return HTMLResponse(content=VIEWER_TEMPLATE.read_text(encoding="utf-8"))

    @app.get("/health")
    async def health_check():
        """Health check endpoint"""
        return {
            "status": "healthy",
            "version": settings.app_version,
            "active_connections": app.state.ws_manager.get_active_connections(),
        }

    @app.websocket("/ws/relay")
    async def websocket_relay(websocket: WebSocket):
        """Viewer <-> navigation relay"""
        session_id = str(uuid.uuid4())
        await websocket.accept()

        ws_manager: WebSocketManager = app.state.ws_manager
        connection = await ws_manager.connect(websocket, session_id)
        connection.relay = NavigationRelay(
            app.state.proxy_service,
            connection.send_json,
            dedupe_window=settings.relay_dedupe_window,
        )

        try:
            await connection.send_json({"type": "init", "session_id": session_id})

            while True:
                data = await websocket.receive_json()
                await handle_websocket_message(connection, data)

        except WebSocketDisconnect:
            logger.info(f"WebSocket disconnected: {session_id}")
        except Exception as e:
            logger.error(f"WebSocket error for {session_id}: {str(e)}")
            await connection.send_json({"type": "error", "error": str(e)})
        finally:
            await ws_manager.disconnect(session_id)

    async def handle_websocket_message(connection: WebSocketConnection, data: dict):
        """Handle incoming WebSocket messages"""
        message_type = data.get("type") if isinstance(data, dict) else None

        if message_type == "navigate":
            event = NavigationEvent.from_message(data)
            if event is None:
                await connection.send_json({"type": "error", "error": "URL is required"})
                return

            logger.info(f"Session {connection.session_id} navigating to: {event.url}")
            if data.get("source") == "urlbar":
                await connection.relay.submit(event.url)
            else:
                await connection.relay.handle_event(event)

        elif message_type == "ping":
            await app.state.ws_manager.handle_ping(connection.session_id)

        else:
            logger.warning(f"Unknown message type: {message_type}")

    @app.exception_handler(Exception)
    async def global_exception_handler(request: Request, exc: Exception):
        """Global exception handler"""
        logger.error(f"Unhandled exception: {str(exc)}")
        return JSONResponse(
            status_code=500,
            content={"error": "Proxy service temporarily unavailable"},
            headers=CORS_HEADERS,
        )

    return app
