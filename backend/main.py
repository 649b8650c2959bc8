"""
FastAPI backend - Ground Ops Hub.

Serves:
- REST API for aircraft, flights, services, seating, checklists and airports
- ATC24 polling endpoints backed by the live feed cache
- WebSocket relay for flight-scoped chat and service updates
- Prometheus metrics endpoint
"""

import os
import logging
import asyncio
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI, WebSocket, Request
from fastapi.middleware.cors import CORSMiddleware

from backend import routes
from backend.events import FeedEvent
from backend.feed import FeedCache, FeedClient
from backend.metrics import get_metrics, HTTP_REQUESTS
from backend.storage import MemStorage, Storage
from backend.websocket import ConnectionManager

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
)
logger = logging.getLogger(__name__)

# Configuration
BACKEND_HOST = os.getenv("BACKEND_HOST", "0.0.0.0")
BACKEND_PORT = int(os.getenv("BACKEND_PORT", "8000"))
FEED_ENABLED = os.getenv("FEED_ENABLED", "true").lower() == "true"


def create_app(
    storage: Optional[Storage] = None,
    feed_client: Optional[FeedClient] = None,
    start_feed: bool = FEED_ENABLED,
) -> FastAPI:
    """
    Build the application with its collaborators.

    The feed client, feed cache, relay and storage are created here and
    stored on `app.state`; nothing is shared between apps.
    """
    storage = storage if storage is not None else MemStorage()
    feed_client = feed_client if feed_client is not None else FeedClient()
    feed_cache = FeedCache()
    relay = ConnectionManager(storage)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager."""
        logger.info("=" * 50)
        logger.info("Ground Ops Hub Backend - Starting")
        logger.info("=" * 50)

        # Feed listeners run on the socket thread; hop onto the loop to broadcast
        loop = asyncio.get_running_loop()

        def on_feed_event(event: FeedEvent):
            if loop.is_running():
                asyncio.run_coroutine_threadsafe(relay.broadcast_feed_event(event), loop)

        unsubscribe_cache = feed_client.subscribe(feed_cache.handle_event)
        unsubscribe_relay = feed_client.subscribe(on_feed_event)

        if start_feed:
            feed_client.start()
            logger.info("ATC24 feed client started")
        else:
            logger.info("ATC24 feed disabled")

        yield

        # Cleanup
        logger.info("Shutting down...")
        unsubscribe_relay()
        unsubscribe_cache()
        feed_client.stop()
        logger.info("Shutdown complete")

    app = FastAPI(
        title="Ground Ops Hub API",
        description="Flight ground operations with live ATC24 data",
        version="1.0.0",
        lifespan=lifespan
    )
    app.state.storage = storage
    app.state.feed_client = feed_client
    app.state.feed_cache = feed_cache
    app.state.relay = relay

    # CORS middleware
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def metrics_middleware(request: Request, call_next):
        """Middleware to track HTTP requests."""
        response = await call_next(request)
        # Route template, not the raw URL
        route = request.scope.get("route")
        HTTP_REQUESTS.labels(
            method=request.method,
            path=route.path if route is not None else "unmatched",
            status=response.status_code
        ).inc()
        return response

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "service": "Ground Ops Hub Backend",
            "version": "1.0.0",
            "endpoints": {
                "websocket": "/ws",
                "api": "/api",
                "health": "/health",
                "metrics": "/metrics"
            }
        }

    @app.get("/health")
    async def health():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "feed_connected": feed_client.is_connected(),
            "feed_available": not feed_client.is_exhausted(),
            "connections": len(relay.active_connections)
        }

    @app.get("/metrics")
    async def metrics():
        """Prometheus metrics endpoint."""
        return await get_metrics()

    @app.websocket("/ws")
    async def websocket_relay(websocket: WebSocket):
        """
        WebSocket endpoint for flight-scoped collaboration.

        Inbound frames:
        - {"type": "join_flight", "flightId": "..."}
        - {"type": "send_message", "flightId": "...", "sender": "...", "senderRole": "...", "message": "..."}
        - {"type": "service_update", "flightId": "...", "serviceId": "...", "status": "..."}

        Outbound frames:
        - {"type": "new_message", "data": {...}} to connections joined to the flight
        - {"type": "service_updated", "data": {...}} to connections joined to the flight
        - {"type": "feed_status", "data": {"connected": ..., "available": ..., "reconnectInMs": ...}} to all
        """
        await relay.handle_client(websocket)

    app.include_router(routes.router)

    return app


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "backend.main:create_app",
        factory=True,
        host=BACKEND_HOST,
        port=BACKEND_PORT,
        log_level="info"
    )
