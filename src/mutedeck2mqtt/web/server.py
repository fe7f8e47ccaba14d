"""
FastAPI server receiving the MuteDeck status webhook.

MuteDeck posts its JSON status to ``/`` on a fixed interval; the optional
``topic`` and ``prefix`` query parameters select the MQTT device and state
topic.
"""

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.responses import PlainTextResponse, Response
from starlette.concurrency import run_in_threadpool
import uvicorn

from .. import __version__
from ..errors import DecodeError, MissingField, PublishError
from ..handler import StatusRequestHandler

logger = logging.getLogger(__name__)


def first_query_value(request: Request, name: str) -> Optional[str]:
    """First value of a repeated query parameter, or None."""
    values = request.query_params.getlist(name)
    return values[0] if values else None


def client_ip_from_request(request: Request) -> str:
    """First X-Forwarded-For entry when proxied, else the socket peer."""
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client is not None:
        return request.client.host
    return "unknown"


class BridgeServer:
    """
    FastAPI application wrapping a StatusRequestHandler.

    Handler work (including blocking broker writes) runs in Starlette's
    thread pool, one worker per request.
    """

    def __init__(
        self,
        handler: StatusRequestHandler,
        mqtt_client: Optional[Any] = None,
        lifecycle: Optional[Any] = None,
    ):
        """
        Initialize the server.

        Args:
            handler: Request handler doing validation and publishing
            mqtt_client: Broker client, reported by /health when given
            lifecycle: Lifecycle listener, reported by /health when given
        """
        self.app = FastAPI(
            title="MuteDeck2MQTT",
            description="MuteDeck webhook to MQTT bridge with Home Assistant discovery",
            version=__version__,
        )
        self.handler = handler
        self.mqtt_client = mqtt_client
        self.lifecycle = lifecycle
        self.running = False

        self._setup_routes()

    def _setup_routes(self):
        """Setup webhook and health routes."""

        @self.app.post("/", tags=["webhook"])
        async def receive_status(request: Request):
            """Accept a MuteDeck status post and republish it over MQTT."""
            topic = first_query_value(request, "topic")
            prefix = first_query_value(request, "prefix")
            body = await request.body()
            client_ip = client_ip_from_request(request)
            try:
                await run_in_threadpool(
                    self.handler.handle, body, topic, prefix, client_ip
                )
            except (DecodeError, MissingField) as e:
                return PlainTextResponse(str(e), status_code=400)
            except PublishError as e:
                return PlainTextResponse(str(e), status_code=500)
            return Response(status_code=200)

        @self.app.get("/health", tags=["health"])
        async def health_check():
            """Health check endpoint."""
            return {
                "status": "healthy",
                "server_running": self.running,
                "mqtt_connected": (
                    self.mqtt_client.is_connected if self.mqtt_client else None
                ),
                "consumer_state": self.lifecycle.state if self.lifecycle else None,
                "discovery_count": len(self.handler.cache),
            }

    def start(self, host: str = "0.0.0.0", port: int = 8080, **kwargs):
        """
        Start server synchronously; returns when uvicorn shuts down.

        Args:
            host: Host to bind to
            port: Port to bind to
            **kwargs: Additional uvicorn configuration
        """
        self.running = True
        logger.info("Starting server on %s:%d", host, port)
        try:
            uvicorn.run(self.app, host=host, port=port, **kwargs)
        finally:
            self.running = False

    def is_running(self) -> bool:
        """Check if server is running."""
        return self.running
