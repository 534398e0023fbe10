"""Main FastAPI application with the relay WebSocket endpoints."""

import json
import logging
import uuid
from contextlib import asynccontextmanager
from typing import AsyncIterator, Dict, List, Optional, Set

from fastapi import FastAPI, WebSocket, WebSocketDisconnect
from fastapi.middleware.cors import CORSMiddleware
from sse_starlette.sse import EventSourceResponse

from cardrelay import config
from cardrelay.core.connection import QueueConnection, WebSocketConnection
from cardrelay.core.relay import EventRelay
from cardrelay.models.client import Client, Role

# Configure logging
logging.basicConfig(
    level=config.LOG_LEVEL,
    format="%(levelname)s: %(name)s: %(message)s",
)
logger = logging.getLogger(__name__)

DECLARABLE_ROLES = {Role.READER.value: Role.READER, Role.CLIENT.value: Role.CLIENT}


async def observer_stream(relay: EventRelay, connection: QueueConnection) -> AsyncIterator[Dict[str, str]]:
    """
    Register an observer and yield each broadcast it receives as an SSE message.

    The observer is removed when the stream is closed or cancelled.
    """
    relay.connect(connection)
    try:
        while True:
            event, data = await connection.receive()
            yield {"event": event, "data": json.dumps(data)}
    finally:
        relay.disconnect(connection.id, connection)


def create_app(write_timeout: float = config.WRITE_TIMEOUT,
               allowed_origins: Optional[List[str]] = None) -> FastAPI:
    """
    Build an application with its own relay and status store.

    Args:
        write_timeout: Seconds to wait for a reader write acknowledgment
        allowed_origins: CORS origins; defaults to configuration
    """
    relay = EventRelay(write_timeout=write_timeout)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        yield
        await relay.card_writes.cancel()
        await relay.book_tag_writes.cancel()

    app = FastAPI(title="Card Relay", version="1.0.0", lifespan=lifespan)
    app.state.relay = relay

    origins = allowed_origins if allowed_origins is not None else config.ALLOWED_ORIGINS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.get("/")
    async def root():
        """Root endpoint returning API information."""
        return {
            "message": "Card Relay",
            "version": "1.0.0",
            "endpoints": {
                "websocket": "/ws/{client_id}?role=reader|client",
                "events": "/events",
                "status": "/status",
            }
        }

    @app.get("/status")
    async def get_status():
        """Current reader status, same shape as the nfc-reader-status event."""
        return relay.status_store.get_status().to_dict()

    @app.get("/health")
    async def health_check():
        """Health check endpoint."""
        return {
            "status": "healthy",
            "connected_clients": len(relay.connections),
            "readers": relay.count(Role.READER),
            "pending_writes": {
                "card": relay.card_writes.busy,
                "book_tag": relay.book_tag_writes.busy,
            },
        }

    @app.get("/events")
    async def events():
        """Server-sent event stream of every broadcast, for read-only observers."""
        connection = QueueConnection(
            Client(id=uuid.uuid4().hex, role=Role.OBSERVER),
            maxsize=config.OBSERVER_QUEUE_SIZE,
        )
        return EventSourceResponse(observer_stream(relay, connection))

    # IDs whose handshake is in progress; checked together with the relay
    # registrations before the first await.
    handshaking: Set[str] = set()

    async def serve(websocket: WebSocket, client_id: str, role: Optional[str]) -> None:
        if client_id in relay.connections or client_id in handshaking:
            logger.warning(f"Refusing duplicate connection for client {client_id}")
            await websocket.close(code=1008)
            return
        handshaking.add(client_id)
        try:
            await websocket.accept()
        finally:
            handshaking.discard(client_id)
        client = Client(id=client_id, role=DECLARABLE_ROLES.get(role or "", Role.UNKNOWN))
        if role and client.role is Role.UNKNOWN:
            logger.warning(f"Client {client_id} declared unknown role {role!r}")
        connection = WebSocketConnection(websocket, client)
        relay.connect(connection)
        try:
            while True:
                message = await websocket.receive_text()
                await relay.handle_message(client_id, message)
        except WebSocketDisconnect:
            logger.info(f"Client {client_id} closed the connection")
        except Exception as e:
            logger.error(f"WebSocket error for client {client_id}: {str(e)}")
        finally:
            relay.disconnect(client_id, connection)

    @app.websocket("/ws")
    async def websocket_anonymous(websocket: WebSocket, role: Optional[str] = None):
        """WebSocket endpoint; the relay assigns the client ID."""
        await serve(websocket, uuid.uuid4().hex, role)

    @app.websocket("/ws/{client_id}")
    async def websocket_endpoint(websocket: WebSocket, client_id: str, role: Optional[str] = None):
        """
        WebSocket endpoint for readers and browser clients.

        Args:
            websocket: WebSocket connection
            client_id: Unique identifier for the client
            role: Optional explicit role, ``reader`` or ``client``
        """
        await serve(websocket, client_id, role)

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "cardrelay.main:app",
        host=config.RELAY_HOST,
        port=config.RELAY_PORT,
        log_level=config.LOG_LEVEL.lower(),
    )
