"""Transport connections the relay can deliver events to."""

import asyncio
import json
from abc import ABC, abstractmethod
from typing import Any, Tuple

from fastapi import WebSocket

from cardrelay.models.client import Client


class Connection(ABC):
    """A single persistent session, delivering events in send order."""

    def __init__(self, client: Client):
        self.client = client

    @property
    def id(self) -> str:
        return self.client.id

    @abstractmethod
    async def send(self, event: str, data: Any) -> None:
        """Deliver one event to this participant."""


class WebSocketConnection(Connection):
    """Connection backed by a FastAPI websocket, framed as JSON envelopes."""

    def __init__(self, websocket: WebSocket, client: Client):
        super().__init__(client)
        self.websocket = websocket

    async def send(self, event: str, data: Any) -> None:
        await self.websocket.send_text(json.dumps({"event": event, "data": data}))


class QueueConnection(Connection):
    """Connection that buffers events for a consumer such as an SSE stream."""

    def __init__(self, client: Client, maxsize: int = 0):
        super().__init__(client)
        self.queue: "asyncio.Queue[Tuple[str, Any]]" = asyncio.Queue(maxsize=maxsize)

    async def send(self, event: str, data: Any) -> None:
        self.queue.put_nowait((event, data))

    async def receive(self) -> Tuple[str, Any]:
        return await self.queue.get()
