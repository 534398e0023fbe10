"""Connection manager for routing relay events between readers and browsers."""

import logging
from typing import Any, Awaitable, Callable, Dict, Iterable, Optional

from cardrelay.core.connection import Connection
from cardrelay.core.exceptions import PayloadError, WriteInProgressError
from cardrelay.core.status_store import StatusStore
from cardrelay.core.swipe_notifier import SwipeNotifier
from cardrelay.core.write_coordinator import DEFAULT_WRITE_TIMEOUT, WriteCoordinator
from cardrelay.models import events
from cardrelay.models.client import Role
from cardrelay.models.messages import (
    StatusUpdate,
    TagEvent,
    WriteAck,
    WriteNack,
    parse_envelope,
    parse_payload,
)
from cardrelay.models.status import ReaderStatus
from cardrelay.models.write_request import WriteKind, WriteOutcome

logger = logging.getLogger(__name__)

Handler = Callable[[Connection, Any], Awaitable[None]]


class EventRelay:
    """
    Publish/subscribe hub over persistent connections.

    All handlers run on one event loop, so the connection set, the status
    store and the write slots are never mutated concurrently.
    """

    def __init__(self, status_store: Optional[StatusStore] = None,
                 write_timeout: float = DEFAULT_WRITE_TIMEOUT):
        self.status_store = status_store or StatusStore()
        self.connections: Dict[str, Connection] = {}
        self.card_writes = WriteCoordinator(self, WriteKind.CARD, write_timeout)
        self.book_tag_writes = WriteCoordinator(self, WriteKind.BOOK_TAG, write_timeout)
        self.swipes = SwipeNotifier(self)
        self._handlers: Dict[str, Handler] = {
            events.NFC_READER_STATUS: self._on_reader_status,
            events.GET_NFC_STATUS: self._on_get_status,
            events.NFC_SWIPE: self._on_swipe,
            events.NFC_SWIPE_END: self._on_swipe_end,
            events.BOOK_TAG_SCANNED: self._on_book_tag_scanned,
            events.WRITE_TO_CARD: self._write_request_handler(self.card_writes),
            events.WRITE_COMPLETE: self._write_ack_handler(
                self.card_writes, WriteOutcome.SUCCESS, events.WRITE_COMPLETE),
            events.WRITE_FAILED: self._write_ack_handler(
                self.card_writes, WriteOutcome.FAILURE, events.WRITE_FAILED),
            events.WRITE_BOOK_TAG: self._write_request_handler(self.book_tag_writes),
            events.BOOK_TAG_WRITE_COMPLETE: self._write_ack_handler(
                self.book_tag_writes, WriteOutcome.SUCCESS, events.BOOK_TAG_WRITE_COMPLETE),
            events.BOOK_TAG_WRITE_FAILED: self._write_ack_handler(
                self.book_tag_writes, WriteOutcome.FAILURE, events.BOOK_TAG_WRITE_FAILED),
        }

    def connect(self, connection: Connection) -> None:
        """
        Register a connection for broadcasts.

        Nothing is pushed on connect; participants ask for the current
        status with ``get-nfc-status``.
        """
        self.connections[connection.id] = connection
        logger.info(f"Client {connection.id} connected as {connection.client.role.value}")

    def disconnect(self, connection_id: str, connection: Optional[Connection] = None) -> None:
        """
        Remove a connection.

        When ``connection`` is given, the registration is only removed if it
        still belongs to that connection, so a closing session cannot evict a
        newer one that reused its ID.

        Pending writes it submitted stay with their coordinator and still
        time out; their outcome is then dropped.
        """
        registered = self.connections.get(connection_id)
        if connection is not None and registered is not connection:
            return
        self.connections.pop(connection_id, None)
        logger.info(f"Client {connection_id} disconnected")

    def count(self, role: Role) -> int:
        return sum(1 for c in self.connections.values() if c.client.role is role)

    async def broadcast(self, event: str, data: Any, roles: Optional[Iterable[Role]] = None) -> int:
        """
        Deliver an event to every active connection, best effort.

        Args:
            event: Event name
            data: JSON-serializable payload
            roles: If given, only connections with one of these roles

        Returns:
            Number of connections the event was delivered to
        """
        allowed = frozenset(roles) if roles is not None else None
        delivered = 0
        for connection in list(self.connections.values()):
            if allowed is not None and connection.client.role not in allowed:
                continue
            if await self._deliver(connection, event, data):
                delivered += 1
        return delivered

    async def send_to(self, connection_id: str, event: str, data: Any) -> bool:
        """Deliver an event to one connection; a no-op if it has gone away."""
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.warning(f"Dropping {event} for disconnected client {connection_id}")
            return False
        return await self._deliver(connection, event, data)

    async def request_current_status(self, connection: Connection) -> None:
        await self._deliver(connection, events.NFC_READER_STATUS, self.status_store.get_status().to_dict())

    async def update_status(self, partial: Dict[str, Any]) -> ReaderStatus:
        """Merge a partial status and broadcast the full result to everyone."""
        status = self.status_store.update_status(partial)
        logger.info(f"Reader status: {status.status} ({status.reader})")
        await self.broadcast(events.NFC_READER_STATUS, status.to_dict())
        return status

    async def handle_message(self, connection_id: str, message: str) -> None:
        """
        Process one incoming frame.

        Failures are contained here: malformed frames are answered with
        ``invalid-payload`` and any other handler error is logged.
        """
        connection = self.connections.get(connection_id)
        if connection is None:
            logger.warning(f"Message from unregistered client {connection_id}")
            return

        try:
            envelope = parse_envelope(message)
            handler = self._handlers.get(envelope.event)
            if handler is None:
                raise PayloadError(f"Unknown event {envelope.event!r}", event=envelope.event)
            if connection.client.infer_role(envelope.event):
                logger.info(f"Client {connection_id} identified as {connection.client.role.value}")
            await handler(connection, envelope.data)
        except PayloadError as e:
            logger.warning(f"Rejected message from {connection_id}: {e}")
            await self._deliver(connection, events.INVALID_PAYLOAD, {'event': e.event, 'error': str(e)})
        except Exception:
            logger.exception(f"Error handling message from {connection_id}")

    async def _deliver(self, connection: Connection, event: str, data: Any) -> bool:
        try:
            await connection.send(event, data)
            return True
        except Exception as e:
            logger.error(f"Failed to send {event} to {connection.id}: {str(e)}")
            return False

    async def _on_reader_status(self, connection: Connection, data: Any) -> None:
        await self.update_status(parse_payload(StatusUpdate, data, events.NFC_READER_STATUS))

    async def _on_get_status(self, connection: Connection, data: Any) -> None:
        await self.request_current_status(connection)

    async def _on_swipe(self, connection: Connection, data: Any) -> None:
        await self.swipes.on_swipe(parse_payload(TagEvent, data, events.NFC_SWIPE))

    async def _on_swipe_end(self, connection: Connection, data: Any) -> None:
        await self.swipes.on_swipe_end(parse_payload(TagEvent, data, events.NFC_SWIPE_END))

    async def _on_book_tag_scanned(self, connection: Connection, data: Any) -> None:
        await self.swipes.on_book_tag_scan(parse_payload(TagEvent, data, events.BOOK_TAG_SCANNED))

    def _write_request_handler(self, coordinator: WriteCoordinator) -> Handler:
        async def handler(connection: Connection, data: Any) -> None:
            if not isinstance(data, dict):
                raise PayloadError(
                    f"Payload for {coordinator.kind.request_event!r} must be an object",
                    event=coordinator.kind.request_event,
                )
            try:
                await coordinator.submit(connection.id, dict(data))
            except WriteInProgressError as e:
                await coordinator.reject(connection.id, e)
        return handler

    def _write_ack_handler(self, coordinator: WriteCoordinator, outcome: WriteOutcome,
                           event: str) -> Handler:
        model = WriteAck if outcome is WriteOutcome.SUCCESS else WriteNack

        async def handler(connection: Connection, data: Any) -> None:
            await coordinator.resolve(outcome, parse_payload(model, data, event))
        return handler
