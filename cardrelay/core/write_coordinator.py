"""Correlates in-flight write requests with reader acknowledgments."""

import asyncio
import logging
from typing import TYPE_CHECKING, Any, Dict, Optional

from cardrelay.core.exceptions import WriteInProgressError
from cardrelay.models.client import Role
from cardrelay.models.write_request import WriteKind, WriteOutcome, WriteRequest

if TYPE_CHECKING:
    from cardrelay.core.relay import EventRelay

logger = logging.getLogger(__name__)

DEFAULT_WRITE_TIMEOUT = 10.0
TIMEOUT_ERROR = "No response from card writer"

# Write instructions go to readers, and to participants that have not
# revealed a role yet (a reader that has not reported status).
INSTRUCTION_ROLES = frozenset({Role.READER, Role.UNKNOWN})


class WriteCoordinator:
    """
    Single-slot write coordinator for one kind of tag.

    At most one WriteRequest is pending at a time; a second submission while
    busy is rejected. The outcome is delivered only to the connection that
    submitted the request, never broadcast.
    """

    def __init__(self, relay: "EventRelay", kind: WriteKind = WriteKind.CARD,
                 timeout: float = DEFAULT_WRITE_TIMEOUT):
        self.relay = relay
        self.kind = kind
        self.timeout = timeout
        self.active: Optional[WriteRequest] = None
        self._timer: Optional[asyncio.Task] = None

    @property
    def busy(self) -> bool:
        return self.active is not None

    async def submit(self, connection_id: str, payload: Dict[str, Any]) -> WriteRequest:
        """
        Store a new pending write, start its timeout and forward it to readers.

        Args:
            connection_id: ID of the requesting connection
            payload: Fields to encode onto the tag

        Returns:
            The accepted WriteRequest

        Raises:
            WriteInProgressError: If another write of this kind is pending
        """
        if self.active is not None:
            raise WriteInProgressError(self.active.request_id)

        request = WriteRequest(connection_id=connection_id, payload=payload, kind=self.kind)
        self.active = request
        self._timer = asyncio.create_task(self._expire(request))
        logger.info(f"{self.kind.value} write {request.request_id} submitted by {connection_id}")

        await self.relay.broadcast(
            self.kind.instruction_event, request.instruction(), roles=INSTRUCTION_ROLES
        )
        return request

    async def resolve(self, outcome: WriteOutcome, detail: Dict[str, Any]) -> Optional[WriteRequest]:
        """
        Finish the active write from a reader acknowledgment.

        Acknowledgments naming a different request_id, or arriving while no
        write is pending, are ignored.

        Returns:
            The resolved WriteRequest, or None if the acknowledgment was ignored
        """
        request = self.active
        if request is None:
            logger.warning(f"Ignoring {self.kind.value} write acknowledgment with no pending write")
            return None

        request_id = detail.get('request_id')
        if request_id is not None and request_id != request.request_id:
            logger.warning(
                f"Ignoring stale {self.kind.value} write acknowledgment {request_id} "
                f"(pending {request.request_id})"
            )
            return None

        # Slot and timer are released before any await so the timeout can
        # never deliver a second outcome.
        self._release()
        if outcome is WriteOutcome.SUCCESS:
            request.finish(outcome, uid=detail.get('uid'))
            event = self.kind.success_event
        else:
            request.finish(outcome, error=detail.get('error') or "Write failed")
            event = self.kind.failure_event

        payload = dict(detail)
        payload['request_id'] = request.request_id
        if outcome is not WriteOutcome.SUCCESS:
            payload['error'] = request.error_detail
        logger.info(f"{self.kind.value} write {request.request_id} finished: {request.outcome.value}")
        await self.relay.send_to(request.connection_id, event, payload)
        return request

    async def reject(self, connection_id: str, error: WriteInProgressError) -> None:
        """Tell a caller its write was refused because the slot is busy."""
        logger.warning(
            f"Rejecting {self.kind.value} write from {connection_id}: "
            f"{error.request_id} still pending"
        )
        await self.relay.send_to(
            connection_id, self.kind.failure_event, {'error': str(error), 'request_id': None}
        )

    async def cancel(self) -> None:
        """Stop the timeout timer without resolving the active write."""
        timer = self._timer
        self._release()
        if timer is not None:
            try:
                await timer
            except asyncio.CancelledError:
                pass

    def _release(self) -> None:
        self.active = None
        if self._timer is not None and self._timer is not asyncio.current_task():
            self._timer.cancel()
        self._timer = None

    async def _expire(self, request: WriteRequest) -> None:
        await asyncio.sleep(self.timeout)
        if self.active is not request:
            return
        self._release()
        request.finish(WriteOutcome.TIMED_OUT, error=TIMEOUT_ERROR)
        logger.warning(f"{self.kind.value} write {request.request_id} timed out after {self.timeout}s")
        await self.relay.send_to(
            request.connection_id,
            self.kind.failure_event,
            {'error': TIMEOUT_ERROR, 'request_id': request.request_id},
        )
