"""Write request models for card and book-tag provisioning."""

import time
import uuid
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Optional

from cardrelay.core.exceptions import WriteStateError
from cardrelay.models import events


class WriteOutcome(Enum):
    """Lifecycle states of a write request."""
    PENDING = "pending"
    SUCCESS = "success"
    FAILURE = "failure"
    TIMED_OUT = "timedOut"


class WriteKind(Enum):
    """Kinds of tag a write can target, each with its own event names."""
    CARD = "card"
    BOOK_TAG = "book_tag"

    @property
    def request_event(self) -> str:
        return {
            WriteKind.CARD: events.WRITE_TO_CARD,
            WriteKind.BOOK_TAG: events.WRITE_BOOK_TAG,
        }[self]

    @property
    def instruction_event(self) -> str:
        return {
            WriteKind.CARD: events.WRITE_CARD_DATA,
            WriteKind.BOOK_TAG: events.WRITE_BOOK_TAG,
        }[self]

    @property
    def success_event(self) -> str:
        return {
            WriteKind.CARD: events.CARD_WRITE_SUCCESS,
            WriteKind.BOOK_TAG: events.BOOK_TAG_WRITE_COMPLETE,
        }[self]

    @property
    def failure_event(self) -> str:
        return {
            WriteKind.CARD: events.CARD_WRITE_FAILED,
            WriteKind.BOOK_TAG: events.BOOK_TAG_WRITE_FAILED,
        }[self]


@dataclass
class WriteRequest:
    """One outstanding "encode data onto a physical tag" operation."""

    connection_id: str
    payload: Dict[str, Any]
    kind: WriteKind = WriteKind.CARD
    request_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    issued_at: float = field(default_factory=time.time)
    outcome: WriteOutcome = WriteOutcome.PENDING
    result_uid: Optional[str] = None
    error_detail: Optional[str] = None
    resolved_at: Optional[float] = None

    @property
    def is_pending(self) -> bool:
        return self.outcome is WriteOutcome.PENDING

    def finish(self, outcome: WriteOutcome, uid: Optional[str] = None,
               error: Optional[str] = None) -> None:
        """
        Move the request into a terminal state.

        Raises:
            WriteStateError: If the request is already terminal or the
                target outcome is not terminal
        """
        if not self.is_pending:
            raise WriteStateError(
                f"Write {self.request_id} already {self.outcome.value}"
            )
        if outcome is WriteOutcome.PENDING:
            raise WriteStateError("PENDING is not a terminal outcome")
        self.outcome = outcome
        self.result_uid = uid
        self.error_detail = error
        self.resolved_at = time.time()

    def instruction(self) -> Dict[str, Any]:
        """Payload sent toward the reader: the caller's fields plus request_id."""
        result = dict(self.payload)
        result['request_id'] = self.request_id
        return result

    def __repr__(self) -> str:
        return (f"WriteRequest(request_id={self.request_id!r}, kind={self.kind.value!r}, "
                f"outcome={self.outcome.value!r})")
