"""Pydantic schemas for frames received over relay connections."""

from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from cardrelay.core.exceptions import PayloadError


class Envelope(BaseModel):
    """Outer frame: ``{"event": name, "data": payload}``."""
    event: str = Field(..., min_length=1)
    data: Any = None


class StatusUpdate(BaseModel):
    """Partial reader status. ``status`` is not checked against known values."""
    model_config = ConfigDict(extra="allow")

    status: Optional[str] = None
    reader: Optional[str] = None
    error: Optional[str] = None


class TagEvent(BaseModel):
    """Swipe, swipe-end and book-tag-scanned payloads."""
    model_config = ConfigDict(extra="allow")

    uid: str


class WriteAck(BaseModel):
    """Reader acknowledgment of a successful write."""
    model_config = ConfigDict(extra="allow")

    uid: str
    request_id: Optional[str] = None


class WriteNack(BaseModel):
    """Reader acknowledgment of a failed write."""
    model_config = ConfigDict(extra="allow")

    error: Optional[str] = None
    request_id: Optional[str] = None


def parse_payload(model: type, data: Any, event: str) -> Dict[str, Any]:
    """
    Validate ``data`` against ``model`` and return a copy of it as sent.

    Raises:
        PayloadError: If the payload is not an object or fails validation
    """
    if not isinstance(data, dict):
        raise PayloadError(f"Payload for {event!r} must be an object", event=event)
    try:
        model.model_validate(data)
    except ValidationError as e:
        raise PayloadError(f"Invalid payload for {event!r}: {e.errors()[0]['msg']}", event=event) from e
    return dict(data)


def parse_envelope(message: str) -> Envelope:
    """
    Decode a raw text frame.

    Raises:
        PayloadError: If the frame is not JSON or has no event name
    """
    try:
        return Envelope.model_validate_json(message)
    except ValidationError as e:
        raise PayloadError(f"Invalid frame: {e.errors()[0]['msg']}") from e
