"""Custom exceptions for the card relay."""

from typing import Optional


class RelayError(Exception):
    """Base exception for relay errors."""
    pass


class PayloadError(RelayError):
    """Exception raised for malformed inbound frames or payloads."""

    def __init__(self, message: str, event: Optional[str] = None):
        super().__init__(message)
        self.event = event


class WriteInProgressError(RelayError):
    """Exception raised when a write is submitted while another is pending."""

    def __init__(self, request_id: str):
        super().__init__("Write already in progress")
        self.request_id = request_id


class WriteStateError(RelayError):
    """Exception raised for an illegal write request transition."""
    pass
