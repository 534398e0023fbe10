"""Reader status model for the card relay."""

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


DISCONNECTED = "disconnected"
CONNECTED = "connected"
ERROR = "error"


@dataclass
class ReaderStatus:
    """Last known connectivity state of the single physical reader."""

    status: str = DISCONNECTED
    reader: Optional[str] = None
    timestamp: int = 0
    error: Optional[str] = None
    extra: Dict[str, Any] = field(default_factory=dict)

    def merged(self, partial: Dict[str, Any], timestamp: int) -> 'ReaderStatus':
        """
        Return a new status with ``partial`` shallow-merged on top of this one.

        Keys other than the known fields are kept in ``extra`` so they survive
        later merges and are echoed back to observers.
        """
        values = self.to_dict()
        values.update(partial)
        values['timestamp'] = timestamp
        return ReaderStatus.from_dict(values)

    def to_dict(self) -> Dict[str, Any]:
        """Convert status to its wire representation."""
        result = dict(self.extra)
        result.update({
            'status': self.status,
            'reader': self.reader,
            'timestamp': self.timestamp,
            'error': self.error,
        })
        return result

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'ReaderStatus':
        """Create ReaderStatus instance from dictionary."""
        known = ('status', 'reader', 'timestamp', 'error')
        return cls(
            status=data.get('status', DISCONNECTED),
            reader=data.get('reader'),
            timestamp=data.get('timestamp', 0),
            error=data.get('error'),
            extra={k: v for k, v in data.items() if k not in known},
        )

    def __repr__(self) -> str:
        return f"ReaderStatus(status={self.status!r}, reader={self.reader!r}, timestamp={self.timestamp!r})"
