"""Fan-out of card presence notifications."""

import logging
from typing import TYPE_CHECKING, Any, Dict

from cardrelay.models import events

if TYPE_CHECKING:
    from cardrelay.core.relay import EventRelay

logger = logging.getLogger(__name__)


class SwipeNotifier:
    """Broadcasts tag presence and removal; no correlation between the two."""

    def __init__(self, relay: "EventRelay"):
        self.relay = relay

    async def on_swipe(self, payload: Dict[str, Any]) -> None:
        logger.info(f"Card swiped: {payload.get('uid')}")
        await self.relay.broadcast(events.NFC_SWIPE, payload)

    async def on_swipe_end(self, payload: Dict[str, Any]) -> None:
        logger.info(f"Card removed: {payload.get('uid')}")
        await self.relay.broadcast(events.NFC_SWIPE_END, payload)

    async def on_book_tag_scan(self, payload: Dict[str, Any]) -> None:
        logger.info(f"Book tag scanned: {payload.get('uid')}")
        await self.relay.broadcast(events.BOOK_TAG_SCANNED, payload)
