"""
Envelope construction and parsing for the realtime channel.
"""

import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from pydantic import ValidationError

from chatsync.models.events import CHILD_EVENT_KINDS, ChildEvent, ChildEventEnvelope

logger = logging.getLogger(__name__)


def build_envelope(data: Any) -> dict[str, Any]:
    """Build a C2S envelope as a dict ready for Socket.IO emit."""
    return {
        "event_id": str(uuid.uuid4()),
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "payload": data,
    }


def parse_child_event(event: str, raw: Any) -> Optional[ChildEvent]:
    """Parse an S2C child event envelope. Returns None if invalid."""
    if event not in CHILD_EVENT_KINDS:
        return None
    try:
        envelope = ChildEventEnvelope.model_validate(raw)
    except ValidationError as e:
        logger.warning(f"Dropping invalid {event} envelope: {e}")
        return None
    payload = envelope.payload
    return ChildEvent(event, payload.collection, payload.key, payload.data)
