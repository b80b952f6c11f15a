"""
backend/sessionbook/services/events.py

Notification sink: pushes events to a Redis queue for consumption by
whatever delivers e-mails / messages downstream.

- events:p2p: instant delivery (booking and account notifications)

Fire-and-forget: a failed push is logged and never raised, so a committed
booking or credit change is never rolled back by the notification channel.
"""

import json
import logging
import time

from ..redis_client import redis_client

logger = logging.getLogger(__name__)

P2P_QUEUE = "events:p2p"


def emit_event(event_type: str, payload: dict) -> None:
    """
    Emit a p2p event (instant delivery).

    Pushed to Redis list `events:p2p` for the consumer loop.
    """
    event = {
        "type": event_type,
        **payload,
        "ts": int(time.time()),
    }
    try:
        redis_client.rpush(P2P_QUEUE, json.dumps(event, default=str))
        logger.info(f"Event emitted: {event_type} → {P2P_QUEUE}")
    except Exception as e:
        logger.error(f"Failed to emit event {event_type}: {e}")
