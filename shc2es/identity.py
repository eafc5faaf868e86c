"""Deterministic document IDs for idempotent upserts.

Re-ingesting the same event always produces the same ID, so replays,
backfills and restarts overwrite instead of duplicating documents.
"""

from __future__ import annotations

import json
import logging
from typing import Any

from .events import (
    ClientEvent,
    DeviceEvent,
    DeviceServiceDataEvent,
    LightEvent,
    MessageEvent,
    RawEvent,
    RoomEvent,
    UnknownEvent,
)

logger = logging.getLogger(__name__)

SEPARATOR = "-"
PLACEHOLDER_ID = "unknown"


def _component(value: Any) -> str:
    if value is None:
        return PLACEHOLDER_ID
    if isinstance(value, str):
        return value
    return json.dumps(value, separators=(",", ":"), sort_keys=True)


def _fallback_id(event: UnknownEvent) -> Any:
    if event.id is not None:
        return event.id
    if event.device_id is not None:
        return event.device_id
    return PLACEHOLDER_ID


def generate_doc_id(event: RawEvent) -> str:
    """
    Build the document ID for an event.

    Formats:
        DeviceServiceData-<deviceId>-<serviceId>-<time>
        <type>-<id>-<time> for device, room, message, client and light
        <type>-<id|deviceId|unknown>-<time> for unknown types

    Args:
        event: Parsed event

    Returns:
        Document ID string
    """
    if isinstance(event, DeviceServiceDataEvent):
        parts = [event.event_type, event.device_id, event.id, event.time]
    elif isinstance(event, (DeviceEvent, RoomEvent, MessageEvent, ClientEvent, LightEvent)):
        parts = [event.event_type, event.id, event.time]
    elif isinstance(event, UnknownEvent):
        logger.warning(f"Unknown event type encountered in generate_doc_id: {event.tag}")
        parts = [event.event_type, _fallback_id(event), event.time]
    else:
        raise TypeError(f"Unhandled event variant: {type(event).__name__}")

    return SEPARATOR.join(_component(part) for part in parts)
