"""Transformation of raw events into enriched store documents."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Optional

from .events import (
    TYPE_KEY,
    ClientEvent,
    DeviceEvent,
    DeviceServiceDataEvent,
    LightEvent,
    MessageEvent,
    RawEvent,
    RoomEvent,
    UnknownEvent,
)
from .metrics import Metric, extract_metric
from .registry import Registry

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DeviceField:
    name: str
    type: Optional[str] = None


@dataclass(frozen=True)
class RoomField:
    id: str
    name: str


@dataclass
class TransformedEvent:
    """Enriched event, ready to be written to the document store."""

    timestamp: str
    type: str
    id: Optional[str] = None
    device_id: Optional[str] = None
    path: Optional[str] = None
    device: Optional[DeviceField] = None
    room: Optional[RoomField] = None
    metric: Optional[Metric] = None

    def to_document(self) -> dict:
        """Render the store document, leaving out unset fields."""
        doc: dict[str, Any] = {"@timestamp": self.timestamp, TYPE_KEY: self.type}
        if self.id is not None:
            doc["id"] = self.id
        if self.device_id is not None:
            doc["deviceId"] = self.device_id
        if self.path is not None:
            doc["path"] = self.path
        if self.device is not None:
            device = {"name": self.device.name}
            if self.device.type:
                device["type"] = self.device.type
            doc["device"] = device
        if self.room is not None:
            doc["room"] = {"id": self.room.id, "name": self.room.name}
        if self.metric is not None:
            doc["metric"] = self.metric.to_dict()
        return doc


def _string_or_none(value: Any) -> Optional[str]:
    return value if isinstance(value, str) else None


def _enrich_device(
    device_id: Any, registry: Optional[Registry]
) -> tuple[Optional[DeviceField], Optional[RoomField]]:
    if registry is None:
        return None, None
    info = registry.get_device(device_id)
    if info is None:
        return None, None

    device = DeviceField(name=info.name, type=info.type or None)
    if not info.room_id:
        return device, None
    room_info = registry.get_room(info.room_id)
    if room_info is None:
        return device, None
    return device, RoomField(id=info.room_id, name=room_info.name)


def _enrich_room(room_id: Any, registry: Optional[Registry]) -> Optional[RoomField]:
    if registry is None:
        return None
    info = registry.get_room(room_id)
    if info is None:
        return None
    return RoomField(id=room_id, name=info.name)


def transform_event(event: RawEvent, registry: Optional[Registry] = None) -> TransformedEvent:
    """
    Transform a parsed event into an enriched document.

    Enrichment is best effort: when the registry is missing or has no entry
    for the event's device/room, the corresponding fields are left unset.

    Args:
        event: Parsed event
        registry: Registry snapshot for this run, or None

    Returns:
        TransformedEvent
    """
    result = TransformedEvent(
        timestamp=event.time,
        type=event.event_type,
        id=_string_or_none(event.id),
    )

    if isinstance(event, DeviceServiceDataEvent):
        result.device_id = _string_or_none(event.device_id)
        result.path = _string_or_none(event.path)
        result.device, result.room = _enrich_device(event.device_id, registry)
    elif isinstance(event, RoomEvent):
        result.room = _enrich_room(event.id, registry)
    elif isinstance(event, (DeviceEvent, MessageEvent, ClientEvent, LightEvent)):
        pass
    elif isinstance(event, UnknownEvent):
        logger.warning(
            f"Unknown event type encountered: {event.tag}. "
            "Indexing with basic field extraction only."
        )
        result.device_id = _string_or_none(event.device_id)
    else:
        raise TypeError(f"Unhandled event variant: {type(event).__name__}")

    metric = extract_metric(event)
    if metric is not None:
        result.metric = metric

    return result
