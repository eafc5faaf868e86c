"""Event model for smart home controller events.

Every line in an event log is one JSON object carrying an ``@type`` tag and a
``time`` stamp. Known tags map onto the dataclasses below; anything else is
kept as an ``UnknownEvent`` so the payload is never dropped.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, ClassVar, Optional, Union

from .errors import ParseError

TYPE_KEY = "@type"
TIME_KEY = "time"


@dataclass(frozen=True)
class BaseEvent:
    """Fields shared by every event variant."""

    time: str
    raw: dict = field(default_factory=dict, repr=False, compare=False)

    type_tag: ClassVar[str] = ""

    @property
    def event_type(self) -> str:
        return self.type_tag


@dataclass(frozen=True)
class DeviceServiceDataEvent(BaseEvent):
    """Sensor reading or state update of a single device service."""

    id: Any = None
    device_id: Any = None
    path: Optional[str] = None
    state: dict = field(default_factory=dict)

    type_tag: ClassVar[str] = "DeviceServiceData"


@dataclass(frozen=True)
class DeviceEvent(BaseEvent):
    id: Any = None
    name: Optional[str] = None
    device_model: Optional[str] = None
    room_id: Optional[str] = None

    type_tag: ClassVar[str] = "device"


@dataclass(frozen=True)
class RoomEvent(BaseEvent):
    id: Any = None
    name: Optional[str] = None
    icon_id: Optional[str] = None
    ext_properties: dict = field(default_factory=dict)

    type_tag: ClassVar[str] = "room"


@dataclass(frozen=True)
class MessageEvent(BaseEvent):
    id: Any = None
    source_id: Optional[str] = None
    source_name: Optional[str] = None
    message_code: dict = field(default_factory=dict)

    type_tag: ClassVar[str] = "message"


@dataclass(frozen=True)
class ClientEvent(BaseEvent):
    id: Any = None
    name: Optional[str] = None
    client_type: Optional[str] = None

    type_tag: ClassVar[str] = "client"


@dataclass(frozen=True)
class LightEvent(BaseEvent):
    id: Any = None
    name: Optional[str] = None

    type_tag: ClassVar[str] = "light"


@dataclass(frozen=True)
class UnknownEvent(BaseEvent):
    """Event whose ``@type`` is not one of the known variants."""

    tag: str = ""

    @property
    def event_type(self) -> str:
        return self.tag

    @property
    def id(self) -> Any:
        return self.raw.get("id")

    @property
    def device_id(self) -> Any:
        return self.raw.get("deviceId")


KnownEvent = Union[
    DeviceServiceDataEvent,
    DeviceEvent,
    RoomEvent,
    MessageEvent,
    ClientEvent,
    LightEvent,
]
RawEvent = Union[KnownEvent, UnknownEvent]

KNOWN_EVENT_CLASSES: tuple[type, ...] = (
    DeviceServiceDataEvent,
    DeviceEvent,
    RoomEvent,
    MessageEvent,
    ClientEvent,
    LightEvent,
)
EVENT_CLASSES_BY_TAG = {cls.type_tag: cls for cls in KNOWN_EVENT_CLASSES}


def is_known_event(event: RawEvent) -> bool:
    return not isinstance(event, UnknownEvent)


def _as_dict(value: Any) -> dict:
    return value if isinstance(value, dict) else {}


def parse_event(record: Any) -> RawEvent:
    """
    Build a typed event from a decoded JSON object.

    Args:
        record: Decoded JSON value of a single log line

    Returns:
        One of the known event variants, or ``UnknownEvent``

    Raises:
        ParseError: If the envelope (``time`` and ``@type``) is missing or malformed
    """
    if not isinstance(record, dict):
        raise ParseError(f"Event must be a JSON object, got {type(record).__name__}")

    tag = record.get(TYPE_KEY)
    timestamp = record.get(TIME_KEY)
    if not isinstance(tag, str) or not tag:
        raise ParseError(f"Event is missing a string '{TYPE_KEY}' field")
    if not isinstance(timestamp, str) or not timestamp:
        raise ParseError(f"Event is missing a string '{TIME_KEY}' field")

    cls = EVENT_CLASSES_BY_TAG.get(tag)
    if cls is None:
        return UnknownEvent(time=timestamp, raw=record, tag=tag)

    if cls is DeviceServiceDataEvent:
        return DeviceServiceDataEvent(
            time=timestamp,
            raw=record,
            id=record.get("id"),
            device_id=record.get("deviceId"),
            path=record.get("path"),
            state=_as_dict(record.get("state")),
        )
    if cls is DeviceEvent:
        return DeviceEvent(
            time=timestamp,
            raw=record,
            id=record.get("id"),
            name=record.get("name"),
            device_model=record.get("deviceModel"),
            room_id=record.get("roomId"),
        )
    if cls is RoomEvent:
        return RoomEvent(
            time=timestamp,
            raw=record,
            id=record.get("id"),
            name=record.get("name"),
            icon_id=record.get("iconId"),
            ext_properties=_as_dict(record.get("extProperties")),
        )
    if cls is MessageEvent:
        return MessageEvent(
            time=timestamp,
            raw=record,
            id=record.get("id"),
            source_id=record.get("sourceId"),
            source_name=record.get("sourceName"),
            message_code=_as_dict(record.get("messageCode")),
        )
    if cls is ClientEvent:
        return ClientEvent(
            time=timestamp,
            raw=record,
            id=record.get("id"),
            name=record.get("name"),
            client_type=record.get("clientType"),
        )
    if cls is LightEvent:
        return LightEvent(
            time=timestamp,
            raw=record,
            id=record.get("id"),
            name=record.get("name"),
        )
    raise TypeError(f"No parser for event variant {cls.__name__}")
