"""Extraction of a single normalized sensor reading from an event."""

from __future__ import annotations

import logging
import math
import re
from dataclasses import asdict, dataclass
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

logger = logging.getLogger(__name__)

_LEADING_NUMBER = re.compile(r"\s*[+-]?(\d+\.?\d*|\.\d+)([eE][+-]?\d+)?")


@dataclass(frozen=True)
class Metric:
    """Normalized reading, e.g. ``Metric("humidity", 42.71)``."""

    name: str
    value: float

    def to_dict(self) -> dict:
        return asdict(self)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _parse_finite(value: Any) -> Optional[float]:
    """Leading decimal number of ``str(value)``, so "39.8 %" reads as 39.8."""
    match = _LEADING_NUMBER.match(str(value))
    if not match:
        return None
    number = float(match.group(0))
    return number if math.isfinite(number) else None


def extract_metric(event: RawEvent) -> Optional[Metric]:
    """
    Pull the first numeric reading out of an event.

    Only the first matching entry (in the order the payload was received) is
    returned; further numeric entries are ignored.

    Args:
        event: Parsed event

    Returns:
        Metric, or None when the event carries no measurement
    """
    if isinstance(event, DeviceServiceDataEvent):
        for key, value in event.state.items():
            if key != TYPE_KEY and _is_number(value):
                return Metric(name=key, value=value)
        return None

    if isinstance(event, RoomEvent):
        for key, value in event.ext_properties.items():
            number = _parse_finite(value)
            if number is not None:
                return Metric(name=key, value=number)
        return None

    if isinstance(event, (DeviceEvent, MessageEvent, ClientEvent, LightEvent)):
        return None

    if isinstance(event, UnknownEvent):
        logger.warning(f"Unknown event type encountered in extract_metric: {event.tag}")
        return None

    raise TypeError(f"Unhandled event variant: {type(event).__name__}")
