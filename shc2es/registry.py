"""Device and room registry used to enrich events with display names.

The registry is a JSON snapshot of the controller's devices and rooms::

    {
      "fetchedAt": "2025-12-15T10:00:00Z",
      "devices": {"hdm:ZigBee:001": {"name": "Thermostat", "roomId": "hz_1", "type": "TRV"}},
      "rooms": {"hz_1": {"name": "Living Room", "iconId": "icon_room_living_room"}}
    }

It is loaded once per run and never mutated afterwards.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from types import MappingProxyType
from typing import Any, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

REGISTRY_FILENAME = "device-registry.json"


@dataclass(frozen=True)
class DeviceInfo:
    name: str
    room_id: Optional[str] = None
    type: Optional[str] = None


@dataclass(frozen=True)
class RoomInfo:
    name: str
    icon_id: Optional[str] = None


@dataclass(frozen=True)
class Registry:
    """Read-only snapshot of device and room metadata."""

    fetched_at: str
    devices: Mapping[str, DeviceInfo] = field(default_factory=dict)
    rooms: Mapping[str, RoomInfo] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "devices", MappingProxyType(dict(self.devices)))
        object.__setattr__(self, "rooms", MappingProxyType(dict(self.rooms)))

    def get_device(self, device_id: Any) -> Optional[DeviceInfo]:
        if not isinstance(device_id, str):
            return None
        return self.devices.get(device_id)

    def get_room(self, room_id: Any) -> Optional[RoomInfo]:
        if not isinstance(room_id, str):
            return None
        return self.rooms.get(room_id)

    @classmethod
    def from_dict(cls, data: dict) -> "Registry":
        devices = {
            device_id: DeviceInfo(
                name=info["name"],
                room_id=info.get("roomId"),
                type=info.get("type"),
            )
            for device_id, info in (data.get("devices") or {}).items()
        }
        rooms = {
            room_id: RoomInfo(name=info["name"], icon_id=info.get("iconId"))
            for room_id, info in (data.get("rooms") or {}).items()
        }
        return cls(fetched_at=data.get("fetchedAt", ""), devices=devices, rooms=rooms)

    def to_dict(self) -> dict:
        devices = {}
        for device_id, info in self.devices.items():
            entry = {"name": info.name}
            if info.room_id is not None:
                entry["roomId"] = info.room_id
            if info.type is not None:
                entry["type"] = info.type
            devices[device_id] = entry
        rooms = {}
        for room_id, info in self.rooms.items():
            entry = {"name": info.name}
            if info.icon_id is not None:
                entry["iconId"] = info.icon_id
            rooms[room_id] = entry
        return {"fetchedAt": self.fetched_at, "devices": devices, "rooms": rooms}


def registry_path(data_dir: Path) -> Path:
    return Path(data_dir) / REGISTRY_FILENAME


def load_registry(path: Path) -> Optional[Registry]:
    """
    Load the registry snapshot from disk.

    A missing or unreadable file is not an error: events are then indexed
    without device/room names and a single warning is logged.

    Args:
        path: Path to device-registry.json

    Returns:
        Registry, or None if it could not be loaded
    """
    path = Path(path)
    if not path.exists():
        logger.warning(
            f"Registry file not found at {path}. "
            "Events will be indexed without device/room names."
        )
        return None

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
        registry = Registry.from_dict(data)
    except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
        logger.warning(
            f"Failed to load device registry from {path}: {e}. "
            "Events will be indexed without device/room names."
        )
        return None

    logger.info(
        f"Loaded device registry: {len(registry.devices)} devices, "
        f"{len(registry.rooms)} rooms (fetched at {registry.fetched_at})"
    )
    return registry


def build_registry(
    devices: Iterable[dict],
    rooms: Iterable[dict],
    fetched_at: Optional[str] = None,
) -> Registry:
    """
    Build a registry from the controller's device and room listings.

    Args:
        devices: Device records with ``id``, ``name``, ``roomId`` and ``deviceModel``
        rooms: Room records with ``id``, ``name`` and ``iconId``
        fetched_at: ISO timestamp of the listing (defaults to now, UTC)
    """
    room_map = {}
    for room in rooms:
        room_map[room["id"]] = RoomInfo(name=room["name"], icon_id=room.get("iconId"))
        logger.debug(f"Mapped room: {room['name']} ({room['id']})")

    device_map = {}
    for device in devices:
        device_map[device["id"]] = DeviceInfo(
            name=device["name"],
            room_id=device.get("roomId"),
            type=device.get("deviceModel"),
        )
        room_id = device.get("roomId")
        if room_id:
            room_name = room_map[room_id].name if room_id in room_map else "unknown room"
        else:
            room_name = "no room"
        logger.debug(f"Mapped device: {device['name']} ({device['id']}) in {room_name}")

    if fetched_at is None:
        fetched_at = datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")
    return Registry(fetched_at=fetched_at, devices=device_map, rooms=room_map)


def save_registry(registry: Registry, path: Path) -> None:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(registry.to_dict(), indent=2), encoding="utf-8")
    logger.info(
        f"Registry saved to {path}: {len(registry.devices)} devices, {len(registry.rooms)} rooms"
    )
