from __future__ import annotations

import threading

import pytest

from shc2es.errors import StoreConnectionError
from shc2es.registry import DeviceInfo, Registry, RoomInfo
from shc2es.store import BulkResult


class FakeStore:
    """In-memory stand-in for ElasticsearchStore."""

    def __init__(self, fail_ids=(), unreachable=False):
        self.indices: dict[str, dict[str, dict]] = {}
        self.bulk_calls = []
        self.upsert_calls = []
        self.pipelines = {}
        self.templates = {}
        self.fail_ids = set(fail_ids)
        self.unreachable = unreachable
        self.closed = False
        self._lock = threading.Lock()

    def _check(self):
        if self.unreachable:
            raise StoreConnectionError("Failed to connect to Elasticsearch at http://fake:9200")

    def ping(self):
        self._check()
        return {"version": {"number": "8.15.0"}}

    def bulk_upsert(self, items):
        self._check()
        items = list(items)
        self.bulk_calls.append(items)
        result = BulkResult(submitted=len(items))
        for item in items:
            if item.doc_id in self.fail_ids:
                result.errors.append(
                    {"_id": item.doc_id, "error": {"type": "mapper_parsing_exception"}}
                )
                continue
            with self._lock:
                self.indices.setdefault(item.index, {})[item.doc_id] = item.document
            result.indexed += 1
        return result

    def upsert(self, index, doc_id, document):
        self._check()
        with self._lock:
            self.upsert_calls.append((index, doc_id, document))
            self.indices.setdefault(index, {})[doc_id] = document
        return {"result": "created"}

    def put_pipeline(self, name, body):
        self._check()
        self.pipelines[name] = body
        return {"acknowledged": True}

    def put_index_template(self, name, body):
        self._check()
        self.templates[name] = body
        return {"acknowledged": True}

    def close(self):
        self.closed = True

    def all_ids(self):
        return [doc_id for docs in self.indices.values() for doc_id in docs]


@pytest.fixture
def fake_store():
    return FakeStore()


@pytest.fixture
def registry():
    return Registry(
        fetched_at="2025-12-15T10:00:00Z",
        devices={
            "dev1": DeviceInfo(name="Bathroom Sensor", room_id="hz_2", type="TWINGUARD"),
            "dev2": DeviceInfo(name="Hall Thermostat", room_id="hz_missing", type="TRV_GEN2"),
            "dev3": DeviceInfo(name="Loose Plug"),
        },
        rooms={
            "hz_1": RoomInfo(name="Living Room", icon_id="icon_room_living_room"),
            "hz_2": RoomInfo(name="Bathroom", icon_id="icon_room_bathroom"),
        },
    )
