"""Tests for live tailing of the current event file"""

import json
import logging
import threading
import time

import pytest

from conftest import FakeStore
from shc2es.watch import FileTail, LiveTailer, TailState

PREFIX = "smart-home-events"


def event_line(i, device_id="dev1"):
    return json.dumps(
        {
            "@type": "DeviceServiceData",
            "time": f"2025-12-15T10:00:{i:02d}Z",
            "id": "HumidityLevel",
            "deviceId": device_id,
            "state": {"humidity": 40 + i},
        }
    ) + "\n"


def append(path, text):
    with open(path, "a", encoding="utf-8") as handle:
        handle.write(text)


class Clock:
    def __init__(self, day):
        self.day = day

    def __call__(self):
        return self.day


@pytest.fixture
def clock():
    return Clock("2025-12-15")


@pytest.fixture
def make_tailer(tmp_path, fake_store, registry, clock):
    tailers = []

    def factory(store=None, max_in_flight=4):
        tailer = LiveTailer(
            store or fake_store,
            tmp_path,
            PREFIX,
            registry=registry,
            poll_interval=0.01,
            max_in_flight=max_in_flight,
            today_fn=clock,
        )
        tailers.append(tailer)
        return tailer

    yield factory
    for tailer in tailers:
        tailer.close()


class TestFileTail:
    def test_from_end_skips_existing_content(self, tmp_path):
        path = tmp_path / "f.ndjson"
        path.write_text("old\n", encoding="utf-8")
        tail = FileTail(path, from_end=True)

        assert tail.read_new_lines() == []
        append(path, "new\n")
        assert tail.read_new_lines() == ["new"]

    def test_from_start(self, tmp_path):
        path = tmp_path / "f.ndjson"
        path.write_text("a\nb\n", encoding="utf-8")
        assert FileTail(path, from_end=False).read_new_lines() == ["a", "b"]

    def test_partial_line_is_held_back(self, tmp_path):
        path = tmp_path / "f.ndjson"
        path.write_text("", encoding="utf-8")
        tail = FileTail(path, from_end=False)

        append(path, '{"half":')
        assert tail.read_new_lines() == []
        append(path, ' true}\n')
        assert tail.read_new_lines() == ['{"half": true}']

    def test_truncation_restarts(self, tmp_path):
        path = tmp_path / "f.ndjson"
        path.write_text("first line\n", encoding="utf-8")
        tail = FileTail(path, from_end=True)

        path.write_text("x\n", encoding="utf-8")
        assert tail.read_new_lines() == ["x"]

    def test_removed_file_raises(self, tmp_path):
        path = tmp_path / "f.ndjson"
        path.write_text("", encoding="utf-8")
        tail = FileTail(path)
        path.unlink()
        with pytest.raises(FileNotFoundError):
            tail.read_new_lines()


class TestLiveTailer:
    def test_waits_for_missing_file(self, make_tailer, tmp_path):
        tailer = make_tailer()
        tailer.poll_once()

        assert tailer.state is TailState.WATCHING_FOR_FILE
        assert tailer.target_path == tmp_path / "events-2025-12-15.ndjson"
        assert tailer.index_name == "smart-home-events-2025-12-15"

    def test_skips_history_and_indexes_new_lines(self, make_tailer, fake_store, tmp_path):
        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text(event_line(1) + event_line(2), encoding="utf-8")
        tailer = make_tailer()

        tailer.poll_once()
        tailer.flush()
        assert tailer.state is TailState.TAILING
        assert fake_store.upsert_calls == []

        append(path, event_line(3))
        tailer.poll_once()
        tailer.flush()

        assert len(fake_store.upsert_calls) == 1
        index, doc_id, document = fake_store.upsert_calls[0]
        assert index == "smart-home-events-2025-12-15"
        assert doc_id == "DeviceServiceData-dev1-HumidityLevel-2025-12-15T10:00:03Z"
        assert document["device"]["name"] == "Bathroom Sensor"
        assert tailer.indexed == 1

    def test_file_created_later_is_read_from_start(self, make_tailer, fake_store, tmp_path):
        tailer = make_tailer()
        tailer.poll_once()

        (tmp_path / "events-2025-12-15.ndjson").write_text(
            event_line(1) + event_line(2), encoding="utf-8"
        )
        tailer.poll_once()
        tailer.flush()

        assert tailer.indexed == 2

    def test_partial_line_waits_for_newline(self, make_tailer, fake_store, tmp_path):
        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text("", encoding="utf-8")
        tailer = make_tailer()
        tailer.poll_once()

        line = event_line(1)
        append(path, line[:20])
        tailer.poll_once()
        tailer.flush()
        assert tailer.indexed == 0
        assert tailer.parse_errors == 0

        append(path, line[20:])
        tailer.poll_once()
        tailer.flush()
        assert tailer.indexed == 1

    def test_parse_errors_are_counted(self, make_tailer, fake_store, tmp_path):
        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text("", encoding="utf-8")
        tailer = make_tailer()
        tailer.poll_once()

        append(path, "{garbage\n" + event_line(1))
        tailer.poll_once()
        tailer.flush()

        assert tailer.parse_errors == 1
        assert tailer.indexed == 1

    def test_day_rollover_switches_file_and_index(self, make_tailer, fake_store, tmp_path, clock):
        today = tmp_path / "events-2025-12-15.ndjson"
        today.write_text("", encoding="utf-8")
        tailer = make_tailer()
        tailer.poll_once()

        append(today, event_line(1))
        clock.day = "2025-12-16"
        tomorrow = tmp_path / "events-2025-12-16.ndjson"
        tomorrow.write_text(event_line(2), encoding="utf-8")
        tailer.poll_once()
        tailer.flush()

        indices = [call[0] for call in fake_store.upsert_calls]
        assert sorted(indices) == [
            "smart-home-events-2025-12-15",
            "smart-home-events-2025-12-16",
        ]
        assert tailer.target_path == tomorrow
        assert tailer.state is TailState.TAILING

    def test_rotated_file_is_watched_again(self, make_tailer, tmp_path):
        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text("", encoding="utf-8")
        tailer = make_tailer()
        tailer.poll_once()

        path.unlink()
        tailer.poll_once()
        assert tailer.state is TailState.WATCHING_FOR_FILE

        path.write_text(event_line(1), encoding="utf-8")
        tailer.poll_once()
        tailer.flush()
        assert tailer.state is TailState.TAILING
        assert tailer.indexed == 1

    def test_store_failures_do_not_stop_tailing(self, make_tailer, tmp_path):
        store = FakeStore(unreachable=True)
        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text("", encoding="utf-8")
        tailer = make_tailer(store=store)
        tailer.poll_once()

        append(path, event_line(1) + event_line(2))
        tailer.poll_once()
        tailer.flush()

        assert tailer.failed == 2
        assert tailer.state is TailState.TAILING

    def test_in_flight_upserts_are_bounded(self, make_tailer, tmp_path):
        class SlowStore(FakeStore):
            def __init__(self):
                super().__init__()
                self.active = 0
                self.peak = 0
                self.gate = threading.Lock()

            def upsert(self, index, doc_id, document):
                with self.gate:
                    self.active += 1
                    self.peak = max(self.peak, self.active)
                time.sleep(0.01)
                with self.gate:
                    self.active -= 1
                return super().upsert(index, doc_id, document)

        store = SlowStore()
        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text("", encoding="utf-8")
        tailer = make_tailer(store=store, max_in_flight=2)
        tailer.poll_once()

        append(path, "".join(event_line(i) for i in range(10)))
        tailer.poll_once()
        tailer.flush()

        assert tailer.indexed == 10
        assert store.peak <= 2

    def test_thread_runs_until_stopped(self, make_tailer, fake_store, tmp_path):
        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text("", encoding="utf-8")
        tailer = make_tailer()
        tailer.start()

        deadline = time.time() + 5
        while tailer.state is not TailState.TAILING and time.time() < deadline:
            time.sleep(0.01)
        append(path, event_line(1))
        while tailer.indexed < 1 and time.time() < deadline:
            time.sleep(0.01)

        tailer.stop()
        tailer.join(timeout=5)

        assert not tailer.is_alive()
        assert tailer.state is TailState.STOPPED
        assert tailer.indexed == 1


class TestTailerErrors:
    def test_unexpected_store_error_is_logged_and_counted(self, make_tailer, tmp_path, caplog):
        class BrokenStore(FakeStore):
            def upsert(self, index, doc_id, document):
                raise ValueError("response body is not JSON")

        path = tmp_path / "events-2025-12-15.ndjson"
        path.write_text("", encoding="utf-8")
        tailer = make_tailer(store=BrokenStore())
        tailer.poll_once()

        append(path, event_line(1))
        with caplog.at_level(logging.ERROR, logger="shc2es"):
            tailer.poll_once()
            tailer.flush()

        assert tailer.failed == 1
        assert tailer.indexed == 0
        assert any("not JSON" in record.getMessage() for record in caplog.records)

    def test_unterminated_last_line_survives_rollover(self, make_tailer, fake_store, tmp_path, clock):
        today = tmp_path / "events-2025-12-15.ndjson"
        today.write_text("", encoding="utf-8")
        tailer = make_tailer()
        tailer.poll_once()

        append(today, event_line(1).rstrip("\n"))
        tailer.poll_once()
        tailer.flush()
        assert tailer.indexed == 0

        clock.day = "2025-12-16"
        tailer.poll_once()
        tailer.flush()

        assert tailer.indexed == 1
        assert fake_store.upsert_calls[0][0] == "smart-home-events-2025-12-15"


def test_take_pending(tmp_path):
    path = tmp_path / "f.ndjson"
    path.write_text("", encoding="utf-8")
    tail = FileTail(path, from_end=False)

    append(path, "done\npartial")
    assert tail.read_new_lines() == ["done"]
    assert tail.take_pending() == "partial"
    assert tail.take_pending() is None
