"""Live ingestion: tail today's event file and upsert new events as they arrive.

The tailer polls the data directory. Today's date is recomputed on every
tick, so when the day rolls over the tail moves on to the new
``events-YYYY-MM-DD.ndjson`` file and its matching daily index.

Upserts run on a small thread pool. At most ``max_in_flight`` writes are
outstanding at any time; when the pool is saturated the tail loop blocks,
which throttles reading during bursts.
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor, wait
from enum import Enum
from pathlib import Path
from typing import Callable, Optional

from .errors import ParseError, StoreConnectionError, StoreRequestError
from .events import RawEvent
from .identity import generate_doc_id
from .registry import Registry
from .transform import transform_event
from .utils import event_filename, get_index_name, parse_line, utc_today

logger = logging.getLogger(__name__)


class TailState(Enum):
    IDLE = "idle"
    WATCHING_FOR_FILE = "watching_for_file"
    TAILING = "tailing"
    STOPPED = "stopped"


class FileTail:
    """Reads complete lines appended to a file since the previous read."""

    def __init__(self, path: Path, from_end: bool = True):
        self.path = Path(path)
        self.offset = self.path.stat().st_size if from_end else 0
        self._pending = b""

    def read_new_lines(self) -> list[str]:
        """
        Return lines completed since the last call.

        A trailing line without newline is held back until it is finished.
        If the file shrank (truncated or replaced), reading restarts at 0.

        Raises:
            OSError: If the file disappeared or cannot be read
        """
        size = self.path.stat().st_size
        if size < self.offset:
            logger.info(f"{self.path} was truncated, restarting from the beginning")
            self.offset = 0
            self._pending = b""
        if size == self.offset:
            return []

        with open(self.path, "rb") as handle:
            handle.seek(self.offset)
            chunk = handle.read(size - self.offset)
        self.offset += len(chunk)

        data = self._pending + chunk
        *complete, self._pending = data.split(b"\n")
        return [raw.decode("utf-8", errors="replace") for raw in complete]

    def take_pending(self) -> Optional[str]:
        """Return and clear the held-back unterminated line, if any."""
        if not self._pending.strip():
            self._pending = b""
            return None
        line = self._pending.decode("utf-8", errors="replace")
        self._pending = b""
        return line


class LiveTailer(threading.Thread):
    """Background watcher that tails the current day's event file."""

    def __init__(
        self,
        store,
        data_dir: Path,
        index_prefix: str,
        registry: Optional[Registry] = None,
        poll_interval: float = 1.0,
        max_in_flight: int = 8,
        today_fn: Optional[Callable[[], str]] = None,
    ):
        super().__init__(daemon=True, name="shc2es-tail")
        self.store = store
        self.data_dir = Path(data_dir)
        self.index_prefix = index_prefix
        self.registry = registry
        self.poll_interval = poll_interval
        self.today_fn = today_fn or utc_today
        self.state = TailState.IDLE

        self.current_day: Optional[str] = None
        self.index_name: Optional[str] = None
        self.target_path: Optional[Path] = None

        self.indexed = 0
        self.failed = 0
        self.parse_errors = 0

        self._tail: Optional[FileTail] = None
        self._startup = True
        self._stop_event = threading.Event()
        self._stats_lock = threading.Lock()
        self._slots = threading.BoundedSemaphore(max_in_flight)
        self._executor = ThreadPoolExecutor(
            max_workers=max_in_flight, thread_name_prefix="shc2es-upsert"
        )
        self._pending: set[Future] = set()

    def run(self) -> None:
        logger.info(
            f"Starting watch mode in {self.data_dir}. "
            "Watch mode active for real-time ingestion. Press Ctrl+C to stop."
        )
        while not self._stop_event.is_set():
            try:
                self.poll_once()
            except Exception as exc:
                logger.error(f"Watch error: {exc}", exc_info=True)
            self._stop_event.wait(self.poll_interval)
        self.close()

    def poll_once(self) -> None:
        """Check the date, (re)attach the tail if needed and process new lines."""
        day = self.today_fn()
        if day != self.current_day:
            self._retarget(day)

        if self._tail is None:
            self._attach()
        self._startup = False

        if self._tail is not None:
            self._drain_tail()

    def _retarget(self, day: str) -> None:
        if self._tail is not None:
            # Pick up whatever was appended to yesterday's file before switching
            self._drain_tail()
        if self._tail is not None:
            # Yesterday's file is complete, so an unterminated last line is final
            last_line = self._tail.take_pending()
            if last_line is not None:
                self._handle_line(last_line)
            logger.info(f"Stopped tailing {self._tail.path} (day rolled over to {day})")
            self._tail = None

        self.current_day = day
        self.index_name = get_index_name(self.index_prefix, day)
        self.target_path = self.data_dir / event_filename(day)
        self._set_state(TailState.WATCHING_FOR_FILE)
        logger.info(f"Watching for {self.target_path} -> {self.index_name}")

    def _attach(self) -> None:
        if not self.target_path.exists():
            return
        try:
            self._tail = FileTail(self.target_path, from_end=self._startup)
        except OSError as e:
            logger.error(f"Tail error for {self.target_path}: {e}")
            return
        self._set_state(TailState.TAILING)
        logger.info(f"Tailing {self.target_path} to index {self.index_name}")

    def _drain_tail(self) -> None:
        try:
            lines = self._tail.read_new_lines()
        except FileNotFoundError:
            logger.info(f"Stopped tailing {self._tail.path} (file removed or rotated)")
            self._tail = None
            self._set_state(TailState.WATCHING_FOR_FILE)
            return
        except OSError as e:
            logger.error(f"Tail error for {self._tail.path}: {e}")
            return

        for line in lines:
            if self._stop_event.is_set():
                break
            self._handle_line(line)

    def _handle_line(self, line: str) -> None:
        try:
            event = parse_line(line)
        except ParseError as e:
            with self._stats_lock:
                self.parse_errors += 1
            logger.error(f"{e} (line preview: {e.line_preview!r})")
            return
        if event is None:
            return
        self._dispatch(event, self.index_name)

    def _dispatch(self, event: RawEvent, index_name: str) -> None:
        self._slots.acquire()
        try:
            future = self._executor.submit(self._index_event, event, index_name)
        except RuntimeError:
            self._slots.release()
            raise
        with self._stats_lock:
            self._pending.add(future)
        future.add_done_callback(self._on_done)

    def _on_done(self, future: Future) -> None:
        with self._stats_lock:
            self._pending.discard(future)
        self._slots.release()

    def _index_event(self, event: RawEvent, index_name: str) -> None:
        doc_id = generate_doc_id(event)
        try:
            document = transform_event(event, self.registry).to_document()
            self.store.upsert(index_name, doc_id, document)
        except (StoreConnectionError, StoreRequestError) as e:
            with self._stats_lock:
                self.failed += 1
            logger.error(f"Failed to index event {doc_id}: {e}")
            return
        except Exception as e:
            with self._stats_lock:
                self.failed += 1
            logger.error(f"Unexpected error indexing event {doc_id}: {e}", exc_info=True)
            return

        with self._stats_lock:
            self.indexed += 1
        device_id = document.get("deviceId")
        suffix = f" from device {device_id}" if device_id else ""
        logger.debug(f"Indexed {event.event_type} event{suffix} to {index_name}")

    def flush(self, timeout: Optional[float] = None) -> None:
        """Wait for all dispatched upserts to finish."""
        with self._stats_lock:
            pending = list(self._pending)
        if pending:
            wait(pending, timeout=timeout)

    def stop(self) -> None:
        """Ask the watcher to stop; already-dispatched upserts still complete."""
        self._stop_event.set()

    def close(self) -> None:
        if self.state is TailState.STOPPED:
            return
        self._stop_event.set()
        self._executor.shutdown(wait=True)
        self._tail = None
        self._set_state(TailState.STOPPED)
        logger.info(
            f"Watch mode stopped: {self.indexed} indexed, {self.failed} failed, "
            f"{self.parse_errors} lines skipped"
        )

    def _set_state(self, state: TailState) -> None:
        if state is not self.state:
            logger.debug(f"Tail state {self.state.value} -> {state.value}")
            self.state = state
