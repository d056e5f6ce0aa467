"""Positioning capabilities: Termux GPS access and trace recording/playback.

Every positioning source here offers the same interface, which is what
PositionSource consumes:

    is_supported() -> bool
    get_current_position(options) -> PositionSample   (raises PositionUnavailable)
    watch_position(on_update, on_error, options) -> handle
    clear_watch(handle)
"""

import itertools
import json
import queue
import shutil
import subprocess
import threading
import time
from datetime import datetime
from typing import Callable, Optional

from .config import CONFIG
from .errors import PositionErrorKind, PositionUnavailable
from .geo import haversine_distance
from .models import PositionOptions, PositionSample, Route


class TermuxGPS:
    """GPS access via Termux API"""

    def __init__(self, poll_interval: float = CONFIG["gps_poll_interval"],
                 command: str = "termux-location"):
        self.poll_interval = poll_interval
        self.command = command
        self.last_location: Optional[PositionSample] = None
        self.last_fix_time: Optional[float] = None
        self.consecutive_failures = 0
        self._watches: dict[int, threading.Event] = {}
        self._handles = itertools.count(1)

    def is_supported(self) -> bool:
        return shutil.which(self.command) is not None

    def get_current_position(self, options: Optional[PositionOptions] = None) -> PositionSample:
        """Get current location using termux-location"""
        options = options or PositionOptions()

        if (options.maximum_age_ms > 0 and self.last_location and self.last_fix_time and
                (time.time() - self.last_fix_time) * 1000 <= options.maximum_age_ms):
            return self.last_location

        provider = "gps" if options.enable_high_accuracy else "network"
        try:
            result = subprocess.run(
                [self.command, "-p", provider, "-r", "once"],
                capture_output=True,
                text=True,
                timeout=options.timeout_ms / 1000
            )
        except subprocess.TimeoutExpired:
            self.consecutive_failures += 1
            raise PositionUnavailable(PositionErrorKind.TIMEOUT)
        except FileNotFoundError:
            self.consecutive_failures += 1
            raise PositionUnavailable(PositionErrorKind.UNSUPPORTED)

        if result.returncode != 0:
            self.consecutive_failures += 1
            error_msg = result.stderr.strip() if result.stderr else ""
            if "permission" in error_msg.lower():
                raise PositionUnavailable(PositionErrorKind.PERMISSION_DENIED, error_msg)
            raise PositionUnavailable(PositionErrorKind.POSITION_UNAVAILABLE, error_msg or None)

        if not result.stdout or not result.stdout.strip():
            self.consecutive_failures += 1
            raise PositionUnavailable(PositionErrorKind.POSITION_UNAVAILABLE)

        try:
            location = PositionSample.from_dict(json.loads(result.stdout))
        except (json.JSONDecodeError, KeyError, TypeError, ValueError) as e:
            self.consecutive_failures += 1
            raise PositionUnavailable(
                PositionErrorKind.POSITION_UNAVAILABLE, f"Unreadable termux-location output: {e}"
            ) from e

        self.last_location = location
        self.last_fix_time = time.time()
        self.consecutive_failures = 0
        return location

    def watch_position(self, on_update: Callable, on_error: Callable,
                       options: Optional[PositionOptions] = None) -> int:
        """Poll termux-location on a background thread until cleared"""
        handle = next(self._handles)
        stop = threading.Event()
        self._watches[handle] = stop
        thread = threading.Thread(
            target=self._watch_loop,
            args=(stop, on_update, on_error, options),
            name=f"termux-watch-{handle}",
            daemon=True,
        )
        thread.start()
        return handle

    def _watch_loop(self, stop: threading.Event, on_update: Callable, on_error: Callable,
                    options: Optional[PositionOptions]):
        while not stop.is_set():
            try:
                sample = self.get_current_position(options)
            except PositionUnavailable as e:
                if not stop.is_set():
                    on_error(e)
            else:
                if not stop.is_set():
                    on_update(sample)
            stop.wait(self.poll_interval)

    def clear_watch(self, handle: int):
        stop = self._watches.pop(handle, None)
        if stop:
            stop.set()

    def get_status(self) -> str:
        """Get GPS status string"""
        if self.consecutive_failures == 0:
            acc = f", accuracy {self.last_location.accuracy:.0f}m" if self.last_location else ""
            return f"GPS OK{acc}"
        else:
            return f"GPS: {self.consecutive_failures} consecutive failures"


class GPSRecorder:
    """Records every fix and failure of another positioning source"""

    def __init__(self, source, record_path: str):
        self.source = source
        self.record_path = record_path
        self.trace: list[dict] = []
        self.start_time = time.time()

    def _record(self, location: Optional[PositionSample],
                error: Optional[PositionUnavailable] = None):
        entry = {
            "elapsed": time.time() - self.start_time,
            "timestamp": time.time(),
            "location": location.to_dict() if location else None,
        }
        if error:
            entry["error"] = error.to_dict()
        self.trace.append(entry)

    def is_supported(self) -> bool:
        return self.source.is_supported()

    def get_current_position(self, options: Optional[PositionOptions] = None) -> PositionSample:
        try:
            location = self.source.get_current_position(options)
        except PositionUnavailable as e:
            self._record(None, e)
            raise
        self._record(location)
        return location

    def watch_position(self, on_update: Callable, on_error: Callable,
                       options: Optional[PositionOptions] = None):
        def recorded_update(location: PositionSample):
            self._record(location)
            on_update(location)

        def recorded_error(error: PositionUnavailable):
            self._record(None, error)
            on_error(error)

        return self.source.watch_position(recorded_update, recorded_error, options)

    def clear_watch(self, handle):
        self.source.clear_watch(handle)

    def get_status(self) -> str:
        status = self.source.get_status() if hasattr(self.source, "get_status") else "unknown"
        return f"{status} (recording {len(self.trace)})"

    def save(self):
        """Save trace to file"""
        with open(self.record_path, "w") as f:
            json.dump({
                "recorded_at": datetime.now().isoformat(),
                "trace": self.trace
            }, f, indent=2)
        print(f"GPS trace saved to {self.record_path} ({len(self.trace)} entries)")


class QueuedPositioning:
    """Hands watch callbacks from adapter threads to the thread that drains.

    TermuxGPS polls on its own thread and BrowserGPS receives fixes on the
    WebSocket event loop. Wrapped in this class they only put fixes and
    errors on a queue; drain() then runs the callbacks on the caller's
    thread, so the navigation engine only ever runs on one thread.
    """

    def __init__(self, source):
        self.source = source
        self.events: queue.Queue = queue.Queue()

    def is_supported(self) -> bool:
        return self.source.is_supported()

    def get_current_position(self, options: Optional[PositionOptions] = None) -> PositionSample:
        return self.source.get_current_position(options)

    def watch_position(self, on_update: Callable, on_error: Callable,
                       options: Optional[PositionOptions] = None):
        return self.source.watch_position(
            lambda location: self.events.put((on_update, location)),
            lambda error: self.events.put((on_error, error)),
            options,
        )

    def clear_watch(self, handle):
        self.source.clear_watch(handle)

    def drain(self, timeout: float = 0.0) -> int:
        """Run queued callbacks on this thread. Returns how many ran.

        Waits up to timeout for the first event, then runs whatever else is
        already queued without waiting.
        """
        handled = 0
        wait = timeout
        while True:
            try:
                callback, value = self.events.get(timeout=wait) if wait > 0 else self.events.get_nowait()
            except queue.Empty:
                return handled
            callback(value)
            handled += 1
            wait = 0.0


class GPSPlayback:
    """Plays back a GPS trace, one entry per advance() call"""

    def __init__(self, trace: list[dict], speed: float = 1.0):
        self.trace = trace
        self.speed = speed
        self.index = 0
        self.consecutive_failures = 0
        self._watches: dict[int, tuple[Callable, Callable]] = {}
        self._handles = itertools.count(1)

    @classmethod
    def from_file(cls, playback_path: str, speed: float = 1.0) -> "GPSPlayback":
        with open(playback_path) as f:
            data = json.load(f)
        playback = cls(data["trace"], speed)
        print(f"Loaded GPS trace from {playback_path} ({len(playback.trace)} entries)")
        return playback

    @classmethod
    def from_route(cls, route: Route, speed: float = 1.0,
                   walking_speed: float = CONFIG["walking_speed"],
                   interval: float = 2.0, accuracy: float = 5.0) -> "GPSPlayback":
        """Simulate walking a route at constant speed, one fix per interval"""
        coords = list(route.coordinates)
        if not coords:
            return cls([], speed)

        step = walking_speed * interval
        trace = [cls._trace_entry(0.0, coords[0], accuracy)]
        elapsed = 0.0
        next_fix = step  # meters along the current segment
        for (lat1, lon1), (lat2, lon2) in zip(coords, coords[1:]):
            seg_len = haversine_distance(lat1, lon1, lat2, lon2)
            while next_fix <= seg_len:
                t = next_fix / seg_len
                elapsed += interval
                point = (lat1 + (lat2 - lat1) * t, lon1 + (lon2 - lon1) * t)
                trace.append(cls._trace_entry(elapsed, point, accuracy))
                next_fix += step
            next_fix -= seg_len
        last = trace[-1]["location"]
        if (last["lat"], last["lon"]) != tuple(coords[-1]):
            trace.append(cls._trace_entry(elapsed + interval, coords[-1], accuracy))
        return cls(trace, speed)

    @staticmethod
    def _trace_entry(elapsed: float, point: tuple[float, float], accuracy: float) -> dict:
        return {
            "elapsed": elapsed,
            "location": {"lat": point[0], "lon": point[1], "accuracy": accuracy},
        }

    def is_supported(self) -> bool:
        return True

    def _entry_location(self, entry: dict) -> PositionSample:
        if not entry.get("location"):
            error = entry.get("error") or {}
            raise PositionUnavailable.from_code(
                error.get("code", PositionErrorKind.POSITION_UNAVAILABLE), error.get("message")
            )
        return PositionSample.from_dict(entry["location"])

    def get_current_position(self, options: Optional[PositionOptions] = None) -> PositionSample:
        """Location at the playback cursor, without consuming it"""
        if not self.trace:
            raise PositionUnavailable(PositionErrorKind.POSITION_UNAVAILABLE, "Empty GPS trace")
        entry = self.trace[min(self.index, len(self.trace) - 1)]
        return self._entry_location(entry)

    def watch_position(self, on_update: Callable, on_error: Callable,
                       options: Optional[PositionOptions] = None) -> int:
        handle = next(self._handles)
        self._watches[handle] = (on_update, on_error)
        return handle

    def clear_watch(self, handle: int):
        self._watches.pop(handle, None)

    def advance(self):
        """Deliver the next trace entry to active watches; no-op once finished"""
        if self.is_finished():
            return

        entry = self.trace[self.index]
        self.index += 1
        try:
            location = self._entry_location(entry)
        except PositionUnavailable as e:
            self.consecutive_failures += 1
            for _, on_error in list(self._watches.values()):
                on_error(e)
        else:
            self.consecutive_failures = 0
            for on_update, _ in list(self._watches.values()):
                on_update(location)

    def get_poll_interval(self) -> float:
        """Get the interval to wait between polls based on trace timing and speed"""
        if self.index <= 0 or self.index >= len(self.trace):
            return CONFIG["gps_poll_interval"] / self.speed

        prev_elapsed = self.trace[self.index - 1].get("elapsed", 0)
        curr_elapsed = self.trace[self.index].get("elapsed", 0)
        delta = curr_elapsed - prev_elapsed

        # Apply speed multiplier and clamp to reasonable range
        interval = delta / self.speed
        return max(0.1, min(interval, 5.0))

    def is_finished(self) -> bool:
        return self.index >= len(self.trace)

    def get_status(self) -> str:
        status = f"Playback {self.index}/{len(self.trace)} at {self.speed:g}x"
        if self.consecutive_failures:
            status += f", {self.consecutive_failures} failed fixes"
        return status
