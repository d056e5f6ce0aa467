"""Filtered position stream on top of a platform positioning capability."""

import itertools
import time
from functools import partial
from typing import Callable, Optional

from .config import CONFIG
from .errors import PositionErrorKind, PositionUnavailable
from .filtering import SampleFilter
from .logger import Logger
from .models import PositionOptions, PositionSample
from .observers import Subscribers


def default_position_options() -> PositionOptions:
    return PositionOptions(
        enable_high_accuracy=False,
        timeout_ms=CONFIG["default_position_timeout"],
        maximum_age_ms=CONFIG["default_position_max_age"],
    )


class PositionSource:
    """Single-shot fixes and one shared continuous watch, both filtered.

    Several consumers (a location display, the navigation engine) subscribe
    to the same watch instead of each starting their own.
    """

    def __init__(self, positioning=None, sample_filter: Optional[SampleFilter] = None,
                 logger: Optional[Logger] = None, clock: Callable[[], float] = time.time):
        self.positioning = positioning
        self.sample_filter = sample_filter or SampleFilter()
        self.logger = logger
        self.clock = clock

        self._updates = Subscribers("Location update", logger)
        self._errors = Subscribers("Location error", logger)
        self._last_location: Optional[PositionSample] = None
        self._last_update: Optional[float] = None

        self._watch_handle = None
        self._watch_token: Optional[int] = None
        self._watch_tokens = itertools.count(1)

    def _log(self, message: str, data: Optional[dict] = None, level: str = "info"):
        if self.logger:
            self.logger.log(message, data, level)

    def is_supported(self) -> bool:
        return self.positioning is not None and self.positioning.is_supported()

    def get_current_position(self, options: Optional[PositionOptions] = None) -> PositionSample:
        """Fetch one fix. Raises PositionUnavailable.

        The fix is filtered against the last known location; if the filter
        rejects it the raw fix is returned instead. Watch subscribers are not
        notified.
        """
        if not self.is_supported():
            raise PositionUnavailable(PositionErrorKind.UNSUPPORTED)

        raw = self.positioning.get_current_position(options or default_position_options())
        now = self.clock()
        filtered = self.sample_filter.apply(raw, self._last_location, self._last_update, now)
        location = filtered if filtered is not None else raw
        self._accept(location, now)
        return location

    def start_watching(self, options: Optional[PositionOptions] = None):
        """Start the continuous watch, replacing any active one"""
        if not self.is_supported():
            self._log("Positioning not supported, cannot start watching", level="warning")
            return

        if self._watch_handle is not None:
            self.stop_watching()

        token = next(self._watch_tokens)
        self._watch_token = token
        self._watch_handle = self.positioning.watch_position(
            partial(self._handle_position, token),
            partial(self._handle_error, token),
            options or default_position_options(),
        )
        self._log("Started watching position", {"handle": self._watch_handle})

    def stop_watching(self):
        if self._watch_handle is None:
            return
        self.positioning.clear_watch(self._watch_handle)
        self._log("Stopped watching position", {"handle": self._watch_handle})
        self._watch_handle = None
        self._watch_token = None

    def is_watching(self) -> bool:
        return self._watch_handle is not None

    def on_location_update(self, callback: Callable[[PositionSample], None]) -> Callable[[], None]:
        return self._updates.add(callback)

    def on_location_error(self, callback: Callable[[PositionUnavailable], None]) -> Callable[[], None]:
        return self._errors.add(callback)

    def get_last_known_location(self) -> Optional[PositionSample]:
        return self._last_location

    def get_last_update_timestamp(self) -> Optional[float]:
        return self._last_update

    def set_advanced_options(self, **options):
        self.sample_filter.set_advanced_options(**options)

    def _accept(self, location: PositionSample, now: float):
        self._last_location = location
        self._last_update = now

    def _handle_position(self, token: int, raw: PositionSample):
        # Fixes from a watch that has since been replaced or cleared
        if token != self._watch_token:
            return

        now = self.clock()
        filtered = self.sample_filter.apply(raw, self._last_location, self._last_update, now)
        if filtered is None:
            self._log("Dropped GPS sample", {"lat": raw.lat, "lon": raw.lon, "accuracy": raw.accuracy},
                      level="debug")
            return

        self._accept(filtered, now)
        self._updates.broadcast(filtered)

    def _handle_error(self, token: int, error: PositionUnavailable):
        if token != self._watch_token:
            return
        self._log("GPS error", error.to_dict(), level="warning")
        self._errors.broadcast(error)
