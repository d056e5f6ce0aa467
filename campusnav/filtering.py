"""Quality filtering and smoothing of raw positioning samples."""

from dataclasses import replace
from typing import Optional

from .config import CONFIG
from .geo import haversine_distance
from .models import PositionSample


class SampleFilter:
    """Rejects poor or implausible fixes and smooths the rest with an EMA.

    A sample is dropped when its accuracy is markedly worse than the
    established fix, or when it jumps further than the sample's own accuracy
    allows within a short interval (a GPS spike). Accepted samples are blended
    into the previous one so a walker's dot does not jitter.
    """

    def __init__(self, accuracy_threshold: float = CONFIG["accuracy_threshold"],
                 smoothing_factor: float = CONFIG["smoothing_factor"],
                 reject_jump: float = CONFIG["reject_jump"]):
        self.accuracy_threshold = accuracy_threshold
        self.smoothing_factor = smoothing_factor
        self.reject_jump = reject_jump

    def set_advanced_options(self, accuracy_threshold: Optional[float] = None,
                             smoothing_factor: Optional[float] = None,
                             reject_jump: Optional[float] = None):
        """Tune the filter at runtime, clamping to sane ranges"""
        if accuracy_threshold is not None:
            self.accuracy_threshold = max(5.0, accuracy_threshold)
        if smoothing_factor is not None:
            self.smoothing_factor = min(0.9, max(0.0, smoothing_factor))
        if reject_jump is not None:
            self.reject_jump = max(20.0, reject_jump)

    def apply(self, sample: PositionSample, previous: Optional[PositionSample],
              previous_timestamp: Optional[float], now: float) -> Optional[PositionSample]:
        """Return the accepted (possibly smoothed) sample, or None to drop it.

        Args:
            sample: The new raw reading
            previous: Last accepted sample, if any
            previous_timestamp: When previous was accepted (seconds)
            now: Current time (seconds)
        """
        if previous is None:
            return sample

        accuracy_limit = max(self.accuracy_threshold,
                             previous.accuracy + CONFIG["accuracy_degrade_margin"])
        if sample.accuracy > accuracy_limit:
            return None

        if previous_timestamp is not None:
            dt = max(CONFIG["min_sample_interval"], now - previous_timestamp)
            distance = haversine_distance(previous.lat, previous.lon, sample.lat, sample.lon)
            max_jump = self.reject_jump + (sample.accuracy or 0)
            if distance > max_jump and dt < CONFIG["spike_window"]:
                return None

        alpha = self.smoothing_factor
        return replace(
            sample,
            lat=previous.lat * (1 - alpha) + sample.lat * alpha,
            lon=previous.lon * (1 - alpha) + sample.lon * alpha,
            accuracy=min(previous.accuracy, sample.accuracy),
            heading=sample.heading if sample.heading is not None else previous.heading,
            speed=sample.speed if sample.speed is not None else previous.speed,
        )
