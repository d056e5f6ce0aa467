"""Geographic utility functions."""

import itertools
import math
import time
from typing import Iterable


def haversine_distance(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate distance between two points in meters using Haversine formula"""
    R = 6371000  # Earth's radius in meters

    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_phi = math.radians(lat2 - lat1)
    delta_lambda = math.radians(lon2 - lon1)

    a = (math.sin(delta_phi / 2) ** 2 +
         math.cos(phi1) * math.cos(phi2) * math.sin(delta_lambda / 2) ** 2)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return R * c


def bearing_between(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Calculate bearing from point 1 to point 2 in degrees (0-360, 0=North)"""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    delta_lambda = math.radians(lon2 - lon1)

    x = math.sin(delta_lambda) * math.cos(phi2)
    y = (math.cos(phi1) * math.sin(phi2) -
         math.sin(phi1) * math.cos(phi2) * math.cos(delta_lambda))

    bearing = math.degrees(math.atan2(x, y))
    return (bearing + 360) % 360


def bearing_to_compass(bearing: float) -> str:
    """Convert bearing to compass direction"""
    directions = ["north", "northeast", "east", "southeast",
                  "south", "southwest", "west", "northwest"]
    index = round(bearing / 45) % 8
    return directions[index]


def min_vertex_distance(lat: float, lon: float,
                        coordinates: Iterable[tuple[float, float]]) -> float:
    """Smallest distance from a point to any vertex of a polyline.

    Only vertices are considered, not the segments between them. Returns
    infinity for an empty polyline.
    """
    return min(
        (haversine_distance(lat, lon, c[0], c[1]) for c in coordinates),
        default=float("inf"),
    )


def interpolate_line(lat1: float, lon1: float, lat2: float, lon2: float,
                     segments: int) -> list[tuple[float, float]]:
    """Evenly spaced points from start to end inclusive (segments + 1 points)"""
    points = []
    for i in range(segments + 1):
        t = i / segments
        points.append((lat1 + (lat2 - lat1) * t, lon1 + (lon2 - lon1) * t))
    return points


def retry_with_backoff(func, max_time: float = 30.0, initial_delay: float = 1.0,
                       max_delay: float = 8.0, description: str = "operation",
                       retry_on: tuple = (), logger=None, sleep=time.sleep):
    """Retry a function with exponential backoff.

    Args:
        func: Function that returns a truthy value on success, falsy on failure
        max_time: Maximum total time to retry (seconds)
        initial_delay: Initial delay between retries (seconds)
        max_delay: Maximum delay between retries (seconds)
        description: Description for logging
        retry_on: Exception types that count as a failed attempt; others propagate
        logger: Logger for attempt failures and give-up; silent when None
        sleep: Sleep function, replaceable in tests

    Returns:
        The result of func() on success, or None if all retries failed
    """
    start_time = time.time()
    delay = initial_delay

    for attempt in itertools.count(1):
        try:
            result = func()
        except retry_on as e:
            result = None
            if logger:
                logger.warning(f"{description} attempt failed", {"attempt": attempt, "error": str(e)})
        if result:
            return result

        elapsed = time.time() - start_time
        if elapsed >= max_time:
            if logger:
                logger.error(f"Gave up on {description}",
                             {"attempts": attempt, "elapsed": round(elapsed, 1)})
            return None

        sleep_time = min(delay, max_time - elapsed, max_delay)
        if sleep_time > 0:
            if logger:
                logger.log(f"Retrying {description}", {"attempt": attempt, "delay": round(sleep_time, 1)})
            sleep(sleep_time)
        delay = min(delay * 2, max_delay)
