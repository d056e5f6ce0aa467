"""Walking routes from OpenRouteService with a straight-line fallback."""

from typing import Optional

import requests

from .config import CONFIG
from .errors import RouteRecalculationFailed
from .geo import haversine_distance, interpolate_line
from .logger import Logger
from .models import LatLng, Route

STRAIGHT_LINE_INSTRUCTIONS = (
    "Head towards your destination",
    "Proceed on the most direct path",
    "Continue straight",
    "You have arrived",
)

ORS_DEFAULT_INSTRUCTIONS = (
    "Head towards your destination",
    "Continue on the path",
    "You have arrived",
)


def straight_line_route(start: LatLng, end: LatLng) -> Route:
    """Direct route across campus when no routed path is available"""
    coordinates = interpolate_line(start.lat, start.lon, end.lat, end.lon,
                                   CONFIG["straight_line_segments"])
    distance = haversine_distance(start.lat, start.lon, end.lat, end.lon)
    return Route(
        coordinates=coordinates,
        distance=distance,
        duration=distance / CONFIG["walking_speed"],
        instructions=STRAIGHT_LINE_INSTRUCTIONS,
        is_real_route=False,
    )


class OpenRouteServiceClient:
    """foot-walking directions from api.openrouteservice.org"""

    def __init__(self, api_key: str, session: Optional[requests.Session] = None,
                 url: str = CONFIG["ors_url"], timeout: float = CONFIG["ors_timeout"]):
        self.api_key = api_key
        self.session = session or requests.Session()
        self.url = url
        self.timeout = timeout

    def fetch_route(self, start: LatLng, end: LatLng) -> Route:
        """Raises RouteRecalculationFailed when no route can be read"""
        body = {
            "coordinates": [[start.lon, start.lat], [end.lon, end.lat]],
            "instructions": True,
            "language": "en",
            "geometry_simplify": False,
            "continue_straight": False,
        }
        headers = {
            "Accept": "application/json, application/geo+json",
            "Authorization": self.api_key,
            "Content-Type": "application/json; charset=utf-8",
        }
        try:
            response = self.session.post(self.url, json=body, headers=headers, timeout=self.timeout)
            response.raise_for_status()
            data = response.json()
        except (requests.RequestException, ValueError) as e:
            raise RouteRecalculationFailed(f"OpenRouteService request failed: {e}") from e

        return self.parse_route(data)

    @staticmethod
    def parse_route(data: dict) -> Route:
        """Convert an ORS GeoJSON response into a Route"""
        features = data.get("features") or []
        if not features or not features[0].get("geometry"):
            raise RouteRecalculationFailed("OpenRouteService returned no route")

        feature = features[0]
        try:
            # GeoJSON is [lon, lat]
            coordinates = [(lat, lon) for lon, lat, *_ in feature["geometry"]["coordinates"]]
            segment = feature["properties"]["segments"][0]
            distance = float(segment["distance"])
            duration = float(segment["duration"])
        except (KeyError, IndexError, TypeError, ValueError) as e:
            raise RouteRecalculationFailed(f"Malformed OpenRouteService route: {e}") from e

        instructions = [step["instruction"] for step in segment.get("steps") or []
                        if step.get("instruction")]
        return Route(
            coordinates=coordinates,
            distance=distance,
            duration=duration,
            instructions=instructions or ORS_DEFAULT_INSTRUCTIONS,
            is_real_route=True,
        )


class WalkingRouteProvider:
    """Routed walking path when possible, straight line otherwise.

    Never fails: the synthesized route is returned whenever the routing
    service is not configured or does not answer. Callers tell the two apart
    with Route.is_real_route.
    """

    def __init__(self, api_key: Optional[str] = None, session: Optional[requests.Session] = None,
                 logger: Optional[Logger] = None):
        self.client = OpenRouteServiceClient(api_key, session) if api_key else None
        self.logger = logger

    def _log(self, message: str, data: Optional[dict] = None, level: str = "info"):
        if self.logger:
            self.logger.log(message, data, level)

    def fetch_walking_route(self, start: LatLng, end: LatLng) -> Optional[Route]:
        self._log("Getting walking route", {"from": start.to_dict(), "to": end.to_dict()})

        if self.client:
            try:
                route = self.client.fetch_route(start, end)
                self._log("Using real route", {"distance": route.distance, "steps": len(route.instructions)})
                return route
            except RouteRecalculationFailed as e:
                self._log("OpenRouteService failed", {"error": str(e)}, level="warning")

        self._log("No real routing available; using direct campus route")
        return straight_line_route(start, end)


def format_distance(meters: float) -> str:
    if meters < 1000:
        return f"{round(meters)}m"
    return f"{meters / 1000:.1f}km"


def format_duration(seconds: float) -> str:
    minutes = round(seconds / 60)
    if minutes < 60:
        return f"{minutes} min"
    hours, remaining = divmod(minutes, 60)
    return f"{hours}h {remaining}m"
