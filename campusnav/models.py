"""Data classes for campusnav."""

from dataclasses import dataclass, asdict, field
from typing import Optional


@dataclass(frozen=True)
class LatLng:
    lat: float
    lon: float

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class PositionSample:
    """One positioning reading. accuracy is a radius in meters."""
    lat: float
    lon: float
    accuracy: float
    heading: Optional[float] = None  # degrees, 0 = north
    speed: Optional[float] = None  # m/s

    def to_dict(self) -> dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict) -> "PositionSample":
        """Build a sample from our own dicts or W3C/termux style coords"""
        lat = d["lat"] if "lat" in d else d["latitude"]
        if "lon" in d:
            lon = d["lon"]
        elif "lng" in d:
            lon = d["lng"]
        else:
            lon = d["longitude"]
        accuracy = d.get("accuracy")
        return cls(
            lat=float(lat),
            lon=float(lon),
            accuracy=float(accuracy) if accuracy is not None else 0.0,
            heading=d.get("heading", d.get("bearing")),
            speed=d.get("speed"),
        )

    def to_latlng(self) -> LatLng:
        return LatLng(self.lat, self.lon)


@dataclass(frozen=True)
class PositionOptions:
    enable_high_accuracy: bool = False
    timeout_ms: int = 60000
    maximum_age_ms: int = 5000


@dataclass(frozen=True)
class Route:
    """A walking route. Never mutated; recalculation replaces it."""
    coordinates: tuple[tuple[float, float], ...]  # (lat, lon) vertices
    distance: float  # meters
    duration: float  # seconds
    instructions: tuple[str, ...]
    is_real_route: bool

    def __post_init__(self):
        object.__setattr__(self, "coordinates", tuple(tuple(c) for c in self.coordinates))
        object.__setattr__(self, "instructions", tuple(self.instructions))


@dataclass
class NavigationState:
    """The active navigation session, owned by NavigationEngine"""
    is_navigating: bool
    current_step: int
    total_steps: int
    remaining_distance: float  # meters
    remaining_time: float  # seconds
    next_instruction: str
    current_location: Optional[PositionSample]
    destination: LatLng
    route: Route
    is_off_route: bool = False
    recalculating_route: bool = False
    generation: int = field(default=0, repr=False)


@dataclass
class VoiceSettings:
    enabled: bool = True
    language: str = "en-US"
    rate: float = 1.0
    pitch: float = 1.0
    volume: float = 0.8


@dataclass(frozen=True)
class Voice:
    id: str
    name: str
    languages: tuple[str, ...] = ()
