"""campusnav - Live walking navigation across campus with voice guidance."""

from .config import CONFIG
from .models import LatLng, PositionSample, PositionOptions, Route, NavigationState, VoiceSettings, Voice
from .errors import (
    NavigationError,
    PositionErrorKind,
    PositionUnavailable,
    LocationUnavailable,
    RouteRecalculationFailed,
)
from .logger import Logger
from .geo import (
    haversine_distance,
    bearing_between,
    bearing_to_compass,
    min_vertex_distance,
    interpolate_line,
    retry_with_backoff,
)
from .observers import Subscribers
from .filtering import SampleFilter
from .gps import TermuxGPS, GPSRecorder, GPSPlayback, QueuedPositioning
from .browser_gps import BrowserGPS
from .position_source import PositionSource
from .routing import (
    WalkingRouteProvider,
    OpenRouteServiceClient,
    straight_line_route,
    format_distance,
    format_duration,
)
from .audio import EspeakSpeech, Pyttsx3Speech, default_speech
from .voice import VoiceAnnouncer
from .navigation import NavigationEngine
from .app import CampusNavigator
from .__main__ import main

__all__ = [
    "CONFIG",
    "LatLng",
    "PositionSample",
    "PositionOptions",
    "Route",
    "NavigationState",
    "VoiceSettings",
    "Voice",
    "NavigationError",
    "PositionErrorKind",
    "PositionUnavailable",
    "LocationUnavailable",
    "RouteRecalculationFailed",
    "Logger",
    "haversine_distance",
    "bearing_between",
    "bearing_to_compass",
    "min_vertex_distance",
    "interpolate_line",
    "retry_with_backoff",
    "Subscribers",
    "SampleFilter",
    "TermuxGPS",
    "GPSRecorder",
    "GPSPlayback",
    "QueuedPositioning",
    "BrowserGPS",
    "PositionSource",
    "WalkingRouteProvider",
    "OpenRouteServiceClient",
    "straight_line_route",
    "format_distance",
    "format_duration",
    "EspeakSpeech",
    "Pyttsx3Speech",
    "default_speech",
    "VoiceAnnouncer",
    "NavigationEngine",
    "CampusNavigator",
    "main",
]
