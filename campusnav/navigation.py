"""Live turn-by-turn navigation along a walking route."""

import itertools
import time
from dataclasses import replace
from typing import Callable, Optional

from .config import CONFIG
from .errors import LocationUnavailable, PositionUnavailable, RouteRecalculationFailed
from .geo import haversine_distance, min_vertex_distance
from .logger import Logger
from .models import LatLng, NavigationState, PositionOptions, PositionSample, Route, Voice, VoiceSettings
from .observers import Subscribers
from .position_source import PositionSource
from .voice import VoiceAnnouncer


class NavigationEngine:
    """Owns the single navigation session and drives it from GPS updates.

    Idle until start_navigation(); then every accepted location update runs
    the off-route check, the progress update and the step check, and ends
    with a snapshot broadcast to state subscribers. Subscribers receive None
    when the session ends.
    """

    def __init__(self, position_source: PositionSource, route_provider,
                 announcer: VoiceAnnouncer, logger: Optional[Logger] = None,
                 clock: Callable[[], float] = time.time):
        self.position_source = position_source
        self.route_provider = route_provider
        self.announcer = announcer
        self.logger = logger
        self.clock = clock

        self._state: Optional[NavigationState] = None
        self._subscribers = Subscribers("Navigation state", logger)
        self._last_announced_step = -1
        self._generations = itertools.count(1)
        self._unsubscribers: list[Callable[[], None]] = []

    def _log(self, message: str, data: Optional[dict] = None, level: str = "info"):
        if self.logger:
            self.logger.log(message, data, level)

    def _set_log_session(self, generation: Optional[int]):
        # Tag every log line with the session it belongs to
        if self.logger:
            self.logger.set_context(session=generation)

    # Session lifecycle

    def start_navigation(self, destination: LatLng, route: Route):
        """Begin navigating to destination along route.

        Raises LocationUnavailable if no starting fix can be resolved; the
        engine is left idle in that case.
        """
        if self._state is not None:
            self._discard_session()

        location = self._resolve_start_location()

        instructions = route.instructions
        self._state = NavigationState(
            is_navigating=True,
            current_step=0,
            total_steps=len(instructions),
            remaining_distance=route.distance,
            remaining_time=route.duration,
            next_instruction=instructions[0] if instructions else CONFIG["default_instruction"],
            current_location=location,
            destination=destination,
            route=route,
            generation=next(self._generations),
        )
        self._last_announced_step = -1
        self._set_log_session(self._state.generation)

        # Share an existing watch rather than restarting it
        if not self.position_source.is_watching():
            self.position_source.start_watching(PositionOptions(
                enable_high_accuracy=False,
                timeout_ms=CONFIG["watch_timeout"],
                maximum_age_ms=CONFIG["watch_max_age"],
            ))

        self._unsubscribers = [
            self.position_source.on_location_update(self._handle_location_update),
            self.position_source.on_location_error(self._handle_location_error),
        ]

        self.announcer.announce("Navigation started. " + self._state.next_instruction)
        self._log("Navigation started", {
            "destination": destination.to_dict(),
            "steps": self._state.total_steps,
            "distance": round(route.distance, 1),
            "real_route": route.is_real_route,
        })
        self._notify()

    def _resolve_start_location(self) -> PositionSample:
        last = self.position_source.get_last_known_location()
        last_update = self.position_source.get_last_update_timestamp()
        if (last is not None and last_update is not None and
                self.clock() - last_update < CONFIG["cached_fix_max_age"]):
            self._log("Using recent cached location to start navigation")
            return last

        self._log("Location is stale or missing, fetching fresh position")
        try:
            return self.position_source.get_current_position(PositionOptions(
                enable_high_accuracy=True,
                timeout_ms=CONFIG["start_fix_timeout"],
                maximum_age_ms=0,
            ))
        except PositionUnavailable as e:
            self._log("Failed to start navigation", e.to_dict(), level="warning")
            raise LocationUnavailable(f"Could not determine starting location: {e.message}") from e

    def stop_navigation(self):
        """End the session. Does nothing when idle."""
        if self._state is None:
            return

        self.position_source.stop_watching()
        self._state.is_navigating = False
        self.announcer.announce("Navigation stopped")
        self._end_session()
        self._log("Navigation stopped")
        self._set_log_session(None)
        self._subscribers.broadcast(None)

    def _discard_session(self):
        """Drop the active session without stopping the shared watch"""
        self._log("Replacing active navigation session")
        self._end_session()
        self._set_log_session(None)
        self._subscribers.broadcast(None)

    def _end_session(self):
        for unsubscribe in self._unsubscribers:
            unsubscribe()
        self._unsubscribers = []
        self._state = None
        self._last_announced_step = -1

    def _is_current(self, generation: int) -> bool:
        return self._state is not None and self._state.generation == generation

    # Location handling

    def _handle_location_update(self, location: PositionSample):
        state = self._state
        if state is None or not state.is_navigating:
            return

        state.current_location = location

        self._check_off_route(location)
        if self._state is not state:
            return

        if self._update_progress(location):
            self._handle_arrival()
            return

        self._check_step_completion(location)
        self._notify()

    def _handle_location_error(self, error: PositionUnavailable):
        # The session keeps its last location; retrying is up to the host
        self._log("Location error during navigation", error.to_dict(), level="warning")

    def _check_off_route(self, location: PositionSample):
        state = self._state
        if not state.route.coordinates:
            return

        distance = min_vertex_distance(location.lat, location.lon, state.route.coordinates)
        was_off_route = state.is_off_route
        state.is_off_route = distance > CONFIG["off_route_threshold"]

        if not was_off_route and state.is_off_route:
            self._log("Off route", {"distance": round(distance, 1)}, level="warning")
            self.announcer.announce("Off route. Recalculating...")
            self._recalculate_route(location)

    def _recalculate_route(self, location: PositionSample):
        state = self._state
        generation = state.generation
        state.recalculating_route = True
        self._notify()

        try:
            new_route = self.route_provider.fetch_walking_route(location.to_latlng(), state.destination)
            if new_route is None:
                raise RouteRecalculationFailed("Route provider returned no route")
        except Exception as e:
            new_route = None
            self._log("Failed to recalculate route", {"error": repr(e)}, level="error")

        # The session may have been stopped while the request was in flight
        if not self._is_current(generation):
            self._log("Discarding recalculation result for ended session")
            return

        if new_route is not None:
            self._apply_route(new_route)
            self.announcer.announce("Route recalculated. " + state.next_instruction)
            self._log("Route recalculated", {
                "steps": state.total_steps,
                "distance": round(new_route.distance, 1),
                "real_route": new_route.is_real_route,
            })
        else:
            self.announcer.announce("Unable to recalculate route. Continue to destination.")

        state.recalculating_route = False
        self._notify()

    def _apply_route(self, route: Route):
        state = self._state
        state.route = route
        state.current_step = 0
        state.total_steps = len(route.instructions)
        state.remaining_distance = route.distance
        state.remaining_time = route.duration
        state.next_instruction = route.instructions[0] if route.instructions else CONFIG["default_instruction"]
        state.is_off_route = False
        self._last_announced_step = -1

    def _update_progress(self, location: PositionSample) -> bool:
        """Update remaining distance/time. Returns True on arrival."""
        state = self._state
        # Straight-line distance to the destination, not along the route
        state.remaining_distance = haversine_distance(
            location.lat, location.lon, state.destination.lat, state.destination.lon
        )
        state.remaining_time = state.remaining_distance / CONFIG["walking_speed"]
        return state.remaining_distance < CONFIG["arrival_radius"]

    def _check_step_completion(self, location: PositionSample):
        state = self._state
        coordinates = state.route.coordinates
        if state.current_step >= state.total_steps - 1 or not coordinates:
            return

        next_index = min(state.current_step + 1, len(coordinates) - 1)
        lat, lon = coordinates[next_index]
        if haversine_distance(location.lat, location.lon, lat, lon) < CONFIG["step_advance_radius"]:
            self._advance_to_next_step()

    def _advance_to_next_step(self):
        state = self._state
        state.current_step += 1
        self._log("Advanced to step", {"step": state.current_step, "of": state.total_steps})

        if state.current_step < len(state.route.instructions):
            state.next_instruction = state.route.instructions[state.current_step]
            if state.current_step != self._last_announced_step:
                self.announcer.announce(state.next_instruction)
                self._last_announced_step = state.current_step

    def _handle_arrival(self):
        self._log("Arrived at destination", {"destination": self._state.destination.to_dict()})
        self.announcer.announce("You have arrived at your destination")
        self.stop_navigation()

    # State access

    def on_state_change(self, callback: Callable[[Optional[NavigationState]], None]) -> Callable[[], None]:
        return self._subscribers.add(callback)

    def _notify(self):
        if self._state is not None:
            self._subscribers.broadcast(self._snapshot())

    def _snapshot(self) -> NavigationState:
        # Route and samples are immutable, so a shallow copy is a full snapshot
        return replace(self._state)

    def get_navigation_state(self) -> Optional[NavigationState]:
        if self._state is None:
            return None
        return self._snapshot()

    def is_navigating(self) -> bool:
        return self._state is not None and self._state.is_navigating

    # Voice

    def update_voice_settings(self, **changes):
        self.announcer.update_voice_settings(**changes)

    def get_voice_settings(self) -> VoiceSettings:
        return self.announcer.get_voice_settings()

    def test_voice(self, message: str = CONFIG["default_test_message"]):
        self.announcer.test_voice(message)

    def get_available_voices(self) -> list[Voice]:
        return self.announcer.get_available_voices()
