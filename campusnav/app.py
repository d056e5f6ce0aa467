"""Main campusnav application: wires services and runs a navigation session."""

import time
from typing import Optional

from .config import CONFIG
from .errors import LocationUnavailable, PositionUnavailable
from .geo import bearing_between, bearing_to_compass, retry_with_backoff
from .gps import GPSPlayback, GPSRecorder, QueuedPositioning
from .logger import Logger
from .models import LatLng, NavigationState, PositionOptions, Route, VoiceSettings
from .navigation import NavigationEngine
from .position_source import PositionSource
from .routing import format_distance, format_duration, straight_line_route
from .voice import VoiceAnnouncer


class CampusNavigator:
    """Main application"""

    def __init__(self, positioning, route_provider, speech=None,
                 voice_settings: Optional[VoiceSettings] = None,
                 log_path: Optional[str] = None, announcement_callback=None):
        self.positioning = positioning
        self.route_provider = route_provider
        self.logger = Logger(log_path)
        self.announcer = VoiceAnnouncer(speech, voice_settings, self.logger,
                                        callback=announcement_callback)
        # Watch callbacks are queued and run on the thread that calls run()
        self.events = QueuedPositioning(positioning)
        self.position_source = PositionSource(self.events, logger=self.logger)
        self.engine = NavigationEngine(self.position_source, route_provider,
                                       self.announcer, self.logger)
        self.engine.on_state_change(self._print_state)
        self.start_time = 0.0

    def _print_state(self, state: Optional[NavigationState]):
        if state is None:
            print("Navigation ended")
            return

        flags = ""
        if state.recalculating_route:
            flags = " [recalculating]"
        elif state.is_off_route:
            flags = " [off route]"
        print(f"Step {min(state.current_step + 1, state.total_steps)}/{state.total_steps}: "
              f"{state.next_instruction} | {format_distance(state.remaining_distance)}, "
              f"{format_duration(state.remaining_time)}{flags} | {self.positioning.get_status()}")

    def plan_route(self, destination: LatLng) -> Route:
        """Route from a fresh fix to destination. Raises PositionUnavailable."""
        origin = self.position_source.get_current_position(PositionOptions(
            enable_high_accuracy=True,
            timeout_ms=CONFIG["start_fix_timeout"],
            maximum_age_ms=0,
        ))
        route = self.route_provider.fetch_walking_route(origin.to_latlng(), destination)
        if route is None:
            route = straight_line_route(origin.to_latlng(), destination)

        heading = bearing_to_compass(bearing_between(origin.lat, origin.lon,
                                                     destination.lat, destination.lon))
        print(f"Location: {origin.lat:.5f}, {origin.lon:.5f} (accuracy: {origin.accuracy:.0f}m)")
        print(f"Route: {format_distance(route.distance)}, {format_duration(route.duration)}, "
              f"{len(route.instructions)} steps, destination to the {heading}"
              f"{'' if route.is_real_route else ' (direct line)'}")
        return route

    def start(self, destination: LatLng, route: Optional[Route] = None) -> bool:
        """Start navigation, retrying with backoff while no fix is available"""

        def try_start():
            planned = route or self.plan_route(destination)
            self.engine.start_navigation(destination, planned)
            return True

        return bool(retry_with_backoff(
            try_start,
            max_time=CONFIG["start_retry_time"],
            initial_delay=1.0,
            max_delay=8.0,
            description="navigation start",
            retry_on=(LocationUnavailable, PositionUnavailable),
            logger=self.logger,
        ))

    def run(self, destination: LatLng, route: Optional[Route] = None):
        """Navigate to destination until arrival, end of playback or Ctrl+C"""

        print("\n=== Campus Navigation ===")
        print(f"Destination: {destination.lat:.5f}, {destination.lon:.5f}")
        if isinstance(self.positioning, GPSPlayback):
            print(f"Playback mode: {self.positioning.speed}x speed")
        print("Press Ctrl+C to stop\n")

        if not self.start(destination, route):
            print("Could not start navigation")
            self.announcer.announce("Could not get GPS location")
            self.logger.close()
            return

        self.start_time = time.time()
        try:
            while self.engine.is_navigating():
                if isinstance(self.positioning, GPSPlayback):
                    if self.positioning.is_finished():
                        print("\nPlayback finished")
                        self.logger.log("Playback finished")
                        break
                    self.positioning.advance()
                    self.events.drain()
                    time.sleep(self.positioning.get_poll_interval())
                else:
                    self.events.drain(timeout=CONFIG["loop_interval"])
        except KeyboardInterrupt:
            print("\nNavigation interrupted")
            self.logger.log("Navigation interrupted by user")
        finally:
            self.engine.stop_navigation()

            if isinstance(self.positioning, GPSRecorder):
                self.positioning.save()

            duration = time.time() - self.start_time
            self.logger.log("Navigation summary", {"duration": round(duration, 1)})
            print(f"Duration: {duration / 60:.1f} minutes")
            self.logger.close()
