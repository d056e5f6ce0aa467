import pytest

from campusnav.filtering import SampleFilter
from campusnav.logger import Logger
from campusnav.models import LatLng, PositionSample, Route, Voice
from campusnav.navigation import NavigationEngine
from campusnav.position_source import PositionSource
from campusnav.voice import VoiceAnnouncer


# Route north along a campus walkway; vertices are ~111 m apart
ROUTE_COORDS = [
    (26.8420, 75.5644),
    (26.8430, 75.5644),
    (26.8440, 75.5644),
    (26.8450, 75.5644),
]
ROUTE_INSTRUCTIONS = ["Head north", "Continue past the library", "Arrive at the hostel"]
DESTINATION = LatLng(26.8450, 75.5644)


class FakeClock:
    def __init__(self, now: float = 1000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float):
        self.now += seconds


class FakePositioning:
    """Positioning capability driven by the test"""

    def __init__(self, fix=None, error=None, supported=True):
        self.fix = fix
        self.error = error
        self.supported = supported
        self.requests = []
        self.watches = {}
        self.watch_options = []
        self.cleared = []
        self._next_handle = 1

    def is_supported(self):
        return self.supported

    def get_status(self):
        return "Fake GPS"

    def get_current_position(self, options):
        self.requests.append(options)
        if self.error:
            raise self.error
        return self.fix

    def watch_position(self, on_update, on_error, options):
        handle = self._next_handle
        self._next_handle += 1
        self.watches[handle] = (on_update, on_error)
        self.watch_options.append(options)
        return handle

    def clear_watch(self, handle):
        self.watches.pop(handle, None)
        self.cleared.append(handle)

    def emit(self, sample):
        for on_update, _ in list(self.watches.values()):
            on_update(sample)

    def fail(self, error):
        for _, on_error in list(self.watches.values()):
            on_error(error)


class FakeSpeech:
    def __init__(self, voices=None):
        self.spoken = []
        self.calls = []
        self.cancels = 0
        self.voices = voices or [Voice(id="en-us", name="English", languages=("en-US",))]

    def speak(self, text, language="en-US", rate=1.0, pitch=1.0, volume=1.0):
        self.spoken.append(text)
        self.calls.append({"text": text, "language": language, "rate": rate,
                           "pitch": pitch, "volume": volume})

    def cancel(self):
        self.cancels += 1

    def list_voices(self):
        return list(self.voices)


class FakeRouteProvider:
    def __init__(self, route=None, error=None, on_fetch=None):
        self.route = route
        self.error = error
        self.on_fetch = on_fetch
        self.calls = []

    def fetch_walking_route(self, start, end):
        self.calls.append((start, end))
        if self.on_fetch:
            self.on_fetch()
        if self.error:
            raise self.error
        return self.route


def sample(lat, lon, accuracy=5.0, heading=None, speed=None):
    return PositionSample(lat=lat, lon=lon, accuracy=accuracy, heading=heading, speed=speed)


def campus_route(coords=None, instructions=None, is_real_route=True):
    return Route(
        coordinates=coords or ROUTE_COORDS,
        distance=333.0,
        duration=238.0,
        instructions=instructions or ROUTE_INSTRUCTIONS,
        is_real_route=is_real_route,
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def log_messages():
    return []


@pytest.fixture
def logger(log_messages):
    return Logger(echo=False, level="debug", callback=lambda message, data: log_messages.append(message))


@pytest.fixture
def positioning():
    return FakePositioning(fix=sample(*ROUTE_COORDS[0], accuracy=8.0))


@pytest.fixture
def source(positioning, logger, clock):
    # Pass-through filter so engine tests see exact positions
    passthrough = SampleFilter(smoothing_factor=1.0, reject_jump=100000)
    return PositionSource(positioning, sample_filter=passthrough, logger=logger, clock=clock)


@pytest.fixture
def speech():
    return FakeSpeech()


@pytest.fixture
def announcer(speech, logger):
    return VoiceAnnouncer(speech, logger=logger)


@pytest.fixture
def provider():
    return FakeRouteProvider()


@pytest.fixture
def engine(source, provider, announcer, logger, clock):
    return NavigationEngine(source, provider, announcer, logger=logger, clock=clock)


@pytest.fixture
def states(engine):
    received = []
    engine.on_state_change(received.append)
    return received
