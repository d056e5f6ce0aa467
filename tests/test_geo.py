import pytest

from campusnav.geo import (
    bearing_between,
    bearing_to_compass,
    haversine_distance,
    interpolate_line,
    min_vertex_distance,
    retry_with_backoff,
)


def test_one_degree_of_latitude():
    assert haversine_distance(0, 0, 1, 0) == pytest.approx(111195, abs=1)


def test_distance_is_symmetric_and_zero_at_same_point():
    a = (26.8420, 75.5644)
    b = (26.8450, 75.5660)

    assert haversine_distance(*a, *b) == pytest.approx(haversine_distance(*b, *a))
    assert haversine_distance(*a, *a) == 0


@pytest.mark.parametrize("target, expected", [
    ((1, 0), 0),
    ((0, 1), 90),
    ((-1, 0), 180),
    ((0, -1), 270),
])
def test_bearing_cardinal_directions(target, expected):
    assert bearing_between(0, 0, *target) == pytest.approx(expected)


@pytest.mark.parametrize("bearing, compass", [
    (0, "north"), (44, "northeast"), (90, "east"), (200, "south"), (350, "north"),
])
def test_bearing_to_compass(bearing, compass):
    assert bearing_to_compass(bearing) == compass


def test_min_vertex_distance_uses_nearest_vertex():
    coords = [(26.8420, 75.5644), (26.8430, 75.5644), (26.8440, 75.5644)]

    assert min_vertex_distance(26.8431, 75.5644, coords) == pytest.approx(11.1, abs=0.1)


def test_min_vertex_distance_ignores_segments():
    # Midway between two vertices ~222 m apart, right on the line
    coords = [(26.8420, 75.5644), (26.8440, 75.5644)]

    assert min_vertex_distance(26.8430, 75.5644, coords) == pytest.approx(111.2, abs=0.5)


def test_min_vertex_distance_of_empty_polyline():
    assert min_vertex_distance(26.8430, 75.5644, []) == float("inf")


def test_interpolate_line_endpoints_and_spacing():
    points = interpolate_line(0.0, 0.0, 1.0, 2.0, 4)

    assert len(points) == 5
    assert points[0] == (0.0, 0.0)
    assert points[-1] == (1.0, 2.0)
    assert points[2] == pytest.approx((0.5, 1.0))


def test_retry_with_backoff_doubles_delay_until_success():
    sleeps = []
    results = iter([None, False, "fix"])

    result = retry_with_backoff(lambda: next(results), max_time=60, sleep=sleeps.append)

    assert result == "fix"
    assert sleeps == [1.0, 2.0]


def test_retry_with_backoff_gives_up():
    sleeps = []

    assert retry_with_backoff(lambda: None, max_time=0, sleep=sleeps.append) is None
    assert sleeps == []


def test_retry_with_backoff_retries_listed_exceptions(logger, log_messages):
    sleeps = []
    attempts = iter([ConnectionError("no fix"), ConnectionError("no fix"), None])

    def flaky():
        error = next(attempts)
        if error:
            raise error
        return "started"

    result = retry_with_backoff(flaky, max_time=60, description="navigation start",
                                retry_on=(ConnectionError,), logger=logger, sleep=sleeps.append)

    assert result == "started"
    assert sleeps == [1.0, 2.0]
    assert log_messages.count("navigation start attempt failed") == 2
    assert log_messages.count("Retrying navigation start") == 2


def test_retry_with_backoff_propagates_other_exceptions():
    def broken():
        raise KeyError("route")

    with pytest.raises(KeyError):
        retry_with_backoff(broken, max_time=60, retry_on=(ConnectionError,), sleep=lambda s: None)
