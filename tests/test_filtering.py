import pytest

from campusnav.filtering import SampleFilter
from campusnav.geo import haversine_distance

from conftest import sample

ORIGIN = sample(26.8430, 75.5644, accuracy=8.0, heading=10.0, speed=1.2)


def test_first_sample_is_accepted_unchanged():
    first = sample(26.8430, 75.5644, accuracy=70.0)

    assert SampleFilter().apply(first, None, None, now=0.0) is first


@pytest.mark.parametrize("previous_accuracy, accuracy, accepted", [
    (8.0, 90.0, False),   # worse than the 50 m floor and prev + 25
    (8.0, 50.0, True),    # exactly at the floor
    (8.0, 45.0, True),
    (40.0, 64.0, True),   # within prev + 25 even though above 50
    (40.0, 66.0, False),
])
def test_accuracy_degradation(previous_accuracy, accuracy, accepted):
    previous = sample(26.8430, 75.5644, accuracy=previous_accuracy)
    result = SampleFilter().apply(sample(26.8430, 75.5644, accuracy=accuracy),
                                  previous, previous_timestamp=0.0, now=10.0)

    assert (result is not None) == accepted


def test_spike_within_short_interval_is_rejected():
    far = sample(26.8450, 75.5644, accuracy=10.0)  # ~222 m away

    assert SampleFilter().apply(far, ORIGIN, previous_timestamp=100.0, now=102.0) is None


def test_same_jump_after_long_interval_is_accepted():
    far = sample(26.8450, 75.5644, accuracy=10.0)

    assert SampleFilter().apply(far, ORIGIN, previous_timestamp=100.0, now=105.0) is not None


def test_jump_allowance_grows_with_sample_accuracy():
    # ~155 m away: a spike at 10 m accuracy, plausible at 40 m
    target = (26.8444, 75.5644)
    f = SampleFilter()

    assert f.apply(sample(*target, accuracy=10.0), ORIGIN, 100.0, 101.0) is None
    assert f.apply(sample(*target, accuracy=40.0), ORIGIN, 100.0, 101.0) is not None


def test_smoothing_blends_position_and_keeps_best_accuracy():
    nxt = sample(26.8434, 75.5648, accuracy=12.0)

    result = SampleFilter().apply(nxt, ORIGIN, previous_timestamp=100.0, now=105.0)

    assert result.lat == pytest.approx(26.8430 * 0.75 + 26.8434 * 0.25)
    assert result.lon == pytest.approx(75.5644 * 0.75 + 75.5648 * 0.25)
    assert result.accuracy == 8.0


def test_heading_and_speed_fall_back_to_previous():
    result = SampleFilter().apply(sample(26.8431, 75.5644), ORIGIN, 100.0, 105.0)

    assert result.heading == 10.0
    assert result.speed == 1.2

    result = SampleFilter().apply(sample(26.8431, 75.5644, heading=90.0, speed=0.0), ORIGIN, 100.0, 105.0)

    assert result.heading == 90.0
    assert result.speed == 0.0


def test_repeated_sample_converges_without_overshoot():
    f = SampleFilter()
    target = sample(26.8432, 75.5646, accuracy=5.0)
    current = ORIGIN
    distances = []
    for i in range(16):
        current = f.apply(target, current, previous_timestamp=float(i), now=float(i + 1))
        distances.append(haversine_distance(current.lat, current.lon, target.lat, target.lon))

    assert distances == sorted(distances, reverse=True)
    assert distances[-1] < 1.0
    assert current.lat <= target.lat and current.lon <= target.lon


def test_advanced_options_are_clamped():
    f = SampleFilter()

    f.set_advanced_options(accuracy_threshold=1, smoothing_factor=2.0, reject_jump=5)

    assert f.accuracy_threshold == 5.0
    assert f.smoothing_factor == 0.9
    assert f.reject_jump == 20.0

    f.set_advanced_options(smoothing_factor=-1)

    assert f.smoothing_factor == 0.0
    assert f.reject_jump == 20.0
