import pytest

from order_tracking.services.geo.estimator import (
    MIN_ESTIMATE_SECONDS,
    buffer_minutes,
    distance_km,
    estimated_seconds,
    format_countdown,
    is_valid_coordinate,
)

UNION_SQUARE = (40.7359, -73.9911)
EMPIRE_STATE = (40.7484, -73.9857)


def test_distance_is_symmetric():
    """Swapping the endpoints gives the same distance."""
    there = distance_km(*UNION_SQUARE, *EMPIRE_STATE)
    back = distance_km(*EMPIRE_STATE, *UNION_SQUARE)
    assert there == pytest.approx(back)


def test_distance_to_self_is_zero():
    assert distance_km(*EMPIRE_STATE, *EMPIRE_STATE) == pytest.approx(0.0)


def test_distance_matches_known_value():
    """Union Square to the Empire State Building is roughly 1.46 km."""
    assert distance_km(*UNION_SQUARE, *EMPIRE_STATE) == pytest.approx(1.46, abs=0.05)


def test_one_degree_of_latitude():
    assert distance_km(0.0, 0.0, 1.0, 0.0) == pytest.approx(111.19, abs=0.01)


@pytest.mark.parametrize(
    "latitude,longitude,valid",
    [
        (0, 0, True),
        (90, 180, True),
        (-90, -180, True),
        (90.01, 0, False),
        (0, -180.5, False),
    ],
)
def test_coordinate_ranges(latitude, longitude, valid):
    assert is_valid_coordinate(latitude, longitude) is valid


@pytest.mark.parametrize(
    "distance,minutes",
    [(0.0, 5), (1.99, 5), (2.0, 10), (4.99, 10), (5.0, 15), (42.0, 15)],
)
def test_buffer_steps(distance, minutes):
    assert buffer_minutes(distance) == minutes


def test_courier_1_4_km_away():
    """3 minutes of travel plus the 5 minute short-distance buffer."""
    seconds = estimated_seconds(1.4)
    assert seconds == 480
    assert format_countdown(seconds) == "8 minutes"


def test_zero_distance_still_has_travel_minute_and_buffer():
    assert estimated_seconds(0.0) == 360


def test_estimate_never_below_minimum():
    for distance in (0.0, 0.01, 0.5):
        assert estimated_seconds(distance) >= MIN_ESTIMATE_SECONDS


def test_estimate_is_monotonic_in_distance():
    distances = [0.0, 0.3, 1.0, 1.9, 2.0, 3.5, 5.0, 12.0, 40.0]
    estimates = [estimated_seconds(d) for d in distances]
    assert estimates == sorted(estimates)


def test_faster_courier_gets_shorter_estimate():
    assert estimated_seconds(10.0, speed_kmh=60) < estimated_seconds(10.0)


@pytest.mark.parametrize(
    "seconds,label",
    [
        (0, "arriving now"),
        (-5, "arriving now"),
        (1, "1 seconds remaining"),
        (60, "60 seconds remaining"),
        (61, "1:01 minutes"),
        (125, "2:05 minutes"),
        (300, "5:00 minutes"),
        (301, "5 minutes"),
        (480, "8 minutes"),
        (1800, "30 minutes"),
        (1801, "0 hours 30 minutes"),
        (3900, "1 hours 5 minutes"),
    ],
)
def test_countdown_labels(seconds, label):
    assert format_countdown(seconds) == label
