from datetime import datetime, timezone

import pytest

from order_tracking.models import DeliveryStatus, OrderStatus
from order_tracking.services.geo import Position, distance_km, estimated_seconds
from order_tracking.services.tracking import DisplayState, TrackingSession, TrackingSnapshot

CONSUMER = Position(latitude=40.7484, longitude=-73.9857)
COURIER_NEARBY = (40.7359, -73.9911)
FROZEN_NOW = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def snapshot(
    sequence,
    order_status=OrderStatus.DELIVERING,
    delivery_status=DeliveryStatus.ON_ROUTE,
    courier=COURIER_NEARBY,
    consumer=CONSUMER,
    courier_id=3,
):
    latitude, longitude = courier if courier else (None, None)
    return TrackingSnapshot(
        order_id=7,
        order_status=order_status,
        delivery_id=70 if delivery_status else None,
        delivery_status=delivery_status,
        courier_id=courier_id,
        courier_latitude=latitude,
        courier_longitude=longitude,
        consumer_position=consumer,
        sequence=sequence,
    )


def expected_eta(courier=COURIER_NEARBY):
    return estimated_seconds(distance_km(*courier, CONSUMER.latitude, CONSUMER.longitude))


@pytest.fixture
def session():
    return TrackingSession(clock=lambda: FROZEN_NOW)


def test_new_session_waits_for_first_snapshot(session):
    display = session.display
    assert display.state == DisplayState.WAITING
    assert display.remaining_seconds is None
    assert not session.is_ticking


def test_on_route_snapshot_starts_countdown(session):
    assert session.on_snapshot_received(snapshot(1))

    display = session.display
    eta = expected_eta()
    assert display.state == DisplayState.TRACKING
    assert display.remaining_seconds == eta
    assert display.label == "8 minutes"
    assert session.last_computed_eta_seconds == eta
    assert session.ticking_since == FROZEN_NOW
    assert display.distance_km == pytest.approx(1.46, abs=0.05)


def test_tick_counts_down_by_one_second(session):
    session.on_snapshot_received(snapshot(1))
    for _ in range(3):
        session.tick()
    assert session.remaining_seconds == expected_eta() - 3


def test_countdown_floors_at_zero(session):
    session.on_snapshot_received(snapshot(1, courier=(CONSUMER.latitude, CONSUMER.longitude)))
    for _ in range(500):
        session.tick()

    assert session.remaining_seconds == 0
    assert session.display.label == "arriving now"


def test_fresh_snapshot_replaces_local_countdown(session):
    session.on_snapshot_received(snapshot(1))
    for _ in range(5):
        session.tick()

    closer = (40.7450, -73.9870)
    session.on_snapshot_received(snapshot(2, courier=closer))

    assert session.remaining_seconds == expected_eta(closer)
    assert session.last_computed_eta_seconds == expected_eta(closer)


def test_older_snapshot_is_discarded(session):
    """A slow response that lands after a newer one never overwrites it."""
    newer = snapshot(2, courier=(40.7450, -73.9870))
    older = snapshot(1)

    assert session.on_snapshot_received(newer)
    assert not session.on_snapshot_received(older)
    assert session.last_snapshot is newer
    assert session.remaining_seconds == expected_eta((40.7450, -73.9870))


def test_duplicate_sequence_is_discarded(session):
    session.on_snapshot_received(snapshot(1))
    assert not session.on_snapshot_received(snapshot(1, delivery_status=DeliveryStatus.DELIVERED))
    assert session.display.state == DisplayState.TRACKING


def test_delivered_stops_the_countdown(session):
    session.on_snapshot_received(snapshot(1))
    session.tick()

    session.on_snapshot_received(
        snapshot(2, order_status=OrderStatus.DELIVERED, delivery_status=DeliveryStatus.DELIVERED)
    )

    display = session.display
    assert display.state == DisplayState.COMPLETED
    assert display.label == "delivered"
    assert display.is_terminal
    assert not session.is_ticking

    session.tick()
    assert session.remaining_seconds is None


def test_nothing_is_applied_after_a_terminal_state(session):
    session.on_snapshot_received(
        snapshot(1, order_status=OrderStatus.DELIVERED, delivery_status=DeliveryStatus.DELIVERED)
    )
    assert not session.on_snapshot_received(snapshot(2))
    assert session.display.state == DisplayState.COMPLETED


def test_cancelled_order_ends_tracking(session):
    session.on_snapshot_received(snapshot(1))
    session.on_snapshot_received(snapshot(2, order_status=OrderStatus.CANCELLED))

    assert session.display.state == DisplayState.CANCELLED
    assert session.display.label == "order cancelled"
    assert session.is_terminal


def test_assigned_courier_awaits_pickup(session):
    session.on_snapshot_received(
        snapshot(1, order_status=OrderStatus.PREPARING, delivery_status=DeliveryStatus.ASSIGNED)
    )
    display = session.display
    assert display.state == DisplayState.AWAITING
    assert display.label == "assigned, awaiting pickup"
    assert display.remaining_seconds is None


def test_pending_delivery_with_courier_reads_as_assigned(session):
    session.on_snapshot_received(
        snapshot(1, order_status=OrderStatus.READY, delivery_status=DeliveryStatus.PENDING)
    )
    assert session.display.label == "assigned, awaiting pickup"


def test_ready_order_without_courier(session):
    session.on_snapshot_received(
        snapshot(
            1,
            order_status=OrderStatus.READY,
            delivery_status=DeliveryStatus.PENDING,
            courier=None,
            courier_id=None,
        )
    )
    assert session.display.label == "order is ready, waiting for a courier"


def test_order_without_delivery_shows_order_status(session):
    session.on_snapshot_received(
        snapshot(1, order_status=OrderStatus.PENDING, delivery_status=None, courier=None, courier_id=None)
    )
    assert session.display.state == DisplayState.AWAITING
    assert session.display.label == "order placed, waiting for the restaurant"


def test_on_route_without_consumer_position(session):
    session.on_snapshot_received(snapshot(1, consumer=None))

    assert session.display.state == DisplayState.AWAITING
    assert session.display.label == "courier on the way, locating"
    session.tick()
    assert session.remaining_seconds is None


def test_on_route_without_courier_position(session):
    session.on_snapshot_received(snapshot(1, courier=None))
    assert session.display.label == "courier on the way, locating"


def test_losing_positions_stops_the_countdown(session):
    session.on_snapshot_received(snapshot(1))
    session.on_snapshot_received(snapshot(2, consumer=None))

    assert not session.is_ticking
    assert session.display.state == DisplayState.AWAITING


def test_stale_flag_keeps_estimate_until_next_snapshot(session):
    session.on_snapshot_received(snapshot(1))
    session.tick()
    session.mark_stale()

    display = session.display
    assert display.stale
    assert display.state == DisplayState.TRACKING
    assert display.remaining_seconds == expected_eta() - 1

    session.on_snapshot_received(snapshot(2))
    assert not session.display.stale


def test_snapshot_from_api_payload():
    payload = {
        "id": 7,
        "customer_id": 4,
        "restaurant_id": 1,
        "order_type": "delivery",
        "status": "delivering",
        "total_price": 21.0,
        "items": [],
        "delivery": {
            "id": 70,
            "order_id": 7,
            "delivery_person_id": 3,
            "status": "on_route",
            "latitude": 40.7359,
            "longitude": -73.9911,
        },
    }
    snap = TrackingSnapshot.from_payload(payload, consumer_position=CONSUMER, sequence=4)

    assert snap.order_status == OrderStatus.DELIVERING
    assert snap.delivery_status == DeliveryStatus.ON_ROUTE
    assert snap.courier_id == 3
    assert snap.has_courier_position
    assert snap.sequence == 4
