import asyncio

import httpx
import pytest

from order_tracking.core.exceptions import (
    ActorNotAuthorized,
    ConcurrentUpdate,
    InvalidState,
    InvalidTransition,
    NotFoundError,
    TransientFetchFailure,
)
from order_tracking.models import DeliveryStatus, OrderStatus, UserRole
from order_tracking.services.tracking import OrdersApiClient

ORDER = {"id": 7, "status": "pending"}


def run_with(handler, call):
    """Run ``call(client)`` against a client whose requests go to ``handler``."""

    async def scenario():
        async with OrdersApiClient(
            user_id=4,
            role=UserRole.CUSTOMER,
            base_url="http://orders.test",
            transport=httpx.MockTransport(handler),
        ) as client:
            return await call(client)

    return asyncio.run(scenario())


def test_identity_headers_are_sent():
    seen = {}

    def handler(request):
        seen["x-user-id"] = request.headers["X-User-Id"]
        seen["x-user-role"] = request.headers["X-User-Role"]
        seen["path"] = request.url.path
        return httpx.Response(200, json={"total": 1, "orders": [ORDER]})

    orders = run_with(handler, lambda client: client.list_my_orders())

    assert orders == [ORDER]
    assert seen["x-user-id"] == "4"
    assert seen["x-user-role"] == "customer"
    assert seen["path"] == "/api/orders/mine"


def test_fetch_order_picks_from_listing():
    def handler(request):
        return httpx.Response(200, json={"total": 2, "orders": [{"id": 9}, ORDER]})

    assert run_with(handler, lambda client: client.fetch_order(7)) == ORDER


def test_missing_order_is_transient():
    def handler(request):
        return httpx.Response(200, json={"total": 0, "orders": []})

    with pytest.raises(TransientFetchFailure):
        run_with(handler, lambda client: client.fetch_order(7))


def test_server_error_is_transient():
    def handler(request):
        return httpx.Response(503, json={"detail": "maintenance"})

    with pytest.raises(TransientFetchFailure) as excinfo:
        run_with(handler, lambda client: client.fetch_order(7))
    assert excinfo.value.status_code == 503


def test_network_error_is_transient():
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with pytest.raises(TransientFetchFailure):
        run_with(handler, lambda client: client.list_my_orders())


def test_malformed_listing_is_transient():
    def handler(request):
        return httpx.Response(200, text="<html>proxy error</html>")

    with pytest.raises(TransientFetchFailure):
        run_with(handler, lambda client: client.list_my_orders())


@pytest.mark.parametrize(
    "status,code,error_class",
    [
        (409, "invalid_transition", InvalidTransition),
        (403, "actor_not_authorized", ActorNotAuthorized),
        (409, "invalid_state", InvalidState),
        (409, "concurrent_update", ConcurrentUpdate),
    ],
)
def test_lifecycle_errors_are_rebuilt(status, code, error_class):
    def handler(request):
        return httpx.Response(status, json={"success": False, "error": code, "detail": "nope"})

    with pytest.raises(error_class) as excinfo:
        run_with(handler, lambda client: client.update_order_status(7, OrderStatus.PREPARING))
    assert str(excinfo.value) == "nope"


def test_not_found_is_rebuilt():
    def handler(request):
        return httpx.Response(404, json={"success": False, "error": "not_found", "detail": "gone"})

    with pytest.raises(NotFoundError):
        run_with(handler, lambda client: client.update_delivery_status(70, DeliveryStatus.ON_ROUTE))


def test_unexpected_error_raises_http_error():
    def handler(request):
        return httpx.Response(500, text="boom")

    with pytest.raises(httpx.HTTPStatusError):
        run_with(handler, lambda client: client.report_position(70, 40.74, -73.99))


def test_actions_send_json_bodies():
    bodies = []

    def handler(request):
        bodies.append((request.method, request.url.path, request.read()))
        return httpx.Response(200, json={"id": 70})

    async def actions(client):
        await client.assign_courier(7, 3)
        await client.update_delivery_status(70, "on_route")
        await client.report_position(70, 40.74, -73.99)

    run_with(handler, actions)

    assert [(method, path) for method, path, _ in bodies] == [
        ("POST", "/api/deliveries/assign"),
        ("PUT", "/api/deliveries/70/status"),
        ("PUT", "/api/deliveries/70/position"),
    ]
    assert b'"on_route"' in bodies[1][2]
