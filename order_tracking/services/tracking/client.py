"""
Orders API Client

Async HTTP client for the orders API. The tracker uses it to poll order
snapshots; courier and staff tooling uses it to drive transitions.

Fetches used for polling raise ``TransientFetchFailure`` on any network or
backend failure. Action calls re-raise the server's lifecycle errors as the
same exception classes the lifecycle uses locally.
"""

import logging
from typing import Any, Optional

import httpx

from order_tracking.core.config import get_settings
from order_tracking.core.exceptions import (
    LIFECYCLE_ERRORS_BY_CODE,
    NotFoundError,
    TransientFetchFailure,
)
from order_tracking.models import DeliveryStatus, OrderStatus, OrderType, UserRole

logger = logging.getLogger(__name__)


class OrdersApiClient:
    """
    Thin wrapper over the orders API for one authenticated actor.

    Example:
        >>> async with OrdersApiClient(user_id=7, role=UserRole.CUSTOMER) as client:
        ...     orders = await client.list_my_orders()
    """

    def __init__(
        self,
        *,
        user_id: int,
        role: UserRole,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        settings = get_settings()
        self.user_id = user_id
        self.role = role
        self._client = httpx.AsyncClient(
            base_url=base_url or settings.api_base_url,
            timeout=timeout or settings.http_timeout_seconds,
            headers={"X-User-Id": str(user_id), "X-User-Role": role.value},
            transport=transport,
        )

    async def __aenter__(self) -> "OrdersApiClient":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    # =========================================================================
    # POLLING
    # =========================================================================

    async def list_my_orders(self) -> list[dict[str, Any]]:
        """
        Fetch the actor's orders with nested items and delivery.

        Raises:
            TransientFetchFailure: Network error, non-200 response or bad body
        """
        try:
            response = await self._client.get("/api/orders/mine")
        except httpx.HTTPError as e:
            raise TransientFetchFailure(f"Order listing failed: {e}") from e

        if response.status_code != 200:
            raise TransientFetchFailure(
                f"Order listing returned HTTP {response.status_code}",
                status_code=response.status_code,
            )
        try:
            return response.json()["orders"]
        except (ValueError, KeyError) as e:
            raise TransientFetchFailure(f"Malformed order listing: {e}") from e

    async def fetch_order(self, order_id: int) -> dict[str, Any]:
        """Fetch one order from the actor's listing."""
        for order in await self.list_my_orders():
            if order.get("id") == order_id:
                return order
        raise TransientFetchFailure(f"Order #{order_id} missing from listing")

    # =========================================================================
    # ACTIONS
    # =========================================================================

    @staticmethod
    def _raise_for_error(response: httpx.Response) -> None:
        if response.is_success:
            return
        try:
            body = response.json()
        except ValueError:
            body = {}
        detail = body.get("detail") or response.text
        error_class = LIFECYCLE_ERRORS_BY_CODE.get(body.get("error"))
        if error_class is not None:
            raise error_class(detail)
        if response.status_code == 404:
            raise NotFoundError(detail)
        response.raise_for_status()

    async def create_order(
        self,
        restaurant_id: int,
        items: list[dict[str, Any]],
        order_type: OrderType = OrderType.DELIVERY,
    ) -> dict[str, Any]:
        response = await self._client.post(
            "/api/orders",
            json={"restaurant_id": restaurant_id, "order_type": order_type.value, "items": items},
        )
        self._raise_for_error(response)
        return response.json()

    async def update_order_status(self, order_id: int, status: OrderStatus) -> dict[str, Any]:
        response = await self._client.put(
            f"/api/orders/{order_id}/status", json={"status": OrderStatus(status).value}
        )
        self._raise_for_error(response)
        return response.json()

    async def assign_courier(self, order_id: int, courier_id: int) -> dict[str, Any]:
        response = await self._client.post(
            "/api/deliveries/assign",
            json={"order_id": order_id, "delivery_person_id": courier_id},
        )
        self._raise_for_error(response)
        return response.json()

    async def update_delivery_status(self, delivery_id: int, status: DeliveryStatus) -> dict[str, Any]:
        response = await self._client.put(
            f"/api/deliveries/{delivery_id}/status", json={"status": DeliveryStatus(status).value}
        )
        self._raise_for_error(response)
        return response.json()

    async def report_position(self, delivery_id: int, latitude: float, longitude: float) -> dict[str, Any]:
        response = await self._client.put(
            f"/api/deliveries/{delivery_id}/position",
            json={"latitude": latitude, "longitude": longitude},
        )
        self._raise_for_error(response)
        return response.json()
