"""
Delivery Simulation Script

Drives one delivery order end to end against a running API while a
customer-side tracker follows it live:

    checkout -> accept -> ready -> assign courier -> on_route
    -> courier moves towards the customer -> delivered

Run from project root (after scripts/seed.py, with the API running):
    python scripts/simulate.py
"""

import asyncio
import sys
import os
import argparse
from datetime import datetime

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from order_tracking.models import DeliveryStatus, OrderStatus, UserRole
from order_tracking.services.geo import DeviceLocationProvider, distance_km
from order_tracking.services.tracking import DeliveryTracker, OrdersApiClient, TrackingDisplay

API_BASE_URL = "http://localhost:8001"

RESTAURANT_POSITION = (40.7359, -73.9911)
CUSTOMER_POSITION = (40.7484, -73.9857)


def print_display(display: TrackingDisplay) -> None:
    stale = " (stale)" if display.stale else ""
    distance = f" │ {display.distance_km:.2f} km" if display.distance_km is not None else ""
    print(f"   📱 [{datetime.now().strftime('%H:%M:%S')}] {display.state.value:<9} │ {display.label}{distance}{stale}")


async def drive_courier(
    courier: OrdersApiClient,
    delivery_id: int,
    steps: int,
    step_seconds: float,
) -> None:
    """Move the courier in a straight line from the restaurant to the customer."""
    start_lat, start_lon = RESTAURANT_POSITION
    end_lat, end_lon = CUSTOMER_POSITION

    for step in range(steps + 1):
        fraction = step / steps
        lat = start_lat + (end_lat - start_lat) * fraction
        lon = start_lon + (end_lon - start_lon) * fraction
        await courier.report_position(delivery_id, lat, lon)
        remaining = distance_km(lat, lon, end_lat, end_lon)
        print(f"   🛵 Courier at ({lat:.5f}, {lon:.5f}), {remaining:.2f} km to go")
        await asyncio.sleep(step_seconds)


async def run_simulation(args: argparse.Namespace) -> bool:
    print("=" * 70)
    print("🚚 DELIVERY SIMULATION")
    print("=" * 70)
    print(f"🎯 Target: {args.base_url}")
    print(f"⏰ Started: {datetime.now().strftime('%H:%M:%S')}")
    print("=" * 70)

    customer = OrdersApiClient(user_id=args.customer_id, role=UserRole.CUSTOMER, base_url=args.base_url)
    owner = OrdersApiClient(user_id=args.owner_id, role=UserRole.OWNER, base_url=args.base_url)
    courier = OrdersApiClient(user_id=args.courier_id, role=UserRole.DELIVERY, base_url=args.base_url)

    try:
        print("\n1️⃣ Checkout...")
        order = await customer.create_order(
            args.restaurant_id,
            [{"item_id": item_id, "quantity": 1} for item_id in args.items],
        )
        order_id = order["id"]
        print(f"   ✅ Order #{order_id} created, total {order['total_price']:.2f}")

        print("\n2️⃣ Restaurant accepts and prepares...")
        await owner.update_order_status(order_id, OrderStatus.PREPARING)
        order = await owner.update_order_status(order_id, OrderStatus.READY)
        delivery_id = order["delivery"]["id"]
        print(f"   ✅ Order ready, delivery #{delivery_id} created")

        print("\n3️⃣ Assigning courier...")
        await owner.assign_courier(order_id, args.courier_id)
        print(f"   ✅ Courier #{args.courier_id} assigned")

        location = DeviceLocationProvider()
        location.update(*CUSTOMER_POSITION)

        print("\n4️⃣ Courier leaves, customer tracks live...")
        async with DeliveryTracker(
            order_id,
            customer,
            location,
            refresh_interval=args.refresh_seconds,
            on_update=print_display if args.verbose else None,
        ) as tracker:
            await courier.update_delivery_status(delivery_id, DeliveryStatus.ON_ROUTE)
            await drive_courier(courier, delivery_id, args.steps, args.step_seconds)
            print_display(tracker.display)

            print("\n5️⃣ Courier hands over the order...")
            await courier.update_delivery_status(delivery_id, DeliveryStatus.DELIVERED)
            await asyncio.wait_for(tracker.wait_closed(), timeout=args.refresh_seconds * 3)
            print_display(tracker.display)

        print("\n" + "=" * 70)
        print("✅ SIMULATION COMPLETE")
        print("=" * 70)
        return True
    finally:
        await asyncio.gather(customer.aclose(), owner.aclose(), courier.aclose())


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Delivery Simulation Script")
    parser.add_argument("--base-url", default=API_BASE_URL, help="Orders API base URL")
    parser.add_argument("--customer-id", type=int, default=4)
    parser.add_argument("--owner-id", type=int, default=2)
    parser.add_argument("--courier-id", type=int, default=3)
    parser.add_argument("--restaurant-id", type=int, default=1)
    parser.add_argument("--items", type=int, nargs="+", default=[1, 2], help="Menu item IDs")
    parser.add_argument("--steps", type=int, default=6, help="Courier position reports")
    parser.add_argument("--step-seconds", type=float, default=3.0)
    parser.add_argument("--refresh-seconds", type=float, default=8.0)
    parser.add_argument("--verbose", action="store_true", help="Print every countdown tick")
    args = parser.parse_args()

    success = asyncio.run(run_simulation(args))
    sys.exit(0 if success else 1)
