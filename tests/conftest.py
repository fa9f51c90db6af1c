import asyncio
import os
import tempfile

# Settings are read once per process, so the test database must be chosen
# before anything from order_tracking is imported.
_DB_DIR = tempfile.mkdtemp(prefix="order-tracking-tests-")
os.environ["DATABASE_URL"] = f"sqlite+aiosqlite:///{_DB_DIR}/test.db"
os.environ["ENV_MODE"] = "development"
os.environ["MOCK_LOCATION_FAILURE_RATE"] = "0"

import pytest
from fastapi.testclient import TestClient

from order_tracking.database import Base, async_session_maker, engine
from order_tracking.models import MenuItem, Restaurant, User, UserRole


async def reset_database() -> None:
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)


async def seed_database() -> dict:
    async with async_session_maker() as db:
        users = {
            "admin": User(name="Admin", role=UserRole.ADMIN),
            "owner": User(name="Owner", role=UserRole.OWNER),
            "other_owner": User(name="Other Owner", role=UserRole.OWNER),
            "courier": User(name="Courier", role=UserRole.DELIVERY),
            "other_courier": User(name="Other Courier", role=UserRole.DELIVERY),
            "retired_courier": User(name="Retired Courier", role=UserRole.DELIVERY, is_active=False),
            "customer": User(name="Customer", role=UserRole.CUSTOMER),
            "other_customer": User(name="Other Customer", role=UserRole.CUSTOMER),
        }
        db.add_all(users.values())
        await db.flush()

        restaurant = Restaurant(owner_id=users["owner"].id, name="Trattoria", latitude=40.7359, longitude=-73.9911)
        other_restaurant = Restaurant(owner_id=users["other_owner"].id, name="Diner")
        db.add_all([restaurant, other_restaurant])
        await db.flush()

        items = {
            "pizza": MenuItem(restaurant_id=restaurant.id, name="Pizza", price=12.50),
            "salad": MenuItem(restaurant_id=restaurant.id, name="Salad", price=8.00),
            "sold_out": MenuItem(restaurant_id=restaurant.id, name="Soup", price=5.00, is_available=False),
            "burger": MenuItem(restaurant_id=other_restaurant.id, name="Burger", price=9.00),
        }
        db.add_all(items.values())
        await db.commit()

        ids = {name: user.id for name, user in users.items()}
        ids["restaurant"] = restaurant.id
        ids["other_restaurant"] = other_restaurant.id
        ids.update({name: item.id for name, item in items.items()})
        return ids


@pytest.fixture
def seeded():
    """Fresh schema with demo users, two restaurants and a menu."""
    asyncio.run(reset_database())
    return asyncio.run(seed_database())


@pytest.fixture
def client(seeded):
    from order_tracking.main import app

    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def ids(seeded):
    return seeded


def headers(user_id: int, role: str) -> dict:
    return {"X-User-Id": str(user_id), "X-User-Role": role}
