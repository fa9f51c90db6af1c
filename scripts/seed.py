"""
Demo Data Seeder

Creates demo users (one per role), a restaurant and its menu so the API
and the simulation script have something to work with.
Run from project root: python scripts/seed.py
"""

import asyncio
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from sqlalchemy import select

from order_tracking.database import async_session_maker, engine, init_db
from order_tracking.models import MenuItem, Restaurant, User, UserRole

USERS = [
    {"name": "Ada Admin", "email": "admin@example.com", "role": UserRole.ADMIN},
    {"name": "Omar Owner", "email": "owner@example.com", "role": UserRole.OWNER},
    {"name": "Dina Driver", "email": "driver@example.com", "role": UserRole.DELIVERY, "phone": "+1-555-010-2000"},
    {"name": "Carl Customer", "email": "customer@example.com", "role": UserRole.CUSTOMER},
]

MENU = [
    {"name": "Margherita Pizza", "price": 12.50},
    {"name": "Caesar Salad", "price": 8.00},
    {"name": "Tiramisu", "price": 6.25},
    {"name": "Sparkling Water", "price": 2.75},
]


async def seed() -> dict[str, int]:
    await init_db()

    async with async_session_maker() as db:
        existing = await db.execute(select(User).where(User.email == USERS[0]["email"]))
        if existing.scalar_one_or_none() is not None:
            print("ℹ️  Demo data already present, nothing to do")
            return {}

        # Flushed one by one so IDs follow the USERS order
        users = {}
        for fields in USERS:
            users[fields["role"]] = User(**fields)
            db.add(users[fields["role"]])
            await db.flush()

        restaurant = Restaurant(
            owner_id=users[UserRole.OWNER].id,
            name="Trattoria Demo",
            latitude=40.7359,
            longitude=-73.9911,
        )
        db.add(restaurant)
        await db.flush()

        db.add_all(MenuItem(restaurant_id=restaurant.id, **item) for item in MENU)
        await db.commit()

        ids = {role.value: user.id for role, user in users.items()}
        ids["restaurant"] = restaurant.id

    print("=" * 60)
    print("🌱 Demo data created")
    for key, value in ids.items():
        print(f"   {key:<12} #{value}")
    print("=" * 60)
    return ids


async def main() -> None:
    try:
        await seed()
    finally:
        await engine.dispose()


if __name__ == "__main__":
    asyncio.run(main())
