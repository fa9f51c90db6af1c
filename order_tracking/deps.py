"""
FastAPI dependencies.

Authentication is handled upstream; the gateway forwards the caller's
identity in ``X-User-Id`` and ``X-User-Role``.
"""

from typing import Optional

from fastapi import Depends, Header, HTTPException
from sqlalchemy.ext.asyncio import AsyncSession

from order_tracking.database import get_db
from order_tracking.models import UserRole
from order_tracking.services.lifecycle import Actor
from order_tracking.services.orders import OrderService


def get_actor(
    x_user_id: Optional[int] = Header(None),
    x_user_role: Optional[str] = Header(None),
) -> Actor:
    if x_user_id is None or x_user_role is None:
        raise HTTPException(401, "X-User-Id and X-User-Role headers are required")
    try:
        role = UserRole(x_user_role.lower())
    except ValueError:
        raise HTTPException(401, f"Unknown role: {x_user_role}")
    return Actor(user_id=x_user_id, role=role)


def get_order_service(db: AsyncSession = Depends(get_db)) -> OrderService:
    return OrderService(db)
