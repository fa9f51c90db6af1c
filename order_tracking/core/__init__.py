"""
Core module initialization.
Exports configuration, logging utilities and the error taxonomy.
"""

from order_tracking.core.config import get_settings, setup_logging, Settings, EnvironmentMode
from order_tracking.core.exceptions import (
    OrderTrackingError,
    LifecycleError,
    InvalidTransition,
    ActorNotAuthorized,
    ConcurrentUpdate,
    InvalidState,
    NotFoundError,
    TransientFetchFailure,
)

__all__ = [
    "get_settings",
    "setup_logging",
    "Settings",
    "EnvironmentMode",
    "OrderTrackingError",
    "LifecycleError",
    "InvalidTransition",
    "ActorNotAuthorized",
    "ConcurrentUpdate",
    "InvalidState",
    "NotFoundError",
    "TransientFetchFailure",
]
