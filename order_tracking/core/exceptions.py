"""
Error taxonomy shared by the lifecycle, the HTTP layer and the tracking client.

Lifecycle errors are always surfaced to the actor who attempted the action.
Fetch errors are recovered inside the tracker and only reach the caller on an
explicit manual refresh.
"""

from typing import Optional


class OrderTrackingError(Exception):
    """Base class for every error raised by this package."""


class LifecycleError(OrderTrackingError):
    """
    A status change or lifecycle operation was rejected.

    Attributes:
        code: Machine-readable error code used in HTTP error bodies
        http_status: Status code the API responds with
    """
    code = "lifecycle_error"
    http_status = 409


class InvalidTransition(LifecycleError):
    """Target status is not reachable from the current one, or not by this actor."""
    code = "invalid_transition"


class ActorNotAuthorized(InvalidTransition):
    """The actor's role may not drive this transition."""
    code = "actor_not_authorized"
    http_status = 403


class ConcurrentUpdate(InvalidTransition):
    """Another writer changed the row between read and write."""
    code = "concurrent_update"


class InvalidState(LifecycleError):
    """The operation's preconditions are not met (e.g. delivery is not on route)."""
    code = "invalid_state"


class NotFoundError(OrderTrackingError, LookupError):
    """Requested order, delivery or user does not exist."""
    code = "not_found"
    http_status = 404


class TransientFetchFailure(OrderTrackingError):
    """
    Snapshot refresh failed at the network or backend level.

    Attributes:
        status_code: HTTP status of the failed response, if one was received
    """

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code


LIFECYCLE_ERRORS_BY_CODE = {
    cls.code: cls
    for cls in (
        LifecycleError,
        InvalidTransition,
        ActorNotAuthorized,
        ConcurrentUpdate,
        InvalidState,
    )
}
