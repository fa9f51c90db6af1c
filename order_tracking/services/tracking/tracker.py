"""
Delivery Tracker

Runs the two periodic activities behind a live tracking view:

    - refresh: every ``refresh_interval`` seconds, fetch the order snapshot
      and hand it to the session (may suspend on I/O)
    - tick: every ``tick_interval`` seconds, advance the local countdown
      (never performs I/O)

Both are asyncio tasks owned by one tracker and are cancelled together on
``stop()``, on leaving ``async with``, or as soon as the order reaches a
terminal state.
"""

import asyncio
import logging
from typing import Callable, Optional

from pydantic import ValidationError

from order_tracking.core.config import get_settings
from order_tracking.core.exceptions import TransientFetchFailure
from order_tracking.services.geo.base import BaseLocationProvider, Position
from order_tracking.services.tracking.session import TrackingDisplay, TrackingSession
from order_tracking.services.tracking.snapshot import TrackingSnapshot

logger = logging.getLogger(__name__)


class DeliveryTracker:
    """
    Live tracking of one order.

    Args:
        order_id: Order to track
        client: Object with ``async fetch_order(order_id) -> dict``
            (normally ``OrdersApiClient``)
        location_provider: Source of the consumer's position
        session: Session to feed; a new one is created when omitted
        refresh_interval: Seconds between snapshot refreshes
        tick_interval: Seconds between countdown ticks
        on_update: Called with every new display value

    Example:
        >>> async with DeliveryTracker(42, client, provider, on_update=print) as tracker:
        ...     await tracker.wait_closed()
    """

    def __init__(
        self,
        order_id: int,
        client,
        location_provider: BaseLocationProvider,
        *,
        session: Optional[TrackingSession] = None,
        refresh_interval: Optional[float] = None,
        tick_interval: Optional[float] = None,
        on_update: Optional[Callable[[TrackingDisplay], None]] = None,
    ):
        settings = get_settings()
        self.order_id = order_id
        self.client = client
        self.location_provider = location_provider
        self.session = session or TrackingSession(speed_kmh=settings.courier_speed_kmh)
        self.refresh_interval = refresh_interval or settings.tracking_refresh_seconds
        self.tick_interval = tick_interval or settings.tracking_tick_seconds
        self.on_update = on_update

        self._sequence = 0
        self._consumer_position: Optional[Position] = None
        self._refresh_task: Optional[asyncio.Task] = None
        self._tick_task: Optional[asyncio.Task] = None
        self._fetch_task: Optional[asyncio.Task] = None
        self._closed = asyncio.Event()

    @property
    def display(self) -> TrackingDisplay:
        return self.session.display

    @property
    def running(self) -> bool:
        return any(
            task is not None and not task.done()
            for task in (self._refresh_task, self._tick_task)
        )

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self) -> None:
        if self.running:
            return
        if self.session.is_terminal:
            logger.info(f"Order #{self.order_id}: already terminal, not starting tracker")
            self._closed.set()
            return

        self._closed.clear()
        self._refresh_task = asyncio.create_task(
            self._refresh_loop(), name=f"tracker-refresh-{self.order_id}"
        )
        self._tick_task = asyncio.create_task(
            self._tick_loop(), name=f"tracker-tick-{self.order_id}"
        )
        logger.info(
            f"Order #{self.order_id}: tracking started "
            f"(refresh={self.refresh_interval}s, tick={self.tick_interval}s)"
        )

    async def stop(self) -> None:
        """Cancel the refresh task, the tick task and any in-flight fetch."""
        current = asyncio.current_task()
        tasks = [
            task
            for task in (self._refresh_task, self._tick_task, self._fetch_task)
            if task is not None and not task.done() and task is not current
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._refresh_task = None
        self._tick_task = None
        if self._fetch_task is not current:
            self._fetch_task = None

        if not self._closed.is_set():
            logger.info(f"Order #{self.order_id}: tracking stopped")
        self._closed.set()

    async def wait_closed(self) -> None:
        """Wait until tracking stops (terminal state or ``stop()``)."""
        await self._closed.wait()

    async def __aenter__(self) -> "DeliveryTracker":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.stop()

    # =========================================================================
    # REFRESH
    # =========================================================================

    async def refresh_now(self) -> TrackingDisplay:
        """
        Manual refresh requested by the consumer.

        Raises:
            TransientFetchFailure: Unlike scheduled refreshes, failures surface
        """
        try:
            return await self._fetch_and_apply()
        except TransientFetchFailure:
            self.session.mark_stale()
            self._emit(self.session.display)
            raise

    async def _refresh_loop(self) -> None:
        while True:
            if self._fetch_task is not None and not self._fetch_task.done():
                logger.debug(f"Order #{self.order_id}: previous refresh in flight, skipping")
            else:
                self._fetch_task = asyncio.create_task(
                    self._scheduled_refresh(), name=f"tracker-fetch-{self.order_id}"
                )
            await asyncio.sleep(self.refresh_interval)

    async def _scheduled_refresh(self) -> None:
        try:
            await self._fetch_and_apply()
        except TransientFetchFailure as e:
            logger.warning(f"Order #{self.order_id}: refresh failed, keeping last estimate ({e})")
            self.session.mark_stale()
            self._emit(self.session.display)

    async def _fetch_and_apply(self) -> TrackingDisplay:
        self._sequence += 1
        sequence = self._sequence

        try:
            position = await self.location_provider.get_current_position()
        except Exception as e:
            raise TransientFetchFailure(
                f"Location provider {self.location_provider.provider_name} failed: {e}"
            ) from e
        if position is not None:
            self._consumer_position = position

        payload = await self.client.fetch_order(self.order_id)
        try:
            snapshot = TrackingSnapshot.from_payload(
                payload,
                consumer_position=self._consumer_position,
                sequence=sequence,
            )
        except ValidationError as e:
            raise TransientFetchFailure(f"Unreadable order snapshot: {e}") from e

        if self.session.on_snapshot_received(snapshot):
            self._emit(self.session.display)

        if self.session.is_terminal:
            await self.stop()
        return self.session.display

    # =========================================================================
    # TICK
    # =========================================================================

    async def _tick_loop(self) -> None:
        while True:
            await asyncio.sleep(self.tick_interval)
            if self.session.is_ticking:
                self._emit(self.session.tick())

    def _emit(self, display: TrackingDisplay) -> None:
        if self.on_update is not None:
            self.on_update(display)
