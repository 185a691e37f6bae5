"""Stream coordinator - top-level orchestrator that backfills history, then
ingests live events, feeding every accepted reading to the store, the
aggregator and the alert engine exactly once.

It is also the facade the rendering layer talks to (``get_series``,
``get_snapshot``, ``on_alert`` ...).
"""

from __future__ import annotations

import asyncio
import collections
import inspect
import logging
import time
from collections.abc import Callable
from typing import Any

from pydantic import BaseModel

from sensor_stream.aggregator import RollingAggregator
from sensor_stream.alerts import AlertEngine
from sensor_stream.config import StreamConfig
from sensor_stream.models import (
    AggregateSnapshot,
    Alert,
    MalformedReading,
    Reading,
    StrEnum,
    TimeRange,
)
from sensor_stream.normalizer import Normalizer
from sensor_stream.store import IngestResult, TimeSeriesStore
from sensor_stream.transports.base import (
    PageFetcher,
    Subscriber,
    SubscriptionHandle,
    TransportFailure,
    coerce_page,
)

__all__ = ["CoordinatorState", "CoordinatorStatus", "StreamCoordinator"]

logger = logging.getLogger("sensor_stream")

AlertListener = Callable[[Alert], Any]


class CoordinatorState(StrEnum):
    """Lifecycle states of :class:`StreamCoordinator`."""

    IDLE = "idle"
    BACKFILLING = "backfilling"
    LIVE = "live"
    ERROR = "error"
    TERMINATED = "terminated"


class CoordinatorStatus(BaseModel):
    """Point-in-time counters for observability."""

    state: CoordinatorState
    pages_fetched: int = 0
    readings_accepted: int = 0
    duplicates: int = 0
    stale: int = 0
    out_of_order: int = 0
    malformed: int = 0
    dropped_events: int = 0
    alerts_raised: int = 0
    alerts_dropped: int = 0
    last_error: str | None = None


async def _maybe_await(value: Any) -> Any:
    if inspect.isawaitable(value):
        return await value
    return value


class StreamCoordinator:
    """Backfill-then-live ingestion pipeline over the in-memory core.

    Example::

        from sensor_stream import StreamCoordinator
        from sensor_stream.transports import ListPager, ManualFeed

        feed = ManualFeed()
        core = StreamCoordinator(ListPager(history), feed)
        feed.on_error = core.report_failure
        core.on_alert(lambda alert: print(alert.message))
        await core.start()

    Parameters:
        fetch_page:
            ``fetch_page(token) -> Page`` collaborator (sync or async).
            Called with ``None`` first, then with each ``next_token`` until
            a page has none.
        subscribe:
            ``subscribe(on_event) -> handle`` collaborator (sync or async).
            The returned handle's ``cancel()`` stops delivery.
        config:
            Runtime options; defaults to :class:`StreamConfig`.
        clock:
            Wall-clock source for ``received_at`` stamps.

    The coordinator is not internally synchronized; run it from one event
    loop or serialize access per device.
    """

    def __init__(
        self,
        fetch_page: PageFetcher | Callable[..., Any],
        subscribe: Subscriber | Callable[..., Any],
        *,
        config: StreamConfig | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._fetch_page = fetch_page
        self._subscribe = subscribe
        self._config = config if config is not None else StreamConfig()
        self._clock = clock

        self._normalizer = Normalizer(clock=clock)
        self._store = TimeSeriesStore(retention_limit=self._config.retention_limit, clock=clock)
        self._aggregator = RollingAggregator()
        self._engine = AlertEngine(self._config.thresholds)

        self._alerts: collections.deque[Alert] = collections.deque(
            maxlen=self._config.alert_buffer_limit,
        )
        self._listeners: list[AlertListener] = []
        self._subscription: SubscriptionHandle | None = None
        self._state = CoordinatorState.IDLE

        self._pages_fetched = 0
        self._accepted = 0
        self._duplicates = 0
        self._stale = 0
        self._out_of_order = 0
        self._dropped_events = 0
        self._alerts_raised = 0
        self._alerts_dropped = 0
        self._last_error: str | None = None

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> CoordinatorState:
        return self._state

    @property
    def config(self) -> StreamConfig:
        return self._config

    async def start(self) -> None:
        """Backfill every historical page, then subscribe to live events.

        Valid from ``IDLE`` and from ``ERROR`` (restart).  Transport errors
        move the coordinator to ``ERROR`` instead of propagating.
        Cancelling this coroutine terminates the coordinator, keeping
        everything ingested so far.
        """
        if self._state not in (CoordinatorState.IDLE, CoordinatorState.ERROR):
            raise RuntimeError(f"Cannot start coordinator in state {self._state.value!r}")

        if self._state is CoordinatorState.ERROR:
            logger.info("Restarting after error: %s", self._last_error)
        self._last_error = None
        self._set_state(CoordinatorState.BACKFILLING)

        try:
            await self._backfill()
            if self._state is not CoordinatorState.BACKFILLING:
                return
            await self._go_live()
        except asyncio.CancelledError:
            logger.info("Coordinator cancelled during %s", self._state.value)
            await self.close()
            raise
        except Exception as exc:
            self._fail(exc)

    async def close(self) -> None:
        """Release the subscription and enter ``TERMINATED``.  Idempotent."""
        if self._state is CoordinatorState.TERMINATED:
            return
        self._set_state(CoordinatorState.TERMINATED)
        handle, self._subscription = self._subscription, None
        if handle is not None:
            try:
                await _maybe_await(handle.cancel())
            except Exception:
                logger.warning("Subscription cancel failed during shutdown", exc_info=True)

    async def __aenter__(self) -> StreamCoordinator:
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def report_failure(self, error: BaseException | str) -> None:
        """Signal a non-recoverable transport failure from a live collaborator.

        Moves a running coordinator to ``ERROR``; accumulated data stays
        queryable.  Ignored once ``ERROR`` or ``TERMINATED``.
        """
        if self._state in (CoordinatorState.ERROR, CoordinatorState.TERMINATED):
            logger.debug("Ignoring failure report in state %s: %s", self._state.value, error)
            return
        exc = error if isinstance(error, BaseException) else TransportFailure(error)
        self._fail(exc)

    # ------------------------------------------------------------------
    # Ingestion
    # ------------------------------------------------------------------

    def on_event(self, raw: Any) -> list[Alert]:
        """Handle one live event; returns the alerts it raised.

        Events arriving outside ``LIVE`` are dropped and counted.
        """
        if self._state is not CoordinatorState.LIVE:
            self._dropped_events += 1
            logger.debug("Dropping event received in state %s", self._state.value)
            return []

        reading = self._normalizer(raw)
        if isinstance(reading, MalformedReading):
            return []

        result = self._store.ingest_one(reading)
        self._record(result)
        if not result.accepted:
            return []

        self._aggregator.update(reading.device_id, reading)
        alerts = self._engine.evaluate(reading, now=self._clock())
        self._dispatch(alerts)
        return alerts

    async def _backfill(self) -> None:
        token: str | None = None
        while True:
            page = coerce_page(await _maybe_await(self._fetch_page(token)))
            if self._state is not CoordinatorState.BACKFILLING:
                logger.info("Backfill stopped after %d pages", self._pages_fetched)
                return

            self._pages_fetched += 1
            self._apply_bulk(page.items)
            logger.debug("Backfill page %d: %d items", self._pages_fetched, len(page.items))

            if not page.has_more:
                break
            if page.next_token == token:
                raise TransportFailure(f"Pagination did not advance past token {token!r}")
            token = page.next_token

        logger.info(
            "Backfill complete: %d pages, %d readings, %d devices",
            self._pages_fetched,
            self._store.count(),
            len(self._store.devices()),
        )

    async def _go_live(self) -> None:
        self._set_state(CoordinatorState.LIVE)
        handle = await _maybe_await(self._subscribe(self.on_event))
        if self._state is not CoordinatorState.LIVE:
            # closed or failed while subscribing
            await _maybe_await(handle.cancel())
            return
        self._subscription = handle

    def _apply_bulk(self, items: list[Any]) -> None:
        readings = [r for r in map(self._normalizer, items) if isinstance(r, Reading)]
        result = self._store.ingest_bulk(readings)
        self._record(result)
        for reading in result.accepted:
            self._aggregator.update(reading.device_id, reading)
            if self._config.alert_on_backfill:
                self._dispatch(self._engine.evaluate(reading, now=self._clock()))

    def _record(self, result: IngestResult) -> None:
        self._accepted += len(result.accepted)
        self._duplicates += result.duplicates
        self._stale += result.stale
        self._out_of_order += result.out_of_order

    def _dispatch(self, alerts: list[Alert]) -> None:
        for alert in alerts:
            self._alerts_raised += 1
            if self._alerts.maxlen is not None and len(self._alerts) == self._alerts.maxlen:
                self._alerts_dropped += 1
                logger.warning(
                    "Alert buffer full (%d), dropping oldest alert; %d dropped so far",
                    self._alerts.maxlen,
                    self._alerts_dropped,
                )
            self._alerts.append(alert)
            logger.debug("Alert %s on %s: %s", alert.rule, alert.device_id, alert.message)
            for listener in list(self._listeners):
                try:
                    listener(alert)
                except Exception:
                    logger.exception("Alert listener %r failed", listener)

    def _fail(self, exc: BaseException) -> None:
        if self._state is CoordinatorState.TERMINATED:
            logger.debug("Ignoring failure after shutdown: %s", exc)
            return
        self._last_error = f"{type(exc).__name__}: {exc}"
        logger.error("Transport failure, ingestion halted: %s", self._last_error)
        self._set_state(CoordinatorState.ERROR)
        handle, self._subscription = self._subscription, None
        if handle is None:
            return
        pending = handle.cancel()
        if inspect.isawaitable(pending):
            try:
                asyncio.get_running_loop().create_task(pending)
            except RuntimeError:
                logger.warning("No running event loop to cancel subscription")
                if inspect.iscoroutine(pending):
                    pending.close()

    def _set_state(self, state: CoordinatorState) -> None:
        if state is not self._state:
            logger.info("Coordinator state: %s -> %s", self._state.value, state.value)
            self._state = state

    # ------------------------------------------------------------------
    # Consumer API
    # ------------------------------------------------------------------

    def get_series(
        self,
        device_id: str | None = None,
        time_range: TimeRange | None = None,
    ) -> list[Reading]:
        return self._store.query(device_id, time_range)

    def get_devices(self) -> set[str]:
        return self._store.devices()

    def get_snapshot(self, device_id: str) -> AggregateSnapshot | None:
        return self._aggregator.snapshot(device_id)

    def get_global_snapshot(self) -> AggregateSnapshot:
        return self._aggregator.global_snapshot()

    def get_latest(self, device_id: str | None = None) -> Reading | None:
        return self._store.latest(device_id)

    def on_alert(self, callback: AlertListener) -> Callable[[], None]:
        """Register *callback* for every alert raised from now on.

        Returns a function that unregisters it.
        """
        self._listeners.append(callback)

        def _remove() -> None:
            if callback in self._listeners:
                self._listeners.remove(callback)

        return _remove

    def poll_alerts(self) -> list[Alert]:
        """Return and forget every buffered alert (each is returned once)."""
        alerts = list(self._alerts)
        self._alerts.clear()
        return alerts

    def configure(self, config: StreamConfig | None = None, **options: Any) -> StreamConfig:
        """Apply a new :class:`StreamConfig`, or update selected options.

        Example::

            core.configure(retention_limit=500)
            core.configure(thresholds={"temperature": {"high": 28}})
        """
        if config is None:
            data = self._config.model_dump()
            data.update(options)
            config = StreamConfig.model_validate(data)
        elif options:
            raise TypeError("Pass either a StreamConfig or keyword options, not both")

        self._store.set_retention_limit(config.retention_limit)
        self._engine.thresholds = config.thresholds
        if config.alert_buffer_limit != self._alerts.maxlen:
            limit = config.alert_buffer_limit
            overflow = 0 if limit is None else len(self._alerts) - limit
            if overflow > 0:
                self._alerts_dropped += overflow
                logger.warning("Alert buffer shrunk, dropping %d oldest alerts", overflow)
            self._alerts = collections.deque(self._alerts, maxlen=config.alert_buffer_limit)
        self._config = config
        logger.info("Configuration updated: retention_limit=%s", config.retention_limit)
        return config

    def status(self) -> CoordinatorStatus:
        return CoordinatorStatus(
            state=self._state,
            pages_fetched=self._pages_fetched,
            readings_accepted=self._accepted,
            duplicates=self._duplicates,
            stale=self._stale,
            out_of_order=self._out_of_order,
            malformed=self._normalizer.malformed_count,
            dropped_events=self._dropped_events,
            alerts_raised=self._alerts_raised,
            alerts_dropped=self._alerts_dropped,
            last_error=self._last_error,
        )
