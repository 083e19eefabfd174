"""Interval polling on the asyncio event loop."""

from __future__ import annotations

import asyncio
import itertools
import logging
import math
from typing import Any, Awaitable, Callable

from aegis_console.client import FetchResult
from aegis_console.errors import BadResponse, FetchError

Effect = Callable[[], Awaitable[None]]


class PollHandle:
    """Handle for one running poll schedule."""

    def __init__(self, generation: int, interval: float) -> None:
        self.generation = generation
        self.interval = interval
        self._stop_event = asyncio.Event()
        self._task: asyncio.Task[None] | None = None

    @property
    def active(self) -> bool:
        return not self._stop_event.is_set()

    def is_current(self, generation: int) -> bool:
        """True while the schedule runs and generation is the one it was started with."""
        return self.active and generation == self.generation

    def __repr__(self) -> str:
        state = "active" if self.active else "cancelled"
        return f"<PollHandle generation={self.generation} interval={self.interval}s {state}>"


class Poller:
    """Runs effects immediately and then on a fixed interval until cancelled.

    Each invocation runs as its own task, so a slow request never delays the
    next tick. Cancelling stops future invocations only; effects already in
    flight finish, and their owners are expected to discard the results.
    """

    def __init__(self, logger: logging.Logger) -> None:
        self._logger = logger
        self._generations = itertools.count(1)
        self._handles: set[PollHandle] = set()
        self._runners: set[asyncio.Task[None]] = set()
        self._inflight: set[asyncio.Task[None]] = set()

    def start(self, effect: Effect, interval_ms: int) -> PollHandle:
        """Invoke effect now, then every interval_ms until cancel(handle)."""
        if interval_ms <= 0:
            raise ValueError("interval_ms must be positive")
        handle = PollHandle(next(self._generations), interval_ms / 1000.0)
        self._handles.add(handle)
        self._spawn(effect)
        handle._task = asyncio.create_task(self._run(handle, effect))
        self._runners.add(handle._task)
        handle._task.add_done_callback(self._runners.discard)
        return handle

    def cancel(self, handle: PollHandle) -> None:
        """Stop a schedule. Safe to call more than once."""
        if not handle.active:
            return
        handle._stop_event.set()
        self._handles.discard(handle)
        self._logger.debug("Cancelled poll schedule %s", handle.generation)
        # Results tagged with the old generation are stale from here on.
        handle.generation = next(self._generations)

    @property
    def inflight(self) -> int:
        return len(self._inflight)

    async def shutdown(self) -> None:
        """Cancel every schedule and wait for outstanding effects to finish."""
        for handle in list(self._handles):
            self.cancel(handle)
        if self._runners:
            await asyncio.gather(*list(self._runners), return_exceptions=True)
        if self._inflight:
            await asyncio.gather(*list(self._inflight), return_exceptions=True)

    async def _run(self, handle: PollHandle, effect: Effect) -> None:
        loop = asyncio.get_running_loop()
        started = loop.time()
        while handle.active:
            # Ticks stay on the schedule set at start; missed ticks are skipped.
            elapsed = loop.time() - started
            next_tick = (math.floor(elapsed / handle.interval) + 1) * handle.interval
            delay = max(next_tick - elapsed, 0.0)
            try:
                await asyncio.wait_for(handle._stop_event.wait(), timeout=delay)
            except asyncio.TimeoutError:
                pass
            if not handle.active:
                break
            self._spawn(effect)

    def _spawn(self, effect: Effect) -> None:
        task = asyncio.create_task(self._invoke(effect))
        self._inflight.add(task)
        task.add_done_callback(self._inflight.discard)

    async def _invoke(self, effect: Effect) -> None:
        try:
            await effect()
        except Exception:
            self._logger.exception("Poll effect failed")


class PolledView:
    """Base for view models fed by a Poller.

    Every start/stop bumps a generation token, and every issued request gets
    a sequence number. A response is applied only if its generation is still
    current and no newer response has been applied already.
    """

    endpoint_name = "backend"

    def __init__(self, poller: Poller, logger: logging.Logger, interval_ms: int) -> None:
        self._poller = poller
        self._logger = logger
        self._interval_ms = interval_ms
        self._handle: PollHandle | None = None
        self._generation = 0
        self._issued = 0
        self._applied = 0
        self.offline = False
        self.last_error: FetchError | None = None

    @property
    def is_running(self) -> bool:
        return self._handle is not None and self._handle.active

    @property
    def interval_ms(self) -> int:
        return self._interval_ms

    def start(self) -> None:
        """Begin polling; fetches immediately. No-op when already running."""
        if self.is_running:
            return
        self._generation += 1
        generation = self._generation
        self._handle = self._poller.start(lambda: self._poll_once(generation), self._interval_ms)

    def stop(self) -> None:
        """Stop polling; responses still in flight will be discarded."""
        self._generation += 1
        if self._handle is not None:
            self._poller.cancel(self._handle)
            self._handle = None

    async def refresh(self) -> None:
        """Fetch once outside the schedule, under the current generation."""
        await self._poll_once(self._generation)

    async def _fetch(self) -> FetchResult:
        raise NotImplementedError

    def _apply(self, payload: Any) -> None:
        raise NotImplementedError

    async def _poll_once(self, generation: int) -> None:
        self._issued += 1
        sequence = self._issued
        result = await self._fetch()

        if generation != self._generation:
            self._logger.debug(
                "Discarding %s response from stopped generation %s", self.endpoint_name, generation
            )
            return
        if sequence <= self._applied:
            self._logger.debug(
                "Discarding out-of-order %s response %s (applied %s)",
                self.endpoint_name,
                sequence,
                self._applied,
            )
            return
        self._applied = sequence

        if result.error is not None:
            self._set_offline(result.error)
            return
        try:
            self._apply(result.payload)
        except BadResponse as exc:
            self._logger.warning("Unexpected %s payload: %s", self.endpoint_name, exc)
            self._set_offline(exc)
            return
        if self.offline:
            self._logger.info("%s backend is reachable again", self.endpoint_name.capitalize())
        self.offline = False
        self.last_error = None

    def _set_offline(self, error: FetchError) -> None:
        if not self.offline:
            self._logger.warning("%s backend offline: %s", self.endpoint_name.capitalize(), error)
        self.offline = True
        self.last_error = error
