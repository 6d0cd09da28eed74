"""Drift-compensated cycle scheduler with cooperative shutdown."""

from __future__ import annotations

import asyncio
import logging
import random
import signal
import time
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Optional

from auto_claimer.models import C_RESET, C_YELLOW
from auto_claimer.wallet import StartupError

log = logging.getLogger("ac.scheduler")

CycleFn = Callable[[int], Awaitable[Any]]


class Scheduler:
    """Runs a cycle once, or repeatedly on a fixed cadence.

    The next fire time is ``previous target + interval`` on a monotonic
    clock, so time spent inside a cycle does not push later cycles back.
    Jitter is added to each wait but never folded into the target. A stop
    request is honoured between cycles only; a running cycle always
    finishes.
    """

    def __init__(
        self,
        interval_sec: float,
        *,
        loop: bool = True,
        jitter_max_sec: float = 3.0,
        clock: Callable[[], float] = time.monotonic,
        sleep: Optional[Callable[[float], Awaitable[Any]]] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        self._interval = interval_sec
        self._loop = loop
        self._jitter_max = jitter_max_sec
        self._clock = clock
        self._sleep = sleep
        self._rng = rng or random.Random()
        self._stop_requested = False
        self._stop_event = asyncio.Event()

    @property
    def stop_requested(self) -> bool:
        return self._stop_requested

    def request_stop(self, reason: str = "stop") -> None:
        if not self._stop_requested:
            log.info("%sSHUTDOWN received %s │ will exit after current iteration%s", C_YELLOW, reason, C_RESET)
        self._stop_requested = True
        self._stop_event.set()

    def install_signal_handlers(self) -> None:
        loop = asyncio.get_running_loop()
        for sig in (signal.SIGINT, signal.SIGTERM):
            try:
                loop.add_signal_handler(sig, self.request_stop, sig.name)
            except NotImplementedError:
                signal.signal(sig, lambda signum, _frame: self.request_stop(signal.Signals(signum).name))

    async def _wait(self, seconds: float) -> None:
        if self._sleep is not None:
            await self._sleep(seconds)
            return
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=seconds)
        except asyncio.TimeoutError:
            pass

    async def _run_cycle(self, cycle: CycleFn, iteration: int) -> None:
        log.info("ITERATION #%d @ %s", iteration, datetime.now(timezone.utc).isoformat(timespec="seconds"))
        try:
            await cycle(iteration)
        except StartupError:
            raise
        except Exception as exc:
            log.exception("ITERATION_ERROR #%d │ %s", iteration, exc)

    async def run(self, cycle: CycleFn) -> int:
        """Drive *cycle*; returns the number of iterations run."""
        iteration = 1
        target = self._clock()
        await self._run_cycle(cycle, iteration)
        if not self._loop:
            return iteration

        while not self._stop_requested:
            target += self._interval
            delay = max(0.0, target - self._clock())
            jitter = self._rng.uniform(0, self._jitter_max)
            log.info("WAIT %.0fs + %.0fms jitter until next iteration", delay, jitter * 1000)
            await self._wait(delay + jitter)
            if self._stop_requested:
                break
            iteration += 1
            await self._run_cycle(cycle, iteration)

        log.info("SHUTDOWN exiting loop mode after %d iterations", iteration)
        return iteration
