"""Deadline and cancellation handling around :class:`PortWaiter`."""

from __future__ import annotations

import asyncio
import logging
import signal
from dataclasses import dataclass
from enum import Enum, auto
from typing import List, Optional

from .config import POLL_INTERVAL, WaitConfig
from .waiter import PortWaiter, ProbeOutcome

logger = logging.getLogger("waitfor")


class SupervisorState(Enum):
    """Lifecycle of a single supervised wait."""

    IDLE = auto()
    RUNNING = auto()
    SUCCEEDED = auto()
    TIMED_OUT = auto()
    INTERRUPTED = auto()
    TERMINATED = auto()


EXIT_CODES = {
    SupervisorState.SUCCEEDED: 0,
    SupervisorState.TIMED_OUT: 124,
    SupervisorState.INTERRUPTED: 130,
    SupervisorState.TERMINATED: 143,
}


@dataclass(frozen=True)
class SupervisorResult:
    state: SupervisorState
    probe: Optional[ProbeOutcome] = None

    @property
    def succeeded(self) -> bool:
        return self.state is SupervisorState.SUCCEEDED

    @property
    def exit_code(self) -> int:
        return EXIT_CODES[self.state]


class DeadlineSupervisor:
    """Race a :class:`PortWaiter` against a deadline and a cancellation token.

    ``timeout`` is the deadline in seconds, ``None`` disables it. Setting the
    ``cancel`` event ends the wait as :attr:`SupervisorState.INTERRUPTED`;
    setting ``terminate`` ends it as :attr:`SupervisorState.TERMINATED`.
    Whichever branch loses is cancelled and awaited before :meth:`run`
    returns, so no probe is left running.
    """

    def __init__(
        self,
        waiter: PortWaiter,
        timeout: Optional[float],
        *,
        cancel: Optional[asyncio.Event] = None,
        terminate: Optional[asyncio.Event] = None,
    ) -> None:
        self.waiter = waiter
        self.timeout = timeout
        self.cancel = cancel if cancel is not None else asyncio.Event()
        self.terminate = terminate if terminate is not None else asyncio.Event()
        self.state = SupervisorState.IDLE

    async def run(self) -> SupervisorResult:
        if self.state is not SupervisorState.IDLE:
            raise RuntimeError(f"supervisor already ran (state={self.state.name})")
        self.state = SupervisorState.RUNNING

        if self.timeout is None:
            logger.info("waiting for %s without a timeout", self.waiter.target)
        else:
            logger.info("waiting %g seconds for %s", self.timeout, self.waiter.target)

        probe_task = asyncio.create_task(self.waiter.wait(), name="port-waiter")
        cancel_task = asyncio.create_task(self.cancel.wait(), name="cancel-token")
        terminate_task = asyncio.create_task(self.terminate.wait(), name="terminate-token")
        tasks = (probe_task, cancel_task, terminate_task)
        try:
            done, _pending = await asyncio.wait(
                set(tasks),
                timeout=self.timeout,
                return_when=asyncio.FIRST_COMPLETED,
            )
        finally:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)

        if probe_task in done and not probe_task.cancelled():
            outcome = probe_task.result()
            self.state = SupervisorState.SUCCEEDED
            return SupervisorResult(self.state, outcome)

        if terminate_task in done:
            self.state = SupervisorState.TERMINATED
            logger.warning("terminated while waiting for %s", self.waiter.target)
        elif cancel_task in done:
            self.state = SupervisorState.INTERRUPTED
            logger.warning("interrupted while waiting for %s", self.waiter.target)
        else:
            self.state = SupervisorState.TIMED_OUT
            logger.error(
                "timeout occurred after waiting %g seconds for %s",
                self.timeout,
                self.waiter.target,
            )
        return SupervisorResult(self.state)


def _install_signal_handlers(
    loop: asyncio.AbstractEventLoop, cancel: asyncio.Event, terminate: asyncio.Event
) -> List[signal.Signals]:
    installed: List[signal.Signals] = []
    for sig, token in ((signal.SIGINT, cancel), (signal.SIGTERM, terminate)):
        try:
            loop.add_signal_handler(sig, token.set)
        except (NotImplementedError, RuntimeError, ValueError):
            logger.debug("cannot install handler for %s on this platform/thread", sig.name)
            continue
        installed.append(sig)
    return installed


async def _supervise(config: WaitConfig, interval: float) -> SupervisorResult:
    loop = asyncio.get_running_loop()
    cancel = asyncio.Event()
    terminate = asyncio.Event()
    installed = _install_signal_handlers(loop, cancel, terminate)
    try:
        waiter = PortWaiter(config.host, config.port, interval=interval)
        supervisor = DeadlineSupervisor(waiter, config.deadline, cancel=cancel, terminate=terminate)
        return await supervisor.run()
    finally:
        for sig in installed:
            loop.remove_signal_handler(sig)


def wait_for(config: WaitConfig, *, interval: float = POLL_INTERVAL) -> SupervisorResult:
    """Block until ``config.host:config.port`` accepts connections.

    SIGINT received while waiting stops the probe loop and is reported as
    :attr:`SupervisorState.INTERRUPTED`; SIGTERM is reported as
    :attr:`SupervisorState.TERMINATED`. The handlers only cover the wait
    itself: a SIGINT delivered while the event loop is being set up or torn
    down raises :class:`KeyboardInterrupt` in the caller instead.
    """

    return asyncio.run(_supervise(config, interval))
