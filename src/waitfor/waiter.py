"""TCP polling loop that waits until an endpoint accepts connections."""

from __future__ import annotations

import asyncio
import contextlib
import logging
import time
from dataclasses import dataclass

from tenacity import AsyncRetrying, RetryCallState, retry_if_exception_type, stop_never, wait_fixed

from .config import POLL_INTERVAL, format_target

logger = logging.getLogger("waitfor")


@dataclass(frozen=True)
class ProbeOutcome:
    """Result reported by :class:`PortWaiter` once the endpoint is reachable."""

    succeeded: bool
    elapsed_seconds: int
    attempts: int = 1


async def probe(host: str, port: int) -> None:
    """Open and immediately close a TCP connection to ``host:port``.

    Raises :class:`OSError` when the endpoint is not accepting connections,
    or :class:`UnicodeError` when the host name cannot be IDNA-encoded.
    """

    _reader, writer = await asyncio.open_connection(host, port)
    writer.close()
    with contextlib.suppress(OSError):
        await writer.wait_closed()


class PortWaiter:
    """Poll ``host:port`` at a fixed interval until a connect succeeds.

    The loop has no notion of a deadline; it returns on success only and is
    expected to be cancelled from outside otherwise.
    """

    def __init__(self, host: str, port: int, *, interval: float = POLL_INTERVAL) -> None:
        self.host = host
        self.port = port
        self.interval = interval

    @property
    def target(self) -> str:
        return format_target(self.host, self.port)

    def _log_failure(self, retry_state: RetryCallState) -> None:
        exc = retry_state.outcome.exception() if retry_state.outcome else None
        logger.debug(
            "%s not available yet (attempt %d): %s",
            self.target,
            retry_state.attempt_number,
            exc,
        )

    async def wait(self) -> ProbeOutcome:
        start = int(time.time())
        retrying = AsyncRetrying(
            retry=retry_if_exception_type((OSError, UnicodeError)),
            wait=wait_fixed(self.interval),
            stop=stop_never,
            before_sleep=self._log_failure,
            reraise=True,
        )
        attempts = 0
        async for attempt in retrying:
            with attempt:
                attempts = attempt.retry_state.attempt_number
                await probe(self.host, self.port)
        elapsed = int(time.time()) - start
        logger.info("%s is available after %d seconds", self.target, elapsed)
        return ProbeOutcome(succeeded=True, elapsed_seconds=elapsed, attempts=attempts)
