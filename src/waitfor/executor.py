"""Hand control to the trailing command once the wait is over."""

from __future__ import annotations

import errno
import logging
import os
import sys

from .config import WaitConfig
from .supervisor import SupervisorResult, SupervisorState

logger = logging.getLogger("waitfor")


class StrictModeRefusal(RuntimeError):
    """Raised when strict mode withholds the trailing command after a failed wait."""

    def __init__(self, exit_code: int) -> None:
        super().__init__("strict mode, refusing to execute subprocess")
        self.exit_code = exit_code


def check_strict(config: WaitConfig, result: SupervisorResult) -> None:
    if config.command and config.strict and not result.succeeded:
        raise StrictModeRefusal(result.exit_code)


def execute(config: WaitConfig, result: SupervisorResult) -> int:
    """Exit with the wait status, or replace this process with the trailing command.

    Only returns when there is nothing to run, the wait was terminated by
    SIGTERM, or the command could not be started. A strict-mode refusal
    raises :class:`StrictModeRefusal`.
    """

    if not config.command:
        return result.exit_code
    if result.state is SupervisorState.TERMINATED:
        logger.debug("not executing %s after termination", config.command[0])
        return result.exit_code
    check_strict(config, result)

    command = list(config.command)
    logger.debug("executing %s", command)
    sys.stdout.flush()
    sys.stderr.flush()
    try:
        os.execvp(command[0], command)
    except OSError as exc:
        logger.error("cannot execute %s: %s", command[0], exc.strerror or exc)
        return 127 if exc.errno == errno.ENOENT else 126
