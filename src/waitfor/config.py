"""Configuration for a single wait invocation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple

DEFAULT_TIMEOUT = 15
POLL_INTERVAL = 1.0


@dataclass(frozen=True)
class WaitConfig:
    """Immutable settings consumed by the supervisor and the executor."""

    host: str
    port: int
    timeout: int = DEFAULT_TIMEOUT
    quiet: bool = False
    strict: bool = False
    command: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        if not self.host:
            raise ValueError("host must not be empty")
        if not 1 <= self.port <= 65535:
            raise ValueError(f"port must be between 1 and 65535, got {self.port}")
        if self.timeout < 0:
            raise ValueError(f"timeout must not be negative, got {self.timeout}")
        object.__setattr__(self, "command", tuple(self.command))

    @property
    def target(self) -> str:
        return format_target(self.host, self.port)

    @property
    def deadline(self) -> Optional[float]:
        """Deadline in seconds, or ``None`` when the timeout is disabled."""

        return float(self.timeout) if self.timeout > 0 else None


def parse_target(value: str) -> Tuple[str, int]:
    """Split ``host:port`` (or ``[ipv6]:port``) into its parts."""

    host, sep, port = value.rpartition(":")
    if not sep or not host or not port:
        raise ValueError(f"expected HOST:PORT, got {value!r}")
    if host.startswith("[") and host.endswith("]"):
        host = host[1:-1]
    try:
        number = int(port)
    except ValueError as exc:
        raise ValueError(f"invalid port in {value!r}") from exc
    if not 1 <= number <= 65535:
        raise ValueError(f"port out of range in {value!r}")
    return host, number


def split_command(argv: Sequence[str]) -> Tuple[List[str], List[str]]:
    """Separate our own arguments from the trailing command after ``--``."""

    args = list(argv)
    if "--" not in args:
        return args, []
    idx = args.index("--")
    return args[:idx], args[idx + 1 :]


def format_target(host: str, port: int) -> str:
    if ":" in host:
        return f"[{host}]:{port}"
    return f"{host}:{port}"
