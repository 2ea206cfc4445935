"""Resource ceilings applied to the candidate program.

Only the wall-clock deadline is enforced by the runner itself; the memory
ceiling is handed to the operating system through an enforcer. A process
killed by the OS for exceeding the memory ceiling looks like any other
crash (a signal or a non-zero exit), so it is reported as NON_ZERO_EXIT
and the failure detail notes that a memory ceiling was in force.
"""

from __future__ import annotations

import logging
import signal
from dataclasses import dataclass
from typing import Callable, Optional, Protocol

try:
    import resource
except ImportError:
    resource = None  # type: ignore[assignment]

logger = logging.getLogger(__name__)

_MEMORY_SIGNALS = {
    getattr(signal, name) for name in ("SIGKILL", "SIGSEGV", "SIGABRT") if hasattr(signal, name)
}


@dataclass(frozen=True)
class ResourceLimits:
    wall_clock_s: Optional[float] = None
    memory_bytes: Optional[int] = None

    @classmethod
    def unbounded(cls) -> "ResourceLimits":
        return cls()

    @property
    def is_bounded(self) -> bool:
        return self.wall_clock_s is not None or self.memory_bytes is not None


class LimitEnforcer(Protocol):
    def preexec(self) -> Optional[Callable[[], None]]:
        ...

    def explain(self, returncode: Optional[int]) -> Optional[str]:
        ...


class NullEnforcer:
    def preexec(self) -> Optional[Callable[[], None]]:
        return None

    def explain(self, returncode: Optional[int]) -> Optional[str]:
        return None


class RLimitEnforcer:
    def __init__(self, memory_bytes: int) -> None:
        self.memory_bytes = memory_bytes

    def preexec(self) -> Optional[Callable[[], None]]:
        memory_bytes = self.memory_bytes

        # Runs in the forked child: no imports, only the setrlimit call.
        def _limit_resources() -> None:
            resource.setrlimit(resource.RLIMIT_AS, (memory_bytes, memory_bytes))

        return _limit_resources

    def explain(self, returncode: Optional[int]) -> Optional[str]:
        if returncode is None or returncode == 0:
            return None
        if returncode < 0 and -returncode not in _MEMORY_SIGNALS:
            return None
        return f"a memory ceiling of {self.memory_bytes} bytes was in force and may have been exceeded"


_warned_unsupported = False


def enforcer_for(limits: ResourceLimits) -> LimitEnforcer:
    global _warned_unsupported
    if limits.memory_bytes is None:
        return NullEnforcer()
    if resource is None:
        if not _warned_unsupported:
            _warned_unsupported = True
            logger.warning("memory ceiling ignored: resource limits are not supported on this platform")
        return NullEnforcer()
    return RLimitEnforcer(limits.memory_bytes)
