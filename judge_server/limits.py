import math
import platform
import resource
from dataclasses import dataclass
from typing import Optional

from .config import MAX_OUTPUT_SIZE, STACK_LIMIT_KB


# setrlimit() overflows past a signed 64-bit value
_RLIM_MAX = 2 ** 63 - 1


def _setrlimit(which: int, soft: int, hard: Optional[int] = None):
    # An unprivileged process cannot raise its hard limit, so clamp to it
    hard = soft if hard is None else hard
    _, current_hard = resource.getrlimit(which)
    if current_hard != resource.RLIM_INFINITY:
        soft = min(soft, current_hard)
        hard = min(hard, current_hard)
    if soft >= _RLIM_MAX:
        soft = resource.RLIM_INFINITY
    if hard >= _RLIM_MAX:
        hard = resource.RLIM_INFINITY
    resource.setrlimit(which, (soft, hard))


@dataclass(frozen=True)
class LimitConfig:
    """
    OS-enforceable limits for one run of the submitted binary.

    wall_time_ms is enforced from the outside by the runner; everything else is
    installed as an rlimit in the child right before exec.
    """

    wall_time_ms: int
    memory_mb: int
    stack_kb: int = STACK_LIMIT_KB
    cpu_time_s: Optional[int] = None
    output_bytes: int = MAX_OUTPUT_SIZE

    @classmethod
    def from_request(cls, time_limit_ms: int, memory_limit_mb: int) -> "LimitConfig":
        return cls(
            wall_time_ms=time_limit_ms,
            memory_mb=memory_limit_mb,
            cpu_time_s=max(1, math.ceil(time_limit_ms / 1000)),
        )

    @property
    def wall_time_sec(self) -> float:
        return self.wall_time_ms / 1000.0

    @property
    def memory_bytes(self) -> int:
        return self.memory_mb * 1024 * 1024

    def apply(self):
        """Runs in the child between fork and exec."""
        _setrlimit(resource.RLIMIT_AS, self.memory_bytes)

        # macOS refuses most stack limits, leave its default alone
        if platform.system() != "Darwin":
            _setrlimit(resource.RLIMIT_STACK, self.stack_kb * 1024)

        if self.cpu_time_s is not None:
            # SIGXCPU at the soft limit, SIGKILL one second later
            _setrlimit(resource.RLIMIT_CPU, self.cpu_time_s, self.cpu_time_s + 1)

        _setrlimit(resource.RLIMIT_FSIZE, self.output_bytes)

        # Core dumps slow crashes down enough to be mistaken for timeouts
        _setrlimit(resource.RLIMIT_CORE, 0)
