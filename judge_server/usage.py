import platform
import resource
from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class ResourceUsage:
    elapsed_ms: int = 0
    cpu_time_ms: int = 0
    peak_memory_kb: int = 0


def _max_rss_kib(rusage: resource.struct_rusage) -> int:
    # ru_maxrss is in bytes on macOS and in KiB everywhere else
    if platform.system() == "Darwin":
        return (rusage.ru_maxrss + 1023) // 1024
    return rusage.ru_maxrss


def collect_usage(started_at: float, finished_at: float,
                  rusage: Optional[resource.struct_rusage]) -> ResourceUsage:
    """
    Usage of a terminated child from its accounting record.

    Metrics are diagnostic only: a missing record yields zeros instead of an error.
    """
    elapsed_ms = max(0, int((finished_at - started_at) * 1000))
    if rusage is None:
        return ResourceUsage(elapsed_ms=elapsed_ms)

    cpu_time_ms = int((rusage.ru_utime + rusage.ru_stime) * 1000)
    return ResourceUsage(
        elapsed_ms=elapsed_ms,
        cpu_time_ms=cpu_time_ms,
        peak_memory_kb=_max_rss_kib(rusage),
    )
