import signal
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Optional


class Termination(Enum):
    # The process exited on its own with an exit code.
    EXITED = "exited"
    # The process was terminated by a signal it did not ask for.
    SIGNALED = "signaled"
    # The wall-clock deadline fired first and the process group was killed.
    DEADLINE_EXPIRED = "deadline expired"
    # The binary could not be executed at all.
    START_FAILED = "start failed"


class SignalKind(Enum):
    KILLED = "killed"
    ABORTED = "aborted"
    # SIGXCPU, the soft RLIMIT_CPU was reached.
    CPU_LIMIT = "cpu limit"
    # SIGXFSZ, the child wrote past RLIMIT_FSIZE.
    OUTPUT_LIMIT = "output limit"
    OTHER = "other"

    @classmethod
    def from_signal(cls, signum: int) -> "SignalKind":
        return _SIGNAL_KINDS.get(signum, cls.OTHER)


_SIGNAL_KINDS = {
    signal.SIGKILL: SignalKind.KILLED,
    signal.SIGABRT: SignalKind.ABORTED,
    signal.SIGXCPU: SignalKind.CPU_LIMIT,
    signal.SIGXFSZ: SignalKind.OUTPUT_LIMIT,
}


def signal_name(signum: int) -> str:
    try:
        return signal.Signals(signum).name
    except ValueError:
        return f"SIG{signum}"


@dataclass(frozen=True)
class ExecutionOutcome:
    termination: Termination
    exit_code: int = 0
    signal_kind: Optional[SignalKind] = None
    signal_name: Optional[str] = None

    stdout: str = ""
    stderr: str = ""

    elapsed_ms: int = 0
    cpu_time_ms: int = 0
    peak_memory_kb: int = 0

    start_error: str = ""


@dataclass(frozen=True)
class CompileOutcome:
    success: bool
    diagnostic: str = ""
    binary: Optional[Path] = None
