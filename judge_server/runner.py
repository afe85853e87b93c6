import asyncio
import logging
import os
import signal
import subprocess
import time
from contextlib import ExitStack, contextmanager
from dataclasses import dataclass
from pathlib import Path

from .config import MAX_OUTPUT_SIZE, MAX_STDERR_SIZE
from .limits import LimitConfig
from .outcome import ExecutionOutcome, SignalKind, Termination, signal_name
from .usage import collect_usage

logger = logging.getLogger(__name__)

# How often a running child is checked for termination
POLL_INTERVAL = 0.005  # s


@dataclass
class ChildHandle:
    """A started child that leads its own process group."""

    popen: subprocess.Popen
    started_at: float

    @property
    def pid(self) -> int:
        return self.popen.pid

    @property
    def pgid(self) -> int:
        # start_new_session makes the child its own session and group leader
        return self.popen.pid


def kill_group(pgid: int):
    try:
        os.killpg(pgid, signal.SIGKILL)
    except ProcessLookupError:
        pass  # every member already exited


@contextmanager
def spawn_in_group(binary: Path, limits: LimitConfig, stdin, stdout, stderr, cwd: Path):
    """
    Start binary in a new process group with limits applied, and kill the whole
    group when the block is left, however it is left.
    """
    # Taken before fork so the child can never be older than the measured time
    started_at = time.monotonic()
    popen = subprocess.Popen(
        [str(binary)],
        stdin=stdin,
        stdout=stdout,
        stderr=stderr,
        cwd=str(cwd),
        start_new_session=True,
        preexec_fn=limits.apply,
        close_fds=True,
    )
    handle = ChildHandle(popen=popen, started_at=started_at)
    try:
        yield handle
    finally:
        kill_group(handle.pgid)
        if handle.popen.returncode is None:
            # Left early (cancelled); SIGKILL is already on its way so this is short
            try:
                os.wait4(handle.pid, 0)
            except ChildProcessError:
                pass


def _try_reap(handle: ChildHandle):
    """Reap the child if it has terminated, without blocking."""
    pid, status, rusage = os.wait4(handle.pid, os.WNOHANG)
    if pid == 0:
        return None
    finished_at = time.monotonic()
    handle.popen.returncode = os.waitstatus_to_exitcode(status)
    return status, rusage, finished_at


async def _wait_with_deadline(handle: ChildHandle, deadline_sec: float):
    """
    Race natural termination against the wall-clock deadline.

    Polls the child between short sleeps on the event loop, so no thread is tied
    up per running child. Once the deadline has been observed the run is a
    timeout, even if the child exits right after. The child is always reaped
    before returning.
    """
    deadline = handle.started_at + deadline_sec
    while True:
        reaped = _try_reap(handle)
        if reaped is not None:
            return (False,) + reaped
        now = time.monotonic()
        if now >= deadline:
            break
        await asyncio.sleep(min(POLL_INTERVAL, deadline - now))

    logger.debug("Deadline of %.3fs expired, killing group %d", deadline_sec, handle.pgid)
    kill_group(handle.pgid)
    while (reaped := _try_reap(handle)) is None:
        await asyncio.sleep(POLL_INTERVAL)
    return (True,) + reaped


def _read_capped(path: Path, limit: int) -> str:
    try:
        with open(path, "rb") as f:
            return f.read(limit).decode("utf-8", errors="replace")
    except FileNotFoundError:
        return ""


async def run_with_limits(binary: Path, stdin: str, limits: LimitConfig, work_dir: Path) -> ExecutionOutcome:
    """
    Run binary once with the given stdin under limits.

    stdout and stderr go to files inside work_dir so nothing blocks on a full
    pipe; both are captured whichever way the run ends.
    """
    stdin_path = work_dir / "stdin.txt"
    stdout_path = work_dir / "stdout.txt"
    stderr_path = work_dir / "stderr.txt"

    with ExitStack() as stack:
        try:
            stdin_path.write_bytes(stdin.encode("utf-8"))
            fin = stack.enter_context(open(stdin_path, "rb"))
            fout = stack.enter_context(open(stdout_path, "wb"))
            ferr = stack.enter_context(open(stderr_path, "wb"))
            child = stack.enter_context(spawn_in_group(binary, limits, fin, fout, ferr, work_dir))
        except (OSError, subprocess.SubprocessError) as e:
            logger.warning("Failed to start %s: %s", binary, e)
            return ExecutionOutcome(termination=Termination.START_FAILED, start_error=str(e))

        deadline_expired, status, rusage, finished_at = await _wait_with_deadline(child, limits.wall_time_sec)

    usage = collect_usage(child.started_at, finished_at, rusage)

    exit_code = 0
    kind = None
    name = None
    if os.WIFSIGNALED(status):
        signum = os.WTERMSIG(status)
        kind = SignalKind.from_signal(signum)
        name = signal_name(signum)
        termination = Termination.SIGNALED
    else:
        exit_code = os.WEXITSTATUS(status)
        termination = Termination.EXITED

    if deadline_expired:
        termination = Termination.DEADLINE_EXPIRED

    return ExecutionOutcome(
        termination=termination,
        exit_code=exit_code,
        signal_kind=kind,
        signal_name=name,
        stdout=_read_capped(stdout_path, MAX_OUTPUT_SIZE),
        stderr=_read_capped(stderr_path, MAX_STDERR_SIZE),
        elapsed_ms=usage.elapsed_ms,
        cpu_time_ms=usage.cpu_time_ms,
        peak_memory_kb=usage.peak_memory_kb,
    )
