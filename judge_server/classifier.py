from .limits import LimitConfig
from .models import JudgeStatus, TestResult
from .outcome import ExecutionOutcome, SignalKind, Termination

# What a shell reports for a child killed by SIGKILL (128 + 9); OOM kills
# sometimes only surface this way.
OOM_EXIT_CODE = 137

BAD_ALLOC_MARKER = "std::bad_alloc"


def _result(outcome: ExecutionOutcome, status: JudgeStatus, reason=None, **extra) -> TestResult:
    return TestResult(
        status=status,
        stdout=outcome.stdout,
        stderr=outcome.stderr,
        reason=reason,
        exit_code=outcome.exit_code,
        signal_name=outcome.signal_name,
        elapsed_ms=outcome.elapsed_ms,
        peak_memory_kb=outcome.peak_memory_kb,
        **extra,
    )


def _peak_over_limit(outcome: ExecutionOutcome, limits: LimitConfig) -> bool:
    return outcome.peak_memory_kb >= limits.memory_mb * 1024


def _classify_signal(outcome: ExecutionOutcome, limits: LimitConfig) -> TestResult:
    kind = outcome.signal_kind

    if kind == SignalKind.CPU_LIMIT:
        return _result(outcome, JudgeStatus.TIME_LIMIT,
                       f"exceeded cpu time limit of {limits.cpu_time_s}s")

    if kind == SignalKind.KILLED:
        # The hard RLIMIT_CPU also ends in SIGKILL
        if limits.cpu_time_s is not None and outcome.cpu_time_ms >= limits.cpu_time_s * 1000:
            return _result(outcome, JudgeStatus.TIME_LIMIT,
                           f"exceeded cpu time limit of {limits.cpu_time_s}s")
        return _result(outcome, JudgeStatus.MEMORY_LIMIT,
                       f"likely memory limit exceeded ({outcome.signal_name})")

    if _peak_over_limit(outcome, limits):
        return _result(outcome, JudgeStatus.MEMORY_LIMIT,
                       f"peak memory {outcome.peak_memory_kb}KB reached the {limits.memory_mb}MB limit")

    # Under RLIMIT_AS a failed operator new throws instead of getting killed
    if kind == SignalKind.ABORTED and BAD_ALLOC_MARKER in outcome.stderr:
        return _result(outcome, JudgeStatus.MEMORY_LIMIT, "memory limit exceeded (std::bad_alloc)")

    if kind == SignalKind.OUTPUT_LIMIT:
        return _result(outcome, JudgeStatus.RUNTIME_ERROR, "output limit exceeded")

    return _result(outcome, JudgeStatus.RUNTIME_ERROR, f"terminated by {outcome.signal_name}")


def classify(outcome: ExecutionOutcome, expected_stdout: str, limits: LimitConfig) -> TestResult:
    """
    Map one execution to its verdict.

    A deadline expiry always wins over whatever signal the killed process was
    reaped with. Output is only compared for a zero exit.
    """
    if outcome.termination == Termination.START_FAILED:
        return _result(outcome, JudgeStatus.RUNTIME_ERROR, f"failed to start: {outcome.start_error}")

    if outcome.termination == Termination.DEADLINE_EXPIRED:
        return _result(outcome, JudgeStatus.TIME_LIMIT, f"exceeded {limits.wall_time_ms}ms")

    if outcome.termination == Termination.SIGNALED:
        return _classify_signal(outcome, limits)

    if outcome.exit_code == OOM_EXIT_CODE:
        return _result(outcome, JudgeStatus.MEMORY_LIMIT,
                       f"likely memory limit exceeded (exit {OOM_EXIT_CODE})")

    if outcome.exit_code != 0:
        if _peak_over_limit(outcome, limits):
            return _result(outcome, JudgeStatus.MEMORY_LIMIT,
                           f"peak memory {outcome.peak_memory_kb}KB reached the {limits.memory_mb}MB limit")
        return _result(outcome, JudgeStatus.RUNTIME_ERROR, f"exited with code {outcome.exit_code}")

    actual = outcome.stdout.strip()
    expected = expected_stdout.strip()
    if actual == expected:
        return _result(outcome, JudgeStatus.ACCEPTED)

    return _result(outcome, JudgeStatus.WRONG_ANSWER, f'expected "{expected}", got "{actual}"',
                   expected=expected, actual=actual)
