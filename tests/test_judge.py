import asyncio
from pathlib import Path

import pytest

from judge_server import judge as judge_module
from judge_server.judge import Judge, JudgeRequestError
from judge_server.models import JudgeRequest, JudgeStatus
from judge_server.outcome import CompileOutcome

from conftest import requires_gxx, wait_until_gone

DISPATCH = """read cmd
case "$cmd" in
  ok) echo 6 ;;
  wa) echo 7 ;;
  crash) kill -SEGV $$ ;;
  loop) while :; do :; done ;;
  oom) exit 137 ;;
esac"""


def make_request(*cases, **kwargs):
    tests = [{"stdin": stdin, "expected_stdout": expected} for stdin, expected in cases]
    return JudgeRequest(source=kwargs.pop("source", ""), tests=tests, **kwargs)


def judge(request):
    return asyncio.run(Judge(request).run())


@pytest.fixture
def prebuilt(monkeypatch, make_program):
    """Skip the compiler and judge a shell script instead."""
    binary = make_program(DISPATCH)
    work_dirs = []

    async def fake_compile(self):
        work_dirs.append(self.work_dir)
        return CompileOutcome(success=True, binary=binary)

    monkeypatch.setattr(Judge, "_compile", fake_compile)
    return work_dirs


def statuses(response):
    return [r.status for r in response.results]


def test_request_without_tests_is_rejected():
    with pytest.raises(JudgeRequestError):
        Judge(make_request())


def test_unknown_language_is_rejected():
    with pytest.raises(JudgeRequestError):
        Judge(make_request(("ok\n", "6"), language="brainfuck"))


def test_all_tests_run_in_order(prebuilt):
    response = judge(make_request(("ok\n", "6"), ("wa\n", "7"), ("ok\n", "6")))

    assert response.compile_ok
    assert response.compile_diagnostic is None
    assert statuses(response) == [JudgeStatus.ACCEPTED] * 3


def test_wrong_answer_does_not_stop(prebuilt):
    response = judge(make_request(("wa\n", "6"), ("ok\n", "6"), ("wa\n", "6")))

    assert statuses(response) == [JudgeStatus.WRONG_ANSWER, JudgeStatus.ACCEPTED, JudgeStatus.WRONG_ANSWER]


@pytest.mark.parametrize("stdin, status", [
    ("crash\n", JudgeStatus.RUNTIME_ERROR),
    ("loop\n", JudgeStatus.TIME_LIMIT),
    ("oom\n", JudgeStatus.MEMORY_LIMIT),
])
def test_stopping_verdict_skips_the_rest(prebuilt, stdin, status):
    request = make_request(("ok\n", "6"), (stdin, "6"), ("ok\n", "6"), ("ok\n", "6"), time_limit_ms=300)
    response = judge(request)

    assert statuses(response) == [JudgeStatus.ACCEPTED, status]


def test_work_dir_is_removed(prebuilt):
    judge(make_request(("loop\n", "6"), time_limit_ms=200))

    assert len(prebuilt) == 1
    assert not Path(prebuilt[0]).exists()


def test_compile_failure_runs_nothing(monkeypatch):
    async def failing_compile(self):
        return CompileOutcome(success=False, diagnostic="main.cpp:1:1: error: expected declaration")

    async def must_not_run(*args, **kwargs):
        raise AssertionError("a test case ran against a binary that failed to build")

    monkeypatch.setattr(Judge, "_compile", failing_compile)
    monkeypatch.setattr(judge_module, "run_with_limits", must_not_run)

    response = judge(make_request(("ok\n", "6")))

    assert response.compile_ok is False
    assert "expected declaration" in response.compile_diagnostic
    assert response.results == []


def test_missing_compiler_is_compile_failure(monkeypatch):
    monkeypatch.setitem(judge_module.COMPILERS, "c++17", {"path": "/nonexistent/g++", "args": []})

    response = judge(make_request(("ok\n", "6")))

    assert response.compile_ok is False
    assert "Failed to run compiler" in response.compile_diagnostic


def test_compile_timeout_kills_compiler_children(monkeypatch, make_program, tmp_path):
    pid_file = tmp_path / "bg.pid"
    slow_compiler = make_program(f"sleep 30 &\necho $! > {pid_file}\nwait", name="slow-g++")
    monkeypatch.setitem(judge_module.COMPILERS, "c++17", {"path": str(slow_compiler), "args": []})
    monkeypatch.setattr(judge_module, "COMPILE_TIMEOUT", 0.5)

    response = judge(make_request(("ok\n", "6")))

    assert response.compile_ok is False
    assert response.compile_diagnostic == "Compilation timeout"

    if not Path("/proc").is_dir():
        pytest.skip("needs /proc to inspect the compiler's child")
    assert wait_until_gone(int(pid_file.read_text()))


SUM = """
#include <iostream>
int main() {
    int n; long long s = 0, x;
    std::cin >> n;
    for (int i = 0; i < n; i++) { std::cin >> x; s += x; }
    std::cout << s << std::endl;
}
"""

LOOP = """
int main() {
    volatile unsigned long x = 0;
    for (;;) x++;
}
"""

ALLOC = """
#include <vector>
#include <iostream>
int main() {
    std::vector<char> v(512u << 20, 1);
    std::cout << v[12345] << std::endl;
}
"""


@requires_gxx
def test_compiled_sum_is_accepted():
    response = judge(make_request(("3\n1 2 3\n", "6"), source=SUM))

    assert response.compile_ok
    assert statuses(response) == [JudgeStatus.ACCEPTED]


@requires_gxx
def test_compiled_sum_with_wrong_expectation():
    response = judge(make_request(("3\n1 2 3\n", "7"), source=SUM))

    result = response.results[0]
    assert result.status == JudgeStatus.WRONG_ANSWER
    assert result.reason == 'expected "7", got "6"'


@requires_gxx
def test_compiled_infinite_loop_is_tle():
    response = judge(make_request(("", ""), source=LOOP, time_limit_ms=1000))

    result = response.results[0]
    assert result.status == JudgeStatus.TIME_LIMIT
    assert result.elapsed_ms >= 1000


@requires_gxx
def test_compiled_big_allocation_is_mle():
    response = judge(make_request(("", ""), source=ALLOC, memory_limit_mb=128))

    assert statuses(response) == [JudgeStatus.MEMORY_LIMIT]


@requires_gxx
def test_syntax_error_is_compile_error():
    response = judge(make_request(("", ""), source="int main( {"))

    assert response.compile_ok is False
    assert response.compile_diagnostic
    assert response.results == []
