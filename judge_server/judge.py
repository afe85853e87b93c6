import asyncio
import logging
import shutil
import tempfile
import uuid
from pathlib import Path
from typing import Optional

from .classifier import classify
from .config import COMPILE_TIMEOUT, COMPILERS, MAX_DIAGNOSTIC_SIZE, WORK_DIR_PREFIX
from .limits import LimitConfig
from .models import STOP_ON, JudgeRequest, JudgeResponse
from .outcome import CompileOutcome
from .runner import kill_group, run_with_limits

logger = logging.getLogger(__name__)


class JudgeRequestError(ValueError):
    """The request cannot be judged at all (no test cases, unknown language)."""


class Judge:
    def __init__(self, request: JudgeRequest, request_id: Optional[str] = None):
        if not request.tests:
            raise JudgeRequestError("No test cases provided")
        if request.language not in COMPILERS:
            raise JudgeRequestError(f"Unsupported language. Available: {list(COMPILERS.keys())}")

        self.request = request
        self.request_id = request_id or uuid.uuid4().hex[:8]
        self.limits = LimitConfig.from_request(request.time_limit_ms, request.memory_limit_mb)
        self.work_dir: Optional[Path] = None

    async def run(self) -> JudgeResponse:
        # Create temp working directory
        self.work_dir = Path(tempfile.mkdtemp(prefix=WORK_DIR_PREFIX))
        logger.info("[Judge %s] Language: %s, Tests: %d, Limits: %dms / %dMB",
                    self.request_id, self.request.language, len(self.request.tests),
                    self.limits.wall_time_ms, self.limits.memory_mb)

        try:
            logger.info("[Judge %s] Compiling...", self.request_id)
            compiled = await self._compile()
            if not compiled.success:
                logger.info("[Judge %s] Compile Error: %s", self.request_id, compiled.diagnostic[:200])
                return JudgeResponse(compile_ok=False, compile_diagnostic=compiled.diagnostic)

            return await self._run_tests(compiled.binary)
        finally:
            shutil.rmtree(self.work_dir, ignore_errors=True)

    async def _compile(self) -> CompileOutcome:
        compiler = COMPILERS[self.request.language]

        source_file = self.work_dir / "main.cpp"
        exe_file = self.work_dir / "prog"
        source_file.write_text(self.request.source, encoding="utf-8")

        libs = compiler.get("libs", [])
        cmd = [compiler["path"]] + compiler["args"] + [str(source_file), "-o", str(exe_file)] + libs
        logger.debug("[Judge %s] Compile command: %s", self.request_id, " ".join(cmd))

        try:
            process = await asyncio.create_subprocess_exec(
                *cmd,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
                cwd=str(self.work_dir),
                start_new_session=True,
            )
        except OSError as e:
            return CompileOutcome(success=False, diagnostic=f"Failed to run compiler: {e}")

        try:
            _, stderr = await asyncio.wait_for(process.communicate(), timeout=COMPILE_TIMEOUT)
        except asyncio.TimeoutError:
            # cc1plus and as run as children of the driver
            kill_group(process.pid)
            await process.wait()
            return CompileOutcome(success=False, diagnostic="Compilation timeout")

        diagnostic = stderr.decode("utf-8", errors="replace")[:MAX_DIAGNOSTIC_SIZE]
        if process.returncode != 0:
            return CompileOutcome(success=False, diagnostic=diagnostic)

        return CompileOutcome(success=True, diagnostic=diagnostic, binary=exe_file)

    async def _run_tests(self, binary: Path) -> JudgeResponse:
        response = JudgeResponse(compile_ok=True)

        for idx, test in enumerate(self.request.tests, 1):
            outcome = await run_with_limits(binary, test.stdin, self.limits, self.work_dir)
            result = classify(outcome, test.expected_stdout, self.limits)
            response.results.append(result)

            logger.info("[Judge %s] Test %d: %s, Time: %dms, Memory: %dKB",
                        self.request_id, idx, result.status.value, result.elapsed_ms, result.peak_memory_kb)

            if result.status in STOP_ON:
                skipped = len(self.request.tests) - idx
                if skipped:
                    logger.info("[Judge %s] Stopping after %s, %d test(s) not run",
                                self.request_id, result.status.value, skipped)
                break

        return response