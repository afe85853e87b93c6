"""
Remote Judge Submitter - HTTP client for the judge server
Supports single and batch submissions with thread-pool concurrency
"""
import asyncio
import sys
import aiohttp
from pathlib import Path
from typing import List, Dict
from tqdm import tqdm
from concurrent.futures import ThreadPoolExecutor, as_completed


def load_test_cases(test_dir: Path) -> List[Dict]:
    """
    Pair N.in with N.out in a directory, ordered by N.

    Inputs without a matching .out file are skipped.
    """
    tests = []
    for input_file in sorted(Path(test_dir).glob("*.in"), key=lambda p: int(p.stem)):
        output_file = input_file.with_suffix(".out")
        if not output_file.exists():
            continue
        tests.append({
            "stdin": input_file.read_text(encoding="utf-8"),
            "expected_stdout": output_file.read_text(encoding="utf-8"),
        })
    return tests


class RemoteJudgeSubmitter:
    def __init__(self, base_url: str = "http://localhost:8080", max_workers: int = None):
        """
        Args:
            base_url: judge server address
            max_workers: max concurrent submissions, None uses the executor default
        """
        self.base_url = base_url
        self.judge_url = f"{base_url}/judge"
        self.max_workers = max_workers

    async def submit_code_async(
        self,
        code: str,
        tests: List[Dict],
        time_limit_ms: int = 1000,
        memory_limit_mb: int = 128,
        language: str = "c++17"
    ) -> Dict:
        """
        Submit code and wait for the judge response.

        Returns:
            result dict with the overall verdict and the per-test results
        """
        payload = {
            "source": code,
            "language": language,
            "time_limit_ms": time_limit_ms,
            "memory_limit_mb": memory_limit_mb,
            "tests": tests,
        }

        async with aiohttp.ClientSession() as session:
            try:
                async with session.post(self.judge_url, json=payload) as response:
                    if response.status != 200:
                        return {
                            "success": False,
                            "verdict": "System Error",
                            "message": f"HTTP {response.status}: {await response.text()}",
                            "results": [],
                            "passed": False,
                            "failed_test": None,
                        }
                    result = await response.json()
            except aiohttp.ClientError as e:
                return {
                    "success": False,
                    "verdict": "System Error",
                    "message": f"Submit failed: {e}",
                    "results": [],
                    "passed": False,
                    "failed_test": None,
                }

        return summarize(result, len(tests))

    def submit_code(self, code: str, tests: List[Dict], **kwargs) -> Dict:
        """Synchronous wrapper around submit_code_async"""
        return asyncio.run(self.submit_code_async(code, tests, **kwargs))

    def batch_submit_code(
        self,
        batch_code: List[str],
        tests: List[Dict],
        use_multithreading: bool = True,
        **kwargs
    ) -> Dict:
        """
        Submit several sources against the same tests.

        Returns:
            pass rate and the accepted submissions
        """
        code_cnt = len(batch_code)
        passed_cnt = 0
        error_cnt = 0
        passed_submissions = []

        def record(idx: int, code: str, result: Dict):
            nonlocal passed_cnt, error_cnt
            if not result.get("success"):
                error_cnt += 1
            elif result.get("passed"):
                passed_cnt += 1
                passed_submissions.append({"index": idx, "code": code, "result": result})

        if use_multithreading and code_cnt > 1:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                future_to_idx = {
                    executor.submit(self.submit_code, code, tests, **kwargs): (idx, code)
                    for idx, code in enumerate(batch_code)
                }

                with tqdm(total=code_cnt, desc="Submitting") as pbar:
                    for future in as_completed(future_to_idx):
                        idx, code = future_to_idx[future]
                        record(idx, code, future.result())
                        pbar.update(1)
        else:
            for idx, code in enumerate(tqdm(batch_code, desc="Submitting")):
                record(idx, code, self.submit_code(code, tests, **kwargs))

        valid_cnt = code_cnt - error_cnt
        return {
            "valid": valid_cnt,
            "errors": error_cnt,
            "pass_rate": passed_cnt / valid_cnt if valid_cnt else 0.0,
            "passed_submissions": sorted(passed_submissions, key=lambda s: s["index"]),
        }


def summarize(response: Dict, test_count: int) -> Dict:
    """Collapse a JudgeResponse body into one verdict, the first non-AC one wins"""
    if not response.get("compile_ok"):
        return {
            "success": True,
            "verdict": "CE",
            "message": response.get("compile_diagnostic", ""),
            "results": [],
            "passed": False,
            "failed_test": None,
        }

    results = response.get("results", [])
    verdict = "AC"
    failed_test = None
    message = f"Passed {len(results)}/{test_count} test cases"
    for idx, r in enumerate(results, 1):
        if r.get("status") != "AC":
            verdict = r.get("status")
            failed_test = idx
            message = r.get("reason", "")
            break

    return {
        "success": True,
        "verdict": verdict,
        "message": message,
        "results": results,
        "time": max((r.get("elapsed_ms", 0) for r in results), default=0),
        "memory": max((r.get("peak_memory_kb", 0) for r in results), default=0),
        "passed": verdict == "AC" and len(results) == test_count,
        "failed_test": failed_test,
    }


# Example usage: python remote_submitter.py main.cpp testcases/
if __name__ == "__main__":
    if len(sys.argv) < 3:
        print("Usage: python remote_submitter.py <source.cpp> <test_dir> [base_url]")
        sys.exit(2)

    code_file = Path(sys.argv[1])
    test_dir = Path(sys.argv[2])
    submitter = RemoteJudgeSubmitter(base_url=sys.argv[3] if len(sys.argv) > 3 else "http://localhost:8080")

    tests = load_test_cases(test_dir)
    if not tests:
        print(f"Error: no test cases found in {test_dir}")
        sys.exit(1)

    result = submitter.submit_code(code_file.read_text(encoding="utf-8"), tests)

    print(f"Verdict: {result['verdict']}")
    print(f"Time: {result.get('time', 0)}ms")
    print(f"Memory: {result.get('memory', 0)}KB")
    print(f"Failed Test: {result.get('failed_test') or 'N/A'}")
    if result["message"]:
        print(result["message"])
