import enum
from typing import List, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator

from .config import DEFAULT_LANGUAGE, DEFAULT_MEMORY_LIMIT, DEFAULT_TIME_LIMIT


class JudgeStatus(str, enum.Enum):
    ACCEPTED = "AC"
    WRONG_ANSWER = "WA"
    TIME_LIMIT = "TLE"
    MEMORY_LIMIT = "MLE"
    RUNTIME_ERROR = "RTE"
    COMPILE_ERROR = "CE"


# Verdicts after which the remaining test cases are not run
STOP_ON = frozenset({JudgeStatus.TIME_LIMIT, JudgeStatus.MEMORY_LIMIT, JudgeStatus.RUNTIME_ERROR})


class TestCase(BaseModel):
    model_config = ConfigDict(frozen=True)

    stdin: str = ""
    expected_stdout: str = ""


class JudgeRequest(BaseModel):
    source: str = Field(validation_alias=AliasChoices("source", "source_cpp"))
    language: str = DEFAULT_LANGUAGE
    time_limit_ms: Optional[int] = DEFAULT_TIME_LIMIT
    memory_limit_mb: Optional[int] = DEFAULT_MEMORY_LIMIT
    tests: List[TestCase] = Field(default_factory=list, validation_alias=AliasChoices("tests", "test_cases"))

    @field_validator("time_limit_ms")
    @classmethod
    def _default_time_limit(cls, v):
        # Missing, null and non-positive limits all fall back to the default
        return v if v and v > 0 else DEFAULT_TIME_LIMIT

    @field_validator("memory_limit_mb")
    @classmethod
    def _default_memory_limit(cls, v):
        return v if v and v > 0 else DEFAULT_MEMORY_LIMIT


class TestResult(BaseModel):
    status: JudgeStatus
    stdout: str = ""
    stderr: str = ""
    reason: Optional[str] = None
    exit_code: int = 0
    signal_name: Optional[str] = None
    elapsed_ms: int = 0
    peak_memory_kb: int = 0
    expected: Optional[str] = None  # WA only
    actual: Optional[str] = None  # WA only


class JudgeResponse(BaseModel):
    compile_ok: bool
    compile_diagnostic: Optional[str] = None
    results: List[TestResult] = Field(default_factory=list)
