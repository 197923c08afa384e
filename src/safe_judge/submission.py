from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Mapping

from .errors import InputValidationError
from .execution.types import ExecutionLimits, ExecutionOutcome
from .settings import DEFAULT_MEMORY_LIMIT_MB, DEFAULT_TIME_LIMIT_MS
from .verdict import Verdict


def _limit(value: Any, default: int, field_name: str) -> int:
    """Validate a positive integer limit from a request payload.

    Example:
        ```python
        time_limit = _limit(payload.get("timeLimit"), 3000, "timeLimit")
        ```
    """
    if value is None:
        return default
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise InputValidationError(f"'{field_name}' must be a positive integer")
    return value


def _text(value: Any, field_name: str) -> str | None:
    """Validate an optional string field from a request payload.

    Example:
        ```python
        source_code = _text(payload.get("sourceCode"), "sourceCode")
        ```
    """
    if value is None:
        return None
    if not isinstance(value, str):
        raise InputValidationError(f"'{field_name}' must be a string")
    return value


@dataclass(frozen=True, slots=True)
class TestCase:
    """One input with the output a correct program prints for it.

    Example:
        ```python
        case = TestCase(input="1 1\\n", expected_output="2\\n")
        ```
    """

    __test__ = False

    input: str
    expected_output: str
    is_sample: bool = False

    @classmethod
    def from_payload(cls, raw: Any) -> "TestCase":
        """Build a test case from `{input, output, isSample}` (or `expectedOutput`).

        Example:
            ```python
            case = TestCase.from_payload({"input": "3", "output": "9", "isSample": True})
            ```
        """
        if not isinstance(raw, Mapping):
            raise InputValidationError("Each test case must be an object")
        expected = raw.get("output", raw.get("expectedOutput"))
        if expected is None:
            raise InputValidationError("Each test case needs an 'output'")
        return cls(
            input=str(raw.get("input") or ""),
            expected_output=str(expected),
            is_sample=bool(raw.get("isSample", False)),
        )


@dataclass(frozen=True, slots=True)
class Submission:
    """An accepted grading request. Immutable once built.

    Exactly one of `source_code` (inline text) and `source_upload` (a
    previously uploaded file) carries the program.

    Example:
        ```python
        submission = Submission(language="python", source_code="print(2)", test_cases=(case,))
        ```
    """

    language: str
    test_cases: tuple[TestCase, ...]
    source_code: str | None = None
    source_upload: Path | None = None
    time_limit_ms: int = DEFAULT_TIME_LIMIT_MS
    memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    callback_url: str | None = None
    auth_token: str | None = None

    def __post_init__(self) -> None:
        """Reject submissions missing language, source or test cases.

        Example:
            ```python
            Submission(language="", source_code="x", test_cases=())  # raises InputValidationError
            ```
        """
        missing = []
        if not self.language:
            missing.append("language")
        if not self.source_code and self.source_upload is None:
            missing.append("sourceCode")
        if not self.test_cases:
            missing.append("testCases")
        if missing:
            raise InputValidationError(f"Missing required fields: {', '.join(missing)}")
        _limit(self.time_limit_ms, DEFAULT_TIME_LIMIT_MS, "timeLimit")
        _limit(self.memory_limit_mb, DEFAULT_MEMORY_LIMIT_MB, "memoryLimit")

    @property
    def limits(self) -> ExecutionLimits:
        """Return the per-test-case execution bounds.

        Example:
            ```python
            limits = submission.limits
            ```
        """
        return ExecutionLimits(self.time_limit_ms, self.memory_limit_mb)

    @classmethod
    def from_payload(
        cls,
        payload: Mapping[str, Any],
        *,
        default_time_limit_ms: int = DEFAULT_TIME_LIMIT_MS,
        default_memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB,
    ) -> "Submission":
        """Build a submission from a camelCase request body.

        Recognised keys: `language`, `sourceCode`, `sourceUpload`,
        `testCases`, `timeLimit` (ms), `memoryLimit` (MB),
        `callbackUrl` (or `callbackAddress`) and `authToken`.

        Example:
            ```python
            submission = Submission.from_payload({
                "language": "cpp",
                "sourceCode": "int main(){}",
                "testCases": [{"input": "", "output": ""}],
            })
            ```
        """
        if not isinstance(payload, Mapping):
            raise InputValidationError("Submission payload must be an object")
        raw_cases = payload.get("testCases") or []
        if not isinstance(raw_cases, list):
            raise InputValidationError("'testCases' must be a list")
        upload = _text(payload.get("sourceUpload"), "sourceUpload")
        callback_url = payload.get("callbackUrl") or payload.get("callbackAddress")
        return cls(
            language=(_text(payload.get("language"), "language") or "").strip(),
            test_cases=tuple(TestCase.from_payload(raw) for raw in raw_cases),
            source_code=_text(payload.get("sourceCode"), "sourceCode") or None,
            source_upload=Path(upload) if upload else None,
            time_limit_ms=_limit(payload.get("timeLimit"), default_time_limit_ms, "timeLimit"),
            memory_limit_mb=_limit(payload.get("memoryLimit"), default_memory_limit_mb, "memoryLimit"),
            callback_url=_text(callback_url, "callbackUrl") or None,
            auth_token=_text(payload.get("authToken"), "authToken"),
        )


@dataclass(frozen=True, slots=True)
class TestCaseResult:
    """Verdict of one executed test case; `index` is 1-based.

    Example:
        ```python
        result = TestCaseResult(index=1, verdict=Verdict.ACCEPTED, passed=True)
        ```
    """

    __test__ = False

    index: int
    verdict: Verdict
    passed: bool
    sanitized_error_text: str | None = None
    outcome: ExecutionOutcome | None = None


@dataclass(slots=True)
class SubmissionResult:
    """Ordered per-case results plus the overall verdict.

    `error_details` is set only for CompilationError and RuntimeError;
    `error_message` only for SystemError.

    Example:
        ```python
        result = SubmissionResult(overall_verdict=Verdict.ACCEPTED)
        ```
    """

    results: list[TestCaseResult] = field(default_factory=list)
    overall_verdict: Verdict = Verdict.ACCEPTED
    error_details: str | None = None
    error_message: str | None = None

    @property
    def accepted(self) -> bool:
        """Report whether every executed case passed.

        Example:
            ```python
            assert SubmissionResult().accepted
            ```
        """
        return self.overall_verdict is Verdict.ACCEPTED
