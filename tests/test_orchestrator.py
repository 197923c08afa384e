import asyncio
import shutil
from pathlib import Path

import pytest

from safe_judge.comparison import get_comparator
from safe_judge.errors import UnsupportedLanguageError
from safe_judge.execution import ExecutionLimits, SandboxExecutor
from safe_judge.orchestrator import SubmissionOrchestrator, SubmissionState
from safe_judge.settings import JudgeSettings
from safe_judge.submission import Submission, TestCase
from safe_judge.verdict import Verdict

DOUBLE = "print(int(input()) * 2)\n"


def _orchestrator(settings: JudgeSettings, **kwargs) -> SubmissionOrchestrator:
    return SubmissionOrchestrator(SandboxExecutor(settings), settings, **kwargs)


def _submission(source: str, cases: list[tuple[str, str]], language: str = "python", **kwargs) -> Submission:
    return Submission(
        language=language,
        source_code=source,
        test_cases=tuple(TestCase(input=i, expected_output=o) for i, o in cases),
        time_limit_ms=kwargs.pop("time_limit_ms", 2000),
        memory_limit_mb=kwargs.pop("memory_limit_mb", 256),
        **kwargs,
    )


def test_all_cases_pass(settings: JudgeSettings, workspace: Path) -> None:
    submission = _submission(DOUBLE, [("1", "2"), ("2", "4\n"), ("5", "  10 \n")])

    result = asyncio.run(_orchestrator(settings).grade(submission))

    assert result.overall_verdict is Verdict.ACCEPTED
    assert [r.index for r in result.results] == [1, 2, 3]
    assert all(r.passed for r in result.results)
    assert result.error_details is None
    assert list(workspace.iterdir()) == []


@pytest.mark.parametrize(
    "noise",
    ["warning: cache MemoryError avoided", "Compilation Failed:\\nnot really"],
)
def test_stderr_noise_on_a_clean_exit_is_still_accepted(
    settings: JudgeSettings, workspace: Path, noise: str
) -> None:
    source = f"import sys\nsys.stderr.write('{noise}\\n')\nprint(2)\n"

    result = asyncio.run(_orchestrator(settings).grade(_submission(source, [("", "2")])))

    assert result.overall_verdict is Verdict.ACCEPTED
    assert result.results[0].outcome is not None
    assert not result.results[0].outcome.memory_exceeded
    assert list(workspace.iterdir()) == []


def test_first_failure_stops_the_loop(settings: JudgeSettings, workspace: Path) -> None:
    cases = [("1", "2"), ("2", "4"), ("3", "7"), ("4", "8"), ("5", "10")]

    result = asyncio.run(_orchestrator(settings).grade(_submission(DOUBLE, cases)))

    assert len(result.results) == 3
    assert result.results[-1].verdict is Verdict.WRONG_ANSWER
    assert not result.results[-1].passed
    assert result.overall_verdict is Verdict.WRONG_ANSWER
    assert result.error_details is None
    assert list(workspace.iterdir()) == []


def test_runtime_error_details_are_sanitized(settings: JudgeSettings, workspace: Path) -> None:
    result = asyncio.run(_orchestrator(settings).grade(_submission("print(1 // 0)\n", [("", "1"), ("", "1")])))

    assert result.overall_verdict is Verdict.RUNTIME_ERROR
    assert len(result.results) == 1
    assert result.error_details is not None
    assert "ZeroDivisionError" in result.error_details
    assert "your_code" in result.error_details
    assert str(workspace) not in result.error_details
    assert "safe-judge-workspace" not in result.error_details
    assert list(workspace.iterdir()) == []


def test_timeout_yields_time_limit_exceeded(settings: JudgeSettings, workspace: Path) -> None:
    source = "import time\ntime.sleep(3)\nprint(2)\n"
    submission = _submission(source, [("", "2"), ("", "2")], time_limit_ms=1000)

    result = asyncio.run(_orchestrator(settings).grade(submission))

    assert result.overall_verdict is Verdict.TIME_LIMIT_EXCEEDED
    assert len(result.results) == 1
    assert result.results[0].outcome is not None
    assert result.results[0].outcome.timed_out
    assert result.error_details is None


def test_structural_comparison_is_pluggable(settings: JudgeSettings) -> None:
    submission = _submission("print('3.0 true')\n", [("", "3 true")])

    text_result = asyncio.run(_orchestrator(settings).grade(submission))
    structural_result = asyncio.run(
        _orchestrator(settings, comparator=get_comparator("structural")).grade(submission)
    )

    assert text_result.overall_verdict is Verdict.WRONG_ANSWER
    assert structural_result.overall_verdict is Verdict.ACCEPTED


def test_missing_toolchain_fails_the_submission(workspace: Path) -> None:
    settings = JudgeSettings(
        workspace_dir=str(workspace),
        toolchains={**JudgeSettings().toolchains, "python": "safe-judge-no-such-python"},
    )
    orchestrator = _orchestrator(settings)
    run = orchestrator.prepare(_submission(DOUBLE, [("1", "2")]))

    result = asyncio.run(orchestrator.execute(run))

    assert run.state is SubmissionState.FAILED
    assert result.overall_verdict is Verdict.SYSTEM_ERROR
    assert result.results == []
    assert "safe-judge-no-such-python" in (result.error_message or "")
    assert list(workspace.iterdir()) == []


def test_artifact_fault_aborts_remaining_cases(
    settings: JudgeSettings, workspace: Path, monkeypatch: pytest.MonkeyPatch
) -> None:
    orchestrator = _orchestrator(settings)
    real_run = orchestrator.executor.run
    calls: list[int] = []

    async def flaky_run(build, input_path, limits: ExecutionLimits, output_path=None):
        calls.append(1)
        if len(calls) == 2:
            raise OSError(f"No space left on device: {input_path}")
        return await real_run(build, input_path, limits, output_path)

    monkeypatch.setattr(orchestrator.executor, "run", flaky_run)

    result = asyncio.run(orchestrator.grade(_submission(DOUBLE, [("1", "2"), ("2", "4"), ("3", "6")])))

    assert len(calls) == 2
    assert result.overall_verdict is Verdict.SYSTEM_ERROR
    assert "No space left on device" in (result.error_message or "")
    assert str(workspace) not in (result.error_message or "")
    assert list(workspace.iterdir()) == []


def test_prepare_rejects_unknown_language_without_artifacts(settings: JudgeSettings, workspace: Path) -> None:
    with pytest.raises(UnsupportedLanguageError):
        _orchestrator(settings).prepare(_submission("x", [("", "")], language="brainfuck"))
    assert list(workspace.iterdir()) == []


def test_prepare_materializes_source(settings: JudgeSettings, workspace: Path) -> None:
    orchestrator = _orchestrator(settings)
    run = orchestrator.prepare(_submission(DOUBLE, [("1", "2")]))

    assert run.state is SubmissionState.PREPARING
    assert run.source_path.exists()
    assert run.source_path.suffix == ".py"

    asyncio.run(orchestrator.execute(run))

    assert run.state is SubmissionState.COMPLETED
    assert run.arena.released
    assert not run.source_path.exists()


def test_uploaded_source_is_owned_by_the_submission(
    settings: JudgeSettings, workspace: Path, tmp_path: Path
) -> None:
    upload = tmp_path / "upload.py"
    upload.write_text(DOUBLE, encoding="utf-8")
    submission = Submission(
        language="python",
        source_upload=upload,
        test_cases=(TestCase(input="4", expected_output="8"),),
    )

    result = asyncio.run(_orchestrator(settings).grade(submission))

    assert result.overall_verdict is Verdict.ACCEPTED
    assert not upload.exists()
    assert list(workspace.iterdir()) == []


def test_concurrent_submissions_do_not_interfere(settings: JudgeSettings, workspace: Path) -> None:
    orchestrator = _orchestrator(settings)

    async def scenario():
        return await asyncio.gather(
            orchestrator.grade(_submission(DOUBLE, [("1", "2"), ("2", "4")])),
            orchestrator.grade(_submission("print(input())\n", [("a", "a"), ("b", "c")])),
        )

    first, second = asyncio.run(scenario())

    assert first.overall_verdict is Verdict.ACCEPTED
    assert second.overall_verdict is Verdict.WRONG_ANSWER
    assert len(second.results) == 2
    assert list(workspace.iterdir()) == []


@pytest.mark.skipif(shutil.which("g++") is None, reason="g++ not installed")
def test_cpp_syntax_error_is_compilation_error_with_clean_details(
    settings: JudgeSettings, workspace: Path
) -> None:
    submission = _submission("int main() { return 0 }\n", [("", ""), ("", "")], language="cpp")

    result = asyncio.run(_orchestrator(settings).grade(submission))

    assert result.overall_verdict is Verdict.COMPILATION_ERROR
    assert len(result.results) == 1
    assert result.error_details is not None
    assert "error" in result.error_details
    assert "your_code" in result.error_details
    assert str(workspace) not in result.error_details
    assert list(workspace.iterdir()) == []
