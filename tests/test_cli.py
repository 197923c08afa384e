from __future__ import annotations

import json
from pathlib import Path

import pytest

from safe_judge import SubmissionResult, TestCaseResult, Verdict
from safe_judge.errors import ProblemNotFoundError
from sjr import cli


class _FakeOrchestrator:
    def __init__(self) -> None:
        self.graded = []

    async def grade(self, submission):
        self.graded.append(submission)
        return SubmissionResult(
            results=[
                TestCaseResult(index=1, verdict=Verdict.ACCEPTED, passed=True),
                TestCaseResult(index=2, verdict=Verdict.COMPILATION_ERROR, passed=False),
            ],
            overall_verdict=Verdict.COMPILATION_ERROR,
            error_details="your_code:1:1: error: expected ';'",
        )


class _FakeService:
    instances: list["_FakeService"] = []

    def __init__(self, settings) -> None:
        self.settings = settings
        self.orchestrator = _FakeOrchestrator()
        self.calls: list[tuple] = []
        _FakeService.instances.append(self)

    async def run_custom_input(self, language, custom_input, *, source_code=None, source_upload=None):
        self.calls.append(("run", language, custom_input, source_code))
        return {
            "message": "Custom input run completed",
            "output": "42\n",
            "stdout": "42\n",
            "stderr": "",
            "exitCode": 0,
            "timedOut": False,
            "memoryExceeded": False,
        }

    async def run_sample_cases(self, language, problem_id, *, source_code=None, source_upload=None):
        self.calls.append(("samples", language, problem_id, source_code))
        if problem_id == "missing":
            raise ProblemNotFoundError("Problem 'missing' not found")
        if problem_id == "empty":
            return {"message": "No sample test cases found for this problem.", "testResults": []}
        return {
            "message": "Sample test cases executed",
            "verdict": "Accepted",
            "testResults": [{"case": 1, "verdict": "Accepted", "passed": True}],
        }


@pytest.fixture(autouse=True)
def _patch_service(monkeypatch: pytest.MonkeyPatch) -> None:
    _FakeService.instances.clear()
    monkeypatch.setattr(cli, "JudgeService", _FakeService)
    monkeypatch.setattr(cli, "_configure_logging", lambda verbose: None)


def test_cli_run_reads_source_and_input(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "main.py"
    source.write_text("print(int(input()) * 2)", encoding="utf-8")
    stdin = tmp_path / "in.txt"
    stdin.write_text("21\n", encoding="utf-8")

    code = cli.main(["run", str(source), "--language", "py", "--input", str(stdin), "--time-limit-ms", "2500"])

    output = capsys.readouterr().out
    service = _FakeService.instances[0]
    assert code == 0
    assert "42" in output
    assert service.calls == [("run", "py", "21\n", "print(int(input()) * 2)")]
    assert service.settings.interactive_time_limit_ms == 2500


def test_cli_grade_prints_table_and_fails_on_non_accepted(
    tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    submission = tmp_path / "submission.json"
    submission.write_text(
        json.dumps(
            {
                "language": "cpp",
                "sourceCode": "int main(){}",
                "testCases": [{"input": "", "output": ""}],
                "timeLimit": 1500,
            }
        ),
        encoding="utf-8",
    )

    code = cli.main(["grade", str(submission)])

    output = capsys.readouterr().out
    graded = _FakeService.instances[0].orchestrator.graded[0]
    assert code == 1
    assert graded.time_limit_ms == 1500
    assert "CompilationError" in output
    assert "your_code" in output


def test_cli_grade_reports_invalid_submission(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    submission = tmp_path / "submission.json"
    submission.write_text(json.dumps({"language": "cpp"}), encoding="utf-8")

    code = cli.main(["grade", str(submission)])

    assert code == 2
    assert "Missing required fields" in capsys.readouterr().out


def test_cli_samples_success(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "main.cpp"
    source.write_text("int main(){}", encoding="utf-8")

    code = cli.main(
        ["samples", str(source), "-l", "cpp", "--problem-id", "p1", "--catalog-url", "http://backend:5000"]
    )

    service = _FakeService.instances[0]
    assert code == 0
    assert service.settings.catalog_url == "http://backend:5000"
    assert "Accepted" in capsys.readouterr().out


def test_cli_samples_without_samples(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "main.cpp"
    source.write_text("int main(){}", encoding="utf-8")

    code = cli.main(["samples", str(source), "-l", "cpp", "--problem-id", "empty"])

    assert code == 0
    assert "No sample test cases" in capsys.readouterr().out


def test_cli_samples_problem_not_found(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    source = tmp_path / "main.cpp"
    source.write_text("int main(){}", encoding="utf-8")

    code = cli.main(["samples", str(source), "-l", "cpp", "--problem-id", "missing"])

    assert code == 2
    assert "not found" in capsys.readouterr().out


def test_cli_capabilities(capsys: pytest.CaptureFixture[str]) -> None:
    code = cli.main(["capabilities"])

    output = capsys.readouterr().out
    assert code == 0
    assert "supports_timeout" in output
    assert "javascript" in output


def test_cli_config_file_is_loaded(tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
    config = tmp_path / "judge.toml"
    config.write_text("[judge]\ninteractive_memory_limit_mb = 64\n", encoding="utf-8")
    source = tmp_path / "main.py"
    source.write_text("print(1)", encoding="utf-8")

    code = cli.main(["--config", str(config), "run", str(source), "--language", "python"])

    assert code == 0
    assert _FakeService.instances[0].settings.interactive_memory_limit_mb == 64


def test_cli_requires_command() -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([])
    assert excinfo.value.code == 2
