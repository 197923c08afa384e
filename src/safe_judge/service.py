from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Any, Mapping

from .artifacts import ArtifactArena
from .catalog import HttpProblemCatalog, ProblemCatalog
from .delivery import CallbackNotifier, build_callback_payload, build_fault_payload
from .errors import InputValidationError
from .execution.executor import SandboxExecutor
from .execution.types import ExecutionLimits, ExecutionOutcome
from .orchestrator import SubmissionOrchestrator, SubmissionRun
from .sanitizer import sanitize_error
from .settings import JudgeSettings
from .submission import Submission

logger = logging.getLogger(__name__)


def _signal_name(outcome: ExecutionOutcome) -> str | None:
    """Return the terminating signal's name, if any.

    Example:
        ```python
        name = _signal_name(outcome)  # "SIGKILL"
        ```
    """
    return outcome.termination_signal.name if outcome.termination_signal is not None else None


class JudgeService:
    """Entry points the outer surface calls: interactive runs and async grading.

    Interactive runs hold the caller until a result exists. `submit`
    acknowledges as soon as the submission is prepared and grades in a
    background task that ends in a callback.

    Example:
        ```python
        service = JudgeService(JudgeSettings.from_file("judge.toml"))
        response = asyncio.run(service.run_custom_input("python", "3\\n", source_code="print(int(input())**2)"))
        ```
    """

    def __init__(
        self,
        settings: JudgeSettings,
        *,
        executor: SandboxExecutor | None = None,
        orchestrator: SubmissionOrchestrator | None = None,
        catalog: ProblemCatalog | None = None,
        notifier: CallbackNotifier | None = None,
    ) -> None:
        """Wire collaborators from one settings object.

        Example:
            ```python
            service = JudgeService(settings, notifier=CallbackNotifier(timeout_seconds=3))
            ```
        """
        self.settings = settings
        self.executor = executor if executor is not None else SandboxExecutor(settings)
        self.orchestrator = (
            orchestrator if orchestrator is not None else SubmissionOrchestrator(self.executor, settings)
        )
        self.catalog = (
            catalog
            if catalog is not None
            else HttpProblemCatalog(settings.catalog_url, settings.catalog_timeout_seconds)
        )
        self.notifier = (
            notifier if notifier is not None else CallbackNotifier(settings.callback_timeout_seconds)
        )
        self._pending: set[asyncio.Task[None]] = set()

    @property
    def interactive_limits(self) -> ExecutionLimits:
        """Return the bounds used by the run path.

        Example:
            ```python
            limits = service.interactive_limits
            ```
        """
        return ExecutionLimits(
            self.settings.interactive_time_limit_ms,
            self.settings.interactive_memory_limit_mb,
        )

    async def run(self, payload: Mapping[str, Any]) -> dict[str, Any]:
        """Dispatch a run request to custom-input or sample-case mode.

        Example:
            ```python
            response = await service.run({"language": "py", "sourceCode": "print(2)", "customInput": ""})
            ```
        """
        language = payload.get("language") or ""
        source_code = payload.get("sourceCode") or payload.get("code")
        upload = payload.get("sourceUpload")
        if upload is not None and not isinstance(upload, str):
            raise InputValidationError("'sourceUpload' must be a string")
        source_upload = Path(upload) if upload else None
        if payload.get("customInput") is not None:
            return await self.run_custom_input(
                language,
                str(payload["customInput"]),
                source_code=source_code,
                source_upload=source_upload,
            )
        if payload.get("problemId"):
            return await self.run_sample_cases(
                language,
                str(payload["problemId"]),
                source_code=source_code,
                source_upload=source_upload,
            )
        raise InputValidationError("Request must contain either custom input or a problem ID.")

    async def run_custom_input(
        self,
        language: str,
        custom_input: str,
        *,
        source_code: str | None = None,
        source_upload: Path | None = None,
    ) -> dict[str, Any]:
        """Run a program once on caller-provided input.

        Example:
            ```python
            response = await service.run_custom_input("cpp", "1 2\\n", source_code=source)
            ```
        """
        self._validate_run_request(language, source_code, source_upload)
        with ArtifactArena(self.executor.workspace, owner="custom-run") as arena:
            if source_upload is not None:
                source_path = self.executor.adopt_upload(language, source_upload, arena)
            else:
                source_path = self.executor.materialize_source(language, source_code or "", arena)
            build = await self.executor.prepare(language, source_path, arena)
            input_path = arena.write_text(custom_input, suffix="_input.txt")
            output_path = arena.new_path("_output.txt")
            outcome = await self.executor.run(build, input_path, self.interactive_limits, output_path)
            output = output_path.read_text(encoding="utf-8") if output_path.exists() else ""

        return {
            "message": "Custom input run completed",
            "output": output,
            "stdout": outcome.stdout,
            "stderr": sanitize_error(
                outcome.stderr,
                build.source_path,
                workspace=self.executor.workspace,
                marker=self.settings.workspace_marker,
                placeholder=self.settings.error_placeholder,
            ),
            "exitCode": outcome.exit_code,
            "timedOut": outcome.timed_out,
            "memoryExceeded": outcome.memory_exceeded,
        }

    async def run_sample_cases(
        self,
        language: str,
        problem_id: str,
        *,
        source_code: str | None = None,
        source_upload: Path | None = None,
    ) -> dict[str, Any]:
        """Run a program against a problem's sample cases, stopping at the first failure.

        Catalog errors surface before anything executes.

        Example:
            ```python
            response = await service.run_sample_cases("python", "65f0c2", source_code=source)
            ```
        """
        self._validate_run_request(language, source_code, source_upload)
        cases = await asyncio.to_thread(self.catalog.fetch_test_cases, problem_id)
        samples = tuple(case for case in cases if case.is_sample)
        if not samples:
            return {"message": "No sample test cases found for this problem.", "testResults": []}

        submission = Submission(
            language=language,
            test_cases=samples,
            source_code=source_code,
            source_upload=source_upload,
            time_limit_ms=self.settings.interactive_time_limit_ms,
            memory_limit_mb=self.settings.interactive_memory_limit_mb,
        )
        result = await self.orchestrator.grade(submission)

        test_results = []
        for case_result in result.results:
            case = samples[case_result.index - 1]
            outcome = case_result.outcome
            test_results.append(
                {
                    "case": case_result.index,
                    "input": case.input,
                    "expected": case.expected_output,
                    "passed": case_result.passed,
                    "verdict": case_result.verdict.value,
                    "stdout": outcome.stdout if outcome else "",
                    "stderr": case_result.sanitized_error_text or "",
                    "exitCode": outcome.exit_code if outcome else None,
                    "signal": _signal_name(outcome) if outcome else None,
                    "timedOut": outcome.timed_out if outcome else False,
                    "memoryExceeded": outcome.memory_exceeded if outcome else False,
                }
            )
        response: dict[str, Any] = {
            "message": "Sample test cases executed",
            "verdict": result.overall_verdict.value,
            "testResults": test_results,
        }
        if result.error_message:
            response["errorMessage"] = result.error_message
        return response

    async def submit(self, payload: Mapping[str, Any]) -> dict[str, str]:
        """Accept a grading request and grade it in the background.

        Validation errors raise here, before acknowledgment. After the
        acknowledgment every outcome, faults included, ends in a callback.

        Example:
            ```python
            ack = await service.submit({
                "language": "cpp",
                "sourceCode": source,
                "testCases": [{"input": "1", "output": "1"}],
                "callbackUrl": "https://example.test/cb",
                "authToken": "t0k",
            })
            assert ack == {"status": "accepted"}
            ```
        """
        submission = Submission.from_payload(
            payload,
            default_time_limit_ms=self.settings.default_time_limit_ms,
            default_memory_limit_mb=self.settings.default_memory_limit_mb,
        )
        if not submission.callback_url:
            raise InputValidationError("Missing required fields: callbackUrl")
        run = self.orchestrator.prepare(submission)
        task = asyncio.create_task(self._grade_and_deliver(run))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        logger.info("Accepted submission %s (%s)", run.run_id, submission.language)
        return {"status": "accepted"}

    async def wait_for_pending(self) -> None:
        """Wait until every background grading task has delivered.

        Example:
            ```python
            await service.wait_for_pending()
            ```
        """
        while self._pending:
            batch = list(self._pending)
            await asyncio.gather(*batch)
            self._pending.difference_update(batch)

    async def _grade_and_deliver(self, run: SubmissionRun) -> None:
        """Grade a prepared submission and post the result to its callback.

        Example:
            ```python
            await self._grade_and_deliver(run)
            ```
        """
        submission = run.submission
        url = submission.callback_url or ""
        try:
            result = await self.orchestrator.execute(run)
            payload = build_callback_payload(result, submission.auth_token)
        except Exception:
            logger.exception("Grading submission %s failed outside the test loop", run.run_id)
            payload = build_fault_payload("Internal error while grading", submission.auth_token)
        await self.notifier.deliver(url, payload)

    def _validate_run_request(self, language: str, source_code: str | None, source_upload: Path | None) -> None:
        """Reject run requests without language or source, or with an unknown language.

        Example:
            ```python
            service._validate_run_request("python", "print(1)", None)
            ```
        """
        missing = []
        if not language:
            missing.append("language")
        if not source_code and source_upload is None:
            missing.append("sourceCode")
        if missing:
            raise InputValidationError(f"Missing required fields: {', '.join(missing)}")
        if not isinstance(language, str):
            raise InputValidationError("'language' must be a string")
        if source_code is not None and not isinstance(source_code, str):
            raise InputValidationError("'sourceCode' must be a string")
        self.executor.toolchain_for(language)
