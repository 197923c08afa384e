import asyncio
import logging

import pytest
import requests

from safe_judge import delivery
from safe_judge.delivery import CallbackNotifier, build_callback_payload, build_fault_payload
from safe_judge.submission import SubmissionResult, TestCaseResult
from safe_judge.verdict import Verdict


class _FakeResponse:
    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code

    def raise_for_status(self) -> None:
        if self.status_code >= 400:
            raise requests.HTTPError(f"{self.status_code} Server Error")


def test_callback_payload_shape_for_compilation_error() -> None:
    result = SubmissionResult(
        results=[TestCaseResult(index=1, verdict=Verdict.COMPILATION_ERROR, passed=False)],
        overall_verdict=Verdict.COMPILATION_ERROR,
        error_details="your_code:1:23: error: expected ';'",
    )

    payload = build_callback_payload(result, "t0k")

    assert payload == {
        "results": [{"case": 1, "verdict": "CompilationError", "passed": False}],
        "verdict": "CompilationError",
        "authToken": "t0k",
        "errorDetails": "your_code:1:23: error: expected ';'",
    }


def test_callback_payload_omits_details_for_other_verdicts() -> None:
    result = SubmissionResult(
        results=[
            TestCaseResult(index=1, verdict=Verdict.ACCEPTED, passed=True),
            TestCaseResult(index=2, verdict=Verdict.WRONG_ANSWER, passed=False),
        ],
        overall_verdict=Verdict.WRONG_ANSWER,
        error_details="should not leak",
    )

    payload = build_callback_payload(result, None)

    assert "errorDetails" not in payload
    assert [r["case"] for r in payload["results"]] == [1, 2]
    assert payload["verdict"] == "WrongAnswer"


def test_system_error_result_becomes_fault_payload() -> None:
    result = SubmissionResult(overall_verdict=Verdict.SYSTEM_ERROR, error_message="g++ not found")
    assert build_callback_payload(result, "t0k") == build_fault_payload("g++ not found", "t0k")
    assert build_fault_payload("boom", "t0k") == {
        "results": [],
        "verdict": "SystemError",
        "errorMessage": "boom",
        "authToken": "t0k",
    }


def test_deliver_posts_json(monkeypatch: pytest.MonkeyPatch) -> None:
    sent: list[tuple[str, dict, float]] = []

    def fake_post(url: str, json: dict, timeout: float) -> _FakeResponse:
        sent.append((url, json, timeout))
        return _FakeResponse(200)

    monkeypatch.setattr(delivery.requests, "post", fake_post)
    notifier = CallbackNotifier(timeout_seconds=3)

    ok = asyncio.run(notifier.deliver("https://example.test/cb", {"verdict": "Accepted"}))

    assert ok
    assert sent == [("https://example.test/cb", {"verdict": "Accepted"}, 3)]
    assert not notifier.failures


def test_unreachable_callback_is_recorded_not_raised(
    monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture
) -> None:
    def refuse(url: str, json: dict, timeout: float) -> _FakeResponse:
        raise requests.ConnectionError("Connection refused")

    monkeypatch.setattr(delivery.requests, "post", refuse)
    notifier = CallbackNotifier()

    with caplog.at_level(logging.ERROR, logger="safe_judge.delivery"):
        ok = asyncio.run(notifier.deliver("http://127.0.0.1:9/cb", {"verdict": "Accepted"}))

    assert not ok
    assert notifier.failures[0].url == "http://127.0.0.1:9/cb"
    assert "Connection refused" in notifier.failures[0].error
    assert any("Failed to deliver" in record.getMessage() for record in caplog.records)


def test_http_error_status_is_a_failed_delivery(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(delivery.requests, "post", lambda url, json, timeout: _FakeResponse(500))
    notifier = CallbackNotifier()

    assert not asyncio.run(notifier.deliver("https://example.test/cb", {}))
    assert "500" in notifier.failures[0].error


def test_recorded_failures_are_bounded(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(delivery.requests, "post", lambda url, json, timeout: _FakeResponse(503))
    notifier = CallbackNotifier(max_failures=3)

    async def scenario() -> None:
        for n in range(5):
            await notifier.deliver(f"https://example.test/cb/{n}", {})

    asyncio.run(scenario())

    assert [failure.url for failure in notifier.failures] == [
        "https://example.test/cb/2",
        "https://example.test/cb/3",
        "https://example.test/cb/4",
    ]
