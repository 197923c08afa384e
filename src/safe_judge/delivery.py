from __future__ import annotations

import asyncio
import logging
from collections import deque
from dataclasses import dataclass
from typing import Any

import requests

from .submission import SubmissionResult
from .verdict import VERDICTS_WITH_DETAILS, Verdict

logger = logging.getLogger(__name__)


def build_callback_payload(result: SubmissionResult, auth_token: str | None) -> dict[str, Any]:
    """Shape a finished submission into the webhook body.

    `errorDetails` appears only for CompilationError and RuntimeError, and
    only with already sanitized text. A SystemError result is shaped as a
    fault payload.

    Example:
        ```python
        payload = build_callback_payload(result, "token-123")
        ```
    """
    if result.overall_verdict is Verdict.SYSTEM_ERROR:
        return build_fault_payload(result.error_message or "Internal error", auth_token)
    payload: dict[str, Any] = {
        "results": [
            {"case": case.index, "verdict": case.verdict.value, "passed": case.passed}
            for case in result.results
        ],
        "verdict": result.overall_verdict.value,
        "authToken": auth_token,
    }
    if result.overall_verdict in VERDICTS_WITH_DETAILS and result.error_details:
        payload["errorDetails"] = result.error_details
    return payload


def build_fault_payload(message: str, auth_token: str | None) -> dict[str, Any]:
    """Shape an internal fault into the webhook body.

    Example:
        ```python
        payload = build_fault_payload("g++ not found or failed to start", "token-123")
        ```
    """
    return {
        "results": [],
        "verdict": Verdict.SYSTEM_ERROR.value,
        "errorMessage": message,
        "authToken": auth_token,
    }


@dataclass(frozen=True, slots=True)
class DeliveryFailure:
    """A callback that could not be delivered.

    Example:
        ```python
        failure = DeliveryFailure("http://localhost:9/cb", "Connection refused")
        ```
    """

    url: str
    error: str


class CallbackNotifier:
    """Best-effort webhook delivery of grading results.

    Failures are logged and the most recent `max_failures` of them are kept
    in `failures` for operators; they are never raised, since the submitter
    was acknowledged long before.

    Example:
        ```python
        notifier = CallbackNotifier(timeout_seconds=10)
        delivered = asyncio.run(notifier.deliver("https://example.test/cb", payload))
        ```
    """

    def __init__(self, timeout_seconds: float = 10, max_failures: int = 100) -> None:
        """Configure the POST timeout and how many failures to remember.

        Example:
            ```python
            notifier = CallbackNotifier(timeout_seconds=5)
            ```
        """
        self.timeout_seconds = timeout_seconds
        self.failures: deque[DeliveryFailure] = deque(maxlen=max_failures)

    def _post(self, url: str, payload: dict[str, Any]) -> None:
        """POST the payload and raise on HTTP errors.

        Example:
            ```python
            notifier._post("https://example.test/cb", {"verdict": "Accepted"})
            ```
        """
        response = requests.post(url, json=payload, timeout=self.timeout_seconds)
        response.raise_for_status()

    async def deliver(self, url: str, payload: dict[str, Any]) -> bool:
        """POST the payload without blocking the event loop; report success.

        Example:
            ```python
            ok = await notifier.deliver("https://example.test/cb", payload)
            ```
        """
        try:
            await asyncio.to_thread(self._post, url, payload)
        except requests.RequestException as exc:
            logger.error("Failed to deliver result to %s: %s", url, exc)
            self.failures.append(DeliveryFailure(url=url, error=str(exc)))
            return False
        logger.info("Delivered %s result to %s", payload.get("verdict"), url)
        return True
