from __future__ import annotations

import logging
from typing import Any, Protocol
from urllib.parse import quote

import requests

from .errors import CatalogUnavailableError, ProblemNotFoundError
from .submission import TestCase

logger = logging.getLogger(__name__)


class ProblemCatalog(Protocol):
    def fetch_test_cases(self, problem_id: str) -> list[TestCase]:
        """Return the ordered test cases of a problem.

        Example:
            ```python
            cases = catalog.fetch_test_cases("two-sum")
            ```
        """
        ...


class HttpProblemCatalog:
    """Problem catalog reached over HTTP at `<base_url>/problems/id/<id>`.

    The response body is `{"data": {"testCases": [{input, output, isSample}]}}`.
    A 404 is "not found"; any other failure is "unreachable".

    Example:
        ```python
        catalog = HttpProblemCatalog("http://backend:5000", timeout_seconds=10)
        cases = catalog.fetch_test_cases("65f0c2")
        ```
    """

    def __init__(self, base_url: str, timeout_seconds: float = 10) -> None:
        """Store the catalog base URL and request timeout.

        Example:
            ```python
            catalog = HttpProblemCatalog("http://backend:5000")
            ```
        """
        self.base_url = base_url.rstrip("/")
        self.timeout_seconds = timeout_seconds

    def fetch_test_cases(self, problem_id: str) -> list[TestCase]:
        """Fetch a problem and return its test cases in catalog order.

        Example:
            ```python
            samples = [case for case in catalog.fetch_test_cases("65f0c2") if case.is_sample]
            ```
        """
        if not self.base_url:
            raise CatalogUnavailableError("Problem catalog URL is not configured")
        url = f"{self.base_url}/problems/id/{quote(str(problem_id), safe='')}"
        try:
            response = requests.get(url, timeout=self.timeout_seconds)
        except requests.RequestException as exc:
            logger.error("Network error fetching problem %s: %s", problem_id, exc)
            raise CatalogUnavailableError("Cannot connect to backend service") from exc

        if response.status_code == 404:
            raise ProblemNotFoundError(f"Problem '{problem_id}' not found")
        try:
            response.raise_for_status()
            body = response.json()
        except (requests.RequestException, ValueError) as exc:
            logger.error("Problem catalog answered %s for %s: %s", response.status_code, problem_id, exc)
            raise CatalogUnavailableError(f"Problem catalog error ({response.status_code})") from exc
        return _parse_test_cases(body, problem_id)


def _parse_test_cases(body: Any, problem_id: str) -> list[TestCase]:
    """Extract test cases from a catalog response body.

    Example:
        ```python
        cases = _parse_test_cases({"data": {"testCases": []}}, "p1")
        ```
    """
    data = body.get("data") if isinstance(body, dict) else None
    raw_cases = data.get("testCases") if isinstance(data, dict) else None
    if raw_cases is None:
        raise ProblemNotFoundError(f"Problem '{problem_id}' not found")
    if not isinstance(raw_cases, list):
        raise CatalogUnavailableError("Problem catalog returned malformed test cases")
    return [TestCase.from_payload(raw) for raw in raw_cases]
