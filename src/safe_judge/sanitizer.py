from __future__ import annotations

import re
from functools import lru_cache
from pathlib import Path

from .settings import DEFAULT_ERROR_PLACEHOLDER, DEFAULT_WORKSPACE_MARKER

_PATH_TAIL = r"(?:[/\\][^\s:\"'()]*)?"


@lru_cache(maxsize=16)
def _workspace_fragment_pattern(marker: str) -> re.Pattern[str]:
    """Compile the pattern matching any path that runs through the workspace marker.

    Example:
        ```python
        pattern = _workspace_fragment_pattern("safe-judge-workspace")
        ```
    """
    return re.compile(
        r"(?:(?:[A-Za-z]:)?[/\\](?:[^\s:\"'()/\\]+[/\\])*)?" + re.escape(marker) + _PATH_TAIL
    )


def sanitize_error(
    raw_text: str | None,
    source_path: str | Path | None = None,
    *,
    workspace: str | Path | None = None,
    marker: str = DEFAULT_WORKSPACE_MARKER,
    placeholder: str = DEFAULT_ERROR_PLACEHOLDER,
) -> str:
    """Replace ephemeral workspace paths in diagnostics with a fixed placeholder.

    The exact source artifact path goes first, then anything under the
    workspace root, then any remaining path fragment running through the
    workspace marker segment. Apply only to text leaving the system, never
    to logs.

    Example:
        ```python
        clean = sanitize_error(stderr, "/tmp/safe-judge-workspace/3f2a.cpp")
        ```
    """
    if not raw_text:
        return ""
    sanitized = raw_text
    if source_path:
        sanitized = sanitized.replace(str(source_path), placeholder)
    if workspace:
        workspace_pattern = re.compile(re.escape(str(workspace)) + _PATH_TAIL)
        sanitized = workspace_pattern.sub(lambda _: placeholder, sanitized)
    return _workspace_fragment_pattern(marker).sub(lambda _: placeholder, sanitized)
