from __future__ import annotations

import sys
import tempfile
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

COMPARISON_STRATEGIES = {"text", "structural"}
TOOLCHAIN_KEYS = {"c", "cpp", "javac", "java", "python", "javascript"}


def _default_settings_path() -> Path:
    """Return bundled default settings TOML path.

    Example:
        ```python
        path = _default_settings_path()
        ```
    """
    return Path(__file__).with_name("default_settings.toml")


def _read_settings_toml(path: Path) -> dict[str, Any]:
    """Read settings TOML and return the raw document.

    Example:
        ```python
        raw = _read_settings_toml(Path("/etc/safe-judge.toml"))
        ```
    """
    if not path.exists():
        return {"judge": {}, "toolchains": {}}
    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    for table in ("judge", "toolchains"):
        value = raw.get(table, {})
        if not isinstance(value, dict):
            raise ValueError(f"'{table}' must be a TOML table")
    return raw


def _positive_int(value: Any, field_name: str) -> int:
    """Validate a strictly positive integer setting.

    Example:
        ```python
        limit = _positive_int(3000, "default_time_limit_ms")
        ```
    """
    if isinstance(value, bool) or not isinstance(value, int):
        raise ValueError(f"'{field_name}' must be an integer")
    if value <= 0:
        raise ValueError(f"'{field_name}' must be positive")
    return value


def _toolchain_commands(raw: dict[str, Any]) -> dict[str, str]:
    """Merge toolchain executable overrides onto the built-in defaults.

    Example:
        ```python
        commands = _toolchain_commands({"cpp": "clang++"})
        ```
    """
    commands = {
        "c": "gcc",
        "cpp": "g++",
        "javac": "javac",
        "java": "java",
        "python": sys.executable or "python3",
        "javascript": "node",
    }
    for key, value in raw.items():
        if key not in TOOLCHAIN_KEYS:
            raise ValueError(f"Unknown toolchain key '{key}'")
        if not isinstance(value, str) or not value.strip():
            raise ValueError(f"Toolchain '{key}' must be a non-empty string")
        commands[key] = value.strip()
    return commands


_DEFAULT_RAW = _read_settings_toml(_default_settings_path())
_DEFAULT_JUDGE = _DEFAULT_RAW.get("judge", {})
DEFAULT_WORKSPACE_MARKER = str(_DEFAULT_JUDGE.get("workspace_marker", "safe-judge-workspace"))
DEFAULT_ERROR_PLACEHOLDER = str(_DEFAULT_JUDGE.get("error_placeholder", "your_code"))
DEFAULT_TIME_LIMIT_MS = int(_DEFAULT_JUDGE.get("default_time_limit_ms", 3000))
DEFAULT_MEMORY_LIMIT_MB = int(_DEFAULT_JUDGE.get("default_memory_limit_mb", 128))
DEFAULT_INTERACTIVE_TIME_LIMIT_MS = int(_DEFAULT_JUDGE.get("interactive_time_limit_ms", 1000))
DEFAULT_INTERACTIVE_MEMORY_LIMIT_MB = int(_DEFAULT_JUDGE.get("interactive_memory_limit_mb", 128))
DEFAULT_COMPILE_TIMEOUT_SECONDS = int(_DEFAULT_JUDGE.get("compile_timeout_seconds", 30))
DEFAULT_MAX_OUTPUT_KB = int(_DEFAULT_JUDGE.get("max_output_kb", 1024))
DEFAULT_COMPARISON = str(_DEFAULT_JUDGE.get("comparison", "text"))
DEFAULT_CALLBACK_TIMEOUT_SECONDS = int(_DEFAULT_JUDGE.get("callback_timeout_seconds", 10))
DEFAULT_CATALOG_URL = str(_DEFAULT_JUDGE.get("catalog_url", ""))
DEFAULT_CATALOG_TIMEOUT_SECONDS = int(_DEFAULT_JUDGE.get("catalog_timeout_seconds", 10))
DEFAULT_TOOLCHAINS = _toolchain_commands(_DEFAULT_RAW.get("toolchains", {}))


@dataclass(slots=True)
class JudgeSettings:
    """Process-wide judge configuration, built once and passed by reference.

    Example:
        ```python
        settings = JudgeSettings(default_time_limit_ms=2000)
        ```
    """

    workspace_dir: str | None = None
    workspace_marker: str = DEFAULT_WORKSPACE_MARKER
    error_placeholder: str = DEFAULT_ERROR_PLACEHOLDER
    default_time_limit_ms: int = DEFAULT_TIME_LIMIT_MS
    default_memory_limit_mb: int = DEFAULT_MEMORY_LIMIT_MB
    interactive_time_limit_ms: int = DEFAULT_INTERACTIVE_TIME_LIMIT_MS
    interactive_memory_limit_mb: int = DEFAULT_INTERACTIVE_MEMORY_LIMIT_MB
    compile_timeout_seconds: int = DEFAULT_COMPILE_TIMEOUT_SECONDS
    max_output_kb: int = DEFAULT_MAX_OUTPUT_KB
    comparison: str = DEFAULT_COMPARISON
    callback_timeout_seconds: int = DEFAULT_CALLBACK_TIMEOUT_SECONDS
    catalog_url: str = DEFAULT_CATALOG_URL
    catalog_timeout_seconds: int = DEFAULT_CATALOG_TIMEOUT_SECONDS
    toolchains: dict[str, str] = field(default_factory=lambda: DEFAULT_TOOLCHAINS.copy())
    config_path: str | None = None

    def __post_init__(self) -> None:
        """Validate settings after dataclass initialization.

        Example:
            ```python
            JudgeSettings(comparison="structural")
            ```
        """
        if self.comparison not in COMPARISON_STRATEGIES:
            raise ValueError("comparison must be 'text' or 'structural'")
        if not self.workspace_marker.strip():
            raise ValueError("workspace_marker must be a non-empty string")
        for name in (
            "default_time_limit_ms",
            "default_memory_limit_mb",
            "interactive_time_limit_ms",
            "interactive_memory_limit_mb",
            "compile_timeout_seconds",
            "max_output_kb",
            "callback_timeout_seconds",
            "catalog_timeout_seconds",
        ):
            _positive_int(getattr(self, name), name)

    @classmethod
    def from_file(cls, config_path: str) -> "JudgeSettings":
        """Create settings from a TOML file with `[judge]` and `[toolchains]` tables.

        Example:
            ```python
            settings = JudgeSettings.from_file("/etc/safe-judge.toml")
            ```
        """
        raw = _read_settings_toml(Path(config_path))
        judge = raw.get("judge", {})
        workspace_dir = judge.get("workspace_dir")
        return cls(
            workspace_dir=str(workspace_dir) if workspace_dir else None,
            workspace_marker=str(judge.get("workspace_marker", DEFAULT_WORKSPACE_MARKER)),
            error_placeholder=str(judge.get("error_placeholder", DEFAULT_ERROR_PLACEHOLDER)),
            default_time_limit_ms=judge.get("default_time_limit_ms", DEFAULT_TIME_LIMIT_MS),
            default_memory_limit_mb=judge.get("default_memory_limit_mb", DEFAULT_MEMORY_LIMIT_MB),
            interactive_time_limit_ms=judge.get(
                "interactive_time_limit_ms", DEFAULT_INTERACTIVE_TIME_LIMIT_MS
            ),
            interactive_memory_limit_mb=judge.get(
                "interactive_memory_limit_mb", DEFAULT_INTERACTIVE_MEMORY_LIMIT_MB
            ),
            compile_timeout_seconds=judge.get(
                "compile_timeout_seconds", DEFAULT_COMPILE_TIMEOUT_SECONDS
            ),
            max_output_kb=judge.get("max_output_kb", DEFAULT_MAX_OUTPUT_KB),
            comparison=str(judge.get("comparison", DEFAULT_COMPARISON)),
            callback_timeout_seconds=judge.get(
                "callback_timeout_seconds", DEFAULT_CALLBACK_TIMEOUT_SECONDS
            ),
            catalog_url=str(judge.get("catalog_url", DEFAULT_CATALOG_URL)),
            catalog_timeout_seconds=judge.get(
                "catalog_timeout_seconds", DEFAULT_CATALOG_TIMEOUT_SECONDS
            ),
            toolchains=_toolchain_commands(raw.get("toolchains", {})),
            config_path=config_path,
        )

    def workspace_path(self) -> Path:
        """Return the ephemeral workspace directory, creating it when missing.

        The directory name doubles as the marker segment the error sanitizer
        looks for, so the default lives under `<tmp>/<workspace_marker>`.

        Example:
            ```python
            workspace = JudgeSettings().workspace_path()
            ```
        """
        if self.workspace_dir:
            path = Path(self.workspace_dir).expanduser()
        else:
            path = Path(tempfile.gettempdir()) / self.workspace_marker
        path.mkdir(parents=True, exist_ok=True)
        return path.resolve()
