from __future__ import annotations

from pathlib import Path

import pytest

from safe_judge import JudgeSettings


@pytest.fixture
def workspace(tmp_path: Path) -> Path:
    path = tmp_path / "safe-judge-workspace"
    path.mkdir()
    return path


@pytest.fixture
def settings(workspace: Path) -> JudgeSettings:
    return JudgeSettings(workspace_dir=str(workspace), compile_timeout_seconds=60)
