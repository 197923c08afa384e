from __future__ import annotations

import logging
import shutil
import uuid
from pathlib import Path
from types import TracebackType

logger = logging.getLogger(__name__)


def unique_name(suffix: str = "") -> str:
    """Return a globally unique artifact file name.

    Example:
        ```python
        name = unique_name(".cpp")
        ```
    """
    return f"{uuid.uuid4().hex}{suffix}"


class ArtifactArena:
    """Owns every ephemeral artifact created for one operation.

    Releasing the arena deletes everything registered in it, newest first.
    Release is idempotent, so an arena can sit in a `finally` block and a
    `with` statement at once.

    Example:
        ```python
        with ArtifactArena(workspace, owner="case-1") as arena:
            input_path = arena.write_text("hello", suffix="_input.txt")
        ```
    """

    def __init__(self, workspace: Path, owner: str = "") -> None:
        """Create an empty arena rooted in the shared workspace.

        Example:
            ```python
            arena = ArtifactArena(Path("/tmp/safe-judge-workspace"), owner="submission")
            ```
        """
        self.workspace = workspace
        self.owner = owner
        self._paths: list[Path] = []
        self._released = False

    @property
    def paths(self) -> tuple[Path, ...]:
        """Return the registered artifact paths in creation order.

        Example:
            ```python
            registered = arena.paths
            ```
        """
        return tuple(self._paths)

    @property
    def released(self) -> bool:
        """Report whether the arena has been released.

        Example:
            ```python
            assert not ArtifactArena(workspace).released
            ```
        """
        return self._released

    def new_path(self, suffix: str = "") -> Path:
        """Reserve and register a fresh unique path inside the workspace.

        Example:
            ```python
            binary = arena.new_path(".out")
            ```
        """
        return self.adopt(self.workspace / unique_name(suffix))

    def new_directory(self) -> Path:
        """Create and register a fresh unique directory inside the workspace.

        Example:
            ```python
            build_dir = arena.new_directory()
            ```
        """
        path = self.new_path()
        path.mkdir()
        return path

    def write_text(self, content: str, suffix: str = "") -> Path:
        """Materialize text content as a new registered artifact.

        Example:
            ```python
            source = arena.write_text("print(2)", suffix=".py")
            ```
        """
        path = self.new_path(suffix)
        path.write_text(content, encoding="utf-8")
        return path

    def adopt(self, path: Path) -> Path:
        """Take ownership of an existing or soon-to-exist path.

        Example:
            ```python
            renamed = arena.adopt(build_dir / "Main.java")
            ```
        """
        if self._released:
            raise RuntimeError(f"Artifact arena '{self.owner}' was already released")
        self._paths.append(path)
        return path

    def release(self) -> None:
        """Delete every registered artifact that still exists.

        Example:
            ```python
            arena.release()
            ```
        """
        if self._released:
            return
        self._released = True
        for path in reversed(self._paths):
            try:
                if path.is_dir() and not path.is_symlink():
                    shutil.rmtree(path)
                else:
                    path.unlink(missing_ok=True)
            except OSError as exc:
                logger.warning("Failed to delete artifact %s owned by %s: %s", path, self.owner, exc)
        self._paths.clear()

    def __enter__(self) -> "ArtifactArena":
        """Enter the arena context.

        Example:
            ```python
            with ArtifactArena(workspace) as arena:
                ...
            ```
        """
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> None:
        """Release the arena on every exit path.

        Example:
            ```python
            arena.__exit__(None, None, None)
            ```
        """
        self.release()
