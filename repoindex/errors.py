"""Error types shared by repoindex components."""

from __future__ import annotations

from pathlib import Path


class OutputError(RuntimeError):
    """Raised when an output artifact (snapshot, diff, chunk, pack) cannot be written."""

    def __init__(self, path: Path | str, operation: str, cause: Exception | None = None) -> None:
        self.path = Path(path)
        self.operation = operation
        message = f"Failed to {operation} {self.path}"
        if cause is not None:
            message = f"{message}: {cause}"
        super().__init__(message)


__all__ = ["OutputError"]
