"""Exception types raised by the pipeline.

Collaborator errors are translated into these at the task-unit boundary so the
orchestrator can report them uniformly and keep the watcher alive.
"""

from __future__ import annotations

from pathlib import Path
from typing import List, Optional


class AssetPipeError(Exception):
    """Base class for all pipeline errors."""


class ConfigError(AssetPipeError):
    """Configuration is malformed or violates a registry invariant."""


class SourceMissing(AssetPipeError):
    """A source pattern matched no files. Logged as a warning, never fatal."""

    def __init__(self, asset_class: str, patterns: tuple[str, ...]):
        self.asset_class = asset_class
        self.patterns = patterns
        super().__init__(
            f"{asset_class}: no files match {', '.join(patterns) or '(no patterns)'}"
        )


class TransformFailure(AssetPipeError):
    def __init__(self, asset_class: str, path: Optional[Path | str], message: str):
        self.asset_class = asset_class
        self.path = path
        self.message = message
        where = f"{path}: " if path else ""
        super().__init__(f"{asset_class}: {where}{message}")


class FilesystemFailure(AssetPipeError):
    def __init__(self, path: Path | str, message: str):
        self.path = path
        self.message = message
        super().__init__(f"{path}: {message}")


class WatcherSubscriptionFailure(AssetPipeError):
    def __init__(self, path: Path | str, message: str = "watch path does not exist"):
        self.path = path
        super().__init__(f"{path}: {message}")


class TaskFailure(AssetPipeError):
    """An exception that escaped a task unit, annotated with the unit name."""

    def __init__(self, unit: str, error: BaseException):
        self.unit = unit
        self.error = error
        super().__init__(f"{unit}: {error}")


class GraphFailure(AssetPipeError):
    """Aggregated failure of a task graph run."""

    def __init__(self, failures: List[TaskFailure]):
        self.failures = list(failures)
        units = ", ".join(f.unit for f in self.failures)
        super().__init__(f"{len(self.failures)} task(s) failed: {units}")

    @property
    def first(self) -> TaskFailure:
        return self.failures[0]


class ServerFailure(AssetPipeError):
    """The dev server could not start (e.g. the port is taken)."""

    def __init__(self, address: str, message: str):
        self.address = address
        super().__init__(f"dev server at {address}: {message}")
