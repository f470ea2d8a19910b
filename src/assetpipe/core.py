from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

from .config import AssetClass, Mode, PathSpec, PipelineConfig
from .errors import AssetPipeError, GraphFailure, TaskFailure
from .globs import Matched
from .logging import get_logger


@dataclass
class TransformContext:
    """Everything a transform collaborator needs for one run."""

    config: PipelineConfig
    asset_class: AssetClass
    spec: PathSpec
    mode: Mode
    sources: List[Matched]
    destination: Path
    # Source being processed; names the file when an unexpected error escapes.
    current: Optional[Path] = None

    @property
    def logger(self):
        return get_logger(f"assetpipe.transform.{self.asset_class.value}")

    def write(self, rel: Path | str, data: bytes | str) -> Path:
        out = self.destination / rel
        out.parent.mkdir(parents=True, exist_ok=True)
        if isinstance(data, str):
            out.write_text(data, encoding="utf-8")
        else:
            out.write_bytes(data)
        return out


@dataclass
class TransformSpec:
    asset_class: AssetClass
    fn: Callable[[TransformContext], None]
    name: str


def transform(asset_class: AssetClass, name: Optional[str] = None):
    """Decorator registering a function as the transform for an asset class.

    The wrapped function receives a TransformContext and writes its outputs
    under `ctx.destination`.
    """

    def deco(fn: Callable[[TransformContext], None]):
        spec = TransformSpec(asset_class=asset_class, fn=fn, name=name or fn.__name__)
        setattr(fn, "_transform_spec", spec)
        return fn

    return deco


# Task graphs


@dataclass(frozen=True)
class TaskUnit:
    name: str
    fn: Callable[[], None] = field(compare=False, repr=False)


@dataclass(frozen=True)
class Sequence:
    children: Tuple["TaskGraph", ...]


@dataclass(frozen=True)
class Concurrent:
    children: Tuple["TaskGraph", ...]


TaskGraph = Union[TaskUnit, Sequence, Concurrent]


def sequence(*children: TaskGraph) -> Sequence:
    return Sequence(tuple(children))


def concurrent(*children: TaskGraph) -> Concurrent:
    return Concurrent(tuple(children))


def unit_names(graph: TaskGraph) -> List[str]:
    if isinstance(graph, TaskUnit):
        return [graph.name]
    names: List[str] = []
    for child in graph.children:
        names.extend(unit_names(child))
    return names


def describe(graph: TaskGraph) -> str:
    if isinstance(graph, TaskUnit):
        return graph.name
    inner = ", ".join(describe(c) for c in graph.children)
    kind = "seq" if isinstance(graph, Sequence) else "par"
    return f"{kind}({inner})"


def _run_unit(unit: TaskUnit) -> List[TaskFailure]:
    step_logger = get_logger(f"assetpipe.task.{unit.name}")
    step_logger.debug("Run: %s", unit.name)
    try:
        unit.fn()
    except AssetPipeError as e:
        step_logger.error("%s", e)
        return [e if isinstance(e, TaskFailure) else TaskFailure(unit.name, e)]
    except Exception as e:  # noqa: BLE001
        step_logger.exception("Step failed (%s)", unit.name)
        return [TaskFailure(unit.name, e)]
    return []


def _run(graph: TaskGraph) -> List[TaskFailure]:
    if isinstance(graph, TaskUnit):
        return _run_unit(graph)
    if isinstance(graph, Sequence):
        for child in graph.children:
            failures = _run(child)
            if failures:
                return failures
        return []
    if not graph.children:
        return []
    failures: List[TaskFailure] = []
    # Siblings are never cancelled; the pool drains before we report.
    with ThreadPoolExecutor(max_workers=len(graph.children)) as pool:
        futures = [pool.submit(_run, child) for child in graph.children]
        for fut in as_completed(futures):
            failures.extend(fut.result())
    return failures


def execute(graph: TaskGraph) -> None:
    """Run a task graph, raising GraphFailure with every unit failure."""
    failures = _run(graph)
    if failures:
        raise GraphFailure(failures)
