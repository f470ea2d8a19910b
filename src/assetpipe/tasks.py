"""Task units and the graph builder.

A plan names leaf units and annotates them with `Seq` / `Par`; `build_graph`
turns it into an executable TaskGraph for one mode. Leaf references:

    clean-root            empty the whole output root for the mode
    clean:<binding>       apply a binding's clean pattern to its destination
    transform:<class>     run the transform registered for an asset class
    purge                 release-only style purge and minification
    reload                signal connected browsers
"""

from __future__ import annotations

import importlib
import pkgutil
from dataclasses import dataclass
from typing import Callable, Dict, List, Mapping, Optional, Tuple, Union

from .clean import clean
from .config import AssetClass, Mode, PipelineConfig, destination_groups
from .core import (
    TaskGraph,
    TaskUnit,
    TransformContext,
    TransformSpec,
    concurrent,
    sequence,
)
from .errors import (
    AssetPipeError,
    ConfigError,
    FilesystemFailure,
    SourceMissing,
    TransformFailure,
)
from .logging import get_logger
from .transforms.purge import purge_release_styles


log = get_logger("assetpipe.tasks")

TRANSFORMS_PACKAGE = "assetpipe.transforms"


def discover_transforms(package: str = TRANSFORMS_PACKAGE) -> Dict[AssetClass, TransformSpec]:
    """Import all modules in the transforms package and collect decorated functions."""
    specs: Dict[AssetClass, TransformSpec] = {}
    pkg = importlib.import_module(package)
    for m in pkgutil.iter_modules(pkg.__path__, prefix=f"{package}."):
        mod = importlib.import_module(m.name)
        for attr_name in dir(mod):
            obj = getattr(mod, attr_name)
            spec = getattr(obj, "_transform_spec", None)
            if isinstance(spec, TransformSpec):
                specs[spec.asset_class] = spec
    log.debug("Discovered transforms: %s", ", ".join(sorted(a.value for a in specs)))
    return specs


# Plans


@dataclass(frozen=True)
class Seq:
    steps: Tuple["Plan", ...]

    def __init__(self, *steps: "Plan"):
        object.__setattr__(self, "steps", tuple(steps))


@dataclass(frozen=True)
class Par:
    steps: Tuple["Plan", ...]

    def __init__(self, *steps: "Plan"):
        object.__setattr__(self, "steps", tuple(steps))


Plan = Union[str, Seq, Par]


@dataclass(frozen=True)
class WatchBinding:
    name: str
    asset_classes: Tuple[AssetClass, ...]
    watch: Tuple[str, ...]
    graph: TaskGraph


def binding_name(classes: Tuple[AssetClass, ...]) -> str:
    return "+".join(ac.value for ac in classes)


class GraphBuilder:
    """Builds task graphs over one immutable configuration."""

    def __init__(
        self,
        config: PipelineConfig,
        transforms: Optional[Mapping[AssetClass, TransformSpec]] = None,
        reload: Optional[Callable[[], None]] = None,
    ):
        self.config = config
        self.transforms = dict(transforms) if transforms is not None else discover_transforms()
        self.reload = reload
        self.groups: Dict[str, Tuple[AssetClass, ...]] = {
            binding_name(tuple(members)): tuple(members)
            for members in destination_groups(config).values()
        }

    # Leaf units

    def clean_root_unit(self, mode: Mode) -> TaskUnit:
        root = self.config.output_root(mode)
        return TaskUnit(f"clean-root[{mode.value}]", lambda: self._clean(root, "*"))

    def clean_unit(self, group: str, mode: Mode) -> TaskUnit:
        if group not in self.groups:
            raise ConfigError(f"unknown binding {group!r}")
        first = self.groups[group][0]
        dest = self.config.destination(first, mode)
        pattern = self.config.spec(first).clean
        return TaskUnit(f"clean:{group}[{mode.value}]", lambda: self._clean(dest, pattern))

    def transform_unit(self, asset_class: AssetClass, mode: Mode) -> TaskUnit:
        if asset_class not in self.transforms:
            raise ConfigError(f"no transform registered for {asset_class}")
        spec = self.transforms[asset_class]
        return TaskUnit(
            f"transform:{asset_class.value}[{mode.value}]",
            lambda: run_transform(self.config, spec, mode),
        )

    def purge_unit(self, mode: Mode) -> TaskUnit:
        if mode is not Mode.RELEASE:
            raise ConfigError("purge only runs in release mode")
        return TaskUnit("purge[release]", lambda: _annotate_fs("purge", purge_release_styles, self.config))

    def reload_unit(self) -> TaskUnit:
        reload = self.reload
        return TaskUnit("reload", lambda: reload() if reload is not None else None)

    def _clean(self, dest, pattern: str) -> None:
        clean(dest / pattern, root=self.config.root)

    # Composition

    def leaf(self, ref: str, mode: Mode) -> TaskUnit:
        if ref == "clean-root":
            return self.clean_root_unit(mode)
        if ref == "purge":
            return self.purge_unit(mode)
        if ref == "reload":
            return self.reload_unit()
        kind, _, arg = ref.partition(":")
        if kind == "clean" and arg:
            return self.clean_unit(arg, mode)
        if kind == "transform" and arg:
            try:
                ac = AssetClass(arg)
            except ValueError:
                raise ConfigError(f"unknown asset class in {ref!r}") from None
            return self.transform_unit(ac, mode)
        raise ConfigError(f"unknown task reference {ref!r}")

    def build_graph(self, plan: Plan, mode: Mode) -> TaskGraph:
        if isinstance(plan, str):
            return self.leaf(plan, mode)
        children = [self.build_graph(step, mode) for step in plan.steps]
        return sequence(*children) if isinstance(plan, Seq) else concurrent(*children)

    # Canonical plans

    def dev_startup_plan(self) -> Plan:
        return Seq("clean-root", Par(*(f"transform:{ac.value}" for ac in AssetClass)))

    def release_plan(self) -> Plan:
        return Seq("clean-root", *(f"transform:{ac.value}" for ac in AssetClass), "purge")

    def binding_plan(self, group: str) -> Plan:
        members = self.groups[group]
        if len(members) == 1:
            body: Plan = f"transform:{members[0].value}"
        else:
            body = Par(*(f"transform:{ac.value}" for ac in members))
        return Seq(f"clean:{group}", body, "reload")

    def bindings(self) -> List[WatchBinding]:
        out: List[WatchBinding] = []
        for group, members in self.groups.items():
            watch: List[str] = []
            for ac in members:
                for pat in self.config.spec(ac).watch_patterns:
                    if pat not in watch:
                        watch.append(pat)
            out.append(
                WatchBinding(
                    name=group,
                    asset_classes=members,
                    watch=tuple(watch),
                    graph=self.build_graph(self.binding_plan(group), Mode.DEV),
                )
            )
        return out


def _annotate_fs(label: str, fn, *args):
    try:
        return fn(*args)
    except AssetPipeError:
        raise
    except OSError as e:
        raise FilesystemFailure(getattr(e, "filename", None) or label, e.strerror or str(e)) from e


def run_transform(config: PipelineConfig, spec: TransformSpec, mode: Mode) -> None:
    """Run one transform, translating collaborator errors at the unit boundary."""
    ac = spec.asset_class
    path_spec = config.spec(ac)
    dest = config.destination(ac, mode)
    sources = config.sources(ac).expand()
    logger = get_logger(f"assetpipe.transform.{ac.value}")
    ctx = TransformContext(
        config=config,
        asset_class=ac,
        spec=path_spec,
        mode=mode,
        sources=sources,
        destination=dest,
    )
    try:
        dest.mkdir(parents=True, exist_ok=True)
        if not sources:
            logger.warning("%s", SourceMissing(ac.value, path_spec.sources))
            return
        spec.fn(ctx)
    except AssetPipeError:
        raise
    except OSError as e:
        raise FilesystemFailure(getattr(e, "filename", None) or ctx.current or dest, e.strerror or str(e)) from e
    except Exception as e:  # noqa: BLE001
        raise TransformFailure(ac.value, ctx.current, f"{type(e).__name__}: {e}") from e
