"""Static pipeline configuration: asset classes and their path registry.

The configuration is built once at startup (from defaults or a YAML file) and
handed to every component; nothing mutates it afterwards.
"""

from __future__ import annotations

import fnmatch
from dataclasses import dataclass, field, replace
from enum import Enum
from pathlib import Path, PurePosixPath
from types import MappingProxyType
from typing import Dict, List, Mapping, Optional, Tuple

import yaml

from .errors import ConfigError
from .globs import GlobSet, normalize
from .logging import get_logger


log = get_logger("assetpipe.config")

DEFAULT_CONFIG_NAME = "assetpipe.yaml"


class AssetClass(str, Enum):
    MARKUP = "markup"
    STYLES_PRECOMPILED = "styles-precompiled"
    STYLES_SOURCE = "styles-source"
    SCRIPTS = "scripts"
    SCRIPTS_VENDOR = "scripts-vendor"
    IMAGES = "images"
    SERVER_SCRIPTS = "server-scripts"

    def __str__(self) -> str:
        return self.value


class Mode(str, Enum):
    DEV = "dev"
    RELEASE = "release"


STYLE_CLASSES = (AssetClass.STYLES_PRECOMPILED, AssetClass.STYLES_SOURCE)


@dataclass(frozen=True)
class PathSpec:
    sources: Tuple[str, ...]
    dev_destination: str
    release_destination: str
    watch: Tuple[str, ...] = ()
    clean: str = "*"
    output: Optional[str] = None

    @property
    def watch_patterns(self) -> Tuple[str, ...]:
        return self.watch or self.sources

    def destination(self, mode: Mode) -> str:
        return self.dev_destination if mode is Mode.DEV else self.release_destination


@dataclass(frozen=True)
class ServerSettings:
    host: str = "127.0.0.1"
    port: int = 3000


@dataclass(frozen=True)
class PurgeSettings:
    # Content globs are relative to the release root.
    content: Tuple[str, ...] = ("**/*.html", "**/*.js")
    safelist: Tuple[str, ...] = (r"^veno", r"^swiper-pagination")


@dataclass(frozen=True)
class PipelineConfig:
    root: Path
    dev_root: str
    release_root: str
    paths: Mapping[AssetClass, PathSpec]
    server: ServerSettings = field(default_factory=ServerSettings)
    purge: PurgeSettings = field(default_factory=PurgeSettings)

    def spec(self, asset_class: AssetClass) -> PathSpec:
        return self.paths[asset_class]

    def resolve(self, rel: str) -> Path:
        return self.root / rel

    def destination(self, asset_class: AssetClass, mode: Mode) -> Path:
        return self.resolve(self.paths[asset_class].destination(mode))

    def output_root(self, mode: Mode) -> Path:
        return self.resolve(self.dev_root if mode is Mode.DEV else self.release_root)

    def sources(self, asset_class: AssetClass) -> GlobSet:
        return GlobSet(self.paths[asset_class].sources, root=self.root)


def default_paths(src: str = "src", build: str = "build", dist: str = "dist") -> Dict[AssetClass, PathSpec]:
    return {
        AssetClass.MARKUP: PathSpec(
            sources=(f"{src}/html/*.html",),
            watch=(f"{src}/html/**/*.html",),
            dev_destination=build,
            release_destination=dist,
            clean="*.html",
        ),
        AssetClass.STYLES_PRECOMPILED: PathSpec(
            sources=(f"{src}/css/**/*.css",),
            dev_destination=f"{build}/assets/css",
            release_destination=f"{dist}/assets/css",
            output="plugins.css",
        ),
        AssetClass.STYLES_SOURCE: PathSpec(
            sources=(f"{src}/scss/**/*.scss", f"!{src}/scss/plugins/**/*.scss"),
            watch=(f"{src}/scss/**/*.scss",),
            dev_destination=f"{build}/assets/css",
            release_destination=f"{dist}/assets/css",
        ),
        AssetClass.SCRIPTS: PathSpec(
            sources=(f"{src}/js/*.js",),
            dev_destination=f"{build}/assets/js",
            release_destination=f"{dist}/assets/js",
        ),
        AssetClass.SCRIPTS_VENDOR: PathSpec(
            sources=(f"{src}/js/plugins/**/*.js",),
            dev_destination=f"{build}/assets/js",
            release_destination=f"{dist}/assets/js",
            output="plugins.js",
        ),
        AssetClass.IMAGES: PathSpec(
            sources=(f"{src}/images/**/*.{{jpg,jpeg,png,svg}}",),
            dev_destination=f"{build}/assets/images",
            release_destination=f"{dist}/assets/images",
        ),
        AssetClass.SERVER_SCRIPTS: PathSpec(
            sources=(f"{src}/php/**/*.php",),
            dev_destination=f"{build}/assets/php",
            release_destination=f"{dist}/assets/php",
        ),
    }


def default_config(root: Path | str = ".", validate: bool = True) -> PipelineConfig:
    cfg = PipelineConfig(
        root=Path(root).resolve(),
        dev_root="build",
        release_root="dist",
        paths=MappingProxyType(default_paths()),
    )
    if validate:
        validate_config(cfg)
    return cfg


def _as_tuple(value, key: str) -> Tuple[str, ...]:
    if value is None:
        return ()
    if isinstance(value, str):
        return (normalize(value),)
    if isinstance(value, (list, tuple)):
        return tuple(normalize(str(v)) for v in value)
    raise ConfigError(f"{key}: expected a string or a list of strings")


def _path_spec(name: str, raw: dict, base: Optional[PathSpec]) -> PathSpec:
    if not isinstance(raw, dict):
        raise ConfigError(f"assets.{name}: expected a mapping")
    unknown = set(raw) - {"sources", "watch", "dev_destination", "release_destination", "clean", "output"}
    if unknown:
        raise ConfigError(f"assets.{name}: unknown keys {sorted(unknown)}")
    values = {}
    if "sources" in raw:
        values["sources"] = _as_tuple(raw["sources"], f"assets.{name}.sources")
    if "watch" in raw:
        values["watch"] = _as_tuple(raw["watch"], f"assets.{name}.watch")
    for key in ("dev_destination", "release_destination", "clean", "output"):
        if key in raw:
            values[key] = None if raw[key] is None else normalize(str(raw[key]))
    if base is not None:
        return replace(base, **values)
    missing = {"sources", "dev_destination", "release_destination"} - set(values)
    if missing:
        raise ConfigError(f"assets.{name}: missing {sorted(missing)}")
    return PathSpec(**values)


def load_config(path: str | Path, validate: bool = True) -> PipelineConfig:
    """Build a configuration from a YAML file.

    Paths in the file are relative to the file's directory. Roots rename the
    default layout; entries under `assets:` override individual fields of the
    default PathSpec for that class.
    """
    p = Path(path)
    with open(p, "r", encoding="utf-8") as f:
        raw = yaml.safe_load(f) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"{p}: top level must be a mapping")

    src = normalize(str(raw.get("source_root", "src")))
    build = normalize(str(raw.get("dev_root", "build")))
    dist = normalize(str(raw.get("release_root", "dist")))
    paths = default_paths(src, build, dist)

    for name, entry in (raw.get("assets") or {}).items():
        try:
            ac = AssetClass(name)
        except ValueError:
            raise ConfigError(
                f"assets.{name}: unknown asset class (expected one of "
                f"{', '.join(a.value for a in AssetClass)})"
            ) from None
        paths[ac] = _path_spec(name, entry, paths.get(ac))

    server_raw = raw.get("server") or {}
    purge_raw = raw.get("purge") or {}
    try:
        server = ServerSettings(**server_raw)
        purge = PurgeSettings(
            content=_as_tuple(purge_raw.get("content"), "purge.content") or PurgeSettings.content,
            safelist=_as_tuple(purge_raw.get("safelist"), "purge.safelist") or PurgeSettings.safelist,
        )
    except TypeError as e:
        raise ConfigError(f"{p}: {e}") from e

    cfg = PipelineConfig(
        root=p.parent.resolve(),
        dev_root=build,
        release_root=dist,
        paths=MappingProxyType(paths),
        server=server,
        purge=purge,
    )
    if validate:
        validate_config(cfg)
    return cfg


def resolve_config(config_path: str | Path | None, project_dir: str | Path = ".") -> PipelineConfig:
    """Load `config_path` if given, else `<project_dir>/assetpipe.yaml` if present, else defaults."""
    if config_path:
        p = Path(config_path)
        if not p.exists():
            raise ConfigError(f"{p}: config file not found")
        return load_config(p)
    candidate = Path(project_dir) / DEFAULT_CONFIG_NAME
    if candidate.exists():
        return load_config(candidate)
    log.debug("No %s found, using default layout", DEFAULT_CONFIG_NAME)
    return default_config(project_dir)


def _contains(outer: str, inner: str) -> bool:
    o, i = PurePosixPath(outer), PurePosixPath(inner)
    return o == i or o in i.parents


def destination_groups(config: PipelineConfig) -> Dict[str, List[AssetClass]]:
    """Asset classes keyed by shared dev destination, in enum order."""
    groups: Dict[str, List[AssetClass]] = {}
    for ac in AssetClass:
        groups.setdefault(config.paths[ac].dev_destination, []).append(ac)
    return groups


def _check_nesting(config: PipelineConfig, attr: str) -> List[str]:
    problems: List[str] = []
    dests: Dict[str, AssetClass] = {}
    for ac in AssetClass:
        dests.setdefault(getattr(config.paths[ac], attr), ac)
    for outer, outer_cls in dests.items():
        pattern = config.paths[outer_cls].clean
        for inner, inner_cls in dests.items():
            if outer == inner or not _contains(outer, inner):
                continue
            first = PurePosixPath(inner).relative_to(outer).parts[0]
            if "/" in pattern or "**" in pattern or fnmatch.fnmatchcase(first, pattern):
                problems.append(
                    f"{outer_cls}: clean pattern {pattern!r} in {outer} would remove "
                    f"{inner} owned by {inner_cls}"
                )
    return problems


def _overlapping_sources(config: PipelineConfig) -> List[str]:
    problems: List[str] = []
    owners: Dict[Path, AssetClass] = {}
    for ac in AssetClass:
        for m in config.sources(ac).expand():
            prev = owners.setdefault(m.path, ac)
            if prev is not ac:
                rel = m.path.relative_to(config.root).as_posix()
                problems.append(f"{rel} matches both {prev} and {ac}")
    seen: Dict[str, AssetClass] = {}
    for ac in AssetClass:
        for pat in config.paths[ac].sources:
            if pat.startswith("!"):
                continue
            prev = seen.setdefault(pat, ac)
            if prev is not ac:
                problems.append(f"pattern {pat!r} declared by both {prev} and {ac}")
    return problems


def validate_config(config: PipelineConfig) -> None:
    """Reject configurations that break the registry invariants."""
    problems: List[str] = []
    groups = destination_groups(config)
    for dest, members in groups.items():
        releases = {config.paths[m].release_destination for m in members}
        cleans = {config.paths[m].clean for m in members}
        if len(releases) > 1:
            problems.append(f"{dest}: classes {', '.join(map(str, members))} disagree on release destination")
        if len(cleans) > 1:
            problems.append(f"{dest}: classes {', '.join(map(str, members))} disagree on clean pattern")
    for ac in AssetClass:
        spec = config.paths[ac]
        if not spec.sources:
            problems.append(f"{ac}: no source patterns")
        if _contains(spec.dev_destination, spec.release_destination) or _contains(
            spec.release_destination, spec.dev_destination
        ):
            problems.append(f"{ac}: dev and release destinations overlap")
    if _contains(config.dev_root, config.release_root) or _contains(config.release_root, config.dev_root):
        problems.append("dev_root and release_root overlap")
    problems.extend(_check_nesting(config, "dev_destination"))
    problems.extend(_check_nesting(config, "release_destination"))
    problems.extend(_overlapping_sources(config))
    if problems:
        raise ConfigError("invalid configuration:\n  " + "\n  ".join(problems))
