from __future__ import annotations

from pathlib import Path

import rcssmin
import sass

from ..config import AssetClass, Mode
from ..core import TransformContext, transform
from ..errors import TransformFailure


def concat(ctx: TransformContext, default_name: str, separator: str = "\n") -> None:
    """Join every matched source, in match order, into one bundle file."""
    name = ctx.spec.output or default_name
    parts = []
    for m in ctx.sources:
        ctx.current = m.path
        parts.append(m.path.read_text(encoding="utf-8"))
    ctx.write(name, separator.join(parts))
    ctx.logger.info("Bundled %d file(s) into %s", len(parts), ctx.destination / name)


@transform(AssetClass.STYLES_PRECOMPILED)
def bundle_css(ctx: TransformContext) -> None:
    concat(ctx, "plugins.css")


def _compile(path: Path, out: Path, mode: Mode, include_paths: list[str]) -> tuple[str, str | None]:
    try:
        if mode is Mode.DEV:
            css, source_map = sass.compile(
                filename=str(path),
                output_style="expanded",
                include_paths=include_paths,
                source_map_filename=str(out) + ".map",
                output_filename_hint=str(out),
                source_map_contents=True,
            )
            return css, source_map
        css = sass.compile(filename=str(path), output_style="compressed", include_paths=include_paths)
        return rcssmin.cssmin(css), None
    except sass.CompileError as e:
        raise TransformFailure(AssetClass.STYLES_SOURCE.value, path, str(e).strip()) from e


@transform(AssetClass.STYLES_SOURCE)
def compile_sass(ctx: TransformContext) -> None:
    compiled = 0
    for src in ctx.sources:
        # Partials are only reachable through @use / @import.
        if src.path.name.startswith("_"):
            continue
        ctx.current = src.path
        rel = src.relative.with_suffix(".css")
        out = ctx.destination / rel
        css, source_map = _compile(src.path, out, ctx.mode, [str(src.base)])
        ctx.write(rel, css)
        if source_map is not None:
            ctx.write(rel.with_name(rel.name + ".map"), source_map)
        compiled += 1
    ctx.logger.info("Compiled %d stylesheet(s) into %s", compiled, ctx.destination)
