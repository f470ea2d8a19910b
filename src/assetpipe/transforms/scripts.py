from __future__ import annotations

import rjsmin

from ..config import AssetClass, Mode
from ..core import TransformContext, transform
from .styles import concat


@transform(AssetClass.SCRIPTS)
def build_scripts(ctx: TransformContext) -> None:
    for src in ctx.sources:
        ctx.current = src.path
        text = src.path.read_text(encoding="utf-8")
        if ctx.mode is Mode.RELEASE:
            text = rjsmin.jsmin(text)
        ctx.write(src.relative, text)
    ctx.logger.info("Wrote %d script(s) into %s", len(ctx.sources), ctx.destination)


@transform(AssetClass.SCRIPTS_VENDOR)
def bundle_vendor_scripts(ctx: TransformContext) -> None:
    # Vendor bundles are usually minified upstream; order matters, content does not change.
    concat(ctx, "plugins.js")
