from __future__ import annotations

import shutil

from ..config import AssetClass
from ..core import TransformContext, transform


@transform(AssetClass.SERVER_SCRIPTS)
def copy_server_scripts(ctx: TransformContext) -> None:
    for src in ctx.sources:
        ctx.current = src.path
        out = ctx.destination / src.relative
        out.parent.mkdir(parents=True, exist_ok=True)
        shutil.copyfile(src.path, out)
    ctx.logger.info("Copied %d file(s) into %s", len(ctx.sources), ctx.destination)
