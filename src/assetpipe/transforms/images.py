"""Lossless-ish image recompression with Pillow."""

from __future__ import annotations

import io
import shutil

from PIL import Image, UnidentifiedImageError

from ..config import AssetClass
from ..core import TransformContext, transform
from ..errors import TransformFailure

_OPTIMIZABLE = {".jpg": "JPEG", ".jpeg": "JPEG", ".png": "PNG"}


def optimize(data: bytes, fmt: str) -> bytes:
    with Image.open(io.BytesIO(data)) as img:
        buf = io.BytesIO()
        if fmt == "JPEG":
            img.save(buf, format="JPEG", optimize=True, quality="keep" if img.format == "JPEG" else 85)
        else:
            img.save(buf, format=fmt, optimize=True)
    out = buf.getvalue()
    # Never ship a bigger file than the source.
    return out if len(out) < len(data) else data


@transform(AssetClass.IMAGES)
def optimize_images(ctx: TransformContext) -> None:
    saved = 0
    for src in ctx.sources:
        ctx.current = src.path
        out = ctx.destination / src.relative
        fmt = _OPTIMIZABLE.get(src.path.suffix.lower())
        if fmt is None:
            out.parent.mkdir(parents=True, exist_ok=True)
            shutil.copyfile(src.path, out)
            continue
        data = src.path.read_bytes()
        try:
            result = optimize(data, fmt)
        except (UnidentifiedImageError, OSError, ValueError) as e:
            raise TransformFailure(AssetClass.IMAGES.value, src.path, f"cannot decode image: {e}") from e
        saved += len(data) - len(result)
        ctx.write(src.relative, result)
    ctx.logger.info("Processed %d image(s), saved %d bytes", len(ctx.sources), saved)
