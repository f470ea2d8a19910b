"""HTML templating: `@@include` file inclusion.

Syntax follows the file-include convention used by front-end build tools:

    @@include('partials/header.html', {"title": "Home"})

Paths resolve relative to the including file. Inside the included file,
`@@title` is replaced by the context value. Includes nest; cycles fail.
"""

from __future__ import annotations

import json
import re
from pathlib import Path
from typing import Dict, List, Tuple

from ..config import AssetClass
from ..core import TransformContext, transform
from ..errors import TransformFailure

PREFIX = "@@"
_INCLUDE = f"{PREFIX}include("
_decoder = json.JSONDecoder()


def _parse_include(text: str, start: int, origin: Path) -> Tuple[str, Dict, int]:
    """Parse the arguments of an include starting at `start` (just past the paren)."""
    i = start
    while i < len(text) and text[i].isspace():
        i += 1
    if i >= len(text) or text[i] not in "'\"":
        raise TransformFailure(AssetClass.MARKUP.value, origin, f"malformed {_INCLUDE}...) at offset {start}")
    quote = text[i]
    end = text.find(quote, i + 1)
    if end == -1:
        raise TransformFailure(AssetClass.MARKUP.value, origin, f"unterminated include path at offset {i}")
    target = text[i + 1 : end]
    i = end + 1
    context: Dict = {}
    while i < len(text) and text[i].isspace():
        i += 1
    if i < len(text) and text[i] == ",":
        i += 1
        while i < len(text) and text[i].isspace():
            i += 1
        try:
            context, i = _decoder.raw_decode(text, i)
        except json.JSONDecodeError as e:
            raise TransformFailure(AssetClass.MARKUP.value, origin, f"invalid include context: {e.msg}") from e
        if not isinstance(context, dict):
            raise TransformFailure(AssetClass.MARKUP.value, origin, "include context must be a JSON object")
        while i < len(text) and text[i].isspace():
            i += 1
    if i >= len(text) or text[i] != ")":
        raise TransformFailure(AssetClass.MARKUP.value, origin, f"expected ')' after include at offset {i}")
    return target, context, i + 1


def substitute(text: str, context: Dict) -> str:
    if not context:
        return text
    keys = sorted(context, key=len, reverse=True)
    pattern = re.compile(re.escape(PREFIX) + "(" + "|".join(re.escape(k) for k in keys) + r")\b")

    def repl(m: re.Match) -> str:
        value = context[m.group(1)]
        return value if isinstance(value, str) else json.dumps(value)

    return pattern.sub(repl, text)


def render(path: Path, context: Dict | None = None, _stack: Tuple[Path, ...] = ()) -> str:
    """Render `path` with all includes inlined."""
    path = path.resolve()
    if path in _stack:
        chain = " -> ".join(p.name for p in _stack + (path,))
        raise TransformFailure(AssetClass.MARKUP.value, path, f"include cycle: {chain}")
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        origin = _stack[-1] if _stack else path
        raise TransformFailure(AssetClass.MARKUP.value, origin, f"included file not found: {path}") from None
    except UnicodeDecodeError as e:
        raise TransformFailure(AssetClass.MARKUP.value, path, f"not valid UTF-8 ({e.reason} at byte {e.start})") from e
    text = substitute(text, context or {})

    out: List[str] = []
    pos = 0
    while True:
        idx = text.find(_INCLUDE, pos)
        if idx == -1:
            out.append(text[pos:])
            break
        out.append(text[pos:idx])
        target, ctx, pos = _parse_include(text, idx + len(_INCLUDE), path)
        merged = dict(context or {})
        merged.update(ctx)
        out.append(render(path.parent / target, merged, _stack + (path,)))
    return "".join(out)


@transform(AssetClass.MARKUP)
def build_markup(ctx: TransformContext) -> None:
    for src in ctx.sources:
        ctx.current = src.path
        ctx.write(src.relative, render(src.path))
    ctx.logger.info("Rendered %d page(s) into %s", len(ctx.sources), ctx.destination)
