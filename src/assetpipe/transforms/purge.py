"""Release post-processing: drop unused style rules, then minify.

A selector survives when every class, id and type name it mentions occurs as a
word in the content files, or when it matches a safelist regex. Rules left
without selectors are removed, and conditional group rules (`@media`,
`@supports`) are purged recursively. Other at-rules are kept untouched.
"""

from __future__ import annotations

import re
from pathlib import Path
from typing import Iterable, List, Pattern, Set

import rcssmin
import tinycss2

from ..config import STYLE_CLASSES, Mode, PipelineConfig
from ..errors import TransformFailure
from ..globs import GlobSet
from ..logging import get_logger


log = get_logger("assetpipe.transform.purge")

_WORD = re.compile(r"[A-Za-z0-9_:/-]+")
_GROUP_RULES = {"media", "supports", "document", "layer", "container"}
_ALWAYS_KEEP = {"html", "body", "*"}


def content_words(texts: Iterable[str]) -> Set[str]:
    words: Set[str] = set()
    for text in texts:
        for w in _WORD.findall(text):
            words.add(w)
            # `md:flex` style tokens also count as their parts
            words.update(p for p in re.split(r"[:/]", w) if p)
    return words


def _split_selectors(prelude) -> List[list]:
    groups: List[list] = [[]]
    for tok in prelude:
        if tok.type == "literal" and tok.value == ",":
            groups.append([])
        else:
            groups[-1].append(tok)
    return [g for g in groups if any(t.type != "whitespace" for t in g)]


def _is_literal(tok, value: str) -> bool:
    return tok is not None and tok.type == "literal" and tok.value == value


def _names(tokens) -> Set[str]:
    names: Set[str] = set()
    prev = None
    for tok in tokens:
        if tok.type == "ident":
            if _is_literal(prev, "."):
                names.add(tok.value)
            elif not _is_literal(prev, ":"):
                names.add(tok.value.lower())
        elif tok.type == "hash":
            names.add(tok.value)
        prev = tok
    return names


def _keep(selector_tokens, words: Set[str], safelist: List[Pattern]) -> bool:
    names = _names(selector_tokens) - _ALWAYS_KEEP
    if any(p.search(n) for p in safelist for n in names):
        return True
    return all(n in words for n in names)


def _purge_rules(rules, words: Set[str], safelist: List[Pattern]) -> List[str]:
    out: List[str] = []
    for rule in rules:
        if rule.type == "qualified-rule":
            kept = [
                tinycss2.serialize(sel).strip()
                for sel in _split_selectors(rule.prelude)
                if _keep(sel, words, safelist)
            ]
            if kept:
                out.append(",".join(kept) + "{" + tinycss2.serialize(rule.content) + "}")
        elif rule.type == "at-rule":
            if rule.content is not None and rule.lower_at_keyword in _GROUP_RULES:
                inner = _purge_rules(
                    tinycss2.parse_rule_list(rule.content, skip_comments=True, skip_whitespace=True),
                    words,
                    safelist,
                )
                if inner:
                    out.append(f"@{rule.at_keyword}{tinycss2.serialize(rule.prelude)}{{{''.join(inner)}}}")
            else:
                out.append(rule.serialize())
        elif rule.type == "error":
            raise ValueError(rule.message)
    return out


def purge_css(css: str, words: Set[str], safelist: Iterable[str] = ()) -> str:
    patterns = [re.compile(s) for s in safelist]
    rules = tinycss2.parse_stylesheet(css, skip_comments=True, skip_whitespace=True)
    return rcssmin.cssmin("".join(_purge_rules(rules, words, patterns)))


def purge_release_styles(config: PipelineConfig) -> List[Path]:
    """Purge and minify every stylesheet in the release style destinations."""
    release_root = config.output_root(Mode.RELEASE)
    content = GlobSet(config.purge.content, root=release_root).expand()
    words = content_words(m.path.read_text(encoding="utf-8", errors="replace") for m in content)
    log.info("Purging with %d content file(s), %d distinct words", len(content), len(words))

    written: List[Path] = []
    dests = {config.destination(ac, Mode.RELEASE) for ac in STYLE_CLASSES}
    for dest in sorted(dests):
        for css_file in sorted(GlobSet(["**/*.css"], root=dest).expand(), key=lambda m: m.path):
            before = css_file.path.read_text(encoding="utf-8")
            try:
                after = purge_css(before, words, config.purge.safelist)
            except ValueError as e:
                raise TransformFailure("purge", css_file.path, str(e)) from e
            css_file.path.write_text(after, encoding="utf-8")
            log.debug("%s: %d -> %d bytes", css_file.path, len(before), len(after))
            written.append(css_file.path)
    return written
