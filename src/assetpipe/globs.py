"""Glob matching and expansion for source patterns.

Dialect: `*` and `?` stay inside one path segment, `**` spans directories,
`{a,b}` alternates, and a leading `!` excludes. Patterns are relative to a
project root and always use `/` separators.
"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Iterable, List

_MAGIC = set("*?[{")


def is_magic(pattern: str) -> bool:
    return any(ch in _MAGIC for ch in pattern)


def normalize(pattern: str) -> str:
    pattern = pattern.replace("\\", "/")
    while pattern.startswith("./"):
        pattern = pattern[2:]
    return pattern


def expand_braces(pattern: str) -> list[str]:
    """`a/{b,c}/*.{x,y}` -> four patterns, leftmost group first."""
    depth = 0
    start = -1
    for i, ch in enumerate(pattern):
        if ch == "{":
            if depth == 0:
                start = i
            depth += 1
        elif ch == "}" and depth:
            depth -= 1
            if depth == 0:
                options = _split_top_level(pattern[start + 1 : i])
                out: list[str] = []
                for opt in options:
                    out.extend(expand_braces(pattern[:start] + opt + pattern[i + 1 :]))
                return out
    return [pattern]


def _split_top_level(body: str) -> list[str]:
    parts, depth, cur = [], 0, []
    for ch in body:
        if ch == "," and depth == 0:
            parts.append("".join(cur))
            cur = []
            continue
        if ch == "{":
            depth += 1
        elif ch == "}":
            depth -= 1
        cur.append(ch)
    parts.append("".join(cur))
    return parts


def glob_base(pattern: str) -> str:
    """Longest directory prefix without wildcards ("." if none)."""
    parts = normalize(pattern).split("/")
    base: list[str] = []
    for part in parts[:-1]:
        if is_magic(part):
            break
        base.append(part)
    return "/".join(base) or "."


@lru_cache(maxsize=512)
def glob_to_regex(pattern: str) -> re.Pattern:
    pattern = normalize(pattern)
    out = []
    i, n = 0, len(pattern)
    while i < n:
        ch = pattern[i]
        if ch == "*":
            if pattern.startswith("**", i):
                i += 2
                if i < n and pattern[i] == "/":
                    out.append("(?:.*/)?")
                    i += 1
                else:
                    out.append(".*")
                continue
            out.append("[^/]*")
        elif ch == "?":
            out.append("[^/]")
        elif ch == "[":
            j = pattern.find("]", i + 1)
            if j == -1:
                out.append(re.escape(ch))
            else:
                body = pattern[i + 1 : j]
                if body.startswith("!"):
                    body = "^" + body[1:]
                out.append(f"[{body}]")
                i = j
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile("".join(out) + r"\Z")


def match(pattern: str, rel_path: str) -> bool:
    rel_path = normalize(rel_path)
    return any(glob_to_regex(p).match(rel_path) for p in expand_braces(pattern))


@dataclass(frozen=True)
class Matched:
    path: Path
    base: Path

    @property
    def relative(self) -> Path:
        return self.path.relative_to(self.base)


class GlobSet:
    """Ordered include patterns minus `!` excludes, anchored at `root`."""

    def __init__(self, patterns: Iterable[str], root: Path | str = "."):
        self.root = Path(root)
        self.include: List[str] = []
        self.exclude: List[str] = []
        for raw in patterns:
            raw = normalize(str(raw))
            if raw.startswith("!"):
                self.exclude.extend(expand_braces(normalize(raw[1:])))
            else:
                self.include.extend(expand_braces(raw))

    def relative(self, path: Path | str) -> str | None:
        p = Path(path)
        if not p.is_absolute():
            return normalize(p.as_posix())
        try:
            return p.resolve().relative_to(self.root.resolve()).as_posix()
        except ValueError:
            return None

    def matches(self, path: Path | str) -> bool:
        rel = self.relative(path)
        if rel is None:
            return False
        if any(glob_to_regex(p).match(rel) for p in self.exclude):
            return False
        return any(glob_to_regex(p).match(rel) for p in self.include)

    def bases(self) -> list[Path]:
        seen: list[Path] = []
        for pat in self.include:
            b = self.root / glob_base(pat)
            if b not in seen:
                seen.append(b)
        return seen

    def expand(self) -> list[Matched]:
        """Matched files in pattern order, sorted within each pattern, deduplicated."""
        found: list[Matched] = []
        seen: set[Path] = set()
        for pat in self.include:
            base = self.root / glob_base(pat)
            candidates: list[Path] = []
            if not is_magic(pat):
                p = self.root / pat
                if p.is_file():
                    candidates.append(p)
            elif base.is_dir():
                regex = glob_to_regex(pat)
                for dirpath, _, files in os.walk(base):
                    for file in files:
                        p = Path(dirpath) / file
                        if regex.match(p.relative_to(self.root).as_posix()):
                            candidates.append(p)
            for p in sorted(candidates, key=lambda c: c.relative_to(self.root).as_posix()):
                if p in seen:
                    continue
                rel = p.relative_to(self.root).as_posix()
                if any(glob_to_regex(x).match(rel) for x in self.exclude):
                    continue
                seen.add(p)
                found.append(Matched(path=p, base=base))
        return found
