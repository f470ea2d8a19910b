from __future__ import annotations

import shutil
from pathlib import Path
from typing import List

from .errors import FilesystemFailure
from .globs import GlobSet, glob_base, is_magic, normalize
from .logging import get_logger


log = get_logger("assetpipe.clean")


def _targets(target: str, root: Path) -> List[Path]:
    target = normalize(target)
    if not is_magic(target):
        p = root / target
        return [p] if p.exists() or p.is_symlink() else []
    base = root / glob_base(target)
    if not base.is_dir():
        return []
    matcher = GlobSet([target], root=root)
    found: List[Path] = []
    # Top-down walk; a matched directory is removed whole, so skip its children.
    for p in sorted(base.rglob("*")):
        if any(parent in found for parent in p.parents):
            continue
        if matcher.matches(p.relative_to(root)):
            found.append(p)
    return found


def clean(target: Path | str, root: Path | str = ".") -> int:
    """Remove every file or directory matching `target` (a path or glob).

    Missing targets are not an error. Returns the number of entries removed.
    """
    root = Path(root)
    tp = Path(target)
    if tp.is_absolute():
        if not tp.is_relative_to(root):
            root = Path(tp.anchor)
        target = tp.relative_to(root).as_posix()
    else:
        target = str(target)
    removed = 0
    for p in _targets(target, root):
        try:
            if p.is_dir() and not p.is_symlink():
                shutil.rmtree(p)
            else:
                p.unlink()
            removed += 1
        except FileNotFoundError:
            continue
        except OSError as e:
            raise FilesystemFailure(p, e.strerror or str(e)) from e
    log.debug("Cleaned %s (%d removed)", target, removed)
    return removed
