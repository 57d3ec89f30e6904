from __future__ import annotations

import os
from pathlib import Path
from typing import Iterable, List


def canonical_root(p: Path) -> Path:
    # Deterministic normalization: absolute, symlinks resolved.
    return Path(os.path.realpath(os.path.abspath(str(p))))


def is_within_root(path: Path, root: Path) -> bool:
    """
    True when `path` (normalized, not resolved) is `root` itself or lives under it.

    The separator suffix keeps "/out" from matching "/outside".
    """
    p = os.path.normpath(os.path.abspath(str(path)))
    r = str(root)
    return p == r or p.startswith(r.rstrip(os.sep) + os.sep)


def is_strictly_within_root(path: Path, root: Path) -> bool:
    p = os.path.normpath(os.path.abspath(str(path)))
    return p != str(root) and is_within_root(path, root)


def overlapping_pairs(dirs: Iterable[Path]) -> List[tuple[Path, Path]]:
    """
    Pairs of directories that are equal or nested in one another.
    """
    normalized = [canonical_root(d) for d in dirs]
    out: List[tuple[Path, Path]] = []
    for i, a in enumerate(normalized):
        for b in normalized[i + 1 :]:
            if is_within_root(a, b) or is_within_root(b, a):
                out.append((a, b))
    return out
