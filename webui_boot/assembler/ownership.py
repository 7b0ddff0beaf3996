import logging
import os
from pathlib import Path
from typing import Iterable

_LOGGER = logging.getLogger(__name__)


def _chown(path: str, uid: int, gid: int) -> None:
    os.chown(path, uid, gid, follow_symlinks=False)


def chown_tree(root: Path, uid: int, gid: int) -> int:
    if not root.exists():
        return 0
    count = 0
    _chown(str(root), uid, gid)
    count += 1
    if root.is_dir() and not root.is_symlink():
        for dirpath, dirnames, filenames in os.walk(root):
            for name in dirnames + filenames:
                _chown(os.path.join(dirpath, name), uid, gid)
                count += 1
    return count


def collapse_nested(paths: Iterable[Path]) -> list[Path]:
    """Drop paths already covered by an ancestor in the same list."""
    roots: list[Path] = []
    for path in sorted({Path(p) for p in paths}, key=lambda p: (len(p.parts), str(p))):
        if any(path == r or r in path.parents for r in roots):
            continue
        roots.append(path)
    return roots


def assign_ownership(paths: Iterable[Path], uid: int, gid: int) -> int:
    """Recursively hand every provisioned path to (uid, gid).

    Called once, after every file exists. Root identities keep the default
    ownership untouched.
    """
    if uid == 0:
        _LOGGER.info("uid=0; leaving ownership unchanged")
        return 0
    total = 0
    for root in collapse_nested(paths):
        total += chown_tree(root, uid, gid)
    _LOGGER.info("assigned %s paths to %s:%s", total, uid, gid)
    return total
