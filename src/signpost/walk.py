"""Symlink-safe recursive file enumeration."""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator
from pathlib import Path

from .errors import ErrorRecord, ScanRootError, append_error

_logger = logging.getLogger(__name__)


def resolve_root(root: str | os.PathLike[str]) -> Path:
    raw = Path(root)
    try:
        resolved = raw.resolve(strict=True)
    except (OSError, RuntimeError) as exc:
        raise ScanRootError(raw, "scan root does not exist") from exc
    if not resolved.is_dir():
        raise ScanRootError(raw, "scan root is not a directory")
    return resolved


def _list_dir(
    dir_path: Path, *, errors: list[ErrorRecord] | None
) -> list[os.DirEntry[str]]:
    try:
        with os.scandir(dir_path) as it:
            return sorted(list(it), key=lambda e: e.name)
    except OSError as exc:
        append_error(errors, path=dir_path, op="scandir", exc=exc, logger=_logger)
        return []


def _iter_tree(
    base: Path, *, errors: list[ErrorRecord] | None
) -> Iterator[Path]:
    # One listing iterator per open directory; the top of the stack is the
    # directory currently being walked, so subtrees finish before siblings.
    stack: list[Iterator[os.DirEntry[str]]] = [iter(_list_dir(base, errors=errors))]
    while stack:
        entry = next(stack[-1], None)
        if entry is None:
            _ = stack.pop()
            continue

        path = Path(entry.path)
        try:
            if entry.is_symlink():
                continue
            is_dir = entry.is_dir(follow_symlinks=False)
            is_file = not is_dir and entry.is_file(follow_symlinks=False)
        except OSError as exc:
            append_error(errors, path=path, op="stat_entry", exc=exc, logger=_logger)
            continue

        if is_dir:
            stack.append(iter(_list_dir(path, errors=errors)))
        elif is_file:
            yield path


def iter_files(
    root: str | os.PathLike[str],
    *,
    errors: list[ErrorRecord] | None = None,
) -> Iterator[Path]:
    """Yield every regular, non-symlink file below *root*, depth first.

    The root is validated eagerly: a missing or non-directory root raises
    ``ScanRootError`` here rather than on the first ``next()``. Unreadable
    directories and entries that vanish mid-walk are skipped and recorded
    in *errors*.
    """
    base = resolve_root(root)
    return _iter_tree(base, errors=errors)


def walk_files(
    root: str | os.PathLike[str],
    *,
    errors: list[ErrorRecord] | None = None,
) -> list[Path]:
    return list(iter_files(root, errors=errors))
