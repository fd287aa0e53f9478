from __future__ import annotations

import logging
import os
from pathlib import Path
from typing import Union

ErrorValue = Union[str, int, None]
ErrorRecord = dict[str, ErrorValue]


class ScanRootError(ValueError):
    def __init__(self, root: Path, message: str) -> None:
        super().__init__(f"{message}: {root}")
        self.root: Path = root


def describe_exc(exc: BaseException) -> str:
    if isinstance(exc, OSError):
        if isinstance(exc.strerror, str) and exc.strerror:
            detail = exc.strerror
        elif isinstance(exc.errno, int):
            detail = os.strerror(exc.errno)
        else:
            detail = str(exc) or "os_error"
    else:
        detail = str(exc) or "error"
    return f"{type(exc).__name__}: {detail}"


def append_error(
    errors: list[ErrorRecord] | None,
    *,
    path: Path,
    op: str,
    exc: BaseException,
    logger: logging.Logger | None = None,
    level: int = logging.WARNING,
) -> None:
    """Record one non-fatal failure and optionally log it.

    ``errors`` is the caller-owned diagnostic channel; passing ``None``
    keeps the failure visible in the log only.
    """
    message = describe_exc(exc)
    if logger is not None:
        logger.log(level, "%s failed for %s (%s)", op, path, message)
    if errors is None:
        return
    errno_any = getattr(exc, "errno", None)
    errors.append(
        {
            "path": str(path),
            "op": op,
            "error": message,
            "errno": errno_any if isinstance(errno_any, int) else None,
        }
    )


def sorted_errors(errors: list[ErrorRecord]) -> list[ErrorRecord]:
    return sorted(
        errors,
        key=lambda e: (
            str(e.get("path", "")),
            str(e.get("op", "")),
            str(e.get("error", "")),
            str(e.get("errno", "")),
        ),
    )
