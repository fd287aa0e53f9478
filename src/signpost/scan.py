from __future__ import annotations

import asyncio
import logging
import os
import time
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .classify import BinaryClassifier, ClassifierConfig
from .errors import ErrorRecord, append_error, sorted_errors
from .pool import TaskPool
from .report import ScanIssue, ScanReport
from .walk import resolve_root, walk_files

_logger = logging.getLogger(__name__)

DEFAULT_MAX_CONCURRENCY = 64


@dataclass(frozen=True)
class ScanResult:
    root: Path
    files_seen: int
    binaries: tuple[Path, ...]
    errors: tuple[ErrorRecord, ...] = field(default_factory=tuple)
    duration_s: float = 0.0

    def to_report(self) -> ScanReport:
        return ScanReport(
            root=str(self.root),
            files_seen=int(self.files_seen),
            binaries=[str(p) for p in self.binaries],
            errors=[
                ScanIssue(
                    path=str(e.get("path", "")),
                    op=str(e.get("op", "")),
                    error=str(e.get("error", "")),
                    errno=e.get("errno") if isinstance(e.get("errno"), int) else None,
                )
                for e in self.errors
            ],
            duration_s=round(float(self.duration_s), 3),
        )


def _sorted_paths(paths: Iterable[Path]) -> tuple[Path, ...]:
    return tuple(sorted(set(paths), key=str))


async def collect_binaries(
    paths: Iterable[Path],
    *,
    classifier: BinaryClassifier | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    exclude: Iterable[Path] = (),
    errors: list[ErrorRecord] | None = None,
) -> list[Path]:
    """Classify *paths* through a bounded pool and keep the binaries.

    Every submitted task is awaited before returning. A task that fails is
    logged and recorded; it never aborts the collection.
    """
    clf = classifier or BinaryClassifier(errors=errors)
    excluded = {Path(p).resolve() for p in exclude}
    pool = TaskPool(max_concurrency)

    submitted: list[tuple[Path, asyncio.Future[bool]]] = []
    for path in paths:
        if excluded and Path(path).resolve() in excluded:
            continue
        submitted.append(
            (path, pool.submit(lambda p=path: clf.classify(p)))
        )

    outcomes = await asyncio.gather(
        *(fut for _, fut in submitted), return_exceptions=True
    )

    binaries: list[Path] = []
    for (path, _), outcome in zip(submitted, outcomes):
        if isinstance(outcome, BaseException):
            append_error(errors, path=path, op="task", exc=outcome, logger=_logger)
            continue
        if outcome is True:
            binaries.append(path)
    return binaries


async def scan_tree(
    root: str | os.PathLike[str],
    *,
    config: ClassifierConfig | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    exclude: Iterable[Path] = (),
) -> ScanResult:
    started = time.monotonic()
    base = resolve_root(root)
    errors: list[ErrorRecord] = []

    files = await asyncio.to_thread(walk_files, base, errors=errors)
    _logger.debug("walked %d files under %s", len(files), base)

    classifier = BinaryClassifier(config, errors=errors)
    binaries = await collect_binaries(
        files,
        classifier=classifier,
        max_concurrency=max_concurrency,
        exclude=exclude,
        errors=errors,
    )
    _logger.info(
        "scanned %d files under %s: %d native binaries", len(files), base, len(binaries)
    )

    return ScanResult(
        root=base,
        files_seen=len(files),
        binaries=_sorted_paths(binaries),
        errors=tuple(sorted_errors(errors)),
        duration_s=time.monotonic() - started,
    )


def scan(
    root: str | os.PathLike[str],
    *,
    config: ClassifierConfig | None = None,
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY,
    exclude: Iterable[Path] = (),
) -> ScanResult:
    return asyncio.run(
        scan_tree(
            root, config=config, max_concurrency=max_concurrency, exclude=exclude
        )
    )
