from __future__ import annotations

import logging
import os
import shutil
import subprocess
from collections.abc import Iterable
from dataclasses import dataclass, field
from pathlib import Path

from .report import SignReport

_logger = logging.getLogger(__name__)

DEFAULT_SIGN_TOOL_NAME = "binary-sign-tool"
SIGNATURE_NOT_FOUND_MARKER = "code signature is not found"


class SignToolError(RuntimeError):
    def __init__(self, argv: list[str], message: str) -> None:
        super().__init__(message)
        self.argv: list[str] = argv


def _truncate_text(s: str, *, max_chars: int) -> str:
    if len(s) <= max_chars:
        return s
    if max_chars <= 3:
        return s[:max_chars]
    return s[: max_chars - 3] + "..."


def resolve_sign_tool(explicit: str | os.PathLike[str] | None = None) -> Path | None:
    if explicit:
        return Path(explicit)
    found = shutil.which(DEFAULT_SIGN_TOOL_NAME)
    return Path(found) if found else None


@dataclass(frozen=True)
class SignTool:
    """Thin wrapper over the platform's ``binary-sign-tool`` executable."""

    path: Path
    timeout_s: float = 60.0
    max_output_chars: int = 4096

    def _run(self, argv: list[str]) -> str:
        try:
            res = subprocess.run(
                argv,
                text=True,
                capture_output=True,
                check=False,
                timeout=float(self.timeout_s),
            )
        except subprocess.TimeoutExpired:
            raise SignToolError(
                argv, f"{argv[1]} timed out after {self.timeout_s:.0f}s"
            ) from None
        except OSError as exc:
            raise SignToolError(
                argv, f"cannot run {argv[0]}: {type(exc).__name__}: {exc}"
            ) from exc

        stdout = res.stdout or ""
        if res.returncode != 0:
            stderr = _truncate_text(
                (res.stderr or stdout).strip(), max_chars=self.max_output_chars
            )
            raise SignToolError(
                argv, f"{argv[1]} exited with {res.returncode}: {stderr}"
            )
        return stdout

    def display_sign(self, target: Path) -> str:
        return self._run([str(self.path), "display-sign", "-inFile", str(target)])

    def has_signature(self, target: Path) -> bool:
        return SIGNATURE_NOT_FOUND_MARKER not in self.display_sign(target)

    def self_sign(self, target: Path) -> None:
        _ = self._run(
            [
                str(self.path),
                "sign",
                "-inFile",
                str(target),
                "-outFile",
                str(target),
                "-selfSign",
                "1",
            ]
        )


@dataclass
class SignSummary:
    signed: list[Path] = field(default_factory=list)
    already_signed: list[Path] = field(default_factory=list)
    would_sign: list[Path] = field(default_factory=list)
    failed: list[Path] = field(default_factory=list)
    skipped: list[Path] = field(default_factory=list)

    def to_report(self) -> SignReport:
        return SignReport(
            signed=[str(p) for p in self.signed],
            already_signed=[str(p) for p in self.already_signed],
            would_sign=[str(p) for p in self.would_sign],
            failed=[str(p) for p in self.failed],
            skipped=[str(p) for p in self.skipped],
        )


def _same_file(a: Path, b: Path) -> bool:
    try:
        return a.resolve() == b.resolve()
    except OSError:
        return a == b


def batch_sign(
    paths: Iterable[Path], tool: SignTool, *, dry_run: bool = False
) -> SignSummary:
    """Self-sign every unsigned binary in *paths*, one at a time.

    The signing tool's own executable is never signed. A failure on one
    file is logged and the batch moves on.
    """
    summary = SignSummary()
    for path in paths:
        if _same_file(path, tool.path):
            summary.skipped.append(path)
            continue

        try:
            if tool.has_signature(path):
                _logger.warning("File already signed, signing skipped: %s", path)
                summary.already_signed.append(path)
                continue
            if dry_run:
                _logger.info("Dry run, would sign: %s", path)
                summary.would_sign.append(path)
                continue
            tool.self_sign(path)
        except SignToolError as exc:
            _logger.warning(
                "Failed to process this file, signing skipped: %s (%s)", path, exc
            )
            summary.failed.append(path)
            continue

        _logger.info("Signature successfully added to: %s", path)
        summary.signed.append(path)
    return summary
