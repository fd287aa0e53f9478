"""Cheap-first native binary detection.

The cascade consults two static allow-lists before touching the
filesystem, then the execute bit, and only then reads the ELF magic.
Every failure folds to "not a binary".
"""

from __future__ import annotations

import asyncio
import logging
import os
import stat
from dataclasses import dataclass, field
from pathlib import Path

from .errors import ErrorRecord, append_error

_logger = logging.getLogger(__name__)

ELF_MAGIC = b"\x7fELF"

KNOWN_ELF_EXTENSIONS: frozenset[str] = frozenset({".so", ".node"})

KNOWN_TEXT_EXTENSIONS: frozenset[str] = frozenset(
    {
        ".js",
        ".mjs",
        ".cjs",
        ".ts",
        ".mts",
        ".cts",
        ".jsx",
        ".tsx",
        ".json",
        ".md",
        ".txt",
        ".yml",
        ".yaml",
        ".html",
        ".map",
        ".css",
        ".gyp",
        ".gypi",
        ".c",
        ".cpp",
        ".cc",
    }
)

KNOWN_TEXT_BASENAMES: frozenset[str] = frozenset(
    {
        "license",
        "licence",
        "copying",
        "changelog",
        "changes",
        "authors",
        "contributors",
        "maintainers",
        "notice",
    }
)


@dataclass(frozen=True)
class ClassifierConfig:
    text_extensions: frozenset[str] = KNOWN_TEXT_EXTENSIONS
    text_basenames: frozenset[str] = KNOWN_TEXT_BASENAMES
    elf_extensions: frozenset[str] = KNOWN_ELF_EXTENSIONS
    # Windows has no execute bit; there every surviving file gets the magic read.
    check_exec_bit: bool = field(default_factory=lambda: os.name != "nt")


def has_elf_magic(path: Path) -> bool:
    """Return True when the first four bytes of *path* are the ELF magic.

    Raises ``OSError`` when the file cannot be opened or read.
    """
    with path.open("rb") as f:
        head = f.read(len(ELF_MAGIC))
    return len(head) == len(ELF_MAGIC) and head == ELF_MAGIC


def _has_exec_bit(path: Path) -> bool:
    st = path.stat()
    return bool(stat.S_IMODE(st.st_mode) & 0o111)


class BinaryClassifier:
    def __init__(
        self,
        config: ClassifierConfig | None = None,
        *,
        errors: list[ErrorRecord] | None = None,
    ) -> None:
        self.config: ClassifierConfig = config or ClassifierConfig()
        self.errors: list[ErrorRecord] | None = errors

    def _static_verdict(self, path: Path) -> bool | None:
        """Decide from the name alone; ``None`` means the name is inconclusive."""
        ext = path.suffix.lower()
        base = path.stem.lower()
        if ext in self.config.text_extensions:
            return False
        if base in self.config.text_basenames:
            return False
        return None

    def _trusted_extension(self, path: Path) -> bool:
        return path.suffix.lower() in self.config.elf_extensions

    def _record(self, path: Path, op: str, exc: BaseException) -> None:
        append_error(
            self.errors,
            path=path,
            op=op,
            exc=exc,
            logger=_logger,
            level=logging.DEBUG,
        )

    async def classify(self, path: Path) -> bool:
        try:
            if self._static_verdict(path) is False:
                return False
            if self._trusted_extension(path):
                return await asyncio.to_thread(has_elf_magic, path)
            if self.config.check_exec_bit:
                if not await asyncio.to_thread(_has_exec_bit, path):
                    return False
            return await asyncio.to_thread(has_elf_magic, path)
        except asyncio.CancelledError:
            raise
        except Exception as exc:
            self._record(path, "classify", exc)
            return False

    def classify_sync(self, path: Path) -> bool:
        try:
            if self._static_verdict(path) is False:
                return False
            if self._trusted_extension(path):
                return has_elf_magic(path)
            if self.config.check_exec_bit and not _has_exec_bit(path):
                return False
            return has_elf_magic(path)
        except Exception as exc:
            self._record(path, "classify", exc)
            return False
