"""Module entrypoint.

Allows: python -m signpost
"""

from __future__ import annotations

import argparse
import logging
import sys
from collections.abc import Sequence
from pathlib import Path
from typing import cast

from . import __version__
from .config import ConfigError, SignpostConfig, load_config
from .errors import ScanRootError
from .platform_gate import TARGET_PLATFORMS, is_supported_platform
from .report import RunReport, write_report
from .scan import ScanResult, scan
from .sign import SignTool, batch_sign, resolve_sign_tool

EXIT_OK = 0
EXIT_SIGN_FAILURES = 10
EXIT_INPUT_ERROR = 20

_logger = logging.getLogger("signpost")


def _configure_logging(*, verbose: bool, quiet: bool) -> None:
    level = logging.INFO
    if verbose:
        level = logging.DEBUG
    elif quiet:
        level = logging.WARNING
    logging.basicConfig(
        level=level,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )


def _add_scan_args(p: argparse.ArgumentParser) -> None:
    _ = p.add_argument(
        "root",
        nargs="?",
        default=None,
        help="Directory to scan (default: ./node_modules).",
    )
    _ = p.add_argument(
        "--max-concurrency",
        type=int,
        default=None,
        help="Upper bound on files classified at once (default: 64).",
    )
    _ = p.add_argument(
        "--report",
        default=None,
        help="Write a JSON report to this path.",
    )


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="signpost",
        description="Find native ELF binaries in a dependency tree and self-sign them.",
    )
    _ = parser.add_argument(
        "--version", action="version", version=f"%(prog)s {__version__}"
    )
    _ = parser.add_argument("-v", "--verbose", action="store_true")
    _ = parser.add_argument("-q", "--quiet", action="store_true")
    _ = parser.add_argument(
        "--force",
        action="store_true",
        default=None,
        help="Run even when the host is not a supported platform.",
    )

    sub = parser.add_subparsers(dest="command")

    scan_p = sub.add_parser("scan", help="List native binaries that need a signature.")
    _add_scan_args(scan_p)
    _ = scan_p.add_argument(
        "--json",
        action="store_true",
        help="Print the scan report as JSON instead of one path per line.",
    )

    sign_p = sub.add_parser("sign", help="Scan, then self-sign unsigned binaries.")
    _add_scan_args(sign_p)
    _ = sign_p.add_argument(
        "--sign-tool",
        default=None,
        help="Path to binary-sign-tool (default: found on PATH).",
    )
    _ = sign_p.add_argument(
        "--dry-run",
        action="store_true",
        default=None,
        help="Inspect signatures but do not sign anything.",
    )
    return parser


def _run_scan(cfg: SignpostConfig, *, exclude: list[Path]) -> ScanResult | None:
    try:
        return scan(cfg.root, max_concurrency=cfg.max_concurrency, exclude=exclude)
    except ScanRootError as exc:
        print(f"Invalid scan root: {exc}", file=sys.stderr)
        return None


def main(argv: Sequence[str] | None = None) -> int:
    if argv is None:
        argv = sys.argv[1:]

    parser = _build_parser()
    try:
        args = parser.parse_args(list(argv))
    except SystemExit as e:
        return int(e.code) if isinstance(e.code, int) else EXIT_INPUT_ERROR

    command = cast(str | None, getattr(args, "command", None))
    if command is None:
        parser.print_help()
        return EXIT_OK

    _configure_logging(
        verbose=bool(getattr(args, "verbose", False)),
        quiet=bool(getattr(args, "quiet", False)),
    )

    try:
        cfg = load_config(
            root=cast(str | None, getattr(args, "root", None)),
            max_concurrency=cast(int | None, getattr(args, "max_concurrency", None)),
            sign_tool=cast(str | None, getattr(args, "sign_tool", None)),
            dry_run=cast(bool | None, getattr(args, "dry_run", None)),
            force=cast(bool | None, getattr(args, "force", None)),
        )
    except ConfigError as exc:
        print(f"Invalid configuration: {exc}", file=sys.stderr)
        return EXIT_INPUT_ERROR

    if not cfg.force and not is_supported_platform(cfg.platform):
        _logger.warning(
            "signpost only works on %s, it won't do anything on this platform (%s).",
            ", ".join(sorted(TARGET_PLATFORMS)),
            cfg.platform or "unknown",
        )
        return EXIT_OK

    report_raw = cast(str | None, getattr(args, "report", None))

    if command == "scan":
        result = _run_scan(cfg, exclude=[])
        if result is None:
            return EXIT_INPUT_ERROR
        run_report = RunReport(scan=result.to_report())
        if bool(getattr(args, "json", False)):
            print(run_report.scan.model_dump_json(indent=2))
        else:
            for path in result.binaries:
                print(path)
        if report_raw:
            write_report(Path(report_raw), run_report)
        return EXIT_OK

    if command == "sign":
        tool_path = resolve_sign_tool(cfg.sign_tool)
        if tool_path is None:
            print(
                "binary-sign-tool not found: pass --sign-tool or set SIGNPOST_SIGN_TOOL",
                file=sys.stderr,
            )
            return EXIT_INPUT_ERROR
        tool = SignTool(path=tool_path)

        result = _run_scan(cfg, exclude=[tool_path])
        if result is None:
            return EXIT_INPUT_ERROR

        summary = batch_sign(result.binaries, tool, dry_run=cfg.dry_run)
        _logger.info(
            "signed=%d already_signed=%d failed=%d",
            len(summary.signed),
            len(summary.already_signed),
            len(summary.failed),
        )
        if report_raw:
            write_report(
                Path(report_raw),
                RunReport(scan=result.to_report(), sign=summary.to_report()),
            )
        return EXIT_SIGN_FAILURES if summary.failed else EXIT_OK

    print(f"Unknown command: {command}", file=sys.stderr)
    return EXIT_INPUT_ERROR


if __name__ == "__main__":
    raise SystemExit(main())
