from __future__ import annotations

import json
import os
import subprocess
from pathlib import Path

import pytest

from signpost.__main__ import main
from signpost.classify import ELF_MAGIC
from signpost.sign import SIGNATURE_NOT_FOUND_MARKER

_ELF_BODY = ELF_MAGIC + b"\x02\x01\x01" + b"\x00" * 9


def _tree(tmp_path: Path) -> Path:
    root = tmp_path / "node_modules"
    (root / "pkg" / "build").mkdir(parents=True)
    _ = (root / "pkg" / "build" / "addon.node").write_bytes(_ELF_BODY)
    _ = (root / "pkg" / "index.js").write_bytes(_ELF_BODY)
    _ = (root / "pkg" / "LICENSE").write_text("MIT\n", encoding="utf-8")
    return root


@pytest.fixture
def on_target_platform(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    for key in (
        "SIGNPOST_ROOT",
        "SIGNPOST_MAX_CONCURRENCY",
        "SIGNPOST_SIGN_TOOL",
        "SIGNPOST_DRY_RUN",
        "SIGNPOST_FORCE",
    ):
        monkeypatch.delenv(key, raising=False)
    monkeypatch.setenv("SIGNPOST_PLATFORM", "openharmony")
    monkeypatch.chdir(tmp_path)


def test_scan_cli_defaults_to_node_modules_in_cwd(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    on_target_platform: None,
) -> None:
    root = _tree(tmp_path)

    rc = main(["scan"])

    assert rc == 0
    out = capsys.readouterr().out.strip().splitlines()
    assert out == [str((root / "pkg" / "build" / "addon.node").resolve())]


def test_scan_cli_json_and_report(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    on_target_platform: None,
) -> None:
    root = _tree(tmp_path)
    report_path = tmp_path / "out" / "report.json"

    rc = main(["scan", str(root), "--json", "--report", str(report_path)])

    assert rc == 0
    payload = json.loads(capsys.readouterr().out)
    assert payload["files_seen"] == 3
    assert payload["binaries"] == [str((root / "pkg" / "build" / "addon.node").resolve())]
    written = json.loads(report_path.read_text(encoding="utf-8"))
    assert written["scan"]["binaries"] == payload["binaries"]
    assert written["sign"] is None


def test_scan_cli_missing_root_exits_20(
    tmp_path: Path,
    capsys: pytest.CaptureFixture[str],
    on_target_platform: None,
) -> None:
    rc = main(["scan", str(tmp_path / "nope")])

    assert rc == 20
    assert "Invalid scan root" in capsys.readouterr().err


def test_cli_skips_on_unsupported_platform(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    caplog: pytest.LogCaptureFixture,
    on_target_platform: None,
) -> None:
    _tree(tmp_path)
    monkeypatch.setenv("SIGNPOST_PLATFORM", "linux")

    with caplog.at_level("WARNING", logger="signpost"):
        rc = main(["scan"])

    assert rc == 0
    assert capsys.readouterr().out == ""
    assert any("only works on openharmony" in r.getMessage() for r in caplog.records)


def test_cli_force_runs_on_unsupported_platform(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    on_target_platform: None,
) -> None:
    _tree(tmp_path)
    monkeypatch.setenv("SIGNPOST_PLATFORM", "linux")

    rc = main(["--force", "scan"])

    assert rc == 0
    assert capsys.readouterr().out.strip().endswith("addon.node")


def test_cli_invalid_concurrency_exits_20(
    capsys: pytest.CaptureFixture[str], on_target_platform: None
) -> None:
    rc = main(["scan", "--max-concurrency", "0"])

    assert rc == 20
    assert "Invalid configuration" in capsys.readouterr().err


def test_sign_cli_signs_discovered_binaries(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    on_target_platform: None,
) -> None:
    root = _tree(tmp_path)
    tool = tmp_path / "sdk" / "binary-sign-tool"
    tool.parent.mkdir()
    _ = tool.write_bytes(_ELF_BODY)
    os.chmod(tool, 0o755)
    calls: list[list[str]] = []

    def fake_run(args: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        _ = kwargs
        calls.append(list(args))
        stdout = SIGNATURE_NOT_FOUND_MARKER + "\n" if args[1] == "display-sign" else ""
        return subprocess.CompletedProcess(args=args, returncode=0, stdout=stdout, stderr="")

    monkeypatch.setattr("signpost.sign.subprocess.run", fake_run)
    report_path = tmp_path / "sign.json"

    rc = main(["sign", "--sign-tool", str(tool), "--report", str(report_path)])

    assert rc == 0
    addon = str((root / "pkg" / "build" / "addon.node").resolve())
    assert [c[1] for c in calls] == ["display-sign", "sign"]
    assert all(c[0] == str(tool) for c in calls)
    written = json.loads(report_path.read_text(encoding="utf-8"))
    assert written["sign"]["signed"] == [addon]


def test_sign_cli_reports_failures_with_exit_10(
    tmp_path: Path,
    monkeypatch: pytest.MonkeyPatch,
    on_target_platform: None,
) -> None:
    _tree(tmp_path)

    def fake_run(args: list[str], **kwargs: object) -> subprocess.CompletedProcess[str]:
        _ = kwargs
        return subprocess.CompletedProcess(args=args, returncode=2, stdout="", stderr="bad\n")

    monkeypatch.setattr("signpost.sign.subprocess.run", fake_run)

    rc = main(["sign", "--sign-tool", "/sdk/binary-sign-tool"])

    assert rc == 10


def test_sign_cli_without_tool_exits_20(
    monkeypatch: pytest.MonkeyPatch,
    capsys: pytest.CaptureFixture[str],
    on_target_platform: None,
) -> None:
    monkeypatch.setattr("signpost.sign.shutil.which", lambda _name: None)

    rc = main(["sign"])

    assert rc == 20
    assert "binary-sign-tool not found" in capsys.readouterr().err


def test_cli_without_command_prints_help(capsys: pytest.CaptureFixture[str]) -> None:
    assert main([]) == 0
    assert "usage: signpost" in capsys.readouterr().out
