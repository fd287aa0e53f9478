from __future__ import annotations

import os
from collections.abc import Mapping
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

from .platform_gate import detect_platform
from .scan import DEFAULT_MAX_CONCURRENCY

DEFAULT_ROOT_DIRNAME = "node_modules"

_TRUE_VALUES = frozenset({"1", "true", "yes", "on"})
_FALSE_VALUES = frozenset({"0", "false", "no", "off", ""})


class ConfigError(ValueError):
    def __init__(self, key: str, message: str) -> None:
        super().__init__(f"{key}: {message}")
        self.key: str = key


@dataclass(frozen=True)
class SignpostConfig:
    root: Path
    max_concurrency: int = DEFAULT_MAX_CONCURRENCY
    sign_tool: Path | None = None
    dry_run: bool = False
    force: bool = False
    platform: str = ""


def _env_bool(env: Mapping[str, str], key: str) -> bool | None:
    raw = env.get(key)
    if raw is None:
        return None
    low = raw.strip().lower()
    if low in _TRUE_VALUES:
        return True
    if low in _FALSE_VALUES:
        return False
    raise ConfigError(key, f"expected a boolean, got {raw!r}")


def _parse_concurrency(key: str, raw: object) -> int:
    try:
        value = int(str(raw).strip())
    except ValueError:
        raise ConfigError(key, f"expected an integer, got {raw!r}") from None
    if value < 1:
        raise ConfigError(key, f"must be >= 1, got {value}")
    return value


def load_config(
    *,
    root: str | None = None,
    max_concurrency: int | None = None,
    sign_tool: str | None = None,
    dry_run: bool | None = None,
    force: bool | None = None,
    env: Mapping[str, str] | None = None,
    cwd: Path | None = None,
) -> SignpostConfig:
    """Merge explicit arguments, ``SIGNPOST_*`` variables and defaults.

    Explicit arguments win over the environment. When *env* is omitted the
    process environment is used, after loading ``.env`` from the working
    directory without overriding variables that are already set.
    """
    base_dir = cwd if cwd is not None else Path.cwd()
    if env is None:
        _ = load_dotenv(base_dir / ".env", override=False)
        env = os.environ

    root_raw = root or env.get("SIGNPOST_ROOT") or ""
    root_path = Path(root_raw) if root_raw else base_dir / DEFAULT_ROOT_DIRNAME
    if not root_path.is_absolute():
        root_path = base_dir / root_path

    if max_concurrency is not None:
        concurrency = _parse_concurrency("max_concurrency", max_concurrency)
    elif env.get("SIGNPOST_MAX_CONCURRENCY"):
        concurrency = _parse_concurrency(
            "SIGNPOST_MAX_CONCURRENCY", env["SIGNPOST_MAX_CONCURRENCY"]
        )
    else:
        concurrency = DEFAULT_MAX_CONCURRENCY

    tool_raw = sign_tool or env.get("SIGNPOST_SIGN_TOOL") or ""

    if dry_run is None:
        dry_run = _env_bool(env, "SIGNPOST_DRY_RUN") or False
    if force is None:
        force = _env_bool(env, "SIGNPOST_FORCE") or False

    return SignpostConfig(
        root=root_path,
        max_concurrency=concurrency,
        sign_tool=Path(tool_raw) if tool_raw else None,
        dry_run=bool(dry_run),
        force=bool(force),
        platform=detect_platform(env),
    )
