from __future__ import annotations

import os
import platform
import sys
import sysconfig
from collections.abc import Mapping

TARGET_PLATFORMS: frozenset[str] = frozenset({"openharmony"})

# Build-time target triple variables; OpenHarmony toolchains use the
# "ohos" environment component, e.g. aarch64-unknown-linux-ohos.
_TRIPLE_CONFIG_VARS: tuple[str, ...] = ("HOST_GNU_TYPE", "MULTIARCH", "SOABI")
_OHOS_TRIPLE_MARKER = "ohos"


def _built_for_ohos() -> bool:
    for key in _TRIPLE_CONFIG_VARS:
        value = sysconfig.get_config_var(key)
        if isinstance(value, str) and _OHOS_TRIPLE_MARKER in value.lower():
            return True
    return False


def detect_platform(env: Mapping[str, str] | None = None) -> str:
    """Name of the host OS, lowercased.

    ``SIGNPOST_PLATFORM`` overrides detection. Otherwise an interpreter
    built for an OpenHarmony target triple reports ``openharmony``; the
    kernel there identifies as plain Linux, so ``uname`` alone cannot tell.
    Anything else falls back to the ``uname`` system name, then
    ``sys.platform``.
    """
    source = os.environ if env is None else env
    override = (source.get("SIGNPOST_PLATFORM") or "").strip()
    if override:
        return override.lower()
    if _built_for_ohos():
        return "openharmony"
    system = platform.system().strip()
    if system:
        return system.lower()
    return sys.platform.lower()


def is_supported_platform(name: str | None = None) -> bool:
    current = name if name is not None else detect_platform()
    return current.lower() in TARGET_PLATFORMS
