"""
Version information for Square Order Sync.

The installed distribution metadata is the source of truth; a source
checkout without metadata reports the fallback below.
"""

from __future__ import annotations

import os
import subprocess
from functools import lru_cache
from importlib.metadata import PackageNotFoundError, version

_FALLBACK_VERSION = "0.1.0"


def get_version() -> str:
    try:
        return version("square-order-sync")
    except PackageNotFoundError:
        return _FALLBACK_VERSION


VERSION = get_version()


@lru_cache(maxsize=1)
def get_git_commit() -> str | None:
    """
    Short commit hash of the running code.

    GIT_COMMIT wins when set (container builds); otherwise git is asked.
    Returns None outside a work tree.
    """
    commit = os.environ.get("GIT_COMMIT")
    if commit:
        return commit[:8]

    try:
        return subprocess.check_output(
            ["git", "rev-parse", "--short", "HEAD"],
            stderr=subprocess.DEVNULL,
            text=True,
            timeout=5,
        ).strip() or None
    except (OSError, subprocess.SubprocessError):
        return None


def version_string() -> str:
    """Display version, e.g. ``v0.1.0 (abc1234)``."""
    commit = get_git_commit()
    return f"v{VERSION} ({commit})" if commit else f"v{VERSION}"
