"""Version detection for installed and source checkouts."""

from __future__ import annotations

import os
import subprocess
from importlib import metadata
from pathlib import Path

_FALLBACK_VERSION = "0.0.0+unknown"
_DISTRIBUTION = "animestream"


def _git_sha() -> str | None:
    """Short SHA of the checkout containing this file, if any."""
    repo_root = Path(__file__).resolve().parent.parent.parent
    try:
        result = subprocess.run(
            ["git", "rev-parse", "--short", "HEAD"],
            capture_output=True,
            text=True,
            timeout=5,
            check=False,
            cwd=repo_root,
        )
    except (FileNotFoundError, subprocess.TimeoutExpired, OSError):
        return None
    sha = result.stdout.strip()
    return sha if result.returncode == 0 and sha else None


def get_version() -> str:
    """Get the current version string.

    Priority:
    1. BUILD_VERSION environment variable (set during CI/CD)
    2. Installed distribution metadata
    3. Git short SHA of a source checkout
    4. Fallback placeholder
    """
    build_version = os.environ.get("BUILD_VERSION")
    if build_version and build_version.strip():
        return build_version.strip()

    try:
        return metadata.version(_DISTRIBUTION)
    except metadata.PackageNotFoundError:
        pass

    sha = _git_sha()
    if sha:
        return f"dev ({sha})"
    return _FALLBACK_VERSION


__version__ = get_version()
