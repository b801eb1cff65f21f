"""Workspace root, timezone, path helpers for the check-in tracker."""

from __future__ import annotations

import logging
import os
from datetime import datetime
from pathlib import Path
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

import yaml

from wth.fileio import read_yaml
from wth.models import Profile

logger = logging.getLogger(__name__)


def workspace_root() -> Path:
    """Get the workspace root directory (contains profile.yaml and storage/)."""
    return Path(
        os.environ.get("WTH_ROOT", str(Path.home() / "wth"))
    ).expanduser().resolve()


def get_user_timezone(root: Path | None = None) -> ZoneInfo:
    """User's timezone from profile.yaml; UTC when unset or unknown."""
    try:
        return ZoneInfo(load_profile(root).timezone)
    except (OSError, ValueError, yaml.YAMLError, ZoneInfoNotFoundError) as e:
        logger.warning("Falling back to UTC: %s", e)
        return ZoneInfo("UTC")


def load_profile(root: Path | None = None) -> Profile:
    """Load profile.yaml into a Profile model (defaults when missing)."""
    return Profile.from_dict(read_yaml(profile_path(root)))


def today_str(root: Path | None = None) -> str:
    """Get today's date string (YYYY-MM-DD) in user's timezone."""
    return now_local(root).date().isoformat()


def now_local(root: Path | None = None) -> datetime:
    """Get current datetime in user's timezone."""
    tz = get_user_timezone(root)
    return datetime.now(tz)


# ── Path helpers ──────────────────────────────────────────────

def storage_dir(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "storage"


def profile_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "profile.yaml"


def partners_path(root: Path | None = None) -> Path:
    if root is None:
        root = workspace_root()
    return root / "partners.yaml"
