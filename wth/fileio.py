"""Atomic file I/O utilities for the check-in workspace."""

from __future__ import annotations

import fcntl
import os
import tempfile
from pathlib import Path
from typing import Any

import yaml


def read_text(path: Path) -> str:
    """Read a text file, returning empty string if missing."""
    if not path.exists():
        return ""
    return path.read_text(encoding="utf-8")


def read_yaml(path: Path) -> Any:
    """Read a YAML document, returning None if missing or empty."""
    text = read_text(path)
    if not text.strip():
        return None
    return yaml.safe_load(text)


def _atomic_write(path: Path, content: str, suffix: str = ".tmp") -> None:
    """Atomic write with file locking: temp file + flock + rename."""
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, temp_path = tempfile.mkstemp(dir=path.parent, prefix=".tmp_", suffix=suffix)
    try:
        with os.fdopen(fd, "w", encoding="utf-8") as f:
            fcntl.flock(f.fileno(), fcntl.LOCK_EX)
            try:
                f.write(content)
                f.flush()
                os.fsync(f.fileno())
            finally:
                fcntl.flock(f.fileno(), fcntl.LOCK_UN)
        os.replace(temp_path, path)
    except Exception:
        if os.path.exists(temp_path):
            os.unlink(temp_path)
        raise


def write_text_atomic(path: Path, content: str) -> None:
    """Atomic text file write."""
    _atomic_write(path, content)
