"""Durable persistence of check-ins, unavailable hours, MYBED and BeastMode state.

Every value lives under its own key in a small file-backed key-value store
(one file per key in <root>/storage/). Storage failures never reach the
caller: reads degrade to defaults, writes are dropped and report False.
"""

from __future__ import annotations

import json
import logging
import re
from pathlib import Path
from typing import Any, Iterable

from wth.fileio import read_text, write_text_atomic
from wth.migrate import RecordDecodeError, migrate
from wth.models import (
    MYBED_SLOTS,
    CheckInRecord,
    SchedulerState,
    empty_priorities,
    normalize_priorities,
)
from wth.workspace import storage_dir

logger = logging.getLogger(__name__)

CHECKINS_KEY = "checkins"
UNAVAILABLE_KEY = "unavailable_hours"
MYBED_PREFIX = "mybed_"
BEAST_ENABLED_KEY = "beast_mode_enabled"
BEAST_LAST_SUBMIT_KEY = "beast_last_submit"

_KEY_RE = re.compile(r"^[A-Za-z0-9_.-]+$")


class KeyValueStorage:
    """String key-value storage backed by one file per key."""

    def __init__(self, directory: Path) -> None:
        self.directory = directory

    def _path(self, key: str) -> Path:
        if not _KEY_RE.match(key):
            raise ValueError(f"Invalid storage key: {key!r}")
        return self.directory / key

    def get_item(self, key: str) -> str | None:
        path = self._path(key)
        if not path.exists():
            return None
        return read_text(path)

    def set_item(self, key: str, value: str) -> None:
        write_text_atomic(self._path(key), value)


class RecordStore:
    """Check-in records and the small per-user settings around them."""

    def __init__(self, root: Path | None = None, storage: KeyValueStorage | None = None) -> None:
        self.storage = storage if storage is not None else KeyValueStorage(storage_dir(root))

    # ── Low-level helpers ─────────────────────────────────────

    def _read_json(self, key: str) -> Any:
        try:
            raw = self.storage.get_item(key)
            if raw is None or not raw.strip():
                return None
            return json.loads(raw)
        except (OSError, ValueError) as e:
            logger.warning("Could not read %s: %s", key, e)
            return None

    def _write(self, key: str, value: str) -> bool:
        try:
            self.storage.set_item(key, value)
            return True
        except (OSError, ValueError) as e:
            logger.warning("Could not save %s: %s", key, e)
            return False

    def _write_json(self, key: str, data: Any) -> bool:
        return self._write(key, json.dumps(data, ensure_ascii=False))

    # ── Check-ins ─────────────────────────────────────────────

    def load_all(self) -> list[CheckInRecord]:
        """Load every record, decoding older shapes on the fly.

        Storage is never rewritten here; undecodable entries are skipped and
        a duplicated (date, hour) resolves to its last occurrence.
        """
        data = self._read_json(CHECKINS_KEY)
        if not isinstance(data, list):
            if data is not None:
                logger.warning("Ignoring %s: expected a list, got %s", CHECKINS_KEY, type(data).__name__)
            return []
        records: dict[tuple[str, int], CheckInRecord] = {}
        for i, raw in enumerate(data):
            try:
                record = migrate(raw)
            except RecordDecodeError as e:
                logger.warning("Skipping check-in #%d: %s", i, e)
                continue
            records[record.key] = record
        return list(records.values())

    def upsert(self, record: CheckInRecord) -> bool:
        """Insert or replace the record for (date, hour). Last write wins.

        Only the matching entry is rewritten (in the current shape); every other
        stored entry is written back exactly as it was read.
        """
        try:
            raw = self.storage.get_item(CHECKINS_KEY)
            data = json.loads(raw) if raw and raw.strip() else []
        except (OSError, ValueError) as e:
            logger.warning("Not saving %s hour %d, existing check-ins unreadable: %s", record.date, record.hour, e)
            return False
        if not isinstance(data, list):
            logger.warning("Not saving %s hour %d, %s is not a list", record.date, record.hour, CHECKINS_KEY)
            return False

        out: list[Any] = []
        replaced = False
        for entry in data:
            try:
                matches = migrate(entry).key == record.key
            except RecordDecodeError:
                matches = False
            if not matches:
                out.append(entry)
            elif not replaced:
                out.append(record.to_dict())
                replaced = True
        if not replaced:
            out.append(record.to_dict())
        return self._write_json(CHECKINS_KEY, out)

    def find(self, day: str, hour: int) -> CheckInRecord | None:
        for r in self.load_all():
            if r.date == day and r.hour == hour:
                return r
        return None

    def records_for(self, day: str) -> list[CheckInRecord]:
        return sorted((r for r in self.load_all() if r.date == day), key=lambda r: r.hour)

    # ── Unavailable hours ─────────────────────────────────────

    def load_unavailable(self) -> set[int]:
        data = self._read_json(UNAVAILABLE_KEY)
        if not isinstance(data, list):
            return set()
        return {h for h in data if isinstance(h, int) and not isinstance(h, bool) and 0 <= h <= 23}

    def save_unavailable(self, hours: Iterable[int]) -> bool:
        cleaned = sorted({int(h) for h in hours if 0 <= int(h) <= 23})
        return self._write_json(UNAVAILABLE_KEY, cleaned)

    def toggle_unavailable(self, hour: int) -> tuple[set[int], bool]:
        """Flip one hour in or out of the unavailable set.

        Returns the new set and whether it was saved.
        """
        if not 0 <= hour <= 23:
            raise ValueError(f"Hour must be 0-23, got {hour}")
        hours = self.load_unavailable()
        hours ^= {hour}
        return hours, self.save_unavailable(hours)

    # ── MYBED ─────────────────────────────────────────────────

    def load_priorities(self, day: str) -> tuple[str, ...]:
        data = self._read_json(MYBED_PREFIX + day)
        if data is None:
            return empty_priorities()
        return normalize_priorities(data)

    def save_priorities(self, day: str, items: Iterable[str]) -> bool:
        items = list(items)
        if len(items) > MYBED_SLOTS:
            logger.warning("MYBED for %s has %d items; keeping the first %d", day, len(items), MYBED_SLOTS)
        return self._write_json(MYBED_PREFIX + day, list(normalize_priorities(items)))

    # ── BeastMode ─────────────────────────────────────────────

    def load_scheduler_state(self) -> SchedulerState:
        try:
            enabled = (self.storage.get_item(BEAST_ENABLED_KEY) or "").strip() == "true"
        except (OSError, ValueError) as e:
            logger.warning("Could not read BeastMode state: %s", e)
            return SchedulerState()
        # A bad stamp only loses the countdown, not the enabled flag.
        try:
            stamp = (self.storage.get_item(BEAST_LAST_SUBMIT_KEY) or "").strip()
            last_submit = int(stamp) if stamp else None
        except (OSError, ValueError) as e:
            logger.warning("Ignoring BeastMode last-submit stamp: %s", e)
            last_submit = None
        if last_submit is not None and last_submit <= 0:
            last_submit = None
        return SchedulerState(enabled=enabled, last_submit_at=last_submit)

    def save_scheduler_state(self, state: SchedulerState) -> bool:
        ok = self._write(BEAST_ENABLED_KEY, "true" if state.enabled else "false")
        if state.last_submit_at is not None:
            ok = self._write(BEAST_LAST_SUBMIT_KEY, str(int(state.last_submit_at))) and ok
        return ok
