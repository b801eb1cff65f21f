"""Decoding of stored check-in records across every historical shape.

Shapes, oldest first:

- legacy: ``{"won": true, ...}`` with no result field at all.
- v1:     ``{"hour_result": "win"|"loss", "intensity_rating": 3,
            "loss_reason_text": "...", "nextHourPlan": "..."}``
- v2:     ``{"schemaVersion": 2, "result": "win"|"loss",
            "intensityRating": 3, "lossReason": "...", "nextHourPlan": "..."}``

``migrate`` is pure and idempotent: ``migrate(migrate(raw).to_dict())``
equals ``migrate(raw)``. Fields that do not belong to the decoded result are
dropped rather than carried along.
"""

from __future__ import annotations

from typing import Any, Callable

from wth.models import SCHEMA_VERSION, CheckInRecord, HourResult


class RecordDecodeError(ValueError):
    """A stored record matches no known shape or holds invalid values."""


def detect_shape(raw: dict[str, Any]) -> str:
    """Return the shape tag for a raw record: 'v2', 'v1' or 'legacy'."""
    version = raw.get("schemaVersion")
    if version is not None:
        if version == SCHEMA_VERSION:
            return "v2"
        raise RecordDecodeError(f"Unsupported schema version: {version!r}")
    if "result" in raw:
        return "v2"
    if "hour_result" in raw:
        return "v1"
    if "won" in raw:
        return "legacy"
    raise RecordDecodeError("Record has no result, hour_result or won field")


def _text(value: Any) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    return text or None


def _build(raw: dict[str, Any], result: HourResult, rating: Any, reason: Any, plan: Any) -> CheckInRecord:
    is_loss = result is HourResult.LOSS
    return CheckInRecord(
        date=str(raw.get("date", "")),
        hour=raw.get("hour"),
        result=result,
        logged_at=str(raw.get("loggedAt", "") or ""),
        intensity_rating=rating if is_loss else None,
        loss_reason=_text(reason) if is_loss else None,
        next_hour_plan=None if is_loss else _text(plan),
    )


def _from_legacy(raw: dict[str, Any]) -> CheckInRecord:
    won = raw.get("won")
    if not isinstance(won, bool):
        raise RecordDecodeError(f"Legacy won flag must be true or false, got {won!r}")
    result = HourResult.WIN if won else HourResult.LOSS
    return _build(raw, result, raw.get("intensity_rating"), raw.get("loss_reason_text"), raw.get("nextHourPlan"))


def _from_v1(raw: dict[str, Any]) -> CheckInRecord:
    return _build(
        raw,
        HourResult(raw.get("hour_result")),
        raw.get("intensity_rating"),
        raw.get("loss_reason_text"),
        raw.get("nextHourPlan"),
    )


def _from_v2(raw: dict[str, Any]) -> CheckInRecord:
    return _build(
        raw,
        HourResult(raw.get("result")),
        raw.get("intensityRating"),
        raw.get("lossReason"),
        raw.get("nextHourPlan"),
    )


_DECODERS: dict[str, Callable[[dict[str, Any]], CheckInRecord]] = {
    "legacy": _from_legacy,
    "v1": _from_v1,
    "v2": _from_v2,
}


def migrate(raw: Any) -> CheckInRecord:
    """Decode one stored record of any known shape into a CheckInRecord."""
    if isinstance(raw, CheckInRecord):
        return raw
    if not isinstance(raw, dict):
        raise RecordDecodeError(f"Record must be an object, got {type(raw).__name__}")
    shape = detect_shape(raw)
    try:
        return _DECODERS[shape](raw)
    except RecordDecodeError:
        raise
    except (TypeError, ValueError) as e:
        raise RecordDecodeError(f"Invalid {shape} record: {e}") from e
