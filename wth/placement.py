"""Sponsor/partner placement resolution.

Three placement types share one catalog:
    hour   — per-hour sponsor line shown with the check-in flow
    day    — full-day sponsor (morning/evening message, sponsored mission)
    coupon — partner deals

Tier visibility decides whether a user sees a placement at all; priority
resolves conflicts (lower number wins, ties go to the earlier entry).
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, Sequence

import yaml

from wth.fileio import read_yaml
from wth.models import Partner
from wth.workspace import partners_path

logger = logging.getLogger(__name__)


TIER_RANK = {
    "Freshman": 0,
    "Varsity": 1,
    "Crucible": 2,
    "Elite": 3,
    "Legendary": 4,
}

# Minimum tier rank per visibility level.
VISIBILITY_MIN_RANK = {
    "all": 0,
    "paid_only": 1,
    "varsity_plus": 1,
    "crucible_plus": 2,
}


def tier_rank(tier: str) -> int:
    return TIER_RANK.get(tier, 0)


def is_paid_tier(tier: str) -> bool:
    return tier_rank(tier) >= 1


def is_visible_for_tier(visibility: str, tier: str) -> bool:
    """Unknown visibility levels are never shown."""
    min_rank = VISIBILITY_MIN_RANK.get(visibility)
    if min_rank is None:
        return False
    return tier_rank(tier) >= min_rank


def _by_priority(partners: Iterable[Partner]) -> list[Partner]:
    # sorted() is stable, so equal priorities keep declaration order
    return sorted(partners, key=lambda p: p.priority)


def resolve_for_hour(partners: Sequence[Partner], hour: int, tier: str) -> Partner | None:
    """Highest-priority hour sponsor for this hour and tier, or None."""
    matches = _by_priority(
        p for p in partners
        if p.placement_type == "hour"
        and is_visible_for_tier(p.tier_visibility, tier)
        and (p.hour_scope is None or p.hour_scope.contains(hour))
    )
    return matches[0] if matches else None


def resolve_for_day(partners: Sequence[Partner], tier: str) -> Partner | None:
    """Highest-priority day sponsor for this tier, or None."""
    matches = _by_priority(
        p for p in partners
        if p.placement_type == "day" and is_visible_for_tier(p.tier_visibility, tier)
    )
    return matches[0] if matches else None


def resolve_coupons(partners: Sequence[Partner], tier: str) -> list[Partner]:
    """Every coupon visible to this tier, best priority first."""
    return _by_priority(
        p for p in partners
        if p.placement_type == "coupon"
        and p.coupon_payload is not None
        and is_visible_for_tier(p.tier_visibility, tier)
    )


def load_partners(root: Path | None = None) -> list[Partner]:
    """Load the partner catalog from partners.yaml.

    Accepts either a top-level list or a mapping with a ``partners`` list.
    Malformed entries are skipped.
    """
    try:
        data = read_yaml(partners_path(root))
    except (OSError, yaml.YAMLError) as e:
        logger.warning("Could not read partner catalog: %s", e)
        return []
    if isinstance(data, dict):
        data = data.get("partners")
    if not isinstance(data, list):
        return []

    partners = []
    for entry in data:
        if not isinstance(entry, dict):
            continue
        try:
            partners.append(Partner.from_dict(entry))
        except (KeyError, TypeError, ValueError) as e:
            logger.warning("Skipping partner %r: %s", entry.get("partner_id"), e)
    return partners
