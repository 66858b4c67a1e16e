"""Bonding / affinity model

bond_level is a separate 0-100 progression scalar that only grows through
interactions. Milestones are a static ladder over it.
"""

from __future__ import annotations

import bisect
import logging
import math
import random
from dataclasses import dataclass
from typing import TYPE_CHECKING, Optional

from companion_engine.core.companion.enums import Activity

if TYPE_CHECKING:
    from companion_engine.core.companion.models import Companion

logger = logging.getLogger(__name__)

BOND_MAX = 100


@dataclass(frozen=True)
class BondMilestone:
    threshold: int
    name: str
    feature: str  # unlocked feature tag
    emoji: str
    description: str


BOND_MILESTONES: tuple[BondMilestone, ...] = (
    BondMilestone(0, "Stranger", "basic-care", "👤", "You just met your pet"),
    BondMilestone(20, "Acquaintance", "play-interaction", "👥", "Your pet is starting to know you"),
    BondMilestone(40, "Friend", "quest-system", "🤝", "Your pet trusts you"),
    BondMilestone(60, "Best Friend", "ability-unlock-1", "💕", "Inseparable bond formed"),
    BondMilestone(80, "Soulbound", "ability-unlock-2", "✨", "A mystical connection exists between you"),
    BondMilestone(100, "Perfect Bond", "evolution-unlock", "👑", "You and your pet are one"),
)

_THRESHOLDS: list[int] = [m.threshold for m in BOND_MILESTONES]

BOND_GAIN: dict[Activity, int] = {
    Activity.FEED: 2,
    Activity.PLAY: 8,
    Activity.HEAL: 5,
    Activity.CLEAN: 3,
    Activity.QUEST_COMPLETE: 15,
}


@dataclass(frozen=True)
class BondProgress:
    current_threshold: int
    next_threshold: Optional[int]
    percent: int


def current_milestone(bond_level: int) -> BondMilestone:
    """Highest milestone whose threshold is <= bond_level."""
    index = bisect.bisect_right(_THRESHOLDS, bond_level) - 1
    return BOND_MILESTONES[max(index, 0)]


def next_milestone(bond_level: int) -> Optional[BondMilestone]:
    """First milestone above bond_level, None past the last one."""
    index = bisect.bisect_right(_THRESHOLDS, bond_level)
    if index >= len(BOND_MILESTONES):
        return None
    return BOND_MILESTONES[index]


def bond_progress(bond_level: int) -> BondProgress:
    """Progress from the current milestone towards the next one.

    percent = round(100 * (bond - current) / (next - current)),
    100 once the final milestone is reached.
    """
    current = current_milestone(bond_level)
    upcoming = next_milestone(bond_level)
    if upcoming is None:
        return BondProgress(current.threshold, None, 100)

    span = upcoming.threshold - current.threshold
    percent = round(100 * (bond_level - current.threshold) / span)
    return BondProgress(current.threshold, upcoming.threshold, min(100, max(0, percent)))


def unlocked_features(bond_level: int) -> list[str]:
    """Feature tags of every milestone reached so far."""
    return [m.feature for m in BOND_MILESTONES if m.threshold <= bond_level]


def has_unlocked_feature(bond_level: int, feature: str) -> bool:
    """True once the milestone carrying `feature` has been reached."""
    return feature in unlocked_features(bond_level)


def gain_bond(activity: Activity, pet_level: int) -> int:
    """Bond gained by one activity: floor(base * (1 + level * 0.05))."""
    base = BOND_GAIN[Activity(activity)]
    return math.floor(base * (1 + pet_level * 0.05))


def add_bond(companion: Companion, activity: Activity) -> int:
    """Raise bond_level in place, clamped at BOND_MAX. Returns the gain."""
    gain = gain_bond(activity, companion.level)
    before = companion.bond_level
    companion.bond_level = min(BOND_MAX, max(before, before + gain))
    logger.debug(
        "Bond %s: %s +%d -> %d",
        companion.companion_id,
        Activity(activity).value,
        gain,
        companion.bond_level,
    )
    return companion.bond_level - before


def apply_bond_gain(companion: Companion, activity: Activity) -> Companion:
    """Pure wrapper around add_bond."""
    updated = companion.copy()
    add_bond(updated, activity)
    return updated


# Flavor text only; no gameplay effect.
AFFINITY_MESSAGES: dict[int, tuple[str, ...]] = {
    0: (
        "{name} watches you from a careful distance.",
        "{name} sniffs your hand curiously.",
        "{name} isn't quite sure about you yet.",
    ),
    20: (
        "{name} perks up when you come near.",
        "{name} seems to remember you.",
        "{name} tilts its head at your voice.",
    ),
    40: (
        "{name} wiggles happily when it sees you.",
        "{name} brings you a little pebble.",
        "{name} likes spending time with you.",
    ),
    60: (
        "{name} follows you everywhere.",
        "{name} curls up beside you.",
        "{name} trusts you completely.",
    ),
    80: (
        "{name} can't stop nuzzling you.",
        "{name} lights up the moment you arrive.",
        "{name} would go on any adventure with you.",
    ),
    100: (
        "{name} and you are inseparable.",
        "{name} understands you without a word.",
        "{name}'s heart beats in time with yours.",
    ),
}


def affinity_message(
    bond_level: int,
    name: str = "Your pet",
    rng: random.Random | None = None,
) -> str:
    """Random flavor line for the bond quintile (0/20/40/60/80/100)."""
    bucket = min(BOND_MAX, max(0, bond_level)) // 20 * 20
    return (rng or random).choice(AFFINITY_MESSAGES[bucket]).format(name=name)
