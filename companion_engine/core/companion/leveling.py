"""Leveling and evolution state machine

Stage is a pure step function of level:
egg(1) -> baby(2) -> teen(3) -> adult(4) -> legendary(5) -> mythic(6).
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from companion_engine.core.companion.enums import Stage

if TYPE_CHECKING:
    from companion_engine.core.companion.models import Companion

logger = logging.getLogger(__name__)

# Cumulative experience needed to leave LEVEL_THRESHOLDS[level]'s level.
# Index 0 is unused padding so the table reads threshold[level].
LEVEL_THRESHOLDS: tuple[int, ...] = (0, 100, 250, 500, 1000, 2000)
MAX_LEVEL = len(LEVEL_THRESHOLDS)

RESET_LEVEL = 1
RESET_EXPERIENCE = 0
RESET_HEALTH = 50

_STAGE_BY_LEVEL: dict[int, Stage] = {
    1: Stage.EGG,
    2: Stage.BABY,
    3: Stage.TEEN,
    4: Stage.ADULT,
    5: Stage.LEGENDARY,
}


def stage_for_level(level: int) -> Stage:
    """Evolution stage for a level. Anything past legendary is mythic."""
    if level <= 1:
        return Stage.EGG
    return _STAGE_BY_LEVEL.get(level, Stage.MYTHIC)


def xp_to_next_level(level: int) -> int:
    """Experience total required for the next level, 0 at the cap."""
    if level >= MAX_LEVEL:
        return 0
    return LEVEL_THRESHOLDS[max(level, 1)]


def level_multiplier(level: int) -> float:
    """1.0 at level 1, growing 0.05 per level (1.25 at MAX_LEVEL)."""
    return 1 + ((min(max(level, 1), MAX_LEVEL) - 1) / 5) * 0.25


def apply_experience(companion: Companion, amount: int) -> int:
    """Add experience and level up in place. Returns levels gained.

    Callers pass a copy; see grant_experience for the pure wrapper.
    A single grant may cross several thresholds.
    """
    companion.experience += max(0, amount)
    gained = 0
    while (
        companion.level < MAX_LEVEL
        and companion.experience >= LEVEL_THRESHOLDS[companion.level]
    ):
        companion.level += 1
        gained += 1
    if gained:
        logger.debug(
            "Companion %s leveled up +%d -> %d (%s)",
            companion.companion_id,
            gained,
            companion.level,
            stage_for_level(companion.level).value,
        )
    return gained


def grant_experience(companion: Companion, amount: int) -> Companion:
    """Return a copy with `amount` experience added and levels applied."""
    updated = companion.copy()
    apply_experience(updated, amount)
    return updated


def enforce_health_reset(companion: Companion) -> bool:
    """Punitive egg reset when health reaches 0. Mutates in place.

    Level, experience and health go back to the hatchling values; stage
    follows from level. Returns True when the reset fired.
    """
    if companion.health > 0:
        return False
    logger.info(
        "Companion %s health depleted: reset to egg (was level %d)",
        companion.companion_id,
        companion.level,
    )
    companion.level = RESET_LEVEL
    companion.experience = RESET_EXPERIENCE
    companion.health = RESET_HEALTH
    companion.times_reset += 1
    return True


def apply_health_reset(companion: Companion) -> Companion:
    """Pure wrapper around enforce_health_reset."""
    updated = companion.copy()
    enforce_health_reset(updated)
    return updated
