"""Stat model: bounded stats, interactions, passive decay

Every function here is pure: it returns a new Companion and leaves its
input untouched. Out-of-range values are clamped to [0, 100], never
rejected. Ledger costs are settled by the caller before these run.
"""

from __future__ import annotations

import logging

from companion_engine.core.companion.bonding import add_bond
from companion_engine.core.companion.enums import Activity
from companion_engine.core.companion.leveling import (
    apply_experience,
    enforce_health_reset,
)
from companion_engine.core.companion.models import STAT_MAX, STAT_MIN, Companion

logger = logging.getLogger(__name__)

# === Interaction tuning ===
FEED_COST_GEMS = 5
FEED_COST_XP = 30
FEED_HUNGER = 30
FEED_HAPPINESS = 10
FEED_HEALTH = 5
XP_PER_FEED = 50

PLAY_MIN_ENERGY = 20
PLAY_HAPPINESS = 20
PLAY_ENERGY = 25
PLAY_AFFINITY = 3
XP_PER_PLAY = 10

HEAL_COST_GEMS = 10
HEAL_COST_XP = 50
HEAL_HEALTH = 50
HEAL_HAPPINESS = 15

CLEAN_COST_GEMS = 3
CLEAN_HAPPINESS = 5

AFFINITY_MAX = 100

# === Passive decay ===
MINUTE_MS = 60_000
DECAY_INTERVAL_MS = 10 * MINUTE_MS
DECAY_THRESHOLD_MINUTES = 1
MAX_DECAY_STEPS = 10  # per evaluation
HAPPINESS_DECAY_STEP = 1
CLEANLINESS_DECAY_STEP = 1
ENERGY_RECOVERY_STEP = 1
STARVING_HUNGER = 80
STARVING_HEALTH_STEP = 2
DIRTY_CLEANLINESS = 20
DIRTY_HEALTH_STEP = 1


def clamp_stat(value: float) -> int:
    """Clamp to [0, 100] inclusive."""
    return int(max(STAT_MIN, min(STAT_MAX, value)))


def _clamp_all(companion: Companion) -> None:
    companion.hunger = clamp_stat(companion.hunger)
    companion.happiness = clamp_stat(companion.happiness)
    companion.health = clamp_stat(companion.health)
    companion.energy = clamp_stat(companion.energy)
    companion.cleanliness = clamp_stat(companion.cleanliness)
    companion.bond_level = clamp_stat(companion.bond_level)


def _finish(companion: Companion) -> Companion:
    """Clamp, then run the zero-health reset transition."""
    _clamp_all(companion)
    enforce_health_reset(companion)
    return companion


def apply_feed(companion: Companion, now: int, xp_spent: int = 0) -> Companion:
    """Feed: less hunger, more happiness and health, +XP_PER_FEED experience.

    xp_spent is the player XP paid for the meal (0 when paid in gems).
    """
    fed = companion.copy()
    fed.hunger -= FEED_HUNGER
    fed.happiness += FEED_HAPPINESS
    fed.health += FEED_HEALTH
    fed.times_feeding += 1
    fed.total_interactions += 1
    fed.total_xp_spent += max(0, xp_spent)
    fed.last_fed_at = now
    fed.decay_anchor_at = now
    add_bond(fed, Activity.FEED)
    apply_experience(fed, XP_PER_FEED)
    return _finish(fed)


def can_play(companion: Companion) -> bool:
    return companion.energy >= PLAY_MIN_ENERGY


def apply_play(companion: Companion, now: int) -> Companion:
    """Play: happier, more tired. A tired pet (energy < 20) is unchanged."""
    if not can_play(companion):
        logger.debug("Companion %s too tired to play", companion.companion_id)
        return companion.copy()

    played = companion.copy()
    played.happiness += PLAY_HAPPINESS
    played.energy -= PLAY_ENERGY
    played.affinity = min(AFFINITY_MAX, played.affinity + PLAY_AFFINITY)
    played.total_interactions += 1
    played.last_played_at = now
    add_bond(played, Activity.PLAY)
    apply_experience(played, XP_PER_PLAY)
    return _finish(played)


def apply_heal(companion: Companion, xp_spent: int = 0) -> Companion:
    healed = companion.copy()
    healed.health += HEAL_HEALTH
    healed.happiness += HEAL_HAPPINESS
    healed.total_interactions += 1
    healed.total_xp_spent += max(0, xp_spent)
    add_bond(healed, Activity.HEAL)
    return _finish(healed)


def apply_clean(companion: Companion) -> Companion:
    cleaned = companion.copy()
    cleaned.cleanliness = STAT_MAX
    cleaned.happiness += CLEAN_HAPPINESS
    cleaned.total_interactions += 1
    add_bond(cleaned, Activity.CLEAN)
    return _finish(cleaned)


def decay_steps(companion: Companion, now: int) -> tuple[int, int]:
    """Whole decay intervals elapsed since the anchor.

    Returns (intervals, steps) where steps is capped at MAX_DECAY_STEPS.
    """
    anchor = max(companion.last_fed_at, companion.decay_anchor_at)
    intervals = max(0, (now - anchor) // DECAY_INTERVAL_MS)
    return intervals, min(MAX_DECAY_STEPS, intervals)


def apply_passive_decay(companion: Companion, now: int) -> Companion:
    """Lazy, time-normalized decay. Safe to call on every read.

    Decay is measured in whole DECAY_INTERVAL_MS intervals since the decay
    anchor (the later of last_fed_at and decay_anchor_at). Consumed
    intervals advance the anchor, so two calls in quick succession only
    penalize what the elapsed time justifies. A single long absence is
    capped at MAX_DECAY_STEPS steps.
    """
    intervals, steps = decay_steps(companion, now)
    if intervals <= 0:
        return _finish(companion.copy())

    decayed = companion.copy()
    minutes_since_fed = (now - companion.last_fed_at) / MINUTE_MS
    minutes_since_played = (now - companion.last_played_at) / MINUTE_MS

    if minutes_since_fed > DECAY_THRESHOLD_MINUTES:
        decayed.hunger += steps
        decayed.happiness -= HAPPINESS_DECAY_STEP * steps

    if minutes_since_played > DECAY_THRESHOLD_MINUTES:
        decayed.energy += ENERGY_RECOVERY_STEP * steps

    decayed.cleanliness -= CLEANLINESS_DECAY_STEP * steps
    _clamp_all(decayed)

    if decayed.hunger > STARVING_HUNGER:
        decayed.health -= STARVING_HEALTH_STEP * steps
    if decayed.cleanliness < DIRTY_CLEANLINESS:
        decayed.health -= DIRTY_HEALTH_STEP * steps

    anchor = max(companion.last_fed_at, companion.decay_anchor_at)
    decayed.decay_anchor_at = anchor + intervals * DECAY_INTERVAL_MS

    logger.debug(
        "Decay %s: intervals=%d steps=%d hunger=%d health=%d",
        companion.companion_id,
        intervals,
        steps,
        decayed.hunger,
        decayed.health,
    )
    return _finish(decayed)
