"""Ability unlock system

Abilities are passive bonuses gated by level and, optionally, by an exact
evolution stage. Unlocks are append-only.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import TYPE_CHECKING, Mapping, Optional

from companion_engine.core.companion.enums import Stage
from companion_engine.core.companion.errors import (
    AbilityAlreadyUnlockedError,
    PrerequisitesNotMetError,
)
from companion_engine.core.companion.leveling import level_multiplier

if TYPE_CHECKING:
    from companion_engine.core.companion.models import Companion

logger = logging.getLogger(__name__)


class AbilityEffect(str, Enum):
    XP_BOOST = "xp-boost"
    CASINO_LUCK = "casino-luck"
    TASK_SPEED = "task-speed"
    GEM_MAGNET = "gem-magnet"
    PET_TELEPATHY = "pet-telepathy"
    DOUBLE_STRIKE = "double-strike"
    SHIELD_WALL = "shield-wall"
    HEALING_AURA = "healing-aura"


class AbilityId(str, Enum):
    """One ability per effect; ids match the effect tags."""

    XP_BOOST = "xp-boost"
    CASINO_LUCK = "casino-luck"
    TASK_SPEED = "task-speed"
    GEM_MAGNET = "gem-magnet"
    PET_TELEPATHY = "pet-telepathy"
    DOUBLE_STRIKE = "double-strike"
    SHIELD_WALL = "shield-wall"
    HEALING_AURA = "healing-aura"


@dataclass(frozen=True)
class Ability:
    ability_id: AbilityId
    name: str
    description: str
    icon: str
    effect: AbilityEffect
    base_bonus: float  # percent
    level_requirement: int
    evolution_requirement: Optional[Stage] = None
    cost: int = 0  # gems


ABILITY_CATALOG: Mapping[AbilityId, Ability] = MappingProxyType(
    {
        a.ability_id: a
        for a in (
            Ability(
                AbilityId.XP_BOOST,
                "XP Amplifier",
                "Increases XP gained from tasks and games by 5-25%",
                "⚡",
                AbilityEffect.XP_BOOST,
                base_bonus=10,
                level_requirement=2,
                evolution_requirement=Stage.BABY,
                cost=10,
            ),
            Ability(
                AbilityId.CASINO_LUCK,
                "Lucky Streak",
                "Increases casino win probability by 8-35%",
                "🍀",
                AbilityEffect.CASINO_LUCK,
                base_bonus=15,
                level_requirement=3,
                evolution_requirement=Stage.TEEN,
                cost=20,
            ),
            Ability(
                AbilityId.TASK_SPEED,
                "Task Sprint",
                "Allows tasks to be completed 10-40% faster",
                "💨",
                AbilityEffect.TASK_SPEED,
                base_bonus=20,
                level_requirement=4,
                evolution_requirement=Stage.ADULT,
                cost=30,
            ),
            Ability(
                AbilityId.GEM_MAGNET,
                "Gem Attractor",
                "Attracts 15-50% more gems from activities",
                "💎",
                AbilityEffect.GEM_MAGNET,
                base_bonus=25,
                level_requirement=5,
                evolution_requirement=Stage.LEGENDARY,
                cost=50,
            ),
            Ability(
                AbilityId.PET_TELEPATHY,
                "Pet Telepathy",
                "Unlocks secret quests and hidden pet interactions",
                "🧠",
                AbilityEffect.PET_TELEPATHY,
                base_bonus=30,
                level_requirement=6,
                evolution_requirement=Stage.MYTHIC,
                cost=100,
            ),
            Ability(
                AbilityId.DOUBLE_STRIKE,
                "Double Strike",
                "15-40% chance to gain double rewards from any activity",
                "⚔️",
                AbilityEffect.DOUBLE_STRIKE,
                base_bonus=20,
                level_requirement=3,
                cost=20,
            ),
            Ability(
                AbilityId.SHIELD_WALL,
                "Shield Wall",
                "Reduces damage from failed tasks, prevents health loss",
                "🛡️",
                AbilityEffect.SHIELD_WALL,
                base_bonus=15,
                level_requirement=2,
                cost=10,
            ),
            Ability(
                AbilityId.HEALING_AURA,
                "Healing Aura",
                "Regenerates 5% health every time pet is interacted with",
                "✨",
                AbilityEffect.HEALING_AURA,
                base_bonus=10,
                level_requirement=4,
                cost=30,
            ),
        )
    }
)


def get_ability(ability_id: AbilityId | str) -> Ability:
    """Catalog lookup. Raises ValueError for an unknown id."""
    return ABILITY_CATALOG[AbilityId(ability_id)]


def meets_requirements(companion: Companion, ability: Ability) -> bool:
    """Level gate and, when present, exact stage gate."""
    if companion.level < ability.level_requirement:
        return False
    if (
        ability.evolution_requirement is not None
        and companion.stage != ability.evolution_requirement
    ):
        return False
    return True


def list_unlockable(companion: Companion) -> list[Ability]:
    """Abilities whose gates hold and that are not unlocked yet."""
    return [
        ability
        for ability in ABILITY_CATALOG.values()
        if ability.ability_id not in companion.unlocked_abilities
        and meets_requirements(companion, ability)
    ]


def check_unlock(companion: Companion, ability_id: AbilityId | str) -> Ability:
    """Validate an unlock without changing anything.

    Raises AbilityAlreadyUnlockedError or PrerequisitesNotMetError.
    """
    ability = get_ability(ability_id)
    if ability.ability_id in companion.unlocked_abilities:
        raise AbilityAlreadyUnlockedError(
            f"{ability.ability_id.value} already unlocked"
        )
    if not meets_requirements(companion, ability):
        raise PrerequisitesNotMetError(
            f"{ability.ability_id.value} requires level {ability.level_requirement}"
            + (
                f" and stage {ability.evolution_requirement.value}"
                if ability.evolution_requirement
                else ""
            )
        )
    return ability


def unlock_ability(companion: Companion, ability_id: AbilityId | str) -> Companion:
    """Return a copy with the ability appended. Never revoked."""
    ability = check_unlock(companion, ability_id)
    updated = companion.copy()
    updated.unlocked_abilities.append(ability.ability_id.value)
    logger.debug(
        "Ability unlocked: %s -> %s", companion.companion_id, ability.ability_id.value
    )
    return updated


def bond_multiplier(bond_level: int) -> float:
    """1.0 at bond 0, 1.5 at bond 100."""
    return 1 + (min(max(bond_level, 0), 100) / 100) * 0.5


def compute_bonus(companion: Companion, effect: AbilityEffect | str) -> float:
    """Sum of base_bonus * bond_mult * level_mult / 100 over unlocked
    abilities with the given effect. Computed on demand, never cached."""
    effect = AbilityEffect(effect)
    scale = bond_multiplier(companion.bond_level) * level_multiplier(companion.level)
    total = 0.0
    for ability_id in companion.unlocked_abilities:
        ability = ABILITY_CATALOG.get(AbilityId(ability_id))
        if ability is not None and ability.effect == effect:
            total += ability.base_bonus * scale / 100
    return total


def compute_all_bonuses(companion: Companion) -> dict[AbilityEffect, float]:
    return {effect: compute_bonus(companion, effect) for effect in AbilityEffect}
