"""Companion domain model (DB independent)

`stage` and `mood` are computed properties: they are pure functions of
level and of the stat snapshot and cannot be assigned.
"""

from __future__ import annotations

import copy
import time
import uuid
from dataclasses import dataclass, field
from typing import Optional

from companion_engine.core.companion.enums import Mood, PetColor, PetSkin, Stage
from companion_engine.core.companion.leveling import stage_for_level
from companion_engine.core.companion.mood import derive_mood
from companion_engine.core.companion.quests import QuestInstance

STAT_MIN = 0
STAT_MAX = 100

DEFAULT_NAME = "My Pet"


def now_ms() -> int:
    """Wall clock in milliseconds since epoch."""
    return int(time.time() * 1000)


@dataclass
class Companion:
    """Persistent virtual pet. Aggregate root owned by the engine."""

    companion_id: str
    name: str = DEFAULT_NAME

    # progression
    level: int = 1
    experience: int = 0

    # stats 0-100 (hunger: higher is worse)
    hunger: int = 30
    happiness: int = 80
    health: int = 100
    energy: int = 80
    cleanliness: int = 80

    # bonding
    bond_level: int = 0
    affinity: int = 0

    unlocked_abilities: list[str] = field(default_factory=list)
    active_quests: list[QuestInstance] = field(default_factory=list)
    quest_history: list[QuestInstance] = field(default_factory=list)

    # counters
    total_interactions: int = 0
    times_feeding: int = 0
    total_xp_spent: int = 0
    times_reset: int = 0

    # timestamps (ms)
    last_fed_at: int = 0
    last_played_at: int = 0
    created_at: int = 0
    decay_anchor_at: int = 0

    # cosmetics
    color: PetColor = PetColor.DEFAULT
    skin: PetSkin = PetSkin.DEFAULT
    favorite_food: str = "treats"
    emoji: Optional[str] = None

    @property
    def stage(self) -> Stage:
        return stage_for_level(self.level)

    @property
    def mood(self) -> Mood:
        return derive_mood(self.hunger, self.happiness, self.health)

    def copy(self) -> Companion:
        """Deep copy; core transformations never touch their input."""
        return copy.deepcopy(self)

    def find_active_quest(self, instance_id: str) -> Optional[QuestInstance]:
        for quest in self.active_quests:
            if quest.instance_id == instance_id:
                return quest
        return None

    def find_resolved_quest(self, instance_id: str) -> Optional[QuestInstance]:
        for quest in self.quest_history:
            if quest.instance_id == instance_id:
                return quest
        return None


def new_companion(
    name: str = DEFAULT_NAME,
    now: int | None = None,
    level: int = 1,
    emoji: str | None = None,
) -> Companion:
    """Hatch a fresh companion with the default stat block."""
    ts = now if now is not None else now_ms()
    return Companion(
        companion_id=f"pet_{uuid.uuid4().hex[:12]}",
        name=name.strip() or DEFAULT_NAME,
        level=max(1, level),
        last_fed_at=ts,
        last_played_at=ts,
        created_at=ts,
        decay_anchor_at=ts,
        emoji=emoji,
    )


# === Cosmetics ===

PET_COLORS: dict[PetColor, dict[str, str]] = {
    PetColor.DEFAULT: {"name": "Default", "emoji": "🐔"},
    PetColor.GOLDEN: {"name": "Golden", "emoji": "✨"},
    PetColor.COSMIC: {"name": "Cosmic", "emoji": "🌌"},
    PetColor.FOREST: {"name": "Forest", "emoji": "🌿"},
    PetColor.SUNSET: {"name": "Sunset", "emoji": "🌅"},
    PetColor.OCEAN: {"name": "Ocean", "emoji": "💙"},
    PetColor.ROSE: {"name": "Rose", "emoji": "🌹"},
}

PET_SKINS: dict[PetSkin, dict[str, str]] = {
    PetSkin.DEFAULT: {"name": "Default", "description": "Classic pet"},
    PetSkin.FLUFFY: {"name": "Fluffy", "description": "Extra fluffy and soft"},
    PetSkin.SHINY: {"name": "Shiny", "description": "Sparkly and bright"},
    PetSkin.MYSTICAL: {"name": "Mystical", "description": "Magical aura"},
}

STAGE_EMOJI: dict[Stage, str] = {
    Stage.EGG: "🥚",
    Stage.BABY: "🐣",
    Stage.TEEN: "🐥",
    Stage.ADULT: "🐔",
    Stage.LEGENDARY: "🦅",
    Stage.MYTHIC: "🐾",
}


def pet_emoji(
    stage: Stage,
    color: PetColor = PetColor.DEFAULT,
    stored_emoji: str | None = None,
) -> str:
    """Display emoji: shop emoji, then color emoji, then stage emoji."""
    if stored_emoji:
        return stored_emoji
    if color != PetColor.DEFAULT:
        return PET_COLORS[color]["emoji"]
    return STAGE_EMOJI[stage]
