"""Companion quests: time-boxed, risk-weighted tasks

Instance state machine: available -> active -> completed | failed.
Timers are wall-clock based and only evaluated when polled.
"""

from __future__ import annotations

import logging
import random
import uuid
from dataclasses import dataclass, replace
from enum import Enum
from types import MappingProxyType
from typing import Any, Mapping, Optional

from companion_engine.core.companion.errors import (
    QuestAlreadyResolvedError,
    QuestNotReadyError,
)

logger = logging.getLogger(__name__)

MINUTE_MS = 60_000
HOUR_MS = 60 * MINUTE_MS


class QuestTemplateId(str, Enum):
    FOREST_GATHER = "forest-gather"
    TREASURE_HUNT = "treasure-hunt"
    DRAGON_DUEL = "dragon-duel"
    SPIRIT_WALK = "spirit-walk"
    OCEAN_QUEST = "ocean-quest"
    SHADOW_MISSION = "shadow-mission"
    FOOD_RUN = "food-run"
    MAGIC_RITUAL = "magic-ritual"


class QuestDifficulty(str, Enum):
    EASY = "easy"
    MEDIUM = "medium"
    HARD = "hard"
    EXTREME = "extreme"


class QuestStatus(str, Enum):
    AVAILABLE = "available"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


TERMINAL_STATUSES = frozenset({QuestStatus.COMPLETED, QuestStatus.FAILED})


@dataclass(frozen=True)
class QuestRewards:
    gems: int = 0
    xp: int = 0  # player XP
    pet_xp: int = 0


@dataclass(frozen=True)
class QuestTemplate:
    template_id: QuestTemplateId
    name: str
    description: str
    difficulty: QuestDifficulty
    duration_ms: int
    risk_factor: float  # 0-1, probability of failure
    rewards: QuestRewards
    entry_cost: int = 0  # gems


@dataclass
class QuestInstance:
    """A started quest. Carries a snapshot of its template."""

    instance_id: str
    template_id: QuestTemplateId
    name: str
    difficulty: QuestDifficulty
    duration_ms: int
    risk_factor: float
    rewards: QuestRewards
    status: QuestStatus = QuestStatus.AVAILABLE
    start_time: Optional[int] = None
    completed_at: Optional[int] = None

    @property
    def is_resolved(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dict(self) -> dict[str, Any]:
        return {
            "instance_id": self.instance_id,
            "template_id": self.template_id.value,
            "name": self.name,
            "difficulty": self.difficulty.value,
            "duration_ms": self.duration_ms,
            "risk_factor": self.risk_factor,
            "rewards": {
                "gems": self.rewards.gems,
                "xp": self.rewards.xp,
                "pet_xp": self.rewards.pet_xp,
            },
            "status": self.status.value,
            "start_time": self.start_time,
            "completed_at": self.completed_at,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> QuestInstance:
        rewards = data.get("rewards") or {}
        return cls(
            instance_id=data["instance_id"],
            template_id=QuestTemplateId(data["template_id"]),
            name=data.get("name", ""),
            difficulty=QuestDifficulty(data.get("difficulty", "easy")),
            duration_ms=int(data.get("duration_ms", 0)),
            risk_factor=float(data.get("risk_factor", 0.0)),
            rewards=QuestRewards(
                gems=int(rewards.get("gems", 0)),
                xp=int(rewards.get("xp", 0)),
                pet_xp=int(rewards.get("pet_xp", 0)),
            ),
            status=QuestStatus(data.get("status", "available")),
            start_time=data.get("start_time"),
            completed_at=data.get("completed_at"),
        )


# Gem entry cost per difficulty
ENTRY_COST_BY_DIFFICULTY: dict[QuestDifficulty, int] = {
    QuestDifficulty.EASY: 0,
    QuestDifficulty.MEDIUM: 0,
    QuestDifficulty.HARD: 10,
    QuestDifficulty.EXTREME: 25,
}


def _template(
    template_id: QuestTemplateId,
    name: str,
    description: str,
    difficulty: QuestDifficulty,
    duration_ms: int,
    risk_factor: float,
    gems: int,
    xp: int,
    pet_xp: int,
) -> QuestTemplate:
    return QuestTemplate(
        template_id=template_id,
        name=name,
        description=description,
        difficulty=difficulty,
        duration_ms=duration_ms,
        risk_factor=risk_factor,
        rewards=QuestRewards(gems=gems, xp=xp, pet_xp=pet_xp),
        entry_cost=ENTRY_COST_BY_DIFFICULTY[difficulty],
    )


QUEST_TEMPLATES: Mapping[QuestTemplateId, QuestTemplate] = MappingProxyType(
    {
        t.template_id: t
        for t in (
            _template(
                QuestTemplateId.FOREST_GATHER,
                "Forest Gathering",
                "Gather herbs from the enchanted forest",
                QuestDifficulty.EASY,
                1 * HOUR_MS,
                0.1,
                gems=15,
                xp=50,
                pet_xp=25,
            ),
            _template(
                QuestTemplateId.TREASURE_HUNT,
                "Treasure Hunt",
                "Search for hidden treasure on a remote island",
                QuestDifficulty.MEDIUM,
                4 * HOUR_MS,
                0.25,
                gems=50,
                xp=150,
                pet_xp=75,
            ),
            _template(
                QuestTemplateId.DRAGON_DUEL,
                "Dragon Duel",
                "Battle a mighty dragon for glory and riches",
                QuestDifficulty.HARD,
                8 * HOUR_MS,
                0.5,
                gems=150,
                xp=500,
                pet_xp=250,
            ),
            _template(
                QuestTemplateId.SPIRIT_WALK,
                "Spirit Walk",
                "Journey through the spirit realm to gain wisdom",
                QuestDifficulty.MEDIUM,
                2 * HOUR_MS,
                0.2,
                gems=30,
                xp=100,
                pet_xp=50,
            ),
            _template(
                QuestTemplateId.OCEAN_QUEST,
                "Ocean Quest",
                "Dive deep to discover underwater mysteries",
                QuestDifficulty.HARD,
                6 * HOUR_MS,
                0.4,
                gems=100,
                xp=400,
                pet_xp=200,
            ),
            _template(
                QuestTemplateId.SHADOW_MISSION,
                "Shadow Mission",
                "Infiltrate enemy stronghold under cover of darkness",
                QuestDifficulty.EXTREME,
                12 * HOUR_MS,
                0.7,
                gems=300,
                xp=1000,
                pet_xp=500,
            ),
            _template(
                QuestTemplateId.FOOD_RUN,
                "Food Run",
                "Gather delicious snacks and treats",
                QuestDifficulty.EASY,
                30 * MINUTE_MS,
                0.05,
                gems=10,
                xp=25,
                pet_xp=15,
            ),
            _template(
                QuestTemplateId.MAGIC_RITUAL,
                "Magic Ritual",
                "Perform an ancient magic ritual to gain power",
                QuestDifficulty.MEDIUM,
                3 * HOUR_MS,
                0.3,
                gems=40,
                xp=120,
                pet_xp=60,
            ),
        )
    }
)


def get_template(template_id: QuestTemplateId | str) -> QuestTemplate:
    """Catalog lookup. Raises ValueError for an unknown id."""
    return QUEST_TEMPLATES[QuestTemplateId(template_id)]


def start_quest(template: QuestTemplate, now: int) -> QuestInstance:
    """Create an active instance stamped with start_time = now."""
    return QuestInstance(
        instance_id=str(uuid.uuid4()),
        template_id=template.template_id,
        name=template.name,
        difficulty=template.difficulty,
        duration_ms=template.duration_ms,
        risk_factor=template.risk_factor,
        rewards=template.rewards,
        status=QuestStatus.ACTIVE,
        start_time=now,
    )


def time_remaining(instance: QuestInstance, now: int) -> int | None:
    """Milliseconds left. None unless the quest is active."""
    if instance.status != QuestStatus.ACTIVE or instance.start_time is None:
        return None
    return max(0, instance.duration_ms - (now - instance.start_time))


def roll_quest_success(risk_factor: float, rng: random.Random | None = None) -> bool:
    """One uniform draw on [0, 1). Fails iff draw < risk_factor.

    risk 0 can never fail and risk 1 can never succeed.
    """
    roll = (rng or random).random()
    success = not roll < risk_factor
    logger.debug(
        "Quest roll: risk=%.2f, roll=%.4f, success=%s", risk_factor, roll, success
    )
    return success


def resolve_quest(
    instance: QuestInstance,
    now: int,
    rng: random.Random | None = None,
) -> QuestInstance:
    """Resolve a finished quest into completed or failed.

    Raises QuestAlreadyResolvedError for terminal instances and
    QuestNotReadyError while time remains (or the quest never started).
    """
    if instance.is_resolved:
        raise QuestAlreadyResolvedError(
            f"Quest {instance.instance_id} already {instance.status.value}"
        )
    remaining = time_remaining(instance, now)
    if remaining is None or remaining > 0:
        raise QuestNotReadyError(
            f"Quest {instance.instance_id} not ready (remaining={remaining})"
        )

    success = roll_quest_success(instance.risk_factor, rng)
    status = QuestStatus.COMPLETED if success else QuestStatus.FAILED
    return replace(instance, status=status, completed_at=now)


def format_quest_time(ms: int) -> str:
    """Human readable remaining time: '1d 2h', '3h 4m', '5m'."""
    minutes = ms // MINUTE_MS
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    if minutes > 0:
        return f"{minutes}m"
    return "Starting..."
