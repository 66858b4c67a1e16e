"""Companion core package

Stats, leveling, mood, abilities, bonding and quests.
DB independent, pure Python logic.
"""

from companion_engine.core.companion.abilities import (
    ABILITY_CATALOG,
    Ability,
    AbilityEffect,
    AbilityId,
    check_unlock,
    compute_all_bonuses,
    compute_bonus,
    list_unlockable,
    unlock_ability,
)
from companion_engine.core.companion.bonding import (
    BOND_GAIN,
    BOND_MILESTONES,
    BondMilestone,
    BondProgress,
    affinity_message,
    apply_bond_gain,
    bond_progress,
    current_milestone,
    gain_bond,
    has_unlocked_feature,
    next_milestone,
    unlocked_features,
)
from companion_engine.core.companion.enums import (
    Activity,
    Mood,
    PaymentMethod,
    PetColor,
    PetSkin,
    Stage,
)
from companion_engine.core.companion.errors import (
    AbilityAlreadyUnlockedError,
    CompanionEngineError,
    CompanionNotFoundError,
    InsufficientFundsError,
    PrerequisitesNotMetError,
    QuestAlreadyResolvedError,
    QuestNotReadyError,
)
from companion_engine.core.companion.leveling import (
    LEVEL_THRESHOLDS,
    MAX_LEVEL,
    apply_health_reset,
    grant_experience,
    stage_for_level,
    xp_to_next_level,
)
from companion_engine.core.companion.models import Companion, new_companion, pet_emoji
from companion_engine.core.companion.mood import derive_mood
from companion_engine.core.companion.quests import (
    QUEST_TEMPLATES,
    QuestInstance,
    QuestStatus,
    QuestTemplate,
    QuestTemplateId,
    resolve_quest,
    start_quest,
    time_remaining,
)
from companion_engine.core.companion.stats import (
    apply_clean,
    apply_feed,
    apply_heal,
    apply_passive_decay,
    apply_play,
    clamp_stat,
)

__all__ = [
    "Companion",
    "new_companion",
    "pet_emoji",
    "Stage",
    "Mood",
    "Activity",
    "PaymentMethod",
    "PetColor",
    "PetSkin",
    "CompanionEngineError",
    "InsufficientFundsError",
    "AbilityAlreadyUnlockedError",
    "PrerequisitesNotMetError",
    "QuestNotReadyError",
    "QuestAlreadyResolvedError",
    "CompanionNotFoundError",
    "clamp_stat",
    "apply_feed",
    "apply_play",
    "apply_heal",
    "apply_clean",
    "apply_passive_decay",
    "LEVEL_THRESHOLDS",
    "MAX_LEVEL",
    "stage_for_level",
    "grant_experience",
    "xp_to_next_level",
    "apply_health_reset",
    "derive_mood",
    "ABILITY_CATALOG",
    "Ability",
    "AbilityEffect",
    "AbilityId",
    "list_unlockable",
    "check_unlock",
    "unlock_ability",
    "compute_bonus",
    "compute_all_bonuses",
    "BOND_GAIN",
    "BOND_MILESTONES",
    "BondMilestone",
    "BondProgress",
    "current_milestone",
    "bond_progress",
    "next_milestone",
    "unlocked_features",
    "has_unlocked_feature",
    "gain_bond",
    "apply_bond_gain",
    "affinity_message",
    "QUEST_TEMPLATES",
    "QuestInstance",
    "QuestStatus",
    "QuestTemplate",
    "QuestTemplateId",
    "start_quest",
    "time_remaining",
    "resolve_quest",
]
