"""API request/response schemas."""

from typing import Optional

from pydantic import BaseModel, Field

from companion_engine.core.companion.abilities import (
    Ability,
    AbilityId,
    compute_all_bonuses,
)
from companion_engine.core.companion.enums import PaymentMethod
from companion_engine.core.companion.leveling import xp_to_next_level
from companion_engine.core.companion.models import Companion, pet_emoji
from companion_engine.core.companion.quests import QuestInstance, QuestTemplate
from companion_engine.core.companion.shop import ShopPet


# === Request Schemas ===


class RegisterRequest(BaseModel):
    """Player registration"""

    player_id: str = Field(..., min_length=1, max_length=50, description="Player ID")


class CreateCompanionRequest(BaseModel):
    name: str = Field("My Pet", max_length=40)


class PaymentRequest(BaseModel):
    """Feed / heal payment choice"""

    method: PaymentMethod = PaymentMethod.GEMS


class RenameRequest(BaseModel):
    name: str = Field(..., max_length=40)


class StartQuestRequest(BaseModel):
    template_id: str = Field(..., description="Quest template id, e.g. forest-gather")


class BuyCompanionRequest(BaseModel):
    name: Optional[str] = Field(None, max_length=40)


# === Response Schemas ===


class PlayerInfo(BaseModel):
    player_id: str
    gems: int
    experience: int
    current_companion_id: Optional[str] = None


class QuestInfo(BaseModel):
    instance_id: str
    template_id: str
    name: str
    difficulty: str
    status: str
    duration_ms: int
    risk_factor: float
    reward_gems: int
    reward_xp: int
    reward_pet_xp: int
    start_time: Optional[int] = None
    completed_at: Optional[int] = None


class CompanionInfo(BaseModel):
    """Companion snapshot. Stage and mood are derived, never stored."""

    companion_id: str
    name: str
    emoji: str
    level: int
    experience: int
    xp_to_next_level: int
    stage: str
    mood: str
    hunger: int
    happiness: int
    health: int
    energy: int
    cleanliness: int
    bond_level: int
    affinity: int
    unlocked_abilities: list[str] = []
    ability_bonuses: dict[str, float] = {}
    active_quests: list[QuestInfo] = []
    quest_history: list[QuestInfo] = []
    total_interactions: int
    times_feeding: int
    total_xp_spent: int
    times_reset: int
    color: str
    skin: str
    last_fed_at: int
    last_played_at: int
    created_at: int


class ActionResponse(BaseModel):
    """Result of a companion action"""

    success: bool
    companion: CompanionInfo
    reason: Optional[str] = None
    quest: Optional[QuestInfo] = None
    gems: Optional[int] = None
    player_experience: Optional[int] = None


class AbilityInfo(BaseModel):
    ability_id: str
    name: str
    description: str
    icon: str
    effect: str
    base_bonus: float
    level_requirement: int
    evolution_requirement: Optional[str] = None
    cost: int
    unlocked: bool = False


class BondInfo(BaseModel):
    bond_level: int
    milestone: str
    feature: str
    emoji: str
    current_threshold: int
    next_threshold: Optional[int] = None
    percent: int
    message: str
    next_milestone: Optional[str] = None
    unlocked_features: list[str] = []


class QuestTemplateInfo(BaseModel):
    template_id: str
    name: str
    description: str
    difficulty: str
    duration_ms: int
    risk_factor: float
    entry_cost: int
    reward_gems: int
    reward_xp: int
    reward_pet_xp: int


class ShopPetInfo(BaseModel):
    shop_id: str
    name: str
    emoji: str
    preset_level: int
    cost: int


class ErrorResponse(BaseModel):
    success: bool = False
    error: str
    detail: Optional[str] = None


# === Core -> Schema ===


def quest_info(quest: QuestInstance) -> QuestInfo:
    return QuestInfo(
        instance_id=quest.instance_id,
        template_id=quest.template_id.value,
        name=quest.name,
        difficulty=quest.difficulty.value,
        status=quest.status.value,
        duration_ms=quest.duration_ms,
        risk_factor=quest.risk_factor,
        reward_gems=quest.rewards.gems,
        reward_xp=quest.rewards.xp,
        reward_pet_xp=quest.rewards.pet_xp,
        start_time=quest.start_time,
        completed_at=quest.completed_at,
    )


def companion_info(companion: Companion) -> CompanionInfo:
    return CompanionInfo(
        companion_id=companion.companion_id,
        name=companion.name,
        emoji=pet_emoji(companion.stage, companion.color, companion.emoji),
        level=companion.level,
        experience=companion.experience,
        xp_to_next_level=xp_to_next_level(companion.level),
        stage=companion.stage.value,
        mood=companion.mood.value,
        hunger=companion.hunger,
        happiness=companion.happiness,
        health=companion.health,
        energy=companion.energy,
        cleanliness=companion.cleanliness,
        bond_level=companion.bond_level,
        affinity=companion.affinity,
        unlocked_abilities=[AbilityId(a).value for a in companion.unlocked_abilities],
        ability_bonuses={
            effect.value: bonus
            for effect, bonus in compute_all_bonuses(companion).items()
            if bonus > 0
        },
        active_quests=[quest_info(q) for q in companion.active_quests],
        quest_history=[quest_info(q) for q in companion.quest_history],
        total_interactions=companion.total_interactions,
        times_feeding=companion.times_feeding,
        total_xp_spent=companion.total_xp_spent,
        times_reset=companion.times_reset,
        color=companion.color.value,
        skin=companion.skin.value,
        last_fed_at=companion.last_fed_at,
        last_played_at=companion.last_played_at,
        created_at=companion.created_at,
    )


def ability_info(ability: Ability, unlocked: bool = False) -> AbilityInfo:
    return AbilityInfo(
        ability_id=ability.ability_id.value,
        name=ability.name,
        description=ability.description,
        icon=ability.icon,
        effect=ability.effect.value,
        base_bonus=ability.base_bonus,
        level_requirement=ability.level_requirement,
        evolution_requirement=(
            ability.evolution_requirement.value
            if ability.evolution_requirement
            else None
        ),
        cost=ability.cost,
        unlocked=unlocked,
    )


def quest_template_info(template: QuestTemplate) -> QuestTemplateInfo:
    return QuestTemplateInfo(
        template_id=template.template_id.value,
        name=template.name,
        description=template.description,
        difficulty=template.difficulty.value,
        duration_ms=template.duration_ms,
        risk_factor=template.risk_factor,
        entry_cost=template.entry_cost,
        reward_gems=template.rewards.gems,
        reward_xp=template.rewards.xp,
        reward_pet_xp=template.rewards.pet_xp,
    )


def shop_pet_info(pet: ShopPet) -> ShopPetInfo:
    return ShopPetInfo(
        shop_id=pet.shop_id,
        name=pet.name,
        emoji=pet.emoji,
        preset_level=pet.preset_level,
        cost=pet.cost,
    )
