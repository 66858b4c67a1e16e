"""Companion persistence: a synchronous key-value store per player"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from companion_engine.core.companion.abilities import AbilityId
from companion_engine.core.companion.enums import PetColor, PetSkin
from companion_engine.core.companion.models import Companion
from companion_engine.core.companion.quests import QuestInstance
from companion_engine.db.models import CompanionModel, PlayerModel

logger = logging.getLogger(__name__)


class CompanionStore(ABC):
    """Persistence interface used by CompanionService."""

    @abstractmethod
    def load_companion(self, companion_id: str) -> Companion | None: ...

    @abstractmethod
    def save_companion(self, companion: Companion) -> None: ...

    @abstractmethod
    def list_companions(self) -> list[Companion]: ...

    @abstractmethod
    def get_current_companion_id(self) -> str | None: ...

    @abstractmethod
    def set_current_companion_id(self, companion_id: str | None) -> None: ...


class DbCompanionStore(CompanionStore):
    """CompanionStore over the companions table, scoped to one player.

    Writes are flushed, not committed.
    """

    def __init__(self, db: Session, player_id: str):
        self._db = db
        self._player_id = player_id

    def _player(self) -> PlayerModel:
        player = self._db.get(PlayerModel, self._player_id)
        if player is None:
            raise ValueError(f"Player not found: {self._player_id}")
        return player

    def load_companion(self, companion_id: str) -> Companion | None:
        orm = (
            self._db.query(CompanionModel)
            .filter(
                CompanionModel.companion_id == companion_id,
                CompanionModel.player_id == self._player_id,
            )
            .first()
        )
        if orm is None:
            return None
        return self._companion_to_core(orm)

    def save_companion(self, companion: Companion) -> None:
        orm = self._db.get(CompanionModel, companion.companion_id)
        if orm is None:
            orm = CompanionModel(
                companion_id=companion.companion_id, player_id=self._player_id
            )
            self._db.add(orm)
        self._apply_to_orm(companion, orm)
        self._db.flush()

    def list_companions(self) -> list[Companion]:
        rows = (
            self._db.query(CompanionModel)
            .filter(CompanionModel.player_id == self._player_id)
            .order_by(CompanionModel.created_at)
            .all()
        )
        return [self._companion_to_core(orm) for orm in rows]

    def get_current_companion_id(self) -> str | None:
        return self._player().current_companion_id

    def set_current_companion_id(self, companion_id: str | None) -> None:
        player = self._player()
        player.current_companion_id = companion_id
        self._db.flush()

    # === ORM <-> Core ===

    def _companion_to_core(self, orm: CompanionModel) -> Companion:
        """ORM -> Core. Cached stage/mood columns are ignored."""
        return Companion(
            companion_id=orm.companion_id,
            name=orm.name,
            level=orm.level,
            experience=orm.experience,
            hunger=orm.hunger,
            happiness=orm.happiness,
            health=orm.health,
            energy=orm.energy,
            cleanliness=orm.cleanliness,
            bond_level=orm.bond_level,
            affinity=orm.affinity,
            unlocked_abilities=list(orm.unlocked_abilities or []),
            active_quests=[
                QuestInstance.from_dict(q) for q in (orm.active_quests or [])
            ],
            quest_history=[
                QuestInstance.from_dict(q) for q in (orm.quest_history or [])
            ],
            total_interactions=orm.total_interactions,
            times_feeding=orm.times_feeding,
            total_xp_spent=orm.total_xp_spent,
            times_reset=orm.times_reset,
            last_fed_at=orm.last_fed_at,
            last_played_at=orm.last_played_at,
            created_at=orm.created_at,
            decay_anchor_at=orm.decay_anchor_at,
            color=PetColor(orm.color),
            skin=PetSkin(orm.skin),
            favorite_food=orm.favorite_food,
            emoji=orm.emoji,
        )

    def _apply_to_orm(self, core: Companion, orm: CompanionModel) -> None:
        """Core -> ORM. Quest instances are serialized to JSON dicts."""
        orm.name = core.name
        orm.level = core.level
        orm.experience = core.experience
        orm.hunger = core.hunger
        orm.happiness = core.happiness
        orm.health = core.health
        orm.energy = core.energy
        orm.cleanliness = core.cleanliness
        orm.bond_level = core.bond_level
        orm.affinity = core.affinity
        orm.unlocked_abilities = [AbilityId(a).value for a in core.unlocked_abilities]
        orm.active_quests = [q.to_dict() for q in core.active_quests]
        orm.quest_history = [q.to_dict() for q in core.quest_history]
        orm.total_interactions = core.total_interactions
        orm.times_feeding = core.times_feeding
        orm.total_xp_spent = core.total_xp_spent
        orm.times_reset = core.times_reset
        orm.last_fed_at = core.last_fed_at
        orm.last_played_at = core.last_played_at
        orm.created_at = core.created_at
        orm.decay_anchor_at = core.decay_anchor_at
        orm.color = core.color.value
        orm.skin = core.skin.value
        orm.favorite_food = core.favorite_food
        orm.emoji = core.emoji
        orm.stage = core.stage.value
        orm.mood = core.mood.value
