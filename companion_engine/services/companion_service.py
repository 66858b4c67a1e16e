"""Companion Service: Core <-> store/ledger wiring, EventBus publishing

Every user action follows the same shape:
1. load the companion and apply lazy passive decay (persisted if it changed)
2. check-and-deduct the ledger cost; on rejection nothing else happens
3. run the pure core transformation
4. save and commit once, then emit change events

Ledger and store only stage their writes on the session. A failed save
rolls back the whole action, the ledger deduction included.
"""

import logging
import random
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import Callable, Iterator, Optional

from sqlalchemy.orm import Session

from companion_engine.config import settings
from companion_engine.core.companion.abilities import (
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
    BondMilestone,
    BondProgress,
    add_bond,
    affinity_message,
    bond_progress,
    current_milestone,
    next_milestone,
    unlocked_features,
)
from companion_engine.core.companion.enums import (
    Activity,
    PaymentMethod,
    PetColor,
    PetSkin,
)
from companion_engine.core.companion.errors import (
    CompanionEngineError,
    CompanionNotFoundError,
    InsufficientFundsError,
)
from companion_engine.core.companion.leveling import apply_experience
from companion_engine.core.companion.models import Companion, new_companion, now_ms
from companion_engine.core.companion.quests import (
    QuestInstance,
    QuestStatus,
    QuestTemplateId,
    get_template,
    resolve_quest,
    start_quest,
    time_remaining,
)
from companion_engine.core.companion.shop import PET_SHOP
from companion_engine.core.companion.stats import (
    CLEAN_COST_GEMS,
    FEED_COST_GEMS,
    FEED_COST_XP,
    HEAL_COST_GEMS,
    HEAL_COST_XP,
    XP_PER_FEED,
    apply_clean,
    apply_feed,
    apply_heal,
    apply_passive_decay,
    apply_play,
    can_play,
)
from companion_engine.core.event_bus import EventBus, GameEvent
from companion_engine.core.event_types import EventTypes
from companion_engine.services.companion_store import CompanionStore, DbCompanionStore
from companion_engine.services.ledger import DbPlayerLedger, PlayerLedger

logger = logging.getLogger(__name__)

SOURCE = "companion_service"


@dataclass
class ActionResult:
    """Outcome of a user action.

    On failure `companion` is the record as it was before the action and
    `reason` holds the error tag (e.g. "insufficient_funds"). A rejected
    shop purchase carries the current companion, or None.
    """

    success: bool
    companion: Optional[Companion]
    reason: Optional[str] = None
    quest: Optional[QuestInstance] = None


@dataclass
class BondStatus:
    bond_level: int
    milestone: BondMilestone
    progress: BondProgress
    message: str
    next_milestone: Optional[BondMilestone] = None
    unlocked_features: list[str] = field(default_factory=list)


class CompanionService:
    """Companion actions + business logic"""

    def __init__(
        self,
        store: CompanionStore,
        ledger: PlayerLedger,
        event_bus: EventBus,
        clock: Callable[[], int] = now_ms,
        rng: random.Random | None = None,
        history_limit: int | None = None,
        session: Session | None = None,
    ):
        self._store = store
        self._ledger = ledger
        self._bus = event_bus
        self._session = session
        self._clock = clock
        self._rng = rng
        self._history_limit = (
            history_limit if history_limit is not None else settings.QUEST_HISTORY_LIMIT
        )

    @property
    def ledger(self) -> PlayerLedger:
        return self._ledger

    @classmethod
    def for_player(
        cls, db: Session, player_id: str, event_bus: EventBus, **kwargs
    ) -> "CompanionService":
        """Service over the DB-backed store and ledger of one player."""
        return cls(
            DbCompanionStore(db, player_id),
            DbPlayerLedger(db, player_id),
            event_bus,
            session=db,
            **kwargs,
        )

    # === Reads ===

    def get_companion(self, companion_id: str, now: int | None = None) -> Companion:
        """Load with passive decay applied. Raises CompanionNotFoundError."""
        return self._load(companion_id, self._now(now))

    def get_current_companion(self, now: int | None = None) -> Companion | None:
        current_id = self._store.get_current_companion_id()
        if current_id is None:
            return None
        try:
            return self._load(current_id, self._now(now))
        except CompanionNotFoundError:
            logger.warning("Current companion %s no longer exists", current_id)
            return None

    def list_companions(self, now: int | None = None) -> list[Companion]:
        ts = self._now(now)
        return [
            self._load(companion.companion_id, ts)
            for companion in self._store.list_companions()
        ]

    def set_current_companion(self, companion_id: str) -> Companion:
        companion = self._store.load_companion(companion_id)
        if companion is None:
            raise CompanionNotFoundError(f"Companion not found: {companion_id}")
        with self._transaction():
            self._store.set_current_companion_id(companion_id)
        self._emit(
            EventTypes.CURRENT_COMPANION_CHANGED, {"companion_id": companion_id}
        )
        logger.info("Current companion set: %s", companion_id)
        return companion

    # === Creation ===

    def create_companion(self, name: str = "My Pet", now: int | None = None) -> Companion:
        """Hatch a new egg and make it the current companion."""
        companion = new_companion(name, now=self._now(now))
        return self._adopt(companion)

    def buy_companion(
        self,
        shop_id: str,
        name: str | None = None,
        now: int | None = None,
    ) -> ActionResult:
        """Buy a shop companion with player XP. Raises ValueError for an
        unknown shop id."""
        entry = PET_SHOP.get(shop_id)
        if entry is None:
            raise ValueError(f"Unknown shop pet: {shop_id}")

        if not self._ledger.deduct_player_experience(entry.cost):
            logger.info("Shop purchase rejected: %s (insufficient XP)", shop_id)
            return ActionResult(
                False, self.get_current_companion(now), InsufficientFundsError.reason
            )

        companion = new_companion(
            name or entry.name,
            now=self._now(now),
            level=entry.preset_level,
            emoji=entry.emoji,
        )
        self._adopt(companion)
        logger.info("Shop companion bought: %s -> %s", shop_id, companion.companion_id)
        return ActionResult(True, companion)

    def _adopt(self, companion: Companion) -> Companion:
        with self._transaction():
            self._store.save_companion(companion)
            self._store.set_current_companion_id(companion.companion_id)
        self._emit(EventTypes.COMPANION_CREATED, self._payload(companion))
        self._emit(
            EventTypes.CURRENT_COMPANION_CHANGED,
            {"companion_id": companion.companion_id},
        )
        self._emit(EventTypes.COMPANION_UPDATED, self._payload(companion))
        logger.info("Companion created: %s (%s)", companion.companion_id, companion.name)
        return companion

    # === Care actions ===

    def feed(
        self,
        companion_id: str,
        method: PaymentMethod = PaymentMethod.GEMS,
        now: int | None = None,
    ) -> ActionResult:
        ts = self._now(now)
        current = self._load(companion_id, ts)

        paid, xp_spent = self._charge(method, FEED_COST_GEMS, FEED_COST_XP)
        if not paid:
            logger.info("Feed rejected: %s (insufficient funds)", companion_id)
            return ActionResult(False, current, InsufficientFundsError.reason)

        fed = apply_feed(current, ts, xp_spent=xp_spent)
        self._ledger.grant_player_experience(XP_PER_FEED)
        self._commit(current, fed)
        logger.info("Companion fed: %s (method=%s)", companion_id, method.value)
        return ActionResult(True, fed)

    def play(self, companion_id: str, now: int | None = None) -> ActionResult:
        ts = self._now(now)
        current = self._load(companion_id, ts)
        if not can_play(current):
            logger.info("Play rejected: %s (too tired)", companion_id)
            return ActionResult(False, current, "too_tired")

        played = apply_play(current, ts)
        self._commit(current, played)
        return ActionResult(True, played)

    def heal(
        self,
        companion_id: str,
        method: PaymentMethod = PaymentMethod.GEMS,
        now: int | None = None,
    ) -> ActionResult:
        current = self._load(companion_id, self._now(now))

        paid, xp_spent = self._charge(method, HEAL_COST_GEMS, HEAL_COST_XP)
        if not paid:
            logger.info("Heal rejected: %s (insufficient funds)", companion_id)
            return ActionResult(False, current, InsufficientFundsError.reason)

        healed = apply_heal(current, xp_spent=xp_spent)
        self._commit(current, healed)
        return ActionResult(True, healed)

    def clean(self, companion_id: str, now: int | None = None) -> ActionResult:
        current = self._load(companion_id, self._now(now))

        if not self._ledger.deduct_currency(CLEAN_COST_GEMS):
            logger.info("Clean rejected: %s (insufficient funds)", companion_id)
            return ActionResult(False, current, InsufficientFundsError.reason)

        cleaned = apply_clean(current)
        self._commit(current, cleaned)
        return ActionResult(True, cleaned)

    # === Cosmetics ===

    def rename(self, companion_id: str, name: str, now: int | None = None) -> ActionResult:
        current = self._load(companion_id, self._now(now))
        new_name = name.strip()
        if not new_name:
            return ActionResult(False, current, "invalid_name")
        renamed = current.copy()
        renamed.name = new_name
        self._commit(current, renamed)
        return ActionResult(True, renamed)

    def change_color(
        self, companion_id: str, color: PetColor, now: int | None = None
    ) -> ActionResult:
        current = self._load(companion_id, self._now(now))
        updated = current.copy()
        updated.color = PetColor(color)
        self._commit(current, updated)
        return ActionResult(True, updated)

    def change_skin(
        self, companion_id: str, skin: PetSkin, now: int | None = None
    ) -> ActionResult:
        current = self._load(companion_id, self._now(now))
        updated = current.copy()
        updated.skin = PetSkin(skin)
        self._commit(current, updated)
        return ActionResult(True, updated)

    # === Abilities ===

    def list_unlockable_abilities(
        self, companion_id: str, now: int | None = None
    ) -> list[Ability]:
        return list_unlockable(self._load(companion_id, self._now(now)))

    def unlock_ability(
        self,
        companion_id: str,
        ability_id: AbilityId | str,
        now: int | None = None,
    ) -> ActionResult:
        """Gate check, then gem cost, then append. Raises ValueError for an
        unknown ability id."""
        current = self._load(companion_id, self._now(now))
        try:
            ability = check_unlock(current, ability_id)
        except CompanionEngineError as e:
            logger.info("Unlock rejected: %s %s (%s)", companion_id, ability_id, e.reason)
            return ActionResult(False, current, e.reason)

        if not self._ledger.deduct_currency(ability.cost):
            logger.info("Unlock rejected: %s %s (insufficient funds)", companion_id, ability_id)
            return ActionResult(False, current, InsufficientFundsError.reason)

        updated = unlock_ability(current, ability.ability_id)
        self._commit(current, updated)
        self._emit(
            EventTypes.ABILITY_UNLOCKED,
            {"companion_id": companion_id, "ability_id": ability.ability_id.value},
        )
        logger.info("Ability unlocked: %s -> %s", companion_id, ability.ability_id.value)
        return ActionResult(True, updated)

    def ability_bonus(
        self,
        companion_id: str,
        effect: AbilityEffect | str,
        now: int | None = None,
    ) -> float:
        return compute_bonus(self._load(companion_id, self._now(now)), effect)

    def ability_bonuses(
        self, companion_id: str, now: int | None = None
    ) -> dict[AbilityEffect, float]:
        return compute_all_bonuses(self._load(companion_id, self._now(now)))

    # === Bonding ===

    def bond_status(self, companion_id: str, now: int | None = None) -> BondStatus:
        companion = self._load(companion_id, self._now(now))
        return BondStatus(
            bond_level=companion.bond_level,
            milestone=current_milestone(companion.bond_level),
            progress=bond_progress(companion.bond_level),
            message=affinity_message(companion.bond_level, companion.name, self._rng),
            next_milestone=next_milestone(companion.bond_level),
            unlocked_features=unlocked_features(companion.bond_level),
        )

    # === Quests ===

    def start_quest(
        self,
        companion_id: str,
        template_id: QuestTemplateId | str,
        now: int | None = None,
    ) -> ActionResult:
        """Send the companion on a quest. Raises ValueError for an unknown
        template id."""
        ts = self._now(now)
        template = get_template(template_id)
        current = self._load(companion_id, ts)

        if not self._ledger.deduct_currency(template.entry_cost):
            logger.info("Quest start rejected: %s (insufficient funds)", companion_id)
            return ActionResult(False, current, InsufficientFundsError.reason)

        quest = start_quest(template, ts)
        updated = current.copy()
        updated.active_quests.append(quest)
        self._commit(current, updated)
        self._emit(
            EventTypes.PET_QUEST_STARTED,
            {
                "companion_id": companion_id,
                "instance_id": quest.instance_id,
                "template_id": quest.template_id.value,
            },
        )
        logger.info(
            "Quest started: %s -> %s (%s)",
            companion_id,
            quest.template_id.value,
            quest.instance_id,
        )
        return ActionResult(True, updated, quest=quest)

    def quest_time_remaining(
        self, companion_id: str, instance_id: str, now: int | None = None
    ) -> int | None:
        ts = self._now(now)
        companion = self._load(companion_id, ts)
        quest = companion.find_active_quest(instance_id)
        if quest is None:
            return None
        return time_remaining(quest, ts)

    def claim_quest(
        self,
        companion_id: str,
        instance_id: str,
        now: int | None = None,
        rng: random.Random | None = None,
    ) -> ActionResult:
        """Resolve a finished quest and pay out rewards on success.

        success=True means the claim was processed; the quest status on
        the result tells completed from failed.
        """
        ts = self._now(now)
        current = self._load(companion_id, ts)

        quest = current.find_active_quest(instance_id)
        if quest is None:
            resolved = current.find_resolved_quest(instance_id)
            reason = "quest_already_resolved" if resolved else "quest_not_found"
            return ActionResult(False, current, reason, quest=resolved)

        try:
            resolved = resolve_quest(quest, ts, rng or self._rng)
        except CompanionEngineError as e:
            return ActionResult(False, current, e.reason, quest=quest)

        updated = current.copy()
        updated.active_quests = [
            q for q in updated.active_quests if q.instance_id != instance_id
        ]
        updated.quest_history.append(resolved)
        if self._history_limit > 0:
            updated.quest_history = updated.quest_history[-self._history_limit :]

        if resolved.status == QuestStatus.COMPLETED:
            self._ledger.add_currency(resolved.rewards.gems)
            self._ledger.grant_player_experience(resolved.rewards.xp)
            apply_experience(updated, resolved.rewards.pet_xp)
            add_bond(updated, Activity.QUEST_COMPLETE)
            event_type = EventTypes.PET_QUEST_COMPLETED
        else:
            event_type = EventTypes.PET_QUEST_FAILED

        self._commit(current, updated)
        self._emit(
            event_type,
            {
                "companion_id": companion_id,
                "instance_id": instance_id,
                "template_id": resolved.template_id.value,
                "status": resolved.status.value,
            },
        )
        logger.info(
            "Quest resolved: %s %s -> %s",
            companion_id,
            resolved.template_id.value,
            resolved.status.value,
        )
        return ActionResult(True, updated, quest=resolved)

    # === Internals ===

    def _now(self, now: int | None) -> int:
        return now if now is not None else self._clock()

    def _load(self, companion_id: str, now: int) -> Companion:
        """Load and apply lazy decay; a changed record is saved and published."""
        stored = self._store.load_companion(companion_id)
        if stored is None:
            raise CompanionNotFoundError(f"Companion not found: {companion_id}")
        decayed = apply_passive_decay(stored, now)
        if decayed != stored:
            self._commit(stored, decayed)
        return decayed

    def _charge(
        self, method: PaymentMethod, gem_cost: int, xp_cost: int
    ) -> tuple[bool, int]:
        """Check-and-deduct. Returns (paid, player XP spent)."""
        if PaymentMethod(method) == PaymentMethod.XP:
            paid = self._ledger.deduct_player_experience(xp_cost)
            return paid, xp_cost if paid else 0
        return self._ledger.deduct_currency(gem_cost), 0

    @contextmanager
    def _transaction(self) -> Iterator[None]:
        """Commit everything staged on the session, or roll it all back."""
        if self._session is None:
            yield
            return
        try:
            yield
        except Exception:
            self._session.rollback()
            logger.warning("Transaction rolled back", exc_info=True)
            raise
        self._session.commit()

    def _commit(self, before: Companion, after: Companion) -> None:
        """Save and commit, then emit transition events and companion_updated."""
        with self._transaction():
            self._store.save_companion(after)
        payload = self._payload(after)

        if after.times_reset > before.times_reset:
            self._emit(
                EventTypes.COMPANION_RESET, {**payload, "from_level": before.level}
            )
        elif after.level > before.level:
            self._emit(
                EventTypes.COMPANION_LEVELED_UP,
                {**payload, "from_level": before.level, "to_level": after.level},
            )
            if after.stage != before.stage:
                self._emit(
                    EventTypes.COMPANION_EVOLVED,
                    {
                        **payload,
                        "from_stage": before.stage.value,
                        "to_stage": after.stage.value,
                    },
                )

        milestone = current_milestone(after.bond_level)
        if milestone.threshold > current_milestone(before.bond_level).threshold:
            self._emit(
                EventTypes.BOND_MILESTONE_REACHED,
                {**payload, "milestone": milestone.name, "feature": milestone.feature},
            )

        self._emit(EventTypes.COMPANION_UPDATED, payload)

    @staticmethod
    def _payload(companion: Companion) -> dict:
        return {"companion_id": companion.companion_id, "companion": companion}

    def _emit(self, event_type: str, data: dict) -> None:
        self._bus.emit(GameEvent(event_type=event_type, data=data, source=SOURCE))
