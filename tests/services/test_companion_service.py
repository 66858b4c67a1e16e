"""CompanionService integration tests (in-memory SQLite + EventBus)"""

from unittest.mock import patch

import pytest
from sqlalchemy.exc import OperationalError

from companion_engine.core.companion.abilities import AbilityEffect, AbilityId
from companion_engine.core.companion.bonding import has_unlocked_feature
from companion_engine.core.companion.enums import PaymentMethod, PetColor, PetSkin, Stage
from companion_engine.core.companion.errors import CompanionNotFoundError
from companion_engine.core.companion.models import Companion
from companion_engine.core.companion.quests import QuestStatus
from companion_engine.core.event_bus import EventBus, GameEvent
from companion_engine.core.event_types import EventTypes
from companion_engine.services.companion_service import CompanionService
from companion_engine.services.companion_store import DbCompanionStore
from companion_engine.services.ledger import InMemoryLedger, register_player

NOW = 1_700_000_000_000
MINUTE = 60_000
HOUR = 60 * MINUTE


class _FixedRoll:
    def __init__(self, value: float) -> None:
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture()
def events(event_bus: EventBus) -> list[GameEvent]:
    """Every event the service publishes, in order."""
    received: list[GameEvent] = []
    for name, value in vars(EventTypes).items():
        if name.isupper():
            event_bus.subscribe(value, received.append)
    return received


def _types(events: list[GameEvent]) -> list[str]:
    return [e.event_type for e in events]


def _seed(db_session, **fields) -> Companion:
    """Store a companion directly, stamped at NOW so no decay is pending."""
    companion = Companion(
        companion_id=fields.pop("companion_id", "c1"),
        last_fed_at=NOW,
        last_played_at=NOW,
        created_at=NOW,
        decay_anchor_at=NOW,
        **fields,
    )
    DbCompanionStore(db_session, "p1").save_companion(companion)
    return companion


# === Creation & slots ===


class TestCreate:
    def test_create_defaults(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        assert c.name == "Mochi"
        assert (c.hunger, c.happiness, c.health, c.energy, c.cleanliness) == (30, 80, 100, 80, 80)
        assert c.stage == Stage.EGG
        assert c.created_at == NOW

    def test_becomes_current(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        assert service.get_current_companion().companion_id == c.companion_id

    def test_events(self, service: CompanionService, events) -> None:
        service.create_companion("Mochi")
        assert _types(events) == [
            EventTypes.COMPANION_CREATED,
            EventTypes.CURRENT_COMPANION_CHANGED,
            EventTypes.COMPANION_UPDATED,
        ]

    def test_blank_name_falls_back(self, service: CompanionService) -> None:
        assert service.create_companion("   ").name == "My Pet"


class TestSlots:
    def test_no_current(self, service: CompanionService) -> None:
        assert service.get_current_companion() is None

    def test_list_and_switch(self, service: CompanionService) -> None:
        first = service.create_companion("One")
        second = service.create_companion("Two")
        assert {c.companion_id for c in service.list_companions()} == {
            first.companion_id,
            second.companion_id,
        }
        assert service.get_current_companion().companion_id == second.companion_id

        service.set_current_companion(first.companion_id)
        assert service.get_current_companion().companion_id == first.companion_id

    def test_set_unknown(self, service: CompanionService) -> None:
        with pytest.raises(CompanionNotFoundError):
            service.set_current_companion("pet_missing")

    def test_get_unknown(self, service: CompanionService) -> None:
        with pytest.raises(CompanionNotFoundError):
            service.get_companion("pet_missing")

    def test_other_players_companion_hidden(self, service, db_session, event_bus) -> None:
        c = service.create_companion("Mine")
        register_player(db_session, "p2")
        other = CompanionService.for_player(db_session, "p2", event_bus, clock=lambda: NOW)
        with pytest.raises(CompanionNotFoundError):
            other.get_companion(c.companion_id)


class TestShop:
    def test_buy_not_enough_xp(self, service: CompanionService) -> None:
        result = service.buy_companion("dragon")
        assert result.success is False
        assert result.reason == "insufficient_funds"
        assert service.ledger.get_player_experience() == 100
        assert service.list_companions() == []
        assert result.companion is None

    def test_rejected_buy_keeps_current(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        result = service.buy_companion("dragon", name="Smaug")
        assert result.success is False
        assert result.companion.companion_id == c.companion_id
        assert [x.name for x in service.list_companions()] == ["Mochi"]

    def test_buy(self, service: CompanionService) -> None:
        service.ledger.grant_player_experience(200)
        result = service.buy_companion("butterfly", name="Flutter")
        assert result.success is True
        assert result.companion.level == 2
        assert result.companion.name == "Flutter"
        assert result.companion.emoji == "🦋"
        assert service.ledger.get_player_experience() == 50
        assert service.get_current_companion().companion_id == result.companion.companion_id

    def test_unknown_shop_pet(self, service: CompanionService) -> None:
        with pytest.raises(ValueError):
            service.buy_companion("kraken")


# === Care ===


class TestFeed:
    def test_feed_with_gems(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        result = service.feed(c.companion_id)
        assert result.success is True
        assert result.companion.hunger == 0
        assert result.companion.times_feeding == 1
        assert service.ledger.get_currency_balance() == 95
        assert service.ledger.get_player_experience() == 150

    def test_feed_persisted(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        service.feed(c.companion_id)
        assert service.get_companion(c.companion_id).times_feeding == 1

    def test_feed_with_xp(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        result = service.feed(c.companion_id, method=PaymentMethod.XP)
        assert result.success is True
        assert result.companion.total_xp_spent == 30
        assert service.ledger.get_currency_balance() == 100
        assert service.ledger.get_player_experience() == 120

    def test_insufficient_funds_is_noop(self, service, db_session, event_bus, events) -> None:
        register_player(db_session, "poor", gems=3)
        poor = CompanionService.for_player(db_session, "poor", event_bus, clock=lambda: NOW)
        c = poor.create_companion("Mochi")
        events.clear()

        result = poor.feed(c.companion_id)
        assert result.success is False
        assert result.reason == "insufficient_funds"
        assert result.companion == c
        assert poor.get_companion(c.companion_id) == c
        assert poor.ledger.get_currency_balance() == 3
        assert events == []

    def test_five_feeds(self, service: CompanionService, events) -> None:
        c = service.create_companion("Mochi")
        for _ in range(5):
            result = service.feed(c.companion_id)
        pet = result.companion
        assert pet.times_feeding == 5
        assert pet.hunger == 0
        assert pet.level == 3
        assert pet.stage == Stage.TEEN
        assert _types(events).count(EventTypes.COMPANION_LEVELED_UP) == 2
        assert _types(events).count(EventTypes.COMPANION_EVOLVED) == 2
        assert service.ledger.get_currency_balance() == 75


class TestOtherCare:
    def test_play_until_tired(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        energies = [service.play(c.companion_id).companion.energy for _ in range(3)]
        assert energies == [55, 30, 5]

        result = service.play(c.companion_id)
        assert result.success is False
        assert result.reason == "too_tired"
        assert result.companion.energy == 5

    def test_play_is_free(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        service.play(c.companion_id)
        assert service.ledger.get_currency_balance() == 100

    def test_heal(self, service: CompanionService, db_session) -> None:
        _seed(db_session, health=20)
        result = service.heal("c1")
        assert result.companion.health == 70
        assert service.ledger.get_currency_balance() == 90

    def test_heal_with_xp(self, service: CompanionService, db_session) -> None:
        _seed(db_session, health=20)
        service.heal("c1", method=PaymentMethod.XP)
        assert service.ledger.get_player_experience() == 50

    def test_clean(self, service: CompanionService, db_session) -> None:
        _seed(db_session, cleanliness=5)
        result = service.clean("c1")
        assert result.companion.cleanliness == 100
        assert service.ledger.get_currency_balance() == 97


class TestCosmetics:
    def test_rename(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        assert service.rename(c.companion_id, "  Taro ").companion.name == "Taro"

    def test_rename_blank_rejected(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        result = service.rename(c.companion_id, "   ")
        assert result.success is False
        assert result.reason == "invalid_name"
        assert service.get_companion(c.companion_id).name == "Mochi"

    def test_color_and_skin(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        service.change_color(c.companion_id, PetColor.COSMIC)
        service.change_skin(c.companion_id, PetSkin.SHINY)
        stored = service.get_companion(c.companion_id)
        assert stored.color == PetColor.COSMIC
        assert stored.skin == PetSkin.SHINY


# === Decay on read ===


class TestDecayOnRead:
    def test_decay_persisted_once(self, service: CompanionService, events) -> None:
        c = service.create_companion("Mochi")
        events.clear()

        first = service.get_companion(c.companion_id, now=NOW + HOUR)
        assert first.hunger == 36
        assert _types(events) == [EventTypes.COMPANION_UPDATED]

        again = service.get_companion(c.companion_id, now=NOW + HOUR)
        assert again == first
        assert len(events) == 1

    def test_action_after_absence_sees_decay(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        result = service.clean(c.companion_id, now=NOW + HOUR)
        assert result.companion.hunger == 36
        assert result.companion.cleanliness == 100

    def test_starvation_resets_to_egg(self, service, db_session, events) -> None:
        _seed(db_session, level=4, experience=600, hunger=95, health=1, cleanliness=5)
        c = service.get_companion("c1", now=NOW + 2 * HOUR)
        assert c.level == 1
        assert c.experience == 0
        assert c.health == 50
        assert c.stage == Stage.EGG
        assert EventTypes.COMPANION_RESET in _types(events)
        assert EventTypes.COMPANION_EVOLVED not in _types(events)


# === Abilities ===


class TestAbilities:
    def test_unlockable_list(self, service: CompanionService, db_session) -> None:
        _seed(db_session, level=2)
        ids = {a.ability_id for a in service.list_unlockable_abilities("c1")}
        assert ids == {AbilityId.XP_BOOST, AbilityId.SHIELD_WALL}

    def test_unlock(self, service: CompanionService, db_session, events) -> None:
        _seed(db_session, level=2)
        result = service.unlock_ability("c1", AbilityId.XP_BOOST)
        assert result.success is True
        assert result.companion.unlocked_abilities == ["xp-boost"]
        assert service.ledger.get_currency_balance() == 90
        assert EventTypes.ABILITY_UNLOCKED in _types(events)
        assert service.get_companion("c1").unlocked_abilities == ["xp-boost"]

    def test_duplicate_rejected_without_charge(self, service, db_session) -> None:
        _seed(db_session, level=2)
        service.unlock_ability("c1", "xp-boost")
        result = service.unlock_ability("c1", "xp-boost")
        assert result.success is False
        assert result.reason == "already_unlocked"
        assert service.ledger.get_currency_balance() == 90

    def test_prerequisites(self, service: CompanionService, db_session) -> None:
        _seed(db_session, level=4)
        result = service.unlock_ability("c1", AbilityId.XP_BOOST)
        assert result.success is False
        assert result.reason == "prerequisites_not_met"
        assert service.ledger.get_currency_balance() == 100

    def test_insufficient_funds(self, service: CompanionService, db_session) -> None:
        _seed(db_session, level=6)
        service.ledger.deduct_currency(95)
        result = service.unlock_ability("c1", AbilityId.PET_TELEPATHY)
        assert result.reason == "insufficient_funds"
        assert service.get_companion("c1").unlocked_abilities == []

    def test_unknown_ability(self, service: CompanionService, db_session) -> None:
        _seed(db_session, level=2)
        with pytest.raises(ValueError):
            service.unlock_ability("c1", "laser-eyes")

    def test_bonus(self, service: CompanionService, db_session) -> None:
        _seed(db_session, level=6, bond_level=100, unlocked_abilities=["xp-boost"])
        assert service.ability_bonus("c1", AbilityEffect.XP_BOOST) == pytest.approx(0.1875)
        assert service.ability_bonuses("c1")[AbilityEffect.GEM_MAGNET] == 0.0


# === Bond ===


class TestBond:
    def test_status(self, service: CompanionService, db_session) -> None:
        _seed(db_session, bond_level=30)
        status = service.bond_status("c1")
        assert status.milestone.name == "Acquaintance"
        assert status.progress.percent == 50
        assert status.message
        assert status.next_milestone.name == "Friend"
        assert status.unlocked_features == ["basic-care", "play-interaction"]
        assert has_unlocked_feature(status.bond_level, "play-interaction")
        assert not has_unlocked_feature(status.bond_level, "quest-system")

    def test_milestone_event(self, service: CompanionService, db_session, events) -> None:
        _seed(db_session, bond_level=15)
        service.play("c1")
        assert EventTypes.BOND_MILESTONE_REACHED in _types(events)
        reached = [e for e in events if e.event_type == EventTypes.BOND_MILESTONE_REACHED]
        assert reached[0].data["milestone"] == "Acquaintance"


# === Quests ===


class TestQuests:
    def test_start(self, service: CompanionService, events) -> None:
        c = service.create_companion("Mochi")
        result = service.start_quest(c.companion_id, "forest-gather")
        assert result.success is True
        assert result.quest.status == QuestStatus.ACTIVE
        assert len(result.companion.active_quests) == 1
        assert EventTypes.PET_QUEST_STARTED in _types(events)
        assert service.quest_time_remaining(c.companion_id, result.quest.instance_id) == HOUR

    def test_entry_cost(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        service.start_quest(c.companion_id, "shadow-mission")
        assert service.ledger.get_currency_balance() == 75

    def test_entry_cost_rejected(self, service, db_session, event_bus) -> None:
        register_player(db_session, "poor", gems=5)
        poor = CompanionService.for_player(db_session, "poor", event_bus, clock=lambda: NOW)
        c = poor.create_companion("Mochi")
        result = poor.start_quest(c.companion_id, "dragon-duel")
        assert result.reason == "insufficient_funds"
        assert poor.get_companion(c.companion_id).active_quests == []

    def test_unknown_template(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        with pytest.raises(ValueError):
            service.start_quest(c.companion_id, "moon-landing")

    def test_claim_too_early(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        quest = service.start_quest(c.companion_id, "forest-gather").quest
        result = service.claim_quest(c.companion_id, quest.instance_id, now=NOW + 30 * MINUTE)
        assert result.success is False
        assert result.reason == "quest_not_ready"

    def test_claim_success_pays_out(self, service: CompanionService, events) -> None:
        c = service.create_companion("Mochi")
        quest = service.start_quest(c.companion_id, "forest-gather").quest

        result = service.claim_quest(
            c.companion_id, quest.instance_id, now=NOW + HOUR, rng=_FixedRoll(0.99)
        )
        assert result.success is True
        assert result.quest.status == QuestStatus.COMPLETED
        assert result.quest.completed_at == NOW + HOUR
        assert result.companion.active_quests == []
        assert [q.instance_id for q in result.companion.quest_history] == [quest.instance_id]
        assert result.companion.experience == 25
        assert result.companion.bond_level == 15
        assert service.ledger.get_currency_balance() == 115
        assert service.ledger.get_player_experience() == 150
        assert EventTypes.PET_QUEST_COMPLETED in _types(events)

    def test_claim_failure_pays_nothing(self, service: CompanionService, events) -> None:
        c = service.create_companion("Mochi")
        quest = service.start_quest(c.companion_id, "dragon-duel").quest

        with patch("companion_engine.core.companion.quests.random.random", return_value=0.1):
            result = service.claim_quest(c.companion_id, quest.instance_id, now=NOW + 8 * HOUR)
        assert result.success is True
        assert result.quest.status == QuestStatus.FAILED
        assert result.companion.experience == 0
        assert result.companion.bond_level == 0
        assert service.ledger.get_currency_balance() == 90
        assert EventTypes.PET_QUEST_FAILED in _types(events)

    def test_claim_twice(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        quest = service.start_quest(c.companion_id, "food-run").quest
        service.claim_quest(c.companion_id, quest.instance_id, now=NOW + HOUR, rng=_FixedRoll(0.5))

        result = service.claim_quest(c.companion_id, quest.instance_id, now=NOW + HOUR)
        assert result.success is False
        assert result.reason == "quest_already_resolved"
        assert service.ledger.get_currency_balance() == 110

    def test_claim_unknown(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        assert service.claim_quest(c.companion_id, "nope").reason == "quest_not_found"

    def test_concurrent_quests(self, service: CompanionService) -> None:
        c = service.create_companion("Mochi")
        for template in ("food-run", "forest-gather", "spirit-walk"):
            service.start_quest(c.companion_id, template)
        assert len(service.get_companion(c.companion_id).active_quests) == 3

    def test_history_trimmed(self, db_session, event_bus) -> None:
        register_player(db_session, "p1", gems=100)
        service = CompanionService.for_player(
            db_session, "p1", event_bus, clock=lambda: NOW, history_limit=2
        )
        c = service.create_companion("Mochi")
        ids = []
        for i in range(3):
            start = NOW + i * HOUR
            quest = service.start_quest(c.companion_id, "food-run", now=start).quest
            service.claim_quest(c.companion_id, quest.instance_id, now=start + HOUR, rng=_FixedRoll(0.5))
            ids.append(quest.instance_id)
        history = service.get_companion(c.companion_id, now=NOW + 3 * HOUR).quest_history
        assert [q.instance_id for q in history] == ids[1:]


def _disk_error() -> OperationalError:
    return OperationalError("UPDATE companions", {}, Exception("disk I/O error"))


class TestTransactions:
    def test_action_is_committed(self, service: CompanionService, db_session) -> None:
        c = service.create_companion("Mochi")
        service.feed(c.companion_id)
        db_session.rollback()
        assert service.ledger.get_currency_balance() == 95
        assert service.get_companion(c.companion_id).hunger == 0

    def test_failed_save_keeps_gems(self, service, db_session, monkeypatch) -> None:
        c = service.create_companion("Mochi")

        def fail(companion: Companion) -> None:
            raise _disk_error()

        monkeypatch.setattr(service._store, "save_companion", fail)
        with pytest.raises(OperationalError):
            service.feed(c.companion_id)
        db_session.rollback()

        assert service.ledger.get_currency_balance() == 100
        assert service.ledger.get_player_experience() == 100
        assert service.get_companion(c.companion_id).hunger == 30

    def test_failed_save_keeps_quest_rewards_unpaid(
        self, service, db_session, monkeypatch
    ) -> None:
        c = service.create_companion("Mochi")
        quest = service.start_quest(c.companion_id, "forest-gather").quest
        save = service._store.save_companion

        def fail_on_claim(companion: Companion) -> None:
            if companion.quest_history:
                raise _disk_error()
            save(companion)

        monkeypatch.setattr(service._store, "save_companion", fail_on_claim)
        with pytest.raises(OperationalError):
            service.claim_quest(
                c.companion_id, quest.instance_id, now=NOW + HOUR, rng=_FixedRoll(0.99)
            )
        db_session.rollback()

        assert service.ledger.get_currency_balance() == 100
        assert service.ledger.get_player_experience() == 100
        stored = service.get_companion(c.companion_id, now=NOW + HOUR)
        assert [q.instance_id for q in stored.active_quests] == [quest.instance_id]
        assert stored.quest_history == []

    def test_no_events_on_failed_save(
        self, service, db_session, monkeypatch, events
    ) -> None:
        c = service.create_companion("Mochi")
        events.clear()

        def fail(companion: Companion) -> None:
            raise _disk_error()

        monkeypatch.setattr(service._store, "save_companion", fail)
        with pytest.raises(OperationalError):
            service.clean(c.companion_id)
        assert events == []


class TestInMemoryLedger:
    def test_service_over_memory_ledger(self, db_session, event_bus) -> None:
        register_player(db_session, "p1")
        ledger = InMemoryLedger(gems=5)
        service = CompanionService(
            DbCompanionStore(db_session, "p1"), ledger, event_bus, clock=lambda: NOW
        )
        c = service.create_companion("Mochi")
        assert service.feed(c.companion_id).success is True
        assert service.feed(c.companion_id).reason == "insufficient_funds"
        assert ledger.get_currency_balance() == 0
