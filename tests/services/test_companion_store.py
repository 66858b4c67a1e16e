"""DbCompanionStore: ORM <-> Core conversion"""

import pytest

from companion_engine.core.companion.enums import PetColor
from companion_engine.core.companion.models import Companion
from companion_engine.core.companion.quests import get_template, start_quest
from companion_engine.db.models import CompanionModel
from companion_engine.services.companion_store import DbCompanionStore
from companion_engine.services.ledger import register_player

NOW = 1_700_000_000_000


@pytest.fixture()
def store(db_session) -> DbCompanionStore:
    register_player(db_session, "p1")
    return DbCompanionStore(db_session, "p1")


class TestDbCompanionStore:
    def test_missing(self, store: DbCompanionStore) -> None:
        assert store.load_companion("nope") is None

    def test_round_trip(self, store: DbCompanionStore) -> None:
        companion = Companion(
            companion_id="c1",
            name="Mochi",
            level=3,
            experience=300,
            bond_level=42,
            unlocked_abilities=["xp-boost"],
            active_quests=[start_quest(get_template("ocean-quest"), NOW)],
            color=PetColor.OCEAN,
            emoji="🐉",
            created_at=NOW,
        )
        store.save_companion(companion)
        assert store.load_companion("c1") == companion

    def test_update_in_place(self, store: DbCompanionStore) -> None:
        store.save_companion(Companion(companion_id="c1", name="Mochi"))
        companion = store.load_companion("c1")
        companion.name = "Taro"
        companion.active_quests.append(start_quest(get_template("food-run"), NOW))
        store.save_companion(companion)

        loaded = store.load_companion("c1")
        assert loaded.name == "Taro"
        assert len(loaded.active_quests) == 1

    def test_display_cache_columns(self, store: DbCompanionStore, db_session) -> None:
        store.save_companion(Companion(companion_id="c1", level=5, hunger=10, happiness=95))
        row = db_session.get(CompanionModel, "c1")
        assert row.stage == "legendary"
        assert row.mood == "excited"

    def test_scoped_to_player(self, store: DbCompanionStore, db_session) -> None:
        store.save_companion(Companion(companion_id="c1"))
        register_player(db_session, "p2")
        other = DbCompanionStore(db_session, "p2")
        assert other.load_companion("c1") is None
        assert other.list_companions() == []

    def test_current_slot(self, store: DbCompanionStore) -> None:
        assert store.get_current_companion_id() is None
        store.save_companion(Companion(companion_id="c1"))
        store.set_current_companion_id("c1")
        assert store.get_current_companion_id() == "c1"

    def test_save_is_not_committed(self, store: DbCompanionStore, db_session) -> None:
        store.save_companion(Companion(companion_id="c1"))
        db_session.rollback()
        assert store.load_companion("c1") is None
