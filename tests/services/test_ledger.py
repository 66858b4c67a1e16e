"""Player ledger implementations"""

import pytest

from companion_engine.services.ledger import DbPlayerLedger, InMemoryLedger, register_player


class TestInMemoryLedger:
    def test_deduct(self) -> None:
        ledger = InMemoryLedger(gems=10)
        assert ledger.deduct_currency(4) is True
        assert ledger.get_currency_balance() == 6

    def test_deduct_insufficient_leaves_balance(self) -> None:
        ledger = InMemoryLedger(gems=3)
        assert ledger.deduct_currency(5) is False
        assert ledger.get_currency_balance() == 3

    def test_negative_deduct_rejected(self) -> None:
        ledger = InMemoryLedger(gems=3)
        assert ledger.deduct_currency(-1) is False
        assert ledger.get_currency_balance() == 3

    def test_experience(self) -> None:
        ledger = InMemoryLedger(experience=40)
        ledger.grant_player_experience(10)
        assert ledger.deduct_player_experience(60) is False
        assert ledger.deduct_player_experience(50) is True
        assert ledger.get_player_experience() == 0


class TestDbPlayerLedger:
    def test_register_is_idempotent(self, db_session) -> None:
        register_player(db_session, "p1", gems=50)
        player = register_player(db_session, "p1", gems=999)
        assert player.gems == 50

    def test_round_trip(self, db_session) -> None:
        register_player(db_session, "p1", gems=20, experience=5)
        ledger = DbPlayerLedger(db_session, "p1")
        ledger.add_currency(5)
        assert ledger.deduct_currency(25) is True
        assert ledger.deduct_currency(1) is False
        ledger.grant_player_experience(30)
        assert ledger.deduct_player_experience(35) is True
        assert ledger.get_currency_balance() == 0
        assert ledger.get_player_experience() == 0

    def test_missing_player(self, db_session) -> None:
        with pytest.raises(ValueError):
            DbPlayerLedger(db_session, "ghost").get_currency_balance()

    def test_changes_left_to_caller(self, db_session) -> None:
        register_player(db_session, "p1", gems=20)
        ledger = DbPlayerLedger(db_session, "p1")
        assert ledger.deduct_currency(5) is True
        assert ledger.get_currency_balance() == 15
        db_session.rollback()
        assert ledger.get_currency_balance() == 20
