"""Player ledger: currency (gems) and player XP

The engine only reaches the player's balances through this interface.
Deductions are check-and-deduct: they either succeed in full or leave
the balance untouched and return False.
"""

import logging
from abc import ABC, abstractmethod

from sqlalchemy.orm import Session

from companion_engine.db.models import PlayerModel

logger = logging.getLogger(__name__)


class PlayerLedger(ABC):
    """Abstract player ledger."""

    @abstractmethod
    def get_currency_balance(self) -> int: ...

    @abstractmethod
    def add_currency(self, amount: int) -> None: ...

    @abstractmethod
    def deduct_currency(self, amount: int) -> bool:
        """Remove `amount` gems. False (and no change) when short."""
        ...

    @abstractmethod
    def get_player_experience(self) -> int: ...

    @abstractmethod
    def grant_player_experience(self, amount: int) -> None: ...

    @abstractmethod
    def deduct_player_experience(self, amount: int) -> bool:
        """Spend player XP. False (and no change) when short."""
        ...


class InMemoryLedger(PlayerLedger):
    """Process-local ledger for tests and offline use."""

    def __init__(self, gems: int = 0, experience: int = 0) -> None:
        self._gems = gems
        self._experience = experience

    def get_currency_balance(self) -> int:
        return self._gems

    def add_currency(self, amount: int) -> None:
        self._gems += amount

    def deduct_currency(self, amount: int) -> bool:
        if amount < 0 or self._gems < amount:
            return False
        self._gems -= amount
        return True

    def get_player_experience(self) -> int:
        return self._experience

    def grant_player_experience(self, amount: int) -> None:
        self._experience += max(0, amount)

    def deduct_player_experience(self, amount: int) -> bool:
        if amount < 0 or self._experience < amount:
            return False
        self._experience -= amount
        return True


class DbPlayerLedger(PlayerLedger):
    """Ledger backed by the players table.

    Changes are flushed to the session, never committed. The caller owns
    the transaction.
    """

    def __init__(self, db: Session, player_id: str):
        self._db = db
        self._player_id = player_id

    def _player(self) -> PlayerModel:
        player = self._db.get(PlayerModel, self._player_id)
        if player is None:
            raise ValueError(f"Player not found: {self._player_id}")
        return player

    def get_currency_balance(self) -> int:
        return self._player().gems

    def add_currency(self, amount: int) -> None:
        player = self._player()
        player.gems += amount
        self._db.flush()
        logger.debug("Ledger %s: gems %+d -> %d", self._player_id, amount, player.gems)

    def deduct_currency(self, amount: int) -> bool:
        player = self._player()
        if amount < 0 or player.gems < amount:
            logger.info(
                "Ledger %s: insufficient gems (have=%d, need=%d)",
                self._player_id,
                player.gems,
                amount,
            )
            return False
        player.gems -= amount
        self._db.flush()
        return True

    def get_player_experience(self) -> int:
        return self._player().experience

    def grant_player_experience(self, amount: int) -> None:
        player = self._player()
        player.experience += max(0, amount)
        self._db.flush()

    def deduct_player_experience(self, amount: int) -> bool:
        player = self._player()
        if amount < 0 or player.experience < amount:
            logger.info(
                "Ledger %s: insufficient player XP (have=%d, need=%d)",
                self._player_id,
                player.experience,
                amount,
            )
            return False
        player.experience -= amount
        self._db.flush()
        return True


def register_player(
    db: Session,
    player_id: str,
    gems: int = 0,
    experience: int = 0,
) -> PlayerModel:
    """Create the player row if missing. Existing rows are returned as is."""
    player = db.get(PlayerModel, player_id)
    if player is not None:
        return player
    player = PlayerModel(player_id=player_id, gems=gems, experience=experience)
    db.add(player)
    db.commit()
    logger.info("Player registered: %s (gems=%d)", player_id, gems)
    return player
