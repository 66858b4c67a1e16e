"""SQLAlchemy declarative base and ORM models."""

from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Integer, String, BigInteger
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship
from sqlalchemy.types import JSON


class Base(DeclarativeBase):
    """Base class for all database models."""


class PlayerModel(Base):
    """Player ledger row: currency, player XP and the current companion slot."""

    __tablename__ = "players"

    player_id: Mapped[str] = mapped_column(String, primary_key=True)
    gems: Mapped[int] = mapped_column(Integer, default=0)
    experience: Mapped[int] = mapped_column(Integer, default=0)
    current_companion_id: Mapped[str | None] = mapped_column(String, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    companions: Mapped[list["CompanionModel"]] = relationship(
        "CompanionModel",
        back_populates="player",
        cascade="all, delete-orphan",
    )


class CompanionModel(Base):
    """One row per companion. Quests and abilities are JSON columns."""

    __tablename__ = "companions"

    companion_id: Mapped[str] = mapped_column(String, primary_key=True)
    player_id: Mapped[str] = mapped_column(
        String, ForeignKey("players.player_id", ondelete="CASCADE"), nullable=False
    )
    name: Mapped[str] = mapped_column(String, nullable=False)

    level: Mapped[int] = mapped_column(Integer, default=1)
    experience: Mapped[int] = mapped_column(Integer, default=0)

    hunger: Mapped[int] = mapped_column(Integer, default=30)
    happiness: Mapped[int] = mapped_column(Integer, default=80)
    health: Mapped[int] = mapped_column(Integer, default=100)
    energy: Mapped[int] = mapped_column(Integer, default=80)
    cleanliness: Mapped[int] = mapped_column(Integer, default=80)

    bond_level: Mapped[int] = mapped_column(Integer, default=0)
    affinity: Mapped[int] = mapped_column(Integer, default=0)

    unlocked_abilities: Mapped[list] = mapped_column(JSON, default=list)
    active_quests: Mapped[list] = mapped_column(JSON, default=list)
    quest_history: Mapped[list] = mapped_column(JSON, default=list)

    total_interactions: Mapped[int] = mapped_column(Integer, default=0)
    times_feeding: Mapped[int] = mapped_column(Integer, default=0)
    total_xp_spent: Mapped[int] = mapped_column(Integer, default=0)
    times_reset: Mapped[int] = mapped_column(Integer, default=0)

    # ms since epoch
    last_fed_at: Mapped[int] = mapped_column(BigInteger, default=0)
    last_played_at: Mapped[int] = mapped_column(BigInteger, default=0)
    created_at: Mapped[int] = mapped_column(BigInteger, default=0)
    decay_anchor_at: Mapped[int] = mapped_column(BigInteger, default=0)

    color: Mapped[str] = mapped_column(String, default="default")
    skin: Mapped[str] = mapped_column(String, default="default")
    favorite_food: Mapped[str] = mapped_column(String, default="treats")
    emoji: Mapped[str | None] = mapped_column(String, nullable=True)

    # display cache, re-derived on every save and ignored on load
    stage: Mapped[str] = mapped_column(String, default="egg")
    mood: Mapped[str] = mapped_column(String, default="happy")

    player: Mapped["PlayerModel"] = relationship(
        "PlayerModel", back_populates="companions"
    )
