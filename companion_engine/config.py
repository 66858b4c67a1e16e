"""Application configuration loaded from environment variables and .env file."""

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings.

    Values are loaded from environment variables first,
    then from a .env file in the project root as fallback.
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
    )

    DATABASE_URL: str = "sqlite:///./companions.db"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # Player ledger defaults for newly registered players
    STARTING_GEMS: int = 50
    STARTING_PLAYER_XP: int = 0

    # Resolved quests kept on a companion for display
    QUEST_HISTORY_LIMIT: int = 10


settings = Settings()
