"""
Application configuration

Values are read from the environment (prefix ``BUTCHER_``) and from a local
``.env`` file.
"""
import logging
from typing import List, Optional

from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Configuration of the order book"""

    # API Settings
    API_TITLE: str = "Boucherie - Carnet de commandes"
    API_VERSION: str = "1.0.0"

    # Database (":memory:" keeps everything in process)
    DATABASE_PATH: str = "butcher_shop.sqlite3"
    SEED_DEMO_DATA: bool = False

    # Logging
    LOG_LEVEL: str = "INFO"

    # CORS, comma separated
    ALLOWED_ORIGINS: Optional[str] = "http://localhost:5173,http://localhost:3000"

    model_config = SettingsConfigDict(
        env_prefix="BUTCHER_",
        env_file=".env",
        case_sensitive=True,
        extra="ignore",
    )

    def get_allowed_origins(self) -> List[str]:
        """Parse ALLOWED_ORIGINS into a list"""
        if not self.ALLOWED_ORIGINS:
            return []
        return [origin.strip() for origin in self.ALLOWED_ORIGINS.split(",") if origin.strip()]


def configure_logging(settings: Settings) -> None:
    logging.basicConfig(
        level=getattr(logging, settings.LOG_LEVEL.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )


def get_settings() -> Settings:
    return Settings()
