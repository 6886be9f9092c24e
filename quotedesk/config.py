import logging
from typing import List

from dotenv import load_dotenv
from pydantic_settings import BaseSettings

logger = logging.getLogger(__name__)

# Charger les variables d'environnement AVANT de définir la classe Settings
load_dotenv()


class Settings(BaseSettings):
    """Configuration de l'application (surchargeable par variables d'environnement)."""

    APP_NAME: str = "QuoteDesk API"
    API_V1_PREFIX: str = "/api/v1"
    LOG_LEVEL: str = "INFO"

    # --- Stockage des devis ---
    STORE_BACKEND: str = "json"  # "json" (fichier plat), "sql" (table de documents) ou "http" (service distant)
    JSON_DB_PATH: str = "db.json"
    DATABASE_URL: str = "sqlite+aiosqlite:///./quotedesk.db"
    DB_ECHO_LOG: bool = False
    # Préfixe de l'API du service distant, ex: http://localhost:8000/api/v1
    STORE_BASE_URL: str = "http://localhost:8000/api/v1"

    # Délai max d'un appel au stockage, en secondes
    STORE_TIMEOUT_SECONDS: float = 10.0
    # Intervalle de rafraîchissement des abonnements par interrogation (backend HTTP)
    SUBSCRIPTION_POLL_INTERVAL: float = 5.0

    # --- Partitionnement par propriétaire ---
    DEFAULT_OWNER_SCOPE: str = "default"
    OWNER_SCOPE_HEADER: str = "X-Owner-Scope"

    # --- CORS ---
    CORS_ORIGINS: List[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
        "http://127.0.0.1:5173",
    ]

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"


settings = Settings()

if settings.STORE_BACKEND not in ("json", "sql", "http"):
    logger.warning(f"STORE_BACKEND '{settings.STORE_BACKEND}' inconnu, utilisation du fichier JSON.")

logger.info(f"Configuration chargée: backend={settings.STORE_BACKEND}, timeout={settings.STORE_TIMEOUT_SECONDS}s")


def get_settings() -> Settings:
    """Dépendance FastAPI fournissant la configuration."""
    return settings
