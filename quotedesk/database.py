import logging

from sqlalchemy.ext.asyncio import AsyncSession, create_async_engine
from sqlalchemy.orm import sessionmaker
from sqlmodel import SQLModel

from quotedesk.config import settings

logger = logging.getLogger(__name__)

try:
    # Moteur asynchrone (SQLite par défaut, toute URL async SQLAlchemy acceptée)
    engine = create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO_LOG,
        future=True,
    )

    AsyncSessionLocal = sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )
    logger.info("Moteur et Session Factory SQLAlchemy Async configurés.")

except Exception as e:
    logger.critical(f"Erreur lors de la configuration de SQLAlchemy Async: {e}", exc_info=True)
    engine = None
    AsyncSessionLocal = None


async def create_tables():
    """Crée toutes les tables SQLModel (table des devis)."""
    # Enregistrer le modèle de table dans les métadonnées avant create_all
    from quotedesk.quotations import repositories  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
