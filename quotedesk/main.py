"""
Module principal de l'application FastAPI QuoteDesk.

Configure l'instance FastAPI, le middleware CORS et inclut les routeurs des
devis, des brouillons et du tableau de bord. Avec le backend SQL, les tables
sont créées au démarrage.
"""
import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from quotedesk.config import settings
from quotedesk.dashboard.router import router as dashboard_router
from quotedesk.database import create_tables
from quotedesk.quotations.dependencies import close_http_repositories
from quotedesk.quotations.draft_router import router as draft_router
from quotedesk.quotations.router import router as quotation_router

# Configurer le logging
logging.basicConfig(
    level=settings.LOG_LEVEL.upper(),
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.STORE_BACKEND == "sql":
        logger.info("Création des tables SQL si nécessaire...")
        await create_tables()
    yield
    await close_http_repositories()


app = FastAPI(
    title=settings.APP_NAME,
    description="API de gestion des devis événementiels: brouillons, totaux, PDF et tableau de bord.",
    version="1.0.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
    expose_headers=["Content-Disposition"],
)

# ======================================================
# Inclure les routeurs
# ======================================================
app.include_router(quotation_router, prefix=settings.API_V1_PREFIX)
app.include_router(draft_router, prefix=settings.API_V1_PREFIX)
app.include_router(dashboard_router, prefix=settings.API_V1_PREFIX)


@app.get("/", tags=["Root"])
async def read_root():
    return {"message": f"Bienvenue sur {settings.APP_NAME}"}
