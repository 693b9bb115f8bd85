"""
main.py - FastAPI application for the Transfermarkt catalog scraper.

Provides REST API endpoints:
- GET /health: System status check
- GET /countries: Stored countries with their competitions
- POST /countries/discover: Grow the country catalog
- POST /competitions/reconcile: Resolve the country of an unknown competition
- GET /clubs/{competition_id}: Clubs of a competition
- GET /players/{club_id}: Players of a club
- POST /player-stats: Harvest a player's stats
- GET /player-stats/{player_id}: Stored stats of a player
- DELETE /catalog: Remove every stored record

Key Features:
- One browser session opened at startup (lifespan handler) and shared by every request
- Scraper errors mapped to HTTP status codes with the failing url and selector
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import List, Optional, Any

from fastapi import FastAPI, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from playwright.async_api import Error as PlaywrightError
from sqlalchemy.orm import Session, sessionmaker

from . import models, schemas
from .database import engine, get_db, SessionLocal
from .repositories import CountryRepository, ClubRepository, PlayerStatRepository
from scraper.config_loader import get_scraper_settings
from scraper.exceptions import (
    ScraperError,
    NavigationFailure,
    ReconciliationNotFound,
    InterceptorCorrelationFailure,
)
from scraper.pipeline import CatalogPipeline, clean_database
from scraper.session import ScraperSession

# Configure logging
logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)


# =============================================================================
# APPLICATION STATE (Browser session opened once at startup)
# =============================================================================

class AppState:
    """Global application state for stateful resources."""
    session: Any = None  # ScraperSession instance
    pipeline: Optional[CatalogPipeline] = None


app_state = AppState()


# =============================================================================
# LIFESPAN HANDLER
# =============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    On startup: create tables and open the browser session.
    On shutdown: close the session.

    The API still serves stored data when the browser cannot be launched.
    """
    logger.info("Starting catalog scraper API...")
    models.Base.metadata.create_all(bind=engine)

    session = ScraperSession(get_scraper_settings())
    try:
        await session.open()
        app_state.session = session
        app_state.pipeline = CatalogPipeline(session, SessionLocal)
        logger.info("Browser session ready")
    except PlaywrightError as e:
        logger.error(f"Failed to open the browser session: {e}")
        logger.warning("API will only serve stored data")
        await session.close()

    yield  # Application runs here

    logger.info("Shutting down catalog scraper API...")
    if app_state.session is not None:
        await app_state.session.close()
    app_state.session = None
    app_state.pipeline = None


# =============================================================================
# FASTAPI APP INITIALIZATION
# =============================================================================

app = FastAPI(
    title="Transfermarkt Catalog Scraper API",
    description="Discover countries and competitions, reconcile unknown competitions and harvest player stats",
    version="1.0.0",
    lifespan=lifespan
)


# =============================================================================
# DEPENDENCIES
# =============================================================================

def get_session_factory() -> sessionmaker:
    return SessionLocal


def get_country_repository(session_factory: sessionmaker = Depends(get_session_factory)) -> CountryRepository:
    return CountryRepository(session_factory)


def get_stat_repository(session_factory: sessionmaker = Depends(get_session_factory)) -> PlayerStatRepository:
    return PlayerStatRepository(session_factory)


def get_pipeline() -> CatalogPipeline:
    if app_state.pipeline is None:
        raise HTTPException(status_code=503, detail="Browser session is not available")
    return app_state.pipeline


# =============================================================================
# ERROR MAPPING
# =============================================================================

def _error_response(status_code: int, error: ScraperError, **extra) -> JSONResponse:
    detail = schemas.ErrorDetail(message=error.message, url=error.url, context=error.context, extra=extra)
    return JSONResponse(status_code=status_code, content={"detail": detail.model_dump()})


@app.exception_handler(NavigationFailure)
async def navigation_failure_handler(request: Request, exc: NavigationFailure):
    return _error_response(502, exc)


@app.exception_handler(ReconciliationNotFound)
async def reconciliation_not_found_handler(request: Request, exc: ReconciliationNotFound):
    return _error_response(404, exc, competition_id=exc.competition_id)


@app.exception_handler(InterceptorCorrelationFailure)
async def correlation_failure_handler(request: Request, exc: InterceptorCorrelationFailure):
    return _error_response(503, exc, index=exc.index)


@app.exception_handler(ScraperError)
async def scraper_error_handler(request: Request, exc: ScraperError):
    return _error_response(500, exc)


@app.exception_handler(LookupError)
async def lookup_error_handler(request: Request, exc: LookupError):
    return JSONResponse(status_code=404, content={"detail": str(exc)})


# =============================================================================
# HEALTH CHECK
# =============================================================================

@app.get("/health", response_model=schemas.HealthResponse)
def health_check(db: Session = Depends(get_db)):
    """
    System health check endpoint.

    Returns:
    - status: "healthy" if API is running
    - database: "connected" if SQLite is accessible
    - country_count: Countries stored in the catalog
    - session_open: Whether the browser session is ready
    """
    try:
        country_count = db.query(models.Country).count()
    except Exception as e:
        raise HTTPException(status_code=500, detail=f"Database error: {str(e)}")

    return {
        "status": "healthy",
        "database": "connected",
        "country_count": country_count,
        "session_open": app_state.session is not None and app_state.session.is_open,
    }


# =============================================================================
# CATALOG ENDPOINTS
# =============================================================================

@app.get("/countries", response_model=List[schemas.Country])
def get_countries(repository: CountryRepository = Depends(get_country_repository)):
    """Stored countries sorted by name."""
    return repository.get_all()


@app.post("/countries/discover", response_model=List[schemas.Country])
async def discover_countries(request: schemas.DiscoverRequest,
                             pipeline: CatalogPipeline = Depends(get_pipeline)):
    """Discover countries until at least `target_count` are stored."""
    return await pipeline.discovery.discover_countries(request.target_count)


@app.post("/competitions/reconcile", response_model=schemas.ReconcileResponse)
async def reconcile_competition(request: schemas.ReconcileRequest,
                                pipeline: CatalogPipeline = Depends(get_pipeline)):
    country, competition = await pipeline.reconciler.reconcile_competition(
        request.competition_id, request.name, request.link,
    )
    return {"country": country, "competition": competition}


@app.get("/clubs/{competition_id}", response_model=List[schemas.Club])
async def get_clubs(competition_id: str, pipeline: CatalogPipeline = Depends(get_pipeline)):
    return await pipeline.clubs.get_clubs(competition_id)


@app.get("/players/{club_id}", response_model=List[schemas.Player])
async def get_players(club_id: str, pipeline: CatalogPipeline = Depends(get_pipeline)):
    return await pipeline.rosters.get_players(club_id)


# =============================================================================
# PLAYER STAT ENDPOINTS
# =============================================================================

@app.post("/player-stats", response_model=schemas.PlayerStat)
async def harvest_player_stats(request: schemas.PlayerStatRequest,
                               pipeline: CatalogPipeline = Depends(get_pipeline)):
    """
    Harvest the requested seasons of a player.

    Seasons already scraped are returned from storage unless
    `force_rescrape` is set.
    """
    return await pipeline.harvester.harvest_player_stats(
        request.player_id,
        season_selector=request.season,
        force_rescrape=request.force_rescrape,
        position=request.position,
    )


@app.get("/player-stats/{player_id}", response_model=schemas.PlayerStat)
def get_player_stats(player_id: str, repository: PlayerStatRepository = Depends(get_stat_repository)):
    player_stat = repository.get(player_id)
    if player_stat is None:
        raise HTTPException(status_code=404, detail="Player stats not found")
    return player_stat


@app.delete("/catalog", response_model=schemas.CatalogResetResponse)
def reset_catalog(session_factory: sessionmaker = Depends(get_session_factory)):
    """Remove every stored country, competition, club and player stat."""
    clean_database(
        CountryRepository(session_factory),
        ClubRepository(session_factory),
        PlayerStatRepository(session_factory),
    )
    return {"removed_at": datetime.utcnow()}
