import logging
from contextlib import asynccontextmanager
from typing import Optional

from bson import ObjectId
from fastapi import FastAPI, HTTPException, Depends, Query, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from config import Settings, get_settings
from database import create_store
from games import (
    SUGGESTED_GENRES,
    SUGGESTED_PLATFORMS,
    RecordValidationError,
    build_export,
    ensure_valid,
    filter_games,
    summarize_games,
)
from logging_config import configure_logging
from schemas import (
    FavoriteResponse,
    FilterCriteria,
    GameIn,
    GameListResponse,
    GamePatch,
    GameRecord,
    GameResponse,
    Stats,
    StatsResponse,
)

logger = logging.getLogger(__name__)


# ---------- Utilities ----------
def check_id(game_id: str) -> str:
    if not ObjectId.is_valid(game_id):
        raise HTTPException(status_code=400, detail="Invalid id format")
    return game_id


def get_store(request: Request):
    return request.app.state.store


def fetch_or_404(store, game_id: str) -> GameRecord:
    game = store.get(game_id)
    if game is None:
        raise HTTPException(status_code=404, detail="Game not found")
    return game


def create_app(store=None, settings: Optional[Settings] = None) -> FastAPI:
    """Build the API.

    Pass a ready ``store`` to skip connecting on startup (tests do this);
    otherwise one is created from ``settings`` when the app starts and
    closed when it stops.
    """
    settings = settings or get_settings()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        configure_logging(settings.log_level, settings.log_json)
        owned = app.state.store is None
        if owned:
            app.state.store = create_store(settings)
        try:
            yield
        finally:
            if owned:
                app.state.store.close()
                app.state.store = None

    app = FastAPI(title="Game Collection API", lifespan=lifespan)
    app.state.store = store

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.allowed_origins,
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.exception_handler(RecordValidationError)
    async def validation_failed(request: Request, exc: RecordValidationError):
        logger.info("Rejected game on %s %s: %s", request.method, request.url.path, exc)
        return JSONResponse(status_code=400, content={"success": False, "errors": exc.errors})

    @app.exception_handler(PyMongoError)
    async def database_failed(request: Request, exc: PyMongoError):
        logger.error("Database error on %s %s", request.method, request.url.path, exc_info=exc)
        return JSONResponse(status_code=503, content={"success": False, "error": "Database unavailable"})

    # ---------- Public Endpoints ----------
    @app.get("/")
    def root():
        return {"message": "Game Collection Backend Running"}

    @app.get("/api/health")
    def health(store=Depends(get_store)):
        connected = store is not None and store.ping()
        return {
            "success": True,
            "message": "API running",
            "backend": type(store).__name__ if store is not None else None,
            "database": "connected" if connected else "disconnected",
        }

    # ---------- Games CRUD ----------
    @app.post("/api/games", status_code=201, response_model=GameResponse)
    def create_game(payload: GameIn, store=Depends(get_store)):
        ensure_valid(payload)
        game_id = store.insert(payload)
        logger.info("Added game %s (%s)", game_id, payload.title)
        return GameResponse(data=fetch_or_404(store, game_id))

    @app.get("/api/games", response_model=GameListResponse)
    def list_games(
        search: Optional[str] = Query(None),
        genre: Optional[str] = Query(None),
        platform: Optional[str] = Query(None),
        favorites: bool = Query(False),
        store=Depends(get_store),
    ):
        criteria = FilterCriteria(search=search, genre=genre, platform=platform, favorites_only=favorites)
        games = filter_games(store.list(), criteria)
        return GameListResponse(data=games, count=len(games))

    @app.get("/api/games/{game_id}", response_model=GameResponse)
    def get_game(game_id: str, store=Depends(get_store)):
        return GameResponse(data=fetch_or_404(store, check_id(game_id)))

    @app.put("/api/games/{game_id}", response_model=GameResponse)
    def replace_game(game_id: str, payload: GameIn, store=Depends(get_store)):
        check_id(game_id)
        ensure_valid(payload)
        fields = payload.model_dump(exclude={"favorite"} if payload.favorite is None else None)
        if not store.update(game_id, fields):
            raise HTTPException(status_code=404, detail="Game not found")
        logger.info("Updated game %s", game_id)
        return GameResponse(data=fetch_or_404(store, game_id))

    @app.patch("/api/games/{game_id}", response_model=GameResponse)
    def patch_game(game_id: str, payload: GamePatch, store=Depends(get_store)):
        current = fetch_or_404(store, check_id(game_id))
        updates = {k: v for k, v in payload.model_dump().items() if v is not None}
        if not updates:
            return GameResponse(data=current)
        merged = GameIn(**{**current.model_dump(include=set(GameIn.model_fields)), **updates})
        ensure_valid(merged)
        if not store.update(game_id, updates):
            raise HTTPException(status_code=404, detail="Game not found")
        logger.info("Patched game %s: %s", game_id, sorted(updates))
        return GameResponse(data=fetch_or_404(store, game_id))

    @app.delete("/api/games/{game_id}")
    def delete_game(game_id: str, store=Depends(get_store)):
        if not store.delete(check_id(game_id)):
            raise HTTPException(status_code=404, detail="Game not found")
        logger.info("Deleted game %s", game_id)
        return {"success": True, "message": "Game deleted"}

    @app.post("/api/games/{game_id}/favorite", response_model=FavoriteResponse)
    def toggle_favorite(game_id: str, store=Depends(get_store)):
        favorite = store.toggle_favorite(check_id(game_id))
        if favorite is None:
            raise HTTPException(status_code=404, detail="Game not found")
        return FavoriteResponse(favorite=favorite)

    # ---------- Collection views ----------
    @app.get("/api/stats", response_model=StatsResponse)
    def stats(store=Depends(get_store)):
        return StatsResponse(data=summarize_games(store.list()))

    @app.get("/api/export")
    def export(store=Depends(get_store)):
        payload = build_export(store.list())
        logger.info("Exported %d games", payload["count"])
        return payload

    @app.get("/api/options")
    def options():
        return {"genres": SUGGESTED_GENRES, "platforms": SUGGESTED_PLATFORMS}

    # ---------- Schema endpoint for viewer ----------
    @app.get("/schema")
    def get_schema_definitions():
        return {
            "game": GameRecord.model_json_schema(),
            "game_in": GameIn.model_json_schema(),
            "stats": Stats.model_json_schema(),
        }

    return app


app = create_app()


if __name__ == "__main__":
    import uvicorn
    settings = get_settings()
    uvicorn.run(app, host=settings.host, port=settings.port)
