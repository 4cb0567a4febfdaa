"""
FastAPI application exposing score submission and matchmaking queries.

The app is a thin adapter: every route validates nothing beyond JSON shape,
calls one MatchmakingEngine operation and serializes the result. Engine
errors become ``{"success": false, "error": {"code", "message"}}`` with the
status carried by the exception.
"""

from contextlib import asynccontextmanager
from typing import Any, Optional

from fastapi import Depends, FastAPI, Header, Query, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import BaseModel

from matchbot.config import Config
from matchbot.operations.matchmaking_engine import MatchmakingEngine
from matchbot.utils.logger import setup_logger
from matchbot.utils.matchmaking_exceptions import MatchmakingError, StoreUnavailable

logger = setup_logger(__name__)


class ScoreSubmissionRequest(BaseModel):
    # Field types stay loose so the engine owns validation and reports 400s
    playerName: Any = None
    score: Any = None
    level: Any = None
    discordUserId: Any = None


class CancelMatchRequest(BaseModel):
    playerName: Any = None


def _error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={'success': False, 'error': {'code': code, 'message': message}}
    )


def get_engine(request: Request) -> MatchmakingEngine:
    engine = request.app.state.engine
    if engine is None:
        raise StoreUnavailable('request', 'matchmaking engine is not initialized')
    return engine


def create_app(engine: Optional[MatchmakingEngine] = None) -> FastAPI:
    """
    Build the HTTP app.

    Args:
        engine: Shared engine. When omitted the app builds its own store and
            engine on startup and closes the store on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        owned_store = None
        if app.state.engine is None:
            from matchbot.store import create_store
            owned_store = await create_store()
            app.state.engine = MatchmakingEngine(owned_store)
            logger.info(f"HTTP API created its own {Config.STORE_BACKEND} store")
        try:
            yield
        finally:
            if owned_store is not None:
                await owned_store.close()

    app = FastAPI(title="Breakout Matchmaking", version="1.0.0", lifespan=lifespan)
    app.state.engine = engine

    @app.exception_handler(MatchmakingError)
    async def matchmaking_error_handler(request: Request, exc: MatchmakingError):
        if exc.status >= 500:
            logger.error(f"{request.method} {request.url.path} failed: {exc}")
        else:
            logger.info(f"{request.method} {request.url.path} rejected: {exc}")
        return _error_response(exc.status, exc.code, str(exc))

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        message = errors[0].get('msg', 'Invalid request') if errors else 'Invalid request'
        return _error_response(400, 'INVALID_INPUT', message)

    @app.post("/api/score")
    async def submit_score(
        body: ScoreSubmissionRequest,
        x_request_id: Optional[str] = Header(None),
        x_idempotency_key: Optional[str] = Header(None),
        engine: MatchmakingEngine = Depends(get_engine)
    ):
        result = await engine.submit_score(
            body.playerName,
            body.score,
            body.level,
            discord_user_id=body.discordUserId,
            request_id=x_idempotency_key or x_request_id
        )
        return {'success': True, 'matchmaking': result.to_dict()}

    @app.get("/api/health")
    async def health(engine: MatchmakingEngine = Depends(get_engine)):
        try:
            await engine.store.ping()
        except StoreUnavailable as e:
            logger.warning(f"Health check failed: {e}")
            return JSONResponse(
                status_code=503,
                content={'status': 'degraded', 'store': Config.STORE_BACKEND, 'storeStatus': 'unavailable'}
            )
        return {'status': 'ok', 'store': Config.STORE_BACKEND, 'storeStatus': 'connected'}

    @app.get("/api/matchmaking/stats")
    async def stats(engine: MatchmakingEngine = Depends(get_engine)):
        snapshot = await engine.get_stats()
        return {'success': True, 'stats': snapshot.to_dict()}

    @app.get("/api/matchmaking/lobbies")
    async def open_lobbies(limit: int = Query(10), engine: MatchmakingEngine = Depends(get_engine)):
        lobbies = await engine.get_open_lobbies(limit)
        return {'success': True, 'count': len(lobbies), 'lobbies': [m.to_dict() for m in lobbies]}

    @app.get("/api/matchmaking/matches/{match_id}")
    async def get_match(match_id: str, engine: MatchmakingEngine = Depends(get_engine)):
        match = await engine.get_match(match_id)
        return {'success': True, 'match': match.to_dict()}

    @app.post("/api/matchmaking/matches/{match_id}/cancel")
    async def cancel_match(
        match_id: str,
        body: CancelMatchRequest,
        engine: MatchmakingEngine = Depends(get_engine)
    ):
        match = await engine.cancel_match(match_id, body.playerName)
        return {'success': True, 'match': match.to_dict()}

    @app.get("/api/matchmaking/player/{player_name}/matches")
    async def player_matches(
        player_name: str,
        limit: int = Query(10),
        engine: MatchmakingEngine = Depends(get_engine)
    ):
        matches = await engine.get_player_matches(player_name, limit)
        return {'success': True, 'count': len(matches), 'matches': [m.to_dict() for m in matches]}

    @app.get("/api/matchmaking/player/{player_name}/stats")
    async def player_stats(player_name: str, engine: MatchmakingEngine = Depends(get_engine)):
        record = await engine.get_player_stats(player_name)
        return {'success': True, 'stats': record.to_dict()}

    return app
