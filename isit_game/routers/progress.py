from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session

from isit_game.auth import PlayerSession, get_player_session
from isit_game.database import get_db
from isit_game.routers.rounds import get_progression_engine
from isit_game.schemas.polls import ContinueResponse, PlayerMetricsResponse
from isit_game.services.metrics import compute_player_metrics
from isit_game.services.progression import ProgressionEngine

router = APIRouter(prefix="/api/progress", tags=["progress"])


def _require_player(session: PlayerSession, engine: ProgressionEngine) -> str:
    if not session.is_authenticated:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=f"Sign in required: {engine.sign_in_path}",
        )
    return session.user_id


@router.get("/continue", response_model=ContinueResponse)
async def continue_playing(
    session: PlayerSession = Depends(get_player_session),
    engine: ProgressionEngine = Depends(get_progression_engine),
):
    user_id = _require_player(session, engine)
    progression = await engine.resolve_next(user_id)
    return ContinueResponse(
        redirect=progression.navigation(None, engine.listing_path),
        next_poll_id=progression.next_poll_id,
    )


@router.get("/metrics", response_model=PlayerMetricsResponse)
async def player_metrics(
    session: PlayerSession = Depends(get_player_session),
    engine: ProgressionEngine = Depends(get_progression_engine),
    db: Session = Depends(get_db),
):
    user_id = _require_player(session, engine)
    return PlayerMetricsResponse(**compute_player_metrics(db, user_id).to_dict())
