import logging

from fastapi import APIRouter, Depends, Response, status
from fastapi.responses import JSONResponse

from isit_game.auth import PlayerSession, get_player_session
from isit_game.data.poll_manager import PollManager, get_poll_manager
from isit_game.data.vote_manager import VoteManager
from isit_game.database import get_session_factory
from isit_game.schemas.rounds import (
    BucketTargetRequest,
    ConfirmResponse,
    DragStartRequest,
    RoundStateResponse,
    SelectItemRequest,
)
from isit_game.services.next_poll import NextPollDecider
from isit_game.services.progression import (
    ConfirmStatus,
    ProgressionEngine,
    in_own_session,
)
from isit_game.services.round_state import round_state_manager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["rounds"])


def _lookup_options(db, poll_id):
    return PollManager(db).option_ids(poll_id)


def _upsert_vote(db, poll_id, option_id, user_id):
    return VoteManager(db).upsert_vote(poll_id, option_id, user_id, commit=False)


def _next_poll(db, user_id):
    return NextPollDecider(db).next_poll_for_user(user_id, commit=False)


def build_progression_engine(session_factory, **kwargs) -> ProgressionEngine:
    """Wire the progression engine to the SQL-backed collaborators.

    Each collaborator call runs on a worker thread with its own session, so a
    timed-out call never touches the request session.
    """
    return ProgressionEngine(
        option_lookup=in_own_session(session_factory, _lookup_options),
        vote_upsert=in_own_session(session_factory, _upsert_vote, writes=True),
        next_poll=in_own_session(session_factory, _next_poll, writes=True),
        **kwargs,
    )


def get_progression_engine(
    session_factory=Depends(get_session_factory),
) -> ProgressionEngine:
    return build_progression_engine(session_factory)


def _state(resolver) -> RoundStateResponse:
    return RoundStateResponse(**resolver.to_payload())


@router.post(
    "/polls/{poll_id}/rounds",
    response_model=RoundStateResponse,
    status_code=status.HTTP_201_CREATED,
)
async def open_round(
    poll_id: str,
    session: PlayerSession = Depends(get_player_session),
    poll_manager: PollManager = Depends(get_poll_manager),
):
    content = poll_manager.get_poll_content(poll_id)
    resolver = await round_state_manager.open_round(content, session.user_id)
    return _state(resolver)


@router.get("/rounds/{round_id}", response_model=RoundStateResponse)
async def get_round(
    round_id: str,
    session: PlayerSession = Depends(get_player_session),
):
    resolver = await round_state_manager.get(round_id, session.user_id)
    return _state(resolver)


@router.post("/rounds/{round_id}/select", response_model=RoundStateResponse)
async def select_item(
    round_id: str,
    payload: SelectItemRequest,
    session: PlayerSession = Depends(get_player_session),
):
    resolver, _ = await round_state_manager.apply(
        round_id, lambda r: r.select_item(payload.item), session.user_id
    )
    return _state(resolver)


@router.post("/rounds/{round_id}/drag", response_model=RoundStateResponse)
async def begin_drag(
    round_id: str,
    payload: DragStartRequest,
    session: PlayerSession = Depends(get_player_session),
):
    resolver, _ = await round_state_manager.apply(
        round_id, lambda r: r.begin_drag(payload.item), session.user_id
    )
    return _state(resolver)


@router.post("/rounds/{round_id}/drag/cancel", response_model=RoundStateResponse)
async def cancel_drag(
    round_id: str,
    session: PlayerSession = Depends(get_player_session),
):
    resolver, _ = await round_state_manager.apply(
        round_id, lambda r: r.cancel_drag(), session.user_id
    )
    return _state(resolver)


@router.post("/rounds/{round_id}/drop", response_model=RoundStateResponse)
async def drop_on_bucket(
    round_id: str,
    payload: BucketTargetRequest,
    session: PlayerSession = Depends(get_player_session),
):
    resolver, _ = await round_state_manager.apply(
        round_id,
        lambda r: r.drop_on_bucket(payload.bucket, payload.slot_index),
        session.user_id,
    )
    return _state(resolver)


@router.post("/rounds/{round_id}/bucket", response_model=RoundStateResponse)
async def click_bucket(
    round_id: str,
    payload: BucketTargetRequest,
    session: PlayerSession = Depends(get_player_session),
):
    resolver, _ = await round_state_manager.apply(
        round_id,
        lambda r: r.click_bucket(payload.bucket, payload.slot_index),
        session.user_id,
    )
    return _state(resolver)


@router.post("/rounds/{round_id}/reset", response_model=RoundStateResponse)
async def reset_round(
    round_id: str,
    session: PlayerSession = Depends(get_player_session),
):
    resolver, _ = await round_state_manager.apply(
        round_id, lambda r: r.reset(), session.user_id
    )
    return _state(resolver)


@router.delete("/rounds/{round_id}", status_code=status.HTTP_204_NO_CONTENT)
async def discard_round(
    round_id: str,
    session: PlayerSession = Depends(get_player_session),
):
    await round_state_manager.get(round_id, session.user_id)
    await round_state_manager.discard(round_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.post("/rounds/{round_id}/confirm", response_model=ConfirmResponse)
async def confirm_round(
    round_id: str,
    session: PlayerSession = Depends(get_player_session),
    engine: ProgressionEngine = Depends(get_progression_engine),
):
    resolver = await round_state_manager.get(round_id, session.user_id)
    outcome = await engine.confirm(
        resolver.round.poll_id, session, resolver.assignment
    )
    progression = outcome.progression
    body = ConfirmResponse(
        status=outcome.status.value,
        redirect=outcome.redirect,
        next_poll_id=progression.next_poll_id if progression else None,
        crossed_stage=progression.crossed_stage if progression else None,
        crossed_level=progression.crossed_level if progression else None,
        correct=outcome.correct,
        message=outcome.message,
    )

    if outcome.navigates:
        await round_state_manager.discard(round_id)
    else:
        body.round = _state(resolver)

    if outcome.status == ConfirmStatus.SIGN_IN_REQUIRED:
        return JSONResponse(
            status_code=status.HTTP_401_UNAUTHORIZED, content=body.model_dump()
        )
    if outcome.status == ConfirmStatus.RETRY:
        logger.info("Confirm for round %s needs a retry.", round_id)
        return JSONResponse(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            content=body.model_dump(),
        )
    return body
