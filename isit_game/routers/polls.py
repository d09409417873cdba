from fastapi import APIRouter, Depends, Query

from isit_game.data.poll_manager import PollManager, get_poll_manager
from isit_game.schemas.polls import (
    PollContentResponse,
    PollListResponse,
    PollResultsResponse,
    PollSummary,
)

router = APIRouter(prefix="/api/polls", tags=["polls"])


@router.get("", response_model=PollListResponse)
async def list_polls(
    q: str = Query("", description="Case-insensitive filter on title and level"),
    poll_manager: PollManager = Depends(get_poll_manager),
):
    polls = [PollSummary.model_validate(poll) for poll in poll_manager.list_polls()]
    needle = q.strip().lower()
    if needle:
        polls = [
            poll
            for poll in polls
            if any(
                needle in str(value).lower()
                for value in (poll.title, poll.kind, poll.level, poll.correct or "")
            )
        ]
    return PollListResponse(polls=polls)


@router.get("/{poll_id}", response_model=PollContentResponse)
async def get_poll(
    poll_id: str,
    poll_manager: PollManager = Depends(get_poll_manager),
):
    content = poll_manager.get_poll_content(poll_id)
    return PollContentResponse(
        poll_id=content.poll_id,
        title=content.title,
        left_word=content.left_word,
        right_word=content.right_word,
        left_image_url=content.left_image_url,
        right_image_url=content.right_image_url,
        prompt_word=content.prompt_word,
        correct=content.correct.value if content.correct else None,
    )


@router.get("/{poll_id}/results", response_model=PollResultsResponse)
async def get_poll_results(
    poll_id: str,
    poll_manager: PollManager = Depends(get_poll_manager),
):
    return PollResultsResponse(**poll_manager.poll_results(poll_id))
