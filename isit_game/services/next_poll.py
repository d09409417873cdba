from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy.orm import Session

from isit_game.models.poll import Poll, PollStatus
from isit_game.models.user import DEFAULT_LEVEL, DEFAULT_STAGE, User
from isit_game.models.vote import PollVote

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class NextPollDecision:
    next_poll_id: Optional[str]
    crossed_stage: bool = False
    next_stage: Optional[int] = None
    crossed_level: bool = False
    next_level: Optional[int] = None


class NextPollDecider:
    """Picks the first unanswered published poll in (stage, level) order."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _first_unanswered(self, user_id: str) -> Optional[Poll]:
        answered = self.db.query(PollVote.poll_id).filter(PollVote.user_id == user_id)
        return (
            self.db.query(Poll)
            .filter(
                Poll.status == PollStatus.PUBLISHED.value,
                ~Poll.poll_id.in_(answered),
            )
            .order_by(
                Poll.stage.asc(),
                Poll.level.asc(),
                Poll.created_at.asc(),
                Poll.poll_id.asc(),
            )
            .first()
        )

    def next_poll_for_user(
        self, user_id: str, commit: bool = True
    ) -> Optional[NextPollDecision]:
        user = self.db.query(User).filter(User.user_id == user_id).first()
        if user is None:
            logger.warning("Next-poll lookup for unknown user %s.", user_id)
            return None

        poll = self._first_unanswered(user_id)
        if poll is None:
            return None

        current_stage = (
            user.current_stage if user.current_stage is not None else DEFAULT_STAGE
        )
        current_level = (
            user.current_level if user.current_level is not None else DEFAULT_LEVEL
        )
        crossed_stage = poll.stage != current_stage
        crossed_level = poll.level != current_level

        if crossed_stage or crossed_level:
            user.current_stage = poll.stage
            user.current_level = poll.level
            if commit:
                self.db.commit()
            else:
                self.db.flush()
            logger.info(
                "User %s advanced to stage %s level %s.",
                user_id,
                poll.stage,
                poll.level,
            )

        return NextPollDecision(
            next_poll_id=poll.poll_id,
            crossed_stage=crossed_stage,
            next_stage=poll.stage,
            crossed_level=crossed_level,
            next_level=poll.level,
        )
