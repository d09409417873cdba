from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from sqlalchemy import func
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.orm import Session

from ..models.poll import Poll, PollObject, PollObjectLink, PollOption
from ..models.vote import PollVote, generate_vote_id

logger = logging.getLogger(__name__)

_UPSERT_DIALECTS = {
    "sqlite": sqlite_insert,
    "postgresql": pg_insert,
}


@dataclass(frozen=True)
class VoteReceipt:
    poll_id: str
    user_id: str
    option_id: str
    is_correct: Optional[bool]
    points_earned: int


def possible_points(poll: Poll, object_points: int) -> int:
    """Maximum points a binary poll can award."""
    if object_points > 0:
        return object_points
    stage_mult = max(1, poll.stage or 1)
    level_mult = max(1, poll.level or 1)
    return 2 * stage_mult * level_mult


class VoteManager:
    """Persists at most one vote per (poll, user), last write wins."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def _object_points(self, poll_id: str) -> int:
        total = (
            self.db.query(func.coalesce(func.sum(PollObject.points), 0))
            .join(PollObjectLink, PollObjectLink.object_id == PollObject.object_id)
            .filter(PollObjectLink.poll_id == poll_id)
            .scalar()
        )
        return int(total or 0)

    def _score(self, poll: Poll, option: PollOption) -> tuple[Optional[bool], int]:
        correct = (poll.correct or "").strip().upper()
        if not correct:
            return None, 0
        is_correct = (option.text or "").strip().upper() == correct
        if not is_correct:
            return False, 0
        return True, possible_points(poll, self._object_points(poll.poll_id))

    def upsert_vote(
        self, poll_id: str, option_id: str, user_id: str, commit: bool = True
    ) -> VoteReceipt:
        """Insert or replace the (poll, user) vote.

        With ``commit=False`` the write is only flushed; the caller owns the commit.
        """
        poll = self.db.query(Poll).filter(Poll.poll_id == poll_id).first()
        option = (
            self.db.query(PollOption)
            .filter(PollOption.option_id == option_id, PollOption.poll_id == poll_id)
            .first()
        )
        if poll is None or option is None:
            raise LookupError(f"Option {option_id} does not belong to poll {poll_id}")

        is_correct, points = self._score(poll, option)
        values = {
            "poll_id": poll_id,
            "option_id": option_id,
            "user_id": user_id,
            "is_correct": is_correct,
            "points_earned": points,
        }

        dialect = self.db.get_bind().dialect.name
        insert_factory = _UPSERT_DIALECTS.get(dialect)
        try:
            if insert_factory is not None:
                statement = insert_factory(PollVote).values(
                    vote_id=generate_vote_id(), **values
                )
                statement = statement.on_conflict_do_update(
                    index_elements=[PollVote.poll_id, PollVote.user_id],
                    set_={
                        "option_id": statement.excluded.option_id,
                        "is_correct": statement.excluded.is_correct,
                        "points_earned": statement.excluded.points_earned,
                        "updated_at": func.now(),
                    },
                )
                self.db.execute(statement)
            else:
                self._upsert_with_query(values)
            if commit:
                self.db.commit()
            else:
                self.db.flush()
        except Exception:
            self.db.rollback()
            raise

        logger.info(
            "Recorded vote poll=%s user=%s option=%s correct=%s points=%s",
            poll_id,
            user_id,
            option_id,
            is_correct,
            points,
        )
        return VoteReceipt(
            poll_id=poll_id,
            user_id=user_id,
            option_id=option_id,
            is_correct=is_correct,
            points_earned=points,
        )

    def _upsert_with_query(self, values: dict) -> None:
        vote = (
            self.db.query(PollVote)
            .filter(
                PollVote.poll_id == values["poll_id"],
                PollVote.user_id == values["user_id"],
            )
            .first()
        )
        if vote:
            vote.option_id = values["option_id"]
            vote.is_correct = values["is_correct"]
            vote.points_earned = values["points_earned"]
        else:
            self.db.add(PollVote(**values))
        self.db.flush()

    def get_vote(self, poll_id: str, user_id: str) -> Optional[PollVote]:
        return (
            self.db.query(PollVote)
            .filter(PollVote.poll_id == poll_id, PollVote.user_id == user_id)
            .first()
        )

    def count_votes(self, poll_id: str, user_id: Optional[str] = None) -> int:
        query = self.db.query(func.count(PollVote.vote_id)).filter(
            PollVote.poll_id == poll_id
        )
        if user_id:
            query = query.filter(PollVote.user_id == user_id)
        return int(query.scalar() or 0)
