from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import Any, Dict

from sqlalchemy import func
from sqlalchemy.orm import Session

from isit_game.data.vote_manager import possible_points
from isit_game.models.poll import Poll, PollObject, PollObjectLink
from isit_game.models.vote import PollVote


@dataclass(frozen=True)
class PlayerMetrics:
    polls_taken: int
    polls_incorrect: int
    overall_dq: float
    points_earned: int
    points_possible: int
    aq: int

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


def compute_player_metrics(db: Session, user_id: str) -> PlayerMetrics:
    """Summarise a player's answers.

    DQ is the share of answered polls marked incorrect. AQ is earned over
    possible points, scaled to 100 and damped by ``1 + DQ``, capped at 100.
    """
    votes = (
        db.query(PollVote.poll_id, PollVote.is_correct, PollVote.points_earned)
        .filter(PollVote.user_id == user_id)
        .all()
    )
    poll_ids = {row.poll_id for row in votes}
    polls_taken = len(poll_ids)
    polls_incorrect = sum(1 for row in votes if row.is_correct is False)
    overall_dq = polls_incorrect / polls_taken if polls_taken else 0.0
    points_earned = sum(int(row.points_earned or 0) for row in votes)

    points_possible = 0
    if poll_ids:
        object_points = dict(
            db.query(PollObjectLink.poll_id, func.coalesce(func.sum(PollObject.points), 0))
            .join(PollObject, PollObject.object_id == PollObjectLink.object_id)
            .filter(PollObjectLink.poll_id.in_(poll_ids))
            .group_by(PollObjectLink.poll_id)
            .all()
        )
        for poll in db.query(Poll).filter(Poll.poll_id.in_(poll_ids)).all():
            points_possible += possible_points(
                poll, int(object_points.get(poll.poll_id, 0) or 0)
            )

    ratio = points_earned / points_possible if points_possible else 0.0
    aq = min(100.0, (ratio * 100) / (1 + overall_dq))
    return PlayerMetrics(
        polls_taken=polls_taken,
        polls_incorrect=polls_incorrect,
        overall_dq=overall_dq,
        points_earned=points_earned,
        points_possible=points_possible,
        aq=int(aq + 0.5),
    )
