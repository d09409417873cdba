from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from fastapi import Depends, HTTPException
from sqlalchemy import func
from sqlalchemy.orm import Session

from ..database import get_db
from ..models.poll import Poll, PollObject, PollObjectLink, PollOption, PollStatus
from ..models.vote import PollVote
from ..services.assignment import Bucket

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PollContent:
    poll_id: str
    title: str
    left_word: str
    right_word: str
    left_image_url: Optional[str] = None
    right_image_url: Optional[str] = None
    prompt_word: Optional[str] = None
    correct: Optional[Bucket] = None


def _split_title_pair(title: Optional[str]) -> Optional[tuple[str, str]]:
    if not title or "|" not in title:
        return None
    parts = [part.strip() for part in title.split("|")]
    if len(parts) < 2 or not parts[0] or not parts[1]:
        return None
    return parts[0], parts[1]


def _round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


class PollManager:
    """Read access to polls, their IS/IT pairs and their options."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_poll(self, poll_id: str) -> Optional[Poll]:
        return self.db.query(Poll).filter(Poll.poll_id == poll_id).first()

    def list_polls(self) -> List[Poll]:
        """Published polls in progression order."""
        query = self.db.query(Poll).filter(Poll.status == PollStatus.PUBLISHED.value)
        return query.order_by(
            Poll.stage.asc(), Poll.level.asc(), Poll.created_at.asc(), Poll.poll_id.asc()
        ).all()

    def get_poll_content(self, poll_id: str) -> PollContent:
        poll = self.get_poll(poll_id)
        if not poll:
            raise HTTPException(status_code=404, detail="Poll not found.")

        links = (
            self.db.query(PollObjectLink)
            .filter(PollObjectLink.poll_id == poll_id)
            .all()
        )
        if len(links) < 2:
            logger.warning("Poll %s has %d object link(s).", poll_id, len(links))
            raise HTTPException(
                status_code=409,
                detail="Poll not fully configured. This poll is missing its pair links.",
            )

        object_ids = [link.object_id for link in links]
        objects = {
            obj.object_id: obj
            for obj in self.db.query(PollObject)
            .filter(PollObject.object_id.in_(object_ids))
            .all()
        }
        by_side = {str(link.side).upper(): objects.get(link.object_id) for link in links}
        is_obj = by_side.get(Bucket.IS.value)
        it_obj = by_side.get(Bucket.IT.value)

        left_word = is_obj.word if is_obj and is_obj.word else None
        right_word = it_obj.word if it_obj and it_obj.word else None
        left_image = is_obj.image_url if is_obj else None
        right_image = it_obj.image_url if it_obj else None

        if not left_word or not right_word:
            pair = _split_title_pair(poll.title)
            if pair:
                left_word, right_word = pair
                left_image = right_image = None

        if not left_word or not right_word:
            raise HTTPException(status_code=409, detail="Poll missing pair words.")

        # Canonical order is IS on the left; the round may flip it for display.
        return PollContent(
            poll_id=poll.poll_id,
            title=poll.title,
            left_word=left_word,
            right_word=right_word,
            left_image_url=left_image,
            right_image_url=right_image,
            prompt_word=poll.prompt_word or left_word,
            correct=Bucket.parse(poll.correct),
        )

    def option_ids(self, poll_id: str) -> Dict[str, str]:
        rows = self.db.query(PollOption).filter(PollOption.poll_id == poll_id).all()
        mapping: Dict[str, str] = {}
        for option in rows:
            mapping[(option.text or "").strip().upper()] = option.option_id
        return mapping

    def poll_results(self, poll_id: str) -> Dict[str, Any]:
        poll = self.get_poll(poll_id)
        if not poll:
            raise HTTPException(status_code=404, detail="Poll not found.")

        counts = dict(
            self.db.query(PollVote.option_id, func.count(PollVote.vote_id))
            .filter(PollVote.poll_id == poll_id)
            .group_by(PollVote.option_id)
            .all()
        )
        options = (
            self.db.query(PollOption)
            .filter(PollOption.poll_id == poll_id)
            .order_by(PollOption.text.asc())
            .all()
        )
        total = sum(int(counts.get(option.option_id, 0)) for option in options)
        rows = []
        for option in options:
            votes = int(counts.get(option.option_id, 0))
            rows.append(
                {
                    "option_id": option.option_id,
                    "text": option.text or "",
                    "votes": votes,
                    "percentage": _round_half_up(votes / total * 100) if total else 0,
                }
            )
        return {
            "poll_id": poll.poll_id,
            "title": poll.title or "Previous Poll",
            "total_votes": total,
            "options": rows,
        }


def get_poll_manager(db: Session = Depends(get_db)) -> PollManager:
    """Dependency provider for PollManager."""
    return PollManager(db=db)
