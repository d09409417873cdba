from __future__ import annotations

import asyncio
import logging
import random
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, Optional, TypeVar

from fastapi import HTTPException

from isit_game.config.loader import get_round_settings
from isit_game.data.poll_manager import PollContent
from isit_game.services.assignment import LEFT, RIGHT, AssignmentResolver, Item, Round

logger = logging.getLogger(__name__)

T = TypeVar("T")


def _now() -> datetime:
    return datetime.now(timezone.utc)


class RoundStateManager:
    """In-memory registry of live rounds, one per poll view."""

    def __init__(
        self,
        ttl_seconds: Optional[int] = None,
        max_rounds: Optional[int] = None,
        rng: Optional[random.Random] = None,
    ) -> None:
        settings = get_round_settings()
        self.ttl = timedelta(seconds=ttl_seconds or settings["ttl_seconds"])
        self.max_rounds = max_rounds or settings["max_rounds"]
        self._rng = rng
        self._rounds: Dict[str, AssignmentResolver] = {}
        self._touched: Dict[str, datetime] = {}
        self._lock = asyncio.Lock()

    def _prune(self) -> None:
        cutoff = _now() - self.ttl
        expired = [rid for rid, seen in self._touched.items() if seen < cutoff]
        for rid in expired:
            self._rounds.pop(rid, None)
            self._touched.pop(rid, None)
        overflow = len(self._rounds) - self.max_rounds + 1
        if overflow > 0:
            oldest = sorted(self._touched, key=self._touched.get)[:overflow]
            for rid in oldest:
                self._rounds.pop(rid, None)
                self._touched.pop(rid, None)
        if expired:
            logger.debug("Pruned %d expired round(s).", len(expired))

    async def open_round(
        self,
        content: PollContent,
        owner_user_id: Optional[str] = None,
    ) -> AssignmentResolver:
        round_ = Round.create(
            content.poll_id,
            Item(key=LEFT, text=content.left_word, image_url=content.left_image_url),
            Item(key=RIGHT, text=content.right_word, image_url=content.right_image_url),
            correct=content.correct,
            prompt_word=content.prompt_word,
            owner_user_id=owner_user_id,
            rng=self._rng,
        )
        resolver = AssignmentResolver(round_)
        async with self._lock:
            self._prune()
            self._rounds[round_.round_id] = resolver
            self._touched[round_.round_id] = _now()
        logger.info(
            "Opened round %s for poll %s (word_flip=%s, symbol_flip=%s).",
            round_.round_id,
            round_.poll_id,
            round_.word_flip,
            round_.symbol_flip,
        )
        return resolver

    def _live(self, round_id: str) -> Optional[AssignmentResolver]:
        """Return the round unless it is missing or past its TTL (then evict it)."""
        resolver = self._rounds.get(round_id)
        if resolver is None:
            return None
        touched = self._touched.get(round_id)
        if touched is None or touched < _now() - self.ttl:
            self._rounds.pop(round_id, None)
            self._touched.pop(round_id, None)
            logger.debug("Round %s expired on access.", round_id)
            return None
        return resolver

    def _get_owned(
        self, round_id: str, user_id: Optional[str]
    ) -> AssignmentResolver:
        resolver = self._live(round_id)
        if resolver is None:
            raise HTTPException(status_code=404, detail="Round not found or expired.")
        owner = resolver.round.owner_user_id
        if owner and owner != user_id:
            raise HTTPException(
                status_code=403, detail="This round belongs to another player."
            )
        return resolver

    async def get(
        self, round_id: str, user_id: Optional[str] = None
    ) -> AssignmentResolver:
        async with self._lock:
            return self._get_owned(round_id, user_id)

    async def apply(
        self,
        round_id: str,
        gesture: Callable[[AssignmentResolver], T],
        user_id: Optional[str] = None,
    ) -> tuple[AssignmentResolver, T]:
        """Run a gesture against a round under the registry lock."""
        async with self._lock:
            resolver = self._get_owned(round_id, user_id)
            result = gesture(resolver)
            self._touched[round_id] = _now()
            return resolver, result

    async def snapshot(self, round_id: str) -> Optional[Dict[str, Any]]:
        async with self._lock:
            resolver = self._live(round_id)
            return resolver.to_payload() if resolver else None

    async def discard(self, round_id: str) -> None:
        async with self._lock:
            self._rounds.pop(round_id, None)
            self._touched.pop(round_id, None)

    async def count(self) -> int:
        async with self._lock:
            return len(self._rounds)


round_state_manager = RoundStateManager()
