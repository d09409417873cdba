"""Binary IS/IT assignment for a single poll view.

A round presents exactly two items and exactly two buckets. Placing either
item on a bucket resolves the whole round: the other item takes the
remaining bucket. Drag-and-drop and click-then-click are thin adapters over
:meth:`AssignmentResolver.place_on_bucket`.
"""

from __future__ import annotations

import random
import secrets
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Tuple

LEFT = "left"
RIGHT = "right"
ITEM_KEYS: Tuple[str, str] = (LEFT, RIGHT)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _new_round_id() -> str:
    return secrets.token_urlsafe(16)


class Bucket(str, Enum):
    IS = "IS"
    IT = "IT"

    @property
    def other(self) -> "Bucket":
        return Bucket.IT if self is Bucket.IS else Bucket.IS

    @classmethod
    def parse(cls, raw: Any) -> Optional["Bucket"]:
        if isinstance(raw, Bucket):
            return raw
        if raw is None:
            return None
        try:
            return cls(str(raw).strip().upper())
        except ValueError:
            return None


@dataclass(frozen=True)
class Item:
    key: str
    text: str
    image_url: Optional[str] = None


@dataclass(frozen=True)
class Assignment:
    """Resolved item-to-bucket mapping; either empty or complete."""

    moved: Optional[Item] = None
    other: Optional[Item] = None
    chosen: Optional[Bucket] = None

    @property
    def is_complete(self) -> bool:
        return (
            self.moved is not None
            and self.other is not None
            and self.chosen is not None
        )

    def bucket_for(self, item_key: str) -> Optional[Bucket]:
        if not self.is_complete:
            return None
        if self.moved.key == item_key:
            return self.chosen
        if self.other.key == item_key:
            return self.chosen.other
        return None

    def as_mapping(self) -> Dict[str, Bucket]:
        if not self.is_complete:
            return {}
        return {self.moved.key: self.chosen, self.other.key: self.chosen.other}

    def by_bucket(self) -> Dict[str, str]:
        if not self.is_complete:
            return {}
        return {
            self.chosen.value: self.moved.text,
            self.chosen.other.value: self.other.text,
        }


EMPTY_ASSIGNMENT = Assignment()


@dataclass
class Round:
    poll_id: str
    left: Item
    right: Item
    correct: Optional[Bucket] = None
    prompt_word: Optional[str] = None
    # Presentation coin flips; fixed for the round's lifetime.
    word_flip: bool = False
    symbol_flip: bool = False
    owner_user_id: Optional[str] = None
    round_id: str = field(default_factory=_new_round_id)
    created_at: datetime = field(default_factory=_now)

    @classmethod
    def create(
        cls,
        poll_id: str,
        left: Item,
        right: Item,
        *,
        correct: Optional[Bucket] = None,
        prompt_word: Optional[str] = None,
        owner_user_id: Optional[str] = None,
        rng: Optional[random.Random] = None,
    ) -> "Round":
        source = rng or random
        return cls(
            poll_id=poll_id,
            left=left,
            right=right,
            correct=correct,
            prompt_word=prompt_word,
            word_flip=source.random() < 0.5,
            symbol_flip=source.random() < 0.5,
            owner_user_id=owner_user_id,
        )

    def item(self, key: str) -> Optional[Item]:
        if key == LEFT:
            return self.left
        if key == RIGHT:
            return self.right
        return None

    def counterpart(self, key: str) -> Item:
        return self.right if key == LEFT else self.left

    @property
    def item_slots(self) -> Tuple[str, str]:
        return (RIGHT, LEFT) if self.word_flip else (LEFT, RIGHT)

    @property
    def bucket_slots(self) -> Tuple[Bucket, Bucket]:
        return (Bucket.IT, Bucket.IS) if self.symbol_flip else (Bucket.IS, Bucket.IT)


class AssignmentResolver:
    """Gesture state machine for one round."""

    def __init__(self, round_: Round) -> None:
        self.round = round_
        self.selected: Optional[str] = None
        self.dragging: Optional[str] = None
        self.assignment: Assignment = EMPTY_ASSIGNMENT
        self._columns: Dict[str, int] = {}

    @property
    def has_assignment(self) -> bool:
        return self.assignment.is_complete

    def _is_drop_target(self, bucket: Optional[Bucket], slot_index: Any) -> bool:
        if bucket is None or slot_index not in (0, 1):
            return False
        return self.round.bucket_slots[slot_index] is bucket

    def select_item(self, item_key: str) -> Optional[str]:
        if self.round.item(item_key) is None:
            return self.selected
        self.selected = None if self.selected == item_key else item_key
        return self.selected

    def begin_drag(self, item_key: str) -> None:
        if self.round.item(item_key) is None:
            return
        self.dragging = item_key

    def cancel_drag(self) -> None:
        self.dragging = None

    def drop_on_bucket(
        self, bucket: Optional[Bucket], slot_index: Any
    ) -> Optional[Assignment]:
        if self.dragging is None or not self._is_drop_target(bucket, slot_index):
            return None
        return self.place_on_bucket(self.dragging, bucket, slot_index)

    def click_bucket(
        self, bucket: Optional[Bucket], slot_index: Any
    ) -> Optional[Assignment]:
        if self.selected is None or not self._is_drop_target(bucket, slot_index):
            return None
        return self.place_on_bucket(self.selected, bucket, slot_index)

    def place_on_bucket(
        self,
        item_key: str,
        bucket: Bucket,
        slot_index: Optional[int] = None,
    ) -> Assignment:
        moved = self.round.item(item_key)
        if moved is None:
            raise ValueError(f"Unknown item {item_key!r}")
        if slot_index is None:
            slot_index = self.round.bucket_slots.index(bucket)
        other = self.round.counterpart(item_key)

        self.assignment = Assignment(moved=moved, other=other, chosen=bucket)
        self._columns = {moved.key: slot_index, other.key: slot_index ^ 1}
        self.selected = None
        self.dragging = None
        return self.assignment

    def reset(self) -> None:
        self.selected = None
        self.dragging = None
        self.assignment = EMPTY_ASSIGNMENT
        self._columns = {}

    def column_for_item(self, item_key: str) -> int:
        if self._columns:
            return self._columns[item_key]
        return self.round.item_slots.index(item_key)

    def to_payload(self) -> Dict[str, Any]:
        """Return a JSON-friendly snapshot for rendering the round."""
        round_ = self.round
        columns = [None, None]
        for key in ITEM_KEYS:
            columns[self.column_for_item(key)] = key
        return {
            "roundId": round_.round_id,
            "pollId": round_.poll_id,
            "promptWord": round_.prompt_word,
            "items": {
                key: {"text": item.text, "imageUrl": item.image_url}
                for key, item in ((LEFT, round_.left), (RIGHT, round_.right))
            },
            "itemSlots": list(round_.item_slots),
            "bucketSlots": [bucket.value for bucket in round_.bucket_slots],
            "columns": columns,
            "selected": self.selected,
            "dragging": self.dragging,
            "hasAssignment": self.has_assignment,
            "assignment": {
                key: bucket.value for key, bucket in self.assignment.as_mapping().items()
            },
            "byBucket": self.assignment.by_bucket(),
            "chosen": self.assignment.chosen.value if self.assignment.chosen else None,
            "createdAt": round_.created_at.isoformat(),
        }
