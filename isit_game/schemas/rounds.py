from __future__ import annotations

from typing import Dict, List, Literal, Optional

from pydantic import BaseModel, Field

from isit_game.services.assignment import Bucket

ItemKey = Literal["left", "right"]
SlotIndex = Literal[0, 1]


class RoundItem(BaseModel):
    text: str
    imageUrl: Optional[str] = None


class RoundStateResponse(BaseModel):
    roundId: str
    pollId: str
    promptWord: Optional[str] = None
    items: Dict[str, RoundItem]
    itemSlots: List[str]
    bucketSlots: List[str]
    columns: List[Optional[str]]
    selected: Optional[str] = None
    dragging: Optional[str] = None
    hasAssignment: bool = False
    assignment: Dict[str, str] = Field(default_factory=dict)
    byBucket: Dict[str, str] = Field(default_factory=dict)
    chosen: Optional[str] = None
    createdAt: str


class SelectItemRequest(BaseModel):
    item: ItemKey


class DragStartRequest(BaseModel):
    item: ItemKey


class BucketTargetRequest(BaseModel):
    """A drop or click on a bucket; a missing bucket means no valid target."""

    bucket: Optional[Bucket] = None
    slot_index: Optional[SlotIndex] = None


class ConfirmResponse(BaseModel):
    status: str
    redirect: Optional[str] = None
    next_poll_id: Optional[str] = None
    crossed_stage: Optional[int] = None
    crossed_level: Optional[int] = None
    correct: Optional[bool] = None
    message: Optional[str] = None
    round: Optional[RoundStateResponse] = None
