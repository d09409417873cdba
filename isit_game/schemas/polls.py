from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field


class PollSummary(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    poll_id: str
    title: str
    kind: str
    status: str
    stage: int
    level: int
    correct: Optional[str] = None


class PollListResponse(BaseModel):
    polls: List[PollSummary] = Field(default_factory=list)


class PollContentResponse(BaseModel):
    poll_id: str
    title: str
    left_word: str
    right_word: str
    left_image_url: Optional[str] = None
    right_image_url: Optional[str] = None
    prompt_word: Optional[str] = None
    correct: Optional[str] = None


class PollResultOption(BaseModel):
    option_id: str
    text: str
    votes: int = 0
    percentage: int = 0


class PollResultsResponse(BaseModel):
    poll_id: str
    title: str
    total_votes: int = 0
    options: List[PollResultOption] = Field(default_factory=list)


class ContinueResponse(BaseModel):
    redirect: str
    next_poll_id: Optional[str] = None


class PlayerMetricsResponse(BaseModel):
    polls_taken: int
    polls_incorrect: int
    overall_dq: float
    points_earned: int
    points_possible: int
    aq: int
