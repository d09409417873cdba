from __future__ import annotations

from enum import Enum
from uuid import uuid4

from sqlalchemy import (
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    Text,
    UniqueConstraint,
    func,
)
from sqlalchemy.orm import relationship

from ..database import Base


def _uuid_str() -> str:
    return str(uuid4())


class PollStatus(str, Enum):
    DRAFT = "draft"
    PUBLISHED = "published"
    ARCHIVED = "archived"


class Poll(Base):
    __tablename__ = "polls"

    poll_id = Column(String(36), primary_key=True, default=_uuid_str)
    title = Column(String(255), nullable=False)
    status = Column(
        String(16), nullable=False, default=PollStatus.PUBLISHED.value, index=True
    )
    kind = Column(String(32), nullable=False, default="binary")
    prompt_word = Column(String(255), nullable=True)
    # IS / IT when the poll has a designated answer, else NULL.
    correct = Column(String(2), nullable=True)
    stage = Column(Integer, nullable=False, default=0, index=True)
    level = Column(Integer, nullable=False, default=1, index=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())

    object_links = relationship(
        "PollObjectLink", back_populates="poll", cascade="all, delete-orphan"
    )
    options = relationship(
        "PollOption", back_populates="poll", cascade="all, delete-orphan"
    )


class PollObject(Base):
    __tablename__ = "poll_objects"

    object_id = Column(String(36), primary_key=True, default=_uuid_str)
    word = Column(String(255), nullable=False)
    image_url = Column(Text, nullable=True)
    points = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())


class PollObjectLink(Base):
    __tablename__ = "poll_object_links"
    __table_args__ = (
        UniqueConstraint("poll_id", "side", name="uq_poll_object_link_side"),
    )

    link_id = Column(String(36), primary_key=True, default=_uuid_str)
    poll_id = Column(
        String(36),
        ForeignKey("polls.poll_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    side = Column(String(2), nullable=False)
    object_id = Column(
        String(36),
        ForeignKey("poll_objects.object_id", ondelete="CASCADE"),
        nullable=False,
    )

    poll = relationship("Poll", back_populates="object_links")
    poll_object = relationship("PollObject")


class PollOption(Base):
    __tablename__ = "poll_options"

    option_id = Column(String(36), primary_key=True, default=_uuid_str)
    poll_id = Column(
        String(36),
        ForeignKey("polls.poll_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    text = Column(String(64), nullable=False)

    poll = relationship("Poll", back_populates="options")
