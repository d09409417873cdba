from uuid import uuid4

from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    String,
    UniqueConstraint,
    func,
)

from ..database import Base


def generate_vote_id() -> str:
    return str(uuid4())


class PollVote(Base):
    __tablename__ = "poll_votes"
    __table_args__ = (
        UniqueConstraint("poll_id", "user_id", name="uq_poll_vote_poll_user"),
    )

    vote_id = Column(String(36), primary_key=True, default=generate_vote_id)
    poll_id = Column(
        String(36),
        ForeignKey("polls.poll_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    option_id = Column(
        String(36),
        ForeignKey("poll_options.option_id", ondelete="CASCADE"),
        nullable=False,
    )
    user_id = Column(
        String(36),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    is_correct = Column(Boolean, nullable=True)
    points_earned = Column(Integer, nullable=False, default=0)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(
        DateTime(timezone=True), server_default=func.now(), onupdate=func.now()
    )
