from sqlalchemy import Column, DateTime, Integer, String, func

from isit_game.database import Base

DEFAULT_STAGE = 0
DEFAULT_LEVEL = 1


class User(Base):
    __tablename__ = "users"

    user_id = Column(String(36), primary_key=True, index=True)
    login = Column(String, unique=True, index=True, nullable=False)
    display_name = Column(String, nullable=True)
    # Position in the stage/level progression; advanced by the next-poll decision.
    current_stage = Column(Integer, nullable=False, default=DEFAULT_STAGE)
    current_level = Column(Integer, nullable=False, default=DEFAULT_LEVEL)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
