import logging
from typing import Optional
from uuid import uuid4

from sqlalchemy import func
from sqlalchemy.orm import Session

from ..models.user import DEFAULT_LEVEL, DEFAULT_STAGE, User

logger = logging.getLogger(__name__)


class PlayerManager:
    """Creates and looks up players. New players start at stage 0, level 1."""

    def __init__(self, db: Session) -> None:
        self.db = db

    def get_player_by_login(self, login: str) -> Optional[User]:
        """Get a player by login (case-insensitive)."""
        if not login:
            return None
        clean_login = login.strip().lower()
        return self.db.query(User).filter(func.lower(User.login) == clean_login).first()

    def add_player(self, login: str, display_name: Optional[str] = None) -> User:
        """Add a new player. Raises ValueError if the login is blank or taken."""
        clean_login = (login or "").strip().lower()
        if not clean_login:
            raise ValueError("A login is required to create a player.")
        if self.get_player_by_login(clean_login) is not None:
            logger.warning("Attempt to add existing player with login: %s", clean_login)
            raise ValueError(f"Player with login {clean_login} already exists.")

        player = User(
            user_id=str(uuid4()),
            login=clean_login,
            display_name=(display_name or "").strip() or clean_login,
            current_stage=DEFAULT_STAGE,
            current_level=DEFAULT_LEVEL,
        )
        self.db.add(player)
        self.db.commit()
        self.db.refresh(player)
        logger.info("Created player %s (%s).", player.user_id, clean_login)
        return player

    def get_or_create_player(
        self, login: str, display_name: Optional[str] = None
    ) -> User:
        existing = self.get_player_by_login(login)
        if existing is not None:
            return existing
        return self.add_player(login, display_name)
