from dataclasses import dataclass
from typing import Optional


@dataclass(frozen=True)
class PlayerSession:
    """Explicit sign-in state handed to the progression engine."""

    user_id: Optional[str] = None

    @property
    def is_authenticated(self) -> bool:
        return bool(self.user_id)


ANONYMOUS = PlayerSession()
