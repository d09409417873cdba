from .session import ANONYMOUS, PlayerSession
from .auth import (
    create_access_token,
    decode_access_token,
    get_token_from_request,
    get_player_session,
    ACCESS_TOKEN_EXPIRE_MINUTES,
    ALGORITHM,
)

__all__ = [
    "ANONYMOUS",
    "PlayerSession",
    "create_access_token",
    "decode_access_token",
    "get_token_from_request",
    "get_player_session",
    "ACCESS_TOKEN_EXPIRE_MINUTES",
    "ALGORITHM",
]
