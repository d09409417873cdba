# Import models to make them accessible via isit_game.models
# and ensure they are registered with SQLAlchemy's Base metadata
from .user import User
from .poll import Poll, PollObject, PollObjectLink, PollOption, PollStatus
from .vote import PollVote

__all__ = [
    "User",
    "Poll",
    "PollObject",
    "PollObjectLink",
    "PollOption",
    "PollStatus",
    "PollVote",
]
