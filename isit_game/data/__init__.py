"""
Data access layer providing managers for players, polls and votes.
Each manager wraps a SQLAlchemy session handed in by the caller.
"""

from .player_manager import PlayerManager
from .poll_manager import PollContent, PollManager
from .vote_manager import VoteManager, VoteReceipt

__all__ = ["PlayerManager", "PollContent", "PollManager", "VoteManager", "VoteReceipt"]
