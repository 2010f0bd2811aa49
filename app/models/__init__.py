from app import db  # noqa: F401 - imported for model imports

from .bet import Bet
from .game import Game, GameOutcome, GameType
from .player import Player
from .user import Role, User

__all__ = [
    "User",
    "Role",
    "Player",
    "Game",
    "GameType",
    "GameOutcome",
    "Bet",
]
