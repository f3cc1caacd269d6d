# Database models
from .user import User
from .room import Room, Player
from .word_pair import WordCategory, WordPair
from .match import Round, Clue, Vote

__all__ = [
    "User",
    "Room", "Player",
    "WordCategory", "WordPair",
    "Round", "Clue", "Vote",
]
