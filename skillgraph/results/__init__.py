"""Queryable views over rating results."""

from .leaderboard import Leaderboard

__all__ = ["Leaderboard"]
