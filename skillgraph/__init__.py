"""
skillgraph - TrueSkill ratings by belief propagation on a factor graph.

Computes new (mu, sigma) skill beliefs after a ranked match between players
or teams, including draws, and the closed-form match quality, win
probability and conservative skill derived from the same model.

Quick Start:
    from skillgraph import TrueSkill, Leaderboard

    ts = TrueSkill.new_default(draw_probability_percent=10.0)
    alice, bob, carol = (ts.new_default_player() for _ in range(3))

    # alice beat bob, bob and carol tied
    (alice, bob, carol), p = ts.adjust_skills([alice, bob, carol], [False, True])

    ts.match_quality([alice, bob])       # draw probability of a rematch
    ts.win_probability([alice], [bob])   # P(alice outperforms bob)
    ts.conservative_skill(alice)         # clamp(mu - 3 sigma, 0, 2 mu)

    board = Leaderboard.from_ratings([alice, bob, carol], ts.config, ["alice", "bob", "carol"])
    print(board.top(3))
"""

from .base import Gaussian, Rating, VariableStore
from .errors import (
    DrawProbabilityOutOfRange,
    MalformedMatchError,
    SkillGraphError,
    UnsupportedArityError,
)
from .results import Leaderboard
from .systems import TrueSkill, TrueSkillConfig, TrueSkillFactorGraph

__version__ = "0.1.0"

__all__ = [
    # Base
    "Gaussian",
    "Rating",
    "VariableStore",
    # Systems
    "TrueSkill",
    "TrueSkillConfig",
    "TrueSkillFactorGraph",
    # Results
    "Leaderboard",
    # Errors
    "SkillGraphError",
    "DrawProbabilityOutOfRange",
    "MalformedMatchError",
    "UnsupportedArityError",
]
