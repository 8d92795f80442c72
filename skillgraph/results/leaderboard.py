"""
Leaderboard over a set of TrueSkill ratings.

Wraps (mu, sigma) arrays with query helpers for ranking and matchup
analysis. Ordering uses the conservative skill clamp(mu - 3 sigma, 0, 2 mu_0),
the same scalar the engine reports per player.
"""

from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import numpy as np
import polars as pl

from ..base.rating import Rating
from ..systems.trueskill._numba_core import (
    compute_conservative_skill,
    match_quality_2p,
    team_win_probability,
)
from ..systems.trueskill.trueskill import TrueSkillConfig


def _compute_ranks(values: np.ndarray) -> np.ndarray:
    """
    Compute ranks for all players in O(n log n).

    Returns array where ranks[i] = rank of player i (1 = highest).
    """
    n = len(values)
    # Stable sort so tied players keep input order
    sorted_indices = np.argsort(-values, kind="stable")
    ranks = np.empty(n, dtype=np.int32)
    ranks[sorted_indices] = np.arange(1, n + 1)
    return ranks


def _get_names(indices: np.ndarray, player_names: Optional[Dict[int, str]]) -> List[str]:
    if player_names is None:
        return [f"Player_{i}" for i in indices]
    return [player_names.get(int(i), f"Player_{i}") for i in indices]


@dataclass
class Leaderboard:
    """
    Queryable TrueSkill ratings.

    Attributes:
        mu: Array of skill means
        sigma: Array of skill uncertainties
        config: Engine configuration the ratings were produced under
        player_names: Optional mapping of player index -> name
    """

    mu: np.ndarray
    sigma: np.ndarray
    config: TrueSkillConfig = field(default_factory=TrueSkillConfig)
    player_names: Optional[Dict[int, str]] = None

    # Cached
    _ranks: Optional[np.ndarray] = field(default=None, repr=False)

    def __post_init__(self):
        """Ensure arrays are contiguous and consistent."""
        self.mu = np.ascontiguousarray(self.mu, dtype=np.float64)
        self.sigma = np.ascontiguousarray(self.sigma, dtype=np.float64)
        if self.mu.shape != self.sigma.shape:
            raise ValueError(f"mu and sigma differ in shape: {self.mu.shape} vs {self.sigma.shape}")
        self._ranks = None

    @classmethod
    def from_ratings(
        cls,
        ratings: Sequence[Rating],
        config: Optional[TrueSkillConfig] = None,
        names: Optional[Sequence[str]] = None,
    ) -> "Leaderboard":
        player_names = None
        if names is not None:
            if len(names) != len(ratings):
                raise ValueError(f"got {len(names)} names for {len(ratings)} ratings")
            player_names = dict(enumerate(names))
        return cls(
            mu=np.array([r.mu for r in ratings], dtype=np.float64),
            sigma=np.array([r.sigma for r in ratings], dtype=np.float64),
            config=config if config is not None else TrueSkillConfig(),
            player_names=player_names,
        )

    @property
    def num_players(self) -> int:
        return len(self.mu)

    def conservative_skill(self) -> np.ndarray:
        """clamp(mu - 3 sigma, 0, 2 mu_0) for every player."""
        return compute_conservative_skill(self.mu, self.sigma, 2.0 * self.config.mu)

    @property
    def ranks(self) -> np.ndarray:
        """Lazily computed ranks by conservative skill (1 = highest)."""
        if self._ranks is None:
            self._ranks = _compute_ranks(self.conservative_skill())
        return self._ranks

    def rank(self, player_id: int) -> int:
        return int(self.ranks[player_id])

    def get_rating(self, player_id: int) -> Rating:
        return Rating(float(self.mu[player_id]), float(self.sigma[player_id]))

    def get_name(self, player_id: int) -> str:
        if self.player_names and player_id in self.player_names:
            return self.player_names[player_id]
        return f"Player_{player_id}"

    def win_probability(self, player1: int, player2: int) -> float:
        """P(player1 outperforms player2), draws ignored."""
        return team_win_probability(
            self.mu[player1:player1 + 1],
            self.sigma[player1:player1 + 1],
            self.mu[player2:player2 + 1],
            self.sigma[player2:player2 + 1],
            self.config.beta,
        )

    def match_quality(self, player1: int, player2: int) -> float:
        return match_quality_2p(
            self.mu[player1], self.sigma[player1],
            self.mu[player2], self.sigma[player2],
            self.config.beta,
        )

    def top(self, n: int = 10) -> pl.DataFrame:
        """Get top N players by conservative skill; empty for n <= 0."""
        # Ranks are unique, ties already broken by input order
        indices = np.argsort(self.ranks, kind="stable")[:max(n, 0)]
        return self._indices_to_dataframe(indices)

    def _indices_to_dataframe(self, indices: np.ndarray) -> pl.DataFrame:
        return pl.DataFrame({
            "rank": self.ranks[indices],
            "player_id": indices,
            "name": pl.Series(values=_get_names(indices, self.player_names), dtype=pl.Utf8),
            "mu": self.mu[indices],
            "sigma": self.sigma[indices],
            "conservative": self.conservative_skill()[indices],
        })

    def matchup(self, player1: int, player2: int) -> pl.DataFrame:
        """Side-by-side comparison with win probabilities and match quality."""
        p1_wins = self.win_probability(player1, player2)
        quality = self.match_quality(player1, player2)
        return pl.DataFrame({
            "player_id": [player1, player2],
            "name": [self.get_name(player1), self.get_name(player2)],
            "mu": [float(self.mu[player1]), float(self.mu[player2])],
            "sigma": [float(self.sigma[player1]), float(self.sigma[player2])],
            "win_prob": [p1_wins, 1.0 - p1_wins],
            "match_quality": [quality, quality],
        })

    def to_dataframe(self) -> pl.DataFrame:
        """All players, best first."""
        player_ids = np.arange(self.num_players)
        return pl.DataFrame({
            "player_id": player_ids,
            "name": _get_names(player_ids, self.player_names),
            "mu": self.mu,
            "sigma": self.sigma,
            "conservative": self.conservative_skill(),
            "rank": self.ranks,
        }).sort("rank")

    def __repr__(self) -> str:
        return f"Leaderboard(players={self.num_players}, beta={self.config.beta:.3f})"

    def __str__(self) -> str:
        return str(self.top(10))
