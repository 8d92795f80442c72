"""
TrueSkill rating engine - factor graph with Gaussian belief propagation.

TrueSkill models player skill as a Gaussian distribution N(mu, sigma^2),
where mu is the estimated skill and sigma represents uncertainty.

Updates follow Herbrich, Minka, Graepel (2006), "TrueSkill: A Bayesian
Skill Rating System": a ranked result (with optional draws) is encoded as
a factor graph and posteriors are found by message passing. Matches with
more than two sides loop until the largest belief change in a pass falls
below a threshold.

Key formulas:
- draw margin eps = Phi^-1((p_draw + 1) / 2) * sqrt(n) * beta
- match quality (2 players) = sqrt(2 beta^2 / c^2) * exp(-(mu1 - mu2)^2 / (2 c^2))
- win probability = Phi(sum mu_A - sum mu_B / sqrt(sum sigma^2 + n beta^2))
- conservative skill = clamp(mu - 3 sigma, 0, 2 mu_0)
"""

import logging
import math
from dataclasses import dataclass
from typing import List, Optional, Sequence, Tuple, Union

import numpy as np

from ...base.gaussian import norm_ppf
from ...base.rating import Rating
from ...errors import DrawProbabilityOutOfRange, MalformedMatchError, UnsupportedArityError
from ._numba_core import compute_conservative_skill, match_quality_2p, team_win_probability
from .factor_graph import TrueSkillFactorGraph
from .schedule import LOOP_MAX_DELTA, LOOP_MAX_PASSES

logger = logging.getLogger(__name__)

# Constants for the TrueSkill ranking system
DEFAULT_MU = 25.0
DEFAULT_SIGMA = DEFAULT_MU / 3.0
DEFAULT_BETA = DEFAULT_SIGMA * 0.5
DEFAULT_TAU = DEFAULT_SIGMA * 0.01
DEFAULT_DRAW_PROBABILITY_PERCENT = 10.0

Draws = Union[bool, Sequence[bool]]


@dataclass(frozen=True)
class TrueSkillConfig:
    """Configuration for the TrueSkill engine.

    Default values follow the original TrueSkill paper:
    - mu = 25 (initial skill estimate)
    - sigma = 25/3 ≈ 8.333 (initial uncertainty)
    - beta = sigma/2 ≈ 4.167 (performance variability)
    - tau = sigma/100 ≈ 0.083 (skill drift per match)

    `draw_probability` is a fraction in [0, 1]; build configs from a
    percentage with `from_percentage`, which validates the range.
    """

    mu: float = DEFAULT_MU
    sigma: float = DEFAULT_SIGMA
    beta: float = DEFAULT_BETA
    tau: float = DEFAULT_TAU
    draw_probability: float = DEFAULT_DRAW_PROBABILITY_PERCENT / 100.0

    def __post_init__(self):
        if not 0.0 <= self.draw_probability <= 1.0:
            raise DrawProbabilityOutOfRange(self.draw_probability * 100.0)

    @classmethod
    def from_percentage(
        cls,
        mu: float,
        sigma: float,
        beta: float,
        tau: float,
        draw_probability_percent: float,
    ) -> "TrueSkillConfig":
        if not 0.0 <= draw_probability_percent <= 100.0:
            raise DrawProbabilityOutOfRange(draw_probability_percent)
        return cls(mu, sigma, beta, tau, draw_probability_percent / 100.0)

    def draw_margin(self, num_players: int = 2) -> float:
        """Half-width eps of the draw region for a comparison over `num_players`."""
        return norm_ppf((self.draw_probability + 1.0) / 2.0) * math.sqrt(num_players) * self.beta


class TrueSkill:
    """
    TrueSkill engine over an immutable configuration.

    Each call to `adjust_skills` / `adjust_team_skills` builds and discards
    its own factor graph, so one engine can serve concurrent callers.

    Parameters:
        config: Model parameters (default: TrueSkillConfig())
        max_delta: Loop schedule convergence threshold (default: 1e-4)
        max_passes: Loop schedule pass cap (default: 100)

    Example:
        >>> ts = TrueSkill.new_default(10.0)
        >>> alice, bob = ts.new_default_player(), ts.new_default_player()
        >>> (alice, bob), p = ts.adjust_skills([alice, bob], [False])
        >>> ts.conservative_skill(alice)
    """

    def __init__(
        self,
        config: Optional[TrueSkillConfig] = None,
        max_delta: float = LOOP_MAX_DELTA,
        max_passes: int = LOOP_MAX_PASSES,
    ):
        self._config = config if config is not None else TrueSkillConfig()
        self._max_delta = max_delta
        self._max_passes = max_passes

    @classmethod
    def new(
        cls,
        mu: float,
        sigma: float,
        beta: float,
        tau: float,
        draw_probability_percent: float,
    ) -> "TrueSkill":
        """Create an engine; the draw probability is a percentage in [0, 100]."""
        return cls(TrueSkillConfig.from_percentage(mu, sigma, beta, tau, draw_probability_percent))

    @classmethod
    def new_default(cls, draw_probability_percent: float = DEFAULT_DRAW_PROBABILITY_PERCENT) -> "TrueSkill":
        """Engine with the standard defaults (mu=25, sigma=mu/3, beta=sigma/2, tau=sigma/100)."""
        return cls.new(DEFAULT_MU, DEFAULT_SIGMA, DEFAULT_BETA, DEFAULT_TAU, draw_probability_percent)

    @property
    def config(self) -> TrueSkillConfig:
        return self._config

    # =========================================================================
    # Skill updates
    # =========================================================================

    def _normalize_draws(self, draws: Draws, num_teams: int) -> List[bool]:
        if isinstance(draws, (bool, np.bool_)):
            return [bool(draws)] * max(num_teams - 1, 0)
        return [bool(d) for d in draws]

    def _check_outcomes(self, draws: Sequence[bool]) -> None:
        # A zero draw margin cannot produce a draw, an infinite one cannot produce a win
        p = self._config.draw_probability
        if p == 0.0 and any(draws):
            raise MalformedMatchError(
                "draw reported but the configured draw probability is 0",
                "configure a non-zero draw probability to rate drawn matches",
            )
        if p == 1.0 and not all(draws):
            raise MalformedMatchError(
                "decisive result reported but the configured draw probability is 100%",
            )

    def build_factor_graph(
        self,
        teams: Sequence[Sequence[Rating]],
        draws: Draws,
    ) -> TrueSkillFactorGraph:
        """
        Build (but do not run) the factor graph for a ranked team result.

        Args:
            teams: Teams ranked best to worst, each a sequence of Ratings
            draws: Per adjacent pair, whether that pair tied; a single bool
                applies to every pair
        """
        flags = self._normalize_draws(draws, len(teams))
        self._check_outcomes(flags)
        return TrueSkillFactorGraph(
            teams,
            flags,
            self._config,
            max_delta=self._max_delta,
            max_passes=self._max_passes,
        )

    def adjust_team_skills(
        self,
        teams: Sequence[Sequence[Rating]],
        draws: Draws,
    ) -> Tuple[List[List[Rating]], float]:
        """
        New skill beliefs for every player after a ranked team result.

        Returns:
            (updated teams aligned to the input, probability of the observed
            outcome under the model)
        """
        graph = self.build_factor_graph(teams, draws)
        result = graph.run_schedule()
        probability = graph.probability()
        logger.debug(
            "Rated %d-team match: outcome probability %.4f after %d loop passes",
            graph.num_teams, probability, result.passes,
        )
        return graph.posterior(), probability

    def adjust_skills(
        self,
        players: Sequence[Rating],
        draws: Draws,
    ) -> Tuple[List[Rating], float]:
        """
        New skill beliefs after a ranked result between individual players.

        Args:
            players: Ratings ranked best to worst
            draws: One flag per adjacent pair (len(players) - 1), or a bool
                applied to every pair

        Returns:
            (updated ratings in input order, probability of the outcome)
        """
        teams, probability = self.adjust_team_skills([[p] for p in players], draws)
        return [team[0] for team in teams], probability

    # =========================================================================
    # Closed-form helpers (no factor graph)
    # =========================================================================

    def match_quality(self, players: Sequence[Rating]) -> float:
        """
        Probability that a match between exactly two players is drawn.

        Raises UnsupportedArityError for any other number of players.
        """
        if len(players) != 2:
            raise UnsupportedArityError("match_quality", 2, len(players))
        a, b = players
        return match_quality_2p(a.mu, a.sigma, b.mu, b.sigma, self._config.beta)

    def win_probability(self, team_a: Sequence[Rating], team_b: Sequence[Rating]) -> float:
        """P(team A's total performance exceeds team B's); ignores draws."""
        if len(team_a) == 0 or len(team_b) == 0:
            raise MalformedMatchError("win_probability needs two non-empty teams")
        return team_win_probability(
            np.array([r.mu for r in team_a], dtype=np.float64),
            np.array([r.sigma for r in team_a], dtype=np.float64),
            np.array([r.mu for r in team_b], dtype=np.float64),
            np.array([r.sigma for r in team_b], dtype=np.float64),
            self._config.beta,
        )

    def new_default_player(self) -> Rating:
        """Rating with the configured mu and sigma."""
        return Rating(self._config.mu, self._config.sigma)

    def conservative_skill(self, rating: Rating) -> float:
        """
        clamp(mu - 3 sigma, 0, 2 mu) with mu from the configuration.

        With the default configuration this is a value between 0 and 50.
        """
        return float(
            compute_conservative_skill(
                np.array([rating.mu], dtype=np.float64),
                np.array([rating.sigma], dtype=np.float64),
                2.0 * self._config.mu,
            )[0]
        )

    true_skill = conservative_skill

    def __repr__(self) -> str:
        c = self._config
        return (
            f"TrueSkill(mu={c.mu}, sigma={c.sigma:.2f}, beta={c.beta:.2f}, "
            f"tau={c.tau:.3f}, draw_probability={c.draw_probability:.2%})"
        )
