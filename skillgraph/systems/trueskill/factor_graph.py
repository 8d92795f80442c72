"""
Factor graph for one TrueSkill match.

Layers, built in rank order:

    skill_ij  --prior-->            N(mu, sigma^2 + tau^2)
    perf_ij   --likelihood-->       skill_ij + N(0, beta^2)
    team_i    --sum-->              sum_j perf_ij
    diff_i    --sum-->              team_i - team_{i+1}
    diff_i    --comparison-->       diff_i > eps (win) or |diff_i| <= eps (draw)

The graph owns its variable store and is used for a single match; nothing
is kept after the engine reads the posteriors back out.
"""

import logging
import math
from typing import List, Optional, Sequence, TYPE_CHECKING

from ...base.gaussian import Gaussian, log_product_normalization
from ...base.rating import Rating
from ...base.variable_store import VariableStore
from ...errors import MalformedMatchError
from .factors import (
    ComparisonFactor,
    Factor,
    LikelihoodFactor,
    PriorFactor,
    SumFactor,
    log_normalization,
)
from .schedule import LOOP_MAX_DELTA, LOOP_MAX_PASSES, Schedule, ScheduleResult, ScheduleStep

if TYPE_CHECKING:
    from .trueskill import TrueSkillConfig

logger = logging.getLogger(__name__)


def validate_match(teams: Sequence[Sequence[Rating]], draws: Sequence[bool]) -> None:
    """Raise MalformedMatchError unless `teams`/`draws` describe a ranked result."""
    if len(teams) < 2:
        raise MalformedMatchError(f"a match needs at least two entrants, got {len(teams)}")
    for rank, team in enumerate(teams):
        if len(team) == 0:
            raise MalformedMatchError(f"team at rank {rank} has no players")
    if len(draws) != len(teams) - 1:
        raise MalformedMatchError(
            f"expected {len(teams) - 1} draw flags for {len(teams)} entrants, got {len(draws)}",
            "pass one flag per adjacent pair, in rank order",
        )


class TrueSkillFactorGraph:
    """
    Factor graph, variable store and schedule for one ranked result.

    Attributes:
        store: Variable beliefs for this match
        skill_ids: Skill variable id per player, grouped by team
        factors: Every factor, in construction order
        schedule: Update order driving the message passing
    """

    def __init__(
        self,
        teams: Sequence[Sequence[Rating]],
        draws: Sequence[bool],
        config: "TrueSkillConfig",
        max_delta: float = LOOP_MAX_DELTA,
        max_passes: int = LOOP_MAX_PASSES,
    ):
        validate_match(teams, draws)
        self.config = config
        self.draws = tuple(bool(d) for d in draws)
        self.store = VariableStore(Gaussian())

        self.skill_ids: List[List[int]] = []
        self.priors: List[PriorFactor] = []
        self.likelihoods: List[LikelihoodFactor] = []
        self.team_sums: List[SumFactor] = []
        self.differences: List[SumFactor] = []
        self.comparisons: List[ComparisonFactor] = []

        self._build(teams)
        self.schedule = self._build_schedule(max_delta, max_passes)
        self._result: Optional[ScheduleResult] = None

        logger.debug(
            "Built factor graph: %d teams, %d variables, %d factors, %d steps",
            len(teams), len(self.store), len(self.factors), len(self.schedule),
        )

    @property
    def factors(self) -> List[Factor]:
        return [
            *self.priors,
            *self.likelihoods,
            *self.team_sums,
            *self.differences,
            *self.comparisons,
        ]

    @property
    def num_teams(self) -> int:
        return len(self.skill_ids)

    def _build(self, teams: Sequence[Sequence[Rating]]) -> None:
        beta_sq = self.config.beta * self.config.beta
        tau_sq = self.config.tau * self.config.tau

        team_ids = []
        for team in teams:
            skills = []
            performances = []
            for rating in team:
                skill = self.store.allocate()
                performance = self.store.allocate()
                # Dynamics: variance grows by tau^2 since the last observation
                prior = Gaussian.from_mu_sigma(rating.mu, math.sqrt(rating.variance + tau_sq))
                self.priors.append(PriorFactor((skill,), value=prior))
                self.likelihoods.append(LikelihoodFactor((skill, performance), variance=beta_sq))
                skills.append(skill)
                performances.append(performance)

            team_perf = self.store.allocate()
            self.team_sums.append(
                SumFactor((team_perf, *performances), coefficients=(1.0,) * len(performances))
            )
            self.skill_ids.append(skills)
            team_ids.append(team_perf)

        for i, draw in enumerate(self.draws):
            diff = self.store.allocate()
            self.differences.append(
                SumFactor((diff, team_ids[i], team_ids[i + 1]), coefficients=(1.0, -1.0))
            )
            n_players = len(teams[i]) + len(teams[i + 1])
            self.comparisons.append(
                ComparisonFactor((diff,), margin=self.config.draw_margin(n_players), draw=draw)
            )

    def _build_schedule(self, max_delta: float, max_passes: int) -> Schedule:
        setup = [ScheduleStep(f, 0) for f in self.priors]
        setup += [ScheduleStep(f, 1) for f in self.likelihoods]
        setup += [ScheduleStep(f, 0) for f in self.team_sums]

        diffs = self.differences
        comps = self.comparisons
        n = len(diffs)

        loop: List[ScheduleStep] = []
        teardown: List[ScheduleStep] = []
        if n == 1:
            # Two teams: the graph is a tree, one sweep is exact
            setup += [
                ScheduleStep(diffs[0], 0),
                ScheduleStep(comps[0], 0),
                ScheduleStep(diffs[0], 1),
                ScheduleStep(diffs[0], 2),
            ]
        else:
            # Forward in rank order, sending to the lower-ranked team...
            for i in range(n - 1):
                loop += [ScheduleStep(diffs[i], 0), ScheduleStep(comps[i], 0), ScheduleStep(diffs[i], 2)]
            # ...then backward, sending to the higher-ranked team
            for i in range(n - 1, 0, -1):
                loop += [ScheduleStep(diffs[i], 0), ScheduleStep(comps[i], 0), ScheduleStep(diffs[i], 1)]
            teardown += [ScheduleStep(diffs[0], 1), ScheduleStep(diffs[n - 1], 2)]

        for team_sum in self.team_sums:
            teardown += [ScheduleStep(team_sum, edge) for edge in range(1, team_sum.num_edges)]
        teardown += [ScheduleStep(f, 0) for f in self.likelihoods]

        return Schedule(setup, loop, teardown, max_delta=max_delta, max_passes=max_passes)

    def run_schedule(self) -> ScheduleResult:
        """Run the full schedule. Safe to call again on a converged graph."""
        self._result = self.schedule.run(self.store)
        return self._result

    @property
    def result(self) -> Optional[ScheduleResult]:
        """Result of the most recent schedule run, if any."""
        return self._result

    def skill(self, team: int, player: int = 0) -> Gaussian:
        return self.store.get(self.skill_ids[team][player])

    def posterior(self) -> List[List[Rating]]:
        """Current skill beliefs as Ratings, aligned with the input teams."""
        return [
            [Rating.from_gaussian(self.store.get(var_id)) for var_id in team]
            for team in self.skill_ids
        ]

    def log_evidence(self) -> float:
        """
        Log probability of the observed ranking under the model.

        Re-multiplies every factor's final message into fresh marginals,
        accumulating the normalisation of each product, then adds each
        factor's own log normalisation.
        """
        scratch = self.store.copy()
        scratch.reset()

        log_z = 0.0
        for factor in self.factors:
            for edge, var_id in enumerate(factor.variables):
                marginal = scratch.get(var_id)
                message = factor.message(edge)
                log_z += log_product_normalization(marginal, message)
                scratch.set(var_id, marginal * message)

        log_z += sum(log_normalization(factor, self.store) for factor in self.factors)
        return log_z

    def probability(self) -> float:
        """exp(log_evidence())."""
        return math.exp(self.log_evidence())

    def __repr__(self) -> str:
        sizes = [len(team) for team in self.skill_ids]
        return (
            f"TrueSkillFactorGraph(teams={sizes}, variables={len(self.store)}, "
            f"factors={len(self.factors)})"
        )
