"""
Message-passing schedule for a factor graph.

A schedule is an explicit, ordered list of (factor, edge) update steps in
three phases:

- setup: run once (priors, skill -> performance, team sums)
- loop: one pass, repeated until the largest step delta in a pass falls
  below ``max_delta`` or ``max_passes`` passes have run
- teardown: run once (messages back toward the skill variables)

Termination is decided here and nowhere else. Hitting the pass cap is not
an error: the graph keeps its best-available beliefs.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Sequence

from ...base.variable_store import VariableStore
from .factors import Factor, update_message

logger = logging.getLogger(__name__)

LOOP_MAX_DELTA = 1e-4  # Desired accuracy for the loop schedule
LOOP_MAX_PASSES = 100


@dataclass(frozen=True)
class ScheduleStep:
    """Update `factor` toward the variable on its `edge`."""

    factor: Factor
    edge: int

    def run(self, store: VariableStore) -> float:
        return update_message(self.factor, self.edge, store)

    def __repr__(self) -> str:
        return f"ScheduleStep({self.factor.kind.value} -> var {self.factor.variables[self.edge]})"


@dataclass(frozen=True)
class ScheduleResult:
    """Outcome of one schedule run."""

    passes: int      # Loop passes executed (0 when there is no loop)
    delta: float     # Largest step delta of the last loop pass
    converged: bool  # False only when the pass cap stopped the loop


def run_steps(steps: Sequence[ScheduleStep], store: VariableStore) -> float:
    """Run steps in order; return the largest delta any of them induced."""
    max_delta = 0.0
    for step in steps:
        delta = step.run(store)
        if delta > max_delta:
            max_delta = delta
    return max_delta


@dataclass
class Schedule:
    setup: List[ScheduleStep] = field(default_factory=list)
    loop: List[ScheduleStep] = field(default_factory=list)
    teardown: List[ScheduleStep] = field(default_factory=list)
    max_delta: float = LOOP_MAX_DELTA
    max_passes: int = LOOP_MAX_PASSES

    def __post_init__(self):
        if self.max_passes < 1:
            raise ValueError(f"max_passes must be at least 1, got {self.max_passes}")
        if self.max_delta <= 0.0:
            raise ValueError(f"max_delta must be positive, got {self.max_delta}")

    def __len__(self) -> int:
        return len(self.setup) + len(self.loop) + len(self.teardown)

    def run(self, store: VariableStore) -> ScheduleResult:
        run_steps(self.setup, store)

        passes = 0
        delta = 0.0
        converged = True
        if self.loop:
            converged = False
            while passes < self.max_passes:
                delta = run_steps(self.loop, store)
                passes += 1
                if delta <= self.max_delta:
                    converged = True
                    break

            if converged:
                logger.debug("Schedule converged after %d passes (delta=%.3g)", passes, delta)
            else:
                logger.debug(
                    "Schedule stopped at pass cap %d with delta=%.3g > %.3g",
                    passes, delta, self.max_delta,
                )

        run_steps(self.teardown, store)
        return ScheduleResult(passes=passes, delta=delta, converged=converged)
