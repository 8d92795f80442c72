"""
Factor kinds of the TrueSkill factor graph and their message updates.

The factor set is closed: prior, likelihood, sum and comparison. Each kind
is a small dataclass; updates are dispatched on ``factor.kind`` through
``update_message`` and ``log_normalization`` rather than through methods
on an open class hierarchy.

Every factor remembers the message it last sent along each edge (as pi/tau
arrays). Sending a new message first divides the old one out of the
variable's marginal, so repeated updates never double-count evidence.
"""

import enum
from dataclasses import dataclass, field
from typing import Tuple

import numpy as np

from ...base.gaussian import Gaussian, log_product_normalization, log_ratio_normalization
from ...base.variable_store import VariableStore
from ._numba_core import truncate


class FactorKind(enum.Enum):
    PRIOR = "prior"
    LIKELIHOOD = "likelihood"
    SUM = "sum"
    COMPARISON = "comparison"


@dataclass(eq=False)
class Factor:
    """Variables touched by a factor plus its last outgoing message per edge."""

    variables: Tuple[int, ...]
    message_pi: np.ndarray = field(init=False, repr=False)
    message_tau: np.ndarray = field(init=False, repr=False)

    kind = None

    def __post_init__(self):
        self.variables = tuple(int(v) for v in self.variables)
        self.message_pi = np.zeros(len(self.variables), dtype=np.float64)
        self.message_tau = np.zeros(len(self.variables), dtype=np.float64)

    @property
    def num_edges(self) -> int:
        return len(self.variables)

    def message(self, edge: int) -> Gaussian:
        return Gaussian(float(self.message_pi[edge]), float(self.message_tau[edge]))

    def cavity(self, edge: int, store: VariableStore) -> Gaussian:
        """Marginal of the edge's variable with this factor's message removed."""
        return store.get(self.variables[edge]) / self.message(edge)

    def _send(self, edge: int, new_message: Gaussian, store: VariableStore) -> float:
        """Swap the message on `edge` for `new_message`; return the marginal's change."""
        var_id = self.variables[edge]
        new_marginal = store.get(var_id) / self.message(edge) * new_message
        self.message_pi[edge] = new_message.pi
        self.message_tau[edge] = new_message.tau
        return store.set(var_id, new_marginal)


@dataclass(eq=False)
class PriorFactor(Factor):
    """Unary: N(mu, sigma^2 + tau^2) on a skill variable."""

    value: Gaussian = field(default_factory=Gaussian)

    kind = FactorKind.PRIOR


@dataclass(eq=False)
class LikelihoodFactor(Factor):
    """Binary (mean, value): value = mean + N(0, variance)."""

    variance: float = 0.0

    kind = FactorKind.LIKELIHOOD


@dataclass(eq=False)
class SumFactor(Factor):
    """
    variables[0] = sum(coefficients[i] * variables[i + 1]).

    Team performance uses unit coefficients; the difference between two
    adjacent teams uses (+1, -1).
    """

    coefficients: Tuple[float, ...] = ()

    kind = FactorKind.SUM

    def __post_init__(self):
        super().__post_init__()
        self.coefficients = tuple(float(c) for c in self.coefficients)
        if len(self.coefficients) != len(self.variables) - 1:
            raise ValueError(
                f"sum factor needs one coefficient per term: "
                f"{len(self.variables) - 1} terms, {len(self.coefficients)} coefficients"
            )


@dataclass(eq=False)
class ComparisonFactor(Factor):
    """Unary on a performance difference: d > margin (win) or |d| <= margin (draw)."""

    margin: float = 0.0
    draw: bool = False

    kind = FactorKind.COMPARISON


# =============================================================================
# Message updates
# =============================================================================

def _update_prior(factor: PriorFactor, edge: int, store: VariableStore) -> float:
    return factor._send(edge, factor.value, store)


def _update_likelihood(factor: LikelihoodFactor, edge: int, store: VariableStore) -> float:
    # Both directions convolve the other side's cavity with the noise variance
    other = factor.cavity(1 - edge, store)
    scale = 1.0 / (1.0 + other.pi * factor.variance)
    return factor._send(edge, Gaussian(other.pi * scale, other.tau * scale), store)


def _sum_weights(factor: SumFactor, edge: int) -> Tuple[Tuple[int, ...], Tuple[float, ...]]:
    """
    Express the variable on `edge` as a weighted sum of the other edges.

    s = sum_i a_i x_i   =>   x_j = s / a_j - sum_{i != j} (a_i / a_j) x_i
    """
    coeffs = factor.coefficients
    if edge == 0:
        return tuple(range(1, factor.num_edges)), coeffs
    a_j = coeffs[edge - 1]
    edges = [0]
    weights = [1.0 / a_j]
    for i, a_i in enumerate(coeffs, start=1):
        if i != edge:
            edges.append(i)
            weights.append(-a_i / a_j)
    return tuple(edges), tuple(weights)


def _update_sum(factor: SumFactor, edge: int, store: VariableStore) -> float:
    edges, weights = _sum_weights(factor, edge)

    variance = 0.0
    mean = 0.0
    for other_edge, weight in zip(edges, weights):
        cavity = factor.cavity(other_edge, store)
        if cavity.pi <= 0.0:
            # An unconstrained term leaves the target unconstrained
            return factor._send(edge, Gaussian(), store)
        variance += weight * weight / cavity.pi
        mean += weight * cavity.tau / cavity.pi

    pi = 1.0 / variance
    return factor._send(edge, Gaussian(pi, pi * mean), store)


def _update_comparison(factor: ComparisonFactor, edge: int, store: VariableStore) -> float:
    cavity = factor.cavity(edge, store)
    if cavity.pi <= 0.0:
        return 0.0
    pi_new, tau_new, _ = truncate(cavity.pi, cavity.tau, factor.margin, factor.draw)
    # New message is the truncated marginal with the cavity divided back out
    return factor._send(edge, Gaussian(pi_new, tau_new) / cavity, store)


_UPDATES = {
    FactorKind.PRIOR: _update_prior,
    FactorKind.LIKELIHOOD: _update_likelihood,
    FactorKind.SUM: _update_sum,
    FactorKind.COMPARISON: _update_comparison,
}


def update_message(factor: Factor, edge: int, store: VariableStore) -> float:
    """
    Recompute the message from `factor` toward its `edge` and apply it.

    Returns the change in the target variable's marginal.
    """
    if not 0 <= edge < factor.num_edges:
        raise IndexError(f"{factor.kind.value} factor has no edge {edge}")
    return _UPDATES[factor.kind](factor, edge, store)


# =============================================================================
# Evidence
# =============================================================================

def _log_z_none(factor: Factor, store: VariableStore) -> float:
    return 0.0


def _log_z_likelihood(factor: LikelihoodFactor, store: VariableStore) -> float:
    return log_ratio_normalization(store.get(factor.variables[0]), factor.message(0))


def _log_z_sum(factor: SumFactor, store: VariableStore) -> float:
    return sum(
        log_ratio_normalization(store.get(factor.variables[i]), factor.message(i))
        for i in range(1, factor.num_edges)
    )


def _log_z_comparison(factor: ComparisonFactor, store: VariableStore) -> float:
    message = factor.message(0)
    cavity = factor.cavity(0, store)
    if cavity.pi <= 0.0:
        return 0.0
    _, _, log_mass = truncate(cavity.pi, cavity.tau, factor.margin, factor.draw)
    return log_mass - log_product_normalization(cavity, message)


_LOG_NORMALIZATIONS = {
    FactorKind.PRIOR: _log_z_none,
    FactorKind.LIKELIHOOD: _log_z_likelihood,
    FactorKind.SUM: _log_z_sum,
    FactorKind.COMPARISON: _log_z_comparison,
}


def log_normalization(factor: Factor, store: VariableStore) -> float:
    """Factor's own contribution to the graph's log evidence."""
    return _LOG_NORMALIZATIONS[factor.kind](factor, store)
