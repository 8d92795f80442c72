"""
Gaussian belief over a single scalar.

Uses precision form (pi, tau) for exact message products and quotients:
- pi = 1/sigma^2 (precision)
- tau = mu/sigma^2 (precision-weighted mean)

A precision of zero is the uninformative belief (infinite variance) that
seeds every variable before a factor touches it.
"""

import math
from dataclasses import dataclass

from numba import njit
from scipy.special import ndtri

# Constants
SQRT2 = math.sqrt(2)
SQRT2PI = math.sqrt(2 * math.pi)
LOG_SQRT2PI = math.log(SQRT2PI)
INF = float("inf")


@njit(cache=True)
def norm_pdf(x: float) -> float:
    """Standard normal PDF."""
    return math.exp(-0.5 * x * x) / SQRT2PI


@njit(cache=True)
def norm_cdf(x: float) -> float:
    """Standard normal CDF (erfc form keeps precision in the lower tail)."""
    return 0.5 * math.erfc(-x / SQRT2)


def norm_ppf(p: float) -> float:
    """Inverse CDF (percent point function) of the standard normal."""
    return float(ndtri(p))


@dataclass(frozen=True)
class Gaussian:
    """
    Immutable Gaussian in canonical form.

    Products and quotients never reject their result: a quotient may carry
    a precision <= 0 while it is used as an intermediate value inside a
    factor update.
    """

    pi: float = 0.0
    tau: float = 0.0

    @classmethod
    def from_mu_sigma(cls, mu: float, sigma: float) -> "Gaussian":
        if sigma == INF:
            return cls()
        if sigma <= 0.0:
            raise ValueError(f"sigma must be positive, got {sigma!r}")
        pi = 1.0 / (sigma * sigma)
        return cls(pi=pi, tau=mu * pi)

    @classmethod
    def from_precision(cls, pi: float, tau: float) -> "Gaussian":
        return cls(pi=pi, tau=tau)

    @property
    def is_uninformative(self) -> bool:
        return self.pi == 0.0

    @property
    def mu(self) -> float:
        """Mean of the distribution (0 for the uninformative belief)."""
        if self.pi == 0.0:
            return 0.0
        return self.tau / self.pi

    @property
    def sigma(self) -> float:
        """Standard deviation; +inf unless the precision is positive."""
        if self.pi > 0.0:
            return 1.0 / math.sqrt(self.pi)
        return INF

    @property
    def variance(self) -> float:
        if self.pi > 0.0:
            return 1.0 / self.pi
        return INF

    def __mul__(self, other: "Gaussian") -> "Gaussian":
        """Product of densities: pi and tau add."""
        return Gaussian(self.pi + other.pi, self.tau + other.tau)

    def __truediv__(self, other: "Gaussian") -> "Gaussian":
        """Quotient of densities: pi and tau subtract."""
        return Gaussian(self.pi - other.pi, self.tau - other.tau)

    def delta(self, other: "Gaussian") -> float:
        """
        Magnitude of change between two beliefs: |d mu| + |d sigma|.

        Two uninformative beliefs are identical; an uninformative belief
        differs from any informative one by +inf.
        """
        if self.is_uninformative and other.is_uninformative:
            return 0.0
        if self.sigma == INF or other.sigma == INF:
            return INF
        return abs(self.mu - other.mu) + abs(self.sigma - other.sigma)

    def __repr__(self) -> str:
        return f"Gaussian(mu={self.mu:.4f}, sigma={self.sigma:.4f})"


def log_product_normalization(left: Gaussian, right: Gaussian) -> float:
    """
    Log of the normalising constant of left * right.

    log N(mu_l; mu_r, var_l + var_r). Zero when either side is uninformative.
    """
    if left.pi == 0.0 or right.pi == 0.0:
        return 0.0
    variance_sum = left.variance + right.variance
    mean_diff = left.mu - right.mu
    return -LOG_SQRT2PI - 0.5 * math.log(variance_sum) - mean_diff * mean_diff / (2.0 * variance_sum)


def log_ratio_normalization(numerator: Gaussian, denominator: Gaussian) -> float:
    """
    Log of the normalising constant of numerator / denominator.

    Zero when either side is uninformative, or when the quotient is not a
    proper density (denominator no wider than numerator).
    """
    if numerator.pi == 0.0 or denominator.pi == 0.0:
        return 0.0
    variance_diff = denominator.variance - numerator.variance
    if variance_diff <= 0.0:
        return 0.0
    mean_diff = numerator.mu - denominator.mu
    return (
        math.log(denominator.variance)
        + LOG_SQRT2PI
        - 0.5 * math.log(variance_diff)
        + mean_diff * mean_diff / (2.0 * variance_diff)
    )
