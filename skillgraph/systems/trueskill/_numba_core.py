"""
Numba-accelerated core functions for the factor-graph TrueSkill engine.

The comparison factor truncates a Gaussian performance difference to the
region consistent with the observed result. Its closed form uses the
correction functions of the normalised difference t and margin eps:

- v_exceeds(t, eps) = pdf(t - eps) / Phi(t - eps)          (win, mean shift)
- w_exceeds(t, eps) = v * (v + t - eps)                    (win, variance)
- v_within(t, eps)  = (pdf(-eps - t) - pdf(eps - t)) / (Phi(eps - t) - Phi(-eps - t))
- w_within(t, eps)  = v^2 + ((eps - t) pdf(eps - t) + (eps + t) pdf(eps + t)) / Z

The closed-form prediction helpers (match quality, win probability,
conservative skill) live here as well, as in the per-system cores.
"""

import math

import numpy as np
from numba import njit

from ...base.gaussian import norm_cdf, norm_pdf

# Below this the CDF term underflows and the asymptotic branch is used
TRUNCATION_UNDERFLOW = 2.222758749e-162
W_EPSILON = 1e-12


# =============================================================================
# Truncation correction functions
# =============================================================================

@njit(cache=True)
def v_exceeds_margin(t: float, eps: float) -> float:
    """Mean correction for a decisive result: difference > eps."""
    denom = norm_cdf(t - eps)
    if denom < TRUNCATION_UNDERFLOW:
        return -t + eps
    return norm_pdf(t - eps) / denom


@njit(cache=True)
def w_exceeds_margin(t: float, eps: float) -> float:
    """Variance correction for a decisive result, in [0, 1]."""
    denom = norm_cdf(t - eps)
    if denom < TRUNCATION_UNDERFLOW:
        if t < 0.0:
            return 1.0
        return 0.0
    v = v_exceeds_margin(t, eps)
    return v * (v + t - eps)


@njit(cache=True)
def v_within_margin(t: float, eps: float) -> float:
    """Mean correction for a draw: |difference| <= eps."""
    t_abs = abs(t)
    denom = norm_cdf(eps - t_abs) - norm_cdf(-eps - t_abs)
    if denom < TRUNCATION_UNDERFLOW:
        if t < 0.0:
            return -t - eps
        return -t + eps
    numerator = norm_pdf(-eps - t_abs) - norm_pdf(eps - t_abs)
    if t < 0.0:
        return -numerator / denom
    return numerator / denom


@njit(cache=True)
def w_within_margin(t: float, eps: float) -> float:
    """Variance correction for a draw, in [0, 1]."""
    t_abs = abs(t)
    denom = norm_cdf(eps - t_abs) - norm_cdf(-eps - t_abs)
    if denom < TRUNCATION_UNDERFLOW:
        return 1.0
    v = v_within_margin(t_abs, eps)
    return v * v + (
        (eps - t_abs) * norm_pdf(eps - t_abs) - (-eps - t_abs) * norm_pdf(-eps - t_abs)
    ) / denom


@njit(cache=True)
def truncate(pi: float, tau: float, eps: float, draw: bool) -> tuple:
    """
    Moment-match a Gaussian (pi, tau) truncated to the observed outcome.

    Win:  keep d > eps.   Draw: keep |d| <= eps.

    Returns (pi_new, tau_new, log_mass) where log_mass is the log of the
    probability mass the truncation retains.
    """
    if draw and math.isinf(eps):
        # Every difference is a draw: nothing to truncate
        return pi, tau, 0.0

    sqrt_c = math.sqrt(pi)
    t = tau / sqrt_c
    eps_scaled = eps * sqrt_c

    if draw:
        v = v_within_margin(t, eps_scaled)
        w = w_within_margin(t, eps_scaled)
        # Symmetric interval: |t| keeps the difference away from cancellation
        t_abs = abs(t)
        mass = norm_cdf(eps_scaled - t_abs) - norm_cdf(-eps_scaled - t_abs)
    else:
        v = v_exceeds_margin(t, eps_scaled)
        w = w_exceeds_margin(t, eps_scaled)
        mass = norm_cdf(t - eps_scaled)

    # Clamp w away from 1 so the truncated variance stays positive
    if w > 1.0 - W_EPSILON:
        w = 1.0 - W_EPSILON

    denom = 1.0 - w
    pi_new = pi / denom
    tau_new = (tau + sqrt_c * v) / denom

    if mass > 0.0:
        log_mass = math.log(mass)
    else:
        log_mass = -np.inf
    return pi_new, tau_new, log_mass


# =============================================================================
# Closed-form predictions
# =============================================================================

@njit(cache=True, fastmath=True)
def match_quality_2p(
    mu1: float,
    sigma1: float,
    mu2: float,
    sigma2: float,
    beta: float,
) -> float:
    """
    Draw-likelihood quality of a two-entrant match.

    q = sqrt(2 beta^2 / c^2) * exp(-(mu1 - mu2)^2 / (2 c^2))
    where c^2 = 2 beta^2 + sigma1^2 + sigma2^2
    """
    two_beta_sq = 2.0 * beta * beta
    c_sq = two_beta_sq + sigma1 * sigma1 + sigma2 * sigma2
    delta = mu1 - mu2
    return math.sqrt(two_beta_sq / c_sq) * math.exp(-delta * delta / (2.0 * c_sq))


@njit(cache=True, fastmath=True)
def team_win_probability(
    mu_a: np.ndarray,
    sigma_a: np.ndarray,
    mu_b: np.ndarray,
    sigma_b: np.ndarray,
    beta: float,
) -> float:
    """
    P(sum of team A's performances > sum of team B's).

    Phi(delta_mu / sqrt(sum sigma^2 + (|A| + |B|) beta^2)); draws ignored.
    """
    delta_mu = 0.0
    sum_sigma_sq = 0.0
    for i in range(len(mu_a)):
        delta_mu += mu_a[i]
        sum_sigma_sq += sigma_a[i] * sigma_a[i]
    for i in range(len(mu_b)):
        delta_mu -= mu_b[i]
        sum_sigma_sq += sigma_b[i] * sigma_b[i]

    player_count = len(mu_a) + len(mu_b)
    denom = math.sqrt(player_count * beta * beta + sum_sigma_sq)
    return norm_cdf(delta_mu / denom)


@njit(cache=True, fastmath=True)
def compute_conservative_skill(
    mu: np.ndarray,
    sigma: np.ndarray,
    upper: float,
    k: float = 3.0,
) -> np.ndarray:
    """Conservative skill clamp(mu - k * sigma, 0, upper) for every player."""
    n = len(mu)
    out = np.empty(n, dtype=np.float64)
    for i in range(n):
        value = mu[i] - k * sigma[i]
        if value < 0.0:
            value = 0.0
        elif value > upper:
            value = upper
        out[i] = value
    return out

