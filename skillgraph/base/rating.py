"""Rating value type: one entrant's (mu, sigma) skill belief."""

import math
from dataclasses import dataclass

from .gaussian import Gaussian


@dataclass(frozen=True)
class Rating:
    """
    Skill belief N(mu, sigma^2) for one player.

    Immutable: the engine returns new Rating objects and never modifies
    the ones it was given.
    """

    mu: float = 25.0
    sigma: float = 25.0 / 3.0

    def __post_init__(self):
        if not math.isfinite(self.mu):
            raise ValueError(f"mu must be finite, got {self.mu!r}")
        if not (self.sigma > 0.0 and math.isfinite(self.sigma)):
            raise ValueError(f"sigma must be positive and finite, got {self.sigma!r}")

    @property
    def variance(self) -> float:
        return self.sigma * self.sigma

    @classmethod
    def from_gaussian(cls, belief: Gaussian) -> "Rating":
        return cls(mu=belief.mu, sigma=belief.sigma)

    def to_gaussian(self) -> Gaussian:
        return Gaussian.from_mu_sigma(self.mu, self.sigma)

    def __iter__(self):
        # Allows ``mu, sigma = rating``
        yield self.mu
        yield self.sigma
