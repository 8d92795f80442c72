"""Arena of variable beliefs for one factor graph (numpy-backed)."""

from typing import Optional

import numpy as np

from .gaussian import Gaussian


class VariableStore:
    """
    Contiguous store of Gaussian marginals indexed by small integer ids.

    Beliefs live in two float64 arrays (pi, tau). Ids are handed out in
    allocation order and are only meaningful for the store that issued
    them; a store belongs to exactly one factor graph.
    """

    def __init__(self, initial: Optional[Gaussian] = None, capacity: int = 16):
        self._initial = initial if initial is not None else Gaussian()
        self._pi = np.zeros(max(capacity, 1), dtype=np.float64)
        self._tau = np.zeros(max(capacity, 1), dtype=np.float64)
        self._size = 0

    def __len__(self) -> int:
        return self._size

    def _grow(self) -> None:
        new_capacity = 2 * len(self._pi)
        self._pi = np.resize(self._pi, new_capacity)
        self._tau = np.resize(self._tau, new_capacity)

    def _check(self, var_id: int) -> None:
        if not 0 <= var_id < self._size:
            raise IndexError(f"unknown variable id {var_id} (store has {self._size})")

    def allocate(self, belief: Optional[Gaussian] = None) -> int:
        """Allocate a new variable, seeded with `belief` or the store's initial belief."""
        if self._size == len(self._pi):
            self._grow()
        if belief is None:
            belief = self._initial
        var_id = self._size
        self._pi[var_id] = belief.pi
        self._tau[var_id] = belief.tau
        self._size += 1
        return var_id

    def get(self, var_id: int) -> Gaussian:
        self._check(var_id)
        return Gaussian(float(self._pi[var_id]), float(self._tau[var_id]))

    def set(self, var_id: int, belief: Gaussian) -> float:
        """Replace a variable's belief and return the size of the change."""
        old = self.get(var_id)
        self._pi[var_id] = belief.pi
        self._tau[var_id] = belief.tau
        return old.delta(belief)

    def reset(self) -> None:
        """Return every allocated variable to the initial belief."""
        self._pi[: self._size] = self._initial.pi
        self._tau[: self._size] = self._initial.tau

    def copy(self) -> "VariableStore":
        clone = VariableStore(self._initial, capacity=len(self._pi))
        clone._pi[:] = self._pi
        clone._tau[:] = self._tau
        clone._size = self._size
        return clone

    @property
    def pi(self) -> np.ndarray:
        """Read-only view of the allocated precisions."""
        view = self._pi[: self._size]
        view.flags.writeable = False
        return view

    @property
    def tau(self) -> np.ndarray:
        """Read-only view of the allocated precision-weighted means."""
        view = self._tau[: self._size]
        view.flags.writeable = False
        return view

    def __repr__(self) -> str:
        return f"VariableStore(variables={self._size})"
