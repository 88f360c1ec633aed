"""Categorical emission model over the symbols 0..K-1."""

import jax
import jax.numpy as jnp
import numpy as np

from hmmkit.emissions.base import EmissionDistribution, check_weights
from hmmkit.exceptions import DimensionMismatch, InvalidModel, InvalidObservation
from hmmkit.types import Array


def _normalize_probabilities(probabilities) -> Array:
    """Validate and normalize a probability vector (all-zero -> uniform)."""
    probs = jnp.asarray(probabilities, dtype=jnp.float64)
    if probs.ndim != 1 or probs.shape[0] == 0:
        raise InvalidModel(
            f"Discrete probabilities must be a non-empty vector, got shape {probs.shape}"
        )
    if bool(jnp.any(probs < 0)) or not bool(jnp.all(jnp.isfinite(probs))):
        raise InvalidModel(f"Discrete probabilities must be finite and >= 0: {probs}")

    total = float(probs.sum())
    if total == 0.0:
        return jnp.full(probs.shape, 1.0 / probs.shape[0])
    return probs / total


class DiscreteDistribution(EmissionDistribution):
    """Categorical distribution over K symbols.

    Args:
        probabilities: (K,) non-negative weights; normalized to sum to 1.
    """

    def __init__(self, probabilities):
        self._probabilities = _normalize_probabilities(probabilities)

    @classmethod
    def uniform(cls, n_symbols: int) -> "DiscreteDistribution":
        if n_symbols < 1:
            raise InvalidModel(f"n_symbols must be >= 1, got {n_symbols}")
        return cls(jnp.ones(n_symbols))

    @property
    def probabilities(self) -> Array:
        return self._probabilities

    @probabilities.setter
    def probabilities(self, value) -> None:
        probs = _normalize_probabilities(value)
        if probs.shape != self._probabilities.shape:
            raise DimensionMismatch(
                f"Expected {self.n_symbols} probabilities, got {probs.shape[0]}"
            )
        self._probabilities = probs

    @property
    def n_symbols(self) -> int:
        return int(self._probabilities.shape[0])

    @property
    def dimensionality(self) -> int:
        return self.n_symbols

    def check_observations(self, observations) -> Array:
        obs = np.asarray(observations)
        if obs.size == 0:
            return jnp.zeros(0, dtype=jnp.int64)
        if obs.ndim == 2 and obs.shape[1] == 1:
            obs = obs[:, 0]
        if obs.ndim != 1:
            raise DimensionMismatch(
                f"Discrete observations must be a 1-D symbol sequence, got shape {obs.shape}"
            )
        if not np.issubdtype(obs.dtype, np.integer):
            if not np.issubdtype(obs.dtype, np.number) or np.any(obs != np.round(obs)):
                raise InvalidObservation("Discrete observations must be integer symbols")
        if np.any(obs < 0) or np.any(obs >= self.n_symbols):
            raise InvalidObservation(
                f"Observations must be in range [0, {self.n_symbols - 1}]"
            )
        return jnp.asarray(obs, dtype=jnp.int64)

    def log_prob(self, observations: Array) -> Array:
        return jnp.log(self._probabilities)[observations]

    def probability(self, observation) -> float:
        symbol = self.check_observations(jnp.atleast_1d(observation))
        return float(self._probabilities[symbol[0]])

    def sample(self, key: Array, n: int | None = None) -> Array:
        shape = () if n is None else (n,)
        return jax.random.categorical(key, jnp.log(self._probabilities), shape=shape)

    def fit(self, observations, weights=None) -> None:
        obs = self.check_observations(observations)
        w = check_weights(weights, obs.shape[0])

        # Weighted symbol counts
        counts = jnp.zeros(self.n_symbols).at[obs].add(w)
        total = float(counts.sum())
        if total > 0.0:
            self._probabilities = counts / total
        else:
            self._probabilities = jnp.full(self.n_symbols, 1.0 / self.n_symbols)

    def __repr__(self) -> str:
        return f"DiscreteDistribution(n_symbols={self.n_symbols})"
