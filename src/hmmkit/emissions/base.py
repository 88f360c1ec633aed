"""Capability set every emission distribution plugged into an HMM provides.

The HMM never looks inside a distribution. It validates sequences through
``check_observations``, scores them through ``log_prob``, draws from them
through ``sample`` and re-estimates them through ``fit``.
"""

import abc

import jax.numpy as jnp

from hmmkit.exceptions import DimensionMismatch, InvalidModel
from hmmkit.types import Array


def check_weights(weights, n_observations: int) -> Array:
    """Per-observation fit weights: all ones if None, else finite and >= 0."""
    if weights is None:
        return jnp.ones(n_observations)
    w = jnp.asarray(weights, dtype=jnp.float64)
    if w.shape != (n_observations,):
        raise DimensionMismatch(f"{w.size} weights for {n_observations} observations")
    if not bool(jnp.all(jnp.isfinite(w))) or bool(jnp.any(w < 0)):
        raise InvalidModel("Fit weights must be finite and >= 0")
    return w


class EmissionDistribution(abc.ABC):
    """Per-state observation model."""

    @property
    @abc.abstractmethod
    def dimensionality(self) -> int:
        """Alphabet size (discrete) or vector dimension (continuous)."""

    @abc.abstractmethod
    def check_observations(self, observations) -> Array:
        """Convert a sequence to a JAX array and validate it.

        Args:
            observations: Sequence of T observations.

        Returns:
            Validated array with T along the leading axis.

        Raises:
            DimensionMismatch: Observation shape does not fit the distribution.
            InvalidObservation: Observation outside the support.
        """

    @abc.abstractmethod
    def log_prob(self, observations: Array) -> Array:
        """Log mass/density of each observation in a validated sequence.

        Args:
            observations: Output of ``check_observations``.

        Returns:
            (T,) log probabilities, -inf where the probability is zero.
        """

    @abc.abstractmethod
    def probability(self, observation) -> float:
        """Mass or density of a single observation."""

    @abc.abstractmethod
    def sample(self, key: Array, n: int | None = None) -> Array:
        """Draw one observation (n=None) or a batch of n observations."""

    @abc.abstractmethod
    def fit(self, observations, weights=None) -> None:
        """Weighted maximum-likelihood re-estimation, in place.

        Zero total weight (or no observations) resets the distribution to
        its default parameters.

        Args:
            observations: Sequence of observations.
            weights: Non-negative weight per observation (default all ones).
        """
