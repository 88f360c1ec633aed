"""Multivariate Gaussian emission model for continuous observations.

Observations are (T, D) arrays. A 1-D array is accepted as T scalar
observations when D == 1.
"""

import jax
import jax.numpy as jnp
import numpy as np
from jax.scipy.stats import multivariate_normal

from hmmkit.config import COVARIANCE_FLOOR
from hmmkit.emissions.base import EmissionDistribution, check_weights
from hmmkit.exceptions import DimensionMismatch, InvalidModel
from hmmkit.types import Array


class GaussianDistribution(EmissionDistribution):
    """Gaussian N(mean, covariance) over D-dimensional vectors.

    Args:
        mean: (D,) mean vector.
        covariance: (D, D) symmetric positive-definite covariance.
    """

    def __init__(self, mean, covariance):
        mean = jnp.asarray(mean, dtype=jnp.float64)
        if mean.ndim != 1 or mean.shape[0] == 0:
            raise InvalidModel(f"Gaussian mean must be a non-empty vector, got shape {mean.shape}")
        self._mean = mean
        self._covariance = self._check_covariance(covariance)

    @classmethod
    def standard(cls, dimensionality: int) -> "GaussianDistribution":
        """Zero mean, identity covariance."""
        if dimensionality < 1:
            raise InvalidModel(f"dimensionality must be >= 1, got {dimensionality}")
        return cls(jnp.zeros(dimensionality), jnp.eye(dimensionality))

    def _check_covariance(self, covariance) -> Array:
        cov = jnp.asarray(covariance, dtype=jnp.float64)
        D = self._mean.shape[0]
        if cov.shape != (D, D):
            raise DimensionMismatch(f"Covariance shape {cov.shape} doesn't match expected ({D}, {D})")
        if not bool(jnp.all(jnp.isfinite(cov))):
            raise InvalidModel("Covariance contains non-finite values")
        if not bool(jnp.allclose(cov, cov.T)):
            raise InvalidModel("Covariance is not symmetric")
        # Indefinite input gives NaN on the factor's diagonal, singular gives 0
        if not bool(jnp.all(jnp.diag(jnp.linalg.cholesky(cov)) > 0)):
            raise InvalidModel("Covariance is not positive definite")
        return cov

    @property
    def mean(self) -> Array:
        return self._mean

    @mean.setter
    def mean(self, value) -> None:
        mean = jnp.asarray(value, dtype=jnp.float64)
        if mean.shape != self._mean.shape:
            raise DimensionMismatch(f"Mean shape {mean.shape} doesn't match expected {self._mean.shape}")
        self._mean = mean

    @property
    def covariance(self) -> Array:
        return self._covariance

    @covariance.setter
    def covariance(self, value) -> None:
        self._covariance = self._check_covariance(value)

    @property
    def dimensionality(self) -> int:
        return int(self._mean.shape[0])

    def check_observations(self, observations) -> Array:
        obs = np.asarray(observations, dtype=np.float64)
        D = self.dimensionality
        if obs.size == 0:
            return jnp.zeros((0, D))
        if obs.ndim == 1 and D == 1:
            obs = obs[:, None]
        if obs.ndim != 2 or obs.shape[1] != D:
            raise DimensionMismatch(
                f"Observations of shape {obs.shape} don't match dimensionality {D}"
            )
        return jnp.asarray(obs)

    def log_prob(self, observations: Array) -> Array:
        return multivariate_normal.logpdf(observations, self._mean, self._covariance)

    def probability(self, observation) -> float:
        x = jnp.asarray(observation, dtype=jnp.float64).reshape(1, -1)
        x = self.check_observations(x)
        return float(jnp.exp(self.log_prob(x)[0]))

    def sample(self, key: Array, n: int | None = None) -> Array:
        shape = () if n is None else (n,)
        return jax.random.multivariate_normal(key, self._mean, self._covariance, shape=shape)

    def fit(self, observations, weights=None) -> None:
        x = self.check_observations(observations)
        D = self.dimensionality
        w = check_weights(weights, x.shape[0])

        total = float(w.sum())
        if total <= 0.0:
            self._mean = jnp.zeros(D)
            self._covariance = jnp.eye(D)
            return

        # Weighted maximum-likelihood mean and covariance
        mean = (w[:, None] * x).sum(axis=0) / total
        diff = x - mean
        cov = (w[:, None] * diff).T @ diff / total
        cov = 0.5 * (cov + cov.T) + COVARIANCE_FLOOR * jnp.eye(D)

        self._mean = mean
        self._covariance = cov

    def __repr__(self) -> str:
        return f"GaussianDistribution(dimensionality={self.dimensionality})"
