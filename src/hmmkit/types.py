"""Type aliases and named tuples for hmmkit."""

from typing import NamedTuple

import jax
import jax.numpy as jnp

# Reference likelihoods are checked to 1e-5; float32 is not enough.
jax.config.update("jax_enable_x64", True)

# Array type alias (JAX arrays)
Array = jnp.ndarray


class ForwardBackwardResult(NamedTuple):
    """Results from the scaled forward-backward algorithm.

    gamma: (T, N) posterior state probabilities, rows sum to 1
    xi: (T-1, N, N) pairwise posteriors, xi[t, i, j] = P(s_t=j, s_{t+1}=i | O),
        or None if not requested
    log_likelihood: scalar log P(O)
    alpha: (T, N) scaled forward variables
    beta: (T, N) scaled backward variables
    log_scales: (T,) log scaling factors, summing to log_likelihood
    """
    gamma: Array
    xi: Array | None
    log_likelihood: Array
    alpha: Array
    beta: Array
    log_scales: Array


class ViterbiResult(NamedTuple):
    """Results from Viterbi decoding.

    states: (T,) most likely state sequence
    log_prob: scalar joint log probability of that path
    """
    states: Array
    log_prob: Array


class EMResult(NamedTuple):
    """Results from unlabeled Baum-Welch training.

    log_likelihoods: per-iteration total log-likelihood
    converged: bool
    n_iter: int
    """
    log_likelihoods: Array
    converged: bool
    n_iter: int


class GenerateResult(NamedTuple):
    """A sampled joint sequence.

    observations: (T,) symbols or (T, D) vectors
    states: (T,) hidden states
    """
    observations: Array
    states: Array
