"""Scaled forward-backward algorithm using jax.lax.scan.

Forward variables are rescaled to sum to 1 at every step and the backward
variables are divided by the same per-step scale, so alpha * beta is the
state posterior directly. Emission log-probabilities are shifted by their
per-step maximum before exponentiation; the shift is added back into the
log scales.

Transition convention: trans[i, j] = P(next = i | current = j).
"""

import functools

import jax
import jax.numpy as jnp
from jax import lax

from hmmkit.types import Array, ForwardBackwardResult


def _safe(c: Array) -> Array:
    """Scale usable as a divisor (a zero scale leaves the vector at zero)."""
    return jnp.where(c > 0, c, 1.0)


def _shifted_emission(log_emission: Array) -> tuple[Array, Array]:
    """Exponentiate log emissions relative to each step's maximum.

    Args:
        log_emission: (T, N) log emission probabilities.

    Returns:
        emission: (T, N) emission values with max 1 per step.
        shift: (T,) per-step log offsets.
    """
    shift = jnp.max(log_emission, axis=1)
    # All states impossible at this step: keep the zeros, don't produce NaN
    shift = jnp.where(jnp.isfinite(shift), shift, 0.0)
    return jnp.exp(log_emission - shift[:, None]), shift


def _forward(
    trans: Array,
    init: Array,
    emission: Array,
) -> tuple[Array, Array]:
    """Scaled forward pass.

    Args:
        trans: (N, N) column-stochastic transition matrix.
        init: (N,) start distribution.
        emission: (T, N) shifted emission values.

    Returns:
        alpha: (T, N) scaled forward variables.
        scales: (T,) scaling factors c_t.
    """
    alpha_0 = init * emission[0]
    c_0 = alpha_0.sum()
    alpha_0 = alpha_0 / _safe(c_0)

    def scan_fn(alpha_prev, emit):
        # sum_j trans[i, j] * alpha_prev[j] for each i
        alpha_t = (trans @ alpha_prev) * emit
        c_t = alpha_t.sum()
        alpha_t = alpha_t / _safe(c_t)
        return alpha_t, (alpha_t, c_t)

    # Scan over t = 1, ..., T-1
    _, (alphas_rest, scales_rest) = lax.scan(scan_fn, alpha_0, emission[1:])

    alpha = jnp.concatenate([alpha_0[None, :], alphas_rest], axis=0)
    scales = jnp.concatenate([c_0[None], scales_rest])

    return alpha, scales


def _backward(
    trans: Array,
    emission: Array,
    scales: Array,
) -> Array:
    """Scaled backward pass, reusing the forward scales.

    Args:
        trans: (N, N) column-stochastic transition matrix.
        emission: (T, N) shifted emission values.
        scales: (T,) forward scaling factors.

    Returns:
        beta: (T, N) scaled backward variables.
    """
    N = trans.shape[0]
    beta_T = jnp.ones(N)

    def scan_fn(beta_next, inputs):
        emit_next, c_next = inputs
        # sum_j trans[j, i] * emission[t+1, j] * beta[t+1, j] for each i
        beta_t = trans.T @ (emit_next * beta_next) / _safe(c_next)
        return beta_t, beta_t

    # Scan over t = T-2, ..., 0; outputs come back in chronological order
    _, betas_rest = lax.scan(
        scan_fn, beta_T, (emission[1:], scales[1:]), reverse=True,
    )

    return jnp.concatenate([betas_rest, beta_T[None, :]], axis=0)


def _compute_xi(
    trans: Array,
    alpha: Array,
    beta: Array,
    emission: Array,
    scales: Array,
) -> Array:
    """Pairwise posteriors.

    xi[t, i, j] = alpha[t, j] * trans[i, j] * emission[t+1, i] * beta[t+1, i] / c_{t+1},
    renormalized to sum to 1 over (i, j) at every t.

    Returns:
        xi: (T-1, N, N)
    """
    weight = emission[1:] * beta[1:] / _safe(scales[1:])[:, None]  # (T-1, N)
    xi = (
        weight[:, :, None]    # (T-1, N, 1) destination i
        * trans[None, :, :]   # (1, N, N)
        * alpha[:-1, None, :]  # (T-1, 1, N) source j
    )
    totals = xi.sum(axis=(1, 2))
    return xi / _safe(totals)[:, None, None]


@jax.jit
def forward_log_likelihood(
    log_emission: Array,
    init: Array,
    trans: Array,
) -> Array:
    """Sequence log-likelihood from the forward pass alone.

    Args:
        log_emission: (T, N) log emission probabilities.
        init: (N,) start distribution.
        trans: (N, N) column-stochastic transition matrix.

    Returns:
        Scalar log P(O); -inf if the sequence is impossible.
    """
    emission, shift = _shifted_emission(log_emission)
    _, scales = _forward(trans, init, emission)
    return jnp.sum(jnp.log(scales) + shift)


@functools.partial(jax.jit, static_argnames=["compute_xi"])
def forward_backward(
    log_emission: Array,
    init: Array,
    trans: Array,
    compute_xi: bool = False,
) -> ForwardBackwardResult:
    """Scaled forward-backward algorithm for one observation sequence.

    Args:
        log_emission: (T, N) log emission probabilities.
        init: (N,) start distribution.
        trans: (N, N) column-stochastic transition matrix.
        compute_xi: Whether to compute pairwise posteriors (needed for EM).

    Returns:
        ForwardBackwardResult with gamma, xi (or None), log_likelihood,
        alpha, beta and log_scales.
    """
    emission, shift = _shifted_emission(log_emission)

    alpha, scales = _forward(trans, init, emission)
    beta = _backward(trans, emission, scales)

    log_scales = jnp.log(scales) + shift

    # Posterior: matched scaling makes alpha * beta sum to 1 per step
    gamma = alpha * beta

    xi = None
    if compute_xi:
        xi = _compute_xi(trans, alpha, beta, emission, scales)

    return ForwardBackwardResult(
        gamma=gamma,
        xi=xi,
        log_likelihood=log_scales.sum(),
        alpha=alpha,
        beta=beta,
        log_scales=log_scales,
    )
