"""Baum-Welch parameter estimation.

Two modes share the same M-step shape:
  Labeled: transition counts and per-state emission fits read directly off
      known state sequences (single pass).
  Unlabeled: EM. The E-step runs forward-backward per sequence and reduces
      gamma / xi into global statistics; the M-step re-normalizes the
      expected transition counts and refits each emission on
      gamma-weighted observations.

Both functions mutate the model in place. They expect sequences already
validated by the model.
"""

import logging
import math
from concurrent.futures import ThreadPoolExecutor
from typing import TYPE_CHECKING

import jax.numpy as jnp
import numpy as np

from hmmkit.config import EMConfig
from hmmkit.exceptions import ZeroLikelihood
from hmmkit.hmm.forward_backward import forward_backward
from hmmkit.hmm.mstep_transitions import (
    count_transitions,
    mstep_transitions,
    normalize_columns,
)
from hmmkit.types import Array, EMResult

if TYPE_CHECKING:
    from hmmkit.hmm.model import HMM

log = logging.getLogger(__name__)


def _expect_single(model: "HMM", obs: Array) -> tuple[float, Array, Array]:
    """E-step contribution of one sequence.

    Returns:
        log_likelihood: float
        gamma: (T, N) state posteriors
        xi_sum: (N, N) pairwise posteriors summed over t
    """
    result = forward_backward(
        model.log_emission(obs), model.initial, model.transition,
        compute_xi=True,
    )
    ll = float(result.log_likelihood)
    if not math.isfinite(ll):
        raise ZeroLikelihood(
            "Training sequence has zero probability under the current model"
        )
    return ll, result.gamma, result.xi.sum(axis=0)


def e_step(
    model: "HMM",
    sequences: list[Array],
    n_workers: int = 1,
) -> tuple[float, Array, Array]:
    """Run forward-backward on every sequence and reduce the statistics.

    Sequences are independent, so with n_workers > 1 they are dispatched to
    a thread pool. Results are reduced in input order.

    Args:
        model: HMM whose current parameters define the posteriors.
        sequences: Validated observation sequences.
        n_workers: Thread count for the per-sequence pass.

    Returns:
        total_ll: total log-likelihood at the current parameters.
        gamma: (sum_T, N) concatenated state posteriors.
        xi_sum: (N, N) summed pairwise posteriors.
    """
    if n_workers > 1 and len(sequences) > 1:
        with ThreadPoolExecutor(max_workers=n_workers) as pool:
            stats = list(pool.map(lambda obs: _expect_single(model, obs), sequences))
    else:
        stats = [_expect_single(model, obs) for obs in sequences]

    total_ll = sum(ll for ll, _, _ in stats)
    gamma = jnp.concatenate([g for _, g, _ in stats], axis=0)
    xi_sum = sum(x for _, _, x in stats)

    return total_ll, gamma, xi_sum


def baum_welch(
    model: "HMM",
    sequences: list[Array],
    config: EMConfig | None = None,
) -> EMResult:
    """Unlabeled Baum-Welch EM.

    Args:
        model: HMM to train in place; its current parameters are the start point.
        sequences: Validated observation sequences.
        config: EM iteration cap, tolerance and worker count.

    Returns:
        EMResult with per-iteration log-likelihoods and convergence info.
    """
    if config is None:
        config = EMConfig()

    all_obs = jnp.concatenate(sequences, axis=0)
    log_likelihoods = []

    for iteration in range(config.max_iter):
        # --- E-step ---
        total_ll, gamma, xi_sum = e_step(model, sequences, config.n_workers)
        log_likelihoods.append(total_ll)
        log.info(f"EM iter {iteration}: log-likelihood = {total_ll:.6f}")

        # Check convergence
        if iteration > 0:
            improvement = total_ll - log_likelihoods[-2]
            if improvement < -1e-6 * max(abs(total_ll), 1.0):
                log.warning(
                    f"Log-likelihood decreased by {-improvement:.6e} at iteration {iteration}"
                )
            if abs(improvement) < config.tol:
                log.info(
                    f"Converged at iteration {iteration} "
                    f"(improvement={improvement:.2e} < tol={config.tol:.2e})"
                )
                return EMResult(
                    log_likelihoods=jnp.array(log_likelihoods),
                    converged=True,
                    n_iter=iteration + 1,
                )

        # --- M-step: transitions ---
        model.transition = mstep_transitions(xi_sum, model.transition)

        # --- M-step: emissions ---
        for state, emission in enumerate(model.emissions):
            emission.fit(all_obs, gamma[:, state])

    log.warning(f"EM did not converge after {config.max_iter} iterations")
    return EMResult(
        log_likelihoods=jnp.array(log_likelihoods),
        converged=False,
        n_iter=config.max_iter,
    )


def train_labeled(
    model: "HMM",
    sequences: list[Array],
    state_sequences: list[Array],
) -> None:
    """Single-pass maximum-likelihood estimate from known state sequences.

    Args:
        model: HMM to update in place.
        sequences: Validated observation sequences.
        state_sequences: Validated state sequences, paired with ``sequences``.
    """
    counts = count_transitions(state_sequences, model.n_states)
    model.transition = normalize_columns(counts, model.transition)

    all_obs = jnp.concatenate(sequences, axis=0)
    all_states = np.asarray(jnp.concatenate(state_sequences))

    for state, emission in enumerate(model.emissions):
        mask = all_states == state
        emission.fit(all_obs[mask])
        log.debug(f"State {state}: fitted emission on {int(mask.sum())} observations")

    log.info(
        f"Labeled training on {len(sequences)} sequences, "
        f"{all_states.shape[0]} observations"
    )
