"""Log-space Viterbi algorithm using jax.lax.scan.

Finds the most likely state sequence (MAP path). Zero probabilities enter
as -inf and simply lose every max; no special casing is needed.

Ties resolve to the lowest state index (jnp.argmax returns the first
maximum). Callers should not depend on which of several equally likely
paths is returned.
"""

import jax
import jax.numpy as jnp
from jax import lax

from hmmkit.types import Array, ViterbiResult


@jax.jit
def viterbi(
    log_emission: Array,
    log_init: Array,
    log_trans: Array,
) -> ViterbiResult:
    """Viterbi decoding for a single observation sequence.

    Args:
        log_emission: (T, N) log emission probabilities.
        log_init: (N,) log start distribution.
        log_trans: (N, N) log transitions, log_trans[i, j] = log P(i | j).

    Returns:
        ViterbiResult with states (T,) and log_prob of the best path.
    """
    # Initialize: delta_0 = init * emission_0
    delta_0 = log_init + log_emission[0]  # (N,)

    def forward_fn(delta_prev, emit):
        # candidates[i, j] = delta_prev[j] + log_trans[i, j]
        candidates = log_trans + delta_prev[None, :]  # (N, N)
        # Best previous state for each current state
        psi_t = candidates.argmax(axis=1)  # (N,)
        delta_t = candidates.max(axis=1) + emit  # (N,)
        return delta_t, psi_t

    # Forward scan: t = 1, ..., T-1
    delta_final, psi_all = lax.scan(forward_fn, delta_0, log_emission[1:])
    # psi_all: (T-1, N)

    # Best final state
    best_last = delta_final.argmax()
    log_prob = delta_final.max()

    # Backtracking via reverse scan
    def backtrack_fn(state, psi_t):
        prev_state = psi_t[state]
        return prev_state, prev_state

    _, states_reversed = lax.scan(
        backtrack_fn,
        best_last,
        psi_all[::-1],  # Reverse: from T-2 to 0
    )

    # Assemble full state sequence
    states = jnp.concatenate([states_reversed[::-1], best_last[None]])

    return ViterbiResult(states=states, log_prob=log_prob)
