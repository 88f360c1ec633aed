"""M-step for the transition matrix.

Both training modes end in the same closed form: accumulate (expected or
observed) transition counts into an (N, N) matrix indexed [next, current]
and normalize every column.
"""

import jax.numpy as jnp

from hmmkit.types import Array


def normalize_columns(counts: Array, prev_trans: Array) -> Array:
    """Turn transition counts into a column-stochastic matrix.

    T[i, j] = counts[i, j] / sum_i counts[i, j]

    A column with no departures carries no evidence and keeps its
    previous values.

    Args:
        counts: (N, N) transition counts, counts[i, j] for j -> i.
        prev_trans: (N, N) current transition matrix.

    Returns:
        (N, N) updated transition matrix.
    """
    col_sums = counts.sum(axis=0)  # (N,)
    has_mass = col_sums > 0
    trans = counts / jnp.where(has_mass, col_sums, 1.0)[None, :]
    return jnp.where(has_mass[None, :], trans, prev_trans)


def mstep_transitions(xi_sum: Array, prev_trans: Array) -> Array:
    """Closed-form M-step from pairwise posteriors.

    Args:
        xi_sum: (N, N) sum over sequences and timesteps of xi[t, i, j].
        prev_trans: (N, N) current transition matrix.

    Returns:
        (N, N) re-estimated transition matrix.
    """
    return normalize_columns(xi_sum, prev_trans)


def count_transitions(state_sequences: list[Array], n_states: int) -> Array:
    """Observed transition counts from labeled state sequences.

    Args:
        state_sequences: List of (T,) integer state arrays.
        n_states: Number of hidden states N.

    Returns:
        (N, N) counts, counts[i, j] = number of j -> i transitions.
    """
    counts = jnp.zeros((n_states, n_states))
    for states in state_sequences:
        counts = counts.at[states[1:], states[:-1]].add(1.0)
    return counts
