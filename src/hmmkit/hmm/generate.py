"""Joint (state, observation) sampling from an HMM.

The state chain is drawn with a jax.lax.scan over split keys. Observations
are then drawn in one batch per emission distribution, holding exactly as
many draws as the chain spends steps in that state, and scattered back into
time order.
"""

import functools

import jax
import jax.numpy as jnp
import numpy as np
from jax.lax import scan

from hmmkit.emissions.base import EmissionDistribution
from hmmkit.types import Array, GenerateResult


@functools.partial(jax.jit, static_argnames=["length"])
def sample_chain(key: Array, trans: Array, first: Array, length: int) -> Array:
    """Sample a Markov chain of hidden states.

    Args:
        key: PRNG key.
        trans: (N, N) column-stochastic transitions, column j = P(. | j).
        first: scalar int first state.
        length: Number of states T >= 2.

    Returns:
        (T,) int state sequence starting at ``first``.
    """
    log_trans = jnp.log(trans)

    def _step(state, k):
        nxt = jax.random.categorical(k, log_trans[:, state])
        return nxt, nxt

    _, rest = scan(_step, first, jax.random.split(key, length - 1))
    return jnp.concatenate([first[None], rest])


def generate(
    key: Array,
    trans: Array,
    emissions: list[EmissionDistribution],
    length: int,
    start_state: int | None = None,
) -> GenerateResult:
    """Sample a joint sequence of the given length.

    Args:
        key: PRNG key owned by the caller.
        trans: (N, N) column-stochastic transition matrix.
        emissions: N emission distributions.
        length: Number of steps T >= 1.
        start_state: First state; uniform over [0, N) if None.

    Returns:
        GenerateResult(observations, states).
    """
    N = trans.shape[0]
    key_start, key_chain, key_obs = jax.random.split(key, 3)

    if start_state is None:
        first = jax.random.randint(key_start, (), 0, N)
    else:
        first = jnp.asarray(start_state)
    first = first.astype(jnp.int64)

    if length == 1:
        states = first[None]
    else:
        states = sample_chain(key_chain, trans, first, length)

    # One batch per state, sized by how often the chain visits it
    states_np = np.asarray(states)
    obs_keys = jax.random.split(key_obs, N)
    observations = None
    for state, (emission, k) in enumerate(zip(emissions, obs_keys)):
        steps = np.flatnonzero(states_np == state)
        if steps.size == 0:
            continue
        draws = emission.sample(k, int(steps.size))  # (n,) or (n, D)
        if observations is None:
            observations = jnp.zeros((length,) + draws.shape[1:], dtype=draws.dtype)
        observations = observations.at[steps].set(draws)

    return GenerateResult(observations=observations, states=states)
