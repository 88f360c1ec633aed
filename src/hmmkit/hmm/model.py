"""
Hidden Markov Model with pluggable emission distributions.

The model owns an (N, N) column-stochastic transition matrix, where
transition[i, j] = P(next = i | current = j), and one emission distribution
per state. Unless a start distribution is set explicitly, the chain is taken
to sit in state 0 just before the first emission, so the first hidden state
is drawn from column 0 of the transition matrix.

Read-only operations (predict, decode, estimate, log_likelihood, generate)
may share an instance. Training mutates the transition matrix and the
emission distributions and needs exclusive access.
"""

import copy
import logging
import math

import jax.numpy as jnp
import numpy as np

from hmmkit.config import EMConfig, STOCHASTIC_ATOL
from hmmkit.emissions.base import EmissionDistribution
from hmmkit.exceptions import (
    DimensionMismatch,
    EmptySequence,
    InvalidModel,
    InvalidState,
    ZeroLikelihood,
)
from hmmkit.hmm.baum_welch import baum_welch, train_labeled
from hmmkit.hmm.forward_backward import forward_backward, forward_log_likelihood
from hmmkit.hmm.generate import generate
from hmmkit.hmm.viterbi import viterbi
from hmmkit.types import Array, EMResult, ForwardBackwardResult, GenerateResult, ViterbiResult

log = logging.getLogger(__name__)


def _check_stochastic(probs: Array, what: str, axis: int = 0) -> None:
    """Raise InvalidModel unless entries are >= 0 and sum to 1 along axis."""
    if not bool(jnp.all(jnp.isfinite(probs))) or bool(jnp.any(probs < 0)):
        raise InvalidModel(f"{what} contains negative or non-finite values")
    sums = probs.sum(axis=axis)
    if not bool(jnp.allclose(sums, 1.0, atol=STOCHASTIC_ATOL)):
        raise InvalidModel(f"{what} doesn't sum to 1.0: {sums}")


class HMM:
    """
    Discrete-state HMM over any EmissionDistribution variant.

    Args:
        transition: (N, N) column-stochastic transition matrix.
        emissions: N emission distributions of one variant and dimensionality.
        initial: Optional (N,) start distribution. Defaults to column 0 of
            the transition matrix.
    """

    def __init__(self, transition, emissions: list[EmissionDistribution], initial=None):
        trans = self._check_transition(transition)
        N = trans.shape[0]

        emissions = list(emissions)
        if len(emissions) != N:
            raise DimensionMismatch(
                f"{len(emissions)} emission distributions for {N} states"
            )
        first = emissions[0]
        for emission in emissions[1:]:
            if type(emission) is not type(first):
                raise DimensionMismatch(
                    f"Mixed emission variants: {type(first).__name__} and {type(emission).__name__}"
                )
            if emission.dimensionality != first.dimensionality:
                raise DimensionMismatch(
                    f"Emission dimensionality {emission.dimensionality} != {first.dimensionality}"
                )

        self._transition = trans
        self._emissions = emissions
        self._initial = None
        if initial is not None:
            self.initial = initial

        log.debug(f"Initialized {self!r}")

    @classmethod
    def from_prototype(cls, n_states: int, prototype: EmissionDistribution) -> "HMM":
        """Uniform transitions and n_states independent copies of ``prototype``."""
        if n_states < 1:
            raise InvalidModel(f"n_states must be >= 1, got {n_states}")
        transition = jnp.full((n_states, n_states), 1.0 / n_states)
        emissions = [copy.deepcopy(prototype) for _ in range(n_states)]
        return cls(transition, emissions)

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    @staticmethod
    def _check_transition(transition) -> Array:
        trans = jnp.asarray(transition, dtype=jnp.float64)
        if trans.size == 0:
            raise InvalidModel("Transition matrix is empty")
        if trans.ndim != 2 or trans.shape[0] != trans.shape[1]:
            raise DimensionMismatch(f"Transition matrix must be square, got shape {trans.shape}")
        _check_stochastic(trans, "Transition matrix columns", axis=0)
        return trans

    @property
    def n_states(self) -> int:
        return int(self._transition.shape[0])

    @property
    def transition(self) -> Array:
        return self._transition

    @transition.setter
    def transition(self, value) -> None:
        trans = self._check_transition(value)
        if trans.shape != self._transition.shape:
            raise DimensionMismatch(
                f"Transition shape {trans.shape} doesn't match expected {self._transition.shape}"
            )
        self._transition = trans

    @property
    def emissions(self) -> list[EmissionDistribution]:
        return self._emissions

    @property
    def initial(self) -> Array:
        """Start distribution over the first hidden state."""
        if self._initial is None:
            return self._transition[:, 0]
        return self._initial

    @initial.setter
    def initial(self, value) -> None:
        if value is None:
            self._initial = None
            return
        init = jnp.asarray(value, dtype=jnp.float64)
        if init.shape != (self.n_states,):
            raise DimensionMismatch(
                f"Start distribution shape {init.shape} doesn't match expected ({self.n_states},)"
            )
        _check_stochastic(init, "Start distribution")
        self._initial = init

    # ------------------------------------------------------------------
    # Validation helpers
    # ------------------------------------------------------------------

    def check_sequence(self, observations) -> Array:
        """Validate one observation sequence against the emission variant."""
        obs = self._emissions[0].check_observations(observations)
        if obs.shape[0] == 0:
            raise EmptySequence("Observation sequence is empty")
        return obs

    def _check_sequences(self, sequences) -> list[Array]:
        sequences = list(sequences)
        if not sequences:
            raise EmptySequence("No observation sequences given")
        checked = []
        for seq_idx, observations in enumerate(sequences):
            try:
                checked.append(self.check_sequence(observations))
            except EmptySequence:
                raise EmptySequence(f"Sequence {seq_idx} is empty") from None
        return checked

    def _check_states(self, states, length: int, seq_idx: int) -> Array:
        states = np.asarray(states)
        if states.size == 0:
            raise EmptySequence(f"State sequence {seq_idx} is empty")
        if states.ndim != 1 or states.shape[0] != length:
            raise DimensionMismatch(
                f"State sequence {seq_idx} has shape {states.shape}, expected ({length},)"
            )
        if not np.issubdtype(states.dtype, np.integer):
            if not np.issubdtype(states.dtype, np.number) or np.any(states != np.round(states)):
                raise InvalidState(f"State sequence {seq_idx} must contain integer states")
        if np.any(states < 0) or np.any(states >= self.n_states):
            raise InvalidState(
                f"State sequence {seq_idx} must be in range [0, {self.n_states - 1}]"
            )
        return jnp.asarray(states, dtype=jnp.int64)

    def log_emission(self, observations: Array) -> Array:
        """(T, N) log emission probabilities of a validated sequence."""
        return jnp.stack([e.log_prob(observations) for e in self._emissions], axis=1)

    # ------------------------------------------------------------------
    # Inference
    # ------------------------------------------------------------------

    def decode(self, observations) -> ViterbiResult:
        """Viterbi path together with its joint log probability."""
        obs = self.check_sequence(observations)
        return viterbi(
            self.log_emission(obs), jnp.log(self.initial), jnp.log(self._transition),
        )

    def predict(self, observations) -> Array:
        """
        Most likely hidden-state sequence (Viterbi).

        Args:
            observations: Sequence of T observations.

        Returns:
            (T,) state indices.
        """
        return self.decode(observations).states

    def estimate(self, observations, compute_xi: bool = False) -> ForwardBackwardResult:
        """
        Scaled forward-backward: log-likelihood and state posteriors.

        Args:
            observations: Sequence of T observations.
            compute_xi: Also return (T-1, N, N) pairwise posteriors.

        Returns:
            ForwardBackwardResult; ``gamma`` is (T, N) with rows summing to 1.

        Raises:
            ZeroLikelihood: If the sequence is impossible under the model.
        """
        obs = self.check_sequence(observations)
        result = forward_backward(
            self.log_emission(obs), self.initial, self._transition,
            compute_xi=compute_xi,
        )
        log_likelihood = float(result.log_likelihood)
        if not math.isfinite(log_likelihood):
            raise ZeroLikelihood("Observation sequence has zero probability under the model")

        log.debug(f"Forward-backward completed: T={obs.shape[0]}, log_likelihood={log_likelihood:.6f}")
        return result

    def log_likelihood(self, observations) -> float:
        """Log-likelihood of one sequence (-inf if impossible)."""
        obs = self.check_sequence(observations)
        return float(forward_log_likelihood(
            self.log_emission(obs), self.initial, self._transition,
        ))

    def generate(self, length: int, key: Array, start_state: int | None = None) -> GenerateResult:
        """
        Sample a joint (observation, state) sequence.

        Args:
            length: Number of steps T >= 1.
            key: jax.random key; equal keys give equal sequences.
            start_state: First hidden state (uniform over states if None).

        Returns:
            GenerateResult(observations, states).
        """
        if length < 1:
            raise EmptySequence(f"Sequence length must be >= 1, got {length}")
        if start_state is not None and not 0 <= start_state < self.n_states:
            raise InvalidState(
                f"start_state must be in range [0, {self.n_states - 1}], got {start_state}"
            )
        return generate(key, self._transition, self._emissions, length, start_state)

    # ------------------------------------------------------------------
    # Training
    # ------------------------------------------------------------------

    def train_labeled(self, sequences, state_sequences) -> None:
        """
        Estimate parameters from observation sequences with known states.

        Args:
            sequences: List of observation sequences.
            state_sequences: List of state sequences, one per observation sequence.
        """
        checked = self._check_sequences(sequences)
        state_sequences = list(state_sequences)
        if len(state_sequences) != len(checked):
            raise DimensionMismatch(
                f"{len(state_sequences)} state sequences for {len(checked)} observation sequences"
            )
        states = [
            self._check_states(s, obs.shape[0], i)
            for i, (s, obs) in enumerate(zip(state_sequences, checked))
        ]
        train_labeled(self, checked, states)

    def train_unlabeled(self, sequences, config: EMConfig | None = None) -> EMResult:
        """
        Baum-Welch EM from observation sequences alone.

        The current parameters are the starting point. Stops when the total
        log-likelihood improves by less than ``config.tol`` or after
        ``config.max_iter`` iterations; either way the model keeps the last
        parameters computed.

        Args:
            sequences: List of observation sequences.
            config: EMConfig (defaults if None).

        Returns:
            EMResult with log-likelihood history and convergence info.
        """
        checked = self._check_sequences(sequences)
        return baum_welch(self, checked, config)

    def __repr__(self) -> str:
        variant = type(self._emissions[0]).__name__
        return f"HMM(n_states={self.n_states}, emissions={variant})"
