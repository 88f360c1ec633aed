"""Tests for the HMM model: validation, decoding and likelihoods on textbook examples."""

import jax
import jax.numpy as jnp
import numpy as np
import pytest

from hmmkit.emissions.discrete import DiscreteDistribution
from hmmkit.emissions.gaussian import GaussianDistribution
from hmmkit.exceptions import (
    DimensionMismatch,
    EmptySequence,
    HMMError,
    InvalidModel,
    InvalidObservation,
    InvalidState,
    ZeroLikelihood,
)
from hmmkit.hmm.model import HMM

from conftest import discrete_hmm


class TestConstruction:
    def test_basic_properties(self, three_state_hmm):
        assert three_state_hmm.n_states == 3
        assert len(three_state_hmm.emissions) == 3
        np.testing.assert_allclose(np.asarray(three_state_hmm.initial), [0.5, 0.2, 0.3])
        assert "n_states=3" in repr(three_state_hmm)

    def test_non_square_transition(self):
        with pytest.raises(DimensionMismatch):
            discrete_hmm(np.full((2, 3), 0.5), [[1.0], [1.0]])

    def test_empty_transition(self):
        with pytest.raises(InvalidModel):
            HMM(np.zeros((0, 0)), [])

    def test_columns_must_sum_to_one(self):
        # Rows sum to 1, columns don't
        with pytest.raises(InvalidModel):
            discrete_hmm([[0.1, 0.9], [0.4, 0.6]], [[1.0], [1.0]])

    def test_negative_transition(self):
        with pytest.raises(InvalidModel):
            discrete_hmm([[1.2, 0.5], [-0.2, 0.5]], [[1.0], [1.0]])

    def test_emission_count_mismatch(self):
        with pytest.raises(DimensionMismatch):
            discrete_hmm([[0.5, 0.5], [0.5, 0.5]], [[1.0]])

    def test_mixed_alphabet_sizes(self):
        with pytest.raises(DimensionMismatch):
            discrete_hmm([[0.5, 0.5], [0.5, 0.5]], [[0.5, 0.5], [0.2, 0.3, 0.5]])

    def test_mixed_emission_variants(self):
        with pytest.raises(DimensionMismatch):
            HMM(
                [[0.5, 0.5], [0.5, 0.5]],
                [DiscreteDistribution.uniform(1), GaussianDistribution.standard(1)],
            )

    def test_from_prototype(self):
        hmm = HMM.from_prototype(4, DiscreteDistribution.uniform(3))
        np.testing.assert_allclose(np.asarray(hmm.transition), 0.25)
        # Independent copies
        hmm.emissions[0].probabilities = [1.0, 0.0, 0.0]
        np.testing.assert_allclose(np.asarray(hmm.emissions[1].probabilities), 1.0 / 3.0)

    def test_from_prototype_needs_states(self):
        with pytest.raises(InvalidModel):
            HMM.from_prototype(0, DiscreteDistribution.uniform(3))

    def test_transition_setter_validates(self, umbrella_hmm):
        with pytest.raises(DimensionMismatch):
            umbrella_hmm.transition = jnp.eye(3)
        with pytest.raises(InvalidModel):
            umbrella_hmm.transition = [[0.5, 0.5], [0.6, 0.5]]
        umbrella_hmm.transition = [[0.5, 0.5], [0.5, 0.5]]
        np.testing.assert_allclose(np.asarray(umbrella_hmm.transition), 0.5)

    def test_initial_override(self, umbrella_hmm):
        umbrella_hmm.initial = [0.5, 0.5]
        np.testing.assert_allclose(np.asarray(umbrella_hmm.initial), [0.5, 0.5])
        with pytest.raises(DimensionMismatch):
            umbrella_hmm.initial = [1.0, 0.0, 0.0]
        with pytest.raises(InvalidModel):
            umbrella_hmm.initial = [0.7, 0.7]
        umbrella_hmm.initial = None
        np.testing.assert_allclose(np.asarray(umbrella_hmm.initial), [0.7, 0.3])

    def test_errors_are_value_errors(self):
        assert issubclass(HMMError, ValueError)
        for exc in (DimensionMismatch, InvalidModel, InvalidObservation,
                    InvalidState, EmptySequence, ZeroLikelihood):
            assert issubclass(exc, HMMError)


class TestPredict:
    def test_umbrella(self, umbrella_hmm):
        """[U U N U U] decodes to rain, rain, dry, rain, rain."""
        states = umbrella_hmm.predict([0, 0, 1, 0, 0])
        assert states.tolist() == [0, 0, 1, 0, 0]

    def test_borodovsky(self):
        """GC-content example: most probable path is HHHLLLLLL (state 1 = H, 2 = L)."""
        hmm = discrete_hmm(
            [[0.0, 0.0, 0.0], [0.5, 0.5, 0.4], [0.5, 0.5, 0.6]],
            [
                [0.25, 0.25, 0.25, 0.25],
                [0.20, 0.30, 0.30, 0.20],
                [0.30, 0.20, 0.20, 0.30],
            ],
        )
        # GGCACTGAA
        states = hmm.predict([2, 2, 1, 0, 1, 3, 2, 0, 0]).tolist()

        assert states[:4] == [1, 1, 1, 2]
        assert states[4] in (1, 2)
        assert states[5] == 2
        assert states[6] in (1, 2)
        assert states[7:] == [2, 2]

    def test_decode_log_prob(self, two_state_hmm):
        """With a forced path the Viterbi probability is the full likelihood."""
        obs = [3, 3, 2, 1, 1, 1, 1, 3, 3, 1]
        result = two_state_hmm.decode(obs)
        assert result.states.tolist() == [1, 1, 1, 0, 0, 0, 0, 1, 1, 0]
        assert float(result.log_prob) == pytest.approx(-23.4349, rel=1e-5)

    def test_single_observation(self, umbrella_hmm):
        assert umbrella_hmm.predict([1]).tolist() == [1]

    def test_empty_sequence(self, umbrella_hmm):
        with pytest.raises(EmptySequence):
            umbrella_hmm.predict([])

    def test_symbol_out_of_range(self, umbrella_hmm):
        with pytest.raises(InvalidObservation):
            umbrella_hmm.predict([0, 1, 2])


class TestEstimate:
    def test_two_state_forced_path(self, two_state_hmm):
        """Disjoint supports give 0/1 posteriors; values agree with MATLAB hmmdecode."""
        obs = [3, 3, 2, 1, 1, 1, 1, 3, 3, 1]
        result = two_state_hmm.estimate(obs)

        assert float(result.log_likelihood) == pytest.approx(-23.4349, rel=1e-5)
        expected_state = [1, 1, 1, 0, 0, 0, 0, 1, 1, 0]
        expected = np.eye(2)[expected_state]
        np.testing.assert_allclose(np.asarray(result.gamma), expected, atol=1e-5)

    def test_gamma_rows_sum_to_one(self, three_state_hmm):
        obs = [0, 2, 2, 1, 2, 3, 0, 0, 1, 3, 1, 0, 0, 3, 1, 2, 2]
        result = three_state_hmm.estimate(obs, compute_xi=True)
        assert result.gamma.shape == (17, 3)
        assert result.xi.shape == (16, 3, 3)
        np.testing.assert_allclose(np.asarray(result.gamma.sum(axis=1)), 1.0, atol=1e-10)

    def test_idempotent(self, three_state_hmm):
        obs = [1, 2, 0, 0]
        first = three_state_hmm.estimate(obs)
        second = three_state_hmm.estimate(obs)
        np.testing.assert_array_equal(np.asarray(first.gamma), np.asarray(second.gamma))
        assert float(first.log_likelihood) == float(second.log_likelihood)

    def test_zero_likelihood(self):
        # State 0 is absorbing and only emits symbol 0
        hmm = discrete_hmm([[1.0, 0.0], [0.0, 1.0]], [[1.0, 0.0], [0.0, 1.0]])
        with pytest.raises(ZeroLikelihood):
            hmm.estimate([0, 1])
        assert hmm.log_likelihood([0, 1]) == -np.inf

    def test_initial_override_changes_first_step(self, two_state_hmm):
        """Only the first-state factor changes when the start distribution is replaced."""
        obs = [3, 3, 2, 1, 1, 1, 1, 3, 3, 1]
        default_ll = two_state_hmm.log_likelihood(obs)
        two_state_hmm.initial = [0.5, 0.5]
        uniform_ll = two_state_hmm.log_likelihood(obs)
        assert uniform_ll - default_ll == pytest.approx(np.log(0.5 / 0.9), rel=1e-8)


class TestLogLikelihood:
    @pytest.mark.parametrize("obs, expected", [
        ([0, 1, 2, 3], -4.9887223949),
        ([1, 2, 0, 0], -6.0288487077),
        ([3, 3, 3, 3], -5.5544000018),
        ([0, 2, 2, 1, 2, 3, 0, 0, 1, 3, 1, 0, 0, 3, 1, 2, 2], -24.51556128368),
    ])
    def test_matlab_reference(self, three_state_hmm, obs, expected):
        """Values computed by MATLAB for the same model."""
        assert three_state_hmm.log_likelihood(obs) == pytest.approx(expected, rel=1e-7)

    def test_agrees_with_estimate(self, three_state_hmm):
        obs = [0, 2, 2, 1, 2, 3, 0, 0]
        assert three_state_hmm.log_likelihood(obs) == pytest.approx(
            float(three_state_hmm.estimate(obs).log_likelihood), rel=1e-12,
        )


class TestGaussianModel:
    def test_well_separated_states(self):
        """Two far-apart Gaussians: decoding recovers the generating states exactly."""
        hmm = HMM(
            [[0.75, 0.25], [0.25, 0.75]],
            [
                GaussianDistribution([5.0, 5.0], jnp.eye(2)),
                GaussianDistribution([-5.0, -5.0], jnp.eye(2)),
            ],
        )
        sample = hmm.generate(1000, jax.random.PRNGKey(0), start_state=0)
        assert sample.observations.shape == (1000, 2)

        states = hmm.predict(sample.observations)
        np.testing.assert_array_equal(np.asarray(states), np.asarray(sample.states))

        gamma = np.asarray(hmm.estimate(sample.observations).gamma)
        truth = np.asarray(sample.states)
        wrong = gamma[np.arange(1000), 1 - truth]
        assert np.all(wrong < 1e-3)

    def test_dimension_mismatch(self):
        hmm = HMM.from_prototype(2, GaussianDistribution.standard(3))
        with pytest.raises(DimensionMismatch):
            hmm.log_likelihood(np.zeros((5, 2)))
