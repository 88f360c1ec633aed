"""Pytest configuration and shared fixtures."""

import sys
from pathlib import Path

import pytest

# Ensure src is on the path
sys.path.insert(0, str(Path(__file__).parent.parent / "src"))

from hmmkit.emissions.discrete import DiscreteDistribution  # noqa: E402
from hmmkit.hmm.model import HMM  # noqa: E402


def discrete_hmm(transition, emission_rows, initial=None):
    """HMM with one categorical emission per row of ``emission_rows``."""
    return HMM(transition, [DiscreteDistribution(row) for row in emission_rows], initial=initial)


@pytest.fixture
def umbrella_hmm():
    """Rain/dry weather observed through umbrella/no-umbrella."""
    return discrete_hmm(
        [[0.7, 0.3], [0.3, 0.7]],
        [[0.9, 0.1], [0.2, 0.8]],
    )


@pytest.fixture
def two_state_hmm():
    """Two states with disjoint emission support (every path is forced)."""
    return discrete_hmm(
        [[0.1, 0.4], [0.9, 0.6]],
        [[0.85, 0.15, 0.0, 0.0], [0.0, 0.0, 0.5, 0.5]],
    )


@pytest.fixture
def three_state_hmm():
    return discrete_hmm(
        [[0.5, 0.0, 0.1], [0.2, 0.6, 0.2], [0.3, 0.4, 0.7]],
        [[0.75, 0.25, 0.0, 0.0], [0.0, 0.25, 0.25, 0.5], [0.1, 0.4, 0.4, 0.1]],
    )
