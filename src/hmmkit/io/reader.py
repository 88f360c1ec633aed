"""CSV readers for model matrices and sequences."""

import logging
from pathlib import Path

import numpy as np

log = logging.getLogger(__name__)


def load_matrix(path: Path) -> np.ndarray:
    """Read a comma-separated matrix.

    Args:
        path: CSV file, one matrix row per line.

    Returns:
        (R, C) float64 array (a single line gives a 1-row matrix).
    """
    matrix = np.loadtxt(path, delimiter=",", dtype=np.float64, ndmin=2)
    log.debug(f"Loaded {matrix.shape} matrix from {path}")
    return matrix


def load_sequence(path: Path, dtype=np.float64) -> np.ndarray:
    """Read one sequence of scalars (symbols or states).

    Values may be laid out one per line or comma-separated on a single line.
    Symbols and states are read as floats; the model checks they are integral.

    Args:
        path: CSV file.
        dtype: Element type.

    Returns:
        (T,) array.
    """
    data = np.loadtxt(path, delimiter=",", dtype=dtype, ndmin=2)
    if data.shape[0] != 1 and data.shape[1] != 1:
        raise ValueError(f"{path} holds a {data.shape} matrix, expected a single sequence")
    data = data.reshape(-1)
    log.debug(f"Loaded sequence of length {data.shape[0]} from {path}")
    return data
