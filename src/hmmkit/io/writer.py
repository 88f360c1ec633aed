"""CSV writers for model matrices and sequences."""

import logging
from pathlib import Path

import numpy as np

log = logging.getLogger(__name__)


def save_matrix(path: Path, matrix) -> Path:
    """Write a 2-D matrix as comma-separated rows."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    np.savetxt(path, np.atleast_2d(np.asarray(matrix)), delimiter=",", fmt="%.10g")
    log.debug(f"Wrote matrix to {path}")
    return path


def save_sequence(path: Path, sequence) -> Path:
    """Write a sequence: one scalar per line, or one vector row per line."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = np.asarray(sequence)
    fmt = "%d" if np.issubdtype(data.dtype, np.integer) else "%.10g"
    np.savetxt(path, data, delimiter=",", fmt=fmt)
    log.debug(f"Wrote {data.shape[0]} entries to {path}")
    return path
