"""Configuration dataclasses for hmmkit."""

from dataclasses import dataclass


@dataclass(frozen=True)
class EMConfig:
    """Unlabeled Baum-Welch configuration."""
    max_iter: int = 1000
    tol: float = 1e-5  # Absolute total log-likelihood improvement
    n_workers: int = 1  # Threads for the per-sequence E-step

    def __post_init__(self):
        if self.max_iter < 1:
            raise ValueError(f"max_iter must be >= 1, got {self.max_iter}")
        if self.tol < 0:
            raise ValueError(f"tol must be >= 0, got {self.tol}")
        if self.n_workers < 1:
            raise ValueError(f"n_workers must be >= 1, got {self.n_workers}")


# Tolerance on transition column sums and start-vector sums
STOCHASTIC_ATOL = 1e-6

# Added to the Gaussian covariance diagonal after every fit
COVARIANCE_FLOOR = 1e-8
