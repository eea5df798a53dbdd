"""Multivariate normal proposal fitted to transformed posterior draws."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import linalg

from bridgekit.exceptions import DegenerateSample, InputError, SingularCovariance

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ProposalModel:
    """Normal density ``N(mean, covariance)`` on the real line.

    Attributes:
        mean: Mean vector, shape ``(d,)``.
        covariance: Covariance matrix, shape ``(d, d)``.
        cholesky: Lower Cholesky factor of ``covariance``.
        ridge: Diagonal loading added to reach positive definiteness (0 if none).
    """

    mean: NDArray[np.float64]
    covariance: NDArray[np.float64]
    cholesky: NDArray[np.float64]
    ridge: float = 0.0

    @property
    def n_dims(self) -> int:
        return int(self.mean.shape[0])

    @property
    def log_det_cholesky(self) -> float:
        return float(np.sum(np.log(np.diag(self.cholesky))))

    @property
    def log_normalizer(self) -> float:
        """``log((2 pi)^(d/2) |covariance|^(1/2))``."""
        return 0.5 * self.n_dims * math.log(2.0 * math.pi) + self.log_det_cholesky

    def standardize(self, values: NDArray[np.float64]) -> NDArray[np.float64]:
        """Map ``u`` to ``L^{-1} (u - mean)``."""
        u = np.atleast_2d(np.asarray(values, dtype=np.float64))
        return linalg.solve_triangular(self.cholesky, (u - self.mean).T, lower=True).T

    def unstandardize(self, z: NDArray[np.float64]) -> NDArray[np.float64]:
        """Map ``z`` to ``mean + L z``."""
        z = np.atleast_2d(np.asarray(z, dtype=np.float64))
        return self.mean + z @ self.cholesky.T

    def logpdf(self, values: NDArray[np.float64]) -> NDArray[np.float64]:
        """Normalised log density at each row of ``values``."""
        z = self.standardize(values)
        return -0.5 * np.sum(z * z, axis=1) - self.log_normalizer

    def sample(self, n: int, rng: np.random.Generator) -> NDArray[np.float64]:
        """Draw ``n`` i.i.d. points."""
        if n < 1:
            raise InputError(f"n must be >= 1, got {n}")
        return self.unstandardize(rng.standard_normal((n, self.n_dims)))


def standard_normal_logpdf(z: NDArray[np.float64]) -> NDArray[np.float64]:
    """Log density of the standard multivariate normal at rows of ``z``."""
    z = np.atleast_2d(z)
    return -0.5 * np.sum(z * z, axis=1) - 0.5 * z.shape[1] * math.log(2.0 * math.pi)


def fit_proposal(
    values: NDArray[np.float64],
    *,
    ridge: float = 1e-10,
    max_ridge_attempts: int = 8,
) -> ProposalModel:
    """Fit mean and covariance of real-line draws.

    If the sample covariance has no Cholesky factor, ``ridge`` times the
    mean variance (at least 1) is added to the diagonal, growing tenfold per
    attempt.

    Raises:
        DegenerateSample: Fewer than ``d + 1`` draws.
        SingularCovariance: No positive definite covariance after all attempts.
    """
    arr = np.atleast_2d(np.asarray(values, dtype=np.float64))
    n, d = arr.shape
    if d == 0:
        raise InputError("Cannot fit a proposal to zero-dimensional draws")
    if n < d + 1:
        raise DegenerateSample(
            f"Need at least {d + 1} draws to fit a {d}-dimensional proposal, got {n}",
            n_draws=n,
            n_dims=d,
        )
    if not np.all(np.isfinite(arr)):
        raise InputError("Transformed draws contain non-finite values")
    if ridge < 0.0 or not math.isfinite(ridge):
        raise InputError(f"ridge must be finite and >= 0, got {ridge}")

    mean = arr.mean(axis=0)
    cov = np.atleast_2d(np.cov(arr, rowvar=False))

    scale = max(float(np.mean(np.diag(cov))), 1.0)
    loading = 0.0
    for attempt in range(max_ridge_attempts + 1):
        candidate = cov + loading * np.eye(d)
        try:
            chol = linalg.cholesky(candidate, lower=True)
        except linalg.LinAlgError:
            chol = None
        if chol is not None and np.all(np.diag(chol) > 0.0):
            if loading > 0.0:
                logger.warning(
                    "proposal covariance regularised with ridge %.3g after %d attempt(s)",
                    loading,
                    attempt,
                )
            return ProposalModel(mean=mean, covariance=candidate, cholesky=chol, ridge=loading)
        loading = ridge * scale * (10.0**attempt) if ridge > 0.0 else 0.0
        if loading == 0.0:
            break

    raise SingularCovariance(
        f"Proposal covariance of dimension {d} is not positive definite "
        f"after ridge correction",
        n_dims=d,
    )
