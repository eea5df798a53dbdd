"""Approximate relative mean-squared error of bridge sampling estimates.

Uses the asymptotic variance of the optimal bridge estimator
(Fruhwirth-Schnatter, 2004)::

    re2 = Var(f1) / (N2 * E[f1]^2) + Var(f2) / (n_eff * E[f2]^2)

with ``f1`` evaluated at the proposal draws and ``f2`` at the posterior
draws. Posterior draws enter through their effective sample size; proposal
draws are i.i.d. by construction.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import TYPE_CHECKING

import numpy as np

from bridgekit.estimation.diagnostics import effective_sample_size_1d
from bridgekit.exceptions import EstimationError, InputError

if TYPE_CHECKING:
    from numpy.typing import NDArray

    from bridgekit.estimation.bridge import BridgeEstimate


@dataclass(frozen=True, slots=True)
class ErrorMeasure:
    """Relative mean-squared error, coefficient of variation and percentage."""

    re2: float
    cv: float
    percentage: float

    @classmethod
    def from_re2(cls, re2: float) -> ErrorMeasure:
        re2 = float(re2)
        cv = math.sqrt(re2) if re2 >= 0.0 else float("nan")
        return cls(re2=re2, cv=cv, percentage=100.0 * cv)

    def summary(self) -> str:
        return f"re2={self.re2:.4g}, cv={self.cv:.4g}, {self.percentage:.2f}%"


def _relative_variance(values: NDArray[np.float64]) -> float:
    if values.shape[0] < 2:
        return float("nan")
    mean = float(np.mean(values))
    if mean <= 0.0:
        return float("inf")
    return float(np.var(values, ddof=1)) / (mean * mean)


def _log_weights(n_eff: float, n2: float) -> tuple[float, float]:
    return math.log(n_eff / (n_eff + n2)), math.log(n2 / (n_eff + n2))


def relative_mse(
    l1: NDArray[np.float64],
    l2: NDArray[np.float64],
    logml: float,
    *,
    n_eff: float,
) -> float:
    """Approximate relative MSE from the log ratios ``l1`` (posterior draws)
    and ``l2`` (proposal draws) of unnormalised posterior to proposal."""
    if not math.isfinite(n_eff) or n_eff <= 0.0:
        raise InputError(f"n_eff must be finite and > 0, got {n_eff}")
    if not math.isfinite(logml):
        raise EstimationError("Cannot compute error measures for a non-finite log marginal likelihood")

    l1 = np.asarray(l1, dtype=np.float64)
    l2 = np.asarray(l2, dtype=np.float64)
    n2 = float(l2.shape[0])
    log_s1, log_s2 = _log_weights(n_eff, n2)

    # f1 = 1 / (s1 + s2 g/p) and f2 = 1 / (s1 p/g + s2), p normalised by logml
    f1 = np.exp(-np.logaddexp(log_s1, log_s2 + (logml - l2)))
    f2 = np.exp(-np.logaddexp(log_s1 + (l1 - logml), log_s2))

    return _relative_variance(f1) / n2 + _relative_variance(f2) / n_eff


def posterior_bridge_terms(estimate: BridgeEstimate) -> NDArray[np.float64]:
    """``f2 = 1 / (s1 p/g + s2)`` at the posterior draws, in draw order.

    These are the terms averaged in the denominator of the bridge
    estimator; their autocorrelation carries that of the posterior chain.
    """
    log_s1, log_s2 = _log_weights(estimate.n_eff, float(estimate.n_proposal))
    l1 = np.asarray(estimate.l1, dtype=np.float64)
    return np.exp(-np.logaddexp(log_s1 + (l1 - estimate.logml), log_s2))


def weight_effective_sample_size(estimate: BridgeEstimate) -> float:
    """Effective size of the posterior draws measured on the bridge terms.

    A value well below ``estimate.n_eff`` means the draws were more
    correlated than the run assumed.
    """
    return effective_sample_size_1d(posterior_bridge_terms(estimate))


def error_measures(
    estimate: BridgeEstimate,
    *,
    n_eff: float | None = None,
    from_weights: bool = False,
) -> ErrorMeasure:
    """Error measures for ``estimate``.

    ``n_eff`` defaults to the effective sample size the estimate was run
    with (already scaled to the draws used in the iteration). With
    ``from_weights`` it is measured on the bridge terms of the posterior
    draws instead.
    """
    if from_weights:
        if n_eff is not None:
            raise InputError("Pass either n_eff or from_weights, not both")
        n_eff = weight_effective_sample_size(estimate)
    elif n_eff is None:
        n_eff = estimate.n_eff
    return ErrorMeasure.from_re2(relative_mse(estimate.l1, estimate.l2, estimate.logml, n_eff=n_eff))
