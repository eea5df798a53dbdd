"""Bayes factors and posterior model probabilities from marginal likelihoods.

Directional or interval hypotheses are expressed upstream by fitting the
model with a truncated, renormalised prior. The functions here only combine
already computed marginal likelihoods.
"""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass

import numpy as np
import pandas as pd
from scipy import special

from bridgekit.estimation.bridge import BridgeEstimate
from bridgekit.estimation.error import ErrorMeasure
from bridgekit.exceptions import InputError


@dataclass(frozen=True, slots=True)
class BayesFactor:
    """Bayes factor of ``numerator`` over ``denominator``.

    Attributes:
        log_bf: ``logml(numerator) - logml(denominator)``.
        numerator: Label of the model in the numerator.
        denominator: Label of the model in the denominator.
        error: Approximate relative error of the ratio, assuming independent
            estimates; ``None`` if either side has no error measure.
    """

    log_bf: float
    numerator: str
    denominator: str
    error: ErrorMeasure | None = None

    @property
    def bf(self) -> float:
        return math.exp(self.log_bf)

    @property
    def re2(self) -> float | None:
        return None if self.error is None else self.error.re2

    @property
    def percentage(self) -> float | None:
        return None if self.error is None else self.error.percentage

    def inverse(self) -> BayesFactor:
        """The same comparison in the opposite direction."""
        return BayesFactor(
            log_bf=-self.log_bf,
            numerator=self.denominator,
            denominator=self.numerator,
            error=self.error,
        )

    def summary(self) -> str:
        line = f"BF[{self.numerator} : {self.denominator}] = {self.bf:.6g} (log {self.log_bf:.6f})"
        if self.error is not None:
            line += f", approx. error {self.error.percentage:.2f}%"
        return line


def _unpack(estimate: BridgeEstimate | float, default_label: str) -> tuple[float, str, ErrorMeasure | None]:
    if isinstance(estimate, BridgeEstimate):
        return estimate.logml, estimate.label or default_label, estimate.error
    logml = float(estimate)
    return logml, default_label, None


def bayes_factor(
    numerator: BridgeEstimate | float,
    denominator: BridgeEstimate | float,
    *,
    labels: tuple[str, str] | None = None,
) -> BayesFactor:
    """Bayes factor of two models, each given as an estimate or a log marginal likelihood.

    Relative errors add under independence: ``re2 = re2_num + re2_den``.
    """
    log_num, num_label, num_error = _unpack(numerator, "model 1")
    log_den, den_label, den_error = _unpack(denominator, "model 2")
    if labels is not None:
        if len(labels) != 2:
            raise InputError(f"labels must be a (numerator, denominator) pair, got {labels!r}")
        num_label, den_label = str(labels[0]), str(labels[1])
    if not (math.isfinite(log_num) and math.isfinite(log_den)):
        raise InputError("Both log marginal likelihoods must be finite")

    error = None
    if num_error is not None and den_error is not None:
        error = ErrorMeasure.from_re2(num_error.re2 + den_error.re2)

    return BayesFactor(
        log_bf=float(log_num - log_den),
        numerator=num_label,
        denominator=den_label,
        error=error,
    )


def post_prob(
    *estimates: BridgeEstimate | float,
    prior_prob: Sequence[float] | None = None,
    labels: Sequence[str] | None = None,
) -> pd.Series:
    """Posterior model probabilities.

    Args:
        *estimates: Two or more estimates or log marginal likelihoods.
        prior_prob: Prior model probabilities summing to one (uniform if None).
        labels: Model names; default to estimate labels or "model i".
    """
    if len(estimates) < 2:
        raise InputError("post_prob needs at least two models")
    n = len(estimates)
    unpacked = [_unpack(e, f"model {i + 1}") for i, e in enumerate(estimates)]
    logml = np.array([u[0] for u in unpacked], dtype=np.float64)
    names = [u[1] for u in unpacked] if labels is None else [str(x) for x in labels]
    if len(names) != n:
        raise InputError(f"Got {len(names)} labels for {n} models")
    if len(set(names)) != n:
        raise InputError("Model labels must be unique")

    if prior_prob is None:
        prior = np.full(n, 1.0 / n)
    else:
        prior = np.asarray(prior_prob, dtype=np.float64).reshape(-1)
        if prior.shape[0] != n:
            raise InputError(f"prior_prob needs {n} entries, got {prior.shape[0]}")
        if np.any(prior < 0.0) or not math.isclose(float(prior.sum()), 1.0, abs_tol=1e-9):
            raise InputError("prior_prob must be non-negative and sum to one")
    if not np.all(np.isfinite(logml)):
        raise InputError("All log marginal likelihoods must be finite")

    with np.errstate(divide="ignore"):
        weighted = logml + np.log(prior)
    probs = np.exp(weighted - special.logsumexp(weighted))
    return pd.Series(probs, index=names, name="posterior_probability")
