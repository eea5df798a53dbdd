"""Bridge sampling estimates of the log marginal likelihood.

Implements the iterative bridge estimator of Meng & Wong (1996) with the
optimal bridge function, either with a normal proposal fitted on the real
line ("normal") or with Warp-III (Meng & Schilling, 2002), which matches
mean, covariance and skewness of the posterior by mixing it with its
reflection about the mean.

With ``l1`` the log ratios of unnormalised posterior to proposal at the
posterior draws and ``l2`` the same at the proposal draws, each iteration
updates::

    r <- mean_j[ e^l2_j / (s1 e^l2_j + s2 r) ] / mean_i[ 1 / (s1 e^l1_i + s2 r) ]

The log-Jacobian of the parameter transform is part of the unnormalised
posterior on the real line and the proposal density is normalised, so
``log r`` at convergence is the log marginal likelihood in native
coordinates.
"""

from __future__ import annotations

import logging
import math
import time
import warnings
from dataclasses import dataclass, field, replace
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray
from scipy import special

from bridgekit.estimation.density import LogDensity, evaluate_log_density
from bridgekit.estimation.error import ErrorMeasure, error_measures
from bridgekit.estimation.proposal import ProposalModel, fit_proposal, standard_normal_logpdf
from bridgekit.exceptions import DegenerateSample, EstimationError, InputError, NonConvergence
from bridgekit.io.settings import BridgeSettings, resolve_settings
from bridgekit.model.sample import PosteriorSample
from bridgekit.transforms.parameters import ParameterTransform, build_transform, validate_draws

if TYPE_CHECKING:
    from pathlib import Path

logger = logging.getLogger(__name__)


def _readonly(arr: NDArray[np.float64]) -> NDArray[np.float64]:
    out = np.array(arr, dtype=np.float64)
    out.setflags(write=False)
    return out


@dataclass(frozen=True)
class IterationResult:
    """Outcome of the fixed-point iteration."""

    logml: float
    niter: int
    converged: bool
    trace: NDArray[np.float64]


def run_iterative_scheme(
    l1: NDArray[np.float64],
    l2: NDArray[np.float64],
    *,
    n_eff: float,
    tol: float = 1e-10,
    maxiter: int = 1000,
    r0: float = 1.0,
    lstar: float | None = None,
    time_budget: float | None = None,
) -> IterationResult:
    """Iterate the bridge estimator to a fixed point.

    All sums go through ``logsumexp``; ratios are scaled by ``lstar`` (the
    median of ``l1`` by default) so ``r`` stays near one. Stops when
    successive log estimates differ by less than ``tol``, or flags
    non-convergence once ``maxiter`` iterations or ``time_budget`` seconds
    are used up.

    Args:
        l1: Log ratios at the posterior draws, length N1.
        l2: Log ratios at the proposal draws, length N2.
        n_eff: Effective size of the posterior draws (N1 for i.i.d. draws).
        r0: Starting value of the scaled ratio ``exp(logml - lstar)``.

    Returns:
        IterationResult with ``trace`` holding every log marginal likelihood
        iterate (starting value first).
    """
    l1 = np.asarray(l1, dtype=np.float64).reshape(-1)
    l2 = np.asarray(l2, dtype=np.float64).reshape(-1)
    if l1.shape[0] == 0 or l2.shape[0] == 0:
        raise InputError("Both posterior and proposal log ratios must be non-empty")
    if np.any(np.isnan(l1)) or np.any(np.isnan(l2)):
        raise EstimationError("Log ratios contain NaN")
    if not math.isfinite(n_eff) or n_eff <= 0.0:
        raise InputError(f"n_eff must be finite and > 0, got {n_eff}")
    if not r0 > 0.0:
        raise InputError(f"r0 must be > 0, got {r0}")
    if maxiter < 1:
        raise InputError(f"maxiter must be >= 1, got {maxiter}")

    if lstar is None:
        lstar = float(np.median(l1))
    if not math.isfinite(lstar):
        raise EstimationError(
            "Median log ratio at the posterior draws is not finite; "
            "the log density is zero on most posterior draws"
        )

    n1 = float(l1.shape[0])
    n2 = float(l2.shape[0])
    log_s1 = math.log(n_eff / (n_eff + n2))
    log_s2 = math.log(n2 / (n_eff + n2))
    a1 = l1 - lstar
    a2 = l2 - lstar

    log_r = math.log(r0)
    trace = [log_r + lstar]
    converged = False
    niter = 0
    started = time.perf_counter()
    while niter < maxiter:
        log_num = special.logsumexp(a2 - np.logaddexp(log_s1 + a2, log_s2 + log_r)) - math.log(n2)
        log_den = special.logsumexp(-np.logaddexp(log_s1 + a1, log_s2 + log_r)) - math.log(n1)
        new_log_r = float(log_num - log_den)
        niter += 1
        if not math.isfinite(new_log_r):
            raise EstimationError(
                "Bridge iteration produced a non-finite estimate; "
                "the log density is zero at every proposal draw"
            )

        delta = abs(new_log_r - log_r)
        log_r = new_log_r
        trace.append(log_r + lstar)
        logger.debug("iteration %d: logml=%.12g delta=%.3g", niter, log_r + lstar, delta)
        if delta < tol:
            converged = True
            break
        if time_budget is not None and time.perf_counter() - started > time_budget:
            logger.warning("bridge iteration stopped by time budget after %d iterations", niter)
            break

    return IterationResult(
        logml=float(log_r + lstar),
        niter=niter,
        converged=converged,
        trace=np.asarray(trace, dtype=np.float64),
    )


@dataclass(frozen=True)
class BridgeEstimate:
    """Log marginal likelihood from one bridge sampling run.

    Attributes:
        logml: Log marginal likelihood estimate.
        niter: Iterations used (including a retry, if any).
        converged: Whether the requested tolerance was met.
        method: "normal" or "warp3".
        n_posterior: Posterior draws used in the iteration (N1).
        n_proposal: Proposal draws (N2).
        n_fit: Posterior draws used to fit the transform and proposal.
        n_eff: Effective size of the N1 posterior draws.
        l1, l2: Log ratios of unnormalised posterior to proposal at the
            posterior and proposal draws.
        q11, q12, q21, q22: Log unnormalised posterior (``x1``) and log
            proposal (``x2``) at posterior (``1x``) and proposal (``2x``) draws.
        error: Error measures, when computed.
    """

    logml: float
    niter: int
    converged: bool
    method: str
    n_posterior: int
    n_proposal: int
    n_fit: int
    n_eff: float
    tol: float
    l1: NDArray[np.float64] = field(repr=False)
    l2: NDArray[np.float64] = field(repr=False)
    q11: NDArray[np.float64] = field(repr=False)
    q12: NDArray[np.float64] = field(repr=False)
    q21: NDArray[np.float64] = field(repr=False)
    q22: NDArray[np.float64] = field(repr=False)
    seed: int | None = None
    label: str = ""
    error: ErrorMeasure | None = None
    notes: tuple[str, ...] = ()

    @property
    def marginal_likelihood(self) -> float:
        return math.exp(self.logml)

    def summary(self) -> str:
        lines = [
            "Bridge Sampling Estimate",
            "=" * 50,
            f"  Method:          {self.method}",
            f"  Log marginal:    {self.logml:.6f}",
            f"  Iterations:      {self.niter}",
            f"  Converged:       {self.converged}",
            f"  Posterior draws: {self.n_posterior} (n_eff {self.n_eff:.1f})",
            f"  Proposal draws:  {self.n_proposal}",
        ]
        if self.label:
            lines.insert(2, f"  Model:           {self.label}")
        if self.error is not None:
            lines.append(f"  Rel. MSE:        {self.error.re2:.4g}")
            lines.append(f"  Error:           {self.error.percentage:.2f}%")
        if self.notes:
            lines.append("")
            for note in self.notes:
                lines.append(f"  Note: {note}")
        return "\n".join(lines)


def _resolve_n_eff(sample: PosteriorSample, n_eff: float | None) -> float:
    if n_eff is None:
        n_eff = sample.n_eff
    if n_eff is None:
        raise InputError(
            "An effective sample size is required: pass n_eff (use the number of "
            "draws for independent draws, or effective_sample_size(sample) for a "
            "Markov chain) or attach n_eff to the PosteriorSample"
        )
    n_eff = float(n_eff)
    if not math.isfinite(n_eff) or n_eff <= 0.0:
        raise InputError(f"n_eff must be finite and > 0, got {n_eff}")
    return n_eff


def _real_line_log_density(
    transform: ParameterTransform,
    values: NDArray[np.float64],
    evaluate,
) -> NDArray[np.float64]:
    """Unnormalised log posterior on the real line at rows of ``values``."""
    native, log_jac = transform.inverse(values)
    return evaluate(native) + log_jac


def _warp3_quantities(
    transform: ParameterTransform,
    proposal: ProposalModel,
    iter_values: NDArray[np.float64],
    q_iter: NDArray[np.float64],
    z: NDArray[np.float64],
    evaluate,
) -> tuple[NDArray[np.float64], ...]:
    mean = proposal.mean
    q_reflected = _real_line_log_density(transform, 2.0 * mean - iter_values, evaluate)
    q11 = np.logaddexp(q_iter, q_reflected)
    q12 = standard_normal_logpdf(proposal.standardize(iter_values))

    offsets = z @ proposal.cholesky.T
    q21 = np.logaddexp(
        _real_line_log_density(transform, mean - offsets, evaluate),
        _real_line_log_density(transform, mean + offsets, evaluate),
    )
    q22 = standard_normal_logpdf(z)

    scale = proposal.log_det_cholesky - math.log(2.0)
    return q11, q12, q21, q22, scale + q11 - q12, scale + q21 - q22


def bridge_sampler(
    sample: PosteriorSample,
    log_density: LogDensity,
    *,
    n_eff: float | None = None,
    data: Any = None,
    settings: BridgeSettings | dict[str, Any] | str | Path | None = None,
    method: str | None = None,
    seed: int | None = None,
    tol: float | None = None,
    maxiter: int | None = None,
    n_proposal: int | None = None,
    pool: Any = None,
    vectorized: bool = False,
    label: str = "",
    **overrides: Any,
) -> BridgeEstimate:
    """Estimate the log marginal likelihood of a model from posterior draws.

    Args:
        sample: Posterior draws with their parameter declarations.
        log_density: Unnormalised log posterior in native coordinates,
            ``f(x)`` or ``f(x, data)``.
        n_eff: Effective sample size of the whole ``sample``. Required unless
            the sample carries one; pass ``sample.n_draws`` for i.i.d. draws.
        data: Optional payload passed through to ``log_density``.
        settings: ``BridgeSettings``, a dict, or a YAML path. Keyword
            arguments (``method``, ``seed``, ``tol``, ``maxiter``,
            ``n_proposal`` and any other settings field) override it.
        pool: Object with ``map`` used to evaluate ``log_density`` in parallel.
        vectorized: ``log_density`` accepts a matrix of draws and returns one
            value per row.
        label: Model identifier carried into Bayes factors.

    Raises:
        InvalidParameterValue: A draw lies outside its declared domain.
        DegenerateSample: Too few draws for the dimensionality.
        SingularCovariance: The proposal cannot be fitted.
        EstimationError: The log density is zero almost everywhere.

    A run that exhausts its iteration or time budget is not an error: the
    last estimate is returned with ``converged=False`` and a
    ``NonConvergence`` warning is issued.
    """
    if not isinstance(sample, PosteriorSample):
        raise InputError(f"sample must be a PosteriorSample, got {type(sample).__name__}")
    if not callable(log_density):
        raise InputError("log_density must be callable")
    config = resolve_settings(
        settings,
        method=method,
        seed=seed,
        tol=tol,
        maxiter=maxiter,
        n_proposal=n_proposal,
        **overrides,
    )
    n_eff_total = _resolve_n_eff(sample, n_eff)

    # validate everything before evaluating the density
    validate_draws(sample.draws, sample.specs, simplex_tol=config.simplex_tol)
    if config.split:
        fit_draws, iter_draws = sample.split()
    else:
        fit_draws = iter_draws = sample.draws
    transform = build_transform(sample.specs, fit_draws)
    n_real = transform.n_real
    min_fit = n_real + 1
    if fit_draws.shape[0] < min_fit or iter_draws.shape[0] < 2:
        needed = 2 * min_fit if config.split else min_fit
        raise DegenerateSample(
            f"{sample.n_draws} draws are too few for {n_real} real dimensions "
            f"(need at least {max(needed, 2)})",
            n_draws=sample.n_draws,
            n_dims=n_real,
        )

    fit_t = transform.forward(fit_draws)
    proposal = fit_proposal(
        fit_t.values,
        ridge=config.ridge,
        max_ridge_attempts=config.max_ridge_attempts,
    )

    n1 = int(iter_draws.shape[0])
    n2 = config.n_proposal or n1
    n_eff_iter = n_eff_total * n1 / sample.n_draws
    notes: list[str] = []
    if proposal.ridge > 0.0:
        notes.append(f"Proposal covariance regularised with ridge {proposal.ridge:.3g}.")

    logger.info(
        "bridge sampling (%s): %d posterior draws, %d proposal draws, %d real dimensions",
        config.method,
        n1,
        n2,
        n_real,
    )

    def evaluate(native: NDArray[np.float64]) -> NDArray[np.float64]:
        return evaluate_log_density(
            log_density, native, data=data, vectorized=vectorized, pool=pool
        )

    rng = np.random.default_rng(config.seed)
    iter_t = transform.forward(iter_draws)
    q_iter = evaluate(iter_draws) - iter_t.log_jacobian
    if not np.any(np.isfinite(q_iter)):
        raise EstimationError("log density is -inf at every posterior draw")

    if config.method == "warp3":
        z = rng.standard_normal((n2, n_real))
        q11, q12, q21, q22, l1, l2 = _warp3_quantities(
            transform, proposal, iter_t.values, q_iter, z, evaluate
        )
    else:
        proposal_draws = proposal.sample(n2, rng)
        q11 = q_iter
        q12 = proposal.logpdf(iter_t.values)
        q21 = _real_line_log_density(transform, proposal_draws, evaluate)
        q22 = proposal.logpdf(proposal_draws)
        l1 = q11 - q12
        l2 = q21 - q22

    started = time.perf_counter()
    result = run_iterative_scheme(
        l1,
        l2,
        n_eff=n_eff_iter,
        tol=config.tol,
        maxiter=config.maxiter,
        time_budget=config.time_budget,
    )
    remaining = None
    if config.time_budget is not None:
        remaining = config.time_budget - (time.perf_counter() - started)
    niter = result.niter
    logml = result.logml
    if not result.converged:
        message = (
            f"Bridge iteration did not reach tol={config.tol:g} within "
            f"{result.niter} iterations"
        )
        if config.retry_unconverged and remaining is not None and remaining <= 0.0:
            message += "; time budget used up, no retry"
        elif config.retry_unconverged and result.trace.shape[0] >= 2:
            # restart from the geometric mean of the last two iterates
            lstar = float(np.median(l1))
            log_r0 = 0.5 * (result.trace[-1] + result.trace[-2]) - lstar
            retry = run_iterative_scheme(
                l1,
                l2,
                n_eff=n_eff_iter,
                tol=config.retry_tol,
                maxiter=config.maxiter,
                r0=math.exp(log_r0),
                lstar=lstar,
                time_budget=remaining,
            )
            niter += retry.niter
            logml = retry.logml
            if retry.converged:
                message += f"; retry converged at relaxed tol={config.retry_tol:g}"
            else:
                message += f"; retry at tol={config.retry_tol:g} did not converge either"
        notes.append(message + ".")
        logger.warning(message)
        warnings.warn(message, NonConvergence, stacklevel=2)

    estimate = BridgeEstimate(
        logml=float(logml),
        niter=niter,
        converged=result.converged,
        method=config.method,
        n_posterior=n1,
        n_proposal=n2,
        n_fit=int(fit_draws.shape[0]),
        n_eff=float(n_eff_iter),
        tol=config.tol,
        l1=_readonly(l1),
        l2=_readonly(l2),
        q11=_readonly(q11),
        q12=_readonly(q12),
        q21=_readonly(q21),
        q22=_readonly(q22),
        seed=config.seed,
        label=label,
    )
    error = error_measures(estimate)
    logger.info(
        "bridge sampling done: logml=%.6f after %d iterations (error %.2f%%)",
        estimate.logml,
        niter,
        error.percentage,
    )
    return replace(estimate, error=error, notes=tuple(notes))
