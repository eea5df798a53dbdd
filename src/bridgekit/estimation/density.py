"""Log-density evaluator helpers.

The caller owns the log posterior. It is called as ``f(x)`` or, when a
``data`` payload is supplied, ``f(x, data)`` and must return a real number
or ``-inf``. Evaluation over many draws is embarrassingly parallel; any
object with a ``map`` method (``concurrent.futures`` executors,
``multiprocessing`` pools) can be passed as ``pool``.
"""

from __future__ import annotations

import logging
import math
from collections.abc import Callable, Sequence
from typing import TYPE_CHECKING, Any

import numpy as np

from bridgekit.exceptions import EstimationError, InputError
from bridgekit.model.priors import PriorSpec, parse_prior_spec

if TYPE_CHECKING:
    from numpy.typing import NDArray

logger = logging.getLogger(__name__)

LogDensity = Callable[..., float]


class _ChunkEvaluator:
    """Picklable callable evaluating a log density over a block of draws."""

    def __init__(self, log_density: LogDensity, data: Any = None, vectorized: bool = False):
        self.log_density = log_density
        self.data = data
        self.vectorized = vectorized

    def _call(self, x):
        if self.data is None:
            return self.log_density(x)
        return self.log_density(x, self.data)

    def __call__(self, block: NDArray[np.float64]) -> NDArray[np.float64]:
        if self.vectorized:
            out = np.array(self._call(block), dtype=np.float64).reshape(-1)
            if out.shape[0] != block.shape[0]:
                raise EstimationError(
                    f"Vectorized log density returned {out.shape[0]} values "
                    f"for {block.shape[0]} draws"
                )
            return out
        return np.array([float(self._call(row)) for row in block], dtype=np.float64)


def evaluate_log_density(
    log_density: LogDensity,
    draws: NDArray[np.float64],
    *,
    data: Any = None,
    vectorized: bool = False,
    pool: Any = None,
    n_chunks: int = 32,
) -> NDArray[np.float64]:
    """Evaluate ``log_density`` at every row of ``draws``.

    NaN results are replaced by ``-inf`` (zero density) and logged.

    Raises:
        EstimationError: If the evaluator returns ``+inf``.
    """
    arr = np.atleast_2d(np.asarray(draws, dtype=np.float64))
    evaluator = _ChunkEvaluator(log_density, data=data, vectorized=vectorized)

    if pool is None or arr.shape[0] < 2:
        values = evaluator(arr)
    else:
        if n_chunks < 1:
            raise InputError(f"n_chunks must be >= 1, got {n_chunks}")
        blocks = np.array_split(arr, min(n_chunks, arr.shape[0]))
        values = np.concatenate(list(pool.map(evaluator, blocks)))

    nan_mask = np.isnan(values)
    if np.any(nan_mask):
        logger.warning(
            "log density returned NaN for %d of %d draws; treating as -inf",
            int(nan_mask.sum()),
            values.shape[0],
        )
        values[nan_mask] = -np.inf
    if np.any(np.isposinf(values)):
        raise EstimationError("log density returned +inf; expected a finite value or -inf")
    return values


def build_log_prior_evaluator(
    priors: Sequence[PriorSpec | dict[str, Any] | None],
) -> Callable[[NDArray[np.float64]], float]:
    """Build ``theta -> sum of independent log priors``.

    ``None`` entries contribute nothing (flat prior on that coordinate).
    """
    compiled = [None if p is None else parse_prior_spec(p) for p in priors]

    def log_prior(theta: NDArray[np.float64]) -> float:
        theta_arr = np.asarray(theta, dtype=np.float64).reshape(-1)
        if theta_arr.shape[0] != len(compiled):
            raise InputError(f"Expected theta length {len(compiled)}, got {theta_arr.shape[0]}")

        total = 0.0
        for value, prior in zip(theta_arr, compiled, strict=True):
            if prior is None:
                continue
            lp = prior.logpdf(float(value))
            if not math.isfinite(lp):
                return float("-inf")
            total += lp
        return float(total)

    return log_prior


def build_log_posterior(
    log_likelihood: LogDensity,
    log_prior: LogDensity | Sequence[PriorSpec | dict[str, Any] | None],
    *,
    prior_weight: float = 1.0,
) -> LogDensity:
    """Compose ``theta[, data] -> log_likelihood + prior_weight * log_prior``.

    ``log_prior`` is either a callable of ``theta`` or a list of per-parameter
    priors. The prior is evaluated first; the likelihood is skipped where the
    prior density is zero.
    """
    if prior_weight <= 0.0:
        raise InputError(f"prior_weight must be > 0, got {prior_weight}")
    if not callable(log_prior):
        log_prior = build_log_prior_evaluator(log_prior)

    def log_posterior(theta: NDArray[np.float64], *data: Any) -> float:
        lp = float(log_prior(theta))
        if not math.isfinite(lp):
            return float("-inf")
        ll = float(log_likelihood(theta, *data))
        if math.isnan(ll):
            return float("nan")
        return float(ll + prior_weight * lp)

    return log_posterior
