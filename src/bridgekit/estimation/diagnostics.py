"""Effective sample size for autocorrelated draws.

Uses Geyer's initial monotone sequence estimator: autocorrelations are summed
in adjacent pairs while the pair sums stay positive, and the pair sums are
forced to be non-increasing.
"""

from __future__ import annotations

from typing import TYPE_CHECKING

import numpy as np
from numpy.typing import NDArray

from bridgekit.exceptions import InputError
from bridgekit.model.sample import PosteriorSample

if TYPE_CHECKING:
    import pandas as pd


def autocorrelation(values: NDArray[np.float64]) -> NDArray[np.float64]:
    """Sample autocorrelation at lags ``0..n-1`` via zero-padded FFT.

    Returns all zeros past lag 0 (and one at lag 0) for a constant series.
    """
    x = np.asarray(values, dtype=np.float64).reshape(-1)
    n = x.shape[0]
    centered = x - x.mean()
    size = 1 << (2 * n - 1).bit_length()
    spectrum = np.fft.rfft(centered, n=size)
    acov = np.fft.irfft(spectrum * np.conjugate(spectrum), n=size)[:n] / n
    if not acov[0] > 0.0:
        out = np.zeros(n, dtype=np.float64)
        out[0] = 1.0
        return out
    return acov / acov[0]


def integrated_autocorrelation_time(values: NDArray[np.float64]) -> float:
    """``tau = -1 + 2 * sum(Gamma_k)`` over the initial positive, monotone pairs
    ``Gamma_k = rho_2k + rho_2k+1``."""
    rho = autocorrelation(values)
    n_pairs = rho.shape[0] // 2
    if n_pairs == 0:
        return 1.0
    pairs = rho[0 : 2 * n_pairs : 2] + rho[1 : 2 * n_pairs : 2]
    non_positive = np.flatnonzero(~(pairs > 0.0))
    if non_positive.size:
        pairs = pairs[: non_positive[0]]
    if pairs.size == 0:
        return 1.0
    pairs = np.minimum.accumulate(pairs)
    return float(-1.0 + 2.0 * pairs.sum())


def effective_sample_size_1d(values: NDArray[np.float64]) -> float:
    """``n / tau`` for one series, clipped to ``[1, n]``."""
    x = np.asarray(values, dtype=np.float64).reshape(-1)
    n = x.shape[0]
    if n <= 2 or not np.all(np.isfinite(x)):
        return float(n)
    tau = integrated_autocorrelation_time(x)
    if not np.isfinite(tau) or tau <= 0.0:
        return float(n)
    return float(np.clip(n / tau, 1.0, float(n)))


def effective_sample_size(
    draws: PosteriorSample | pd.DataFrame | NDArray[np.float64],
    *,
    reduce: str = "min",
) -> float:
    """ESS of a multi-column sample.

    Args:
        draws: Posterior draws, one column per parameter, in draw order.
        reduce: "min" (most conservative column) or "median".
    """
    if isinstance(draws, PosteriorSample):
        arr = np.asarray(draws.draws)
    else:
        arr = np.asarray(draws, dtype=np.float64)
    if arr.ndim == 1:
        arr = arr.reshape(-1, 1)
    if arr.ndim != 2 or arr.shape[0] == 0:
        raise InputError(f"draws must be a non-empty 2D array, got shape {arr.shape}")

    per_column = np.array([effective_sample_size_1d(arr[:, j]) for j in range(arr.shape[1])])
    if reduce == "min":
        return float(per_column.min())
    if reduce == "median":
        return float(np.median(per_column))
    raise InputError(f"reduce must be 'min' or 'median', got '{reduce}'")
