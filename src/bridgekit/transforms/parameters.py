"""Maps between native parameter coordinates and the real line.

Each parameter kind contributes a forward map (native -> real), an inverse
map (real -> native) and the log absolute Jacobian of each. Kinds are
dispatched through lookup tables keyed by ``ParameterSpec.kind``.

Conventions:
    ``forward`` returns ``log|du/dx|``; ``inverse`` returns ``log|dx/du|``.
    A density ``p(x)`` becomes ``p(x(u)) * |dx/du|`` on the real line.

A simplex group of ``k`` members is reduced to ``k - 1`` real coordinates by
centred stick breaking; the last member of the group is dropped from the
real vector and recovered as the remainder on the way back.
"""

from __future__ import annotations

import math
from collections.abc import Callable, Sequence
from dataclasses import dataclass

import numpy as np
from numpy.typing import NDArray
from scipy import special

from bridgekit.exceptions import InputError, InvalidParameterValue
from bridgekit.model.parameters import ParameterSpec

TWO_PI = 2.0 * math.pi

_Map = Callable[
    [NDArray[np.float64], ParameterSpec, float],
    tuple[NDArray[np.float64], NDArray[np.float64]],
]


def _forward_unbounded(x, spec, center):
    return x.copy(), np.zeros_like(x)


def _inverse_unbounded(u, spec, center):
    return u.copy(), np.zeros_like(u)


def _forward_positive(x, spec, center):
    log_shifted = np.log(x - spec.lower)
    return log_shifted, -log_shifted


def _inverse_positive(u, spec, center):
    return spec.lower + np.exp(u), u.copy()


def _logit_interval(x, lower, upper):
    log_lo = np.log(x - lower)
    log_hi = np.log(upper - x)
    return log_lo - log_hi, math.log(upper - lower) - log_lo - log_hi


def _expit_interval(u, lower, upper):
    width = upper - lower
    x = lower + width * special.expit(u)
    return x, math.log(width) + special.log_expit(u) + special.log_expit(-u)


def _forward_bounded(x, spec, center):
    return _logit_interval(x, spec.lower, spec.upper)


def _inverse_bounded(u, spec, center):
    return _expit_interval(u, spec.lower, spec.upper)


def _forward_circular(x, spec, center):
    # unwrap so the cut point sits opposite the circular mean
    w = np.mod(x - center + math.pi, TWO_PI)
    tiny = TWO_PI * np.finfo(np.float64).eps
    w = np.clip(w, tiny, TWO_PI - tiny)
    return _logit_interval(w, 0.0, TWO_PI)


def _inverse_circular(u, spec, center):
    w, log_jac = _expit_interval(u, 0.0, TWO_PI)
    return np.mod(w - math.pi + center, TWO_PI), log_jac


_FORWARD: dict[str, _Map] = {
    "unbounded": _forward_unbounded,
    "positive": _forward_positive,
    "bounded": _forward_bounded,
    "circular": _forward_circular,
}

_INVERSE: dict[str, _Map] = {
    "unbounded": _inverse_unbounded,
    "positive": _inverse_positive,
    "bounded": _inverse_bounded,
    "circular": _inverse_circular,
}


def _forward_simplex(x: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    """Stick breaking for rows of ``x`` (shape ``(n, k)``)."""
    k = x.shape[1]
    remaining = np.cumsum(x[:, ::-1], axis=1)[:, ::-1]
    log_x = np.log(x[:, :-1])
    log_rest = np.log(remaining[:, 1:])
    offsets = np.log(np.arange(k - 1, 0, -1, dtype=np.float64))
    u = log_x - log_rest + offsets
    log_jac = -np.sum(log_x + log_rest - np.log(remaining[:, :-1]), axis=1)
    return u, log_jac


def _inverse_simplex(u: NDArray[np.float64]) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
    n, km1 = u.shape
    x = np.empty((n, km1 + 1), dtype=np.float64)
    log_jac = np.zeros(n, dtype=np.float64)
    stick = np.ones(n, dtype=np.float64)
    for i in range(km1):
        v = u[:, i] - math.log(km1 - i)
        x[:, i] = stick * special.expit(v)
        log_jac += np.log(stick) + special.log_expit(v) + special.log_expit(-v)
        stick = stick - x[:, i]
    x[:, km1] = stick
    return x, log_jac


def simplex_columns(specs: Sequence[ParameterSpec]) -> list[int]:
    """Column indices of the (single) simplex group."""
    columns = [i for i, s in enumerate(specs) if s.kind == "simplex"]
    if not columns:
        return columns
    groups = {specs[i].group for i in columns}
    if len(groups) > 1:
        raise InputError(
            f"Only one simplex group is supported per run, got {len(groups)}: "
            f"{', '.join(sorted(str(g) for g in groups))}"
        )
    if len(columns) < 2:
        raise InputError("A simplex group needs at least two members")
    return columns


def validate_draws(
    draws: NDArray[np.float64],
    specs: Sequence[ParameterSpec],
    *,
    simplex_tol: float = 1e-6,
) -> None:
    """Check every draw against its declared domain.

    Raises:
        InvalidParameterValue: On the first offending value.
        InputError: If the declarations themselves are inconsistent.
    """
    arr = np.atleast_2d(np.asarray(draws, dtype=np.float64))
    if arr.shape[1] != len(specs):
        raise InputError(f"Expected {len(specs)} columns, got {arr.shape[1]}")

    def fail(j: int, mask: NDArray[np.bool_], domain: str) -> None:
        row = int(np.flatnonzero(mask)[0])
        value = float(arr[row, j])
        label = specs[j].label
        raise InvalidParameterValue(
            f"Draw {row} of parameter '{label}' is {value}, outside its domain {domain}",
            parameter=specs[j].name or j,
            value=value,
        )

    for j, spec in enumerate(specs):
        col = arr[:, j]
        if not np.all(np.isfinite(col)):
            fail(j, ~np.isfinite(col), "(finite values)")
        if spec.kind == "positive":
            bad = col <= spec.lower
            if np.any(bad):
                fail(j, bad, f"({spec.lower}, inf)")
        elif spec.kind == "bounded":
            bad = (col <= spec.lower) | (col >= spec.upper)
            if np.any(bad):
                fail(j, bad, f"({spec.lower}, {spec.upper})")
        elif spec.kind == "circular":
            bad = (col < 0.0) | (col >= TWO_PI)
            if np.any(bad):
                fail(j, bad, "[0, 2*pi)")
        elif spec.kind == "simplex":
            bad = (col <= 0.0) | (col >= 1.0)
            if np.any(bad):
                fail(j, bad, "(0, 1)")

    columns = simplex_columns(specs)
    if columns:
        sums = arr[:, columns].sum(axis=1)
        bad = np.abs(sums - 1.0) > simplex_tol
        if np.any(bad):
            row = int(np.flatnonzero(bad)[0])
            raise InvalidParameterValue(
                f"Simplex members of draw {row} sum to {sums[row]:.10g}, "
                f"not 1 within tolerance {simplex_tol}",
                parameter=specs[columns[0]].group,
                value=float(sums[row]),
            )


def circular_mean(angles: NDArray[np.float64]) -> float:
    """Mean direction of angles in radians, in ``[0, 2*pi)``."""
    mean = math.atan2(float(np.mean(np.sin(angles))), float(np.mean(np.cos(angles))))
    return float(np.mod(mean, TWO_PI))


@dataclass(frozen=True)
class TransformedSample:
    """Draws mapped to the real line together with ``log|du/dx|`` per draw."""

    values: NDArray[np.float64]
    log_jacobian: NDArray[np.float64]

    @property
    def n_draws(self) -> int:
        return int(self.values.shape[0])

    @property
    def n_dims(self) -> int:
        return int(self.values.shape[1])


@dataclass(frozen=True)
class ParameterTransform:
    """Bijection between native draws and real vectors for one estimation run.

    Attributes:
        specs: Parameter declarations, one per native column.
        centers: Cut-point centre per circular column index.
    """

    specs: tuple[ParameterSpec, ...]
    centers: dict[int, float]

    @property
    def n_params(self) -> int:
        return len(self.specs)

    @property
    def simplex(self) -> list[int]:
        return simplex_columns(self.specs)

    @property
    def real_columns(self) -> list[int]:
        """Native column index behind each real coordinate."""
        dropped = self.simplex[-1:] if self.simplex else []
        return [j for j in range(self.n_params) if j not in dropped]

    @property
    def n_real(self) -> int:
        return len(self.real_columns)

    def forward(self, draws: NDArray[np.float64]) -> TransformedSample:
        """Native draws (vector or matrix) to real coordinates."""
        x = np.atleast_2d(np.asarray(draws, dtype=np.float64))
        if x.shape[1] != self.n_params:
            raise InputError(f"Expected {self.n_params} columns, got {x.shape[1]}")

        out = np.empty((x.shape[0], self.n_params), dtype=np.float64)
        log_jac = np.zeros(x.shape[0], dtype=np.float64)
        for j, spec in enumerate(self.specs):
            if spec.kind == "simplex":
                continue
            u, lj = _FORWARD[spec.kind](x[:, j], spec, self.centers.get(j, 0.0))
            out[:, j] = u
            log_jac += lj

        simplex = self.simplex
        if simplex:
            u, lj = _forward_simplex(x[:, simplex])
            out[:, simplex[:-1]] = u
            log_jac += lj

        values = out[:, self.real_columns]
        values.setflags(write=False)
        log_jac.setflags(write=False)
        return TransformedSample(values=values, log_jacobian=log_jac)

    def inverse(
        self,
        values: NDArray[np.float64],
    ) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Real coordinates back to native draws, with ``log|dx/du|`` per row."""
        u = np.atleast_2d(np.asarray(values, dtype=np.float64))
        if u.shape[1] != self.n_real:
            raise InputError(f"Expected {self.n_real} real coordinates, got {u.shape[1]}")

        full = np.zeros((u.shape[0], self.n_params), dtype=np.float64)
        full[:, self.real_columns] = u
        x = np.empty_like(full)
        log_jac = np.zeros(u.shape[0], dtype=np.float64)
        for j, spec in enumerate(self.specs):
            if spec.kind == "simplex":
                continue
            xj, lj = _INVERSE[spec.kind](full[:, j], spec, self.centers.get(j, 0.0))
            x[:, j] = xj
            log_jac += lj

        simplex = self.simplex
        if simplex:
            xs, lj = _inverse_simplex(full[:, simplex[:-1]])
            x[:, simplex] = xs
            log_jac += lj
        return x, log_jac


def build_transform(
    specs: Sequence[ParameterSpec],
    draws: NDArray[np.float64] | None = None,
) -> ParameterTransform:
    """Build the transform for one run.

    Circular parameters are centred on the circular mean of ``draws`` so the
    wrap point falls where the posterior has least mass. Without draws the
    centre defaults to ``pi`` (cut at 0 == 2*pi).
    """
    specs = tuple(specs)
    simplex_columns(specs)
    centers: dict[int, float] = {}
    arr = None if draws is None else np.atleast_2d(np.asarray(draws, dtype=np.float64))
    for j, spec in enumerate(specs):
        if spec.kind != "circular":
            continue
        centers[j] = math.pi if arr is None else circular_mean(arr[:, j])
    return ParameterTransform(specs=specs, centers=centers)
