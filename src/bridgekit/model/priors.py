"""Prior distribution DSL and log-density helpers.

Priors are never chosen by the estimator. These helpers exist so callers
can assemble an unnormalised log posterior from a log likelihood and a list
of independent priors (see ``bridgekit.estimation.density``).

Parameterisation by distribution:

=============== ============ ==========
distribution    loc          scale
=============== ============ ==========
normal_pdf      mean         std
cauchy_pdf      location     scale
beta_pdf        mean         std (moment matched)
gamma_pdf       mean         std (moment matched)
inv_gamma_pdf   mean         std (moment matched)
uniform_pdf     lower bound  upper bound
=============== ============ ==========
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any

import numpy as np
from scipy import special

from bridgekit.exceptions import InputError

_PRIOR_ALIASES: dict[str, str] = {
    "normal": "normal_pdf",
    "normal_pdf": "normal_pdf",
    "gaussian": "normal_pdf",
    "gaussian_pdf": "normal_pdf",
    "cauchy": "cauchy_pdf",
    "cauchy_pdf": "cauchy_pdf",
    "beta": "beta_pdf",
    "beta_pdf": "beta_pdf",
    "gamma": "gamma_pdf",
    "gamma_pdf": "gamma_pdf",
    "inv_gamma": "inv_gamma_pdf",
    "inv_gamma_pdf": "inv_gamma_pdf",
    "invgamma": "inv_gamma_pdf",
    "inverse_gamma": "inv_gamma_pdf",
    "uniform": "uniform_pdf",
    "uniform_pdf": "uniform_pdf",
}

_SUPPORTED_PRIORS = frozenset(
    {"normal_pdf", "cauchy_pdf", "beta_pdf", "gamma_pdf", "inv_gamma_pdf", "uniform_pdf"}
)


def normalize_prior_distribution(name: str) -> str:
    """Map prior aliases to canonical distribution names."""
    normalized = name.strip().lower()
    if normalized not in _PRIOR_ALIASES:
        supported = ", ".join(sorted(_SUPPORTED_PRIORS))
        raise InputError(f"Unknown prior distribution '{name}'. Supported: {supported}")
    return _PRIOR_ALIASES[normalized]


def _logpdf_normal(x: float, mean: float, std: float) -> float:
    z = (x - mean) / std
    return -0.5 * math.log(2.0 * math.pi) - math.log(std) - 0.5 * z * z


def _logpdf_cauchy(x: float, loc: float, scale: float) -> float:
    z = (x - loc) / scale
    return -math.log(math.pi) - math.log(scale) - math.log1p(z * z)


def _beta_shape_from_mean_std(mean: float, std: float) -> tuple[float, float]:
    var = std * std
    kappa = mean * (1.0 - mean) / var - 1.0
    if kappa <= 0.0:
        raise InputError("Invalid beta prior moments: require std^2 < mean*(1-mean)")
    return mean * kappa, (1.0 - mean) * kappa


def _logpdf_beta(x: float, mean: float, std: float) -> float:
    if x <= 0.0 or x >= 1.0:
        return -np.inf
    alpha, beta = _beta_shape_from_mean_std(mean, std)
    return (alpha - 1.0) * math.log(x) + (beta - 1.0) * math.log(1.0 - x) - special.betaln(
        alpha, beta
    )


def _logpdf_gamma(x: float, mean: float, std: float) -> float:
    if x <= 0.0:
        return -np.inf
    shape = (mean / std) ** 2
    scale = (std * std) / mean
    return (
        (shape - 1.0) * math.log(x)
        - x / scale
        - shape * math.log(scale)
        - special.gammaln(shape)
    )


def _logpdf_inv_gamma(x: float, mean: float, std: float) -> float:
    if x <= 0.0:
        return -np.inf
    shape = 2.0 + (mean * mean) / (std * std)
    scale = mean * (shape - 1.0)
    return (
        shape * math.log(scale)
        - special.gammaln(shape)
        - (shape + 1.0) * math.log(x)
        - scale / x
    )


def _logpdf_uniform(x: float, lower: float, upper: float) -> float:
    if x < lower or x > upper:
        return -np.inf
    return -math.log(upper - lower)


_LOGPDFS = {
    "normal_pdf": _logpdf_normal,
    "cauchy_pdf": _logpdf_cauchy,
    "beta_pdf": _logpdf_beta,
    "gamma_pdf": _logpdf_gamma,
    "inv_gamma_pdf": _logpdf_inv_gamma,
    "uniform_pdf": _logpdf_uniform,
}


@dataclass(frozen=True, slots=True)
class PriorSpec:
    """Independent prior for one parameter."""

    distribution: str
    loc: float
    scale: float

    def __post_init__(self) -> None:
        distribution = normalize_prior_distribution(self.distribution)
        loc = float(self.loc)
        scale = float(self.scale)

        if not math.isfinite(loc):
            raise InputError(f"Prior loc must be finite, got {loc}")
        if distribution == "uniform_pdf":
            if not math.isfinite(scale) or scale <= loc:
                raise InputError(f"Uniform prior needs lower < upper, got [{loc}, {scale}]")
        elif not math.isfinite(scale) or scale <= 0.0:
            raise InputError(f"Prior scale must be finite and > 0, got {scale}")

        if distribution == "beta_pdf":
            if not (0.0 < loc < 1.0):
                raise InputError(f"Beta prior mean must be in (0, 1), got {loc}")
            if scale * scale >= loc * (1.0 - loc):
                raise InputError(
                    f"Beta prior std is too large for the given mean (mean={loc}, std={scale})"
                )
        elif distribution in {"gamma_pdf", "inv_gamma_pdf"}:
            if loc <= 0.0:
                raise InputError(f"{distribution} prior mean must be > 0, got {loc}")

        object.__setattr__(self, "distribution", distribution)
        object.__setattr__(self, "loc", loc)
        object.__setattr__(self, "scale", scale)

    @classmethod
    def normal(cls, mean: float, std: float) -> PriorSpec:
        return cls("normal_pdf", mean, std)

    @classmethod
    def cauchy(cls, loc: float, scale: float) -> PriorSpec:
        return cls("cauchy_pdf", loc, scale)

    @classmethod
    def beta(cls, mean: float, std: float) -> PriorSpec:
        return cls("beta_pdf", mean, std)

    @classmethod
    def gamma(cls, mean: float, std: float) -> PriorSpec:
        return cls("gamma_pdf", mean, std)

    @classmethod
    def inv_gamma(cls, mean: float, std: float) -> PriorSpec:
        return cls("inv_gamma_pdf", mean, std)

    @classmethod
    def uniform(cls, lower: float, upper: float) -> PriorSpec:
        return cls("uniform_pdf", lower, upper)

    def logpdf(self, x: float) -> float:
        """Normalised log density at ``x``."""
        if not math.isfinite(x):
            return float("-inf")
        return float(_LOGPDFS[self.distribution](float(x), self.loc, self.scale))

    def to_dict(self) -> dict[str, float | str]:
        return {
            "distribution": self.distribution,
            "loc": self.loc,
            "scale": self.scale,
        }

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> PriorSpec:
        distribution = data.get("distribution", data.get("dist", data.get("family")))
        if distribution is None:
            raise InputError("Prior dict must include 'distribution'")
        loc = data.get("loc", data.get("mean", data.get("lower")))
        scale = data.get("scale", data.get("std", data.get("upper")))
        if loc is None or scale is None:
            raise InputError("Prior dict must include 'loc' and 'scale' (or 'mean' and 'std')")
        return cls(str(distribution), float(loc), float(scale))


def parse_prior_spec(
    prior: PriorSpec | dict[str, Any] | str | None,
    *,
    loc: float | None = None,
    scale: float | None = None,
) -> PriorSpec | None:
    """Parse prior input from object, dict or distribution name."""
    if prior is None:
        if loc is None and scale is None:
            return None
        raise InputError("Prior loc/scale provided without a prior distribution")

    if isinstance(prior, PriorSpec):
        return prior

    if isinstance(prior, dict):
        return PriorSpec.from_dict(prior)

    if isinstance(prior, str):
        if loc is None or scale is None:
            raise InputError(
                "Prior distribution string requires both loc and scale "
                "(e.g. prior='cauchy', loc=0.0, scale=0.707)"
            )
        return PriorSpec(prior, float(loc), float(scale))

    raise TypeError(f"Unsupported prior specification type: {type(prior)!r}")
