"""Estimation settings and their YAML representation.

```yaml
method: warp3
tol: 1.0e-10
maxiter: 1000
seed: 2024
split: true
```
"""

from __future__ import annotations

import dataclasses
import math
from dataclasses import dataclass
from pathlib import Path
from typing import Any

import numpy as np
import yaml

from bridgekit.exceptions import SettingsError

SUPPORTED_METHODS = frozenset({"normal", "warp3"})


def _as_float(name: str, value: Any) -> float:
    if isinstance(value, (bool, np.bool_)):
        raise SettingsError(f"{name} must be a number, got {value!r}")
    try:
        return float(value)
    except (TypeError, ValueError) as e:
        raise SettingsError(f"{name} must be a number, got {value!r}") from e


def _as_int(name: str, value: Any) -> int:
    if isinstance(value, (bool, np.bool_)):
        raise SettingsError(f"{name} must be an integer, got {value!r}")
    if isinstance(value, (int, np.integer)):
        return int(value)
    try:
        as_float = float(value)
    except (TypeError, ValueError) as e:
        raise SettingsError(f"{name} must be an integer, got {value!r}") from e
    if not as_float.is_integer():
        raise SettingsError(f"{name} must be an integer, got {value!r}")
    return int(as_float)


def _as_bool(name: str, value: Any) -> bool:
    if isinstance(value, (bool, np.bool_)):
        return bool(value)
    raise SettingsError(f"{name} must be true or false, got {value!r}")


@dataclass(frozen=True, slots=True)
class BridgeSettings:
    """Knobs of one bridge sampling run.

    Attributes:
        method: "normal" (multivariate normal proposal) or "warp3".
        tol: Convergence tolerance on successive log ratio estimates.
        maxiter: Iteration cap of the fixed-point scheme, per attempt (a retry
            gets its own ``maxiter``).
        n_proposal: Proposal draws; ``None`` matches the posterior draws used.
        split: Fit the proposal on the first half of the draws and iterate on
            the second half.
        ridge: Initial diagonal loading for a near-singular covariance.
        max_ridge_attempts: Tenfold ridge increases before giving up.
        simplex_tol: Allowed deviation of a simplex group sum from one.
        time_budget: Wall-clock seconds allowed for the iteration, or ``None``.
            A retry only gets what the first attempt left over.
        seed: Seed of the proposal generator.
        retry_unconverged: Re-run once with ``retry_tol`` if the budget runs out.
        retry_tol: Relaxed tolerance for the retry.
    """

    method: str = "normal"
    tol: float = 1e-10
    maxiter: int = 1000
    n_proposal: int | None = None
    split: bool = True
    ridge: float = 1e-10
    max_ridge_attempts: int = 8
    simplex_tol: float = 1e-6
    time_budget: float | None = None
    seed: int | None = None
    retry_unconverged: bool = True
    retry_tol: float = 1e-4

    def __post_init__(self) -> None:
        method = str(self.method).strip().lower().replace("-", "").replace("_", "")
        if method == "warpiii":
            method = "warp3"
        if method not in SUPPORTED_METHODS:
            supported = ", ".join(sorted(SUPPORTED_METHODS))
            raise SettingsError(f"Unknown method '{self.method}'. Supported: {supported}")
        object.__setattr__(self, "method", method)

        for name in ("tol", "retry_tol", "simplex_tol"):
            value = _as_float(name, getattr(self, name))
            if not math.isfinite(value) or value <= 0.0:
                raise SettingsError(f"{name} must be finite and > 0, got {value}")
            object.__setattr__(self, name, value)
        ridge = _as_float("ridge", self.ridge)
        if not math.isfinite(ridge) or ridge < 0.0:
            raise SettingsError(f"ridge must be finite and >= 0, got {ridge}")
        object.__setattr__(self, "ridge", ridge)

        maxiter = _as_int("maxiter", self.maxiter)
        if maxiter < 1:
            raise SettingsError(f"maxiter must be >= 1, got {maxiter}")
        object.__setattr__(self, "maxiter", maxiter)
        attempts = _as_int("max_ridge_attempts", self.max_ridge_attempts)
        if attempts < 0:
            raise SettingsError(f"max_ridge_attempts must be >= 0, got {attempts}")
        object.__setattr__(self, "max_ridge_attempts", attempts)

        if self.n_proposal is not None:
            n_proposal = _as_int("n_proposal", self.n_proposal)
            if n_proposal < 1:
                raise SettingsError(f"n_proposal must be >= 1, got {n_proposal}")
            object.__setattr__(self, "n_proposal", n_proposal)
        if self.time_budget is not None:
            budget = _as_float("time_budget", self.time_budget)
            if not budget > 0.0:
                raise SettingsError(f"time_budget must be > 0, got {budget}")
            object.__setattr__(self, "time_budget", budget)
        if self.seed is not None:
            object.__setattr__(self, "seed", _as_int("seed", self.seed))
        object.__setattr__(self, "split", _as_bool("split", self.split))
        object.__setattr__(
            self, "retry_unconverged", _as_bool("retry_unconverged", self.retry_unconverged)
        )

    def replace(self, **changes: Any) -> BridgeSettings:
        """Return a copy with ``changes`` applied (unknown keys rejected)."""
        unknown = set(changes) - {f.name for f in dataclasses.fields(self)}
        if unknown:
            raise SettingsError(f"Unknown settings: {', '.join(sorted(unknown))}")
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> dict[str, Any]:
        return {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> BridgeSettings:
        if not isinstance(data, dict):
            raise SettingsError(f"Settings must be a mapping, got {type(data).__name__}")
        return cls().replace(**data)


def resolve_settings(
    settings: BridgeSettings | dict[str, Any] | str | Path | None,
    **overrides: Any,
) -> BridgeSettings:
    """Merge a settings object, dict or YAML path with keyword overrides.

    Overrides that are ``None`` are ignored.
    """
    if settings is None:
        base = BridgeSettings()
    elif isinstance(settings, BridgeSettings):
        base = settings
    elif isinstance(settings, dict):
        base = BridgeSettings.from_dict(settings)
    elif isinstance(settings, (str, Path)):
        base = load_settings(settings)
    else:
        raise SettingsError(f"Unsupported settings type: {type(settings)!r}")
    changes = {k: v for k, v in overrides.items() if v is not None}
    return base.replace(**changes) if changes else base


def settings_from_yaml(yaml_str: str) -> BridgeSettings:
    """Parse settings from a YAML string."""
    try:
        data = yaml.safe_load(yaml_str)
    except yaml.YAMLError as e:
        raise SettingsError(f"Invalid YAML: {e}") from e
    if data is None:
        return BridgeSettings()
    if isinstance(data, dict) and "bridge_sampling" in data:
        data = data["bridge_sampling"] or {}
    return BridgeSettings.from_dict(data)


def settings_to_yaml(settings: BridgeSettings) -> str:
    return yaml.safe_dump(settings.to_dict(), sort_keys=False)


def load_settings(path: str | Path) -> BridgeSettings:
    """Load settings from a YAML file (optionally under a ``bridge_sampling`` key)."""
    path = Path(path)
    if not path.exists():
        raise SettingsError(f"Settings file not found: {path}")
    return settings_from_yaml(path.read_text())


def save_settings(settings: BridgeSettings, path: str | Path) -> None:
    Path(path).write_text(settings_to_yaml(settings))
