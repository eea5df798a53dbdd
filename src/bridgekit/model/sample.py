"""Posterior sample container."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

import numpy as np
from numpy.typing import NDArray

from bridgekit.exceptions import InputError
from bridgekit.model.parameters import ParameterSpec, parse_parameter_specs

if TYPE_CHECKING:
    import pandas as pd


@dataclass(frozen=True, init=False, eq=False)
class PosteriorSample:
    """Fixed set of posterior draws in native coordinates.

    Attributes:
        draws: Read-only array of shape ``(n_draws, n_params)``.
        specs: One ``ParameterSpec`` per column.
        n_eff: Effective sample size supplied by the sampler, if known.
    """

    draws: NDArray[np.float64]
    specs: tuple[ParameterSpec, ...]
    n_eff: float | None = None
    names: tuple[str, ...] = field(default=())

    def __init__(
        self,
        draws: Any,
        specs: Sequence[ParameterSpec | dict[str, Any] | str],
        *,
        names: Sequence[str] | None = None,
        n_eff: float | None = None,
    ):
        arr = np.array(draws, dtype=np.float64)
        if arr.ndim == 1:
            arr = arr.reshape(-1, 1)
        if arr.ndim != 2 or arr.shape[0] == 0:
            raise InputError(
                f"draws must be a non-empty 2D array [n_draws, n_params], got shape {arr.shape}"
            )
        arr.setflags(write=False)

        parsed = parse_parameter_specs(specs, names)
        if len(parsed) != arr.shape[1]:
            raise InputError(
                f"Got {len(parsed)} parameter specs for {arr.shape[1]} sample columns"
            )
        resolved_names = tuple(
            spec.name or f"theta[{i}]" for i, spec in enumerate(parsed)
        )
        if len(set(resolved_names)) != len(resolved_names):
            raise InputError("Parameter names must be unique")

        if n_eff is not None:
            n_eff = float(n_eff)
            if not math.isfinite(n_eff) or n_eff <= 0.0:
                raise InputError(f"n_eff must be finite and > 0, got {n_eff}")

        object.__setattr__(self, "draws", arr)
        object.__setattr__(self, "specs", tuple(parsed))
        object.__setattr__(self, "n_eff", n_eff)
        object.__setattr__(self, "names", resolved_names)

    @classmethod
    def from_dataframe(
        cls,
        frame: pd.DataFrame,
        specs: Sequence[ParameterSpec | dict[str, Any] | str] | dict[str, Any],
        *,
        n_eff: float | None = None,
    ) -> PosteriorSample:
        """Build a sample from a DataFrame; ``specs`` may be keyed by column."""
        columns = [str(c) for c in frame.columns]
        if isinstance(specs, dict):
            missing = [c for c in columns if c not in specs]
            if missing:
                raise InputError(f"No parameter spec for columns: {', '.join(missing)}")
            specs = [specs[c] for c in columns]
        return cls(frame.to_numpy(dtype=np.float64), specs, names=columns, n_eff=n_eff)

    @property
    def n_draws(self) -> int:
        return int(self.draws.shape[0])

    @property
    def n_params(self) -> int:
        return int(self.draws.shape[1])

    def split(self) -> tuple[NDArray[np.float64], NDArray[np.float64]]:
        """Return (first half, second half) of the draws."""
        half = self.n_draws // 2
        return self.draws[:half], self.draws[half:]

    def to_dataframe(self) -> pd.DataFrame:
        import pandas as pd

        return pd.DataFrame(np.array(self.draws), columns=list(self.names))
