"""Parameter declarations: kind and bounds for each sample column."""

from __future__ import annotations

import math
from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any

from bridgekit.exceptions import InputError

_KIND_ALIASES: dict[str, str] = {
    "unbounded": "unbounded",
    "real": "unbounded",
    "unconstrained": "unbounded",
    "positive": "positive",
    "lower": "positive",
    "lower_bounded": "positive",
    "bounded": "bounded",
    "interval": "bounded",
    "bounded_interval": "bounded",
    "double_bounded": "bounded",
    "simplex": "simplex",
    "simplex_member": "simplex",
    "circular": "circular",
    "angle": "circular",
}

SUPPORTED_KINDS = frozenset({"unbounded", "positive", "bounded", "simplex", "circular"})


def normalize_parameter_kind(kind: str) -> str:
    """Map kind aliases to canonical kind names."""
    normalized = kind.strip().lower().replace("-", "_")
    if normalized not in _KIND_ALIASES:
        supported = ", ".join(sorted(SUPPORTED_KINDS))
        raise InputError(f"Unknown parameter kind '{kind}'. Supported: {supported}")
    return _KIND_ALIASES[normalized]


@dataclass(frozen=True, slots=True)
class ParameterSpec:
    """Declared domain of one parameter (one sample column).

    Attributes:
        kind: One of "unbounded", "positive", "bounded", "simplex", "circular".
        lower: Lower bound. Offset of the log map for "positive".
        upper: Upper bound. Only used by "bounded".
        name: Optional parameter name, used in error messages.
        group: Simplex group label. All simplex members of a run share it.
    """

    kind: str
    lower: float = float("-inf")
    upper: float = float("inf")
    name: str = ""
    group: str | None = None

    def __post_init__(self) -> None:
        kind = normalize_parameter_kind(self.kind)
        lower = float(self.lower)
        upper = float(self.upper)

        if math.isnan(lower) or math.isnan(upper):
            raise InputError(f"Bounds for '{self.name or kind}' cannot be NaN")
        if kind == "positive":
            if not math.isfinite(lower):
                lower = 0.0
            upper = float("inf")
        elif kind == "bounded":
            if not (math.isfinite(lower) and math.isfinite(upper)):
                raise InputError(
                    f"Bounded parameter '{self.name}' needs finite bounds, got [{lower}, {upper}]"
                )
            if lower >= upper:
                raise InputError(
                    f"Invalid bounds for '{self.name}': lower={lower} >= upper={upper}"
                )

        group = self.group
        if kind == "simplex":
            group = "simplex" if group is None else str(group)
        elif group is not None:
            raise InputError(f"Only simplex parameters take a group, got kind '{kind}'")

        object.__setattr__(self, "kind", kind)
        object.__setattr__(self, "lower", lower)
        object.__setattr__(self, "upper", upper)
        object.__setattr__(self, "name", str(self.name).strip())
        object.__setattr__(self, "group", group)

    @classmethod
    def unbounded(cls, name: str = "") -> ParameterSpec:
        return cls("unbounded", name=name)

    @classmethod
    def positive(cls, name: str = "", lower: float = 0.0) -> ParameterSpec:
        return cls("positive", lower=lower, name=name)

    @classmethod
    def bounded(cls, lower: float, upper: float, name: str = "") -> ParameterSpec:
        return cls("bounded", lower=lower, upper=upper, name=name)

    @classmethod
    def simplex(cls, name: str = "", group: str = "simplex") -> ParameterSpec:
        return cls("simplex", name=name, group=group)

    @classmethod
    def circular(cls, name: str = "") -> ParameterSpec:
        return cls("circular", lower=0.0, upper=2.0 * math.pi, name=name)

    @property
    def label(self) -> str:
        return self.name or self.kind

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {
            "kind": self.kind,
            "lower": self.lower,
            "upper": self.upper,
        }
        if self.name:
            out["name"] = self.name
        if self.group is not None:
            out["group"] = self.group
        return out

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> ParameterSpec:
        kind = data.get("kind", data.get("type"))
        if kind is None:
            raise InputError("Parameter dict must include 'kind'")
        return cls(
            str(kind),
            lower=float(data.get("lower", data.get("lb", float("-inf")))),
            upper=float(data.get("upper", data.get("ub", float("inf")))),
            name=str(data.get("name", "")),
            group=data.get("group"),
        )


def parse_parameter_spec(spec: ParameterSpec | dict[str, Any] | str) -> ParameterSpec:
    """Parse a parameter declaration from object, dict or kind string."""
    if isinstance(spec, ParameterSpec):
        return spec
    if isinstance(spec, dict):
        return ParameterSpec.from_dict(spec)
    if isinstance(spec, str):
        kind = normalize_parameter_kind(spec)
        if kind == "bounded":
            raise InputError("Bounded parameters need explicit bounds; use a dict or ParameterSpec")
        if kind == "circular":
            return ParameterSpec.circular()
        return ParameterSpec(kind)
    raise TypeError(f"Unsupported parameter specification type: {type(spec)!r}")


def parse_parameter_specs(
    specs: Sequence[ParameterSpec | dict[str, Any] | str],
    names: Sequence[str] | None = None,
) -> list[ParameterSpec]:
    """Parse a list of declarations, filling in missing names from ``names``."""
    parsed = [parse_parameter_spec(s) for s in specs]
    if names is None:
        return parsed
    if len(names) != len(parsed):
        raise InputError(f"Got {len(names)} names for {len(parsed)} parameter specs")
    out = []
    for spec, name in zip(parsed, names, strict=True):
        if not spec.name:
            spec = ParameterSpec(spec.kind, spec.lower, spec.upper, name=str(name), group=spec.group)
        out.append(spec)
    return out


def infer_parameter_specs(
    lower: Sequence[float],
    upper: Sequence[float],
    kinds: Sequence[str | None] | None = None,
    names: Sequence[str] | None = None,
) -> list[ParameterSpec]:
    """Derive parameter specs from bound vectors.

    Entries of ``kinds`` that are ``None`` (or a missing ``kinds``) are
    inferred from the bounds: both infinite gives "unbounded", a finite lower
    bound only gives "positive" (offset by the bound), both finite gives
    "bounded". An explicit kind always wins.
    """
    if len(lower) != len(upper):
        raise InputError(f"lower/upper length mismatch: {len(lower)} != {len(upper)}")
    n = len(lower)
    kinds = list(kinds) if kinds is not None else [None] * n
    names = list(names) if names is not None else [""] * n
    if len(kinds) != n or len(names) != n:
        raise InputError("kinds and names must match the number of bounds")

    specs: list[ParameterSpec] = []
    for lb, ub, kind, name in zip(lower, upper, kinds, names, strict=True):
        lb = float(lb)
        ub = float(ub)
        if kind is None:
            if math.isfinite(lb) and math.isfinite(ub):
                kind = "bounded"
            elif math.isfinite(lb):
                kind = "positive"
            elif math.isfinite(ub):
                raise InputError(
                    f"Upper-bounded-only parameter '{name}' is not supported; "
                    "negate the column and declare it positive"
                )
            else:
                kind = "unbounded"
        specs.append(ParameterSpec(kind, lower=lb, upper=ub, name=name))
    return specs
