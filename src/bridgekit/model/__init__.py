"""Model-side inputs: parameter declarations, posterior samples, priors."""

from bridgekit.model.parameters import (
    ParameterSpec,
    infer_parameter_specs,
    normalize_parameter_kind,
    parse_parameter_spec,
    parse_parameter_specs,
)
from bridgekit.model.priors import PriorSpec, parse_prior_spec
from bridgekit.model.sample import PosteriorSample

__all__ = [
    "ParameterSpec",
    "PosteriorSample",
    "PriorSpec",
    "infer_parameter_specs",
    "normalize_parameter_kind",
    "parse_parameter_spec",
    "parse_parameter_specs",
    "parse_prior_spec",
]
