"""Parameter transforms between native and real-line coordinates."""

from bridgekit.transforms.parameters import (
    ParameterTransform,
    TransformedSample,
    build_transform,
    circular_mean,
    validate_draws,
)

__all__ = [
    "ParameterTransform",
    "TransformedSample",
    "build_transform",
    "circular_mean",
    "validate_draws",
]
