"""Exception hierarchy for bridgekit."""

from __future__ import annotations


class BridgeKitError(Exception):
    """Base class for all bridgekit errors."""


class InputError(BridgeKitError, ValueError):
    """Raised when call inputs are missing, malformed or inconsistent."""


class InvalidParameterValue(InputError):
    """Raised when a draw lies outside the domain declared by its parameter spec."""

    def __init__(self, message: str, *, parameter: str | int | None = None, value: float | None = None):
        super().__init__(message)
        self.parameter = parameter
        self.value = value


class SettingsError(InputError):
    """Raised for invalid estimation settings."""


class DegenerateSample(BridgeKitError):
    """Raised when there are too few draws to fit a proposal density."""

    def __init__(self, message: str, *, n_draws: int, n_dims: int):
        super().__init__(message)
        self.n_draws = n_draws
        self.n_dims = n_dims


class SingularCovariance(BridgeKitError):
    """Raised when the proposal covariance stays singular after ridge correction."""

    def __init__(self, message: str, *, n_dims: int):
        super().__init__(message)
        self.n_dims = n_dims


class EstimationError(BridgeKitError):
    """Raised when a marginal likelihood cannot be computed."""


class NonConvergence(RuntimeWarning):
    """Warning issued when the iterative scheme exhausts its budget.

    The estimate is still returned, flagged with ``converged=False``.
    """
