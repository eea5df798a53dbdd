"""bridgekit: marginal likelihoods and Bayes factors by bridge sampling.

Typical use::

    from bridgekit import ParameterSpec, PosteriorSample, bridge_sampler, bayes_factor

    sample = PosteriorSample(draws, [ParameterSpec.unbounded("mu"), ParameterSpec.positive("sigma")])
    h1 = bridge_sampler(sample, log_posterior, n_eff=sample.n_draws, seed=1, label="H1")
    print(bayes_factor(h1, h0).summary())
"""

from bridgekit.estimation import (
    BayesFactor,
    BridgeEstimate,
    ErrorMeasure,
    ProposalModel,
    bayes_factor,
    bridge_sampler,
    build_log_posterior,
    effective_sample_size,
    error_measures,
    fit_proposal,
    post_prob,
    run_iterative_scheme,
    weight_effective_sample_size,
)
from bridgekit.exceptions import (
    BridgeKitError,
    DegenerateSample,
    EstimationError,
    InputError,
    InvalidParameterValue,
    NonConvergence,
    SettingsError,
    SingularCovariance,
)
from bridgekit.io import BridgeSettings, load_settings, save_settings
from bridgekit.model import ParameterSpec, PosteriorSample, PriorSpec
from bridgekit.transforms import ParameterTransform, TransformedSample, build_transform

__version__ = "0.1.0"

__all__ = [
    "__version__",
    "BayesFactor",
    "BridgeEstimate",
    "BridgeKitError",
    "BridgeSettings",
    "DegenerateSample",
    "ErrorMeasure",
    "EstimationError",
    "InputError",
    "InvalidParameterValue",
    "NonConvergence",
    "ParameterSpec",
    "ParameterTransform",
    "PosteriorSample",
    "PriorSpec",
    "ProposalModel",
    "SettingsError",
    "SingularCovariance",
    "TransformedSample",
    "bayes_factor",
    "bridge_sampler",
    "build_log_posterior",
    "build_transform",
    "effective_sample_size",
    "error_measures",
    "fit_proposal",
    "load_settings",
    "post_prob",
    "run_iterative_scheme",
    "save_settings",
    "weight_effective_sample_size",
]
