"""Estimation: proposal fitting, bridge sampling, error measures, Bayes factors."""

from bridgekit.estimation.bayes_factor import BayesFactor, bayes_factor, post_prob
from bridgekit.estimation.bridge import (
    BridgeEstimate,
    IterationResult,
    bridge_sampler,
    run_iterative_scheme,
)
from bridgekit.estimation.density import (
    build_log_posterior,
    build_log_prior_evaluator,
    evaluate_log_density,
)
from bridgekit.estimation.diagnostics import effective_sample_size
from bridgekit.estimation.error import (
    ErrorMeasure,
    error_measures,
    posterior_bridge_terms,
    relative_mse,
    weight_effective_sample_size,
)
from bridgekit.estimation.proposal import ProposalModel, fit_proposal

__all__ = [
    "BayesFactor",
    "BridgeEstimate",
    "ErrorMeasure",
    "IterationResult",
    "ProposalModel",
    "bayes_factor",
    "bridge_sampler",
    "build_log_posterior",
    "build_log_prior_evaluator",
    "effective_sample_size",
    "error_measures",
    "evaluate_log_density",
    "fit_proposal",
    "post_prob",
    "posterior_bridge_terms",
    "relative_mse",
    "run_iterative_scheme",
    "weight_effective_sample_size",
]
