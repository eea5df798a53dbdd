"""Tests for Bayes factors and posterior model probabilities."""

from __future__ import annotations

import math

import numpy as np
import pytest
from scipy import integrate, stats

from bridgekit import (
    BayesFactor,
    InputError,
    ParameterSpec,
    PosteriorSample,
    PriorSpec,
    bayes_factor,
    bridge_sampler,
    build_log_posterior,
    post_prob,
)
from bridgekit.estimation import BridgeEstimate, ErrorMeasure

# ten difference scores with mean 0.8
SCORES = np.array([1.2, 0.4, 2.1, -0.3, 1.5, 0.9, 0.2, 1.8, -0.5, 0.7])
CAUCHY_SCALE = 1.0 / math.sqrt(2.0)


def _log_likelihood(theta, scores):
    delta = float(np.asarray(theta).reshape(-1)[0])
    return float(np.sum(-0.5 * (scores - delta) ** 2) - 0.5 * scores.shape[0] * math.log(2.0 * math.pi))


def _draw_delta_posterior(log_posterior, size, seed):
    """Exact inverse-CDF draws on a fine grid."""
    grid = np.linspace(-3.0, 4.0, 20001)
    log_dens = np.array([log_posterior(np.array([g]), SCORES) for g in grid])
    dens = np.exp(log_dens - log_dens.max())
    cdf = np.concatenate([[0.0], np.cumsum(0.5 * (dens[1:] + dens[:-1]) * np.diff(grid))])
    cdf /= cdf[-1]
    u = np.random.default_rng(seed).uniform(size=size)
    return np.interp(u, cdf, grid).reshape(-1, 1)


@pytest.fixture
def ttest_setup():
    log_posterior = build_log_posterior(_log_likelihood, [PriorSpec.cauchy(0.0, CAUCHY_SCALE)])
    logml_null = float(np.sum(stats.norm.logpdf(SCORES, 0.0, 1.0)))

    def integrand(delta):
        return math.exp(
            _log_likelihood(np.array([delta]), SCORES) - logml_null
        ) * stats.cauchy.pdf(delta, 0.0, CAUCHY_SCALE)

    reference_bf10, _ = integrate.quad(integrand, -np.inf, np.inf, limit=200)
    return log_posterior, logml_null, reference_bf10


def _estimate(logml, re2=None, label=""):
    empty = np.zeros(1)
    return BridgeEstimate(
        logml=logml,
        niter=1,
        converged=True,
        method="normal",
        n_posterior=1,
        n_proposal=1,
        n_fit=1,
        n_eff=1.0,
        tol=1e-10,
        l1=empty,
        l2=empty,
        q11=empty,
        q12=empty,
        q21=empty,
        q22=empty,
        label=label,
        error=None if re2 is None else ErrorMeasure.from_re2(re2),
    )


class TestBayesFactor:
    def test_symmetry(self):
        h1 = _estimate(-10.2, 1e-4, "H1")
        h0 = _estimate(-12.9, 4e-4, "H0")
        bf10 = bayes_factor(h1, h0)
        bf01 = bayes_factor(h0, h1)
        assert bf10.bf == pytest.approx(1.0 / bf01.bf, rel=1e-12)
        assert bf10.log_bf == pytest.approx(2.7)
        assert (bf10.numerator, bf10.denominator) == ("H1", "H0")
        assert bf10.inverse() == bf01

    def test_error_propagation(self):
        bf = bayes_factor(_estimate(0.0, 1e-4), _estimate(1.0, 3e-4))
        assert bf.re2 == pytest.approx(4e-4)
        assert bf.percentage == pytest.approx(2.0)

    def test_missing_error_gives_none(self):
        bf = bayes_factor(_estimate(0.0, 1e-4), -1.0, labels=("alt", "null"))
        assert bf.error is None
        assert bf.percentage is None
        assert bf.denominator == "null"
        assert bf.bf == pytest.approx(math.e)

    def test_plain_floats(self):
        bf = bayes_factor(-3.0, -5.0)
        assert isinstance(bf, BayesFactor)
        assert bf.log_bf == pytest.approx(2.0)
        assert "BF[model 1 : model 2]" in bf.summary()

    def test_non_finite_rejected(self):
        with pytest.raises(InputError, match="finite"):
            bayes_factor(-np.inf, 0.0)

    def test_one_sample_ttest_scenario(self, ttest_setup):
        log_posterior, logml_null, reference_bf10 = ttest_setup
        draws = _draw_delta_posterior(log_posterior, 20000, seed=2024)
        sample = PosteriorSample(draws, [ParameterSpec.unbounded("delta")])
        alt = bridge_sampler(
            sample, log_posterior, n_eff=sample.n_draws, data=SCORES, seed=7, label="H1"
        )
        bf10 = bayes_factor(alt, logml_null, labels=("H1", "H0"))
        assert bf10.bf > 1.0
        assert reference_bf10 > 1.0
        assert bf10.bf == pytest.approx(reference_bf10, rel=0.05)


class TestPostProb:
    def test_uniform_prior(self):
        probs = post_prob(_estimate(0.0, label="a"), _estimate(math.log(3.0), label="b"))
        assert list(probs.index) == ["a", "b"]
        np.testing.assert_allclose(probs.to_numpy(), [0.25, 0.75])

    def test_custom_prior_and_labels(self):
        probs = post_prob(0.0, 0.0, 0.0, prior_prob=[0.5, 0.25, 0.25], labels=["x", "y", "z"])
        assert probs["x"] == pytest.approx(0.5)
        assert probs.sum() == pytest.approx(1.0)

    def test_extreme_log_marginals(self):
        probs = post_prob(-1e5, -1e5 - 2.0)
        assert probs.iloc[0] == pytest.approx(1.0 / (1.0 + math.exp(-2.0)))

    def test_invalid_prior(self):
        with pytest.raises(InputError, match="sum to one"):
            post_prob(0.0, 0.0, prior_prob=[0.7, 0.7])

    def test_needs_two_models(self):
        with pytest.raises(InputError, match="at least two"):
            post_prob(0.0)
