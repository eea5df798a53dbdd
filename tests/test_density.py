"""Tests for log-density evaluation and prior composition."""

from __future__ import annotations

import logging
import math
from concurrent.futures import ThreadPoolExecutor

import numpy as np
import pytest
from scipy import stats

from bridgekit import BridgeKitError, EstimationError, InputError, PriorSpec, build_log_posterior
from bridgekit.estimation import build_log_prior_evaluator, evaluate_log_density
from bridgekit.model.priors import parse_prior_spec


def _quadratic(theta):
    theta = np.asarray(theta)
    return -0.5 * float(theta @ theta)


class TestEvaluate:
    def test_per_draw_and_vectorized_agree(self):
        draws = np.random.default_rng(1).normal(size=(50, 3))
        per_draw = evaluate_log_density(_quadratic, draws)
        vectorized = evaluate_log_density(
            lambda x: -0.5 * np.sum(x * x, axis=1), draws, vectorized=True
        )
        np.testing.assert_allclose(per_draw, vectorized)

    def test_pool_matches_serial(self):
        draws = np.random.default_rng(2).normal(size=(101, 2))
        serial = evaluate_log_density(_quadratic, draws)
        with ThreadPoolExecutor(max_workers=3) as pool:
            parallel = evaluate_log_density(_quadratic, draws, pool=pool, n_chunks=7)
        np.testing.assert_array_equal(serial, parallel)

    def test_data_payload_passed_through(self):
        seen = []

        def log_density(theta, data):
            seen.append(data)
            return float(theta[0]) * data["scale"]

        values = evaluate_log_density(log_density, np.array([[1.0], [2.0]]), data={"scale": 3.0})
        np.testing.assert_allclose(values, [3.0, 6.0])
        assert all(d == {"scale": 3.0} for d in seen)

    def test_nan_becomes_minus_inf(self, caplog):
        def log_density(theta):
            return float("nan") if theta[0] < 0.0 else 0.0

        with caplog.at_level(logging.WARNING, logger="bridgekit"):
            values = evaluate_log_density(log_density, np.array([[-1.0], [1.0]]))
        assert values[0] == -np.inf
        assert values[1] == 0.0
        assert "NaN for 1 of 2 draws" in caplog.text

    def test_vectorized_input_not_modified(self):
        returned = np.array([np.nan, 1.0])
        values = evaluate_log_density(lambda x: returned, np.zeros((2, 1)), vectorized=True)
        assert values[0] == -np.inf
        assert np.isnan(returned[0])

    def test_plus_inf_raises(self):
        with pytest.raises(EstimationError, match=r"\+inf"):
            evaluate_log_density(lambda x: float("inf"), np.zeros((3, 1)))

    def test_vectorized_length_mismatch(self):
        with pytest.raises(EstimationError, match="returned 1 values for 4 draws"):
            evaluate_log_density(lambda x: np.zeros(1), np.zeros((4, 2)), vectorized=True)


class TestPriors:
    @pytest.mark.parametrize(
        ("prior", "x", "reference"),
        [
            (PriorSpec.normal(0.5, 2.0), 1.3, stats.norm(0.5, 2.0)),
            (PriorSpec.cauchy(0.0, 0.707), -0.4, stats.cauchy(0.0, 0.707)),
            (PriorSpec.beta(0.3, 0.1), 0.25, stats.beta(6.0, 14.0)),
            (PriorSpec.gamma(2.0, 0.5), 1.7, stats.gamma(16.0, scale=0.125)),
            (PriorSpec.inv_gamma(1.0, 0.5), 0.8, stats.invgamma(6.0, scale=5.0)),
            (PriorSpec.uniform(-1.0, 3.0), 0.2, stats.uniform(-1.0, 4.0)),
        ],
    )
    def test_logpdf_matches_scipy(self, prior, x, reference):
        assert prior.logpdf(x) == pytest.approx(reference.logpdf(x), rel=1e-10)

    def test_outside_support(self):
        assert PriorSpec.gamma(1.0, 1.0).logpdf(-0.1) == -np.inf
        assert PriorSpec.uniform(0.0, 1.0).logpdf(1.5) == -np.inf
        assert PriorSpec.normal(0.0, 1.0).logpdf(float("inf")) == -np.inf

    def test_aliases_and_dict_round_trip(self):
        prior = parse_prior_spec("gaussian", loc=1.0, scale=2.0)
        assert prior.distribution == "normal_pdf"
        assert PriorSpec.from_dict(prior.to_dict()) == prior
        assert parse_prior_spec({"dist": "beta", "mean": 0.5, "std": 0.2}) == PriorSpec.beta(0.5, 0.2)

    @pytest.mark.parametrize(
        "args",
        [("normal", 0.0, -1.0), ("beta", 1.2, 0.1), ("beta", 0.5, 0.6), ("uniform", 1.0, 0.0)],
    )
    def test_invalid_priors(self, args):
        with pytest.raises(ValueError):
            PriorSpec(*args)

    def test_unknown_distribution(self):
        with pytest.raises(InputError, match="Unknown prior distribution"):
            PriorSpec("laplace", 0.0, 1.0)

    @pytest.mark.parametrize(
        "build",
        [
            lambda: PriorSpec.cauchy(0.0, -1.0),
            lambda: PriorSpec.from_dict({"loc": 0.0, "scale": 1.0}),
            lambda: parse_prior_spec(None, loc=0.0),
            lambda: parse_prior_spec("normal", loc=0.0),
        ],
    )
    def test_bad_priors_are_package_errors(self, build):
        with pytest.raises(BridgeKitError):
            build()


class TestLogPosterior:
    def test_sum_of_independent_priors(self):
        log_prior = build_log_prior_evaluator([PriorSpec.normal(0.0, 1.0), None])
        expected = stats.norm.logpdf(0.3)
        assert log_prior(np.array([0.3, 100.0])) == pytest.approx(expected)
        with pytest.raises(InputError, match="theta length"):
            log_prior(np.array([0.3]))

    def test_likelihood_plus_weighted_prior(self):
        def log_likelihood(theta, y):
            return float(np.sum(stats.norm.logpdf(y, theta[0], 1.0)))

        y = np.array([0.1, -0.4, 0.8])
        theta = np.array([0.2])
        posterior = build_log_posterior(log_likelihood, [PriorSpec.normal(0.0, 2.0)])
        tempered = build_log_posterior(log_likelihood, [PriorSpec.normal(0.0, 2.0)], prior_weight=0.5)
        ll = log_likelihood(theta, y)
        lp = stats.norm.logpdf(0.2, 0.0, 2.0)
        assert posterior(theta, y) == pytest.approx(ll + lp)
        assert tempered(theta, y) == pytest.approx(ll + 0.5 * lp)

    def test_likelihood_skipped_outside_prior_support(self):
        calls = []

        def log_likelihood(theta):
            calls.append(theta)
            return 0.0

        posterior = build_log_posterior(log_likelihood, lambda theta: -math.inf)
        assert posterior(np.array([1.0])) == -np.inf
        assert calls == []

    def test_invalid_prior_weight(self):
        with pytest.raises(InputError, match="prior_weight"):
            build_log_posterior(lambda theta: 0.0, [None], prior_weight=0.0)
