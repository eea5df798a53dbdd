"""Pytest configuration and shared fixtures.

Each model fixture returns ``(log_density, true_logml, draw_posterior)``
where ``log_density`` is vectorized over rows of native draws and
``draw_posterior(n, seed)`` returns i.i.d. exact posterior draws.
"""

from __future__ import annotations

import math

import numpy as np
import pytest
from scipy import special, stats


@pytest.fixture
def normal_normal_model():
    """y_i ~ N(mu, 1), mu ~ N(0, 2^2)."""
    y = np.random.default_rng(7).normal(0.6, 1.0, size=20)
    n = y.shape[0]
    prior_mean, prior_sd = 0.0, 2.0

    def log_density(theta):
        mu = np.atleast_2d(theta)[:, 0]
        loglik = stats.norm.logpdf(y[None, :], loc=mu[:, None], scale=1.0).sum(axis=1)
        return loglik + stats.norm.logpdf(mu, prior_mean, prior_sd)

    cov = np.eye(n) + prior_sd**2 * np.ones((n, n))
    true_logml = float(stats.multivariate_normal.logpdf(y, mean=np.full(n, prior_mean), cov=cov))

    post_var = 1.0 / (1.0 / prior_sd**2 + n)
    post_mean = post_var * (prior_mean / prior_sd**2 + y.sum())

    def draw_posterior(size, seed):
        rng = np.random.default_rng(seed)
        return rng.normal(post_mean, math.sqrt(post_var), size=(size, 1))

    return log_density, true_logml, draw_posterior


@pytest.fixture
def normal_inverse_gamma_model():
    """y_i ~ N(mu, sigma^2), mu | sigma ~ N(m0, sigma^2/k0), sigma^2 ~ InvGamma(a0, b0).

    Parameterised by (mu, sigma) with sigma > 0.
    """
    y = np.random.default_rng(11).normal(1.5, 0.8, size=30)
    n = y.shape[0]
    m0, k0, a0, b0 = 0.0, 0.5, 2.0, 1.0

    def log_density(theta):
        theta = np.atleast_2d(theta)
        mu, sigma = theta[:, 0], theta[:, 1]
        loglik = stats.norm.logpdf(y[None, :], loc=mu[:, None], scale=sigma[:, None]).sum(axis=1)
        log_prior_mu = stats.norm.logpdf(mu, m0, sigma / math.sqrt(k0))
        # density of sigma from the inverse gamma density of sigma^2
        log_prior_sigma = stats.invgamma.logpdf(sigma**2, a0, scale=b0) + np.log(2.0 * sigma)
        return loglik + log_prior_mu + log_prior_sigma

    ybar = float(y.mean())
    kn = k0 + n
    an = a0 + 0.5 * n
    bn = b0 + 0.5 * float(np.sum((y - ybar) ** 2)) + k0 * n * (ybar - m0) ** 2 / (2.0 * kn)
    mn = (k0 * m0 + n * ybar) / kn
    true_logml = (
        special.gammaln(an)
        - special.gammaln(a0)
        + a0 * math.log(b0)
        - an * math.log(bn)
        + 0.5 * (math.log(k0) - math.log(kn))
        - 0.5 * n * math.log(2.0 * math.pi)
    )

    def draw_posterior(size, seed):
        rng = np.random.default_rng(seed)
        sigma2 = 1.0 / rng.gamma(an, 1.0 / bn, size=size)
        mu = rng.normal(mn, np.sqrt(sigma2 / kn))
        return np.column_stack([mu, np.sqrt(sigma2)])

    return log_density, float(true_logml), draw_posterior


@pytest.fixture
def beta_binomial_model():
    """k ~ Binomial(n, p), p ~ Beta(2, 3)."""
    n, k = 40, 13
    a, b = 2.0, 3.0

    def log_density(theta):
        p = np.atleast_2d(theta)[:, 0]
        return stats.binom.logpmf(k, n, p) + stats.beta.logpdf(p, a, b)

    true_logml = float(
        math.log(math.comb(n, k)) + special.betaln(a + k, b + n - k) - special.betaln(a, b)
    )

    def draw_posterior(size, seed):
        rng = np.random.default_rng(seed)
        return rng.beta(a + k, b + n - k, size=(size, 1))

    return log_density, true_logml, draw_posterior


@pytest.fixture
def dirichlet_multinomial_model():
    """counts ~ Multinomial(p), p ~ Dirichlet(alpha) on the 3-simplex."""
    counts = np.array([12.0, 5.0, 8.0])
    alpha = np.array([1.5, 1.0, 2.0])
    total = counts.sum()
    log_coef = special.gammaln(total + 1.0) - special.gammaln(counts + 1.0).sum()

    def log_density(theta):
        p = np.atleast_2d(theta)
        log_prior = (
            special.gammaln(alpha.sum())
            - special.gammaln(alpha).sum()
            + ((alpha - 1.0) * np.log(p)).sum(axis=1)
        )
        return log_coef + (counts * np.log(p)).sum(axis=1) + log_prior

    true_logml = float(
        log_coef
        + special.gammaln(alpha.sum())
        - special.gammaln(alpha.sum() + total)
        + np.sum(special.gammaln(alpha + counts) - special.gammaln(alpha))
    )

    def draw_posterior(size, seed):
        rng = np.random.default_rng(seed)
        return rng.dirichlet(alpha + counts, size=size)

    return log_density, true_logml, draw_posterior


def wrap_angles(values):
    """Map angles into [0, 2*pi)."""
    out = np.mod(values, 2.0 * math.pi)
    out[out >= 2.0 * math.pi] = 0.0
    return out


@pytest.fixture
def von_mises_model():
    """Unnormalised density exp(kappa cos(theta - mu)) with mass across the wrap point."""
    mu, kappa = 0.2, 3.0

    def log_density(theta):
        angle = np.atleast_2d(theta)[:, 0]
        return kappa * np.cos(angle - mu)

    true_logml = float(math.log(2.0 * math.pi) + math.log(special.i0e(kappa)) + kappa)

    def draw_posterior(size, seed):
        rng = np.random.default_rng(seed)
        return wrap_angles(rng.vonmises(mu, kappa, size=size)).reshape(-1, 1)

    return log_density, true_logml, draw_posterior
