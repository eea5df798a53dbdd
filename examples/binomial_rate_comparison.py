"""Bayes factor for two priors on a binomial success rate.

Run from repository root:
    python examples/binomial_rate_comparison.py
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy import special, stats

from bridgekit import ParameterSpec, PosteriorSample, bayes_factor, bridge_sampler, post_prob

N_TRIALS = 40
N_SUCCESS = 13


def make_model(a: float, b: float):
    def log_density(theta):
        p = np.atleast_2d(theta)[:, 0]
        return stats.binom.logpmf(N_SUCCESS, N_TRIALS, p) + stats.beta.logpdf(p, a, b)

    exact = (
        np.log(special.comb(N_TRIALS, N_SUCCESS))
        + special.betaln(a + N_SUCCESS, b + N_TRIALS - N_SUCCESS)
        - special.betaln(a, b)
    )
    posterior = stats.beta(a + N_SUCCESS, b + N_TRIALS - N_SUCCESS)
    return log_density, float(exact), posterior


def main() -> None:
    rng = np.random.default_rng(2024)
    estimates = []
    exact = {}
    for label, (a, b) in {"uniform": (1.0, 1.0), "fair coin": (50.0, 50.0)}.items():
        log_density, exact[label], posterior = make_model(a, b)
        frame = pd.DataFrame({"p": posterior.rvs(size=4000, random_state=rng)})
        sample = PosteriorSample.from_dataframe(frame, {"p": ParameterSpec.bounded(0.0, 1.0)})
        estimate = bridge_sampler(
            sample,
            log_density,
            n_eff=sample.n_draws,
            vectorized=True,
            seed=7,
            label=label,
        )
        print(estimate.summary())
        print(f"  Exact:           {exact[label]:.6f}")
        print()
        estimates.append(estimate)

    bf = bayes_factor(*estimates)
    print(bf.summary())
    print(f"exact BF = {np.exp(exact['uniform'] - exact['fair coin']):.6g}")
    print()
    print(post_prob(*estimates).to_string())


if __name__ == "__main__":
    np.set_printoptions(precision=6, suppress=True)
    main()
