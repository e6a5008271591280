import numpy as np
import pytest

from blogposts.modeling.bayes_mcmc import (
    GibbsLinearRegression,
    INTERCEPT_NAME,
    VARIANCE_NAME,
    compare_with_ols,
    convergence_diagnostics,
    effective_sample_size,
    gelman_rubin,
    geweke_z,
    monte_carlo_se,
    run_bayes_post,
    to_inference_data,
)


@pytest.fixture
def fitted(linear_df):
    sampler = GibbsLinearRegression(burnin=200, mcmc=2000, chains=2, seed=1)
    return sampler.fit(linear_df[["x1", "x2"]], linear_df["y"])


def test_gelman_rubin_mixed_and_stuck_chains():
    rng = np.random.default_rng(0)
    chains = rng.normal(size=(4, 2000))
    assert gelman_rubin(chains) < 1.01

    stuck = chains + np.array([[0.0], [0.0], [3.0], [3.0]])
    assert gelman_rubin(stuck) > 1.5
    assert np.isnan(gelman_rubin(chains[:1]))


def test_effective_sample_size():
    rng = np.random.default_rng(1)
    iid = rng.normal(size=4000)
    assert 0.6 * 4000 < effective_sample_size(iid) < 1.6 * 4000

    ar = np.empty(4000)
    ar[0] = 0.0
    for t in range(1, 4000):
        ar[t] = 0.9 * ar[t - 1] + rng.normal()
    assert effective_sample_size(ar) < 0.2 * 4000


def test_monte_carlo_se():
    draws = np.random.default_rng(2).normal(size=10000)
    assert 0.005 < monte_carlo_se(draws) < 0.02


def test_geweke_z():
    rng = np.random.default_rng(3)
    drifting = np.linspace(0, 10, 1000) + rng.normal(scale=0.1, size=1000)
    assert abs(geweke_z(drifting)) > 2

    with pytest.raises(ValueError):
        geweke_z(drifting, first=0.6, last=0.5)


def test_sampler_output_shape(fitted):
    assert fitted.samples_.shape == (2, 2000, 4)
    assert fitted.param_names_ == [INTERCEPT_NAME, "x1", "x2", VARIANCE_NAME]


def test_thinning_keeps_every_nth_draw(linear_df):
    sampler = GibbsLinearRegression(burnin=10, mcmc=100, thin=3, chains=1, seed=0)
    sampler.fit(linear_df[["x1"]].values, linear_df["y"].values)
    assert sampler.samples_.shape == (1, 34, 3)
    assert sampler.param_names_[1] == "x1"


def test_posterior_recovers_coefficients(fitted):
    summary = fitted.summary()

    assert summary.loc[INTERCEPT_NAME, "mean"] == pytest.approx(1.0, abs=0.15)
    assert summary.loc["x1", "mean"] == pytest.approx(2.0, abs=0.15)
    assert summary.loc["x2", "mean"] == pytest.approx(-0.5, abs=0.15)
    assert summary.loc[VARIANCE_NAME, "mean"] == pytest.approx(0.25, abs=0.1)
    assert (summary["rhat"] < 1.1).all()
    assert (summary["2.5%"] < summary["mean"]).all()
    assert (summary["mean"] < summary["97.5%"]).all()


def test_sampler_is_reproducible(linear_df):
    X, y = linear_df[["x1", "x2"]], linear_df["y"]
    a = GibbsLinearRegression(burnin=50, mcmc=200, chains=2, seed=7).fit(X, y)
    b = GibbsLinearRegression(burnin=50, mcmc=200, chains=2, seed=7).fit(X, y)
    c = GibbsLinearRegression(burnin=50, mcmc=200, chains=2, seed=8).fit(X, y)

    np.testing.assert_array_equal(a.samples_, b.samples_)
    assert not np.array_equal(a.samples_, c.samples_)


def test_informative_prior_dominates(linear_df):
    X, y = linear_df[["x1", "x2"]], linear_df["y"]
    sampler = GibbsLinearRegression(b0=[0.5, 1.0, 1.0], B0=1e6, burnin=100, mcmc=500,
                                    chains=2, seed=4).fit(X, y)
    means = sampler.summary()["mean"]
    np.testing.assert_allclose(means.iloc[:3].values, [0.5, 1.0, 1.0], atol=0.01)


def test_invalid_prior_shape(linear_df):
    sampler = GibbsLinearRegression(B0=np.eye(2), burnin=0, mcmc=10, chains=1)
    with pytest.raises(ValueError):
        sampler.fit(linear_df[["x1", "x2"]], linear_df["y"])


@pytest.mark.parametrize("kwargs", [
    {"mcmc": 0}, {"thin": 0}, {"chains": 0}, {"burnin": -1}, {"c0": 0}, {"d0": -1.0},
])
def test_invalid_sampler_arguments(kwargs):
    with pytest.raises(ValueError):
        GibbsLinearRegression(**kwargs)


def test_summary_requires_fit():
    with pytest.raises(ValueError):
        GibbsLinearRegression().summary()


def test_predict_interval(fitted, linear_df):
    X_new = linear_df[["x1", "x2"]].head(5)
    mean, lower, upper = fitted.predict(X_new, return_interval=True)

    assert mean.shape == (5,)
    assert (lower < mean).all() and (mean < upper).all()
    expected = 1.0 + 2.0 * X_new["x1"].values - 0.5 * X_new["x2"].values
    np.testing.assert_allclose(fitted.predict(X_new), expected, atol=0.3)


def test_compare_with_ols(fitted, linear_df):
    comparison = compare_with_ols(linear_df[["x1", "x2"]], linear_df["y"], fitted)

    assert list(comparison.index) == fitted.param_names_
    coefs = comparison.drop(index=VARIANCE_NAME)
    np.testing.assert_allclose(coefs["posterior_mean"], coefs["ols_estimate"], atol=0.05)


def test_convergence_diagnostics(fitted):
    diagnostics = convergence_diagnostics(fitted.samples_, fitted.param_names_)

    assert list(diagnostics.index) == fitted.param_names_
    assert {"rhat", "ess", "mcse", "geweke_max_abs_z", "converged"} <= set(diagnostics.columns)
    assert (diagnostics["rhat"] < 1.1).all()
    assert (diagnostics["ess"] > 100).all()


def test_run_bayes_post(linear_df, tmp_path):
    results = run_bayes_post(data=linear_df, response="y", output_dir=str(tmp_path),
                             burnin=100, mcmc=500, chains=2, seed=3)

    assert list(results["summary"].index) == [INTERCEPT_NAME, "x1", "x2", VARIANCE_NAME]
    assert (tmp_path / "reports" / "bayes_mcmc_report.md").exists()
    assert "## Convergence Diagnostics" in results["report"]
    assert len(results["plots"]) == 2


def test_run_bayes_post_missing_response(linear_df):
    with pytest.raises(ValueError):
        run_bayes_post(data=linear_df, response="target", make_plots=False)


def test_inference_data_layout(fitted):
    idata = fitted.to_inference_data()

    assert list(idata.posterior.data_vars) == fitted.param_names_
    assert idata.posterior.sizes["chain"] == 2
    assert idata.posterior.sizes["draw"] == 2000
    np.testing.assert_array_equal(idata.posterior["x1"].values, fitted.samples_[:, :, 1])

    standalone = to_inference_data(fitted.samples_, fitted.param_names_)
    assert list(standalone.posterior.data_vars) == fitted.param_names_


def test_single_chain_has_no_rhat(linear_df):
    sampler = GibbsLinearRegression(burnin=50, mcmc=300, chains=1, seed=2)
    sampler.fit(linear_df[["x1", "x2"]], linear_df["y"])
    diagnostics = convergence_diagnostics(sampler.samples_, sampler.param_names_)

    assert diagnostics["rhat"].isna().all()
    assert (diagnostics["ess"] > 0).all()
