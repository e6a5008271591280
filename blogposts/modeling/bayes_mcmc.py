"""
Bayesian Linear Regression via Gibbs Sampling
=============================================
Markov Chain Monte Carlo for the normal linear model

    y = X b + e,   e ~ N(0, s2 I)

with a multivariate normal prior on b and an inverse-gamma prior on s2:

    b  ~ N(b0, B0^-1)            (B0 is a prior precision)
    s2 ~ InvGamma(c0 / 2, d0 / 2)

Both full conditionals are available in closed form, so each sweep draws

    b  | s2, y ~ N(V (B0 b0 + X'y / s2), V),   V = (B0 + X'X / s2)^-1
    s2 | b, y  ~ InvGamma((c0 + n) / 2, (d0 + SSR) / 2)

This module provides:
- A multi-chain Gibbs sampler with burn-in and thinning
- Posterior summaries (mean, sd, naive and time-series SE, quantiles)
- Convergence diagnostics through ArviZ (rank-normalised R-hat, bulk
  effective sample size, Monte Carlo standard error) plus Geweke z-scores
- A comparison with the frequentist OLS fit

Author: Analysis Posts Team
"""
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

import arviz as az
import numpy as np
import pandas as pd
import statsmodels.api as sm

from ..config import (
    LOGGING_CONFIG, MCMC_CONFIG, REPORTS_DIR, PLOTS_DIR, get_raw_data_path
)
from ..data_pipeline.preprocess import DataPipeline, SchemaValidator, drop_missing

logging.basicConfig(
    level=LOGGING_CONFIG.log_level,
    format=LOGGING_CONFIG.log_format
)
logger = logging.getLogger(__name__)

INTERCEPT_NAME = "(Intercept)"
VARIANCE_NAME = "sigma2"


# =============================================================================
# DIAGNOSTICS
# =============================================================================
def to_inference_data(samples: np.ndarray, param_names: List[str]) -> az.InferenceData:
    """
    Wrap kept draws as an ArviZ InferenceData posterior group.

    Args:
        samples: Array of shape (chains, draws, params)
        param_names: Labels for the last axis
    """
    return az.from_dict(posterior={
        name: samples[:, :, j] for j, name in enumerate(param_names)
    })


def gelman_rubin(chains: np.ndarray) -> float:
    """
    Rank-normalised potential scale reduction factor (R-hat) of one parameter.

    Args:
        chains: Array of shape (n_chains, n_draws)

    Returns:
        R-hat; NaN when fewer than two chains are given
    """
    chains = np.asarray(chains, dtype=float)
    m, n = chains.shape
    if m < 2 or n < 4:
        return float('nan')
    return float(az.rhat(chains))


def effective_sample_size(chains: np.ndarray) -> float:
    """
    Bulk effective number of independent draws of one parameter.

    Args:
        chains: Array of shape (n_chains, n_draws) or (n_draws,)
    """
    x = np.atleast_2d(np.asarray(chains, dtype=float))
    if x.shape[1] < 4:
        return float(x.size)
    return float(az.ess(x, method='bulk'))


def monte_carlo_se(chains: np.ndarray) -> float:
    """
    Monte Carlo standard error of the posterior mean.

    Args:
        chains: Array of shape (n_chains, n_draws) or (n_draws,)
    """
    x = np.atleast_2d(np.asarray(chains, dtype=float))
    if x.shape[1] < 4:
        return float('nan')
    return float(az.mcse(x, method='mean'))


def geweke_z(draws: np.ndarray, first: float = 0.1, last: float = 0.5) -> float:
    """
    Geweke convergence z-score of one chain.

    Compares the mean of the first `first` fraction of the chain with the
    mean of the last `last` fraction; |z| well above 2 hints at drift.
    """
    if first <= 0 or last <= 0 or first + last > 1:
        raise ValueError("first and last must be positive with first + last <= 1")

    draws = np.asarray(draws, dtype=float).ravel()
    n = len(draws)
    a = draws[:int(first * n)]
    b = draws[int((1 - last) * n):]
    if len(a) < 4 or len(b) < 4:
        return float('nan')

    var_a = a.var(ddof=1) / effective_sample_size(a)
    var_b = b.var(ddof=1) / effective_sample_size(b)
    if var_a + var_b == 0:
        return 0.0
    return float((a.mean() - b.mean()) / np.sqrt(var_a + var_b))


def convergence_diagnostics(
    samples: np.ndarray,
    param_names: List[str],
    rhat_threshold: Optional[float] = None,
    geweke_threshold: Optional[float] = None
) -> pd.DataFrame:
    """
    Per-parameter convergence table.

    Args:
        samples: Array of shape (chains, draws, params)
        param_names: Parameter labels

    Returns:
        DataFrame with rhat, ess, mcse, the largest |Geweke z| over chains
        and a converged flag
    """
    rhat_threshold = rhat_threshold or MCMC_CONFIG.rhat_threshold
    geweke_threshold = geweke_threshold or MCMC_CONFIG.geweke_threshold

    idata = to_inference_data(samples, param_names)
    rhat = az.rhat(idata)
    ess = az.ess(idata, method='bulk')
    mcse = az.mcse(idata, method='mean')
    multi_chain = samples.shape[0] > 1

    rows = []
    for j, name in enumerate(param_names):
        r = float(rhat[name]) if multi_chain else float('nan')
        geweke = np.nanmax(np.abs([geweke_z(chain) for chain in samples[:, :, j]]))
        rows.append({
            'parameter': name,
            'rhat': r,
            'ess': float(ess[name]),
            'mcse': float(mcse[name]),
            'geweke_max_abs_z': float(geweke),
            'converged': bool(
                (np.isnan(r) or r < rhat_threshold)
                and not geweke > geweke_threshold
            ),
        })
    return pd.DataFrame(rows).set_index('parameter')


# =============================================================================
# SAMPLER
# =============================================================================
class GibbsLinearRegression:
    """
    Gibbs sampler for Bayesian linear regression.

    Attributes:
        samples_: Kept draws of shape (chains, draws, params); the last
            parameter is the error variance
        param_names_: Labels for the last axis of samples_
    """

    def __init__(
        self,
        b0: Union[float, np.ndarray, None] = None,
        B0: Union[float, np.ndarray, None] = None,
        c0: Optional[float] = None,
        d0: Optional[float] = None,
        burnin: Optional[int] = None,
        mcmc: Optional[int] = None,
        thin: Optional[int] = None,
        chains: Optional[int] = None,
        seed: Optional[int] = None
    ):
        config = MCMC_CONFIG
        self.b0 = config.b0 if b0 is None else b0
        self.B0 = config.B0 if B0 is None else B0
        self.c0 = config.c0 if c0 is None else c0
        self.d0 = config.d0 if d0 is None else d0
        self.burnin = config.burnin if burnin is None else burnin
        self.mcmc = config.mcmc if mcmc is None else mcmc
        self.thin = config.thin if thin is None else thin
        self.chains = config.chains if chains is None else chains
        self.seed = config.seed if seed is None else seed

        if self.burnin < 0:
            raise ValueError("burnin must be >= 0")
        if self.mcmc <= 0 or self.thin <= 0 or self.chains <= 0:
            raise ValueError("mcmc, thin and chains must be positive")
        if self.c0 <= 0 or self.d0 <= 0:
            raise ValueError("c0 and d0 must be positive")

        self.samples_ = None
        self.param_names_ = None

    def _prior(self, k: int) -> Tuple[np.ndarray, np.ndarray]:
        b0 = np.asarray(self.b0, dtype=float)
        b0 = np.full(k, float(b0)) if b0.ndim == 0 else b0.reshape(k)

        B0 = np.asarray(self.B0, dtype=float)
        if B0.ndim == 0:
            B0 = float(B0) * np.eye(k)
        elif B0.ndim == 1:
            B0 = np.diag(B0.reshape(k))
        elif B0.shape != (k, k):
            raise ValueError(f"B0 must be a scalar, length-{k} vector or {k}x{k} matrix")
        return b0, B0

    def fit(
        self,
        X: Union[pd.DataFrame, np.ndarray],
        y: Union[pd.Series, np.ndarray],
        feature_names: Optional[List[str]] = None
    ) -> 'GibbsLinearRegression':
        """
        Run the sampler.

        An intercept column is prepended to X.
        """
        if feature_names is None:
            feature_names = (list(X.columns) if isinstance(X, pd.DataFrame)
                             else [f"x{i + 1}" for i in range(np.asarray(X).shape[1])])

        X = np.asarray(X, dtype=float)
        y = np.asarray(y, dtype=float).ravel()
        if X.ndim != 2 or len(X) != len(y):
            raise ValueError("X must be 2-D with one row per observation in y")

        X = np.column_stack([np.ones(len(X)), X])
        n, k = X.shape
        b0, B0 = self._prior(k)
        B0b0 = B0 @ b0
        XtX = X.T @ X
        Xty = X.T @ y

        beta_ols, *_ = np.linalg.lstsq(X, y, rcond=None)
        resid = y - X @ beta_ols
        s2_ols = max(resid @ resid / max(n - k, 1), 1e-8)

        n_keep = (self.mcmc + self.thin - 1) // self.thin
        samples = np.empty((self.chains, n_keep, k + 1))
        rng = np.random.default_rng(self.seed)
        shape = (self.c0 + n) / 2.0

        logger.info("=" * 60)
        logger.info("GIBBS SAMPLING")
        logger.info("=" * 60)
        logger.info(f"{self.chains} chains x ({self.burnin} burn-in + {self.mcmc} draws), "
                    f"thin={self.thin}, {k} coefficients")

        for c in range(self.chains):
            # Over-dispersed starting variances around the OLS estimate
            sigma2 = s2_ols * 4.0 ** (c - (self.chains - 1) / 2.0)
            keep = 0
            for it in range(self.burnin + self.mcmc):
                precision = B0 + XtX / sigma2
                mean = np.linalg.solve(precision, B0b0 + Xty / sigma2)
                L = np.linalg.cholesky(precision)
                beta = mean + np.linalg.solve(L.T, rng.standard_normal(k))

                resid = y - X @ beta
                rate = (self.d0 + resid @ resid) / 2.0
                sigma2 = 1.0 / rng.gamma(shape, 1.0 / rate)

                if it >= self.burnin and (it - self.burnin) % self.thin == 0:
                    samples[c, keep, :k] = beta
                    samples[c, keep, k] = sigma2
                    keep += 1
            logger.info(f"Chain {c + 1} done")

        self.samples_ = samples
        self.param_names_ = [INTERCEPT_NAME] + list(feature_names) + [VARIANCE_NAME]
        return self

    def _check_fitted(self):
        if self.samples_ is None:
            raise ValueError("Sampler has not been run. Call fit() first.")

    def to_inference_data(self) -> az.InferenceData:
        """Kept draws as an ArviZ InferenceData."""
        self._check_fitted()
        return to_inference_data(self.samples_, self.param_names_)

    @property
    def pooled_samples(self) -> pd.DataFrame:
        """All kept draws, chains stacked, as a DataFrame."""
        self._check_fitted()
        return pd.DataFrame(
            self.samples_.reshape(-1, self.samples_.shape[2]),
            columns=self.param_names_
        )

    def summary(self, quantiles: Optional[List[float]] = None) -> pd.DataFrame:
        """
        Posterior summary per parameter.

        Columns: mean, sd, naive_se, ts_se (Monte Carlo SE accounting for
        autocorrelation), one column per quantile, rhat, ess.
        """
        self._check_fitted()
        quantiles = quantiles or MCMC_CONFIG.quantiles

        pooled = self.pooled_samples
        total = len(pooled)
        rows = []
        for j, name in enumerate(self.param_names_):
            draws = pooled[name].values
            sd = draws.std(ddof=1)
            chains = self.samples_[:, :, j]
            row = {
                'parameter': name,
                'mean': draws.mean(),
                'sd': sd,
                'naive_se': sd / np.sqrt(total),
                'ts_se': monte_carlo_se(chains),
            }
            for q in quantiles:
                row[f"{q:.1%}"] = np.quantile(draws, q)
            row['rhat'] = gelman_rubin(chains)
            row['ess'] = effective_sample_size(chains)
            rows.append(row)
        return pd.DataFrame(rows).set_index('parameter')

    def predict(
        self,
        X: Union[pd.DataFrame, np.ndarray],
        return_interval: bool = False,
        level: float = 0.95
    ):
        """
        Posterior mean prediction for new rows.

        With return_interval, also returns the lower and upper bounds of the
        central posterior-predictive interval at the given level.
        """
        self._check_fitted()
        X = np.column_stack([np.ones(len(X)), np.asarray(X, dtype=float)])
        draws = self.samples_.reshape(-1, self.samples_.shape[2])
        betas, sigma2 = draws[:, :-1], draws[:, -1]

        mu = X @ betas.T
        mean = mu.mean(axis=1)
        if not return_interval:
            return mean

        rng = np.random.default_rng(self.seed)
        y_rep = mu + rng.standard_normal(mu.shape) * np.sqrt(sigma2)
        alpha = (1 - level) / 2
        lower = np.quantile(y_rep, alpha, axis=1)
        upper = np.quantile(y_rep, 1 - alpha, axis=1)
        return mean, lower, upper


def compare_with_ols(
    X: pd.DataFrame,
    y: pd.Series,
    model: GibbsLinearRegression
) -> pd.DataFrame:
    """Side-by-side OLS estimates and posterior means."""
    ols = sm.OLS(np.asarray(y, dtype=float),
                 sm.add_constant(np.asarray(X, dtype=float), has_constant='add')).fit()
    posterior = model.summary()

    comparison = pd.DataFrame({
        'ols_estimate': list(ols.params) + [ols.scale],
        'ols_se': list(ols.bse) + [np.nan],
        'posterior_mean': posterior['mean'].values,
        'posterior_sd': posterior['sd'].values,
    }, index=model.param_names_)
    comparison.index.name = 'parameter'
    return comparison


def _markdown_table(frame: pd.DataFrame) -> str:
    header = [frame.index.name or ""] + [str(c) for c in frame.columns]
    lines = ["| " + " | ".join(header) + " |", "|" + "---|" * len(header)]
    for label, row in frame.iterrows():
        cells = [f"{v:.4f}" if isinstance(v, (float, np.floating)) else str(v) for v in row]
        lines.append("| " + " | ".join([str(label)] + cells) + " |")
    return "\n".join(lines)


def generate_mcmc_report(
    summary: pd.DataFrame,
    diagnostics: pd.DataFrame,
    comparison: Optional[pd.DataFrame] = None,
    sampler: Optional[GibbsLinearRegression] = None,
    save_path: Optional[str] = None
) -> str:
    """
    Markdown report of the posterior and its convergence.

    Returns:
        Markdown report string
    """
    report = f"""# Bayesian Linear Regression (Gibbs Sampling)

**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}

---
"""
    if sampler is not None:
        report += f"""
## Sampler Settings

| Setting | Value |
|---------|-------|
| Chains | {sampler.chains} |
| Burn-in | {sampler.burnin} |
| Draws per chain | {sampler.mcmc} |
| Thinning | {sampler.thin} |
| Prior c0, d0 | {sampler.c0}, {sampler.d0} |

---
"""

    report += "\n## Posterior Summary\n\n"
    report += _markdown_table(summary)
    report += "\n\n---\n\n## Convergence Diagnostics\n\n"
    report += _markdown_table(diagnostics)

    if diagnostics['converged'].all():
        report += "\n\nAll parameters pass the R-hat and Geweke checks.\n"
    else:
        failing = ", ".join(diagnostics.index[~diagnostics['converged']])
        report += f"\n\n**Not converged:** {failing}. Consider a longer run.\n"

    if comparison is not None:
        report += "\n---\n\n## Comparison with OLS\n\n"
        report += _markdown_table(comparison)
        report += "\n"

    if save_path:
        save_path = Path(save_path)
        save_path.mkdir(parents=True, exist_ok=True)
        report_file = save_path / 'bayes_mcmc_report.md'
        with open(report_file, 'w', encoding='utf-8') as f:
            f.write(report)
        logger.info(f"Report saved to {report_file}")

    return report


def run_bayes_post(
    data_path: Optional[str] = None,
    data: Optional[pd.DataFrame] = None,
    response: Optional[str] = None,
    predictors: Optional[List[str]] = None,
    output_dir: Optional[str] = None,
    make_plots: bool = True,
    **sampler_kwargs: Any
) -> Dict[str, Any]:
    """
    Run the Bayesian regression post end to end.

    Args:
        data_path: CSV with the regression table
        data: Already loaded table (skips reading data_path)
        response: Response column
        predictors: Predictor columns (all other numeric columns when None)
        output_dir: Root for reports and plots
        make_plots: Whether to write trace and density plots
        **sampler_kwargs: Passed to GibbsLinearRegression

    Returns:
        Dictionary with the sampler, summary, diagnostics, OLS comparison,
        report and plot paths
    """
    logger.info("=" * 60)
    logger.info("BAYESIAN LINEAR REGRESSION POST")
    logger.info("=" * 60)

    config = MCMC_CONFIG
    response = response or config.response_column
    predictors = predictors or config.predictor_columns or None

    if data is None:
        data = DataPipeline(
            data_path or get_raw_data_path(config.raw_data_filename),
            required_columns=[response] + list(predictors or []),
        ).load_data()
    if response not in data.columns:
        raise ValueError(f"Response column '{response}' not in data")

    if not predictors:
        predictors = [c for c in data.columns
                      if c != response and pd.api.types.is_numeric_dtype(data[c])]
        logger.info(f"Using numeric predictors: {predictors}")

    columns = [response] + list(predictors)
    df = drop_missing(SchemaValidator.coerce_numeric(data[columns], columns))

    X, y = df[predictors], df[response]
    sampler = GibbsLinearRegression(**sampler_kwargs).fit(X, y)

    summary = sampler.summary()
    diagnostics = convergence_diagnostics(sampler.samples_, sampler.param_names_)
    comparison = compare_with_ols(X, y, sampler)

    logger.info(f"\nPosterior summary:\n{summary.to_string()}")
    if not diagnostics['converged'].all():
        logger.warning("Some parameters did not pass the convergence checks:\n"
                       f"{diagnostics[~diagnostics['converged']].to_string()}")

    reports_dir = Path(output_dir) / 'reports' if output_dir else REPORTS_DIR
    plots_dir = Path(output_dir) / 'plots' if output_dir else PLOTS_DIR
    report = generate_mcmc_report(summary, diagnostics, comparison, sampler, str(reports_dir))

    plots = []
    if make_plots:
        from ..explain import plots as figures

        idata = sampler.to_inference_data()
        plots.append(figures.plot_trace(idata, save_path=str(plots_dir)))
        plots.append(figures.plot_posterior_density(idata, save_path=str(plots_dir)))

    return {
        'sampler': sampler,
        'summary': summary,
        'diagnostics': diagnostics,
        'comparison': comparison,
        'report': report,
        'plots': plots,
    }


if __name__ == "__main__":
    outcome = run_bayes_post()
    print(outcome['summary'].to_string())
