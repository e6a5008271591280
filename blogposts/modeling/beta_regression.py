"""
Beta Regression on a Scraped Table
==================================
Models a proportion scraped from a web page with a beta regression.

This module provides:
- Rescaling of the response into the open unit interval
- Beta regression with a logit mean link and log precision link
- An ordinary least squares fit for comparison
- Pseudo R^2, coefficient table and a markdown report

Author: Analysis Posts Team
"""
import re
import keyword
import logging
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
import statsmodels.formula.api as smf
from statsmodels.othermod.betareg import BetaModel

from ..config import (
    LOGGING_CONFIG, SCRAPE_CONFIG, PROCESSED_DATA_DIR, REPORTS_DIR, PLOTS_DIR
)
from ..data_pipeline.preprocess import (
    SchemaValidator, drop_missing, percent_to_proportion,
    rescale_unit_interval, squeeze_unit_interval
)
from ..data_pipeline.scraper import load_or_scrape

logging.basicConfig(
    level=LOGGING_CONFIG.log_level,
    format=LOGGING_CONFIG.log_format
)
logger = logging.getLogger(__name__)


def _logit(p):
    p = np.asarray(p, dtype=float)
    return np.log(p / (1.0 - p))


def safe_column_names(columns: List[str]) -> Dict[str, str]:
    """Map column names to identifiers usable inside a model formula."""
    mapping = {}
    used = set()
    for col in columns:
        safe = re.sub(r"\W+", "_", str(col)).strip("_").lower() or "col"
        if safe[0].isdigit():
            safe = f"x_{safe}"
        if keyword.iskeyword(safe):
            safe = f"{safe}_"
        base, i = safe, 1
        while safe in used:
            i += 1
            safe = f"{base}_{i}"
        used.add(safe)
        mapping[col] = safe
    return mapping


def build_formula(response: str, predictors: List[str]) -> str:
    """Formula string such as 'y ~ x1 + x2' (intercept-only when no predictors)."""
    rhs = " + ".join(predictors) if predictors else "1"
    return f"{response} ~ {rhs}"


def prepare_beta_data(
    df: pd.DataFrame,
    response: str,
    predictors: Optional[List[str]] = None,
    percent: bool = False,
    squeeze: bool = True
) -> Tuple[pd.DataFrame, Dict[str, str]]:
    """
    Select, clean and rescale the modeling columns.

    Args:
        df: Raw table
        response: Proportion column
        predictors: Predictor columns (all other numeric columns when None)
        percent: Response is in percent and is divided by 100; otherwise it is
            min-max rescaled into [0, 1]
        squeeze: Move the response into the open interval (0, 1)

    Returns:
        Tuple of (model frame with formula-safe column names, name mapping)
    """
    if response not in df.columns:
        raise ValueError(f"Response column '{response}' not in data")

    if not predictors:
        predictors = [c for c in df.columns
                      if c != response and pd.api.types.is_numeric_dtype(df[c])]
        logger.info(f"Using numeric predictors: {predictors}")

    missing = set(predictors) - set(df.columns)
    if missing:
        raise ValueError(f"Predictor columns not in data: {sorted(missing)}")

    frame = df[[response] + list(predictors)].copy()
    frame = SchemaValidator.coerce_numeric(frame, list(predictors))
    if percent:
        frame[response] = percent_to_proportion(frame[response])
    else:
        frame = SchemaValidator.coerce_numeric(frame, [response])
    frame = drop_missing(frame)
    if not percent:
        # Rescale over the rows that are actually modeled
        frame[response] = rescale_unit_interval(frame[response])

    outside = (frame[response] < 0) | (frame[response] > 1)
    if outside.any():
        logger.warning(f"Dropping {int(outside.sum())} rows with a response outside [0, 1]")
        frame = frame[~outside]

    on_boundary = (frame[response] <= 0) | (frame[response] >= 1)
    if squeeze:
        frame[response] = squeeze_unit_interval(frame[response])
    elif on_boundary.any():
        raise ValueError("Beta regression needs responses strictly inside (0, 1); "
                         "use squeeze=True")

    mapping = safe_column_names(list(frame.columns))
    frame = frame.rename(columns=mapping).reset_index(drop=True)
    logger.info(f"Beta regression data: {len(frame)} rows, {len(predictors)} predictors")
    return frame, mapping


def fit_beta_regression(df: pd.DataFrame, response: str, predictors: List[str]):
    """
    Fit a beta regression by maximum likelihood.

    Returns:
        statsmodels BetaResults
    """
    logger.info("=" * 60)
    logger.info("FITTING BETA REGRESSION")
    logger.info("=" * 60)

    formula = build_formula(response, predictors)
    logger.info(f"Formula: {formula}")
    model = BetaModel.from_formula(formula, df)
    result = model.fit(disp=False)
    logger.info(f"Log-likelihood: {result.llf:.4f}, AIC: {result.aic:.4f}")
    return result


def fit_linear_comparison(df: pd.DataFrame, response: str, predictors: List[str]):
    """Ordinary least squares on the same formula."""
    return smf.ols(build_formula(response, predictors), data=df).fit()


def pseudo_r2(y, mu) -> float:
    """
    Squared correlation between logit(y) and the fitted linear predictor.

    Pseudo R^2 of Ferrari & Cribari-Neto (2004).
    """
    eta_y = _logit(y)
    eta_hat = _logit(mu)
    if np.std(eta_hat) == 0 or np.std(eta_y) == 0:
        return 0.0
    return float(np.corrcoef(eta_y, eta_hat)[0, 1] ** 2)


def summarize_beta_fit(result, y) -> Dict[str, Any]:
    """
    Collect the quantities reported in the post.

    Returns:
        Dictionary with a coefficient table and goodness-of-fit statistics
    """
    y = np.asarray(y, dtype=float)
    mu = np.asarray(result.predict(), dtype=float)
    k_mean = result.model.exog.shape[1]

    coefficients = pd.DataFrame({
        'estimate': result.params,
        'std_err': result.bse,
        'z': result.tvalues,
        'p_value': result.pvalues,
    })
    coefficients['odds_ratio'] = np.nan
    coefficients.iloc[:k_mean, coefficients.columns.get_loc('odds_ratio')] = np.exp(
        coefficients["estimate"].iloc[:k_mean].values
    )

    precision = float(np.exp(result.params.iloc[k_mean])) if len(result.params) > k_mean else None

    return {
        'coefficients': coefficients,
        'precision': precision,
        'llf': float(result.llf),
        'aic': float(result.aic),
        'bic': float(result.bic),
        'pseudo_r2': pseudo_r2(y, mu),
        'rmse': float(np.sqrt(np.mean((y - mu) ** 2))),
        'n_obs': int(result.nobs),
        'fitted': mu,
    }


def generate_beta_report(
    summary: Dict[str, Any],
    ols_summary: Optional[Dict[str, float]] = None,
    name_mapping: Optional[Dict[str, str]] = None,
    save_path: Optional[str] = None
) -> str:
    """
    Markdown report of the beta regression fit.

    Args:
        summary: Output of summarize_beta_fit
        ols_summary: RMSE and out-of-range share of the OLS comparison
        name_mapping: Original column name -> formula name
        save_path: Optional directory to save the report

    Returns:
        Markdown report string
    """
    report = f"""# Beta Regression Report

**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}

---

## Fit Statistics

| Statistic | Value |
|-----------|-------|
| Observations | {summary['n_obs']} |
| Log-likelihood | {summary['llf']:.4f} |
| AIC | {summary['aic']:.4f} |
| BIC | {summary['bic']:.4f} |
| Pseudo R^2 | {summary['pseudo_r2']:.4f} |
| RMSE (fitted means) | {summary['rmse']:.4f} |
"""
    if summary.get('precision') is not None:
        report += f"| Precision (phi) | {summary['precision']:.4f} |\n"

    report += """
---

## Coefficients (logit mean link)

| Term | Estimate | Std. Err. | z | p | exp(coef) |
|------|----------|-----------|---|---|-----------|
"""
    for term, row in summary['coefficients'].iterrows():
        odds = "-" if pd.isna(row['odds_ratio']) else f"{row['odds_ratio']:.4f}"
        report += (f"| {term} | {row['estimate']:.4f} | {row['std_err']:.4f} | "
                   f"{row['z']:.3f} | {row['p_value']:.4g} | {odds} |\n")

    if ols_summary:
        report += f"""
---

## Comparison with Linear Regression

| Model | RMSE | Predictions outside [0, 1] |
|-------|------|----------------------------|
| Beta regression | {summary['rmse']:.4f} | 0.00% |
| OLS | {ols_summary['rmse']:.4f} | {ols_summary['share_outside']:.2%} |
"""

    if name_mapping:
        report += "\n---\n\n## Column Names\n\n"
        report += "".join(f"- `{safe}`: {orig}\n" for orig, safe in name_mapping.items())

    if save_path:
        save_path = Path(save_path)
        save_path.mkdir(parents=True, exist_ok=True)
        report_file = save_path / 'beta_regression_report.md'
        with open(report_file, 'w', encoding='utf-8') as f:
            f.write(report)
        logger.info(f"Report saved to {report_file}")

    return report


def run_beta_post(
    url: Optional[str] = None,
    cache_path: Optional[str] = None,
    data: Optional[pd.DataFrame] = None,
    response: Optional[str] = None,
    predictors: Optional[List[str]] = None,
    percent: Optional[bool] = None,
    squeeze: Optional[bool] = None,
    output_dir: Optional[str] = None,
    make_plots: bool = True
) -> Dict[str, Any]:
    """
    Run the scraping and beta regression post end to end.

    Returns:
        Dictionary with the fit result, summary, OLS comparison, report and plot paths
    """
    logger.info("=" * 60)
    logger.info("SCRAPING + BETA REGRESSION POST")
    logger.info("=" * 60)

    config = SCRAPE_CONFIG
    response = response or config.response_column
    predictors = predictors if predictors is not None else (config.predictor_columns or None)
    percent = config.response_is_percent if percent is None else percent
    squeeze = config.squeeze_response if squeeze is None else squeeze

    if data is None:
        data = load_or_scrape(cache_path or PROCESSED_DATA_DIR / config.cache_filename, url=url)

    frame, mapping = prepare_beta_data(data, response, predictors, percent, squeeze)
    y_name = mapping[response]
    x_names = [mapping[c] for c in mapping if c != response]

    result = fit_beta_regression(frame, y_name, x_names)
    summary = summarize_beta_fit(result, frame[y_name])

    ols = fit_linear_comparison(frame, y_name, x_names)
    ols_fitted = np.asarray(ols.fittedvalues, dtype=float)
    ols_summary = {
        'rmse': float(np.sqrt(np.mean((frame[y_name].values - ols_fitted) ** 2))),
        'share_outside': float(np.mean((ols_fitted < 0) | (ols_fitted > 1))),
    }
    logger.info(f"Beta RMSE: {summary['rmse']:.4f}, OLS RMSE: {ols_summary['rmse']:.4f}")
    logger.info(f"Pseudo R2: {summary['pseudo_r2']:.4f}")

    reports_dir = Path(output_dir) / 'reports' if output_dir else REPORTS_DIR
    plots_dir = Path(output_dir) / 'plots' if output_dir else PLOTS_DIR
    report = generate_beta_report(summary, ols_summary, mapping, str(reports_dir))

    plots = []
    if make_plots:
        from ..explain import plots as figures

        plots.append(figures.plot_proportion_histogram(
            frame[y_name], title=f"Distribution of {response}", save_path=str(plots_dir)
        ))
        plots.append(figures.plot_predicted_vs_actual(
            frame[y_name], summary['fitted'], title='Beta Regression - Fitted vs Observed',
            filename='beta_fitted_vs_observed', save_path=str(plots_dir)
        ))
        if x_names:
            plots.append(figures.plot_beta_fit(
                frame[x_names[0]], frame[y_name], summary['fitted'],
                x_label=next(c for c, s in mapping.items() if s == x_names[0]),
                save_path=str(plots_dir)
            ))

    return {
        'result': result,
        'summary': summary,
        'ols_summary': ols_summary,
        'data': frame,
        'name_mapping': mapping,
        'report': report,
        'plots': plots,
    }


if __name__ == "__main__":
    outcome = run_beta_post()
    print(outcome['result'].summary())
