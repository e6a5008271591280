"""
Figures for the Analysis Posts
==============================
Every function draws one figure, writes it to disk and returns the path.

Author: Analysis Posts Team
"""
import matplotlib
matplotlib.use('Agg')  # Non-interactive backend, figures go straight to disk
import matplotlib.pyplot as plt
import arviz as az
import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional, Any
import logging

from ..config import LOGGING_CONFIG, PLOT_CONFIG, PLOTS_DIR

logging.basicConfig(
    level=LOGGING_CONFIG.log_level,
    format=LOGGING_CONFIG.log_format
)
logger = logging.getLogger(__name__)


def _save(fig, filename: str, save_path: Optional[str]) -> str:
    save_path = Path(save_path) if save_path else PLOTS_DIR
    save_path.mkdir(parents=True, exist_ok=True)
    plot_path = save_path / f"{filename}.{PLOT_CONFIG.plot_format}"
    fig.tight_layout()
    fig.savefig(plot_path, dpi=PLOT_CONFIG.plot_dpi, bbox_inches='tight')
    plt.close(fig)
    logger.info(f"Plot saved to {plot_path}")
    return str(plot_path)


def plot_predicted_vs_actual(
    y_true,
    y_pred,
    title: str = "Predicted vs Actual",
    filename: str = "predicted_vs_actual",
    save_path: Optional[str] = None
) -> str:
    """Scatter of predictions against observations with the identity line."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)

    fig, ax = plt.subplots(figsize=PLOT_CONFIG.figure_size)
    ax.scatter(y_true, y_pred, alpha=0.6, edgecolor='k', linewidth=0.3)
    lo = min(y_true.min(), y_pred.min())
    hi = max(y_true.max(), y_pred.max())
    ax.plot([lo, hi], [lo, hi], 'r--', linewidth=1.5, label='y = x')
    ax.set_xlabel('Actual')
    ax.set_ylabel('Predicted')
    ax.set_title(title, fontsize=14, fontweight='bold')
    ax.legend()
    return _save(fig, filename, save_path)


def plot_residuals(
    y_true,
    y_pred,
    title: str = "Residuals",
    filename: str = "residuals",
    save_path: Optional[str] = None
) -> str:
    """Residuals against fitted values next to a residual histogram."""
    y_true = np.asarray(y_true, dtype=float)
    y_pred = np.asarray(y_pred, dtype=float)
    residuals = y_true - y_pred

    fig, axes = plt.subplots(1, 2, figsize=(PLOT_CONFIG.figure_size[0] * 1.4,
                                            PLOT_CONFIG.figure_size[1]))
    axes[0].scatter(y_pred, residuals, alpha=0.6, edgecolor='k', linewidth=0.3)
    axes[0].axhline(0, color='r', linestyle='--')
    axes[0].set_xlabel('Fitted')
    axes[0].set_ylabel('Residual')
    # Near-constant residuals cannot be split into finite-width bins
    spread = np.ptp(residuals) if residuals.size else 0.0
    bins = 'auto' if spread > 1e-8 * max(1.0, np.abs(residuals).max()) else 1
    axes[1].hist(residuals, bins=bins, color='steelblue', edgecolor='white')
    axes[1].set_xlabel('Residual')
    axes[1].set_ylabel('Count')
    fig.suptitle(title, fontsize=14, fontweight='bold')
    return _save(fig, filename, save_path)


def plot_model_comparison(
    models_metrics: List[Dict[str, Any]],
    metric: str = 'rmse',
    filename: str = "model_comparison",
    save_path: Optional[str] = None
) -> str:
    """Horizontal bar chart of one metric across models, best at the top."""
    frame = pd.DataFrame(models_metrics).sort_values(metric, ascending=False)

    fig, ax = plt.subplots(figsize=PLOT_CONFIG.figure_size)
    ax.barh(frame['model_name'], frame[metric], color='steelblue')
    for y_pos, value in enumerate(frame[metric]):
        ax.text(value, y_pos, f" {value:,.2f}", va='center')
    ax.set_xlabel(f"Test {metric.upper()}")
    ax.set_title(f"Model Comparison - {metric.upper()}", fontsize=14, fontweight='bold')
    return _save(fig, filename, save_path)


def plot_rfe_curve(
    rfecv,
    filename: str = "rfe_curve",
    save_path: Optional[str] = None
) -> str:
    """Cross-validated RMSE against the number of retained features."""
    scores = -np.asarray(rfecv.cv_results_['mean_test_score'])
    stds = np.asarray(rfecv.cv_results_['std_test_score'])
    n_features = np.asarray(
        rfecv.cv_results_.get('n_features', np.arange(1, len(scores) + 1))
    )

    fig, ax = plt.subplots(figsize=PLOT_CONFIG.figure_size)
    ax.errorbar(n_features, scores, yerr=stds, marker='o', capsize=3)
    ax.axvline(rfecv.n_features_, color='r', linestyle='--',
               label=f'selected = {rfecv.n_features_}')
    ax.set_xlabel('Number of features')
    ax.set_ylabel('CV RMSE')
    ax.set_title('Recursive Feature Elimination', fontsize=14, fontweight='bold')
    ax.legend()
    return _save(fig, filename, save_path)


def plot_proportion_histogram(
    values,
    title: str = "Distribution of the response",
    filename: str = "proportion_histogram",
    save_path: Optional[str] = None
) -> str:
    """Histogram of a [0, 1] response."""
    fig, ax = plt.subplots(figsize=PLOT_CONFIG.figure_size)
    ax.hist(np.asarray(values, dtype=float), bins=30, range=(0, 1),
            color='steelblue', edgecolor='white')
    ax.set_xlim(0, 1)
    ax.set_xlabel('Proportion')
    ax.set_ylabel('Count')
    ax.set_title(title, fontsize=14, fontweight='bold')
    return _save(fig, filename, save_path)


def plot_beta_fit(
    x,
    y,
    fitted,
    x_label: str = "x",
    filename: str = "beta_fit",
    save_path: Optional[str] = None
) -> str:
    """Observed proportions and the fitted mean curve against one predictor."""
    x = np.asarray(x, dtype=float)
    order = np.argsort(x)

    fig, ax = plt.subplots(figsize=PLOT_CONFIG.figure_size)
    ax.scatter(x, y, alpha=0.6, edgecolor='k', linewidth=0.3, label='observed')
    ax.plot(x[order], np.asarray(fitted)[order], 'r-', linewidth=2, label='fitted mean')
    ax.set_ylim(0, 1)
    ax.set_xlabel(x_label)
    ax.set_ylabel('Proportion')
    ax.set_title('Beta Regression Fit', fontsize=14, fontweight='bold')
    ax.legend()
    return _save(fig, filename, save_path)


def plot_trace(
    idata: az.InferenceData,
    filename: str = "mcmc_trace",
    save_path: Optional[str] = None
) -> str:
    """
    ArviZ trace plot: per-parameter density and draws, one line per chain.

    Args:
        idata: InferenceData with a posterior group
    """
    n_params = len(idata.posterior.data_vars)
    axes = az.plot_trace(
        idata,
        compact=False,
        figsize=(PLOT_CONFIG.figure_size[0] * 1.4, 2.2 * n_params)
    )
    fig = np.ravel(axes)[0].figure
    fig.suptitle('MCMC Trace', fontsize=14, fontweight='bold')
    return _save(fig, filename, save_path)


def plot_posterior_density(
    idata: az.InferenceData,
    hdi_prob: float = 0.95,
    filename: str = "mcmc_posterior",
    save_path: Optional[str] = None
) -> str:
    """Pooled posterior density per parameter with its highest-density interval."""
    axes = az.plot_posterior(idata, hdi_prob=hdi_prob)
    fig = np.ravel(axes)[0].figure
    fig.suptitle('Posterior Densities', fontsize=14, fontweight='bold')
    return _save(fig, filename, save_path)
