"""
SHAP Explanations for the Salary Models
=======================================
Attributes predicted salaries of a tree regressor to its input columns.

Author: Analysis Posts Team
"""
import logging
from typing import Any, List, Optional

import numpy as np
import pandas as pd
import shap
import matplotlib.pyplot as plt

from ..config import LOGGING_CONFIG
from .plots import _save

logging.basicConfig(
    level=LOGGING_CONFIG.log_level,
    format=LOGGING_CONFIG.log_format
)
logger = logging.getLogger(__name__)


class SHAPExplainer:
    """
    Tree SHAP attributions for a fitted random forest or XGBoost regressor.

    Attributes:
        shap_values: Array of shape (samples, features), in salary units
        expected_value: Average model output the attributions start from
    """

    def __init__(self, model: Any, X, feature_names: Optional[List[str]] = None):
        self.model = model
        self.X = np.asarray(X, dtype=float)
        self.feature_names = list(feature_names) if feature_names is not None else [
            f"x{i + 1}" for i in range(self.X.shape[1])
        ]

        explainer = shap.TreeExplainer(model)
        self.shap_values = np.asarray(explainer.shap_values(self.X))
        self.expected_value = float(np.ravel(explainer.expected_value)[0])
        logger.info(f"SHAP values for {self.X.shape[0]} rows x {self.X.shape[1]} features, "
                    f"base value {self.expected_value:,.2f}")

    def top_features(self, n: int = 10) -> pd.DataFrame:
        """Columns ranked by mean absolute SHAP value."""
        ranking = pd.DataFrame({
            'feature': self.feature_names,
            'mean_abs_shap': np.abs(self.shap_values).mean(axis=0),
        })
        ranking = ranking.sort_values('mean_abs_shap', ascending=False)
        return ranking.head(n).reset_index(drop=True)

    def _plot(self, plot_type: str, title: str, filename: str,
              save_path: Optional[str], max_display: int) -> str:
        shap.summary_plot(
            self.shap_values, self.X,
            feature_names=self.feature_names,
            plot_type=plot_type,
            max_display=max_display,
            show=False
        )
        fig = plt.gcf()
        fig.suptitle(title, fontsize=14, fontweight='bold')
        return _save(fig, filename, save_path)

    def summary_plot(self, save_path: Optional[str] = None, max_display: int = 20) -> str:
        """Beeswarm of per-row attributions, coloured by the feature value."""
        return self._plot('dot', 'SHAP Impact on Predicted Salary',
                          'shap_summary', save_path, max_display)

    def bar_plot(self, save_path: Optional[str] = None, max_display: int = 15) -> str:
        return self._plot('bar', 'Mean Absolute SHAP Value',
                          'shap_bar', save_path, max_display)
