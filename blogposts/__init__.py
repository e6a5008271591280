"""
Analysis Posts Package
======================
Narrative data-analysis write-ups as reproducible pipelines.

Modules:
- data_pipeline: CSV loading, cleaning, rescaling and web scraping
- modeling: Salary regression models, beta regression, Gibbs-sampled
  Bayesian linear regression
- explain: Figures and SHAP explanations
- config: Centralized configuration

Author: Analysis Posts Team
"""

__version__ = "1.0.0"
__author__ = "Analysis Posts Team"

from . import config
from .config import (
    PROJECT_ROOT,
    MODELS_DIR,
    DATA_DIR,
    OUTPUTS_DIR,
    SALARY_CONFIG,
    SCRAPE_CONFIG,
    MODEL_CONFIG,
    MCMC_CONFIG,
    PLOT_CONFIG,
)

__all__ = [
    'config',
    'PROJECT_ROOT',
    'MODELS_DIR',
    'DATA_DIR',
    'OUTPUTS_DIR',
    'SALARY_CONFIG',
    'SCRAPE_CONFIG',
    'MODEL_CONFIG',
    'MCMC_CONFIG',
    'PLOT_CONFIG',
]
