"""
Configuration Module for the Analysis Posts
============================================
Centralized configuration for all posts including paths, dataset columns,
model grids, MCMC settings and plotting defaults.
"""
import os
from pathlib import Path
from typing import Dict, Any, List, Optional
from dataclasses import dataclass, field


# =============================================================================
# PATH CONFIGURATION
# =============================================================================
# Project root directory
PROJECT_ROOT = Path(
    os.environ.get("BLOGPOSTS_HOME", Path(__file__).parent.parent)
).absolute()

# Data paths
DATA_DIR = PROJECT_ROOT / "data"
RAW_DATA_DIR = DATA_DIR / "raw"
PROCESSED_DATA_DIR = DATA_DIR / "processed"

# Model paths
MODELS_DIR = PROJECT_ROOT / "models"

# Output paths
OUTPUTS_DIR = PROJECT_ROOT / "outputs"
REPORTS_DIR = OUTPUTS_DIR / "reports"
PLOTS_DIR = OUTPUTS_DIR / "plots"

# Ensure directories exist
for dir_path in [PROCESSED_DATA_DIR, MODELS_DIR, REPORTS_DIR, PLOTS_DIR]:
    dir_path.mkdir(parents=True, exist_ok=True)


# =============================================================================
# SALARY DATASET CONFIGURATION
# =============================================================================
@dataclass
class SalaryDatasetConfig:
    """Configuration for the salary prediction dataset."""
    raw_data_filename: str = "salaries.csv"
    processed_data_filename: str = "salaries_clean.csv"

    # Target column
    target_column: str = "salary"

    numeric_columns: List[str] = field(default_factory=lambda: [
        "yrs.since.phd",
        "yrs.service"
    ])

    # One-hot encoded before modeling
    categorical_columns: List[str] = field(default_factory=lambda: [
        "rank",
        "discipline",
        "sex"
    ])

SALARY_CONFIG = SalaryDatasetConfig()


# =============================================================================
# SCRAPING CONFIGURATION
# =============================================================================
@dataclass
class ScrapeConfig:
    """Configuration for the scraped table used by the beta regression post."""
    url: str = os.environ.get(
        "SCRAPE_URL",
        "https://en.wikipedia.org/wiki/List_of_countries_by_literacy_rate"
    )
    # Text that must appear inside the wanted <table>
    table_match: Optional[str] = None
    table_index: int = 0

    request_timeout: float = 30.0
    user_agent: str = "Mozilla/5.0 (compatible; blogposts-analysis/1.0)"

    cache_filename: str = "scraped_table.csv"

    # Proportion response and its predictors
    response_column: str = "rate"
    predictor_columns: List[str] = field(default_factory=list)

    # Response is expressed in percent (0-100) rather than min-max rescaled
    response_is_percent: bool = True
    # Move exact 0/1 values into the open unit interval
    squeeze_response: bool = True

SCRAPE_CONFIG = ScrapeConfig()


# =============================================================================
# MODEL CONFIGURATION
# =============================================================================
@dataclass
class ModelConfig:
    """Configuration for model training and evaluation."""
    # Random seed for reproducibility
    random_state: int = 42

    # Train/test split ratio
    train_ratio: float = 0.8

    # Cross-validation settings
    cv_splits: int = 5

    # Recursive feature elimination
    rfe_step: int = 1
    rfe_min_features: int = 1
    rfe_n_estimators: int = 200

    # Hyperparameter grids (keys are the estimator's own parameter names)
    svm_param_grid: Dict[str, List] = field(default_factory=lambda: {
        "C": [0.25, 0.5, 1.0, 2.0, 4.0],
        "gamma": ["scale", 0.01, 0.1],
        "epsilon": [0.1, 0.2]
    })

    knn_param_grid: Dict[str, List] = field(default_factory=lambda: {
        "n_neighbors": [3, 5, 7, 9, 11, 15],
        "weights": ["uniform", "distance"]
    })

    rf_param_grid: Dict[str, List] = field(default_factory=lambda: {
        "n_estimators": [200, 500],
        "max_features": [0.33, 0.66, 1.0, "sqrt"],
        "min_samples_leaf": [1, 5]
    })

    # Boosted linear model (componentwise boosting of a GLM)
    boosted_glm_param_grid: Dict[str, List] = field(default_factory=lambda: {
        "n_estimators": [50, 100, 200, 400],
        "learning_rate": [0.05, 0.1, 0.3],
        "reg_lambda": [0.0, 1.0]
    })

    # Weight decay acts as a Gaussian prior on the network weights
    bayesian_nn_param_grid: Dict[str, List] = field(default_factory=lambda: {
        "hidden_layer_sizes": [(2,), (4,), (8,)],
        "alpha": [0.01, 0.1, 1.0, 10.0]
    })
    bayesian_nn_max_iter: int = 2000

    xgb_param_grid: Dict[str, List] = field(default_factory=lambda: {
        "n_estimators": [100, 300],
        "max_depth": [2, 3, 5],
        "learning_rate": [0.05, 0.1],
        "subsample": [0.8, 1.0]
    })

    # Model file names
    model_filename_template: str = "salary_{name}.joblib"
    metrics_filename: str = "salary_metrics.json"

MODEL_CONFIG = ModelConfig()


# =============================================================================
# MCMC CONFIGURATION
# =============================================================================
@dataclass
class MCMCConfig:
    """Configuration for the Gibbs sampler of the Bayesian regression post."""
    raw_data_filename: str = "bayes_regression.csv"
    response_column: str = "y"
    predictor_columns: List[str] = field(default_factory=list)

    burnin: int = 1000
    mcmc: int = 10000
    thin: int = 1
    chains: int = 3
    seed: int = 42

    # beta ~ N(b0, B0^-1), sigma^2 ~ InvGamma(c0/2, d0/2)
    b0: float = 0.0
    B0: float = 0.0
    c0: float = 0.001
    d0: float = 0.001

    quantiles: List[float] = field(default_factory=lambda: [
        0.025, 0.25, 0.5, 0.75, 0.975
    ])

    # Convergence thresholds
    rhat_threshold: float = 1.1
    geweke_threshold: float = 1.96

MCMC_CONFIG = MCMCConfig()


# =============================================================================
# PLOT CONFIGURATION
# =============================================================================
@dataclass
class PlotConfig:
    """Configuration for figures."""
    plot_dpi: int = 150
    plot_format: str = "png"
    figure_size: tuple = (10, 6)

PLOT_CONFIG = PlotConfig()


# =============================================================================
# LOGGING CONFIGURATION
# =============================================================================
@dataclass
class LoggingConfig:
    """Configuration for logging."""
    log_level: str = os.environ.get("LOG_LEVEL", "INFO")
    log_format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

LOGGING_CONFIG = LoggingConfig()


# =============================================================================
# UTILITY FUNCTIONS
# =============================================================================
def get_raw_data_path(filename: Optional[str] = None) -> Path:
    """Get the path to a raw data file."""
    return RAW_DATA_DIR / (filename or SALARY_CONFIG.raw_data_filename)


def get_processed_data_path(filename: Optional[str] = None) -> Path:
    """Get the path to a processed data file."""
    return PROCESSED_DATA_DIR / (filename or SALARY_CONFIG.processed_data_filename)


def get_model_path(model_name: str) -> Path:
    """Get the path to a model file."""
    return MODELS_DIR / model_name


def get_all_config() -> Dict[str, Any]:
    """Return all configuration as a dictionary."""
    from dataclasses import asdict
    return {
        "salary": asdict(SALARY_CONFIG),
        "scrape": asdict(SCRAPE_CONFIG),
        "model": asdict(MODEL_CONFIG),
        "mcmc": asdict(MCMC_CONFIG),
        "plot": asdict(PLOT_CONFIG),
        "logging": asdict(LOGGING_CONFIG),
        "paths": {
            "project_root": str(PROJECT_ROOT),
            "data_dir": str(DATA_DIR),
            "models_dir": str(MODELS_DIR),
            "outputs_dir": str(OUTPUTS_DIR)
        }
    }


if __name__ == "__main__":
    # Print configuration summary
    import json
    print("=" * 60)
    print("ANALYSIS POSTS CONFIGURATION")
    print("=" * 60)
    print(json.dumps(get_all_config(), indent=2, default=str))
