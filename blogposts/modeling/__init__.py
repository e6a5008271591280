"""
Modeling Module
===============
Salary regression models, beta regression and Gibbs-sampled Bayesian
linear regression.
"""

from .salary import (
    prepare_features,
    select_features_rfe,
    train_all_models,
    select_champion_model,
    load_salary_model,
    run_salary_post
)
from .beta_regression import fit_beta_regression, prepare_beta_data, pseudo_r2, run_beta_post
from .bayes_mcmc import (
    GibbsLinearRegression,
    convergence_diagnostics,
    to_inference_data,
    run_bayes_post
)

__all__ = [
    'prepare_features',
    'select_features_rfe',
    'train_all_models',
    'select_champion_model',
    'load_salary_model',
    'run_salary_post',
    'fit_beta_regression',
    'prepare_beta_data',
    'pseudo_r2',
    'run_beta_post',
    'GibbsLinearRegression',
    'convergence_diagnostics',
    'to_inference_data',
    'run_bayes_post'
]
