"""
Salary Prediction: Regression Models Compared by RMSE
======================================================
Predicts salary from a handful of demographic and career columns.

This module provides:
- Recursive feature elimination with cross-validation
- Grid-search tuning of six regressors (SVM, k-NN, random forest,
  boosted GLM, Bayesian-regularised neural network, XGBoost)
- Hold-out evaluation with RMSE, MAE and R^2
- Champion selection and a markdown comparison report

Author: Analysis Posts Team
"""
import pandas as pd
import numpy as np
from xgboost import XGBRegressor
from sklearn.compose import TransformedTargetRegressor
from sklearn.ensemble import RandomForestRegressor
from sklearn.feature_selection import RFECV
from sklearn.model_selection import GridSearchCV, KFold, train_test_split
from sklearn.neighbors import KNeighborsRegressor
from sklearn.neural_network import MLPRegressor
from sklearn.pipeline import Pipeline
from sklearn.preprocessing import StandardScaler
from sklearn.svm import SVR
from sklearn.metrics import mean_squared_error, mean_absolute_error, r2_score
import joblib
from pathlib import Path
from typing import Tuple, Dict, Optional, Any, List
import logging
import json
from datetime import datetime

from ..config import (
    LOGGING_CONFIG, MODEL_CONFIG, SALARY_CONFIG,
    MODELS_DIR, REPORTS_DIR, PLOTS_DIR, get_model_path, get_raw_data_path
)
from ..data_pipeline.preprocess import DataPipeline, drop_missing, one_hot_encode

# Configure logging
logging.basicConfig(
    level=LOGGING_CONFIG.log_level,
    format=LOGGING_CONFIG.log_format
)
logger = logging.getLogger(__name__)


MODEL_DISPLAY_NAMES = {
    'svm': 'Support Vector Machine (RBF)',
    'knn': 'k-Nearest Neighbours',
    'random_forest': 'Random Forest',
    'boosted_glm': 'Boosted GLM',
    'bayesian_nn': 'Bayesian Regularised Neural Network',
    'xgboost': 'XGBoost',
}

TREE_MODELS = ('random_forest', 'xgboost')

# Prefix that routes grid keys to the estimator inside the wrapper
GRID_PREFIX = 'regressor__model__'


def rmse(y_true, y_pred) -> float:
    """Root mean squared error."""
    return float(np.sqrt(mean_squared_error(y_true, y_pred)))


def load_salary_data(path: Optional[str] = None) -> pd.DataFrame:
    """
    Load and clean the salary table.

    Args:
        path: Optional path to the CSV file

    Returns:
        DataFrame without missing values in the modeled columns
    """
    config = SALARY_CONFIG
    columns = [config.target_column] + config.numeric_columns + config.categorical_columns

    pipeline = DataPipeline(
        path or get_raw_data_path(config.raw_data_filename),
        required_columns=columns,
        numeric_columns=[config.target_column] + config.numeric_columns
    )
    pipeline.load_data()
    return pipeline.clean_data(columns=[c for c in columns if c in pipeline.df.columns])


def prepare_features(
    df: pd.DataFrame,
    target_col: Optional[str] = None,
    categorical_columns: Optional[List[str]] = None
) -> Tuple[pd.DataFrame, pd.Series]:
    """
    Prepare feature matrix and target for modeling.

    Non-numeric columns that are not categorical predictors are dropped
    first, then rows with missing values in the modeled columns are omitted
    and categorical columns are one-hot encoded.

    Args:
        df: Input DataFrame
        target_col: Name of target column
        categorical_columns: Columns to one-hot encode

    Returns:
        Tuple of (X, y)
    """
    target_col = target_col or SALARY_CONFIG.target_column
    if categorical_columns is None:
        categorical_columns = SALARY_CONFIG.categorical_columns

    if target_col not in df.columns:
        raise ValueError(f"Target column '{target_col}' not in data")

    categorical = [c for c in categorical_columns if c in df.columns]
    unused = [c for c in df.columns
              if c != target_col and c not in categorical
              and not pd.api.types.is_numeric_dtype(df[c])]
    if unused:
        logger.warning(f"Dropping non-numeric columns: {unused}")

    df_clean = drop_missing(df.drop(columns=unused))
    encoded = one_hot_encode(df_clean, categorical)

    X = encoded.drop(columns=[target_col])
    y = encoded[target_col].astype(float)

    logger.info(f"Features: {X.shape[1]}, Samples: {len(X)}")
    logger.info(f"Target mean: {y.mean():,.2f}, std: {y.std():,.2f}")

    return X.astype(float), y


def split_data(
    X: pd.DataFrame,
    y: pd.Series,
    train_ratio: Optional[float] = None,
    random_state: Optional[int] = None
) -> Tuple[pd.DataFrame, pd.DataFrame, pd.Series, pd.Series]:
    """Random train/test split; returns X_train, X_test, y_train, y_test."""
    train_ratio = train_ratio or MODEL_CONFIG.train_ratio
    random_state = MODEL_CONFIG.random_state if random_state is None else random_state

    X_train, X_test, y_train, y_test = train_test_split(
        X, y, train_size=train_ratio, random_state=random_state
    )
    logger.info(f"Train set: {len(X_train)} samples, Test set: {len(X_test)} samples")
    return X_train, X_test, y_train, y_test


def _kfold(cv_splits: Optional[int] = None) -> KFold:
    return KFold(
        n_splits=cv_splits or MODEL_CONFIG.cv_splits,
        shuffle=True,
        random_state=MODEL_CONFIG.random_state
    )


def select_features_rfe(
    X: pd.DataFrame,
    y: pd.Series,
    cv_splits: Optional[int] = None,
    step: Optional[int] = None,
    min_features: Optional[int] = None
) -> Tuple[List[str], pd.DataFrame, RFECV]:
    """
    Recursive feature elimination driven by a random forest.

    Args:
        X: Feature matrix
        y: Target vector
        cv_splits: Number of CV folds
        step: Features removed per iteration
        min_features: Smallest subset considered

    Returns:
        Tuple of (selected feature names, ranking table, fitted RFECV)
    """
    logger.info("=" * 60)
    logger.info("RECURSIVE FEATURE ELIMINATION")
    logger.info("=" * 60)

    rfecv = RFECV(
        RandomForestRegressor(
            n_estimators=MODEL_CONFIG.rfe_n_estimators,
            random_state=MODEL_CONFIG.random_state,
            n_jobs=-1
        ),
        step=step or MODEL_CONFIG.rfe_step,
        min_features_to_select=min_features or MODEL_CONFIG.rfe_min_features,
        cv=_kfold(cv_splits),
        scoring='neg_root_mean_squared_error'
    )
    rfecv.fit(X, y)

    ranking = pd.DataFrame({
        'feature': X.columns,
        'ranking': rfecv.ranking_,
        'selected': rfecv.support_
    }).sort_values(['ranking', 'feature']).reset_index(drop=True)

    selected = ranking.loc[ranking['selected'], 'feature'].tolist()
    best_rmse = -float(np.max(rfecv.cv_results_['mean_test_score']))

    logger.info(f"Selected {len(selected)} of {X.shape[1]} features: {selected}")
    logger.info(f"Best CV RMSE: {best_rmse:,.2f}")

    return selected, ranking, rfecv


def _wrap(estimator, scale_features: bool, scale_target: bool) -> TransformedTargetRegressor:
    pipeline = Pipeline([
        ('scaler', StandardScaler() if scale_features else 'passthrough'),
        ('model', estimator)
    ])
    return TransformedTargetRegressor(
        regressor=pipeline,
        transformer=StandardScaler() if scale_target else None
    )


def _prefix_grid(grid: Dict[str, List]) -> Dict[str, List]:
    return {f"{GRID_PREFIX}{key}": values for key, values in grid.items()}


def build_model_registry() -> Dict[str, Tuple[TransformedTargetRegressor, Dict[str, List]]]:
    """
    Candidate regressors with their search grids.

    Distance- and gradient-based models see standardised features and a
    standardised target; tree models see the raw data.

    Returns:
        Mapping of model key to (wrapped estimator, prefixed grid)
    """
    config = MODEL_CONFIG
    seed = config.random_state

    return {
        'svm': (
            _wrap(SVR(kernel='rbf'), True, True),
            _prefix_grid(config.svm_param_grid)
        ),
        'knn': (
            _wrap(KNeighborsRegressor(), True, False),
            _prefix_grid(config.knn_param_grid)
        ),
        'random_forest': (
            _wrap(RandomForestRegressor(random_state=seed, n_jobs=1), False, False),
            _prefix_grid(config.rf_param_grid)
        ),
        'boosted_glm': (
            _wrap(XGBRegressor(booster='gblinear', random_state=seed, n_jobs=1), True, True),
            _prefix_grid(config.boosted_glm_param_grid)
        ),
        'bayesian_nn': (
            _wrap(MLPRegressor(
                solver='lbfgs',
                activation='tanh',
                max_iter=config.bayesian_nn_max_iter,
                random_state=seed
            ), True, True),
            _prefix_grid(config.bayesian_nn_param_grid)
        ),
        'xgboost': (
            _wrap(XGBRegressor(tree_method='hist', random_state=seed, n_jobs=1), False, False),
            _prefix_grid(config.xgb_param_grid)
        ),
    }


def unwrap_estimator(model: TransformedTargetRegressor):
    """Return the fitted estimator inside the scaling wrapper."""
    return model.regressor_.named_steps['model']


def tune_model(
    name: str,
    estimator,
    param_grid: Dict[str, List],
    X: pd.DataFrame,
    y: pd.Series,
    cv_splits: Optional[int] = None
) -> GridSearchCV:
    """
    Exhaustive grid search with K-fold CV, scored by RMSE.

    Returns:
        Fitted GridSearchCV
    """
    logger.info(f"Tuning {MODEL_DISPLAY_NAMES.get(name, name)}...")

    search = GridSearchCV(
        estimator,
        param_grid,
        cv=_kfold(cv_splits),
        scoring='neg_root_mean_squared_error',
        n_jobs=-1,
        refit=True
    )
    search.fit(X, y)

    logger.info(f"  Best parameters: {_strip_prefix(search.best_params_)}")
    logger.info(f"  Best CV RMSE: {-search.best_score_:,.2f}")
    return search


def _strip_prefix(params: Dict[str, Any]) -> Dict[str, Any]:
    return {key.replace(GRID_PREFIX, ''): value for key, value in params.items()}


def evaluate_regressor(model, X_test: pd.DataFrame, y_test: pd.Series) -> Dict[str, float]:
    """Hold-out RMSE, MAE and R^2."""
    y_pred = model.predict(X_test)
    return {
        'rmse': rmse(y_test, y_pred),
        'mae': float(mean_absolute_error(y_test, y_pred)),
        'r2': float(r2_score(y_test, y_pred)),
    }


def train_all_models(
    X_train: pd.DataFrame,
    y_train: pd.Series,
    X_test: pd.DataFrame,
    y_test: pd.Series,
    models: Optional[List[str]] = None,
    param_grids: Optional[Dict[str, Dict[str, List]]] = None,
    cv_splits: Optional[int] = None,
    save_path: Optional[str] = None
) -> Tuple[Dict[str, Any], List[Dict[str, Any]]]:
    """
    Tune every requested model and evaluate it on the hold-out set.

    Args:
        X_train, y_train: Training data
        X_test, y_test: Hold-out data
        models: Model keys to train (all registered models when None)
        param_grids: Per-model grid overrides with bare parameter names
        cv_splits: Number of CV folds
        save_path: Directory for fitted models and metrics

    Returns:
        Tuple of (fitted models by key, list of metrics dicts)
    """
    logger.info("=" * 60)
    logger.info("TRAINING SALARY MODELS")
    logger.info("=" * 60)

    registry = build_model_registry()
    models = models or list(registry)
    unknown = set(models) - set(registry)
    if unknown:
        raise ValueError(f"Unknown models: {sorted(unknown)}")

    fitted = {}
    metrics_list = []

    for name in models:
        estimator, grid = registry[name]
        if param_grids and name in param_grids:
            grid = _prefix_grid(param_grids[name])

        search = tune_model(name, estimator, grid, X_train, y_train, cv_splits)
        best_model = search.best_estimator_
        test_metrics = evaluate_regressor(best_model, X_test, y_test)

        metrics = {
            'model_key': name,
            'model_name': MODEL_DISPLAY_NAMES[name],
            **test_metrics,
            'cv_rmse': float(-search.best_score_),
            'best_params': _strip_prefix(search.best_params_),
            'n_train': len(X_train),
            'n_test': len(X_test),
            'n_features': X_train.shape[1],
            'timestamp': datetime.now().isoformat()
        }
        logger.info(f"  Test RMSE={metrics['rmse']:,.2f}, R2={metrics['r2']:.4f}")

        fitted[name] = best_model
        metrics_list.append(metrics)

    if save_path:
        save_path = Path(save_path)
        save_path.mkdir(parents=True, exist_ok=True)

        for name, model in fitted.items():
            model_path = save_path / MODEL_CONFIG.model_filename_template.format(name=name)
            joblib.dump(model, model_path)
            logger.info(f"Model saved to {model_path}")

        metrics_path = save_path / MODEL_CONFIG.metrics_filename
        with open(metrics_path, 'w') as f:
            json.dump(metrics_list, f, indent=2, default=str)
        logger.info(f"Metrics saved to {metrics_path}")

    return fitted, metrics_list


def load_salary_model(name: str, models_dir: Optional[str] = None):
    """Load a model saved by train_all_models."""
    filename = MODEL_CONFIG.model_filename_template.format(name=name)
    model_path = Path(models_dir) / filename if models_dir else get_model_path(filename)
    if not model_path.exists():
        raise FileNotFoundError(f"Model file not found: {model_path}")
    logger.info(f"Loading model from {model_path}")
    return joblib.load(model_path)


def select_champion_model(
    models_metrics: List[Dict[str, Any]]
) -> Tuple[str, Dict[str, Any]]:
    """
    Select the model with the lowest hold-out RMSE.

    Ties are broken by the higher R^2.

    Returns:
        Tuple of (champion_model_key, champion_metrics)
    """
    if not models_metrics:
        raise ValueError("No model metrics to compare")

    logger.info("\n" + "=" * 60)
    logger.info("CHAMPION MODEL SELECTION")
    logger.info("=" * 60)

    sorted_models = sorted(models_metrics, key=lambda m: (m['rmse'], -m['r2']))
    champion = sorted_models[0]

    logger.info("Model Rankings:")
    for i, m in enumerate(sorted_models):
        marker = "<- CHAMPION" if i == 0 else ""
        logger.info(f"  {i + 1}. {m['model_name']}: RMSE={m['rmse']:,.2f}, "
                    f"R2={m['r2']:.4f} {marker}")

    return champion['model_key'], champion


def generate_comparison_report(
    models_metrics: List[Dict[str, Any]],
    champion_key: str,
    selected_features: Optional[List[str]] = None,
    save_path: Optional[str] = None,
    shap_importance: Optional[pd.DataFrame] = None
) -> str:
    """
    Generate a markdown comparison report for all models.

    Args:
        models_metrics: List of metrics for each model
        champion_key: Key of the selected champion model
        selected_features: Features kept by RFE
        save_path: Optional directory to save the report
        shap_importance: Output of SHAPExplainer.top_features

    Returns:
        Markdown report string
    """
    champion_name = MODEL_DISPLAY_NAMES.get(champion_key, champion_key)

    report = f"""# Salary Prediction - Model Comparison

**Generated:** {datetime.now().strftime('%Y-%m-%d %H:%M:%S')}

---

## Model Performance Summary (hold-out set)

| Model | RMSE | MAE | R^2 | CV RMSE |
|-------|------|-----|-----|---------|
"""

    for m in sorted(models_metrics, key=lambda m: m['rmse']):
        marker = " (champion)" if m['model_key'] == champion_key else ""
        report += (f"| {m['model_name']}{marker} | {m['rmse']:,.2f} | {m['mae']:,.2f} | "
                   f"{m['r2']:.4f} | {m['cv_rmse']:,.2f} |\n")

    if selected_features is not None:
        report += "\n---\n\n## Features kept by RFE\n\n"
        report += "".join(f"- {feature}\n" for feature in selected_features)

    report += f"""
---

## Champion Model: {champion_name}

Selected for the lowest RMSE on data held out from tuning.

## Tuned Parameters

"""
    for m in models_metrics:
        report += f"**{m['model_name']}:** "
        report += ", ".join(f"{k}={v}" for k, v in m['best_params'].items()) or "defaults"
        report += "\n\n"

    if shap_importance is not None and len(shap_importance):
        report += "---\n\n## SHAP Feature Importance\n\n"
        report += "| Feature | Mean abs. SHAP |\n|---------|----------------|\n"
        for _, row in shap_importance.iterrows():
            report += f"| {row['feature']} | {row['mean_abs_shap']:,.2f} |\n"
        report += "\n"

    if save_path:
        save_path = Path(save_path)
        save_path.mkdir(parents=True, exist_ok=True)
        report_file = save_path / 'salary_model_comparison.md'
        with open(report_file, 'w', encoding='utf-8') as f:
            f.write(report)
        logger.info(f"Report saved to {report_file}")

    return report


def run_salary_post(
    data_path: Optional[str] = None,
    output_dir: Optional[str] = None,
    models: Optional[List[str]] = None,
    param_grids: Optional[Dict[str, Dict[str, List]]] = None,
    use_rfe: bool = True,
    make_plots: bool = True,
    df: Optional[pd.DataFrame] = None
) -> Dict[str, Any]:
    """
    Run the salary post end to end.

    Args:
        data_path: CSV with the salary table
        output_dir: Root for models, reports and plots
        models: Model keys to train
        param_grids: Per-model grid overrides
        use_rfe: Whether to select features with RFE first
        make_plots: Whether to write figures
        df: Already loaded table (skips reading data_path)

    Returns:
        Dictionary with champion, metrics, selected features, models and plot paths
    """
    logger.info("=" * 60)
    logger.info("SALARY PREDICTION POST")
    logger.info("=" * 60)

    if output_dir:
        models_dir = Path(output_dir) / 'models'
        reports_dir = Path(output_dir) / 'reports'
        plots_dir = Path(output_dir) / 'plots'
    else:
        models_dir, reports_dir, plots_dir = MODELS_DIR, REPORTS_DIR, PLOTS_DIR

    if df is None:
        df = load_salary_data(data_path)
    X, y = prepare_features(df)
    X_train, X_test, y_train, y_test = split_data(X, y)

    rfecv = None
    selected = list(X.columns)
    if use_rfe:
        selected, _, rfecv = select_features_rfe(X_train, y_train)
        X_train, X_test = X_train[selected], X_test[selected]

    fitted, metrics = train_all_models(
        X_train, y_train, X_test, y_test,
        models=models, param_grids=param_grids, save_path=str(models_dir)
    )
    champion_key, champion_metrics = select_champion_model(metrics)

    explainer = None
    shap_importance = None
    tree_key = champion_key if champion_key in TREE_MODELS else next(
        (k for k in TREE_MODELS if k in fitted), None
    )
    if tree_key is not None:
        from ..explain.shap_utils import SHAPExplainer

        explainer = SHAPExplainer(
            unwrap_estimator(fitted[tree_key]), X_test.values, list(X_test.columns)
        )
        shap_importance = explainer.top_features()
        logger.info(f"SHAP importance ({MODEL_DISPLAY_NAMES[tree_key]}):\n"
                    f"{shap_importance.to_string(index=False)}")

    report = generate_comparison_report(
        metrics, champion_key, selected, str(reports_dir), shap_importance=shap_importance
    )

    plots = []
    if make_plots:
        from ..explain import plots as figures

        champion = fitted[champion_key]
        y_pred = champion.predict(X_test)
        plots.append(figures.plot_model_comparison(metrics, save_path=str(plots_dir)))
        plots.append(figures.plot_predicted_vs_actual(
            y_test, y_pred,
            title=f"{champion_metrics['model_name']} - Predicted vs Actual Salary",
            filename='salary_predicted_vs_actual', save_path=str(plots_dir)
        ))
        plots.append(figures.plot_residuals(
            y_test, y_pred, title='Salary Residuals',
            filename='salary_residuals', save_path=str(plots_dir)
        ))
        if rfecv is not None:
            plots.append(figures.plot_rfe_curve(rfecv, save_path=str(plots_dir)))
        if explainer is not None:
            plots.append(explainer.summary_plot(save_path=str(plots_dir)))
            plots.append(explainer.bar_plot(save_path=str(plots_dir)))

    logger.info("=" * 60)
    logger.info(f"SALARY POST COMPLETE - Champion: {champion_metrics['model_name']}")
    logger.info(f"Champion RMSE: {champion_metrics['rmse']:,.2f}")
    logger.info("=" * 60)

    return {
        'champion': champion_key,
        'champion_metrics': champion_metrics,
        'metrics': metrics,
        'selected_features': selected,
        'shap_importance': shap_importance,
        'models': fitted,
        'report': report,
        'plots': plots,
    }


if __name__ == "__main__":
    results = run_salary_post()
    print("\n" + "=" * 60)
    print(f"TRAINING COMPLETE - Champion: {results['champion_metrics']['model_name']}")
    print(f"Champion RMSE: {results['champion_metrics']['rmse']:,.2f}")
    print("=" * 60)
