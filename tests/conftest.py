"""Shared fixtures: small synthetic tables for every post."""
import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def salary_df():
    rng = np.random.default_rng(0)
    n = 150
    rank = rng.choice(["AsstProf", "AssocProf", "Prof"], size=n, p=[0.3, 0.3, 0.4])
    discipline = rng.choice(["A", "B"], size=n)
    sex = rng.choice(["Male", "Female"], size=n, p=[0.8, 0.2])
    yrs_phd = rng.integers(1, 45, size=n).astype(float)
    yrs_service = np.clip(yrs_phd - rng.integers(0, 6, size=n), 0, None)

    rank_effect = pd.Series(rank).map({"AsstProf": 0, "AssocProf": 13000, "Prof": 45000}).values
    salary = (80000 + rank_effect + 9000 * (discipline == "B")
              + 300 * yrs_phd + rng.normal(0, 6000, size=n))

    df = pd.DataFrame({
        "rank": rank,
        "discipline": discipline,
        "yrs.since.phd": yrs_phd,
        "yrs.service": yrs_service,
        "sex": sex,
        "salary": salary.round(0),
    })
    df.loc[[3, 17], "salary"] = np.nan
    df.loc[42, "yrs.service"] = np.nan
    return df


@pytest.fixture
def small_grids():
    return {
        "svm": {"C": [1.0]},
        "knn": {"n_neighbors": [5]},
        "random_forest": {"n_estimators": [50]},
        "boosted_glm": {"n_estimators": [50]},
        "bayesian_nn": {"hidden_layer_sizes": [(3,)], "alpha": [1.0]},
        "xgboost": {"n_estimators": [50], "max_depth": [2]},
    }


@pytest.fixture
def beta_df():
    rng = np.random.default_rng(1)
    n = 200
    x1 = rng.uniform(0, 1, size=n)
    x2 = rng.uniform(0, 1, size=n)
    mu = 1 / (1 + np.exp(-(0.5 + 1.5 * x1 - 1.0 * x2)))
    phi = 30.0
    y = rng.beta(mu * phi, (1 - mu) * phi)
    return pd.DataFrame({
        "Country": [f"C{i}" for i in range(n)],
        "Rate (%)": [f"{v * 100:.2f}%" for v in y],
        "GDP per capita": x1,
        "Urban share": x2,
    })


@pytest.fixture
def linear_df():
    rng = np.random.default_rng(2)
    n = 200
    x1 = rng.normal(0, 1, size=n)
    x2 = rng.normal(0, 1, size=n)
    y = 1.0 + 2.0 * x1 - 0.5 * x2 + rng.normal(0, 0.5, size=n)
    return pd.DataFrame({"x1": x1, "x2": x2, "y": y})
