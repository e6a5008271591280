"""
Data Preprocessing for the Analysis Posts
==========================================
Loading and cleaning of the small tabular datasets used by every post.

This module handles:
- Loading raw CSV files
- Schema and dtype validation
- Omitting rows with missing values before model fitting
- Rescaling columns into the unit interval
- Squeezing proportions into the open unit interval for beta regression
- One-hot encoding of categorical predictors

Author: Analysis Posts Team
"""
import pandas as pd
import numpy as np
import os
from typing import Tuple, Optional, List
import logging

from ..config import LOGGING_CONFIG, get_processed_data_path

# Configure logging
logging.basicConfig(
    level=LOGGING_CONFIG.log_level,
    format=LOGGING_CONFIG.log_format
)
logger = logging.getLogger(__name__)


class SchemaValidator:
    """Validates the columns and dtypes of a loaded table."""

    @staticmethod
    def validate_schema(
        df: pd.DataFrame,
        required_columns: Optional[List[str]] = None,
        numeric_columns: Optional[List[str]] = None
    ) -> Tuple[bool, List[str]]:
        """
        Validate DataFrame columns against the expected schema.

        Args:
            df: DataFrame to validate
            required_columns: Columns that must be present
            numeric_columns: Columns that must hold numbers

        Returns:
            Tuple of (is_valid, list of error messages)
        """
        errors = []

        missing_cols = set(required_columns or []) - set(df.columns)
        if missing_cols:
            errors.append(f"Missing required columns: {sorted(missing_cols)}")

        for col in numeric_columns or []:
            if col in df.columns and not pd.api.types.is_numeric_dtype(df[col]):
                errors.append(f"Column '{col}' expected numeric, got {df[col].dtype}")

        return len(errors) == 0, errors

    @staticmethod
    def coerce_numeric(df: pd.DataFrame, columns: List[str]) -> pd.DataFrame:
        """
        Convert columns to numbers; unparseable values become NaN.

        Args:
            df: DataFrame to convert
            columns: Columns to coerce

        Returns:
            DataFrame with numeric dtypes
        """
        df = df.copy()
        for col in columns:
            if col in df.columns:
                df[col] = pd.to_numeric(df[col], errors='coerce')
        return df


class DataQualityChecker:
    """Reports data quality issues."""

    @staticmethod
    def missing_report(df: pd.DataFrame) -> pd.Series:
        """Count missing values per column, largest first."""
        counts = df.isnull().sum().sort_values(ascending=False)
        return counts[counts > 0]

    @staticmethod
    def detect_outliers_iqr(series: pd.Series, multiplier: float = 3.0) -> pd.Series:
        """
        Detect outliers using IQR method.

        Args:
            series: Numeric series to check
            multiplier: IQR multiplier for outlier threshold

        Returns:
            Boolean mask of outliers
        """
        Q1 = series.quantile(0.25)
        Q3 = series.quantile(0.75)
        IQR = Q3 - Q1
        lower_bound = Q1 - multiplier * IQR
        upper_bound = Q3 + multiplier * IQR
        return (series < lower_bound) | (series > upper_bound)


def drop_missing(df: pd.DataFrame, columns: Optional[List[str]] = None) -> pd.DataFrame:
    """
    Omit rows with a missing value in any of the given columns.

    Args:
        df: Input DataFrame
        columns: Columns to check (all columns when None)

    Returns:
        DataFrame without missing values in those columns
    """
    subset = list(columns) if columns is not None else None
    cleaned = df.replace([np.inf, -np.inf], np.nan).dropna(subset=subset)
    dropped = len(df) - len(cleaned)
    if dropped:
        logger.info(f"Dropped {dropped} rows with missing values ({len(cleaned)} remain)")
    return cleaned


def rescale_unit_interval(series: pd.Series) -> pd.Series:
    """
    Min-max rescale a numeric series into [0, 1].

    A constant series maps to zeros. Missing values stay missing.
    """
    values = pd.to_numeric(series, errors='coerce').astype(float)
    lo, hi = values.min(), values.max()
    if pd.isna(lo) or hi == lo:
        return values.where(values.isna(), 0.0)
    return ((values - lo) / (hi - lo)).clip(0.0, 1.0)


def percent_to_proportion(series: pd.Series) -> pd.Series:
    """Turn values such as '87.5%' or 87.5 into 0.875."""
    if not pd.api.types.is_numeric_dtype(series):
        series = series.astype(str).str.replace('%', '', regex=False).str.strip()
    return pd.to_numeric(series, errors='coerce') / 100.0


def squeeze_unit_interval(series: pd.Series) -> pd.Series:
    """
    Map values in [0, 1] into the open interval (0, 1).

    Uses (y * (n - 1) + 0.5) / n from Smithson & Verkuilen (2006), so exact
    zeros and ones become admissible for a beta likelihood.
    """
    values = series.astype(float)
    observed = values.dropna()
    if ((observed < 0) | (observed > 1)).any():
        raise ValueError("squeeze_unit_interval expects values in [0, 1]")
    n = len(observed)
    return (values * (n - 1) + 0.5) / n


def one_hot_encode(
    df: pd.DataFrame,
    columns: List[str],
    drop_first: bool = True
) -> pd.DataFrame:
    """One-hot encode categorical columns, keeping a reference level out."""
    present = [c for c in columns if c in df.columns]
    if not present:
        return df.copy()
    return pd.get_dummies(df, columns=present, drop_first=drop_first, dtype=float)


class DataPipeline:
    """
    Load-and-clean pipeline shared by the posts.

    Attributes:
        raw_data_path: Path to raw CSV file
        required_columns: Columns that must be present
        numeric_columns: Columns coerced to numbers
        df: Loaded DataFrame
    """

    def __init__(
        self,
        raw_data_path: str,
        required_columns: Optional[List[str]] = None,
        numeric_columns: Optional[List[str]] = None
    ):
        self.raw_data_path = str(raw_data_path)
        self.required_columns = list(required_columns or [])
        self.numeric_columns = list(numeric_columns or [])
        self.df = None

    def load_data(self) -> pd.DataFrame:
        """
        Load the raw CSV with validation.

        Returns:
            Loaded DataFrame
        """
        logger.info(f"Loading data from {self.raw_data_path}...")

        if not os.path.exists(self.raw_data_path):
            raise FileNotFoundError(f"Data file not found: {self.raw_data_path}")

        self.df = pd.read_csv(self.raw_data_path)
        logger.info(f"Data loaded. Shape: {self.df.shape}")

        is_valid, errors = SchemaValidator.validate_schema(
            self.df, self.required_columns, self.numeric_columns
        )
        if not is_valid:
            for error in errors:
                logger.warning(f"Schema validation: {error}")

        return self.df

    def clean_data(self, columns: Optional[List[str]] = None) -> pd.DataFrame:
        """
        Coerce numeric columns and omit rows with missing values.

        Args:
            columns: Columns checked for missing values (defaults to the
                required columns, or all columns if none were given)

        Returns:
            Cleaned DataFrame
        """
        if self.df is None:
            raise ValueError("Data not loaded. Call load_data() first.")

        logger.info("Cleaning data...")
        initial_len = len(self.df)

        self.df = SchemaValidator.coerce_numeric(self.df, self.numeric_columns)

        missing = DataQualityChecker.missing_report(self.df)
        if len(missing):
            logger.info(f"Missing values per column:\n{missing.to_string()}")

        subset = columns if columns is not None else (self.required_columns or None)
        self.df = drop_missing(self.df, subset).reset_index(drop=True)

        logger.info(f"Data cleaning complete. Rows: {initial_len} -> {len(self.df)}")
        return self.df

    def save_processed(self, filename: Optional[str] = None) -> str:
        """
        Save processed data to CSV.

        Returns:
            Path to saved file
        """
        if self.df is None:
            raise ValueError("Data not loaded. Call load_data() first.")

        output_path = get_processed_data_path(filename)
        output_path.parent.mkdir(parents=True, exist_ok=True)
        self.df.to_csv(output_path, index=False)
        logger.info(f"Processed data saved to {output_path}")
        return str(output_path)

    def get_summary(self) -> pd.DataFrame:
        """Descriptive statistics of the cleaned table."""
        if self.df is None:
            raise ValueError("Data not loaded. Call load_data() first.")
        summary = self.df.describe(include='all').T
        logger.info(f"\nData summary:\n{summary.to_string()}")
        return summary
