import numpy as np
import pandas as pd
import pytest

from blogposts.data_pipeline.preprocess import (
    DataPipeline,
    DataQualityChecker,
    SchemaValidator,
    drop_missing,
    one_hot_encode,
    percent_to_proportion,
    rescale_unit_interval,
    squeeze_unit_interval,
)


def test_drop_missing_leaves_no_missing_values():
    df = pd.DataFrame({"a": [1.0, np.nan, 3.0, 4.0], "b": ["x", "y", None, "z"]})
    cleaned = drop_missing(df)
    assert not cleaned.isnull().any().any()
    assert len(cleaned) == 2


def test_drop_missing_only_checks_given_columns():
    df = pd.DataFrame({"a": [1.0, np.nan, 3.0], "b": [np.nan, 2.0, 3.0]})
    cleaned = drop_missing(df, ["a"])
    assert cleaned["a"].notna().all()
    assert len(cleaned) == 2


def test_drop_missing_treats_infinity_as_missing():
    df = pd.DataFrame({"a": [1.0, np.inf, -np.inf, 2.0]})
    assert len(drop_missing(df)) == 2


def test_rescale_unit_interval_bounds():
    s = pd.Series([-5.0, 0.0, 2.5, 10.0])
    out = rescale_unit_interval(s)
    assert out.between(0, 1).all()
    assert out.min() == 0.0
    assert out.max() == 1.0
    assert out.iloc[1] == pytest.approx(5 / 15)


def test_rescale_constant_series_is_zero():
    out = rescale_unit_interval(pd.Series([3.0, 3.0, 3.0]))
    assert (out == 0.0).all()


def test_rescale_keeps_missing():
    out = rescale_unit_interval(pd.Series([1.0, np.nan, 3.0]))
    assert np.isnan(out.iloc[1])
    assert out.dropna().between(0, 1).all()


def test_percent_to_proportion_strings_and_numbers():
    assert percent_to_proportion(pd.Series(["87.5%", " 10 %", "n/a"])).iloc[:2].tolist() == [0.875, 0.1]
    assert np.isnan(percent_to_proportion(pd.Series(["87.5%", "n/a"])).iloc[1])
    assert percent_to_proportion(pd.Series([50.0, 100.0])).tolist() == [0.5, 1.0]


def test_squeeze_moves_boundaries_inside():
    out = squeeze_unit_interval(pd.Series([0.0, 0.5, 1.0, 0.25]))
    assert ((out > 0) & (out < 1)).all()
    assert out.iloc[1] == pytest.approx(0.5)


def test_squeeze_rejects_values_outside_unit_interval():
    with pytest.raises(ValueError):
        squeeze_unit_interval(pd.Series([0.2, 1.4]))


def test_one_hot_encode_drops_reference_level():
    df = pd.DataFrame({"rank": ["a", "b", "c", "a"], "x": [1, 2, 3, 4]})
    out = one_hot_encode(df, ["rank", "missing"])
    assert "rank" not in out.columns
    assert sorted(c for c in out.columns if c.startswith("rank_")) == ["rank_b", "rank_c"]


def test_schema_validator_reports_problems():
    df = pd.DataFrame({"a": ["x", "y"], "b": [1, 2]})
    is_valid, errors = SchemaValidator.validate_schema(df, ["a", "b", "c"], ["a", "b"])
    assert not is_valid
    assert any("Missing required columns" in e for e in errors)
    assert any("'a' expected numeric" in e for e in errors)


def test_schema_validator_coerces_numeric():
    df = pd.DataFrame({"a": ["1", "oops", "3"]})
    out = SchemaValidator.coerce_numeric(df, ["a"])
    assert pd.api.types.is_numeric_dtype(out["a"])
    assert out["a"].isna().sum() == 1


def test_detect_outliers_iqr():
    s = pd.Series([1.0, 2.0, 2.0, 3.0, 2.5, 100.0])
    mask = DataQualityChecker.detect_outliers_iqr(s, multiplier=1.5)
    assert mask.tolist() == [False, False, False, False, False, True]


def test_pipeline_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        DataPipeline(tmp_path / "nope.csv").load_data()


def test_pipeline_clean_before_load(tmp_path):
    with pytest.raises(ValueError):
        DataPipeline(tmp_path / "nope.csv").clean_data()


def test_pipeline_load_and_clean(tmp_path):
    path = tmp_path / "data.csv"
    pd.DataFrame({
        "salary": ["100", "bad", "300", None],
        "rank": ["a", "b", "c", "d"],
        "note": [None, None, None, None],
    }).to_csv(path, index=False)

    pipeline = DataPipeline(path, required_columns=["salary", "rank"], numeric_columns=["salary"])
    pipeline.load_data()
    cleaned = pipeline.clean_data()

    assert cleaned["salary"].tolist() == [100.0, 300.0]
    assert cleaned[["salary", "rank"]].notna().all().all()
    assert len(pipeline.get_summary()) == 3


def test_pipeline_save_processed(tmp_path, monkeypatch):
    path = tmp_path / "raw.csv"
    pd.DataFrame({"a": [1.0, None, 3.0]}).to_csv(path, index=False)
    monkeypatch.setattr("blogposts.config.PROCESSED_DATA_DIR", tmp_path / "processed")

    pipeline = DataPipeline(path)
    with pytest.raises(ValueError):
        pipeline.save_processed("clean.csv")

    pipeline.load_data()
    pipeline.clean_data()
    saved = pipeline.save_processed("clean.csv")

    assert saved == str(tmp_path / "processed" / "clean.csv")
    assert pd.read_csv(saved)["a"].tolist() == [1.0, 3.0]
