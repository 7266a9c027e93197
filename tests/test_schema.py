"""
Tests for raw loading and schema checks.
"""

import pandas as pd
import pytest

from drug_reviews import schema


class TestLoadRawReviews:
    """Test cases for reading + concatenating the two raw files."""

    def test_missing_file_raises(self, tmp_path, cfg):
        with pytest.raises(schema.SchemaError, match="Missing file"):
            schema.load_raw_reviews(tmp_path, cfg)

    def test_concatenates_rows_and_tags_source(self, raw_dir, cfg):
        a = pd.read_csv(raw_dir / cfg.raw_train_name)
        b = pd.read_csv(raw_dir / cfg.raw_test_name)
        df = schema.load_raw_reviews(raw_dir, cfg)

        assert len(df) == len(a) + len(b)
        assert df.index.is_unique
        assert set(df[cfg.source_col]) == {cfg.raw_train_name, cfg.raw_test_name}
        assert pd.api.types.is_string_dtype(df[cfg.id_col])

    def test_column_mismatch_raises(self, raw_dir, cfg):
        b = pd.read_csv(raw_dir / cfg.raw_test_name).drop(columns=["usefulCount"])
        b.to_csv(raw_dir / cfg.raw_test_name, index=False)
        with pytest.raises(schema.SchemaError, match="different columns"):
            schema.load_raw_reviews(raw_dir, cfg)

    def test_missing_text_column_raises(self, cfg):
        a = pd.DataFrame({"condition": ["Acne"]})
        with pytest.raises(schema.SchemaError, match="review"):
            schema.validate_raw_columns(a, a, cfg)


class TestValidateLabelSet:
    """Test cases for the post-cleaning label contract."""

    def test_exact_label_set_passes(self, clean_df, cfg):
        schema.validate_label_set(clean_df, cfg)

    def test_unexpected_label_raises(self, clean_df, cfg):
        df = clean_df.copy()
        df.loc[0, cfg.label_col] = "Hypertension"
        with pytest.raises(schema.SchemaError, match="Unexpected labels"):
            schema.validate_label_set(df, cfg)

    def test_missing_label_raises(self, clean_df, cfg):
        df = clean_df.loc[clean_df[cfg.label_col] != "ADHD"]
        with pytest.raises(schema.SchemaError, match="Missing labels"):
            schema.validate_label_set(df, cfg)


def test_run_summary_counts_conditions(raw_dir, cfg, tmp_path):
    df = schema.load_raw_reviews(raw_dir, cfg)
    summary = schema.build_run_summary_raw(df, cfg)
    assert summary["rows"] == len(df)
    assert summary["n_conditions"] == df[cfg.label_col].nunique()

    out = tmp_path / "out" / "summary.json"
    schema.write_json(summary, out)
    assert out.exists()
