"""
Schema and sanity checks for the drug reviews dataset.

These checks should run BEFORE preprocessing/training to prevent silent bugs:
- wrong folder / wrong file
- column mismatch between the two raw CSVs
- missing text/label columns
- a label set that does not match the configured classes after cleaning
"""

from __future__ import annotations

import json
from pathlib import Path

import pandas as pd

from drug_reviews.config import DrugReviewsConfig, cfg_to_dict


class SchemaError(ValueError):
    pass


def _missing_cols(df: pd.DataFrame, required: list[str]) -> list[str]:
    cols = set(df.columns.tolist())
    return [c for c in required if c not in cols]


def validate_file_exists(path: Path) -> None:
    if not path.exists():
        raise SchemaError(f"Missing file: {path}")


def read_reviews_csv(path: Path, cfg: DrugReviewsConfig) -> pd.DataFrame:
    """
    Read a raw review CSV with stable dtypes.

    - `uniqueID` is read as pandas string dtype (stable across files).
    - text/label are read as strings; no coercion of the label here so a
      SchemaError can report bad values later.
    """
    validate_file_exists(path)
    dtypes = {cfg.id_col: "string", cfg.text_col: "string", cfg.label_col: "string"}
    df = pd.read_csv(path, low_memory=False)
    for col, dtype in dtypes.items():
        if col in df.columns:
            df[col] = df[col].astype(dtype)
    # Some exports carry the index as an unnamed first column.
    unnamed = [c for c in df.columns if str(c).startswith("Unnamed:")]
    if unnamed and cfg.id_col not in df.columns:
        df = df.rename(columns={unnamed[0]: cfg.id_col})
        df[cfg.id_col] = df[cfg.id_col].astype("string")
    return df


def validate_raw_columns(df_a: pd.DataFrame, df_b: pd.DataFrame, cfg: DrugReviewsConfig) -> None:
    required = [cfg.text_col, cfg.label_col]
    for name, df in (("first", df_a), ("second", df_b)):
        missing = _missing_cols(df, required)
        if missing:
            raise SchemaError(f"{name} raw file is missing required columns: {missing}")

    cols_a = sorted(map(str, df_a.columns))
    cols_b = sorted(map(str, df_b.columns))
    if cols_a != cols_b:
        raise SchemaError(
            "Raw files have different columns and cannot be concatenated. "
            f"first={cols_a}, second={cols_b}"
        )


def load_raw_reviews(data_dir: Path, cfg: DrugReviewsConfig) -> pd.DataFrame:
    """
    Read both raw CSVs, check they share a schema and concatenate rows.

    The originating file name is kept in `cfg.source_col`.
    """
    path_a = data_dir / cfg.raw_train_name
    path_b = data_dir / cfg.raw_test_name
    validate_file_exists(path_a)
    validate_file_exists(path_b)

    df_a = read_reviews_csv(path_a, cfg)
    df_b = read_reviews_csv(path_b, cfg)
    validate_raw_columns(df_a, df_b, cfg)

    df_a[cfg.source_col] = cfg.raw_train_name
    df_b[cfg.source_col] = cfg.raw_test_name
    return pd.concat([df_a, df_b[df_a.columns]], ignore_index=True)


def validate_label_set(df: pd.DataFrame, cfg: DrugReviewsConfig) -> None:
    """
    After cleaning, the observed label set must equal the configured classes.
    """
    if cfg.label_col not in df.columns:
        raise SchemaError(f"Missing label column '{cfg.label_col}'.")
    got = set(df[cfg.label_col].dropna().astype(str).unique().tolist())
    expected = set(cfg.conditions)
    if got != expected:
        extra = sorted(got - expected)
        missing = sorted(expected - got)
        raise SchemaError(
            "Label set after cleaning does not match configured conditions."
            + (f" Unexpected labels: {extra[:10]}." if extra else "")
            + (f" Missing labels: {missing}." if missing else "")
        )


def build_run_summary_raw(df: pd.DataFrame, cfg: DrugReviewsConfig, *, top_k: int = 20) -> dict:
    """
    Lightweight stats to save alongside cleaned data.
    """
    labels = df[cfg.label_col] if cfg.label_col in df.columns else pd.Series(dtype="string")
    summary = {
        "rows": int(len(df)),
        "columns": df.columns.tolist(),
        "missing_rate": {str(k): float(v) for k, v in df.isna().mean().to_dict().items()},
        "n_conditions": int(labels.nunique(dropna=True)),
        "top_conditions": {str(k): int(v) for k, v in labels.value_counts().head(top_k).to_dict().items()},
        "config": cfg_to_dict(cfg),
    }
    if cfg.source_col in df.columns:
        summary["rows_by_source"] = {str(k): int(v) for k, v in df[cfg.source_col].value_counts().to_dict().items()}
    return summary


def write_json(data: dict, out_path: Path) -> None:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out_path.write_text(json.dumps(data, ensure_ascii=False, indent=2, default=str), encoding="utf-8")
