"""
Drug reviews — preprocessing.

Goals
-----
- Keep only the columns the analysis needs
- Clean review text (HTML entities, wrapping quotes, whitespace)
- Drop malformed rows (scraped HTML fragments in `condition`, missing values)
- Sample a fixed number of rows reproducibly
- Consolidate the long-tailed condition vocabulary into the configured label set

Quick before/after examples
---------------------------
- condition "3</span> users found this comment helpful." -> row dropped
- condition "Not Listed / Othe"                          -> row dropped
- condition "Major Depressive Disorder"                  -> "Depression"
- condition "Chronic Pain"                               -> "Pain"
- review '"I&#039;ve been on it  for 2 weeks"'           -> "I've been on it for 2 weeks"
"""

from __future__ import annotations

import html
import re
from typing import Iterable, Sequence

import pandas as pd

from drug_reviews import schema
from drug_reviews.config import DrugReviewsConfig

_WS_RE = re.compile(r"\s+")
_WRAPPING_QUOTES_RE = re.compile(r'^"+|"+$')


def _collapse_spaces(text: str) -> str:
    return _WS_RE.sub(" ", text).strip()


def _clean_text_value(text: str) -> str:
    # Entities can be double-encoded ("&amp;#039;"), so unescape twice.
    v = html.unescape(html.unescape(text))
    v = _collapse_spaces(v)
    v = _WRAPPING_QUOTES_RE.sub("", v)
    return _collapse_spaces(v)


def prune_columns(df: pd.DataFrame, cfg: DrugReviewsConfig) -> pd.DataFrame:
    """
    Keep contract columns (+ source tag if present). Text/label are mandatory.
    """
    for col in (cfg.text_col, cfg.label_col):
        if col not in df.columns:
            raise KeyError(f"Missing required column '{col}' in df.")
    keep = [c for c in cfg.keep_cols if c in df.columns]
    if cfg.source_col in df.columns:
        keep.append(cfg.source_col)
    return df[keep].copy()


def clean_review_text(df: pd.DataFrame, cfg: DrugReviewsConfig, *, text_col: str | None = None) -> pd.DataFrame:
    """
    Clean free text: unescape HTML entities, strip wrapping quotes, collapse whitespace.
    Empty results become missing (dropped later by drop_malformed_rows).
    """
    col = text_col or cfg.text_col
    if col not in df.columns:
        raise KeyError(f"Missing text column '{col}' in df.")

    df = df.copy()
    s = df[col].astype("string").astype(object)
    s = s.map(lambda x: _clean_text_value(str(x)), na_action="ignore").astype("string")
    df[col] = s.replace({"": pd.NA})
    return df


def is_malformed_condition(value: object, patterns: Iterable[str]) -> bool:
    if value is None or pd.isna(value):
        return True
    v = str(value).strip()
    if not v:
        return True
    return any(re.search(p, v, flags=re.IGNORECASE) for p in patterns)


def drop_malformed_rows(df: pd.DataFrame, cfg: DrugReviewsConfig) -> pd.DataFrame:
    """
    Drop rows with a missing review/condition or a condition matching a malformed pattern.
    """
    for col in (cfg.text_col, cfg.label_col):
        if col not in df.columns:
            raise KeyError(f"Missing required column '{col}' in df.")

    has_text = df[cfg.text_col].notna()
    bad_label = df[cfg.label_col].map(lambda v: is_malformed_condition(v, cfg.malformed_patterns)).astype(bool)
    return df.loc[has_text & ~bad_label].reset_index(drop=True)


def sample_rows(df: pd.DataFrame, n: int, *, seed: int) -> pd.DataFrame:
    """
    Reproducible sample without replacement. If n >= len(df) every row is kept (shuffled).
    """
    if int(n) < 1:
        raise ValueError(f"sample size must be >= 1, got {n}")
    n_eff = min(int(n), len(df))
    return df.sample(n=n_eff, random_state=int(seed), replace=False).reset_index(drop=True)


def relabel_condition(value: str, rules: Sequence[tuple[str, str]]) -> str:
    """
    Map a raw condition to its consolidated label; the first matching rule wins.
    Values no rule matches are returned stripped (and later filtered out).
    """
    v = str(value).strip()
    for pattern, label in rules:
        if re.search(pattern, v, flags=re.IGNORECASE):
            return label
    return v


def relabel_conditions(df: pd.DataFrame, cfg: DrugReviewsConfig) -> pd.DataFrame:
    if cfg.label_col not in df.columns:
        raise KeyError(f"Missing label column '{cfg.label_col}' in df.")
    df = df.copy()
    raw = df[cfg.label_col].astype("string")
    df[cfg.label_raw_col] = raw
    df[cfg.label_col] = (
        raw.astype(object).map(lambda x: relabel_condition(str(x), cfg.relabel_rules), na_action="ignore").astype("string")
    )
    return df


def restrict_to_label_set(df: pd.DataFrame, cfg: DrugReviewsConfig) -> pd.DataFrame:
    mask = df[cfg.label_col].isin(list(cfg.conditions))
    return df.loc[mask.fillna(False).astype(bool)].reset_index(drop=True)


def preprocess_reviews_df(
    df: pd.DataFrame,
    cfg: DrugReviewsConfig,
    *,
    sample_size: int | None = None,
    validate: bool = True,
) -> pd.DataFrame:
    """
    Full preprocessing pipeline (raw concatenated df -> cleaned df).

    Order is fixed: prune -> clean text -> drop malformed -> sample -> relabel -> restrict.
    """
    out = prune_columns(df, cfg)
    out = clean_review_text(out, cfg)
    out = drop_malformed_rows(out, cfg)

    n = cfg.sample_size if sample_size is None else sample_size
    out = sample_rows(out, n, seed=cfg.seed)

    out = relabel_conditions(out, cfg)
    out = restrict_to_label_set(out, cfg)

    if out.empty:
        raise schema.SchemaError("No rows left after preprocessing; check relabel rules and input files.")
    if validate:
        schema.validate_label_set(out, cfg)
    return out
