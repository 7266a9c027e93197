"""
Exploratory text statistics for drug reviews.

- condition counts
- word frequencies (overall / per condition), stopwords removed
- TF-IDF per condition: each condition is treated as one document, so the
  top terms are the words most characteristic of that condition
- review length summary
"""

from __future__ import annotations

import math
import re
from collections import Counter
from functools import lru_cache

import pandas as pd
from sklearn.feature_extraction.text import ENGLISH_STOP_WORDS

from drug_reviews.config import DrugReviewsConfig


@lru_cache(maxsize=8)
def _token_re(pattern: str) -> re.Pattern:
    return re.compile(pattern)


def tokenize(text: str, *, pattern: str = DrugReviewsConfig.token_pattern) -> list[str]:
    """
    Lowercase word tokens (letters + apostrophes, at least 2 chars).
    """
    if text is None or (isinstance(text, float) and math.isnan(text)):
        return []
    return _token_re(pattern).findall(str(text).lower())


def build_stopwords(cfg: DrugReviewsConfig) -> frozenset[str]:
    return frozenset(ENGLISH_STOP_WORDS) | frozenset(w.lower() for w in cfg.extra_stopwords)


def _tokens_no_stop(texts: pd.Series, cfg: DrugReviewsConfig) -> pd.Series:
    stop = build_stopwords(cfg)
    return texts.astype("string").fillna("").map(
        lambda t: [w for w in tokenize(t, pattern=cfg.token_pattern) if w not in stop]
    )


def condition_counts(df: pd.DataFrame, cfg: DrugReviewsConfig) -> pd.DataFrame:
    if cfg.label_col not in df.columns:
        raise KeyError(f"Missing label column '{cfg.label_col}' in df.")
    vc = df[cfg.label_col].value_counts()
    out = vc.rename_axis(cfg.label_col).reset_index(name="n")
    out["share"] = out["n"] / max(int(out["n"].sum()), 1)
    return out


def word_frequencies(
    df: pd.DataFrame,
    cfg: DrugReviewsConfig,
    *,
    by_condition: bool = False,
    top_n: int | None = 20,
) -> pd.DataFrame:
    """
    Token counts with stopwords removed.

    Columns: [condition,] word, n  (sorted by n desc, ties by word)
    """
    if cfg.text_col not in df.columns:
        raise KeyError(f"Missing text column '{cfg.text_col}' in df.")
    tokens = _tokens_no_stop(df[cfg.text_col], cfg)

    if not by_condition:
        counter: Counter[str] = Counter()
        for toks in tokens:
            counter.update(toks)
        out = pd.DataFrame(counter.items(), columns=["word", "n"])
        out = out.sort_values(["n", "word"], ascending=[False, True]).reset_index(drop=True)
        return out.head(top_n) if top_n is not None else out

    rows: list[pd.DataFrame] = []
    for label, toks in tokens.groupby(df[cfg.label_col], sort=True):
        counter = Counter()
        for t in toks:
            counter.update(t)
        part = pd.DataFrame(counter.items(), columns=["word", "n"])
        part = part.sort_values(["n", "word"], ascending=[False, True])
        if top_n is not None:
            part = part.head(top_n)
        part.insert(0, cfg.label_col, label)
        rows.append(part)
    if not rows:
        return pd.DataFrame(columns=[cfg.label_col, "word", "n"])
    return pd.concat(rows, ignore_index=True)


def tfidf_by_condition(df: pd.DataFrame, cfg: DrugReviewsConfig, *, top_n: int | None = 10) -> pd.DataFrame:
    """
    TF-IDF where each condition's pooled reviews form one document.

    tf     = n / total tokens in that condition
    idf    = ln(n_conditions / n_conditions_containing_term)
    tf_idf = tf * idf

    Terms used by every condition get idf == 0.
    """
    counts = word_frequencies(df, cfg, by_condition=True, top_n=None)
    if counts.empty:
        return pd.DataFrame(columns=[cfg.label_col, "word", "n", "tf", "idf", "tf_idf"])

    n_docs = counts[cfg.label_col].nunique()
    totals = counts.groupby(cfg.label_col)["n"].transform("sum")
    doc_freq = counts.groupby("word")[cfg.label_col].transform("nunique")

    out = counts.copy()
    out["tf"] = out["n"] / totals
    out["idf"] = (n_docs / doc_freq).map(math.log)
    out["tf_idf"] = out["tf"] * out["idf"]
    out = out.sort_values([cfg.label_col, "tf_idf", "word"], ascending=[True, False, True])
    if top_n is not None:
        out = out.groupby(cfg.label_col, sort=True).head(top_n)
    return out.reset_index(drop=True)


def review_length_stats(df: pd.DataFrame, cfg: DrugReviewsConfig) -> pd.DataFrame:
    """
    Token-length describe() per condition (stopwords kept).
    """
    lengths = df[cfg.text_col].astype("string").fillna("").map(lambda t: len(tokenize(t, pattern=cfg.token_pattern)))
    out = lengths.groupby(df[cfg.label_col]).describe()
    out.index.name = cfg.label_col
    return out.reset_index()
