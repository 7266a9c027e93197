"""
Drug reviews — feature pipeline.

Recipe: tokenize -> remove stopwords -> cap vocabulary -> TF-IDF vectors.
The same vectorizer definition is used by every model so tuning results are
comparable; only the vocabulary cap (`max_features`) is tuned.
"""

from __future__ import annotations

import numpy as np
import pandas as pd
from scipy import sparse
from sklearn.base import BaseEstimator, TransformerMixin
from sklearn.feature_extraction.text import TfidfVectorizer

from drug_reviews.config import DrugReviewsConfig
from drug_reviews.text_stats import build_stopwords


def build_vectorizer(cfg: DrugReviewsConfig, *, max_tokens: int | None = None) -> TfidfVectorizer:
    """
    TF-IDF over word unigrams with stopword removal and a vocabulary cap.
    """
    cap = int(max_tokens) if max_tokens is not None else int(cfg.max_tokens[0])
    return TfidfVectorizer(
        lowercase=True,
        token_pattern=cfg.token_pattern,
        stop_words=sorted(build_stopwords(cfg)),
        max_features=cap,
        dtype=np.float32,
    )


class DenseTransformer(TransformerMixin, BaseEstimator):
    """
    Sparse -> dense. LinearDiscriminantAnalysis does not accept sparse input.
    """

    def fit(self, X, y=None):
        return self

    def transform(self, X):
        if sparse.issparse(X):
            return X.toarray()
        return np.asarray(X)


def build_model_input(df: pd.DataFrame, cfg: DrugReviewsConfig) -> tuple[list[str], np.ndarray]:
    """
    (X, y) ready for a text pipeline: X is a list of review strings, y the condition labels.
    """
    for col in (cfg.text_col, cfg.label_col):
        if col not in df.columns:
            raise KeyError(f"Missing column '{col}' in df.")
    X = df[cfg.text_col].astype("string").fillna("").astype(str).tolist()
    y = df[cfg.label_col].astype(str).to_numpy()
    return X, y
