"""
Metrics utilities for drug review condition classification.

Primary metric: multiclass ROC AUC (Hand & Till, i.e. one-vs-one macro average).

This module provides:
- multiclass_auc: Hand & Till AUC from class probabilities
- roc_curves_ovr: one-vs-rest ROC curve points per class (for plotting)
- macro_f1_score / per_class_f1_report / confusion_matrix_df
- evaluate: single entrypoint used by the training script
"""

from __future__ import annotations

from typing import Iterable, Sequence

import numpy as np
import pandas as pd
from sklearn.metrics import (
    accuracy_score,
    auc,
    confusion_matrix,
    f1_score,
    precision_recall_fscore_support,
    roc_auc_score,
    roc_curve,
)


def _as_1d_labels(y: Iterable, classes: Sequence | None = None) -> np.ndarray:
    """
    Convert an input vector to a 1D numpy array of labels.

    - If a 2D array is provided (e.g., probabilities), argmax(axis=1) is used,
      mapped through `classes` when given.
    """
    if isinstance(y, pd.Series):
        y = y.to_numpy()
    arr = np.asarray(y)
    if arr.ndim == 2:
        if arr.shape[1] == 1:
            arr = arr.reshape(-1)
        else:
            idx = arr.argmax(axis=1)
            arr = np.asarray(classes)[idx] if classes is not None else idx
    return arr.reshape(-1)


def _check_lengths(yt: np.ndarray, n: int) -> None:
    if len(yt) != n:
        raise ValueError(f"y_true and y_pred length mismatch: {len(yt)} != {n}")


def _resolve_labels(y_true: np.ndarray, y_pred: np.ndarray, labels: Sequence | None) -> list:
    if labels is None:
        # Match sklearn's default behavior when labels=None: use the union of labels in y_true and y_pred.
        return sorted(np.unique(np.concatenate([y_true, y_pred])).tolist())
    return list(labels)


def multiclass_auc(y_true: Iterable, proba: np.ndarray, classes: Sequence) -> float:
    """
    Hand & Till multiclass AUC.

    `proba` columns must follow `classes` (the fitted estimator's `classes_`).
    """
    yt = _as_1d_labels(y_true)
    p = np.asarray(proba, dtype=float)
    _check_lengths(yt, p.shape[0])
    if p.ndim != 2 or p.shape[1] != len(classes):
        raise ValueError(f"proba shape {p.shape} does not match {len(classes)} classes")
    # Guard against tiny float drift; roc_auc_score requires rows summing to 1.
    row_sum = p.sum(axis=1, keepdims=True)
    row_sum[row_sum == 0] = 1.0
    p = p / row_sum
    return float(roc_auc_score(yt, p, multi_class="ovo", average="macro", labels=list(classes)))


def roc_curves_ovr(y_true: Iterable, proba: np.ndarray, classes: Sequence) -> pd.DataFrame:
    """
    One-vs-rest ROC curve points for each class.

    Columns: class, fpr, tpr, threshold, auc
    """
    yt = _as_1d_labels(y_true)
    p = np.asarray(proba, dtype=float)
    _check_lengths(yt, p.shape[0])

    parts: list[pd.DataFrame] = []
    for j, cls in enumerate(classes):
        positive = yt == cls
        if positive.all() or not positive.any():
            # ROC is undefined without both positives and negatives.
            continue
        fpr, tpr, thr = roc_curve(positive.astype(int), p[:, j])
        parts.append(
            pd.DataFrame(
                {
                    "class": cls,
                    "fpr": fpr,
                    "tpr": tpr,
                    "threshold": thr,
                    "auc": float(auc(fpr, tpr)),
                }
            )
        )
    if not parts:
        return pd.DataFrame(columns=["class", "fpr", "tpr", "threshold", "auc"])
    return pd.concat(parts, ignore_index=True)


def macro_f1_score(y_true: Iterable, y_pred: Iterable, labels: Sequence | None = None) -> float:
    yt = _as_1d_labels(y_true)
    yp = _as_1d_labels(y_pred, labels)
    _check_lengths(yt, len(yp))
    if labels is None:
        return float(f1_score(yt, yp, average="macro", zero_division=0))
    return float(f1_score(yt, yp, average="macro", labels=list(labels), zero_division=0))


def per_class_f1_report(y_true: Iterable, y_pred: Iterable, labels: Sequence | None = None) -> pd.DataFrame:
    """
    Per-class precision/recall/f1/support report as a DataFrame.
    """
    yt = _as_1d_labels(y_true)
    yp = _as_1d_labels(y_pred, labels)
    _check_lengths(yt, len(yp))
    lbls = _resolve_labels(yt, yp, labels)
    p, r, f1, s = precision_recall_fscore_support(yt, yp, labels=lbls, zero_division=0)
    return pd.DataFrame(
        {"precision": p, "recall": r, "f1": f1, "support": s},
        index=pd.Index(lbls, name="class"),
    )


def confusion_matrix_df(
    y_true: Iterable,
    y_pred: Iterable,
    labels: Sequence | None = None,
    *,
    normalize: str | None = None,
) -> pd.DataFrame:
    """
    Confusion matrix as a DataFrame (rows = truth, columns = prediction).

    - normalize: None, "true", "pred", or "all" (same as sklearn)
    """
    yt = _as_1d_labels(y_true)
    yp = _as_1d_labels(y_pred, labels)
    _check_lengths(yt, len(yp))
    lbls = _resolve_labels(yt, yp, labels)
    cm = confusion_matrix(yt, yp, labels=lbls, normalize=normalize)
    return pd.DataFrame(cm, index=pd.Index(lbls, name="truth"), columns=pd.Index(lbls, name="prediction"))


def evaluate(y_true: Iterable, proba: np.ndarray, classes: Sequence) -> dict[str, float]:
    """
    Single entrypoint for held-out evaluation from class probabilities.
    """
    yt = _as_1d_labels(y_true)
    pred = _as_1d_labels(proba, classes)
    return {
        "auc": multiclass_auc(yt, proba, classes),
        "accuracy": float(accuracy_score(yt, pred)),
        "macro_f1": macro_f1_score(yt, pred, labels=classes),
    }
