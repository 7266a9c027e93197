"""
Figures for the drug reviews analysis.

Every function renders to a PNG file and returns its path; nothing is shown
interactively (the Agg backend is forced so scripts run headless).
"""

from __future__ import annotations

import math
from pathlib import Path
from typing import Sequence

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import seaborn as sns  # noqa: E402
from wordcloud import WordCloud  # noqa: E402

sns.set_theme(style="whitegrid")


def _save(fig: plt.Figure, out_path: Path) -> Path:
    out_path.parent.mkdir(parents=True, exist_ok=True)
    fig.tight_layout()
    fig.savefig(out_path, dpi=120)
    plt.close(fig)
    return out_path


def plot_condition_counts(counts: pd.DataFrame, out_path: Path, *, label_col: str = "condition") -> Path:
    fig, ax = plt.subplots(figsize=(10, 5))
    sns.barplot(data=counts, x="n", y=label_col, color="steelblue", ax=ax)
    ax.set_title("Reviews per condition")
    ax.set_xlabel("Number of reviews")
    ax.set_ylabel("")
    return _save(fig, out_path)


def plot_top_words(
    freqs: pd.DataFrame,
    out_path: Path,
    *,
    value_col: str = "n",
    label_col: str = "condition",
    title: str = "Most frequent words",
    ncols: int = 5,
) -> Path:
    """
    Horizontal bars of the top words; one facet per condition when `label_col` is present.
    """
    if label_col not in freqs.columns:
        fig, ax = plt.subplots(figsize=(8, 6))
        data = freqs.sort_values(value_col, ascending=True)
        ax.barh(data["word"], data[value_col], color="#74c476")
        ax.set_title(title)
        ax.set_xlabel(value_col)
        return _save(fig, out_path)

    groups = list(freqs.groupby(label_col, sort=True))
    n = max(len(groups), 1)
    ncols = min(ncols, n)
    nrows = math.ceil(n / ncols)
    fig, axes = plt.subplots(nrows, ncols, figsize=(4 * ncols, 3.5 * nrows), squeeze=False)
    palette = sns.color_palette("husl", n)
    for i, (label, part) in enumerate(groups):
        ax = axes[i // ncols][i % ncols]
        data = part.sort_values(value_col, ascending=True)
        ax.barh(data["word"], data[value_col], color=palette[i])
        ax.set_title(str(label), fontsize=10)
        ax.tick_params(axis="both", labelsize=8)
    for j in range(len(groups), nrows * ncols):
        axes[j // ncols][j % ncols].axis("off")
    fig.suptitle(title)
    return _save(fig, out_path)


def plot_tfidf_terms(tfidf: pd.DataFrame, out_path: Path, *, label_col: str = "condition") -> Path:
    return plot_top_words(
        tfidf,
        out_path,
        value_col="tf_idf",
        label_col=label_col,
        title="Highest TF-IDF words per condition",
    )


def plot_wordcloud(freqs: pd.DataFrame, out_path: Path, *, title: str = "", max_words: int = 150) -> Path | None:
    """
    Word cloud from a (word, n) frequency table. Returns None when there is nothing to draw.
    """
    weights = {str(w): float(n) for w, n in zip(freqs["word"], freqs["n"]) if float(n) > 0}
    if not weights:
        print(f"[plots] no words for word cloud '{title}', skipped")
        return None
    wc = WordCloud(
        width=900,
        height=450,
        background_color="white",
        colormap="Paired",
        max_words=max_words,
    ).generate_from_frequencies(weights)
    fig, ax = plt.subplots(figsize=(12, 6))
    ax.imshow(wc, interpolation="bilinear")
    ax.axis("off")
    if title:
        ax.set_title(title, fontsize=16)
    return _save(fig, out_path)


def plot_cv_auc(comparison: pd.DataFrame, out_path: Path) -> Path:
    """
    Mean cross-validated AUC per model with +/- 1 standard error bars.
    """
    data = comparison.sort_values("mean_auc", ascending=True)
    fig, ax = plt.subplots(figsize=(8, 0.6 * len(data) + 1.5))
    ax.errorbar(
        data["mean_auc"],
        data["model"],
        xerr=data["std_err"],
        fmt="o",
        color="#2b8cbe",
        capsize=4,
    )
    ax.set_xlabel("Mean CV ROC AUC (Hand & Till)")
    ax.set_title("Model comparison (selected hyperparameters)")
    return _save(fig, out_path)


def plot_roc_curves(curves: pd.DataFrame, out_path: Path, *, title: str = "ROC curves (one-vs-rest)") -> Path:
    fig, ax = plt.subplots(figsize=(8, 7))
    classes = list(dict.fromkeys(curves["class"].tolist()))
    palette = sns.color_palette("tab10", max(len(classes), 1))
    for i, cls in enumerate(classes):
        part = curves.loc[curves["class"] == cls]
        ax.plot(part["fpr"], part["tpr"], color=palette[i % len(palette)], label=f"{cls} (AUC={part['auc'].iloc[0]:.3f})")
    ax.plot([0, 1], [0, 1], linestyle="--", color="grey", linewidth=1)
    ax.set_xlabel("False positive rate")
    ax.set_ylabel("True positive rate")
    ax.set_title(title)
    ax.legend(loc="lower right", fontsize=8)
    return _save(fig, out_path)


def plot_confusion_matrix(
    cm: pd.DataFrame,
    out_path: Path,
    *,
    title: str = "Confusion matrix",
    labels: Sequence[str] | None = None,
) -> Path:
    if labels is not None:
        cm = cm.reindex(index=list(labels), columns=list(labels), fill_value=0)
    is_int = all(pd.api.types.is_integer_dtype(t) for t in cm.dtypes)
    fig, ax = plt.subplots(figsize=(10, 8))
    sns.heatmap(cm, annot=True, fmt="d" if is_int else ".2f", cmap="Blues", cbar=False, ax=ax)
    ax.set_title(title)
    ax.set_xlabel("Prediction")
    ax.set_ylabel("Truth")
    return _save(fig, out_path)
