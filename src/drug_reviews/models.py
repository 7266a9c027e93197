"""
Model zoo for drug review condition classification.

Seven off-the-shelf classifiers share the same TF-IDF front end:
- naive_bayes     MultinomialNB
- lda             LinearDiscriminantAnalysis (shrinkage, dense input)
- ridge           multinomial LogisticRegression, L2
- lasso           multinomial LogisticRegression, L1
- elastic_net     multinomial LogisticRegression, elastic-net
- knn             KNeighborsClassifier
- decision_tree   DecisionTreeClassifier

Each spec carries its grid and a "simplicity" ordering used by the
one-standard-error rule: a list of (param, ascending) pairs that sorts
candidates from the simplest model to the most complex one.
"""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any, Callable, Sequence

import sklearn
from sklearn.discriminant_analysis import LinearDiscriminantAnalysis
from sklearn.linear_model import LogisticRegression
from sklearn.naive_bayes import MultinomialNB
from sklearn.neighbors import KNeighborsClassifier
from sklearn.pipeline import Pipeline
from sklearn.tree import DecisionTreeClassifier

from drug_reviews.config import DrugReviewsConfig
from drug_reviews.features import DenseTransformer, build_vectorizer

VOCAB_PARAM = "tfidf__max_features"

# `penalty=` is deprecated from scikit-learn 1.8 on; l1_ratio alone selects the penalty there.
_SKLEARN_VERSION = tuple(int(p) for p in re.findall(r"\d+", sklearn.__version__)[:2])


@dataclass(frozen=True)
class ModelSpec:
    name: str
    build: Callable[[DrugReviewsConfig], Any]
    param_grid: dict[str, list]
    simplicity: list[tuple[str, bool]] = field(default_factory=list)
    needs_dense: bool = False


def _logreg(l1_ratio: float, cfg: DrugReviewsConfig) -> LogisticRegression:
    # l1_ratio 0 = L2 (ridge), 1 = L1 (lasso), in between = elastic net; saga fits all three on sparse input.
    kw: dict[str, Any] = {}
    if _SKLEARN_VERSION < (1, 8):
        kw["penalty"] = "elasticnet"
    return LogisticRegression(l1_ratio=l1_ratio, solver="saga", max_iter=2000, random_state=cfg.seed, **kw)


def _grid(cfg: DrugReviewsConfig, clf_grid: dict[str, list]) -> dict[str, list]:
    grid = {VOCAB_PARAM: list(cfg.max_tokens)}
    grid.update({f"clf__{k}": list(v) for k, v in clf_grid.items()})
    return grid


def _order(clf_order: Sequence[tuple[str, bool]]) -> list[tuple[str, bool]]:
    # Smaller vocabulary is simpler; classifier params take precedence.
    return [(f"clf__{k}", asc) for k, asc in clf_order] + [(VOCAB_PARAM, True)]


def _specs(cfg: DrugReviewsConfig) -> list[ModelSpec]:
    c_grid = [0.01, 0.1, 1.0, 10.0]
    return [
        ModelSpec(
            name="naive_bayes",
            build=lambda c: MultinomialNB(),
            param_grid=_grid(cfg, {"alpha": [0.01, 0.1, 0.5, 1.0]}),
            simplicity=_order([("alpha", False)]),
        ),
        ModelSpec(
            name="lda",
            build=lambda c: LinearDiscriminantAnalysis(solver="lsqr"),
            param_grid=_grid(cfg, {"shrinkage": [0.1, 0.3, 0.5, 0.9]}),
            simplicity=_order([("shrinkage", False)]),
            needs_dense=True,
        ),
        ModelSpec(
            name="ridge",
            build=lambda c: _logreg(0.0, c),
            param_grid=_grid(cfg, {"C": c_grid}),
            simplicity=_order([("C", True)]),
        ),
        ModelSpec(
            name="lasso",
            build=lambda c: _logreg(1.0, c),
            param_grid=_grid(cfg, {"C": c_grid}),
            simplicity=_order([("C", True)]),
        ),
        ModelSpec(
            name="elastic_net",
            build=lambda c: _logreg(0.5, c),
            param_grid=_grid(cfg, {"C": c_grid, "l1_ratio": [0.25, 0.5, 0.75]}),
            simplicity=_order([("C", True), ("l1_ratio", False)]),
        ),
        ModelSpec(
            name="knn",
            build=lambda c: KNeighborsClassifier(),
            param_grid=_grid(cfg, {"n_neighbors": [5, 15, 35, 75]}),
            simplicity=_order([("n_neighbors", False)]),
        ),
        ModelSpec(
            name="decision_tree",
            build=lambda c: DecisionTreeClassifier(random_state=c.seed),
            param_grid=_grid(cfg, {"max_depth": [5, 10, 20, 40], "min_samples_leaf": [1, 10, 50]}),
            simplicity=_order([("max_depth", True), ("min_samples_leaf", False)]),
        ),
    ]


MODEL_NAMES: tuple[str, ...] = (
    "naive_bayes",
    "lda",
    "ridge",
    "lasso",
    "elastic_net",
    "knn",
    "decision_tree",
)


def get_model_specs(cfg: DrugReviewsConfig, names: Sequence[str] | None = None) -> list[ModelSpec]:
    """
    Specs in canonical order; `names` filters (and validates) the selection.
    """
    specs = _specs(cfg)
    if names is None:
        return specs
    wanted = [n.strip() for n in names if n and n.strip()]
    unknown = sorted(set(wanted) - set(MODEL_NAMES))
    if unknown:
        raise ValueError(f"Unknown model names: {unknown}. Available: {list(MODEL_NAMES)}")
    return [s for s in specs if s.name in wanted]


def build_pipeline(spec: ModelSpec, cfg: DrugReviewsConfig, params: dict[str, Any] | None = None) -> Pipeline:
    steps: list[tuple[str, Any]] = [("tfidf", build_vectorizer(cfg))]
    if spec.needs_dense:
        steps.append(("dense", DenseTransformer()))
    steps.append(("clf", spec.build(cfg)))
    pipe = Pipeline(steps)
    if params:
        pipe.set_params(**params)
    return pipe
