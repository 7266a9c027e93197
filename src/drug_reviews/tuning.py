"""
Resampling + hyperparameter tuning.

- stratified train/test split and stratified k-fold partitioning
- grid search scored by multiclass ROC AUC (Hand & Till)
- per-candidate metrics with standard errors
- one-standard-error selection: the simplest candidate whose mean AUC is
  within one standard error of the best candidate
- tuning results persisted with joblib so long grid searches are not re-run
"""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Sequence

import joblib
import numpy as np
import pandas as pd
import sklearn
from sklearn.model_selection import GridSearchCV, StratifiedKFold, train_test_split

from drug_reviews.config import DrugReviewsConfig
from drug_reviews.models import ModelSpec, build_pipeline
from drug_reviews.text_stats import build_stopwords

SCORING: dict[str, str] = {
    "auc": "roc_auc_ovo",
    "accuracy": "accuracy",
    "macro_f1": "f1_macro",
}


@dataclass
class TuningResult:
    model: str
    cv_results: pd.DataFrame
    metadata: dict[str, Any] = field(default_factory=dict)


def split_train_test(df: pd.DataFrame, cfg: DrugReviewsConfig) -> tuple[pd.DataFrame, pd.DataFrame]:
    """
    Stratified (by condition) train/test split.
    """
    train, test = train_test_split(
        df,
        test_size=float(cfg.test_size),
        stratify=df[cfg.label_col],
        random_state=int(cfg.seed),
    )
    return train.reset_index(drop=True), test.reset_index(drop=True)


def make_folds(cfg: DrugReviewsConfig) -> StratifiedKFold:
    return StratifiedKFold(n_splits=int(cfg.n_folds), shuffle=True, random_state=int(cfg.seed))


def _grid_key(grid: dict[str, list]) -> dict[str, list]:
    # JSON-like, order-stable representation for cache invalidation.
    return {k: [v if not isinstance(v, np.generic) else v.item() for v in vals] for k, vals in sorted(grid.items())}


def _fingerprint(spec: ModelSpec, X: Sequence[str], y: np.ndarray, cfg: DrugReviewsConfig) -> str:
    """
    Hash of everything that changes the CV scores besides grid/folds/seed:
    texts, labels, vectorizer settings and the untuned pipeline params.
    """
    params = build_pipeline(spec, cfg).get_params(deep=True)
    settings = {k: v for k, v in sorted(params.items()) if k != "steps" and not hasattr(v, "get_params")}
    return joblib.hash(
        {
            "X": [str(x) for x in X],
            "y": [str(v) for v in np.asarray(y).tolist()],
            "token_pattern": cfg.token_pattern,
            "stopwords": sorted(build_stopwords(cfg)),
            "pipeline": settings,
            "needs_dense": bool(spec.needs_dense),
        }
    )


def tune_model(
    spec: ModelSpec,
    X: Sequence[str],
    y: np.ndarray,
    cfg: DrugReviewsConfig,
    *,
    n_jobs: int | None = None,
    verbose: int = 0,
) -> TuningResult:
    """
    Cross-validated grid search over `spec.param_grid`.

    Library failures (e.g. a solver error) are raised, not scored as NaN.
    """
    search = GridSearchCV(
        estimator=build_pipeline(spec, cfg),
        param_grid=spec.param_grid,
        scoring=SCORING,
        refit=False,
        cv=make_folds(cfg),
        n_jobs=n_jobs,
        error_score="raise",
        verbose=verbose,
    )
    search.fit(list(X), np.asarray(y))

    meta = {
        "model": spec.name,
        "created_utc": datetime.now(timezone.utc).isoformat(),
        "n_folds": int(cfg.n_folds),
        "seed": int(cfg.seed),
        "n_rows": int(len(y)),
        "classes": sorted(np.unique(y).tolist()),
        "param_grid": _grid_key(spec.param_grid),
        "fingerprint": _fingerprint(spec, X, y, cfg),
        "sklearn": sklearn.__version__,
    }
    return TuningResult(model=spec.name, cv_results=pd.DataFrame(search.cv_results_), metadata=meta)


def collect_metrics(result: TuningResult) -> pd.DataFrame:
    """
    One row per candidate: params, mean_auc, std_err, n, mean_accuracy, mean_macro_f1, rank.

    std_err = sample std over folds / sqrt(n_folds).
    """
    cv = result.cv_results
    split_cols = sorted(
        [c for c in cv.columns if c.startswith("split") and c.endswith("_test_auc")],
        key=lambda c: int(c[len("split") : -len("_test_auc")]),
    )
    if not split_cols:
        raise ValueError(f"cv_results for '{result.model}' has no per-fold AUC columns.")

    folds = cv[split_cols].to_numpy(dtype=float)
    n = folds.shape[1]
    std = folds.std(axis=1, ddof=1) if n > 1 else np.zeros(folds.shape[0])

    params = pd.DataFrame(list(cv["params"]))
    out = pd.DataFrame(
        {
            "model": result.model,
            "candidate": np.arange(len(cv)),
        }
    )
    out = pd.concat([out, params], axis=1)
    out["mean_auc"] = folds.mean(axis=1)
    out["std_err"] = std / math.sqrt(n)
    out["n"] = n
    if "mean_test_accuracy" in cv.columns:
        out["mean_accuracy"] = cv["mean_test_accuracy"].to_numpy(dtype=float)
    if "mean_test_macro_f1" in cv.columns:
        out["mean_macro_f1"] = cv["mean_test_macro_f1"].to_numpy(dtype=float)
    out["rank"] = out["mean_auc"].rank(ascending=False, method="min").astype(int)
    return out.sort_values(["rank", "candidate"]).reset_index(drop=True)


def select_by_one_std_err(metrics: pd.DataFrame, simplicity: Sequence[tuple[str, bool]]) -> pd.Series:
    """
    One-standard-error rule on AUC.

    threshold = best mean_auc - best std_err; among candidates with
    mean_auc >= threshold, return the simplest one according to `simplicity`
    (list of (column, ascending) pairs, simplest first).
    """
    if metrics.empty:
        raise ValueError("Cannot select from an empty metrics table.")

    best = metrics.loc[metrics["mean_auc"].idxmax()]
    threshold = float(best["mean_auc"] - best["std_err"])
    within = metrics.loc[metrics["mean_auc"] >= threshold]

    keys = [(c, asc) for c, asc in simplicity if c in within.columns]
    if keys:
        within = within.sort_values(
            [c for c, _ in keys] + ["mean_auc"],
            ascending=[asc for _, asc in keys] + [False],
            kind="mergesort",
        )
    else:
        within = within.sort_values("mean_auc", ascending=False, kind="mergesort")

    chosen = within.iloc[0].copy()
    chosen["threshold"] = threshold
    chosen["best_mean_auc"] = float(best["mean_auc"])
    return chosen


def _to_py(v: Any) -> Any:
    if isinstance(v, np.integer):
        return int(v)
    if isinstance(v, np.floating):
        return float(v)
    return v


def selected_params(row: pd.Series, spec: ModelSpec) -> dict[str, Any]:
    """
    Pipeline params of a selected candidate (numpy scalars converted back to Python).
    """
    out: dict[str, Any] = {}
    for k in spec.param_grid:
        v = _to_py(row[k])
        if isinstance(v, float) and v.is_integer() and all(isinstance(x, int) for x in spec.param_grid[k]):
            v = int(v)
        out[k] = v
    return out


def save_tuning_result(result: TuningResult, path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump(result, path)
    return path


def load_tuning_result(path: Path) -> TuningResult:
    if not path.exists():
        raise FileNotFoundError(f"Tuning result not found: {path}")
    obj = joblib.load(path)
    if not isinstance(obj, TuningResult):
        raise TypeError(f"{path} does not contain a TuningResult (got {type(obj).__name__}).")
    return obj


def tuning_path(tuning_dir: Path, spec: ModelSpec) -> Path:
    return tuning_dir / f"{spec.name}.joblib"


def tune_or_load(
    spec: ModelSpec,
    X: Sequence[str],
    y: np.ndarray,
    cfg: DrugReviewsConfig,
    tuning_dir: Path,
    *,
    force: bool = False,
    n_jobs: int | None = None,
) -> TuningResult:
    """
    Re-run cache: load a saved result when its grid/folds/seed/rows and data
    fingerprint match, else tune and save.
    """
    path = tuning_path(tuning_dir, spec)
    if path.exists() and not force:
        cached = load_tuning_result(path)
        meta = cached.metadata
        same = (
            meta.get("param_grid") == _grid_key(spec.param_grid)
            and meta.get("n_folds") == int(cfg.n_folds)
            and meta.get("seed") == int(cfg.seed)
            and meta.get("n_rows") == int(len(y))
            and meta.get("fingerprint") == _fingerprint(spec, X, y, cfg)
        )
        if same:
            print(f"[tune] model={spec.name} loaded cached results from {path}")
            return cached
        print(f"[tune] model={spec.name} cached results are stale (grid/folds/data changed); re-tuning")

    n_candidates = int(np.prod([len(v) for v in spec.param_grid.values()]))
    print(f"[tune] model={spec.name} candidates={n_candidates} folds={cfg.n_folds} rows={len(y)}")
    result = tune_model(spec, X, y, cfg, n_jobs=n_jobs)
    save_tuning_result(result, path)
    print(f"[tune] model={spec.name} saved -> {path}")
    return result


def compare_models(selected: dict[str, pd.Series]) -> pd.DataFrame:
    """
    Models ranked by mean cross-validated AUC of their selected candidate.
    """
    rows = []
    for name, row in selected.items():
        params = {k: _to_py(v) for k, v in row.items() if "__" in str(k) and not pd.isna(v)}
        rows.append(
            {
                "model": name,
                "mean_auc": float(row["mean_auc"]),
                "std_err": float(row["std_err"]),
                "best_mean_auc": float(row.get("best_mean_auc", row["mean_auc"])),
                "params": params,
            }
        )
    out = pd.DataFrame(rows, columns=["model", "mean_auc", "std_err", "best_mean_auc", "params"])
    return out.sort_values(["mean_auc", "model"], ascending=[False, True]).reset_index(drop=True)
