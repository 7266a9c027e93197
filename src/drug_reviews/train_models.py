"""
Tune, compare and evaluate the condition classifiers.

Steps
-----
1. stratified train/test split of the cleaned reviews
2. for each model: grid search with stratified k-fold CV (AUC), persisted to
   <output_dir>/tuning/<model>.joblib and reloaded on re-runs (use --force to re-tune)
3. per model: pick hyperparameters with the one-standard-error rule on AUC
4. rank models by mean CV AUC; refit the top-k on the full training split
5. evaluate the refit models on the held-out split (ROC curves, confusion matrices)

Artifacts (default)
-------------------
<output_dir>/tuning/<model>.joblib
<output_dir>/models/<model>.joblib
<output_dir>/models/model_comparison.csv
<output_dir>/models/metrics.json
<output_dir>/figures/*.png

Run
---
python -m drug_reviews.train_models --output_dir outputs/ --n_jobs -1
"""

from __future__ import annotations

import argparse
import os
import platform
import sys
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import joblib
import numpy as np
import pandas as pd
import sklearn

from drug_reviews import features, metrics as metrics_utils, plots, schema, tuning
from drug_reviews.config import (
    DrugReviewsConfig,
    cfg_to_dict,
    default_config,
    guess_output_dir,
    resolve_clean_dir,
    resolve_figures_dir,
    resolve_models_dir,
    resolve_tuning_dir,
)
from drug_reviews.models import MODEL_NAMES, build_pipeline, get_model_specs


def _utc_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_utc")


def run_training(
    df: pd.DataFrame,
    cfg: DrugReviewsConfig,
    *,
    output_dir: Path,
    model_names: list[str] | None = None,
    top_k: int = 2,
    force: bool = False,
    n_jobs: int | None = None,
    make_figures: bool = True,
) -> dict[str, Any]:
    """
    Full tuning + comparison + held-out evaluation. Returns the metrics dict (also saved as JSON).
    """
    if top_k < 1:
        raise ValueError(f"top_k must be >= 1, got {top_k}")

    run_id = _utc_run_id()
    tuning_dir = resolve_tuning_dir(output_dir)
    models_dir = resolve_models_dir(output_dir)
    figures_dir = resolve_figures_dir(output_dir)
    models_dir.mkdir(parents=True, exist_ok=True)

    schema.validate_label_set(df, cfg)
    train_df, test_df = tuning.split_train_test(df, cfg)
    X_train, y_train = features.build_model_input(train_df, cfg)
    X_test, y_test = features.build_model_input(test_df, cfg)
    print(f"[train] run_id={run_id} train_rows={len(train_df)} test_rows={len(test_df)} folds={cfg.n_folds}")

    specs = get_model_specs(cfg, model_names)
    spec_by_name = {s.name: s for s in specs}

    # ---- Tune (or reload) every model, select by 1-SE ----
    per_model: dict[str, dict[str, Any]] = {}
    selected: dict[str, pd.Series] = {}
    all_metrics: list[pd.DataFrame] = []
    for spec in specs:
        result = tuning.tune_or_load(spec, X_train, y_train, cfg, tuning_dir, force=force, n_jobs=n_jobs)
        cand = tuning.collect_metrics(result)
        all_metrics.append(cand)
        chosen = tuning.select_by_one_std_err(cand, spec.simplicity)
        selected[spec.name] = chosen
        params = tuning.selected_params(chosen, spec)
        per_model[spec.name] = {
            "selected_params": params,
            "mean_auc": float(chosen["mean_auc"]),
            "std_err": float(chosen["std_err"]),
            "best_mean_auc": float(chosen["best_mean_auc"]),
            "threshold": float(chosen["threshold"]),
            "n_candidates": int(len(cand)),
        }
        print(
            f"[train] model={spec.name} best_auc={chosen['best_mean_auc']:.4f} "
            f"selected_auc={chosen['mean_auc']:.4f} (se={chosen['std_err']:.4f}) params={params}"
        )

    comparison = tuning.compare_models(selected)
    comparison.to_csv(models_dir / cfg.comparison_name, index=False)
    pd.concat(all_metrics, ignore_index=True).to_csv(models_dir / "tuning_candidates.csv", index=False)
    print("[train] Model comparison (mean CV AUC):")
    print(comparison[["model", "mean_auc", "std_err"]].to_string(index=False))

    figures: dict[str, str] = {}
    if make_figures:
        figures["cv_auc"] = str(plots.plot_cv_auc(comparison, figures_dir / "cv_auc_by_model.png"))

    # ---- Refit top-k on full training split, evaluate on held-out ----
    top_names = comparison["model"].head(int(top_k)).tolist()
    held_out: dict[str, Any] = {}
    for name in top_names:
        spec = spec_by_name[name]
        params = per_model[name]["selected_params"]
        model = build_pipeline(spec, cfg, params)
        model.fit(X_train, y_train)

        classes = list(model.classes_)
        proba = model.predict_proba(X_test)
        scores = metrics_utils.evaluate(y_test, proba, classes)
        pred = np.asarray(classes)[proba.argmax(axis=1)]
        cm = metrics_utils.confusion_matrix_df(y_test, pred, labels=list(cfg.conditions))
        report = metrics_utils.per_class_f1_report(y_test, pred, labels=list(cfg.conditions))
        curves = metrics_utils.roc_curves_ovr(y_test, proba, classes)

        model_path = models_dir / f"{name}.joblib"
        joblib.dump(model, model_path, compress=3)
        cm.to_csv(models_dir / f"{name}_confusion_matrix.csv")

        if make_figures:
            figures[f"roc_{name}"] = str(
                plots.plot_roc_curves(curves, figures_dir / f"roc_{name}.png", title=f"ROC curves ({name})")
            )
            figures[f"confusion_{name}"] = str(
                plots.plot_confusion_matrix(
                    cm, figures_dir / f"confusion_{name}.png", title=f"Confusion matrix ({name})"
                )
            )

        per_class_auc = curves.groupby("class")["auc"].first().to_dict() if not curves.empty else {}
        held_out[name] = {
            **scores,
            "per_class_auc": {str(k): float(v) for k, v in per_class_auc.items()},
            "per_class": {
                str(idx): {k: float(v) for k, v in row.items()} for idx, row in report.iterrows()
            },
            "model_path": str(model_path),
        }
        print(
            f"[train] held-out model={name} auc={scores['auc']:.4f} "
            f"accuracy={scores['accuracy']:.4f} macro_f1={scores['macro_f1']:.4f}"
        )

    out: dict[str, Any] = {
        "run_id": run_id,
        "utc_time": datetime.now(timezone.utc).isoformat(),
        "env": {
            "python": sys.version,
            "platform": platform.platform(),
            "numpy": np.__version__,
            "pandas": pd.__version__,
            "sklearn": sklearn.__version__,
        },
        "data": {
            "rows": int(len(df)),
            "train_rows": int(len(train_df)),
            "test_rows": int(len(test_df)),
            "labels": list(cfg.conditions),
        },
        "cv": {
            "n_splits": int(cfg.n_folds),
            "seed": int(cfg.seed),
            "scoring": "roc_auc_ovo (Hand & Till)",
            "models": per_model,
            "ranking": comparison["model"].tolist(),
        },
        "held_out": held_out,
        "figures": figures,
        "config": cfg_to_dict(cfg),
    }
    metrics_path = models_dir / cfg.metrics_name
    schema.write_json(out, metrics_path)
    print(f"[train] Saved metrics: {metrics_path}")
    return out


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Tune, compare and evaluate condition classifiers.")
    p.add_argument("--output_dir", type=str, default=None, help="Outputs root (contains clean/). Defaults to <repo>/outputs/.")
    p.add_argument("--clean_path", type=str, default=None, help="Override the cleaned CSV path.")
    p.add_argument(
        "--models",
        type=str,
        default=",".join(MODEL_NAMES),
        help=f"Comma-separated subset of: {','.join(MODEL_NAMES)}",
    )
    p.add_argument("--top_k", type=int, default=2, help="How many top models to refit and evaluate on held-out data.")
    p.add_argument("--folds", type=int, default=None)
    p.add_argument("--seed", type=int, default=None)
    p.add_argument("--force", action="store_true", help="Ignore cached tuning results and re-run grid searches.")
    p.add_argument("--n_jobs", type=int, default=None, help="Parallel jobs for grid search (-1 = all cores).")
    p.add_argument("--no_figures", action="store_true")
    return p.parse_args()


def main() -> None:
    args = parse_args()
    cfg = default_config()
    if args.folds is not None:
        cfg = replace(cfg, n_folds=int(args.folds))
    if args.seed is not None:
        cfg = replace(cfg, seed=int(args.seed))

    output_root = Path(args.output_dir) if args.output_dir else guess_output_dir()
    clean_path = Path(args.clean_path) if args.clean_path else resolve_clean_dir(output_root) / cfg.clean_name
    if not clean_path.exists():
        raise FileNotFoundError(
            "Cleaned reviews file not found. Expected:\n"
            f"- {clean_path}\n"
            "Tip: run make_clean_dataset first."
        )

    df = pd.read_csv(clean_path, dtype={cfg.id_col: "string"})
    print(f"[train] clean_path={clean_path} rows={len(df)}")

    run_training(
        df,
        cfg,
        output_dir=output_root,
        model_names=[m for m in args.models.split(",") if m.strip()],
        top_k=int(args.top_k),
        force=bool(args.force),
        n_jobs=args.n_jobs,
        make_figures=not args.no_figures,
    )


if __name__ == "__main__":
    # Avoid extremely noisy thread usage when grid search runs in parallel
    os.environ.setdefault("OMP_NUM_THREADS", "4")
    main()
