"""Predict conditions for new reviews with a saved pipeline.

What it does:
- Loads a fitted pipeline written by train_models (default: <output_dir>/models/<model>.joblib)
- Reads a CSV containing a `review` column
- Applies the same text cleaning used for training
- Writes predictions + per-class probabilities

Run:
  python -m drug_reviews.predict --input reviews.csv --model ridge --out_path predictions.csv
"""

from __future__ import annotations

import argparse
from datetime import datetime, timezone
from pathlib import Path

import joblib
import numpy as np
import pandas as pd
from sklearn.pipeline import Pipeline

from drug_reviews import preprocess
from drug_reviews.config import DrugReviewsConfig, default_config, guess_output_dir, resolve_models_dir


def _utc_run_id() -> str:
    return datetime.now(timezone.utc).strftime("%Y%m%d_%H%M%S_utc")


def load_model(path: Path) -> Pipeline:
    if not path.exists():
        raise FileNotFoundError(f"Model file not found: {path}")
    model = joblib.load(path)
    if not hasattr(model, "predict_proba"):
        raise TypeError(f"{path} does not hold a probabilistic classifier (got {type(model).__name__}).")
    return model


def predict_conditions(model: Pipeline, df: pd.DataFrame, cfg: DrugReviewsConfig) -> pd.DataFrame:
    """
    Returns df[id?, review] + predicted condition + one `proba_<class>` column per class.
    """
    if cfg.text_col not in df.columns:
        raise KeyError(f"Missing text column '{cfg.text_col}' in input.")
    clean = preprocess.clean_review_text(df, cfg)
    texts = clean[cfg.text_col].astype("string").fillna("").astype(str).tolist()

    proba = model.predict_proba(texts)
    classes = list(model.classes_)
    keep = [c for c in (cfg.id_col, cfg.text_col) if c in clean.columns]
    out = clean[keep].copy()
    out["predicted_condition"] = np.asarray(classes)[proba.argmax(axis=1)]
    for j, cls in enumerate(classes):
        out[f"proba_{cls}"] = proba[:, j]
    return out


def parse_args() -> argparse.Namespace:
    p = argparse.ArgumentParser(description="Predict drug review conditions with a saved model.")
    p.add_argument("--input", type=str, required=True, help="CSV with a 'review' column.")
    p.add_argument("--output_dir", type=str, default=None, help="Outputs root (contains models/).")
    p.add_argument("--model", type=str, default="ridge", help="Model name saved under <output_dir>/models/.")
    p.add_argument("--model_path", type=str, default=None, help="Explicit model path (overrides --model).")
    p.add_argument("--out_path", type=str, default=None)
    return p.parse_args()


def main() -> None:
    args = parse_args()
    cfg = default_config()

    output_root = Path(args.output_dir) if args.output_dir else guess_output_dir()
    model_path = Path(args.model_path) if args.model_path else resolve_models_dir(output_root) / f"{args.model}.joblib"
    input_path = Path(args.input)
    if not input_path.exists():
        raise FileNotFoundError(f"Input file not found: {input_path}")

    print(f"[predict] model_path={model_path}")
    print(f"[predict] input={input_path}")

    model = load_model(model_path)
    df = pd.read_csv(input_path, dtype={cfg.id_col: "string"})
    out = predict_conditions(model, df, cfg)

    out_path = (
        Path(args.out_path)
        if args.out_path
        else output_root / "predictions" / f"predictions_{Path(model_path).stem}_{_utc_run_id()}.csv"
    )
    out_path.parent.mkdir(parents=True, exist_ok=True)
    out.to_csv(out_path, index=False)

    print(f"[predict] Saved predictions: {out_path}")
    print(out["predicted_condition"].value_counts().to_string())


if __name__ == "__main__":
    main()
