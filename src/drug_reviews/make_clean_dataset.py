"""
Clean dataset generator for the drug reviews analysis.

Source of truth
---------------
This file does NOT implement its own cleaning logic.
It calls:
- `schema.load_raw_reviews()`               (read both raw CSVs + concatenate)
- `preprocess.preprocess_reviews_df()`      (raw -> cleaned, relabeled df)

Outputs
-------
  <output_dir>/clean/reviews_clean.csv
  <output_dir>/clean/run_summary.json

Run
---
python -m drug_reviews.make_clean_dataset --data_dir data/ --sample_size 100000
"""

from __future__ import annotations

import argparse
import json
from dataclasses import replace
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd

from drug_reviews import preprocess, schema
from drug_reviews.config import (
    DrugReviewsConfig,
    cfg_to_dict,
    default_config,
    guess_local_data_dir,
    guess_output_dir,
    resolve_clean_dir,
)


def _missing_stats(df: pd.DataFrame) -> dict[str, dict[str, Any]]:
    miss_count = df.isna().sum()
    miss_rate = df.isna().mean()
    return {
        "count": {k: int(v) for k, v in miss_count.to_dict().items()},
        "rate": {k: float(v) for k, v in miss_rate.to_dict().items()},
    }


def make_clean_dataset(
    *,
    data_dir: str | Path | None = None,
    output_dir: str | Path | None = None,
    sample_size: int | None = None,
    cfg: DrugReviewsConfig | None = None,
) -> dict[str, str]:
    """
    Generate the cleaned dataset and write it to an output folder.

    Returns a dict with output paths (as strings).
    """
    cfg = cfg or default_config()

    data_dir_path = Path(data_dir) if data_dir is not None else guess_local_data_dir()
    output_root = Path(output_dir) if output_dir is not None else guess_output_dir()
    clean_dir = resolve_clean_dir(output_root)
    clean_dir.mkdir(parents=True, exist_ok=True)

    clean_out = clean_dir / cfg.clean_name
    summary_out = clean_dir / cfg.run_summary_name

    # ----- Read + validate raw -----
    df_raw = schema.load_raw_reviews(data_dir_path, cfg)
    raw_summary = schema.build_run_summary_raw(df_raw, cfg)
    print(f"[make_clean] raw rows={len(df_raw)} distinct_conditions={raw_summary['n_conditions']}")

    # ----- Clean -----
    df_clean = preprocess.preprocess_reviews_df(df_raw, cfg, sample_size=sample_size)
    print(f"[make_clean] clean rows={len(df_clean)} classes={sorted(df_clean[cfg.label_col].unique().tolist())}")

    # ----- Write outputs -----
    df_clean.to_csv(clean_out, index=False)

    relabel_counts = (
        df_clean.groupby([cfg.label_col, cfg.label_raw_col]).size().sort_values(ascending=False).head(50)
    )
    summary: dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "paths": {
            "data_dir": str(data_dir_path),
            "clean": str(clean_out),
            "run_summary": str(summary_out),
        },
        "raw": {k: v for k, v in raw_summary.items() if k != "config"},
        "clean": {
            "rows": int(len(df_clean)),
            "missing": _missing_stats(df_clean),
            "class_distribution": {
                str(k): int(v) for k, v in df_clean[cfg.label_col].value_counts().to_dict().items()
            },
            "top_relabels": [
                {"label": str(lbl), "raw": str(raw), "count": int(cnt)} for (lbl, raw), cnt in relabel_counts.items()
            ],
        },
        "config": cfg_to_dict(cfg),
    }
    schema.write_json(summary, summary_out)

    return {"clean": str(clean_out), "run_summary": str(summary_out)}


def _build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Generate the cleaned drug reviews dataset.")
    p.add_argument(
        "--data_dir",
        type=str,
        default=None,
        help="Folder containing drugsComTrain_raw.csv / drugsComTest_raw.csv. Defaults to <repo>/data/.",
    )
    p.add_argument(
        "--output_dir",
        type=str,
        default=None,
        help="Outputs root. The cleaned file is written to <output_dir>/clean/. Defaults to <repo>/outputs/.",
    )
    p.add_argument("--sample_size", type=int, default=None, help="Rows to sample after dropping malformed rows.")
    p.add_argument("--seed", type=int, default=None)
    return p


def main() -> None:
    args = _build_argparser().parse_args()
    cfg = default_config()
    if args.seed is not None:
        cfg = replace(cfg, seed=int(args.seed))
    out = make_clean_dataset(
        data_dir=args.data_dir,
        output_dir=args.output_dir,
        sample_size=args.sample_size,
        cfg=cfg,
    )
    print(json.dumps(out, indent=2))


if __name__ == "__main__":
    main()
