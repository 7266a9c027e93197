"""
Exploratory profiling of the cleaned drug reviews dataset.

Why
---
Before modeling, look at the facts:
- class balance across the 10 conditions
- which words dominate reviews (overall + per condition)
- which words are *characteristic* of a condition (TF-IDF per condition)
- review lengths

Outputs (default)
-----------------
<output_dir>/profile/profile_report.json
<output_dir>/profile/*.csv
<output_dir>/figures/eda_*.png

Run
---
python -m drug_reviews.profile_data --output_dir outputs/
"""

from __future__ import annotations

import argparse
import re
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

import pandas as pd

from drug_reviews import plots, schema, text_stats
from drug_reviews.config import (
    DrugReviewsConfig,
    default_config,
    guess_output_dir,
    resolve_clean_dir,
    resolve_figures_dir,
    resolve_profile_dir,
)


def _slug(label: str) -> str:
    return re.sub(r"[^a-z0-9]+", "_", str(label).lower()).strip("_")


def _records(df: pd.DataFrame) -> list[dict[str, Any]]:
    return [{str(k): (v.item() if hasattr(v, "item") else v) for k, v in r.items()} for r in df.to_dict("records")]


def profile_reviews(
    df: pd.DataFrame,
    cfg: DrugReviewsConfig,
    *,
    profile_dir: Path,
    figures_dir: Path | None = None,
    top_n: int = 15,
    wordclouds: bool = True,
) -> dict[str, Any]:
    """
    Compute EDA tables (+ figures when `figures_dir` is given) and write the report.
    """
    profile_dir.mkdir(parents=True, exist_ok=True)

    counts = text_stats.condition_counts(df, cfg)
    overall = text_stats.word_frequencies(df, cfg, top_n=top_n)
    by_cond = text_stats.word_frequencies(df, cfg, by_condition=True, top_n=top_n)
    tfidf = text_stats.tfidf_by_condition(df, cfg, top_n=10)
    lengths = text_stats.review_length_stats(df, cfg)

    counts.to_csv(profile_dir / "condition_counts.csv", index=False)
    by_cond.to_csv(profile_dir / "word_frequencies_by_condition.csv", index=False)
    tfidf.to_csv(profile_dir / "tfidf_by_condition.csv", index=False)
    lengths.to_csv(profile_dir / "review_lengths.csv", index=False)

    figures: dict[str, str] = {}
    if figures_dir is not None:
        figures["condition_counts"] = str(
            plots.plot_condition_counts(counts, figures_dir / "eda_condition_counts.png", label_col=cfg.label_col)
        )
        figures["top_words"] = str(plots.plot_top_words(overall, figures_dir / "eda_top_words.png"))
        figures["top_words_by_condition"] = str(
            plots.plot_top_words(
                by_cond,
                figures_dir / "eda_top_words_by_condition.png",
                label_col=cfg.label_col,
                title="Most frequent words per condition",
            )
        )
        figures["tfidf_by_condition"] = str(
            plots.plot_tfidf_terms(tfidf, figures_dir / "eda_tfidf_by_condition.png", label_col=cfg.label_col)
        )
        if wordclouds:
            full = text_stats.word_frequencies(df, cfg, by_condition=True, top_n=150)
            for label, part in full.groupby(cfg.label_col, sort=True):
                out = plots.plot_wordcloud(
                    part, figures_dir / f"eda_wordcloud_{_slug(label)}.png", title=f"Word cloud ({label})"
                )
                if out is not None:
                    figures[f"wordcloud_{_slug(label)}"] = str(out)

    report: dict[str, Any] = {
        "generated_at_utc": datetime.now(timezone.utc).isoformat(),
        "rows": int(len(df)),
        "condition_counts": _records(counts),
        "top_words": _records(overall),
        "top_words_by_condition": _records(by_cond),
        "tfidf_by_condition": _records(tfidf),
        "figures": figures,
    }
    out_path = profile_dir / cfg.profile_report_name
    schema.write_json(report, out_path)

    print("[profile] Class distribution:")
    for r in report["condition_counts"]:
        print(f"- {r[cfg.label_col]}: n={r['n']} share={r['share']:.3f}")
    print("[profile] Top TF-IDF word per condition:")
    for label, part in tfidf.groupby(cfg.label_col, sort=True):
        print(f"- {label}: {part.iloc[0]['word']}")
    print(f"[profile] Saved: {out_path}")
    return report


def _build_argparser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="Profile the cleaned drug reviews dataset (tables + figures).")
    p.add_argument("--output_dir", type=str, default=None, help="Outputs root (contains clean/). Defaults to <repo>/outputs/.")
    p.add_argument("--clean_path", type=str, default=None, help="Override the cleaned CSV path.")
    p.add_argument("--top_n", type=int, default=15, help="Top-N words per table.")
    p.add_argument("--no_figures", action="store_true", help="Only write tables + report.")
    p.add_argument("--no_wordclouds", action="store_true")
    return p


def main() -> None:
    args = _build_argparser().parse_args()
    cfg = default_config()

    output_root = Path(args.output_dir) if args.output_dir else guess_output_dir()
    clean_path = Path(args.clean_path) if args.clean_path else resolve_clean_dir(output_root) / cfg.clean_name
    if not clean_path.exists():
        raise FileNotFoundError(
            f"Clean file not found: {clean_path}\n"
            "Tip: run make_clean_dataset first to generate reviews_clean.csv."
        )

    df = pd.read_csv(clean_path, dtype={cfg.id_col: "string"})
    print(f"[profile] clean_path={clean_path} rows={len(df)}")
    profile_reviews(
        df,
        cfg,
        profile_dir=resolve_profile_dir(output_root),
        figures_dir=None if args.no_figures else resolve_figures_dir(output_root),
        top_n=int(args.top_n),
        wordclouds=not args.no_wordclouds,
    )


if __name__ == "__main__":
    main()
