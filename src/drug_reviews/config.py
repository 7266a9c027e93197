"""
Drug reviews configuration.

This module is intentionally "boring": only constants + tiny helpers.
Keeping all paths/column names/label rules here avoids confusion and keeps
experiments reproducible.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from pathlib import Path


@dataclass(frozen=True)
class DrugReviewsConfig:
    # ----- Raw files (UCI drug review dataset ships as two CSVs) -----
    raw_train_name: str = "drugsComTrain_raw.csv"
    raw_test_name: str = "drugsComTest_raw.csv"

    # ----- Columns -----
    id_col: str = "uniqueID"
    drug_col: str = "drugName"
    label_col: str = "condition"
    text_col: str = "review"
    rating_col: str = "rating"
    source_col: str = "source"
    label_raw_col: str = "condition_raw"

    # ----- Sampling / splitting -----
    sample_size: int = 100_000
    seed: int = 2022
    test_size: float = 0.25
    n_folds: int = 5

    # ----- Label set (after consolidation) -----
    conditions: tuple[str, ...] = (
        "Birth Control",
        "Depression",
        "Pain",
        "Anxiety",
        "Acne",
        "Bipolar Disorder",
        "Insomnia",
        "Weight Loss",
        "ADHD",
        "Diabetes",
    )

    # Ordered (regex, label); first match wins, matching is case-insensitive.
    # "bipolar" must come before "depress", "pain" stays last.
    relabel_rules: tuple[tuple[str, str], ...] = (
        (r"birth control|contraception", "Birth Control"),
        (r"bipolar", "Bipolar Disorder"),
        (r"depress", "Depression"),
        (r"anxiety|panic disorder", "Anxiety"),
        (r"\badhd\b|attention deficit", "ADHD"),
        (r"insomnia", "Insomnia"),
        (r"obesity|weight loss", "Weight Loss"),
        (r"\bacne\b", "Acne"),
        (r"diabetes", "Diabetes"),
        (r"\bpain\b", "Pain"),
    )

    # Scraped HTML fragments and placeholder values seen in the condition column.
    malformed_patterns: tuple[str, ...] = (
        r"</span>",
        r"users found this comment helpful",
        r"^\s*not listed\s*/\s*othe",
    )

    # ----- Text features -----
    token_pattern: str = r"(?u)\b[a-z][a-z']+\b"
    extra_stopwords: tuple[str, ...] = (
        "im",
        "ive",
        "i'm",
        "i've",
        "it's",
        "don't",
        "didn't",
        "day",
        "days",
        "mg",
        "just",
        "like",
        "taking",
        "took",
        "started",
    )
    # Vocabulary cap grid (tokens kept by the TF-IDF step)
    max_tokens: tuple[int, ...] = (500, 1000, 2000)

    # ----- Output filenames -----
    clean_name: str = "reviews_clean.csv"
    run_summary_name: str = "run_summary.json"
    profile_report_name: str = "profile_report.json"
    metrics_name: str = "metrics.json"
    comparison_name: str = "model_comparison.csv"

    @property
    def keep_cols(self) -> tuple[str, ...]:
        # Columns kept after pruning (source is added by the loader)
        return (self.id_col, self.drug_col, self.label_col, self.text_col, self.rating_col)


def default_config() -> DrugReviewsConfig:
    return DrugReviewsConfig()


def cfg_to_dict(cfg: DrugReviewsConfig) -> dict:
    """
    Serialize config to a JSON-friendly dict (for reproducibility).
    """
    return asdict(cfg)


def cfg_from_dict(data: dict) -> DrugReviewsConfig:
    """
    Restore config from a dict produced by cfg_to_dict().

    JSON turns tuples into lists, so tuple fields are converted back.
    """
    out = dict(data)
    for k, v in out.items():
        if isinstance(v, list):
            out[k] = tuple(tuple(x) if isinstance(x, list) else x for x in v)
    return DrugReviewsConfig(**out)


def guess_repo_root() -> Path:
    """
    Guess repo root from this file location: <repo>/src/drug_reviews/config.py
    """
    return Path(__file__).resolve().parents[2]


def guess_local_data_dir() -> Path:
    """
    Local data dir (raw CSVs):
      <repo>/data/
    """
    return guess_repo_root() / "data"


def guess_output_dir() -> Path:
    """
    Local outputs root:
      <repo>/outputs/
    """
    return guess_repo_root() / "outputs"


def resolve_clean_dir(output_dir: Path) -> Path:
    return output_dir / "clean"


def resolve_profile_dir(output_dir: Path) -> Path:
    return output_dir / "profile"


def resolve_tuning_dir(output_dir: Path) -> Path:
    return output_dir / "tuning"


def resolve_models_dir(output_dir: Path) -> Path:
    return output_dir / "models"


def resolve_figures_dir(output_dir: Path) -> Path:
    return output_dir / "figures"
