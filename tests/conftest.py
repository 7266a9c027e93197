"""
Shared fixtures: small synthetic drug review frames + raw CSV files.
"""

from dataclasses import replace

import pandas as pd
import pytest

from drug_reviews.config import default_config

KEYWORDS = {
    "Birth Control": ["pill", "period", "spotting", "cramps"],
    "Depression": ["sad", "hopeless", "zoloft", "crying"],
    "Pain": ["ache", "joint", "oxycodone", "knee"],
    "Anxiety": ["worry", "panic", "nervous", "xanax"],
    "Acne": ["skin", "pimples", "breakouts", "face"],
    "Bipolar Disorder": ["manic", "lamictal", "episodes", "mania"],
    "Insomnia": ["sleep", "awake", "ambien", "night"],
    "Weight Loss": ["pounds", "appetite", "phentermine", "lost"],
    "ADHD": ["focus", "adderall", "concentrate", "homework"],
    "Diabetes": ["sugar", "insulin", "glucose", "metformin"],
}

# Raw label variants that the relabel rules must consolidate.
RAW_VARIANTS = {
    "Birth Control": ["Birth Control", "Emergency Contraception"],
    "Depression": ["Depression", "Major Depressive Disorder"],
    "Pain": ["Pain", "Chronic Pain"],
    "Anxiety": ["Anxiety", "Panic Disorder"],
    "Acne": ["Acne", "acne"],
    "Bipolar Disorder": ["Bipolar Disorde", "Bipolar Disorder"],
    "Insomnia": ["Insomnia", "insomnia"],
    "Weight Loss": ["Weight Loss", "Obesity"],
    "ADHD": ["ADHD", "ADHD"],
    "Diabetes": ["Diabetes, Type 2", "Diabetes, Type 1"],
}

FILLER = "the medicine my doctor gave helped after weeks"


def make_review(label: str, i: int) -> str:
    kw = KEYWORDS[label]
    return f"{kw[i % 4]} {kw[(i + 1) % 4]} {FILLER} {kw[(i + 2) % 4]} review{i % 3}"


def make_clean_frame(per_class: int = 12) -> pd.DataFrame:
    rows = []
    uid = 0
    for label in KEYWORDS:
        for i in range(per_class):
            rows.append(
                {
                    "uniqueID": str(uid),
                    "drugName": f"drug_{label[:3].lower()}",
                    "condition": label,
                    "review": make_review(label, i),
                    "rating": float(1 + i % 10),
                }
            )
            uid += 1
    return pd.DataFrame(rows)


def make_raw_frame(start_id: int, per_class: int) -> pd.DataFrame:
    rows = []
    uid = start_id
    for label in KEYWORDS:
        for i in range(per_class):
            raw = RAW_VARIANTS[label][i % 2]
            rows.append(
                {
                    "uniqueID": uid,
                    "drugName": f"drug_{label[:3].lower()}",
                    "condition": raw,
                    "review": '"' + make_review(label, i).replace("my", "my&#039;s") + '"',
                    "rating": 1 + i % 10,
                    "date": "May 20, 2012",
                    "usefulCount": i,
                }
            )
            uid += 1
    junk = [
        ("3</span> users found this comment helpful.", "great stuff"),
        ("Not Listed / Othe", "no idea what it was for"),
        (None, "condition is missing here"),
        ("Hypertension", "blood pressure went down"),
        ("Depression", None),
    ]
    for cond, review in junk:
        rows.append(
            {
                "uniqueID": uid,
                "drugName": "misc",
                "condition": cond,
                "review": review,
                "rating": 5,
                "date": "May 20, 2012",
                "usefulCount": 0,
            }
        )
        uid += 1
    return pd.DataFrame(rows)


@pytest.fixture
def cfg():
    return default_config()


@pytest.fixture
def small_cfg():
    """Config sized for fast CV on the synthetic frame."""
    return replace(default_config(), n_folds=3, max_tokens=(60, 100), sample_size=10_000)


@pytest.fixture
def clean_df():
    return make_clean_frame()


@pytest.fixture
def raw_dir(tmp_path, cfg):
    d = tmp_path / "data"
    d.mkdir()
    make_raw_frame(0, per_class=8).to_csv(d / cfg.raw_train_name, index=False)
    make_raw_frame(10_000, per_class=4).to_csv(d / cfg.raw_test_name, index=False)
    return d
