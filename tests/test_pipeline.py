"""
End-to-end tests: raw CSVs -> clean dataset -> profile -> tuning/evaluation -> prediction.
"""

import json
from pathlib import Path

import pandas as pd
import pytest

from drug_reviews import predict
from drug_reviews.make_clean_dataset import make_clean_dataset
from drug_reviews.profile_data import profile_reviews
from drug_reviews.train_models import run_training


def test_make_clean_dataset_writes_outputs(raw_dir, small_cfg, tmp_path):
    out = make_clean_dataset(data_dir=raw_dir, output_dir=tmp_path / "outputs", cfg=small_cfg)

    clean = pd.read_csv(out["clean"])
    assert set(clean[small_cfg.label_col]) == set(small_cfg.conditions)
    assert len(clean) == 120

    summary = json.loads(Path(out["run_summary"]).read_text(encoding="utf-8"))
    assert summary["clean"]["rows"] == 120
    assert summary["raw"]["rows"] == 130
    assert sum(summary["clean"]["class_distribution"].values()) == 120


def test_profile_reviews_writes_report_and_figures(clean_df, small_cfg, tmp_path):
    report = profile_reviews(
        clean_df,
        small_cfg,
        profile_dir=tmp_path / "profile",
        figures_dir=tmp_path / "figures",
        top_n=5,
    )
    assert (tmp_path / "profile" / small_cfg.profile_report_name).exists()
    assert (tmp_path / "profile" / "tfidf_by_condition.csv").exists()
    assert len(report["condition_counts"]) == 10
    assert (tmp_path / "figures" / "eda_condition_counts.png").exists()
    assert (tmp_path / "figures" / "eda_wordcloud_birth_control.png").exists()


class TestRunTraining:
    """Tuning + comparison + held-out evaluation on a two-model subset."""

    @pytest.fixture
    def trained(self, clean_df, small_cfg, tmp_path):
        out_dir = tmp_path / "outputs"
        result = run_training(
            clean_df,
            small_cfg,
            output_dir=out_dir,
            model_names=["naive_bayes", "ridge"],
            top_k=1,
        )
        return result, out_dir

    def test_metrics_and_artifacts(self, trained, small_cfg):
        result, out_dir = trained
        assert set(result["cv"]["models"]) == {"naive_bayes", "ridge"}
        assert len(result["held_out"]) == 1

        best = result["cv"]["ranking"][0]
        assert best in result["held_out"]
        assert result["held_out"][best]["auc"] > 0.9
        assert (out_dir / "models" / f"{best}.joblib").exists()
        assert (out_dir / "models" / small_cfg.metrics_name).exists()
        assert (out_dir / "models" / small_cfg.comparison_name).exists()
        assert (out_dir / "tuning" / "ridge.joblib").exists()
        assert (out_dir / "figures" / f"roc_{best}.png").exists()
        assert (out_dir / "figures" / f"confusion_{best}.png").exists()

    def test_selected_params_meet_one_se_threshold(self, trained):
        result, _ = trained
        for info in result["cv"]["models"].values():
            assert info["mean_auc"] >= info["threshold"]
            assert info["mean_auc"] <= info["best_mean_auc"]

    def test_predict_with_saved_model(self, trained, small_cfg):
        result, _ = trained
        best = result["cv"]["ranking"][0]
        model = predict.load_model(Path(result["held_out"][best]["model_path"]))
        df = pd.DataFrame({"review": ["&quot;My skin cleared up, no more pimples&quot;", "I could finally sleep at night"]})
        out = predict.predict_conditions(model, df, small_cfg)

        assert out["predicted_condition"].tolist() == ["Acne", "Insomnia"]
        proba_cols = [c for c in out.columns if c.startswith("proba_")]
        assert len(proba_cols) == 10
        assert out[proba_cols].sum(axis=1).round(6).eq(1.0).all()
        assert out["review"].iloc[0].startswith("My skin")


def test_run_training_rejects_bad_top_k(clean_df, small_cfg, tmp_path):
    with pytest.raises(ValueError):
        run_training(clean_df, small_cfg, output_dir=tmp_path, top_k=0)


def test_load_model_missing(tmp_path):
    with pytest.raises(FileNotFoundError):
        predict.load_model(tmp_path / "missing.joblib")
