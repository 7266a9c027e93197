"""
Tests for splitting, grid search, one-standard-error selection and the tuning cache.
"""

from dataclasses import replace

import numpy as np
import pandas as pd
import pytest

from drug_reviews import features, tuning
from drug_reviews.models import VOCAB_PARAM, get_model_specs

SIMPLICITY = [("clf__C", True), (VOCAB_PARAM, True)]


def _metrics_table(rows):
    df = pd.DataFrame(rows, columns=["clf__C", VOCAB_PARAM, "mean_auc", "std_err"])
    df.insert(0, "model", "ridge")
    return df


class TestSplits:
    """Test cases for stratified resampling."""

    def test_split_is_stratified(self, clean_df, cfg):
        train, test = tuning.split_train_test(clean_df, cfg)
        assert len(train) + len(test) == len(clean_df)
        assert test[cfg.label_col].value_counts().nunique() == 1
        assert set(train["uniqueID"]).isdisjoint(test["uniqueID"])

    def test_folds(self, small_cfg):
        folds = tuning.make_folds(small_cfg)
        assert folds.get_n_splits() == 3
        assert folds.shuffle


class TestSelectByOneStdErr:
    """Test cases for the one-standard-error rule."""

    def test_picks_simplest_within_one_se(self):
        metrics = _metrics_table(
            [
                (0.01, 500, 0.80, 0.01),
                (0.1, 500, 0.889, 0.01),
                (1.0, 500, 0.90, 0.015),
                (10.0, 500, 0.89, 0.01),
            ]
        )
        chosen = tuning.select_by_one_std_err(metrics, SIMPLICITY)
        assert chosen["clf__C"] == 0.1
        assert chosen["threshold"] == pytest.approx(0.885)
        assert chosen["best_mean_auc"] == pytest.approx(0.90)

    def test_falls_back_to_best_when_nothing_else_is_close(self):
        metrics = _metrics_table([(0.01, 500, 0.70, 0.001), (1.0, 500, 0.90, 0.001)])
        assert tuning.select_by_one_std_err(metrics, SIMPLICITY)["clf__C"] == 1.0

    def test_smaller_vocabulary_breaks_ties(self):
        metrics = _metrics_table([(1.0, 2000, 0.90, 0.02), (1.0, 500, 0.89, 0.02)])
        assert tuning.select_by_one_std_err(metrics, SIMPLICITY)[VOCAB_PARAM] == 500

    def test_empty_raises(self):
        with pytest.raises(ValueError):
            tuning.select_by_one_std_err(_metrics_table([]), SIMPLICITY)


class TestCollectMetrics:
    """Test cases for turning cv_results into a per-candidate table."""

    def test_standard_error_uses_sample_std(self):
        cv = pd.DataFrame(
            {
                "params": [{"clf__C": 0.1}, {"clf__C": 1.0}],
                "split0_test_auc": [0.8, 0.9],
                "split1_test_auc": [0.9, 0.9],
                "split2_test_auc": [0.7, 0.9],
                "mean_test_accuracy": [0.5, 0.6],
            }
        )
        out = tuning.collect_metrics(tuning.TuningResult(model="ridge", cv_results=cv))
        first = out.loc[out["clf__C"] == 0.1].iloc[0]
        assert first["mean_auc"] == pytest.approx(0.8)
        assert first["std_err"] == pytest.approx(np.std([0.8, 0.9, 0.7], ddof=1) / np.sqrt(3))
        assert out.iloc[0]["clf__C"] == 1.0
        assert out.iloc[0]["rank"] == 1
        assert (out["n"] == 3).all()

    def test_missing_fold_columns_raises(self):
        cv = pd.DataFrame({"params": [{"clf__C": 1.0}]})
        with pytest.raises(ValueError, match="per-fold AUC"):
            tuning.collect_metrics(tuning.TuningResult(model="ridge", cv_results=cv))


class TestTuneModel:
    """Grid search on the synthetic frame."""

    def test_naive_bayes_grid_search(self, clean_df, small_cfg):
        X, y = features.build_model_input(clean_df, small_cfg)
        (spec,) = get_model_specs(small_cfg, ["naive_bayes"])
        result = tuning.tune_model(spec, X, y, small_cfg)

        n_candidates = len(spec.param_grid[VOCAB_PARAM]) * len(spec.param_grid["clf__alpha"])
        assert len(result.cv_results) == n_candidates
        assert result.metadata["n_folds"] == 3
        assert result.metadata["classes"] == sorted(small_cfg.conditions)

        table = tuning.collect_metrics(result)
        chosen = tuning.select_by_one_std_err(table, spec.simplicity)
        assert chosen["mean_auc"] > 0.9
        params = tuning.selected_params(chosen, spec)
        assert isinstance(params[VOCAB_PARAM], int)
        assert set(params) == set(spec.param_grid)


class TestTuneOrLoad:
    """Test cases for the joblib re-run cache."""

    def test_second_run_loads_from_disk(self, clean_df, small_cfg, tmp_path, monkeypatch):
        X, y = features.build_model_input(clean_df, small_cfg)
        (spec,) = get_model_specs(small_cfg, ["naive_bayes"])

        first = tuning.tune_or_load(spec, X, y, small_cfg, tmp_path)
        assert tuning.tuning_path(tmp_path, spec).exists()

        def _fail(*args, **kwargs):
            raise AssertionError("should not re-tune")

        monkeypatch.setattr(tuning, "tune_model", _fail)
        second = tuning.tune_or_load(spec, X, y, small_cfg, tmp_path)
        pd.testing.assert_frame_equal(first.cv_results, second.cv_results)

    def test_force_and_stale_cache_retune(self, clean_df, small_cfg, tmp_path, monkeypatch):
        X, y = features.build_model_input(clean_df, small_cfg)
        (spec,) = get_model_specs(small_cfg, ["naive_bayes"])
        tuning.tune_or_load(spec, X, y, small_cfg, tmp_path)

        calls = []
        real = tuning.tune_model

        def _count(*args, **kwargs):
            calls.append(1)
            return real(*args, **kwargs)

        monkeypatch.setattr(tuning, "tune_model", _count)
        tuning.tune_or_load(spec, X, y, small_cfg, tmp_path, force=True)
        tuning.tune_or_load(spec, X, y, replace(small_cfg, n_folds=2), tmp_path)
        assert len(calls) == 2

    def test_changed_labels_or_stopwords_retune(self, clean_df, small_cfg, tmp_path, monkeypatch):
        X, y = features.build_model_input(clean_df, small_cfg)
        (spec,) = get_model_specs(small_cfg, ["naive_bayes"])
        first = tuning.tune_or_load(spec, X, y, small_cfg, tmp_path)

        calls = []
        real = tuning.tune_model

        def _count(*args, **kwargs):
            calls.append(1)
            return real(*args, **kwargs)

        monkeypatch.setattr(tuning, "tune_model", _count)

        # Same row count, different labels.
        y_perm = np.random.default_rng(0).permutation(y)
        permuted = tuning.tune_or_load(spec, X, y_perm, small_cfg, tmp_path)
        assert len(calls) == 1
        assert permuted.metadata["fingerprint"] != first.metadata["fingerprint"]

        # Same data, different vectorizer vocabulary.
        cfg_sw = replace(small_cfg, extra_stopwords=("skin", "sleep", "sugar", "pill"))
        restopped = tuning.tune_or_load(spec, X, y, cfg_sw, tmp_path)
        assert len(calls) == 2
        assert restopped.metadata["fingerprint"] not in {first.metadata["fingerprint"], permuted.metadata["fingerprint"]}

        # Unchanged inputs hit the cache written by the last run.
        tuning.tune_or_load(spec, X, y, cfg_sw, tmp_path)
        assert len(calls) == 2

    def test_cache_without_fingerprint_is_stale(self, clean_df, small_cfg, tmp_path, monkeypatch):
        X, y = features.build_model_input(clean_df, small_cfg)
        (spec,) = get_model_specs(small_cfg, ["naive_bayes"])
        result = tuning.tune_model(spec, X, y, small_cfg)
        result.metadata.pop("fingerprint")
        tuning.save_tuning_result(result, tuning.tuning_path(tmp_path, spec))

        calls = []
        monkeypatch.setattr(tuning, "tune_model", lambda *a, **k: calls.append(1) or result)
        tuning.tune_or_load(spec, X, y, small_cfg, tmp_path)
        assert calls == [1]

    def test_load_missing_raises(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            tuning.load_tuning_result(tmp_path / "nope.joblib")


def test_compare_models_orders_by_auc():
    selected = {
        "knn": pd.Series({"mean_auc": 0.8, "std_err": 0.01, "clf__n_neighbors": 15}),
        "ridge": pd.Series({"mean_auc": 0.9, "std_err": 0.01, "clf__C": 0.1, "best_mean_auc": 0.91}),
    }
    out = tuning.compare_models(selected)
    assert out["model"].tolist() == ["ridge", "knn"]
    assert out.loc[0, "params"] == {"clf__C": 0.1}
    assert out.loc[1, "best_mean_auc"] == pytest.approx(0.8)
