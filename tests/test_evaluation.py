import math

import numpy as np
import pandas as pd
import pytest
from sklearn.metrics import roc_auc_score

from telco_churn.config import CrossValidationConfig, ForestConfig
from telco_churn.errors import ConfigurationError, DegenerateFoldError
from telco_churn.evaluation import (
    ConfusionMatrix, auc_score, binarize, compare_models, cross_validate, evaluate,
    parameter_sweep, roc_points,
)
from telco_churn.modeling import ModelSpec, fit_model, split_table


def test_probability_equal_to_threshold_is_positive():
    assert binarize([0.5, 0.4999, 0.5001], 0.5).tolist() == [1, 0, 1]
    cm = ConfusionMatrix.from_predictions([0, 0, 1, 1], [0.1, 0.5, 0.5, 0.9], 0.5)
    assert cm.as_dict() == {"tn": 1, "fp": 1, "fn": 0, "tp": 2}


def test_confusion_metrics():
    cm = ConfusionMatrix(tn=1300, fp=160, fn=200, tp=100)
    assert cm.total == 1760
    assert cm.accuracy == pytest.approx(1400 / 1760)
    assert cm.sensitivity == pytest.approx(100 / 300)
    assert cm.specificity == pytest.approx(1300 / 1460)
    assert sum(cm.rates().values()) == pytest.approx(1.0)
    assert cm.as_array().tolist() == [[1300, 160], [200, 100]]


def test_undefined_metrics_are_nan():
    cm = ConfusionMatrix(tn=5, fp=1, fn=0, tp=0)
    assert math.isnan(cm.sensitivity)
    assert cm.specificity == pytest.approx(5 / 6)


def test_counts_conserved_and_monotone_in_threshold():
    rng = np.random.default_rng(0)
    y = rng.integers(0, 2, size=300)
    p = np.clip(rng.normal(0.3 + 0.3 * y, 0.2), 0, 1)
    previous = None
    for t in np.linspace(0, 1, 41):
        cm = ConfusionMatrix.from_predictions(y, p, t)
        assert cm.total == len(y)
        if previous is not None:
            assert cm.tp <= previous.tp and cm.fp <= previous.fp
            assert cm.tn >= previous.tn and cm.fn >= previous.fn
        previous = cm


def test_auc_known_values():
    y = np.array([0, 0, 1, 1])
    assert auc_score(y, [0.1, 0.2, 0.8, 0.9]) == pytest.approx(1.0)
    assert auc_score(y, [0.9, 0.8, 0.2, 0.1]) == pytest.approx(0.0)
    assert auc_score(y, [0.1, 0.4, 0.35, 0.8]) == pytest.approx(0.75)


def test_auc_matches_rank_statistic():
    rng = np.random.default_rng(1)
    y = rng.integers(0, 2, size=500)
    p = np.round(rng.random(500) + 0.2 * y, 2)  # rounding creates ties
    assert auc_score(y, p) == pytest.approx(roc_auc_score(y, p))
    assert 0.0 <= auc_score(y, p) <= 1.0


def test_random_scores_auc_near_half():
    rng = np.random.default_rng(2)
    aucs = [auc_score(rng.integers(0, 2, size=200), rng.random(200)) for _ in range(200)]
    assert np.mean(aucs) == pytest.approx(0.5, abs=0.02)


def test_roc_points_order():
    rng = np.random.default_rng(3)
    y = rng.integers(0, 2, size=100)
    p = rng.random(100)
    roc = roc_points(y, p)
    assert (np.diff(roc["threshold"]) < 0).all()
    assert (np.diff(roc["fpr"]) >= 0).all()
    assert roc["fpr"].iloc[0] == 0 and roc["tpr"].iloc[0] == 0
    assert roc["fpr"].iloc[-1] == 1 and roc["tpr"].iloc[-1] == 1
    # every distinct score is a threshold
    assert len(roc) == len(np.unique(p)) + 1


def test_single_class_is_degenerate():
    with pytest.raises(DegenerateFoldError):
        auc_score([0, 0, 0], [0.1, 0.2, 0.3])


def test_evaluate_and_compare(table):
    train, test = split_table(table, 0.75, seed=42)
    logit = fit_model(train, ModelSpec("logistic"))
    forest = fit_model(train, ModelSpec("random_forest", forest=ForestConfig(num_trees=25, importance=False)))
    a = evaluate(logit, test, 0.5, name="logistic")
    b = evaluate(forest, test, 0.5, name="forest")
    for e in (a, b):
        assert e.confusion.total == len(test)
        assert 0.0 <= e.auc <= 1.0
    # the synthetic churn signal is learnable
    assert a.auc > 0.6

    table_ = compare_models([a, b])
    assert set(table_["model"]) == {"logistic", "forest"}
    assert table_["auc"].is_monotonic_decreasing
    assert {"auc", "sensitivity", "specificity", "accuracy", "tn", "tp"} <= set(table_.columns)


def test_cross_validate(table):
    cv = CrossValidationConfig(folds=3, repeats=2)
    result = cross_validate(table, ModelSpec("logistic", features=["Contract", "tenure", "InternetService"]),
                            cv, seed=11)
    assert len(result.folds) == 6
    assert sorted(set(zip(result.folds["repeat"], result.folds["fold"]))) == [
        (r, f) for r in (1, 2) for f in (1, 2, 3)
    ]
    # each repeat covers every row exactly once
    assert result.folds.groupby("repeat")["n_test"].sum().tolist() == [len(table), len(table)]
    assert 0.0 <= result.mean_auc <= 1.0
    assert result.mean_auc == pytest.approx(result.folds["auc"].mean())
    summary = result.summary()
    assert summary["folds"] == 3 and summary["repeats"] == 2


def test_cross_validate_in_parallel_matches_serial(table):
    spec = ModelSpec("logistic", features=["Contract", "tenure"])
    cv = CrossValidationConfig(folds=3, repeats=1)
    serial = cross_validate(table, spec, cv, seed=4, n_jobs=1)
    parallel = cross_validate(table, spec, cv, seed=4, n_jobs=2)
    pd.testing.assert_frame_equal(serial.folds, parallel.folds)


def test_fold_without_churners_is_flagged(table):
    tiny = table.copy()
    churners = tiny.index[tiny["Churn"] == "Yes"]
    tiny.loc[churners[2:], "Churn"] = "No"
    with pytest.raises(DegenerateFoldError, match="cross-validate"):
        cross_validate(tiny, ModelSpec("logistic", features=["tenure"]),
                       CrossValidationConfig(folds=5, repeats=1))


def test_cv_config_validation():
    with pytest.raises(ConfigurationError):
        CrossValidationConfig(folds=1)
    with pytest.raises(ConfigurationError):
        CrossValidationConfig(repeats=0)


def test_parameter_sweep_is_a_pure_mapping():
    calls = []

    def metric(c):
        calls.append(c)
        return c * 2

    assert parameter_sweep([1, 2, 3], metric) == [(1, 2), (2, 4), (3, 6)]
    assert calls == [1, 2, 3]


def test_cross_validate_rejects_zero_jobs(table):
    with pytest.raises(ConfigurationError, match="n_jobs"):
        cross_validate(table, ModelSpec("logistic", features=["tenure"]),
                       CrossValidationConfig(folds=3, repeats=1), n_jobs=0)
