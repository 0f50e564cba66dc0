import json

import pytest

from telco_churn.cli import main
from telco_churn.config import AnalysisConfig, CrossValidationConfig, ForestConfig
from telco_churn.errors import ConfigurationError, DataLoadError
from telco_churn.pipeline import run_analysis


@pytest.fixture
def config(csv_path, tmp_path):
    return AnalysisConfig(
        input_path=csv_path,
        output_dir=tmp_path / "out",
        forest=ForestConfig(num_trees=20),
        cross_validation=CrossValidationConfig(folds=3, repeats=1),
    )


def test_run_analysis_end_to_end(config):
    report = run_analysis(config)

    assert set(report.models) == {"logistic_full", "logistic_reduced", "forest_full", "forest_reduced"}
    assert len(report.comparison) == 4
    assert report.best_model == report.comparison.iloc[0]["model"]
    assert len(report.train) + len(report.test) == len(report.cleaned.frame)
    assert len(report.cross_validation.folds) == 3
    assert report.cost.best_cost <= report.cost.baseline_cost
    assert report.cost.customer_base_size == 500_000
    assert not report.mtry_sweep.empty

    tables = config.output_dir / "tables"
    for name in ("segment_churn_rates.csv", "test_model_comparison.csv", "threshold_cost_curve.csv",
                 "logistic_coefficients.csv", "forest_feature_importance.csv",
                 "cv_folds_logistic_reduced.csv", "forest_mtry_sweep.csv"):
        assert (tables / name).exists(), name
    figures = config.output_dir / "figures"
    for name in ("roc_curve_test.png", "cost_curve_threshold.png", "confusion_matrix_optimized.png",
                 "eda_churn_heatmap_payment_x_internet.png", "eda_numeric_boxplots.png"):
        assert (figures / name).exists(), name

    meta = json.loads((config.output_dir / "run_metadata.json").read_text())
    assert meta["best_model"] == report.best_model
    assert meta["imputed_total_charges"] == len(report.cleaned.imputed_index)


def test_run_analysis_is_reproducible(config, tmp_path):
    from dataclasses import replace

    a = run_analysis(replace(config, make_plots=False))
    b = run_analysis(replace(config, output_dir=tmp_path / "again", make_plots=False))
    assert list(a.test.index) == list(b.test.index)
    assert a.comparison.equals(b.comparison)
    assert a.cost.best_threshold == b.cost.best_threshold


def test_missing_input(tmp_path):
    cfg = AnalysisConfig(input_path=tmp_path / "missing.csv", output_dir=tmp_path / "out")
    with pytest.raises(DataLoadError):
        run_analysis(cfg)


@pytest.mark.parametrize("kwargs", [
    {"train_fraction": 1.0},
    {"threshold": 1.5},
    {"customer_base_size": -1},
    {"top_forest_features": 0},
    {"n_jobs": 0},
])
def test_analysis_config_validation(tmp_path, kwargs):
    with pytest.raises(ConfigurationError):
        AnalysisConfig(input_path=tmp_path / "x.csv", output_dir=tmp_path, **kwargs)


def test_cli(csv_path, tmp_path, capsys):
    code = main([str(csv_path), "-o", str(tmp_path / "cli"), "--trees", "15",
                 "--folds", "3", "--repeats", "1", "--no-plots", "--customer-base-size", "1000"])
    assert code == 0
    out = capsys.readouterr().out
    assert "Best threshold" in out
    assert "1,000 customers" in out
    assert not (tmp_path / "cli" / "figures").exists()


def test_cli_reports_failure(tmp_path):
    assert main([str(tmp_path / "missing.csv"), "-o", str(tmp_path / "cli")]) == 1


def test_cli_rejects_zero_jobs(csv_path, tmp_path):
    assert main([str(csv_path), "-o", str(tmp_path / "cli"), "--n-jobs", "0"]) == 1
    assert not (tmp_path / "cli" / "tables").exists()
