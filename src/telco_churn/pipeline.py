"""End-to-end batch run:

Load -> Clean -> Segment summaries -> Split -> Fit (logistic, random forest;
full and reduced feature sets) -> Test evaluation -> Repeated k-fold CV
-> Cost-based threshold optimization.
"""

import json
import logging
from dataclasses import dataclass, replace

import pandas as pd

from . import plotting
from .cleaning import churn_rate, churn_target, clean_table
from .config import AnalysisConfig
from .cost import optimize_threshold
from .evaluation import compare_models, cross_validate, evaluate, parameter_sweep
from .loading import load_table
from .modeling import ModelSpec, design_matrix, fit_model, split_table
from .segments import churn_rate_pivot, numeric_profile, segment_report

logger = logging.getLogger(__name__)

# Features per split tried for the reduced forest
MTRY_GRID = (2, 3, 4, 6)


@dataclass(frozen=True, eq=False)
class AnalysisReport:
    cleaned: object
    segments: pd.DataFrame
    train: pd.DataFrame
    test: pd.DataFrame
    models: dict
    evaluations: dict
    comparison: pd.DataFrame
    mtry_sweep: pd.DataFrame
    cross_validation: object
    best_model: str
    cost: object


def save_table(df, outpath, index=False):
    outpath.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(outpath, index=index)
    logger.info("Saved: %s", outpath)
    return outpath


def _segment_stage(table, config):
    segments = segment_report(table, config.segment_columns)
    save_table(segments, config.table_dir / "segment_churn_rates.csv")
    pivot = churn_rate_pivot(table, "PaymentMethod", "InternetService")
    save_table(pivot, config.table_dir / "churn_rate_payment_x_internet.csv", index=True)
    save_table(numeric_profile(table), config.table_dir / "numeric_profile_by_churn.csv", index=True)

    if config.make_plots:
        fig_dir = config.figure_dir
        for column, summary in segments.groupby("segment", sort=False):
            plotting.plot_segment_counts(summary, column, fig_dir / f"eda_{column}_counts.png")
            plotting.plot_churn_rate(summary, column, fig_dir / f"eda_churn_rate_by_{column}.png")
        plotting.plot_churn_heatmap(
            pivot, "Churn Rate Heatmap: Payment Method x Internet Service",
            fig_dir / "eda_churn_heatmap_payment_x_internet.png",
        )
        plotting.plot_numeric_boxplots(table, fig_dir / "eda_numeric_boxplots.png")
    return segments


def _model_stage(train, config):
    """Fit full models, derive reduced feature sets from them, fit reduced models."""
    forest_cfg = replace(config.forest, importance=True)
    logit_full = fit_model(train, ModelSpec("logistic", seed=config.seed))
    significant = logit_full.significant_features(config.significance_level)
    if not significant:
        logger.warning("No feature significant at %.3f; reduced logistic uses all features",
                       config.significance_level)
        significant = list(logit_full.features)
    logger.info("Reduced logistic features: %s", significant)
    logit_reduced = fit_model(train, ModelSpec("logistic", features=significant, seed=config.seed))

    forest_full = fit_model(train, ModelSpec("random_forest", forest=forest_cfg, seed=config.seed))
    top = forest_full.top_features(config.top_forest_features)
    logger.info("Reduced forest features: %s", top)
    forest_reduced = fit_model(
        train, ModelSpec("random_forest", features=top, forest=forest_cfg, seed=config.seed)
    )

    models = {
        "logistic_full": logit_full,
        "logistic_reduced": logit_reduced,
        "forest_full": forest_full,
        "forest_reduced": forest_reduced,
    }
    return models, significant, top


def _mtry_sweep(train, test, features, config):
    n_design = design_matrix(train, features, drop_first=False).shape[1]
    grid = [m for m in MTRY_GRID if m <= n_design]

    def test_auc(mtry):
        spec = ModelSpec(
            "random_forest", features=features, seed=config.seed,
            forest=replace(config.forest, features_per_split=mtry, importance=False),
        )
        return evaluate(fit_model(train, spec), test, config.threshold, name=f"mtry={mtry}").auc

    pairs = parameter_sweep(grid, test_auc)
    return pd.DataFrame(pairs, columns=["features_per_split", "auc"])


def run_analysis(config):
    """Run the whole analysis described by an `AnalysisConfig`."""
    if not isinstance(config, AnalysisConfig):
        config = AnalysisConfig(**config)

    # Load + clean
    raw = load_table(config.input_path)
    cleaned = clean_table(raw)
    table = cleaned.frame
    logger.info("Churn rate (full data): %.4f", churn_rate(table))

    segments = _segment_stage(table, config)

    # Split + fit
    train, test = split_table(table, config.train_fraction, config.seed)
    logger.info("Churn rate train=%.4f test=%.4f", churn_rate(train), churn_rate(test))
    models, significant, top = _model_stage(train, config)

    save_table(models["logistic_full"].coefficients(),
               config.table_dir / "logistic_coefficients.csv", index=True)
    save_table(models["forest_full"].importance,
               config.table_dir / "forest_feature_importance.csv", index=True)

    # Test evaluation
    evaluations = {name: evaluate(m, test, config.threshold, name=name) for name, m in models.items()}
    comparison = compare_models(evaluations.values())
    save_table(comparison, config.table_dir / "test_model_comparison.csv")

    mtry_sweep = _mtry_sweep(train, test, top, config)
    save_table(mtry_sweep, config.table_dir / "forest_mtry_sweep.csv")

    # Repeated k-fold CV on the full table (reduced logistic model)
    cv_result = cross_validate(
        table, ModelSpec("logistic", features=significant, seed=config.seed),
        config.cross_validation, seed=config.seed, threshold=config.threshold, n_jobs=config.n_jobs,
    )
    save_table(cv_result.folds, config.table_dir / "cv_folds_logistic_reduced.csv")

    # Threshold optimization on the best-AUC model
    best_name = comparison.iloc[0]["model"]
    proba = models[best_name].predict_proba(test)
    cost = optimize_threshold(
        churn_target(test), proba,
        costs=config.costs, baseline=config.threshold,
        customer_base_size=config.customer_base_size,
    )
    save_table(cost.curve, config.table_dir / "threshold_cost_curve.csv")

    if config.make_plots:
        fig_dir = config.figure_dir
        plotting.plot_roc_curves(evaluations.values(), fig_dir / "roc_curve_test.png")
        best_eval = evaluations[best_name]
        plotting.plot_confusion_matrix(
            best_eval.confusion, f"Confusion Matrix ({best_name})  thr={config.threshold:.2f}",
            fig_dir / "confusion_matrix_baseline.png",
        )
        plotting.plot_confusion_matrix(
            evaluate(models[best_name], test, cost.best_threshold, name=best_name).confusion,
            f"Confusion Matrix ({best_name})  thr={cost.best_threshold:.2f}",
            fig_dir / "confusion_matrix_optimized.png",
        )
        plotting.plot_cost_curve(cost.curve, f"Expected cost vs threshold ({best_name})",
                                 fig_dir / "cost_curve_threshold.png", cost.best_threshold)
        plotting.plot_feature_importance(
            models["forest_full"].importance, "accuracy",
            "Random forest: mean decrease in accuracy", fig_dir / "forest_importance_accuracy.png",
        )
        plotting.plot_feature_importance(
            models["forest_full"].importance, "gini",
            "Random forest: mean decrease in Gini", fig_dir / "forest_importance_gini.png",
        )

    meta = {
        "input_path": str(config.input_path),
        "seed": config.seed,
        "rows": int(len(table)),
        "imputed_total_charges": len(cleaned.imputed_index),
        "total_charges_median": cleaned.total_charges_median,
        "train_rows": int(len(train)),
        "test_rows": int(len(test)),
        "logistic_reduced_features": list(significant),
        "forest_reduced_features": list(top),
        "best_model": best_name,
        "cross_validation": cv_result.summary(),
        "threshold": cost.as_dict(),
    }
    meta_path = config.output_dir / "run_metadata.json"
    meta_path.parent.mkdir(parents=True, exist_ok=True)
    with open(meta_path, "w", encoding="utf-8") as f:
        json.dump(meta, f, indent=2)
    logger.info("Saved: %s", meta_path)

    return AnalysisReport(
        cleaned=cleaned,
        segments=segments,
        train=train,
        test=test,
        models=models,
        evaluations=evaluations,
        comparison=comparison,
        mtry_sweep=mtry_sweep,
        cross_validation=cv_result,
        best_model=best_name,
        cost=cost,
    )
