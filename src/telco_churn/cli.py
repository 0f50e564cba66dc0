import argparse
import logging
import sys

from .config import (
    CUSTOMER_BASE_SIZE, CV_FOLDS, CV_REPEATS, NUM_TREES, RANDOM_STATE,
    AnalysisConfig, CrossValidationConfig, ForestConfig,
)
from .errors import ChurnAnalysisError
from .pipeline import run_analysis

logger = logging.getLogger("telco_churn")


def build_parser():
    p = argparse.ArgumentParser(
        prog="telco-churn",
        description="Telco churn analysis: segments, models and cost-optimal threshold.",
    )
    p.add_argument("input", help="path to the customer churn CSV")
    p.add_argument("-o", "--output-dir", default="outputs", help="where tables and figures go")
    p.add_argument("--seed", type=int, default=RANDOM_STATE)
    p.add_argument("--trees", type=int, default=NUM_TREES, help="random forest size")
    p.add_argument("--folds", type=int, default=CV_FOLDS)
    p.add_argument("--repeats", type=int, default=CV_REPEATS)
    p.add_argument("--customer-base-size", type=int, default=CUSTOMER_BASE_SIZE)
    p.add_argument("--n-jobs", type=int, default=1, help="parallel cross-validation folds")
    p.add_argument("--no-plots", action="store_true", help="skip writing figures")
    p.add_argument("-v", "--verbose", action="store_true")
    return p


def main(argv=None):
    args = build_parser().parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )
    try:
        config = AnalysisConfig(
            input_path=args.input,
            output_dir=args.output_dir,
            seed=args.seed,
            customer_base_size=args.customer_base_size,
            forest=ForestConfig(num_trees=args.trees),
            cross_validation=CrossValidationConfig(folds=args.folds, repeats=args.repeats),
            make_plots=not args.no_plots,
            n_jobs=args.n_jobs,
        )
        report = run_analysis(config)
    except ChurnAnalysisError as e:
        logger.error("Analysis failed: %s", e)
        return 1

    print("\n=== Test comparison ===")
    print(report.comparison.round(4).to_string(index=False))
    print("\n=== Cross-validation (reduced logistic) ===")
    for k, v in report.cross_validation.summary().items():
        print(f"{k:>12}: {v:.4f}" if isinstance(v, float) else f"{k:>12}: {v}")
    print(f"\n=== Cost threshold table ({report.best_model}) ===")
    print(report.cost.curve[["threshold", "tn", "fp", "fn", "tp", "expected_cost"]]
          .round(4).to_string(index=False))
    c = report.cost
    print(f"\nBest threshold {c.best_threshold:.2f}: {c.best_cost:.2f} per customer "
          f"(baseline {c.baseline_threshold:.2f}: {c.baseline_cost:.2f})")
    print(f"Savings: {c.savings_per_customer:.2f} per customer, "
          f"{c.total_savings:,.0f} for {c.customer_base_size:,} customers")
    print("\nDONE.")
    return 0


if __name__ == "__main__":
    sys.exit(main())
