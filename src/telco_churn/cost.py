"""Cost-optimal decision threshold selection.

Each threshold's confusion matrix is normalized by the number of scored
customers, so the expected cost is a per-customer figure:

    cost(t) = FN_rate * C_FN + TP_rate * C_TP + FP_rate * C_FP + TN_rate * C_TN

Classification uses the same `p >= t` rule as the evaluator.
"""

import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import CUSTOMER_BASE_SIZE, DEFAULT_THRESHOLD, CostConfig
from .errors import ConfigurationError, ValidationError
from .evaluation import ConfusionMatrix

logger = logging.getLogger(__name__)


def expected_cost(confusion, costs=None):
    """Expected cost per customer for one confusion matrix."""
    costs = costs or CostConfig()
    if confusion.total == 0:
        raise ValidationError("cost: cannot compute an expected cost over zero customers")
    r = confusion.rates()
    return (
        r["fn"] * costs.false_negative_cost
        + r["tp"] * costs.true_positive_cost
        + r["fp"] * costs.false_positive_cost
        + r["tn"] * costs.true_negative_cost
    )


def default_thresholds(baseline=DEFAULT_THRESHOLD):
    """0.1, 0.2, ..., 1.0 plus the baseline threshold."""
    grid = np.round(np.linspace(0.1, 1.0, 10), 10)
    return np.unique(np.append(grid, baseline))


def score_thresholds(proba):
    """Every threshold that yields a distinct classification within [0, 1].

    The cost curve is constant between consecutive distinct scores, so
    sweeping these values finds the global minimum.
    """
    scores = np.unique(np.clip(np.asarray(proba, dtype=float), 0.0, 1.0))
    if len(scores) == 0 or scores[-1] < 1.0:
        scores = np.append(scores, 1.0)
    return scores


def _check_thresholds(thresholds):
    values = sorted({float(t) for t in thresholds})
    if not values:
        raise ConfigurationError("cost: threshold grid is empty")
    bad = [t for t in values if not 0.0 <= t <= 1.0]
    if bad:
        raise ConfigurationError(f"cost: thresholds must lie in [0, 1], got {bad}")
    return values


def _curve_row(y_true, proba, threshold, costs):
    cm = ConfusionMatrix.from_predictions(y_true, proba, threshold)
    rates = cm.rates()
    return {
        "threshold": threshold,
        **cm.as_dict(),
        **{f"{k}_rate": v for k, v in rates.items()},
        "expected_cost": expected_cost(cm, costs),
    }


def cost_curve(y_true, proba, thresholds=None, costs=None):
    """Expected cost at each threshold, in ascending threshold order."""
    costs = costs or CostConfig()
    y_true = np.asarray(y_true)
    proba = np.asarray(proba, dtype=float)
    if len(y_true) == 0:
        raise ValidationError("cost: no scored customers")
    if len(y_true) != len(proba):
        raise ValidationError(
            f"cost: {len(y_true)} labels but {len(proba)} predicted probabilities"
        )
    grid = _check_thresholds(default_thresholds() if thresholds is None else thresholds)
    rows = [_curve_row(y_true, proba, t, costs) for t in grid]
    return pd.DataFrame(rows)


@dataclass(frozen=True, eq=False)
class ThresholdReport:
    curve: pd.DataFrame
    best_threshold: float
    best_cost: float
    baseline_threshold: float
    baseline_cost: float
    customer_base_size: int
    costs: CostConfig

    @property
    def savings_per_customer(self):
        return self.baseline_cost - self.best_cost

    @property
    def total_savings(self):
        return self.customer_base_size * self.savings_per_customer

    def as_dict(self):
        return {
            "best_threshold": self.best_threshold,
            "best_cost": self.best_cost,
            "baseline_threshold": self.baseline_threshold,
            "baseline_cost": self.baseline_cost,
            "savings_per_customer": self.savings_per_customer,
            "customer_base_size": self.customer_base_size,
            "total_savings": self.total_savings,
            "false_negative_cost": self.costs.false_negative_cost,
            "false_positive_cost": self.costs.false_positive_cost,
            "true_positive_cost": self.costs.true_positive_cost,
            "true_negative_cost": self.costs.true_negative_cost,
        }


def optimize_threshold(y_true, proba, thresholds=None, costs=None,
                       baseline=DEFAULT_THRESHOLD, customer_base_size=CUSTOMER_BASE_SIZE):
    """Pick the threshold with the lowest expected cost per customer.

    The baseline threshold is always swept, so the chosen threshold is never
    worse than the baseline on the same data. Ties go to the lowest threshold.
    """
    costs = costs or CostConfig()
    if customer_base_size < 0:
        raise ConfigurationError(
            f"cost: customer_base_size must be non-negative, got {customer_base_size}"
        )
    grid = default_thresholds(baseline) if thresholds is None else np.append(
        np.asarray(thresholds, dtype=float), baseline
    )
    curve = cost_curve(y_true, proba, grid, costs)

    best = curve.loc[curve["expected_cost"].idxmin()]
    baseline_cost = float(curve.loc[curve["threshold"] == float(baseline), "expected_cost"].iloc[0])

    report = ThresholdReport(
        curve=curve,
        best_threshold=float(best["threshold"]),
        best_cost=float(best["expected_cost"]),
        baseline_threshold=float(baseline),
        baseline_cost=baseline_cost,
        customer_base_size=customer_base_size,
        costs=costs,
    )
    logger.info(
        "Best threshold %.3f: expected cost %.2f vs %.2f at %.2f (saves %.2f per customer, %.0f total)",
        report.best_threshold, report.best_cost, report.baseline_cost,
        report.baseline_threshold, report.savings_per_customer, report.total_savings,
    )
    return report
