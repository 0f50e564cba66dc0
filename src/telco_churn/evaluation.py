import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.metrics import auc, confusion_matrix, roc_curve
from sklearn.model_selection import RepeatedStratifiedKFold

from .cleaning import churn_target
from .config import DEFAULT_THRESHOLD, RANDOM_STATE, CrossValidationConfig
from .errors import ConfigurationError, DegenerateFoldError
from .modeling import fit_model

logger = logging.getLogger(__name__)


def binarize(proba, threshold=DEFAULT_THRESHOLD):
    """Predicted churn (1) iff p >= threshold.

    Evaluator and cost optimizer both classify through this function, so a
    probability exactly equal to the threshold is always a positive.
    """
    return (np.asarray(proba, dtype=float) >= threshold).astype(int)


def _ratio(num, den):
    return num / den if den else float("nan")


@dataclass(frozen=True)
class ConfusionMatrix:
    tn: int
    fp: int
    fn: int
    tp: int

    @classmethod
    def from_predictions(cls, y_true, proba, threshold=DEFAULT_THRESHOLD):
        y_pred = binarize(proba, threshold)
        tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[0, 1]).ravel()
        return cls(tn=int(tn), fp=int(fp), fn=int(fn), tp=int(tp))

    @property
    def total(self):
        return self.tn + self.fp + self.fn + self.tp

    def rates(self):
        """Each cell as a fraction of all rows."""
        n = self.total
        return {k: _ratio(v, n) for k, v in self.as_dict().items()}

    @property
    def accuracy(self):
        return _ratio(self.tp + self.tn, self.total)

    @property
    def sensitivity(self):
        return _ratio(self.tp, self.tp + self.fn)

    @property
    def specificity(self):
        return _ratio(self.tn, self.tn + self.fp)

    def as_dict(self):
        return {"tn": self.tn, "fp": self.fp, "fn": self.fn, "tp": self.tp}

    def as_array(self):
        """[[TN, FP], [FN, TP]], rows = actual, columns = predicted."""
        return np.array([[self.tn, self.fp], [self.fn, self.tp]])


def _check_both_classes(y_true, where):
    y_true = np.asarray(y_true)
    n_pos = int((y_true == 1).sum())
    n_neg = int((y_true == 0).sum())
    if n_pos == 0 or n_neg == 0:
        raise DegenerateFoldError(
            f"{where} has {n_pos} churners and {n_neg} non-churners; "
            "AUC and sensitivity/specificity are undefined"
        )


def roc_points(y_true, proba):
    """ROC points in order of decreasing threshold (ascending FPR).

    Every distinct predicted probability is a threshold; the first row uses an
    infinite threshold (nothing predicted positive).
    """
    _check_both_classes(y_true, "evaluate: held-out set")
    fpr, tpr, thresholds = roc_curve(y_true, proba, drop_intermediate=False)
    return pd.DataFrame({"threshold": thresholds, "fpr": fpr, "tpr": tpr})


def auc_score(y_true, proba):
    """Trapezoidal area under the ROC curve."""
    points = roc_points(y_true, proba)
    return float(auc(points["fpr"], points["tpr"]))


@dataclass(frozen=True, eq=False)
class Evaluation:
    name: str
    threshold: float
    confusion: ConfusionMatrix
    auc: float
    roc: pd.DataFrame

    @property
    def accuracy(self):
        return self.confusion.accuracy

    @property
    def sensitivity(self):
        return self.confusion.sensitivity

    @property
    def specificity(self):
        return self.confusion.specificity

    def as_row(self):
        return {
            "model": self.name,
            "threshold": self.threshold,
            **self.confusion.as_dict(),
            "accuracy": self.accuracy,
            "sensitivity": self.sensitivity,
            "specificity": self.specificity,
            "auc": self.auc,
        }


def evaluate(model, test, threshold=DEFAULT_THRESHOLD, name=None):
    """Score the test table and derive confusion-matrix metrics, ROC and AUC."""
    y_true = churn_target(test)
    proba = model.predict_proba(test)
    roc = roc_points(y_true, proba)
    result = Evaluation(
        name=name or model.family,
        threshold=float(threshold),
        confusion=ConfusionMatrix.from_predictions(y_true, proba, threshold),
        auc=float(auc(roc["fpr"], roc["tpr"])),
        roc=roc,
    )
    logger.info("%s: AUC=%.4f accuracy=%.4f sensitivity=%.4f specificity=%.4f",
                result.name, result.auc, result.accuracy, result.sensitivity, result.specificity)
    return result


def compare_models(evaluations):
    """One row per evaluation, best AUC first."""
    rows = [e.as_row() for e in evaluations]
    return pd.DataFrame(rows).sort_values("auc", ascending=False, kind="mergesort").reset_index(drop=True)


def parameter_sweep(configs, metric):
    """Map each configuration to (config, metric(config)) without shared state."""
    return [(c, metric(c)) for c in configs]


# ----------------------------
# Repeated k-fold cross-validation
# ----------------------------
@dataclass(frozen=True, eq=False)
class CrossValidationResult:
    folds: pd.DataFrame
    folds_per_repeat: int
    repeats: int

    def mean(self, metric):
        return float(self.folds[metric].mean())

    @property
    def mean_auc(self):
        return self.mean("auc")

    @property
    def mean_sensitivity(self):
        return self.mean("sensitivity")

    @property
    def mean_specificity(self):
        return self.mean("specificity")

    def summary(self):
        return {
            "folds": self.folds_per_repeat,
            "repeats": self.repeats,
            "auc": self.mean_auc,
            "sensitivity": self.mean_sensitivity,
            "specificity": self.mean_specificity,
            "accuracy": self.mean("accuracy"),
        }


def _evaluate_fold(table, spec, threshold, repeat, fold, train_idx, test_idx):
    model = fit_model(table.iloc[train_idx], spec)
    result = evaluate(model, table.iloc[test_idx], threshold, name=f"r{repeat}f{fold}")
    return {
        "repeat": repeat,
        "fold": fold,
        "n_test": len(test_idx),
        "auc": result.auc,
        "sensitivity": result.sensitivity,
        "specificity": result.specificity,
        "accuracy": result.accuracy,
    }


def cross_validate(table, spec, cv=None, seed=RANDOM_STATE, threshold=DEFAULT_THRESHOLD, n_jobs=1):
    """Repeated stratified k-fold: fit on k-1 folds, evaluate on the held-out one.

    Folds are independent, so they may be evaluated in parallel (`n_jobs`).
    """
    cv = cv or CrossValidationConfig()
    if n_jobs == 0:
        raise ConfigurationError("cross-validate: n_jobs must be a non-zero integer, got 0")
    y = churn_target(table)
    splitter = RepeatedStratifiedKFold(n_splits=cv.folds, n_repeats=cv.repeats, random_state=seed)

    jobs = []
    try:
        for i, (train_idx, test_idx) in enumerate(splitter.split(np.zeros(len(y)), y)):
            repeat, fold = divmod(i, cv.folds)
            where = f"cross-validate: repeat {repeat + 1} fold {fold + 1}"
            _check_both_classes(y[test_idx], where + " held-out set")
            _check_both_classes(y[train_idx], where + " training set")
            jobs.append((repeat + 1, fold + 1, train_idx, test_idx))
    except ValueError as e:
        raise DegenerateFoldError(f"cross-validate: cannot build {cv.folds} stratified folds: {e}") from e

    rows = Parallel(n_jobs=n_jobs)(
        delayed(_evaluate_fold)(table, spec, threshold, *job) for job in jobs
    )
    result = CrossValidationResult(
        folds=pd.DataFrame(rows), folds_per_repeat=cv.folds, repeats=cv.repeats
    )
    logger.info("Cross-validation (%d folds x %d repeats): mean AUC=%.4f",
                cv.folds, cv.repeats, result.mean_auc)
    return result
