import logging
from dataclasses import dataclass, field

import numpy as np
import pandas as pd
import statsmodels.api as sm
from statsmodels.tools.sm_exceptions import PerfectSeparationError
from sklearn import ensemble
from sklearn.inspection import permutation_importance
from sklearn.model_selection import train_test_split

from .cleaning import churn_target
from .config import FEATURE_COLUMNS, RANDOM_STATE, SIGNIFICANCE_LEVEL, TRAIN_FRACTION, ForestConfig
from .errors import ConfigurationError, ValidationError

logger = logging.getLogger(__name__)


# ----------------------------
# Train/test split
# ----------------------------
def split_table(table, train_fraction=TRAIN_FRACTION, seed=RANDOM_STATE):
    """Stratified, seeded split into (train, test)."""
    if not 0.0 < train_fraction < 1.0:
        raise ConfigurationError(f"train: train_fraction must be in (0, 1), got {train_fraction}")
    y = churn_target(table)
    try:
        train, test = train_test_split(
            table, train_size=train_fraction, random_state=seed, stratify=y
        )
    except ValueError as e:
        raise ValidationError(f"train: cannot build a stratified split: {e}") from e
    logger.info("Split %d rows into %d train / %d test (seed=%s)",
                len(table), len(train), len(test), seed)
    return train, test


# ----------------------------
# Encoding
# ----------------------------
def design_matrix(frame, features, columns=None, drop_first=True):
    """One-hot encode categorical features; numeric features pass through.

    With `columns` the result is aligned to a previously fitted column list:
    unseen dummies are dropped and absent ones filled with 0.
    """
    features = list(features)
    unknown = [f for f in features if f not in frame.columns]
    if unknown:
        raise ConfigurationError(f"train: unknown feature columns {unknown}")

    if columns is not None:
        # reference levels are removed by the reindex below
        drop_first = False
    X = pd.get_dummies(frame[features], drop_first=drop_first, dtype=float).astype(float)
    if columns is not None:
        X = X.reindex(columns=list(columns), fill_value=0.0)
    return X


def source_feature(design_column, features):
    """Map a design column such as 'Contract_Two year' back to 'Contract'."""
    if design_column in features:
        return design_column
    for f in features:
        if design_column.startswith(f + "_"):
            return f
    raise KeyError(design_column)


def _drop_aliased(X):
    """Keep columns that are linearly independent of the ones before them."""
    kept, aliased = [], []
    for col in X.columns:
        candidate = X[kept + [col]].to_numpy()
        if np.linalg.matrix_rank(candidate) == len(kept) + 1:
            kept.append(col)
        else:
            aliased.append(col)
    return kept, aliased


def _require_both_classes(y, what):
    if len(np.unique(y)) < 2:
        raise ValidationError(f"train: {what} contains only one churn class")


# ----------------------------
# Classifiers
# ----------------------------
class ChurnClassifier:
    """A fitted model: maps customer records to P(churn)."""

    family = None

    def predict_proba(self, frame):
        raise NotImplementedError

    def score(self, record):
        """Churn probability for a single record (dict or Series)."""
        return float(self.predict_proba(pd.DataFrame([dict(record)]))[0])


@dataclass(frozen=True, eq=False)
class LogisticClassifier(ChurnClassifier):
    result: object
    features: tuple
    design_columns: tuple
    aliased: tuple = ()
    family = "logistic"

    def predict_proba(self, frame):
        X = design_matrix(frame, self.features, columns=self.design_columns)
        X = sm.add_constant(X, has_constant="add")
        return np.asarray(self.result.predict(X[self.result.model.exog_names]), dtype=float)

    def coefficients(self):
        r = self.result
        return pd.DataFrame({
            "estimate": r.params,
            "std_error": r.bse,
            "z": r.tvalues,
            "p_value": r.pvalues,
        })

    def significant_features(self, alpha=SIGNIFICANCE_LEVEL):
        """Source features with at least one coefficient significant at `alpha`."""
        pvalues = self.result.pvalues.drop("const", errors="ignore")
        hits = {source_feature(c, self.features) for c, p in pvalues.items() if p < alpha}
        return [f for f in self.features if f in hits]


@dataclass(frozen=True, eq=False)
class RandomForestClassifier(ChurnClassifier):
    estimator: object
    features: tuple
    design_columns: tuple
    importance: pd.DataFrame = field(default=None)
    family = "random_forest"

    def predict_proba(self, frame):
        X = design_matrix(frame, self.features, columns=self.design_columns)
        return self.estimator.predict_proba(X)[:, 1]

    def top_features(self, n, by="gini"):
        """The `n` most important source features, dummies summed per feature."""
        if self.importance is None:
            raise ConfigurationError("train: forest was fitted without importance scores")
        if by not in self.importance.columns:
            raise ConfigurationError(f"train: unknown importance measure {by!r}")
        per_feature = self.importance[by].groupby(
            lambda c: source_feature(c, self.features)
        ).sum()
        ranked = per_feature.sort_values(ascending=False, kind="mergesort")
        return list(ranked.index[:n])


def fit_logistic(train, features, config=None, seed=None):
    features = tuple(features)
    X = design_matrix(train, features)
    X = sm.add_constant(X, has_constant="add")
    y = churn_target(train)
    _require_both_classes(y, "training table")

    kept, aliased = _drop_aliased(X)
    if aliased:
        logger.info("Logistic: dropped aliased columns %s", aliased)

    try:
        result = sm.Logit(y, X[kept]).fit(disp=0, maxiter=200)
    except (np.linalg.LinAlgError, PerfectSeparationError, ValueError) as e:
        raise ValidationError(
            f"train: logistic regression failed on {len(y)} rows, {len(kept)} columns: {e}"
        ) from e
    if not result.mle_retvals.get("converged", True):
        logger.warning("Logistic regression did not converge (%d features)", len(features))
    logger.info("Fitted logistic regression on %d rows, %d coefficients", len(y), len(kept))
    return LogisticClassifier(
        result=result,
        features=features,
        design_columns=tuple(c for c in kept if c != "const"),
        aliased=tuple(aliased),
    )


def fit_random_forest(train, features, config=None, seed=RANDOM_STATE):
    config = config or ForestConfig()
    features = tuple(features)
    X = design_matrix(train, features, drop_first=False)
    y = churn_target(train)
    _require_both_classes(y, "training table")

    n_cols = X.shape[1]
    mtry = config.features_per_split or max(1, int(np.floor(np.sqrt(n_cols))))
    if mtry > n_cols:
        raise ConfigurationError(
            f"train: features_per_split={mtry} exceeds the {n_cols} encoded feature columns"
        )

    rf = ensemble.RandomForestClassifier(
        n_estimators=config.num_trees, max_features=mtry, random_state=seed
    )
    try:
        rf.fit(X, y)
    except ValueError as e:
        raise ValidationError(f"train: random forest failed on {len(y)} rows: {e}") from e

    importance = None
    if config.importance:
        perm = permutation_importance(
            rf, X, y, scoring="accuracy", n_repeats=5, random_state=seed
        )
        importance = pd.DataFrame({
            "gini": rf.feature_importances_,
            "accuracy": perm.importances_mean,
            "accuracy_std": perm.importances_std,
        }, index=X.columns).sort_values("gini", ascending=False)

    logger.info("Fitted random forest: %d trees, %d features per split, %d columns",
                config.num_trees, mtry, n_cols)
    return RandomForestClassifier(
        estimator=rf,
        features=features,
        design_columns=tuple(X.columns),
        importance=importance,
    )


FITTERS = {
    "logistic": fit_logistic,
    "random_forest": fit_random_forest,
}


@dataclass(frozen=True)
class ModelSpec:
    family: str = "logistic"
    features: tuple = None
    forest: ForestConfig = field(default_factory=ForestConfig)
    seed: int = RANDOM_STATE

    def __post_init__(self):
        if self.family not in FITTERS:
            raise ConfigurationError(
                f"train: unknown model family {self.family!r}; expected one of {sorted(FITTERS)}"
            )
        if self.features is not None:
            if len(self.features) == 0:
                raise ConfigurationError("train: feature subset is empty")
            object.__setattr__(self, "features", tuple(self.features))

    @property
    def feature_list(self):
        return self.features or tuple(FEATURE_COLUMNS)


def fit_model(train, spec):
    """Fit a new classifier for `spec`; previously returned models are untouched."""
    fitter = FITTERS[spec.family]
    return fitter(train, spec.feature_list, config=spec.forest, seed=spec.seed)
