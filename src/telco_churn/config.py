"""
Global configuration settings for the churn analysis pipeline.
"""

from dataclasses import dataclass, field
from pathlib import Path

from .errors import ConfigurationError

RANDOM_STATE = 42

TRAIN_FRACTION = 0.75
DEFAULT_THRESHOLD = 0.5

# Business cost assumptions (used in threshold optimization)
COST_FALSE_NEGATIVE = 300   # missed churner (lost revenue)
COST_FALSE_POSITIVE = 60    # unnecessary retention offer
COST_TRUE_POSITIVE = 60     # retention offer to a real churner
COST_TRUE_NEGATIVE = 0

# Hypothetical customer base used to scale per-customer savings
CUSTOMER_BASE_SIZE = 500_000

# Random forest
NUM_TREES = 500
TOP_FOREST_FEATURES = 10

# Logistic regression feature reduction
SIGNIFICANCE_LEVEL = 0.05

# Repeated k-fold cross-validation
CV_FOLDS = 10
CV_REPEATS = 3

# ----------------------------
# Dataset schema
# ----------------------------
ID_COLUMN = "customerID"
TARGET_COLUMN = "Churn"
TARGET_LEVELS = ("No", "Yes")

NUMERIC_COLUMNS = ["tenure", "MonthlyCharges", "TotalCharges"]

CATEGORICAL_COLUMNS = [
    "gender", "SeniorCitizen", "Partner", "Dependents", "PhoneService",
    "MultipleLines", "InternetService", "OnlineSecurity", "OnlineBackup",
    "DeviceProtection", "TechSupport", "StreamingTV", "StreamingMovies",
    "Contract", "PaperlessBilling", "PaymentMethod",
]

EXPECTED_COLUMNS = [ID_COLUMN] + CATEGORICAL_COLUMNS[:4] + ["tenure"] + CATEGORICAL_COLUMNS[4:] + [
    "MonthlyCharges", "TotalCharges", TARGET_COLUMN,
]

FEATURE_COLUMNS = CATEGORICAL_COLUMNS + NUMERIC_COLUMNS

MAX_CATEGORY_LEVELS = 4

# Columns summarized by the segment report
SEGMENT_COLUMNS = [
    "gender", "SeniorCitizen", "Partner", "Dependents",
    "InternetService", "Contract", "PaymentMethod", "PaperlessBilling",
    "TechSupport", "OnlineSecurity",
]


@dataclass(frozen=True)
class CostConfig:
    false_negative_cost: float = COST_FALSE_NEGATIVE
    false_positive_cost: float = COST_FALSE_POSITIVE
    true_positive_cost: float = COST_TRUE_POSITIVE
    true_negative_cost: float = COST_TRUE_NEGATIVE

    def __post_init__(self):
        for name in ("false_negative_cost", "false_positive_cost",
                     "true_positive_cost", "true_negative_cost"):
            if getattr(self, name) < 0:
                raise ConfigurationError(
                    f"cost: {name} must be non-negative, got {getattr(self, name)}"
                )


@dataclass(frozen=True)
class ForestConfig:
    num_trees: int = NUM_TREES
    # None means floor(sqrt(number of design columns))
    features_per_split: int | None = None
    importance: bool = True

    def __post_init__(self):
        if self.num_trees < 1:
            raise ConfigurationError(f"train: num_trees must be >= 1, got {self.num_trees}")
        if self.features_per_split is not None and self.features_per_split < 1:
            raise ConfigurationError(
                f"train: features_per_split must be >= 1, got {self.features_per_split}"
            )


@dataclass(frozen=True)
class CrossValidationConfig:
    folds: int = CV_FOLDS
    repeats: int = CV_REPEATS

    def __post_init__(self):
        if self.folds < 2:
            raise ConfigurationError(f"cross-validate: folds must be >= 2, got {self.folds}")
        if self.repeats < 1:
            raise ConfigurationError(f"cross-validate: repeats must be >= 1, got {self.repeats}")


@dataclass(frozen=True)
class AnalysisConfig:
    """Everything a single batch run needs; no process-wide paths."""
    input_path: Path
    output_dir: Path
    seed: int = RANDOM_STATE
    train_fraction: float = TRAIN_FRACTION
    threshold: float = DEFAULT_THRESHOLD
    costs: CostConfig = field(default_factory=CostConfig)
    customer_base_size: int = CUSTOMER_BASE_SIZE
    forest: ForestConfig = field(default_factory=ForestConfig)
    cross_validation: CrossValidationConfig = field(default_factory=CrossValidationConfig)
    significance_level: float = SIGNIFICANCE_LEVEL
    top_forest_features: int = TOP_FOREST_FEATURES
    segment_columns: tuple = tuple(SEGMENT_COLUMNS)
    make_plots: bool = True
    n_jobs: int = 1

    def __post_init__(self):
        object.__setattr__(self, "input_path", Path(self.input_path))
        object.__setattr__(self, "output_dir", Path(self.output_dir))
        if not 0.0 < self.train_fraction < 1.0:
            raise ConfigurationError(
                f"train: train_fraction must be in (0, 1), got {self.train_fraction}"
            )
        if not 0.0 <= self.threshold <= 1.0:
            raise ConfigurationError(f"evaluate: threshold must be in [0, 1], got {self.threshold}")
        if self.customer_base_size < 0:
            raise ConfigurationError(
                f"cost: customer_base_size must be non-negative, got {self.customer_base_size}"
            )
        if not 0.0 < self.significance_level < 1.0:
            raise ConfigurationError(
                f"train: significance_level must be in (0, 1), got {self.significance_level}"
            )
        if self.top_forest_features < 1:
            raise ConfigurationError(
                f"train: top_forest_features must be >= 1, got {self.top_forest_features}"
            )
        if self.n_jobs == 0:
            raise ConfigurationError(
                "cross-validate: n_jobs must be a non-zero integer (-1 = all cores), got 0"
            )

    @property
    def table_dir(self):
        return self.output_dir / "tables"

    @property
    def figure_dir(self):
        return self.output_dir / "figures"
