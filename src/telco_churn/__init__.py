"""Telco customer churn analysis and cost-based threshold selection."""

from .cleaning import CleanedTable, churn_target, clean_table
from .config import AnalysisConfig, CostConfig, CrossValidationConfig, ForestConfig
from .cost import ThresholdReport, cost_curve, expected_cost, optimize_threshold
from .errors import (
    ChurnAnalysisError, ConfigurationError, DataLoadError, DegenerateFoldError, ValidationError,
)
from .evaluation import ConfusionMatrix, Evaluation, cross_validate, evaluate
from .loading import load_table
from .modeling import LogisticClassifier, ModelSpec, RandomForestClassifier, fit_model, split_table
from .pipeline import run_analysis
from .segments import segment_summary

__version__ = "0.1.0"
