"""Error taxonomy for the churn analysis. Every failure aborts the run."""


class ChurnAnalysisError(Exception):
    """Base class for all analysis failures."""


class DataLoadError(ChurnAnalysisError, IOError):
    """Input file is missing, unreadable or malformed."""


class ValidationError(ChurnAnalysisError):
    """Schema mismatch, out-of-domain value or unexpected missingness."""


class ConfigurationError(ChurnAnalysisError):
    """Invalid model, split, resampling or cost configuration."""


class DegenerateFoldError(ChurnAnalysisError):
    """A held-out set lacks one of the two classes, so AUC/sensitivity is undefined."""
