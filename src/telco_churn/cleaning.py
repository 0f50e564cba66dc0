import logging
from dataclasses import dataclass

import numpy as np
import pandas as pd

from .config import (
    CATEGORICAL_COLUMNS, FEATURE_COLUMNS, ID_COLUMN, MAX_CATEGORY_LEVELS,
    NUMERIC_COLUMNS, TARGET_COLUMN, TARGET_LEVELS,
)
from .errors import ValidationError

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CleanedTable:
    frame: pd.DataFrame
    total_charges_median: float
    imputed_index: tuple


def _rows(mask, limit=10):
    """Row positions flagged by a boolean mask, truncated for error messages."""
    pos = np.flatnonzero(np.asarray(mask))
    shown = ", ".join(str(p) for p in pos[:limit])
    if len(pos) > limit:
        shown += f", ... ({len(pos)} rows)"
    return f"[{shown}]"


def _coerce_numeric(df, col):
    present = df[col].notna()
    values = pd.to_numeric(df[col], errors="coerce")
    bad = present & values.isna()
    if bad.any():
        raise ValidationError(
            f"clean: column {col!r} has non-numeric values at rows {_rows(bad)}"
        )
    return values


def clean_table(raw):
    """Coerce types, impute TotalCharges and drop the identifier.

    The imputation median is taken over every present TotalCharges value of
    the full table, before any train/test split. The input frame is not
    modified.
    """
    df = raw.copy()

    for c in df.select_dtypes(include=["object", "string"]).columns:
        df[c] = df[c].map(lambda v: v.strip() if isinstance(v, str) else v)

    # Target
    target = df[TARGET_COLUMN]
    bad = ~target.isin(TARGET_LEVELS)
    if bad.any():
        found = sorted(str(v) for v in target[bad].unique())
        raise ValidationError(
            f"clean: column {TARGET_COLUMN!r} must only contain {list(TARGET_LEVELS)}; "
            f"found {found} at rows {_rows(bad)}"
        )

    # Numeric handling
    for c in NUMERIC_COLUMNS:
        df[c] = _coerce_numeric(df, c)

    missing_total = df["TotalCharges"].isna()
    unexpected = missing_total & (df["tenure"] != 0)
    if unexpected.any():
        raise ValidationError(
            "clean: TotalCharges may only be missing when tenure == 0; "
            f"missing with non-zero tenure at rows {_rows(unexpected)}"
        )
    if missing_total.all():
        raise ValidationError("clean: TotalCharges has no present values to take a median from")

    median = float(df.loc[~missing_total, "TotalCharges"].median())
    df["TotalCharges"] = df["TotalCharges"].fillna(median)
    logger.info("Imputed %d missing TotalCharges values with median %.4f",
                int(missing_total.sum()), median)

    # Senior citizen flag is stored as 0/1
    senior = df["SeniorCitizen"]
    bad = senior.notna() & ~senior.isin([0, 1])
    if bad.any():
        raise ValidationError(f"clean: column 'SeniorCitizen' must be 0/1; bad rows {_rows(bad)}")
    df["SeniorCitizen"] = senior.map({0: "No", 1: "Yes"})

    # Categoricals
    for c in CATEGORICAL_COLUMNS:
        n_levels = df[c].nunique(dropna=True)
        if n_levels > MAX_CATEGORY_LEVELS:
            raise ValidationError(
                f"clean: column {c!r} has {n_levels} distinct values, "
                f"expected at most {MAX_CATEGORY_LEVELS}: {sorted(map(str, df[c].dropna().unique()))}"
            )
        df[c] = df[c].astype("category")

    df[TARGET_COLUMN] = pd.Categorical(df[TARGET_COLUMN], categories=list(TARGET_LEVELS))

    # Any other text column (outside the modeled schema) is categorical too
    for c in df.select_dtypes(include=["object", "string"]).columns:
        if c != ID_COLUMN:
            df[c] = df[c].astype("category")

    imputed_index = tuple(df.index[missing_total.to_numpy()])
    df = df.drop(columns=[ID_COLUMN])

    for c in FEATURE_COLUMNS + [TARGET_COLUMN]:
        still_missing = df[c].isna()
        if still_missing.any():
            raise ValidationError(
                f"clean: column {c!r} has missing values at rows {_rows(still_missing)}"
            )

    logger.info("Cleaned table: %d rows x %d columns", df.shape[0], df.shape[1])
    return CleanedTable(frame=df, total_charges_median=median, imputed_index=imputed_index)


def churn_target(frame):
    """Churn label as a 0/1 integer array (1 = churned)."""
    return (frame[TARGET_COLUMN] == "Yes").astype(int).to_numpy()


def churn_rate(frame):
    return float(churn_target(frame).mean())
