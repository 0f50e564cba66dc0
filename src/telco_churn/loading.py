import logging
from pathlib import Path

import pandas as pd

from .config import EXPECTED_COLUMNS, ID_COLUMN
from .errors import DataLoadError, ValidationError

logger = logging.getLogger(__name__)

# The raw telco export writes a single space for unknown TotalCharges
MISSING_MARKERS = ["", " "]


def load_table(path):
    """Read the customer CSV into a DataFrame.

    Blank strings become NaN so numeric columns are parsed as numbers, and the
    customer identifier is kept as text.
    """
    path = Path(path)
    if not path.exists():
        raise DataLoadError(f"load: input file not found: {path}")

    try:
        df = pd.read_csv(
            path,
            encoding="utf-8",
            na_values=MISSING_MARKERS,
            keep_default_na=False,
            dtype={ID_COLUMN: str},
        )
    except pd.errors.EmptyDataError as e:
        raise DataLoadError(f"load: input file is empty: {path}") from e
    except pd.errors.ParserError as e:
        raise DataLoadError(f"load: could not parse {path}: {e}") from e
    except UnicodeDecodeError as e:
        raise DataLoadError(f"load: {path} is not valid UTF-8 text: {e}") from e
    except OSError as e:
        raise DataLoadError(f"load: could not read {path}: {e}") from e

    missing = [c for c in EXPECTED_COLUMNS if c not in df.columns]
    if missing:
        raise ValidationError(
            f"load: {path.name} is missing expected columns {missing}. "
            f"Found columns: {list(df.columns)}"
        )

    logger.info("Loaded %s: %d rows x %d columns", path.name, df.shape[0], df.shape[1])
    logger.debug("Column dtypes: %s", df.dtypes.astype(str).to_dict())
    return df
