"""Read-only churn summaries per customer segment."""

import pandas as pd

from .config import NUMERIC_COLUMNS, TARGET_COLUMN


def _require(table, *columns):
    for c in columns:
        if c not in table.columns:
            raise KeyError(f"segment: unknown column {c!r}")


def _churned(table):
    return (table[TARGET_COLUMN] == "Yes").astype(int)


def segment_summary(table, column):
    """Group size, share of customers and churn rate for each level of `column`."""
    _require(table, column)
    tmp = pd.DataFrame({"level": table[column], "churned": _churned(table)})
    out = (
        tmp.groupby("level", observed=True, sort=True)["churned"]
        .agg(["size", "sum"])
        .reset_index()
        .rename(columns={"size": "n", "sum": "churned"})
    )
    out["level"] = out["level"].astype(str)
    out["proportion"] = out["n"] / len(table)
    out["churn_rate"] = out["churned"] / out["n"]
    out = out.sort_values(["churn_rate", "level"], ascending=[False, True], kind="mergesort")
    return out[["level", "n", "proportion", "churn_rate", "churned"]].reset_index(drop=True)


def segment_report(table, columns):
    """Stack `segment_summary` for several columns into one long table."""
    frames = [segment_summary(table, c).assign(segment=c) for c in columns]
    if not frames:
        return pd.DataFrame(columns=["segment", "level", "n", "proportion", "churn_rate", "churned"])
    out = pd.concat(frames, ignore_index=True)
    return out[["segment", "level", "n", "proportion", "churn_rate", "churned"]]


def churn_rate_pivot(table, rows, columns):
    """Two-way churn-rate table, e.g. PaymentMethod x InternetService."""
    _require(table, rows, columns)
    tmp = table[[rows, columns]].assign(_churned=_churned(table))
    return tmp.pivot_table(index=rows, columns=columns, values="_churned",
                           aggfunc="mean", observed=True)


def numeric_profile(table, columns=None):
    """describe() statistics of numeric columns, split by churn label."""
    columns = list(columns or NUMERIC_COLUMNS)
    _require(table, *columns)
    return table.groupby(TARGET_COLUMN, observed=True)[columns].describe()
