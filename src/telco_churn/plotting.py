"""Charts for the churn analysis. Each helper saves a PNG and returns its path."""

import logging
from pathlib import Path

import numpy as np
import matplotlib.pyplot as plt

from .config import NUMERIC_COLUMNS, TARGET_COLUMN, TARGET_LEVELS

logger = logging.getLogger(__name__)


def _save(outpath):
    outpath = Path(outpath)
    outpath.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    plt.savefig(outpath, dpi=200)
    plt.close()
    logger.info("Saved: %s", outpath)
    return outpath


def plot_segment_counts(summary, column, outpath):
    plt.figure(figsize=(10, 4))
    plt.bar(summary["level"].astype(str), summary["n"])
    plt.xticks(rotation=45, ha="right")
    plt.title(f"{column} Counts")
    plt.xlabel(column)
    plt.ylabel("Count")
    return _save(outpath)


def plot_churn_rate(summary, column, outpath, title=None):
    plt.figure(figsize=(10, 4))
    plt.bar(summary["level"].astype(str), summary["churn_rate"])
    plt.xticks(rotation=45, ha="right")
    plt.ylim(0, 1)
    plt.ylabel("Churn rate")
    plt.title(title or f"Churn rate by {column}")
    return _save(outpath)


def plot_churn_heatmap(pivot, title, outpath, cmap="coolwarm", annotate_fmt="{:.2f}"):
    """Heatmap of a two-way churn-rate table."""
    arr = np.asarray(pivot.values, dtype=float)
    plt.figure(figsize=(10, 5))
    im = plt.imshow(arr, aspect="auto", cmap=cmap,
                    vmin=float(np.nanmin(arr)), vmax=float(np.nanmax(arr)))
    plt.colorbar(im)
    plt.xticks(range(len(pivot.columns)), [str(x) for x in pivot.columns], rotation=45, ha="right")
    plt.yticks(range(len(pivot.index)), [str(y) for y in pivot.index])
    plt.title(title)

    for i in range(arr.shape[0]):
        for j in range(arr.shape[1]):
            v = arr[i, j]
            if np.isfinite(v):
                plt.text(j, i, annotate_fmt.format(v), ha="center", va="center",
                         color="black", fontsize=9,
                         bbox=dict(facecolor="white", edgecolor="none", alpha=0.20, pad=0.5))
    return _save(outpath)


def plot_numeric_boxplots(table, outpath, columns=None):
    """One box plot per numeric column, churners vs non-churners."""
    columns = list(columns or NUMERIC_COLUMNS)
    fig, axes = plt.subplots(1, len(columns), figsize=(5 * len(columns), 4), squeeze=False)
    for ax, col in zip(axes[0], columns):
        groups = [table.loc[table[TARGET_COLUMN] == level, col].to_numpy() for level in TARGET_LEVELS]
        ax.boxplot(groups)
        ax.set_xticks(range(1, len(TARGET_LEVELS) + 1), [f"Churn={lv}" for lv in TARGET_LEVELS])
        ax.set_title(col)
    return _save(outpath)


def plot_confusion_matrix(confusion, title, outpath, class_names=("No Churn", "Churn")):
    """Confusion matrix heatmap with counts and row percentages."""
    cm = confusion.as_array()
    row_totals = cm.sum(axis=1, keepdims=True)
    cm_pct = np.divide(cm, row_totals, out=np.zeros(cm.shape, dtype=float), where=row_totals > 0)

    plt.figure(figsize=(6, 5))
    im = plt.imshow(cm, aspect="auto", cmap="Blues")
    plt.colorbar(im, fraction=0.046, pad=0.04)

    plt.title(title)
    plt.xticks([0, 1], class_names)
    plt.yticks([0, 1], class_names)
    plt.xlabel("Predicted")
    plt.ylabel("Actual")

    for (i, j), val in np.ndenumerate(cm):
        txt_color = "white" if im.norm(val) > 0.5 else "black"
        plt.text(
            j, i, f"{val}\n({cm_pct[i, j] * 100:.1f}%)",
            ha="center", va="center",
            color=txt_color, fontsize=12, fontweight="bold"
        )
    return _save(outpath)


def plot_roc_curves(evaluations, outpath, title="ROC Curve (Test)"):
    plt.figure(figsize=(7, 6))
    for e in evaluations:
        plt.plot(e.roc["fpr"], e.roc["tpr"], label=f"{e.name} (AUC={e.auc:.3f})")
    plt.plot([0, 1], [0, 1], "k--", linewidth=1)
    plt.xlabel("False Positive Rate")
    plt.ylabel("True Positive Rate")
    plt.title(title)
    plt.legend(loc="lower right")
    return _save(outpath)


def plot_cost_curve(curve, title, outpath, best_threshold=None):
    curve = curve.sort_values("threshold")
    plt.figure(figsize=(10, 4))
    plt.plot(curve["threshold"], curve["expected_cost"], marker="o")
    if best_threshold is not None:
        plt.axvline(best_threshold, linestyle="--", color="gray")
    plt.title(title)
    plt.xlabel("Threshold")
    plt.ylabel("Expected cost per customer")
    return _save(outpath)


def plot_feature_importance(importance, measure, title, outpath, top=10):
    top_rows = importance[measure].sort_values(ascending=False).head(top).iloc[::-1]
    plt.figure(figsize=(10, 6))
    plt.barh(top_rows.index.astype(str), top_rows.values)
    plt.title(title)
    plt.xlabel(measure)
    return _save(outpath)
