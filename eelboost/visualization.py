"""
visualization.py
================
Report plots for the eel presence/absence model.

Each function is self-contained: pass in the data, get a saved PNG in reports/.
Style is consistent across all plots (seaborn whitegrid, same palette, same DPI).

Plots generated:
    1. Tuning curves          - CV score vs each searched hyperparameter, per stage
    2. Confusion matrices     - one heatmap per evaluation
    3. Feature importance     - horizontal bar chart per fitted model
    4. Importance comparison  - test-split model vs evaluation-data model

How to call (from main.py):
    from eelboost.visualization import generate_all_plots

    generate_all_plots(
        tuning=tuning,          # TuningResult
        manager=manager,        # ModelManager with the final models
        reports=reports,        # {file_key: evaluation report dict}
    )
"""

import numpy as np
import pandas as pd
import matplotlib.pyplot as plt
import seaborn as sns
from pathlib import Path
from typing import Dict, Optional

from .config import PLOT_DPI, PLOT_SETTINGS, REPORTS_DIR
from .evaluation import confusion_table

# ─── global style ─────────────────────────────────────────────────────────
sns.set_theme(style=PLOT_SETTINGS['STYLE'], font_scale=1.1)
PALETTE = sns.color_palette(PLOT_SETTINGS['PALETTE'])


# ============================================================================
# INTERNAL HELPERS
# ============================================================================

def _save(fig: plt.Figure, filename: str, reports_dir: Path = REPORTS_DIR) -> Path:
    """Save figure to reports/ and close it."""
    reports_dir = Path(reports_dir)
    reports_dir.mkdir(parents=True, exist_ok=True)
    path = reports_dir / filename
    fig.savefig(path, dpi=PLOT_DPI, bbox_inches="tight")
    print(f"[Visualization] Saved -> {path}")
    plt.close(fig)
    return path


# ============================================================================
# 1. TUNING CURVES
# ============================================================================

def plot_tuning_stage(stage, reports_dir: Path = REPORTS_DIR) -> Path:
    """
    Cross-validated score against every hyperparameter searched in a stage.

    Grid stages draw a line with standard-error bars; Latin-hypercube stages
    draw one scatter panel per dimension. The winner is highlighted.

    Args:
        stage: StageResult from eelboost.tune.
    """
    metric = stage.metric
    results = stage.results[stage.results['state'] == 'COMPLETE']
    std_err = f"{metric}_std_err"

    fig, axes = plt.subplots(1, len(stage.params), figsize=(5 * len(stage.params), 4.5), squeeze=False)

    for ax, param in zip(axes[0], stage.params):
        ordered = results.sort_values(param)
        if len(stage.params) == 1:
            ax.errorbar(
                ordered[param], ordered[metric], yerr=ordered[std_err],
                color=PALETTE[0], marker="o", markersize=4, capsize=2, linewidth=1.2,
            )
        else:
            ax.scatter(ordered[param], ordered[metric], color=PALETTE[0], edgecolors="black", linewidths=0.4, s=30)

        ax.scatter([stage.best[param]], [stage.best_score], color="red", s=80, zorder=5, label="Selected")
        if param == 'min_split_gain':
            ax.set_xscale("log")
        ax.set_xlabel(param)
        ax.set_ylabel(metric)
        ax.legend(loc="lower right")

    fig.suptitle(f"Stage {stage.name.upper()} — CV {metric}", fontsize=14, fontweight="bold")
    fig.tight_layout()
    return _save(fig, f"plot_tuning_stage_{stage.name}.png", reports_dir)


# ============================================================================
# 2. CONFUSION MATRIX
# ============================================================================

def plot_confusion_matrix(counts: Dict[str, int], title: str, filename: str,
                          reports_dir: Path = REPORTS_DIR) -> Path:
    """
    Heatmap of a 2x2 confusion matrix with counts and row percentages.

    Args:
        counts:   {'TP', 'TN', 'FP', 'FN'} from evaluation.confusion_counts().
        title:    Plot title.
        filename: PNG name in reports/.
    """
    table = confusion_table(counts)
    row_pct = table.div(table.sum(axis=1).replace(0, np.nan), axis=0) * 100
    annot = table.astype(str) + "\n(" + row_pct.round(1).astype(str) + "%)"

    fig, ax = plt.subplots(figsize=(5, 4.5))
    sns.heatmap(table, annot=annot, fmt="", cmap="Blues", cbar=False,
                linewidths=1, linecolor="white", ax=ax)

    ax.set_title(title, fontsize=13, fontweight="bold")
    ax.set_xlabel("Prediction")
    ax.set_ylabel("Truth")

    return _save(fig, filename, reports_dir)


# ============================================================================
# 3. FEATURE IMPORTANCE
# ============================================================================

def plot_feature_importance(importance_df: pd.DataFrame, title: str, filename: str,
                            top_n: int = 15, reports_dir: Path = REPORTS_DIR) -> Path:
    """
    Horizontal bar chart of relative importance (percent of total gain).

    Expects a DataFrame with columns 'Feature' and 'Relative'
    (exactly what ModelManager.get_feature_importance() returns).
    """
    df = importance_df.head(top_n).sort_values("Relative", ascending=True)

    fig, ax = plt.subplots(figsize=(9, 0.45 * len(df) + 1.5))

    bars = ax.barh(df["Feature"], df["Relative"], color=PALETTE[1], edgecolor="black")

    # Value labels at end of each bar
    for bar in bars:
        width = bar.get_width()
        ax.text(width + 0.5, bar.get_y() + bar.get_height() / 2,
                f"{width:.1f}%", va="center", fontsize=8)

    ax.set_title(title, fontsize=14, fontweight="bold")
    ax.set_xlabel("Relative importance (% of total gain)")
    ax.set_xlim(0, max(df["Relative"].max() * 1.15, 1))  # room for labels

    return _save(fig, filename, reports_dir)


def plot_importance_comparison(comparison_df: pd.DataFrame, reports_dir: Path = REPORTS_DIR) -> Path:
    """
    Grouped horizontal bars: relative importance of each feature per model.

    Args:
        comparison_df: ModelManager.compare_importance() output
                       (Feature + one column per model).
    """
    models = [c for c in comparison_df.columns if c != "Feature"]
    df = comparison_df.iloc[::-1]
    y = np.arange(len(df))
    height = 0.8 / max(len(models), 1)

    fig, ax = plt.subplots(figsize=(9, 0.5 * len(df) + 1.5))
    for i, name in enumerate(models):
        ax.barh(y + i * height, df[name].fillna(0), height, label=name,
                color=PALETTE[i % len(PALETTE)], edgecolor="black")

    ax.set_yticks(y + height * (len(models) - 1) / 2)
    ax.set_yticklabels(df["Feature"])
    ax.set_xlabel("Relative importance (% of total gain)")
    ax.set_title("Feature Importance — Model Comparison", fontsize=14, fontweight="bold")
    ax.legend(loc="lower right")

    return _save(fig, "plot_importance_comparison.png", reports_dir)


# ============================================================================
# ORCHESTRATOR: called from main.py
# ============================================================================

def generate_all_plots(tuning, manager, reports: Dict[str, Dict],
                       reports_dir: Optional[Path] = None) -> None:
    """
    Generate every report plot in one call.

    Args:
        tuning:  TuningResult (stage curves).
        manager: ModelManager holding the final models.
        reports: {file_key: report dict from ModelEvaluator}.
    """
    reports_dir = REPORTS_DIR if reports_dir is None else reports_dir

    print("\n" + "=" * 70)
    print(" GENERATING VISUALIZATIONS")
    print("=" * 70)

    for stage in tuning.stages:
        plot_tuning_stage(stage, reports_dir)

    for key, report in reports.items():
        plot_confusion_matrix(report['confusion'], f"Confusion Matrix — {report['label']}",
                              f"plot_confusion_{key}.png", reports_dir)

    for name in manager.models:
        plot_feature_importance(manager.get_feature_importance(name),
                                f"Feature Importance — {name}",
                                f"plot_feature_importance_{name}.png", reports_dir=reports_dir)

    plot_importance_comparison(manager.compare_importance(), reports_dir)

    print(f"\n[Visualization] All plots saved to {reports_dir}")
