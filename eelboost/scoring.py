"""
scoring.py
==========
Cross-validated scoring of one boosting configuration.

For every fold: fit on the held-in rows, predict presence probabilities on
the held-out rows, compute the fold metrics. Fold results are then reduced
to a mean and a standard error per metric.

Folds share nothing but the read-only data, so they can run on a joblib
pool. joblib returns results in submission order, which keeps the
aggregation identical for any n_jobs.
"""

import warnings
import numpy as np
import pandas as pd
from typing import Callable, Dict, List, Optional, Sequence
from joblib import Parallel, delayed
from sklearn.metrics import accuracy_score, log_loss, roc_auc_score

from .config import CV_METRICS, N_JOBS, THRESHOLD
from .folds import DegenerateFoldWarning, FoldAssignment
from .model import BoostConfig, LightGBMTrainer, Trainable


# ============================================================================
# METRICS
# ============================================================================

def _roc_auc(y_true: np.ndarray, proba: np.ndarray) -> float:
    if len(np.unique(y_true)) < 2:
        warnings.warn(
            "ROC AUC is undefined on a held-out set with a single label; recorded as NaN",
            DegenerateFoldWarning,
            stacklevel=3,
        )
        return np.nan
    return roc_auc_score(y_true, proba)


def _accuracy(y_true: np.ndarray, proba: np.ndarray) -> float:
    return accuracy_score(y_true, (proba >= THRESHOLD).astype(int))


def _log_loss(y_true: np.ndarray, proba: np.ndarray) -> float:
    return log_loss(y_true, proba, labels=[0, 1])


METRIC_FUNCTIONS: Dict[str, Callable[[np.ndarray, np.ndarray], float]] = {
    'roc_auc': _roc_auc,
    'accuracy': _accuracy,
    'log_loss': _log_loss,
}


def compute_fold_metrics(y_true, proba, metrics: Sequence[str] = CV_METRICS) -> Dict[str, float]:
    """Metrics of one held-out fold from presence probabilities."""
    unknown = [m for m in metrics if m not in METRIC_FUNCTIONS]
    if unknown:
        raise ValueError(f"Unknown metric(s) {unknown}. Available: {sorted(METRIC_FUNCTIONS)}")
    y_true = np.asarray(y_true).astype(int)
    proba = np.asarray(proba, dtype=float)
    return {m: float(METRIC_FUNCTIONS[m](y_true, proba)) for m in metrics}


def aggregate(fold_results: List[Dict[str, float]], metrics: Sequence[str] = CV_METRICS) -> Dict[str, float]:
    """
    Mean and standard error of each metric across folds.

    NaN folds are left out; a metric with no finite fold stays NaN.
    """
    summary: Dict[str, float] = {}
    for m in metrics:
        values = np.array([r[m] for r in fold_results], dtype=float)
        values = values[np.isfinite(values)]
        summary[m] = float(values.mean()) if len(values) else np.nan
        summary[f"{m}_std_err"] = (
            float(values.std(ddof=1) / np.sqrt(len(values))) if len(values) > 1 else np.nan
        )
    summary['n_folds'] = len(fold_results)
    return summary


# ============================================================================
# CROSS-VALIDATION
# ============================================================================

def _fit_fold(
    trainer: Trainable,
    config: BoostConfig,
    X: pd.DataFrame,
    y: pd.Series,
    train_idx: np.ndarray,
    valid_idx: np.ndarray,
    metrics: Sequence[str],
) -> Dict[str, float]:
    model = trainer.fit(config, X.iloc[train_idx], y.iloc[train_idx])
    proba = model.predict_proba(X.iloc[valid_idx])
    return compute_fold_metrics(y.iloc[valid_idx], proba, metrics)


def score_config(
    config: BoostConfig,
    X: pd.DataFrame,
    y: pd.Series,
    folds: FoldAssignment,
    trainer: Optional[Trainable] = None,
    metrics: Sequence[str] = CV_METRICS,
    n_jobs: int = N_JOBS,
) -> Dict[str, float]:
    """
    Cross-validated score of ``config``.

    Returns:
        {'roc_auc': ..., 'roc_auc_std_err': ..., ..., 'n_folds': k}
    """
    trainer = trainer if trainer is not None else LightGBMTrainer()
    y = pd.Series(np.asarray(y), index=X.index)

    fold_results = Parallel(n_jobs=n_jobs)(
        delayed(_fit_fold)(trainer, config, X, y, train_idx, valid_idx, metrics)
        for train_idx, valid_idx in folds
    )
    return aggregate(fold_results, metrics)


def out_of_fold_proba(
    config: BoostConfig,
    X: pd.DataFrame,
    y: pd.Series,
    folds: FoldAssignment,
    trainer: Optional[Trainable] = None,
    n_jobs: int = N_JOBS,
) -> np.ndarray:
    """Presence probability of every row, predicted by the model that did not see it."""
    trainer = trainer if trainer is not None else LightGBMTrainer()
    y = pd.Series(np.asarray(y), index=X.index)

    def _predict(train_idx, valid_idx):
        model = trainer.fit(config, X.iloc[train_idx], y.iloc[train_idx])
        return valid_idx, model.predict_proba(X.iloc[valid_idx])

    proba = np.full(len(X), np.nan)
    for valid_idx, fold_proba in Parallel(n_jobs=n_jobs)(
        delayed(_predict)(train_idx, valid_idx) for train_idx, valid_idx in folds
    ):
        proba[valid_idx] = fold_proba
    return proba
