"""
evaluation.py
=============
Single source of truth for final model evaluation.

Handles the full evaluation flow:
  1. Predict presence probabilities and thresholded calls
  2. Count the confusion matrix (TP, TN, FP, FN)
  3. Calculate accuracy, sensitivity, specificity, precision, kappa, ROC AUC
  4. Compare several evaluations side-by-side
  5. Persist report tables

Usage in main.py:
    from eelboost.evaluation import ModelEvaluator

    evaluator = ModelEvaluator()
    test_report = evaluator.evaluate(model, X_test, y_test, label="Test split")
    comparison = evaluator.compare([test_report, eval_report])
"""

import numpy as np
import pandas as pd
from pathlib import Path
from typing import Dict, List, Optional
from sklearn.metrics import cohen_kappa_score, confusion_matrix, roc_auc_score

from .config import POSITIVE_LABEL, REPORTS_DIR, THRESHOLD


# ============================================================================
# CORE METRIC FUNCTIONS
# ============================================================================

def confusion_counts(y_true, y_pred) -> Dict[str, int]:
    """
    Confusion-matrix cells with presence as the positive class.

    Returns:
        {'TP': ..., 'TN': ..., 'FP': ..., 'FN': ...}; the four sum to len(y_true).
    """
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.asarray(y_pred).astype(int)
    negative = 1 - POSITIVE_LABEL
    tn, fp, fn, tp = confusion_matrix(y_true, y_pred, labels=[negative, POSITIVE_LABEL]).ravel()
    return {'TP': int(tp), 'TN': int(tn), 'FP': int(fp), 'FN': int(fn)}


def confusion_table(counts: Dict[str, int]) -> pd.DataFrame:
    """2x2 table, rows = truth, columns = prediction."""
    return pd.DataFrame(
        [[counts['TP'], counts['FN']], [counts['FP'], counts['TN']]],
        index=pd.Index(['presence', 'absence'], name='Truth'),
        columns=pd.Index(['presence', 'absence'], name='Prediction'),
    )


def _ratio(num: int, den: int) -> float:
    return num / den if den else np.nan


def compute_metrics(y_true, y_pred, proba: Optional[np.ndarray] = None) -> Dict[str, float]:
    """
    Classification metrics from hard calls (and probabilities for ROC AUC).

    Sensitivity is the true-positive rate, specificity the true-negative
    rate. Rates with an empty denominator are NaN.
    """
    y_true = np.asarray(y_true).astype(int)
    y_pred = np.asarray(y_pred).astype(int)
    c = confusion_counts(y_true, y_pred)
    n = len(y_true)

    metrics = {
        'accuracy': _ratio(c['TP'] + c['TN'], n),
        'sensitivity': _ratio(c['TP'], c['TP'] + c['FN']),
        'specificity': _ratio(c['TN'], c['TN'] + c['FP']),
        'precision': _ratio(c['TP'], c['TP'] + c['FP']),
        'kappa': cohen_kappa_score(y_true, y_pred) if len(np.unique(np.r_[y_true, y_pred])) > 1 else np.nan,
        'roc_auc': np.nan,
    }
    if proba is not None and len(np.unique(y_true)) == 2:
        metrics['roc_auc'] = roc_auc_score(y_true, np.asarray(proba, dtype=float))
    return metrics


# ============================================================================
# MODEL EVALUATOR
# ============================================================================

class ModelEvaluator:
    """
    Handles prediction, metric calculation, and reporting.

    Every evaluation is returned as a plain dict:
        {'label': ..., 'n': ..., 'metrics': {...}, 'confusion': {...}}
    """

    def __init__(self, threshold: float = THRESHOLD, reports_dir: Path = REPORTS_DIR):
        self.threshold = threshold
        self.reports_dir = Path(reports_dir)

    # ── single evaluation ─────────────────────────────────────────────────

    def evaluate(self, model, X: pd.DataFrame, y_true, label: str = "Model") -> Dict:
        """
        Predict → threshold → compute metrics → print.

        Args:
            model:  Fitted model exposing predict_proba (presence probability).
            X:      Feature DataFrame.
            y_true: True 0/1 labels.
            label:  Name shown in the printed summary.
        """
        return self.evaluate_proba(y_true, model.predict_proba(X), label=label)

    def evaluate_proba(self, y_true, proba, label: str = "Model") -> Dict:
        """Same as evaluate() for probabilities computed elsewhere (e.g. out-of-fold)."""
        proba = np.asarray(proba, dtype=float)
        y_pred = (proba >= self.threshold).astype(int)

        report = {
            'label': label,
            'n': int(len(proba)),
            'metrics': compute_metrics(y_true, y_pred, proba),
            'confusion': confusion_counts(y_true, y_pred),
        }
        self._print_report(report)
        return report

    # ── comparison ────────────────────────────────────────────────────────

    @staticmethod
    def compare(reports: List[Dict]) -> pd.DataFrame:
        """One row per evaluation: metrics followed by confusion counts."""
        rows = []
        for r in reports:
            rows.append({'Evaluation': r['label'], 'N': r['n'], **r['metrics'], **r['confusion']})
        df = pd.DataFrame(rows)

        print("\n" + "=" * 70)
        print(" EVALUATION COMPARISON")
        print("=" * 70)
        print(df.to_string(index=False, float_format=lambda x: f"{x:.4f}"))
        print("=" * 70 + "\n")
        return df

    # ── save results ──────────────────────────────────────────────────────

    def save_results(self, df: pd.DataFrame, filename: str = "evaluation_results.csv") -> Path:
        """Persist a report table to reports/."""
        self.reports_dir.mkdir(parents=True, exist_ok=True)
        path = self.reports_dir / filename
        df.to_csv(path, index=False)
        print(f"[Evaluation] Results saved to {path}")
        return path

    # ── internal ──────────────────────────────────────────────────────────

    @staticmethod
    def _print_report(report: Dict) -> None:
        m, c = report['metrics'], report['confusion']
        print(f"\n{'=' * 50}")
        print(f"  {report['label']} — Evaluation Results (n={report['n']:,})")
        print(f"{'=' * 50}")
        print(f"  Accuracy    : {m['accuracy']:>8.4f}")
        print(f"  Sensitivity : {m['sensitivity']:>8.4f}")
        print(f"  Specificity : {m['specificity']:>8.4f}")
        print(f"  Precision   : {m['precision']:>8.4f}")
        print(f"  Kappa       : {m['kappa']:>8.4f}")
        print(f"  ROC AUC     : {m['roc_auc']:>8.4f}")
        print(f"  Confusion   : TP={c['TP']} FN={c['FN']} FP={c['FP']} TN={c['TN']}")
        print(f"{'=' * 50}\n")
