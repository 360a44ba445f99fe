"""Smoke tests for report plots."""

import pandas as pd

from eelboost.folds import make_folds
from eelboost.model import BoostConfig
from eelboost.search_space import Dimension, latin_hypercube
from eelboost.tune import run_stage
from eelboost.visualization import (
    plot_confusion_matrix,
    plot_feature_importance,
    plot_importance_comparison,
    plot_tuning_stage,
)


def test_confusion_matrix_plot(tmp_path):
    path = plot_confusion_matrix({'TP': 30, 'TN': 250, 'FP': 20, 'FN': 10}, "Test", "cm.png", tmp_path)
    assert path.exists()


def test_confusion_matrix_plot_with_empty_row(tmp_path):
    path = plot_confusion_matrix({'TP': 0, 'TN': 10, 'FP': 2, 'FN': 0}, "Empty", "cm_empty.png", tmp_path)
    assert path.exists()


def test_importance_plots(tmp_path):
    imp = pd.DataFrame({'Feature': ['SegSumT', 'DSDist', 'USNative'],
                        'Importance': [50.0, 30.0, 20.0],
                        'Relative': [50.0, 30.0, 20.0]})
    assert plot_feature_importance(imp, "Importance", "imp.png", reports_dir=tmp_path).exists()

    comparison = pd.DataFrame({'Feature': ['SegSumT', 'DSDist', 'USNative'],
                               'test_split': [50.0, 30.0, 20.0],
                               'evaluation': [45.0, 35.0, 20.0]})
    assert plot_importance_comparison(comparison, tmp_path).exists()


def test_tuning_stage_plots(tmp_path, signal_data, signal_trainer):
    X, y = signal_data
    folds = make_folds(y, k=4, seed=0)
    dims = [Dimension('max_depth', 1, 6, integer=True), Dimension('min_split_gain', 1e-6, 1.0, log=True)]
    stage = run_stage('b', BoostConfig(learning_rate=0.1), latin_hypercube(dims, 4, seed=0), dims,
                      X, y, folds, trainer=signal_trainer)

    path = plot_tuning_stage(stage, tmp_path)
    assert path.name == "plot_tuning_stage_b.png"
    assert path.exists()
