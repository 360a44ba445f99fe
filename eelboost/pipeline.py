"""
pipeline.py
===========
The end-to-end experiment, from CSV files to reports.

Pipeline stages:
    1. Load both datasets, validate schema, split the model data
    2. Partition the training split into folds
    3. Staged tuning (learning rate → tree shape → sampling)
    4. Final fits (training split; full evaluation dataset)
    5. Evaluation (test split, external validation, evaluation out-of-fold)
    6. Reports & artifacts
"""

from pathlib import Path
from typing import Any, Dict, Optional, Sequence

from .config import (
    EVAL_TARGET_COLUMN,
    MODELS_DIR,
    N_FOLDS,
    N_JOBS,
    RANDOM_STATE,
    REPORTS_DIR,
    RESUME_TUNING,
    SELECTION_METRIC,
    STRATIFIED_FOLDS,
    TEST_SIZE,
)
from .data import load_datasets, split_xy
from .evaluation import ModelEvaluator
from .folds import fold_summary, make_folds
from .model import BoostConfig, LightGBMTrainer, ModelManager, Trainable
from .scoring import out_of_fold_proba
from .tune import Stage, show_best, tune_stages


def run_pipeline(
    model_path: Path,
    eval_path: Path,
    eval_label: str = EVAL_TARGET_COLUMN,
    stages: Optional[Sequence[Stage]] = None,
    base_config: Optional[BoostConfig] = None,
    trainer: Optional[Trainable] = None,
    k: int = N_FOLDS,
    stratified: bool = STRATIFIED_FOLDS,
    test_size: float = TEST_SIZE,
    seed: int = RANDOM_STATE,
    metric: str = SELECTION_METRIC,
    n_jobs: int = N_JOBS,
    models_dir: Optional[Path] = MODELS_DIR,
    reports_dir: Optional[Path] = REPORTS_DIR,
    resume: bool = RESUME_TUNING,
    plots: bool = True,
) -> Dict[str, Any]:
    """
    Run the experiment once.

    ``models_dir=None`` skips all artifacts; ``reports_dir=None`` skips
    report tables and plots.

    Returns:
        {'data', 'folds', 'tuning', 'manager', 'reports', 'comparison', 'importance'}
    """
    trainer = trainer if trainer is not None else LightGBMTrainer()

    # ── STEP 1: Load and Split Data ─────────────────────────────────────
    print("\n[STEP 1/6] Loading and splitting data...")
    data = load_datasets(model_path, eval_path, eval_label=eval_label,
                         test_size=test_size, random_state=seed)
    X_train, y_train = split_xy(data['train'])
    X_test, y_test = split_xy(data['test'])
    X_eval, y_eval = split_xy(data['eval'])

    # ── STEP 2: Folds ───────────────────────────────────────────────────
    print("\n[STEP 2/6] Partitioning training split...")
    folds = make_folds(y_train, k=k, seed=seed, stratified=stratified)
    print(fold_summary(folds, y_train).to_string(index=False))

    # ── STEP 3: Staged Tuning ───────────────────────────────────────────
    print("\n[STEP 3/6] Tuning...")
    tuning = tune_stages(
        X_train, y_train, folds,
        stages=stages, base_config=base_config, trainer=trainer,
        metric=metric, n_jobs=n_jobs, seed=seed,
        models_dir=models_dir, resume=resume,
    )
    config = tuning.final_config

    # ── STEP 4: Final Fits ──────────────────────────────────────────────
    print("\n[STEP 4/6] Fitting final models...")
    manager = ModelManager(config, trainer=trainer)
    test_model = manager.fit('test_split', X_train, y_train)
    manager.fit('evaluation', X_eval, y_eval)

    # ── STEP 5: Evaluation ──────────────────────────────────────────────
    print("\n[STEP 5/6] Evaluating...")
    evaluator = ModelEvaluator(reports_dir=reports_dir if reports_dir is not None else REPORTS_DIR)
    reports = {
        'test_split': evaluator.evaluate(test_model, X_test, y_test, label="Test split"),
        'external': evaluator.evaluate(test_model, X_eval, y_eval, label="Evaluation data (external)"),
    }

    eval_folds = make_folds(y_eval, k=k, seed=seed, stratified=stratified)
    eval_proba = out_of_fold_proba(config, X_eval, y_eval, eval_folds, trainer=trainer, n_jobs=n_jobs)
    reports['evaluation'] = evaluator.evaluate_proba(y_eval, eval_proba, label="Evaluation data (out-of-fold)")

    comparison = evaluator.compare(list(reports.values()))
    importance = manager.compare_importance()
    print("\n[Importance] Relative gain (%):")
    print(importance.to_string(index=False, float_format=lambda x: f"{x:.2f}"))

    # ── STEP 6: Reports & Artifacts ─────────────────────────────────────
    print("\n[STEP 6/6] Writing reports...")
    if reports_dir is not None:
        evaluator.save_results(comparison, filename="evaluation_comparison.csv")
        evaluator.save_results(importance, filename="feature_importance.csv")
        for stage in tuning.stages:
            evaluator.save_results(stage.results, filename=f"tuning_stage_{stage.name}.csv")
            print(f"[Tune] Stage {stage.name.upper()} top candidates:")
            print(show_best(stage.results, stage.metric).to_string(index=False))
        if plots:
            from .visualization import generate_all_plots
            generate_all_plots(tuning, manager, reports, reports_dir=reports_dir)

    if models_dir is not None:
        for name in manager.models:
            manager.save_model(name, models_dir)

    return {
        'data': data,
        'folds': folds,
        'tuning': tuning,
        'manager': manager,
        'reports': reports,
        'comparison': comparison,
        'importance': importance,
    }
