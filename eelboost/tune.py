"""
tune.py
=======
Staged hyperparameter tuning with Optuna.

Three greedy stages, each holding the winners of the previous ones fixed:
    A. learning rate                      (regular grid)
    B. tree depth, min leaf size, min gain (Latin hypercube)
    C. row subsample, features per tree   (Latin hypercube)

Each stage is an Optuna study whose trials are the pre-generated candidates,
enqueued in generation order. A candidate whose fit raises or whose score is
NaN ends up as a FAIL trial and is skipped by the selector; the stage goes on.
Earlier choices are never revisited, so the result is not a joint optimum.

Usage:
    python -m eelboost.tune
"""

import optuna
import lightgbm as lgb
import numpy as np
import pandas as pd
import joblib
from dataclasses import dataclass, asdict
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Tuple

from .config import (
    CV_METRICS,
    LEARN_RATE_RANGE,
    LOSS_REDUCTION_RANGE,
    MIN_LEAF_RANGE,
    MODELS_DIR,
    MTRY_RANGE,
    N_JOBS,
    OPTUNA_VERBOSITY,
    RANDOM_STATE,
    RESUME_TUNING,
    SAMPLE_SIZE_RANGE,
    SELECTION_METRIC,
    STAGE_A_SIZE,
    STAGE_B_SIZE,
    STAGE_C_SIZE,
    TREE_DEPTH_RANGE,
)
from .folds import FoldAssignment
from .model import BoostConfig, Trainable
from .scoring import score_config
from .search_space import Dimension, finalize, latin_hypercube, regular_grid

optuna.logging.set_verbosity(getattr(optuna.logging, OPTUNA_VERBOSITY))

# Metrics where a smaller value wins
LOWER_IS_BETTER = {'log_loss'}

# Errors that disqualify one candidate instead of aborting the stage
CANDIDATE_ERRORS = (ValueError, ArithmeticError, lgb.basic.LightGBMError)


class TuningError(RuntimeError):
    """A stage produced no usable candidate."""


# ============================================================================
# STAGE DEFINITIONS
# ============================================================================

@dataclass(frozen=True)
class Stage:
    name: str
    label: str
    dimensions: Tuple[Dimension, ...]
    size: int
    method: str = 'latin_hypercube'  # or 'grid'


def default_stages(
    size_a: int = STAGE_A_SIZE,
    size_b: int = STAGE_B_SIZE,
    size_c: int = STAGE_C_SIZE,
) -> Tuple[Stage, Stage, Stage]:
    """The three tuning stages in the order they run."""
    return (
        Stage(
            name='a',
            label='learning rate',
            dimensions=(Dimension('learning_rate', *LEARN_RATE_RANGE),),
            size=size_a,
            method='grid',
        ),
        Stage(
            name='b',
            label='tree shape',
            dimensions=(
                Dimension('max_depth', *TREE_DEPTH_RANGE, integer=True),
                Dimension('min_child_samples', *MIN_LEAF_RANGE, integer=True),
                Dimension('min_split_gain', *LOSS_REDUCTION_RANGE, log=True),
            ),
            size=size_b,
        ),
        Stage(
            name='c',
            label='stochastic sampling',
            dimensions=(
                Dimension('subsample', *SAMPLE_SIZE_RANGE),
                Dimension('mtry', *MTRY_RANGE, integer=True, data_bound=True),
            ),
            size=size_c,
        ),
    )


def generate_candidates(stage: Stage, X: pd.DataFrame, seed: int = RANDOM_STATE) -> pd.DataFrame:
    """Finalize the stage's dimensions against X and build its candidate table."""
    dimensions = [finalize(d, X) for d in stage.dimensions]
    if stage.method == 'grid':
        if len(dimensions) != 1:
            raise ValueError(f"Stage {stage.name}: a grid stage takes exactly one dimension")
        return regular_grid(dimensions[0], stage.size)
    if stage.method == 'latin_hypercube':
        return latin_hypercube(dimensions, stage.size, seed=seed)
    raise ValueError(f"Stage {stage.name}: unknown method '{stage.method}'")


# ============================================================================
# RESULTS & SELECTION
# ============================================================================

@dataclass(frozen=True, eq=False)
class StageResult:
    """Scored candidates of one stage and its winner."""
    name: str
    base_config: BoostConfig
    results: pd.DataFrame
    params: Tuple[str, ...]
    best: Dict[str, Any]
    best_score: float
    metric: str

    @property
    def config(self) -> BoostConfig:
        """The stage's input configuration with the winning values fixed."""
        return self.base_config.with_params(**self.best)

    @property
    def n_failed(self) -> int:
        return int((self.results['state'] != 'COMPLETE').sum())


@dataclass(frozen=True, eq=False)
class TuningResult:
    stages: Tuple[StageResult, ...]
    final_config: BoostConfig

    def __getitem__(self, name: str) -> StageResult:
        for stage in self.stages:
            if stage.name == name:
                return stage
        raise KeyError(name)


def _qualified(results: pd.DataFrame, metric: str) -> pd.DataFrame:
    if metric not in results.columns:
        raise TuningError(f"Results have no '{metric}' column")
    scores = pd.to_numeric(results[metric], errors='coerce')
    return results[(results['state'] == 'COMPLETE') & np.isfinite(scores)]


def select_best(results: pd.DataFrame, metric: str = SELECTION_METRIC) -> pd.Series:
    """
    Winning row: best aggregated ``metric`` among completed candidates.

    Ties go to the candidate generated first. Failed candidates and NaN
    scores never win.

    Raises:
        TuningError: no candidate qualifies.
    """
    ok = _qualified(results, metric)
    if ok.empty:
        raise TuningError(f"No completed candidate with a finite '{metric}' score")
    scores = ok[metric].to_numpy(dtype=float)
    # argmax/argmin return the first occurrence
    pos = int(np.argmin(scores)) if metric in LOWER_IS_BETTER else int(np.argmax(scores))
    return ok.iloc[pos]


def show_best(results: pd.DataFrame, metric: str = SELECTION_METRIC, n: int = 5) -> pd.DataFrame:
    """Top-n qualified candidates, best first, generation order among ties."""
    ok = _qualified(results, metric)
    ascending = metric in LOWER_IS_BETTER
    return ok.sort_values(metric, ascending=ascending, kind='mergesort').head(n).reset_index(drop=True)


def _cast(dimension: Dimension, value: Any) -> Any:
    return int(round(value)) if dimension.integer else float(value)


# ============================================================================
# STAGE RUNNER
# ============================================================================

def run_stage(
    name: str,
    base_config: BoostConfig,
    candidates: pd.DataFrame,
    dimensions: Sequence[Dimension],
    X: pd.DataFrame,
    y: pd.Series,
    folds: FoldAssignment,
    trainer: Optional[Trainable] = None,
    metric: str = SELECTION_METRIC,
    metrics: Sequence[str] = CV_METRICS,
    n_jobs: int = N_JOBS,
    seed: int = RANDOM_STATE,
) -> StageResult:
    """
    Score every candidate with cross-validation and pick the winner.

    Args:
        name:        Stage name (used in logs and artifact names).
        base_config: Configuration holding everything fixed so far.
        candidates:  One row per candidate, one column per dimension.
        dimensions:  Finalized dimensions matching the candidate columns.
    """
    if metric not in metrics:
        metrics = tuple(metrics) + (metric,)
    dimensions = list(dimensions)
    params = tuple(d.name for d in dimensions)
    if set(params) != set(candidates.columns):
        raise ValueError(f"Stage {name}: candidate columns {list(candidates.columns)} do not match {list(params)}")

    def objective(trial: optuna.Trial) -> float:
        values = {}
        for dim in dimensions:
            if dim.integer:
                values[dim.name] = trial.suggest_int(dim.name, int(dim.low), int(dim.high))
            else:
                values[dim.name] = trial.suggest_float(dim.name, dim.low, dim.high, log=dim.log)
        try:
            scores = score_config(
                base_config.with_params(**values), X, y, folds,
                trainer=trainer, metrics=metrics, n_jobs=n_jobs,
            )
        except CANDIDATE_ERRORS as exc:
            trial.set_user_attr('error', f"{type(exc).__name__}: {exc}")
            raise
        for key, value in scores.items():
            trial.set_user_attr(key, value)
        return scores[metric]

    direction = 'minimize' if metric in LOWER_IS_BETTER else 'maximize'
    study = optuna.create_study(
        study_name=f"stage_{name}",
        direction=direction,
        sampler=optuna.samplers.RandomSampler(seed=seed),
    )
    candidates = candidates.reset_index(drop=True)
    for row in candidates.to_dict(orient="records"):
        study.enqueue_trial({d.name: _cast(d, row[d.name]) for d in dimensions})

    print(f"\n[Tune] Stage {name.upper()}: {len(candidates)} candidates x {len(folds)} folds "
          f"(fixed: {base_config.describe()})")
    study.optimize(objective, n_trials=len(candidates), catch=CANDIDATE_ERRORS)

    results = candidates.copy()
    trials = sorted(study.trials, key=lambda t: t.number)
    results['state'] = [t.state.name for t in trials]
    for key in [m for m in metrics] + [f"{m}_std_err" for m in metrics]:
        results[key] = [t.user_attrs.get(key, np.nan) for t in trials]
    results['error'] = [t.user_attrs.get('error') for t in trials]
    results.insert(0, 'candidate', range(len(results)))

    winner = select_best(results, metric)
    best = {d.name: _cast(d, winner[d.name]) for d in dimensions}
    result = StageResult(
        name=name,
        base_config=base_config,
        results=results,
        params=params,
        best=best,
        best_score=float(winner[metric]),
        metric=metric,
    )

    print(f"[Tune] Stage {name.upper()} winner (candidate {int(winner['candidate'])}): "
          f"{result.config.describe()} | {metric}={result.best_score:.4f}")
    if result.n_failed:
        print(f"[Tune]   -> {result.n_failed} candidate(s) failed and were disqualified")
    return result


# ============================================================================
# PERSISTENCE
# ============================================================================

def _fold_key(folds: FoldAssignment, X: pd.DataFrame, y: pd.Series) -> Dict[str, Any]:
    """Identifies the rows, labels and partition a stage was scored on."""
    return {
        'k': folds.k,
        'seed': folds.seed,
        'stratified': folds.stratified,
        'n_rows': len(X),
        'columns': list(X.columns),
        'data': int(pd.util.hash_pandas_object(X, index=True).sum()),
        'labels': int(pd.util.hash_pandas_object(y, index=True).sum()),
        'splits': joblib.hash([(np.asarray(train), np.asarray(valid)) for train, valid in folds]),
    }


def stage_path(name: str, models_dir: Path = MODELS_DIR) -> Path:
    return Path(models_dir) / f"tuning_stage_{name}.pkl"


def save_stage(result: StageResult, fold_key: Dict[str, Any], models_dir: Path = MODELS_DIR) -> Path:
    """Write a stage's results so the search can be inspected or skipped later."""
    path = stage_path(result.name, models_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    joblib.dump({
        'name': result.name,
        'base_config': asdict(result.base_config),
        'results': result.results,
        'params': result.params,
        'best': result.best,
        'best_score': result.best_score,
        'metric': result.metric,
        'folds': fold_key,
    }, path)
    print(f"[Persistence] Stage {result.name.upper()} results saved: {path}")
    return path


def load_stage(
    name: str,
    base_config: BoostConfig,
    candidates: pd.DataFrame,
    metric: str,
    fold_key: Dict[str, Any],
    models_dir: Path = MODELS_DIR,
) -> Optional[StageResult]:
    """
    Reload a saved stage if it was produced from the same inputs.

    Returns None when there is no artifact or it is stale (different fixed
    configuration, dimensions, candidates, metric, data or folds).
    """
    path = stage_path(name, models_dir)
    if not path.exists():
        return None
    saved = joblib.load(path)

    if tuple(saved['params']) != tuple(candidates.columns):
        print(f"[Tune] Stage {name.upper()} artifact at {path} searched other dimensions, re-running the search")
        return None

    saved_candidates = saved['results'][list(candidates.columns)].reset_index(drop=True)
    if (
        saved['base_config'] != asdict(base_config)
        or saved['metric'] != metric
        or saved['folds'] != fold_key
        or not saved_candidates.equals(candidates.reset_index(drop=True))
    ):
        print(f"[Tune] Stage {name.upper()} artifact at {path} is stale, re-running the search")
        return None

    print(f"[Tune] Stage {name.upper()} reloaded from {path}")
    return StageResult(
        name=saved['name'],
        base_config=base_config,
        results=saved['results'],
        params=tuple(saved['params']),
        best=saved['best'],
        best_score=saved['best_score'],
        metric=saved['metric'],
    )


# ============================================================================
# DRIVER
# ============================================================================

def tune_stages(
    X: pd.DataFrame,
    y: pd.Series,
    folds: FoldAssignment,
    stages: Optional[Sequence[Stage]] = None,
    base_config: Optional[BoostConfig] = None,
    trainer: Optional[Trainable] = None,
    metric: str = SELECTION_METRIC,
    metrics: Sequence[str] = CV_METRICS,
    n_jobs: int = N_JOBS,
    seed: int = RANDOM_STATE,
    models_dir: Optional[Path] = MODELS_DIR,
    resume: bool = RESUME_TUNING,
) -> TuningResult:
    """
    Run the stages in order, each fixing its winners for the next.

    Args:
        stages:      Stage definitions (default: default_stages()).
        base_config: Starting configuration (default: tree ceiling only).
        models_dir:  Where stage artifacts go; None disables persistence.
        resume:      Reuse matching stage artifacts instead of searching.

    Returns:
        TuningResult with every stage's results and the final configuration.
    """
    stages = default_stages() if stages is None else stages
    config = base_config if base_config is not None else BoostConfig(random_state=seed)
    fold_key = _fold_key(folds, X, y)

    print("\n" + "=" * 70)
    print(f" STAGED TUNING ({len(stages)} stages, selecting on {metric})")
    print("=" * 70)

    completed: List[StageResult] = []
    for stage in stages:
        candidates = generate_candidates(stage, X, seed=seed)
        dimensions = [finalize(d, X) for d in stage.dimensions]

        result = None
        if resume and models_dir is not None:
            result = load_stage(stage.name, config, candidates, metric, fold_key, models_dir)
        if result is None:
            result = run_stage(
                stage.name, config, candidates, dimensions, X, y, folds,
                trainer=trainer, metric=metric, metrics=metrics, n_jobs=n_jobs, seed=seed,
            )
            if models_dir is not None:
                save_stage(result, fold_key, models_dir)

        completed.append(result)
        config = result.config

    print(f"\n[Tune] Final configuration: {config.describe()}")
    return TuningResult(stages=tuple(completed), final_config=config)


if __name__ == "__main__":
    from .config import MODEL_DATA, EVAL_DATA, N_FOLDS
    from .data import load_datasets, split_xy
    from .folds import make_folds

    datasets = load_datasets(MODEL_DATA, EVAL_DATA)
    X_train, y_train = split_xy(datasets['train'])
    tuned = tune_stages(X_train, y_train, make_folds(y_train, k=N_FOLDS))
    print("Tuned parameters (pass to BoostConfig.with_params):")
    print("-" * 30)
    for key, value in tuned.final_config.tuned().items():
        print(f"    '{key}': {value},")
    print("-" * 30)
