"""
model.py
========
Boosted-tree configuration, training and model management.

This module handles the lifecycle of the boosted classifiers:
1. Configuration (immutable BoostConfig threaded through every stage)
2. Training (LightGBM behind a small fit/predict/importances capability)
3. Prediction (presence probabilities and thresholded calls)
4. Persistence (saving artifacts and metadata)

Design Pattern:
    Anything with ``fit(config, X, y) -> Model`` can stand in for
    LightGBMTrainer, so the tuning code never touches the engine directly.
"""

import time
import numpy as np
import pandas as pd
import joblib
import lightgbm as lgb
from dataclasses import dataclass, asdict, replace
from pathlib import Path
from typing import Any, Dict, List, Optional, Protocol

from .config import (
    BASE_PARAMS,
    MAX_LEAVES,
    MODELS_DIR,
    RANDOM_STATE,
    THRESHOLD,
    TREE_CEILING,
)


# ============================================================================
# 1. CONFIGURATION
# ============================================================================

@dataclass(frozen=True)
class BoostConfig:
    """
    One complete or partial boosting configuration.

    ``None`` leaves a hyperparameter at the LightGBM default. ``mtry`` is the
    number of features offered to each tree and is turned into
    ``colsample_bytree`` once the feature count is known.
    """
    learning_rate: Optional[float] = None
    n_estimators: int = TREE_CEILING
    max_depth: Optional[int] = None
    min_child_samples: Optional[int] = None
    min_split_gain: Optional[float] = None
    subsample: Optional[float] = None
    mtry: Optional[int] = None
    random_state: int = RANDOM_STATE

    def with_params(self, **params) -> 'BoostConfig':
        """Return a copy with ``params`` fixed. Unknown names raise TypeError."""
        return replace(self, **params)

    def tuned(self) -> Dict[str, Any]:
        """Hyperparameters that are set (not left at library defaults)."""
        return {k: v for k, v in asdict(self).items() if v is not None}

    def to_params(self, n_features: int) -> Dict[str, Any]:
        """Translate to LGBMClassifier keyword arguments."""
        params = dict(BASE_PARAMS)
        params['n_estimators'] = int(self.n_estimators)
        params['random_state'] = int(self.random_state)

        if self.learning_rate is not None:
            if self.learning_rate <= 0:
                raise ValueError(f"learning_rate must be positive, got {self.learning_rate}")
            params['learning_rate'] = float(self.learning_rate)

        if self.max_depth is not None:
            # depth-wise trees: let the leaf budget follow the depth
            params['max_depth'] = int(self.max_depth)
            params['num_leaves'] = int(min(2 ** int(self.max_depth), MAX_LEAVES))

        if self.min_child_samples is not None:
            params['min_child_samples'] = int(self.min_child_samples)

        if self.min_split_gain is not None:
            params['min_split_gain'] = float(self.min_split_gain)

        if self.subsample is not None:
            if not 0 < self.subsample <= 1:
                raise ValueError(f"subsample must be in (0, 1], got {self.subsample}")
            params['subsample'] = float(self.subsample)
            params['subsample_freq'] = 1 if self.subsample < 1 else 0

        if self.mtry is not None:
            if not 1 <= self.mtry <= n_features:
                raise ValueError(f"mtry must be in [1, {n_features}], got {self.mtry}")
            params['colsample_bytree'] = self.mtry / n_features

        return params

    def describe(self) -> str:
        return ", ".join(f"{k}={_fmt(v)}" for k, v in self.tuned().items() if k != 'random_state')


def _fmt(value: Any) -> str:
    if isinstance(value, float):
        return f"{value:.4g}"
    return str(value)


# ============================================================================
# 2. CAPABILITY INTERFACE
# ============================================================================

class Model(Protocol):
    feature_names: List[str]

    def predict(self, X: pd.DataFrame) -> np.ndarray: ...

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray: ...

    def importances(self, kind: str = 'gain') -> pd.DataFrame: ...


class Trainable(Protocol):
    def fit(self, config: BoostConfig, X: pd.DataFrame, y: pd.Series) -> Model: ...


# ============================================================================
# 3. LIGHTGBM IMPLEMENTATION
# ============================================================================

class FittedBooster:
    """Fitted LGBMClassifier plus the configuration that produced it."""

    def __init__(self, estimator: lgb.LGBMClassifier, config: BoostConfig, threshold: float = THRESHOLD):
        self.estimator = estimator
        self.config = config
        self.threshold = threshold
        self.feature_names = list(estimator.feature_name_)

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Probability of presence for every row."""
        return self.estimator.predict_proba(X[self.feature_names])[:, 1]

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Hard 0/1 calls at ``threshold``."""
        return (self.predict_proba(X) >= self.threshold).astype(int)

    def importances(self, kind: str = 'gain') -> pd.DataFrame:
        """
        Per-feature importance, highest first.

        Args:
            kind: 'gain' (total loss reduction) or 'split' (number of splits).

        Returns:
            DataFrame with Feature, Importance and Relative (percent of total).
        """
        if kind not in ('gain', 'split'):
            raise ValueError(f"Unknown importance kind '{kind}'")
        values = self.estimator.booster_.feature_importance(importance_type=kind).astype(float)
        total = values.sum()
        df = pd.DataFrame({
            'Feature': self.feature_names,
            'Importance': values,
            'Relative': values / total * 100 if total > 0 else np.zeros_like(values),
        })
        return df.sort_values('Importance', ascending=False, kind='mergesort').reset_index(drop=True)


class LightGBMTrainer:
    """Trains LGBMClassifier instances from BoostConfig objects."""

    def __init__(self, threshold: float = THRESHOLD, verbose: bool = False):
        self.threshold = threshold
        self.verbose = verbose

    def fit(self, config: BoostConfig, X: pd.DataFrame, y: pd.Series) -> FittedBooster:
        params = config.to_params(n_features=X.shape[1])
        if self.verbose:
            print(f"\n[LIGHTGBM] Training (n_estimators={params['n_estimators']}, {config.describe()})...")

        model = lgb.LGBMClassifier(**params)

        start_time = time.time()
        model.fit(X, np.asarray(y).astype(int))
        duration = time.time() - start_time

        if self.verbose:
            print(f"[LIGHTGBM] Training complete in {duration:.2f}s on {X.shape[0]:,} rows")
        return FittedBooster(model, config, threshold=self.threshold)


# ============================================================================
# 4. MODEL MANAGER
# ============================================================================

class ModelManager:
    """
    Keeps the final fitted models side by side.

    Responsibilities:
        - Training: one instance per named dataset, same configuration.
        - Interpretability: importance tables and their comparison.
        - Persistence: saving model artifacts with metadata.
    """

    def __init__(self, config: BoostConfig, trainer: Optional[Trainable] = None):
        self.config = config
        self.trainer = trainer if trainer is not None else LightGBMTrainer(verbose=True)
        self.models: Dict[str, Model] = {}
        self.train_times: Dict[str, float] = {}
        self.train_sizes: Dict[str, int] = {}

    def fit(self, name: str, X: pd.DataFrame, y: pd.Series) -> Model:
        """Train and register a model under ``name``."""
        start_time = time.time()
        model = self.trainer.fit(self.config, X, y)
        self.models[name] = model
        self.train_times[name] = time.time() - start_time
        self.train_sizes[name] = len(X)
        return model

    def __getitem__(self, name: str) -> Model:
        if name not in self.models:
            raise KeyError(f"No model named '{name}'. Trained: {sorted(self.models)}")
        return self.models[name]

    # ─── Interpretability ─────────────────────────────────────────────────────

    def get_feature_importance(self, name: str, kind: str = 'gain', top_n: Optional[int] = None) -> pd.DataFrame:
        df = self[name].importances(kind)
        return df if top_n is None else df.head(top_n).reset_index(drop=True)

    def compare_importance(self, kind: str = 'gain') -> pd.DataFrame:
        """
        Relative importance of every feature across all trained models.

        Returns:
            One row per feature, one column per model (percent of total),
            sorted by the first model's ranking.
        """
        if not self.models:
            raise RuntimeError("No models trained. Call fit() first.")

        table = None
        for name in self.models:
            df = self.get_feature_importance(name, kind)[['Feature', 'Relative']].rename(columns={'Relative': name})
            table = df if table is None else table.merge(df, on='Feature', how='outer')

        first = next(iter(self.models))
        return table.sort_values(first, ascending=False, kind='mergesort').reset_index(drop=True)

    # ─── Persistence ──────────────────────────────────────────────────────────

    def save_model(self, name: str, models_dir: Path = MODELS_DIR) -> Path:
        """Saves a model + metadata (configuration, feature names) to disk."""
        model = self[name]
        models_dir = Path(models_dir)
        models_dir.mkdir(parents=True, exist_ok=True)

        path_model = models_dir / f"final_model_{name}.pkl"
        joblib.dump(model, path_model)

        metadata = {
            'timestamp': time.strftime("%Y-%m-%d %H:%M:%S"),
            'model_name': name,
            'config': asdict(self.config),
            'train_rows': self.train_sizes[name],
            'train_seconds': round(self.train_times[name], 3),
            'feature_names': list(getattr(model, 'feature_names', [])),
        }
        joblib.dump(metadata, models_dir / f"final_model_{name}_metadata.pkl")

        print(f"[Persistence] Model saved: {path_model}")
        return path_model
