"""Shared fixtures: synthetic eel survey data and lightweight trainers."""

import matplotlib
matplotlib.use("Agg")

import numpy as np
import pandas as pd
import pytest

from eelboost.model import BoostConfig
from eelboost.search_space import Dimension
from eelboost.tune import Stage

METHODS = ['electric', 'mixed', 'net', 'spo', 'trap']


def _eel_frame(n=400, prevalence=0.2, seed=0, label='Angaus'):
    """Synthetic survey sites with the case-study columns and an exact presence count."""
    rng = np.random.default_rng(seed)
    df = pd.DataFrame({
        'Site': np.arange(1, n + 1),
        'SegSumT': rng.normal(16.5, 2.0, n),
        'SegTSeas': rng.normal(0.0, 1.3, n),
        'SegLowFlow': rng.gamma(2.0, 0.5, n) + 1.0,
        'DSDist': rng.gamma(2.0, 40.0, n),
        'DSMaxSlope': rng.gamma(1.5, 1.5, n),
        'USAvgT': rng.normal(0.0, 1.2, n),
        'USRainDays': rng.gamma(3.0, 0.6, n),
        'USSlope': rng.gamma(3.0, 4.0, n),
        'USNative': rng.uniform(0.0, 1.0, n),
        'DSDam': rng.binomial(1, 0.2, n),
        'Method': rng.choice(METHODS, n),
        'LocSed': rng.uniform(1.0, 6.0, n).round(1),
    })
    score = (
        0.9 * (df['SegSumT'] - 16.5)
        - 0.015 * df['DSDist']
        - 0.8 * df['DSDam']
        + 0.6 * (df['Method'] == 'electric')
        + rng.normal(0.0, 1.0, n)
    )
    n_pos = int(round(n * prevalence))
    y = np.zeros(n, dtype=int)
    y[np.argsort(-score.to_numpy(), kind='mergesort')[:n_pos]] = 1
    df[label] = y
    return df


@pytest.fixture
def make_eel_frame():
    return _eel_frame


@pytest.fixture
def eel_csvs(tmp_path):
    """Model and evaluation CSVs in the layout of the published files."""
    model_path = tmp_path / "model_data.csv"
    eval_path = tmp_path / "eval_data.csv"
    _eel_frame(n=400, prevalence=0.2, seed=1).to_csv(model_path, index=False)
    _eel_frame(n=200, prevalence=0.2, seed=2, label='Angaus_obs').to_csv(eval_path, index=False)
    return model_path, eval_path


@pytest.fixture
def fast_config():
    return BoostConfig(n_estimators=25, random_state=7)


@pytest.fixture
def small_stages():
    """Three stages with the real dimensions but only a handful of candidates."""
    return (
        Stage('a', 'learning rate', (Dimension('learning_rate', 0.01, 0.3),), size=3, method='grid'),
        Stage('b', 'tree shape', (
            Dimension('max_depth', 1, 6, integer=True),
            Dimension('min_child_samples', 2, 20, integer=True),
            Dimension('min_split_gain', 1e-10, 1.0, log=True),
        ), size=3),
        Stage('c', 'stochastic sampling', (
            Dimension('subsample', 0.5, 1.0),
            Dimension('mtry', 1, None, integer=True, data_bound=True),
        ), size=3),
    )


# ============================================================================
# Stand-in trainers: instant fits with controllable scores
# ============================================================================

class SignalModel:
    """Predicts from the 'signal' column, blurred by noise that grows with distance from a target learning rate."""

    def __init__(self, config, noise, seed):
        self.config = config
        self.noise = noise
        self.seed = seed
        self.feature_names = []

    def predict_proba(self, X):
        rng = np.random.default_rng(self.seed)
        proba = X['signal'].to_numpy(dtype=float) + self.noise * rng.normal(size=len(X))
        return np.clip(proba, 0.0, 1.0)

    def predict(self, X):
        return (self.predict_proba(X) >= 0.5).astype(int)


class SignalTrainer:
    """
    Trainer stand-in for tuning tests.

    Noise is |learning_rate - target| * scale, so candidates nearer the
    target score better. Learning rates above ``fail_above`` raise.
    """

    def __init__(self, target=0.1, scale=5.0, fail_above=None):
        self.target = target
        self.scale = scale
        self.fail_above = fail_above
        self.n_fits = 0

    def fit(self, config, X, y):
        self.n_fits += 1
        lr = config.learning_rate if config.learning_rate is not None else self.target
        if self.fail_above is not None and lr > self.fail_above:
            raise ValueError(f"learning_rate {lr} rejected")
        return SignalModel(config, noise=abs(lr - self.target) * self.scale, seed=len(X))


@pytest.fixture
def signal_data():
    """Features plus a 'signal' column equal to the label."""
    rng = np.random.default_rng(3)
    n = 200
    y = pd.Series(np.r_[np.ones(50, dtype=int), np.zeros(150, dtype=int)])
    X = pd.DataFrame({
        'signal': y.astype(float),
        'a': rng.normal(size=n),
        'b': rng.normal(size=n),
        'c': rng.normal(size=n),
    })
    return X, y


@pytest.fixture
def signal_trainer():
    return SignalTrainer()


@pytest.fixture
def failing_trainer():
    return SignalTrainer(fail_above=0.2)
