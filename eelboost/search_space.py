"""
search_space.py
===============
Candidate generation for the tuning stages.

Two generators:
    - regular_grid:    n evenly spaced values over one dimension, bounds included
    - latin_hypercube: n space-filling points over several dimensions; every
                       dimension's range is cut into n buckets and each bucket
                       is used exactly once

Dimensions whose range depends on the data (the feature-subsample count)
must be finalized against the feature matrix before sampling.
"""

import numpy as np
import pandas as pd
from dataclasses import dataclass, replace
from typing import Optional, Sequence
from scipy.stats import qmc

from .config import RANDOM_STATE


class SearchSpaceError(ValueError):
    """Invalid or unresolved search-space bounds."""


@dataclass(frozen=True)
class Dimension:
    """
    One tunable hyperparameter range.

    Attributes:
        name:       Hyperparameter name (a BoostConfig field).
        low, high:  Inclusive bounds. ``high=None`` means "unknown until
                    finalized against the data".
        integer:    Values are whole numbers.
        log:        Sample on the log10 scale.
        data_bound: The upper bound can not exceed the number of features.
    """
    name: str
    low: float
    high: Optional[float]
    integer: bool = False
    log: bool = False
    data_bound: bool = False

    def __post_init__(self):
        if self.high is not None and not self.low < self.high:
            raise SearchSpaceError(f"{self.name}: low ({self.low}) must be below high ({self.high})")
        if self.log and self.low <= 0:
            raise SearchSpaceError(f"{self.name}: log-scale bounds must be positive, got low={self.low}")
        if self.high is None and not self.data_bound:
            raise SearchSpaceError(f"{self.name}: only data-bound dimensions may leave 'high' unset")

    @property
    def is_finalized(self) -> bool:
        return self.high is not None

    @property
    def n_values(self) -> Optional[int]:
        """Number of distinct values of an integer dimension."""
        if not (self.integer and self.is_finalized):
            return None
        return int(self.high) - int(self.low) + 1

    def _from_unit(self, u: np.ndarray) -> np.ndarray:
        """Map points in [0, 1] onto the range."""
        if self.integer:
            values = np.floor(self.low + u * self.n_values)
            return np.clip(values, self.low, self.high).astype(int)
        if self.log:
            lo, hi = np.log10(self.low), np.log10(self.high)
            return 10 ** (lo + u * (hi - lo))
        return self.low + u * (self.high - self.low)


def finalize(dimension: Dimension, X: pd.DataFrame) -> Dimension:
    """
    Resolve a data-bound dimension against the feature matrix.

    An unknown upper bound becomes the feature count; an explicit one larger
    than the feature count is rejected.
    """
    if not dimension.data_bound:
        return dimension
    n_features = X.shape[1]
    if dimension.low > n_features:
        raise SearchSpaceError(
            f"{dimension.name}: lower bound {dimension.low} exceeds the {n_features} available features"
        )
    if dimension.high is None:
        return replace(dimension, high=n_features)
    if dimension.high > n_features:
        raise SearchSpaceError(
            f"{dimension.name}: upper bound {dimension.high} exceeds the {n_features} available features"
        )
    return dimension


def _require_finalized(dimensions: Sequence[Dimension]) -> None:
    pending = [d.name for d in dimensions if not d.is_finalized]
    if pending:
        raise SearchSpaceError(f"Dimensions {pending} must be finalized against the data before sampling")


def regular_grid(dimension: Dimension, n: int) -> pd.DataFrame:
    """
    n evenly spaced values from low to high inclusive (log-spaced for log dimensions).

    Returns:
        Single-column DataFrame named after the dimension, strictly increasing.
    """
    _require_finalized([dimension])
    if n < 2:
        raise SearchSpaceError(f"A grid needs at least 2 values, got n={n}")
    if dimension.integer and dimension.n_values < n:
        raise SearchSpaceError(
            f"{dimension.name}: only {dimension.n_values} integers in [{dimension.low}, {dimension.high}], "
            f"cannot build a grid of {n}"
        )

    if dimension.log:
        values = np.geomspace(dimension.low, dimension.high, n)
    else:
        values = np.linspace(dimension.low, dimension.high, n)
    if dimension.integer:
        values = np.rint(values).astype(int)

    return pd.DataFrame({dimension.name: values})


def latin_hypercube(
    dimensions: Sequence[Dimension],
    n: int,
    seed: int = RANDOM_STATE,
) -> pd.DataFrame:
    """
    Latin-hypercube sample of n candidates.

    Columns are decorrelated with scipy's random coordinate-descent
    optimization, which only permutes within columns and so keeps the
    one-point-per-bucket property.

    Returns:
        DataFrame with one column per dimension, rows in generation order.
    """
    dimensions = list(dimensions)
    if not dimensions:
        raise SearchSpaceError("latin_hypercube needs at least one dimension")
    if n < 1:
        raise SearchSpaceError(f"Need at least one candidate, got n={n}")
    _require_finalized(dimensions)
    names = [d.name for d in dimensions]
    if len(set(names)) != len(names):
        raise SearchSpaceError(f"Duplicate dimension names: {names}")

    rng = np.random.default_rng(seed)
    options = {'d': len(dimensions)}
    if len(dimensions) > 1:
        options['optimization'] = 'random-cd'
    sampler = qmc.LatinHypercube(**options, rng=rng)
    unit = sampler.random(n)

    return pd.DataFrame({
        dim.name: dim._from_unit(unit[:, j]) for j, dim in enumerate(dimensions)
    })
