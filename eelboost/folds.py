"""
folds.py
========
k-fold partitioning of the training split.

Every row lands in exactly one held-out fold. With stratification each fold
keeps the global presence/absence ratio, which requires at least k rows of
every label.
"""

import warnings
import numpy as np
import pandas as pd
from dataclasses import dataclass
from typing import Iterator, Tuple
from sklearn.model_selection import KFold, StratifiedKFold

from .config import N_FOLDS, RANDOM_STATE, STRATIFIED_FOLDS


class FoldError(ValueError):
    """The requested partitioning is impossible for this dataset."""


class DegenerateFoldWarning(UserWarning):
    """A held-out fold is missing one of the labels."""


@dataclass(frozen=True, eq=False)
class FoldAssignment:
    """Immutable set of (train_idx, valid_idx) positional index pairs."""
    splits: Tuple[Tuple[np.ndarray, np.ndarray], ...]
    k: int
    seed: int
    stratified: bool

    def __iter__(self) -> Iterator[Tuple[np.ndarray, np.ndarray]]:
        return iter(self.splits)

    def __len__(self) -> int:
        return len(self.splits)

    def fold_ids(self, n_rows: int) -> np.ndarray:
        """Held-out fold number for every row."""
        ids = np.full(n_rows, -1, dtype=int)
        for fold, (_, valid_idx) in enumerate(self.splits):
            ids[valid_idx] = fold
        return ids


def make_folds(
    y,
    k: int = N_FOLDS,
    seed: int = RANDOM_STATE,
    stratified: bool = STRATIFIED_FOLDS,
) -> FoldAssignment:
    """
    Partition rows into k shuffled folds, deterministic for a fixed seed.

    Args:
        y:          Binary labels (array-like), one per row.
        k:          Number of folds.
        seed:       Shuffle seed.
        stratified: Preserve the label ratio in every fold.

    Raises:
        FoldError: k < 2, k > rows, or (stratified) a label with fewer than k rows.
    """
    y = np.asarray(y)
    n_rows = len(y)

    if k < 2:
        raise FoldError(f"Need at least 2 folds, got k={k}")
    if k > n_rows:
        raise FoldError(f"Cannot split {n_rows} rows into {k} folds")

    if stratified:
        counts = pd.Series(y).value_counts()
        too_small = counts[counts < k]
        if not too_small.empty:
            raise FoldError(
                f"Cannot stratify into {k} folds: label(s) {too_small.to_dict()} have fewer than {k} rows. "
                f"Reduce k or use stratified=False."
            )
        splitter = StratifiedKFold(n_splits=k, shuffle=True, random_state=seed)
    else:
        splitter = KFold(n_splits=k, shuffle=True, random_state=seed)

    splits = tuple(
        (np.asarray(train_idx), np.asarray(valid_idx))
        for train_idx, valid_idx in splitter.split(np.zeros(n_rows), y)
    )
    folds = FoldAssignment(splits=splits, k=k, seed=seed, stratified=stratified)

    check_folds(folds, y)
    print(f"[Folds] {k} {'stratified ' if stratified else ''}folds over {n_rows:,} rows (seed={seed})")
    return folds


def check_folds(folds: FoldAssignment, y) -> int:
    """Warn for every held-out fold missing a label. Returns the number of such folds."""
    y = np.asarray(y)
    labels = set(np.unique(y))
    degenerate = 0
    for fold, (_, valid_idx) in enumerate(folds):
        present = set(np.unique(y[valid_idx]))
        if present != labels:
            degenerate += 1
            warnings.warn(
                f"Fold {fold} has no rows with label(s) {sorted(labels - present)}; "
                f"its ROC AUC is undefined",
                DegenerateFoldWarning,
                stacklevel=2,
            )
    return degenerate


def fold_summary(folds: FoldAssignment, y) -> pd.DataFrame:
    """Per-fold held-out counts by label."""
    y = np.asarray(y)
    rows = []
    for fold, (train_idx, valid_idx) in enumerate(folds):
        rows.append({
            'Fold': fold,
            'Train': len(train_idx),
            'Valid': len(valid_idx),
            'Presence': int((y[valid_idx] == 1).sum()),
            'Absence': int((y[valid_idx] == 0).sum()),
        })
    return pd.DataFrame(rows)
