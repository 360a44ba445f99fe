"""Tests for the fold partitioner."""

import warnings

import numpy as np
import pytest

from eelboost.folds import (
    DegenerateFoldWarning,
    FoldError,
    check_folds,
    fold_summary,
    make_folds,
)


def _labels(n, n_pos, seed=0):
    y = np.r_[np.ones(n_pos, dtype=int), np.zeros(n - n_pos, dtype=int)]
    return np.random.default_rng(seed).permutation(y)


class TestPartition:

    @pytest.mark.parametrize("k", [2, 3, 5, 10])
    def test_disjoint_exhaustive_non_empty(self, k):
        y = _labels(300, 60)
        folds = make_folds(y, k=k, seed=1)

        assert len(folds) == k
        held_out = [valid for _, valid in folds]
        assert all(len(v) > 0 for v in held_out)
        assert sorted(np.concatenate(held_out)) == list(range(len(y)))
        for train, valid in folds:
            assert np.intersect1d(train, valid).size == 0
            assert len(train) + len(valid) == len(y)

    def test_label_ratio_preserved(self):
        y = _labels(500, 100)
        for _, valid in make_folds(y, k=5, seed=3):
            assert abs(y[valid].mean() - 0.2) < 0.02

    def test_thousand_rows_fifteen_percent_five_folds(self):
        y = _labels(1000, 150)
        for _, valid in make_folds(y, k=5, seed=42):
            positives = int(y[valid].sum())
            negatives = len(valid) - positives
            assert 25 <= positives <= 35
            assert 165 <= negatives <= 175

    def test_deterministic_for_seed(self):
        y = _labels(200, 40)
        a = make_folds(y, k=5, seed=9)
        b = make_folds(y, k=5, seed=9)
        for (ta, va), (tb, vb) in zip(a, b):
            np.testing.assert_array_equal(ta, tb)
            np.testing.assert_array_equal(va, vb)

    def test_seed_changes_assignment(self):
        y = _labels(200, 40)
        a = make_folds(y, k=5, seed=1).fold_ids(len(y))
        b = make_folds(y, k=5, seed=2).fold_ids(len(y))
        assert not np.array_equal(a, b)

    def test_fold_ids_cover_every_row(self):
        y = _labels(100, 20)
        ids = make_folds(y, k=4, seed=0).fold_ids(len(y))
        assert set(ids) == {0, 1, 2, 3}

    def test_summary(self):
        y = _labels(100, 20)
        summary = fold_summary(make_folds(y, k=4, seed=0), y)
        assert summary['Valid'].sum() == 100
        assert summary['Presence'].sum() == 20
        assert (summary['Presence'] == 5).all()


class TestErrors:

    def test_stratum_smaller_than_k(self):
        y = _labels(100, 3)
        with pytest.raises(FoldError, match="fewer than 5"):
            make_folds(y, k=5)

    def test_unstratified_accepts_small_stratum(self):
        y = _labels(100, 3)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DegenerateFoldWarning)
            folds = make_folds(y, k=5, stratified=False)
        assert len(folds) == 5

    @pytest.mark.parametrize("k", [0, 1])
    def test_too_few_folds(self, k):
        with pytest.raises(FoldError):
            make_folds(_labels(50, 10), k=k)

    def test_more_folds_than_rows(self):
        with pytest.raises(FoldError):
            make_folds(_labels(4, 2), k=5, stratified=False)


class TestDegenerateFolds:

    def test_unstratified_fold_without_presence_warns(self):
        y = _labels(50, 2)
        with pytest.warns(DegenerateFoldWarning):
            make_folds(y, k=5, stratified=False, seed=0)

    def test_check_counts_degenerate_folds(self):
        y = _labels(50, 2)
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", DegenerateFoldWarning)
            folds = make_folds(y, k=5, stratified=False, seed=0)
        with pytest.warns(DegenerateFoldWarning):
            assert check_folds(folds, y) >= 3

    def test_stratified_folds_do_not_warn(self):
        y = _labels(100, 10)
        with warnings.catch_warnings():
            warnings.simplefilter("error", DegenerateFoldWarning)
            make_folds(y, k=5, seed=0)
