"""Tests for loading, schema validation and splitting."""

import pandas as pd
import pytest

from eelboost.data import (
    SchemaMismatchError,
    alias_target,
    harmonise_categories,
    load_datasets,
    load_raw_data,
    prepare_features,
    split_data,
    split_xy,
    validate_schema,
)


@pytest.fixture
def frames(make_eel_frame):
    model_df = prepare_features(make_eel_frame(n=120, seed=1))
    eval_df = prepare_features(make_eel_frame(n=60, seed=2))
    return model_df, eval_df


class TestLoading:

    def test_evaluation_label_is_aliased(self, eel_csvs):
        _, eval_path = eel_csvs
        df = load_raw_data(eval_path, label_alias='Angaus_obs')
        assert 'Angaus' in df.columns
        assert 'Angaus_obs' not in df.columns

    def test_alias_rejects_duplicate_label(self, make_eel_frame):
        df = make_eel_frame(n=20)
        df['Angaus_obs'] = df['Angaus']
        with pytest.raises(SchemaMismatchError):
            alias_target(df, 'Angaus_obs')

    def test_alias_missing_label(self, make_eel_frame):
        df = make_eel_frame(n=20).drop(columns=['Angaus'])
        with pytest.raises(SchemaMismatchError):
            alias_target(df, 'Angaus_obs')

    def test_prepare_drops_site_and_casts_method(self, make_eel_frame):
        raw = make_eel_frame(n=30)
        df = prepare_features(raw)
        assert 'Site' not in df.columns
        assert isinstance(df['Method'].dtype, pd.CategoricalDtype)
        # input untouched
        assert 'Site' in raw.columns
        assert not isinstance(raw['Method'].dtype, pd.CategoricalDtype)


class TestValidateSchema:

    def test_matching_schema_passes(self, frames):
        validate_schema(*frames)

    def test_column_order_does_not_matter(self, frames):
        model_df, eval_df = frames
        validate_schema(model_df, eval_df[eval_df.columns[::-1]])

    def test_missing_feature(self, frames):
        model_df, eval_df = frames
        with pytest.raises(SchemaMismatchError, match="LocSed"):
            validate_schema(model_df, eval_df.drop(columns=['LocSed']))

    def test_unexpected_feature(self, frames):
        model_df, eval_df = frames
        eval_df = eval_df.assign(Extra=1.0)
        with pytest.raises(SchemaMismatchError, match="Extra"):
            validate_schema(model_df, eval_df)

    def test_missing_label(self, frames):
        model_df, eval_df = frames
        with pytest.raises(SchemaMismatchError):
            validate_schema(model_df, eval_df.drop(columns=['Angaus']))

    def test_non_binary_label(self, frames):
        model_df, eval_df = frames
        eval_df = eval_df.copy()
        eval_df.loc[eval_df.index[0], 'Angaus'] = 2
        with pytest.raises(SchemaMismatchError, match="0/1"):
            validate_schema(model_df, eval_df)

    def test_kind_mismatch(self, frames):
        model_df, eval_df = frames
        eval_df = eval_df.assign(DSDam=eval_df['DSDam'].map({0: 'no', 1: 'yes'}))
        with pytest.raises(SchemaMismatchError, match="DSDam"):
            validate_schema(model_df, eval_df)


class TestHarmonise:

    def test_categories_are_shared(self, frames):
        model_df, eval_df = frames
        model_df = model_df[model_df['Method'] != 'trap']
        model_df = model_df.assign(Method=model_df['Method'].astype(str).astype('category'))
        m, e = harmonise_categories(model_df, eval_df)
        assert list(m['Method'].cat.categories) == list(e['Method'].cat.categories)
        assert 'trap' in m['Method'].cat.categories

    def test_evaluation_columns_follow_model_order(self, frames):
        model_df, eval_df = frames
        _, e = harmonise_categories(model_df, eval_df[eval_df.columns[::-1]])
        assert list(e.columns) == list(model_df.columns)


class TestSplit:

    def test_stratified_split(self, make_eel_frame):
        df = prepare_features(make_eel_frame(n=400, prevalence=0.2))
        train, test = split_data(df, test_size=0.25, random_state=0)
        assert len(train) == 300 and len(test) == 100
        assert test['Angaus'].sum() == 20
        assert set(train.index).isdisjoint(test.index)

    def test_split_is_deterministic(self, make_eel_frame):
        df = prepare_features(make_eel_frame(n=200))
        a, _ = split_data(df, random_state=5)
        b, _ = split_data(df, random_state=5)
        assert a.index.equals(b.index)

    def test_split_xy(self, frames):
        X, y = split_xy(frames[0])
        assert 'Angaus' not in X.columns
        assert y.dtype.kind == 'i'


def test_load_datasets(eel_csvs):
    model_path, eval_path = eel_csvs
    data = load_datasets(model_path, eval_path, test_size=0.25, random_state=0)

    assert set(data) == {'model', 'eval', 'train', 'test'}
    assert len(data['train']) + len(data['test']) == len(data['model']) == 400
    assert len(data['eval']) == 200
    assert list(data['eval'].columns) == list(data['model'].columns)
    assert 'Site' not in data['model'].columns


def test_load_datasets_fails_fast_on_schema(tmp_path, make_eel_frame):
    model_path = tmp_path / "m.csv"
    eval_path = tmp_path / "e.csv"
    make_eel_frame(n=50).to_csv(model_path, index=False)
    make_eel_frame(n=50, label='Angaus_obs').drop(columns=['USSlope']).to_csv(eval_path, index=False)
    with pytest.raises(SchemaMismatchError):
        load_datasets(model_path, eval_path)
