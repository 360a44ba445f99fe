"""
data.py - Data loading, schema validation and splitting
"""

import pandas as pd
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple
from sklearn.model_selection import train_test_split

from .config import (
    TARGET_COLUMN,
    EVAL_TARGET_COLUMN,
    ID_COLUMNS,
    CATEGORICAL_FEATURES,
    RANDOM_STATE,
    TEST_SIZE,
)


class SchemaMismatchError(ValueError):
    """The model and evaluation datasets do not share a usable schema."""


def load_raw_data(filepath: Path, label_alias: Optional[str] = None) -> pd.DataFrame:
    """
    Load a raw CSV.

    If ``label_alias`` is given, that column is renamed to TARGET_COLUMN
    (the evaluation file ships its label as ``Angaus_obs``).
    """
    print(f"\n[Data] Loading {filepath}...")
    df = pd.read_csv(filepath)
    if label_alias is not None:
        df = alias_target(df, label_alias)
    print(f"[Data] Loaded {len(df):,} rows x {len(df.columns)} columns")
    return df


def alias_target(df: pd.DataFrame, source: str, target: str = TARGET_COLUMN) -> pd.DataFrame:
    """Rename the label column ``source`` to ``target``."""
    if source not in df.columns:
        if target in df.columns:
            return df
        raise SchemaMismatchError(f"Label column '{source}' not found")
    if target in df.columns:
        raise SchemaMismatchError(
            f"Cannot alias '{source}' to '{target}': both columns are present"
        )
    return df.rename(columns={source: target})


def prepare_features(
    df: pd.DataFrame,
    drop_columns: Iterable[str] = ID_COLUMNS,
    categorical: Iterable[str] = CATEGORICAL_FEATURES,
) -> pd.DataFrame:
    """Drop identifier columns and cast categoricals. Returns a new frame."""
    df = df.drop(columns=[c for c in drop_columns if c in df.columns])
    for col in categorical:
        if col in df.columns:
            df[col] = df[col].astype('category')
    return df


def feature_columns(df: pd.DataFrame, target_column: str = TARGET_COLUMN) -> list:
    return [c for c in df.columns if c != target_column]


def validate_schema(
    model_df: pd.DataFrame,
    eval_df: pd.DataFrame,
    target_column: str = TARGET_COLUMN,
) -> None:
    """
    Fail fast if the two datasets cannot be modelled together.

    Checks:
        1. Both carry the label column
        2. Labels are binary 0/1
        3. Identical feature sets (order may differ)
        4. Each feature has the same kind (numeric vs categorical) in both

    Raises:
        SchemaMismatchError
    """
    for name, df in (('model', model_df), ('evaluation', eval_df)):
        if target_column not in df.columns:
            raise SchemaMismatchError(f"{name} dataset has no '{target_column}' column")
        labels = set(pd.unique(df[target_column].dropna()))
        if df[target_column].isna().any() or not labels <= {0, 1}:
            raise SchemaMismatchError(
                f"{name} dataset label '{target_column}' must be 0/1, found {sorted(labels, key=str)}"
            )

    model_features = set(feature_columns(model_df, target_column))
    eval_features = set(feature_columns(eval_df, target_column))
    if model_features != eval_features:
        missing = sorted(model_features - eval_features)
        extra = sorted(eval_features - model_features)
        raise SchemaMismatchError(
            f"Feature schema mismatch: missing from evaluation={missing}, "
            f"unexpected in evaluation={extra}"
        )

    for col in sorted(model_features):
        model_numeric = pd.api.types.is_numeric_dtype(model_df[col])
        eval_numeric = pd.api.types.is_numeric_dtype(eval_df[col])
        if model_numeric != eval_numeric:
            raise SchemaMismatchError(
                f"Column '{col}' is {'numeric' if model_numeric else 'categorical'} in the model "
                f"dataset but {'numeric' if eval_numeric else 'categorical'} in the evaluation dataset"
            )


def harmonise_categories(
    model_df: pd.DataFrame,
    eval_df: pd.DataFrame,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Give every categorical column the same (sorted union) levels in both frames."""
    model_df = model_df.copy()
    eval_df = eval_df[list(model_df.columns)].copy()
    for col in model_df.columns:
        if isinstance(model_df[col].dtype, pd.CategoricalDtype):
            levels = sorted(
                set(model_df[col].dropna().astype(str)) | set(eval_df[col].dropna().astype(str))
            )
            dtype = pd.CategoricalDtype(categories=levels)
            model_df[col] = model_df[col].astype(str).where(model_df[col].notna()).astype(dtype)
            eval_df[col] = eval_df[col].astype(str).where(eval_df[col].notna()).astype(dtype)
    return model_df, eval_df


def split_xy(df: pd.DataFrame, target_column: str = TARGET_COLUMN) -> Tuple[pd.DataFrame, pd.Series]:
    """Separate features and integer label."""
    return df.drop(columns=[target_column]), df[target_column].astype(int)


def split_data(
    df: pd.DataFrame,
    test_size: float = TEST_SIZE,
    random_state: int = RANDOM_STATE,
    target_column: str = TARGET_COLUMN,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Stratified train/test split on the label."""
    print(f"[Data] Splitting ({1 - test_size:.0%}/{test_size:.0%}, stratified on '{target_column}')...")
    train_df, test_df = train_test_split(
        df,
        test_size=test_size,
        stratify=df[target_column],
        random_state=random_state,
    )
    print(f"[Data] Train={len(train_df):,}, Test={len(test_df):,}")
    return train_df, test_df


def load_datasets(
    model_path: Path,
    eval_path: Path,
    eval_label: str = EVAL_TARGET_COLUMN,
    test_size: float = TEST_SIZE,
    random_state: int = RANDOM_STATE,
) -> Dict[str, pd.DataFrame]:
    """Main entry point: load both files → validate → harmonise → split."""
    model_df = prepare_features(load_raw_data(model_path))
    eval_df = prepare_features(load_raw_data(eval_path, label_alias=eval_label))

    validate_schema(model_df, eval_df)
    model_df, eval_df = harmonise_categories(model_df, eval_df)

    prevalence = model_df[TARGET_COLUMN].mean()
    print(f"[Data] Presence rate: model={prevalence:.1%}, evaluation={eval_df[TARGET_COLUMN].mean():.1%}")

    train_df, test_df = split_data(model_df, test_size=test_size, random_state=random_state)
    return {'model': model_df, 'eval': eval_df, 'train': train_df, 'test': test_df}
