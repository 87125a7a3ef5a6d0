import numpy as np
import pandas as pd
import pytest

from activity_quality.data_loader import DataLoader, encode_labels
from activity_quality.preprocessing import (
    FeatureCleaner,
    match_patterns,
    near_zero_variance,
    split_train_validation,
)
from conftest import SUMMARY_COLUMNS, sensor_columns


def test_match_patterns_uses_search():
    columns = ['X', 'user_name', 'raw_timestamp_part_1', 'num_window', 'roll_belt']
    patterns = ['^X$', 'timestamp', 'window']
    assert match_patterns(columns, patterns) == ['X', 'raw_timestamp_part_1', 'num_window']


def test_cleaner_keeps_raw_sensor_columns(config, wle_frame):
    cleaner = FeatureCleaner(config, verbose=False).fit(wle_frame)

    assert cleaner.feature_cols == sensor_columns()
    report = cleaner.report
    assert sorted(report['dropped_by_pattern']) == sorted([
        'X', 'user_name', 'raw_timestamp_part_1', 'raw_timestamp_part_2',
        'cvtd_timestamp', 'new_window', 'num_window',
    ])
    assert sorted(report['dropped_summary']) == sorted(SUMMARY_COLUMNS)
    assert report['n_features'] == 52
    assert 'classe' not in cleaner.feature_cols


def test_cleaner_on_loaded_csv(config):
    train_df, test_df = DataLoader(config, verbose=False).load_data()
    cleaner = FeatureCleaner(config, verbose=False).fit(train_df)

    assert cleaner.feature_cols == sensor_columns()
    X_test = cleaner.transform(test_df)
    assert X_test.shape == (20, 52)
    assert 'problem_id' not in X_test.columns


def test_transform_centers_and_scales_with_training_statistics(config, wle_frame):
    cleaner = FeatureCleaner(config, verbose=False)
    X = cleaner.fit_transform(wle_frame)

    np.testing.assert_allclose(X.mean().values, 0.0, atol=1e-8)
    np.testing.assert_allclose(X.std(ddof=0).values, 1.0, atol=1e-8)
    assert X.index.equals(wle_frame.index)

    shifted = wle_frame.copy()
    shifted['roll_belt'] = shifted['roll_belt'] + 100.0
    X_shifted = cleaner.transform(shifted)
    assert X_shifted['roll_belt'].mean() > 1.0


def test_scaling_can_be_disabled(config, wle_frame):
    config['preprocessing']['scale'] = False
    X = FeatureCleaner(config, verbose=False).fit_transform(wle_frame)
    np.testing.assert_allclose(X['roll_belt'].values, wle_frame['roll_belt'].values)


def test_mostly_missing_and_non_numeric_columns_are_dropped(config, wle_frame):
    df = wle_frame.copy()
    sparse = np.full(len(df), np.nan)
    sparse[:5] = 1.0
    df['sparse_signal'] = sparse
    df['device'] = 'wrist'

    cleaner = FeatureCleaner(config, verbose=False).fit(df)
    assert cleaner.report['dropped_missing'] == ['sparse_signal']
    assert cleaner.report['dropped_non_numeric'] == ['device']


def test_missing_values_in_training_features_raise(config, wle_frame):
    df = wle_frame.copy()
    df.loc[3, 'roll_arm'] = np.nan
    with pytest.raises(ValueError, match="1 training rows"):
        FeatureCleaner(config, verbose=False).fit(df)


def test_transform_imputes_training_median(config, wle_frame):
    cleaner = FeatureCleaner(config, verbose=False).fit(wle_frame)
    df = wle_frame.copy()
    df.loc[0, 'roll_arm'] = np.nan

    X = cleaner.transform(df)
    assert np.isfinite(X.values).all()
    expected = (wle_frame['roll_arm'].median() - wle_frame['roll_arm'].mean()) \
        / wle_frame['roll_arm'].std(ddof=0)
    assert X.loc[0, 'roll_arm'] == pytest.approx(expected)


def test_transform_requires_fit(config, wle_frame):
    with pytest.raises(ValueError):
        FeatureCleaner(config, verbose=False).transform(wle_frame)


def test_transform_missing_column_raises(config, wle_frame):
    cleaner = FeatureCleaner(config, verbose=False).fit(wle_frame)
    with pytest.raises(KeyError, match="roll_belt"):
        cleaner.transform(wle_frame.drop(columns=['roll_belt']))


def test_near_zero_variance_rules():
    n = 100
    rng = np.random.default_rng(0)
    rare = np.zeros(n)
    rare[0] = 1.0
    df = pd.DataFrame({
        'constant': np.ones(n),
        'rare': rare,
        'balanced': np.tile([0.0, 1.0], n // 2),
        'continuous': rng.normal(size=n),
    })
    assert near_zero_variance(df) == ['constant', 'rare']


def test_near_zero_variance_respects_unique_cut():
    # Dominant value but many distinct values: not near-zero variance
    values = np.concatenate([np.zeros(60), np.arange(1, 41)])
    df = pd.DataFrame({'mostly_zero': values})
    assert near_zero_variance(df, freq_cut=19.0, unique_cut=10.0) == []
    assert near_zero_variance(df, freq_cut=19.0, unique_cut=50.0) == ['mostly_zero']


def test_near_zero_variance_columns_are_dropped(config, wle_frame):
    df = wle_frame.copy()
    df['stuck_sensor'] = 0.0
    cleaner = FeatureCleaner(config, verbose=False).fit(df)
    assert cleaner.report['dropped_near_zero_variance'] == ['stuck_sensor']

    config['preprocessing']['near_zero_variance']['enabled'] = False
    df['stuck_sensor'] = np.r_[1.0, np.zeros(len(df) - 1)]
    cleaner = FeatureCleaner(config, verbose=False).fit(df)
    assert 'stuck_sensor' in cleaner.feature_cols


def test_split_is_stratified_and_reproducible(wle_frame):
    y = encode_labels(wle_frame['classe'])
    X_train, X_val, y_train, y_val = split_train_validation(wle_frame, y, 0.3, seed=7)

    assert len(X_train) == 140 and len(X_val) == 60
    assert np.bincount(y_val).tolist() == [12] * 5

    X_train2, _, _, _ = split_train_validation(wle_frame, y, 0.3, seed=7)
    assert X_train.index.equals(X_train2.index)


def test_split_rejects_bad_fraction(wle_frame):
    y = encode_labels(wle_frame['classe'])
    with pytest.raises(ValueError):
        split_train_validation(wle_frame, y, 1.5)


def _partly_null_low_cardinality(n: int) -> np.ndarray:
    half = n // 2
    values = np.full(n, np.nan)
    values[half:half + 84] = 0.0
    values[half + 84:half + 100] = np.arange(1, 17)
    return values


def test_near_zero_variance_percent_unique_counts_all_rows():
    # 17 distinct values over 200 rows is 8.5%, though 17% of the non-null ones
    df = pd.DataFrame({'dropout_sensor': _partly_null_low_cardinality(200)})
    assert near_zero_variance(df, freq_cut=19.0, unique_cut=10.0) == ['dropout_sensor']


def test_partly_null_near_zero_variance_column_does_not_block_fit(config, wle_frame):
    df = wle_frame.copy()
    df['dropout_sensor'] = _partly_null_low_cardinality(len(df))

    cleaner = FeatureCleaner(config, verbose=False).fit(df)
    assert cleaner.report['dropped_near_zero_variance'] == ['dropout_sensor']
    assert cleaner.feature_cols == sensor_columns()


def test_blank_index_column_is_dropped_by_pattern(blank_index_config):
    train_df, _ = DataLoader(blank_index_config, verbose=False).load_data()
    cleaner = FeatureCleaner(blank_index_config, verbose=False).fit(train_df)

    assert '' in cleaner.report['dropped_by_pattern']
    assert cleaner.feature_cols == sensor_columns()
