import copy
from pathlib import Path

import numpy as np
import pandas as pd
import pytest

from activity_quality.config import load_config


REPO_ROOT = Path(__file__).resolve().parent.parent

SENSORS = ['belt', 'arm', 'dumbbell', 'forearm']
CLASSES = ['A', 'B', 'C', 'D', 'E']


def sensor_columns():
    cols = []
    for sensor in SENSORS:
        cols += [f"roll_{sensor}", f"pitch_{sensor}", f"yaw_{sensor}", f"total_accel_{sensor}"]
        for kind in ['gyros', 'accel', 'magnet']:
            cols += [f"{kind}_{sensor}_{axis}" for axis in 'xyz']
    return cols


SUMMARY_COLUMNS = [
    'kurtosis_roll_belt', 'skewness_roll_belt', 'max_roll_belt', 'min_pitch_belt',
    'amplitude_yaw_belt', 'var_total_accel_belt', 'avg_roll_arm', 'stddev_roll_arm',
]


def make_wle_frame(n_per_class: int = 40, seed: int = 0, with_label: bool = True) -> pd.DataFrame:
    """Synthetic table laid out like the Weight Lifting Exercises data."""
    rng = np.random.default_rng(seed)
    labels = np.repeat(CLASSES, n_per_class)
    codes = np.repeat(np.arange(len(CLASSES)), n_per_class)
    n = len(labels)

    df = pd.DataFrame({
        'X': np.arange(1, n + 1),
        'user_name': rng.choice(['adelmo', 'carlitos', 'charles', 'eurico', 'jeremy', 'pedro'], n),
        'raw_timestamp_part_1': 1322489729 + np.arange(n),
        'raw_timestamp_part_2': rng.integers(0, 999999, n),
        'cvtd_timestamp': '28/11/2011 14:13',
        'new_window': np.where(np.arange(n) % 25 == 0, 'yes', 'no'),
        'num_window': np.arange(n) // 25 + 1,
    })

    for i, col in enumerate(sensor_columns()):
        noise = rng.normal(0, 1, n)
        # The first few sensor columns carry the class signal
        df[col] = codes * 5.0 + noise if i < 6 else noise * (i + 1) + i

    window_rows = df['new_window'] == 'yes'
    for col in SUMMARY_COLUMNS:
        values = pd.Series('NA', index=df.index, dtype=object)
        values[window_rows] = np.round(rng.normal(0, 1, window_rows.sum()), 4).astype(str)
        if col.startswith('kurtosis'):
            values[window_rows & (np.arange(n) % 50 == 0)] = '#DIV/0!'
        df[col] = values

    if with_label:
        df['classe'] = labels
    else:
        df['problem_id'] = np.arange(1, n + 1)

    return df


@pytest.fixture
def wle_frame():
    return make_wle_frame()


@pytest.fixture
def base_config():
    return load_config(REPO_ROOT / "config.yaml")


@pytest.fixture
def data_files(tmp_path):
    train_path = tmp_path / "pml-training.csv"
    test_path = tmp_path / "pml-testing.csv"
    make_wle_frame(n_per_class=40, seed=0).to_csv(train_path, index=False)
    make_wle_frame(n_per_class=4, seed=1, with_label=False).to_csv(test_path, index=False)
    return train_path, test_path


@pytest.fixture
def config(base_config, data_files, tmp_path):
    """Small, fast config pointing at synthetic data."""
    config = copy.deepcopy(base_config)
    train_path, test_path = data_files
    config['data']['train_path'] = str(train_path)
    config['data']['test_path'] = str(test_path)
    config['training']['n_folds'] = 3
    config['tuning']['n_jobs'] = 1
    config['tuning']['grid'] = {'max_depth': [1, 2], 'n_estimators': [10, 20]}
    config['output']['results_dir'] = str(tmp_path / "results")
    return config


@pytest.fixture
def blank_index_config(config, tmp_path):
    """Config whose training table has an empty first header, as exported from R."""
    path = tmp_path / "pml-training-blank-index.csv"
    make_wle_frame(n_per_class=40, seed=0).rename(columns={'X': ''}).to_csv(path, index=False)
    config['data']['train_path'] = str(path)
    return config
