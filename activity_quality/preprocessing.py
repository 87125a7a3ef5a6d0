"""
Column cleaning and feature scaling

Reduces the raw sensor table to the raw IMU measurements:
- Identifier, timestamp and window bookkeeping columns (name patterns)
- Per-window summary statistics (kurtosis_, skewness_, max_, ...)
- Mostly-missing and non-numeric columns
- Near-zero-variance columns
then centers and scales what is left using training statistics only.
"""

import re
from typing import Dict, Any, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.model_selection import train_test_split
from sklearn.preprocessing import StandardScaler


def match_patterns(columns: List[str], patterns: List[str]) -> List[str]:
    """Columns matched by any of the regex patterns."""
    compiled = [re.compile(p) for p in patterns]
    return [col for col in columns if any(p.search(str(col)) for p in compiled)]


def near_zero_variance(
    df: pd.DataFrame,
    freq_cut: float = 95 / 5,
    unique_cut: float = 10.0,
) -> List[str]:
    """
    Find columns with zero or near-zero variance.

    A column is flagged when it has at most one distinct value, or when the
    ratio of the most common value's frequency to the second most common
    exceeds ``freq_cut`` while the percentage of distinct values is at most
    ``unique_cut``.

    Args:
        df: Feature table
        freq_cut: Cutoff for the most-common / second-most-common ratio
        unique_cut: Cutoff for the percentage of distinct values

    Returns:
        Names of the flagged columns, in table order
    """
    flagged = []
    for col in df.columns:
        values = df[col].dropna()
        counts = values.value_counts()

        if len(counts) <= 1:
            flagged.append(col)
            continue

        freq_ratio = counts.iloc[0] / counts.iloc[1]
        percent_unique = 100.0 * len(counts) / len(df)

        if freq_ratio > freq_cut and percent_unique <= unique_cut:
            flagged.append(col)

    return flagged


def split_train_validation(
    X: pd.DataFrame,
    y: np.ndarray,
    validation_fraction: float = 0.3,
    seed: int = 12345,
) -> Tuple[pd.DataFrame, pd.DataFrame, np.ndarray, np.ndarray]:
    """Stratified split into training and validation partitions."""
    if not 0.0 < validation_fraction < 1.0:
        raise ValueError(
            f"validation_fraction must be in (0, 1), got {validation_fraction}"
        )

    X_train, X_val, y_train, y_val = train_test_split(
        X, np.asarray(y),
        test_size=validation_fraction,
        stratify=y,
        random_state=seed,
    )
    return X_train, X_val, y_train, y_val


class FeatureCleaner:
    def __init__(self, config: Dict[str, Any], verbose: bool = True):
        self.config = config
        prep = config['preprocessing']
        self.drop_patterns = prep.get('drop_patterns', [])
        self.summary_patterns = prep.get('summary_patterns', [])
        self.max_missing_fraction = prep.get('max_missing_fraction', 0.9)

        nzv = prep.get('near_zero_variance', {}) or {}
        self.use_nzv = nzv.get('enabled', True)
        self.freq_cut = nzv.get('freq_cut', 95 / 5)
        self.unique_cut = nzv.get('unique_cut', 10.0)
        self.scale = prep.get('scale', True)

        data = config.get('data', {})
        self.excluded_cols = [data.get('label_col', 'classe'), data.get('id_col', 'problem_id')]
        self.verbose = verbose

        self.feature_cols: Optional[List[str]] = None
        self.medians: Optional[pd.Series] = None
        self.scaler: Optional[StandardScaler] = None
        self.report: Dict[str, Any] = {}

    def fit(self, df: pd.DataFrame) -> "FeatureCleaner":
        """Learn which columns survive cleaning and fit the scaler."""
        columns = [col for col in df.columns if col not in self.excluded_cols]

        dropped_by_pattern = match_patterns(columns, self.drop_patterns)
        columns = [c for c in columns if c not in dropped_by_pattern]

        dropped_summary = match_patterns(columns, self.summary_patterns)
        columns = [c for c in columns if c not in dropped_summary]

        missing_fraction = df[columns].isna().mean() if len(df) else pd.Series(1.0, index=columns)
        dropped_missing = [c for c in columns if missing_fraction[c] > self.max_missing_fraction]
        columns = [c for c in columns if c not in dropped_missing]

        dropped_non_numeric = [
            c for c in columns if not pd.api.types.is_numeric_dtype(df[c])
        ]
        columns = [c for c in columns if c not in dropped_non_numeric]

        dropped_nzv = []
        if self.use_nzv:
            dropped_nzv = near_zero_variance(df[columns], self.freq_cut, self.unique_cut)
            columns = [c for c in columns if c not in dropped_nzv]

        if not columns:
            raise ValueError("No feature columns left after cleaning")

        incomplete = int(df[columns].isna().any(axis=1).sum())
        if incomplete:
            raise ValueError(
                f"{incomplete} training rows have missing values in the selected features"
            )

        features = df[columns].astype(float)
        self.feature_cols = columns
        self.medians = features.median()
        if self.scale:
            self.scaler = StandardScaler().fit(features.values)

        self.report = {
            'dropped_by_pattern': dropped_by_pattern,
            'dropped_summary': dropped_summary,
            'dropped_missing': dropped_missing,
            'dropped_non_numeric': dropped_non_numeric,
            'dropped_near_zero_variance': dropped_nzv,
            'n_features': len(columns),
        }

        if self.verbose:
            self._print_report()

        return self

    def transform(self, df: pd.DataFrame) -> pd.DataFrame:
        """Select the learned features, impute and center/scale them."""
        if self.feature_cols is None:
            raise ValueError("FeatureCleaner has not been fitted yet")

        missing_cols = [c for c in self.feature_cols if c not in df.columns]
        if missing_cols:
            raise KeyError(f"Columns missing from input: {missing_cols}")

        features = df[self.feature_cols].astype(float).fillna(self.medians)
        values = features.values
        if self.scaler is not None:
            values = self.scaler.transform(values)

        return pd.DataFrame(values, columns=self.feature_cols, index=df.index)

    def fit_transform(self, df: pd.DataFrame) -> pd.DataFrame:
        return self.fit(df).transform(df)

    def _print_report(self) -> None:
        print(f"✓ Dropped {len(self.report['dropped_by_pattern'])} bookkeeping columns")
        print(f"✓ Dropped {len(self.report['dropped_summary'])} summary-statistic columns")
        print(f"✓ Dropped {len(self.report['dropped_missing'])} mostly-missing columns "
              f"(> {self.max_missing_fraction:.0%} missing)")
        print(f"✓ Dropped {len(self.report['dropped_non_numeric'])} non-numeric columns")
        print(f"✓ Dropped {len(self.report['dropped_near_zero_variance'])} near-zero-variance columns")
        print(f"✓ Using {self.report['n_features']} features"
              f"{' (centered and scaled)' if self.scale else ''}")
