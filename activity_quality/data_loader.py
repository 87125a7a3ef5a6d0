from pathlib import Path
from typing import Tuple, Optional, Dict, Any, Iterable

import numpy as np
import pandas as pd
import polars as pl

from .config import resolve_path


# Activity quality mapping (Velloso et al., Weight Lifting Exercises)
CLASSE_MAPPER = {
    "A": 0,  # performed as instructed
    "B": 1,  # throwing the elbows to the front
    "C": 2,  # lifting the dumbbell only halfway
    "D": 3,  # lowering the dumbbell only halfway
    "E": 4,  # throwing the hips to the front
}

REVERSE_CLASSE_MAPPER = {v: k for k, v in CLASSE_MAPPER.items()}

DEFAULT_NULL_VALUES = ["NA", "", "#DIV/0!"]


def encode_labels(labels: Iterable) -> np.ndarray:
    """Map ``classe`` letters to integer codes."""
    labels = pd.Series(labels)
    unknown = sorted(set(labels.dropna().astype(str)) - set(CLASSE_MAPPER))
    if unknown or labels.isna().any():
        raise ValueError(f"Unknown classe labels: {unknown or ['<missing>']}")
    return labels.astype(str).map(CLASSE_MAPPER).to_numpy(dtype=int)


def decode_labels(codes: Iterable) -> np.ndarray:
    """Map integer codes back to ``classe`` letters."""
    codes = np.asarray(codes).astype(int)
    unknown = sorted(set(codes.tolist()) - set(REVERSE_CLASSE_MAPPER))
    if unknown:
        raise ValueError(f"Unknown classe codes: {unknown}")
    return np.array([REVERSE_CLASSE_MAPPER[c] for c in codes])


def summarize_missing(df: pd.DataFrame) -> pd.DataFrame:
    """Per-column missing-value counts, most-missing first."""
    n_rows = len(df)
    missing = df.isna().sum()
    summary = pd.DataFrame({
        'column': missing.index,
        'n_missing': missing.values,
        'missing_fraction': missing.values / n_rows if n_rows else np.zeros(len(missing)),
    })
    summary = summary.sort_values(
        ['missing_fraction', 'column'], ascending=[False, True], kind='mergesort'
    ).reset_index(drop=True)
    return summary


class DataLoader:
    def __init__(self, config: Dict[str, Any], verbose: bool = True):
        self.config = config
        self.data_config = config['data']
        self.null_values = self.data_config.get('null_values', DEFAULT_NULL_VALUES)
        self.verbose = verbose

    def _read_csv(self, path: Path) -> pd.DataFrame:
        df = pl.read_csv(
            path,
            null_values=self.null_values,
            infer_schema_length=None,
        )
        return df.to_pandas()

    def load_data(self) -> Tuple[pd.DataFrame, Optional[pd.DataFrame]]:
        """Load training data and, when available, the testing data."""
        train_path = resolve_path(self.config, self.data_config['train_path'])
        if not train_path.exists():
            raise FileNotFoundError(f"Training data not found: {train_path}")

        if self.verbose:
            print("Loading training data...")
        train_df = self._read_csv(train_path)

        label_col = self.data_config.get('label_col', 'classe')
        if label_col not in train_df.columns:
            raise KeyError(f"Label column '{label_col}' not found in {train_path}")

        test_df = None
        test_path = self.data_config.get('test_path')
        if test_path:
            test_path = resolve_path(self.config, test_path)
            if test_path.exists():
                if self.verbose:
                    print("Loading test data...")
                test_df = self._read_csv(test_path)
            elif self.verbose:
                print(f"⚠ Test data not found, skipping: {test_path}")

        if self.verbose:
            print(f"✓ Train shape: {train_df.shape}")
            if test_df is not None:
                print(f"✓ Test shape: {test_df.shape}")

        return train_df, test_df

    def get_labels(self, train_df: pd.DataFrame) -> np.ndarray:
        """Encoded labels for the training table."""
        labels = encode_labels(train_df[self.data_config.get('label_col', 'classe')])
        if self.verbose:
            counts = pd.Series(decode_labels(labels)).value_counts().sort_index()
            print("✓ Class distribution: "
                  + ", ".join(f"{k}={v}" for k, v in counts.items()))
        return labels

    def get_ids(self, test_df: pd.DataFrame) -> np.ndarray:
        """Problem ids for the testing table, falling back to row numbers."""
        id_col = self.data_config.get('id_col', 'problem_id')
        if id_col in test_df.columns:
            return test_df[id_col].to_numpy()
        return np.arange(1, len(test_df) + 1)
