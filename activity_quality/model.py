from typing import Dict, Any, List, Optional
import pickle
from pathlib import Path

import numpy as np
import pandas as pd
from lightgbm import LGBMClassifier
from xgboost import XGBClassifier


BACKENDS = ('lightgbm', 'xgboost')


class GBMModel:
    def __init__(self, config: Dict[str, Any]):
        self.config = config
        self.backend = config.get('model', {}).get('backend', 'lightgbm')
        if self.backend not in BACKENDS:
            raise ValueError(f"Unknown model backend '{self.backend}', expected one of {BACKENDS}")

        section = 'lgbm' if self.backend == 'lightgbm' else 'xgb'
        self.base_params = dict(config.get(section) or {})
        self.seed = config.get('training', {}).get('seed', 42)
        self.model = None
        self.params: Dict[str, Any] = {}
        self.feature_cols: Optional[List[str]] = None

    def build_params(self, **overrides) -> Dict[str, Any]:
        """Merge base params with overrides for a single fit."""
        params = self.base_params.copy()
        params.update(overrides)
        params.setdefault('random_state', self.seed)

        # Keep depth-limited LightGBM trees from being capped by num_leaves
        if self.backend == 'lightgbm' and 'max_depth' in overrides and 'num_leaves' not in overrides:
            depth = int(params['max_depth'])
            if depth > 0:
                params['num_leaves'] = max(2, 2 ** depth)

        return params

    def create_estimator(self, **overrides):
        """Create a new, unfitted estimator instance."""
        params = self.build_params(**overrides)
        if self.backend == 'lightgbm':
            return LGBMClassifier(**params)
        return XGBClassifier(**params)

    def fit(self, X: pd.DataFrame, y: np.ndarray, **overrides) -> "GBMModel":
        """Fit one estimator on the full data."""
        self.params = self.build_params(**overrides)
        self.model = self.create_estimator(**overrides)
        self.model.fit(X, y)
        self.feature_cols = list(X.columns) if isinstance(X, pd.DataFrame) else None
        return self

    def _check_fitted(self) -> None:
        if self.model is None:
            raise ValueError("No model has been trained yet")

    def _align(self, X: pd.DataFrame) -> pd.DataFrame:
        if self.feature_cols and isinstance(X, pd.DataFrame):
            return X[self.feature_cols]
        return X

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Predicted class codes."""
        self._check_fitted()
        return np.asarray(self.model.predict(self._align(X))).astype(int).ravel()

    def predict_proba(self, X: pd.DataFrame) -> np.ndarray:
        """Class probabilities."""
        self._check_fitted()
        return self.model.predict_proba(self._align(X))

    def get_feature_importance(self) -> pd.DataFrame:
        """Feature importance of the fitted estimator."""
        self._check_fitted()
        names = self.feature_cols or [f"f{i}" for i in range(len(self.model.feature_importances_))]
        importance_df = pd.DataFrame({
            'feature': names,
            'importance': self.model.feature_importances_,
        })
        importance_df = importance_df.sort_values(
            'importance', ascending=False, kind='mergesort'
        ).reset_index(drop=True)
        return importance_df

    def save_model(self, save_dir: Path) -> None:
        """Save fitted model to disk."""
        self._check_fitted()
        save_dir = Path(save_dir)
        save_dir.mkdir(parents=True, exist_ok=True)

        bundle = {
            'model': self.model,
            'backend': self.backend,
            'params': self.params,
            'feature_cols': self.feature_cols,
        }
        with open(save_dir / "gbm_model.pkl", 'wb') as f:
            pickle.dump(bundle, f)

        print(f"✓ Saved {self.backend} model to {save_dir}")

    def load_model(self, save_dir: Path) -> "GBMModel":
        """Load model from disk."""
        model_path = Path(save_dir) / "gbm_model.pkl"
        if not model_path.exists():
            raise FileNotFoundError(f"No saved model at {model_path}")

        with open(model_path, 'rb') as f:
            bundle = pickle.load(f)

        self.model = bundle['model']
        self.backend = bundle['backend']
        self.params = bundle['params']
        self.feature_cols = bundle['feature_cols']

        print(f"✓ Loaded {self.backend} model from {save_dir}")
        return self
