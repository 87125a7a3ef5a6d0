import json
from pathlib import Path
from typing import Dict, Any, List, Optional

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.metrics import accuracy_score, cohen_kappa_score
from sklearn.model_selection import ParameterGrid, StratifiedKFold

from .model import GBMModel


def _fit_fold(
    config: Dict[str, Any],
    params: Dict[str, Any],
    X_train: pd.DataFrame,
    y_train: np.ndarray,
    X_val: pd.DataFrame,
) -> np.ndarray:
    """Fit one grid point on one fold and predict the held-out rows."""
    estimator = GBMModel(config).create_estimator(**params)
    estimator.fit(X_train, y_train)
    return np.asarray(estimator.predict(X_val)).astype(int).ravel()


def _kappa(y_true: np.ndarray, y_pred: np.ndarray) -> float:
    if len(np.unique(np.concatenate([y_true, y_pred]))) < 2:
        return np.nan
    return cohen_kappa_score(y_true, y_pred)


class Trainer:
    def __init__(self, config: Dict[str, Any], verbose: bool = True):
        self.config = config
        self.n_folds = config['training']['n_folds']
        self.seed = config['training']['seed']
        self.grid = config['tuning'].get('grid') or {}
        self.n_jobs = config['tuning'].get('n_jobs', -1)
        self.verbose = verbose

        self.model: Optional[GBMModel] = None
        self.cv_results: Optional[pd.DataFrame] = None
        self.best_params: Optional[Dict[str, Any]] = None
        self.oof_predictions: Optional[np.ndarray] = None
        self.cv_accuracy: Optional[float] = None
        self.cv_error: Optional[float] = None

    def _candidates(self) -> List[Dict[str, Any]]:
        # Scalar entries are fixed parameters shared by every grid point
        grid = {
            key: list(values) if isinstance(values, (list, tuple)) else [values]
            for key, values in self.grid.items()
        }
        if not grid or any(len(values) == 0 for values in grid.values()):
            raise ValueError("Tuning grid is empty")
        return list(ParameterGrid(grid))

    def _check_folds(self, y: np.ndarray) -> None:
        if self.n_folds < 2:
            raise ValueError(f"n_folds must be at least 2, got {self.n_folds}")
        _, counts = np.unique(y, return_counts=True)
        if counts.min() < self.n_folds:
            raise ValueError(
                f"Smallest class has {counts.min()} samples, fewer than n_folds={self.n_folds}"
            )

    def tune(self, X: pd.DataFrame, y: np.ndarray) -> pd.DataFrame:
        """
        Select GBM parameters by stratified k-fold cross-validation.

        Every (grid point, fold) fit is dispatched through joblib. The best
        grid point has the highest mean fold accuracy; ties keep the earlier
        grid point.

        Args:
            X: Training features
            y: Training labels

        Returns:
            cv_results: One row per grid point with fold accuracy and kappa
        """
        y = np.asarray(y)
        candidates = self._candidates()
        self._check_folds(y)

        if self.verbose:
            print(f"\n{'='*60}")
            print(f"Tuning {len(candidates)} parameter sets with "
                  f"{self.n_folds}-fold cross-validation")
            print(f"{'='*60}")
            print(f"Number of features: {X.shape[1]}")
            print(f"Number of samples: {len(X)}")
            print(f"Number of classes: {len(np.unique(y))}")

        cv = StratifiedKFold(n_splits=self.n_folds, shuffle=True, random_state=self.seed)
        folds = list(cv.split(X, y))

        fold_predictions = Parallel(n_jobs=self.n_jobs)(
            delayed(_fit_fold)(
                self.config, params,
                X.iloc[train_idx], y[train_idx],
                X.iloc[val_idx],
            )
            for params in candidates
            for train_idx, val_idx in folds
        )

        rows = []
        oof_by_candidate = []
        for c_idx, params in enumerate(candidates):
            oof = np.zeros(len(y), dtype=int)
            accuracies = []
            kappas = []
            for f_idx, (_, val_idx) in enumerate(folds):
                preds = fold_predictions[c_idx * len(folds) + f_idx]
                oof[val_idx] = preds
                accuracies.append(accuracy_score(y[val_idx], preds))
                kappas.append(_kappa(y[val_idx], preds))

            oof_by_candidate.append(oof)
            rows.append({
                **params,
                'accuracy_mean': np.mean(accuracies),
                'accuracy_std': np.std(accuracies),
                'kappa_mean': np.nanmean(kappas) if not np.all(np.isnan(kappas)) else np.nan,
                'kappa_std': np.nanstd(kappas) if not np.all(np.isnan(kappas)) else np.nan,
            })

            if self.verbose:
                param_str = ", ".join(f"{k}={v}" for k, v in params.items())
                print(f"{param_str} - Accuracy: {np.mean(accuracies):.4f} "
                      f"± {np.std(accuracies):.4f} (Kappa: {rows[-1]['kappa_mean']:.4f})")

        self.cv_results = pd.DataFrame(rows)
        best_index = int(np.argmax(self.cv_results['accuracy_mean'].values))
        self.cv_results['rank'] = (
            self.cv_results['accuracy_mean'].rank(ascending=False, method='first').astype(int)
        )

        self.best_params = dict(candidates[best_index])
        self.oof_predictions = oof_by_candidate[best_index]
        self.cv_accuracy = float(accuracy_score(y, self.oof_predictions))
        self.cv_error = 1.0 - self.cv_accuracy

        if self.verbose:
            self._print_cv_results()

        return self.cv_results

    def _print_cv_results(self) -> None:
        """Print cross-validation results summary."""
        print(f"\n{'='*60}")
        print("CROSS-VALIDATION RESULTS")
        print(f"{'='*60}")
        print(f"Best parameters: {self.best_params}")
        print(f"Out-of-fold accuracy: {self.cv_accuracy:.4f}")
        print(f"Estimated out-of-sample error: {self.cv_error:.4f}")
        print(f"{'='*60}\n")

    def fit_final(self, X: pd.DataFrame, y: np.ndarray,
                  params: Optional[Dict[str, Any]] = None) -> GBMModel:
        """Refit on the full training partition with the selected parameters."""
        params = params if params is not None else self.best_params
        if params is None:
            raise ValueError("No parameters selected, run tune() first")

        if self.verbose:
            print(f"Fitting final model on {len(X)} samples with {params}")

        self.model = GBMModel(self.config).fit(X, np.asarray(y), **params)
        return self.model

    def predict(self, X: pd.DataFrame) -> np.ndarray:
        """Make predictions with the final model."""
        if self.model is None:
            raise ValueError("No model has been trained yet")
        return self.model.predict(X)

    def save_results(self, save_dir: Path) -> None:
        """Save training results."""
        save_dir = Path(save_dir)
        save_dir.mkdir(parents=True, exist_ok=True)

        if self.model is not None:
            self.model.save_model(save_dir / "model")

        if self.cv_results is not None:
            self.cv_results.to_csv(save_dir / "cv_results.csv", index=False)

        if self.oof_predictions is not None:
            np.save(save_dir / "oof_predictions.npy", self.oof_predictions)

        cv_summary = {
            'best_params': self.best_params,
            'cv_accuracy': self.cv_accuracy,
            'cv_error': self.cv_error,
            'n_folds': self.n_folds,
            'seed': self.seed,
            'backend': self.model.backend if self.model is not None else None,
        }
        with open(save_dir / "cv_summary.json", 'w') as f:
            json.dump(cv_summary, f, indent=2, default=str)

        if self.model is not None:
            importance_df = self.model.get_feature_importance()
            importance_df.to_csv(save_dir / "feature_importance.csv", index=False)

            if self.verbose:
                top_n = self.config.get('output', {}).get('top_features', 20)
                print(f"\nTop {top_n} Most Important Features:")
                print(importance_df.head(top_n).to_string(index=False))

        if self.verbose:
            print(f"\n✓ Results saved to {save_dir}")
