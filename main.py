#!/usr/bin/env python
"""
Weight Lifting Exercises - activity quality classifier
Main execution script for training, evaluation and test-set prediction
"""

import argparse
import json
import sys
import traceback
import warnings
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, Optional

import joblib
import numpy as np
import pandas as pd

from activity_quality.config import load_config, resolve_path
from activity_quality.data_loader import (
    CLASSE_MAPPER,
    DataLoader,
    decode_labels,
    summarize_missing,
)
from activity_quality.evaluate import evaluate_predictions, print_evaluation_summary
from activity_quality.model import GBMModel
from activity_quality.plots import (
    plot_confusion_matrix,
    plot_feature_importance,
    plot_tuning_curve,
)
from activity_quality.preprocessing import FeatureCleaner, split_train_validation
from activity_quality.report import write_report
from activity_quality.train import Trainer

warnings.filterwarnings('ignore')

CLEANER_FILE = "feature_cleaner.pkl"


def banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def predict_table(cleaner: FeatureCleaner, model: GBMModel,
                  loader: DataLoader, test_df: pd.DataFrame) -> pd.DataFrame:
    """Score the testing table into a (problem_id, classe) frame."""
    X_test = cleaner.transform(test_df)
    preds = model.predict(X_test)
    return pd.DataFrame({
        'problem_id': loader.get_ids(test_df),
        'classe': decode_labels(preds),
    })


def run_training(config: Dict[str, Any], results_dir: Optional[Path] = None) -> Path:
    """Main training pipeline."""
    print("=" * 60)
    print("Weight Lifting Exercises - Activity Quality GBM")
    print("=" * 60)

    np.random.seed(config['training']['seed'])

    data_loader = DataLoader(config)
    cleaner = FeatureCleaner(config)
    trainer = Trainer(config)

    banner("STEP 1: Loading Data")
    train_df, test_df = data_loader.load_data()
    y = data_loader.get_labels(train_df)

    banner("STEP 2: Missing Values")
    missing_summary = summarize_missing(train_df)
    n_complete = int((missing_summary['n_missing'] == 0).sum())
    max_missing = cleaner.max_missing_fraction
    n_mostly_missing = int((missing_summary['missing_fraction'] > max_missing).sum())
    print(f"✓ Complete columns: {n_complete}")
    print(f"✓ Columns more than {max_missing:.0%} missing: {n_mostly_missing}")

    banner("STEP 3: Train / Validation Split")
    train_part, val_part, y_train, y_val = split_train_validation(
        train_df, y,
        validation_fraction=config['training'].get('validation_fraction', 0.3),
        seed=config['training']['seed'],
    )
    print(f"✓ Training partition: {len(train_part)} rows")
    print(f"✓ Validation partition: {len(val_part)} rows")

    banner("STEP 4: Cleaning Columns")
    X_train = cleaner.fit_transform(train_part)
    X_val = cleaner.transform(val_part)

    banner("STEP 5: Parameter Selection")
    cv_results = trainer.tune(X_train, y_train)

    banner("STEP 6: Final Model")
    model = trainer.fit_final(X_train, y_train)

    banner("STEP 7: Validation")
    labels = list(CLASSE_MAPPER)
    val_preds = trainer.predict(X_val)
    validation = evaluate_predictions(decode_labels(y_val), decode_labels(val_preds), labels=labels)
    print_evaluation_summary(validation)

    predictions = None
    if test_df is not None:
        banner("STEP 8: Test-Set Predictions")
        predictions = predict_table(cleaner, model, data_loader, test_df)
        print(predictions.to_string(index=False))

    banner("STEP 9: Saving Results")
    if results_dir is None:
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        results_dir = resolve_path(config, config['output']['results_dir']) / f"run_{timestamp}"
    results_dir = Path(results_dir)

    trainer.save_results(results_dir)
    joblib.dump(cleaner, results_dir / "model" / CLEANER_FILE)

    validation['confusion_matrix'].to_csv(results_dir / "confusion_matrix.csv")
    validation['by_class'].to_csv(results_dir / "class_statistics.csv")
    metrics = {k: v for k, v in validation.items() if k not in ('confusion_matrix', 'by_class')}
    with open(results_dir / "validation_metrics.json", 'w') as f:
        json.dump(metrics, f, indent=2)

    if predictions is not None:
        predictions.to_csv(results_dir / "predictions.csv", index=False)
        print(f"✓ Predictions saved to {results_dir / 'predictions.csv'}")

    output = config['output']
    if output.get('save_plots', True):
        plot_tuning_curve(cv_results, results_dir / "tuning_curve.png")
        plot_confusion_matrix(validation['confusion_matrix'], results_dir / "confusion_matrix.png")
        plot_feature_importance(
            model.get_feature_importance(), results_dir / "feature_importance.png",
            top_n=output.get('top_features', 20),
        )
        print("✓ Plots saved")

    if output.get('save_report', True):
        report_path = write_report(results_dir / "report.md", {
            'train_shape': train_df.shape,
            'test_shape': test_df.shape if test_df is not None else None,
            'missing_summary': missing_summary,
            'max_missing_fraction': max_missing,
            'cleaning_report': cleaner.report,
            'backend': model.backend,
            'best_params': trainer.best_params,
            'cv_results': cv_results,
            'cv_accuracy': trainer.cv_accuracy,
            'cv_error': trainer.cv_error,
            'validation': validation,
            'predictions': predictions,
        })
        print(f"✓ Report saved to {report_path}")

    banner("TRAINING COMPLETE")
    low, high = validation['accuracy_ci']
    print(f"✓ Best parameters: {trainer.best_params}")
    print(f"✓ CV error estimate: {trainer.cv_error:.4f}")
    print(f"✓ Validation accuracy: {validation['accuracy']:.4f} ({low:.4f} - {high:.4f})")
    print(f"✓ Results saved to: {results_dir}")
    print("=" * 60)

    return results_dir


def run_prediction(config: Dict[str, Any], model_dir: Path) -> Path:
    """Score the testing table with a saved run."""
    model_dir = Path(model_dir)
    cleaner_path = model_dir / "model" / CLEANER_FILE
    if not cleaner_path.exists():
        raise FileNotFoundError(f"No saved feature cleaner at {cleaner_path}")

    cleaner = joblib.load(cleaner_path)
    model = GBMModel(config).load_model(model_dir / "model")

    data_loader = DataLoader(config)
    _, test_df = data_loader.load_data()
    if test_df is None:
        raise FileNotFoundError("Test data not found, check data.test_path")

    predictions = predict_table(cleaner, model, data_loader, test_df)
    print(predictions.to_string(index=False))

    predictions_path = model_dir / "predictions.csv"
    predictions.to_csv(predictions_path, index=False)
    print(f"✓ Predictions saved to {predictions_path}")
    return predictions_path


def main(argv=None) -> int:
    parser = argparse.ArgumentParser(description="Activity quality GBM training script")
    parser.add_argument(
        "--mode",
        type=str,
        default="train",
        choices=["train", "predict", "both"],
        help="Run mode: train, predict, or both",
    )
    parser.add_argument("--config", type=str, default="config.yaml", help="Path to config file")
    parser.add_argument(
        "--model-dir", type=str, default=None, help="Saved run directory used for prediction"
    )
    args = parser.parse_args(argv)

    if args.mode == "predict" and args.model_dir is None:
        print("❌ Error: --model-dir is required in predict mode")
        return 1

    try:
        config = load_config(args.config)

        if args.mode in ["train", "both"]:
            results_dir = run_training(config)
            if args.mode == "both":
                args.model_dir = str(results_dir)

        if args.mode in ["predict", "both"]:
            run_prediction(config, Path(args.model_dir))

    except Exception as e:
        print(f"\n❌ Error: {e}")
        traceback.print_exc()
        return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
