from typing import Any, Dict, List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.stats import binomtest
from sklearn.metrics import accuracy_score, cohen_kappa_score, confusion_matrix


def _check_inputs(y_true: Sequence, y_pred: Sequence) -> None:
    if len(y_true) == 0:
        raise ValueError("Cannot evaluate empty predictions")
    if len(y_true) != len(y_pred):
        raise ValueError(
            f"Length mismatch: {len(y_true)} true labels vs {len(y_pred)} predictions"
        )


def _ratio(num: float, den: float) -> float:
    return num / den if den else np.nan


def confusion_table(
    y_true: Sequence, y_pred: Sequence, labels: Optional[List] = None
) -> pd.DataFrame:
    """
    Confusion matrix as a DataFrame.

    Rows are predictions and columns are the reference labels. Classes that
    never occur still get a row and a column.
    """
    _check_inputs(y_true, y_pred)
    if labels is None:
        labels = sorted(set(np.asarray(y_true).tolist()) | set(np.asarray(y_pred).tolist()))

    cm = confusion_matrix(y_true, y_pred, labels=labels)
    return pd.DataFrame(
        cm.T,
        index=pd.Index(labels, name='Prediction'),
        columns=pd.Index(labels, name='Reference'),
    )


def class_statistics(table: pd.DataFrame) -> pd.DataFrame:
    """One-vs-rest statistics per class from a confusion table."""
    cm = table.values
    n = cm.sum()
    rows = []
    for i, label in enumerate(table.columns):
        tp = cm[i, i]
        fn = cm[:, i].sum() - tp
        fp = cm[i, :].sum() - tp
        tn = n - tp - fn - fp

        sensitivity = _ratio(tp, tp + fn)
        specificity = _ratio(tn, tn + fp)
        rows.append({
            'class': label,
            'Sensitivity': sensitivity,
            'Specificity': specificity,
            'Pos Pred Value': _ratio(tp, tp + fp),
            'Neg Pred Value': _ratio(tn, tn + fn),
            'Prevalence': _ratio(tp + fn, n),
            'Balanced Accuracy': (sensitivity + specificity) / 2,
        })
    return pd.DataFrame(rows).set_index('class')


def evaluate_predictions(
    y_true: Sequence,
    y_pred: Sequence,
    labels: Optional[List] = None,
    confidence_level: float = 0.95,
) -> Dict[str, Any]:
    """
    Accuracy, its exact binomial confidence interval, Cohen's kappa and
    per-class statistics.

    Args:
        y_true: Reference labels
        y_pred: Predicted labels
        labels: Label order for the confusion matrix
        confidence_level: Coverage of the accuracy interval

    Returns:
        Dictionary of evaluation results
    """
    table = confusion_table(y_true, y_pred, labels)
    y_true = np.asarray(y_true)
    y_pred = np.asarray(y_pred)

    n = len(y_true)
    n_correct = int((y_true == y_pred).sum())
    accuracy = accuracy_score(y_true, y_pred)

    ci = binomtest(n_correct, n).proportion_ci(
        confidence_level=confidence_level, method='exact'
    )

    reference_counts = table.sum(axis=0)
    no_information_rate = reference_counts.max() / n

    if len(np.unique(np.concatenate([y_true, y_pred]))) > 1:
        kappa = cohen_kappa_score(y_true, y_pred, labels=list(table.columns))
    else:
        kappa = np.nan

    return {
        'n': n,
        'accuracy': float(accuracy),
        'accuracy_ci': (float(ci.low), float(ci.high)),
        'no_information_rate': float(no_information_rate),
        'kappa': float(kappa),
        'out_of_sample_error': float(1.0 - accuracy),
        'confusion_matrix': table,
        'by_class': class_statistics(table),
    }


def print_evaluation_summary(results: Dict[str, Any], title: str = "VALIDATION") -> None:
    """Print a comprehensive evaluation summary."""
    low, high = results['accuracy_ci']

    print("=" * 60)
    print(f"{title} EVALUATION SUMMARY")
    print("=" * 60)
    print("Confusion Matrix:\n")
    print(results['confusion_matrix'].to_string())
    print()
    print(f"Accuracy: {results['accuracy']:.4f}")
    print(f"  - 95% CI: ({low:.4f}, {high:.4f})")
    print(f"  - No Information Rate: {results['no_information_rate']:.4f}")
    print(f"Kappa: {results['kappa']:.4f}")
    print(f"Out-of-sample error: {results['out_of_sample_error']:.4f}")
    print("\nStatistics by Class:\n")
    print(results['by_class'].T.round(4).to_string())
    print("=" * 60)
