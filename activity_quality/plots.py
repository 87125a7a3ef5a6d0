from pathlib import Path
from typing import Union

import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt
import pandas as pd
import seaborn as sns


def plot_tuning_curve(cv_results: pd.DataFrame, save_path: Union[str, Path]) -> Path:
    """CV accuracy by boosting iterations, one line per tree depth."""
    save_path = Path(save_path)
    sns.set_style("whitegrid")
    fig, ax = plt.subplots(figsize=(8, 5))

    if 'max_depth' in cv_results.columns and 'n_estimators' in cv_results.columns:
        for depth, group in cv_results.groupby('max_depth'):
            group = group.sort_values('n_estimators')
            ax.errorbar(
                group['n_estimators'], group['accuracy_mean'],
                yerr=group['accuracy_std'], marker='o', capsize=3,
                label=f"max_depth={depth}",
            )
        ax.set_xlabel("Boosting iterations (n_estimators)")
        ax.legend(title="Tree depth")
    else:
        ax.plot(range(len(cv_results)), cv_results['accuracy_mean'], marker='o')
        ax.set_xlabel("Parameter set")

    ax.set_ylabel("Accuracy (cross-validation)")
    ax.set_title("GBM tuning", fontweight="bold")
    fig.tight_layout()
    fig.savefig(save_path, dpi=120)
    plt.close(fig)
    return save_path


def plot_confusion_matrix(table: pd.DataFrame, save_path: Union[str, Path]) -> Path:
    """Heatmap of a Prediction x Reference confusion table."""
    save_path = Path(save_path)
    fig, ax = plt.subplots(figsize=(6, 5))
    sns.heatmap(table, annot=True, fmt='d', cmap='Blues', cbar=False, ax=ax)
    ax.set_xlabel("Reference")
    ax.set_ylabel("Prediction")
    ax.set_title("Validation confusion matrix", fontweight="bold")
    fig.tight_layout()
    fig.savefig(save_path, dpi=120)
    plt.close(fig)
    return save_path


def plot_feature_importance(
    importance_df: pd.DataFrame, save_path: Union[str, Path], top_n: int = 20
) -> Path:
    save_path = Path(save_path)
    top = importance_df.head(top_n)
    fig, ax = plt.subplots(figsize=(8, max(3, 0.3 * len(top) + 1)))
    sns.barplot(data=top, x='importance', y='feature', color='steelblue', ax=ax)
    ax.set_title(f"Top {len(top)} features", fontweight="bold")
    fig.tight_layout()
    fig.savefig(save_path, dpi=120)
    plt.close(fig)
    return save_path
