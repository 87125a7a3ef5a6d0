"""
Markdown report for a training run.

The report mirrors the console output: data overview, cleaning steps,
parameter selection, validation results and test-set predictions.
"""

from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Union

import pandas as pd


def _block(df: pd.DataFrame, index: bool = True) -> List[str]:
    return ["```", df.to_string(index=index), "```", ""]


def render_report(context: Dict[str, Any]) -> str:
    """Render the run context as Markdown."""
    lines = [
        "# Weight Lifting Exercises: activity quality",
        "",
        f"_Generated {context.get('timestamp', datetime.now().strftime('%Y-%m-%d %H:%M:%S'))}_",
        "",
        "## Data",
        "",
        f"- Training table: {context['train_shape'][0]} rows x {context['train_shape'][1]} columns",
    ]
    if context.get('test_shape') is not None:
        lines.append(
            f"- Testing table: {context['test_shape'][0]} rows x {context['test_shape'][1]} columns"
        )

    missing = context.get('missing_summary')
    if missing is not None:
        max_missing = context.get('max_missing_fraction', 0.9)
        mostly_missing = int((missing['missing_fraction'] > max_missing).sum())
        complete = int((missing['n_missing'] == 0).sum())
        lines += [
            f"- Complete columns: {complete}",
            f"- Columns more than {max_missing:.0%} missing: {mostly_missing}",
            "",
        ]

    cleaning = context.get('cleaning_report', {})
    lines += [
        "## Cleaning",
        "",
        "| Step | Columns removed |",
        "|---|---|",
        f"| Bookkeeping (name pattern) | {len(cleaning.get('dropped_by_pattern', []))} |",
        f"| Summary statistics (prefix pattern) | {len(cleaning.get('dropped_summary', []))} |",
        f"| Mostly missing | {len(cleaning.get('dropped_missing', []))} |",
        f"| Non-numeric | {len(cleaning.get('dropped_non_numeric', []))} |",
        f"| Near-zero variance | {len(cleaning.get('dropped_near_zero_variance', []))} |",
        "",
        f"{cleaning.get('n_features', 0)} features remain and are centered and scaled "
        "with training-partition statistics.",
        "",
        "## Parameter selection",
        "",
        f"Backend: `{context.get('backend', 'lightgbm')}`. "
        f"Best parameters: `{context.get('best_params')}`.",
        "",
    ]

    cv_results = context.get('cv_results')
    if cv_results is not None:
        lines += _block(cv_results.round(4), index=False)

    if context.get('cv_error') is not None:
        lines += [
            f"Cross-validated accuracy: {context['cv_accuracy']:.4f} "
            f"(estimated out-of-sample error {context['cv_error']:.4f})",
            "",
        ]

    validation = context.get('validation')
    if validation is not None:
        low, high = validation['accuracy_ci']
        lines += [
            "## Validation",
            "",
            f"- Accuracy: {validation['accuracy']:.4f} (95% CI {low:.4f} - {high:.4f})",
            f"- No information rate: {validation['no_information_rate']:.4f}",
            f"- Kappa: {validation['kappa']:.4f}",
            f"- Out-of-sample error: {validation['out_of_sample_error']:.4f}",
            "",
            "Confusion matrix:",
            "",
        ]
        lines += _block(validation['confusion_matrix'])
        lines += ["Statistics by class:", ""]
        lines += _block(validation['by_class'].T.round(4))

    predictions = context.get('predictions')
    if predictions is not None:
        lines += ["## Test-set predictions", ""]
        lines += _block(predictions, index=False)

    return "\n".join(lines)


def write_report(path: Union[str, Path], context: Dict[str, Any]) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_report(context), encoding='utf-8')
    return path
