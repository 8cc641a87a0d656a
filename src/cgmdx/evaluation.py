"""
Confusion-matrix statistics: accuracy, Cohen's kappa, no-information rate and
the exact binomial p-value of accuracy against the no-information rate.
"""

from dataclasses import dataclass
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from scipy.stats import binomtest
from sklearn.metrics import confusion_matrix

from .errors import LabelMismatchError


@dataclass(eq=False)
class ConfusionMatrix:
    """Counts with rows = actual, columns = predicted, ordered by ``labels``."""
    labels: List
    counts: np.ndarray

    @property
    def total(self) -> int:
        return int(self.counts.sum())

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(
            self.counts,
            index=pd.Index(self.labels, name="actual"),
            columns=pd.Index(self.labels, name="predicted"),
        )


def confusion(predicted: Sequence, actual: Sequence, labels: Optional[Sequence] = None) -> ConfusionMatrix:
    """
    Build a confusion matrix.

    Args:
        predicted: Predicted labels
        actual: True labels
        labels: Shared vocabulary; every value in ``predicted`` and ``actual``
            must belong to it. Defaults to the sorted union of both.
    """
    predicted = list(predicted)
    actual = list(actual)
    if len(predicted) != len(actual):
        raise LabelMismatchError(f"{len(predicted)} predicted vs {len(actual)} actual labels")
    if labels is None:
        labels = sorted(set(predicted) | set(actual), key=str)
    else:
        labels = list(labels)
        unknown = (set(predicted) | set(actual)) - set(labels)
        if unknown:
            raise LabelMismatchError(
                f"Labels {sorted(unknown, key=str)} are not in the vocabulary {labels}"
            )
    if not actual:
        return ConfusionMatrix(labels=labels, counts=np.zeros((len(labels), len(labels)), dtype=int))
    counts = confusion_matrix(actual, predicted, labels=labels)
    return ConfusionMatrix(labels=labels, counts=counts)


def accuracy(cm: ConfusionMatrix) -> float:
    n = cm.total
    return float(np.trace(cm.counts)) / n if n else float("nan")


def agreement_statistic(cm: ConfusionMatrix) -> float:
    """
    Cohen's kappa: (p_o - p_e) / (1 - p_e).

    NaN when chance agreement is already 1 (a single class in both rows and
    columns), where the statistic is undefined.
    """
    n = cm.total
    if n == 0:
        return float("nan")
    p_o = float(np.trace(cm.counts)) / n
    row = cm.counts.sum(axis=1) / n
    col = cm.counts.sum(axis=0) / n
    p_e = float(np.dot(row, col))
    if np.isclose(p_e, 1.0):
        return float("nan")
    return (p_o - p_e) / (1.0 - p_e)


def no_information_rate(cm: ConfusionMatrix) -> float:
    """Proportion of the majority class among the actual labels."""
    n = cm.total
    return float(cm.counts.sum(axis=1).max()) / n if n else float("nan")


def accuracy_p_value(cm: ConfusionMatrix) -> float:
    """One-sided exact binomial test of accuracy > no-information rate."""
    n = cm.total
    if n == 0:
        return float("nan")
    k = int(np.trace(cm.counts))
    return float(binomtest(k, n, p=no_information_rate(cm), alternative="greater").pvalue)


def summary(cm: ConfusionMatrix) -> dict:
    return {
        "n": cm.total,
        "accuracy": accuracy(cm),
        "kappa": agreement_statistic(cm),
        "no_information_rate": no_information_rate(cm),
        "accuracy_p_value": accuracy_p_value(cm),
    }
