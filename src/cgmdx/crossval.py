"""
Stratified cross-validation harness.

Folds are built once per seed (class-wise shuffle, round-robin deal) and
reused for every classifier. Inside each fold the scaler and the optional
reducer are fit on the training rows only, then applied to the test rows.
Per-fold results are sorted by fold index before aggregation, so the
aggregate does not depend on the order (or parallelism) of fold evaluation.
"""

import logging
import math
import time
from dataclasses import dataclass
from typing import List, Optional, Tuple

import numpy as np
import pandas as pd
from joblib import Parallel, delayed
from sklearn.model_selection import ParameterGrid, train_test_split

from . import reduction
from .classifiers import as_classifier
from .config import ID_COL, N_FOLDS, SEED
from .errors import CGMDataError, FoldEvaluationError, InsufficientClassMembersError
from .evaluation import accuracy, agreement_statistic, confusion, summary
from .features import FeatureTable

logger = logging.getLogger(__name__)


# ---------- folds ----------
@dataclass(frozen=True, eq=False)
class FoldSet:
    """
    Attributes:
        folds: One sorted array of row positions per fold
        n_samples: Number of rows partitioned
        seed: Seed used for the class-wise shuffle
        shortfalls: Classes with fewer members than folds
    """
    folds: Tuple[np.ndarray, ...]
    n_samples: int
    seed: int
    shortfalls: Tuple[InsufficientClassMembersError, ...] = ()

    def __len__(self):
        return len(self.folds)

    def __iter__(self):
        return iter(self.folds)

    def train_test(self, i: int) -> Tuple[np.ndarray, np.ndarray]:
        test = self.folds[i]
        train = np.setdiff1d(np.arange(self.n_samples), test, assume_unique=True)
        return train, test

    def assignment(self) -> np.ndarray:
        """Fold index of every row position."""
        out = np.full(self.n_samples, -1, dtype=int)
        for i, f in enumerate(self.folds):
            out[f] = i
        return out


def make_folds(labels, k: int = N_FOLDS, seed: int = SEED, strict: bool = False) -> FoldSet:
    """
    Build k class-stratified folds over row positions 0..n-1.

    Within each class (classes in sorted order) positions are shuffled with a
    generator seeded by ``seed`` and dealt round-robin; the dealing position
    carries over from one class to the next, so fold sizes differ by at most
    one. A class with fewer than k members is recorded in ``shortfalls``
    (or raised when ``strict``).
    """
    labels = np.asarray(list(labels), dtype=object)
    n = len(labels)
    if pd.isna(labels).any():
        raise ValueError("Labels must not contain missing values")
    if k < 2:
        raise ValueError(f"k must be >= 2, got {k}")
    if k > n:
        raise ValueError(f"k={k} folds requested for {n} rows")

    rng = np.random.default_rng(seed)
    buckets: List[List[int]] = [[] for _ in range(k)]
    shortfalls = []
    cursor = 0
    for label in sorted(pd.unique(labels), key=str):
        members = rng.permutation(np.flatnonzero(labels == label))
        if len(members) < k:
            err = InsufficientClassMembersError(label, len(members), k)
            if strict:
                raise err
            logger.warning("%s", err)
            shortfalls.append(err)
        for j, pos in enumerate(members):
            buckets[(cursor + j) % k].append(int(pos))
        cursor = (cursor + len(members)) % k

    folds = tuple(np.sort(np.asarray(b, dtype=int)) for b in buckets)
    return FoldSet(folds=folds, n_samples=n, seed=seed, shortfalls=tuple(shortfalls))


def holdout_split(labels, test_fraction: float = 0.25, seed: int = SEED) -> Tuple[np.ndarray, np.ndarray]:
    """Stratified train/test row positions."""
    labels = np.asarray(list(labels), dtype=object)
    train, test = train_test_split(
        np.arange(len(labels)), test_size=test_fraction, stratify=labels, random_state=seed
    )
    return np.sort(train), np.sort(test)


# ---------- results ----------
@dataclass(frozen=True, eq=False)
class FoldResult:
    fold: int
    accuracy: float
    agreement: float
    predicted: np.ndarray
    actual: np.ndarray
    subject_ids: np.ndarray


def _mean_var(values) -> Tuple[float, float]:
    """Mean and sample variance (ddof=1) over finite values; fsum keeps it order-free."""
    vals = [float(v) for v in values if np.isfinite(v)]
    if not vals:
        return float("nan"), float("nan")
    mean = math.fsum(vals) / len(vals)
    if len(vals) == 1:
        return mean, 0.0
    var = math.fsum((v - mean) ** 2 for v in vals) / (len(vals) - 1)
    return mean, var


@dataclass(frozen=True, eq=False)
class EvaluationResult:
    classifier: str
    folds: Tuple[FoldResult, ...]
    vocabulary: List
    skipped: Tuple[int, ...] = ()

    @property
    def mean_accuracy(self) -> float:
        return _mean_var(f.accuracy for f in self.folds)[0]

    @property
    def var_accuracy(self) -> float:
        return _mean_var(f.accuracy for f in self.folds)[1]

    @property
    def mean_agreement(self) -> float:
        return _mean_var(f.agreement for f in self.folds)[0]

    @property
    def var_agreement(self) -> float:
        return _mean_var(f.agreement for f in self.folds)[1]

    def pooled_confusion(self):
        predicted = np.concatenate([f.predicted for f in self.folds]) if self.folds else []
        actual = np.concatenate([f.actual for f in self.folds]) if self.folds else []
        return confusion(predicted, actual, labels=self.vocabulary)

    def aggregate(self) -> dict:
        return {
            "classifier": self.classifier,
            "n_folds": len(self.folds),
            "accuracy_mean": self.mean_accuracy,
            "accuracy_var": self.var_accuracy,
            "kappa_mean": self.mean_agreement,
            "kappa_var": self.var_agreement,
        }

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([
            {"fold": f.fold, "n_test": len(f.actual), "accuracy": f.accuracy, "kappa": f.agreement}
            for f in self.folds
        ])

    def predictions(self) -> pd.DataFrame:
        frames = [
            pd.DataFrame({ID_COL: f.subject_ids, "fold": f.fold,
                          "true_label": f.actual, "pred_label": f.predicted})
            for f in self.folds
        ]
        return pd.concat(frames, ignore_index=True) if frames else pd.DataFrame()


# ---------- fitting ----------
def _fit_predict(train: FeatureTable, test: FeatureTable, classifier,
                 reduce_first: bool, n_components: Optional[int], method: str) -> np.ndarray:
    scaler = train.fit_scaler()
    train, test = train.apply_scaler(scaler), test.apply_scaler(scaler)
    if reduce_first:
        k = n_components if n_components is not None else len(train.feature_cols)
        model = reduction.fit(train, k, method=method)
        train = train.with_features(reduction.transform(model, train))
        test = test.with_features(reduction.transform(model, test))
    fitted = classifier.fit(train.X, train.y)
    return np.asarray(classifier.predict(fitted, test.X))


def _evaluate_fold(data: FeatureTable, folds: FoldSet, i: int, classifier, vocabulary,
                   reduce_first: bool, n_components: Optional[int], method: str) -> Optional[FoldResult]:
    train_idx, test_idx = folds.train_test(i)
    train, test = data.subset(train_idx), data.subset(test_idx)

    if len(pd.unique(train.frame[train.label_col])) < 2:
        logger.warning("Skipping fold %d: training set has <2 classes.", i)
        return None

    try:
        predicted = _fit_predict(train, test, classifier, reduce_first, n_components, method)
        cm = confusion(predicted, test.y, labels=vocabulary)
    except CGMDataError as e:
        if e.fold is not None:
            raise
        raise type(e)(str(e), fold=i) from e
    except ValueError as e:
        raise FoldEvaluationError(f"{type(e).__name__}: {e}", fold=i) from e

    return FoldResult(
        fold=i,
        accuracy=accuracy(cm),
        agreement=agreement_statistic(cm),
        predicted=predicted,
        actual=np.asarray(test.y),
        subject_ids=np.asarray(test.subject_ids),
    )


def _default_name(clf, reduce_first: bool, method: str) -> str:
    name = getattr(clf, "name", type(clf).__name__)
    return f"{name}+{method}" if reduce_first else name


def evaluate(data: FeatureTable, folds: FoldSet, classifier, reduce_first: bool = False,
             n_components: Optional[int] = None, method: str = "pca",
             n_jobs: Optional[int] = None, deadline: Optional[float] = None,
             name: Optional[str] = None) -> EvaluationResult:
    """
    Cross-validate ``classifier`` on ``data`` over ``folds``.

    Args:
        data: Feature table (unstandardized; the scaler is fit per fold)
        folds: FoldSet built over ``data``'s rows
        classifier: Object with fit/predict(model, X), or a scikit-learn estimator
        reduce_first: Fit a reducer on each training fold before the classifier
        n_components: Components to keep when reducing (default: all features)
        method: Reducer variant, "pca" or "lda"
        n_jobs: Evaluate folds in parallel with joblib when > 1 (or -1)
        deadline: time.monotonic() value checked between folds; sequential
            evaluation only
        name: Label for the classifier in reports (default: the classifier's
            name, suffixed with "+pca" or "+lda" when reducing)
    """
    if folds.n_samples != len(data):
        raise ValueError(f"FoldSet covers {folds.n_samples} rows, table has {len(data)}")
    parallel = n_jobs is not None and n_jobs != 1
    if parallel and deadline is not None:
        raise ValueError("deadline is only checked in sequential evaluation; drop n_jobs or deadline")
    clf = as_classifier(classifier)
    vocabulary = data.vocabulary
    args = (vocabulary, reduce_first, n_components, method)

    if parallel:
        results = Parallel(n_jobs=n_jobs)(
            delayed(_evaluate_fold)(data, folds, i, clf, *args) for i in range(len(folds))
        )
    else:
        results = []
        for i in range(len(folds)):
            if deadline is not None and time.monotonic() > deadline:
                raise TimeoutError(f"Deadline passed before fold {i} of {len(folds)}")
            results.append(_evaluate_fold(data, folds, i, clf, *args))

    done = sorted((r for r in results if r is not None), key=lambda r: r.fold)
    skipped = tuple(i for i, r in enumerate(results) if r is None)
    return EvaluationResult(
        classifier=name or _default_name(clf, reduce_first, method),
        folds=tuple(done),
        vocabulary=vocabulary,
        skipped=skipped,
    )


# ---------- harness ----------
class CrossValidationHarness:
    """
    Holds one feature table and its folds.

    State goes unfitted -> folded (fold()) -> evaluated (evaluate()).
    evaluate() may be repeated with other classifiers on the same folds.
    """

    def __init__(self, data: FeatureTable):
        self.data = data
        self.folds: Optional[FoldSet] = None
        self.results = {}

    @property
    def state(self) -> str:
        if self.folds is None:
            return "unfitted"
        return "evaluated" if self.results else "folded"

    def fold(self, k: int = N_FOLDS, seed: int = SEED, strict: bool = False) -> FoldSet:
        self.folds = make_folds(self.data.y, k=k, seed=seed, strict=strict)
        self.results = {}
        return self.folds

    def evaluate(self, classifier, reduce_first: bool = False, **kwargs) -> EvaluationResult:
        if self.folds is None:
            raise RuntimeError("Call fold() before evaluate()")
        result = evaluate(self.data, self.folds, classifier, reduce_first=reduce_first, **kwargs)
        if result.classifier in self.results:
            logger.warning("Replacing earlier results for %r.", result.classifier)
        self.results[result.classifier] = result
        return result

    def grid_evaluate(self, classifier, param_grid, reduce_first: bool = False, **kwargs) -> pd.DataFrame:
        """Evaluate every parameter combination of a SklearnClassifier on the same folds."""
        clf = as_classifier(classifier)
        rows = []
        for params in ParameterGrid(param_grid):
            result = self.evaluate(clf.with_params(**params), reduce_first=reduce_first,
                                   name=f"{clf.name}{params}", **kwargs)
            row = result.aggregate()
            row.update(params)
            rows.append(row)
        return pd.DataFrame(rows)

    def summary(self) -> pd.DataFrame:
        return pd.DataFrame([r.aggregate() for r in self.results.values()])


# ---------- significance ----------
def permutation_test(harness: CrossValidationHarness, classifier, n_permutations: int = 100,
                     seed: int = SEED, **kwargs) -> dict:
    """
    Compare the observed mean CV accuracy with accuracies after shuffling labels.

    The harness folds are reused for every permutation; the harness itself is
    not modified.
    """
    if harness.folds is None:
        raise RuntimeError("Call fold() before permutation_test()")
    data, folds = harness.data, harness.folds
    observed = evaluate(data, folds, classifier, **kwargs).mean_accuracy

    rng = np.random.default_rng(seed)
    permuted = []
    for _ in range(n_permutations):
        frame = data.frame.copy()
        frame[data.label_col] = rng.permutation(frame[data.label_col].to_numpy())
        shuffled = FeatureTable(frame=frame, feature_cols=list(data.feature_cols), label_col=data.label_col)
        permuted.append(evaluate(shuffled, folds, classifier, **kwargs).mean_accuracy)

    permuted = np.asarray(permuted, dtype=float)
    n_ge = int(np.sum(permuted >= observed))
    return {
        "observed_accuracy": observed,
        "permuted_accuracies": permuted,
        "p_value": (1 + n_ge) / (1 + n_permutations),
    }


def holdout_evaluate(data: FeatureTable, classifier, test_fraction: float = 0.25, seed: int = SEED,
                     reduce_first: bool = False, n_components: Optional[int] = None,
                     method: str = "pca") -> dict:
    """Single stratified holdout: accuracy, kappa, NIR and the accuracy-vs-NIR p-value."""
    train_idx, test_idx = holdout_split(data.y, test_fraction=test_fraction, seed=seed)
    train, test = data.subset(train_idx), data.subset(test_idx)
    predicted = _fit_predict(train, test, as_classifier(classifier), reduce_first, n_components, method)
    return summary(confusion(predicted, test.y, labels=data.vocabulary))
