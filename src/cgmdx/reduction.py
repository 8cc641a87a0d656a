"""
Dimensionality reduction of the standardized feature table.

Two variants share one interface:
- "pca": principal components (unsupervised), full SVD so loadings are
  bit-identical across runs
- "lda": linear discriminants (label-aware)

The requested number of components is clamped to the feasible rank with a
warning. transform() only applies loadings; it never refits.
"""

import logging
from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd
from sklearn.decomposition import PCA
from sklearn.discriminant_analysis import LinearDiscriminantAnalysis

from .errors import DegenerateReductionError
from .features import FeatureTable

logger = logging.getLogger(__name__)

METHODS = {"pca": "PC", "lda": "LD"}


@dataclass(eq=False)
class ReducerModel:
    method: str
    estimator: object
    feature_cols: List[str]
    n_components: int
    requested_k: int

    @property
    def component_names(self) -> List[str]:
        return [f"{METHODS[self.method]}{i + 1}" for i in range(self.n_components)]

    @property
    def explained_variance_ratio(self) -> np.ndarray:
        return np.asarray(self.estimator.explained_variance_ratio_[: self.n_components], dtype=float)

    @property
    def loadings(self) -> pd.DataFrame:
        """Components x features; PCA loadings or LDA scalings."""
        if self.method == "pca":
            values = self.estimator.components_
        else:
            values = self.estimator.scalings_[:, : self.n_components].T
        return pd.DataFrame(values, index=self.component_names, columns=self.feature_cols)


def feasible_rank(table: FeatureTable, method: str = "pca") -> int:
    n_samples, n_features = len(table), len(table.feature_cols)
    if method == "pca":
        return min(n_features, n_samples - 1)
    n_classes = len(pd.unique(table.frame[table.label_col]))
    return min(n_features, n_classes - 1)


def fit(table: FeatureTable, k: int, method: str = "pca") -> ReducerModel:
    """
    Fit a reducer on ``table``'s feature columns.

    Args:
        table: Standardized feature table (fit rows only)
        k: Requested number of components
        method: "pca" or "lda"
    """
    if method not in METHODS:
        raise ValueError(f"method must be one of {sorted(METHODS)}, got {method!r}")
    if k < 1:
        raise ValueError(f"k must be >= 1, got {k}")

    limit = feasible_rank(table, method)
    k_eff = min(k, limit)
    if k_eff < 1:
        raise DegenerateReductionError(
            f"No {method.upper()} component can be extracted from {len(table)} row(s) "
            f"and {len(table.feature_cols)} feature(s)"
        )
    if k_eff < k:
        logger.warning("Requested %d %s component(s); clamped to feasible rank %d.", k, method.upper(), k_eff)

    X = table.frame[table.feature_cols].to_numpy(dtype=float)
    if method == "pca":
        est = PCA(n_components=k_eff, svd_solver="full").fit(X)
    else:
        est = LinearDiscriminantAnalysis(solver="svd", n_components=k_eff).fit(X, table.y)

    return ReducerModel(
        method=method,
        estimator=est,
        feature_cols=list(table.feature_cols),
        n_components=k_eff,
        requested_k=k,
    )


def transform(model: ReducerModel, table: FeatureTable) -> pd.DataFrame:
    """Project ``table`` onto the fitted components; indexed by subject id."""
    missing = [c for c in model.feature_cols if c not in table.frame.columns]
    if missing:
        raise ValueError(f"Table is missing fitted feature columns: {missing}")
    X = table.frame[model.feature_cols].to_numpy(dtype=float)
    Z = model.estimator.transform(X)[:, : model.n_components]
    return pd.DataFrame(Z, index=table.frame.index, columns=model.component_names)


def inverse_transform(model: ReducerModel, components: pd.DataFrame) -> pd.DataFrame:
    """Map PCA components back to (standardized) feature space."""
    if model.method != "pca":
        raise ValueError("inverse_transform is only defined for PCA models")
    X = model.estimator.inverse_transform(components[model.component_names].to_numpy(dtype=float))
    return pd.DataFrame(X, index=components.index, columns=model.feature_cols)
