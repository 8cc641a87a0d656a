"""
Per-subject feature table: metrics joined with clinical covariates and the
diagnosis label.

The schema is declared, not inferred: ``feature_cols`` lists the numeric
columns that may be standardized and fed to models, the subject id is the
index and the label lives in its own column. Every transformation returns a
new FeatureTable.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from sklearn.preprocessing import StandardScaler

from .config import ID_COL, LABEL_COL, COVARIATE_COLS
from .errors import DuplicateSubjectError, EmptyJoinError, ImputationError

logger = logging.getLogger(__name__)

MISSING_POLICIES = ("impute_mean", "drop")


def _require_unique(index: pd.Index, what: str) -> None:
    dup = index[index.duplicated()]
    if len(dup):
        raise DuplicateSubjectError(f"{what} lists subject {dup[0]!r} more than once",
                                    subject_id=dup[0], column=ID_COL)


@dataclass(frozen=True, eq=False)
class FeatureTable:
    """
    Attributes:
        frame: Frame indexed by subject id with feature columns and the label
        feature_cols: Numeric, standardizable columns
        label_col: Name of the label column
        excluded: Subject ids dropped for missing covariates
    """
    frame: pd.DataFrame
    feature_cols: List[str]
    label_col: str = LABEL_COL
    excluded: List = field(default_factory=list)

    @classmethod
    def build(
        cls,
        metrics: pd.DataFrame,
        covariates: Optional[pd.DataFrame],
        labels,
        missing_policy: str = "impute_mean",
        covariate_cols: Optional[Sequence[str]] = None,
        metric_cols: Optional[Sequence[str]] = None,
    ) -> "FeatureTable":
        """
        Join metrics (inner, with labels) and covariates (left) on subject id.

        Args:
            metrics: SubjectMetrics table indexed by subject id
            covariates: Frame with a subject id column (or index) and covariate
                columns; None for metrics-only tables
            labels: Mapping (or Series) subject id -> label
            missing_policy: "impute_mean" or "drop"
            covariate_cols: Covariate columns to keep (default: config.COVARIATE_COLS
                present in ``covariates``)
            metric_cols: Metric columns to keep (default: all metric columns)
        """
        if missing_policy not in MISSING_POLICIES:
            raise ValueError(f"missing_policy must be one of {MISSING_POLICIES}, got {missing_policy!r}")

        metric_cols = list(metrics.columns if metric_cols is None else metric_cols)
        missing = [c for c in metric_cols if c not in metrics.columns]
        if missing:
            raise ValueError(f"Missing metric columns: {missing}")
        m = metrics[metric_cols].copy()
        m.index.name = ID_COL
        _require_unique(m.index, "Metrics table")

        label_series = pd.Series(labels, name=LABEL_COL)
        label_series.index.name = ID_COL
        label_series = label_series.dropna()
        _require_unique(label_series.index, "Labels")

        common = m.index.intersection(label_series.index)
        if len(common) == 0:
            raise EmptyJoinError("Metrics and labels share no subject ids", column=ID_COL)
        df = m.loc[m.index.isin(common)].join(label_series, how="inner")

        cov_cols = []
        if covariates is not None:
            cov = covariates.set_index(ID_COL) if ID_COL in covariates.columns else covariates.copy()
            cov.index.name = ID_COL
            _require_unique(cov.index, "Covariates table")
            if covariate_cols is None:
                cov_cols = [c for c in COVARIATE_COLS if c in cov.columns]
            else:
                cov_cols = list(covariate_cols)
                absent = [c for c in cov_cols if c not in cov.columns]
                if absent:
                    raise ValueError(f"Missing covariate columns: {absent}")
            cov = cov[cov_cols].apply(pd.to_numeric, errors="coerce")
            df = df.join(cov, how="left")

        excluded = []
        if cov_cols:
            if missing_policy == "impute_mean":
                for c in cov_cols:
                    if df[c].isna().all():
                        raise ImputationError("No observed values to impute from", column=c)
                    n_missing = int(df[c].isna().sum())
                    if n_missing:
                        mean = df[c].mean()
                        logger.info("Imputing %d missing %r value(s) with mean %.3f.", n_missing, c, mean)
                        df[c] = df[c].fillna(mean)
            else:
                has_missing = df[cov_cols].isna().any(axis=1)
                excluded = list(df.index[has_missing])
                if excluded:
                    logger.warning("Excluding %d subject(s) with missing covariates: %s", len(excluded), excluded)
                df = df.loc[~has_missing].copy()

        feature_cols = metric_cols + cov_cols
        nonnumeric = [c for c in feature_cols if not pd.api.types.is_numeric_dtype(df[c])]
        if nonnumeric:
            raise ValueError(f"Feature columns must be numeric: {nonnumeric}")
        if df.empty:
            raise EmptyJoinError("No subjects left after applying the missing-value policy", column=ID_COL)

        df = df[feature_cols + [LABEL_COL]].sort_index()
        return cls(frame=df, feature_cols=feature_cols, label_col=LABEL_COL, excluded=excluded)

    # ---------- accessors ----------
    def __len__(self):
        return len(self.frame)

    @property
    def subject_ids(self) -> pd.Index:
        return self.frame.index

    @property
    def X(self) -> np.ndarray:
        return self.frame[self.feature_cols].to_numpy(dtype=float)

    @property
    def y(self) -> np.ndarray:
        return self.frame[self.label_col].to_numpy()

    @property
    def vocabulary(self) -> list:
        return sorted(pd.unique(self.frame[self.label_col]), key=str)

    def subset(self, positions) -> "FeatureTable":
        return FeatureTable(
            frame=self.frame.iloc[np.asarray(positions, dtype=int)].copy(),
            feature_cols=list(self.feature_cols),
            label_col=self.label_col,
            excluded=list(self.excluded),
        )

    def with_features(self, features: pd.DataFrame) -> "FeatureTable":
        """New table with ``features`` (same index) replacing the feature columns."""
        frame = features.copy()
        frame[self.label_col] = self.frame[self.label_col].reindex(frame.index).to_numpy()
        return FeatureTable(
            frame=frame,
            feature_cols=list(features.columns),
            label_col=self.label_col,
            excluded=list(self.excluded),
        )

    # ---------- standardization ----------
    def fit_scaler(self) -> StandardScaler:
        return StandardScaler().fit(self.frame[self.feature_cols].to_numpy(dtype=float))

    def apply_scaler(self, scaler: StandardScaler) -> "FeatureTable":
        scaled = scaler.transform(self.frame[self.feature_cols].to_numpy(dtype=float))
        return self.with_features(pd.DataFrame(scaled, index=self.frame.index, columns=self.feature_cols))

    def standardize(self) -> "FeatureTable":
        """Zero-mean, unit-variance feature columns, fit and applied on this table."""
        return self.apply_scaler(self.fit_scaler())
