import numpy as np
import pandas as pd
import pytest

from cgmdx.config import ID_COL, TS_COL, GLU_COL, LABEL_COL
from cgmdx.features import FeatureTable

FEATURES = ["above_140", "above_200", "below_70", "median"]


@pytest.fixture
def make_readings():
    """Build a readings frame from {subject_id: [values]} at a fixed 5-min cadence."""
    def _make(values_by_subject, start="2024-01-01 00:00", freq="5min"):
        frames = []
        for sid, values in values_by_subject.items():
            ts = pd.date_range(start, periods=len(values), freq=freq)
            frames.append(pd.DataFrame({ID_COL: [sid] * len(values), TS_COL: ts,
                                        GLU_COL: pd.Series(list(values))}))
        return pd.concat(frames, ignore_index=True)
    return _make


@pytest.fixture
def cohort_labels():
    return ["non-diabetic"] * 9 + ["potential-diabetic"] * 8


@pytest.fixture
def cohort_table(cohort_labels):
    """17 subjects, two well-separated classes in four features."""
    rng = np.random.default_rng(0)
    ids = [f"S{i:02d}" for i in range(17)]
    centers = np.where(np.array(cohort_labels) == "non-diabetic", -3.0, 3.0)
    X = centers[:, None] + rng.normal(0, 0.5, size=(17, len(FEATURES)))
    frame = pd.DataFrame(X, index=pd.Index(ids, name=ID_COL), columns=FEATURES)
    frame[LABEL_COL] = cohort_labels
    return FeatureTable(frame=frame, feature_cols=list(FEATURES))
