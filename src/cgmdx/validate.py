# src/cgmdx/validate.py
import logging

import pandas as pd

logger = logging.getLogger(__name__)


def assert_columns(df: pd.DataFrame, required):
    """Raise an error if any required column is missing."""
    missing = [c for c in required if c not in df.columns]
    if missing:
        raise ValueError(f"Missing required columns: {missing}")


def basic_cgm_sanity(df: pd.DataFrame, id_col: str, ts_col: str, glu_col: str):
    """Run simple quality checks on cleaned CGM data."""
    assert_columns(df, [id_col, ts_col, glu_col])
    if df.empty:
        raise ValueError("No CGM readings to check.")
    if not pd.api.types.is_numeric_dtype(df[glu_col]):
        raise TypeError(f"Column {glu_col} must be numeric after cleaning.")
    if df[glu_col].isna().any():
        raise ValueError("Cleaned glucose column still contains NaN values.")
    if (df[glu_col] < 20).any() or (df[glu_col] > 600).any():
        logger.warning("Some glucose values are outside plausible range (20-600 mg/dL).")
    if df[id_col].isna().any():
        raise ValueError("Some rows are missing a subject id.")
    ts = pd.to_datetime(df[ts_col], errors="coerce")
    if ts.isna().any():
        raise TypeError(f"Column {ts_col} has values that cannot be parsed as timestamps.")
    logger.info("Basic CGM sanity check passed for %d readings.", len(df))
