"""
Time Series Cleaner

Normalizes raw CGM glucose values so every reading is a finite number:
- Numbers and numeric strings pass through as floats
- Sentinel tokens ("low" by default, reported by the device below its
  measuring floor) are replaced with a fixed imputation constant
- Anything else is a malformed reading

Output has the same length and order as the input; the input frame is not
modified.
"""

import logging
import math
import numbers

import pandas as pd

from .config import ID_COL, TS_COL, GLU_COL, IMPUTED_COL, LOW_SENTINEL_VALUE, SENTINEL_TOKENS
from .errors import MalformedReadingError
from .validate import assert_columns

logger = logging.getLogger(__name__)


def _parse_value(value, tokens):
    """Return (float value, is_sentinel); raise ValueError when neither applies."""
    if isinstance(value, bool):
        raise ValueError(f"boolean glucose value {value!r}")
    if isinstance(value, numbers.Number):
        v = float(value)
        if not math.isfinite(v):
            raise ValueError(f"non-finite glucose value {value!r}")
        return v, False
    if isinstance(value, str):
        text = value.strip()
        if text.lower() in tokens:
            return None, True
        v = float(text)  # ValueError for anything non-numeric
        if not math.isfinite(v):
            raise ValueError(f"non-finite glucose value {value!r}")
        return v, False
    raise ValueError(f"unsupported glucose value {value!r}")


def clean(
    readings: pd.DataFrame,
    sentinel_value: float = LOW_SENTINEL_VALUE,
    sentinel_tokens=SENTINEL_TOKENS,
    on_error: str = "raise",
) -> pd.DataFrame:
    """
    Replace sentinel glucose tokens with ``sentinel_value``.

    Args:
        readings: Frame with subject id, timestamp and glucose columns
        sentinel_value: Constant substituted for sentinel tokens
        sentinel_tokens: Case-insensitive tokens treated as below detection
        on_error: "raise" aborts on the first malformed reading; "isolate"
            drops every reading of an affected subject and lists the subject
            in ``attrs["excluded_subjects"]``

    Returns:
        New frame with a float glucose column and a boolean ``imputed`` column
    """
    if on_error not in ("raise", "isolate"):
        raise ValueError(f"on_error must be 'raise' or 'isolate', got {on_error!r}")
    assert_columns(readings, [ID_COL, TS_COL, GLU_COL])

    tokens = {str(t).strip().lower() for t in sentinel_tokens}
    values, imputed = [], []
    bad_subjects = {}

    for pos, (sid, raw) in enumerate(zip(readings[ID_COL], readings[GLU_COL])):
        try:
            v, is_sentinel = _parse_value(raw, tokens)
        except ValueError as e:
            err = MalformedReadingError(f"Malformed reading at row {pos}: {e}", subject_id=sid, column=GLU_COL)
            if on_error == "raise":
                raise err from e
            bad_subjects.setdefault(sid, str(err))
            values.append(float("nan"))
            imputed.append(False)
            continue
        values.append(float(sentinel_value) if is_sentinel else v)
        imputed.append(is_sentinel)

    out = readings.copy()
    out[GLU_COL] = pd.Series(values, index=readings.index, dtype=float)
    out[IMPUTED_COL] = pd.Series(imputed, index=readings.index, dtype=bool)

    if bad_subjects:
        for sid, msg in bad_subjects.items():
            logger.warning("Excluding subject %r: %s", sid, msg)
        out = out[~out[ID_COL].isin(list(bad_subjects))].copy()
    out.attrs["excluded_subjects"] = sorted(bad_subjects, key=str)

    n_imputed = int(out[IMPUTED_COL].sum())
    if n_imputed:
        logger.info("Imputed %d sentinel reading(s) with %s mg/dL.", n_imputed, sentinel_value)
    return out
