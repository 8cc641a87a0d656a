"""
CGM metrics per subject: percent of readings above/below thresholds, median,
and optionally mean, SD, CV, GMI and TIR.

Percentages are per reading (no time weighting): every reading counts once,
whatever the spacing between readings. A time-weighted alternative is
available as separately named columns (tw_above_<t>, tw_below_<t>); it puts
readings on a regular grid and interpolates linearly in time inside short
gaps (see interpolate_grid).
"""

import logging

import numpy as np
import pandas as pd

from .config import (
    ID_COL, TS_COL, GLU_COL,
    THRESHOLDS_ABOVE, THRESHOLDS_BELOW, TIR_LOW, TIR_HIGH, RESAMPLE_RULE, MAX_GAP,
)
from .errors import CGMDataError, MalformedReadingError, NoDataError
from .validate import assert_columns

logger = logging.getLogger(__name__)

EXTENDED_COLS = ["n", "mean", "sd", "cv", "gmi", "tir_pct"]


def threshold_label(t) -> str:
    """140 -> "140", 137.5 -> "137.5"."""
    t = float(t)
    return str(int(t)) if t.is_integer() else repr(t)


def _as_values(values) -> np.ndarray:
    arr = np.asarray(values, dtype=float)
    if arr.ndim != 1:
        raise ValueError("Expected 1D glucose series")
    return arr


def above_percent(values, t) -> float:
    """Percent of readings strictly above t."""
    arr = _as_values(values)
    if arr.size == 0:
        raise NoDataError("No readings to compute above_percent from")
    return float(np.count_nonzero(arr > t)) / arr.size * 100.0


def below_percent(values, t) -> float:
    """Percent of readings strictly below t."""
    arr = _as_values(values)
    if arr.size == 0:
        raise NoDataError("No readings to compute below_percent from")
    return float(np.count_nonzero(arr < t)) / arr.size * 100.0


def extended_metrics(values) -> dict:
    """Mean, SD, CV (%), GMI and TIR (%) for one subject's readings."""
    g = pd.Series(_as_values(values))
    n = len(g)
    if n == 0:
        raise NoDataError("No readings to compute extended metrics from")
    mean = float(g.mean())
    sd = float(g.std(ddof=1)) if n > 1 else 0.0
    cv = (sd / mean * 100.0) if mean > 0 else np.nan
    # GMI formula (Bergenstal et al. 2018): GMI(%) = 3.31 + 0.02392 * mean_mgdl
    gmi = 3.31 + 0.02392 * mean
    tir = float(((g >= TIR_LOW) & (g <= TIR_HIGH)).mean() * 100)
    return dict(n=n, mean=mean, sd=sd, cv=cv, gmi=gmi, tir_pct=tir)


def interpolate_grid(readings: pd.DataFrame, freq: str = RESAMPLE_RULE, max_gap: str = MAX_GAP) -> pd.DataFrame:
    """
    Place one subject's readings on a regular time grid.

    Rule: duplicate timestamps collapse to their mean; the grid starts at the
    first reading and steps by ``freq`` up to the last reading; a grid point
    that coincides with a reading keeps its value; any other grid point is
    linearly interpolated in time between its neighbouring readings when those
    are at most ``max_gap`` apart, and dropped otherwise.

    Returns:
        Frame with timestamp, glucose and a boolean ``synthesized`` column
    """
    try:
        ts = pd.to_datetime(readings[TS_COL])
    except (ValueError, TypeError) as e:
        sid = readings[ID_COL].iloc[0] if ID_COL in readings.columns and len(readings) else None
        raise MalformedReadingError(f"Unparseable timestamp: {e}", subject_id=sid, column=TS_COL) from e
    s = (
        readings.assign(**{TS_COL: ts})
                .groupby(TS_COL)[GLU_COL].mean()
                .sort_index()
    )
    if s.empty:
        raise NoDataError("No readings to place on a grid")

    grid = pd.date_range(s.index[0], s.index[-1], freq=freq)
    combined = s.reindex(s.index.union(grid)).interpolate(method="time", limit_area="inside")
    values = combined.reindex(grid).to_numpy(dtype=float)

    obs_t = s.index.to_numpy()
    exact = grid.isin(s.index)
    right = np.searchsorted(obs_t, grid.to_numpy(), side="left")
    right = np.clip(right, 1, len(obs_t) - 1) if len(obs_t) > 1 else np.zeros(len(grid), dtype=int)
    gap = obs_t[right] - obs_t[np.maximum(right - 1, 0)]
    keep = exact | (gap <= pd.Timedelta(max_gap).to_timedelta64())

    return pd.DataFrame({
        TS_COL: grid[keep],
        GLU_COL: values[keep],
        "synthesized": ~exact[keep],
    }).reset_index(drop=True)


def time_weighted_percent(readings: pd.DataFrame, t, direction: str = "above",
                          freq: str = RESAMPLE_RULE, max_gap: str = MAX_GAP):
    """
    Percent of grid time above/below t, using interpolate_grid.

    Returns:
        (percent, number of synthesized grid samples)
    """
    if direction not in ("above", "below"):
        raise ValueError(f"direction must be 'above' or 'below', got {direction!r}")
    grid = interpolate_grid(readings, freq=freq, max_gap=max_gap)
    values = grid[GLU_COL].to_numpy()
    pct = above_percent(values, t) if direction == "above" else below_percent(values, t)
    return pct, int(grid["synthesized"].sum())


def _check_values(g: pd.DataFrame, subject_id):
    if not pd.api.types.is_numeric_dtype(g[GLU_COL]) or g[GLU_COL].isna().any():
        raise MalformedReadingError(
            "Glucose values must be numeric and non-missing; run clean() first",
            subject_id=subject_id, column=GLU_COL,
        )
    if not np.isfinite(g[GLU_COL].to_numpy(dtype=float)).all():
        raise MalformedReadingError("Non-finite glucose value", subject_id=subject_id, column=GLU_COL)


def compute(
    readings: pd.DataFrame,
    thresholds_above=THRESHOLDS_ABOVE,
    thresholds_below=THRESHOLDS_BELOW,
    extended: bool = False,
    time_weighted: bool = False,
    subject_id=None,
) -> pd.DataFrame:
    """
    Compute metrics for a single subject's cleaned readings.

    Args:
        readings: Cleaned readings of one subject
        thresholds_above: Thresholds t for above_<t> columns
        thresholds_below: Thresholds t for below_<t> columns
        extended: Also compute n, mean, sd, cv, gmi, tir_pct
        time_weighted: Also compute tw_above_<t>/tw_below_<t>; the number of
            interpolated grid samples goes to ``attrs["synthesized"]``
        subject_id: Subject id to report when ``readings`` is empty

    Returns:
        One-row frame indexed by subject id
    """
    assert_columns(readings, [ID_COL, GLU_COL] + ([TS_COL] if time_weighted else []))
    ids = readings[ID_COL].unique()
    if len(ids) > 1:
        raise ValueError(f"compute() expects one subject, got {len(ids)}; use compute_batch()")
    if subject_id is None and len(ids) == 1:
        subject_id = ids[0]
    if readings.empty:
        raise NoDataError("Subject has no readings", subject_id=subject_id)
    _check_values(readings, subject_id)

    values = readings[GLU_COL].to_numpy(dtype=float)
    row = {}
    for t in sorted(set(thresholds_above), key=float):
        row[f"above_{threshold_label(t)}"] = above_percent(values, t)
    for t in sorted(set(thresholds_below), key=float):
        row[f"below_{threshold_label(t)}"] = below_percent(values, t)
    row["median"] = float(np.median(values))

    if extended:
        row.update(extended_metrics(values))

    n_synth = 0
    if time_weighted:
        for direction, thresholds in (("above", thresholds_above), ("below", thresholds_below)):
            for t in sorted(set(thresholds), key=float):
                pct, n_synth = time_weighted_percent(readings, t, direction)
                row[f"tw_{direction}_{threshold_label(t)}"] = pct

    out = pd.DataFrame([row], index=pd.Index([subject_id], name=ID_COL))
    if time_weighted:
        out.attrs["synthesized"] = {subject_id: n_synth}
    return out


def compute_batch(
    readings: pd.DataFrame,
    thresholds_above=THRESHOLDS_ABOVE,
    thresholds_below=THRESHOLDS_BELOW,
    extended: bool = False,
    time_weighted: bool = False,
    subjects=None,
    isolate_errors: bool = False,
    cache=None,
) -> pd.DataFrame:
    """
    Compute metrics for every subject in ``readings`` (one row per subject).

    Args:
        subjects: Optional expected subject ids; one without readings raises
            NoDataError
        isolate_errors: If True, a subject failing with a data error is left
            out and recorded in ``attrs["errors"]``; otherwise the error aborts
            the batch
        cache: Optional MetricsCache consulted per subject
    """
    assert_columns(readings, [ID_COL, GLU_COL])
    groups = {sid: g for sid, g in readings.groupby(ID_COL, sort=True)}
    wanted = list(groups) if subjects is None else list(subjects)
    config = dict(
        thresholds_above=sorted(set(thresholds_above), key=float),
        thresholds_below=sorted(set(thresholds_below), key=float),
        extended=extended,
        time_weighted=time_weighted,
    )

    rows, errors, synthesized = [], {}, {}
    for sid in wanted:
        g = groups.get(sid, readings.iloc[0:0])
        try:
            m = cache.get(g, config, subject_id=sid) if cache is not None else None
            if m is None:
                m = compute(g, subject_id=sid, **config)
                if cache is not None:
                    cache.put(g, config, m)
        except CGMDataError as e:
            if not isolate_errors:
                raise
            logger.warning("Skipping subject %r: %s", sid, e)
            errors[sid] = str(e)
            continue
        synthesized.update(m.attrs.get("synthesized", {}))
        rows.append(m)

    if rows:
        out = pd.concat(rows)
    else:
        out = pd.DataFrame(index=pd.Index([], name=ID_COL))
    out.index.name = ID_COL
    out.attrs = {"errors": errors}
    if time_weighted:
        out.attrs["synthesized"] = synthesized
    logger.info("Computed metrics for %d subject(s); %d skipped.", len(rows), len(errors))
    return out
