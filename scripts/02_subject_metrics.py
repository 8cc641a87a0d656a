# scripts/02_subject_metrics.py
# Purpose:
# - Load data/interim/cgm_clean.csv (from step 1)
# - Compute per-subject metrics (percent above/below thresholds, median, plus
#   mean/SD/CV/GMI/TIR), reusing cached rows for unchanged subjects
# - Save: data/derived/subject_metrics.csv
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

import pandas as pd

from cgmdx.config import DATA_INTERIM, DATA_DERIVED, ID_COL, TS_COL, THRESHOLDS_ABOVE, THRESHOLDS_BELOW
from cgmdx.cache import MetricsCache
from cgmdx.metrics import compute_batch

IN_CSV = DATA_INTERIM / "cgm_clean.csv"
OUTDIR = DATA_DERIVED
OUTDIR.mkdir(parents=True, exist_ok=True)
OUT_CSV = OUTDIR / "subject_metrics.csv"

print("Reading:", IN_CSV)
df = pd.read_csv(IN_CSV, parse_dates=[TS_COL]).sort_values([ID_COL, TS_COL])

cache = MetricsCache(OUTDIR / "metrics_cache")
metrics = compute_batch(
    df,
    thresholds_above=THRESHOLDS_ABOVE,
    thresholds_below=THRESHOLDS_BELOW,
    extended=True,
    isolate_errors=True,
    cache=cache,
)
if metrics.attrs["errors"]:
    print(f"[warn] Subjects skipped: {metrics.attrs['errors']}")
print(f"Cache: {cache.hits} hit(s), {cache.misses} miss(es).")

print("\nPer-subject metrics:")
print(metrics.round(2).to_string())

metrics.to_csv(OUT_CSV, index=True)
print(f"\nSaved metrics -> {OUT_CSV}")
