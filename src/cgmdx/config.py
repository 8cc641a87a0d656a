# src/cgmdx/config.py
from pathlib import Path

# ---- Project roots ----
ROOT = Path(__file__).resolve().parents[2]
DATA_RAW = ROOT / "data" / "raw"
DATA_INTERIM = ROOT / "data" / "interim"
DATA_DERIVED = ROOT / "data" / "derived"

# ---- Column names ----
ID_COL = "subject_id"
TS_COL = "timestamp"
GLU_COL = "glucose"
LABEL_COL = "label"
IMPUTED_COL = "imputed"

# ---- CGM params ----
# The device reports "low" below its floor; 39 was read off the value histogram,
# not a device specification.
LOW_SENTINEL_VALUE = 39.0
SENTINEL_TOKENS = ("low",)
THRESHOLDS_ABOVE = (140, 200)
THRESHOLDS_BELOW = (70,)
TIR_LOW, TIR_HIGH = 70, 180
RESAMPLE_RULE = "5min"
MAX_GAP = "30min"

# ---- Clinical covariates ----
COVARIATE_COLS = ("age", "bmi", "height", "weight")

# ---- Cross-validation ----
N_FOLDS = 6
SEED = 123
