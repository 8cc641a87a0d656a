# scripts/01_load_and_clean.py
# Purpose:
# - Read the Hall CGM readings (TSV) and the clinical table (SQLite)
# - Replace the device's "low" token with the configured floor value
# - Derive the diagnosis label from HbA1c
# - Save: data/interim/cgm_clean.csv, data/interim/clinical.csv
import sys
import sqlite3
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

import numpy as np
import pandas as pd

from cgmdx.config import DATA_RAW, DATA_INTERIM, ID_COL, TS_COL, GLU_COL, LABEL_COL, LOW_SENTINEL_VALUE
from cgmdx.cleaning import clean
from cgmdx.validate import assert_columns, basic_cgm_sanity

# ---------- paths ----------
RAW_CGM = DATA_RAW / "hall-data" / "hall-data-main.txt"
RAW_DB  = DATA_RAW / "hall-data" / "hall-data-subjects.db"
OUTDIR  = DATA_INTERIM
OUTDIR.mkdir(parents=True, exist_ok=True)

# ---------- source column names ----------
CGM_RENAME = {"subjectId": ID_COL, "DisplayTime": TS_COL, "GlucoseValue": GLU_COL}
CLINICAL_TABLE = "clinical"
CLINICAL_RENAME = {"userID": ID_COL, "age": "age", "BMI": "bmi", "height": "height", "weight": "weight"}
HBA1C_COL = "A1C"

# ---------- readings ----------
print("Reading:", RAW_CGM)
raw = pd.read_csv(RAW_CGM, sep="\t", dtype={"GlucoseValue": str})
assert_columns(raw, list(CGM_RENAME))
raw = raw[list(CGM_RENAME)].rename(columns=CGM_RENAME)

n_low = raw[GLU_COL].str.strip().str.lower().eq("low").sum()
print(f"[info] {n_low} 'low' readings will be set to {LOW_SENTINEL_VALUE:g} mg/dL.")

cgm = clean(raw, sentinel_value=LOW_SENTINEL_VALUE, on_error="isolate")
if cgm.attrs["excluded_subjects"]:
    print(f"[warn] Excluded subjects with malformed readings: {cgm.attrs['excluded_subjects']}")
cgm[TS_COL] = pd.to_datetime(cgm[TS_COL], errors="coerce")
bad_ts = cgm[TS_COL].isna().sum()
if bad_ts > 0:
    print(f"[warn] {bad_ts} rows had invalid timestamps and will be dropped.")
cgm = cgm.dropna(subset=[TS_COL]).sort_values([ID_COL, TS_COL])
basic_cgm_sanity(cgm, ID_COL, TS_COL, GLU_COL)

# ---------- clinical ----------
print("Reading:", RAW_DB)
conn = sqlite3.connect(RAW_DB)
clinical = pd.read_sql(f"SELECT * FROM {CLINICAL_TABLE};", conn)
conn.close()
assert_columns(clinical, list(CLINICAL_RENAME) + [HBA1C_COL])
clinical = clinical.rename(columns=CLINICAL_RENAME)

# derive label from HbA1c (5.7% is the prediabetes cut-off)
bins   = [-np.inf, 5.7, np.inf]
labels = ["non-diabetic", "potential-diabetic"]
clinical[LABEL_COL] = pd.cut(pd.to_numeric(clinical[HBA1C_COL], errors="coerce"),
                             bins=bins, labels=labels, right=False)
clinical = clinical[[ID_COL, "age", "bmi", "height", "weight", HBA1C_COL, LABEL_COL]]

print("\nLabel counts:")
print(clinical[LABEL_COL].value_counts(dropna=False).to_string())

# ---------- save outputs ----------
cgm_path = OUTDIR / "cgm_clean.csv"
clin_path = OUTDIR / "clinical.csv"
cgm.to_csv(cgm_path, index=False)
clinical.to_csv(clin_path, index=False)
print(f"\nSaved readings -> {cgm_path}")
print(f"Saved clinical -> {clin_path}")
