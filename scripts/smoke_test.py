# scripts/smoke_test.py
# Runs the pipeline end-to-end and verifies a few basic invariants.
import sys
import subprocess
from pathlib import Path
import pandas as pd
import numpy as np

# ensure the package is importable (src/ under the project root)
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

from cgmdx.config import DATA_RAW, DATA_INTERIM, DATA_DERIVED, ID_COL, GLU_COL, LOW_SENTINEL_VALUE

ROOT = Path(__file__).resolve().parents[1]
SCRIPTS = ROOT / "scripts"

def run_script(name: str):
    path = SCRIPTS / name
    print(f"\n[run] python {path}")
    subprocess.run([sys.executable, str(path)], check=True)

def assert_file_exists(p: Path):
    if not p.exists():
        raise FileNotFoundError(f"Expected file not found: {p}")
    print(f"[ok] Found: {p}")

def check_clean_readings(csv_path: Path):
    df = pd.read_csv(csv_path)
    if df.empty:
        raise AssertionError("cgm_clean.csv is empty.")
    if not np.isfinite(df[GLU_COL]).all():
        raise AssertionError("Cleaned glucose has non-finite values.")
    if (df[GLU_COL] < LOW_SENTINEL_VALUE).any():
        raise AssertionError("Glucose values below the sentinel floor.")
    print("[ok] cgm_clean.csv basic checks passed.")

def check_subject_metrics(csv_path: Path):
    df = pd.read_csv(csv_path)
    if df.empty:
        raise AssertionError("subject_metrics.csv is empty.")
    if df[ID_COL].duplicated().any():
        raise AssertionError("subject_metrics.csv has more than one row per subject.")
    pct = [c for c in df.columns if c.startswith(("above_", "below_"))]
    if not ((df[pct] >= 0).all().all() and (df[pct] <= 100).all().all()):
        raise AssertionError("Percent metrics out of [0,100].")
    print("[ok] subject_metrics.csv basic checks passed.")

def check_cv_summary(csv_path: Path):
    df = pd.read_csv(csv_path)
    if df.empty:
        raise AssertionError("cv_summary.csv is empty.")
    acc = df["accuracy_mean"].dropna()
    if not ((acc >= 0).all() and (acc <= 1).all()):
        raise AssertionError("Mean accuracy out of [0,1].")
    print("[ok] cv_summary.csv basic checks passed.")

def main():
    # 0) raw inputs present
    assert_file_exists(DATA_RAW / "hall-data" / "hall-data-main.txt")
    assert_file_exists(DATA_RAW / "hall-data" / "hall-data-subjects.db")

    # 1->3) run pipeline scripts
    run_script("01_load_and_clean.py")
    run_script("02_subject_metrics.py")
    run_script("03_cv_classifiers.py")

    # 4) check outputs
    assert_file_exists(DATA_INTERIM / "cgm_clean.csv")
    assert_file_exists(DATA_DERIVED / "subject_metrics.csv")
    assert_file_exists(DATA_DERIVED / "cv_summary.csv")

    check_clean_readings(DATA_INTERIM / "cgm_clean.csv")
    check_subject_metrics(DATA_DERIVED / "subject_metrics.csv")
    check_cv_summary(DATA_DERIVED / "cv_summary.csv")

    print("\nSMOKE TEST PASSED - pipeline is healthy.")

if __name__ == "__main__":
    main()
