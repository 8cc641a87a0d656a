# scripts/04_run_all.py
import subprocess, sys
from pathlib import Path

ROOT = Path(__file__).resolve().parents[1]
PY = sys.executable

SCRIPTS = [
    "scripts/01_load_and_clean.py",
    "scripts/02_subject_metrics.py",
    "scripts/03_cv_classifiers.py",
]

def run(path):
    print(f"\n[run] {path}")
    subprocess.run([PY, str(ROOT / path)], check=True)

def main():
    print("CGM diagnosis classifier - end-to-end runner")
    for s in SCRIPTS:
        run(s)
    print("\nAll done. Artifacts are in data/interim/ and data/derived/.")

if __name__ == "__main__":
    main()
