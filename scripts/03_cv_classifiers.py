# scripts/03_cv_classifiers.py
# Purpose:
# - Join per-subject metrics with clinical covariates and the diagnosis label
# - Run stratified k-fold CV for the five model families, on raw standardized
#   features and on PCA components (fit per training fold)
# - Holdout check of accuracy vs the no-information rate
# - Save: per-fold metrics, predictions and a summary table
import sys
from pathlib import Path
sys.path.append(str(Path(__file__).resolve().parents[1] / "src"))

import pandas as pd

from cgmdx.config import DATA_INTERIM, DATA_DERIVED, ID_COL, LABEL_COL, COVARIATE_COLS, N_FOLDS, SEED
from cgmdx.classifiers import default_classifiers
from cgmdx.crossval import CrossValidationHarness, holdout_evaluate
from cgmdx.features import FeatureTable
from cgmdx import reduction

IN_METRICS  = DATA_DERIVED / "subject_metrics.csv"
IN_CLINICAL = DATA_INTERIM / "clinical.csv"
OUT_SUMMARY = DATA_DERIVED / "cv_summary.csv"
OUT_FOLDS   = DATA_DERIVED / "cv_folds.csv"
OUT_PRED    = DATA_DERIVED / "cv_predictions.csv"
OUT_HOLDOUT = DATA_DERIVED / "holdout_summary.csv"

# metric columns used as features (extended stats are kept for reporting only)
FEATURES = ["above_140", "above_200", "below_70", "median"]
N_COMPONENTS = 3

print("Reading:", IN_METRICS)
print("Reading:", IN_CLINICAL)
metrics  = pd.read_csv(IN_METRICS, index_col=ID_COL)
clinical = pd.read_csv(IN_CLINICAL)

labels = clinical.dropna(subset=[LABEL_COL]).set_index(ID_COL)[LABEL_COL]
table = FeatureTable.build(
    metrics, clinical, labels,
    missing_policy="impute_mean",
    covariate_cols=list(COVARIATE_COLS),
    metric_cols=FEATURES,
)
print(f"Subjects available for ML: {len(table)}")
print(table.frame[LABEL_COL].value_counts().to_string())

# explained variance on the full table (descriptive only; CV refits per fold)
pca = reduction.fit(table.standardize(), N_COMPONENTS)
print("\nPCA explained variance ratio:", pca.explained_variance_ratio.round(3).tolist())

harness = CrossValidationHarness(table)
folds = harness.fold(k=N_FOLDS, seed=SEED)
for s in folds.shortfalls:
    print(f"[warn] {s}")

fold_frames, pred_frames = [], []
for name, clf in default_classifiers(seed=SEED).items():
    for reduce_first in (False, True):
        tag = f"{name}+pca" if reduce_first else name
        res = harness.evaluate(clf, reduce_first=reduce_first, n_components=N_COMPONENTS, name=tag)
        if res.skipped:
            print(f"[warn] {tag}: skipped folds {list(res.skipped)}")
        fold_frames.append(res.to_frame().assign(classifier=tag))
        pred_frames.append(res.predictions().assign(classifier=tag))
        print(f"{tag:28s} accuracy {res.mean_accuracy:.3f} (var {res.var_accuracy:.4f}), "
              f"kappa {res.mean_agreement:.3f}")

summary = harness.summary().sort_values("accuracy_mean", ascending=False)

holdout_rows = []
for name, clf in default_classifiers(seed=SEED).items():
    row = holdout_evaluate(table, clf, test_fraction=0.3, seed=SEED)
    row["classifier"] = name
    holdout_rows.append(row)
holdout = pd.DataFrame(holdout_rows)

# ---------- save artifacts ----------
summary.to_csv(OUT_SUMMARY, index=False)
pd.concat(fold_frames, ignore_index=True).to_csv(OUT_FOLDS, index=False)
pd.concat(pred_frames, ignore_index=True).to_csv(OUT_PRED, index=False)
holdout.to_csv(OUT_HOLDOUT, index=False)
print(f"\nSaved summary     -> {OUT_SUMMARY}")
print(f"Saved per-fold    -> {OUT_FOLDS}")
print(f"Saved predictions -> {OUT_PRED}")
print(f"Saved holdout     -> {OUT_HOLDOUT}")
