"""
main.py
=======
Entry point for the Anguilla australis presence/absence pipeline
(boosted regression trees, after Elith et al. 2008).

Pipeline stages:
    1. Load model + evaluation data, validate schema, split (75/25)
    2. Stratified 5-fold partition of the training split
    3. Staged tuning: learning rate → tree shape → stochastic sampling
    4. Final fits (training split; evaluation dataset)
    5. Evaluation (test split, external, evaluation out-of-fold)
    6. Reports, plots & artifacts
"""

import sys
import traceback

from eelboost.config import MODEL_DATA, EVAL_DATA, MODELS_DIR, REPORTS_DIR
from eelboost.pipeline import run_pipeline


def main():
    """Run the full pipeline end-to-end."""

    print("\n" + "=" * 70)
    print(" ANGUILLA AUSTRALIS — BOOSTED TREE PIPELINE")
    print("=" * 70)

    for path in (MODEL_DATA, EVAL_DATA):
        if not path.exists():
            print(f"[ERROR] Data file not found: {path}")
            sys.exit(1)

    try:
        result = run_pipeline(MODEL_DATA, EVAL_DATA)
    except Exception as e:
        print("\n" + "!" * 70)
        print(f" [CRITICAL ERROR] Pipeline failed: {e}")
        print("!" * 70 + "\n")
        traceback.print_exc()
        sys.exit(1)

    # ── Final Summary ───────────────────────────────────────────────────
    tuning = result['tuning']
    reports = result['reports']

    print("\n" + "=" * 70)
    print(" PIPELINE COMPLETE")
    print("=" * 70)
    print(f"\n  Final config : {tuning.final_config.describe()}")
    for stage in tuning.stages:
        print(f"  Stage {stage.name.upper()}      : {stage.metric}={stage.best_score:.4f} "
              f"({len(stage.results)} candidates, {stage.n_failed} failed)")
    print()
    print(f"  {'Evaluation':<32} | {'AUC':>6} | {'Acc':>6} | {'Sens':>6} | {'Spec':>6}")
    print(f"  {'-'*32}-+-{'-'*6}-+-{'-'*6}-+-{'-'*6}-+-{'-'*6}")
    for report in reports.values():
        m = report['metrics']
        print(f"  {report['label']:<32} | {m['roc_auc']:>6.3f} | {m['accuracy']:>6.3f} | "
              f"{m['sensitivity']:>6.3f} | {m['specificity']:>6.3f}")
    print()
    print(f"  Models  -> {MODELS_DIR}")
    print(f"  Reports -> {REPORTS_DIR}")
    print()

    return result


if __name__ == "__main__":
    main()
