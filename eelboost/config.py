"""
config.py
=========
Single source of truth for all configuration parameters.
All paths, constants, search bounds and metrics are defined here.
"""

from pathlib import Path

# ============================================================================
# PATHS
# ============================================================================
PROJECT_ROOT = Path(__file__).resolve().parent.parent
DATA_DIR = PROJECT_ROOT / "data"
MODELS_DIR = PROJECT_ROOT / "models"
REPORTS_DIR = PROJECT_ROOT / "reports"

# Data files (Elith et al. 2008 supplementary data)
MODEL_DATA = DATA_DIR / "model_data.csv"   # Anguilla_train
EVAL_DATA = DATA_DIR / "eval_data.csv"     # Anguilla_test

# ============================================================================
# DATA PARAMETERS
# ============================================================================
TARGET_COLUMN = "Angaus"            # 1 = presence, 0 = absence
EVAL_TARGET_COLUMN = "Angaus_obs"   # label name in the evaluation file
POSITIVE_LABEL = 1

# Identifiers, no predictive value
ID_COLUMNS = ('Site',)

FEATURE_COLUMNS = (
    'SegSumT',      # summer air temperature
    'SegTSeas',     # winter temperature anomaly
    'SegLowFlow',   # segment low flow
    'DSDist',       # distance to coast
    'DSMaxSlope',   # max downstream slope
    'USAvgT',       # upstream temperature anomaly
    'USRainDays',   # upstream days with rain > 25 mm
    'USSlope',      # upstream average slope
    'USNative',     # upstream native forest
    'DSDam',        # downstream obstruction
    'Method',       # fishing method
    'LocSed',       # local substrate
)

# Native LightGBM categoricals
CATEGORICAL_FEATURES = ('Method',)

RANDOM_STATE = 42

# Initial split (stratified on the label)
TEST_SIZE = 0.25

# ============================================================================
# CROSS-VALIDATION
# ============================================================================
N_FOLDS = 5
STRATIFIED_FOLDS = True

# Fold fits are independent; 1 keeps execution sequential
N_JOBS = 1

# ============================================================================
# BOOSTING PARAMETERS
# ============================================================================
# Fixed tree count ceiling carried through every stage
TREE_CEILING = 1000

# LightGBM caps num_leaves at 2**17
MAX_LEAVES = 131072

# Engine settings that are never tuned
BASE_PARAMS = {
    'objective': 'binary',
    'n_jobs': 1,
    'deterministic': True,
    'force_row_wise': True,
    'verbose': -1,
}

# ============================================================================
# TUNING STAGES
# ============================================================================
# Stage A: learning rate (regular grid)
LEARN_RATE_RANGE = (0.0001, 0.3)
STAGE_A_SIZE = 30

# Stage B: tree shape (Latin hypercube)
TREE_DEPTH_RANGE = (1, 15)
MIN_LEAF_RANGE = (2, 40)
LOSS_REDUCTION_RANGE = (1e-10, 10 ** 1.5)
STAGE_B_SIZE = 40

# Stage C: stochastic sampling (Latin hypercube)
SAMPLE_SIZE_RANGE = (0.1, 1.0)
MTRY_RANGE = (1, None)  # upper bound finalized to the feature count
STAGE_C_SIZE = 40

# Optuna study verbosity ('DEBUG', 'INFO', 'WARNING', ...)
OPTUNA_VERBOSITY = 'WARNING'

# Reload stage artifacts from MODELS_DIR instead of re-running the search
RESUME_TUNING = True

# ============================================================================
# EVALUATION METRICS
# ============================================================================

# Metrics aggregated across folds
CV_METRICS = ('roc_auc', 'accuracy', 'log_loss')

# ROC AUC ranked candidates better than accuracy when both were compared
SELECTION_METRIC = 'roc_auc'

# Probability cut-off for hard presence/absence calls
THRESHOLD = 0.5

METRIC_DESCRIPTIONS = {
    'roc_auc': 'Area under the ROC curve (higher is better)',
    'accuracy': 'Fraction of correct calls (higher is better)',
    'log_loss': 'Mean binary cross-entropy (lower is better)',
    'sensitivity': 'True-positive rate (higher is better)',
    'specificity': 'True-negative rate (higher is better)',
    'precision': 'Positive predictive value (higher is better)',
}

# ============================================================================
# VISUALIZATION SETTINGS
# ============================================================================
PLOT_SETTINGS = {
    'DPI': 150,
    'STYLE': 'whitegrid',
    'PALETTE': 'Set2'
}
PLOT_DPI = PLOT_SETTINGS['DPI']
