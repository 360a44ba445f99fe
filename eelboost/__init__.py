"""
eelboost package
================
Boosted-tree presence/absence model for Anguilla australis
(Elith, Leathwick & Hastie 2008 case study).
"""

__version__ = "0.1.0"

from .config import *
from .data import load_datasets, split_xy, SchemaMismatchError
from .folds import make_folds, FoldAssignment, FoldError, DegenerateFoldWarning
from .search_space import Dimension, finalize, regular_grid, latin_hypercube, SearchSpaceError
from .model import BoostConfig, LightGBMTrainer, ModelManager
from .scoring import score_config
from .tune import select_best, tune_stages, default_stages, TuningError
