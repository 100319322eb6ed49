# engine/__init__.py
# =============================================================================
# Grouper 引擎模块: 评估、评分、保留与收敛控制。
# =============================================================================

from grouper.engine.best_variants import BestScoringVariants
from grouper.engine.controller import ControllerState, ConvergenceController
from grouper.engine.dispatcher import EvaluationDispatcher
from grouper.engine.run import FocusGroupRun, expand_combinations
from grouper.engine.scoring import (
    best_performing_variant,
    decision_score,
    score_variant,
)

__all__ = [
    "BestScoringVariants",
    "ControllerState",
    "ConvergenceController",
    "EvaluationDispatcher",
    "FocusGroupRun",
    "best_performing_variant",
    "decision_score",
    "expand_combinations",
    "score_variant",
]
