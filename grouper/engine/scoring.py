"""评分引擎: 原始均分、人群加权分与决策分。 / Scoring engine.

normalized_score 只在实际作出反应的参与者子集上重新归一化，
因此只被部分人群测试过的措辞不会因缺失的权重而被惩罚。
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Optional

from grouper.primitives.models import MessageVariant, MessageVariantScore

if TYPE_CHECKING:
    from grouper.engine.run import FocusGroupRun

logger = logging.getLogger(__name__)

# 决策分混合权重 / Decision score blend weights
NORMALIZED_WEIGHT = 5.0
AVERAGE_WEIGHT = 1.1


def score_variant(run: FocusGroupRun, variant: MessageVariant) -> MessageVariantScore:
    """聚合某措辞的全部反应。 / Aggregate every reaction recorded for a variant.

    无反应时返回 0.0 / 0.0 / 0，不做除零。
    """
    reactions = run.reactions_for_variant(variant)
    count = len(reactions)
    if count == 0:
        return MessageVariantScore(variant, 0.0, 0.0, 0)

    average = sum(r.reaction.score for r in reactions) / count

    weights = [
        run.focus_group.normalized_weight(r.presentation.participant)
        for r in reactions
    ]
    total_weight = sum(weights)
    weighted = sum(
        r.reaction.score * w for r, w in zip(reactions, weights)
    )
    normalized = weighted / total_weight

    return MessageVariantScore(variant, average, normalized, count)


def decision_score(score: MessageVariantScore) -> float:
    """用于排序与停止判定的混合分。

    加权分占主导，原始均分仍有影响：少数人极度反感的措辞会被压低。
    """
    return (
        score.normalized_score * NORMALIZED_WEIGHT
        + score.average_score * AVERAGE_WEIGHT
    ) / (NORMALIZED_WEIGHT + AVERAGE_WEIGHT)


def best_performing_variant(run: FocusGroupRun) -> Optional[MessageVariantScore]:
    """normalized_score 最高的措辞；尚无反应时返回 None。

    平分时取 positioning 顺序中靠前者。
    """
    if not run.reactions:
        return None

    best: Optional[MessageVariantScore] = None
    for variant in run.positioning.variants:
        score = score_variant(run, variant)
        if score.count == 0:
            continue
        if best is None or score.normalized_score > best.normalized_score:
            best = score
    return best
