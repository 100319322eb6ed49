"""跨迭代的最佳措辞保留器。 / Cross-iteration top-k retention of variants.

保留列表有界（<= max_variants）、按去首尾空白后的措辞去重、按决策分降序。
另附只追加的 findings 日志，生命周期与会话一致。
只在迭代之间（AGGREGATE / EVOLVE）被修改，不需要同步。
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import TYPE_CHECKING, Callable, Iterable, List, Tuple

from grouper.engine.scoring import decision_score as default_decision_score
from grouper.primitives.models import MessageVariantScore

if TYPE_CHECKING:
    from grouper.engine.run import FocusGroupRun

logger = logging.getLogger(__name__)


class BestScoringVariants:
    """有界、去重、排序的最佳措辞集合，外加 findings 日志。"""

    def __init__(
        self,
        max_variants: int,
        decision_score: Callable[[MessageVariantScore], float] = default_decision_score,
    ) -> None:
        if max_variants < 1:
            raise ValueError(f"max_variants 必须 >= 1，当前为 {max_variants}")
        self._max_variants = max_variants
        self._decision_score = decision_score
        self._variants: List[MessageVariantScore] = []
        self._findings: List[str] = []

    @property
    def best_variants(self) -> Tuple[MessageVariantScore, ...]:
        return tuple(self._variants)

    @property
    def findings(self) -> Tuple[str, ...]:
        return tuple(self._findings)

    @property
    def max_variants(self) -> int:
        return self._max_variants

    def decision_score(self, score: MessageVariantScore) -> float:
        return self._decision_score(score)

    def update_from(self, run: FocusGroupRun) -> None:
        """合并本轮有反应的措辞得分。 / Merge scores of every reacted variant of a run."""
        new_scores = [
            score
            for score in (run.score_for_variant(v) for v in run.positioning.variants)
            if score.count > 0
        ]
        self.merge(new_scores)

    def merge(self, scores: Iterable[MessageVariantScore]) -> None:
        """去重 + 排序 + 截断，一步完成。

        按去空白后的措辞去重，保留首次出现者（已保留的条目在前）。
        """
        by_wording: "OrderedDict[str, MessageVariantScore]" = OrderedDict()
        for score in [*self._variants, *scores]:
            key = score.message_variant.wording.strip()
            if key not in by_wording:
                by_wording[key] = score

        ranked = sorted(by_wording.values(), key=self._decision_score, reverse=True)
        dropped = len(ranked) - self._max_variants
        self._variants = ranked[: self._max_variants]
        if dropped > 0:
            logger.debug(f"BestScoringVariants 截断 {dropped} 条低分措辞")

    def add_finding(self, text: str) -> None:
        self._findings.append(text)

    def render(self) -> str:
        """每行 "决策分: 措辞"，降序；随后列出 findings。"""
        lines = [
            f"{self._decision_score(s):.2f}: {s.message_variant.wording}"
            for s in sorted(self._variants, key=self._decision_score, reverse=True)
        ]
        if self._findings:
            lines.append("")
            lines.append("Findings:")
            lines.extend(f"- {finding}" for finding in self._findings)
        return "\n".join(lines)

    def __str__(self) -> str:
        return self.render()

    def __len__(self) -> int:
        return len(self._variants)
