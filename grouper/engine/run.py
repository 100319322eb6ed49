"""单轮焦点小组执行状态。 / Execution state of one focus group iteration.

职责 / Responsibilities:
1. 组合展开：(措辞 × 参与者) 笛卡尔积，构造时计算一次
   / Expand the (variant × participant) product once, at construction
2. 记录反应：只追加，重复组合或未知组合直接拒绝
   / Append-only reaction log; duplicate or unknown combinations are rejected
3. 统计与渲染：委托 scoring 模块计算得分，输出可读报告
   / Delegate scoring, render a human readable report
"""

import logging
from typing import List, Optional, Set, Tuple

from grouper.engine import scoring
from grouper.primitives.models import (
    FocusGroup,
    MessageVariant,
    MessageVariantScore,
    Participant,
    ParticipantMessagePresentation,
    Positioning,
    SpecificReaction,
)

logger = logging.getLogger(__name__)

_RANKING_WORDING_WIDTH = 60


def expand_combinations(
    focus_group: FocusGroup, positioning: Positioning,
) -> List[ParticipantMessagePresentation]:
    """展开全部 (措辞, 参与者) 组合。 / Build every (variant, participant) pairing.

    先展开所有 MessageVariants 的措辞，再与参与者交叉；顺序确定（措辞优先），
    仅用于展示。
    """
    return [
        ParticipantMessagePresentation(participant, variant)
        for variant in positioning.variants
        for participant in focus_group.participants
    ]


class FocusGroupRun:
    """一轮迭代的执行状态，随结果返回逐步构建。 / Built up as results come back.

    combinations 在构造时计算一次；reactions 只追加。
    一个 run 只由 ConvergenceController 持有，不会与评分并发修改。
    """

    def __init__(self, focus_group: FocusGroup, positioning: Positioning):
        self.focus_group = focus_group
        self.positioning = positioning

        expanded = expand_combinations(focus_group, positioning)
        keys: Set[Tuple[str, MessageVariant]] = set()
        combinations: List[ParticipantMessagePresentation] = []
        for combination in expanded:
            if combination.key in keys:
                continue
            keys.add(combination.key)
            combinations.append(combination)
        if len(combinations) < len(expanded):
            logger.warning(
                f"Positioning 中存在重复措辞，"
                f"{len(expanded) - len(combinations)} 个重复组合已忽略"
            )
        self.combinations: Tuple[ParticipantMessagePresentation, ...] = tuple(combinations)
        self._combination_keys = frozenset(keys)
        self._reactions: List[SpecificReaction] = []
        self._recorded: Set[Tuple[str, MessageVariant]] = set()

    @property
    def reactions(self) -> Tuple[SpecificReaction, ...]:
        return tuple(self._reactions)

    def is_complete(self) -> bool:
        """每个组合都恰好记录一次时为 True。 / True once every combination is recorded."""
        return len(self._recorded) == len(self._combination_keys)

    def pending_combinations(self) -> List[ParticipantMessagePresentation]:
        """尚未记录反应的组合。 / Combinations still awaiting a reaction."""
        return [c for c in self.combinations if c.key not in self._recorded]

    def record(self, reaction: SpecificReaction) -> None:
        key = reaction.presentation.key
        if key not in self._combination_keys:
            raise ValueError(
                f"反应不属于本轮组合: participant={key[0]}, "
                f"wording={key[1].wording!r}"
            )
        if key in self._recorded:
            raise ValueError(
                f"组合已记录过反应: participant={key[0]}, "
                f"wording={key[1].wording!r}"
            )
        self._recorded.add(key)
        self._reactions.append(reaction)

    def reactions_for_variant(self, variant: MessageVariant) -> List[SpecificReaction]:
        return [
            r for r in self._reactions
            if r.presentation.message_variant == variant
        ]

    def reactions_for_participant(self, participant: Participant) -> List[SpecificReaction]:
        return [
            r for r in self._reactions
            if r.presentation.participant.id == participant.id
        ]

    def average_score_for_participant(self, participant: Participant) -> float:
        scores = [r.reaction.score for r in self.reactions_for_participant(participant)]
        if not scores:
            return 0.0
        return sum(scores) / len(scores)

    def score_for_variant(self, variant: MessageVariant) -> MessageVariantScore:
        return scoring.score_variant(self, variant)

    def best_performing_variant(self) -> Optional[MessageVariantScore]:
        return scoring.best_performing_variant(self)

    # =========================================================================
    # 渲染 / Rendering
    # =========================================================================

    def render(self, verbose: bool = False, indent: int = 0) -> str:
        """可读的结果报告；verbose 时附带每位参与者的反应与引语。"""
        pad = " " * indent
        lines: List[str] = [f"{pad}Focus Group Results", f"{pad}===================", ""]

        scores = sorted(
            (self.score_for_variant(v) for v in self.positioning.variants),
            key=lambda s: s.average_score,
            reverse=True,
        )

        lines.append(f"{pad}Message Ranking by Effectiveness:")
        lines.append(f"{pad}---------------------------------")
        for rank, score in enumerate(scores, start=1):
            variant = score.message_variant
            lines.append(
                f"{pad}{rank}. {score.average_score:.2f} - "
                f"{_shorten(variant.wording)} (id: {variant.message.id})"
            )
        lines.append("")

        lines.append(f"{pad}Detailed Results:")
        lines.append(f"{pad}-----------------")
        lines.append("")
        for score in scores:
            variant = score.message_variant
            lines.append(f"{pad}Message: {variant.message.content} (ID: {variant.message.id})")
            lines.append(f"{pad}Objective: {variant.message.objective}")
            if variant.message.deliverable:
                lines.append(f"{pad}Deliverable: {variant.message.deliverable}")
            lines.append(f"{pad}Expression: {variant.wording}")
            lines.append(
                f"{pad}Average Score: {score.average_score:.2f} "
                f"(weighted {score.normalized_score:.2f}) - {score.count} reactions"
            )
            if verbose:
                lines.append(f"{pad}  Participant Reactions:")
                for specific in self.reactions_for_variant(variant):
                    participant = specific.presentation.participant
                    reaction = specific.reaction
                    lines.append(
                        f"{pad}    {participant.name}: {reaction.score:.2f} "
                        f"({reaction.score * 100:.0f}%)"
                    )
                    lines.append(f"{pad}      Positives: {reaction.positives}")
                    lines.append(f"{pad}      Negatives: {reaction.negatives}")
                    if reaction.quotes:
                        lines.append(f"{pad}      Quotes:")
                        for quote in reaction.quotes:
                            lines.append(f'{pad}        - "{quote}"')
            lines.append("")

        return "\n".join(lines) + "\n"

    def __str__(self) -> str:
        return self.render(verbose=False)

    def __repr__(self) -> str:
        return (
            f"FocusGroupRun(combinations={len(self.combinations)}, "
            f"reactions={len(self._reactions)})"
        )


def _shorten(wording: str) -> str:
    if len(wording) > _RANKING_WORDING_WIDTH:
        return wording[: _RANKING_WORDING_WIDTH - 3] + "..."
    return wording
