"""收敛控制器: 迭代状态机。 / Convergence controller: the iteration state machine.

状态 / States:
    INIT → DISPATCH → AGGREGATE → CHECK → {EVOLVE → DISPATCH | TERMINATE}

职责 / Responsibilities:
1. 编排：每轮新建 FocusGroupRun，经 dispatcher 评估后聚合到 BestScoringVariants
   / Fresh FocusGroupRun per iteration, dispatched then aggregated
2. 停止判定：迭代次数达到上限，或 run 完整且最佳措辞决策分超过阈值
   / Stop on iteration budget, or on a complete run whose best decision score passes
3. 演化：调用创意预言机生成下一轮措辞，摘要写入 findings
   / Ask the creative oracle for the next wordings; summary goes to findings

只有 BestScoringVariants（含 findings）跨迭代保留。迭代严格串行。
"""

import enum
import logging
import uuid
from typing import Callable, List, Optional

from grouper.config import GrouperConfig
from grouper.engine.best_variants import BestScoringVariants
from grouper.engine.dispatcher import EvaluationDispatcher
from grouper.engine.run import FocusGroupRun
from grouper.engine.scoring import decision_score as default_decision_score
from grouper.errors import (
    EMPTY_SESSION,
    EVOLUTION_FAILED,
    ConfigurationError,
    EvolutionError,
    GrouperError,
)
from grouper.primitives.events import FocusEvent, ProgressCallback, emit
from grouper.primitives.models import (
    FocusGroup,
    MessageVariants,
    MessageVariantScore,
    Positioning,
)
from grouper.primitives.oracles import CreativeOracle, ReactionOracle

logger = logging.getLogger(__name__)


class ControllerState(enum.Enum):
    INIT = "INIT"
    DISPATCH = "DISPATCH"
    AGGREGATE = "AGGREGATE"
    CHECK = "CHECK"
    EVOLVE = "EVOLVE"
    TERMINATE = "TERMINATE"


class ConvergenceController:
    """焦点小组会话编排器。 / Focus group session orchestrator."""

    def __init__(
        self,
        reaction_oracle: ReactionOracle,
        creative_oracle: CreativeOracle,
        config: GrouperConfig,
        on_progress: Optional[ProgressCallback] = None,
        decision_score: Callable[[MessageVariantScore], float] = default_decision_score,
    ):
        self._reaction_oracle = reaction_oracle
        self._creative_oracle = creative_oracle
        self._config = config
        self._on_progress = on_progress
        self._decision_score = decision_score

        self.state = ControllerState.INIT
        self.iterations = 0
        self.last_run: Optional[FocusGroupRun] = None
        self.transitions: List[ControllerState] = []

    def _enter(self, state: ControllerState) -> None:
        logger.debug(f"状态转换: {self.state.value} → {state.value}")
        self.state = state
        self.transitions.append(state)

    async def run(
        self,
        focus_group: FocusGroup,
        positioning: Positioning,
        session_id: Optional[str] = None,
    ) -> BestScoringVariants:
        """执行完整会话，返回最佳措辞累积器。 / Run a full session.

        Raises:
            ConfigurationError: 焦点小组或 positioning 为空。
            OracleError: 任一组合评估失败，整个会话中止。
            EvolutionError: 创意预言机调用失败，或未返回任何措辞。
        """
        session_id = session_id or str(uuid.uuid4())[:8]
        config = self._config

        # INIT: 每次会话重新分配状态 / Fresh per-session state
        self.state = ControllerState.INIT
        self.iterations = 0
        self.last_run = None
        self.transitions = []
        self._enter(ControllerState.INIT)
        if len(focus_group) == 0:
            raise ConfigurationError("焦点小组没有任何参与者", code=EMPTY_SESSION)
        if not positioning.variants:
            raise ConfigurationError("Positioning 没有任何待测措辞", code=EMPTY_SESSION)

        best = BestScoringVariants(
            max_variants=config.max_variants,
            decision_score=self._decision_score,
        )
        dispatcher = EvaluationDispatcher(
            oracle=self._reaction_oracle,
            max_concurrency=config.max_concurrency,
            on_progress=self._on_progress,
            session_id=session_id,
        )
        logger.info(
            f"[{session_id}] 开始焦点小组会话: "
            f"{len(focus_group)} 位参与者, {len(positioning.variants)} 条措辞, "
            f"最多 {config.max_iterations} 轮, 阈值 {config.min_message_score}"
        )

        current = positioning
        while True:
            # DISPATCH
            self._enter(ControllerState.DISPATCH)
            self.iterations += 1
            logger.info(
                f"[{session_id}] ━━━ Iteration {self.iterations}/{config.max_iterations} ━━━"
            )
            await emit(self._on_progress, FocusEvent(
                type="iteration_start", session_id=session_id,
                iteration=self.iterations, max_iterations=config.max_iterations,
                detail={"variants": len(current.variants)},
            ))
            run = FocusGroupRun(focus_group, current)
            self.last_run = run
            await dispatcher.dispatch(run, iteration=self.iterations)

            # AGGREGATE
            self._enter(ControllerState.AGGREGATE)
            best.update_from(run)

            # CHECK
            self._enter(ControllerState.CHECK)
            top = run.best_performing_variant()
            stop, reason = self._should_stop(run, top)
            await emit(self._on_progress, FocusEvent(
                type="iteration_end", session_id=session_id,
                iteration=self.iterations, max_iterations=config.max_iterations,
                detail={
                    "best_wording": top.message_variant.wording if top else None,
                    "decision_score": self._decision_score(top) if top else None,
                    "stop": stop,
                    "reason": reason,
                },
            ))
            if stop:
                logger.info(f"[{session_id}] 会话结束: {reason}")
                break

            # EVOLVE
            self._enter(ControllerState.EVOLVE)
            current = await self._evolve(run, best)
            await emit(self._on_progress, FocusEvent(
                type="evolved", session_id=session_id,
                iteration=self.iterations, max_iterations=config.max_iterations,
                detail={"wordings": [v.wording for v in current.variants]},
            ))

        # TERMINATE
        self._enter(ControllerState.TERMINATE)
        await emit(self._on_progress, FocusEvent(
            type="terminated", session_id=session_id,
            iteration=self.iterations, max_iterations=config.max_iterations,
            detail={"best_variants": len(best), "findings": len(best.findings)},
        ))
        return best

    def _should_stop(self, run: FocusGroupRun, top: Optional[MessageVariantScore]):
        """停止谓词，每轮都评估。返回 (是否停止, 原因)。"""
        if self.iterations >= self._config.max_iterations:
            return True, f"已达迭代上限 {self._config.max_iterations}"
        if not run.is_complete():
            return False, "run 未完整，不信任适应度"
        if top is None:
            return False, "尚无可用反应"
        score = self._decision_score(top)
        if score > self._config.min_message_score:
            return True, (
                f"最佳措辞决策分 {score:.3f} 超过阈值 "
                f"{self._config.min_message_score}: {top.message_variant.wording!r}"
            )
        logger.info(
            f"最佳措辞决策分 {score:.3f} 未超过阈值 {self._config.min_message_score}"
        )
        return False, "未达阈值"

    async def _evolve(
        self, run: FocusGroupRun, best: BestScoringVariants,
    ) -> Positioning:
        """基于本轮反馈生成下一轮 positioning。

        只演化第一个 MessageVariants，Message 本身保持不变，只替换措辞。
        """
        # TODO: evolve every MessageVariants entry once the creative prompt can carry several messages
        message_variants = run.positioning.message_variants[0]
        if len(run.positioning.message_variants) > 1:
            logger.warning(
                f"Positioning 含 {len(run.positioning.message_variants)} 条信息，"
                f"仅演化第一条: {message_variants.message.id}"
            )
        logger.info(f"基于本轮结果演化措辞: {run!r}")

        try:
            result = await self._creative_oracle.rewrite(
                feedback=run.render(verbose=True, indent=1),
                max_words=self._config.findings_word_count,
                max_variants=self._config.max_variants,
                current_best=best.render(),
            )
        except GrouperError:
            raise
        except Exception as e:
            raise EvolutionError(
                f"创意预言机调用失败 (message={message_variants.message.id}): {e}",
                code=EVOLUTION_FAILED,
            ) from e
        best.add_finding(result.summary)

        wordings: List[str] = []
        for wording in result.wordings:
            text = wording.strip()
            if text and text not in wordings:
                wordings.append(text)
        if not wordings:
            raise EvolutionError(
                f"创意预言机未返回任何新措辞 (message={message_variants.message.id})"
            )
        if len(wordings) > self._config.max_variants:
            logger.warning(
                f"创意预言机返回 {len(wordings)} 条措辞，"
                f"截断为 {self._config.max_variants} 条"
            )
            wordings = wordings[: self._config.max_variants]

        logger.info(f"新措辞: {wordings}")
        return Positioning((MessageVariants.of(message_variants.message, *wordings),))
