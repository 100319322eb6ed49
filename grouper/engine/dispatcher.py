"""评估调度器: 有界并发地把组合交给反应预言机。 / Evaluation dispatcher.

职责 / Responsibilities:
1. 并发调度：最多 max_concurrency 个预言机调用同时进行
   / At most max_concurrency oracle calls in flight
2. 进度通知：每完成一个组合发出 (label, current, total)
   / Emit (label, current, total) after every completed call
3. 屏障后记录：全部调用返回后再顺序写入 run，run 只有一个写者
   / Record into the run sequentially, strictly after the barrier

失败即整批失败：取消其余调用，不做部分记录。
/ Any failure aborts the whole batch: siblings are cancelled, nothing is recorded.
"""

import asyncio
import logging
from datetime import datetime, timezone
from typing import List, Optional

from grouper.engine.run import FocusGroupRun
from grouper.errors import OracleError
from grouper.primitives.events import FocusEvent, ProgressCallback, emit
from grouper.primitives.models import (
    ParticipantMessagePresentation,
    SpecificReaction,
)
from grouper.primitives.oracles import ReactionOracle

logger = logging.getLogger(__name__)

PROGRESS_LABEL = "focus"


class EvaluationDispatcher:
    """把一轮 run 的全部组合交给反应预言机评估。"""

    def __init__(
        self,
        oracle: ReactionOracle,
        max_concurrency: int,
        on_progress: Optional[ProgressCallback] = None,
        session_id: str = "",
    ):
        if max_concurrency < 1:
            raise ValueError(f"max_concurrency 必须 >= 1，当前为 {max_concurrency}")
        self._oracle = oracle
        self._max_concurrency = max_concurrency
        self._on_progress = on_progress
        self._session_id = session_id

    async def dispatch(
        self, run: FocusGroupRun, iteration: Optional[int] = None,
    ) -> FocusGroupRun:
        """评估每个组合恰好一次并记录结果。 / Evaluate every combination exactly once.

        Raises:
            OracleError: 任一组合评估失败（带 participant_id 与 wording）。
        """
        if run.is_complete():
            logger.info("run 已完成，无需调度")
            return run

        pending = run.pending_combinations()
        total = len(pending)
        logger.info(
            f"将评估 {total} 个组合 (并发上限 {self._max_concurrency})"
        )

        semaphore = asyncio.Semaphore(self._max_concurrency)
        completed = 0

        async def present(
            combination: ParticipantMessagePresentation,
        ) -> SpecificReaction:
            nonlocal completed
            async with semaphore:
                specific = await self._present(combination)
            # 单线程事件循环内自增，无需加锁 / Incremented on the event loop thread
            completed += 1
            await emit(self._on_progress, FocusEvent(
                type="progress",
                session_id=self._session_id,
                label=PROGRESS_LABEL,
                current=completed,
                total=total,
                iteration=iteration,
            ))
            return specific

        tasks = [
            asyncio.ensure_future(present(combination))
            for combination in pending
        ]
        try:
            results: List[SpecificReaction] = await asyncio.gather(*tasks)
        except BaseException:
            for task in tasks:
                task.cancel()
            await asyncio.gather(*tasks, return_exceptions=True)
            raise

        for specific in results:
            run.record(specific)
        logger.info(f"已记录 {len(results)} 条反应")
        return run

    async def _present(
        self, combination: ParticipantMessagePresentation,
    ) -> SpecificReaction:
        participant = combination.participant
        variant = combination.message_variant
        try:
            reaction = await self._oracle.evaluate(
                contribution=participant.contribution(),
                wording=variant.wording,
                objective=variant.message.objective,
                deliverable=variant.message.deliverable,
                llm=participant.llm,
            )
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.error(
                f"参与者 {participant.id} 评估失败: "
                f"wording={variant.wording!r}, error={e}"
            )
            if isinstance(e, OracleError):
                # 保留原异常类型（如 BudgetExceededError），只补充失败组合
                # / Keep the original class, only attach the failing combination
                e.participant_id = e.participant_id or participant.id
                e.wording = e.wording or variant.wording
                raise
            raise OracleError(
                f"参与者 {participant.id} 对措辞 {variant.wording!r} 的评估失败: {e}",
                participant_id=participant.id,
                wording=variant.wording,
            ) from e

        logger.debug(f"{participant.id} 对 {variant.wording[:40]!r} 的反应: {reaction}")
        return SpecificReaction(
            presentation=combination,
            reaction=reaction,
            timestamp=datetime.now(timezone.utc),
        )
