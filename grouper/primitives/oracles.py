# oracles.py
# =============================================================================
# 宿主提供的外部预言机接口 / Host-supplied oracle interfaces
#
# 核心引擎只编排、聚合与控制，不生成自然语言也不做评分判断。
# grouper.agents 中提供了基于 LLM 的实现，宿主也可以自行替换。
# =============================================================================

from __future__ import annotations

from typing import Optional, Protocol

from grouper.primitives.models import NewMessageWordings, Reaction


class ReactionOracle(Protocol):
    """给定人设与信息，产出结构化反应。失败时抛出 OracleError。

    重试策略由实现方负责，dispatcher 不感知。
    """

    async def evaluate(
        self,
        *,
        contribution: str,
        wording: str,
        objective: str,
        deliverable: str,
        llm: Optional[str] = None,
    ) -> Reaction: ...


class CreativeOracle(Protocol):
    """给定反馈与当前最佳措辞，产出反馈摘要与新措辞。"""

    async def rewrite(
        self,
        *,
        feedback: str,
        max_words: int,
        max_variants: int,
        current_best: str,
    ) -> NewMessageWordings: ...
