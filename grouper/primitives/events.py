# events.py
# =============================================================================
# 焦点小组进度事件: 供外部应用实时获取会话状态。
# =============================================================================

"""Focus group progress events for external integration."""

from __future__ import annotations

import inspect
import time
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Dict, Optional, Union


@dataclass
class FocusEvent:
    """会话过程中的结构化进度事件。

    外部应用通过注册 on_progress 回调来接收此类事件，
    用于进度条、日志或推送等集成场景。

    Attributes:
        type: 事件类型。
            - "progress": 一次组合评估完成（label, current, total 有效）
            - "iteration_start": 迭代开始
            - "iteration_end": 迭代结束（detail 含最佳措辞与是否停止）
            - "evolved": 新一轮措辞已生成
            - "terminated": 会话结束
        session_id: 本次会话的唯一标识。
        timestamp: 事件产生时的单调时钟（秒）。
        label: 进度标签，dispatcher 固定为 "focus"。
        current: 已完成的组合数。
        total: 本轮组合总数。
        iteration: 当前迭代序号（从 1 开始）。
        max_iterations: 迭代上限。
        detail: 事件附加数据，结构因 type 而异。
    """

    type: str
    session_id: str = ""
    timestamp: float = field(default_factory=time.monotonic)
    label: Optional[str] = None
    current: Optional[int] = None
    total: Optional[int] = None
    iteration: Optional[int] = None
    max_iterations: Optional[int] = None
    detail: Optional[Dict[str, Any]] = None

    @property
    def progress(self) -> float:
        """本轮评估进度 (0.0 ~ 1.0)。 / Fraction of the current batch completed."""
        if not self.total or self.current is None:
            return 0.0
        return min(1.0, self.current / self.total)


# 类型别名：支持同步和异步回调 / Type alias: supports sync and async callbacks
ProgressCallback = Union[
    Callable[[FocusEvent], Awaitable[None]],
    Callable[[FocusEvent], None],
]


async def emit(on_progress: Optional[ProgressCallback], event: FocusEvent) -> None:
    """触发进度回调（支持同步和异步回调）。 / Emit progress callback (sync and async)."""
    if on_progress is None:
        return
    result = on_progress(event)
    if inspect.isawaitable(result):
        await result
