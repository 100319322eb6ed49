# focus.py
# =============================================================================
# 公共 API: Grouper 焦点小组入口。 / Public API: focus group entry point.
#
# 提供 focus() 一键测试函数：加载配置与数据，创建模型路由与预言机，
# 交给 ConvergenceController 迭代直到收敛或迭代次数用尽。
# =============================================================================

"""公共 API: Grouper 焦点小组入口。"""

from __future__ import annotations

import logging
import uuid
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence, Union

from grouper.agents import CreativeAgent, ParticipantReactor
from grouper.config import load_grouper_config
from grouper.engine import BestScoringVariants, ConvergenceController
from grouper.errors import BudgetExceededError, ConfigurationError
from grouper.llm import CREATIVE_ROLE, ModelRouter
from grouper.primitives.events import ProgressCallback
from grouper.primitives.models import FocusGroup, MessageVariants, Positioning
from grouper.repositories import YmlMessageVariantsRepository, YmlParticipantRepository

logger = logging.getLogger(__name__)


def _make_llm_caller(router: ModelRouter, role: str):
    """创建指定角色的 LLM 调用函数。

    返回 async def(*, system_prompt, user_prompt) -> str 的协程函数。
    调用次数在发起请求前即计入，超出上限时抛出 BudgetExceededError。
    """

    async def caller(*, system_prompt: str = "", user_prompt: str = "") -> str:
        if not router.check_budget(role):
            raise BudgetExceededError(f"LLM 调用次数已达上限（角色: {role}）")
        router.record_call(role)
        budget = router.budget
        limit_str = str(budget.max_calls) if not budget.is_unlimited else "∞"
        logger.info(f"[{role}] LLM 调用 #{budget.total_calls}/{limit_str}")
        adapter = router.get_model_backend(role)
        return await adapter.call(system_prompt, user_prompt)

    return caller


def _load_positioning(
    repository: YmlMessageVariantsRepository, names: Sequence[str],
) -> Positioning:
    variants: List[MessageVariants] = []
    for name in names:
        found = repository.find_by_name(name)
        if found is None:
            raise ConfigurationError(f"找不到信息: {name}")
        variants.append(found)
    return Positioning(tuple(variants))


async def focus(
    group: str,
    messages: Union[str, Sequence[str]],
    data_dir: Union[str, Path] = "data",
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
    llm_config: Optional[Dict[str, Any]] = None,
    llm_config_file: Optional[str] = None,
    on_progress: Optional[ProgressCallback] = None,
) -> BestScoringVariants:
    """一键焦点小组测试。

    参数：
        group: 参与者小组名，对应 <data_dir>/participants/<group>.yml
        messages: 信息名（或信息名列表），对应 <data_dir>/messages/<name>.yml
        data_dir: 数据目录
        config_file: grouper 会话配置文件（可选，不传则自动搜索 grouper.yaml）
        overrides: 会话配置覆盖项（最高优先级），如 {"max_iterations": 5}
        llm_config: LLM 模型配置（最高优先级）。键为参与者的模型选择器
            以及 "creative"，格式参见 LLMConfigLoader。
        llm_config_file: LLM 配置文件路径（可选，不传则自动搜索 llm_config.yaml）
        on_progress: 进度回调（可选，同步或异步函数），接收 FocusEvent。

    返回：
        BestScoringVariants：跨迭代的最佳措辞与 findings。
    """
    names = [messages] if isinstance(messages, str) else list(messages)
    session_id = str(uuid.uuid4())[:8]
    logger.info(f"[{session_id}] 开始焦点小组测试: group={group}, messages={names}")

    # 1. 会话配置
    config = load_grouper_config(config_file=config_file, overrides=overrides)

    # 2. 参与者与待测信息
    participants = YmlParticipantRepository(data_dir).find_by_group(group)
    focus_group = FocusGroup(participants)
    positioning = _load_positioning(YmlMessageVariantsRepository(data_dir), names)

    # 3. LLM 路由与预言机
    router = ModelRouter(
        llm_config=llm_config,
        max_llm_calls=config.max_llm_calls,
        config_file=llm_config_file,
    )
    callers: Dict[str, Any] = {}

    def caller_for(role: str):
        if role not in callers:
            callers[role] = _make_llm_caller(router, role)
        return callers[role]

    reactor = ParticipantReactor(caller_for, show_prompts=config.show_prompts)
    creative = CreativeAgent(
        caller_for(CREATIVE_ROLE),
        creatives=config.creatives,
        random_seed=config.random_seed,
        show_prompts=config.show_prompts,
    )

    # 4. 迭代
    controller = ConvergenceController(
        reaction_oracle=reactor,
        creative_oracle=creative,
        config=config,
        on_progress=on_progress,
    )
    best = await controller.run(focus_group, positioning, session_id=session_id)

    logger.info(
        f"[{session_id}] 测试完成: {controller.iterations} 轮, "
        f"LLM 调用 {router.budget.total_calls} 次"
    )
    return best
