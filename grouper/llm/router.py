# router.py
# =============================================================================
# LLM 模型路由与调用次数控制模块 / Model routing & call budget
#
# 职责 / Responsibilities:
#   - 根据角色（参与者的 llm 选择器或 "creative"）选择并缓存适配器
#     / Pick and cache an adapter per role (participant llm selector or "creative")
#   - 管理整个会话共享的 LLM 调用次数上限
#     / Enforce one LLM call budget shared by the whole session
#
# 不提供任何硬编码默认模型，角色缺失配置时抛出 ConfigurationError。
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, Optional

from grouper.errors import ConfigurationError
from grouper.llm.config import LLMConfigLoader, ModelEndpointConfig

logger = logging.getLogger(__name__)


# =============================================================================
# 调用次数预算 / Call budget
# =============================================================================


@dataclass
class BudgetState:
    """LLM 调用次数预算。max_calls <= 0 表示不限制。

    调用在发起前即被计入（预占），并发调用不会超出上限。
    """

    total_calls: int = 0
    max_calls: int = 0
    calls_by_role: Dict[str, int] = field(default_factory=dict)

    @property
    def is_unlimited(self) -> bool:
        return self.max_calls <= 0

    @property
    def is_exceeded(self) -> bool:
        if self.is_unlimited:
            return False
        return self.total_calls >= self.max_calls

    def record_call(self, role: str) -> None:
        self.total_calls += 1
        self.calls_by_role[role] = self.calls_by_role.get(role, 0) + 1


# =============================================================================
# 模型路由器 / Model router
# =============================================================================


class ModelRouter:
    """模型路由器: 按角色创建适配器，并管理调用次数。"""

    def __init__(
        self,
        llm_config: Optional[Dict[str, Any]] = None,
        max_llm_calls: int = 0,
        config_file: Optional[str] = None,
    ) -> None:
        """
        Args:
            llm_config: 模型配置字典（最高优先级），格式参见 LLMConfigLoader。
            max_llm_calls: 单次会话的 LLM 调用总次数上限，<= 0 表示不限制。
            config_file: LLM 配置文件路径（可选，不传则自动搜索）。
        """
        self._config_loader = LLMConfigLoader(
            llm_config=llm_config, config_file=config_file,
        )
        self._budget = BudgetState(max_calls=max_llm_calls)
        self._adapters: Dict[str, Any] = {}

        for role, info in self._config_loader.summary().items():
            logger.info(
                "模型路由: %s → %s/%s (url=%s, key=%s)",
                role, info["platform"], info["model"], info["url"], info["api_key"],
            )
        if self._budget.is_unlimited:
            logger.info("LLM 调用次数: 不限制")
        else:
            logger.info("LLM 调用次数上限: %d", max_llm_calls)

    @property
    def budget(self) -> BudgetState:
        return self._budget

    def get_model_backend(self, role: str) -> Any:
        """获取角色对应的适配器实例（带缓存）。

        Raises:
            ConfigurationError: 角色配置缺失或不完整。
        """
        if role in self._adapters:
            return self._adapters[role]

        config = self._config_loader.resolve(role)
        try:
            adapter = self._create_adapter(config)
        except ValueError as e:
            raise ConfigurationError(f"角色 '{role}' 的适配器无法创建: {e}") from e

        self._adapters[role] = adapter
        logger.info(
            "LLM 适配器已创建: role=%s, api_mode=%s, model=%s, url=%s",
            role, config.api_mode, config.model_name, config.url or "(default)",
        )
        return adapter

    @staticmethod
    def _create_adapter(config: ModelEndpointConfig) -> Any:
        from grouper.llm.adapters import AnthropicAdapter, ChatCompletionsAdapter

        if config.api_mode == "anthropic":
            return AnthropicAdapter.from_endpoint_config(config)
        return ChatCompletionsAdapter.from_endpoint_config(config)

    # =========================================================================
    # 调用次数控制 / Budget control
    # =========================================================================

    def check_budget(self, role: str) -> bool:
        """检查是否还允许调用。 / Whether another call is allowed."""
        if self._budget.is_exceeded:
            logger.warning(
                "LLM 调用次数已达上限 (%d/%d)，拒绝角色 %s 的调用",
                self._budget.total_calls, self._budget.max_calls, role,
            )
            return False
        return True

    def record_call(self, role: str) -> None:
        self._budget.record_call(role)
