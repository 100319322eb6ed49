# llm/__init__.py
# 模型路由、调用次数控制、LLM 配置管理与适配器 / Model routing, call budget, LLM config & adapters

from grouper.llm.adapters import AnthropicAdapter, ChatCompletionsAdapter
from grouper.llm.config import CREATIVE_ROLE, LLMConfigLoader, ModelEndpointConfig
from grouper.llm.router import BudgetState, ModelRouter

__all__ = [
    "AnthropicAdapter",
    "BudgetState",
    "ChatCompletionsAdapter",
    "CREATIVE_ROLE",
    "LLMConfigLoader",
    "ModelEndpointConfig",
    "ModelRouter",
]
