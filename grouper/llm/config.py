# config.py
# =============================================================================
# LLM 配置加载与合并模块 / LLM config loading & merging module
#
# 职责 / Responsibilities:
#   - 定义单个模型端点的配置（ModelEndpointConfig）
#     / Define the configuration of one model endpoint
#   - 三层优先级合并：代码传入 > 配置文件 > 环境变量
#     / Three-tier priority merge: code > config file > env vars
#   - 角色即模型选择器：参与者的 llm 字段与创意角色 "creative"
#     / Roles are model selectors: each participant's llm, plus "creative"
#   - 配置缺失时抛出 ConfigurationError，不提供硬编码默认模型
#     / Missing config raises ConfigurationError; no hardcoded models
# =============================================================================

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from grouper.errors import ConfigurationError

logger = logging.getLogger(__name__)

CREATIVE_ROLE = "creative"

_VALID_API_MODES = ("chat_completions", "anthropic")


# =============================================================================
# 数据结构 / Data Structures
# =============================================================================


@dataclass
class ModelEndpointConfig:
    """单个模型端点的完整配置。 / Complete config for a single model endpoint."""

    model_platform: str  # "openai" / "anthropic"
    model_name: str
    api_key: Optional[str] = None
    url: Optional[str] = None
    # "chat_completions"（默认，OpenAI 兼容） / "anthropic"（Messages API）
    api_mode: str = "chat_completions"
    temperature: float = 0.7
    max_tokens: Optional[int] = 2048
    timeout: Optional[float] = None
    max_retries: int = 3
    extra: Dict[str, Any] = field(default_factory=dict)

    @classmethod
    def from_dict(cls, data: Any) -> ModelEndpointConfig:
        """从字典或模型名简写构建配置。 / Build from a dict or a bare model name."""
        if isinstance(data, str):
            return cls(model_platform=_infer_platform(data), model_name=data)

        model_name = data.get("model_name") or data.get("model", "")
        model_platform = data.get("model_platform") or _infer_platform(model_name)
        api_mode = data.get("api_mode") or _infer_api_mode(
            model_platform, data.get("url"),
        )
        if api_mode not in _VALID_API_MODES:
            raise ConfigurationError(
                f"不支持的 api_mode: '{api_mode}'。"
                f"仅支持: {', '.join(_VALID_API_MODES)}。"
            )

        known = {
            "model", "model_name", "model_platform", "api_key", "url",
            "api_mode", "temperature", "max_tokens", "timeout", "max_retries",
        }
        return cls(
            model_platform=model_platform,
            model_name=model_name,
            api_key=data.get("api_key"),
            url=data.get("url"),
            api_mode=api_mode,
            temperature=float(data.get("temperature", 0.7)),
            max_tokens=data["max_tokens"] if "max_tokens" in data else 2048,
            timeout=data.get("timeout"),
            max_retries=int(data.get("max_retries", 3)),
            extra={k: v for k, v in data.items() if k not in known},
        )


def _infer_platform(model_name: str) -> str:
    """Claude 系列归 anthropic，其余一律按 OpenAI 兼容端点处理。"""
    if "claude" in model_name.lower():
        return "anthropic"
    return "openai"


def _infer_api_mode(platform: str, url: Optional[str] = None) -> str:
    """官方 Anthropic 端点走 Messages API，其余走 Chat Completions。"""
    if (platform or "").lower() == "anthropic" and not url:
        return "anthropic"
    return "chat_completions"


# =============================================================================
# 配置加载器 / Config Loader
# =============================================================================


class LLMConfigLoader:
    """LLM 配置加载器: 三层优先级合并。 / Three-tier priority config loader.

    llm_config 字典格式 / Dict format:
    {
        "_default": {"model_platform": "openai", "api_key": "${OPENAI_API_KEY}",
                     "url": "https://api.openai.com/v1"},
        "nano": "gpt-4.1-nano",
        "nano_warm": {"model_name": "gpt-4.1-nano", "temperature": 0.9},
        "haiku": {"model_name": "claude-haiku-4-5", "api_key": "${ANTHROPIC_API_KEY}"},
        "creative": {"model_name": "gpt-4.1", "temperature": 0.9},
    }
    """

    _CONFIG_SEARCH_PATHS = [
        "llm_config.yaml",
        "llm_config.yml",
        "config/llm_config.yaml",
        "config/llm_config.yml",
    ]

    def __init__(
        self,
        llm_config: Optional[Dict[str, Any]] = None,
        config_file: Optional[str] = None,
    ):
        self._code_config = llm_config or {}
        self._file_config: Dict[str, Any] = {}
        self._load_config_file(config_file)

    def _load_config_file(self, config_file: Optional[str]) -> None:
        if config_file:
            path = Path(config_file)
            if path.exists():
                self._file_config = self._read_yaml(path)
                logger.info("LLM 配置文件已加载: %s", path)
            else:
                logger.warning("指定的 LLM 配置文件不存在: %s", path)
            return

        for search_path in self._CONFIG_SEARCH_PATHS:
            path = Path(search_path)
            if path.exists():
                self._file_config = self._read_yaml(path)
                logger.info("自动发现 LLM 配置文件: %s", path)
                return
        logger.debug("未发现 LLM 配置文件，将依赖代码配置")

    @staticmethod
    def _read_yaml(path: Path) -> Dict[str, Any]:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        return _expand_env_vars(raw)

    def resolve(self, role: str) -> ModelEndpointConfig:
        """解析角色的完整模型配置。 / Resolve the endpoint config of a role.

        合并顺序（后者覆盖前者）：文件 _default → 文件角色 → 代码 _default → 代码角色。

        Raises:
            ConfigurationError: 合并后仍没有 model_name。
        """
        merged: Dict[str, Any] = {}
        for source in (self._file_config, self._code_config):
            default = source.get("_default", {})
            if isinstance(default, dict):
                merged.update({k: v for k, v in default.items() if v is not None})
        for source in (self._file_config, self._code_config):
            entry = source.get(role)
            if isinstance(entry, str):
                merged["model_name"] = entry
                merged.pop("model", None)
            elif isinstance(entry, dict):
                merged.update({k: v for k, v in entry.items() if v is not None})

        model_name = merged.get("model_name") or merged.get("model", "")
        if not model_name:
            raise ConfigurationError(
                f"角色 '{role}' 的 LLM 模型配置缺失：未找到 model_name。"
                f"已搜索：代码传入 llm_config['{role}']、"
                f"配置文件 '{role}' 节、_default 全局配置。"
            )
        merged["model_name"] = model_name
        return ModelEndpointConfig.from_dict(merged)

    def all_configured_roles(self) -> List[str]:
        roles = set()
        for cfg in (self._code_config, self._file_config):
            roles.update(k for k in cfg.keys() if not k.startswith("_"))
        return sorted(roles)

    def summary(self) -> Dict[str, Dict[str, str]]:
        """配置摘要（隐藏 API Key），用于日志。 / Config summary with masked keys."""
        result = {}
        for role in self.all_configured_roles():
            try:
                cfg = self.resolve(role)
            except ConfigurationError as e:
                logger.debug("跳过无法解析的角色 %s: %s", role, e)
                continue
            result[role] = {
                "platform": cfg.model_platform,
                "model": cfg.model_name,
                "url": cfg.url or "(auto)",
                "api_key": _mask_key(cfg.api_key),
            }
        return result


# =============================================================================
# 工具函数 / Utility Functions
# =============================================================================

_ENV_REF = re.compile(r"\$\{([^}]+)\}")


def _expand_env_vars(obj: Any) -> Any:
    """递归展开 ${VAR} 与 ${VAR:-default} 引用。 / Recursively expand env refs."""
    if isinstance(obj, str):
        def _replace(match):
            var_expr = match.group(1)
            if ":-" in var_expr:
                var_name, default = var_expr.split(":-", 1)
                return os.environ.get(var_name.strip(), default.strip())
            return os.environ.get(var_expr.strip(), match.group(0))

        return _ENV_REF.sub(_replace, obj)
    if isinstance(obj, dict):
        return {k: _expand_env_vars(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_expand_env_vars(item) for item in obj]
    return obj


def _mask_key(key: Optional[str]) -> str:
    """遮蔽 API Key，仅显示前 8 位和后 4 位。"""
    if not key:
        return "(env)"
    if len(key) <= 12:
        return key[:3] + "***"
    return key[:8] + "..." + key[-4:]
