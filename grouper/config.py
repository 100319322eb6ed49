# config.py
# =============================================================================
# 会话配置加载 / Session configuration loading
#
# 职责 / Responsibilities:
#   - 定义焦点小组会话的运行参数（GrouperConfig）
#     / Define the run parameters of a focus group session
#   - 从 YAML 文件的 grouper: 节加载，代码传入的覆盖项优先
#     / Load the grouper: section of a YAML file; code overrides win
#   - 非法配置在构造时即抛出 ConfigurationError
#     / Invalid values raise ConfigurationError at construction
# =============================================================================

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml

from grouper.errors import ConfigurationError
from grouper.llm.config import _expand_env_vars

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CreativePersona:
    """负责改写措辞的创意人设。 / Creative persona that rewrites wordings."""

    role: str
    goal: str
    backstory: str

    def contribution(self) -> str:
        return (
            f"ROLE: {self.role}\n"
            f"GOAL: {self.goal}\n"
            f"BACKSTORY:\n{self.backstory.strip()}\n"
        )


DEFAULT_CREATIVE = CreativePersona(
    role="Creative director",
    goal="Find wordings that genuinely change how the audience feels",
    backstory="Twenty years writing public health campaigns for young audiences.",
)


@dataclass(frozen=True)
class GrouperConfig:
    """焦点小组会话配置。

    max_concurrency >= 1；max_variants >= 1；max_iterations >= 1；
    min_message_score 取值 [0, 1]；findings_word_count >= 0。
    max_llm_calls <= 0 表示不限制。
    """

    max_concurrency: int = 8
    max_variants: int = 10
    max_iterations: int = 3
    min_message_score: float = 0.8
    findings_word_count: int = 120
    show_prompts: bool = False
    max_llm_calls: int = 0
    random_seed: Optional[int] = None
    creatives: List[CreativePersona] = field(
        default_factory=lambda: [DEFAULT_CREATIVE]
    )

    def __post_init__(self) -> None:
        if self.max_concurrency < 1:
            raise ConfigurationError(
                f"max_concurrency 必须 >= 1，当前为 {self.max_concurrency}"
            )
        if self.max_variants < 1:
            raise ConfigurationError(
                f"max_variants 必须 >= 1，当前为 {self.max_variants}"
            )
        if self.max_iterations < 1:
            raise ConfigurationError(
                f"max_iterations 必须 >= 1，当前为 {self.max_iterations}"
            )
        if not 0.0 <= self.min_message_score <= 1.0:
            raise ConfigurationError(
                f"min_message_score 必须在 [0, 1] 之间，"
                f"当前为 {self.min_message_score}"
            )
        if self.findings_word_count < 0:
            raise ConfigurationError(
                f"findings_word_count 必须 >= 0，"
                f"当前为 {self.findings_word_count}"
            )

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GrouperConfig:
        """从字典构建配置，兼容 camelCase 键。 / Build from dict; camelCase keys accepted.

        未识别的键记录警告后忽略。
        """
        normalized = {_snake_case(k): v for k, v in (data or {}).items()}
        known = {
            "max_concurrency", "max_variants", "max_iterations",
            "min_message_score", "findings_word_count", "show_prompts",
            "max_llm_calls", "random_seed", "creatives",
        }
        unknown = sorted(set(normalized) - known)
        if unknown:
            logger.warning("忽略未识别的 grouper 配置项: %s", unknown)

        kwargs: Dict[str, Any] = {}
        for key in ("max_concurrency", "max_variants", "max_iterations",
                    "findings_word_count", "max_llm_calls"):
            if key in normalized:
                kwargs[key] = int(normalized[key])
        if "min_message_score" in normalized:
            kwargs["min_message_score"] = float(normalized["min_message_score"])
        if "show_prompts" in normalized:
            flag = normalized["show_prompts"]
            if isinstance(flag, str):
                flag = flag.strip().lower() in ("1", "true", "yes", "on")
            kwargs["show_prompts"] = bool(flag)
        if normalized.get("random_seed") is not None:
            kwargs["random_seed"] = int(normalized["random_seed"])
        if normalized.get("creatives"):
            kwargs["creatives"] = [
                _parse_creative(c) for c in normalized["creatives"]
            ]
        return cls(**kwargs)


def _parse_creative(data: Any) -> CreativePersona:
    if not isinstance(data, dict):
        raise ConfigurationError(f"creatives 条目必须是字典: {data!r}")
    try:
        return CreativePersona(
            role=str(data["role"]),
            goal=str(data.get("goal", "")),
            backstory=str(data.get("backstory", "")),
        )
    except KeyError as e:
        raise ConfigurationError(f"creatives 条目缺少字段 {e}: {data!r}") from e


def _snake_case(key: str) -> str:
    out = []
    for ch in key:
        if ch.isupper():
            out.append("_")
            out.append(ch.lower())
        else:
            out.append(ch)
    return "".join(out).lstrip("_")


# 配置文件搜索路径（按优先级） / Config file search paths (by priority)
_CONFIG_SEARCH_PATHS = [
    "grouper.yaml",
    "grouper.yml",
    "config/grouper.yaml",
    "config/grouper.yml",
]


def load_grouper_config(
    config_file: Optional[str] = None,
    overrides: Optional[Dict[str, Any]] = None,
) -> GrouperConfig:
    """加载会话配置。 / Load session configuration.

    优先级（高→低） / Priority (high→low):
    1. overrides 代码传入 / Code-level overrides
    2. 配置文件 grouper: 节 / grouper: section of the config file
    3. GrouperConfig 默认值 / Dataclass defaults
    """
    file_config: Dict[str, Any] = {}
    path: Optional[Path] = None
    if config_file:
        path = Path(config_file)
        if not path.exists():
            raise ConfigurationError(f"指定的配置文件不存在: {path}")
    else:
        for search_path in _CONFIG_SEARCH_PATHS:
            candidate = Path(search_path)
            if candidate.exists():
                path = candidate
                break

    if path is not None:
        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}
        if not isinstance(raw, dict):
            raise ConfigurationError(f"配置文件顶层必须是字典: {path}")
        section = raw.get("grouper", raw)
        file_config = _expand_env_vars(section) or {}
        logger.info("Grouper 配置文件已加载: %s", path)
    else:
        logger.debug("未发现 grouper 配置文件，使用默认值")

    merged = dict(file_config)
    merged.update({k: v for k, v in (overrides or {}).items() if v is not None})
    return GrouperConfig.from_dict(merged)
