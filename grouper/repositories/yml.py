# yml.py
# =============================================================================
# YAML 数据仓库 / YAML-backed repositories
#
# 数据目录布局 / Data directory layout:
#   <data_dir>/participants/<group>.yml
#       participants: [{name, identity, populationPercentage}]
#       llms: [model selector, ...]
#   <data_dir>/messages/<name>.yml
#       message: {id, content, objective, deliverable}
#       wordings: [...]
# =============================================================================

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

import yaml

from grouper.errors import ConfigurationError
from grouper.primitives.models import Message, MessageVariants, PromptedParticipant

logger = logging.getLogger(__name__)


def _read_yaml(path: Path) -> Dict[str, Any]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except yaml.YAMLError as e:
        raise ConfigurationError(f"YAML 文件解析失败: {path}: {e}") from e
    if not isinstance(data, dict):
        raise ConfigurationError(f"YAML 文件顶层必须是映射: {path}")
    return data


class YmlParticipantRepository:
    """按小组名加载参与者，人设 × 模型选择器展开为笛卡尔积。"""

    def __init__(self, data_dir: Union[str, Path] = "data"):
        self._dir = Path(data_dir) / "participants"

    def find_by_group(self, group: str) -> List[PromptedParticipant]:
        path = self._dir / f"{group}.yml"
        if not path.exists():
            logger.warning("参与者文件不存在: %s", path)
            return []

        data = _read_yaml(path)
        llms = [_llm_selector(entry, path) for entry in data.get("llms") or []]
        if not llms:
            raise ConfigurationError(f"{path} 未声明任何 llms")

        participants: List[PromptedParticipant] = []
        for info in data.get("participants") or []:
            if not isinstance(info, dict) or "name" not in info:
                raise ConfigurationError(f"{path} 中的参与者条目缺少 name: {info!r}")
            percentage = info.get("populationPercentage", info.get("population_percentage"))
            participants.extend(PromptedParticipant.against(
                name=str(info["name"]),
                identity=str(info.get("identity", "")),
                llms=llms,
                population_percentage=float(percentage) if percentage is not None else 1.0,
            ))
        logger.info("小组 %s: 加载 %d 位参与者 (%d 个模型)", group, len(participants), len(llms))
        return participants


def _llm_selector(entry: Any, path: Path) -> str:
    """llms 条目可以是字符串，也可以是带 model / role 键的映射。"""
    if isinstance(entry, str):
        return entry
    if isinstance(entry, dict):
        selector = entry.get("role") or entry.get("model")
        if selector:
            return str(selector)
    raise ConfigurationError(f"{path} 中无法识别的 llms 条目: {entry!r}")


class YmlMessageVariantsRepository:
    """按名称加载一条信息及其待测措辞。"""

    def __init__(self, data_dir: Union[str, Path] = "data"):
        self._dir = Path(data_dir) / "messages"

    def find_by_name(self, name: str) -> Optional[MessageVariants]:
        """文件不存在时返回 None，格式错误时抛出 ConfigurationError。"""
        path = self._dir / f"{name}.yml"
        if not path.exists():
            logger.warning("信息文件不存在: %s", path)
            return None

        data = _read_yaml(path)
        raw_message = data.get("message")
        if not isinstance(raw_message, dict) or not raw_message.get("id"):
            raise ConfigurationError(f"{path} 缺少 message.id")
        wordings = data.get("wordings") or []
        if not isinstance(wordings, list):
            raise ConfigurationError(f"{path} 的 wordings 必须是列表")

        message = Message(
            id=str(raw_message["id"]),
            content=str(raw_message.get("content", "")),
            objective=str(raw_message.get("objective", "")),
            deliverable=str(raw_message.get("deliverable", "")),
        )
        return MessageVariants.of(message, *(str(w) for w in wordings))
