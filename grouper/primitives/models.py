# models.py
# =============================================================================
# 本模块定义 Grouper 焦点小组引擎的核心数据模型。
# 包含：Message、MessageVariant、MessageVariants、Positioning、Participant、
#       FocusGroup、LikertRating、Reaction、SpecificReaction、
#       MessageVariantScore、NewMessageWordings 等不可变结构。
# =============================================================================

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional, Protocol, Sequence, Tuple, Union

from grouper.errors import ConfigurationError


# =============================================================================
# 信息 / Messages
# =============================================================================


@dataclass(frozen=True)
class Message:
    """待评估的逻辑信息。 / A logical message to be evaluated.

    身份仅由 id 决定；content 是语义内容，objective 与 deliverable 是
    提供给预言机的提示上下文，在整个会话中保持不变。
    """

    id: str
    content: str = field(compare=False)
    objective: str = field(compare=False, default="")
    deliverable: str = field(compare=False, default="")


@dataclass(frozen=True)
class MessageVariant:
    """一条信息的具体措辞。 / One concrete wording of a Message."""

    message: Message
    wording: str


@dataclass(frozen=True)
class MessageVariants:
    """同一条信息当前正在测试的全部措辞。"""

    message: Message
    expressions: Tuple[MessageVariant, ...]

    @classmethod
    def of(cls, message: Message, *wordings: str) -> MessageVariants:
        return cls(
            message=message,
            expressions=tuple(MessageVariant(message, w) for w in wordings),
        )


@dataclass(frozen=True)
class Positioning:
    """一轮迭代中测试的全部信息与措辞。 / Everything tested in one iteration.

    当前只演化第一个 MessageVariants（多信息演化尚未实现）。
    """

    message_variants: Tuple[MessageVariants, ...]

    @property
    def variants(self) -> List[MessageVariant]:
        """按顺序展开的全部措辞。 / All variants, flattened in order."""
        return [v for mv in self.message_variants for v in mv.expressions]


# =============================================================================
# 参与者 / Participants
# =============================================================================


class Participant(Protocol):
    """焦点小组参与者的能力集合。 / Capability set of a focus group participant.

    id 必须唯一：同名参与者可以使用不同模型。
    llm 是模型选择器（LLM 配置中的角色名）。
    population_percentage 未预先归一化，由 FocusGroup 负责归一化。
    """

    @property
    def id(self) -> str: ...

    @property
    def name(self) -> str: ...

    @property
    def llm(self) -> str: ...

    @property
    def population_percentage(self) -> float: ...

    def contribution(self) -> str: ...


@dataclass(frozen=True)
class PromptedParticipant:
    """由身份描述完全决定其提示贡献的参与者。"""

    name: str
    identity: str
    llm: str
    population_percentage: float = 1.0

    @property
    def id(self) -> str:
        return f"{self.name}-{self.llm}"

    def contribution(self) -> str:
        return f"NAME: {self.name}\nIDENTITY:\n{self.identity.strip()}\n"

    @classmethod
    def against(
        cls,
        name: str,
        identity: str,
        llms: Sequence[str],
        population_percentage: float = 1.0,
    ) -> List[PromptedParticipant]:
        """同一人设在多个模型上各建一个参与者。 / One participant per model selector."""
        return [
            cls(name=name, identity=identity, llm=llm,
                population_percentage=population_percentage)
            for llm in llms
        ]


class FocusGroup:
    """可在多次测试中复用的焦点小组。 / Focus group reusable across tests."""

    def __init__(self, participants: Sequence[Participant]) -> None:
        seen: Dict[str, Participant] = {}
        for p in participants:
            if p.id in seen:
                raise ConfigurationError(f"焦点小组中存在重复的参与者 id: {p.id}")
            if p.population_percentage <= 0:
                raise ConfigurationError(
                    f"参与者 {p.id} 的 population_percentage 必须为正数，"
                    f"当前为 {p.population_percentage}"
                )
            seen[p.id] = p
        self._participants: Tuple[Participant, ...] = tuple(seen.values())

    @property
    def participants(self) -> Tuple[Participant, ...]:
        return self._participants

    def __len__(self) -> int:
        return len(self._participants)

    def normalized_weight(self, participant: Participant) -> float:
        """参与者权重 / 全组权重之和，每次调用重新计算。"""
        total = sum(p.population_percentage for p in self._participants)
        return participant.population_percentage / total

    def __repr__(self) -> str:
        return f"FocusGroup({[p.id for p in self._participants]})"


# =============================================================================
# 反应 / Reactions
# =============================================================================


class LikertRating(enum.Enum):
    """五级李克特量表，线性映射到 [0.0, 1.0]。 / 5-point Likert scale."""

    STRONGLY_DISAGREE = 0.0
    DISAGREE = 0.25
    NEUTRAL = 0.5
    AGREE = 0.75
    STRONGLY_AGREE = 1.0

    def score(self) -> float:
        return self.value

    @classmethod
    def from_label(cls, label: str) -> LikertRating:
        """容忍大小写、空格与连字符。 / Accepts "strongly agree", "Strongly-Agree", ..."""
        key = label.strip().upper().replace("-", "_").replace(" ", "_")
        return cls[key]


@dataclass(frozen=True)
class ScaledRating:
    """连续评分，score() 截断到 [0, 1]。 / Continuous rating clamped to [0, 1]."""

    value: float

    def score(self) -> float:
        return max(0.0, min(1.0, float(self.value)))


Rating = Union[LikertRating, ScaledRating]


@dataclass(frozen=True)
class Reaction:
    """预言机输出的结构化反应。"""

    positives: str
    negatives: str
    quotes: Tuple[str, ...]
    rating: Rating

    @property
    def score(self) -> float:
        return self.rating.score()


@dataclass(frozen=True)
class ParticipantMessagePresentation:
    """参与者与措辞的组合: 最小工作单元。 / The atomic unit of work."""

    participant: Participant
    message_variant: MessageVariant

    @property
    def key(self) -> Tuple[str, MessageVariant]:
        return (self.participant.id, self.message_variant)


@dataclass(frozen=True)
class SpecificReaction:
    """一次完成的评估。 / One completed evaluation."""

    presentation: ParticipantMessagePresentation
    reaction: Reaction
    timestamp: datetime


@dataclass(frozen=True)
class MessageVariantScore:
    """某措辞在所有反应上的聚合得分。"""

    message_variant: MessageVariant
    average_score: float
    normalized_score: float
    count: int


@dataclass(frozen=True)
class NewMessageWordings:
    """创意预言机的输出：反馈摘要与新措辞。"""

    summary: str
    wordings: Tuple[str, ...]
    creative: Optional[str] = None
