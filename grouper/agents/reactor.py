"""参与者反应 Agent：基于 LLM 的反应预言机。 / LLM-backed reaction oracle.

参与者 Agent 只知道： / A participant only knows:
1. 自己的人设描述 / Its own persona
2. 被呈现的措辞、目标与交付形式 / The wording, objective and deliverable shown

不知道：其他参与者、其他措辞、历史得分。
/ Unaware of: other participants, other wordings, past scores.
"""

import logging
from typing import Any, Awaitable, Callable, Dict, Optional

from grouper.errors import OracleError
from grouper.primitives.models import LikertRating, Reaction, ScaledRating
from grouper.prompts import (
    PARTICIPANT_DELIVERABLE_LINE,
    PARTICIPANT_SYSTEM_PROMPT,
    PARTICIPANT_USER_PROMPT,
    RETRY_JSON_PREFIX,
)
from grouper.utils.json_parser import parse_json_from_llm

logger = logging.getLogger(__name__)

LLMCaller = Callable[..., Awaitable[str]]

DEFAULT_PARTICIPANT_ROLE = "participant"


class ParticipantReactor:
    """把一位参与者的人设与一条措辞交给 LLM，解析出 Reaction。

    llm_caller_for(role) 返回该模型选择器的调用函数，
    签名为 async (*, system_prompt, user_prompt) -> str。
    """

    def __init__(
        self,
        llm_caller_for: Callable[[str], LLMCaller],
        max_retries: int = 1,
        show_prompts: bool = False,
        default_role: str = DEFAULT_PARTICIPANT_ROLE,
    ):
        self._llm_caller_for = llm_caller_for
        self._max_retries = max_retries
        self._prompt_log_level = logging.INFO if show_prompts else logging.DEBUG
        self._default_role = default_role

    async def evaluate(
        self,
        *,
        contribution: str,
        wording: str,
        objective: str,
        deliverable: str,
        llm: Optional[str] = None,
    ) -> Reaction:
        role = llm or self._default_role
        caller = self._llm_caller_for(role)
        system_prompt = PARTICIPANT_SYSTEM_PROMPT.format(contribution=contribution)
        user_prompt = self._build_user_prompt(wording, objective, deliverable)
        logger.log(
            self._prompt_log_level,
            f"[{role}] 参与者提示词:\n{system_prompt}\n{user_prompt}",
        )

        last_error: Optional[Exception] = None
        prompt = user_prompt
        for attempt in range(1 + self._max_retries):
            try:
                raw = await caller(system_prompt=system_prompt, user_prompt=prompt)
                return self._parse_reaction(raw)
            except RuntimeError as e:
                # 适配器已用尽自身的重试 / Adapter has already spent its own retries
                raise OracleError(
                    f"参与者反应的 LLM 调用失败 (model={role}): {e}"
                ) from e
            except (ValueError, KeyError, TypeError) as e:
                last_error = e
                logger.warning(
                    f"参与者反应第 {attempt + 1}/{1 + self._max_retries} 次失败 "
                    f"(model={role}, wording={wording[:40]!r}): {e}"
                )
                prompt = RETRY_JSON_PREFIX.format(error=e) + user_prompt

        raise OracleError(
            f"参与者反应在 {1 + self._max_retries} 次尝试后仍失败 "
            f"(model={role}): {last_error}"
        )

    @staticmethod
    def _build_user_prompt(wording: str, objective: str, deliverable: str) -> str:
        deliverable_line = (
            PARTICIPANT_DELIVERABLE_LINE.format(deliverable=deliverable)
            if deliverable else ""
        )
        return PARTICIPANT_USER_PROMPT.format(
            wording=wording,
            objective=objective,
            deliverable_line=deliverable_line,
        )

    @staticmethod
    def _parse_reaction(raw: str) -> Reaction:
        data: Dict[str, Any] = parse_json_from_llm(raw)
        if "rating" in data:
            rating = LikertRating.from_label(str(data["rating"]))
        elif "score" in data:
            rating = ScaledRating(float(data["score"]))
        else:
            raise ValueError(f"反应中缺少 rating 或 score 字段: {data}")

        quotes = data.get("quotes") or []
        if isinstance(quotes, str):
            quotes = [quotes]
        return Reaction(
            positives=str(data.get("positives", "")),
            negatives=str(data.get("negatives", "")),
            quotes=tuple(str(q) for q in quotes),
            rating=rating,
        )
