"""创意 Agent：基于 LLM 的创意预言机。 / LLM-backed creative oracle.

每次改写都从人设名单中随机挑选一位创意人设，让不同迭代带上不同的视角。
/ Each rewrite draws a creative persona at random from the roster.
"""

import logging
import random
from typing import Awaitable, Callable, List, Optional, Sequence

from grouper.config import DEFAULT_CREATIVE, CreativePersona
from grouper.errors import EVOLUTION_FAILED, EvolutionError
from grouper.primitives.models import NewMessageWordings
from grouper.prompts import (
    CREATIVE_SYSTEM_PROMPT,
    CREATIVE_USER_PROMPT,
    RETRY_JSON_PREFIX,
)
from grouper.utils.json_parser import parse_json_from_llm

logger = logging.getLogger(__name__)


class CreativeAgent:
    """总结焦点小组反馈并提出新措辞。"""

    def __init__(
        self,
        llm_caller: Callable[..., Awaitable[str]],
        creatives: Optional[Sequence[CreativePersona]] = None,
        random_seed: Optional[int] = None,
        max_retries: int = 1,
        show_prompts: bool = False,
    ):
        self._llm_caller = llm_caller
        self._creatives: List[CreativePersona] = list(creatives or [DEFAULT_CREATIVE])
        self._rng = random.Random(random_seed)
        self._max_retries = max_retries
        self._prompt_log_level = logging.INFO if show_prompts else logging.DEBUG

    def next_creative(self) -> CreativePersona:
        return self._rng.choice(self._creatives)

    async def rewrite(
        self,
        *,
        feedback: str,
        max_words: int,
        max_variants: int,
        current_best: str,
    ) -> NewMessageWordings:
        """返回反馈摘要与新措辞。

        Raises:
            EvolutionError: LLM 调用失败，或重试耗尽后输出仍不可用。
        """
        creative = self.next_creative()
        logger.info(f"本轮创意人设: {creative.role}")
        system_prompt = CREATIVE_SYSTEM_PROMPT.format(persona=creative.contribution())
        user_prompt = CREATIVE_USER_PROMPT.format(
            feedback=feedback,
            max_variants=max_variants,
            max_words=max_words,
            current_best=current_best or "(none yet)",
        )
        logger.log(
            self._prompt_log_level,
            f"创意提示词:\n{system_prompt}\n{user_prompt}",
        )

        last_error: Optional[Exception] = None
        prompt = user_prompt
        for attempt in range(1 + self._max_retries):
            try:
                raw = await self._llm_caller(
                    system_prompt=system_prompt, user_prompt=prompt,
                )
                data = parse_json_from_llm(raw, required=("wordings",))
                wordings = data["wordings"]
                if isinstance(wordings, str):
                    wordings = [wordings]
                return NewMessageWordings(
                    summary=str(data.get("summary", "")).strip(),
                    wordings=tuple(str(w) for w in wordings),
                    creative=creative.role,
                )
            except RuntimeError as e:
                raise EvolutionError(
                    f"创意 Agent 的 LLM 调用失败: {e}", code=EVOLUTION_FAILED,
                ) from e
            except (ValueError, KeyError, TypeError) as e:
                last_error = e
                logger.warning(
                    f"创意 Agent 第 {attempt + 1}/{1 + self._max_retries} 次失败: {e}"
                )
                prompt = RETRY_JSON_PREFIX.format(error=e) + user_prompt

        raise EvolutionError(
            f"创意 Agent 在 {1 + self._max_retries} 次尝试后仍失败: {last_error}",
            code=EVOLUTION_FAILED,
        ) from last_error
