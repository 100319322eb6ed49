# errors.py
# =============================================================================
# Grouper 异常定义 / Grouper exception definitions
#
# 所有领域异常携带错误码与诊断信息，便于上层按 code 分支处理。
# / Every domain error carries an error code and a diagnostic message.
# =============================================================================

from __future__ import annotations

from typing import Optional


# -----------------------------------------------------------------------------
# 错误码 / Error codes
# -----------------------------------------------------------------------------
CONFIG_INVALID = "CONFIG_INVALID"
EMPTY_SESSION = "EMPTY_SESSION"
ORACLE_FAILED = "ORACLE_FAILED"
BUDGET_EXCEEDED = "BUDGET_EXCEEDED"
EVOLUTION_EMPTY = "EVOLUTION_EMPTY"
EVOLUTION_FAILED = "EVOLUTION_FAILED"


class GrouperError(Exception):
    """Grouper 基础异常: 携带错误码与诊断信息。"""

    def __init__(self, code: str, message: str) -> None:
        self.code = code
        self.message = message
        super().__init__(f"[{code}] {message}")


class ConfigurationError(GrouperError):
    """配置缺失、非法，或会话输入为空时抛出。 / Invalid config or empty session input."""

    def __init__(self, message: str, code: str = CONFIG_INVALID) -> None:
        super().__init__(code, message)


class OracleError(GrouperError):
    """反应预言机调用失败。 / Reaction oracle call failed.

    由 dispatcher 抛出时带上失败组合的 participant_id 与 wording。
    """

    def __init__(
        self,
        message: str,
        participant_id: Optional[str] = None,
        wording: Optional[str] = None,
        code: str = ORACLE_FAILED,
    ) -> None:
        self.participant_id = participant_id
        self.wording = wording
        super().__init__(code, message)


class BudgetExceededError(OracleError):
    """LLM 调用次数已达上限。 / LLM call budget exhausted."""

    def __init__(self, message: str) -> None:
        super().__init__(message, code=BUDGET_EXCEEDED)


class EvolutionError(GrouperError):
    """演化步骤失败：创意预言机调用失败或未返回可用措辞。

    / Evolution failed: the creative oracle errored or returned no usable wordings.
    """

    def __init__(self, message: str, code: str = EVOLUTION_EMPTY) -> None:
        super().__init__(code, message)
