# grouper/__init__.py
# =============================================================================
# Grouper: LLM 焦点小组信息测试引擎。 / LLM focus group message testing engine.
# =============================================================================

"""Grouper: LLM 焦点小组信息测试引擎。 / LLM focus group message testing engine."""

from grouper.api.focus import focus

__version__ = "0.1.0"
__all__ = ["focus", "__version__"]
