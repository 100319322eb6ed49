# agents/__init__.py
# 基于 LLM 的预言机实现 / LLM-backed oracle implementations

from grouper.agents.creative import CreativeAgent
from grouper.agents.reactor import ParticipantReactor

__all__ = ["CreativeAgent", "ParticipantReactor"]
