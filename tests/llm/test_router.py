# test_router.py
# =============================================================================
# ModelRouter / BudgetState 单元测试 / Router & budget unit tests
# =============================================================================

import pytest

from grouper.errors import ConfigurationError
from grouper.llm.adapters import AnthropicAdapter, ChatCompletionsAdapter
from grouper.llm.router import BudgetState, ModelRouter

_NO_FILE = "/nonexistent/llm_config.yaml"

_LLM_CONFIG = {
    "_default": {"url": "https://api.openai.com/v1", "api_key": "sk-test"},
    "nano": "gpt-4.1-nano",
    "haiku": {"model_name": "claude-haiku-4-5", "url": "", "api_mode": "anthropic"},
}


class TestBudgetState:
    def test_unlimited(self):
        budget = BudgetState(max_calls=0)
        budget.record_call("nano")
        assert budget.is_unlimited
        assert not budget.is_exceeded

    def test_exceeded_at_limit(self):
        budget = BudgetState(max_calls=2)
        budget.record_call("nano")
        assert not budget.is_exceeded
        budget.record_call("creative")
        assert budget.is_exceeded
        assert budget.total_calls == 2
        assert budget.calls_by_role == {"nano": 1, "creative": 1}


class TestModelRouter:
    def test_creates_adapter_per_api_mode(self):
        router = ModelRouter(llm_config=_LLM_CONFIG, config_file=_NO_FILE)
        assert isinstance(router.get_model_backend("nano"), ChatCompletionsAdapter)
        haiku = router.get_model_backend("haiku")
        assert isinstance(haiku, AnthropicAdapter)
        assert haiku.endpoint == "https://api.anthropic.com/v1/messages"

    def test_adapters_are_cached(self):
        router = ModelRouter(llm_config=_LLM_CONFIG, config_file=_NO_FILE)
        assert router.get_model_backend("nano") is router.get_model_backend("nano")

    def test_unknown_role_raises(self):
        router = ModelRouter(llm_config=_LLM_CONFIG, config_file=_NO_FILE)
        with pytest.raises(ConfigurationError):
            router.get_model_backend("creative")

    def test_missing_api_key_is_configuration_error(self):
        router = ModelRouter(
            llm_config={"nano": {"model_name": "gpt-4.1-nano", "url": "https://x/v1"}},
            config_file=_NO_FILE,
        )
        with pytest.raises(ConfigurationError):
            router.get_model_backend("nano")

    def test_check_budget(self):
        router = ModelRouter(llm_config=_LLM_CONFIG, max_llm_calls=1, config_file=_NO_FILE)
        assert router.check_budget("nano")
        router.record_call("nano")
        assert not router.check_budget("nano")
