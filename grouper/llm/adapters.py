# adapters.py
# =============================================================================
# LLM HTTP 适配器 / LLM HTTP adapters
#
# 所有适配器暴露统一接口：async call(system_prompt, user_message) -> str
# / Every adapter exposes: async call(system_prompt, user_message) -> str
#
#   - ChatCompletionsAdapter：OpenAI 及其兼容端点（DeepSeek、Qwen、Azure 等）
#       -> response["choices"][0]["message"]["content"]
#   - AnthropicAdapter：Anthropic Messages API
#       -> response["content"][i]["text"] (type == "text")
#
# 重试在适配器内部完成，全部失败后抛出 RuntimeError。
# / Retries happen inside the adapter; RuntimeError after the last attempt.
# =============================================================================

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

import httpx

logger = logging.getLogger(__name__)

_AZURE_DOMAIN_SUFFIXES = (
    "cognitiveservices.azure.com",
    "openai.azure.com",
    "services.ai.azure.com",
)

_DEFAULT_ANTHROPIC_URL = "https://api.anthropic.com/v1/messages"
_ANTHROPIC_VERSION = "2023-06-01"


class _HttpAdapter:
    """httpx 直连适配器基类，负责请求发送与重试。"""

    api_name = "LLM API"

    def __init__(
        self,
        endpoint: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        timeout: float = 120.0,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._endpoint = endpoint
        self._model = model
        self._temperature = temperature
        self._max_tokens = max_tokens
        self._timeout = timeout
        self._max_retries = max_retries
        self._transport = transport

    @property
    def endpoint(self) -> str:
        return self._endpoint

    @property
    def model(self) -> str:
        return self._model

    async def call(self, system_prompt: str, user_message: str) -> str:
        """发送请求并返回模型文本输出。

        Raises:
            RuntimeError: 全部 max_retries + 1 次尝试均失败。
        """
        request_body = self._build_request(system_prompt, user_message)
        headers = {"Content-Type": "application/json", **self._auth_headers()}
        attempts = self._max_retries + 1

        last_error: Optional[Exception] = None
        for attempt in range(attempts):
            try:
                async with httpx.AsyncClient(
                    timeout=self._timeout, transport=self._transport,
                ) as client:
                    response = await client.post(
                        self._endpoint, headers=headers, json=request_body,
                    )
                    response.raise_for_status()
                    return self._extract_text(response.json())

            except httpx.HTTPStatusError as e:
                last_error = e
                logger.warning(
                    "%s 调用失败 (HTTP %d)，第 %d/%d 次: %s",
                    self.api_name, e.response.status_code,
                    attempt + 1, attempts, e.response.text[:200],
                )
            except httpx.RequestError as e:
                last_error = e
                logger.warning(
                    "%s 请求异常，第 %d/%d 次: %s",
                    self.api_name, attempt + 1, attempts, e,
                )
            except ValueError as e:
                # 响应体不是合法 JSON / body is not valid JSON
                last_error = e
                logger.warning(
                    "%s 响应无法解析，第 %d/%d 次: %s",
                    self.api_name, attempt + 1, attempts, e,
                )

        raise RuntimeError(
            f"{self.api_name} 调用在 {attempts} 次尝试后仍失败: {last_error}"
        )

    def _auth_headers(self) -> Dict[str, str]:
        raise NotImplementedError

    def _build_request(self, system_prompt: str, user_message: str) -> Dict[str, Any]:
        raise NotImplementedError

    def _extract_text(self, response_data: Dict[str, Any]) -> str:
        raise NotImplementedError


# =============================================================================
# OpenAI Chat Completions
# =============================================================================


class ChatCompletionsAdapter(_HttpAdapter):
    """OpenAI Chat Completions API 适配器。

    url 可以是基础 URL（自动追加 /chat/completions），也可以是完整路径。
    Azure 端点自动改用 api-key 认证头。
    """

    api_name = "Chat Completions API"

    def __init__(
        self,
        url: str,
        api_key: str,
        model: str,
        temperature: float = 0.7,
        max_tokens: Optional[int] = None,
        timeout: float = 120.0,
        max_retries: int = 3,
        api_version: Optional[str] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            endpoint=self._resolve_endpoint(url, api_version),
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            max_retries=max_retries,
            transport=transport,
        )
        self._api_key = api_key
        self._is_azure = _is_azure(url)
        if self._is_azure:
            logger.info("检测到 Azure 端点，将使用 api-key 认证头: %s", self._endpoint)

    @staticmethod
    def _resolve_endpoint(url: str, api_version: Optional[str] = None) -> str:
        parsed = urlparse(url)
        path = parsed.path
        if "/chat/completions" not in path:
            path = path.rstrip("/") + "/chat/completions"

        query_params = parse_qs(parsed.query, keep_blank_values=True)
        if api_version and "api-version" not in query_params and _is_azure(url):
            query_params["api-version"] = [api_version]

        return urlunparse(
            parsed._replace(path=path, query=urlencode(query_params, doseq=True))
        )

    def _auth_headers(self) -> Dict[str, str]:
        if self._is_azure:
            return {"api-key": self._api_key}
        return {"Authorization": f"Bearer {self._api_key}"}

    def _build_request(self, system_prompt: str, user_message: str) -> Dict[str, Any]:
        messages: List[Dict[str, str]] = []
        if system_prompt:
            messages.append({"role": "system", "content": system_prompt})
        messages.append({"role": "user", "content": user_message})

        body: Dict[str, Any] = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
        }
        if self._max_tokens is not None:
            body["max_tokens"] = self._max_tokens
        return body

    def _extract_text(self, response_data: Dict[str, Any]) -> str:
        choices = response_data.get("choices", [])
        if choices:
            content = choices[0].get("message", {}).get("content")
            if content is not None:
                return content
        logger.warning(
            "Chat Completions API 响应中未找到文本内容: %s",
            json.dumps(response_data, ensure_ascii=False)[:300],
        )
        return ""

    @classmethod
    def from_endpoint_config(cls, config) -> ChatCompletionsAdapter:
        """从 ModelEndpointConfig 创建适配器。缺少 url 或 api_key 时抛出 ValueError。"""
        if not config.url:
            raise ValueError(
                f"模型 {config.model_name} 使用 Chat Completions API，需要显式配置 url"
            )
        if not config.api_key:
            raise ValueError(
                f"模型 {config.model_name} 使用 Chat Completions API，"
                f"需要配置 api_key 或通过环境变量提供"
            )
        return cls(
            url=config.url,
            api_key=config.api_key,
            model=config.model_name,
            temperature=config.temperature,
            max_tokens=config.max_tokens,
            timeout=config.timeout or 120.0,
            max_retries=config.max_retries,
            api_version=config.extra.get("api_version"),
        )


# =============================================================================
# Anthropic Messages
# =============================================================================


class AnthropicAdapter(_HttpAdapter):
    """Anthropic Messages API 适配器。url 为空时使用官方端点。"""

    api_name = "Anthropic Messages API"

    def __init__(
        self,
        api_key: str,
        model: str,
        url: Optional[str] = None,
        temperature: float = 0.7,
        max_tokens: int = 4096,
        timeout: float = 120.0,
        max_retries: int = 3,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        super().__init__(
            endpoint=self._resolve_endpoint(url),
            model=model,
            temperature=temperature,
            max_tokens=max_tokens,
            timeout=timeout,
            max_retries=max_retries,
            transport=transport,
        )
        self._api_key = api_key

    @staticmethod
    def _resolve_endpoint(url: Optional[str]) -> str:
        if not url:
            return _DEFAULT_ANTHROPIC_URL
        parsed = urlparse(url)
        path = parsed.path
        if "/messages" not in path:
            path = path.rstrip("/") + "/messages"
        return urlunparse(parsed._replace(path=path))

    def _auth_headers(self) -> Dict[str, str]:
        return {"x-api-key": self._api_key, "anthropic-version": _ANTHROPIC_VERSION}

    def _build_request(self, system_prompt: str, user_message: str) -> Dict[str, Any]:
        body: Dict[str, Any] = {
            "model": self._model,
            "max_tokens": self._max_tokens,
            "messages": [{"role": "user", "content": user_message}],
            "temperature": self._temperature,
        }
        if system_prompt:
            body["system"] = system_prompt
        return body

    def _extract_text(self, response_data: Dict[str, Any]) -> str:
        content = response_data.get("content", [])
        if isinstance(content, list):
            for block in content:
                if isinstance(block, dict) and block.get("type") == "text":
                    return block.get("text", "")
        logger.warning(
            "Anthropic Messages API 响应中未找到文本内容: %s",
            json.dumps(response_data, ensure_ascii=False)[:300],
        )
        return ""

    @classmethod
    def from_endpoint_config(cls, config) -> AnthropicAdapter:
        """从 ModelEndpointConfig 创建适配器。缺少 api_key 时抛出 ValueError。"""
        if not config.api_key:
            raise ValueError(
                f"模型 {config.model_name} 使用 Anthropic API，"
                f"需要配置 api_key 或通过环境变量 ANTHROPIC_API_KEY 提供"
            )
        return cls(
            api_key=config.api_key,
            model=config.model_name,
            url=config.url,
            temperature=config.temperature,
            max_tokens=config.max_tokens or 4096,
            timeout=config.timeout or 120.0,
            max_retries=config.max_retries,
        )


def _is_azure(url: str) -> bool:
    hostname = urlparse(url).hostname or ""
    return any(hostname.endswith(d) for d in _AZURE_DOMAIN_SUFFIXES)
