"""
Text-generation backends used for service-assisted merges.

Each backend turns a prompt into the raw completion text of one provider's
HTTP API. Exactly one backend is selected per run from configuration.
"""

import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional, Type

import httpx

from kb_consolidator.config.models import AIProvider, ConsolidatorConfig, ProviderConfig
from kb_consolidator.core.errors import (
    BackendRequestError,
    ConfigurationError,
    MergeResponseError
)

logger = logging.getLogger(__name__)

MAX_TOKENS = 1000
TEMPERATURE = 0.1
ANTHROPIC_VERSION = '2023-06-01'


class MergeBackend(ABC):
    """Base class for provider request/response shapes."""

    provider: str = ''

    def __init__(
        self,
        settings: ProviderConfig,
        timeout: float = 30.0,
        transport: Optional[httpx.BaseTransport] = None
    ):
        """
        Initialize the backend.

        Args:
            settings: API key, model and base URL of the provider
            timeout: Request timeout in seconds
            transport: Optional httpx transport (used by tests)
        """
        self.settings = settings
        self.timeout = timeout
        self.transport = transport

    @property
    def model(self) -> str:
        return self.settings.model

    @abstractmethod
    def _endpoint(self) -> str:
        pass

    @abstractmethod
    def _headers(self) -> Dict[str, str]:
        pass

    @abstractmethod
    def _payload(self, prompt: str) -> Dict[str, Any]:
        pass

    @abstractmethod
    def _extract_text(self, body: Any) -> str:
        pass

    def complete(self, prompt: str) -> str:
        """
        Send the prompt and return the completion text.

        Raises:
            BackendRequestError: On transport failure, timeout or non-success status
            MergeResponseError: If the response body is not the expected JSON
        """
        url = self._endpoint()
        logger.debug(f"POST {url} (model={self.model})")

        try:
            with httpx.Client(timeout=self.timeout, transport=self.transport) as client:
                response = client.post(url, json=self._payload(prompt), headers=self._headers())
        except httpx.TimeoutException:
            raise BackendRequestError(f"Request to {url} timed out after {self.timeout}s")
        except (httpx.HTTPError, httpx.InvalidURL) as e:
            raise BackendRequestError(f"HTTP request failed: {e}")

        if not response.is_success:
            raise BackendRequestError(
                f"API request failed with status {response.status_code}: {response.text[:200]}",
                status_code=response.status_code
            )

        try:
            body = response.json()
        except ValueError as e:
            raise MergeResponseError(f"Invalid JSON response: {e}")

        try:
            text = self._extract_text(body)
        except (KeyError, IndexError, TypeError):
            raise MergeResponseError(f"Unexpected {self.provider} response shape")

        return text if isinstance(text, str) else ''


class OpenAIBackend(MergeBackend):
    """Chat completions shape: bearer token, text at choices[0].message.content."""

    provider = AIProvider.OPENAI.value

    def _endpoint(self) -> str:
        return f"{self.settings.base_url}/chat/completions"

    def _headers(self) -> Dict[str, str]:
        return {
            'Authorization': f"Bearer {self.settings.api_key}",
            'Content-Type': 'application/json',
        }

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            'model': self.model,
            'messages': [{'role': 'user', 'content': prompt}],
            'max_tokens': MAX_TOKENS,
            'temperature': TEMPERATURE,
        }

    def _extract_text(self, body: Any) -> str:
        return body['choices'][0]['message']['content']


class AnthropicBackend(MergeBackend):
    """Messages shape: API key and version headers, text at content[0].text."""

    provider = AIProvider.ANTHROPIC.value

    def _endpoint(self) -> str:
        return f"{self.settings.base_url}/v1/messages"

    def _headers(self) -> Dict[str, str]:
        return {
            'x-api-key': self.settings.api_key,
            'anthropic-version': ANTHROPIC_VERSION,
            'Content-Type': 'application/json',
        }

    def _payload(self, prompt: str) -> Dict[str, Any]:
        return {
            'model': self.model,
            'max_tokens': MAX_TOKENS,
            'messages': [{'role': 'user', 'content': prompt}],
        }

    def _extract_text(self, body: Any) -> str:
        return body['content'][0]['text']


def validate_settings(provider: str, settings: ProviderConfig) -> None:
    """
    Reject base URLs and API keys that could never form a valid request.

    Raises:
        ConfigurationError: If the base URL is not an absolute http(s) URL or
            the API key cannot be sent as a header value
    """
    try:
        url = httpx.URL(settings.base_url)
    except httpx.InvalidURL as e:
        raise ConfigurationError(f"Invalid {provider} base URL {settings.base_url!r}: {e}")

    if url.scheme not in ('http', 'https') or not url.host:
        raise ConfigurationError(
            f"{provider} base URL must be an absolute http(s) URL, got {settings.base_url!r}"
        )

    key = settings.api_key
    if not key.isascii() or not key.isprintable():
        raise ConfigurationError(f"{provider} API key contains unsupported characters")


BACKENDS: Dict[str, Type[MergeBackend]] = {
    OpenAIBackend.provider: OpenAIBackend,
    AnthropicBackend.provider: AnthropicBackend,
}


def create_backend(
    config: ConsolidatorConfig,
    transport: Optional[httpx.BaseTransport] = None
) -> MergeBackend:
    """
    Create the backend selected by the configuration.

    Args:
        config: Run configuration
        transport: Optional httpx transport (used by tests)

    Returns:
        MergeBackend: Backend for the configured provider

    Raises:
        ConfigurationError: If the provider is unsupported, has no API key or
            has an unusable base URL or key
    """
    backend_class = BACKENDS.get(config.ai_provider)
    if backend_class is None:
        raise ConfigurationError(
            f"Unsupported AI provider: {config.ai_provider} "
            f"(expected one of: {', '.join(sorted(BACKENDS))})"
        )

    settings = config.provider_config()
    if not settings.has_credentials:
        raise ConfigurationError(f"{config.ai_provider} API key not configured")
    validate_settings(config.ai_provider, settings)

    return backend_class(settings, timeout=config.request_timeout, transport=transport)
