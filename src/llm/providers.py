"""Concrete model capabilities and backend selection.

Each backend maps its SDK's timeout and transport errors onto
:class:`ModelTimeoutError` / :class:`ModelUnavailableError` so the retry
policy in :class:`src.llm.client.ModelClient` treats them uniformly.
"""

from __future__ import annotations

import logging
from typing import Any

import anthropic
import httpx
import openai
from anthropic import Anthropic
from anthropic.types import TextBlock
from openai import AzureOpenAI, OpenAI

from src.config import Settings
from src.errors import ModelResponseError, ModelTimeoutError, ModelUnavailableError
from src.llm.base import ModelCapability

logger = logging.getLogger(__name__)


class AnthropicModel:
    name = "anthropic"

    def __init__(
        self,
        api_key: str,
        model: str = "claude-sonnet-4-20250514",
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.client = Anthropic(api_key=api_key, timeout=timeout)

    def complete(self, prompt: str, *, system: str | None = None, temperature: float = 0.1) -> str:
        kwargs: dict[str, Any] = {}
        if system:
            kwargs["system"] = system
        try:
            response = self.client.messages.create(
                model=self.model,
                max_tokens=self.max_tokens,
                temperature=temperature,
                messages=[{"role": "user", "content": prompt}],
                **kwargs,
            )
        except anthropic.APITimeoutError as exc:
            raise ModelTimeoutError(f"Anthropic request timed out: {exc}") from exc
        except anthropic.APIError as exc:
            raise ModelUnavailableError(f"Anthropic request failed: {exc}") from exc

        # We only request plain text, so every block should be a TextBlock.
        texts = [block.text for block in response.content if isinstance(block, TextBlock)]
        if not texts:
            raise ModelResponseError("Anthropic response contained no text block")
        return "".join(texts)


class OpenAIModel:
    name = "openai"

    def __init__(
        self,
        api_key: str,
        model: str = "gpt-4o-mini",
        organization: str | None = None,
        max_tokens: int = 4096,
        timeout: float = 60.0,
        client: Any = None,
    ) -> None:
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or OpenAI(api_key=api_key, organization=organization or None, timeout=timeout)

    def complete(self, prompt: str, *, system: str | None = None, temperature: float = 0.1) -> str:
        messages: list[dict[str, str]] = []
        if system:
            messages.append({"role": "system", "content": system})
        messages.append({"role": "user", "content": prompt})
        try:
            response = self.client.chat.completions.create(
                model=self.model,
                messages=messages,
                temperature=temperature,
                max_tokens=self.max_tokens,
                response_format={"type": "json_object"},
            )
        except openai.APITimeoutError as exc:
            raise ModelTimeoutError(f"{self.name} request timed out: {exc}") from exc
        except openai.APIError as exc:
            raise ModelUnavailableError(f"{self.name} request failed: {exc}") from exc

        if not response.choices:
            raise ModelResponseError(f"{self.name} response contained no choices")
        return response.choices[0].message.content or ""


class AzureOpenAIModel(OpenAIModel):
    """OpenAI chat completions served from an Azure deployment."""

    name = "azure_openai"

    def __init__(
        self,
        api_key: str,
        endpoint: str,
        deployment: str,
        api_version: str = "2024-02-15-preview",
        max_tokens: int = 4096,
        timeout: float = 60.0,
    ) -> None:
        client = AzureOpenAI(
            api_key=api_key,
            azure_endpoint=endpoint,
            api_version=api_version,
            timeout=timeout,
        )
        # Azure routes by deployment name, passed where OpenAI expects the model.
        super().__init__(api_key=api_key, model=deployment, max_tokens=max_tokens, client=client)


class OllamaModel:
    """A local model served by Ollama's ``/api/generate`` endpoint."""

    name = "ollama"

    def __init__(
        self,
        base_url: str = "http://localhost:11434",
        model: str = "llama3.1",
        max_tokens: int = 4096,
        timeout: float = 60.0,
        client: httpx.Client | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.model = model
        self.max_tokens = max_tokens
        self.client = client or httpx.Client(timeout=timeout)

    def complete(self, prompt: str, *, system: str | None = None, temperature: float = 0.1) -> str:
        payload: dict[str, Any] = {
            "model": self.model,
            "prompt": prompt,
            "stream": False,
            "format": "json",
            "options": {"temperature": float(temperature), "num_predict": int(self.max_tokens)},
        }
        if system:
            payload["system"] = system
        try:
            response = self.client.post(f"{self.base_url}/api/generate", json=payload)
            response.raise_for_status()
            data = response.json()
        except httpx.TimeoutException as exc:
            raise ModelTimeoutError(f"Ollama request timed out: {exc}") from exc
        except httpx.HTTPError as exc:
            raise ModelUnavailableError(f"Ollama request failed: {exc}") from exc
        except ValueError as exc:
            raise ModelResponseError(f"Ollama returned a non-JSON envelope: {exc}") from exc

        return str(data.get("response") or "")


def _anthropic(settings: Settings) -> ModelCapability | None:
    if not settings.anthropic_api_key:
        return None
    return AnthropicModel(
        api_key=settings.anthropic_api_key,
        model=settings.llm_model,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_seconds,
    )


def _azure(settings: Settings) -> ModelCapability | None:
    if not (settings.azure_openai_api_key and settings.azure_openai_endpoint and settings.azure_openai_deployment):
        return None
    return AzureOpenAIModel(
        api_key=settings.azure_openai_api_key,
        endpoint=settings.azure_openai_endpoint,
        deployment=settings.azure_openai_deployment,
        api_version=settings.azure_openai_api_version,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_seconds,
    )


def _openai(settings: Settings) -> ModelCapability | None:
    if not settings.openai_api_key:
        return None
    return OpenAIModel(
        api_key=settings.openai_api_key,
        model=settings.openai_model,
        organization=settings.openai_organization,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_seconds,
    )


def _ollama(settings: Settings) -> ModelCapability:
    return OllamaModel(
        base_url=settings.ollama_base_url,
        model=settings.ollama_model,
        max_tokens=settings.llm_max_tokens,
        timeout=settings.llm_timeout_seconds,
    )


_BUILDERS = {
    "anthropic": _anthropic,
    "azure_openai": _azure,
    "openai": _openai,
    "ollama": _ollama,
}


def build_model(settings: Settings) -> ModelCapability:
    """Pick the backend once for the whole run.

    ``settings.llm_provider`` wins when it is configured; otherwise the first
    backend with credentials among Anthropic, Azure OpenAI and OpenAI is used,
    and a local Ollama server is the fallback.

    Raises:
        ValueError: ``llm_provider`` names an unknown backend.
    """
    preferred = settings.llm_provider.strip().lower()
    if preferred:
        builder = _BUILDERS.get(preferred)
        if builder is None:
            msg = f"Unknown llm_provider: {preferred!r}. Supported: {list(_BUILDERS)}"
            raise ValueError(msg)
        model = builder(settings)
        if model is not None:
            logger.info("Using preferred model backend %s", preferred)
            return model
        logger.warning("Preferred backend %s is not configured; auto-selecting", preferred)

    for name in ("anthropic", "azure_openai", "openai"):
        model = _BUILDERS[name](settings)
        if model is not None:
            logger.info("Auto-selected model backend %s", name)
            return model

    logger.info("No hosted backend configured; using Ollama at %s", settings.ollama_base_url)
    return _ollama(settings)
