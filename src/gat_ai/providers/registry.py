"""Registry of supported AI backends and their defaults."""

from __future__ import annotations

from enum import Enum

import httpx

from gat_ai.errors import MissingAPIKeyError, UnsupportedProviderError
from gat_ai.providers.base import BaseProvider
from gat_ai.providers.openai_compat import OpenAICompatibleProvider
from gat_ai.types import ProviderConfig


class ProviderKind(str, Enum):
    """Known backends. They all speak the same chat/completions protocol today."""

    DEEPSEEK = "deepseek"
    GLM = "glm"
    OPENAI = "openai"
    OLLAMA = "ollama"

    @property
    def default_model(self) -> str:
        return _DEFAULTS[self][0]

    @property
    def default_base_url(self) -> str:
        return _DEFAULTS[self][1]

    @property
    def requires_api_key(self) -> bool:
        return self is not ProviderKind.OLLAMA

    @classmethod
    def parse(cls, name: str) -> ProviderKind:
        try:
            return cls(name)
        except ValueError as exc:
            raise UnsupportedProviderError(name, [kind.value for kind in cls]) from exc


_DEFAULTS: dict[ProviderKind, tuple[str, str]] = {
    ProviderKind.DEEPSEEK: ("deepseek-chat", "https://api.deepseek.com"),
    ProviderKind.GLM: ("glm-4.7-flash", "https://open.bigmodel.cn/api/paas/v4"),
    ProviderKind.OPENAI: ("gpt-4o-mini", "https://api.openai.com/v1"),
    ProviderKind.OLLAMA: ("llama3", "http://localhost:11434/v1"),
}


def default_config(
    kind: ProviderKind | str,
    api_key: str = "",
    *,
    model: str | None = None,
    base_url: str | None = None,
) -> ProviderConfig:
    """Build a config for ``kind``, filling model and base URL from the registry."""
    kind = ProviderKind.parse(kind) if isinstance(kind, str) else kind
    return ProviderConfig(
        provider=kind.value,
        api_key=api_key,
        model=model or kind.default_model,
        base_url=base_url or kind.default_base_url,
    )


def build_provider(
    config: ProviderConfig,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> BaseProvider:
    """Return the provider implementation serving ``config``."""
    kind = ProviderKind.parse(config.provider)
    if kind.requires_api_key and not config.api_key:
        raise MissingAPIKeyError(kind.value)
    # every registered kind shares the OpenAI-compatible wire format
    return OpenAICompatibleProvider(config, transport=transport)
