"""Provider definitions for gat_ai."""

from .base import BaseProvider
from .openai_compat import OpenAICompatibleProvider
from .registry import ProviderKind, build_provider, default_config

__all__ = [
    "BaseProvider",
    "OpenAICompatibleProvider",
    "ProviderKind",
    "build_provider",
    "default_config",
]
