"""AI helpers for git workflows: diff preparation and chat completion clients."""

from gat_ai.cancel import CancelToken
from gat_ai.client import GatClient, chat, stream_chat
from gat_ai.diff import filter_ignored, prepare_diff, truncate
from gat_ai.errors import (
    EmptyAnswerError,
    GatError,
    MissingAPIKeyError,
    ProtocolError,
    ReasoningExhaustedError,
    StreamCancelledError,
    TransportError,
    UnsupportedProviderError,
    UpstreamStatusError,
)
from gat_ai.providers.registry import ProviderKind, default_config
from gat_ai.types import ChatRequest, ProviderConfig, StreamEvent

__version__ = "0.1.0"

__all__ = [
    "CancelToken",
    "ChatRequest",
    "EmptyAnswerError",
    "GatClient",
    "GatError",
    "MissingAPIKeyError",
    "ProtocolError",
    "ProviderConfig",
    "ProviderKind",
    "ReasoningExhaustedError",
    "StreamCancelledError",
    "StreamEvent",
    "TransportError",
    "UnsupportedProviderError",
    "UpstreamStatusError",
    "chat",
    "default_config",
    "filter_ignored",
    "prepare_diff",
    "stream_chat",
    "truncate",
]
