"""Rhapsody — session manager for a narrative GM assistant."""

from __future__ import annotations

__version__ = "0.1.0"

from .app import Action, ChatView, InputView, RhapsodyApp, SceneControlsView
from .chat import ChatOrchestrator, TurnOutcome, TurnStatus
from .config import RhapsodyConfig
from .context import ContextBuilder, TableInfo
from .context_compression import CompressionResult, ContextCompressor, merge_summary
from .deepseek_provider import DeepSeekProvider
from .errors import (
    PersistenceWarning,
    RhapsodyError,
    StreamParseError,
    TransportError,
    ValidationError,
    ValidationFailure,
)
from .fsm import TurnPhase, TurnState
from .journal import DocumentHandle, DocumentSink, FileDocumentSink, InMemoryDocumentSink
from .markup import ContentRenderer, EscapingRenderer, escape_html, strip_html
from .message_store import MessageStore, recent_messages
from .models import Message, Scene, Sender, Session, StateSnapshot
from .operator import ConsoleOperator, NoticeLevel, Operator, ScriptedOperator
from .persistence import (
    InMemoryStateStore,
    JsonFileStateStore,
    PersistenceGateway,
    SqliteStateStore,
    StateStore,
)
from .provider import (
    ChatMessage,
    ChatRequest,
    ChatResponse,
    ChatRole,
    LLMProvider,
    ProviderCapabilities,
    StreamListener,
    StubLLMProvider,
    TokenUsage,
)
from .provider_factory import ProviderFactory
from .scene import SceneEndOutcome, SceneEndStatus, SceneLifecycle
from .session import SessionLifecycle
from .summarizer import Summarizer
from .telemetry import RhapsodyTracer, TelemetryConfig
from .token_budget import TokenBudget, estimate_tokens

__all__ = [
    "Action",
    "ChatMessage",
    "ChatOrchestrator",
    "ChatRequest",
    "ChatResponse",
    "ChatRole",
    "ChatView",
    "CompressionResult",
    "ConsoleOperator",
    "ContentRenderer",
    "ContextBuilder",
    "ContextCompressor",
    "DeepSeekProvider",
    "DocumentHandle",
    "DocumentSink",
    "EscapingRenderer",
    "FileDocumentSink",
    "InMemoryDocumentSink",
    "InMemoryStateStore",
    "InputView",
    "JsonFileStateStore",
    "LLMProvider",
    "Message",
    "MessageStore",
    "NoticeLevel",
    "Operator",
    "PersistenceGateway",
    "PersistenceWarning",
    "ProviderCapabilities",
    "ProviderFactory",
    "RhapsodyApp",
    "RhapsodyConfig",
    "RhapsodyError",
    "RhapsodyTracer",
    "Scene",
    "SceneControlsView",
    "SceneEndOutcome",
    "SceneEndStatus",
    "SceneLifecycle",
    "ScriptedOperator",
    "Sender",
    "Session",
    "SessionLifecycle",
    "SqliteStateStore",
    "StateSnapshot",
    "StateStore",
    "StreamListener",
    "StreamParseError",
    "StubLLMProvider",
    "Summarizer",
    "TableInfo",
    "TelemetryConfig",
    "TokenBudget",
    "TokenUsage",
    "TransportError",
    "TurnOutcome",
    "TurnPhase",
    "TurnState",
    "TurnStatus",
    "ValidationError",
    "ValidationFailure",
    "__version__",
    "escape_html",
    "estimate_tokens",
    "merge_summary",
    "recent_messages",
    "strip_html",
]
