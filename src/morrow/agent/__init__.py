"""
Morrow.AI Brain Module.

A tool-calling assistant for digital-marketing consultants: a language
model decides which internal tools to invoke (knowledge search, website
intel, audits, outreach) and the orchestrator feeds results back until a
final answer is produced.

Architecture:
- Domain: Core entities, errors and port interfaces
- Providers: LLM provider adapters (OpenAI, Ollama, Anthropic)
- Tools: Registry, request-forgery guard and built-in toolbox
- Knowledge: Keyword store and vector index over a knowledge folder
- Intent: Keyword intent parser with entity extraction
- Memory: Bounded per-conversation history and its persistence task
- Orchestrator: The brain loop state machine
- Services: Audits, audit storage, notifications, places
- API: FastAPI router

Key Features:
- Bounded step and wall-clock budgets with best-effort answers
- Per-run tool allow-lists
- Strictly interleaved tool request/result messages
- Atomic swaps of knowledge and vector snapshots
"""

# Domain entities
from .domain.entities import (
    BrainResult,
    BrainState,
    ErrorType,
    IntentResult,
    Message,
    MessageRole,
    ToolCall,
    ToolDefinition,
    ToolTraceEntry,
)
from .domain.errors import (
    ConfigurationError,
    MorrowError,
    ProviderError,
    ToolExecutionError,
)

# Configuration
from .config import MorrowSettings

# Providers
from .providers import (
    AnthropicAdapter,
    BaseProviderAdapter,
    OllamaAdapter,
    OpenAIAdapter,
    ProviderConfig,
    create_provider,
)

# Knowledge & intent
from .knowledge import KnowledgeStore, VectorStore
from .intent import IntentParser

# Memory
from .memory import ConversationMemory, MemoryPersistenceWorker

# Tools
from .tools import MorrowToolbox, ToolRegistry, WebsiteIntelFetcher

# Orchestrator
from .orchestrator import BrainConfig, BrainOrchestrator

# Services
from .services import AuditEngine, NotificationService

# Context
from .context import MorrowContext

__all__ = [
    # Domain
    "BrainResult",
    "BrainState",
    "ErrorType",
    "IntentResult",
    "Message",
    "MessageRole",
    "ToolCall",
    "ToolDefinition",
    "ToolTraceEntry",
    "ConfigurationError",
    "MorrowError",
    "ProviderError",
    "ToolExecutionError",
    # Config
    "MorrowSettings",
    # Providers
    "AnthropicAdapter",
    "BaseProviderAdapter",
    "OllamaAdapter",
    "OpenAIAdapter",
    "ProviderConfig",
    "create_provider",
    # Knowledge & intent
    "KnowledgeStore",
    "VectorStore",
    "IntentParser",
    # Memory
    "ConversationMemory",
    "MemoryPersistenceWorker",
    # Tools
    "MorrowToolbox",
    "ToolRegistry",
    "WebsiteIntelFetcher",
    # Orchestrator
    "BrainConfig",
    "BrainOrchestrator",
    # Services
    "AuditEngine",
    "NotificationService",
    # Context
    "MorrowContext",
]
