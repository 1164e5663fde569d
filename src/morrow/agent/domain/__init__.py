"""Domain entities, errors and port interfaces for the Morrow brain."""

from .entities import (
    BrainResult,
    BrainState,
    ErrorType,
    IntentResult,
    KnowledgeItem,
    MemoryEntry,
    Message,
    MessageRole,
    ProviderResponse,
    TokenUsage,
    ToolCall,
    ToolDefinition,
    ToolTraceEntry,
    VectorChunk,
)
from .errors import (
    BlockedURLError,
    ConfigurationError,
    DisallowedToolError,
    KnowledgeStoreError,
    MissingParameterError,
    MorrowError,
    ProviderError,
    ToolExecutionError,
    UnknownToolError,
)
from .ports import (
    IAuditRunner,
    IAuditStore,
    IEmbeddingProvider,
    INotificationProvider,
    IPlacesProvider,
    IProviderAdapter,
)

__all__ = [
    # Entities
    "BrainResult",
    "BrainState",
    "ErrorType",
    "IntentResult",
    "KnowledgeItem",
    "MemoryEntry",
    "Message",
    "MessageRole",
    "ProviderResponse",
    "TokenUsage",
    "ToolCall",
    "ToolDefinition",
    "ToolTraceEntry",
    "VectorChunk",
    # Errors
    "BlockedURLError",
    "ConfigurationError",
    "DisallowedToolError",
    "KnowledgeStoreError",
    "MissingParameterError",
    "MorrowError",
    "ProviderError",
    "ToolExecutionError",
    "UnknownToolError",
    # Ports
    "IAuditRunner",
    "IAuditStore",
    "IEmbeddingProvider",
    "INotificationProvider",
    "IPlacesProvider",
    "IProviderAdapter",
]
