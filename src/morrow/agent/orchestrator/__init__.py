"""Brain loop orchestration."""

from .brain import (
    STEP_LIMIT_PREFIX,
    TIME_LIMIT_PREFIX,
    BrainConfig,
    BrainOrchestrator,
)
from .prompt_builder import MORROW_SYSTEM_PROMPT, PromptBuilder
from .tool_executor import ToolExecutor

__all__ = [
    "STEP_LIMIT_PREFIX",
    "TIME_LIMIT_PREFIX",
    "BrainConfig",
    "BrainOrchestrator",
    "MORROW_SYSTEM_PROMPT",
    "PromptBuilder",
    "ToolExecutor",
]
