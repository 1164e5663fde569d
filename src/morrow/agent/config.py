"""
Runtime configuration for the Morrow brain.

All settings come from the process environment (``.env`` files are
loaded by the entry points with python-dotenv before this is read).
"""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping, Optional

logger = logging.getLogger(__name__)

DEFAULT_CORS_ORIGINS = "http://localhost:3000,http://localhost:5173"


def _env_int(env: Mapping[str, str], key: str, default: int) -> int:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning(f"Invalid integer for {key}: {raw!r}, using {default}")
        return default


def _env_float(env: Mapping[str, str], key: str, default: float) -> float:
    raw = env.get(key)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning(f"Invalid number for {key}: {raw!r}, using {default}")
        return default


@dataclass
class MorrowSettings:
    """Process-wide settings.

    Attributes:
        provider: Default provider variant ('openai', 'ollama', 'anthropic')
        model: Default chat model (None = provider default)
        openai_api_key: OpenAI credential for chat and embeddings
        embedding_model: Embedding model used by the vector store
        anthropic_api_key: Anthropic credential
        ollama_base_url: Ollama server URL (None = not configured)
        knowledge_dir: Folder of knowledge documents
        embeddings_path: Vector store file
        memory_path: Conversation memory snapshot file
        audit_dir: Directory for stored audits
        memory_max_entries: Most-recent-N bound per conversation
        memory_flush_seconds: Interval of the memory persistence task
        max_steps: Default provider round-trip limit per run
        time_budget_seconds: Default wall-clock budget per run
        admin_token: Token guarding knowledge write endpoints
        google_places_api_key: Places provider credential
        sendgrid_api_key: Email channel credential
        sendgrid_from: Email sender address
        twilio_sid: SMS account id
        twilio_token: SMS auth token
        twilio_from: SMS sender number
        cors_origins: Allowed CORS origins
        port: HTTP port
    """

    provider: str = "openai"
    model: Optional[str] = None
    openai_api_key: Optional[str] = None
    embedding_model: str = "text-embedding-3-small"
    anthropic_api_key: Optional[str] = None
    ollama_base_url: Optional[str] = None
    knowledge_dir: Path = field(default_factory=lambda: Path("knowledge"))
    embeddings_path: Optional[Path] = None
    memory_path: Path = field(default_factory=lambda: Path("data") / "memory.json")
    audit_dir: Path = field(default_factory=lambda: Path("data") / "audits")
    memory_max_entries: int = 20
    memory_flush_seconds: float = 30.0
    max_steps: int = 5
    time_budget_seconds: float = 45.0
    admin_token: str = "localdev"
    google_places_api_key: Optional[str] = None
    sendgrid_api_key: Optional[str] = None
    sendgrid_from: str = "no-reply@smartlocal.ai"
    twilio_sid: Optional[str] = None
    twilio_token: Optional[str] = None
    twilio_from: Optional[str] = None
    cors_origins: list[str] = field(
        default_factory=lambda: DEFAULT_CORS_ORIGINS.split(",")
    )
    port: int = 8080

    def __post_init__(self):
        self.knowledge_dir = Path(self.knowledge_dir)
        if self.embeddings_path is None:
            self.embeddings_path = self.knowledge_dir / "embeddings.json"
        self.embeddings_path = Path(self.embeddings_path)
        self.memory_path = Path(self.memory_path)
        self.audit_dir = Path(self.audit_dir)

    @classmethod
    def from_env(cls, env: Optional[Mapping[str, str]] = None) -> MorrowSettings:
        """Build settings from environment variables.

        Args:
            env: Mapping to read instead of ``os.environ`` (used in tests)
        """
        env = os.environ if env is None else env
        knowledge_dir = Path(env.get("MORROW_KNOWLEDGE_DIR") or "knowledge")
        embeddings_path = env.get("MORROW_EMBEDDINGS_PATH")
        cors = env.get("CORS_ORIGINS") or DEFAULT_CORS_ORIGINS

        return cls(
            provider=(env.get("MORROW_PROVIDER") or "openai").lower(),
            model=env.get("MORROW_MODEL") or None,
            openai_api_key=env.get("OPENAI_API_KEY") or None,
            embedding_model=env.get("OPENAI_EMBEDDING_MODEL") or "text-embedding-3-small",
            anthropic_api_key=env.get("ANTHROPIC_API_KEY") or None,
            ollama_base_url=env.get("OLLAMA_BASE_URL") or None,
            knowledge_dir=knowledge_dir,
            embeddings_path=Path(embeddings_path) if embeddings_path else None,
            memory_path=Path(env.get("MORROW_MEMORY_PATH") or Path("data") / "memory.json"),
            audit_dir=Path(env.get("MORROW_AUDIT_DIR") or Path("data") / "audits"),
            memory_max_entries=_env_int(env, "MORROW_MEMORY_MAX_ENTRIES", 20),
            memory_flush_seconds=_env_float(env, "MORROW_MEMORY_FLUSH_SECONDS", 30.0),
            max_steps=_env_int(env, "MORROW_MAX_STEPS", 5),
            time_budget_seconds=_env_float(env, "MORROW_TIME_BUDGET_SECONDS", 45.0),
            admin_token=env.get("MORROW_ADMIN_TOKEN") or "localdev",
            google_places_api_key=env.get("GOOGLE_PLACES_API_KEY") or None,
            sendgrid_api_key=env.get("SENDGRID_API_KEY") or None,
            sendgrid_from=env.get("SENDGRID_FROM") or "no-reply@smartlocal.ai",
            twilio_sid=env.get("TWILIO_SID") or None,
            twilio_token=env.get("TWILIO_TOKEN") or None,
            twilio_from=env.get("TWILIO_FROM") or None,
            cors_origins=[o.strip() for o in cors.split(",") if o.strip()],
            port=_env_int(env, "PORT", 8080),
        )
