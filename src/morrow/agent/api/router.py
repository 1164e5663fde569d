"""
FastAPI Router for the Morrow brain.

Provides REST endpoints for brain runs, intent parsing, knowledge
management, audits and notifications.
"""

from __future__ import annotations

import logging
import secrets
from typing import Any, Optional

import anyio
from fastapi import APIRouter, Depends, Header, HTTPException, Query, status

from ..context import MorrowContext
from ..domain.entities import ErrorType
from ..domain.errors import ConfigurationError, MorrowError, ProviderError
from .error_sanitizer import sanitize_error_message
from .schemas import (
    AuditRequest,
    BrainRequest,
    BrainResponse,
    EmbeddingsBuildRequest,
    EmbeddingsQueryRequest,
    HealthResponse,
    IntentRequest,
    IntentResponse,
    KnowledgeAddRequest,
    KnowledgeSearchRequest,
    NotifyRequest,
    SearchResponse,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api", tags=["morrow"])


# =============================================================================
# Dependencies
# =============================================================================


class MorrowDependencies:
    """Container for router dependencies.

    Injected at application startup.
    """

    context: Optional[MorrowContext] = None


_deps = MorrowDependencies()


def create_morrow_dependencies(context: Optional[MorrowContext]) -> None:
    """Register (or clear, with None) the process context.

    Call this from the application lifespan.
    """
    _deps.context = context


def get_context() -> MorrowContext:
    """Get the process context dependency."""
    if not _deps.context:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Morrow not initialized",
        )
    return _deps.context


def require_admin(
    x_admin_token: Optional[str] = Header(default=None),
    token: Optional[str] = Query(default=None),
    context: MorrowContext = Depends(get_context),
) -> None:
    """Check the admin token from the X-Admin-Token header or ?token=."""
    supplied = x_admin_token or token or ""
    if not secrets.compare_digest(supplied, context.settings.admin_token):
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Forbidden")


def to_http_exception(error: MorrowError) -> HTTPException:
    """Map a domain error to an HTTP status with a sanitized detail."""
    if isinstance(error, ConfigurationError):
        code = status.HTTP_501_NOT_IMPLEMENTED
    elif isinstance(error, ProviderError):
        code = (
            status.HTTP_429_TOO_MANY_REQUESTS
            if error.error_type == ErrorType.RATE_LIMIT
            else status.HTTP_502_BAD_GATEWAY
        )
    else:
        code = status.HTTP_400_BAD_REQUEST

    if code >= 500:
        logger.error(f"{type(error).__name__}: {error.message}")
    else:
        logger.warning(f"{type(error).__name__}: {error.message}")
    return HTTPException(status_code=code, detail=sanitize_error_message(error.message))


# =============================================================================
# Status Endpoints
# =============================================================================


@router.get("/health", response_model=HealthResponse)
async def health(context: MorrowContext = Depends(get_context)) -> HealthResponse:
    """Liveness plus the default provider and model."""
    return HealthResponse(status="ok", **context.provider_info())


@router.get("/stats")
async def stats(context: MorrowContext = Depends(get_context)) -> dict[str, Any]:
    return context.stats_snapshot()


@router.get("/features")
async def features(context: MorrowContext = Depends(get_context)) -> dict[str, Any]:
    return {"features": context.features()}


@router.get("/ai/providers")
async def list_providers(context: MorrowContext = Depends(get_context)) -> dict[str, Any]:
    """Provider variants and whether each has credentials."""
    return {"providers": context.providers()}


# =============================================================================
# Brain & Intent
# =============================================================================


@router.post("/brain", response_model=BrainResponse)
async def run_brain(
    request: BrainRequest,
    context: MorrowContext = Depends(get_context),
) -> BrainResponse:
    """Run the tool-calling loop to a final answer.

    Budget exhaustion still returns 200; check ``state`` in the body.
    """
    try:
        result = await context.run_brain(
            request.prompt,
            conversation_id=request.conversation_id,
            provider=request.provider,
            model=request.model,
            tools_allow=request.tools_allow,
            max_steps=request.max_steps,
            time_budget_seconds=request.time_budget_seconds,
        )
    except MorrowError as e:
        raise to_http_exception(e)
    return BrainResponse(**result.to_dict())


@router.post("/intent/parse", response_model=IntentResponse)
async def parse_intent(
    request: IntentRequest,
    context: MorrowContext = Depends(get_context),
) -> IntentResponse:
    parser = context.intent_parser
    result = parser.parse(request.text, request.context)
    return IntentResponse(
        **result.to_dict(),
        clarification=parser.clarification_question(result),
        confirmation=parser.to_confirmation(result),
    )


# =============================================================================
# Knowledge
# =============================================================================


@router.get("/knowledge")
async def knowledge_status(context: MorrowContext = Depends(get_context)) -> dict[str, Any]:
    return {
        "count": context.knowledge.count,
        "vectorChunks": context.vectors.count,
        "embeddingModel": context.vectors.snapshot.model,
    }


@router.post("/knowledge/search", response_model=SearchResponse)
async def knowledge_search(
    request: KnowledgeSearchRequest,
    context: MorrowContext = Depends(get_context),
) -> SearchResponse:
    results = context.knowledge.search(request.query, limit=request.limit)
    return SearchResponse(results=results, count=len(results), query=request.query)


@router.post("/knowledge/add", dependencies=[Depends(require_admin)])
async def knowledge_add(
    request: KnowledgeAddRequest,
    context: MorrowContext = Depends(get_context),
) -> dict[str, Any]:
    """Write a document into the knowledge folder and reload."""
    try:
        name = await anyio.to_thread.run_sync(
            context.knowledge.add_document, request.filename, request.content
        )
    except MorrowError as e:
        raise to_http_exception(e)
    except OSError as e:
        logger.error(f"Failed to write knowledge document: {e}")
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail=sanitize_error_message(str(e), "Write failed"),
        )
    return {"ok": True, "filename": name, "count": context.knowledge.count}


@router.post("/knowledge/refresh")
async def knowledge_refresh(context: MorrowContext = Depends(get_context)) -> dict[str, Any]:
    count = await anyio.to_thread.run_sync(context.knowledge.load)
    return {"ok": True, "count": count}


@router.post("/knowledge/embeddings/build", dependencies=[Depends(require_admin)])
async def embeddings_build(
    request: Optional[EmbeddingsBuildRequest] = None,
    context: MorrowContext = Depends(get_context),
) -> dict[str, Any]:
    """Rebuild the vector index from the knowledge folder."""
    options = request or EmbeddingsBuildRequest()
    if options.overlap >= options.size:
        raise HTTPException(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            detail="overlap must be smaller than size",
        )
    try:
        snapshot = await context.vectors.build(size=options.size, overlap=options.overlap)
    except MorrowError as e:
        raise to_http_exception(e)
    return {
        "ok": True,
        "chunks": len(snapshot.items),
        "model": snapshot.model,
        "updatedAt": snapshot.updated_at,
    }


@router.post("/knowledge/embeddings/query", response_model=SearchResponse)
async def embeddings_query(
    request: EmbeddingsQueryRequest,
    context: MorrowContext = Depends(get_context),
) -> SearchResponse:
    try:
        results = await context.vectors.query(request.query, k=request.k)
    except MorrowError as e:
        raise to_http_exception(e)
    return SearchResponse(results=results, count=len(results), query=request.query)


# =============================================================================
# Audits & Notifications
# =============================================================================


@router.post("/audits")
async def create_audit(
    request: AuditRequest,
    context: MorrowContext = Depends(get_context),
) -> dict[str, Any]:
    """Run a full audit and return the stored document."""
    try:
        return await context.audit_engine.run_full_audit(
            business_name=request.business_name,
            website=request.website,
            location=request.location,
            industry=request.industry,
            profile_id=request.profile_id,
        )
    except MorrowError as e:
        raise to_http_exception(e)


@router.get("/audits/{audit_id}")
async def get_audit(
    audit_id: str,
    context: MorrowContext = Depends(get_context),
) -> dict[str, Any]:
    audit = await context.audit_store.get_audit(audit_id)
    if audit is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Audit not found",
        )
    return audit


@router.post("/notify")
async def notify(
    request: NotifyRequest,
    context: MorrowContext = Depends(get_context),
) -> dict[str, Any]:
    try:
        return await context.notifier.send(
            request.channel,
            request.target,
            request.link,
            message=request.message,
            subject=request.subject,
        )
    except MorrowError as e:
        raise to_http_exception(e)
