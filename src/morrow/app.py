"""FastAPI application for the Morrow brain.

This is the main entry point for the Morrow API server.
"""

import logging
import os
from contextlib import asynccontextmanager
from typing import Callable, Optional

from dotenv import load_dotenv
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from .agent.api import create_morrow_dependencies
from .agent.api import router as morrow_router
from .agent.config import MorrowSettings
from .agent.context import MorrowContext

load_dotenv()

# Configure logging
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)

VERSION = "1.0.0"


def create_app(
    settings: Optional[MorrowSettings] = None,
    context_factory: Callable[[MorrowSettings], MorrowContext] = MorrowContext.create,
) -> FastAPI:
    """Build the application.

    Args:
        settings: Settings to use (default: read from the environment)
        context_factory: Builds the process context at startup
    """
    settings = settings or MorrowSettings.from_env()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        """Application lifespan manager.

        Handles startup and shutdown events:
        - Startup: Build the context, load knowledge and memory, start persistence
        - Shutdown: Final memory flush, close HTTP clients
        """
        logger.info("Starting Morrow API...")

        context = context_factory(settings)
        await context.startup()
        create_morrow_dependencies(context)
        app.state.context = context

        yield

        logger.info("Shutting down Morrow API...")
        create_morrow_dependencies(None)
        try:
            await context.shutdown()
        except Exception as e:
            logger.warning(f"Error during shutdown: {e}")

    app = FastAPI(
        title="Morrow.AI Brain API",
        description="""
        Tool-calling assistant for local-marketing consultants.

        ## Features

        - **Brain**: Let a model call knowledge, website, audit and outreach tools
        - **Intent**: Classify free text into an action with missing-field prompts
        - **Knowledge**: Keyword and semantic search over the knowledge folder
        - **Audits**: Run and fetch local SEO audits
        """,
        version=VERSION,
        lifespan=lifespan,
    )

    # Configure CORS
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "Authorization", "Accept", "X-Admin-Token"],
    )

    app.include_router(morrow_router)

    @app.get("/")
    async def root():
        """Root endpoint."""
        return {
            "name": "Morrow.AI Brain API",
            "version": VERSION,
            "docs": "/docs",
            "health": "/api/health",
        }

    return app


app = create_app()


# Entry point for running with uvicorn
if __name__ == "__main__":
    import uvicorn

    uvicorn.run(
        "src.morrow.app:app",
        host="0.0.0.0",
        port=int(os.getenv("PORT", "8080")),
        reload=True,
    )
