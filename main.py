#!/usr/bin/env python3
"""Morrow.AI brain CLI.

Command-line access to the brain loop, the intent parser and the
knowledge store, plus a launcher for the HTTP API.

Environment Variables:
    - MORROW_PROVIDER: openai | ollama | anthropic (default: openai)
    - OPENAI_API_KEY / ANTHROPIC_API_KEY / OLLAMA_BASE_URL: provider credentials
    - MORROW_KNOWLEDGE_DIR: knowledge folder (default: ./knowledge)

Example Usage:
    $ python main.py ask "What should Downtown Pizza fix first?"
    $ python main.py intent "Run an audit for Sunset Plumbing in San Diego, CA"
    $ python main.py search "google business profile" --limit 5
    $ python main.py build-embeddings --size 800 --overlap 100
    $ python main.py serve --port 8080
"""
import argparse
import asyncio
import json
import logging
import sys
from datetime import datetime, timezone

from dotenv import load_dotenv

load_dotenv()

# Local imports
from src.morrow.agent.config import MorrowSettings
from src.morrow.agent.context import MorrowContext
from src.morrow.agent.domain.errors import MorrowError
from src.morrow.agent.intent import IntentParser
from src.morrow.agent.knowledge import KnowledgeStore


def _banner(title: str) -> None:
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


async def run_ask(args: argparse.Namespace, settings: MorrowSettings) -> None:
    """Run one brain invocation and print the answer and tool trace."""
    context = MorrowContext.create(settings)
    await context.startup()
    try:
        result = await context.run_brain(
            args.prompt,
            conversation_id=args.conversation,
            provider=args.provider,
            model=args.model,
            max_steps=args.max_steps,
            time_budget_seconds=args.time_budget,
        )
    finally:
        await context.shutdown()

    _banner("ANSWER")
    print(result.final_text)

    _banner("TOOL TRACE")
    if not result.tool_trace:
        print("(no tools called)")
    for entry in result.tool_trace:
        marker = "ok " if entry.success else "ERR"
        print(f"[{entry.step}] {marker} {entry.tool} {json.dumps(entry.input)}")
        if entry.error:
            print(f"      {entry.error}")

    print(
        f"\n[Main] state={result.state.value} steps={result.steps_used} "
        f"provider={result.provider} model={result.model} "
        f"duration={result.duration_ms}ms conversation={result.conversation_id}"
    )


def run_intent(args: argparse.Namespace) -> None:
    parser = IntentParser()
    context = json.loads(args.context) if args.context else None
    result = parser.parse(args.text, context)
    payload = result.to_dict()
    payload["clarification"] = parser.clarification_question(result)
    payload["confirmation"] = parser.to_confirmation(result)
    print(json.dumps(payload, indent=2))


def run_search(args: argparse.Namespace, settings: MorrowSettings) -> None:
    store = KnowledgeStore(settings.knowledge_dir, exclude=(settings.embeddings_path.name,))
    store.load()
    results = store.search(args.query, limit=args.limit)

    _banner(f"RESULTS FOR {args.query!r} ({len(results)} of {store.count} documents)")
    for hit in results:
        print(f"\n[{hit['score']}] {hit['title']}")
        print(hit["snippet"][:300])


async def run_build_embeddings(args: argparse.Namespace, settings: MorrowSettings) -> None:
    """Rebuild the vector index."""
    context = MorrowContext.create(settings)
    try:
        start_time = datetime.now(timezone.utc)
        snapshot = await context.vectors.build(size=args.size, overlap=args.overlap)
        duration = (datetime.now(timezone.utc) - start_time).total_seconds()
    finally:
        await context.shutdown()

    print(
        f"[Main] Indexed {len(snapshot.items)} chunks with {snapshot.model} "
        f"into {settings.embeddings_path} in {duration:.1f} seconds"
    )


def run_serve(args: argparse.Namespace, settings: MorrowSettings) -> None:
    import uvicorn

    uvicorn.run(
        "src.morrow.app:app",
        host=args.host,
        port=args.port or settings.port,
        reload=args.reload,
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        description="Morrow.AI brain: tool-calling assistant for local marketing",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python main.py ask "Audit https://downtownpizza.example"
  python main.py intent "Who are my competitors in austin, tx"
  python main.py search "citations" --limit 5
  python main.py build-embeddings
  python main.py serve --port 8080
        """,
    )
    parser.add_argument("-v", "--verbose", action="store_true", help="Enable debug logging")
    sub = parser.add_subparsers(dest="command", required=True)

    ask = sub.add_parser("ask", help="Run the brain loop on a prompt")
    ask.add_argument("prompt")
    ask.add_argument("--provider", help="openai | ollama | anthropic")
    ask.add_argument("--model", help="Model override for this run")
    ask.add_argument("--max-steps", type=int, metavar="N", help="Provider round-trip limit")
    ask.add_argument("--time-budget", type=float, metavar="SECONDS", help="Wall-clock budget")
    ask.add_argument("--conversation", metavar="ID", help="Continue a conversation id")

    intent = sub.add_parser("intent", help="Parse free text into an intent")
    intent.add_argument("text")
    intent.add_argument("--context", metavar="JSON", help="Caller context as a JSON object")

    search = sub.add_parser("search", help="Keyword search over the knowledge folder")
    search.add_argument("query")
    search.add_argument("--limit", type=int, default=3)

    build = sub.add_parser("build-embeddings", help="Rebuild the vector index")
    build.add_argument("--size", type=int, default=800, help="Chunk size in characters")
    build.add_argument("--overlap", type=int, default=100, help="Chunk overlap in characters")

    serve = sub.add_parser("serve", help="Run the HTTP API with uvicorn")
    serve.add_argument("--host", default="0.0.0.0")
    serve.add_argument("--port", type=int)
    serve.add_argument("--reload", action="store_true")

    return parser


def main(argv=None) -> int:
    args = build_parser().parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    settings = MorrowSettings.from_env()

    try:
        if args.command == "ask":
            asyncio.run(run_ask(args, settings))
        elif args.command == "intent":
            run_intent(args)
        elif args.command == "search":
            run_search(args, settings)
        elif args.command == "build-embeddings":
            asyncio.run(run_build_embeddings(args, settings))
        elif args.command == "serve":
            run_serve(args, settings)
    except MorrowError as e:
        print(f"[Main] Error: {e.message}", file=sys.stderr)
        return 1
    except ValueError as e:
        print(f"[Main] Invalid input: {e}", file=sys.stderr)
        return 1
    return 0


if __name__ == "__main__":
    sys.exit(main())
