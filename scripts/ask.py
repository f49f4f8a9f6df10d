#!/usr/bin/env python
"""Ask questions about a document from the terminal.

Usage:
    python scripts/ask.py paper.pdf                         # Interactive questions
    python scripts/ask.py paper.pdf -q "Who is the author?" # One-shot question
    python scripts/ask.py notes.md -q "..." --max-sources 3
"""
import argparse
import asyncio
import sys
from datetime import datetime
from pathlib import Path

import structlog

from docchat import config
from docchat.errors import DocChatError, ModelServerError
from docchat.logging_config import configure_logging
from docchat.rag.orchestrator import RAGResponse
from docchat.service import ChatService

logger = structlog.get_logger()


class ProgressReporter:
    """Simple progress reporter for CLI."""

    def __init__(self):
        self.start_time = None

    def start(self, message: str):
        """Start progress reporting."""
        self.start_time = datetime.now()
        print(f"\n{'=' * 60}")
        print(f"  {message}")
        print(f"{'=' * 60}\n")

    def model(self, progress: float, text: str):
        print(f"\r  {text:<40} {progress * 100:5.1f}%", end="", flush=True)
        if progress >= 1.0:
            print()

    def update(self, stage: str, fraction: float):
        """Update progress."""
        bar_length = 40
        filled = int(bar_length * fraction)
        bar = "█" * filled + "░" * (bar_length - filled)
        print(f"\r  {stage}: [{bar}] {fraction * 100:5.1f}%", end="", flush=True)

    def finish(self, chunk_count: int):
        """Finish progress reporting."""
        print("\n")
        elapsed_seconds = (datetime.now() - self.start_time).total_seconds()
        print(f"  📝 Chunks indexed:   {chunk_count}")
        print(f"  ⏱️  Time elapsed:     {elapsed_seconds:.1f}s")
        if chunk_count > 0 and elapsed_seconds > 0:
            print(f"  ⚡ Indexing rate:    {chunk_count / elapsed_seconds:.1f} chunks/sec")
        print(f"\n{'=' * 60}\n")


def print_response(response: RAGResponse):
    print(f"\n💬 {response.answer}\n")
    if response.sources:
        print("   Sources:")
        for source in response.sources:
            preview = source.chunk.text[:80].replace("\n", " ")
            print(
                f"   - chunk {source.chunk.id} "
                f"[{source.chunk.start_pos}:{source.chunk.end_pos}] "
                f"score {source.score:.2f}  {preview}..."
            )
    print()


async def main():
    """Main entry point for the ask script."""
    parser = argparse.ArgumentParser(
        description="Chat with a PDF, text or markdown document using local Ollama models",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python scripts/ask.py paper.pdf
  python scripts/ask.py paper.pdf -q "What are the main results?"
        """,
    )

    parser.add_argument("document", type=Path, help="PDF, .txt or .md file to load")

    parser.add_argument(
        "--question",
        "-q",
        action="append",
        default=[],
        help="Question to ask (repeatable); omit for interactive mode",
    )

    parser.add_argument(
        "--max-sources",
        type=int,
        default=config.RAG_MAX_SOURCES,
        help=f"Sources to cite per answer (default: {config.RAG_MAX_SOURCES})",
    )

    parser.add_argument(
        "--log-level",
        default="WARNING",
        help="Log level for structured logs (default: WARNING)",
    )

    args = parser.parse_args()

    configure_logging(args.log_level, json_output=False)
    progress = ProgressReporter()
    service = ChatService()

    try:
        print("\n📋 Configuration:")
        print(f"   Document:         {args.document}")
        print(f"   Embedding model:  {config.EMBEDDING_MODEL}")
        print(f"   Chat model:       {config.LLM_MODEL}")
        print(f"   Chunk size:       {config.CHUNK_SIZE} chars")
        print(f"   Chunk overlap:    {config.CHUNK_OVERLAP} chars")

        progress.start("Loading Models")
        await service.initialize_models(on_progress=progress.model)

        progress.start(f"Indexing {args.document.name}")
        document = service.loader.load_file(args.document)
        await service.orchestrator.index_document(document, on_progress=progress.update)
        progress.finish(len(document.chunks))

        if args.question:
            for question in args.question:
                print(f"❓ {question}")
                print_response(await service.ask(question, args.max_sources))
            return

        print("Ask a question (empty line or Ctrl+D to quit).\n")
        while True:
            try:
                question = input("❓ ").strip()
            except EOFError:
                break
            if not question:
                break
            print_response(await service.ask(question, args.max_sources))

    except KeyboardInterrupt:
        print("\n\n⚠️  Cancelled by user.\n")
        sys.exit(1)

    except FileNotFoundError as e:
        print(f"\n❌ Error: {e}\n")
        sys.exit(1)

    except ModelServerError as e:
        print(f"\n❌ {e.message}\n   Re-run the command to retry.\n")
        sys.exit(1)

    except DocChatError as e:
        print(f"\n❌ Error: {e.message}\n")
        logger.error("ask_script_failed", error=e.message, code=e.code.value)
        sys.exit(1)

    except Exception as e:
        print(f"\n❌ Error: {e}\n")
        logger.error("ask_script_failed", error=str(e), error_type=type(e).__name__)
        sys.exit(1)


if __name__ == "__main__":
    asyncio.run(main())
