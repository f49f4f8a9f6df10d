#!/usr/bin/env python
"""Validate setup - check dependencies, configuration and the Ollama models."""
import asyncio
import sys

# Color codes for terminal output
GREEN = "\033[92m"
RED = "\033[91m"
YELLOW = "\033[93m"
BLUE = "\033[94m"
RESET = "\033[0m"


def print_success(msg):
    print(f"{GREEN}✓{RESET} {msg}")


def print_error(msg):
    print(f"{RED}✗{RESET} {msg}")


def print_info(msg):
    print(f"{BLUE}ℹ{RESET} {msg}")


def print_warning(msg):
    print(f"{YELLOW}⚠{RESET} {msg}")


def print_section(title):
    print(f"\n{BLUE}{'='*60}{RESET}")
    print(f"{BLUE}{title:^60}{RESET}")
    print(f"{BLUE}{'='*60}{RESET}\n")


async def main():
    print_section("DocChat - Setup Validation")

    errors = []
    warnings = []

    # 1. Python version check
    print_section("1. Python Environment")
    python_version = f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}"
    print_info(f"Python version: {python_version}")
    if sys.version_info >= (3, 10):
        print_success("Python version >= 3.10")
    else:
        print_error("Python version < 3.10 (required)")
        errors.append("Python version too old")

    in_venv = sys.base_prefix != sys.prefix
    if in_venv:
        print_success("Running in virtual environment")
    else:
        print_warning("Not running in virtual environment (recommended)")
        warnings.append("Not in venv")

    # 2. Import core dependencies
    print_section("2. Core Dependencies")

    dependencies = [
        ("quart", "Quart web framework"),
        ("httpx", "HTTP client"),
        ("numpy", "Vector math"),
        ("pypdf", "PDF text extraction"),
        ("pydantic", "Data validation"),
        ("structlog", "Structured logging"),
    ]

    for module_name, description in dependencies:
        try:
            __import__(module_name)
            print_success(f"{description:30} ({module_name})")
        except ImportError as e:
            print_error(f"{description:30} ({module_name}) - {e}")
            errors.append(f"Missing: {module_name}")

    # 3. Configuration
    print_section("3. Configuration")

    try:
        from docchat import config
        from docchat.rag.chunker import TextChunker

        print_success("Config loaded successfully")
        print_info(f"  Chat model: {config.LLM_MODEL}")
        print_info(f"  Embedding model: {config.EMBEDDING_MODEL}")
        print_info(f"  Ollama URL: {config.OLLAMA_BASE_URL}")
        print_info(f"  Chunk size: {config.CHUNK_SIZE} chars (overlap {config.CHUNK_OVERLAP})")
        print_info(f"  Require GPU: {config.LLM_REQUIRE_GPU}")

        TextChunker()
        print_success("Chunking parameters are valid")

    except Exception as e:
        print_error(f"Failed to load config: {e}")
        errors.append("Config loading failed")
        return errors, warnings

    # 4. Ollama service and models
    print_section("4. Ollama Service")

    from docchat.ollama_client import OllamaClient
    from docchat.rag.generator import find_model

    client = OllamaClient()

    try:
        models = await client.list_models()
        print_success(f"Ollama service running at {config.OLLAMA_BASE_URL}")
        print_info(f"Found {len(models)} models installed")

        entries = [{"name": name} for name in models]
        for label, model in (("Chat", config.LLM_MODEL), ("Embedding", config.EMBEDDING_MODEL)):
            if find_model(model, entries):
                print_success(f"{label} model available: {model}")
            else:
                print_error(f"{label} model missing: {model}")
                print_info(f"  Run: ollama pull {model}")
                errors.append(f"Missing {label.lower()} model: {model}")

    except Exception as e:
        print_error(f"Cannot connect to Ollama service: {e}")
        print_info("  Make sure Ollama is running: ollama serve")
        errors.append("Ollama not running")
        return errors, warnings

    # 5. Embedding round trip
    print_section("5. Embedding API")

    try:
        response = await client.embeddings(prompt="test", model=config.EMBEDDING_MODEL)
        if response.get("embedding"):
            print_success(f"Embedding dimension: {len(response['embedding'])}")
        else:
            print_error("Embedding response missing 'embedding' field")
            errors.append("Embedding API issue")
    except Exception as e:
        print_error(f"Embedding API test failed: {e}")
        errors.append(f"API test failed: {e}")

    # 6. Summary
    print_section("Summary")

    if not errors:
        print_success("All checks passed! ✨")
        print_info("  Next step: python scripts/ask.py <document>")
    else:
        print_error(f"Found {len(errors)} error(s):")
        for i, error in enumerate(errors, 1):
            print(f"  {i}. {error}")

    if warnings:
        print_warning(f"\nFound {len(warnings)} warning(s):")
        for i, warning in enumerate(warnings, 1):
            print(f"  {i}. {warning}")

    print()
    return errors, warnings


if __name__ == "__main__":
    errors, warnings = asyncio.run(main())
    sys.exit(1 if errors else 0)
