"""DocChat: ask questions about a single uploaded document using local Ollama models."""

__version__ = "0.1.0"
