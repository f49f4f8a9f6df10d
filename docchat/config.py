"""Application configuration with sensible defaults."""
import os


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


# Ollama configuration
OLLAMA_BASE_URL = os.getenv("OLLAMA_BASE_URL", "http://localhost:11434")
OLLAMA_TIMEOUT = float(os.getenv("OLLAMA_TIMEOUT", "120.0"))

# Chunking (character-based to avoid tokenizer inconsistencies)
CHUNK_SIZE = int(os.getenv("CHUNK_SIZE", "800"))
CHUNK_OVERLAP = int(os.getenv("CHUNK_OVERLAP", "150"))
MAX_CHUNKS = int(os.getenv("MAX_CHUNKS", "1000"))                           # hard cap per document
CHUNK_SENTENCE_LOOKAHEAD = int(os.getenv("CHUNK_SENTENCE_LOOKAHEAD", "100"))

# Embedding model
EMBEDDING_MODEL = os.getenv("EMBEDDING_MODEL", "all-minilm:latest")         # all-MiniLM-L6-v2
EMBEDDING_MAX_RETRIES = int(os.getenv("EMBEDDING_MAX_RETRIES", "3"))
EMBEDDING_RETRY_DELAY = float(os.getenv("EMBEDDING_RETRY_DELAY", "1.0"))    # seconds, times attempt

# Generation model
LLM_MODEL = os.getenv("LLM_MODEL", "llama3.2:1b")
LLM_TEMPERATURE = float(os.getenv("LLM_TEMPERATURE", "0.1"))
LLM_MAX_TOKENS = int(os.getenv("LLM_MAX_TOKENS", "300"))
LLM_REQUIRE_GPU = _env_bool("LLM_REQUIRE_GPU", "true")

# RAG parameters
RAG_MAX_SOURCES = int(os.getenv("RAG_MAX_SOURCES", "2"))
RAG_RELEVANCE_THRESHOLD = float(os.getenv("RAG_RELEVANCE_THRESHOLD", "0.15"))
RAG_FALLBACK_SOURCES = int(os.getenv("RAG_FALLBACK_SOURCES", "3"))

# Request limits
MAX_UPLOAD_BYTES = int(os.getenv("MAX_UPLOAD_BYTES", str(25 * 1024 * 1024)))
MAX_QUESTION_LENGTH = int(os.getenv("MAX_QUESTION_LENGTH", "2000"))

# Logging
LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
