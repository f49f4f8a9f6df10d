"""Embedding adapter over the Ollama embeddings endpoint.

Handles:
- Single-flight model loading with retry and linear backoff
- Query and chunk embedding
- Load-failure classification (model server error pages vs. other failures)
"""
import asyncio
from typing import Callable, Dict, List, Optional, Sequence

import structlog

from docchat import config
from docchat.errors import ModelLoadError, ModelServerError, NotReadyError
from docchat.ollama_client import OllamaClient
from docchat.rag.chunker import Chunk

logger = structlog.get_logger()

# Markers of an HTML error page (or a JSON parser choking on one)
HTML_ERROR_MARKERS = ("<!DOCTYPE", "<!doctype", "<html", "Unexpected token")

PROBE_TEXT = "test"

ProgressCallback = Callable[[float, str], None]
ChunkProgressCallback = Callable[[int, int], None]


def looks_like_html_error(message: str) -> bool:
    """Return True if an error message carries an HTML page instead of model data."""
    return any(marker in message for marker in HTML_ERROR_MARKERS)


class EmbeddingAdapter:
    """Loads an embedding model and turns text into vectors."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: str = None,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
    ):
        """Initialize the adapter. No model is loaded until initialize() is awaited.

        Args:
            client: Ollama client (a default one is created if not provided)
            model: Embedding model name (default from config)
            max_retries: Load attempts before giving up (default from config)
            retry_delay: Backoff unit in seconds; attempt N waits N * retry_delay
        """
        self.client = client or OllamaClient()
        self.model = model or config.EMBEDDING_MODEL
        self.max_retries = config.EMBEDDING_MAX_RETRIES if max_retries is None else max_retries
        self.retry_delay = config.EMBEDDING_RETRY_DELAY if retry_delay is None else retry_delay

        if self.max_retries < 1:
            raise ValueError(f"max_retries must be at least 1, got {self.max_retries}")

        self._ready = False
        self._dimension: Optional[int] = None
        self._init_task: Optional[asyncio.Task] = None

    @property
    def dimension(self) -> Optional[int]:
        """Vector length of the loaded model, or None before initialization."""
        return self._dimension

    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Load the embedding model.

        Idempotent. Concurrent callers share one in-flight load attempt.
        A reset() while the load is in flight discards it, and its waiters
        get NotReadyError rather than a model that is not marked ready.

        Args:
            on_progress: Optional callback(progress 0-1, status text)

        Raises:
            ModelServerError: If the server kept answering with an HTML page
            ModelLoadError: If the model could not be loaded after all retries
            NotReadyError: If reset() was called before the load finished
        """
        if self._ready:
            return

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._load(on_progress))

        task = self._init_task
        try:
            dimension = await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

        # A reset() during the load discards its result
        if self._init_task is not task:
            raise NotReadyError("Embedding model was reset while loading. Call initialize() again.")

        self._dimension = dimension
        self._ready = True

    async def _load(self, on_progress: Optional[ProgressCallback]) -> int:
        """Probe the model until it answers, backing off linearly between attempts."""
        if on_progress:
            on_progress(0.0, "Loading embedding model...")

        last_error: Optional[Exception] = None

        for attempt in range(1, self.max_retries + 1):
            logger.info(
                "embedding_model_load_attempt",
                model=self.model,
                attempt=attempt,
                max_retries=self.max_retries,
            )

            try:
                response = await self.client.embeddings(prompt=PROBE_TEXT, model=self.model)
                embedding = response.get("embedding") or []

                if not embedding:
                    raise RuntimeError("Empty embedding returned from Ollama")

                logger.info(
                    "embedding_model_loaded",
                    model=self.model,
                    dimension=len(embedding),
                    attempts=attempt,
                )
                if on_progress:
                    on_progress(1.0, "Embedding model ready")

                return len(embedding)

            except Exception as e:
                last_error = e
                logger.warning(
                    "embedding_model_load_failed",
                    model=self.model,
                    attempt=attempt,
                    error=str(e),
                    error_type=type(e).__name__,
                )

                if attempt < self.max_retries:
                    await asyncio.sleep(attempt * self.retry_delay)

        raise self._load_error(last_error) from last_error

    def _load_error(self, error: Exception) -> ModelLoadError:
        message = str(error) or type(error).__name__

        logger.error(
            "embedding_model_load_exhausted",
            model=self.model,
            max_retries=self.max_retries,
            error=message,
        )

        if looks_like_html_error(message):
            return ModelServerError(
                "Model server returned an error page. This is usually a temporary "
                "network issue. Please try again."
            )

        return ModelLoadError(
            f"Failed to load embedding model {self.model} after "
            f"{self.max_retries} attempts: {message}"
        )

    async def embed_text(self, text: str) -> List[float]:
        """Embed a single text.

        Raises:
            NotReadyError: If called before initialize() succeeded
            RuntimeError: If the backend returns an empty vector
        """
        if not self._ready:
            raise NotReadyError("Embedding model not initialized. Call initialize() first.")

        response = await self.client.embeddings(prompt=text, model=self.model)
        embedding = response.get("embedding") or []

        if not embedding:
            raise RuntimeError("Empty embedding returned for text")

        return [float(value) for value in embedding]

    async def embed_chunks(
        self,
        chunks: Sequence[Chunk],
        on_progress: Optional[ChunkProgressCallback] = None,
    ) -> Dict[int, List[float]]:
        """Embed chunks one at a time, in order.

        Args:
            chunks: Chunks to embed
            on_progress: Optional callback(current, total) after each chunk

        Returns:
            Mapping of chunk id to embedding vector
        """
        embeddings: Dict[int, List[float]] = {}
        total = len(chunks)

        for current, item in enumerate(chunks, 1):
            embeddings[item.id] = await self.embed_text(item.text)

            if on_progress:
                on_progress(current, total)

        logger.info("chunks_embedded", count=total, model=self.model)

        return embeddings

    def reset(self) -> None:
        """Drop the loaded model state; the next initialize() loads again."""
        self._ready = False
        self._dimension = None
        self._init_task = None
        logger.info("embedding_adapter_reset", model=self.model)
