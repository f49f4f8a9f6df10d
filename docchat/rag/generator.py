"""Generation adapter over the Ollama chat endpoint."""
import asyncio
from typing import Any, Dict, Iterable, List, Optional

import httpx
import structlog

from docchat import config
from docchat.errors import (
    AccelerationUnavailableError,
    ModelLoadError,
    ModelServerError,
    NotReadyError,
)
from docchat.ollama_client import OllamaClient
from docchat.rag.embedder import ProgressCallback, looks_like_html_error

logger = structlog.get_logger()

EMPTY_RESPONSE_FALLBACK = "I could not generate a response."


def normalize_model_name(name: str) -> str:
    """Ollama reports untagged models with the implicit ':latest' tag."""
    return name if ":" in name else f"{name}:latest"


def find_model(name: str, models: Iterable[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Find a model entry from /api/ps or /api/tags by name."""
    wanted = normalize_model_name(name)
    for entry in models:
        candidates = (entry.get("name"), entry.get("model"))
        if any(c and normalize_model_name(c) == wanted for c in candidates):
            return entry
    return None


class GenerationAdapter:
    """Loads a chat model and turns prompts into answers."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        model: str = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
        require_gpu: Optional[bool] = None,
    ):
        """Initialize the adapter. No model is loaded until initialize() is awaited.

        Args:
            client: Ollama client (a default one is created if not provided)
            model: Chat model name (default from config)
            temperature: Sampling temperature (default from config)
            max_tokens: Cap on answer length in tokens (default from config)
            require_gpu: Refuse to run when the model is not GPU-resident
        """
        self.client = client or OllamaClient()
        self.model = model or config.LLM_MODEL
        self.temperature = config.LLM_TEMPERATURE if temperature is None else temperature
        self.max_tokens = config.LLM_MAX_TOKENS if max_tokens is None else max_tokens
        self.require_gpu = config.LLM_REQUIRE_GPU if require_gpu is None else require_gpu

        self._ready = False
        self._init_task: Optional[asyncio.Task] = None

    def is_ready(self) -> bool:
        return self._ready

    async def initialize(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Check the model is installed, load it and verify GPU acceleration.

        Idempotent. Concurrent callers share one in-flight load.

        Ollama only reports GPU placement (/api/ps size_vram) for models that
        are already in memory. A model that is resident is checked before the
        load request; otherwise the check has to follow the load.

        Raises:
            AccelerationUnavailableError: If a GPU is required but not in use
            ModelServerError: If the server answered with an HTML page
            ModelLoadError: If Ollama is unreachable or the model is missing
            NotReadyError: If reset() was called before the load finished
        """
        if self._ready:
            return

        if self._init_task is None:
            self._init_task = asyncio.ensure_future(self._load(on_progress))

        task = self._init_task
        try:
            await asyncio.shield(task)
        except Exception:
            if self._init_task is task:
                self._init_task = None
            raise

        if self._init_task is not task:
            raise NotReadyError("LLM was reset while loading. Call initialize() again.")

        self._ready = True

    async def _load(self, on_progress: Optional[ProgressCallback]) -> None:
        if on_progress:
            on_progress(0.0, "Checking model availability...")

        try:
            installed = await self.client.list_models()

            if find_model(self.model, ({"name": name} for name in installed)) is None:
                raise ModelLoadError(
                    f"Chat model {self.model} is not installed. "
                    f"Run: ollama pull {self.model}"
                )

            resident = None
            if self.require_gpu:
                resident = find_model(self.model, await self.client.running_models())
                if resident is not None:
                    self._require_vram(resident)

            if on_progress:
                on_progress(0.1, "Loading LLM...")

            logger.info("llm_model_loading", model=self.model)
            await self.client.load_model(self.model)

            if self.require_gpu and resident is None:
                self._require_vram(find_model(self.model, await self.client.running_models()))

        except httpx.HTTPError as e:
            logger.error("llm_model_load_failed", model=self.model, error=str(e))
            if looks_like_html_error(str(e)):
                raise ModelServerError(
                    "Model server returned an error page. This is usually a temporary "
                    "network issue. Please try again."
                ) from e
            raise ModelLoadError(f"Failed to load chat model {self.model}: {e}") from e

        logger.info("llm_model_loaded", model=self.model, require_gpu=self.require_gpu)
        if on_progress:
            on_progress(1.0, "LLM ready")

    def _require_vram(self, entry: Optional[Dict[str, Any]]) -> None:
        size_vram = (entry or {}).get("size_vram", 0) or 0

        logger.info("llm_acceleration_checked", model=self.model, size_vram=size_vram)

        if size_vram <= 0:
            raise AccelerationUnavailableError(
                "GPU compute not supported in this environment: "
                f"{self.model} is not running on a GPU. "
                "Set LLM_REQUIRE_GPU=false to allow CPU inference."
            )

    async def generate_response(self, prompt: str) -> str:
        """Generate a complete (non-streamed) answer for a prompt.

        Raises:
            NotReadyError: If called before initialize() succeeded
            httpx.HTTPError: On API errors
        """
        if not self._ready:
            raise NotReadyError("LLM not initialized. Call initialize() first.")

        messages: List[Dict[str, str]] = [{"role": "user", "content": prompt}]

        response = await self.client.chat(
            messages,
            model=self.model,
            temperature=self.temperature,
            max_tokens=self.max_tokens,
        )
        content = ((response.get("message") or {}).get("content") or "").strip()

        if not content:
            logger.warning("empty_llm_response", model=self.model)
            return EMPTY_RESPONSE_FALLBACK

        return content

    def reset(self) -> None:
        """Drop the loaded model state; the next initialize() loads again."""
        self._ready = False
        self._init_task = None
        logger.info("generation_adapter_reset", model=self.model)
