"""Ollama HTTP client wrapper with error handling."""
from typing import Any, Dict, List, Optional

import httpx
import structlog

from docchat import config

logger = structlog.get_logger()


class OllamaResponseError(httpx.HTTPError):
    """Ollama (or something in front of it) answered with a body that is not JSON."""


class OllamaClient:
    """Async client for interacting with the Ollama API."""

    def __init__(
        self,
        base_url: str = None,
        timeout: float = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        """Initialize Ollama client.

        Args:
            base_url: Ollama API base URL (defaults to config.OLLAMA_BASE_URL)
            timeout: Request timeout in seconds (defaults to config.OLLAMA_TIMEOUT)
            transport: Optional httpx transport, used to stub the server in tests
        """
        self.base_url = (base_url or config.OLLAMA_BASE_URL).rstrip("/")
        self.timeout = timeout if timeout is not None else config.OLLAMA_TIMEOUT
        self._transport = transport

    def _client(self, timeout: float = None) -> httpx.AsyncClient:
        return httpx.AsyncClient(
            base_url=self.base_url,
            timeout=timeout if timeout is not None else self.timeout,
            transport=self._transport,
        )

    @staticmethod
    def _non_json_error(response: httpx.Response) -> OllamaResponseError:
        preview = response.text[:200]
        return OllamaResponseError(
            f"Unexpected non-JSON response ({response.status_code}) "
            f"from {response.request.url}: {preview}"
        )

    @classmethod
    def _decode(cls, response: httpx.Response) -> Dict[str, Any]:
        """Parse a JSON body, keeping a preview of anything else for diagnostics."""
        try:
            return response.json()
        except ValueError as e:
            raise cls._non_json_error(response) from e

    async def _request(
        self,
        method: str,
        path: str,
        event: str,
        json: Optional[Dict[str, Any]] = None,
        timeout: float = None,
    ) -> Dict[str, Any]:
        try:
            async with self._client(timeout) as client:
                response = await client.request(method, path, json=json)

                # Proxies in front of Ollama answer errors with HTML pages
                if response.is_error and "json" not in response.headers.get("content-type", ""):
                    raise self._non_json_error(response)

                response.raise_for_status()
                return self._decode(response)

        except httpx.ConnectError as e:
            logger.error(f"{event}_connection_error", error=str(e), base_url=self.base_url)
            raise
        except httpx.HTTPStatusError as e:
            logger.error(
                f"{event}_http_error",
                error=str(e),
                status_code=e.response.status_code,
            )
            raise
        except httpx.HTTPError as e:
            logger.error(f"{event}_error", error=str(e), error_type=type(e).__name__)
            raise

    async def chat(
        self,
        messages: List[Dict[str, str]],
        model: str = None,
        temperature: Optional[float] = None,
        max_tokens: Optional[int] = None,
    ) -> Dict:
        """Send chat completion request to Ollama.

        Args:
            messages: List of message dicts with 'role' and 'content'
            model: Model to use (defaults to config.LLM_MODEL)
            temperature: Sampling temperature (0.0-2.0)
            max_tokens: Cap on generated tokens (Ollama's num_predict)

        Returns:
            Response dict with 'message' containing 'content'

        Raises:
            httpx.HTTPError: On API errors
            httpx.ConnectError: If Ollama service is unavailable
        """
        model = model or config.LLM_MODEL

        payload = {
            "model": model,
            "messages": messages,
            "stream": False,
        }

        options = {}
        if temperature is not None:
            options["temperature"] = temperature
        if max_tokens is not None:
            options["num_predict"] = max_tokens
        if options:
            payload["options"] = options

        logger.info(
            "ollama_chat_request",
            model=model,
            message_count=len(messages),
        )

        data = await self._request("POST", "/api/chat", "ollama_chat", json=payload)

        logger.info(
            "ollama_chat_response",
            model=model,
            response_length=len((data.get("message") or {}).get("content") or ""),
        )

        return data

    async def embeddings(
        self,
        prompt: str,
        model: str = None,
    ) -> Dict:
        """Generate embeddings for a text prompt.

        Args:
            prompt: Text to embed
            model: Model to use (defaults to config.EMBEDDING_MODEL)

        Returns:
            Response dict with 'embedding' list

        Raises:
            httpx.HTTPError: On API errors
        """
        model = model or config.EMBEDDING_MODEL

        logger.debug(
            "ollama_embedding_request",
            model=model,
            prompt_length=len(prompt),
        )

        data = await self._request(
            "POST",
            "/api/embeddings",
            "ollama_embedding",
            json={"model": model, "prompt": prompt},
        )

        logger.debug(
            "ollama_embedding_response",
            model=model,
            dimension=len(data.get("embedding", [])),
        )

        return data

    async def list_models(self) -> List[str]:
        """List all installed Ollama models.

        Returns:
            List of model names

        Raises:
            httpx.HTTPError: On API errors
        """
        data = await self._request("GET", "/api/tags", "ollama_list_models", timeout=5.0)
        return [m["name"] for m in data.get("models", [])]

    async def load_model(self, model: str) -> Dict:
        """Load a model into memory without generating anything.

        Ollama loads the model when /api/generate is called without a prompt.
        """
        logger.info("ollama_load_model_request", model=model)
        return await self._request(
            "POST",
            "/api/generate",
            "ollama_load_model",
            json={"model": model, "stream": False},
        )

    async def running_models(self) -> List[Dict[str, Any]]:
        """List models currently loaded in memory, with their VRAM footprint."""
        data = await self._request("GET", "/api/ps", "ollama_running_models", timeout=5.0)
        return data.get("models", [])
