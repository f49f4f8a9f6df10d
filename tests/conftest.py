"""Pytest configuration and fixtures shared by unit and API tests."""
import json
import math
from typing import Dict, List, Optional

import httpx
import pytest

from docchat.ollama_client import OllamaClient
from docchat.rag.chunker import Chunk
from docchat.rag.embedder import EmbeddingAdapter
from docchat.rag.generator import GenerationAdapter
from docchat.rag.ingest import Document

EMBEDDING_MODEL = "all-minilm:latest"
CHAT_MODEL = "llama3.2:1b"

# Keyword-presence embedding: deterministic and easy to reason about
KEYWORDS = ["machine", "learning", "data", "image", "language", "author", "result"]


def keyword_embedding(text: str) -> List[float]:
    lowered = text.lower()
    return [1.0 if word in lowered else 0.0 for word in KEYWORDS]


def vector_for_score(score: float) -> List[float]:
    """2-d unit vector whose cosine with [1, 0] equals score."""
    return [score, math.sqrt(max(0.0, 1.0 - score * score))]


HTML_ERROR_PAGE = "<!DOCTYPE html><html><body><h1>502 Bad Gateway</h1></body></html>"


class FakeOllama:
    """In-process stand-in for the Ollama HTTP API."""

    def __init__(
        self,
        models=(EMBEDDING_MODEL, CHAT_MODEL),
        size_vram: int = 1024,
        answer: str = "The answer is in the document.",
    ):
        self.models = list(models)
        self.size_vram = size_vram
        self.answer = answer
        self.requests: List[tuple] = []
        self.embed_failures = 0
        self.embed_failure_html = False
        self.html_failure_status = 200
        self.resident = True
        self.chat_status = 200

    def calls(self, path: str) -> List[Dict]:
        return [payload for p, payload in self.requests if p == path]

    def handler(self, request: httpx.Request) -> httpx.Response:
        path = request.url.path
        payload = json.loads(request.content) if request.content else {}
        self.requests.append((path, payload))

        if path == "/api/embeddings":
            if self.embed_failures > 0:
                self.embed_failures -= 1
                if self.embed_failure_html:
                    return httpx.Response(
                        self.html_failure_status, text=HTML_ERROR_PAGE, headers={"content-type": "text/html"}
                    )
                return httpx.Response(500, json={"error": "model runner crashed"})
            return httpx.Response(200, json={"embedding": keyword_embedding(payload["prompt"])})

        if path == "/api/tags":
            return httpx.Response(200, json={"models": [{"name": m} for m in self.models]})

        if path == "/api/generate":
            self.resident = True
            return httpx.Response(200, json={"model": payload["model"], "done": True})

        if path == "/api/ps":
            running = [{"name": CHAT_MODEL, "model": CHAT_MODEL, "size_vram": self.size_vram}]
            return httpx.Response(200, json={"models": running if self.resident else []})

        if path == "/api/chat":
            if self.chat_status != 200:
                return httpx.Response(self.chat_status, json={"error": "chat failed"})
            return httpx.Response(
                200, json={"message": {"role": "assistant", "content": self.answer}, "done": True}
            )

        return httpx.Response(404, json={"error": "not found"})

    def client(self) -> OllamaClient:
        return OllamaClient(
            base_url="http://ollama.test",
            transport=httpx.MockTransport(self.handler),
        )


class StubEmbedder:
    """Embedding adapter stand-in with fixed chunk vectors and query vector."""

    model = "stub-embedding"
    dimension = 2

    def __init__(self, chunk_vectors: Dict[int, List[float]], query_vector=(1.0, 0.0)):
        self.chunk_vectors = chunk_vectors
        self.query_vector = list(query_vector)
        self.queries: List[str] = []

    def is_ready(self) -> bool:
        return True

    async def embed_text(self, text: str) -> List[float]:
        self.queries.append(text)
        return self.query_vector

    async def embed_chunks(self, chunks, on_progress=None):
        embeddings = {}
        for current, item in enumerate(chunks, 1):
            if item.id in self.chunk_vectors:
                embeddings[item.id] = self.chunk_vectors[item.id]
            if on_progress:
                on_progress(current, len(chunks))
        return embeddings


class StubGenerator:
    """Generation adapter stand-in that records prompts."""

    model = "stub-chat"

    def __init__(self, answer: str = "Stub answer.", error: Optional[Exception] = None):
        self.answer = answer
        self.error = error
        self.prompts: List[str] = []

    def is_ready(self) -> bool:
        return True

    async def generate_response(self, prompt: str) -> str:
        self.prompts.append(prompt)
        if self.error:
            raise self.error
        return self.answer


def make_document(chunk_count: int, doc_id: str = "doc-1") -> Document:
    """Document whose chunks are 'Section N body.' at 100-char strides."""
    chunks = [
        Chunk(id=i, text=f"Section {i} body.", start_pos=i * 100, end_pos=i * 100 + 120)
        for i in range(chunk_count)
    ]
    return Document(
        id=doc_id,
        name="paper.pdf",
        content="x" * (chunk_count * 100 + 20),
        content_type="application/pdf",
        size=chunk_count * 100,
        page_count=1,
        chunks=chunks,
    )


@pytest.fixture
def fake_ollama() -> FakeOllama:
    return FakeOllama()


@pytest.fixture
def ollama_client(fake_ollama) -> OllamaClient:
    return fake_ollama.client()


@pytest.fixture
def embedder(ollama_client) -> EmbeddingAdapter:
    return EmbeddingAdapter(ollama_client, model=EMBEDDING_MODEL, max_retries=3, retry_delay=0)


@pytest.fixture
def generator(ollama_client) -> GenerationAdapter:
    return GenerationAdapter(
        ollama_client, model=CHAT_MODEL, temperature=0.1, max_tokens=300, require_gpu=True
    )


@pytest.fixture
def sample_text() -> str:
    """Multi-chunk text about machine learning with a clear first and last section."""
    intro = (
        "Title: Learning From Data. Written by Ada Example. "
        "This paper studies machine learning on image data. "
    )
    body = "The method processes language data in several stages. " * 30
    ending = "In conclusion, the final result reached 93 percent accuracy. "
    return intro + body + ending
