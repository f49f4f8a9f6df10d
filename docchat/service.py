"""Wiring of the pipeline components behind one caller-facing object.

Every component is constructed here (or injected), so callers control the
lifetime of models and of the active document.
"""
from typing import Any, Dict, Optional

import structlog

from docchat.ollama_client import OllamaClient
from docchat.rag.embedder import EmbeddingAdapter, ProgressCallback
from docchat.rag.generator import GenerationAdapter
from docchat.rag.ingest import Document, DocumentLoader
from docchat.rag.orchestrator import IndexProgressCallback, RAGOrchestrator, RAGResponse

logger = structlog.get_logger()


class ChatService:
    """Upload a document, then ask questions about it."""

    def __init__(
        self,
        client: Optional[OllamaClient] = None,
        embedder: Optional[EmbeddingAdapter] = None,
        generator: Optional[GenerationAdapter] = None,
        loader: Optional[DocumentLoader] = None,
        orchestrator: Optional[RAGOrchestrator] = None,
    ):
        self.client = client or OllamaClient()
        self.embedder = embedder or EmbeddingAdapter(self.client)
        self.generator = generator or GenerationAdapter(self.client)
        self.loader = loader or DocumentLoader()
        self.orchestrator = orchestrator or RAGOrchestrator(self.embedder, self.generator)

    async def initialize_models(self, on_progress: Optional[ProgressCallback] = None) -> None:
        """Load the embedding model, then the chat model."""
        await self.embedder.initialize(on_progress)
        await self.generator.initialize(on_progress)

    def reset_models(self) -> None:
        self.embedder.reset()
        self.generator.reset()

    async def upload(
        self,
        data: bytes,
        filename: str,
        content_type: Optional[str] = None,
        on_progress: Optional[IndexProgressCallback] = None,
    ) -> Document:
        """Ingest a file and make it the active document.

        Raises:
            IngestionError: If the file yields no usable text
            NotReadyError: If the embedding model is not initialized
        """
        document = self.loader.load_bytes(data, filename, content_type)
        await self.orchestrator.index_document(document, on_progress)
        return document

    async def ask(self, question: str, max_sources: Optional[int] = None) -> RAGResponse:
        return await self.orchestrator.query(question, max_sources)

    def clear(self) -> None:
        self.orchestrator.clear_index()

    @property
    def document(self) -> Optional[Document]:
        return self.orchestrator.document

    def status(self) -> Dict[str, Any]:
        """Readiness of each component, for health checks."""
        document = self.orchestrator.document
        return {
            "embedding_model": self.embedder.model,
            "embedding_ready": self.embedder.is_ready(),
            "chat_model": self.generator.model,
            "chat_ready": self.generator.is_ready(),
            "document_indexed": self.orchestrator.is_document_indexed(),
            "document_id": document.id if document else None,
        }
