"""RAG (Retrieval-Augmented Generation) pipeline components.

This package contains modules for:
- Document ingestion and text extraction
- Sentence-aware chunking with overlap
- Embedding and generation adapters over Ollama
- Cosine similarity ranking
- Source selection and prompt construction
"""
from docchat.rag.chunker import Chunk, TextChunker, chunk
from docchat.rag.embedder import EmbeddingAdapter
from docchat.rag.generator import GenerationAdapter
from docchat.rag.ingest import Document, DocumentLoader
from docchat.rag.orchestrator import RAGOrchestrator, RAGResponse
from docchat.rag.ranker import RetrievalResult, SimilarityRanker

__all__ = [
    "Chunk",
    "Document",
    "DocumentLoader",
    "EmbeddingAdapter",
    "GenerationAdapter",
    "RAGOrchestrator",
    "RAGResponse",
    "RetrievalResult",
    "SimilarityRanker",
    "TextChunker",
    "chunk",
]
