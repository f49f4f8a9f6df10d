"""Similarity ranking of document chunks against a question.

Handles:
- Query embedding through the embedding adapter
- Brute-force cosine similarity over every chunk of the active document
- Stable top-k selection
"""
from dataclasses import dataclass
from typing import Dict, List, Mapping, Sequence

import numpy as np
import structlog

from docchat.rag.chunker import Chunk
from docchat.rag.embedder import EmbeddingAdapter

logger = structlog.get_logger()


@dataclass(frozen=True)
class RetrievalResult:
    """A chunk paired with its relevance score (cosine similarity, -1 to 1)."""

    chunk: Chunk
    score: float

    def to_dict(self) -> Dict:
        return {
            "chunk_id": self.chunk.id,
            "text": self.chunk.text,
            "start_pos": self.chunk.start_pos,
            "end_pos": self.chunk.end_pos,
            "score": round(self.score, 4),
        }


def cosine_similarity(a: Sequence[float], b: Sequence[float]) -> float:
    """Cosine of the angle between two vectors. Zero-length vectors score 0."""
    vec_a = np.asarray(a, dtype=np.float64)
    vec_b = np.asarray(b, dtype=np.float64)

    if vec_a.shape != vec_b.shape:
        raise ValueError(
            f"Vector dimension mismatch: {vec_a.shape[0]} vs {vec_b.shape[0]}"
        )

    norm = np.linalg.norm(vec_a) * np.linalg.norm(vec_b)
    if norm == 0:
        return 0.0

    return float(np.dot(vec_a, vec_b) / norm)


def find_relevant_chunks(
    query_embedding: Sequence[float],
    chunks: Sequence[Chunk],
    embeddings: Mapping[int, Sequence[float]],
    top_k: int,
) -> List[RetrievalResult]:
    """Rank chunks by similarity to an already-embedded query.

    Args:
        query_embedding: Query vector
        chunks: Chunks in document order
        embeddings: Chunk id to vector; chunks without a vector score 0
        top_k: Maximum number of results

    Returns:
        Up to top_k results, best first; ties keep document order
    """
    scored = []
    for item in chunks:
        vector = embeddings.get(item.id)
        score = 0.0 if vector is None else cosine_similarity(query_embedding, vector)
        scored.append(RetrievalResult(chunk=item, score=score))

    # list.sort is stable, so equal scores keep document order
    scored.sort(key=lambda r: r.score, reverse=True)

    return scored[:max(top_k, 0)]


class SimilarityRanker:
    """Embeds a question and ranks the active document's chunks against it."""

    def __init__(self, embedder: EmbeddingAdapter):
        self.embedder = embedder

    async def find_relevant_chunks(
        self,
        query: str,
        chunks: Sequence[Chunk],
        embeddings: Mapping[int, Sequence[float]],
        top_k: int,
    ) -> List[RetrievalResult]:
        """Embed the query and return the top_k most similar chunks."""
        query_embedding = await self.embedder.embed_text(query)

        results = find_relevant_chunks(query_embedding, chunks, embeddings, top_k)

        logger.info(
            "retrieval_completed",
            query_length=len(query),
            candidates=len(chunks),
            results_returned=len(results),
            top_score=round(results[0].score, 4) if results else None,
        )

        return results
