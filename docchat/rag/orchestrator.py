"""RAG orchestration for a single active document.

Orchestrates:
- Building the in-memory index for the active document
- Candidate retrieval and relevance filtering
- Position-based source selection for results and metadata questions
- Prompt construction and answer generation
"""
from dataclasses import dataclass, field
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import structlog

from docchat import config
from docchat.errors import IngestionError, NoDocumentError
from docchat.rag.chunker import Chunk
from docchat.rag.embedder import EmbeddingAdapter
from docchat.rag.generator import GenerationAdapter
from docchat.rag.ingest import Document
from docchat.rag.questions import QuestionType, classify_question
from docchat.rag.ranker import RetrievalResult, SimilarityRanker

logger = structlog.get_logger()

# Scores assigned to sources chosen by position rather than similarity
ABSTRACT_SOURCE_SCORE = 0.8
CONCLUSION_SOURCE_SCORE = 0.75
METADATA_SOURCE_SCORE = 0.95

ABSTRACT_CHUNK_COUNT = 2
CONCLUSION_CHUNK_COUNT = 3
METADATA_CHUNK_COUNT = 2

IndexProgressCallback = Callable[[str, float], None]


@dataclass(frozen=True)
class DocumentIndex:
    """Embeddings of one document's chunks, keyed by chunk id."""

    document: Document
    chunks: Tuple[Chunk, ...]
    embeddings: Dict[int, List[float]] = field(default_factory=dict)


@dataclass(frozen=True)
class RAGResponse:
    """Answer to one question plus the sources cited for it."""

    answer: str
    sources: List[RetrievalResult]

    def to_dict(self) -> Dict:
        return {
            "answer": self.answer,
            "sources": [source.to_dict() for source in self.sources],
        }


def filter_by_threshold(
    results: Sequence[RetrievalResult], threshold: float
) -> List[RetrievalResult]:
    """Keep results scoring strictly above the threshold."""
    return [r for r in results if r.score > threshold]


def build_prompt(question: str, context: str) -> str:
    """Build the generation prompt from one source's text and the question."""
    return f"""You are a document assistant. Below is text extracted directly from the user's document.

Document text:
{context}

User question: {question}

Answer confidently and directly based on the document text above. Do not say "I don't have information" - the answer is in the text."""


def _append_positional(
    selected: List[RetrievalResult], chunks: Sequence[Chunk], score: float
) -> None:
    """Append chunks with a fixed score, skipping ids already selected."""
    seen = {r.chunk.id for r in selected}
    for item in chunks:
        if item.id not in seen:
            selected.append(RetrievalResult(chunk=item, score=score))
            seen.add(item.id)


class RAGOrchestrator:
    """Answers questions about the single active document."""

    def __init__(
        self,
        embedder: EmbeddingAdapter,
        generator: GenerationAdapter,
        max_sources: Optional[int] = None,
        relevance_threshold: Optional[float] = None,
        fallback_sources: Optional[int] = None,
    ):
        """Initialize the orchestrator.

        Args:
            embedder: Embedding adapter used for indexing and queries
            generator: Generation adapter used for answers
            max_sources: Default number of cited sources (default from config)
            relevance_threshold: Minimum similarity, exclusive (default from config)
            fallback_sources: Sources kept when nothing passes the threshold
        """
        self.embedder = embedder
        self.generator = generator
        self.ranker = SimilarityRanker(embedder)
        self.max_sources = config.RAG_MAX_SOURCES if max_sources is None else max_sources
        self.relevance_threshold = (
            config.RAG_RELEVANCE_THRESHOLD if relevance_threshold is None else relevance_threshold
        )
        self.fallback_sources = (
            config.RAG_FALLBACK_SOURCES if fallback_sources is None else fallback_sources
        )

        self._index: Optional[DocumentIndex] = None

    @property
    def document(self) -> Optional[Document]:
        """The indexed document, if any."""
        return self._index.document if self._index else None

    def is_document_indexed(self) -> bool:
        return self._index is not None

    async def index_document(
        self,
        document: Document,
        on_progress: Optional[IndexProgressCallback] = None,
    ) -> None:
        """Embed every chunk of a document and make it the active document.

        The previous index stays active until the new one is complete.

        Args:
            document: Ingested document with its chunks
            on_progress: Optional callback(stage, fraction 0-1)

        Raises:
            IngestionError: If the document has no chunks
        """
        if not document.chunks:
            raise IngestionError("Document has no chunks to index")

        logger.info(
            "document_indexing_started",
            document_id=document.id,
            name=document.name,
            chunk_count=len(document.chunks),
        )

        def report(current: int, total: int) -> None:
            if on_progress:
                on_progress("Indexing document", current / total)

        embeddings = await self.embedder.embed_chunks(document.chunks, report)

        self._index = DocumentIndex(
            document=document,
            chunks=tuple(document.chunks),
            embeddings=embeddings,
        )

        logger.info(
            "document_indexed",
            document_id=document.id,
            vector_count=len(embeddings),
            dimension=self.embedder.dimension,
        )

    async def query(self, question: str, max_sources: Optional[int] = None) -> RAGResponse:
        """Answer a question about the active document.

        Args:
            question: User question
            max_sources: Number of sources to cite (default from config)

        Returns:
            RAGResponse with the answer and sources in reading order

        Raises:
            NoDocumentError: If no document is indexed
        """
        index = self._index
        if index is None:
            raise NoDocumentError("No document indexed. Upload a document first.")

        max_sources = self.max_sources if max_sources is None else max_sources
        if max_sources < 1:
            raise ValueError(f"max_sources must be at least 1, got {max_sources}")

        categories = classify_question(question)
        chunks = index.chunks

        candidates = await self.ranker.find_relevant_chunks(
            question, chunks, index.embeddings, max_sources + 2
        )

        relevant = filter_by_threshold(candidates, self.relevance_threshold)
        if relevant:
            selected = relevant[:max_sources]
        else:
            # Nothing clears the threshold: cite the best candidates anyway
            selected = candidates[:self.fallback_sources]
            logger.info(
                "relevance_fallback_used",
                threshold=self.relevance_threshold,
                kept=len(selected),
            )

        if QuestionType.RESULTS in categories:
            _append_positional(selected, chunks[:ABSTRACT_CHUNK_COUNT], ABSTRACT_SOURCE_SCORE)
            _append_positional(
                selected, chunks[-CONCLUSION_CHUNK_COUNT:], CONCLUSION_SOURCE_SCORE
            )

        if QuestionType.METADATA in categories:
            selected = [
                RetrievalResult(chunk=item, score=METADATA_SOURCE_SCORE)
                for item in chunks[:METADATA_CHUNK_COUNT]
            ]

        sources = sorted(selected[:max_sources], key=lambda r: r.chunk.start_pos)

        # Only the best source goes to the model; all of them are cited
        context = max(sources, key=lambda r: r.score).chunk.text if sources else ""
        prompt = build_prompt(question, context)

        logger.debug(
            "rag_prompt_built",
            question_types=sorted(c.value for c in categories),
            context_length=len(context),
            prompt_length=len(prompt),
        )

        answer = await self.generator.generate_response(prompt)

        logger.info(
            "rag_query_completed",
            document_id=index.document.id,
            question_length=len(question),
            question_types=sorted(c.value for c in categories),
            sources=[r.chunk.id for r in sources],
            answer_length=len(answer),
        )

        return RAGResponse(answer=answer, sources=sources)

    def clear_index(self) -> None:
        """Drop the active document and its embeddings."""
        if self._index is not None:
            logger.info("document_index_cleared", document_id=self._index.document.id)
        self._index = None
