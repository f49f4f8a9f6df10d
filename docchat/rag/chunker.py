"""Text chunking with overlap for the RAG pipeline.

Implements character-based chunking with sentence-boundary snapping.
"""
import re
from dataclasses import dataclass
from typing import List, Optional

import structlog

from docchat import config

logger = structlog.get_logger()

# A sentence terminator followed by whitespace
SENTENCE_END_PATTERN = re.compile(r"[.!?]\s")


@dataclass(frozen=True)
class Chunk:
    """A contiguous slice of document text with its position information.

    ``start_pos``/``end_pos`` are offsets of the untrimmed window in the
    source text; ``text`` is the trimmed window.
    """

    id: int
    text: str
    start_pos: int
    end_pos: int


class TextChunker:
    """Character-based text chunker with overlap support."""

    def __init__(
        self,
        chunk_size: Optional[int] = None,
        chunk_overlap: Optional[int] = None,
        max_chunks: Optional[int] = None,
        lookahead: Optional[int] = None,
    ):
        """Initialize the text chunker.

        Args:
            chunk_size: Size of each window in characters (default from config)
            chunk_overlap: Overlap between windows in characters (default from config)
            max_chunks: Maximum number of chunks per text (default from config)
            lookahead: How far past the window end to look for a sentence end
        """
        self.chunk_size = config.CHUNK_SIZE if chunk_size is None else chunk_size
        self.chunk_overlap = config.CHUNK_OVERLAP if chunk_overlap is None else chunk_overlap
        self.max_chunks = config.MAX_CHUNKS if max_chunks is None else max_chunks
        self.lookahead = config.CHUNK_SENTENCE_LOOKAHEAD if lookahead is None else lookahead

        # Validate parameters
        if self.chunk_size <= 0:
            raise ValueError(f"Chunk size must be positive, got {self.chunk_size}")

        if not 0 <= self.chunk_overlap < self.chunk_size:
            raise ValueError(
                f"Overlap ({self.chunk_overlap}) must be non-negative and less than "
                f"chunk size ({self.chunk_size})"
            )

        if self.max_chunks <= 0:
            raise ValueError(f"Max chunks must be positive, got {self.max_chunks}")

        if self.lookahead < 0:
            raise ValueError(f"Lookahead must be non-negative, got {self.lookahead}")

        logger.debug(
            "chunker_initialized",
            chunk_size=self.chunk_size,
            chunk_overlap=self.chunk_overlap,
            max_chunks=self.max_chunks,
        )

    def chunk_text(self, text: str) -> List[Chunk]:
        """Split text into overlapping, sentence-aware chunks.

        Args:
            text: Text to chunk

        Returns:
            List of Chunk objects with dense ids starting at 0
        """
        if not text:
            return []

        text_length = len(text)
        chunks: List[Chunk] = []
        start = 0

        while start < text_length and len(chunks) < self.max_chunks:
            end = self._find_window_end(text, start)

            chunk_content = text[start:end].strip()

            if chunk_content:
                chunks.append(
                    Chunk(
                        id=len(chunks),
                        text=chunk_content,
                        start_pos=start,
                        end_pos=end,
                    )
                )

            # The window reaching end-of-text is the last one
            if end >= text_length:
                start = text_length
                break

            # Move to next window with overlap, always making progress
            next_start = end - self.chunk_overlap
            start = end if next_start <= start else next_start

        if len(chunks) >= self.max_chunks and start < text_length:
            logger.warning(
                "chunk_limit_reached",
                max_chunks=self.max_chunks,
                text_length=text_length,
                chars_dropped=text_length - start,
            )

        logger.info(
            "text_chunked",
            text_length=text_length,
            chunk_count=len(chunks),
        )

        return chunks

    def _find_window_end(self, text: str, start: int) -> int:
        """Return the end offset of the window starting at ``start``.

        The nominal end is extended to just past the first sentence terminator
        within the lookahead range. The last window always ends at end-of-text.
        """
        end = start + self.chunk_size

        if end >= len(text):
            return len(text)

        segment = text[end:min(end + self.lookahead, len(text))]
        match = SENTENCE_END_PATTERN.search(segment)
        if match:
            return end + match.start() + 1

        return end

    def get_chunk_stats(self, chunks: List[Chunk]) -> dict:
        """Get statistics about a set of chunks.

        Args:
            chunks: List of Chunk objects

        Returns:
            Dictionary with chunk statistics
        """
        if not chunks:
            return {
                "chunk_count": 0,
                "total_chars": 0,
                "avg_chunk_size": 0,
                "min_chunk_size": 0,
                "max_chunk_size": 0,
                "overlap": self.chunk_overlap,
            }

        chunk_sizes = [len(c.text) for c in chunks]

        return {
            "chunk_count": len(chunks),
            "total_chars": sum(chunk_sizes),
            "avg_chunk_size": sum(chunk_sizes) // len(chunks),
            "min_chunk_size": min(chunk_sizes),
            "max_chunk_size": max(chunk_sizes),
            "overlap": self.chunk_overlap,
        }


def chunk(text: str) -> List[Chunk]:
    """Chunk text using the configured defaults (convenience function).

    Args:
        text: Text to chunk

    Returns:
        List of Chunk objects
    """
    return TextChunker().chunk_text(text)
