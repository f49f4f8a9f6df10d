"""Document ingestion: text extraction and chunking for uploaded files.

Handles:
- PDF text extraction (pypdf)
- Plain text and markdown decoding
- Page count estimation
- Chunking into the pipeline's Chunk model
"""
import io
import math
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple

import structlog
from pypdf import PdfReader
from pypdf.errors import PyPdfError

from docchat import config
from docchat.errors import IngestionError
from docchat.rag.chunker import Chunk, TextChunker

logger = structlog.get_logger()

PDF_CONTENT_TYPE = "application/pdf"
TEXT_SUFFIXES = (".txt", ".md", ".markdown")
WORDS_PER_PAGE = 500


@dataclass
class Document:
    """An uploaded document with its extracted text and chunks."""

    id: str
    name: str
    content: str
    content_type: str
    size: int
    page_count: int
    chunks: List[Chunk] = field(default_factory=list)
    uploaded_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def summary(self) -> Dict[str, Any]:
        """Describe the document without its text, for API responses."""
        return {
            "id": self.id,
            "name": self.name,
            "content_type": self.content_type,
            "size": self.size,
            "page_count": self.page_count,
            "chunk_count": len(self.chunks),
            "character_count": len(self.content),
            "uploaded_at": self.uploaded_at.isoformat(),
        }


def is_pdf(filename: str, content_type: Optional[str] = None) -> bool:
    """Detect a PDF by MIME type or file extension."""
    return content_type == PDF_CONTENT_TYPE or filename.lower().endswith(".pdf")


def is_text(filename: str, content_type: Optional[str] = None) -> bool:
    """Detect plain text or markdown by MIME type or file extension."""
    if content_type and content_type.startswith("text/"):
        return True
    return filename.lower().endswith(TEXT_SUFFIXES)


def estimate_page_count(content: str) -> int:
    """Estimate pages for formats without real pages, at 500 words per page."""
    return max(1, math.ceil(len(content.split()) / WORDS_PER_PAGE))


def extract_pdf_text(data: bytes) -> Tuple[str, int]:
    """Extract text from PDF bytes.

    Returns:
        Tuple of (text with pages separated by blank lines, page count)

    Raises:
        IngestionError: If the bytes cannot be parsed as a PDF
    """
    try:
        reader = PdfReader(io.BytesIO(data))
        pages = [page.extract_text() or "" for page in reader.pages]
    except PyPdfError as e:
        raise IngestionError(f"Could not read PDF: {e}") from e

    for number, text in enumerate(pages, 1):
        logger.debug("pdf_page_extracted", page=number, total=len(pages), chars=len(text))

    return "\n\n".join(pages), len(pages)


def decode_text(data: bytes) -> str:
    """Decode UTF-8 text, tolerating a byte-order mark."""
    try:
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise IngestionError(f"File is not valid UTF-8 text: {e}") from e


class DocumentLoader:
    """Turns uploaded files into chunked Documents."""

    def __init__(
        self,
        chunker: Optional[TextChunker] = None,
        max_upload_bytes: Optional[int] = None,
    ):
        """Initialize the loader.

        Args:
            chunker: Text chunker (one with config defaults if not provided)
            max_upload_bytes: Largest accepted file (default from config)
        """
        self.chunker = chunker or TextChunker()
        self.max_upload_bytes = (
            config.MAX_UPLOAD_BYTES if max_upload_bytes is None else max_upload_bytes
        )

    def load_bytes(
        self, data: bytes, filename: str, content_type: Optional[str] = None
    ) -> Document:
        """Extract, chunk and wrap an uploaded file.

        Args:
            data: Raw file contents
            filename: Original file name (used for type detection)
            content_type: Optional MIME type reported by the client

        Returns:
            Document with content and chunks

        Raises:
            IngestionError: On unsupported, oversized, unreadable or empty files
        """
        logger.info(
            "ingesting_document",
            filename=filename,
            content_type=content_type,
            size=len(data),
        )

        if len(data) > self.max_upload_bytes:
            raise IngestionError(
                f"File is too large ({len(data)} bytes, max {self.max_upload_bytes})"
            )

        if is_pdf(filename, content_type):
            content, page_count = extract_pdf_text(data)
            detected_type = PDF_CONTENT_TYPE
        elif is_text(filename, content_type):
            content = decode_text(data)
            page_count = estimate_page_count(content)
            detected_type = content_type or "text/plain"
        else:
            raise IngestionError(
                f"Unsupported file type for {filename!r}. Upload a PDF, text or markdown file."
            )

        if not content.strip():
            raise IngestionError(f"No extractable text found in {filename!r}")

        chunks = self.chunker.chunk_text(content)
        if not chunks:
            raise IngestionError(f"Document {filename!r} produced no chunks")

        document = Document(
            id=str(uuid.uuid4()),
            name=filename,
            content=content,
            content_type=detected_type,
            size=len(data),
            page_count=page_count,
            chunks=chunks,
        )

        logger.info(
            "document_ingested",
            document_id=document.id,
            filename=filename,
            page_count=page_count,
            chunk_stats=self.chunker.get_chunk_stats(chunks),
        )

        return document

    def load_file(self, file_path: Path) -> Document:
        """Load a document from disk.

        Raises:
            FileNotFoundError: If the file doesn't exist
            IngestionError: See load_bytes()
        """
        file_path = Path(file_path)
        if not file_path.exists():
            raise FileNotFoundError(f"Document not found: {file_path}")

        return self.load_bytes(file_path.read_bytes(), file_path.name)
