"""Quart application exposing the document chat pipeline over HTTP."""
from typing import Optional

import httpx
import structlog
from pydantic import BaseModel, Field, ValidationError, field_validator
from quart import Quart, jsonify, request

from docchat import config
from docchat.errors import (
    DocChatError,
    IngestionError,
    ModelLoadError,
    NoDocumentError,
    NotReadyError,
)
from docchat.logging_config import configure_logging
from docchat.service import ChatService

logger = structlog.get_logger()

# Multipart framing on top of the largest accepted file
UPLOAD_OVERHEAD_BYTES = 1024 * 1024


class ChatRequest(BaseModel):
    """Body of a question about the active document."""

    question: str = Field(..., min_length=1, max_length=config.MAX_QUESTION_LENGTH)
    max_sources: Optional[int] = Field(None, ge=1, le=20)

    @field_validator("question")
    @classmethod
    def question_not_blank(cls, v: str) -> str:
        if not v.strip():
            raise ValueError("Question cannot be empty or only whitespace")
        return v.strip()


def _status_for(error: DocChatError) -> int:
    if isinstance(error, IngestionError):
        return 400
    if isinstance(error, NoDocumentError):
        return 409
    if isinstance(error, (NotReadyError, ModelLoadError)):
        return 503
    return 500


def create_app(service: Optional[ChatService] = None) -> Quart:
    """Build the application around a ChatService (a default one if not given)."""
    app = Quart(__name__)
    app.config["MAX_CONTENT_LENGTH"] = config.MAX_UPLOAD_BYTES + UPLOAD_OVERHEAD_BYTES

    chat_service = service or ChatService()
    app.extensions["chat_service"] = chat_service

    @app.route("/api/models/initialize", methods=["POST"])
    async def initialize_models():
        """Load both models. Safe to call repeatedly."""
        await chat_service.initialize_models()
        logger.info("models_initialized", **chat_service.status())
        return jsonify(chat_service.status())

    @app.route("/api/models/reset", methods=["POST"])
    async def reset_models():
        chat_service.reset_models()
        return jsonify(chat_service.status())

    @app.route("/api/documents", methods=["POST"])
    async def upload_document():
        """Upload a document (multipart field 'file') and index it.

        Returns JSON:
        {
            "id": "uuid",
            "name": "paper.pdf",
            "page_count": 12,
            "chunk_count": 48,
            ...
        }
        """
        files = await request.files
        upload = files.get("file")

        if upload is None or not upload.filename:
            return jsonify({"error": "Missing 'file' in upload", "code": "INVALID_REQUEST"}), 400

        data = upload.read()

        def on_progress(stage: str, fraction: float) -> None:
            logger.debug("indexing_progress", stage=stage, progress=round(fraction, 3))

        document = await chat_service.upload(
            data, upload.filename, upload.mimetype or None, on_progress
        )

        return jsonify(document.summary()), 201

    @app.route("/api/documents/current", methods=["GET"])
    async def current_document():
        document = chat_service.document
        if document is None:
            return jsonify({"error": "No document indexed", "code": "NO_DOCUMENT"}), 404
        return jsonify(document.summary())

    @app.route("/api/documents/current", methods=["DELETE"])
    async def clear_document():
        chat_service.clear()
        return "", 204

    @app.route("/api/chat", methods=["POST"])
    async def chat():
        """Answer a question about the active document.

        Expects JSON body:
        {
            "question": "What is the title?",
            "max_sources": 2  // optional
        }

        Returns JSON:
        {
            "answer": "...",
            "sources": [{"chunk_id": 0, "start_pos": 0, "end_pos": 812, "score": 0.95, "text": "..."}],
            "document_id": "uuid",
            "model": "llama3.2:1b"
        }
        """
        data = await request.get_json(silent=True)
        chat_request = ChatRequest.model_validate(data or {})

        logger.info(
            "chat_request_received",
            question_length=len(chat_request.question),
            max_sources=chat_request.max_sources,
        )

        response = await chat_service.ask(chat_request.question, chat_request.max_sources)
        document = chat_service.document

        body = response.to_dict()
        body["document_id"] = document.id if document else None
        body["model"] = chat_service.generator.model

        return jsonify(body)

    @app.route("/health/ready")
    async def health_ready():
        """Readiness probe - both models loaded."""
        status = chat_service.status()
        ready = status["embedding_ready"] and status["chat_ready"]
        status["status"] = "healthy" if ready else "unhealthy"
        return jsonify(status), 200 if ready else 503

    @app.route("/health/live")
    async def health_live():
        """Liveness probe - check if app is running."""
        return jsonify({"status": "alive"}), 200

    @app.errorhandler(DocChatError)
    async def pipeline_error(error: DocChatError):
        status_code = _status_for(error)
        logger.warning(
            "pipeline_error",
            error=error.message,
            code=error.code.value,
            status_code=status_code,
        )
        return jsonify({"error": error.message, "code": error.code.value}), status_code

    @app.errorhandler(ValidationError)
    async def validation_error(error: ValidationError):
        messages = [e["msg"] for e in error.errors()]
        return jsonify({"error": "; ".join(messages), "code": "INVALID_REQUEST"}), 400

    @app.errorhandler(httpx.HTTPError)
    async def backend_error(error: httpx.HTTPError):
        logger.error("model_backend_error", error=str(error), error_type=type(error).__name__)
        return jsonify({
            "error": "The model backend failed to respond. Please try again.",
            "code": "BACKEND_ERROR",
        }), 502

    @app.errorhandler(404)
    async def not_found(error):
        """Handle 404 errors."""
        return jsonify({"error": "Not found"}), 404

    @app.errorhandler(500)
    async def internal_error(error):
        """Handle 500 errors."""
        logger.error("internal_server_error", error=str(error))
        return jsonify({"error": "Internal server error"}), 500

    return app


configure_logging()

app = create_app()


if __name__ == "__main__":
    # For development - use an ASGI server in production
    app.run(host="0.0.0.0", port=5000, debug=True)
