"""Tests for the HTTP API, backed by an in-process Ollama stand-in."""
import io

import pytest
from werkzeug.datastructures import FileStorage

from conftest import CHAT_MODEL, EMBEDDING_MODEL
from docchat.main import create_app
from docchat.rag.embedder import EmbeddingAdapter
from docchat.rag.generator import GenerationAdapter
from docchat.service import ChatService


@pytest.fixture
def service(fake_ollama):
    client = fake_ollama.client()
    return ChatService(
        client=client,
        embedder=EmbeddingAdapter(client, model=EMBEDDING_MODEL, retry_delay=0),
        generator=GenerationAdapter(client, model=CHAT_MODEL, require_gpu=True),
    )


@pytest.fixture
def app(service):
    return create_app(service)


@pytest.fixture
def client(app):
    return app.test_client()


def _upload(text: str, filename: str = "paper.txt", content_type: str = "text/plain"):
    return {
        "file": FileStorage(
            io.BytesIO(text.encode("utf-8")), filename=filename, content_type=content_type
        )
    }


async def _ready_with_document(client, sample_text):
    response = await client.post("/api/models/initialize")
    assert response.status_code == 200
    response = await client.post("/api/documents", files=_upload(sample_text))
    assert response.status_code == 201
    return await response.get_json()


@pytest.mark.asyncio
async def test_health_live(client):
    """Test that the liveness probe always answers."""
    response = await client.get("/health/live")

    assert response.status_code == 200
    assert (await response.get_json())["status"] == "alive"


@pytest.mark.asyncio
async def test_health_ready_tracks_model_state(client):
    """Test that readiness flips once both models are loaded."""
    response = await client.get("/health/ready")
    assert response.status_code == 503

    await client.post("/api/models/initialize")

    response = await client.get("/health/ready")
    data = await response.get_json()
    assert response.status_code == 200
    assert data["embedding_ready"] and data["chat_ready"]


@pytest.mark.asyncio
async def test_initialize_models(client):
    """Test model initialization reports both models ready."""
    response = await client.post("/api/models/initialize")
    data = await response.get_json()

    assert response.status_code == 200
    assert data["embedding_model"] == EMBEDDING_MODEL
    assert data["chat_model"] == CHAT_MODEL
    assert data["document_indexed"] is False


@pytest.mark.asyncio
async def test_initialize_missing_model_returns_503(client, fake_ollama):
    """Test that a missing chat model is a service-unavailable error."""
    fake_ollama.models = [EMBEDDING_MODEL]

    response = await client.post("/api/models/initialize")
    data = await response.get_json()

    assert response.status_code == 503
    assert data["code"] == "MODEL_LOAD_ERROR"
    assert "ollama pull" in data["error"]


@pytest.mark.asyncio
async def test_initialize_without_gpu_returns_503(client, fake_ollama):
    """Test that missing GPU acceleration is reported with its own code."""
    fake_ollama.size_vram = 0

    response = await client.post("/api/models/initialize")

    assert response.status_code == 503
    assert (await response.get_json())["code"] == "ACCELERATION_UNAVAILABLE"


@pytest.mark.asyncio
async def test_reset_models(client):
    """Test that a reset returns both models to the unloaded state."""
    await client.post("/api/models/initialize")

    response = await client.post("/api/models/reset")
    data = await response.get_json()

    assert data["embedding_ready"] is False
    assert data["chat_ready"] is False


@pytest.mark.asyncio
async def test_upload_before_initialize_returns_503(client, sample_text):
    """Test that indexing needs the embedding model."""
    response = await client.post("/api/documents", files=_upload(sample_text))

    assert response.status_code == 503
    assert (await response.get_json())["code"] == "NOT_READY"


@pytest.mark.asyncio
async def test_upload_document(client, sample_text):
    """Test uploading and indexing a text document."""
    data = await _ready_with_document(client, sample_text)

    assert data["name"] == "paper.txt"
    assert data["chunk_count"] >= 2
    assert data["page_count"] == 1

    response = await client.get("/api/documents/current")
    assert (await response.get_json())["id"] == data["id"]


@pytest.mark.asyncio
async def test_upload_unsupported_type_returns_400(client):
    """Test that unsupported files are rejected as ingestion errors."""
    await client.post("/api/models/initialize")

    response = await client.post(
        "/api/documents",
        files=_upload("binary", filename="sheet.xlsx", content_type="application/vnd.ms-excel"),
    )

    assert response.status_code == 400
    assert (await response.get_json())["code"] == "INGESTION_ERROR"


@pytest.mark.asyncio
async def test_upload_without_file_returns_400(client):
    """Test that the multipart 'file' field is required."""
    response = await client.post("/api/documents", form={"other": "value"})

    assert response.status_code == 400
    assert (await response.get_json())["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_current_document_404_when_empty(client):
    """Test that no active document is a 404."""
    response = await client.get("/api/documents/current")

    assert response.status_code == 404
    assert (await response.get_json())["code"] == "NO_DOCUMENT"


@pytest.mark.asyncio
async def test_chat_answers_with_sources(client, fake_ollama, sample_text):
    """Test a question about the uploaded document."""
    document = await _ready_with_document(client, sample_text)

    response = await client.post("/api/chat", json={"question": "How is the data processed?"})
    data = await response.get_json()

    assert response.status_code == 200
    assert data["answer"] == fake_ollama.answer
    assert data["document_id"] == document["id"]
    assert data["model"] == CHAT_MODEL
    assert 1 <= len(data["sources"]) <= 2
    positions = [s["start_pos"] for s in data["sources"]]
    assert positions == sorted(positions)
    assert set(data["sources"][0]) == {"chunk_id", "text", "start_pos", "end_pos", "score"}


@pytest.mark.asyncio
async def test_chat_metadata_question_cites_opening_chunks(client, sample_text):
    """Test that an author question cites the first two chunks."""
    await _ready_with_document(client, sample_text)

    response = await client.post("/api/chat", json={"question": "Who is the author?"})
    data = await response.get_json()

    assert [s["chunk_id"] for s in data["sources"]] == [0, 1]
    assert [s["score"] for s in data["sources"]] == [0.95, 0.95]


@pytest.mark.asyncio
async def test_chat_respects_max_sources(client, sample_text):
    """Test that max_sources limits the citations."""
    await _ready_with_document(client, sample_text)

    response = await client.post(
        "/api/chat", json={"question": "How is the data processed?", "max_sources": 1}
    )

    assert len((await response.get_json())["sources"]) == 1


@pytest.mark.asyncio
async def test_chat_without_document_returns_409(client):
    """Test that questions need an indexed document."""
    await client.post("/api/models/initialize")

    response = await client.post("/api/chat", json={"question": "What is this?"})

    assert response.status_code == 409
    assert (await response.get_json())["code"] == "NO_DOCUMENT"


@pytest.mark.asyncio
async def test_clear_document(client, sample_text):
    """Test that deleting the active document returns to the empty state."""
    await _ready_with_document(client, sample_text)

    response = await client.delete("/api/documents/current")
    assert response.status_code == 204

    response = await client.post("/api/chat", json={"question": "What is this?"})
    assert response.status_code == 409


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "body",
    [
        {},
        {"question": ""},
        {"question": "   "},
        {"question": "Valid?", "max_sources": 0},
        {"question": "x" * 2001},
    ],
)
async def test_chat_validation_errors(client, body):
    """Test that malformed chat requests are rejected with 400."""
    response = await client.post("/api/chat", json=body)

    assert response.status_code == 400
    assert (await response.get_json())["code"] == "INVALID_REQUEST"


@pytest.mark.asyncio
async def test_chat_backend_failure_returns_502(client, fake_ollama, sample_text):
    """Test that an Ollama failure during generation maps to 502."""
    await _ready_with_document(client, sample_text)
    fake_ollama.chat_status = 500

    response = await client.post("/api/chat", json={"question": "How is the data processed?"})

    assert response.status_code == 502
    assert (await response.get_json())["code"] == "BACKEND_ERROR"


@pytest.mark.asyncio
async def test_unknown_route_returns_404(client):
    """Test the JSON 404 handler."""
    response = await client.get("/api/unknown")

    assert response.status_code == 404
