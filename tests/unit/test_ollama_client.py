"""Tests for the Ollama HTTP client."""
import httpx
import pytest

from docchat.ollama_client import OllamaClient, OllamaResponseError


@pytest.mark.asyncio
async def test_chat_sends_sampling_options(ollama_client, fake_ollama):
    """Test that temperature and max tokens map to Ollama options."""
    messages = [{"role": "user", "content": "Hi"}]

    data = await ollama_client.chat(messages, model="llama3.2:1b", temperature=0.1, max_tokens=300)

    assert data["message"]["content"] == fake_ollama.answer
    assert fake_ollama.calls("/api/chat")[0]["options"] == {"temperature": 0.1, "num_predict": 300}


@pytest.mark.asyncio
async def test_chat_without_options_omits_them(ollama_client, fake_ollama):
    """Test that no options object is sent when none are given."""
    await ollama_client.chat([{"role": "user", "content": "Hi"}], model="llama3.2:1b")

    assert "options" not in fake_ollama.calls("/api/chat")[0]


@pytest.mark.asyncio
async def test_chat_is_never_streamed(ollama_client, fake_ollama):
    """Test that chat always asks for a single complete response."""
    await ollama_client.chat([{"role": "user", "content": "Hi"}], model="llama3.2:1b")

    assert fake_ollama.calls("/api/chat")[0]["stream"] is False


@pytest.mark.asyncio
async def test_embeddings(ollama_client, fake_ollama):
    """Test the embeddings request and response."""
    data = await ollama_client.embeddings("image data", model="all-minilm:latest")

    assert data["embedding"] == [0.0, 0.0, 1.0, 1.0, 0.0, 0.0, 0.0]
    assert fake_ollama.calls("/api/embeddings") == [
        {"model": "all-minilm:latest", "prompt": "image data"}
    ]


@pytest.mark.asyncio
async def test_list_models(ollama_client):
    """Test listing installed model names."""
    assert await ollama_client.list_models() == ["all-minilm:latest", "llama3.2:1b"]


@pytest.mark.asyncio
async def test_running_models(ollama_client):
    """Test listing loaded models with their VRAM use."""
    running = await ollama_client.running_models()

    assert running[0]["size_vram"] == 1024


@pytest.mark.asyncio
async def test_http_error_status_raised(ollama_client, fake_ollama):
    """Test that non-2xx responses raise HTTPStatusError."""
    fake_ollama.chat_status = 503

    with pytest.raises(httpx.HTTPStatusError):
        await ollama_client.chat([{"role": "user", "content": "Hi"}])


@pytest.mark.asyncio
async def test_non_json_body_raises_with_preview():
    """Test that an HTML page is reported with a preview of its body."""

    def html_page(request):
        return httpx.Response(200, text="<!DOCTYPE html><title>Gateway</title>")

    client = OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(html_page))

    with pytest.raises(OllamaResponseError, match="<!DOCTYPE html>"):
        await client.list_models()


@pytest.mark.asyncio
async def test_html_error_status_raises_with_preview():
    """Test that an HTML page behind an error status keeps its body in the error."""

    def bad_gateway(request):
        return httpx.Response(
            502, text="<!DOCTYPE html><title>Bad Gateway</title>", headers={"content-type": "text/html"}
        )

    client = OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(bad_gateway))

    with pytest.raises(OllamaResponseError, match=r"\(502\).*<!DOCTYPE html>"):
        await client.embeddings("hello")


@pytest.mark.asyncio
async def test_connection_error_propagates():
    """Test that an unreachable server raises ConnectError."""

    def refuse(request):
        raise httpx.ConnectError("Connection refused", request=request)

    client = OllamaClient(base_url="http://ollama.test", transport=httpx.MockTransport(refuse))

    with pytest.raises(httpx.ConnectError):
        await client.embeddings("hello")


def test_base_url_trailing_slash_removed():
    """Test base URL normalization."""
    assert OllamaClient(base_url="http://localhost:11434/").base_url == "http://localhost:11434"
