import json

import httpx
import pytest

from querydoc.config import Settings
from querydoc.llm import (
    GroqBackend,
    LLMGenerationError,
    LLMUnavailableError,
    MockLLMBackend,
    OllamaBackend,
    build_backends,
)

pytestmark = pytest.mark.anyio

OLLAMA_URL = "http://ollama.test:11434"
PROXY_URL = "http://app.test/api/groq"


def _client(handler) -> httpx.AsyncClient:
    return httpx.AsyncClient(transport=httpx.MockTransport(handler))


async def test_ollama_streams_tokens_and_stats() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["url"] = str(request.url)
        captured["body"] = json.loads(request.content)
        lines = [
            json.dumps({"response": "Hel", "done": False}),
            json.dumps({"response": "lo", "done": False}),
            "not json",
            json.dumps(
                {
                    "response": "",
                    "done": True,
                    "eval_count": 2,
                    "prompt_eval_count": 5,
                    "total_duration": 1000,
                    "load_duration": 10,
                }
            ),
        ]
        return httpx.Response(200, content="\n".join(lines).encode())

    backend = OllamaBackend(OLLAMA_URL, client=_client(handler))
    tokens: list[str] = []

    completion = await backend.generate("prompt", "qwen2.5:3b", tokens.append)

    assert tokens == ["Hel", "lo"]
    assert completion.text == "Hello"
    assert completion.stats is not None
    assert completion.stats.eval_count == 2
    assert completion.stats.prompt_eval_count == 5
    assert captured["url"] == f"{OLLAMA_URL}/api/generate"
    assert captured["body"] == {"model": "qwen2.5:3b", "prompt": "prompt", "stream": True}


async def test_ollama_error_body_is_reported() -> None:
    backend = OllamaBackend(
        OLLAMA_URL,
        client=_client(lambda request: httpx.Response(404, json={"error": "model 'x' not found"})),
    )

    with pytest.raises(LLMGenerationError, match="model 'x' not found"):
        await backend.generate("prompt", "x")


async def test_ollama_error_without_body_uses_reason_phrase() -> None:
    backend = OllamaBackend(OLLAMA_URL, client=_client(lambda request: httpx.Response(503, text="")))

    with pytest.raises(LLMGenerationError, match="Ollama request failed: Service Unavailable"):
        await backend.generate("prompt", "x")


async def test_ollama_in_stream_error_is_raised() -> None:
    body = json.dumps({"error": "model requires more system memory"}).encode()
    backend = OllamaBackend(OLLAMA_URL, client=_client(lambda request: httpx.Response(200, content=body)))

    with pytest.raises(LLMGenerationError, match="more system memory"):
        await backend.generate("prompt", "x")


async def test_ollama_connection_failure() -> None:
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    backend = OllamaBackend(OLLAMA_URL, client=_client(handler))

    with pytest.raises(LLMUnavailableError, match="Cannot connect to Ollama"):
        await backend.generate("prompt", "x")
    assert await backend.is_available() is False


async def test_ollama_liveness_probe() -> None:
    seen: list[str] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request.url.path)
        return httpx.Response(200, json={"models": []})

    backend = OllamaBackend(OLLAMA_URL + "/", client=_client(handler))

    assert await backend.is_available() is True
    assert seen == ["/api/tags"]


async def test_groq_parses_event_stream() -> None:
    captured = {}

    def handler(request: httpx.Request) -> httpx.Response:
        captured["body"] = json.loads(request.content)
        events = [
            {"choices": [{"delta": {"role": "assistant"}}]},
            {"choices": [{"delta": {"content": "Hi"}}]},
            {"choices": [{"delta": {"content": " there"}}]},
        ]
        body = "".join(f"data: {json.dumps(event)}\n\n" for event in events)
        body += ": keep-alive\n\ndata: [DONE]\n\n"
        return httpx.Response(200, content=body.encode(), headers={"content-type": "text/event-stream"})

    backend = GroqBackend(PROXY_URL, client=_client(handler))
    tokens: list[str] = []

    async def on_token(token: str) -> None:
        tokens.append(token)

    completion = await backend.generate("prompt", "llama-3.1-8b-instant", on_token)

    assert tokens == ["Hi", " there"]
    assert completion.text == "Hi there"
    assert captured["body"] == {"prompt": "prompt", "model": "llama-3.1-8b-instant"}
    assert backend.is_cloud is True


@pytest.mark.parametrize(
    ("response", "message"),
    [
        (httpx.Response(429, json={"error": {"message": "Rate limit reached"}}), "Rate limit reached"),
        (httpx.Response(500, json={"error": "Groq API key not configured"}), "Groq API key not configured"),
        (httpx.Response(502, text="bad gateway"), "Groq request failed"),
    ],
)
async def test_groq_error_messages(response: httpx.Response, message: str) -> None:
    backend = GroqBackend(PROXY_URL, client=_client(lambda request: response))

    with pytest.raises(LLMGenerationError, match=message):
        await backend.generate("prompt", "llama-3.1-8b-instant")


async def test_mock_backend_scripts_responses_and_failures() -> None:
    backend = MockLLMBackend(["first answer", RuntimeError("boom")])
    tokens: list[str] = []

    completion = await backend.generate("prompt one", "m", tokens.append)
    assert completion.text == "first answer"
    assert "".join(tokens) == "first answer"

    with pytest.raises(RuntimeError, match="boom"):
        await backend.generate("prompt two", "m")

    echoed = await backend.generate("prompt three", "m")
    assert echoed.text == "MOCK_ANSWER: prompt three"
    assert [call[0] for call in backend.calls] == ["prompt one", "prompt two", "prompt three"]


async def test_build_backends_from_settings() -> None:
    stub = build_backends(Settings(llm_stub=True))
    assert isinstance(stub.local, MockLLMBackend)
    assert stub.cloud.is_cloud is True

    real = build_backends(Settings(ollama_url="http://gpu-box:11434", groq_proxy_url=PROXY_URL))
    assert isinstance(real.local, OllamaBackend)
    assert real.local.base_url == "http://gpu-box:11434"
    assert isinstance(real.cloud, GroqBackend)
    assert real.cloud.endpoint == PROXY_URL
    await real.aclose()
