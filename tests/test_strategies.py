import asyncio
import json

import httpx
import pytest

from funcgen.errors import BackendError, InvalidArgument, TransientBackendError
from funcgen.strategies import LlamaStrategy, OllamaStrategy, OpenAIStrategy, is_transient_error
from funcgen.strategies.chat_completions import LLAMA_ENDPOINT, OPENAI_ENDPOINT


def _run(strategy_factory, handler, prompt="PROMPT"):
    async def go():
        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        async with strategy_factory(client) as strategy:
            return await strategy.generate_function_output(prompt)

    return asyncio.run(go())


def _ollama(client):
    return OllamaStrategy("llama3.2:latest", base_url="http://ollama.test/", options={"temperature": 0}, client=client)


def _openai(client):
    return OpenAIStrategy("sk-test", temperature=0.2, client=client)


def test_ollama_posts_generate_request():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"response": '  "olleh"\n', "done": True})

    assert _run(_ollama, handler) == '"olleh"'
    assert seen["url"] == "http://ollama.test/api/generate"
    assert seen["body"] == {
        "model": "llama3.2:latest",
        "prompt": "PROMPT",
        "stream": False,
        "options": {"temperature": 0},
    }


def test_ollama_reads_chat_shaped_and_streamed_bodies():
    def chat_handler(request):
        return httpx.Response(200, json={"message": {"role": "assistant", "content": "42"}})

    def stream_handler(request):
        lines = [json.dumps({"response": ""}), "", json.dumps({"response": "[1, 2]"}), ""]
        return httpx.Response(200, text="\n".join(lines))

    assert _run(_ollama, chat_handler) == "42"
    assert _run(_ollama, stream_handler) == "[1, 2]"


@pytest.mark.parametrize("status, transient", [(503, True), (429, True), (404, False), (400, False)])
def test_ollama_status_errors(status, transient):
    def handler(request):
        return httpx.Response(status, json={"error": "model not available"})

    with pytest.raises(BackendError) as excinfo:
        _run(_ollama, handler)

    assert isinstance(excinfo.value, TransientBackendError) is transient
    assert excinfo.value.status_code == status


def test_ollama_transport_errors():
    def refused(request):
        raise httpx.ConnectError("connection refused", request=request)

    def slow(request):
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(BackendError) as excinfo:
        _run(_ollama, refused)
    assert not isinstance(excinfo.value, TransientBackendError)
    assert isinstance(excinfo.value.__cause__, httpx.ConnectError)

    with pytest.raises(TransientBackendError):
        _run(_ollama, slow)


def test_ollama_empty_text_is_backend_error():
    def handler(request):
        return httpx.Response(200, json={"response": "", "done": True})

    with pytest.raises(BackendError, match="no text"):
        _run(_ollama, handler)


def test_ollama_ignores_openai_shaped_body():
    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"content": "42"}}]})

    with pytest.raises(BackendError, match="no text"):
        _run(_ollama, handler)


def test_openai_request_and_response():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["auth"] = request.headers["Authorization"]
        seen["body"] = json.loads(request.content)
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant", "content": '"cba"'}}]})

    assert _run(_openai, handler, prompt="reverse abc") == '"cba"'
    assert seen["url"] == OPENAI_ENDPOINT
    assert seen["auth"] == "Bearer sk-test"
    assert seen["body"] == {
        "model": "gpt-4",
        "messages": [{"role": "user", "content": "reverse abc"}],
        "temperature": 0.2,
    }


def test_llama_defaults():
    seen = {}

    def handler(request):
        seen["url"] = str(request.url)
        seen["model"] = json.loads(request.content)["model"]
        return httpx.Response(200, json={"choices": [{"message": {"content": "1"}}]})

    assert _run(lambda client: LlamaStrategy("ll-key", client=client), handler) == "1"
    assert seen == {"url": LLAMA_ENDPOINT, "model": "llama3.1-70b"}


@pytest.mark.parametrize(
    "status, error, transient",
    [
        (429, {"type": "rate_limit_exceeded", "message": "Slow down"}, True),
        (500, {"type": "server_error", "message": "Oops"}, True),
        (400, {"type": "invalid_request_error", "message": "Bad prompt"}, False),
        (400, {"type": "overloaded", "message": "Service temporarily unavailable"}, True),
        (401, {"type": "invalid_api_key", "message": "Incorrect API key"}, False),
    ],
)
def test_openai_error_classification(status, error, transient):
    def handler(request):
        return httpx.Response(status, json={"error": error})

    with pytest.raises(BackendError) as excinfo:
        _run(_openai, handler)

    assert isinstance(excinfo.value, TransientBackendError) is transient
    assert excinfo.value.status_code == status
    assert error["type"] in str(excinfo.value)
    assert error["message"] in str(excinfo.value)


def test_openai_without_choices_is_backend_error():
    def handler(request):
        return httpx.Response(200, json={"choices": []})

    with pytest.raises(BackendError, match="no choices"):
        _run(_openai, handler)


def test_openai_choice_without_content_is_backend_error():
    def handler(request):
        return httpx.Response(200, json={"choices": [{"message": {"role": "assistant"}}]})

    with pytest.raises(BackendError, match="no content"):
        _run(_openai, handler)


@pytest.mark.parametrize(
    "kwargs",
    [
        {"api_key": ""},
        {"api_key": "   "},
        {"api_key": "k", "temperature": 2.5},
        {"api_key": "k", "temperature": -0.1},
        {"api_key": "k", "max_tokens": 0},
        {"api_key": "k", "top_p": 1.5},
    ],
)
def test_chat_strategy_rejects_invalid_settings(kwargs):
    with pytest.raises(InvalidArgument):
        OpenAIStrategy(**kwargs)


def test_is_transient_error():
    assert is_transient_error(429, "")
    assert is_transient_error(502, "bad gateway")
    assert is_transient_error(400, "Request timeout")
    assert not is_transient_error(400, "invalid request")
    assert not is_transient_error(403, "")


def test_context_manager_closes_client():
    async def go():
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda r: httpx.Response(200)))
        async with OllamaStrategy("m", client=client):
            pass
        return client.is_closed

    assert asyncio.run(go()) is True
