"""HTTP client tests against httpx.MockTransport."""

import json

import httpx
import pytest

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.embed.gemini.EmbedClientGemini import EmbedClientGemini
from shared.clients.embed.ollama.EmbedClientOllama import EmbedClientOllama
from shared.clients.llm.gemini.LLMClientGemini import LLMClientGemini
from shared.clients.llm.ollama.LLMClientOllama import LLMClientOllama
from shared.clients.rag.qdrant.RAGClientQdrant import RAGClientQdrant
from shared.errors import (
    EmptyResponseError,
    NetworkFailureError,
    NotInitializedError,
    ProviderParseError,
    ProviderUnavailableError,
    RateLimitedError,
    parse_retry_hint,
)


@pytest.fixture(autouse=True)
def client_env(monkeypatch):
    monkeypatch.setenv("EMBED_MODEL", "text-embedding-004")
    monkeypatch.setenv("EMBED_DIMENSION", "768")
    monkeypatch.setenv("EMBED_GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("EMBED_OLLAMA_BASE_URL", "http://ollama.test")
    monkeypatch.setenv("LLM_CHAT_MODEL", "gemini-2.0-flash")
    monkeypatch.setenv("LLM_GEMINI_API_KEY", "test-key")
    monkeypatch.setenv("LLM_OLLAMA_BASE_URL", "http://ollama.test")
    monkeypatch.setenv("RAG_QDRANT_BASE_URL", "http://qdrant.test")


async def _booted(client, handler):
    client.set_transport(httpx.MockTransport(handler))
    await client.boot()
    return client


class TestErrorMapping:
    @pytest.mark.asyncio
    async def test_not_booted(self, helper_config):
        client = EmbedClientGemini(helper_config)
        with pytest.raises(NotInitializedError):
            await client.do_embed("hello")

    @pytest.mark.asyncio
    async def test_429_with_retry_after_header(self, helper_config):
        def handler(request):
            return httpx.Response(429, headers={"Retry-After": "7"}, json={"error": {"message": "quota"}})

        client = await _booted(EmbedClientGemini(helper_config), handler)
        with pytest.raises(RateLimitedError) as exc_info:
            await client.do_embed("hello")
        assert exc_info.value.retry_after == 7.0
        await client.close()

    @pytest.mark.asyncio
    async def test_429_with_hint_in_message(self, helper_config):
        def handler(request):
            return httpx.Response(429, json={"error": {"message": "Resource exhausted. Please retry in 21.5s."}})

        client = await _booted(EmbedClientGemini(helper_config), handler)
        with pytest.raises(RateLimitedError) as exc_info:
            await client.do_embed("hello")
        assert exc_info.value.retry_after == 21.5
        await client.close()

    @pytest.mark.asyncio
    async def test_server_error_is_unavailable(self, helper_config):
        client = await _booted(EmbedClientGemini(helper_config), lambda request: httpx.Response(500, text="boom"))
        with pytest.raises(ProviderUnavailableError) as exc_info:
            await client.do_embed("hello")
        assert exc_info.value.status_code == 500
        await client.close()

    @pytest.mark.asyncio
    async def test_non_json_body_is_parse_error(self, helper_config):
        client = await _booted(EmbedClientGemini(helper_config), lambda request: httpx.Response(200, text="<html>"))
        with pytest.raises(ProviderParseError):
            await client.do_embed("hello")
        await client.close()

    @pytest.mark.asyncio
    async def test_transport_error_is_network_failure(self, helper_config):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        client = await _booted(RAGClientQdrant(helper_config), handler)
        with pytest.raises(NetworkFailureError):
            await client.do_search([0.1, 0.2], limit=5)
        await client.close()


def test_parse_retry_hint():
    assert parse_retry_hint("Please retry in 12s", None) == 12.0
    assert parse_retry_hint("nothing here", None) is None
    assert parse_retry_hint("Please retry in 12s", "3") == 3.0
    assert parse_retry_hint(None, "Wed, 21 Oct 2015 07:28:00 GMT") is None


class TestEmbedClients:
    @pytest.mark.asyncio
    async def test_gemini_batch_payload(self, helper_config):
        seen = {}

        def handler(request):
            seen["url"] = str(request.url)
            seen["headers"] = request.headers
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"embeddings": [{"values": [0.1, 0.2]}, {"values": [0.3, 0.4]}]})

        client = await _booted(EmbedClientGemini(helper_config), handler)
        vectors = await client.do_embed(["first", "second"])

        assert vectors == [[0.1, 0.2], [0.3, 0.4]]
        assert seen["url"].endswith("/v1beta/models/text-embedding-004:batchEmbedContents")
        assert seen["headers"]["x-goog-api-key"] == "test-key"
        request = seen["body"]["requests"][0]
        assert request["content"]["parts"][0]["text"] == "first"
        assert request["outputDimensionality"] == 768
        await client.close()

    @pytest.mark.asyncio
    async def test_vector_count_mismatch(self, helper_config):
        client = await _booted(
            EmbedClientGemini(helper_config),
            lambda request: httpx.Response(200, json={"embeddings": [{"values": [0.1]}]}),
        )
        with pytest.raises(ProviderParseError):
            await client.do_embed(["a", "b"])
        await client.close()

    @pytest.mark.asyncio
    async def test_empty_text_rejected(self, helper_config):
        client = EmbedClientGemini(helper_config)
        with pytest.raises(ValueError):
            await client.do_embed(["   "])

    @pytest.mark.asyncio
    async def test_ollama_embed_and_vector_size(self, helper_config):
        def handler(request):
            if request.url.path == "/api/show":
                return httpx.Response(200, json={"model_info": {"nomic-bert.embedding_length": 768}})
            body = json.loads(request.content)
            return httpx.Response(200, json={"embeddings": [[0.5] * 3 for _ in body["input"]]})

        client = await _booted(EmbedClientOllama(helper_config), handler)
        assert await client.do_embed("hello") == [[0.5, 0.5, 0.5]]
        assert await client.do_fetch_embedding_vector_size() == (768, "Cosine")
        await client.close()

    def test_manager_loads_configured_engine(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_ENGINE", "gemini")
        assert isinstance(EmbedClientManager(helper_config).get_client(), EmbedClientGemini)

    def test_manager_rejects_unknown_engine(self, helper_config, monkeypatch):
        monkeypatch.setenv("EMBED_ENGINE", "nonexistent")
        with pytest.raises(ValueError):
            EmbedClientManager(helper_config)


class TestLLMClients:
    @pytest.mark.asyncio
    async def test_gemini_summary_request(self, helper_config):
        seen = {}

        def handler(request):
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={
                "candidates": [{"content": {"parts": [{"text": "Explains gradient descent\n"}]}}],
            })

        client = await _booted(LLMClientGemini(helper_config), handler)
        summary = await client.do_summarize("x" * 5000, ["step size"])

        assert summary == "Explains gradient descent"
        body = seen["body"]
        assert "systemInstruction" in body
        prompt = body["contents"][0]["parts"][0]["text"]
        assert "step size" in prompt
        assert prompt.index("step size") < prompt.index("Page text:")
        assert "x" * 3000 in prompt and "x" * 3001 not in prompt
        await client.close()

    @pytest.mark.asyncio
    async def test_blank_summary_is_empty_response(self, helper_config):
        client = await _booted(
            LLMClientOllama(helper_config),
            lambda request: httpx.Response(200, json={"message": {"role": "assistant", "content": "  "}}),
        )
        with pytest.raises(EmptyResponseError):
            await client.do_summarize("page text")
        await client.close()


class TestQdrant:
    @pytest.mark.asyncio
    async def test_search_parses_hits(self, helper_config):
        seen = {}

        def handler(request):
            seen["path"] = request.url.path
            seen["body"] = json.loads(request.content)
            return httpx.Response(200, json={"result": [
                {"id": "a", "score": 0.9, "payload": {"document_key": "paper.pdf"}},
                {"id": "b", "score": 0.4},
            ]})

        client = await _booted(RAGClientQdrant(helper_config), handler)
        hits = await client.do_search([0.1, 0.2], limit=20)

        assert [(hit.id, hit.score) for hit in hits] == [("a", 0.9), ("b", 0.4)]
        assert seen["path"] == "/collections/bookmark_index/points/search"
        assert seen["body"]["limit"] == 20
        await client.close()

    @pytest.mark.asyncio
    async def test_malformed_search_response(self, helper_config):
        client = await _booted(RAGClientQdrant(helper_config), lambda request: httpx.Response(200, json={"status": "ok"}))
        with pytest.raises(ProviderParseError):
            await client.do_search([0.1], limit=1)
        await client.close()

    @pytest.mark.asyncio
    async def test_scroll_all_ids_paginates(self, helper_config):
        pages = {
            None: {"points": [{"id": "a"}, {"id": "b"}], "next_page_offset": "c"},
            "c": {"points": [{"id": "c"}], "next_page_offset": None},
        }

        def handler(request):
            offset = json.loads(request.content).get("offset")
            return httpx.Response(200, json={"result": pages[offset], "status": "ok", "time": 0.001})

        client = await _booted(RAGClientQdrant(helper_config), handler)
        assert await client.do_scroll_all_ids(page_size=2) == ["a", "b", "c"]
        await client.close()

    @pytest.mark.asyncio
    async def test_ensure_collection_creates_missing(self, helper_config):
        calls = []

        def handler(request):
            calls.append((request.method, request.url.path))
            if request.url.path.endswith("/exists"):
                return httpx.Response(200, json={"result": {"exists": False}})
            return httpx.Response(200, json={"result": True})

        client = await _booted(RAGClientQdrant(helper_config), handler)
        await client.do_ensure_collection(768)
        assert calls == [("GET", "/collections/bookmark_index/exists"), ("PUT", "/collections/bookmark_index")]
        await client.close()

    @pytest.mark.asyncio
    async def test_delete_nothing_makes_no_request(self, helper_config):
        calls = []
        client = await _booted(RAGClientQdrant(helper_config), lambda request: calls.append(request))
        await client.do_delete_points([])
        assert calls == []
        await client.close()
