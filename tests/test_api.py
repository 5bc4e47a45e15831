"""API tests with the FastAPI TestClient and an engine built from fakes."""

from contextlib import asynccontextmanager

import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from server.routers.BookmarkRouter import router as bookmark_router
from server.routers.IndexRouter import router as index_router
from server.routers.QueryRouter import router as query_router

HEADERS = {"X-API-Key": "secret"}


@pytest.fixture
def client(monkeypatch, helper_config, engine, bookmarks):
    monkeypatch.setenv("APP_API_KEY", "secret")

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await engine.start()
        yield
        await engine.shutdown()

    app = FastAPI(lifespan=lifespan)
    app.state.helper_config = helper_config
    app.state.engine = engine
    app.state.bookmark_registry = bookmarks
    app.include_router(bookmark_router)
    app.include_router(query_router)
    app.include_router(index_router)

    with TestClient(app) as test_client:
        yield test_client


def test_requires_api_key(client):
    assert client.get("/index/status").status_code == 422
    assert client.get("/index/status", headers={"X-API-Key": "wrong"}).status_code == 401


def test_bookmark_lifecycle(client, text_source):
    text_source.pages[("paper.pdf", 3)] = "discusses gradient descent"

    added = client.post("/bookmarks", json={"document_key": "paper.pdf", "page_index": 3}, headers=HEADERS)
    assert added.status_code == 200
    assert added.json() == {"document_key": "paper.pdf", "page_index": 3, "indexed": False, "pending": True}

    removed = client.request(
        "DELETE", "/bookmarks", json={"document_key": "paper.pdf", "page_index": 3}, headers=HEADERS
    )
    assert removed.json()["pending"] is False

    status = client.get("/bookmarks/status", params={"document_key": "paper.pdf", "page_index": 3}, headers=HEADERS)
    assert status.json() == {"document_key": "paper.pdf", "page_index": 3, "indexed": False, "pending": False}


def test_rebuild_then_query(client, text_source):
    text_source.pages[("paper.pdf", 3)] = "discusses gradient descent"
    text_source.pages[("cookbook.pdf", 1)] = "sourdough bread recipe"
    for key, page in (("paper.pdf", 3), ("cookbook.pdf", 1)):
        client.post("/bookmarks", json={"document_key": key, "page_index": page}, headers=HEADERS)

    assert client.post("/index/rebuild", headers=HEADERS).json()["status"] == "accepted"

    status = client.get("/index/status", headers=HEADERS).json()
    assert status["documents"] == 2
    assert status["pages"] == 2
    assert (status["reindexing"], status["reindex_done"], status["reindex_total"]) == (False, 2, 2)

    response = client.post("/query", json={"query": "optimization algorithm", "limit": 5}, headers=HEADERS)
    assert response.status_code == 200
    body = response.json()
    assert body["results"][0]["document_key"] == "paper.pdf"
    assert body["results"][0]["page_index"] == 3
    assert body["results"][0]["score"] > 0


def test_blank_query_returns_no_results(client):
    response = client.post("/query", json={"query": "  "}, headers=HEADERS)
    assert response.json() == {"query": "  ", "results": [], "total": 0}


def test_search_failure_is_503(client, embed_client):
    embed_client.fail_all = True
    response = client.post("/query", json={"query": "gradient"}, headers=HEADERS)
    assert response.status_code == 503
    assert response.json()["detail"] == "search unavailable"


def test_clear_index(client, text_source):
    text_source.pages[("paper.pdf", 0)] = "intro"
    client.post("/bookmarks", json={"document_key": "paper.pdf", "page_index": 0}, headers=HEADERS)
    client.post("/index/rebuild", headers=HEADERS)

    cleared = client.delete("/index", headers=HEADERS)

    assert cleared.json() == {"status": "cleared", "count": 1}
    assert client.get("/index/status", headers=HEADERS).json()["documents"] == 0


def test_rebuild_and_clear_refused_while_reindexing(client, engine):
    engine.indexing._reindex_running = True

    assert client.post("/index/rebuild", headers=HEADERS).status_code == 409
    cleared = client.delete("/index", headers=HEADERS)
    assert cleared.status_code == 409
    assert cleared.json()["detail"] == "reindex in progress"
    assert client.get("/index/status", headers=HEADERS).json()["reindexing"] is True
