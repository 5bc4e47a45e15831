"""
Shared pytest fixtures for the bookmark index tests.

Provides in-memory fakes for the embedding, summary, vector and text
backends so that no network or model is needed.
"""

import hashlib
import logging
import math
import re

import pytest

from shared.errors import PageTextUnavailableError, ProviderUnavailableError, RateLimitedError
from shared.helper.HelperConfig import HelperConfig
from shared.models.search import VectorHit
from services.bookmark_index.BookmarkIndexEngine import BookmarkIndexEngine
from services.bookmark_index.MetadataStore import MetadataStore
from services.bookmarks.BookmarkRegistry import BookmarkRegistry

EMBED_DIMENSION = 256

# words mapped onto a shared concept so related vocabulary lands in the same bucket
KEYWORD_CONCEPTS = {
    "optimization": "optimization",
    "optimizer": "optimization",
    "algorithm": "optimization",
    "gradient": "optimization",
    "descent": "optimization",
    "recipe": "cooking",
    "baking": "cooking",
    "bread": "cooking",
}


def _keyword_vector(text: str) -> list[float]:
    vector = [0.0] * EMBED_DIMENSION
    for word in re.findall(r"[a-z0-9]+", text.lower()):
        token = KEYWORD_CONCEPTS.get(word, word)
        bucket = int(hashlib.md5(token.encode()).hexdigest(), 16) % EMBED_DIMENSION
        vector[bucket] += 1.0
    return vector


def _cosine(a: list[float], b: list[float]) -> float:
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if not norm_a or not norm_b:
        return 0.0
    return sum(x * y for x, y in zip(a, b)) / (norm_a * norm_b)


class FakeEmbedClient:
    """
    Deterministic keyword-hash embedder.

    Each word (after concept mapping) increments one hashed bucket.
    """

    embed_dimension = EMBED_DIMENSION
    embed_distance = "Cosine"

    def __init__(self):
        self.calls: list[list[str]] = []
        self.fail_substrings: set[str] = set()
        self.fail_all = False
        self.rate_limit_remaining = 0
        self.rate_limit_hint: float | None = None

    async def do_embed(self, texts):
        texts = [texts] if isinstance(texts, str) else texts
        for index, text in enumerate(texts):
            if not text or not text.strip():
                raise ValueError("Cannot embed empty text (index %d)." % index)
        self.calls.append(list(texts))
        if self.rate_limit_remaining > 0:
            self.rate_limit_remaining -= 1
            raise RateLimitedError("quota exhausted", retry_after=self.rate_limit_hint)
        if self.fail_all or any(s in text for s in self.fail_substrings for text in texts):
            raise ProviderUnavailableError("embedding backend down", status_code=503)
        return [_keyword_vector(text) for text in texts]

    async def do_fetch_embedding_vector_size(self):
        return self.embed_dimension, self.embed_distance

    @property
    def call_count(self) -> int:
        return len(self.calls)


class FakeVectorIndex:
    """In-memory stand-in for the RAG client."""

    def __init__(self):
        self.points: dict[str, dict] = {}
        self.fail_delete = False
        self.fail_search = False
        self.upsert_calls = 0

    async def do_upsert_points(self, points):
        self.upsert_calls += 1
        for point in points:
            self.points[str(point["id"])] = {"vector": point["vector"], "payload": point.get("payload", {})}

    async def do_delete_points(self, ids):
        if self.fail_delete:
            raise ProviderUnavailableError("vector backend down", status_code=503)
        for point_id in ids:
            self.points.pop(str(point_id), None)

    async def do_search(self, vector, limit):
        if self.fail_search:
            raise ProviderUnavailableError("vector backend down", status_code=503)
        hits = [
            VectorHit(id=point_id, score=_cosine(vector, point["vector"]), payload=point["payload"])
            for point_id, point in self.points.items()
        ]
        hits.sort(key=lambda hit: -hit.score)
        return hits[:limit]

    async def do_scroll_all_ids(self, page_size: int = 1000):
        return list(self.points)


class FakeSummaryClient:
    """Summary backend returning scripted summaries, or the text itself."""

    def __init__(self):
        self.summaries: dict[str, str] = {}
        self.calls: list[tuple[str, list[str] | None]] = []
        self.errors: list[Exception] = []

    async def do_summarize(self, raw_text, highlight_excerpts=None):
        self.calls.append((raw_text, highlight_excerpts))
        if self.errors:
            raise self.errors.pop(0)
        return self.summaries.get(raw_text, raw_text)


class FakeTextSource:
    """Page texts keyed by (document_key, page_index)."""

    def __init__(self):
        self.pages: dict[tuple[str, int], str] = {}
        self.calls = 0

    async def do_fetch_page_text(self, document_key, page_index):
        self.calls += 1
        text = self.pages.get((document_key, page_index))
        if not text:
            raise PageTextUnavailableError(f"no text for page {page_index} of '{document_key}'")
        return text


@pytest.fixture(autouse=True)
def fast_env(monkeypatch):
    """Keep throttles and waits out of the test run."""
    monkeypatch.setenv("INDEX_BATCH_THROTTLE_SECONDS", "0")
    monkeypatch.setenv("INDEX_RATE_LIMIT_WAIT_SECONDS", "0")
    monkeypatch.delenv("INDEX_DATA_DIR", raising=False)
    monkeypatch.delenv("INDEX_DELAY_SECONDS", raising=False)


@pytest.fixture
def helper_config():
    return HelperConfig(logger=logging.getLogger("bookmark_index.tests"))


@pytest.fixture
def embed_client():
    return FakeEmbedClient()


@pytest.fixture
def vector_index():
    return FakeVectorIndex()


@pytest.fixture
def summary_client():
    return FakeSummaryClient()


@pytest.fixture
def text_source():
    return FakeTextSource()


@pytest.fixture
def metadata_store(helper_config, tmp_path):
    return MetadataStore(helper_config, data_dir=tmp_path)


@pytest.fixture
def bookmarks(helper_config, tmp_path):
    return BookmarkRegistry(helper_config, data_dir=tmp_path)


@pytest.fixture
def engine(helper_config, metadata_store, embed_client, summary_client, vector_index, bookmarks, text_source):
    return BookmarkIndexEngine(
        helper_config=helper_config,
        metadata_store=metadata_store,
        embed_client=embed_client,
        llm_client=summary_client,
        rag_client=vector_index,
        bookmark_source=bookmarks,
        text_source=text_source,
    )


@pytest.fixture
def index_store(engine):
    return engine.index_store
