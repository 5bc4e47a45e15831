"""Two-phase semantic search over bookmarked pages.

1. Coarse: nearest-neighbour search over the per-document vectors.
2. Fine: every page of the candidate documents is embedded on its own and
   scored by cosine similarity against the single query embedding.
"""

import asyncio
import math

from shared.clients.embed.EmbedClientInterface import EmbedClientInterface
from shared.clients.rag.RAGClientInterface import RAGClientInterface
from shared.errors import BookmarkIndexError, SearchUnavailableError
from shared.helper.HelperConfig import HelperConfig
from shared.models.index import DocumentIndex, PageIndexEntry
from shared.models.search import SearchCandidate
from services.bookmark_index.DocumentIndexStore import DocumentIndexStore

DEFAULT_TOP_K = 5


def cosine_similarity(a: list[float], b: list[float]) -> float:
    """Cosine similarity of two vectors; 0.0 if either has zero norm."""
    norm_a = math.sqrt(sum(x * x for x in a))
    norm_b = math.sqrt(sum(y * y for y in b))
    if norm_a == 0 or norm_b == 0:
        return 0.0
    dot = sum(x * y for x, y in zip(a, b))
    return max(-1.0, min(1.0, dot / (norm_a * norm_b)))


class SearchCoordinator:
    """Answers queries with coarse document retrieval plus page-level reranking."""

    def __init__(
        self,
        helper_config: HelperConfig,
        document_index_store: DocumentIndexStore,
        embed_client: EmbedClientInterface,
        rag_client: RAGClientInterface,
    ) -> None:
        self.logging = helper_config.get_logger()
        self._index_store = document_index_store
        self._embed_client = embed_client
        self._rag_client = rag_client

        self._coarse_factor = int(helper_config.get_number_val("SEARCH_COARSE_FACTOR", default=4))
        self._coarse_min = int(helper_config.get_number_val("SEARCH_COARSE_MIN", default=20))
        self._coarse_max = int(helper_config.get_number_val("SEARCH_COARSE_MAX", default=100))
        self._rerank_concurrency = int(helper_config.get_number_val("SEARCH_RERANK_CONCURRENCY", default=5))

    def get_coarse_limit(self, top_k: int) -> int:
        return max(self._coarse_min, min(top_k * self._coarse_factor, self._coarse_max))

    ##########################################
    ################ SEARCH ##################
    ##########################################

    async def search(self, query: str, top_k: int = DEFAULT_TOP_K) -> list[SearchCandidate]:
        """Return the `top_k` best matching bookmarked pages for `query`.

        Args:
            query (str): Free-text query. Blank queries return [] without any provider call.
            top_k (int): Maximum number of results.

        Returns:
            list[SearchCandidate]: Descending by score; ties by coarse rank, then page index.

        Raises:
            SearchUnavailableError: If the query could not be embedded or the
                coarse search failed. The original error is chained.
        """
        query = (query or "").strip()
        if not query or top_k <= 0:
            return []

        try:
            query_vector = (await self._embed_client.do_embed(query))[0]
            hits = await self._rag_client.do_search(query_vector, limit=self.get_coarse_limit(top_k))
        except BookmarkIndexError as e:
            self.logging.error("Search for '%s' failed: %s", query, e)
            raise SearchUnavailableError("search unavailable") from e

        documents = self._resolve_documents(hits)
        if not documents:
            self.logging.debug("Search for '%s': no coarse candidates.", query)
            return []

        sem = asyncio.Semaphore(self._rerank_concurrency)
        scored = await asyncio.gather(*[
            self._score_page(query_vector, document, coarse_rank, page, sem)
            for coarse_rank, document in enumerate(documents)
            for page in document.pages
        ])
        candidates = [candidate for candidate in scored if candidate is not None]
        candidates.sort(key=lambda c: (-c.score, c.coarse_rank, c.page_index))

        self.logging.debug(
            "Search for '%s': %d document(s), %d page(s) scored.", query, len(documents), len(candidates)
        )
        return candidates[:top_k]

    def _resolve_documents(self, hits) -> list[DocumentIndex]:
        """Map coarse hits to known documents, keeping hit order and dropping unknown or duplicate ids."""
        documents: list[DocumentIndex] = []
        seen: set[str] = set()
        for hit in hits:
            document = self._index_store.get_document_by_id(hit.id)
            if document is None or document.document_key in seen:
                continue
            seen.add(document.document_key)
            documents.append(document)
        return documents

    async def _score_page(
        self,
        query_vector: list[float],
        document: DocumentIndex,
        coarse_rank: int,
        page: PageIndexEntry,
        sem: asyncio.Semaphore,
    ) -> SearchCandidate | None:
        if not page.search_text.strip():
            self.logging.warning(
                "Skipping page %d of '%s' while reranking: no summary text.", page.page_index, document.document_key
            )
            return None

        async with sem:
            try:
                page_vector = (await self._embed_client.do_embed(page.search_text))[0]
            except BookmarkIndexError as e:
                self.logging.warning(
                    "Skipping page %d of '%s' while reranking: %s", page.page_index, document.document_key, e
                )
                return None

        return SearchCandidate(
            document_key=document.document_key,
            page_index=page.page_index,
            summary=page.summary,
            highlight_excerpts=page.highlight_excerpts,
            score=cosine_similarity(query_vector, page_vector),
            coarse_rank=coarse_rank,
        )
