"""FastAPI application entry point for the bookmark semantic index."""

import os
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from shared.logging.logging_setup import setup_logging
from shared.helper.HelperConfig import HelperConfig
from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from services.bookmark_index.BookmarkIndexEngine import BookmarkIndexEngine
from services.bookmark_index.MetadataStore import MetadataStore
from services.bookmarks.BookmarkRegistry import BookmarkRegistry
from services.bookmarks.PageTextSourcePdf import PageTextSourcePdf
from server.routers.BookmarkRouter import router as bookmark_router
from server.routers.IndexRouter import router as index_router
from server.routers.QueryRouter import router as query_router

logging = setup_logging()
app_version = os.getenv("APP_VERSION", "unknown")


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    # when the app starts
    app.state.logging = logging
    app.state.helper_config = HelperConfig(logger=logging)

    embed_client = EmbedClientManager(helper_config=app.state.helper_config).get_client()
    llm_client = LLMClientManager(helper_config=app.state.helper_config).get_client()
    rag_client = RAGClientManager(helper_config=app.state.helper_config).get_client()
    clients = [embed_client, llm_client, rag_client]

    logging.info("Booting all clients...")
    for client in clients:
        await client.boot()
    vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
    await rag_client.do_ensure_collection(vector_size, distance)
    logging.info("All clients booted successfully.", color="green")

    metadata_store = MetadataStore(helper_config=app.state.helper_config)
    app.state.bookmark_registry = BookmarkRegistry(
        helper_config=app.state.helper_config, data_dir=metadata_store.data_dir
    )
    app.state.engine = BookmarkIndexEngine(
        helper_config=app.state.helper_config,
        metadata_store=metadata_store,
        embed_client=embed_client,
        llm_client=llm_client,
        rag_client=rag_client,
        bookmark_source=app.state.bookmark_registry,
        text_source=PageTextSourcePdf(helper_config=app.state.helper_config),
    )
    await app.state.engine.start()

    # while the app is running...
    yield

    # when the app shuts down, stop timers and close all client connections
    logging.info("Shutting down, closing all clients...")
    await app.state.engine.shutdown()
    for client in clients:
        await client.close()
    logging.info("All clients closed.")


app = FastAPI(
    title="bookmark_semantic_index",
    description=(
        "Semantic search over bookmarked document pages. "
        "Bookmarks are summarised and indexed per document after a short delay "
        "and searched via POST /query with page-level reranking."
    ),
    version=app_version,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(bookmark_router)
app.include_router(query_router)
app.include_router(index_router)


if __name__ == "__main__":
    import uvicorn

    logging.info(
        "Starting bookmark index API server v%s from root dir: %s on port 8000...",
        app_version,
        os.environ.get("ROOT_DIR", "unknown"),
    )
    uvicorn.run(app, host="0.0.0.0", port=8000)
