"""Bookmark index runner entry point.

Boots the clients, migrates and reconciles the index, then waits until
the resumed pending tasks have run. With --rebuild all document indexes are
dropped and rebuilt from the bookmark list.

Usage:
    python -m services.bookmark_index.bookmark_index_runner [--rebuild]
"""

import argparse
import asyncio

from shared.clients.embed.EmbedClientManager import EmbedClientManager
from shared.clients.llm.LLMClientManager import LLMClientManager
from shared.clients.rag.RAGClientManager import RAGClientManager
from shared.helper.HelperConfig import HelperConfig
from shared.logging.logging_setup import setup_logging
from services.bookmark_index.BookmarkIndexEngine import BookmarkIndexEngine
from services.bookmark_index.MetadataStore import MetadataStore
from services.bookmarks.BookmarkRegistry import BookmarkRegistry
from services.bookmarks.PageTextSourcePdf import PageTextSourcePdf


async def main(rebuild: bool = False) -> None:
    """Run startup maintenance and, optionally, a full reindex."""
    logger = setup_logging()
    config = HelperConfig(logger=logger)

    embed_client = EmbedClientManager(helper_config=config).get_client()
    llm_client = LLMClientManager(helper_config=config).get_client()
    rag_client = RAGClientManager(helper_config=config).get_client()
    clients = [embed_client, llm_client, rag_client]

    try:
        # the index is useless without any of the three backends, so abort on any boot failure
        try:
            for client in clients:
                await client.boot()
            vector_size, distance = await embed_client.do_fetch_embedding_vector_size()
            await rag_client.do_ensure_collection(vector_size, distance)
        except Exception as e:
            logger.error("Error booting clients: %s. Aborting.", e)
            return

        metadata_store = MetadataStore(helper_config=config)
        engine = BookmarkIndexEngine(
            helper_config=config,
            metadata_store=metadata_store,
            embed_client=embed_client,
            llm_client=llm_client,
            rag_client=rag_client,
            bookmark_source=BookmarkRegistry(helper_config=config, data_dir=metadata_store.data_dir),
            text_source=PageTextSourcePdf(helper_config=config),
        )
        await engine.start()

        if rebuild:
            report = await engine.rebuild_all()
            logger.info(
                "Rebuild finished: %d indexed, %d skipped, %d failed.",
                report.indexed, report.skipped, report.failed, color="green",
            )

        await engine.scheduler.wait_for_jobs()
        await engine.shutdown()
    finally:
        for client in clients:
            await client.close()


if __name__ == "__main__":
    parser = argparse.ArgumentParser(description="Maintain the bookmark semantic index.")
    parser.add_argument("--rebuild", action="store_true", help="drop and rebuild all document indexes")
    args = parser.parse_args()
    asyncio.run(main(rebuild=args.rebuild))
