"""Tests for the per-document aggregate index."""

import asyncio

import pytest

from shared.errors import ProviderUnavailableError
from shared.models.index import PageIndexEntry


@pytest.mark.asyncio
async def test_pages_sorted_and_unique(index_store, vector_index):
    for page in (7, 2, 5, 2):
        await index_store.add_page("paper.pdf", page, f"summary {page}")

    doc = index_store.get_document("paper.pdf")
    assert doc.page_indices == [2, 5, 7]
    assert list(vector_index.points) == [doc.id]


@pytest.mark.asyncio
async def test_add_page_is_idempotent(index_store, embed_client, vector_index):
    first = await index_store.add_page("paper.pdf", 3, "discusses gradient descent", ["learning rate"])
    calls = embed_client.call_count
    second = await index_store.add_page("paper.pdf", 3, "discusses gradient descent", ["learning rate"])

    assert second == first
    assert embed_client.call_count == calls
    assert list(vector_index.points) == [first.id]


@pytest.mark.asyncio
async def test_combined_text_tags_pages(index_store, embed_client):
    await index_store.add_page("paper.pdf", 0, "intro")
    await index_store.add_page("paper.pdf", 2, "results", ["accuracy 93%"])

    assert embed_client.calls[-1] == ["[P1] intro\n\n[P3] results [accuracy 93%]"]


@pytest.mark.asyncio
async def test_rebuild_mints_new_id_and_retires_old_vector(index_store, vector_index):
    before = await index_store.add_page("paper.pdf", 1, "one")
    after = await index_store.add_page("paper.pdf", 4, "four")

    assert after.id != before.id
    assert after.created_at == before.created_at
    assert set(vector_index.points) == {after.id}
    assert vector_index.points[after.id]["payload"]["page_indices"] == [1, 4]


@pytest.mark.asyncio
async def test_embed_failure_leaves_document_untouched(index_store, embed_client, vector_index, metadata_store):
    before = await index_store.add_page("paper.pdf", 1, "one")
    embed_client.fail_all = True

    with pytest.raises(ProviderUnavailableError):
        await index_store.add_page("paper.pdf", 2, "two")

    assert index_store.get_document("paper.pdf") == before
    assert metadata_store.get_document("paper.pdf") == before
    assert set(vector_index.points) == {before.id}
    assert not index_store.is_indexed("paper.pdf", 2)


@pytest.mark.asyncio
async def test_metadata_write_failure_removes_new_vector(index_store, vector_index, metadata_store, monkeypatch):
    before = await index_store.add_page("paper.pdf", 1, "one")

    def broken_put(document):
        raise OSError("disk full")

    monkeypatch.setattr(metadata_store, "put_document", broken_put)
    with pytest.raises(OSError):
        await index_store.add_page("paper.pdf", 2, "two")

    assert set(vector_index.points) == {before.id}
    assert index_store.get_document("paper.pdf") == before


@pytest.mark.asyncio
async def test_removing_last_page_deletes_document(index_store, vector_index):
    await index_store.add_page("paper.pdf", 3, "only page")

    result = await index_store.remove_page("paper.pdf", 3)

    assert result is None
    assert not index_store.is_indexed("paper.pdf", 3)
    assert index_store.get_document("paper.pdf") is None
    assert vector_index.points == {}


@pytest.mark.asyncio
async def test_remove_page_rebuilds_remaining(index_store, embed_client, vector_index):
    await index_store.add_page("paper.pdf", 1, "one")
    await index_store.add_page("paper.pdf", 2, "two")

    doc = await index_store.remove_page("paper.pdf", 1)

    assert doc.page_indices == [2]
    assert embed_client.calls[-1] == ["[P3] two"]
    assert set(vector_index.points) == {doc.id}


@pytest.mark.asyncio
async def test_remove_unknown_page_is_noop(index_store, embed_client):
    assert await index_store.remove_page("missing.pdf", 0) is None
    assert embed_client.call_count == 0


@pytest.mark.asyncio
async def test_concurrent_adds_to_same_document_are_not_lost(index_store, vector_index):
    await asyncio.gather(*[index_store.add_page("paper.pdf", page, f"page {page}") for page in range(6)])

    doc = index_store.get_document("paper.pdf")
    assert doc.page_indices == [0, 1, 2, 3, 4, 5]
    assert set(vector_index.points) == {doc.id}


@pytest.mark.asyncio
async def test_failed_delete_leaves_orphan_for_cleanup(index_store, vector_index):
    before = await index_store.add_page("paper.pdf", 1, "one")
    vector_index.fail_delete = True
    after = await index_store.add_page("paper.pdf", 2, "two")

    assert set(vector_index.points) == {before.id, after.id}

    vector_index.fail_delete = False
    assert await index_store.cleanup_orphans() == 1
    assert set(vector_index.points) == {after.id}


@pytest.mark.asyncio
async def test_add_pages_single_rebuild(index_store, embed_client):
    entries = [PageIndexEntry(page_index=p, summary=f"page {p}") for p in (4, 1, 9)]
    doc = await index_store.add_pages("book.pdf", entries)

    assert doc.page_indices == [1, 4, 9]
    assert embed_client.call_count == 1


@pytest.mark.asyncio
async def test_clear_all(index_store, vector_index):
    await index_store.add_page("a.pdf", 0, "a")
    await index_store.add_page("b.pdf", 0, "b")

    assert await index_store.clear_all() == 2
    assert index_store.list_documents() == []
    assert vector_index.points == {}


@pytest.mark.asyncio
async def test_blank_summary_is_rejected(index_store, embed_client, vector_index):
    await index_store.add_page("paper.pdf", 3, "discusses gradient descent")
    before = index_store.get_document("paper.pdf")

    with pytest.raises(ValueError):
        await index_store.add_page("paper.pdf", 4, "   ")

    assert index_store.get_document("paper.pdf") == before
    assert list(vector_index.points) == [before.id]
    assert embed_client.call_count == 1


@pytest.mark.asyncio
async def test_excerpts_alone_are_enough_to_index(index_store):
    doc = await index_store.add_page("paper.pdf", 4, "", ["learning rate schedule"])
    assert doc.page_indices == [4]


@pytest.mark.asyncio
async def test_add_pages_drops_blank_summaries(index_store, embed_client):
    entries = [
        PageIndexEntry(page_index=1, summary="introduction"),
        PageIndexEntry(page_index=2, summary=""),
    ]
    doc = await index_store.add_pages("book.pdf", entries)

    assert doc.page_indices == [1]
    assert await index_store.add_pages("empty.pdf", [PageIndexEntry(page_index=0, summary=" ")]) is None
    assert embed_client.call_count == 1


@pytest.mark.asyncio
async def test_clear_all_keeps_document_indexed_meanwhile(index_store, vector_index):
    await index_store.add_page("old.pdf", 0, "old summary")
    delete_points = vector_index.do_delete_points

    async def delete_while_indexing(ids):
        await index_store.add_page("new.pdf", 0, "new summary")
        await delete_points(ids)

    vector_index.do_delete_points = delete_while_indexing

    assert await index_store.clear_all() == 1

    new_doc = index_store.get_document("new.pdf")
    assert index_store.get_document("old.pdf") is None
    assert new_doc is not None
    assert list(vector_index.points) == [new_doc.id]


@pytest.mark.asyncio
async def test_clear_all_waits_for_running_rebuild(index_store, embed_client, vector_index):
    await index_store.add_page("paper.pdf", 0, "first page")
    release = asyncio.Event()
    embed = embed_client.do_embed

    async def slow_embed(texts):
        await release.wait()
        return await embed(texts)

    embed_client.do_embed = slow_embed
    rebuild = asyncio.create_task(index_store.add_page("paper.pdf", 1, "second page"))
    await asyncio.sleep(0)
    clear = asyncio.create_task(index_store.clear_all())
    await asyncio.sleep(0)
    release.set()
    await rebuild

    assert await clear == 1
    assert index_store.list_documents() == []
    assert vector_index.points == {}
