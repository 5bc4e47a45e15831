"""JSON-persisted bookmark list.

Stands in for the host application's bookmark store: it answers the
questions the index asks (does this bookmark still exist, which text was
highlighted on the page) and feeds the batch operations.
"""

from pathlib import Path

from pydantic import ValidationError

from shared.helper.HelperConfig import HelperConfig
from shared.helper.HelperFile import read_json, write_json_atomic
from shared.models.index import Bookmark

BOOKMARKS_FILE_NAME = "bookmarks.json"


class BookmarkRegistry:
    """Bookmarks keyed by (document_key, page_index), newest first."""

    def __init__(self, helper_config: HelperConfig, data_dir: Path | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._path = (data_dir or helper_config.get_path_val("INDEX_DATA_DIR", default="data", create=True)) / BOOKMARKS_FILE_NAME
        self._bookmarks: list[Bookmark] = self._load()

    def _load(self) -> list[Bookmark]:
        try:
            raw = read_json(self._path)
        except (OSError, ValueError) as e:
            self.logging.warning("Could not read %s, starting without bookmarks: %s", self._path.name, e)
            return []
        bookmarks = []
        for item in raw or []:
            try:
                bookmarks.append(Bookmark.model_validate(item))
            except ValidationError as e:
                self.logging.warning("Skipping invalid bookmark in %s: %s", self._path.name, e)
        return bookmarks

    def _save(self, bookmarks: list[Bookmark]) -> None:
        write_json_atomic(self._path, [bookmark.model_dump(mode="json") for bookmark in bookmarks])
        self._bookmarks = bookmarks

    ##########################################
    ################ GETTER ##################
    ##########################################

    def get_bookmarks(self, document_key: str | None = None) -> list[Bookmark]:
        """Return all bookmarks, or those of one document, newest first."""
        if document_key is None:
            return list(self._bookmarks)
        return [b for b in self._bookmarks if b.document_key == document_key]

    def get_bookmark(self, document_key: str, page_index: int) -> Bookmark | None:
        for bookmark in self._bookmarks:
            if bookmark.document_key == document_key and bookmark.page_index == page_index:
                return bookmark
        return None

    def is_bookmarked(self, document_key: str, page_index: int) -> bool:
        return self.get_bookmark(document_key, page_index) is not None

    def get_highlight_excerpts(self, document_key: str, page_index: int) -> list[str]:
        bookmark = self.get_bookmark(document_key, page_index)
        if bookmark is None or not bookmark.highlight_excerpts:
            return []
        return list(bookmark.highlight_excerpts)

    ##########################################
    ################ SETTER ##################
    ##########################################

    def add_bookmark(self, document_key: str, page_index: int, highlight_excerpts: list[str] | None = None) -> Bookmark:
        """Add a bookmark. An existing bookmark for the page is kept, its excerpts updated if given.

        Returns:
            Bookmark: The stored bookmark.
        """
        existing = self.get_bookmark(document_key, page_index)
        if existing is not None:
            if highlight_excerpts is None or highlight_excerpts == existing.highlight_excerpts:
                return existing
            updated = existing.model_copy(update={"highlight_excerpts": highlight_excerpts or None})
            self._save([updated if b is existing else b for b in self._bookmarks])
            return updated

        bookmark = Bookmark(document_key=document_key, page_index=page_index, highlight_excerpts=highlight_excerpts or None)
        self._save([bookmark, *self._bookmarks])
        self.logging.debug("Bookmarked page %d of '%s'.", page_index, document_key)
        return bookmark

    def remove_bookmark(self, document_key: str, page_index: int) -> bool:
        """Remove a bookmark.

        Returns:
            bool: True if the bookmark existed.
        """
        existing = self.get_bookmark(document_key, page_index)
        if existing is None:
            return False
        self._save([b for b in self._bookmarks if b is not existing])
        self.logging.debug("Removed bookmark on page %d of '%s'.", page_index, document_key)
        return True
