"""Page text source reading PDFs from the library directory with pypdf."""

import asyncio
from pathlib import Path

from pypdf import PdfReader
from pypdf.errors import PdfReadError

from shared.errors import PageTextUnavailableError
from shared.helper.HelperConfig import HelperConfig
from services.bookmarks.PageTextSourceInterface import PageTextSourceInterface


class PageTextSourcePdf(PageTextSourceInterface):
    """Extracts page text from `LIBRARY_DIR/<document_key>`."""

    def __init__(self, helper_config: HelperConfig, library_dir: Path | None = None) -> None:
        self.logging = helper_config.get_logger()
        self._library_dir = library_dir or helper_config.get_path_val("LIBRARY_DIR", default="library")

    def _resolve(self, document_key: str) -> Path:
        path = (self._library_dir / document_key).resolve()
        if self._library_dir.resolve() not in path.parents:
            raise PageTextUnavailableError(f"Document '{document_key}' is outside the library.")
        return path

    def _extract(self, path: Path, page_index: int) -> str:
        try:
            reader = PdfReader(path)
            if page_index < 0 or page_index >= len(reader.pages):
                raise PageTextUnavailableError(
                    f"Page {page_index} out of range for '{path.name}' ({len(reader.pages)} page(s))."
                )
            return reader.pages[page_index].extract_text() or ""
        except (OSError, PdfReadError) as e:
            raise PageTextUnavailableError(f"Could not read '{path.name}': {e}") from e

    async def do_fetch_page_text(self, document_key: str, page_index: int) -> str:
        path = self._resolve(document_key)
        if not path.is_file():
            raise PageTextUnavailableError(f"Document '{document_key}' not found in {self._library_dir}.")

        # pypdf is synchronous and CPU bound
        text = await asyncio.to_thread(self._extract, path, page_index)
        if not text.strip():
            raise PageTextUnavailableError(f"Page {page_index} of '{document_key}' has no extractable text.")
        self.logging.debug("Extracted %d character(s) from page %d of '%s'.", len(text), page_index, document_key)
        return text.strip()
