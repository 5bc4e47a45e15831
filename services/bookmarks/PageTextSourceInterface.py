from abc import ABC, abstractmethod


class PageTextSourceInterface(ABC):
    """Provides the extracted text of a document page."""

    @abstractmethod
    async def do_fetch_page_text(self, document_key: str, page_index: int) -> str:
        """Return the best-effort text of a page.

        Args:
            document_key (str): Document identity.
            page_index (int): Zero-based page number.

        Returns:
            str: The page text, never blank.

        Raises:
            PageTextUnavailableError: If no text can be extracted for the page.
        """
        pass
