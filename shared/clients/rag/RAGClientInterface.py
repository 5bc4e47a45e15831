from abc import abstractmethod
from typing import Any
import json

import httpx
from shared.clients.rag.models.Scroll import ScrollResult
from shared.clients.ClientInterface import ClientInterface
from shared.errors import ProviderParseError
from shared.models.search import VectorHit

from shared.helper.HelperConfig import HelperConfig


class RAGClientInterface(ClientInterface):
    """Vector index backend.

    The index layer relies only on insert (upsert by id), delete by id and
    nearest-neighbour search. In-place update of an existing id is never
    assumed.
    """

    def __init__(self, helper_config: HelperConfig):
        super().__init__(helper_config=helper_config)

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def _get_client_type(self) -> str:
        """
        Returns the type of the client. E.g. "rag"
        """
        return "rag"

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_endpoint_points(self) -> str:
        """
        Returns the endpoint path for points upsert requests (e.g. "/collections/my_col/points").
        """
        pass

    @abstractmethod
    def _get_endpoint_delete_points(self) -> str:
        """
        Returns the endpoint path for deleting points (e.g. "/collections/my_col/points/delete").
        """
        pass

    @abstractmethod
    def _get_endpoint_search(self) -> str:
        """
        Returns the endpoint path for nearest-neighbour search (e.g. "/collections/my_col/points/search").
        """
        pass

    @abstractmethod
    def _get_endpoint_scroll(self) -> str:
        """
        Returns the endpoint path for scroll requests (e.g. "/collections/my_col/points/scroll").
        """
        pass

    @abstractmethod
    def _get_endpoint_check_collection_existence(self) -> str:
        """
        Returns the endpoint path for collection existence check requests.
        """
        pass

    @abstractmethod
    def _get_endpoint_create_collection(self) -> str:
        """
        Returns the endpoint path for create collection requests.
        """
        pass

    ################ PAYLOAD BUILDER ##################
    @abstractmethod
    def get_create_collection_payload(self, vector_size: int, distance: str) -> dict:
        """Builds the backend-specific request payload for creating the collection."""
        pass

    @abstractmethod
    def get_upsert_payload(self, points: list[dict[str, Any]]) -> dict:
        """Builds the payload for inserting points given as {"id", "vector", "payload"} dicts."""
        pass

    @abstractmethod
    def get_delete_payload(self, ids: list[str]) -> dict:
        """Builds the payload for deleting points by id."""
        pass

    @abstractmethod
    def get_search_payload(self, vector: list[float], limit: int) -> dict:
        """Builds the payload for a nearest-neighbour search."""
        pass

    @abstractmethod
    def get_scroll_payload(self, with_payload: bool | list, limit: int, offset: str | None = None) -> dict:
        """Builds the payload for one scroll page over all points."""
        pass

    ################ RESPONSE PARSER ##################
    @abstractmethod
    def extract_search_hits(self, raw_response: dict) -> list[VectorHit]:
        """
        Extracts scored hits from a raw search response, best first.

        Raises:
            ProviderParseError: If the response does not have the expected shape.
        """
        pass

    @abstractmethod
    def extract_scroll_content(self, raw_response: dict) -> dict:
        """
        Extracts the relevant content from a raw scroll response.

        Returns:
            dict: A dict with keys "result", "status", "time".
        """
        pass

    @abstractmethod
    def extract_next_page_offset(self, raw_response: dict) -> str | None:
        """
        Extracts the pagination cursor for the next scroll page, or None on the last page.
        """
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_existence_check(self) -> bool:
        """Check if the collection exists in the rag backend.

        Returns:
            bool: True if the collection exists, False otherwise.
        """
        resp = await self.do_request(
            method="GET",
            endpoint=self._get_endpoint_check_collection_existence(),
            raise_on_error=True,
        )
        return bool(self._parse_json(resp).get("result", {}).get("exists"))

    async def do_create_collection(self, vector_size: int = 768, distance: str = "Cosine") -> httpx.Response:
        """Create the collection in the rag backend.

        Args:
            vector_size (int): The size of the vectors in the collection.
            distance (str): The distance metric for the vectors.

        Returns:
            httpx.Response: The response from the create collection request.
        """
        self.logging.info(
            "Creating %s collection (size=%d, distance=%s).", self.get_engine_name(), vector_size, distance
        )
        return await self.do_request(
            method="PUT",
            json=self.get_create_collection_payload(vector_size, distance),
            endpoint=self._get_endpoint_create_collection(),
            raise_on_error=True,
        )

    async def do_ensure_collection(self, vector_size: int, distance: str = "Cosine") -> None:
        """Create the collection unless it already exists."""
        if await self.do_existence_check():
            self.logging.debug("%s collection already exists.", self.get_engine_name())
            return
        await self.do_create_collection(vector_size=vector_size, distance=distance)

    async def do_upsert_points(self, points: list[dict[str, Any]]) -> httpx.Response:
        """Insert points into the collection.

        Args:
            points (list[dict[str, Any]]): Points as {"id", "vector", "payload"} dicts.

        Returns:
            httpx.Response: The response from the upsert request.
        """
        return await self.do_request(
            method="PUT",
            content=json.dumps(self.get_upsert_payload(points)),
            endpoint=self._get_endpoint_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_delete_points(self, ids: list[str]) -> None:
        """Delete points by id. Deleting unknown ids is not an error.

        Args:
            ids (list[str]): Point ids to delete.
        """
        if not ids:
            return
        await self.do_request(
            method="POST",
            content=json.dumps(self.get_delete_payload(ids)),
            endpoint=self._get_endpoint_delete_points(),
            params={"wait": "true"},
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )

    async def do_search(self, vector: list[float], limit: int) -> list[VectorHit]:
        """Return the `limit` nearest points to `vector`, best first.

        Args:
            vector (list[float]): The query embedding.
            limit (int): Maximum number of hits.

        Returns:
            list[VectorHit]: Scored hits in descending score order.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_search_payload(vector, limit)),
            endpoint=self._get_endpoint_search(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        return self.extract_search_hits(self._parse_json(resp))

    async def do_scroll(self, with_payload: bool | list, limit: int, offset: str | None = None) -> ScrollResult:
        """Scroll a single page of points.

        Args:
            with_payload (bool | list): Whether to include the payload, or which fields.
            limit (int): Page size.
            offset (str | None): Cursor from the previous page; None starts at the beginning.

        Returns:
            ScrollResult: The page, with next_page_offset set when more pages exist.
        """
        resp = await self.do_request(
            method="POST",
            content=json.dumps(self.get_scroll_payload(with_payload, limit, offset)),
            endpoint=self._get_endpoint_scroll(),
            additional_headers={"Content-Type": "application/json"},
            raise_on_error=True,
        )
        raw_response = self._parse_json(resp)
        scroll_content = self.extract_scroll_content(raw_response=raw_response)
        return ScrollResult(
            result=scroll_content.get("result", []),
            status=scroll_content.get("status", "ok"),
            time=scroll_content.get("time", 0),
            next_page_offset=self.extract_next_page_offset(raw_response),
        )

    async def do_scroll_all_ids(self, page_size: int = 1000) -> list[str]:
        """Collect the ids of every point in the collection, paginating automatically.

        Returns:
            list[str]: All point ids.
        """
        ids: list[str] = []
        offset: str | None = None
        page = 1
        while True:
            page_result = await self.do_scroll(with_payload=False, limit=page_size, offset=offset)
            for point in page_result.result:
                if "id" not in point:
                    raise ProviderParseError("Scroll result contains a point without id.")
                ids.append(str(point["id"]))
            self.logging.debug(
                "Fetched %s points page %d, total ids so far: %d", self.get_engine_name(), page, len(ids)
            )
            offset = page_result.next_page_offset
            if not offset:
                break
            page += 1
        return ids
