from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent

from shared.errors import (
    NetworkFailureError,
    NotInitializedError,
    ProviderParseError,
    ProviderUnavailableError,
    RateLimitedError,
    parse_retry_hint,
)
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Async HTTP client base for the embedding, summary and vector backends.

    Subclasses name their type and engine and list their settings as
    EnvConfig entries; the values are read once from "<TYPE>_<ENGINE>_<KEY>"
    variables and kept in `self._config` under their raw key.
    """

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)

        self._client: httpx.AsyncClient | None = None
        self._transport: httpx.AsyncBaseTransport | None = None
        self._config: dict[str, Any] = self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> dict[str, Any]:
        """
        Reads every setting from _get_required_config().

        Returns:
            dict[str, Any]: Resolved values keyed by their raw key (e.g. "BASE_URL").

        Raises:
            ValueError: If a setting without default is missing or malformed.
        """
        return {
            config.env_key: self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)
            for config in self._get_required_config()
        }

    def is_booted(self) -> bool:
        return self._client is not None

    ##########################################
    ################ GETTER ##################
    ##########################################

    ################ GENERAL ##################
    def get_client_type(self) -> str:
        return self._get_client_type().lower()

    @abstractmethod
    def _get_client_type(self) -> str:
        """Client type, e.g. "embed", "llm" or "rag"."""
        pass

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """Display name of the backend, e.g. "Gemini"."""
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """
        Settings of the engine, without the "<TYPE>_<ENGINE>_" prefix.

        Returns:
            list[EnvConfig]: One entry per setting.
        """
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        """E.g. "API_KEY" of the Gemini embedding client -> "EMBED_GEMINI_API_KEY"."""
        return f"{self.get_client_type().upper()}_{self.get_engine_name().upper()}_{raw_key.upper()}"

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """
        Reads one engine setting from the environment.

        Args:
            raw_key (str): Setting name without prefix, e.g. "BASE_URL".
            default (Any): Value used when the variable is not set.
            val_type (str): "string", "number", "bool" or "list".

        Raises:
            ValueError: If the variable is missing without default, or val_type is unknown.
        """
        key = self._get_config_key_name(raw_key)
        readers = {
            "string": self._helper_config.get_string_val,
            "number": self._helper_config.get_number_val,
            "bool": self._helper_config.get_bool_val,
            "list": self._helper_config.get_list_val,
        }
        if val_type not in readers:
            raise ValueError(f"Unsupported config value type '{val_type}' for {key}.")
        return readers[val_type](key, default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers authenticating against the backend; empty if no key is configured."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """Backend root URL, e.g. "http://localhost:6333"."""
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """Path answering a cheap GET when the backend is up."""
        pass

    ##########################################
    ################# OTHER ##################
    ##########################################

    def _extract_error_message(self, response: httpx.Response) -> str:
        """Pull a human-readable error message out of an error response.

        Handles the common {"error": {"message": ...}} and {"error": "..."} shapes
        and falls back to the (truncated) response body.
        """
        try:
            body = response.json()
        except ValueError:
            return response.text[:300]
        if isinstance(body, dict):
            error = body.get("error") or body.get("status")
            if isinstance(error, dict) and error.get("message"):
                return str(error["message"])
            if isinstance(error, str):
                return error
        return response.text[:300]

    def _parse_json(self, response: httpx.Response) -> Any:
        """Decode a JSON response body.

        Raises:
            ProviderParseError: If the body is not valid JSON.
        """
        try:
            return response.json()
        except ValueError as e:
            raise ProviderParseError(
                f"{self.get_engine_name()} returned a non-JSON response: {e}",
                status_code=response.status_code,
            ) from e

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck())

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    def set_transport(self, transport: httpx.AsyncBaseTransport) -> None:
        """Route all requests through a custom transport (e.g. httpx.MockTransport). Call before boot()."""
        self._transport = transport

    async def boot(self) -> None:
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=self._transport)

    async def close(self) -> None:
        if self._client:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        json: dict | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
    ) -> httpx.Response:
        """Send an HTTP request to the backend.

        Args:
            method: HTTP method (GET, POST, PUT, ...).
            content: Raw body; pass its Content-Type via additional_headers.
            json: JSON-serialisable body, used when content is None.
            params: URL query parameters.
            endpoint: Path appended to the base URL (leading slash optional).
            additional_headers: Extra headers that override the defaults.
            raise_on_error: Raise instead of returning non-2xx responses.

        Returns:
            The raw httpx.Response.

        Raises:
            NotInitializedError: If boot() has not been called.
            NetworkFailureError: If the backend cannot be reached.
            RateLimitedError: On status 429 (when raise_on_error is True).
            ProviderUnavailableError: On any other non-2xx status (when raise_on_error is True).
        """
        if self._client is None:
            raise NotInitializedError(
                f"{self.get_client_type().upper()} client '{self.get_engine_name()}' not initialised. Call boot() before making requests."
            )

        endpoint = "/" + endpoint.strip().lstrip("/") if endpoint.strip() else ""
        url = f"{self._get_base_url().rstrip('/')}{endpoint}"
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        # exactly one body argument; httpx sets Content-Type for json itself
        body: dict = {"content": content} if content is not None else {"json": json} if json is not None else {}

        try:
            response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)
        except httpx.TransportError as e:
            self.logging.error("Request to %s failed: %s", url, e)
            raise NetworkFailureError(f"Could not reach {self.get_engine_name()}: {e}") from e

        if raise_on_error and response.status_code >= 300:
            message = self._extract_error_message(response)
            if response.status_code == 429:
                retry_after = parse_retry_hint(message, response.headers.get("Retry-After"))
                self.logging.warning(
                    "Rate limited by %s (retry hint: %s): %s", self.get_engine_name(), retry_after, message
                )
                raise RateLimitedError(f"{self.get_engine_name()} rate limit: {message}", retry_after=retry_after)
            self.logging.error("Request to %s failed with status %d: %s", url, response.status_code, message)
            raise ProviderUnavailableError(
                f"Request to {url} failed with status {response.status_code}: {message}",
                status_code=response.status_code,
            )

        return response
