from abc import ABC, abstractmethod
from typing import Any

import httpx
from httpx._types import QueryParamTypes, RequestContent, RequestData, RequestFiles

from shared.clients.ClientErrors import ClientResponseError, ClientTransportError, ConfigurationError, RateLimitError
from shared.helper.HelperConfig import HelperConfig
from shared.models.config import EnvConfig


class ClientInterface(ABC):
    """Base of every outbound HTTP client (vector index, embedding, generation,
    parsing, document store).

    A client is constructed from the environment, validated immediately,
    and only opens its ``httpx.AsyncClient`` on ``boot()``. Settings are read
    as ``{TYPE}_{ENGINE}_{KEY}``, e.g. ``RAG_QDRANT_BASE_URL``; the timeout is
    per type (``RAG_TIMEOUT``, default 30 s).
    """

    _READERS = {
        "string": HelperConfig.get_string_val,
        "number": HelperConfig.get_number_val,
        "bool": HelperConfig.get_bool_val,
        "list": HelperConfig.get_list_val,
    }

    def __init__(self, helper_config: HelperConfig):
        self.logging = helper_config.get_logger()
        self._helper_config = helper_config
        self.timeout = helper_config.get_number_val(f"{self.get_client_type().upper()}_TIMEOUT", default=30.0)
        self._client: httpx.AsyncClient | None = None
        self.validate_full_configuration()

    ##########################################
    ############### CHECKER ##################
    ##########################################

    def validate_full_configuration(self) -> None:
        """Read every declared setting once so a missing one fails at startup.

        Raises:
            ConfigurationError: If a mandatory setting is unset or a value cannot be parsed.
        """
        for config in self._get_required_config():
            try:
                self.get_config_val(raw_key=config.env_key, default=config.default, val_type=config.val_type)
            except ValueError as e:
                raise ConfigurationError(str(e)) from e

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
        """Client family, first part of every setting name ("rag", "embed", "llm", ...)."""
        pass

    def get_engine_name(self) -> str:
        return self._get_engine_name().lower()

    @abstractmethod
    def _get_engine_name(self) -> str:
        """Backend implementation, second part of every setting name ("Qdrant", "Ollama", ...)."""
        pass

    ################ CONFIG ##################
    @abstractmethod
    def _get_required_config(self) -> list[EnvConfig]:
        """Settings this engine reads; a None default marks a mandatory one."""
        pass

    def _get_config_key_name(self, raw_key: str) -> str:
        return f"{self.get_client_type()}_{self.get_engine_name()}_{raw_key}".upper()

    def get_config_val(self, raw_key: str, default: Any = None, val_type: str = "string") -> Any:
        """Read one of this engine's settings.

        Args:
            raw_key (str): Key without prefix, e.g. "BASE_URL".
            default (Any): Fallback when unset; None makes the setting mandatory.
            val_type (str): "string", "number", "bool" or "list".

        Raises:
            ValueError: If the setting is mandatory and unset, cannot be parsed,
                or ``val_type`` is unknown.
        """
        reader = self._READERS.get(val_type)
        if reader is None:
            raise ValueError(f"Unsupported value type '{val_type}' for setting '{raw_key}' of the {self.get_engine_name()} {self.get_client_type()} client.")
        return reader(self._helper_config, self._get_config_key_name(raw_key), default=default)

    ################ AUTH ##################
    @abstractmethod
    def _get_auth_header(self) -> dict:
        """Headers authenticating every request; empty when the backend needs none."""
        pass

    ################ ENDPOINTS ##################
    @abstractmethod
    def _get_base_url(self) -> str:
        """Backend root URL, e.g. "http://qdrant:6333"."""
        pass

    @abstractmethod
    def _get_endpoint_healthcheck(self) -> str:
        """Cheap GET path that proves the backend is reachable and the credentials work."""
        pass

    ##########################################
    ############### REQUESTS #################
    ##########################################

    async def do_healthcheck(self) -> httpx.Response:
        """GET the healthcheck endpoint.

        Raises:
            ClientResponseError: On a non-2xx answer.
            ClientTransportError: If the backend cannot be reached.
        """
        return await self.do_request(method="GET", endpoint=self._get_endpoint_healthcheck(), raise_on_error=True)

    ##########################################
    ############ CORE REQUESTS ###############
    ##########################################

    async def boot(self, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """Open the HTTP client. Tests pass an ``httpx.MockTransport``."""
        self._client = httpx.AsyncClient(timeout=self.timeout, transport=transport)

    async def close(self) -> None:
        if self._client is not None:
            await self._client.aclose()
            self._client = None

    async def do_request(
        self,
        method: str = "GET",
        content: RequestContent | None = None,
        data: RequestData | None = None,
        files: RequestFiles | None = None,
        json: dict | list | None = None,
        params: QueryParamTypes | None = None,
        endpoint: str = "",
        additional_headers: dict | None = None,
        raise_on_error: bool = False,
        accepted_statuses: tuple[int, ...] = (),
    ) -> httpx.Response:
        """Send one request to ``base URL + endpoint`` with the auth headers.

        At most one body is sent, in the order content, files (with optional
        form ``data``), data, json. Content-Type is left to httpx.

        Args:
            raise_on_error (bool): Turn a non-2xx answer into a typed error.
            accepted_statuses (tuple[int, ...]): Non-2xx statuses still returned
                as a plain response (e.g. 404 when dropping a missing collection).

        Returns:
            httpx.Response: The response, successful or not unless ``raise_on_error``.

        Raises:
            ClientTransportError: If the client is not booted or nothing came back.
            RateLimitError: On 429 with ``raise_on_error``.
            ClientResponseError: On other non-2xx statuses with ``raise_on_error``.
        """
        if self._client is None:
            raise ClientTransportError(f"The {self.get_engine_name()} {self.get_client_type()} client is not booted.")

        path = endpoint.strip().lstrip("/")
        url = self._get_base_url().rstrip("/") + (f"/{path}" if path else "")
        headers = {**self._get_auth_header(), **(additional_headers or {})}

        body: dict = {}
        if content is not None:
            body["content"] = content
        elif files is not None:
            body["files"] = files
            if data is not None:
                body["data"] = data
        elif data is not None:
            body["data"] = data
        elif json is not None:
            body["json"] = json

        try:
            response = await self._client.request(method, url, headers=headers, params=params, timeout=self.timeout, **body)
        except httpx.TransportError as e:
            self.logging.error("%s %s could not be sent: %s", method, url, e)
            raise ClientTransportError(f"{method} {url} failed: {e}") from e

        if raise_on_error and not response.is_success and response.status_code not in accepted_statuses:
            self.raise_for_response(response)
        return response

    def raise_for_response(self, response: httpx.Response) -> None:
        """Log a failed response and raise the matching typed error.

        Raises:
            RateLimitError: On HTTP 429.
            ClientResponseError: On any other status.
        """
        url = str(response.request.url)
        self.logging.error("%s %s answered %d: %s", response.request.method, url, response.status_code, response.text[:500])
        if response.status_code == 429:
            raise RateLimitError(response.status_code, url, response.text)
        raise ClientResponseError(response.status_code, url, response.text)
