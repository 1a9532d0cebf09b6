"""
HTTP API Client

Thin async wrapper over httpx for the finance REST API.

Responsibilities:
- Base URL and timeout from ApiSettings
- JSON request/response bodies
- Query parameter normalisation (None dropped, enums/dates/bools encoded)
- Converting every failure into the SpendSyncError taxonomy

It does NOT retry. Read retries belong to the reactive cache; writes are
never retried.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Mapping, Optional

import httpx
import structlog

from spendsync.config import ApiSettings, get_settings
from spendsync.services.errors import from_invalid_body, from_response, from_transport_error


logger = structlog.get_logger(__name__)


def _encode_param(value: Any) -> Any:
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (list, tuple)):
        return [_encode_param(v) for v in value]
    return value


def encode_params(params: Optional[Mapping[str, Any]]) -> dict[str, Any]:
    """Query string parameters with None values removed."""
    if not params:
        return {}
    return {k: _encode_param(v) for k, v in params.items() if v is not None}


def _encode_body(value: Any) -> Any:
    if isinstance(value, Mapping):
        return {k: _encode_body(v) for k, v in value.items() if v is not None}
    if isinstance(value, (list, tuple)):
        return [_encode_body(v) for v in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, Decimal):
        return float(value)
    return value


class ApiClient:
    """
    Async JSON client.

    Usage:
        async with ApiClient() as client:
            page = await client.get("/accounts", params={"page": 0})
    """

    def __init__(
        self,
        settings: Optional[ApiSettings] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        headers: Optional[Mapping[str, str]] = None,
    ):
        self.settings = settings or get_settings().api
        self._client = httpx.AsyncClient(
            base_url=self.settings.base_url,
            timeout=self.settings.timeout_seconds,
            transport=transport,
            headers={"Content-Type": "application/json", **(headers or {})},
        )

    async def __aenter__(self) -> "ApiClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        if not self._client.is_closed:
            await self._client.aclose()

    @property
    def is_closed(self) -> bool:
        return self._client.is_closed

    async def request(
        self,
        method: str,
        path: str,
        *,
        params: Optional[Mapping[str, Any]] = None,
        json: Any = None,
    ) -> Any:
        """
        Perform one request.

        Returns:
            Decoded JSON body, or None for empty responses

        Raises:
            NetworkError: No response (timeout, refused, DNS...)
            SpendSyncError subclass: Error status from the server
            UnknownError: Successful status with a body that is not JSON
        """
        kwargs: dict[str, Any] = {"params": encode_params(params)}
        if json is not None:
            kwargs["json"] = _encode_body(json)

        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TransportError as e:
            logger.warning("api_transport_error", method=method, path=path, error=str(e))
            raise from_transport_error(e) from e

        if response.is_error:
            error = from_response(response.status_code, _decode(response))
            logger.info(
                "api_error_response",
                method=method,
                path=path,
                status=response.status_code,
                code=error.code,
            )
            raise error

        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            logger.warning("api_invalid_body", method=method, path=path, status=response.status_code)
            raise from_invalid_body(e, f"{method} {path}", response.status_code) from e

    async def get(self, path: str, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("GET", path, params=params)

    async def post(self, path: str, json: Any = None, params: Optional[Mapping[str, Any]] = None) -> Any:
        return await self.request("POST", path, params=params, json=json)

    async def put(self, path: str, json: Any = None) -> Any:
        return await self.request("PUT", path, json=json)

    async def delete(self, path: str, params: Optional[Mapping[str, Any]] = None, json: Any = None) -> Any:
        return await self.request("DELETE", path, params=params, json=json)


def _decode(response: httpx.Response) -> Any:
    """Error bodies are best effort; a missing or non-JSON body decodes to None."""
    if response.status_code == 204 or not response.content:
        return None
    try:
        return response.json()
    except ValueError:
        return None
