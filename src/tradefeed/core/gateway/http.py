"""
HTTP remote data gateway.

Talks to the feed's JSON REST service over httpx, mapping transport
failures and status codes onto the engine's error taxonomy:

- 401/403 -> AuthenticationError
- 400/404/409/422 -> ValidationError
- 5xx, transport errors, timeouts -> NetworkError

Endpoints:
    GET    /spaces/{space}/entries?limit=N[&before_created_at=..&before_id=..]
    POST   /spaces/{space}/entries
    DELETE /spaces/{space}/entries/{id}
    GET    /profiles

Retries are not performed here; callers decide based on the error class.
"""

from __future__ import annotations

import logging
import os
from typing import Any

import httpx

from tradefeed.core.config.models import GatewayConfig
from tradefeed.core.entries.models import Cursor, Entry, Page, Profile, TradeFields
from tradefeed.core.gateway.exceptions import (
    AuthenticationError,
    NetworkError,
    ValidationError,
)
from tradefeed.core.gateway.rows import (
    cursor_params,
    entry_from_row,
    entry_insert_row,
    profile_from_row,
)

logger = logging.getLogger(__name__)


def classify_response(response: httpx.Response, operation: str) -> None:
    """
    Raise the taxonomy error matching a failed response.

    Args:
        response: Response to check
        operation: Name used in error messages

    Raises:
        AuthenticationError: On 401/403
        NetworkError: On 5xx or 429
        ValidationError: On any other 4xx
    """
    status = response.status_code
    if status < 400:
        return

    detail = response.text[:200] if response.text else response.reason_phrase
    if status in (401, 403):
        raise AuthenticationError(
            f"{operation} rejected: {status} {detail}", status_code=status
        )
    if status >= 500 or status == 429:
        raise NetworkError(f"{operation} failed: {status} {detail}", status_code=status)
    raise ValidationError(f"{operation} rejected: {status} {detail}", status_code=status)


class HttpGateway:
    """
    RemoteDataGateway over a JSON REST service.

    Example:
        >>> config = GatewayConfig(base_url="https://feed.example.com/api")
        >>> async with HttpGateway(config) as gateway:
        ...     page = await gateway.list_entries("j1", page_size=50)
    """

    def __init__(
        self,
        config: GatewayConfig,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """
        Initialize the gateway.

        Args:
            config: Gateway configuration (base URL, auth token source)
            client: Preconfigured client (e.g., with a MockTransport in tests)
        """
        self.config = config
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(
            base_url=config.base_url,
            headers=self._build_headers(),
            timeout=config.timeout_seconds or None,
        )

    def _build_headers(self) -> dict[str, str]:
        headers = {"Accept": "application/json"}
        if self.config.token_env_var:
            token = os.environ.get(self.config.token_env_var)
            if token:
                headers["Authorization"] = f"Bearer {token}"
            else:
                logger.debug(f"{self.config.token_env_var} not set, sending anonymous requests")
        return headers

    async def _request(self, method: str, url: str, operation: str, **kwargs: Any) -> Any:
        try:
            response = await self._client.request(method, url, **kwargs)
        except httpx.TimeoutException as e:
            raise NetworkError(f"{operation} timed out: {e}", timed_out=True) from e
        except httpx.RequestError as e:
            raise NetworkError(f"{operation} failed: {e}") from e

        classify_response(response, operation)
        if response.status_code == 204 or not response.content:
            return None
        try:
            return response.json()
        except ValueError as e:
            raise NetworkError(f"{operation} returned invalid JSON: {e}") from e

    async def create_entry(
        self,
        space_key: str,
        content: str,
        tags: list[str],
        trade_fields: TradeFields,
        author_id: str,
    ) -> Entry:
        payload = entry_insert_row(space_key, content, tags, trade_fields, author_id)
        data = await self._request(
            "POST", f"/spaces/{space_key}/entries", "create_entry", json=payload
        )
        if not isinstance(data, dict):
            raise NetworkError("create_entry returned no entry")
        return entry_from_row(data, space_key=space_key)

    async def list_entries(
        self,
        space_key: str,
        page_size: int,
        cursor: Cursor | None = None,
    ) -> Page:
        params: dict[str, Any] = {"limit": page_size, **cursor_params(cursor)}
        data = await self._request(
            "GET", f"/spaces/{space_key}/entries", "list_entries", params=params
        )

        if isinstance(data, list):
            rows, is_last = data, len(data) < page_size
        elif isinstance(data, dict):
            rows = data.get("entries") or []
            if not isinstance(rows, list):
                raise ValidationError(
                    f"list_entries returned {type(rows).__name__} instead of a list",
                    field="entries",
                )
            is_last = bool(data.get("is_last_page", len(rows) < page_size))
        else:
            rows, is_last = [], True

        entries = [entry_from_row(row, space_key=space_key) for row in rows]
        page = Page.from_entries(entries, page_size)
        return page.model_copy(update={"is_last_page": is_last})

    async def list_profiles(self) -> list[Profile]:
        data = await self._request("GET", "/profiles", "list_profiles")
        rows = data.get("profiles", []) if isinstance(data, dict) else data or []
        if not isinstance(rows, list):
            raise ValidationError(
                f"list_profiles returned {type(rows).__name__} instead of a list", field="profiles"
            )

        profiles = []
        for row in rows:
            try:
                profile = profile_from_row(row)
            except ValidationError as e:
                logger.warning(f"Skipping malformed profile row: {e}")
                continue
            if profile is not None:
                profiles.append(profile)
        return profiles

    async def delete_entry(self, space_key: str, entry_id: str) -> None:
        await self._request(
            "DELETE", f"/spaces/{space_key}/entries/{entry_id}", "delete_entry"
        )

    async def aclose(self) -> None:
        """Close the underlying client if this gateway created it."""
        if self._owns_client:
            await self._client.aclose()

    async def __aenter__(self) -> HttpGateway:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()


__all__ = ["HttpGateway", "classify_response"]
