"""
Tests for HttpGateway and remote row mapping.

Uses httpx.MockTransport so no network access is needed.
"""

import json
from datetime import datetime, timezone

import httpx
import pytest

from tradefeed.core.config.models import GatewayConfig
from tradefeed.core.entries.models import (
    UNRESOLVED_AUTHOR,
    Cursor,
    MentalState,
    TradeFields,
    TradeType,
)
from tradefeed.core.gateway.base import RemoteDataGateway
from tradefeed.core.gateway.exceptions import (
    AuthenticationError,
    NetworkError,
    ValidationError,
)
from tradefeed.core.gateway.http import HttpGateway
from tradefeed.core.gateway.memory import InMemoryGateway
from tradefeed.core.gateway.rows import cursor_params, entry_from_row, profile_from_row

BASE_URL = "http://feed.test/api"


def row(entry_id: str, minute: int = 0, **extra) -> dict:
    data = {
        "id": entry_id,
        "space_id": "j1",
        "user_id": "u1",
        "created_at": f"2026-03-02T14:{minute:02d}:00Z",
        "content": f"entry {entry_id}",
    }
    data.update(extra)
    return data


def make_gateway(handler) -> HttpGateway:
    client = httpx.AsyncClient(base_url=BASE_URL, transport=httpx.MockTransport(handler))
    return HttpGateway(GatewayConfig(base_url=BASE_URL), client=client)


class TestRows:
    """Tests for row mapping."""

    def test_entry_from_row(self) -> None:
        entry = entry_from_row(
            row("e1", username="alice", mental_state="calm", trade_type="swing", tags=["fx"])
        )
        assert entry.id == "e1"
        assert entry.space_key == "j1"
        assert entry.author_display_name == "alice"
        assert entry.created_at == datetime(2026, 3, 2, 14, 0, tzinfo=timezone.utc)
        assert entry.mental_state is MentalState.CALM
        assert entry.trade_type is TradeType.SWING
        assert entry.tags == ["fx"]

    def test_missing_username_is_placeholder(self) -> None:
        assert entry_from_row(row("e1")).author_display_name == UNRESOLVED_AUTHOR

    def test_pnl_column_fallback(self) -> None:
        """Test the legacy pnl column is read when profit_loss is absent."""
        assert entry_from_row(row("e1", pnl="$1,250.50")).profit_loss == 1250.5
        assert entry_from_row(row("e1", profit_loss=-20, pnl=99)).profit_loss == -20

    def test_unparsable_values_become_none(self) -> None:
        entry = entry_from_row(row("e1", profit_loss="n/a", mental_state="euphoric"))
        assert entry.profit_loss is None
        assert entry.mental_state is None

    def test_missing_column(self) -> None:
        bad = row("e1")
        del bad["user_id"]
        with pytest.raises(ValidationError) as exc_info:
            entry_from_row(bad)
        assert exc_info.value.field == "user_id"

    def test_bad_timestamp(self) -> None:
        with pytest.raises(ValidationError, match="invalid created_at"):
            entry_from_row(row("e1", created_at="yesterday"))

    def test_profile_from_row(self) -> None:
        assert profile_from_row({"id": "u1", "username": "alice"}).display_name == "alice"
        assert profile_from_row({"id": "u1", "display_name": "Al", "username": "alice"}).display_name == "Al"
        assert profile_from_row({"id": "u1"}) is None

    @pytest.mark.parametrize(
        "extra,field",
        [
            ({"username": 42}, "author_display_name"),
            ({"id": ""}, "id"),
            ({"tags": [1, 2]}, "tags.0"),
            ({"tags": 7}, "tags"),
        ],
    )
    def test_wrong_typed_column(self, extra: dict, field: str) -> None:
        """Test a column of the wrong type raises the gateway ValidationError."""
        with pytest.raises(ValidationError) as exc_info:
            entry_from_row(row("e1", **extra))
        assert exc_info.value.field == field

    def test_non_object_rows(self) -> None:
        with pytest.raises(ValidationError, match="not an object"):
            entry_from_row(["e1"])
        with pytest.raises(ValidationError, match="not an object"):
            profile_from_row("alice")

    def test_cursor_params(self) -> None:
        cursor = Cursor(created_at=datetime(2026, 3, 2, 14, 0, tzinfo=timezone.utc), id="e5")
        assert cursor_params(None) == {}
        assert cursor_params(cursor) == {
            "before_created_at": "2026-03-02T14:00:00+00:00",
            "before_id": "e5",
        }


class TestHttpGateway:
    """Tests for HttpGateway requests and error mapping."""

    def test_satisfies_protocol(self) -> None:
        gateway = make_gateway(lambda request: httpx.Response(200, json=[]))
        assert isinstance(gateway, RemoteDataGateway)
        assert isinstance(InMemoryGateway(), RemoteDataGateway)

    @pytest.mark.asyncio
    async def test_list_entries_first_page(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json=[row("e2", 2), row("e1", 1)])

        gateway = make_gateway(handler)
        page = await gateway.list_entries("j1", page_size=2)

        assert [e.id for e in page.entries] == ["e2", "e1"]
        assert page.is_last_page is False
        assert page.end_cursor.id == "e1"
        assert seen[0].url.path == "/api/spaces/j1/entries"
        assert seen[0].url.params["limit"] == "2"
        assert "before_id" not in seen[0].url.params

    @pytest.mark.asyncio
    async def test_list_entries_with_cursor(self) -> None:
        """Test the cursor is sent as keyset parameters."""
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(200, json={"entries": [row("e1")], "is_last_page": True})

        gateway = make_gateway(handler)
        cursor = Cursor(created_at=datetime(2026, 3, 2, 14, 5, tzinfo=timezone.utc), id="e2")
        page = await gateway.list_entries("j1", page_size=20, cursor=cursor)

        assert seen[0].url.params["before_id"] == "e2"
        assert seen[0].url.params["before_created_at"] == "2026-03-02T14:05:00+00:00"
        assert page.is_last_page is True
        assert len(page) == 1

    @pytest.mark.asyncio
    async def test_create_entry(self) -> None:
        """Test the insert payload and the parsed response."""
        bodies: list[dict] = []

        def handler(request: httpx.Request) -> httpx.Response:
            bodies.append(json.loads(request.content))
            return httpx.Response(201, json=row("e9", content="Hello", mental_state="calm"))

        gateway = make_gateway(handler)
        entry = await gateway.create_entry(
            "j1", "Hello", ["fx"], TradeFields(mental_state=MentalState.CALM), "u1"
        )

        assert entry.id == "e9"
        assert entry.mental_state is MentalState.CALM
        assert bodies[0]["space_id"] == "j1"
        assert bodies[0]["user_id"] == "u1"
        assert bodies[0]["mental_state"] == "calm"
        assert bodies[0]["tags"] == ["fx"]

    @pytest.mark.asyncio
    async def test_list_profiles_skips_nameless_rows(self) -> None:
        gateway = make_gateway(
            lambda request: httpx.Response(
                200, json={"profiles": [{"id": "u1", "username": "alice"}, {"id": "u2"}]}
            )
        )

        profiles = await gateway.list_profiles()

        assert [p.id for p in profiles] == ["u1"]

    @pytest.mark.asyncio
    async def test_delete_entry(self) -> None:
        seen: list[httpx.Request] = []

        def handler(request: httpx.Request) -> httpx.Response:
            seen.append(request)
            return httpx.Response(204)

        await make_gateway(handler).delete_entry("j1", "e3")

        assert seen[0].method == "DELETE"
        assert seen[0].url.path == "/api/spaces/j1/entries/e3"

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "status,error_cls",
        [
            (401, AuthenticationError),
            (403, AuthenticationError),
            (400, ValidationError),
            (404, ValidationError),
            (422, ValidationError),
            (429, NetworkError),
            (500, NetworkError),
            (503, NetworkError),
        ],
    )
    async def test_status_mapping(self, status: int, error_cls: type) -> None:
        """Test HTTP status codes map onto the error taxonomy."""
        gateway = make_gateway(lambda request: httpx.Response(status, text="nope"))

        with pytest.raises(error_cls) as exc_info:
            await gateway.list_entries("j1", page_size=20)

        assert exc_info.value.context["status_code"] == status

    @pytest.mark.asyncio
    async def test_transport_error_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        with pytest.raises(NetworkError, match="connection refused"):
            await make_gateway(handler).list_profiles()

    @pytest.mark.asyncio
    async def test_timeout_is_network_error(self) -> None:
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ReadTimeout("read timed out", request=request)

        with pytest.raises(NetworkError) as exc_info:
            await make_gateway(handler).list_profiles()

        assert exc_info.value.timed_out is True

    @pytest.mark.asyncio
    async def test_invalid_json(self) -> None:
        gateway = make_gateway(lambda request: httpx.Response(200, text="<html>"))

        with pytest.raises(NetworkError, match="invalid JSON"):
            await gateway.list_profiles()

    @pytest.mark.asyncio
    async def test_bearer_token_from_env(self, monkeypatch: pytest.MonkeyPatch) -> None:
        """Test the auth token is read from the configured variable."""
        monkeypatch.setenv("TRADEFEED_TOKEN", "secret")

        gateway = HttpGateway(GatewayConfig(base_url=BASE_URL))
        try:
            assert gateway._client.headers["Authorization"] == "Bearer secret"
        finally:
            await gateway.aclose()

    @pytest.mark.asyncio
    async def test_no_token(self, monkeypatch: pytest.MonkeyPatch) -> None:
        monkeypatch.delenv("TRADEFEED_TOKEN", raising=False)

        async with HttpGateway(GatewayConfig(base_url=BASE_URL)) as gateway:
            assert "Authorization" not in gateway._client.headers

    @pytest.mark.asyncio
    async def test_malformed_created_row(self) -> None:
        """Test a confirmation row with a wrong-typed column stays in the error taxonomy."""
        gateway = make_gateway(lambda request: httpx.Response(201, json=row("e9", username=42)))

        with pytest.raises(ValidationError) as exc_info:
            await gateway.create_entry("j1", "Hello", [], TradeFields(), "u1")

        assert exc_info.value.retryable is False

    @pytest.mark.asyncio
    async def test_list_entries_malformed_rows(self) -> None:
        gateway = make_gateway(lambda request: httpx.Response(200, json=[row("e1"), "junk"]))

        with pytest.raises(ValidationError, match="not an object"):
            await gateway.list_entries("j1", page_size=20)

    @pytest.mark.asyncio
    async def test_list_entries_body_not_a_list(self) -> None:
        gateway = make_gateway(lambda request: httpx.Response(200, json={"entries": 5}))

        with pytest.raises(ValidationError) as exc_info:
            await gateway.list_entries("j1", page_size=20)

        assert exc_info.value.field == "entries"

    @pytest.mark.asyncio
    async def test_list_profiles_skips_malformed_rows(self) -> None:
        """Test one bad profile row does not fail the whole directory refresh."""
        gateway = make_gateway(
            lambda request: httpx.Response(
                200, json=["junk", {"id": "u1", "username": "alice"}, {"id": "u2", "username": ""}]
            )
        )

        profiles = await gateway.list_profiles()

        assert [p.id for p in profiles] == ["u1"]

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "configured,expected",
        [(30.0, httpx.Timeout(30.0)), (2.5, httpx.Timeout(2.5)), (0.0, httpx.Timeout(None))],
    )
    async def test_client_uses_configured_timeout(
        self, configured: float, expected: httpx.Timeout
    ) -> None:
        """Test the owned client honors timeout_seconds, with 0 disabling it."""
        async with HttpGateway(
            GatewayConfig(base_url=BASE_URL, timeout_seconds=configured)
        ) as gateway:
            assert gateway._client.timeout == expected
