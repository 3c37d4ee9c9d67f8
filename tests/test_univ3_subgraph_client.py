from __future__ import annotations

import json

import httpx
import pytest

from pool_history.application.dto.pool_events import FetchEventsSettings
from pool_history.application.use_cases.fetch_pool_events import FetchPoolEventsUseCase
from pool_history.infrastructure.clients.univ3_subgraph_client import (
    BURNS_QUERY,
    MINTS_QUERY,
    SWAPS_QUERY,
    SubgraphRequestError,
    SubgraphResolutionError,
    Univ3SubgraphClient,
    Univ3SubgraphClientSettings,
)


def _make_client(*, subgraph_id: str = "subgraph-id", api_key: str = "api-key") -> Univ3SubgraphClient:
    return Univ3SubgraphClient(
        Univ3SubgraphClientSettings(
            graph_gateway_base="https://gateway.thegraph.com/api",
            graph_api_key=api_key,
            graph_subgraph_id=subgraph_id,
            timeout_seconds=10,
        )
    )


def _swap_row(swap_id: str, timestamp: int) -> dict:
    return {
        "id": swap_id,
        "timestamp": str(timestamp),
        "token0": {"id": "0xt0", "symbol": "USDC"},
        "token1": {"id": "0xt1", "symbol": "WETH"},
        "sender": "0xsender",
        "recipient": "0xrecipient",
        "amount0": "-100.5",
        "amount1": "0.05",
        "sqrtPriceX96": "1350174849792634181862360983626536",
        "tick": "195000",
    }


def _mint_row(mint_id: str, timestamp: int) -> dict:
    return {
        "id": mint_id,
        "timestamp": str(timestamp),
        "owner": "0xowner",
        "sender": "0xsender",
        "origin": "0xorigin",
        "amount": "12345",
        "amount0": "1",
        "amount1": "2",
        "tickLower": "-60",
        "tickUpper": "60",
    }


def _script(client: Univ3SubgraphClient, monkeypatch: pytest.MonkeyPatch, payload: dict) -> list[dict]:
    calls: list[dict] = []

    def fake_post(*, url: str, query: str, variables: dict) -> dict:
        calls.append({"url": url, "query": query, "variables": variables})
        return payload

    monkeypatch.setattr(client, "_post_graphql", fake_post)
    return calls


def _route(monkeypatch: pytest.MonkeyPatch, handler) -> None:
    real_client = httpx.Client

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr("pool_history.infrastructure.clients.univ3_subgraph_client.httpx.Client", client_factory)


def test_build_gateway_url_uses_id_when_value_is_not_url():
    client = _make_client()
    url = client._build_gateway_url("5zvR82QoaXYFyDEKLZ9t6v9adgnptxYpKpSbxtgVENFV")
    assert url == (
        "https://gateway.thegraph.com/api/api-key/subgraphs/id/"
        "5zvR82QoaXYFyDEKLZ9t6v9adgnptxYpKpSbxtgVENFV"
    )


def test_build_gateway_url_without_api_key():
    client = _make_client(api_key="")
    assert client._build_gateway_url("abc") == "https://gateway.thegraph.com/api/subgraphs/id/abc"


def test_build_gateway_url_keeps_full_url_unchanged():
    client = _make_client()
    full_url = "https://api.studio.thegraph.com/query/1/uniswap-v3/v0.0.1"
    assert client._build_gateway_url(full_url + "/") == full_url


def test_missing_subgraph_id_is_a_resolution_error():
    with pytest.raises(SubgraphResolutionError):
        _make_client(subgraph_id="  ")


def test_fetch_swaps_page_sends_cursor_and_exclusions(monkeypatch: pytest.MonkeyPatch):
    client = _make_client()
    calls = _script(client, monkeypatch, {"data": {"swaps": [_swap_row("0xabc#1", 1672531300)]}})

    page = client.fetch_swaps_page(
        pool_address="0x8AD599C3A0FF1DE082011EFDDC58F1908EB6E6D8",
        start_timestamp=1672531200,
        end_timestamp=1672617600,
        cursor_timestamp=1672531250,
        exclude_ids=("0xabc#0",),
        page_size=100,
    )

    assert calls[0]["query"] == SWAPS_QUERY
    assert calls[0]["url"].endswith("/api-key/subgraphs/id/subgraph-id")
    assert calls[0]["variables"] == {
        "pool": "0x8ad599c3a0ff1de082011efddc58f1908eb6e6d8",
        "cursor": 1672531250,
        "endTime": 1672617600,
        "excludeIds": ["0xabc#0"],
        "first": 100,
    }
    swaps = page.events
    assert len(swaps) == 1
    assert page.row_keys == (("0xabc#1", 1672531300),)
    assert swaps[0].id == "0xabc#1"
    assert swaps[0].timestamp == 1672531300
    assert swaps[0].sqrt_price_x96 == 1350174849792634181862360983626536
    assert swaps[0].token0 == "0xt0"


def test_swap_cursor_never_precedes_window_start(monkeypatch: pytest.MonkeyPatch):
    client = _make_client()
    calls = _script(client, monkeypatch, {"data": {"swaps": []}})

    client.fetch_swaps_page(
        pool_address="0xpool",
        start_timestamp=100,
        end_timestamp=200,
        cursor_timestamp=0,
        exclude_ids=(),
        page_size=10,
    )

    assert calls[0]["variables"]["cursor"] == 100


def test_fetch_mints_and_burns_pages_use_skip(monkeypatch: pytest.MonkeyPatch):
    client = _make_client()
    calls = _script(client, monkeypatch, {"data": {"mints": [_mint_row("m1", 10)], "burns": [_mint_row("b1", 11)]}})

    mints = client.fetch_mints_page(pool_address="0xPool", start_timestamp=1, end_timestamp=50, skip=200, page_size=100).events
    burns = client.fetch_burns_page(pool_address="0xPool", start_timestamp=1, end_timestamp=50, skip=0, page_size=100).events

    assert calls[0]["query"] == MINTS_QUERY
    assert calls[1]["query"] == BURNS_QUERY
    assert calls[0]["variables"] == {"pool": "0xpool", "startTime": 1, "endTime": 50, "skip": 200, "first": 100}
    assert mints[0].amount == 12345
    assert (mints[0].tick_lower, mints[0].tick_upper) == (-60, 60)
    assert burns[0].id == "b1"


def test_malformed_row_is_skipped(monkeypatch: pytest.MonkeyPatch, caplog: pytest.LogCaptureFixture):
    client = _make_client()
    broken = _mint_row("bad", 10)
    broken["tickLower"] = "100"
    _script(client, monkeypatch, {"data": {"mints": [broken, _mint_row("good", 11)]}})

    page = client.fetch_mints_page(pool_address="0xpool", start_timestamp=1, end_timestamp=50, skip=0, page_size=100)

    assert [mint.id for mint in page.events] == ["good"]
    assert page.row_count == 2
    assert page.skipped_rows == 1
    assert page.row_keys == (("bad", 10), ("good", 11))
    assert "skipped_row" in caplog.text


def test_missing_entity_field_is_a_request_error(monkeypatch: pytest.MonkeyPatch):
    client = _make_client()
    _script(client, monkeypatch, {"data": {}})

    with pytest.raises(SubgraphRequestError):
        client.fetch_burns_page(pool_address="0xpool", start_timestamp=1, end_timestamp=50, skip=0, page_size=100)


def test_post_graphql_returns_payload(monkeypatch: pytest.MonkeyPatch):
    seen: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(json.loads(request.content))
        return httpx.Response(200, json={"data": {"swaps": []}})

    _route(monkeypatch, handler)
    payload = _make_client()._post_graphql(url="https://example.test/graphql", query="{ swaps { id } }", variables={"first": 1})

    assert payload == {"data": {"swaps": []}}
    assert seen == [{"query": "{ swaps { id } }", "variables": {"first": 1}}]


def test_post_graphql_raises_on_graphql_errors(monkeypatch: pytest.MonkeyPatch):
    _route(
        monkeypatch,
        lambda request: httpx.Response(200, json={"errors": [{"message": "indexer behind"}, {"message": "bad"}]}),
    )

    with pytest.raises(SubgraphRequestError, match="indexer behind | bad"):
        _make_client()._post_graphql(url="https://example.test/graphql", query="{}", variables={})


def test_post_graphql_raises_on_http_status(monkeypatch: pytest.MonkeyPatch):
    _route(monkeypatch, lambda request: httpx.Response(502, text="bad gateway"))

    with pytest.raises(SubgraphRequestError):
        _make_client()._post_graphql(url="https://example.test/graphql", query="{}", variables={})


def test_post_graphql_raises_on_invalid_json(monkeypatch: pytest.MonkeyPatch):
    _route(monkeypatch, lambda request: httpx.Response(200, text="<html>"))

    with pytest.raises(SubgraphRequestError, match="not valid JSON"):
        _make_client()._post_graphql(url="https://example.test/graphql", query="{}", variables={})


def _serve_rows(monkeypatch: pytest.MonkeyPatch, entity: str, rows: list[dict]) -> list[dict]:
    requests: list[dict] = []

    def handler(request: httpx.Request) -> httpx.Response:
        variables = json.loads(request.content)["variables"]
        requests.append(variables)
        if "cursor" in variables:
            excluded = set(variables["excludeIds"])
            matching = [
                row
                for row in rows
                if variables["cursor"] <= int(row["timestamp"]) < variables["endTime"] and row["id"] not in excluded
            ]
            page = matching[: variables["first"]]
        else:
            page = rows[variables["skip"] : variables["skip"] + variables["first"]]
        return httpx.Response(200, json={"data": {entity: page}})

    _route(monkeypatch, handler)
    return requests


def _fetch_use_case(page_size: int) -> FetchPoolEventsUseCase:
    return FetchPoolEventsUseCase(
        events_port=_make_client(),
        settings=FetchEventsSettings(page_size=page_size, max_retries=1, retry_delay_ms=0, batch_delay_ms=0),
    )


def test_malformed_row_in_full_page_does_not_end_offset_stream(monkeypatch: pytest.MonkeyPatch):
    rows = [_mint_row(f"m{idx}", 10 + idx) for idx in range(6)]
    rows[0]["tickUpper"] = rows[0]["tickLower"]
    requests = _serve_rows(monkeypatch, "mints", rows)

    result = _fetch_use_case(page_size=2).fetch_mints(pool_address="0xpool", start_timestamp=0, end_timestamp=100)

    assert result.complete
    assert [mint.id for mint in result.events] == ["m1", "m2", "m3", "m4", "m5"]
    assert result.skipped_rows == 1
    assert [variables["skip"] for variables in requests] == [0, 2, 4, 6]


def test_malformed_swap_row_still_moves_the_cursor(monkeypatch: pytest.MonkeyPatch):
    rows = [_swap_row("s1", 10), _swap_row("s2", 20), _swap_row("s3", 20), _swap_row("s4", 30)]
    rows[0]["sqrtPriceX96"] = "not-a-number"
    requests = _serve_rows(monkeypatch, "swaps", rows)

    result = _fetch_use_case(page_size=2).fetch_swaps(pool_address="0xpool", start_timestamp=0, end_timestamp=100)

    assert result.complete
    assert [swap.id for swap in result.events] == ["s2", "s3", "s4"]
    assert result.skipped_rows == 1
    assert [(variables["cursor"], variables["excludeIds"]) for variables in requests] == [
        (0, []),
        (20, ["s2"]),
        (30, ["s4"]),
    ]
