from __future__ import annotations

import pytest
from aiohttp import web

from launch_webhooks.chain.horizon import HorizonEventClient
from launch_webhooks.core.exceptions import ChainEventSourceError

CONTRACT = "CFACTORY"


def _record(paging_token: str, name: str = "token_created") -> dict:
    return {
        "id": paging_token,
        "type": "contract",
        "ledger": 321,
        "ledger_close_time": "2024-01-01T00:00:00Z",
        "contract_id": CONTRACT,
        "paging_token": paging_token,
        "topic": [CONTRACT, name],
        "value": {"token_address": "CTOKEN"},
        "in_successful_contract_call": True,
        "transaction_hash": "tx",
        "unexpected": "ignored",
    }


async def _horizon(aiohttp_server, respond):
    seen: list[dict[str, str]] = []

    async def handler(request: web.Request) -> web.StreamResponse:
        seen.append(dict(request.rel_url.query))
        return respond(request)

    app = web.Application()
    app.router.add_get(f"/contracts/{CONTRACT}/events", handler)
    server = await aiohttp_server(app)
    return str(server.make_url("/")), seen


@pytest.mark.asyncio
async def test_fetch_events_parses_records_and_sends_paging_params(aiohttp_server, http_session):
    base, seen = await _horizon(
        aiohttp_server,
        lambda _r: web.json_response({"_embedded": {"records": [_record("1-1"), _record("1-2")]}}),
    )
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)

    events = await client.fetch_events("0-9", 100)

    assert [e.paging_token for e in events] == ["1-1", "1-2"]
    assert events[0].topic == [CONTRACT, "token_created"]
    assert events[0].ledger == 321
    assert seen == [{"limit": "100", "order": "asc", "cursor": "0-9"}]


@pytest.mark.asyncio
async def test_fetch_events_without_cursor_omits_it(aiohttp_server, http_session):
    base, seen = await _horizon(aiohttp_server, lambda _r: web.json_response({"_embedded": {"records": []}}))
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)

    assert await client.fetch_events(None, 10) == []
    assert "cursor" not in seen[0]


@pytest.mark.asyncio
async def test_missing_embedded_section_is_an_empty_page(aiohttp_server, http_session):
    base, _ = await _horizon(aiohttp_server, lambda _r: web.json_response({}))
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)
    assert await client.fetch_events(None, 10) == []


@pytest.mark.asyncio
async def test_non_200_raises_source_error(aiohttp_server, http_session):
    base, _ = await _horizon(aiohttp_server, lambda _r: web.Response(status=503, text="busy"))
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)

    with pytest.raises(ChainEventSourceError, match="HTTP 503"):
        await client.fetch_events(None, 10)


@pytest.mark.asyncio
async def test_malformed_body_raises_source_error(aiohttp_server, http_session):
    base, _ = await _horizon(aiohttp_server, lambda _r: web.Response(text="<html>", content_type="text/html"))
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)

    with pytest.raises(ChainEventSourceError):
        await client.fetch_events(None, 10)


@pytest.mark.asyncio
async def test_record_without_paging_token_raises_source_error(aiohttp_server, http_session):
    broken = _record("1-1")
    del broken["paging_token"]
    base, _ = await _horizon(aiohttp_server, lambda _r: web.json_response({"_embedded": {"records": [broken]}}))
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)

    with pytest.raises(ChainEventSourceError, match="Malformed"):
        await client.fetch_events(None, 10)


@pytest.mark.asyncio
async def test_unreachable_host_raises_source_error(http_session):
    client = HorizonEventClient(
        http_session, horizon_url="http://127.0.0.1:1", contract_id=CONTRACT, timeout_s=1.0
    )
    with pytest.raises(ChainEventSourceError):
        await client.fetch_events(None, 10)


@pytest.mark.asyncio
async def test_broken_record_becomes_placeholder_and_keeps_its_paging_token(
    aiohttp_server, http_session
):
    broken = _record("1-1")
    broken["transaction_hash"] = ["not", "a", "hash"]
    headless = _record("1-2")
    del headless["paging_token"]
    base, _ = await _horizon(
        aiohttp_server,
        lambda _r: web.json_response({"_embedded": {"records": [broken, headless, _record("1-3")]}}),
    )
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)

    events = await client.fetch_events(None, 10)

    assert [e.paging_token for e in events] == ["1-1", "1-3"]
    assert events[0].topic == []
    assert events[1].topic == [CONTRACT, "token_created"]


@pytest.mark.asyncio
async def test_lenient_topic_and_ledger(aiohttp_server, http_session):
    odd = _record("1-1")
    odd["topic"] = [CONTRACT, 5]
    odd["ledger"] = "not-a-number"
    base, _ = await _horizon(aiohttp_server, lambda _r: web.json_response({"_embedded": {"records": [odd]}}))
    client = HorizonEventClient(http_session, horizon_url=base, contract_id=CONTRACT)

    [event] = await client.fetch_events(None, 10)

    assert event.topic == [CONTRACT, "5"]
    assert event.ledger == 0
