"""
Tests du client REST (httpx) contre l'application FastAPI elle-même.
"""
import asyncio

import httpx
import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from quotedesk.main import app
from quotedesk.quotations.exceptions import StoreUnavailableException
from quotedesk.quotations.http_repository import HttpQuotationRepository


@pytest_asyncio.fixture
async def http_repository(test_client):
    """Repository HTTP branché sur l'app de test (stockage JSON isolé)."""
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test/api/v1") as client:
        yield HttpQuotationRepository(client=client, poll_interval=0.01)


def _failing_repository(handler) -> HttpQuotationRepository:
    client = AsyncClient(transport=httpx.MockTransport(handler), base_url="http://store/api/v1")
    return HttpQuotationRepository(client=client)


@pytest.mark.asyncio
async def test_upsert_creates_then_updates(http_repository, make_quotation):
    quotation = make_quotation().with_totals()

    created = await http_repository.upsert(owner_scope="default", quotation=quotation)
    assert created.id == quotation.id
    assert created.created_at == quotation.created_at

    updated = await http_repository.upsert(
        owner_scope="default", quotation=created.with_changes(client_name="Arun")
    )
    assert updated.client_name == "Arun"
    assert updated.created_at == quotation.created_at

    quotations = await http_repository.list_quotations(owner_scope="default")
    assert [q.id for q in quotations] == [quotation.id]


@pytest.mark.asyncio
async def test_get_missing_returns_none(http_repository):
    assert await http_repository.get_by_id(owner_scope="default", quotation_id="missing") is None


@pytest.mark.asyncio
async def test_owner_scope_header_partitions_collections(http_repository, make_quotation):
    quotation = make_quotation()
    await http_repository.upsert(owner_scope="team-a", quotation=quotation)

    assert await http_repository.list_quotations(owner_scope="team-b") == []
    fetched = await http_repository.get_by_id(owner_scope="team-a", quotation_id=quotation.id)
    assert fetched.client_name == "Priya Raman"


@pytest.mark.asyncio
async def test_delete_is_acknowledged_even_when_absent(http_repository, make_quotation):
    quotation = make_quotation()
    await http_repository.upsert(owner_scope="default", quotation=quotation)

    assert await http_repository.delete(owner_scope="default", quotation_id=quotation.id) is True
    assert await http_repository.delete(owner_scope="default", quotation_id=quotation.id) is True
    assert await http_repository.get_by_id(owner_scope="default", quotation_id=quotation.id) is None


@pytest.mark.asyncio
async def test_polling_subscription(http_repository, make_quotation):
    quotation = make_quotation()
    await http_repository.upsert(owner_scope="default", quotation=quotation)

    subscription = await http_repository.subscribe(owner_scope="default")
    snapshot = await asyncio.wait_for(subscription.next(), timeout=2)
    subscription.cancel()
    assert [q.id for q in snapshot.quotations] == [quotation.id]


@pytest.mark.asyncio
async def test_unreachable_server_raises_store_unavailable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    repository = _failing_repository(handler)
    with pytest.raises(StoreUnavailableException):
        await repository.list_quotations(owner_scope="default")


@pytest.mark.asyncio
@pytest.mark.parametrize("status_code", [401, 403, 500, 503])
async def test_server_errors_raise_store_unavailable(status_code):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(status_code, json={"detail": "nope"})

    repository = _failing_repository(handler)
    with pytest.raises(StoreUnavailableException) as exc_info:
        await repository.get_by_id(owner_scope="default", quotation_id="any")
    assert str(status_code) in exc_info.value.detail


@pytest.mark.asyncio
async def test_non_json_body_raises_store_unavailable(make_quotation):
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    repository = _failing_repository(handler)
    with pytest.raises(StoreUnavailableException):
        await repository.list_quotations(owner_scope="default")
    with pytest.raises(StoreUnavailableException):
        await repository.get_by_id(owner_scope="default", quotation_id="any")
    with pytest.raises(StoreUnavailableException):
        await repository.upsert(owner_scope="default", quotation=make_quotation())
    with pytest.raises(StoreUnavailableException):
        await repository.delete(owner_scope="default", quotation_id="any")


@pytest.mark.asyncio
async def test_polling_reports_unreadable_responses_as_errors():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html>proxy</html>")

    repository = _failing_repository(handler)
    repository.poll_interval = 0.01
    subscription = await repository.subscribe(owner_scope="default")
    snapshot = await asyncio.wait_for(subscription.next(), timeout=1)
    subscription.cancel()

    assert snapshot.is_error
    assert "illisible" in snapshot.error
