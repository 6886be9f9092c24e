"""
Tests des endpoints /api/v1/drafts (édition de brouillon côté serveur).
"""
import pytest
from httpx import AsyncClient

QUOTATIONS_URL = "/api/v1/quotations"
DRAFTS_URL = "/api/v1/drafts"


async def _open_draft(client: AsyncClient, **body) -> dict:
    response = await client.post(DRAFTS_URL, json=body or None)
    assert response.status_code == 201
    return response.json()


@pytest.mark.asyncio
async def test_open_new_draft_is_not_persisted(test_client: AsyncClient):
    data = await _open_draft(test_client)

    assert data["revision"] == 0
    assert data["pending"] is False
    assert data["draft"]["quotationNumber"].endswith("-0001")
    assert data["draft"]["status"] == "Draft"
    assert len(data["draft"]["items"]) == 1
    assert data["totals"] == {"subtotal": 0.0, "taxAmount": 0.0, "grandTotal": 0.0}

    assert (await test_client.get(QUOTATIONS_URL)).json() == []


@pytest.mark.asyncio
async def test_edit_items_and_header(test_client: AsyncClient):
    data = await _open_draft(test_client)
    draft_id = data["draft"]["id"]
    first_item = data["draft"]["items"][0]["id"]

    response = await test_client.patch(f"{DRAFTS_URL}/{draft_id}", json={"field": "clientName", "value": "Meena Events"})
    assert response.json()["draft"]["clientName"] == "Meena Events"

    response = await test_client.post(f"{DRAFTS_URL}/{draft_id}/items")
    assert response.status_code == 201
    assert len(response.json()["draft"]["items"]) == 2

    await test_client.patch(f"{DRAFTS_URL}/{draft_id}/items/{first_item}", json={"field": "qty", "value": 3})
    response = await test_client.patch(
        f"{DRAFTS_URL}/{draft_id}/items/{first_item}", json={"field": "unitPrice", "value": "0.335"}
    )
    data = response.json()
    item = data["draft"]["items"][0]
    assert item["unitPrice"] == 0.34
    assert item["amount"] == 1.02
    assert data["totals"] == {"subtotal": 1.02, "taxAmount": 0.18, "grandTotal": 1.2}
    assert data["revision"] == 4


@pytest.mark.asyncio
async def test_invalid_numeric_entry_becomes_zero(test_client: AsyncClient):
    draft_id = (await _open_draft(test_client))["draft"]["id"]

    response = await test_client.patch(f"{DRAFTS_URL}/{draft_id}", json={"field": "taxRate", "value": "abc"})
    assert response.status_code == 200
    assert response.json()["draft"]["taxRate"] == 0.0


@pytest.mark.asyncio
async def test_last_item_is_kept(test_client: AsyncClient):
    data = await _open_draft(test_client)
    draft_id = data["draft"]["id"]
    only_item = data["draft"]["items"][0]["id"]

    response = await test_client.delete(f"{DRAFTS_URL}/{draft_id}/items/{only_item}")
    assert response.status_code == 200
    assert [i["id"] for i in response.json()["draft"]["items"]] == [only_item]


@pytest.mark.asyncio
async def test_invalid_field_and_status_return_400(test_client: AsyncClient):
    draft_id = (await _open_draft(test_client))["draft"]["id"]

    response = await test_client.patch(f"{DRAFTS_URL}/{draft_id}", json={"field": "grandTotal", "value": 1})
    assert response.status_code == 400

    response = await test_client.patch(f"{DRAFTS_URL}/{draft_id}", json={"field": "status", "value": "Rejected"})
    assert response.status_code == 400
    assert "Rejected" in response.json()["detail"]


@pytest.mark.asyncio
async def test_unknown_draft_returns_404(test_client: AsyncClient):
    assert (await test_client.get(f"{DRAFTS_URL}/missing")).status_code == 404
    assert (await test_client.post(f"{DRAFTS_URL}/missing/save")).status_code == 404
    assert (await test_client.post(DRAFTS_URL, json={"quotationId": "missing"})).status_code == 404


@pytest.mark.asyncio
async def test_save_persists_and_keeps_the_draft_open(test_client: AsyncClient):
    draft_id = (await _open_draft(test_client))["draft"]["id"]
    await test_client.patch(f"{DRAFTS_URL}/{draft_id}", json={"field": "clientName", "value": "Priya"})
    await test_client.patch(f"{DRAFTS_URL}/{draft_id}", json={"field": "status", "value": "Pending"})

    response = await test_client.post(f"{DRAFTS_URL}/{draft_id}/save")
    assert response.status_code == 200
    saved = response.json()["draft"]
    assert saved["dateIssued"]
    assert saved["createdAt"] is not None

    stored = (await test_client.get(f"{QUOTATIONS_URL}/{draft_id}")).json()
    assert stored["clientName"] == "Priya"
    assert stored["status"] == "Pending"
    assert stored["grandTotal"] == 0.0

    assert (await test_client.get(f"{DRAFTS_URL}/{draft_id}")).status_code == 200


@pytest.mark.asyncio
async def test_open_existing_quotation(test_client: AsyncClient):
    created = (await test_client.post(QUOTATIONS_URL, json={"clientName": "Arun"})).json()

    data = await _open_draft(test_client, quotationId=created["id"])
    assert data["draft"]["id"] == created["id"]
    assert data["draft"]["clientName"] == "Arun"


@pytest.mark.asyncio
async def test_discard_keeps_the_stored_quotation(test_client: AsyncClient):
    created = (await test_client.post(QUOTATIONS_URL, json={"clientName": "Arun"})).json()
    await _open_draft(test_client, quotationId=created["id"])

    response = await test_client.delete(f"{DRAFTS_URL}/{created['id']}")
    assert response.json() == {"success": True}
    assert (await test_client.get(f"{DRAFTS_URL}/{created['id']}")).status_code == 404
    assert (await test_client.get(f"{QUOTATIONS_URL}/{created['id']}")).status_code == 200


@pytest.mark.asyncio
async def test_delete_quotation_closes_the_draft(test_client: AsyncClient):
    created = (await test_client.post(QUOTATIONS_URL, json={"clientName": "Arun"})).json()
    await _open_draft(test_client, quotationId=created["id"])

    response = await test_client.delete(f"{DRAFTS_URL}/{created['id']}", params={"delete_quotation": True})
    assert response.status_code == 200
    assert (await test_client.get(f"{QUOTATIONS_URL}/{created['id']}")).status_code == 404
    assert (await test_client.get(f"{DRAFTS_URL}/{created['id']}")).status_code == 404
