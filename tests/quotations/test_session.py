"""
Tests de la session d'édition (sauvegarde, suppression, écriture en vol).
"""
import asyncio
from decimal import Decimal

import pytest

from quotedesk.quotations.editor import QuotationEditor
from quotedesk.quotations.exceptions import (
    EditorClosedException,
    QuotationSaveInProgressException,
    StoreUnavailableException,
)
from quotedesk.quotations.session import EditorSession


class GatedService:
    """Service simulé dont les écritures attendent un feu vert."""

    def __init__(self, fail: bool = False):
        self.gate = asyncio.Event()
        self.fail = fail
        self.saved = []

    async def save_quotation(self, owner_scope, quotation):
        await self.gate.wait()
        if self.fail:
            raise StoreUnavailableException("save", "offline")
        stored = quotation.with_changes(date_issued="31/12/2024")
        self.saved.append(stored)
        return stored

    async def delete_quotation(self, owner_scope, quotation_id):
        await self.gate.wait()
        return True


@pytest.mark.asyncio
async def test_save_persists_and_adopts_stored_version(quotation_service, make_quotation):
    editor = QuotationEditor(make_quotation())
    session = EditorSession(editor, quotation_service, "default")

    saved = await session.save()

    assert saved.grand_total == Decimal("285.59")
    assert editor.draft == saved
    stored = await quotation_service.get_quotation("default", saved.id)
    assert stored.grand_total == Decimal("285.59")


@pytest.mark.asyncio
async def test_second_save_while_pending_is_rejected(make_quotation):
    service = GatedService()
    session = EditorSession(QuotationEditor(make_quotation()), service, "default")

    first = asyncio.create_task(session.save())
    await asyncio.sleep(0)
    assert session.is_pending
    with pytest.raises(QuotationSaveInProgressException):
        await session.save()
    with pytest.raises(QuotationSaveInProgressException):
        await session.delete()

    service.gate.set()
    await first
    assert not session.is_pending
    assert len(service.saved) == 1


@pytest.mark.asyncio
async def test_edits_during_save_are_kept(make_quotation):
    service = GatedService()
    editor = QuotationEditor(make_quotation())
    session = EditorSession(editor, service, "default")

    pending = asyncio.create_task(session.save())
    await asyncio.sleep(0)
    editor.set_field("clientName", "Changed while saving")
    service.gate.set()
    await pending

    assert editor.draft.client_name == "Changed while saving"
    assert editor.draft.date_issued == "31/12/2024"


@pytest.mark.asyncio
async def test_failed_save_leaves_draft_untouched(make_quotation):
    service = GatedService(fail=True)
    service.gate.set()
    editor = QuotationEditor(make_quotation())
    before = editor.draft
    session = EditorSession(editor, service, "default")

    with pytest.raises(StoreUnavailableException):
        await session.save()
    assert editor.draft == before
    assert not session.is_pending


@pytest.mark.asyncio
async def test_delete_closes_editor(quotation_service, make_quotation):
    editor = QuotationEditor(make_quotation())
    session = EditorSession(editor, quotation_service, "default")
    saved = await session.save()

    assert await session.delete() is True
    assert editor.closed
    assert await quotation_service.list_quotations("default") == []
    with pytest.raises(EditorClosedException):
        await session.save()
    with pytest.raises(EditorClosedException):
        await session.delete()
    with pytest.raises(EditorClosedException):
        editor.set_field("notes", "too late")
    assert saved.id == editor.draft.id
