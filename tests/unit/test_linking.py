"""Tests for document lookup, the unlinked-pool search and folder links."""

import sqlite3

import pytest

from fiscal_archive.core.documents.linking import (
    link_document,
    list_linked,
    search_unlinked,
    unlink_document,
)
from fiscal_archive.core.documents.store import get_document, list_dated_documents
from fiscal_archive.errors import NotFoundError, StorageError, ValidationError
from fiscal_archive.models.document import GeneralDocument, Invoice


def _ids(views) -> list[str]:
    return [v.id for v in views]


def test_get_general_document_with_owner_and_attachments(populated_db: sqlite3.Connection) -> None:
    doc = get_document(populated_db, "general", "g-seguro")
    assert isinstance(doc, GeneralDocument)
    assert doc.owner is not None
    assert (doc.owner.kind, doc.owner.name) == ("staff", "Maria Sousa")
    assert [(a.title, a.file_path) for a in doc.attachments] == [("Apólice", "/docs/apolice.pdf")]


def test_get_invoice_resolves_type_code_and_owner(populated_db: sqlite3.Connection) -> None:
    doc = get_document(populated_db, "invoice", "i-ft1")
    assert isinstance(doc, Invoice)
    assert doc.document_type_code == "FT"
    assert doc.label == "FT: FT 2025/1"
    assert doc.owner is not None
    assert (doc.owner.kind, doc.owner.name) == ("supplier", "Papelaria Central")


def test_get_document_errors(populated_db: sqlite3.Connection) -> None:
    with pytest.raises(ValidationError):
        get_document(populated_db, "receipt", "g-seguro")
    with pytest.raises(NotFoundError):
        get_document(populated_db, "invoice", "g-seguro")


def test_get_document_with_unreadable_date(populated_db: sqlite3.Connection) -> None:
    populated_db.execute("UPDATE invoices SET due_date = 'soon' WHERE id = 'i-ft1'")
    populated_db.commit()
    with pytest.raises(StorageError):
        get_document(populated_db, "invoice", "i-ft1")


def test_list_dated_documents_skips_unreadable_rows(populated_db: sqlite3.Connection) -> None:
    populated_db.execute("UPDATE invoices SET due_date = 'soon' WHERE id = 'i-ft1'")
    populated_db.commit()
    ids = {d.id for d in list_dated_documents(populated_db)}
    assert "i-ft1" not in ids
    assert {"g-contrato", "i-gt1"} <= ids


def test_search_without_filters_lists_unlinked_general_then_invoices(
    populated_db: sqlite3.Connection,
) -> None:
    results = search_unlinked(populated_db)
    assert _ids(results) == ["g-declaracao", "g-seguro", "g-contrato", "i-gt1", "i-ft1"]
    assert all(r.archive_id is None for r in results)


def test_search_matches_owner_name_case_and_accent_insensitively(
    populated_db: sqlite3.Connection,
) -> None:
    assert _ids(search_unlinked(populated_db, query="ÁGUAS")) == ["g-contrato", "i-gt1"]


def test_search_matches_invoice_number_and_notes(populated_db: sqlite3.Connection) -> None:
    assert _ids(search_unlinked(populated_db, query="2025/7")) == ["i-gt1"]
    assert _ids(search_unlinked(populated_db, query="escritório")) == ["i-ft1"]


def test_search_treats_wildcards_literally(populated_db: sqlite3.Connection) -> None:
    assert search_unlinked(populated_db, query="%") == []
    assert search_unlinked(populated_db, query="_") == []


def test_search_by_document_type(populated_db: sqlite3.Connection) -> None:
    assert _ids(search_unlinked(populated_db, doc_type="invoice")) == ["i-gt1", "i-ft1"]
    assert all(r.kind == "general" for r in search_unlinked(populated_db, doc_type="general"))


def test_search_by_entity_type(populated_db: sqlite3.Connection) -> None:
    assert _ids(search_unlinked(populated_db, entity_type="supplier")) == [
        "g-contrato",
        "i-gt1",
        "i-ft1",
    ]
    assert _ids(search_unlinked(populated_db, entity_type="client")) == []
    # Invoices never belong to staff.
    assert _ids(search_unlinked(populated_db, entity_type="staff")) == ["g-seguro"]


def test_search_rejects_unknown_filters(populated_db: sqlite3.Connection) -> None:
    with pytest.raises(ValidationError):
        search_unlinked(populated_db, doc_type="folder")
    with pytest.raises(ValidationError):
        search_unlinked(populated_db, entity_type="partner")


def test_search_respects_per_kind_limit(populated_db: sqlite3.Connection) -> None:
    assert _ids(search_unlinked(populated_db, limit=1)) == ["g-declaracao", "i-gt1"]


def test_search_caps_each_kind_at_fifty_by_default(empty_db: sqlite3.Connection) -> None:
    empty_db.executemany(
        "INSERT INTO general_documents (id, description, created_at) VALUES (?, ?, ?)",
        [(f"g-{n:02d}", f"Documento {n}", n) for n in range(51)],
    )
    empty_db.executemany(
        "INSERT INTO invoices (id, document_number, created_at) VALUES (?, ?, ?)",
        [(f"i-{n:02d}", f"FT {n}", n) for n in range(51)],
    )
    empty_db.commit()

    ids = _ids(search_unlinked(empty_db))
    assert len(ids) == 100
    assert ids[0] == "g-50"
    assert ids[50] == "i-50"
    assert "g-00" not in ids
    assert "i-00" not in ids


def test_link_then_unlink_restores_folder_contents(populated_db: sqlite3.Connection) -> None:
    before = list_linked(populated_db, "a-compras")

    view = link_document(populated_db, doc_type="invoice", doc_id="i-ft1", archive_id="a-compras")
    assert view.archive_id == "a-compras"
    assert _ids(list_linked(populated_db, "a-compras")) == ["g-licenca", "i-ft1"]
    assert "i-ft1" not in _ids(search_unlinked(populated_db))

    view = unlink_document(populated_db, doc_type="invoice", doc_id="i-ft1")
    assert view.archive_id is None
    assert list_linked(populated_db, "a-compras") == before
    assert "i-ft1" in _ids(search_unlinked(populated_db))


def test_link_moves_document_between_folders(populated_db: sqlite3.Connection) -> None:
    link_document(populated_db, doc_type="general", doc_id="g-licenca", archive_id="a-q1")
    assert _ids(list_linked(populated_db, "a-q1")) == ["g-licenca"]
    assert list_linked(populated_db, "a-compras") == []


def test_link_is_idempotent(populated_db: sqlite3.Connection) -> None:
    first = link_document(populated_db, doc_type="general", doc_id="g-licenca", archive_id="a-compras")
    assert first.archive_id == "a-compras"
    assert _ids(list_linked(populated_db, "a-compras")) == ["g-licenca"]


def test_unlink_of_unfiled_document_is_noop(populated_db: sqlite3.Connection) -> None:
    view = unlink_document(populated_db, doc_type="general", doc_id="g-contrato")
    assert view.archive_id is None


def test_link_errors(populated_db: sqlite3.Connection) -> None:
    with pytest.raises(NotFoundError):
        link_document(populated_db, doc_type="general", doc_id="g-contrato", archive_id="nope")
    with pytest.raises(NotFoundError):
        link_document(populated_db, doc_type="general", doc_id="nope", archive_id="a-q1")
    with pytest.raises(ValidationError):
        link_document(populated_db, doc_type="folder", doc_id="g-contrato", archive_id="a-q1")
    assert get_document(populated_db, "general", "g-contrato").archive_id is None
