"""Parse a records JSON file into domain models."""

from collections import deque
from dataclasses import dataclass
from typing import Any

from fiscal_archive.core.documents.store import parse_date
from fiscal_archive.models.archive import ArchiveNode
from fiscal_archive.models.document import (
    OWNER_KINDS,
    Attachment,
    DocumentType,
    GeneralDocument,
    Invoice,
    OwnerRef,
)


@dataclass(frozen=True)
class ParsedRecords:
    """Everything read from one records file, archives ordered parents first."""

    owners: list[OwnerRef]
    document_types: list[DocumentType]
    archives: list[ArchiveNode]
    general_documents: list[GeneralDocument]
    invoices: list[Invoice]


def _parse_owners(data: dict[str, Any]) -> list[OwnerRef]:
    owners: list[OwnerRef] = []
    for kind, key in (("supplier", "suppliers"), ("client", "clients"), ("staff", "staff")):
        for raw in data.get(key, []):
            owners.append(OwnerRef(kind=kind, id=raw["id"], name=raw["name"]))  # type: ignore[arg-type]
    return owners


def _parse_archives(raw_archives: list[dict[str, Any]], created_at: int) -> list[ArchiveNode]:
    by_parent: dict[str | None, list[dict[str, Any]]] = {}
    ids = {a["id"] for a in raw_archives}
    for raw in raw_archives:
        parent_id = raw.get("parent_id")
        if parent_id is not None and parent_id not in ids:
            msg = f"Archive {raw['id']!r} references unknown parent {parent_id!r}"
            raise ValueError(msg)
        by_parent.setdefault(parent_id, []).append(raw)

    # BFS from the roots; anything not reached sits on a parent cycle.
    result: list[ArchiveNode] = []
    pending: deque[dict[str, Any]] = deque(by_parent.get(None, []))
    while pending:
        raw = pending.popleft()
        if not raw.get("description", "").strip():
            msg = f"Archive {raw['id']!r} has no description"
            raise ValueError(msg)
        result.append(
            ArchiveNode(
                id=raw["id"],
                description=raw["description"].strip(),
                created_at=raw.get("created_at", created_at),
                code=raw.get("code"),
                period=raw.get("period"),
                date=raw.get("date"),
                notes=raw.get("notes"),
                parent_id=raw.get("parent_id"),
            )
        )
        pending.extend(by_parent.get(raw["id"], []))

    if len(result) != len(raw_archives):
        reached = {a.id for a in result}
        msg = f"Archives on a parent cycle: {sorted(ids - reached)!r}"
        raise ValueError(msg)
    return result


def _parse_general(raw: dict[str, Any]) -> GeneralDocument:
    owner = None
    if raw_owner := raw.get("owner"):
        if raw_owner["type"] not in OWNER_KINDS:
            msg = f"Document {raw['id']!r} has unknown owner type {raw_owner['type']!r}"
            raise ValueError(msg)
        owner = OwnerRef(kind=raw_owner["type"], id=raw_owner["id"])
    return GeneralDocument(
        id=raw["id"],
        description=raw["description"],
        issue_date=parse_date(raw.get("issue_date")),
        expiry_date=parse_date(raw.get("expiry_date")),
        owner=owner,
        archive_id=raw.get("archive_id"),
        attachments=tuple(
            Attachment(id=a.get("id", f"{raw['id']}-{i}"), title=a["title"], file_path=a["file_path"])
            for i, a in enumerate(raw.get("attachments", []))
        ),
    )


def _parse_invoice(raw: dict[str, Any]) -> Invoice:
    supplier_id = raw.get("supplier_id")
    client_id = raw.get("client_id")
    if supplier_id and client_id:
        msg = f"Invoice {raw['id']!r} has both a supplier and a client"
        raise ValueError(msg)
    owner = None
    if supplier_id:
        owner = OwnerRef(kind="supplier", id=supplier_id)
    elif client_id:
        owner = OwnerRef(kind="client", id=client_id)
    return Invoice(
        id=raw["id"],
        document_number=raw["document_number"],
        invoice_type=raw.get("type", "PURCHASE"),
        document_type_id=raw.get("document_type_id"),
        document_type_code=raw.get("document_type_code"),
        issue_date=parse_date(raw.get("date")),
        due_date=parse_date(raw.get("due_date")),
        owner=owner,
        notes=raw.get("notes"),
        archive_id=raw.get("archive_id"),
        pdf_path=raw.get("pdf_path"),
    )


def parse_records(data: dict[str, Any], *, created_at: int) -> ParsedRecords:
    """Parse a records dict (as loaded from JSON).

    Args:
        data: Raw records with optional keys suppliers, clients, staff,
            document_types, archives, general_documents and invoices.
        created_at: Creation timestamp (epoch ms) for records lacking one.

    Raises:
        ValueError: Malformed dates, unknown owner types, an invoice with two
            owners, or archives whose parent chain does not reach a root.
    """
    return ParsedRecords(
        owners=_parse_owners(data),
        document_types=[
            DocumentType(id=t["id"], code=t["code"], name=t["name"])
            for t in data.get("document_types", [])
        ],
        archives=_parse_archives(data.get("archives", []), created_at),
        general_documents=[_parse_general(d) for d in data.get("general_documents", [])],
        invoices=[_parse_invoice(i) for i in data.get("invoices", [])],
    )
