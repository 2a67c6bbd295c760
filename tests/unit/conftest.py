"""Shared test fixtures."""

import json
import sqlite3
from datetime import date
from pathlib import Path
from typing import Any

import pytest

from fiscal_archive.core.database.connection import open_database
from fiscal_archive.core.importer.loader import import_records_file

TODAY = date(2025, 3, 10)

RECORDS: dict[str, Any] = {
    "suppliers": [
        {"id": "s1", "name": "Águas do Norte"},
        {"id": "s2", "name": "Papelaria Central"},
    ],
    "clients": [{"id": "c1", "name": "Cliente Alfa"}],
    "staff": [{"id": "st1", "name": "Maria Sousa"}],
    "document_types": [{"id": "dt-guia", "code": "GT", "name": "Guia de Transporte"}],
    "archives": [
        {"id": "a-2024", "description": "Exercício 2024", "code": "2024", "created_at": 1000},
        {"id": "a-2025", "description": "Exercício 2025", "code": "2025", "created_at": 2000},
        {
            "id": "a-compras",
            "description": "Compras",
            "code": "C25",
            "parent_id": "a-2025",
            "created_at": 3000,
        },
        {"id": "a-vendas", "description": "Vendas", "parent_id": "a-2025", "created_at": 4000},
        {
            "id": "a-q1",
            "description": "Primeiro trimestre",
            "parent_id": "a-compras",
            "created_at": 5000,
        },
    ],
    "general_documents": [
        {
            "id": "g-contrato",
            "description": "Contrato X",
            "issue_date": "2024-03-13",
            "expiry_date": "2025-03-13",
            "owner": {"type": "supplier", "id": "s1"},
        },
        {
            "id": "g-licenca",
            "description": "Licença de utilização",
            "expiry_date": "2025-03-09",
            "owner": {"type": "client", "id": "c1"},
            "archive_id": "a-compras",
        },
        {
            "id": "g-seguro",
            "description": "Seguro de acidentes",
            "expiry_date": "2025-06-30",
            "owner": {"type": "staff", "id": "st1"},
            "attachments": [{"title": "Apólice", "file_path": "/docs/apolice.pdf"}],
        },
        {"id": "g-declaracao", "description": "Declaração de início"},
    ],
    "invoices": [
        {
            "id": "i-ft1",
            "document_number": "FT 2025/1",
            "document_type_code": "FT",
            "date": "2025-02-01",
            "due_date": "2025-03-20",
            "supplier_id": "s2",
            "notes": "material de escritório",
        },
        {
            "id": "i-ft2",
            "document_number": "FT 2025/2",
            "type": "SALE",
            "document_type_code": "FT",
            "date": "2025-02-15",
            "due_date": "2025-05-01",
            "client_id": "c1",
            "archive_id": "a-vendas",
        },
        {
            "id": "i-gt1",
            "document_number": "GT 2025/7",
            "document_type_id": "dt-guia",
            "date": "2025-01-20",
            "due_date": "2025-03-01",
            "supplier_id": "s1",
        },
    ],
}


@pytest.fixture
def records_file(tmp_path: Path) -> Path:
    path = tmp_path / "records.json"
    path.write_text(json.dumps(RECORDS), encoding="utf-8")
    return path


@pytest.fixture
def empty_db() -> sqlite3.Connection:
    """Return an in-memory DB with the schema and seeded reference data only."""
    return open_database(":memory:")


@pytest.fixture
def populated_db(records_file: Path) -> sqlite3.Connection:
    """Return an in-memory DB with the sample records imported."""
    conn = open_database(":memory:")
    import_records_file(conn, records_file)
    return conn


@pytest.fixture
def today() -> date:
    """Reference day the sample deadlines are laid out around."""
    return TODAY
