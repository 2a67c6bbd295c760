"""Document models: general documents and invoices behind one projection."""

from dataclasses import dataclass, field
from datetime import date
from typing import ClassVar, Literal

DocKind = Literal["general", "invoice"]
OwnerKind = Literal["supplier", "client", "staff"]

DOC_KINDS: tuple[str, ...] = ("general", "invoice")
OWNER_KINDS: tuple[str, ...] = ("supplier", "client", "staff")


@dataclass(frozen=True)
class OwnerRef:
    """The supplier, client or staff member a document belongs to."""

    kind: OwnerKind
    id: str
    name: str | None = None


@dataclass(frozen=True)
class Attachment:
    """A file attached to a general document (stored elsewhere, referenced by path)."""

    id: str
    title: str
    file_path: str


@dataclass(frozen=True)
class DocumentView:
    """Common projection shared by both document kinds."""

    id: str
    kind: DocKind
    label: str
    deadline_date: date | None
    owner_name: str | None
    archive_id: str | None


@dataclass(frozen=True)
class GeneralDocument:
    """A dated document such as a contract, licence or certificate."""

    kind: ClassVar[DocKind] = "general"

    id: str
    description: str
    issue_date: date | None = None
    expiry_date: date | None = None
    owner: OwnerRef | None = None
    archive_id: str | None = None
    attachments: tuple[Attachment, ...] = field(default_factory=tuple)

    @property
    def label(self) -> str:
        return self.description

    @property
    def deadline_date(self) -> date | None:
        return self.expiry_date

    def view(self) -> DocumentView:
        return DocumentView(
            id=self.id,
            kind=self.kind,
            label=self.label,
            deadline_date=self.deadline_date,
            owner_name=self.owner.name if self.owner else None,
            archive_id=self.archive_id,
        )


@dataclass(frozen=True)
class Invoice:
    """A commercial invoice, purchase or sale."""

    kind: ClassVar[DocKind] = "invoice"

    id: str
    document_number: str
    invoice_type: str = "PURCHASE"
    document_type_id: str | None = None
    document_type_code: str | None = None
    issue_date: date | None = None
    due_date: date | None = None
    owner: OwnerRef | None = None
    notes: str | None = None
    archive_id: str | None = None
    pdf_path: str | None = None

    @property
    def label(self) -> str:
        return f"{self.document_type_code or 'Fatura'}: {self.document_number}"

    @property
    def deadline_date(self) -> date | None:
        return self.due_date

    def view(self) -> DocumentView:
        return DocumentView(
            id=self.id,
            kind=self.kind,
            label=self.label,
            deadline_date=self.deadline_date,
            owner_name=self.owner.name if self.owner else None,
            archive_id=self.archive_id,
        )


Document = GeneralDocument | Invoice


@dataclass(frozen=True)
class DocumentType:
    """A fiscal document type (FT, FR, RC, NC...)."""

    id: str
    code: str
    name: str
