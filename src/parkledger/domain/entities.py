"""Domain model entities for parkledger.

These are pure data classes representing business concepts, independent of
database schema. Services and the CLI only ever see these; the ORM models
stay behind the database layer.
"""

from dataclasses import dataclass, field, asdict
from datetime import datetime, date
from decimal import Decimal
from enum import Enum
from typing import Any, Optional, Union


class InvoiceType(str, Enum):
    """Kind of financial document."""

    INVOICE = "INVOICE"
    CREDIT_NOTE = "CREDIT_NOTE"


class InvoiceStatus(str, Enum):
    """Invoice lifecycle status. Transitions only move forward."""

    DRAFT = "DRAFT"
    SENT = "SENT"
    PAID = "PAID"
    CANCELLED = "CANCELLED"


class TaxType(str, Enum):
    """Tax category of a line; each maps to a tenant-configured percentage."""

    STANDARD = "STANDARD"
    REDUCED = "REDUCED"
    EXEMPT = "EXEMPT"


class CorrectionType(str, Enum):
    """How a correction document relates to the invoice it corrects."""

    PARTIAL_CANCEL = "PARTIAL_CANCEL"
    CORRECTION = "CORRECTION"
    FULL_CANCEL = "FULL_CANCEL"


class SkontoStatus(str, Enum):
    """Early-payment discount state of an invoice."""

    NONE = "NONE"
    ELIGIBLE = "ELIGIBLE"
    EXPIRED = "EXPIRED"
    APPLIED = "APPLIED"


@dataclass(frozen=True)
class TaxRateConfig:
    """Tenant-scoped tax percentage for one tax category."""

    tenant_id: str
    tax_type: TaxType
    rate: Decimal
    label: Optional[str] = None


# ---------------------------------------------------------------------------
# Correction audit records
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PartialCancelAudit:
    """Audit entry for one position of a partial cancellation."""

    original_index: int
    original_position: int
    original_description: str
    original_quantity: Decimal
    cancelled_quantity: Decimal


@dataclass(frozen=True)
class CorrectionAudit:
    """Audit entry for one corrected position (old and new values)."""

    original_index: int
    original_position: int
    original_description: str
    original_quantity: Decimal
    original_unit_price: Decimal
    original_tax_type: TaxType
    new_description: str
    new_quantity: Decimal
    new_unit_price: Decimal
    new_tax_type: TaxType


AuditEntry = Union[PartialCancelAudit, CorrectionAudit]


# ---------------------------------------------------------------------------
# Invoices
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class InvoiceItem:
    """Invoice line domain entity."""

    id: int
    invoice_id: int
    position: int
    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_type: TaxType
    tax_rate: Decimal
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal
    unit: Optional[str] = None
    plot_area_type: Optional[str] = None
    plot_id: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    datev_account: Optional[str] = None
    datev_counter_account: Optional[str] = None
    datev_cost_center: Optional[str] = None


@dataclass(frozen=True)
class InvoiceReference:
    """Backlink to the invoice a correction document corrects."""

    id: int
    invoice_number: str


@dataclass(frozen=True)
class Invoice:
    """Invoice or credit note domain entity, including its lines."""

    id: int
    tenant_id: str
    invoice_type: InvoiceType
    invoice_number: str
    invoice_date: date
    status: InvoiceStatus
    recipient_name: str
    net_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    gross_amount: Decimal
    created_at: datetime
    items: tuple[InvoiceItem, ...] = ()
    recipient_type: Optional[str] = None
    recipient_address: Optional[str] = None
    due_date: Optional[date] = None
    service_start_date: Optional[date] = None
    service_end_date: Optional[date] = None
    payment_reference: Optional[str] = None
    internal_reference: Optional[str] = None
    notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    created_by_id: Optional[str] = None
    fund_id: Optional[str] = None
    shareholder_id: Optional[str] = None
    lease_id: Optional[str] = None
    park_id: Optional[str] = None
    settlement_period_id: Optional[str] = None
    correction_of: Optional[int] = None
    correction_type: Optional[CorrectionType] = None
    corrected_positions: Optional[tuple[AuditEntry, ...]] = None
    cancelled_invoice_id: Optional[int] = None
    corrected_invoice: Optional[InvoiceReference] = None
    skonto_percent: Optional[Decimal] = None
    skonto_days: Optional[int] = None
    skonto_deadline: Optional[date] = None
    skonto_amount: Optional[Decimal] = None
    skonto_paid: bool = False


@dataclass(frozen=True)
class InvoiceItemDraft:
    """Fully computed line, ready to be persisted."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_type: TaxType
    tax_rate: Decimal
    net_amount: Decimal
    tax_amount: Decimal
    gross_amount: Decimal
    unit: Optional[str] = None
    plot_area_type: Optional[str] = None
    plot_id: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    datev_account: Optional[str] = None
    datev_counter_account: Optional[str] = None
    datev_cost_center: Optional[str] = None


@dataclass(frozen=True)
class InvoiceDraft:
    """Header of an invoice that has not been persisted yet.

    Line positions are assigned 1-based in list order on persist.
    """

    tenant_id: str
    invoice_type: InvoiceType
    invoice_number: str
    invoice_date: date
    status: InvoiceStatus
    recipient_name: str
    net_amount: Decimal
    tax_rate: Decimal
    tax_amount: Decimal
    gross_amount: Decimal
    items: tuple[InvoiceItemDraft, ...]
    recipient_type: Optional[str] = None
    recipient_address: Optional[str] = None
    due_date: Optional[date] = None
    service_start_date: Optional[date] = None
    service_end_date: Optional[date] = None
    payment_reference: Optional[str] = None
    internal_reference: Optional[str] = None
    notes: Optional[str] = None
    sent_at: Optional[datetime] = None
    created_by_id: Optional[str] = None
    fund_id: Optional[str] = None
    shareholder_id: Optional[str] = None
    lease_id: Optional[str] = None
    park_id: Optional[str] = None
    settlement_period_id: Optional[str] = None
    correction_of: Optional[int] = None
    correction_type: Optional[CorrectionType] = None
    corrected_positions: Optional[tuple[AuditEntry, ...]] = None
    cancelled_invoice_id: Optional[int] = None
    skonto_percent: Optional[Decimal] = None
    skonto_days: Optional[int] = None


@dataclass(frozen=True)
class InvoiceLineInput:
    """Caller-supplied line for routine billing; amounts are computed."""

    description: str
    quantity: Decimal
    unit_price: Decimal
    tax_type: TaxType = TaxType.STANDARD
    unit: Optional[str] = None
    plot_area_type: Optional[str] = None
    plot_id: Optional[str] = None
    reference_type: Optional[str] = None
    reference_id: Optional[str] = None
    datev_account: Optional[str] = None
    datev_counter_account: Optional[str] = None
    datev_cost_center: Optional[str] = None


# ---------------------------------------------------------------------------
# Correction requests and results
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class PartialCancelPosition:
    """Position to cancel; ``cancel_quantity=None`` cancels the full quantity."""

    original_index: int
    cancel_quantity: Optional[Decimal] = None


@dataclass(frozen=True)
class CorrectedPosition:
    """Replacement values for one position; ``None`` keeps the original value."""

    original_index: int
    new_description: Optional[str] = None
    new_quantity: Optional[Decimal] = None
    new_unit_price: Optional[Decimal] = None
    new_tax_type: Optional[TaxType] = None


@dataclass(frozen=True)
class CorrectionResult:
    """Credit note and replacement invoice produced by a full correction."""

    credit_note: Invoice
    correction_invoice: Invoice


@dataclass(frozen=True)
class CorrectionHistoryEntry:
    """One document that corrects (or cancels) an invoice."""

    id: int
    invoice_number: str
    invoice_date: date
    correction_type: CorrectionType
    net_amount: Decimal
    gross_amount: Decimal
    reason: Optional[str]
    corrected_positions: Optional[tuple[AuditEntry, ...]]
    created_at: datetime


@dataclass(frozen=True)
class OriginalInvoiceSummary:
    """Header figures of the corrected invoice."""

    id: int
    invoice_number: str
    net_amount: Decimal
    gross_amount: Decimal
    status: InvoiceStatus


@dataclass(frozen=True)
class CorrectionNetEffect:
    """Cumulative financial effect of all corrections."""

    original_net: Decimal
    original_gross: Decimal
    total_correction_net: Decimal
    total_correction_gross: Decimal
    effective_net: Decimal
    effective_gross: Decimal


@dataclass(frozen=True)
class CorrectionHistory:
    """Correction graph of one invoice with its net effect."""

    original_invoice: OriginalInvoiceSummary
    corrections: tuple[CorrectionHistoryEntry, ...]
    net_effect: CorrectionNetEffect

    def to_dict(self) -> dict[str, Any]:
        """Return a JSON-serializable representation.

        Decimals are rendered as strings so cent values survive unchanged.
        """
        return _to_jsonable(asdict(self))


def _to_jsonable(value: Any) -> Any:
    if isinstance(value, dict):
        return {key: _to_jsonable(val) for key, val in value.items()}
    if isinstance(value, (list, tuple)):
        return [_to_jsonable(val) for val in value]
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    return value


# ---------------------------------------------------------------------------
# Shapefile import
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Centroid:
    """Vertex-average centroid in WGS84 degrees."""

    lat: float
    lng: float


@dataclass(frozen=True)
class ParsedShpFeature:
    """One geometry plus attributes from a shapefile layer."""

    id: int
    geometry: dict[str, Any]
    properties: dict[str, Any]
    centroid: Centroid
    area_sqm: Optional[float]


@dataclass(frozen=True)
class ShpParseResult:
    """Output of the shapefile pipeline."""

    features: tuple[ParsedShpFeature, ...]
    fields: tuple[str, ...]
    crs: Optional[str]
    warnings: tuple[str, ...]


@dataclass(frozen=True)
class MappableField:
    """Semantic field a shapefile attribute can be mapped onto."""

    key: str
    label: str
    required: bool


@dataclass(frozen=True)
class MappedPlotData:
    """Cadastral plot attributes extracted through a field mapping."""

    cadastral_district: str
    field_number: str
    plot_number: str
    area_sqm: Optional[float]
    county: Optional[str]
    municipality: Optional[str]
    usage_type: Optional[str]


@dataclass(frozen=True)
class MappedOwnerData:
    """Owner attributes extracted through a field mapping."""

    name: Optional[str]
    first_name: Optional[str]
    last_name: Optional[str]
    street: Optional[str]
    house_number: Optional[str]
    postal_code: Optional[str]
    city: Optional[str]
    is_multi_owner: bool
    owner_count: Optional[float]


@dataclass(frozen=True)
class ImportedParcel:
    """Mapped plot and owner data for one parsed feature."""

    feature_id: int
    plot: MappedPlotData
    owner: MappedOwnerData
    centroid: Centroid
    computed_area_sqm: Optional[float]


@dataclass(frozen=True)
class ShapefileImportResult:
    """Parcels produced from one uploaded shapefile ZIP."""

    parcels: tuple[ImportedParcel, ...]
    fields: tuple[str, ...]
    crs: Optional[str]
    warnings: tuple[str, ...]
    plot_mapping: dict[str, Optional[str]] = field(default_factory=dict)
    owner_mapping: dict[str, Optional[str]] = field(default_factory=dict)
