"""SQLAlchemy models for parkledger database."""

from datetime import datetime, UTC
from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    DateTime,
    Date,
    Numeric,
    Boolean,
    JSON,
    Text,
    UniqueConstraint,
    create_engine,
)
from sqlalchemy.orm import declarative_base, relationship, sessionmaker, Session

Base = declarative_base()


class TaxRateConfig(Base):
    """Tenant-configured tax percentage per tax category."""

    __tablename__ = "tax_rate_configs"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False)
    tax_type = Column(String, nullable=False)
    rate = Column(Numeric(5, 2), nullable=False)
    label = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    __table_args__ = (UniqueConstraint("tenant_id", "tax_type", name="uq_tenant_tax_type"),)


class InvoiceNumberSequence(Base):
    """Per tenant, type and year counter for sequential invoice numbers."""

    __tablename__ = "invoice_number_sequences"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False)
    invoice_type = Column(String, nullable=False)
    year = Column(Integer, nullable=False)
    last_number = Column(Integer, default=0, nullable=False)

    __table_args__ = (
        UniqueConstraint("tenant_id", "invoice_type", "year", name="uq_tenant_type_year"),
    )


class Invoice(Base):
    """Invoice or credit note model."""

    __tablename__ = "invoices"

    id = Column(Integer, primary_key=True)
    tenant_id = Column(String, nullable=False, index=True)
    invoice_type = Column(String, nullable=False)
    invoice_number = Column(String, nullable=False)
    invoice_date = Column(Date, nullable=False)
    due_date = Column(Date, nullable=True)
    status = Column(String, nullable=False)

    # Recipient snapshot, immutable after creation
    recipient_type = Column(String, nullable=True)
    recipient_name = Column(String, nullable=False)
    recipient_address = Column(Text, nullable=True)

    service_start_date = Column(Date, nullable=True)
    service_end_date = Column(Date, nullable=True)
    payment_reference = Column(String, nullable=True)
    internal_reference = Column(String, nullable=True)
    notes = Column(Text, nullable=True)

    net_amount = Column(Numeric(12, 2), nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False)
    gross_amount = Column(Numeric(12, 2), nullable=False)

    sent_at = Column(DateTime, nullable=True)
    paid_at = Column(DateTime, nullable=True)
    created_by_id = Column(String, nullable=True)
    created_at = Column(DateTime, default=lambda: datetime.now(UTC), nullable=False)

    # Pass-through references owned by other modules
    fund_id = Column(String, nullable=True)
    shareholder_id = Column(String, nullable=True)
    lease_id = Column(String, nullable=True)
    park_id = Column(String, nullable=True)
    settlement_period_id = Column(String, nullable=True)

    # Correction linkage
    correction_of = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)
    correction_type = Column(String, nullable=True)
    corrected_positions = Column(JSON, nullable=True)
    cancelled_invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=True, index=True)

    # Skonto (early payment discount)
    skonto_percent = Column(Numeric(5, 2), nullable=True)
    skonto_days = Column(Integer, nullable=True)
    skonto_deadline = Column(Date, nullable=True)
    skonto_amount = Column(Numeric(12, 2), nullable=True)
    skonto_paid = Column(Boolean, default=False, nullable=False)

    __table_args__ = (
        UniqueConstraint(
            "tenant_id", "invoice_type", "invoice_number", name="uq_tenant_type_number"
        ),
    )

    # Relationships
    items = relationship(
        "InvoiceItem",
        back_populates="invoice",
        cascade="all, delete-orphan",
        order_by="InvoiceItem.position",
    )
    corrected_invoice = relationship(
        "Invoice", remote_side=[id], foreign_keys=[correction_of]
    )


class InvoiceItem(Base):
    """Invoice line model."""

    __tablename__ = "invoice_items"

    id = Column(Integer, primary_key=True)
    invoice_id = Column(Integer, ForeignKey("invoices.id"), nullable=False)
    position = Column(Integer, nullable=False)
    description = Column(String, nullable=False)
    quantity = Column(Numeric(12, 4), nullable=False)
    unit = Column(String, nullable=True)
    unit_price = Column(Numeric(12, 4), nullable=False)
    tax_type = Column(String, nullable=False)
    tax_rate = Column(Numeric(5, 2), nullable=False)
    net_amount = Column(Numeric(12, 2), nullable=False)
    tax_amount = Column(Numeric(12, 2), nullable=False)
    gross_amount = Column(Numeric(12, 2), nullable=False)

    plot_area_type = Column(String, nullable=True)
    plot_id = Column(String, nullable=True)
    reference_type = Column(String, nullable=True)
    reference_id = Column(String, nullable=True)
    datev_account = Column(String, nullable=True)
    datev_counter_account = Column(String, nullable=True)
    datev_cost_center = Column(String, nullable=True)

    __table_args__ = (UniqueConstraint("invoice_id", "position", name="uq_invoice_position"),)

    # Relationships
    invoice = relationship("Invoice", back_populates="items")


def create_session_factory(database_url: str) -> sessionmaker[Session]:
    """Create a SQLAlchemy session factory."""
    engine = create_engine(database_url, echo=False)
    Base.metadata.create_all(engine)
    return sessionmaker(bind=engine)
