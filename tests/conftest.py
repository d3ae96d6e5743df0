"""Shared pytest fixtures for parkledger tests."""

import io
import os
import tempfile
import zipfile
from datetime import date
from decimal import Decimal

import pytest
import shapefile

from parkledger.database.factories import create_sqlite_database
from parkledger.domain.entities import InvoiceLineInput, TaxType
from parkledger.domain.invoice import InvoiceService
from parkledger.domain.invoice_correction import InvoiceCorrectionService
from parkledger.domain.tax_rates import TaxRateService

TENANT = "tenant-a"
OTHER_TENANT = "tenant-b"
USER = "user-1"


@pytest.fixture
def temp_db():
    """Create a temporary database for testing."""
    # Create a temporary file for the database
    fd, db_path = tempfile.mkstemp(suffix=".db")
    os.close(fd)

    # Create database
    db = create_sqlite_database(database_path=db_path)
    db.connect()
    db.initialize_schema()

    yield db

    # Cleanup
    db.disconnect()
    if os.path.exists(db_path):
        os.unlink(db_path)


@pytest.fixture
def tax_rate_service(temp_db):
    """Create a TaxRateService with a temporary database."""
    return TaxRateService(temp_db)


@pytest.fixture
def invoice_service(temp_db):
    """Create an InvoiceService with a temporary database."""
    return InvoiceService(temp_db)


@pytest.fixture
def correction_service(temp_db):
    """Create an InvoiceCorrectionService with a temporary database."""
    return InvoiceCorrectionService(temp_db)


SAMPLE_LINES = [
    # net 1200.00, tax 228.00, gross 1428.00
    InvoiceLineInput(
        description="Grundpacht 2024",
        quantity=Decimal("1"),
        unit_price=Decimal("1200.00"),
        tax_type=TaxType.STANDARD,
        plot_id="plot-12",
        datev_account="8400",
    ),
    # net 300.00, tax 21.00, gross 321.00
    InvoiceLineInput(
        description="Wegenutzung",
        quantity=Decimal("2"),
        unit_price=Decimal("150.00"),
        tax_type=TaxType.REDUCED,
    ),
    # net 500.00, tax 95.00, gross 595.00
    InvoiceLineInput(
        description="Wartung Zuwegung",
        quantity=Decimal("10"),
        unit_price=Decimal("50.00"),
        tax_type=TaxType.STANDARD,
        unit="Std",
        datev_cost_center="WP-NORD",
    ),
]


def create_sample_invoice(invoice_service, tenant_id=TENANT, send=True, **kwargs):
    """Create the three-line sample invoice, sent unless ``send`` is False."""
    invoice_id = invoice_service.create_invoice(
        tenant_id=tenant_id,
        user_id=USER,
        recipient_name="Windpark Nord GmbH",
        lines=SAMPLE_LINES,
        invoice_date=kwargs.pop("invoice_date", date(2024, 3, 1)),
        due_date=kwargs.pop("due_date", date(2024, 3, 31)),
        service_start_date=date(2024, 1, 1),
        service_end_date=date(2024, 12, 31),
        park_id="park-nord",
        lease_id="lease-7",
        **kwargs,
    )
    if send:
        invoice_service.send_invoice(invoice_id, tenant_id)
    return invoice_service.get_invoice(invoice_id, tenant_id)


@pytest.fixture
def sample_invoice(invoice_service):
    """A SENT invoice with three lines (gross 2344.00)."""
    return create_sample_invoice(invoice_service)


@pytest.fixture
def cli_runner():
    """Create a Click CLI test runner."""
    from click.testing import CliRunner

    return CliRunner()


def square(lng: float, lat: float, size: float = 0.001) -> list[list[float]]:
    """Clockwise closed ring of a square with its south-west corner at (lng, lat)."""
    return [
        [lng, lat],
        [lng, lat + size],
        [lng + size, lat + size],
        [lng + size, lat],
        [lng, lat],
    ]


def build_shapefile_zip(
    features,
    fields,
    stem: str = "flurstuecke",
    dbf_encoding: str = "utf-8",
    cpg: str | None = None,
    prj: str | None = None,
    extra_layers: int = 0,
) -> bytes:
    """Build a shapefile ZIP in memory.

    Args:
        features: List of (rings or None, record dict); None writes a NULL shape
        fields: List of (name, type, size) DBF field definitions
        stem: Base name of the layer files
        dbf_encoding: Encoding used to write the DBF
        cpg: Content of the .cpg file, omitted when None
        prj: Content of the .prj file, omitted when None
        extra_layers: Number of additional copies of the layer to add
    """
    shp_io, shx_io, dbf_io = io.BytesIO(), io.BytesIO(), io.BytesIO()
    with shapefile.Writer(
        shp=shp_io, shx=shx_io, dbf=dbf_io, shapeType=shapefile.POLYGON, encoding=dbf_encoding
    ) as writer:
        for name, field_type, size in fields:
            writer.field(name, field_type, size=size)
        for rings, record in features:
            if rings is None:
                writer.null()
            else:
                writer.poly(rings)
            writer.record(**record)

    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as archive:
        for index in range(1 + extra_layers):
            layer_stem = stem if index == 0 else f"{stem}_{index}"
            archive.writestr(f"{layer_stem}.shp", shp_io.getvalue())
            archive.writestr(f"{layer_stem}.shx", shx_io.getvalue())
            archive.writestr(f"{layer_stem}.dbf", dbf_io.getvalue())
            if cpg is not None:
                archive.writestr(f"{layer_stem}.cpg", cpg)
            if prj is not None:
                archive.writestr(f"{layer_stem}.prj", prj)
    return buffer.getvalue()


ALKIS_FIELDS = [
    ("GEMARKUNG", "C", 50),
    ("FLUR", "C", 10),
    ("FLSTNRZAE", "C", 10),
    ("FLSTNRNEN", "C", 10),
    ("FLAECHE", "N", 12),
    ("EIGENTUM", "C", 120),
    ("ANZ_EIGENT", "N", 4),
]


@pytest.fixture
def alkis_zip():
    """Two ALKIS parcels near 52°N without projection file."""
    return build_shapefile_zip(
        [
            (
                [square(10.0, 52.0)],
                {
                    "GEMARKUNG": "Musterdorf",
                    "FLUR": "3",
                    "FLSTNRZAE": "12",
                    "FLSTNRNEN": "4",
                    "FLAECHE": 7630,
                    "EIGENTUM": "Meier, Hans",
                    "ANZ_EIGENT": 1,
                },
            ),
            (
                [square(10.002, 52.0)],
                {
                    "GEMARKUNG": "Musterdorf",
                    "FLUR": "3",
                    "FLSTNRZAE": "13",
                    "FLSTNRNEN": "0",
                    "FLAECHE": 7630,
                    "EIGENTUM": "Erbengemeinschaft Schulz",
                    "ANZ_EIGENT": 3,
                },
            ),
        ],
        ALKIS_FIELDS,
    )
