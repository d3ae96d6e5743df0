"""Domain layer for parkledger application."""

__all__ = [
    "InvoiceService",
    "InvoiceCorrectionService",
    "TaxRateService",
    "ShapefileImportService",
]


# Services import the database layer, which imports domain.entities;
# resolve them lazily so either package can be imported first.
def __getattr__(name):
    if name == "InvoiceService":
        from parkledger.domain.invoice import InvoiceService
        return InvoiceService
    if name == "InvoiceCorrectionService":
        from parkledger.domain.invoice_correction import InvoiceCorrectionService
        return InvoiceCorrectionService
    if name == "TaxRateService":
        from parkledger.domain.tax_rates import TaxRateService
        return TaxRateService
    if name == "ShapefileImportService":
        from parkledger.domain.shapefile_import import ShapefileImportService
        return ShapefileImportService
    raise AttributeError(f"module '{__name__}' has no attribute '{name}'")
