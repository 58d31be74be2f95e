"""TrackMate — SQLAlchemy models."""
from trackmate.models.audit import AuditLog
from trackmate.models.company import Company, CompanyBankDetail, Customer
from trackmate.models.enums import InvoiceStatus, OrderStatus, ProductStatus, SequenceSeries, StockReason
from trackmate.models.invoice import Invoice, InvoiceItem
from trackmate.models.order import Order, OrderItem
from trackmate.models.product import Product, StockMovement
from trackmate.models.sequence import SequenceCounter

__all__ = [
    "Company", "Customer", "CompanyBankDetail",
    "Product", "StockMovement", "ProductStatus", "StockReason",
    "Order", "OrderItem", "OrderStatus",
    "Invoice", "InvoiceItem", "InvoiceStatus",
    "SequenceCounter", "SequenceSeries",
    "AuditLog",
]
