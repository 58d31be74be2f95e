"""TrackMate — Company (tenant), Customer and CompanyBankDetail models."""
from sqlalchemy import Index, Integer, String, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from trackmate.core.exceptions import EntityKind
from trackmate.db.base import AuditMixin, Base, TenantMixin


class Company(AuditMixin, Base):
    """Tenant root. Every other entity hangs off one company."""

    __tablename__ = "companies"
    __entity_kind__ = EntityKind.COMPANY

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)


class Customer(TenantMixin, Base):
    __tablename__ = "customers"
    __entity_kind__ = EntityKind.CUSTOMER

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    phone: Mapped[str | None] = mapped_column(String(50), nullable=True)
    address: Mapped[str | None] = mapped_column(Text, nullable=True)


class CompanyBankDetail(TenantMixin, Base):
    """Bank account printed on invoices. IBAN is unique per company among live rows."""

    __tablename__ = "company_bank_details"
    __entity_kind__ = EntityKind.BANK_DETAIL
    __table_args__ = (
        Index(
            "uq_company_bank_details_company_iban_live",
            "company_id",
            "iban",
            unique=True,
            postgresql_where=text("is_deleted = false"),
            sqlite_where=text("is_deleted = 0"),
        ),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True)
    bank_name: Mapped[str] = mapped_column(String(255), nullable=False)
    account_name: Mapped[str] = mapped_column(String(255), nullable=False)
    iban: Mapped[str] = mapped_column(String(34), nullable=False)
    swift: Mapped[str | None] = mapped_column(String(11), nullable=True)
    currency: Mapped[str] = mapped_column(String(3), nullable=False)
