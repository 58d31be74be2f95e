"""TrackMate — BankDetailService: company bank accounts referenced by invoices."""
import logging
from typing import Any

from trackmate.core.exceptions import Conflict
from trackmate.models.company import Company, CompanyBankDetail
from trackmate.models.invoice import Invoice
from trackmate.schemas.bank_detail import BankDetailCreate, BankDetailUpdate
from trackmate.schemas.common import validate_payload
from trackmate.services.audit_service import (
    ACTION_BANK_DETAIL_CREATED,
    ACTION_BANK_DETAIL_DELETED,
    ACTION_BANK_DETAIL_UPDATED,
    log_audit,
)
from trackmate.services.store import TenantStore

logger = logging.getLogger(__name__)


class BankDetailService:

    @staticmethod
    async def _ensure_iban_free(store: TenantStore, iban: str, exclude_id: int | None = None) -> None:
        criteria = [CompanyBankDetail.iban == iban]
        if exclude_id is not None:
            criteria.append(CompanyBankDetail.id != exclude_id)
        if await store.exists(CompanyBankDetail, *criteria):
            raise Conflict(f"IBAN {iban} is already registered for this company")

    @staticmethod
    async def get_bank_detail(store: TenantStore, bank_detail_id: int) -> CompanyBankDetail:
        return await store.get(CompanyBankDetail, bank_detail_id)

    @staticmethod
    async def list_bank_details(store: TenantStore) -> list[CompanyBankDetail]:
        return await store.list(CompanyBankDetail, order_by=CompanyBankDetail.bank_name)

    @staticmethod
    async def create_bank_detail(store: TenantStore, data: BankDetailCreate | dict[str, Any]) -> CompanyBankDetail:
        data = validate_payload(BankDetailCreate, data)
        await store.get(Company, store.company_id)
        await BankDetailService._ensure_iban_free(store, data.iban)

        detail = CompanyBankDetail(
            bank_name=data.bank_name,
            account_name=data.account_name,
            iban=data.iban,
            swift=data.swift,
            currency=data.currency.upper(),
        )
        store.add(detail)
        await store.flush()
        log_audit(store, ACTION_BANK_DETAIL_CREATED, "bank_detail", detail.id, {"iban": detail.iban})
        logger.info("Bank detail %s added for company %s", detail.id, store.company_id)
        return detail

    @staticmethod
    async def update_bank_detail(
        store: TenantStore,
        bank_detail_id: int,
        data: BankDetailUpdate | dict[str, Any],
    ) -> CompanyBankDetail:
        data = validate_payload(BankDetailUpdate, data)
        detail = await store.get(CompanyBankDetail, bank_detail_id, for_update=True)
        changes = data.model_dump(exclude_unset=True, exclude_none=True)
        if "iban" in changes and changes["iban"] != detail.iban:
            await BankDetailService._ensure_iban_free(store, changes["iban"], exclude_id=detail.id)
        if "currency" in changes:
            changes["currency"] = changes["currency"].upper()

        for field, value in changes.items():
            setattr(detail, field, value)
        store.touch(detail)
        await store.flush()
        log_audit(store, ACTION_BANK_DETAIL_UPDATED, "bank_detail", detail.id, {"fields": sorted(changes)})
        return detail

    @staticmethod
    async def delete_bank_detail(store: TenantStore, bank_detail_id: int) -> CompanyBankDetail:
        """Soft delete, refused while any live invoice still points at the account."""
        detail = await store.get(CompanyBankDetail, bank_detail_id)
        in_use = await store.count(Invoice, Invoice.bank_details_id == detail.id)
        if in_use:
            raise Conflict(f"bank detail {detail.id} is used by {in_use} invoice(s)")

        detail = await store.soft_delete(CompanyBankDetail, bank_detail_id)
        log_audit(store, ACTION_BANK_DETAIL_DELETED, "bank_detail", detail.id, {"iban": detail.iban})
        logger.info("Bank detail %s deleted for company %s", detail.id, store.company_id)
        return detail
