"""TrackMate — AuditService."""
import logging

from trackmate.models.audit import AuditLog
from trackmate.services.store import TenantStore

logger = logging.getLogger(__name__)

# ── Audit action constants ────────────────────────────────────────────────────
ACTION_ORDER_CREATED = "order.created"
ACTION_ORDER_UPDATED = "order.updated"
ACTION_ORDER_STATUS_CHANGED = "order.status_changed"
ACTION_ORDER_DELETED = "order.deleted"
ACTION_INVOICE_CREATED = "invoice.created"
ACTION_INVOICE_UPDATED = "invoice.updated"
ACTION_INVOICE_STATUS_CHANGED = "invoice.status_changed"
ACTION_INVOICE_DELETED = "invoice.deleted"
ACTION_BANK_DETAIL_CREATED = "bank_detail.created"
ACTION_BANK_DETAIL_UPDATED = "bank_detail.updated"
ACTION_BANK_DETAIL_DELETED = "bank_detail.deleted"


def log_audit(
    store: TenantStore,
    action: str,
    target_type: str | None = None,
    target_id: int | None = None,
    payload: dict | None = None,
    company_id: int | None = None,
) -> AuditLog:
    """
    Stage an audit log entry in the surrounding transaction.
    It commits (or rolls back) together with the change it records.
    """
    entry = AuditLog(
        company_id=company_id or store.company_id,
        actor=store.actor,
        action=action,
        target_type=target_type,
        target_id=target_id,
        payload=payload,
    )
    store.db.add(entry)
    logger.debug("Audit %s on %s %s", action, target_type, target_id)
    return entry
