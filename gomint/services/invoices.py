"""Keeps a linked cashback request in step with its invoice's payment status."""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from werkzeug.exceptions import NotFound

from gomint.services.lifecycle import IN_PROCESS, PAID, REJECTED, TransitionError, transition_request

logger = logging.getLogger(__name__)

# invoice paymentStatus -> (requestStatus, paymentStatus) for the linked request
INVOICE_SYNC = {
    "pending": (IN_PROCESS, None),
    "paid": (PAID, "paid"),
    "failed": (REJECTED, "failed"),
}


def sync_cashback_request(database, invoice: Dict[str, Any], previous_status: Optional[str]) -> Optional[Dict[str, Any]]:
    """
    Apply an invoice payment-status change to its linked cashback request.

    Returns ``None`` when nothing needed syncing, otherwise
    ``{"applied": bool, "status": <requestStatus>}``. Moves the transition
    table refuses are reported, not raised: the invoice update stands.
    """
    request_id = invoice.get("cashbackRequestId")
    status = invoice.get("paymentStatus", "pending")
    if request_id is None or status == previous_status:
        return None

    target, payment_status = INVOICE_SYNC[status]
    try:
        updated, changed = transition_request(
            database["cashback_requests"],
            request_id,
            target,
            actor=f"invoice:{invoice.get('invoiceNumber')}",
            reason=f"invoice payment status {previous_status} -> {status}",
            payment_status=payment_status,
        )
    except TransitionError as exc:
        logger.warning("Skipped sync of invoice %s: %s", invoice.get("invoiceNumber"), exc.message)
        return {"applied": False, "status": exc.current, "message": exc.message}
    except NotFound:
        logger.warning(
            "Invoice %s references missing cashback request %s", invoice.get("invoiceNumber"), request_id
        )
        return {"applied": False, "status": None, "message": "linked request not found"}

    return {"applied": changed, "status": updated.get("requestStatus")}


def claim_invoice(invoices: Collection, invoice_id: ObjectId, request_id: ObjectId) -> Optional[Dict[str, Any]]:
    """
    Point ``invoice_id`` at ``request_id`` unless another request holds it.

    The ownership check and the write are one conditional update, so of two
    requests claiming the same free invoice only one succeeds. Returns the
    updated invoice, or ``None`` when the invoice is missing or taken.
    """
    return invoices.find_one_and_update(
        {"_id": invoice_id, "$or": [{"cashbackRequestId": None}, {"cashbackRequestId": request_id}]},
        {"$set": {"cashbackRequestId": request_id, "updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )


def release_invoice(invoices: Collection, invoice_id: ObjectId, request_id: ObjectId) -> None:
    """Drop the back-reference, but only if it still points at ``request_id``."""
    invoices.update_one(
        {"_id": invoice_id, "cashbackRequestId": request_id},
        {"$unset": {"cashbackRequestId": ""}, "$set": {"updatedAt": datetime.utcnow()}},
    )
