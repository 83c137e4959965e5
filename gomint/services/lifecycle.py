"""
State machine for cashback requests.

A request carries three independent lanes: ``requestStatus``,
``paymentStatus`` and ``invoiceId``. Every change to ``requestStatus`` goes
through :func:`transition_request`, which checks the move against
``TRANSITIONS`` and writes it with a single conditional update so that two
operators acting on the same request cannot both win.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

from bson import ObjectId
from pymongo import ReturnDocument
from pymongo.collection import Collection
from werkzeug.exceptions import NotFound

logger = logging.getLogger(__name__)

PENDING = "pending"
IN_PROCESS = "in-process"
APPROVED = "approved"
PAID = "paid"
REJECTED = "rejected"
CANCELLED = "cancelled"

REQUEST_STATUSES = (PENDING, IN_PROCESS, APPROVED, PAID, REJECTED, CANCELLED)
PAYMENT_STATUSES = ("pending", "paid", "failed")

TRANSITIONS: Dict[str, Tuple[str, ...]] = {
    PENDING: (IN_PROCESS, REJECTED, CANCELLED),
    IN_PROCESS: (APPROVED, PAID, REJECTED, CANCELLED),
    APPROVED: (PAID, REJECTED, CANCELLED),
    PAID: (),
    REJECTED: (),
    CANCELLED: (),
}

# requestStatus values a payment-lane value may be written alongside
PAYMENT_LANE: Dict[str, Tuple[str, ...]] = {
    "paid": (PAID,),
    "failed": (REJECTED,),
    "pending": (PENDING, IN_PROCESS, APPROVED),
}

INVOICE_LINKABLE = (PENDING, IN_PROCESS, APPROVED)


class TransitionError(Exception):
    """Raised when a request cannot move from its current status to ``target``."""

    def __init__(self, current: Optional[str], target: str, message: Optional[str] = None):
        self.current = current
        self.target = target
        self.message = message or f"cannot move request from {current!r} to {target!r}"
        super().__init__(self.message)


def is_terminal(status: str) -> bool:
    return not TRANSITIONS.get(status)


def can_transition(current: str, target: str) -> bool:
    return target in TRANSITIONS.get(current, ())


def transition_request(
    collection: Collection,
    request_id: ObjectId,
    target: str,
    *,
    actor: Optional[str] = None,
    reason: Optional[str] = None,
    payment_status: Optional[str] = None,
    updates: Optional[Dict[str, Any]] = None,
) -> Tuple[Dict[str, Any], bool]:
    """
    Move a cashback request to ``target``.

    Returns ``(document, changed)``. A request already in ``target`` is
    returned unchanged, unless ``payment_status`` differs from its payment
    lane, in which case only ``paymentStatus`` is updated. Raises
    :class:`TransitionError` for moves missing from the transition table,
    or when another writer changed the status between the read and the
    write.
    """
    if target not in TRANSITIONS:
        raise ValueError(f"unknown request status {target!r}")
    if target == PAID:
        payment_status = "paid"
    if payment_status is not None and target not in PAYMENT_LANE.get(payment_status, ()):
        raise ValueError(f"paymentStatus {payment_status!r} cannot accompany {target!r}")

    doc = collection.find_one({"_id": request_id})
    if doc is None:
        raise NotFound("Request not found")

    current = doc.get("requestStatus", PENDING)
    if current == target:
        if payment_status is None or doc.get("paymentStatus") == payment_status:
            return doc, False
        # status already there, only the payment lane lags behind
        updated = collection.find_one_and_update(
            {"_id": request_id, "requestStatus": current},
            {"$set": {"paymentStatus": payment_status, "updatedAt": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise TransitionError(
                current, target, "request was modified concurrently, reload and retry"
            )
        logger.info(
            "Request %s payment status set to %s", doc.get("requestNumber"), payment_status
        )
        return updated, True
    if not can_transition(current, target):
        logger.warning(
            "Refused transition %s -> %s for request %s", current, target, doc.get("requestNumber")
        )
        raise TransitionError(current, target)

    now = datetime.utcnow()
    fields: Dict[str, Any] = {"requestStatus": target, "updatedAt": now}
    if payment_status is not None:
        fields["paymentStatus"] = payment_status
    if updates:
        fields.update(updates)

    entry = {"from": current, "to": target, "actor": actor, "reason": reason, "at": now}
    updated = collection.find_one_and_update(
        {"_id": request_id, "requestStatus": current},
        {"$set": fields, "$push": {"history": entry}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise TransitionError(
            current, target, "request was modified concurrently, reload and retry"
        )

    logger.info(
        "Request %s moved %s -> %s by %s", doc.get("requestNumber"), current, target, actor or "system"
    )
    return updated, True


def link_invoice(
    collection: Collection,
    request_doc: Dict[str, Any],
    invoice_id: ObjectId,
    *,
    actor: Optional[str] = None,
) -> Dict[str, Any]:
    """
    Record ``invoice_id`` on the request.

    Linking to an ``in-process`` request advances it to ``approved``;
    pending and approved requests keep their status.
    """
    current = request_doc.get("requestStatus", PENDING)
    if current not in INVOICE_LINKABLE:
        raise TransitionError(current, current, f"cannot link an invoice to a {current} request")

    if current == IN_PROCESS:
        updated, _ = transition_request(
            collection,
            request_doc["_id"],
            APPROVED,
            actor=actor,
            reason="invoice linked",
            updates={"invoiceId": invoice_id},
        )
        return updated

    updated = collection.find_one_and_update(
        {"_id": request_doc["_id"], "requestStatus": current},
        {"$set": {"invoiceId": invoice_id, "updatedAt": datetime.utcnow()}},
        return_document=ReturnDocument.AFTER,
    )
    if updated is None:
        raise TransitionError(current, current, "request was modified concurrently, reload and retry")
    return updated
