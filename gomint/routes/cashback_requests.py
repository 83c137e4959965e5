"""
Cashback request routes.

Customers submit requests, operators approve, reject and attach invoices,
and vendors confirm payment. Status changes go through
``gomint.services.lifecycle`` so illegal or conflicting moves return 409.
"""

from datetime import datetime
from typing import Any, Dict

from flask import Blueprint, current_app, g, jsonify, request
from werkzeug.exceptions import BadRequest, Conflict, NotFound

from gomint.core import (
    clean_string,
    find_or_404,
    login_required,
    parse_number,
    parse_object_id,
    serialize_document,
    validate_object_id,
)
from gomint.services.cashback import attach_summaries, stats_by_status, submit_request
from gomint.services.invoices import claim_invoice, release_invoice
from gomint.services.lifecycle import (
    CANCELLED,
    IN_PROCESS,
    PAID,
    REJECTED,
    REQUEST_STATUSES,
    TransitionError,
    link_invoice,
    transition_request,
)

OPERATOR_ROLES = ("operator", "admin")
SETTLEMENT_ROLES = ("vendor", "operator", "admin")


def prepare_submission(data: Dict[str, Any]) -> Dict[str, Any]:
    if not data.get("customerId"):
        raise BadRequest("Customer ID required")
    if not data.get("businessId"):
        raise BadRequest("Business ID required")
    amount = parse_number(data.get("amount"), "amount", minimum=0)
    if amount is None:
        raise BadRequest("Valid amount required")

    payload: Dict[str, Any] = {
        "customerId": parse_object_id(data["customerId"], "customerId"),
        "businessId": parse_object_id(data["businessId"], "businessId"),
        "amount": amount,
        "cashbackPercent": parse_number(data.get("cashbackPercent"), "cashbackPercent", minimum=0, maximum=100),
        "purchaseDetails": clean_string(data.get("purchaseDetails"), "purchaseDetails"),
        "locationName": clean_string(data.get("locationName"), "locationName"),
        "offerId": None,
        "locationId": None,
    }
    if data.get("offerId"):
        payload["offerId"] = parse_object_id(data["offerId"], "offerId")
    if data.get("locationId"):
        payload["locationId"] = parse_object_id(data["locationId"], "locationId")
    return payload


def _actor() -> str:
    token = getattr(g, "current_token", None) or {}
    return f"user:{token.get('sub', 'unknown')}"


def register_cashback_request_routes(bp: Blueprint, database) -> None:
    requests = database["cashback_requests"]

    def load_request(request_id: str) -> Dict[str, Any]:
        object_id = validate_object_id(request_id, "Request not found")
        return find_or_404(requests, object_id, "Request not found")

    @bp.post("/cashback-requests")
    @login_required()
    def create_cashback_request():
        payload = prepare_submission(request.get_json(silent=True) or {})
        created = submit_request(database, payload)
        data = serialize_document(attach_summaries(database, [created])[0])
        return (
            jsonify(
                {
                    "message": "Cashback request submitted successfully",
                    "requestId": str(created["_id"]),
                    "requestNumber": created["requestNumber"],
                    "status": created["requestStatus"],
                    "data": data,
                }
            ),
            201,
        )

    @bp.get("/cashback-requests")
    def list_cashback_requests():
        query: Dict[str, Any] = {}
        customer_id = request.args.get("customerId")
        business_id = request.args.get("businessId")
        status = request.args.get("status")
        if customer_id:
            query["customerId"] = parse_object_id(customer_id, "customerId")
        if business_id:
            query["businessId"] = parse_object_id(business_id, "businessId")
        if status:
            if status not in REQUEST_STATUSES:
                raise BadRequest(f"status must be one of {', '.join(REQUEST_STATUSES)}")
            query["requestStatus"] = status

        docs = list(requests.find(query).sort("submittedAt", -1).limit(200))
        return jsonify([serialize_document(doc) for doc in attach_summaries(database, docs)])

    @bp.get("/cashback-requests/stats/by-status")
    def cashback_stats():
        match: Dict[str, Any] = {}
        if request.args.get("businessId"):
            match["businessId"] = parse_object_id(request.args["businessId"], "businessId")
        if request.args.get("customerId"):
            match["customerId"] = parse_object_id(request.args["customerId"], "customerId")
        return jsonify(stats_by_status(requests, match))

    @bp.get("/cashback-requests/<request_id>")
    def get_cashback_request(request_id: str):
        doc = load_request(request_id)
        return jsonify(serialize_document(attach_summaries(database, [doc])[0]))

    @bp.put("/cashback-requests/<request_id>/approve")
    @login_required(*OPERATOR_ROLES)
    def approve_cashback_request(request_id: str):
        payload = request.get_json(silent=True) or {}
        approved_by = clean_string(payload.get("approvedBy"), "approvedBy")
        if not approved_by:
            raise BadRequest("Operator name required")
        notes = clean_string(payload.get("notes"), "notes")

        doc = load_request(request_id)
        updates: Dict[str, Any] = {"approvedAt": datetime.utcnow(), "approvedBy": approved_by}
        if notes:
            updates["notes"] = notes
        updated, changed = transition_request(
            requests, doc["_id"], IN_PROCESS, actor=approved_by, reason=notes, updates=updates
        )
        message = "Request approved and moved to in-process" if changed else "Request already in process"
        return jsonify({"message": message, "data": serialize_document(updated)})

    @bp.put("/cashback-requests/<request_id>/reject")
    @login_required(*OPERATOR_ROLES)
    def reject_cashback_request(request_id: str):
        payload = request.get_json(silent=True) or {}
        reason = clean_string(payload.get("rejectionReason"), "rejectionReason")
        if not reason:
            raise BadRequest("Rejection reason required")
        approved_by = clean_string(payload.get("approvedBy"), "approvedBy") or "Unknown Operator"

        doc = load_request(request_id)
        updated, _ = transition_request(
            requests,
            doc["_id"],
            REJECTED,
            actor=approved_by,
            reason=reason,
            updates={"rejectionReason": reason, "approvedBy": approved_by},
        )
        return jsonify({"message": "Request rejected", "data": serialize_document(updated)})

    @bp.put("/cashback-requests/<request_id>/link-invoice")
    @login_required(*OPERATOR_ROLES)
    def link_invoice_to_request(request_id: str):
        payload = request.get_json(silent=True) or {}
        if not payload.get("invoiceId"):
            raise BadRequest("Invoice ID required")
        invoice_id = parse_object_id(payload["invoiceId"], "invoiceId")

        doc = load_request(request_id)
        invoices = database["invoices"]
        invoice = invoices.find_one({"_id": invoice_id})
        if invoice is None:
            raise NotFound("Invoice not found")
        if claim_invoice(invoices, invoice_id, doc["_id"]) is None:
            raise Conflict("Invoice is already linked to another cashback request")

        try:
            updated = link_invoice(requests, doc, invoice_id, actor=_actor())
        except TransitionError:
            if invoice.get("cashbackRequestId") != doc["_id"]:
                release_invoice(invoices, invoice_id, doc["_id"])
            raise
        previous = doc.get("invoiceId")
        if previous is not None and previous != invoice_id:
            release_invoice(invoices, previous, doc["_id"])
        current_app.logger.info("Linked invoice %s to request %s", invoice.get("invoiceNumber"), doc.get("requestNumber"))
        return jsonify({"message": "Invoice linked to cashback request", "data": serialize_document(updated)})

    @bp.put("/cashback-requests/<request_id>/mark-paid")
    @login_required(*SETTLEMENT_ROLES)
    def mark_cashback_request_paid(request_id: str):
        doc = load_request(request_id)
        updated, changed = transition_request(
            requests,
            doc["_id"],
            PAID,
            actor=_actor(),
            reason="payment confirmed",
            updates={"paidAt": datetime.utcnow()},
        )
        message = "Payment confirmed." if changed else "Request already paid."
        return jsonify({"message": message, "data": serialize_document(updated)})

    @bp.delete("/cashback-requests/<request_id>")
    @login_required()
    def cancel_cashback_request(request_id: str):
        doc = load_request(request_id)
        transition_request(requests, doc["_id"], CANCELLED, actor=_actor(), reason="cancelled")
        return jsonify({"message": "Request cancelled"})
