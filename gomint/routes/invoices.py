"""Invoice routes; updates feed payment status back to the linked cashback request."""

from datetime import datetime
from typing import Any, Dict, List

from flask import Blueprint, current_app, jsonify, request
from pymongo import ReturnDocument
from werkzeug.exceptions import BadRequest, NotFound

from gomint.core import (
    clean_string,
    compact,
    find_or_404,
    login_required,
    parse_datetime,
    parse_number,
    parse_object_id,
    serialize_document,
    validate_email,
    validate_object_id,
)
from gomint.services.invoices import sync_cashback_request
from gomint.services.lifecycle import PAYMENT_STATUSES

CASHBACK_ITEM_STATUSES = ("pending", "paid", "rejected")


def prepare_cashback_item(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise BadRequest("cashbackList entries must be objects")
    status = data.get("status") or "pending"
    if status not in CASHBACK_ITEM_STATUSES:
        raise BadRequest(f"cashback item status must be one of {', '.join(CASHBACK_ITEM_STATUSES)}")
    return {
        "mobile": clean_string(data.get("mobile"), "mobile"),
        "amount": parse_number(data.get("amount"), "amount", minimum=0),
        "status": status,
    }


def prepare_invoice_payload(data: Dict[str, Any]) -> Dict[str, Any]:
    payment_status = data.get("paymentStatus") or "pending"
    if payment_status not in PAYMENT_STATUSES:
        raise BadRequest(f"paymentStatus must be one of {', '.join(PAYMENT_STATUSES)}")

    cashback_list = data.get("cashbackList") or []
    if not isinstance(cashback_list, list):
        raise BadRequest("cashbackList must be an array")

    payload: Dict[str, Any] = {
        "invoiceNumber": clean_string(data.get("invoiceNumber"), "invoiceNumber", required=True),
        "vendorId": parse_object_id(data.get("vendorId"), "vendorId"),
        "operatorName": clean_string(data.get("operatorName"), "operatorName"),
        "operatorEmail": validate_email(
            clean_string(data.get("operatorEmail"), "operatorEmail", lower=True), "operatorEmail"
        ),
        "invoiceDate": parse_datetime(data.get("invoiceDate"), "invoiceDate", required=True),
        "totalAmount": parse_number(data.get("totalAmount"), "totalAmount", required=True, minimum=0),
        "paymentStatus": payment_status,
        "cashbackList": [prepare_cashback_item(item) for item in cashback_list],
    }
    return compact(payload)


def register_invoice_routes(bp: Blueprint, database) -> None:
    invoices = database["invoices"]

    @bp.get("/invoices")
    def list_invoices():
        query: Dict[str, Any] = {}
        request_id = request.args.get("cashbackRequestId") or request.args.get("requestId")
        if request_id:
            query["cashbackRequestId"] = parse_object_id(request_id, "cashbackRequestId")
        vendor_id = request.args.get("vendorId")
        if vendor_id:
            query["vendorId"] = parse_object_id(vendor_id, "vendorId")
        docs: List[Dict[str, Any]] = list(invoices.find(query).limit(200))
        return jsonify([serialize_document(doc) for doc in docs])

    @bp.get("/invoices/<invoice_id>")
    def get_invoice(invoice_id: str):
        object_id = validate_object_id(invoice_id, "Invoice not found")
        return jsonify(serialize_document(find_or_404(invoices, object_id, "Invoice not found")))

    @bp.post("/invoices")
    @login_required()
    def create_invoice():
        document = prepare_invoice_payload(request.get_json(silent=True) or {})
        find_or_404(database["vendors"], document["vendorId"], "Vendor not found")
        now = datetime.utcnow()
        document["createdAt"] = now
        document["updatedAt"] = now
        result = invoices.insert_one(document)
        current_app.logger.info("Created invoice %s", document["invoiceNumber"])
        return jsonify(serialize_document(invoices.find_one({"_id": result.inserted_id}))), 201

    @bp.put("/invoices/<invoice_id>")
    @login_required()
    def update_invoice(invoice_id: str):
        object_id = validate_object_id(invoice_id, "Invoice not found")
        existing = find_or_404(invoices, object_id, "Invoice not found")
        payload = request.get_json(silent=True) or {}
        # the request link is owned by /cashback-requests/<id>/link-invoice
        payload.pop("cashbackRequestId", None)

        updates = prepare_invoice_payload({**existing, **payload})
        updates["updatedAt"] = datetime.utcnow()
        updated = invoices.find_one_and_update(
            {"_id": object_id}, {"$set": updates}, return_document=ReturnDocument.AFTER
        )
        if updated is None:
            raise NotFound("Invoice not found")

        body = serialize_document(updated)
        sync = sync_cashback_request(database, updated, existing.get("paymentStatus", "pending"))
        if sync is not None:
            body["cashbackRequestSync"] = sync
        return jsonify(body)

    @bp.delete("/invoices/<invoice_id>")
    @login_required()
    def delete_invoice(invoice_id: str):
        object_id = validate_object_id(invoice_id, "Invoice not found")
        invoice = find_or_404(invoices, object_id, "Invoice not found")
        invoices.delete_one({"_id": object_id})
        if invoice.get("cashbackRequestId"):
            database["cashback_requests"].update_one(
                {"_id": invoice["cashbackRequestId"], "invoiceId": object_id},
                {"$set": {"invoiceId": None, "updatedAt": datetime.utcnow()}},
            )
        return jsonify({"message": "Invoice deleted successfully"})

    @bp.post("/invoices/<invoice_id>/cashback")
    @login_required()
    def add_cashback_item(invoice_id: str):
        object_id = validate_object_id(invoice_id, "Invoice not found")
        payload = request.get_json(silent=True) or {}
        if not payload.get("mobile") or not payload.get("amount"):
            raise BadRequest("Mobile and amount are required")
        item = prepare_cashback_item({"mobile": payload["mobile"], "amount": payload["amount"]})
        updated = invoices.find_one_and_update(
            {"_id": object_id},
            {"$push": {"cashbackList": item}, "$set": {"updatedAt": datetime.utcnow()}},
            return_document=ReturnDocument.AFTER,
        )
        if updated is None:
            raise NotFound("Invoice not found")
        return jsonify(serialize_document(updated)), 201
