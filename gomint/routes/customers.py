"""Customer profile routes, including the bank details snapshot used for payouts."""

from datetime import datetime
from typing import Any, Dict, Optional

from bson import ObjectId
from flask import Blueprint, current_app, jsonify, request
from pymongo import ReturnDocument
from werkzeug.exceptions import BadRequest, NotFound

from gomint.core import (
    clean_string,
    compact,
    login_required,
    serialize_document,
    validate_email,
)

PROFILE_FIELDS = ("firstName", "lastName", "mobile", "country")
BANK_FIELDS = ("acctHolder", "bankName", "acctNumber", "ifsc", "state", "country")


def prepare_bank_snapshot(data: Any) -> Dict[str, Any]:
    if not isinstance(data, dict):
        raise BadRequest("bankDetails must be an object")
    snapshot = {field: clean_string(data.get(field), field) for field in BANK_FIELDS}
    if not snapshot["acctNumber"]:
        raise BadRequest("acctNumber is required")
    if not snapshot["ifsc"]:
        raise BadRequest("ifsc is required")
    snapshot["ifsc"] = snapshot["ifsc"].upper()
    return compact(snapshot)


def prepare_customer_payload(data: Dict[str, Any], partial: bool = False) -> Dict[str, Any]:
    payload: Dict[str, Any] = {}
    for field in PROFILE_FIELDS:
        if not partial or field in data:
            payload[field] = clean_string(data.get(field), field)
    if not partial or "email" in data:
        payload["email"] = validate_email(clean_string(data.get("email"), "email", lower=True))
    if data.get("bankDetails") is not None:
        payload["bankDetails"] = prepare_bank_snapshot(data["bankDetails"])
    return payload


def register_customer_routes(bp: Blueprint, database) -> None:
    customers = database["customers"]

    def lookup_filter(customer_id: str) -> Optional[Dict[str, Any]]:
        """Match by customer id first, then by the owning user's id."""
        if not ObjectId.is_valid(customer_id):
            return None
        object_id = ObjectId(customer_id)
        if customers.find_one({"_id": object_id}, {"_id": 1}) is not None:
            return {"_id": object_id}
        return {"userId": object_id}

    @bp.get("/customers")
    def list_customers():
        return jsonify([serialize_document(doc) for doc in customers.find().limit(100)])

    @bp.get("/customers/<customer_id>")
    def get_customer(customer_id: str):
        query = lookup_filter(customer_id)
        doc = customers.find_one(query) if query else None
        if doc is None:
            raise NotFound("Customer not found")
        return jsonify(serialize_document(doc))

    @bp.post("/customers")
    def create_customer():
        document = compact(prepare_customer_payload(request.get_json(silent=True) or {}))
        document["createdAt"] = datetime.utcnow()
        result = customers.insert_one(document)
        return jsonify(serialize_document(customers.find_one({"_id": result.inserted_id}))), 201

    @bp.put("/customers/<customer_id>")
    def update_customer(customer_id: str):
        query = lookup_filter(customer_id)
        if query is None:
            raise NotFound("Customer not found")
        payload = prepare_customer_payload(request.get_json(silent=True) or {}, partial=True)
        update: Dict[str, Any] = {}
        to_set = compact(payload)
        to_unset = {field: "" for field, value in payload.items() if value is None}
        if to_set:
            update["$set"] = to_set
        if to_unset:
            update["$unset"] = to_unset
        if not update:
            doc = customers.find_one(query)
        else:
            doc = customers.find_one_and_update(query, update, return_document=ReturnDocument.AFTER)
        if doc is None:
            raise NotFound("Customer not found")
        return jsonify(serialize_document(doc))

    @bp.put("/customers/<customer_id>/bank-details")
    @login_required()
    def update_customer_bank_details(customer_id: str):
        query = lookup_filter(customer_id)
        if query is None:
            raise NotFound("Customer not found")
        snapshot = prepare_bank_snapshot(request.get_json(silent=True) or {})
        doc = customers.find_one_and_update(
            query, {"$set": {"bankDetails": snapshot}}, return_document=ReturnDocument.AFTER
        )
        if doc is None:
            raise NotFound("Customer not found")
        current_app.logger.info("Updated bank details for customer %s", doc["_id"])
        return jsonify(serialize_document(doc))

    @bp.delete("/customers/<customer_id>")
    def delete_customer(customer_id: str):
        if not ObjectId.is_valid(customer_id):
            raise NotFound("Customer not found")
        result = customers.delete_one({"_id": ObjectId(customer_id)})
        if result.deleted_count == 0:
            raise NotFound("Customer not found")
        return jsonify({"message": "Customer deleted successfully"})
